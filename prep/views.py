# prep/views.py
from __future__ import annotations

import logging

import pytz
from django.db import IntegrityError, transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from . import services
from .conf import get_setting
from .models import Profile, ScoreHistory, StudySession
from .serializers import (
    ProfileSerializer,
    ScoreHistorySerializer,
    StudySessionCreateSerializer,
    StudySessionSerializer,
)

logger = logging.getLogger(__name__)

PAYLOAD_FIELDS = (
    "subject",
    "correct_questions",
    "total_questions",
    "difficulty",
    "confidence",
    "guess_percent",
    "time_taken",
    "type",
)


def _same_payload(obj: StudySession, data: dict) -> bool:
    """Whether a stored session matches a replayed request field by field."""
    return all(getattr(obj, f) == data[f] for f in PAYLOAD_FIELDS)


def _filter_param(request, name: str, valid) -> str | None:
    """Read an optional filter; 'all' or empty means no filter."""
    v = request.query_params.get(name)
    if not v or v == "all":
        return None
    if not valid(v):
        raise ValueError(f"invalid {name}.")
    return v


class SessionCreateView(APIView):
    """POST /api/sessions (optional Idempotency-Key; conflicting replay -> 409)."""
    def post(self, request):
        ser = StudySessionCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)
        user_id = data.pop("user_id")
        body_idem = data.pop("idempotency_key", None)
        idem = request.headers.get("Idempotency-Key") or body_idem
        if idem and len(idem) > 64:
            return Response({"detail": "Idempotency-Key must be at most 64 characters."}, status=400)

        status_code = status.HTTP_201_CREATED
        try:
            with transaction.atomic():
                if idem:
                    obj, created = StudySession.objects.get_or_create(
                        user_id=user_id,
                        idempotency_key=idem,
                        defaults=data,
                    )
                else:
                    obj, created = StudySession.objects.create(user_id=user_id, **data), True
                if not created:
                    # Same idempotency key: accept only if payload is identical; otherwise 409.
                    if not _same_payload(obj, data):
                        logger.warning("idempotency conflict user_id=%s key=%s", user_id, idem)
                        return Response(
                            {"detail": "Idempotency-Key reused with different payload."},
                            status=status.HTTP_409_CONFLICT,
                        )
                    logger.info("idempotent replay user_id=%s key=%s", user_id, idem)
                    status_code = status.HTTP_200_OK
        except IntegrityError:
            # Handle race: unique constraint hit, re-read and compare payload.
            obj = StudySession.objects.get(user_id=user_id, idempotency_key=idem)
            if not _same_payload(obj, data):
                return Response(
                    {"detail": "Idempotency-Key reused with different payload."},
                    status=status.HTTP_409_CONFLICT,
                )
            status_code = status.HTTP_200_OK

        now = timezone.now()
        if status_code == status.HTTP_201_CREATED:
            prediction_score = services.refresh_prediction_score(user_id, now=now)
        else:
            prediction_score = services.compute_prep_score(user_id, now=now)

        body = StudySessionSerializer(obj, context={"now": now}).data
        body["prediction_score"] = prediction_score
        return Response(body, status=status_code)


class UserSessionListView(APIView):
    """
    GET /api/users/{user_id}/sessions
      ?subject=Medicine|all
      &type=practice|mock|all
      &sort=date-desc|date-asc|score-desc|score-asc|subject-asc|subject-desc
    """
    def get(self, request, user_id: str):
        try:
            subject = _filter_param(request, "subject", services.valid_subject)
            session_type = _filter_param(request, "type", services.valid_session_type)
            rows = services.list_sessions(
                user_id,
                subject=subject,
                session_type=session_type,
                sort=request.query_params.get("sort", "date-desc"),
            )
        except ValueError as e:
            return Response({"detail": str(e)}, status=400)

        now = timezone.now()
        return Response({
            "user_id": user_id,
            "count": len(rows),
            "results": StudySessionSerializer(rows, many=True, context={"now": now}).data,
        }, status=status.HTTP_200_OK)


class UserSessionDetailView(APIView):
    """GET / DELETE /api/users/{user_id}/sessions/{pk} (other users' sessions are 404)."""
    def get(self, request, user_id: str, pk: int):
        obj = get_object_or_404(StudySession, pk=pk, user_id=user_id)
        return Response(StudySessionSerializer(obj, context={"now": timezone.now()}).data)

    def delete(self, request, user_id: str, pk: int):
        obj = get_object_or_404(StudySession, pk=pk, user_id=user_id)
        services.delete_session(obj)
        return Response(status=status.HTTP_204_NO_CONTENT)


class DashboardView(APIView):
    """
    GET /api/users/{user_id}/dashboard
      ?tz=Asia/Tokyo
      &days=7
    Prep score, per-subject cards, daily trend, coaching message and the most
    recent sessions.
    """
    def get(self, request, user_id: str):
        tzname = request.query_params.get("tz") or get_setting("DEFAULT_TZ")
        try:
            pytz.timezone(tzname)
        except pytz.UnknownTimeZoneError:
            return Response({"detail": "invalid tz."}, status=400)

        max_days = get_setting("MAX_TREND_DAYS")
        try:
            days = int(request.query_params.get("days", get_setting("TREND_DAYS")))
        except (TypeError, ValueError):
            return Response({"detail": "days must be an integer."}, status=400)
        if not 1 <= days <= max_days:
            return Response({"detail": f"days must be between 1 and {max_days}."}, status=400)

        now = timezone.now()
        data = services.build_dashboard(user_id, now=now, days=days, tz=tzname)
        data["recent_sessions"] = StudySessionSerializer(
            data["recent_sessions"], many=True, context={"now": now}
        ).data
        return Response(data, status=status.HTTP_200_OK)


class ProfileView(APIView):
    """GET / PATCH /api/users/{user_id}/profile."""
    def get(self, request, user_id: str):
        profile = get_object_or_404(Profile, user_id=user_id)
        return Response(ProfileSerializer(profile).data)

    def patch(self, request, user_id: str):
        # first edit creates the profile; nothing is written if validation fails
        profile = Profile.objects.filter(user_id=user_id).first() or Profile(user_id=user_id)
        ser = ProfileSerializer(profile, data=request.data, partial=True)
        ser.is_valid(raise_exception=True)
        ser.save()
        return Response(ser.data, status=status.HTTP_200_OK)


class ScoreHistoryView(APIView):
    """GET /api/users/{user_id}/score-history (newest first)."""
    def get(self, request, user_id: str):
        rows = ScoreHistory.objects.filter(user_id=user_id).order_by("-created_at", "-id")
        return Response({
            "user_id": user_id,
            "results": ScoreHistorySerializer(rows, many=True).data,
        })


class LeaderboardView(APIView):
    """GET /api/leaderboard?user_id=... (live ranking, zero scorers last)."""
    def get(self, request):
        current = request.query_params.get("user_id") or None
        return Response(services.leaderboard_payload(current), status=status.HTTP_200_OK)
