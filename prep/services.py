# prep/services.py
from __future__ import annotations

import datetime as dt
import logging
from typing import Dict, List, Optional

import pytz
from django.db import transaction
from django.utils import timezone

from .choices import SessionType, Subject
from .conf import get_setting
from .models import Profile, ScoreHistory, StudySession
from .ranking import LeaderboardEntry, rank_entries, rank_of
from .scoring import (
    DEFAULT_TABLES,
    ScoringTables,
    accuracy,
    group_by_subject,
    overall_prep_score,
    session_score,
    subject_blended_score,
)

logger = logging.getLogger(__name__)

SORT_KEYS = ("date-desc", "date-asc", "score-desc", "score-asc", "subject-asc", "subject-desc")

# (lower bound, band) checked top-down on the 0-100 scale
SCORE_BANDS = (
    (80.0, "excellent"),
    (60.0, "good"),
    (40.0, "fair"),
)


def resolve_tz(tz: Optional[str]) -> dt.tzinfo:
    """Return a pytz timezone; raises pytz.UnknownTimeZoneError for bad names."""
    return pytz.timezone(tz or get_setting("DEFAULT_TZ"))


def _local_date(d: dt.datetime, tz: dt.tzinfo) -> dt.date:
    """Calendar date of a UTC datetime as seen in the given timezone."""
    if timezone.is_naive(d):
        d = timezone.make_aware(d, dt.timezone.utc)
    return d.astimezone(tz).date()


def _iter_local_days(now: dt.datetime, days: int, tz: dt.tzinfo) -> List[dt.date]:
    """The `days` local calendar days ending today, oldest first."""
    today = _local_date(now, tz)
    return [today - dt.timedelta(days=i) for i in range(days - 1, -1, -1)]


def percent(fraction: float) -> float:
    """Fractional score -> 0..100 scale, 2 decimals."""
    return round(fraction * 100, 2)


def score_band(score: float) -> str:
    for floor, band in SCORE_BANDS:
        if score >= floor:
            return band
    return "weak"


# --- session store ---------------------------------------------------------

def user_sessions(user_id: str) -> List[StudySession]:
    return list(StudySession.objects.filter(user_id=user_id).order_by("-created_at", "-id"))


def list_sessions(
    user_id: str,
    *,
    subject: Optional[str] = None,
    session_type: Optional[str] = None,
    sort: str = "date-desc",
) -> List[StudySession]:
    """
    A user's sessions, optionally filtered by subject and type, in one of
    SORT_KEYS order. "score" sorts by raw accuracy, not the decayed score.
    """
    if sort not in SORT_KEYS:
        raise ValueError(f"sort must be one of {'|'.join(SORT_KEYS)}")

    qs = StudySession.objects.filter(user_id=user_id)
    if subject:
        qs = qs.filter(subject=subject)
    if session_type:
        qs = qs.filter(type=session_type)

    if sort == "date-desc":
        return list(qs.order_by("-created_at", "-id"))
    if sort == "date-asc":
        return list(qs.order_by("created_at", "id"))
    if sort == "subject-asc":
        return list(qs.order_by("subject", "-created_at"))
    if sort == "subject-desc":
        return list(qs.order_by("-subject", "-created_at"))

    rows = list(qs.order_by("-created_at", "-id"))
    rows.sort(key=accuracy, reverse=(sort == "score-desc"))
    return rows


# --- prep score projection -------------------------------------------------

def compute_prep_score(
    user_id: str,
    *,
    now: Optional[dt.datetime] = None,
    tables: ScoringTables = DEFAULT_TABLES,
) -> float:
    """Recompute a user's prep score from every stored session."""
    sessions = StudySession.objects.filter(user_id=user_id)
    return overall_prep_score(group_by_subject(sessions), now=now, tables=tables)


def refresh_prediction_score(user_id: str, *, now: Optional[dt.datetime] = None) -> float:
    """
    Recompute the prep score, store it on the profile and append a history row.

    The stored value is only a projection; reads that need an exact score
    recompute it from the sessions.
    """
    score = compute_prep_score(user_id, now=now)
    with transaction.atomic():
        profile, created = Profile.objects.get_or_create(user_id=user_id)
        profile.prediction_score = score
        profile.save(update_fields=["prediction_score", "updated_at"])
        ScoreHistory.objects.create(user_id=user_id, score=score)
    logger.info("prediction score refreshed user_id=%s score=%.2f new_profile=%s", user_id, score, created)
    return score


def delete_session(session: StudySession) -> float:
    user_id = session.user_id
    with transaction.atomic():
        session.delete()
        score = refresh_prediction_score(user_id)
    return score


# --- dashboard ---------------------------------------------------------------

def subject_breakdown(
    sessions,
    *,
    now: Optional[dt.datetime] = None,
    tables: ScoringTables = DEFAULT_TABLES,
) -> List[Dict]:
    """Per-subject cards for subjects that have at least one session, best first."""
    now = now or timezone.now()
    out = []
    for subject, bucket in group_by_subject(sessions).items():
        blended = subject_blended_score(bucket.practice, bucket.mock, now=now, tables=tables)
        score = percent(blended)
        out.append({
            "subject": str(subject),
            "score": score,
            "count": len(bucket),
            "practice_count": len(bucket.practice),
            "mock_count": len(bucket.mock),
            "weight": tables.subject_weights.get(subject, 1),
            "band": score_band(score),
        })
    out.sort(key=lambda c: (-c["score"], c["subject"]))
    return out


def daily_trend(
    sessions,
    *,
    now: Optional[dt.datetime] = None,
    days: int = 7,
    tz: str = "UTC",
    tables: ScoringTables = DEFAULT_TABLES,
) -> List[Dict]:
    """
    Mean session score (0..100) per local calendar day for the last `days`
    days including today. Days without sessions are 0; sessions outside the
    window are ignored.
    """
    now = now or timezone.now()
    tzinfo = resolve_tz(tz)
    day_list = _iter_local_days(now, days, tzinfo)
    idx = {d: i for i, d in enumerate(day_list)}
    sums = [0.0 for _ in day_list]
    counts = [0 for _ in day_list]

    for s in sessions:
        key = _local_date(s.created_at, tzinfo)
        if key not in idx:
            continue
        i = idx[key]
        sums[i] += session_score(s, now=now, tables=tables) * 100
        counts[i] += 1

    out = []
    for i, d in enumerate(day_list):
        out.append({
            "date": d.isoformat(),
            "score": round(sums[i] / counts[i], 2) if counts[i] else 0.0,
            "sessions": counts[i],
        })
    return out


def coaching_message(subjects: List[Dict], trend: List[Dict]) -> str:
    """Short nudge based on the subject cards (best first) and the daily trend."""
    if not subjects:
        return "Start tracking your progress by adding sessions!"

    best = subjects[0]
    worst = subjects[-1]

    if len(trend) >= 3 and trend[-1]["score"] > trend[-3]["score"]:
        return (
            "Great progress! Your scores are improving. "
            f"Keep focusing on {worst['subject']} to get even better."
        )
    if best["score"] > 70:
        return f"You're doing great in {best['subject']}, but need to focus more on {worst['subject']}."
    return f"Keep practicing! Focus on {worst['subject']} to improve your overall score."


def build_dashboard(
    user_id: str,
    *,
    now: Optional[dt.datetime] = None,
    days: Optional[int] = None,
    tz: Optional[str] = None,
    tables: ScoringTables = DEFAULT_TABLES,
) -> Dict:
    now = now or timezone.now()
    days = days or get_setting("TREND_DAYS")
    tz = tz or get_setting("DEFAULT_TZ")

    sessions = user_sessions(user_id)
    subjects = subject_breakdown(sessions, now=now, tables=tables)
    trend = daily_trend(sessions, now=now, days=days, tz=tz, tables=tables)

    return {
        "user_id": user_id,
        "prep_score": overall_prep_score(group_by_subject(sessions), now=now, tables=tables),
        "session_count": len(sessions),
        "tz": tz,
        "subjects": subjects,
        "trend": trend,
        "message": coaching_message(subjects, trend),
        "recent_sessions": sessions[: get_setting("RECENT_SESSIONS")],
    }


# --- leaderboard -------------------------------------------------------------

def build_leaderboard(
    *,
    now: Optional[dt.datetime] = None,
    tables: ScoringTables = DEFAULT_TABLES,
) -> List[LeaderboardEntry]:
    """
    Live leaderboard over every user with a profile or at least one session.

    Scores are recomputed from sessions with the same algorithm as the
    dashboard; the stored prediction_score is not consulted. Users are fed to
    the ranker ordered by user_id so ties resolve the same way every time.
    """
    now = now or timezone.now()
    by_user: Dict[str, List[StudySession]] = {}
    for s in StudySession.objects.all().order_by("user_id", "id"):
        by_user.setdefault(s.user_id, []).append(s)

    names = {p.user_id: p.display_name for p in Profile.objects.all()}
    user_ids = sorted(set(by_user) | set(names))

    entries = []
    for uid in user_ids:
        score = overall_prep_score(group_by_subject(by_user.get(uid, [])), now=now, tables=tables)
        entries.append(LeaderboardEntry(uid, names.get(uid, uid), score))
    return rank_entries(entries)


def leaderboard_payload(current_user_id: Optional[str] = None, *, now: Optional[dt.datetime] = None) -> Dict:
    ranked = build_leaderboard(now=now)
    return {
        "current_user_rank": rank_of(ranked, current_user_id),
        "entries": [
            {
                "rank": e.rank,
                "user_id": e.user_id,
                "display_name": e.display_name,
                "score": e.score,
                "is_current_user": e.user_id == current_user_id,
            }
            for e in ranked
        ],
    }


def valid_subject(value: str) -> bool:
    return value in Subject.values


def valid_session_type(value: str) -> bool:
    return value in SessionType.values
