# prep/serializers.py
import datetime as dt

from django.utils import timezone
from rest_framework import serializers

from .models import Profile, ScoreHistory, StudySession
from .scoring import accuracy, session_score

GUESS_STEP = 5


class AwareDateTimeField(serializers.DateTimeField):
    """
    Datetime field that always outputs tz-aware UTC ISO strings.
    Naive values (e.g. from a USE_TZ=False database) are assumed to be UTC.
    """
    def to_representation(self, value):
        if value is None:
            return None
        if timezone.is_naive(value):
            value = timezone.make_aware(value, dt.timezone.utc)
        return super().to_representation(value.astimezone(dt.timezone.utc))


class StudySessionCreateSerializer(serializers.ModelSerializer):
    """
    Input validation for a new session. Everything the scoring functions
    assume (total_questions >= 1, correct <= total, guess_percent on the
    5-step grid) is enforced here; scoring itself never re-checks.
    Notes:
      - user_id comes from the body; identity is external.
      - idempotency_key may also arrive as a header (handled in the view).
      - created_at is server-assigned and cannot be supplied.
    """
    idempotency_key = serializers.CharField(
        required=False, allow_blank=False, max_length=64
    )
    total_questions = serializers.IntegerField(min_value=1)
    correct_questions = serializers.IntegerField(min_value=0)
    guess_percent = serializers.IntegerField(min_value=0, max_value=100)
    time_taken = serializers.IntegerField(min_value=1)

    class Meta:
        model = StudySession
        fields = (
            "user_id",
            "idempotency_key",
            "subject",
            "correct_questions",
            "total_questions",
            "difficulty",
            "confidence",
            "guess_percent",
            "time_taken",
            "type",
        )
        # the (user_id, idempotency_key) constraint is resolved by the view
        validators = []

    def validate_guess_percent(self, v: int):
        if v % GUESS_STEP:
            raise serializers.ValidationError(f"guess_percent must be a multiple of {GUESS_STEP}.")
        return v

    def validate(self, attrs):
        if attrs["correct_questions"] > attrs["total_questions"]:
            raise serializers.ValidationError(
                {"correct_questions": "Correct questions cannot exceed total questions."}
            )
        return attrs


class StudySessionSerializer(serializers.ModelSerializer):
    """
    Read-only session snapshot with derived `accuracy` and `score` (both 0..100).
    Pass `now` in the serializer context to pin the decay clock.
    """
    created_at = AwareDateTimeField(read_only=True)
    accuracy = serializers.SerializerMethodField()
    score = serializers.SerializerMethodField()

    class Meta:
        model = StudySession
        fields = (
            "id",
            "user_id",
            "idempotency_key",
            "subject",
            "correct_questions",
            "total_questions",
            "difficulty",
            "confidence",
            "guess_percent",
            "time_taken",
            "type",
            "created_at",
            "accuracy",
            "score",
        )
        read_only_fields = fields

    def get_accuracy(self, obj) -> float:
        return round(accuracy(obj) * 100, 2)

    def get_score(self, obj) -> float:
        return round(session_score(obj, now=self.context.get("now")) * 100, 2)


class ProfileSerializer(serializers.ModelSerializer):
    created_at = AwareDateTimeField(read_only=True)
    updated_at = AwareDateTimeField(read_only=True)
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = Profile
        fields = (
            "user_id",
            "email",
            "nickname",
            "display_name",
            "prediction_score",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("user_id", "prediction_score", "created_at", "updated_at")


class ScoreHistorySerializer(serializers.ModelSerializer):
    created_at = AwareDateTimeField(read_only=True)

    class Meta:
        model = ScoreHistory
        fields = ("score", "created_at")
