from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from .choices import Confidence, Difficulty, SessionType, Subject


class StudySession(models.Model):
    user_id = models.CharField(max_length=64, db_index=True)                       # Owner (opaque external identity)
    idempotency_key = models.CharField(max_length=64, null=True, blank=True)       # Optional, unique per user when given
    subject = models.CharField(max_length=32, choices=Subject.choices)
    correct_questions = models.PositiveIntegerField()
    total_questions = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    difficulty = models.CharField(max_length=8, choices=Difficulty.choices)
    confidence = models.CharField(max_length=8, choices=Confidence.choices)
    guess_percent = models.PositiveSmallIntegerField(validators=[MaxValueValidator(100)])  # 0..100, step 5
    time_taken = models.PositiveIntegerField(validators=[MinValueValidator(1)])    # Minutes
    type = models.CharField(max_length=8, choices=SessionType.choices)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)            # Also drives recentness decay

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["user_id", "idempotency_key"],
                                    name="uq_session_user_idempotency"),
        ]
        indexes = [
            models.Index(fields=["user_id", "created_at"], name="idx_session_user_created"),
            models.Index(fields=["user_id", "subject"], name="idx_session_user_subject"),
        ]

    def __str__(self):
        return f"{self.user_id} {self.subject} {self.type} {self.correct_questions}/{self.total_questions}"


class Profile(models.Model):
    user_id = models.CharField(max_length=64, unique=True)
    email = models.EmailField(blank=True, default="")
    nickname = models.CharField(max_length=64, blank=True, default="")
    prediction_score = models.FloatField(default=0.0)       # Cached projection, recomputed on every session write
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def display_name(self) -> str:
        if self.nickname:
            return self.nickname
        if self.email:
            return self.email.split("@")[0]
        return self.user_id


class ScoreHistory(models.Model):
    user_id = models.CharField(max_length=64, db_index=True)
    score = models.FloatField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=["user_id", "created_at"], name="idx_history_user_created"),
        ]
