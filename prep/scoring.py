# prep/scoring.py
"""
Pure scoring functions that turn logged sessions into a preparation score.

Nothing here touches the database or raises on odd input: unknown enum values
fall back to the neutral multiplier, empty buckets score 0, and callers are
expected to reject malformed sessions (e.g. total_questions == 0) before they
get here.
"""
from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from django.utils import timezone

from .choices import Confidence, Difficulty, SessionType, Subject

NEUTRAL_MULTIPLIER = 1.0
DECAY_DAYS = 30.0           # e-folding time, not a half-life
GUESS_PENALTY = 0.3         # 100% guessed -> score x 0.7
PRACTICE_SHARE = 0.4
MOCK_SHARE = 0.6

SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class ScoringTables:
    """Immutable lookup tables injected into every aggregation function."""
    difficulty: Mapping[str, float]
    confidence: Mapping[str, float]
    subject_weights: Mapping[str, int]

    @property
    def total_weight(self) -> int:
        return sum(self.subject_weights.values())


DEFAULT_TABLES = ScoringTables(
    difficulty=MappingProxyType({
        Difficulty.EASY: 1.0,
        Difficulty.MEDIUM: 1.2,
        Difficulty.HARD: 1.4,
    }),
    confidence=MappingProxyType({
        Confidence.LOW: 0.8,
        Confidence.MEDIUM: 1.0,
        Confidence.HIGH: 1.2,
    }),
    subject_weights=MappingProxyType({
        Subject.MEDICINE: 15,
        Subject.SURGERY: 12,
        Subject.OB_GYN: 10,
        Subject.PEDIATRICS: 6,
        Subject.PATHOLOGY: 6,
        Subject.PHARMACOLOGY: 6,
        Subject.BIOCHEMISTRY: 5,
        Subject.ANATOMY: 4,
        Subject.PHYSIOLOGY: 4,
        Subject.MICROBIOLOGY: 5,
        Subject.RADIOLOGY: 5,
        Subject.DERMATOLOGY: 3,
        Subject.PSYCHIATRY: 3,
        Subject.ENT: 2,
        Subject.OPHTHALMOLOGY: 2,
        Subject.ANESTHESIA: 2,
        Subject.FORENSIC_MEDICINE: 2,
    }),
)


@dataclass(frozen=True)
class SessionRecord:
    """Plain in-memory session; StudySession model instances are scored the same way."""
    subject: str
    correct_questions: int
    total_questions: int
    difficulty: str
    confidence: str
    guess_percent: int
    time_taken: int
    type: str
    created_at: dt.datetime


@dataclass
class SubjectBucket:
    practice: List = field(default_factory=list)
    mock: List = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.practice) + len(self.mock)


def _as_aware(d: dt.datetime) -> dt.datetime:
    if timezone.is_naive(d):
        return timezone.make_aware(d, dt.timezone.utc)
    return d


def recentness_factor(created_at: dt.datetime, now: Optional[dt.datetime] = None) -> float:
    """
    exp(-age_days / 30).

    Not clamped: a created_at in the future gives a factor above 1. Stored
    sessions carry a server-assigned created_at, so that only happens when a
    caller passes an explicit `now` earlier than the record.
    """
    now = _as_aware(now or timezone.now())
    age_days = (now - _as_aware(created_at)).total_seconds() / SECONDS_PER_DAY
    return math.exp(-age_days / DECAY_DAYS)


def difficulty_multiplier(value, tables: ScoringTables = DEFAULT_TABLES) -> float:
    if value in tables.difficulty:
        return tables.difficulty[value]
    # unknown level: no effect
    return NEUTRAL_MULTIPLIER


def confidence_multiplier(value, tables: ScoringTables = DEFAULT_TABLES) -> float:
    if value in tables.confidence:
        return tables.confidence[value]
    # unknown level: no effect
    return NEUTRAL_MULTIPLIER


def guess_factor(guess_percent: int) -> float:
    return 1.0 - (guess_percent / 100.0) * GUESS_PENALTY


def accuracy(session) -> float:
    return session.correct_questions / session.total_questions


def session_score(
    session,
    *,
    now: Optional[dt.datetime] = None,
    tables: ScoringTables = DEFAULT_TABLES,
) -> float:
    """
    Fractional score for one session, roughly [0, 1.68].

    accuracy * difficulty * confidence * guess factor * recentness.
    """
    return (
        accuracy(session)
        * difficulty_multiplier(session.difficulty, tables)
        * confidence_multiplier(session.confidence, tables)
        * guess_factor(session.guess_percent)
        * recentness_factor(session.created_at, now)
    )


def average_session_score(
    sessions: Iterable,
    *,
    now: Optional[dt.datetime] = None,
    tables: ScoringTables = DEFAULT_TABLES,
) -> float:
    """Mean session score; an empty collection is exactly 0.0."""
    scores = [session_score(s, now=now, tables=tables) for s in sessions]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def subject_blended_score(
    practice: Iterable,
    mock: Iterable,
    *,
    now: Optional[dt.datetime] = None,
    tables: ScoringTables = DEFAULT_TABLES,
) -> float:
    """practice mean * 0.4 + mock mean * 0.6, still on the fractional scale."""
    now = now or timezone.now()
    practice_mean = average_session_score(practice, now=now, tables=tables)
    mock_mean = average_session_score(mock, now=now, tables=tables)
    return practice_mean * PRACTICE_SHARE + mock_mean * MOCK_SHARE


def group_by_subject(sessions: Iterable) -> Dict[str, SubjectBucket]:
    """Split sessions into per-subject practice/mock buckets."""
    out: Dict[str, SubjectBucket] = {}
    for s in sessions:
        bucket = out.setdefault(s.subject, SubjectBucket())
        if s.type == SessionType.PRACTICE:
            bucket.practice.append(s)
        else:
            # everything that is not practice counts as a mock
            bucket.mock.append(s)
    return out


def overall_prep_score(
    by_subject: Mapping[str, SubjectBucket],
    *,
    now: Optional[dt.datetime] = None,
    tables: ScoringTables = DEFAULT_TABLES,
) -> float:
    """
    Weighted mean of subject blended scores over the whole weight table, x100.

    Subjects without sessions still count in the denominator; subjects absent
    from the table are ignored. Rounded to 2 decimals and not clamped, so a
    user maxing out every multiplier can exceed 100.
    """
    now = now or timezone.now()
    weighted_sum = 0.0
    weight_sum = 0
    for subject, weight in tables.subject_weights.items():
        bucket = by_subject.get(subject)
        blended = 0.0
        if bucket is not None:
            blended = subject_blended_score(bucket.practice, bucket.mock, now=now, tables=tables)
        weighted_sum += blended * weight
        weight_sum += weight
    return round(weighted_sum / weight_sum * 100, 2)


def prep_score_for_sessions(
    sessions: Iterable,
    *,
    now: Optional[dt.datetime] = None,
    tables: ScoringTables = DEFAULT_TABLES,
) -> float:
    return overall_prep_score(group_by_subject(sessions), now=now, tables=tables)
