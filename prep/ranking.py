"""Leaderboard ordering. Deterministic, stable, zero scorers last."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional


@dataclass(frozen=True)
class LeaderboardEntry:
    user_id: str
    display_name: str
    score: float
    rank: int = 0


def rank_entries(entries: Iterable[LeaderboardEntry]) -> List[LeaderboardEntry]:
    """
    Assign ranks (1 = best) by score descending.

    - A score of 0 means "no data" and always sorts below every positive score,
      so zero scorers are never tied with anyone in a meaningful way.
    - Equal scores keep their input order (sorted() is stable); pass entries in
      a deterministic order to get a deterministic board.
    """
    ordered = sorted(entries, key=lambda e: (e.score <= 0, -e.score))
    return [
        LeaderboardEntry(e.user_id, e.display_name, e.score, rank=i + 1)
        for i, e in enumerate(ordered)
    ]


def rank_of(ranked: List[LeaderboardEntry], user_id: Optional[str]) -> Optional[int]:
    if not user_id:
        return None
    for e in ranked:
        if e.user_id == user_id:
            return e.rank
    return None
