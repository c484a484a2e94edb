from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

COMPLETE = 100


@dataclass(frozen=True)
class FixtureRecord:
    """
    Canonical representation of one fixture.

    `id` is the provider's game id and the upsert key: re-ingesting the same id
    overwrites the stored row. Scores and winner are only authoritative once
    `completion` reaches 100; use `final_winner` / `final_scores` downstream.
    Teams are None for finals the provider has not yet resolved.
    """

    id: int
    round: int
    year: int
    home_team: str | None
    away_team: str | None
    home_score: int | None = None
    away_score: int | None = None
    winner: str | None = None
    completion: int = 0

    def __post_init__(self) -> None:
        for name in ("home_score", "away_score"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} cannot be negative (got {value}) for game id={self.id}")
        if not 0 <= self.completion <= COMPLETE:
            raise ValueError(
                f"completion must be within 0..100 (got {self.completion}) for game id={self.id}"
            )

    @property
    def is_complete(self) -> bool:
        return self.completion == COMPLETE

    @property
    def final_winner(self) -> str | None:
        return self.winner if self.is_complete else None

    @property
    def final_scores(self) -> tuple[int | None, int | None] | None:
        if not self.is_complete:
            return None
        return self.home_score, self.away_score

    def as_row(self) -> dict[str, Any]:
        return asdict(self)
