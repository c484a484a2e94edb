from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from later_ladder.db.base import Base, TimestampMixin


class Game(Base, TimestampMixin):
    __tablename__ = "games"

    # Provider (Squiggle) game id; also the upsert key.
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)

    round: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    # Null until the provider resolves a finals fixture.
    home_team: Mapped[str | None] = mapped_column(String(50), nullable=True)
    away_team: Mapped[str | None] = mapped_column(String(50), nullable=True)

    home_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    away_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    winner: Mapped[str | None] = mapped_column(String(50), nullable=True)

    completion: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Tombstone set by a provider "removeGame" event; cleared by the next upsert.
    removed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    source_last_seen_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @property
    def is_complete(self) -> bool:
        return self.completion == 100

    __table_args__ = (
        CheckConstraint("home_score IS NULL OR home_score >= 0", name="home_score_non_negative"),
        CheckConstraint("away_score IS NULL OR away_score >= 0", name="away_score_non_negative"),
        CheckConstraint("completion >= 0 AND completion <= 100", name="completion_range"),
        Index("ix_games_year_round", "year", "round"),
    )
