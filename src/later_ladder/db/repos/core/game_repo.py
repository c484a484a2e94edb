from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from later_ladder.db.models.core.game import Game
from later_ladder.db.repos.base import BaseRepository

# Columns overwritten on re-ingest. `id` is the conflict target.
UPSERT_COLUMNS = (
    "round",
    "year",
    "home_team",
    "away_team",
    "home_score",
    "away_score",
    "winner",
    "completion",
    "source_last_seen_at",
)


class GameRepository(BaseRepository[Game]):
    def __init__(self, session: Session) -> None:
        super().__init__(session=session, model=Game)

    def upsert_many(self, rows: Sequence[Mapping[str, Any]]) -> int:
        """
        Insert-or-update games keyed by `id`, last write wins.

        Uses a single INSERT .. ON CONFLICT DO UPDATE on sqlite/postgresql so
        concurrent writers cannot race between lookup and insert. Other dialects
        fall back to `Session.merge`. Any tombstone on an upserted id is cleared.
        """

        if not rows:
            return 0

        # ON CONFLICT cannot touch the same row twice in one statement.
        by_id: dict[int, dict[str, Any]] = {}
        for row in rows:
            by_id[int(row["id"])] = dict(row)
        values = list(by_id.values())

        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            for v in values:
                self.session.merge(Game(**v, removed_at=None))
            self.session.flush()
            return len(values)

        stmt = insert(Game).values(values)
        set_: dict[str, Any] = {c: stmt.excluded[c] for c in UPSERT_COLUMNS}
        set_["removed_at"] = None
        set_["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(index_elements=[Game.id], set_=set_)
        self.session.execute(stmt)
        return len(values)

    def mark_removed(self, game_id: int, *, at: datetime | None = None) -> bool:
        """Tombstone a game. Returns False when the id is unknown locally."""

        result = self.session.execute(
            update(Game)
            .where(Game.id == game_id)
            .values(removed_at=at or datetime.now(tz=UTC), updated_at=func.now())
        )
        return bool(result.rowcount)

    def list_for_round(self, year: int, round_: int, *, include_removed: bool = False) -> list[Game]:
        predicates = [Game.year == year, Game.round == round_]
        if not include_removed:
            predicates.append(Game.removed_at.is_(None))
        return self.list_where(*predicates)
