from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from later_ladder.ingestion.types import FixtureRecord


class PersistenceSink(Protocol):
    """
    Durable owner of fixtures. Both the bulk synchronizer and the live stream
    write here, possibly at the same time.

    Implementations must make `upsert_all` idempotent on `FixtureRecord.id` and safe
    under concurrent writers, and raise `SinkConnectivityError` or
    `SinkConstraintError` (see `later_ladder.db.sink`) on failure.
    """

    def upsert_all(self, records: Sequence[FixtureRecord]) -> None:
        ...

    def remove(self, game_id: int) -> None:
        """Apply a provider removal as a tombstone for `game_id`."""
        ...
