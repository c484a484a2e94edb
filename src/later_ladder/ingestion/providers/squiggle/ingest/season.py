from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date

from later_ladder.core.config import settings
from later_ladder.db.sink import SinkError
from later_ladder.ingestion.providers.base.errors import FetchError
from later_ladder.ingestion.providers.squiggle.client import SquiggleClient
from later_ladder.ingestion.providers.squiggle.parser import ParsedGames, parse_games
from later_ladder.ingestion.sink import PersistenceSink
from later_ladder.ingestion.types import FixtureRecord

logger = logging.getLogger(__name__)


class SyncStopped(RuntimeError):
    """Raised inside a sync once `request_stop` has been called."""


@dataclass(frozen=True)
class SyncCallResult:
    year: int
    round: int | None
    games_seen: int
    payload_unparsed: bool = False


@dataclass
class BulkSyncResult:
    """Outcome of one `sync_up_to_latest_completed_round` call.

    Per-round failures are logged and skipped, so a caller only learns about
    partial progress from `rounds_failed`.
    """

    requested_year: int
    synced_year: int | None = None
    fallback_years: list[int] = field(default_factory=list)
    highest_completed_round: int | None = None
    season_fetch_failed: bool = False
    rounds_succeeded: list[int] = field(default_factory=list)
    rounds_failed: list[int] = field(default_factory=list)
    records_upserted: int = 0
    stopped: bool = False

    @property
    def complete(self) -> bool:
        return not (self.season_fetch_failed or self.rounds_failed or self.stopped)


def highest_completed_round(records: Iterable[FixtureRecord]) -> int | None:
    rounds = [r.round for r in records if r.is_complete]
    return max(rounds) if rounds else None


@dataclass
class BulkSynchronizer:
    client: SquiggleClient
    sink: PersistenceSink
    min_season_year: int = settings.min_season_year
    max_fallback_depth: int = settings.max_fallback_depth

    _today: Callable[[], date] = field(default=date.today, repr=False)
    stop_event: threading.Event = field(default_factory=threading.Event, repr=False)

    def request_stop(self) -> None:
        """Ask a running sync (possibly on another thread) to stop before its next write."""
        self.stop_event.set()

    # -----------------------------
    # Single fetches
    # -----------------------------

    def sync_year(self, year: int) -> SyncCallResult:
        """Fetch a whole season and upsert it. FetchError / SinkError / SyncStopped propagate."""

        raw = self.client.fetch_by_year(year)
        records = self._parse(raw, year=year, round_=None)
        self._upsert(records)
        return SyncCallResult(
            year=year,
            round=None,
            games_seen=len(records),
            payload_unparsed=records.error is not None,
        )

    def sync_round(self, year: int, round_: int) -> SyncCallResult:
        """Fetch one round and upsert it. FetchError / SinkError / SyncStopped propagate."""

        self._check_stop()
        raw = self.client.fetch_by_year_and_round(year, round_)
        records = self._parse(raw, year=year, round_=round_)
        self._upsert(records)
        return SyncCallResult(
            year=year,
            round=round_,
            games_seen=len(records),
            payload_unparsed=records.error is not None,
        )

    # -----------------------------
    # Fetch everything completed so far
    # -----------------------------

    def sync_up_to_latest_completed_round(self, year: int) -> BulkSyncResult:
        """
        Upsert every round from 0 through the highest completed round of `year`.

        With no completed round in a past season, fall back to the previous season,
        bounded by `min_season_year` and `max_fallback_depth`. The current or a future
        season with nothing completed is a legitimate empty result.
        """

        result = BulkSyncResult(requested_year=year)
        current_year = self._today().year

        depth = 0
        while True:
            if self.stop_event.is_set():
                result.stopped = True
                return result
            try:
                raw = self.client.fetch_by_year(year)
            except FetchError as e:
                logger.error("Failed to fetch games for year %d: %s", year, e)
                result.season_fetch_failed = True
                return result

            records = self._parse(raw, year=year, round_=None)
            if records.error is not None:
                # Unparseable is not the same as "nothing completed"; never fall back on it.
                result.season_fetch_failed = True
                return result

            highest = highest_completed_round(records)
            if highest is not None:
                break

            if year >= current_year:
                logger.info("No completed rounds yet for %d; nothing to sync", year)
                return result

            if year - 1 < self.min_season_year or depth >= self.max_fallback_depth:
                logger.warning(
                    "No completed rounds for %d and fallback limit reached "
                    "(min_season_year=%d, depth=%d); giving up",
                    year,
                    self.min_season_year,
                    depth,
                )
                return result

            logger.info("No completed rounds for %d; falling back to %d", year, year - 1)
            depth += 1
            year -= 1
            result.fallback_years.append(year)

        result.synced_year = year
        result.highest_completed_round = highest

        for round_ in range(0, highest + 1):
            try:
                call = self.sync_round(year, round_)
            except SyncStopped:
                logger.info("Sync of %d stopped before round %d", year, round_)
                result.stopped = True
                break
            except (FetchError, SinkError) as e:
                logger.error("Failed to sync games for year %d round %d: %s", year, round_, e)
                result.rounds_failed.append(round_)
                continue
            if call.payload_unparsed:
                result.rounds_failed.append(round_)
                continue
            result.rounds_succeeded.append(round_)
            result.records_upserted += call.games_seen

        logger.info(
            "Synced %d up to round %d: rounds_ok=%d rounds_failed=%d records=%d",
            year,
            highest,
            len(result.rounds_succeeded),
            len(result.rounds_failed),
            result.records_upserted,
        )
        return result

    def _parse(self, raw: str, *, year: int, round_: int | None) -> ParsedGames:
        records = parse_games(raw)
        if records.error is not None:
            logger.warning(
                "Unusable games payload for year=%d round=%s; skipping (%d bytes)",
                year,
                round_,
                len(raw),
            )
        return records

    def _check_stop(self) -> None:
        if self.stop_event.is_set():
            raise SyncStopped("sync stopped")

    def _upsert(self, records: list[FixtureRecord]) -> None:
        self._check_stop()
        if records:
            self.sink.upsert_all(records)

