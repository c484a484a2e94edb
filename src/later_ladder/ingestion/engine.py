from __future__ import annotations

import asyncio
import logging
from datetime import date

from later_ladder.core.config import Settings, settings
from later_ladder.ingestion.providers.squiggle.client import (
    make_squiggle_client,
    make_squiggle_stream_client,
)
from later_ladder.ingestion.providers.squiggle.ingest.season import (
    BulkSynchronizer,
    BulkSyncResult,
)
from later_ladder.ingestion.sink import PersistenceSink
from later_ladder.ingestion.streaming.backoff import BackoffPolicy
from later_ladder.ingestion.streaming.subscriber import StreamSubscriber

logger = logging.getLogger(__name__)


class IngestionEngine:
    """
    Lifecycle seam with the host process.

    `initialize()` once at process start begins the live stream; `shutdown()` once at
    process stop ends it and waits out any running refresh, so nothing is written to
    the sink after it returns. Both are idempotent. `refresh()` runs a bulk sync next to the
    stream; both write the same sink.
    """

    def __init__(
        self,
        subscriber: StreamSubscriber,
        synchronizer: BulkSynchronizer | None = None,
    ) -> None:
        self.subscriber = subscriber
        self.synchronizer = synchronizer
        self._initialized = False
        self._closed = False
        self._refreshes: set[asyncio.Future[BulkSyncResult]] = set()

    async def initialize(self) -> None:
        if self._closed:
            raise RuntimeError("IngestionEngine has been shut down")
        if self._initialized:
            return
        self._initialized = True
        await self.subscriber.start()
        logger.info("Ingestion engine initialized")

    async def shutdown(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._initialized = False
        await self.subscriber.stop()
        if self.synchronizer is not None:
            self.synchronizer.request_stop()
            # The worker thread cannot be cancelled; wait for it to reach a stop check.
            if self._refreshes:
                await asyncio.wait(set(self._refreshes))
            self.synchronizer.client.close()
        logger.info("Ingestion engine shut down")

    async def refresh(self, year: int | None = None) -> BulkSyncResult:
        if self.synchronizer is None:
            raise RuntimeError("IngestionEngine was built without a bulk synchronizer")
        if self._closed:
            raise RuntimeError("IngestionEngine has been shut down")
        target = year if year is not None else date.today().year
        # Blocking httpx/SQLAlchemy work stays off the event loop the stream runs on.
        fut = asyncio.ensure_future(
            asyncio.to_thread(self.synchronizer.sync_up_to_latest_completed_round, target)
        )
        self._refreshes.add(fut)
        fut.add_done_callback(self._refreshes.discard)
        return await asyncio.shield(fut)


def build_engine(sink: PersistenceSink, *, cfg: Settings = settings) -> IngestionEngine:
    stream_client = make_squiggle_stream_client(
        base_url=cfg.squiggle_base_url, user_agent=cfg.user_agent
    )
    subscriber = StreamSubscriber(
        stream_client.open,
        sink,
        policy=BackoffPolicy.from_settings(cfg),
        max_frame_chars=cfg.stream_max_frame_chars,
    )
    synchronizer = BulkSynchronizer(
        client=make_squiggle_client(
            base_url=cfg.squiggle_base_url,
            timeout_s=cfg.http_timeout_s,
            user_agent=cfg.user_agent,
        ),
        sink=sink,
        min_season_year=cfg.min_season_year,
        max_fallback_depth=cfg.max_fallback_depth,
    )
    return IngestionEngine(subscriber, synchronizer)
