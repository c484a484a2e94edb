from __future__ import annotations

import asyncio
import json
import threading
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date

import pytest

from later_ladder.ingestion.engine import IngestionEngine
from later_ladder.ingestion.providers.squiggle.ingest.season import BulkSynchronizer, BulkSyncResult
from later_ladder.ingestion.streaming.subscriber import StreamSubscriber, SubscriptionState


class CountingStream:
    def __init__(self) -> None:
        self.connects = 0
        self.active = 0

    def __call__(self):
        return self._open()

    @asynccontextmanager
    async def _open(self) -> AsyncIterator[AsyncIterator[str]]:
        self.connects += 1
        self.active += 1
        try:
            yield self._forever()
        finally:
            self.active -= 1

    async def _forever(self) -> AsyncIterator[str]:
        await asyncio.Event().wait()
        yield ""  # pragma: no cover


class NullSink:
    def upsert_all(self, records) -> None:
        pass

    def remove(self, game_id: int) -> None:
        pass


class FakeClient:
    def __init__(self) -> None:
        self.closed = False

    def close(self) -> None:
        self.closed = True


class FakeSynchronizer:
    def __init__(self) -> None:
        self.client = FakeClient()
        self.years: list[int] = []
        self.stop_requested = False

    def request_stop(self) -> None:
        self.stop_requested = True

    def sync_up_to_latest_completed_round(self, year: int) -> BulkSyncResult:
        self.years.append(year)
        return BulkSyncResult(requested_year=year, synced_year=year)


async def _until_streaming(sub: StreamSubscriber) -> None:
    for _ in range(100):
        if sub.state is SubscriptionState.STREAMING:
            return
        await asyncio.sleep(0)
    raise AssertionError("subscriber never reached STREAMING")


@pytest.mark.asyncio
async def test_initialize_and_shutdown_are_idempotent() -> None:
    stream = CountingStream()
    sync = FakeSynchronizer()
    engine = IngestionEngine(StreamSubscriber(stream, NullSink()), sync)  # type: ignore[arg-type]

    await engine.initialize()
    await engine.initialize()
    await _until_streaming(engine.subscriber)

    assert stream.connects == 1
    assert stream.active == 1

    await engine.shutdown()
    await engine.shutdown()

    assert stream.active == 0
    assert engine.subscriber.state is SubscriptionState.STOPPED
    assert sync.client.closed


@pytest.mark.asyncio
async def test_refresh_runs_bulk_sync_beside_stream() -> None:
    stream = CountingStream()
    sync = FakeSynchronizer()
    engine = IngestionEngine(StreamSubscriber(stream, NullSink()), sync)  # type: ignore[arg-type]

    await engine.initialize()
    result = await engine.refresh(2023)

    assert sync.years == [2023]
    assert result.synced_year == 2023
    assert engine.subscriber.running

    await engine.shutdown()


@pytest.mark.asyncio
async def test_refresh_requires_a_synchronizer() -> None:
    engine = IngestionEngine(StreamSubscriber(CountingStream(), NullSink()))

    with pytest.raises(RuntimeError):
        await engine.refresh(2024)


def _games(*rounds: int) -> str:
    return json.dumps(
        {
            "games": [
                {"id": r + 1, "round": r, "year": 2024, "hteam": "A", "ateam": "B", "complete": 100}
                for r in rounds
            ]
        }
    )


class GatedClient:
    """Round fetches block until `gate` is set; records calls made after close."""

    def __init__(self, gate: threading.Event) -> None:
        self.gate = gate
        self.fetching = threading.Event()
        self.closed = False
        self.calls_after_close = 0

    def fetch_by_year(self, year: int) -> str:
        return _games(0, 1, 2, 3)

    def fetch_by_year_and_round(self, year: int, round_: int) -> str:
        if self.closed:
            self.calls_after_close += 1
        self.fetching.set()
        self.gate.wait(timeout=5)
        return _games(round_)

    def close(self) -> None:
        self.closed = True


class RecordingSink(NullSink):
    def __init__(self) -> None:
        self.upserts: list[list[int]] = []

    def upsert_all(self, records) -> None:
        self.upserts.append([r.id for r in records])


@pytest.mark.asyncio
async def test_shutdown_waits_for_running_refresh_and_blocks_its_writes() -> None:
    sink = RecordingSink()
    sync = BulkSynchronizer(
        client=None,  # type: ignore[arg-type]
        sink=sink,
        _today=lambda: date(2024, 6, 1),
    )
    client = GatedClient(gate=sync.stop_event)
    sync.client = client  # type: ignore[assignment]
    engine = IngestionEngine(StreamSubscriber(CountingStream(), NullSink()), sync)

    await engine.initialize()
    refreshing = asyncio.create_task(engine.refresh(2024))
    assert await asyncio.to_thread(client.fetching.wait, 5)

    await engine.shutdown()
    writes_at_shutdown = list(sink.upserts)
    result = await refreshing

    assert result.stopped
    assert not result.complete
    assert sink.upserts == writes_at_shutdown == []
    assert client.closed
    assert client.calls_after_close == 0


@pytest.mark.asyncio
async def test_refresh_after_shutdown_is_rejected() -> None:
    sync = FakeSynchronizer()
    engine = IngestionEngine(
        StreamSubscriber(CountingStream(), NullSink()), sync  # type: ignore[arg-type]
    )

    await engine.initialize()
    await engine.shutdown()

    assert sync.stop_requested
    with pytest.raises(RuntimeError):
        await engine.refresh(2024)
