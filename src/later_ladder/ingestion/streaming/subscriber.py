from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from enum import StrEnum
from typing import Any

import httpx

from later_ladder.db.sink import SinkError
from later_ladder.ingestion.providers.base.errors import FetchError, ParseError, StreamDecodeError
from later_ladder.ingestion.providers.squiggle.parser import parse_game_item
from later_ladder.ingestion.sink import PersistenceSink
from later_ladder.ingestion.streaming.backoff import BackoffPolicy
from later_ladder.ingestion.streaming.sse import (
    DEFAULT_MAX_FRAME_CHARS,
    SseFrame,
    SseFrameDecoder,
    parse_frame,
)

logger = logging.getLogger(__name__)

Connect = Callable[[], AbstractAsyncContextManager[AsyncIterator[str]]]
Sleep = Callable[[float], Awaitable[Any]]

REMOVE_GAME = "removeGame"
ADD_GAME = "addGame"
UPDATE_GAME = "updateGame"


class SubscriptionState(StrEnum):
    STOPPED = "stopped"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    RECONNECTING = "reconnecting"


def is_retryable(exc: BaseException) -> bool:
    """Only transient transport failures are worth a reconnect."""

    if isinstance(exc, FetchError):
        return exc.retryable
    return isinstance(exc, (httpx.RequestError, OSError))


class StreamSubscriber:
    """
    Owns the single subscription to the provider's game event stream.

    State only changes through `start` / `stop` (serialized by a lock) and inside the
    one background task they manage, so there is never more than one live
    connection. Frames are applied to the sink strictly in arrival order; each
    blocking sink call runs in a worker thread and is awaited before the next frame.
    """

    def __init__(
        self,
        connect: Connect,
        sink: PersistenceSink,
        *,
        policy: BackoffPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
        monotonic: Callable[[], float] = time.monotonic,
        max_frame_chars: int = DEFAULT_MAX_FRAME_CHARS,
    ) -> None:
        self._connect = connect
        self._sink = sink
        self.policy = policy or BackoffPolicy()
        self._sleep = sleep
        self._monotonic = monotonic
        self.max_frame_chars = max_frame_chars

        self._lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None
        self._write: asyncio.Future[None] | None = None
        self._state = SubscriptionState.STOPPED

        self.attempt = 0
        self.delays: list[float] = []
        self.frames_received = 0
        self.events_applied = 0
        self.last_error: BaseException | None = None
        self.gave_up = False

        self._handlers: dict[str, Callable[[SseFrame], Awaitable[None]]] = {
            REMOVE_GAME: self._on_remove_game,
            ADD_GAME: self._on_upsert_game,
            UPDATE_GAME: self._on_upsert_game,
        }

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # -----------------------------
    # Lifecycle
    # -----------------------------

    async def start(self) -> None:
        """(Re)start the subscription, tearing down any predecessor first."""

        async with self._lock:
            await self._teardown()
            self.attempt = 0
            self.gave_up = False
            self.last_error = None
            self._set_state(SubscriptionState.CONNECTING)
            self._task = asyncio.create_task(self._run(), name="game-event-stream")

    async def stop(self) -> None:
        """Cancel any connection or pending reconnect. No sink writes happen after this returns."""

        async with self._lock:
            await self._teardown()
            self._set_state(SubscriptionState.STOPPED)

    async def wait(self) -> None:
        """Block until the subscription stops on its own (gave up / fatal error)."""

        task = self._task
        if task is not None:
            await asyncio.wait({task})

    async def _teardown(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        await self._drain_write()

    async def _drain_write(self) -> None:
        # A cancelled task leaves its sink call running in the worker thread.
        write, self._write = self._write, None
        if write is None:
            return
        try:
            await write
        except SinkError as e:
            logger.error("Failed to apply stream event to store during stop: %s", e)

    def _set_state(self, state: SubscriptionState) -> None:
        if state is not self._state:
            logger.debug("Game event stream: %s -> %s", self._state, state)
        self._state = state

    # -----------------------------
    # Connection loop
    # -----------------------------

    async def _run(self) -> None:
        while True:
            self._set_state(SubscriptionState.CONNECTING)
            streamed_since: float | None = None
            frames_before = self.frames_received

            error: BaseException
            try:
                async with self._connect() as chunks:
                    self._set_state(SubscriptionState.STREAMING)
                    streamed_since = self._monotonic()
                    logger.info("Connected to game event stream")

                    decoder = SseFrameDecoder(self.max_frame_chars)
                    async for chunk in chunks:
                        try:
                            for raw in decoder.feed(chunk):
                                await self._handle_frame(raw)
                        except StreamDecodeError as e:
                            logger.error(
                                "Dropping oversized stream frame: %s | prefix=%r", e, e.frame
                            )
                        if self.attempt and self._stable(streamed_since, frames_before):
                            logger.debug("Game event stream stable; retry counter reset")
                            self.attempt = 0
                error = FetchError("game event stream closed by server")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error = e

            self.last_error = error
            if streamed_since is not None and self._stable(streamed_since, frames_before):
                self.attempt = 0

            if not is_retryable(error):
                logger.error(
                    "Error on game event stream; subscription stopped", exc_info=error
                )
                self._set_state(SubscriptionState.STOPPED)
                return

            self.attempt += 1
            if self.policy.exhausted(self.attempt):
                logger.error(
                    "Game event stream: giving up after %d reconnect attempts; last error: %s",
                    self.policy.max_retries,
                    error,
                )
                self.gave_up = True
                self._set_state(SubscriptionState.STOPPED)
                return

            delay = self.policy.delay_for(self.attempt)
            self.delays.append(delay)
            self._set_state(SubscriptionState.RECONNECTING)
            logger.warning(
                "Game event stream lost (%s); reconnect attempt #%d in %.1fs",
                error,
                self.attempt,
                delay,
            )
            await self._sleep(delay)

    def _stable(self, streamed_since: float, frames_before: int) -> bool:
        if self.frames_received > frames_before:
            return True
        return self._monotonic() - streamed_since >= self.policy.stable_period_s

    # -----------------------------
    # Dispatch
    # -----------------------------

    async def _handle_frame(self, raw: str) -> None:
        self.frames_received += 1
        try:
            frame = parse_frame(raw)
            handler = self._handlers.get(frame.event)
            if handler is None:
                logger.debug("Ignoring event type %r", frame.event)
                return
            await handler(frame)
            self.events_applied += 1
        except StreamDecodeError as e:
            logger.error("Error processing stream event: %s | frame=%r", e.args[0], e.frame)
        except SinkError as e:
            logger.error("Failed to apply stream event to store: %s | frame=%r", e, raw)

    async def _on_remove_game(self, frame: SseFrame) -> None:
        data = _decode_data(frame)
        try:
            game_id = parse_game_item(data).id
        except ParseError:
            # Removals only need the id; tolerate trimmed payloads.
            game_id = _game_id(data, frame)
        await self._apply(self._sink.remove, game_id)
        logger.info("Game id=%d removed by provider", game_id)

    async def _on_upsert_game(self, frame: SseFrame) -> None:
        data = _decode_data(frame)
        try:
            record = parse_game_item(data)
        except ParseError as e:
            raise StreamDecodeError(str(e), frame=frame.raw) from e
        await self._apply(self._sink.upsert_all, [record])

    async def _apply(self, write: Callable[..., None], *args: Any) -> None:
        fut = asyncio.ensure_future(asyncio.to_thread(write, *args))
        self._write = fut
        try:
            await asyncio.shield(fut)
        except asyncio.CancelledError:
            # The thread keeps running; `_drain_write` awaits it on teardown.
            raise
        except Exception:
            self._write = None
            raise
        self._write = None


def _decode_data(frame: SseFrame) -> Any:
    try:
        return json.loads(frame.data)
    except ValueError as e:
        raise StreamDecodeError(f"event data is not valid JSON: {e}", frame=frame.raw) from e


def _game_id(data: Any, frame: SseFrame) -> int:
    game_id = data.get("id") if isinstance(data, dict) else None
    if isinstance(game_id, bool) or not isinstance(game_id, int):
        raise StreamDecodeError(f"event data has no integer id: {game_id!r}", frame=frame.raw)
    return game_id
