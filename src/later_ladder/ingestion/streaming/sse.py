from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from later_ladder.ingestion.providers.base.errors import StreamDecodeError

DEFAULT_EVENT = "message"
DEFAULT_MAX_FRAME_CHARS = 1 << 20


@dataclass(frozen=True)
class SseFrame:
    event: str
    data: str
    raw: str


class SseFrameDecoder:
    """
    Incremental server-sent-events framer.

    Text is buffered until a blank line terminates a frame; chunks may split a
    frame (or a CRLF pair) anywhere. An unterminated frame longer than
    `max_frame_chars` is dropped up to its terminating blank line.
    """

    def __init__(self, max_frame_chars: int = DEFAULT_MAX_FRAME_CHARS) -> None:
        if max_frame_chars <= 0:
            raise ValueError("max_frame_chars must be > 0")
        self.max_frame_chars = max_frame_chars
        self._buffer = ""
        self._pending_cr = False
        self._discarding = False

    def feed(self, chunk: str) -> Iterator[str]:
        """
        Append `chunk` and yield every raw frame it completed, in order.

        Raises StreamDecodeError (after the completed frames) when the pending
        frame outgrows `max_frame_chars`; the decoder stays usable.
        """

        text = ("\r" if self._pending_cr else "") + chunk
        self._pending_cr = text.endswith("\r")
        if self._pending_cr:
            text = text[:-1]

        self._buffer += text.replace("\r\n", "\n").replace("\r", "\n")

        if self._discarding:
            if "\n\n" not in self._buffer:
                # Keep a trailing newline; the terminator may be split across chunks.
                self._buffer = "\n" if self._buffer.endswith("\n") else ""
                return
            self._buffer = self._buffer.split("\n\n", 1)[1]
            self._discarding = False

        while "\n\n" in self._buffer:
            frame, self._buffer = self._buffer.split("\n\n", 1)
            if not _is_keepalive(frame):
                yield frame

        if len(self._buffer) > self.max_frame_chars:
            prefix = self._buffer[:200]
            self._buffer = ""
            self._discarding = True
            raise StreamDecodeError(
                f"frame exceeds {self.max_frame_chars} characters without a terminator",
                frame=prefix,
            )

    @property
    def pending(self) -> str:
        return self._buffer


def _is_keepalive(frame: str) -> bool:
    """Blank or comment-only frames carry no event."""
    return all(not line or line.startswith(":") for line in frame.split("\n"))


def parse_frame(raw: str) -> SseFrame:
    """Split a raw frame into its event type and (joined) data lines."""

    event = DEFAULT_EVENT
    data_lines: list[str] = []
    saw_field = False

    for line in raw.split("\n"):
        if not line or line.startswith(":"):
            continue
        name, sep, value = line.partition(":")
        if not sep:
            raise StreamDecodeError(f"line without field separator: {line!r}", frame=raw)
        if value.startswith(" "):
            value = value[1:]

        if name == "event":
            event = value.strip() or DEFAULT_EVENT
            saw_field = True
        elif name == "data":
            data_lines.append(value)
            saw_field = True
        # id / retry / unknown fields carry nothing we act on.

    if not saw_field:
        raise StreamDecodeError("frame has neither event nor data", frame=raw)

    return SseFrame(event=event, data="\n".join(data_lines), raw=raw)
