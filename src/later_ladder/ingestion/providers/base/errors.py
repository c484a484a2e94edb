from __future__ import annotations


class ProviderError(RuntimeError):
    """Base exception for provider-related failures."""


class FetchError(ProviderError):
    """HTTP/network/transport layer failures (timeouts, connection errors, non-2xx, etc.).

    `retryable` tells callers with a retry policy (the live stream) whether another
    attempt can succeed. The client itself never retries.
    """

    def __init__(
        self, message: str, *, status_code: int | None = None, retryable: bool = True
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class ProviderRateLimited(FetchError):
    """Provider throttled the request (HTTP 429)."""

    def __init__(self, message: str = "Provider rate limited the request (HTTP 429).") -> None:
        super().__init__(message, status_code=429, retryable=True)


class ParseError(ProviderError):
    """Payload could not be decoded as a provider document."""


class StreamDecodeError(ProviderError):
    """A single event-stream frame could not be decoded."""

    def __init__(self, message: str, *, frame: str) -> None:
        super().__init__(message)
        self.frame = frame

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.args[0]} | frame={self.frame!r}"


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500
