from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import httpx

from .errors import FetchError, ProviderRateLimited, is_retryable_status


def _raise_for_status(resp: httpx.Response, method: str) -> None:
    if resp.status_code == 429:
        raise ProviderRateLimited()

    try:
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise FetchError(
            f"HTTP {resp.status_code} for {method} {resp.request.url}",
            status_code=resp.status_code,
            retryable=is_retryable_status(resp.status_code),
        ) from e


@dataclass
class BaseHttpClient:
    """
    Provider-agnostic HTTP client wrapper.

    - Uses a single underlying httpx.Client for connection pooling.
    - Provides consistent error handling (every httpx request error becomes FetchError).
    - Does not retry; retry policy belongs to the caller.
    """

    base_url: str
    timeout_s: float = 30.0
    connect_timeout_s: float = 10.0
    headers: Mapping[str, str] = field(default_factory=dict)

    transport: httpx.BaseTransport | None = None

    def __post_init__(self) -> None:
        self._client = httpx.Client(
            base_url=self.base_url.rstrip("/") + "/",
            timeout=httpx.Timeout(self.timeout_s, connect=self.connect_timeout_s),
            headers=dict(self.headers),
            transport=self.transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> BaseHttpClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def request_text(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        """
        Perform an HTTP request and return the raw response body.
        Raises FetchError (including ProviderRateLimited) on transport issues / non-2xx.
        """
        try:
            resp = self._client.request(
                method=method,
                url=path.lstrip("/"),
                params=params,
                headers=headers,
            )
        except httpx.RequestError as e:
            raise FetchError(f"{type(e).__name__} for {method} {path}: {e}") from e

        _raise_for_status(resp, method)
        return resp.text

    def get_text(
        self,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> str:
        return self.request_text("GET", path, params=params, headers=headers)


@dataclass
class BaseStreamClient:
    """
    Long-lived streaming GET over httpx.AsyncClient.

    The read timeout is disabled: an event stream may legitimately stay quiet for
    minutes. Connect timeout still applies.
    """

    base_url: str
    connect_timeout_s: float = 10.0
    headers: Mapping[str, str] = field(default_factory=dict)

    transport: httpx.AsyncBaseTransport | None = None

    def _make_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url.rstrip("/") + "/",
            timeout=httpx.Timeout(None, connect=self.connect_timeout_s),
            headers=dict(self.headers),
            transport=self.transport,
        )

    @asynccontextmanager
    async def open_text_stream(
        self, path: str, *, headers: Mapping[str, str] | None = None
    ) -> AsyncIterator[AsyncIterator[str]]:
        """
        Open the stream and yield an async iterator over decoded text chunks.
        Connect failures, non-2xx and mid-stream request errors (transport, decoding,
        redirects) raise FetchError.
        """
        async with self._make_client() as client:
            try:
                async with client.stream("GET", path.lstrip("/"), headers=headers) as resp:
                    _raise_for_status(resp, "GET")
                    yield _guard_chunks(resp.aiter_text(), path)
            except httpx.RequestError as e:
                raise FetchError(f"{type(e).__name__} on stream {path}: {e}") from e


async def _guard_chunks(chunks: AsyncIterator[str], path: str) -> AsyncIterator[str]:
    try:
        async for chunk in chunks:
            yield chunk
    except httpx.RequestError as e:
        raise FetchError(f"{type(e).__name__} while reading stream {path}: {e}") from e
