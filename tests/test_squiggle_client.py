from __future__ import annotations

import httpx
import pytest

from later_ladder.ingestion.providers.base.client import BaseHttpClient, BaseStreamClient
from later_ladder.ingestion.providers.base.errors import FetchError, ProviderRateLimited
from later_ladder.ingestion.providers.squiggle.client import (
    SquiggleClient,
    SquiggleStreamClient,
    games_query,
)

BASE_URL = "https://api.squiggle.com.au"
UA = "Later Ladder (test)"


def _client(handler) -> SquiggleClient:
    http = BaseHttpClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return SquiggleClient(http=http, user_agent=UA)


def test_games_query_is_deterministic() -> None:
    assert games_query(2024) == "?q=games;year=2024"
    assert games_query(2024, 0) == "?q=games;year=2024;round=0"


def test_fetch_by_year_builds_url_and_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text='{"games": []}')

    body = _client(handler).fetch_by_year(2023)

    assert body == '{"games": []}'
    assert str(seen[0].url) == "https://api.squiggle.com.au/?q=games;year=2023"
    assert seen[0].headers["Accept"] == "application/json"
    assert seen[0].headers["User-Agent"] == UA


def test_fetch_by_year_and_round_builds_url() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, text='{"games": []}')

    _client(handler).fetch_by_year_and_round(2024, 7)

    assert seen == ["https://api.squiggle.com.au/?q=games;year=2024;round=7"]


def test_transport_failure_raises_fetch_error_with_cause() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchError) as excinfo:
        _client(handler).fetch_by_year(2024)

    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
    assert excinfo.value.retryable


def test_non_2xx_raises_fetch_error_without_retrying() -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(503, text="unavailable")

    with pytest.raises(FetchError) as excinfo:
        _client(handler).fetch_by_year(2024)

    assert calls == 1
    assert excinfo.value.status_code == 503
    assert excinfo.value.retryable


def test_client_errors_are_not_retryable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    with pytest.raises(FetchError) as excinfo:
        _client(handler).fetch_by_year(2024)

    assert not excinfo.value.retryable


def test_rate_limit_is_a_retryable_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429)

    with pytest.raises(ProviderRateLimited) as excinfo:
        _client(handler).fetch_by_year(2024)

    assert excinfo.value.retryable


def _stream_client(handler) -> SquiggleStreamClient:
    stream = BaseStreamClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return SquiggleStreamClient(stream=stream, user_agent=UA)


@pytest.mark.asyncio
async def test_stream_client_yields_text_chunks() -> None:
    body = 'event: removeGame\ndata: {"id": 7}\n\n'
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text=body)

    received = ""
    async with _stream_client(handler).open() as chunks:
        async for chunk in chunks:
            received += chunk

    assert received == body
    assert seen[0].url.path == "/sse/games"
    assert seen[0].headers["Accept"] == "text/event-stream"
    assert seen[0].headers["User-Agent"] == UA


@pytest.mark.asyncio
async def test_stream_client_maps_http_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502)

    with pytest.raises(FetchError) as excinfo:
        async with _stream_client(handler).open():
            pass

    assert excinfo.value.status_code == 502
    assert excinfo.value.retryable


@pytest.mark.asyncio
async def test_stream_client_maps_connect_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchError) as excinfo:
        async with _stream_client(handler).open():
            pass

    assert excinfo.value.retryable


def test_undecodable_body_raises_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.DecodingError("bad gzip", request=request)

    with pytest.raises(FetchError) as excinfo:
        _client(handler).fetch_by_year(2024)

    assert isinstance(excinfo.value.__cause__, httpx.DecodingError)


def test_redirect_loop_raises_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.TooManyRedirects("redirect loop", request=request)

    with pytest.raises(FetchError):
        _client(handler).fetch_by_year_and_round(2024, 1)


@pytest.mark.asyncio
async def test_stream_client_maps_decoding_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.DecodingError("bad gzip", request=request)

    with pytest.raises(FetchError) as excinfo:
        async with _stream_client(handler).open():
            pass

    assert isinstance(excinfo.value.__cause__, httpx.DecodingError)
