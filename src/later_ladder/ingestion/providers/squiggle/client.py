from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from later_ladder.core.config import settings
from later_ladder.ingestion.providers.base.client import BaseHttpClient, BaseStreamClient

GAMES_STREAM_PATH = "/sse/games"


def games_query(year: int, round_: int | None = None) -> str:
    """Squiggle query string; parameters are `;`-separated inside `q`."""

    q = f"?q=games;year={year}"
    if round_ is not None:
        q += f";round={round_}"
    return q


@dataclass
class SquiggleClient:
    http: BaseHttpClient
    user_agent: str = settings.user_agent

    def _headers(self) -> dict[str, str]:
        return {"Accept": "application/json", "User-Agent": self.user_agent}

    def fetch_by_year(self, year: int) -> str:
        """Raw `games` document for a whole season."""
        return self.http.get_text(games_query(year), headers=self._headers())

    def fetch_by_year_and_round(self, year: int, round_: int) -> str:
        """Raw `games` document for one round of a season."""
        return self.http.get_text(games_query(year, round_), headers=self._headers())

    def close(self) -> None:
        self.http.close()


@dataclass
class SquiggleStreamClient:
    stream: BaseStreamClient
    user_agent: str = settings.user_agent

    @asynccontextmanager
    async def open(self) -> AsyncIterator[AsyncIterator[str]]:
        headers = {"Accept": "text/event-stream", "User-Agent": self.user_agent}
        async with self.stream.open_text_stream(GAMES_STREAM_PATH, headers=headers) as chunks:
            yield chunks


def make_squiggle_client(
    *,
    base_url: str | None = None,
    timeout_s: float | None = None,
    user_agent: str | None = None,
) -> SquiggleClient:
    http = BaseHttpClient(
        base_url=base_url or settings.squiggle_base_url,
        timeout_s=timeout_s if timeout_s is not None else settings.http_timeout_s,
    )
    return SquiggleClient(http=http, user_agent=user_agent or settings.user_agent)


def make_squiggle_stream_client(
    *, base_url: str | None = None, user_agent: str | None = None
) -> SquiggleStreamClient:
    stream = BaseStreamClient(base_url=base_url or settings.squiggle_base_url)
    return SquiggleStreamClient(stream=stream, user_agent=user_agent or settings.user_agent)
