from __future__ import annotations

import json
import logging
from typing import Any

from later_ladder.ingestion.providers.base.errors import ParseError
from later_ladder.ingestion.types import FixtureRecord

logger = logging.getLogger(__name__)


def _optional_int(value: Any, *, field_name: str) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ParseError(f"invalid {field_name}: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ParseError(f"invalid {field_name}: {value!r}")


def _required_int(value: Any, *, field_name: str) -> int:
    v = _optional_int(value, field_name=field_name)
    if v is None:
        raise ParseError(f"missing {field_name}")
    return v


def _as_team(value: Any, *, field_name: str) -> str | None:
    # Unresolved finals are published with null teams.
    if value is None:
        return None
    if not isinstance(value, str):
        raise ParseError(f"invalid {field_name}: {value!r}")
    return value.strip() or None


def parse_game_item(item: Any) -> FixtureRecord:
    """Decode one Squiggle game object. Raises ParseError on unusable input."""

    if not isinstance(item, dict):
        raise ParseError(f"expected game object, got {type(item).__name__}")

    game_id = _required_int(item.get("id"), field_name="id")
    round_ = _required_int(item.get("round"), field_name="round")
    year = _required_int(item.get("year"), field_name="year")

    winner = item.get("winner")
    if not isinstance(winner, str) or not winner.strip():
        winner = None

    completion = _optional_int(item.get("complete"), field_name="complete")

    try:
        return FixtureRecord(
            id=game_id,
            round=round_,
            year=year,
            home_team=_as_team(item.get("hteam"), field_name="hteam"),
            away_team=_as_team(item.get("ateam"), field_name="ateam"),
            home_score=_optional_int(item.get("hscore"), field_name="hscore"),
            away_score=_optional_int(item.get("ascore"), field_name="ascore"),
            winner=winner,
            completion=completion or 0,
        )
    except ValueError as e:
        raise ParseError(str(e)) from e


def decode_games(raw: str | bytes) -> list[FixtureRecord]:
    """
    Decode a `{"games": [...]}` document.

    Raises ParseError when the document itself is unusable. Individual malformed
    games are logged and skipped so one bad element never loses the batch.
    A document without a `games` list is a valid empty result.
    """

    try:
        doc = json.loads(raw)
    except ValueError as e:
        raise ParseError(f"payload is not valid JSON: {e}") from e

    if not isinstance(doc, dict):
        raise ParseError(f"expected JSON object, got {type(doc).__name__}")

    games = doc.get("games")
    if not isinstance(games, list):
        return []

    records: list[FixtureRecord] = []
    for idx, item in enumerate(games):
        try:
            records.append(parse_game_item(item))
        except ParseError as e:
            logger.warning("Skipping malformed game at index %d: %s | item=%r", idx, e, item)
    return records


class ParsedGames(list[FixtureRecord]):
    """Parsed records plus the payload-level ParseError, if any."""

    error: ParseError | None = None


def parse_games(raw: str | bytes) -> ParsedGames:
    """
    Whole-payload fail-safe wrapper around `decode_games`.

    A ParseError is logged and recorded on the (empty) result instead of raised.
    Callers must not read an empty result with `error` set as "no games this round".
    """

    try:
        return ParsedGames(decode_games(raw))
    except ParseError as e:
        logger.error("Failed to parse games from response body: %s", e)
        parsed = ParsedGames()
        parsed.error = e
        return parsed
