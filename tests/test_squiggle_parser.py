from __future__ import annotations

import json
import logging

import pytest

from later_ladder.ingestion.providers.base.errors import ParseError
from later_ladder.ingestion.providers.squiggle.parser import (
    decode_games,
    parse_game_item,
    parse_games,
)


def test_parse_minimal_fixture() -> None:
    raw = '{"games":[{"id":1,"round":3,"year":2024,"hteam":"A","ateam":"B","complete":100}]}'

    records = parse_games(raw)

    assert len(records) == 1
    r = records[0]
    assert (r.id, r.round, r.year, r.completion) == (1, 3, 2024, 100)
    assert r.home_team == "A"
    assert r.away_team == "B"
    assert r.home_score is None
    assert r.away_score is None
    assert records.error is None


def test_parse_full_squiggle_game() -> None:
    item = {
        "id": 35723,
        "round": 0,
        "year": 2024,
        "hteam": "Sydney",
        "ateam": "Melbourne",
        "hscore": 86,
        "ascore": 64,
        "winner": "Sydney",
        "complete": 100,
        "venue": "S.C.G.",
        "date": "2024-03-07 19:30:00",
    }

    r = parse_game_item(item)

    assert r.id == 35723
    assert r.final_scores == (86, 64)
    assert r.final_winner == "Sydney"


def test_not_json_yields_empty_and_records_error(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.ERROR):
        records = parse_games("not json")

    assert records == []
    assert isinstance(records.error, ParseError)
    assert "Failed to parse games" in caplog.text


def test_decode_games_raises_on_non_object_document() -> None:
    with pytest.raises(ParseError):
        decode_games("[1, 2, 3]")


def test_missing_games_key_is_a_valid_empty_result() -> None:
    records = parse_games('{"games": []}')
    assert records == []
    assert records.error is None

    records = parse_games("{}")
    assert records == []
    assert records.error is None


def test_malformed_element_is_skipped_not_fatal(caplog: pytest.LogCaptureFixture) -> None:
    raw = json.dumps(
        {
            "games": [
                {"id": 1, "round": 1, "year": 2024, "hteam": "A", "ateam": "B", "complete": 0},
                {"round": 1, "year": 2024, "hteam": "C", "ateam": "D"},
                {"id": 3, "round": 1, "year": 2024, "hteam": "E", "ateam": "F", "hscore": -4},
                "garbage",
                {"id": "4", "round": "1", "year": 2024, "hteam": "G", "ateam": "H"},
            ]
        }
    )

    with caplog.at_level(logging.WARNING):
        records = parse_games(raw)

    assert [r.id for r in records] == [1, 4]
    assert "Skipping malformed game" in caplog.text


def test_unresolved_finals_keep_null_teams() -> None:
    raw = json.dumps(
        {
            "games": [
                {"id": 9, "round": 27, "year": 2024, "hteam": None, "ateam": None, "complete": 0},
                {"id": 10, "round": 27, "year": 2024, "hteam": "", "complete": 0},
            ]
        }
    )

    records = parse_games(raw)

    assert [r.id for r in records] == [9, 10]
    assert records[0].home_team is None
    assert records[0].away_team is None
    assert records[1].home_team is None
    assert records[1].away_team is None


def test_non_string_team_is_malformed() -> None:
    item = {"id": 9, "round": 1, "year": 2024, "hteam": 42, "ateam": "B"}

    with pytest.raises(ParseError, match="hteam"):
        parse_game_item(item)


def test_empty_winner_and_scores_map_to_none() -> None:
    item = {
        "id": 2,
        "round": 5,
        "year": 2024,
        "hteam": "A",
        "ateam": "B",
        "hscore": None,
        "ascore": "",
        "winner": "",
        "complete": 0,
    }

    r = parse_game_item(item)

    assert r.home_score is None
    assert r.away_score is None
    assert r.winner is None
