"""Tests for identifier conversion and escaping."""

from __future__ import annotations

import pytest

from protodump.emitters.naming import (
    TYPESCRIPT_RESERVED,
    escape_identifier,
    to_lower_camel_case,
    to_snake_case,
    to_upper_snake_case,
)
from protodump.errors import EmissionError


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("Player", "Player"),
        ("Player<T>", "Player_T_"),
        ("1stPlace", "_1stPlace"),
        ("in", "in_"),
        ("Record", "Record_"),
        ("$money", "$money"),
    ],
)
def test_escape_identifier_for_typescript(name: str, expected: str) -> None:
    assert escape_identifier(name, reserved=TYPESCRIPT_RESERVED, allow_dollar=True) == expected


def test_escape_identifier_is_deterministic_without_dollar() -> None:
    assert escape_identifier("$money") == "_money"
    assert escape_identifier("$money") == escape_identifier("$money")


@pytest.mark.parametrize("name", ["", "___", "<>"])
def test_escape_identifier_rejects_empty_results(name: str) -> None:
    with pytest.raises(EmissionError) as excinfo:
        escape_identifier(name, qualified_name="Game.Player", field_name=name)

    assert excinfo.value.qualified_name == "Game.Player"


@pytest.mark.parametrize(
    ("name", "snake", "camel"),
    [
        ("PlayerId", "player_id", "playerId"),
        ("playerId_", "player_id", "playerId"),
        ("HTTPServer", "http_server", "httpServer"),
        ("item_count", "item_count", "itemCount"),
        ("Id", "id", "id"),
    ],
)
def test_case_conversion(name: str, snake: str, camel: str) -> None:
    assert to_snake_case(name) == snake
    assert to_lower_camel_case(name) == camel


def test_upper_snake_case() -> None:
    assert to_upper_snake_case("ItemKind") == "ITEM_KIND"
