"""Tests for protodump.metadata.base type name helpers."""

from __future__ import annotations

import pytest

from protodump.errors import MetadataUnavailableError
from protodump.metadata.base import TypeRef, normalize_type_name, parse_type_ref


def test_parse_type_ref_reads_plain_names() -> None:
    assert parse_type_ref("System.Int32") == TypeRef(name="System.Int32")


def test_parse_type_ref_reads_nested_generic_arguments() -> None:
    ref = parse_type_ref("MapField`2<System.String, RepeatedField`1<Game.Item>>")

    assert ref.name == "MapField`2"
    assert ref.args[0] == TypeRef(name="System.String")
    assert ref.args[1].name == "RepeatedField`1"
    assert ref.args[1].args == (TypeRef(name="Game.Item"),)


def test_parse_type_ref_adds_missing_arity_suffix() -> None:
    ref = parse_type_ref("RepeatedField<Game.Item>")
    assert ref.name == "RepeatedField`1"
    assert str(ref) == "RepeatedField`1<Game.Item>"


@pytest.mark.parametrize("text", ["", "List`1<Game.Item", "A<B>>", "A<,B>"])
def test_parse_type_ref_rejects_malformed_input(text: str) -> None:
    with pytest.raises(MetadataUnavailableError):
        parse_type_ref(text)


def test_normalize_type_name_converts_nested_separators() -> None:
    assert normalize_type_name("Game.Player/Types/Item") == "Game.Player.Types.Item"
    assert normalize_type_name("Game.Player+Kind") == "Game.Player.Kind"
