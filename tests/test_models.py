"""Tests for the immutable schema graph."""

from __future__ import annotations

import dataclasses

import pytest

from protodump.errors import DuplicateDefinitionError, UnresolvedReferenceError
from protodump.models import (
    EnumDef,
    EnumMember,
    EnumShape,
    FieldDef,
    MapShape,
    MessageDef,
    MessageShape,
    PrimitiveKind,
    RepeatedShape,
    ScalarShape,
    SchemaGraph,
)


def _message(package: str, *path: str, fields=(), nested_enums=(), nested_messages=()) -> MessageDef:
    return MessageDef(
        package=package,
        path=tuple(path),
        fields=tuple(fields),
        nested_enums=tuple(nested_enums),
        nested_messages=tuple(nested_messages),
    )


def test_graph_indexes_nested_definitions() -> None:
    kind = EnumDef(package="Game", path=("Player", "Kind"), members=(EnumMember("A", 0),), parent="Game.Player")
    player = _message(
        "Game",
        "Player",
        fields=[FieldDef("kind", EnumShape("Game.Player.Kind"), 1, "Game.Player")],
        nested_enums=[kind],
    )
    graph = SchemaGraph(messages=(player,))

    assert set(graph.index) == {"Game.Player", "Game.Player.Kind"}
    assert graph.resolve("Game.Player.Kind") is kind
    assert [d.qualified_name for d in graph.walk()] == ["Game.Player", "Game.Player.Kind"]
    assert list(graph.iter_enums()) == [kind]


def test_graph_rejects_dangling_references() -> None:
    player = _message(
        "Game",
        "Player",
        fields=[FieldDef("items", RepeatedShape(MessageShape("Game.Item")), 1, "Game.Player")],
    )

    with pytest.raises(UnresolvedReferenceError) as excinfo:
        SchemaGraph(messages=(player,))

    assert excinfo.value.message_name == "Game.Player"
    assert excinfo.value.field_name == "items"


def test_graph_rejects_references_of_the_wrong_kind() -> None:
    item = _message("Game", "Item")
    player = _message(
        "Game",
        "Player",
        fields=[FieldDef("item", EnumShape("Game.Item"), 1, "Game.Player")],
    )
    with pytest.raises(UnresolvedReferenceError):
        SchemaGraph(messages=(item, player))


def test_graph_rejects_duplicate_qualified_names() -> None:
    with pytest.raises(DuplicateDefinitionError):
        SchemaGraph(messages=(_message("Game", "Player"),), enums=(EnumDef("Game", ("Player",)),))


def test_graph_is_immutable() -> None:
    graph = SchemaGraph(messages=(_message("Game", "Player"),))

    with pytest.raises(dataclasses.FrozenInstanceError):
        graph.messages = ()  # type: ignore[misc]
    with pytest.raises(TypeError):
        graph.index["Game.Other"] = graph.messages[0]  # type: ignore[index]


def test_graph_lists_packages_and_top_level_definitions() -> None:
    graph = SchemaGraph(
        messages=(_message("Net", "Packet"), _message("Game", "Player"), _message("", "Root")),
        enums=(EnumDef("Game", ("Kind",)),),
    )

    assert graph.packages() == ["", "Game", "Net"]
    assert [d.qualified_name for d in graph.top_level("Game")] == ["Game.Kind", "Game.Player"]
    assert graph.top_level("")[0].qualified_name == "Root"


def test_shapes_enumerate_references() -> None:
    assert ScalarShape(PrimitiveKind.BOOL).references() == ()
    assert MapShape(PrimitiveKind.STRING, MessageShape("Game.Item")).references() == ("Game.Item",)
    assert RepeatedShape(EnumShape("Game.Kind")).references() == ("Game.Kind",)


def test_container_shapes_only_hold_element_shapes() -> None:
    with pytest.raises(TypeError):
        RepeatedShape(RepeatedShape(ScalarShape(PrimitiveKind.INT32)))  # type: ignore[arg-type]


def test_primitive_kind_traits() -> None:
    assert PrimitiveKind.SFIXED64.is_64bit
    assert PrimitiveKind.STRING.is_valid_map_key
    assert not PrimitiveKind.BYTES.is_valid_map_key
    assert not PrimitiveKind.DOUBLE.is_valid_map_key


def test_enum_aliases_are_detected() -> None:
    enum_def = EnumDef("Game", ("Kind",), members=(EnumMember("A", 1), EnumMember("B", 1)))
    assert enum_def.has_aliases
