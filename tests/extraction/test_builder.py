"""Tests for the two-pass schema builder."""

from __future__ import annotations

import random

import pytest

from protodump.config import DumperConfig
from protodump.errors import (
    DuplicateDefinitionError,
    MissingFieldNumberError,
    UnmappedPrimitiveError,
    UnresolvedReferenceError,
)
from protodump.extraction import SchemaBuilder, build_schema
from protodump.models import (
    EnumDef,
    EnumShape,
    MapShape,
    MessageDef,
    MessageShape,
    PrimitiveKind,
    RepeatedShape,
    ScalarShape,
)
from tests._fixtures.snapshot_builder import SnapshotBuilder, map_of, player_item_snapshot, repeated


def test_build_player_item_scenario() -> None:
    graph = build_schema(player_item_snapshot().source())

    assert sorted(graph.index) == ["Game.Item", "Game.Player"]
    player = graph.resolve("Game.Player")
    assert isinstance(player, MessageDef)
    assert [(f.name, f.number) for f in player.fields] == [("id", 1), ("items", 2)]
    assert player.fields[0].shape == ScalarShape(PrimitiveKind.INT32)
    assert player.fields[1].shape == RepeatedShape(MessageShape("Game.Item"))
    assert player.fields[1].message == "Game.Player"


def test_build_resolves_mutual_and_forward_references(snapshot: SnapshotBuilder) -> None:
    snapshot.message("Game.A", [("b", "Game.B", 1), ("self", "Game.A", 2)])
    snapshot.message("Game.B", [("a", "Game.A", 1), ("kinds", map_of("System.String", "Game.Kind"), 2)])
    snapshot.enum("Game.Kind", [("None", 0)])

    graph = build_schema(snapshot.source())

    assert graph.resolve("Game.A").fields[0].shape == MessageShape("Game.B")
    assert graph.resolve("Game.A").fields[1].shape == MessageShape("Game.A")
    assert graph.resolve("Game.B").fields[1].shape == MapShape(
        PrimitiveKind.STRING, EnumShape("Game.Kind")
    )


def test_build_nests_definitions_under_messages(snapshot: SnapshotBuilder) -> None:
    snapshot.message("Game.Player", [("kind", "Game.Player.Types.Kind", 1)])
    snapshot.plain("Game.Player.Types", declaring="Game.Player")
    snapshot.enum("Game.Player.Types.Kind", [("A", 0)], declaring="Game.Player.Types")
    snapshot.message("Game.Player.Types.Stats", declaring="Game.Player.Types")

    graph = build_schema(snapshot.source())

    player = graph.resolve("Game.Player")
    assert [e.qualified_name for e in player.nested_enums] == ["Game.Player.Kind"]
    assert [m.qualified_name for m in player.nested_messages] == ["Game.Player.Stats"]
    assert player.fields[0].shape == EnumShape("Game.Player.Kind")
    kind = graph.resolve("Game.Player.Kind")
    assert kind.parent == "Game.Player"
    assert kind.package == "Game"
    assert [m.qualified_name for m in graph.messages] == ["Game.Player"]


def test_build_rejects_duplicate_field_numbers(snapshot: SnapshotBuilder) -> None:
    snapshot.message("Game.Player", [("id", "System.Int32", 1), ("name", "System.String", 1)])

    with pytest.raises(DuplicateDefinitionError) as excinfo:
        build_schema(snapshot.source())

    assert excinfo.value.message_name == "Game.Player"
    assert excinfo.value.field_name == "name"


@pytest.mark.parametrize("ordinal", [None, 0, -3])
def test_build_rejects_missing_field_numbers(snapshot: SnapshotBuilder, ordinal: int | None) -> None:
    snapshot.message("Game.Player", [("id", "System.Int32", ordinal)])

    with pytest.raises(MissingFieldNumberError) as excinfo:
        build_schema(snapshot.source())

    assert excinfo.value.field_name == "id"


def test_build_reports_unmapped_container(snapshot: SnapshotBuilder) -> None:
    snapshot.message(
        "Game.Player",
        [("scores", "System.Collections.Generic.List`1<System.Int32>", 1)],
    )

    with pytest.raises(UnmappedPrimitiveError) as excinfo:
        build_schema(snapshot.source())

    assert excinfo.value.message_name == "Game.Player"
    assert excinfo.value.field_name == "scores"
    assert "Game.Player.scores" in str(excinfo.value)


def test_build_reports_references_to_ignored_types(snapshot: SnapshotBuilder) -> None:
    snapshot.plain("Game.Helper")
    snapshot.message("Game.Player", [("helper", "Game.Helper", 1)])

    with pytest.raises(UnresolvedReferenceError):
        build_schema(snapshot.source())


def test_build_rejects_colliding_qualified_names(snapshot: SnapshotBuilder) -> None:
    snapshot.message("Game.Player")
    snapshot.enum("Game.Player.Kind", [("A", 0)], declaring="Game.Player")
    snapshot.plain("Game.Player.Types", declaring="Game.Player")
    snapshot.enum("Game.Player.Types.Kind", [("B", 0)], declaring="Game.Player.Types")

    with pytest.raises(DuplicateDefinitionError):
        build_schema(snapshot.source())


def test_build_folds_plain_enclosing_types_into_enum_names(snapshot: SnapshotBuilder) -> None:
    snapshot.plain("Game.LoginPanel")
    snapshot.enum("Game.LoginPanel.State", [("Idle", 0)], declaring="Game.LoginPanel")
    snapshot.plain("Game.ShopPanel")
    snapshot.enum("Game.ShopPanel.State", [("Open", 0), ("Closed", 1)], declaring="Game.ShopPanel")
    snapshot.message("Game.Shop", [("state", "Game.ShopPanel.State", 1)])

    graph = build_schema(snapshot.source())

    assert sorted(graph.index) == ["Game.LoginPanel_State", "Game.Shop", "Game.ShopPanel_State"]
    assert graph.resolve("Game.Shop").fields[0].shape == EnumShape("Game.ShopPanel_State")
    login_state = graph.resolve("Game.LoginPanel_State")
    assert login_state.parent is None
    assert login_state.package == "Game"


def test_build_keeps_message_owner_of_enums_inside_helper_classes(snapshot: SnapshotBuilder) -> None:
    snapshot.message("Game.Player", [("mode", "Game.Player.Types.Helper.Mode", 1)])
    snapshot.plain("Game.Player.Types", declaring="Game.Player")
    snapshot.plain("Game.Player.Types.Helper", declaring="Game.Player.Types")
    snapshot.enum("Game.Player.Types.Helper.Mode", [("Off", 0)], declaring="Game.Player.Types.Helper")

    graph = build_schema(snapshot.source())

    player = graph.resolve("Game.Player")
    assert [e.qualified_name for e in player.nested_enums] == ["Game.Player.Helper_Mode"]
    assert player.fields[0].shape == EnumShape("Game.Player.Helper_Mode")
    assert graph.resolve("Game.Player.Helper_Mode").parent == "Game.Player"


def _command_id_snapshot() -> SnapshotBuilder:
    builder = SnapshotBuilder()
    builder.message("Game.Login", [("token", "System.String", 1)])
    builder.enum("Game.Login.CmdId", [("None", 0), ("CmdId", 1001)], declaring="Game.Login")
    builder.enum("Game.Login.Reason", [("Ok", 0)], declaring="Game.Login")
    builder.enum("Game.CmdId", [("Top", 0)])
    return builder


def test_build_filters_command_id_enums_by_default() -> None:
    graph = build_schema(_command_id_snapshot().source())

    login = graph.resolve("Game.Login")
    assert [e.name for e in login.nested_enums] == ["Reason"]
    assert login.is_command_holder is True
    # Only enums nested in a message are command-id enums.
    assert "Game.CmdId" in graph.index


def test_build_keeps_command_id_enums_when_requested() -> None:
    config = DumperConfig(include_command_id_enums=True)
    graph = build_schema(_command_id_snapshot().source(), config)

    cmd_id = graph.resolve("Game.Login.CmdId")
    assert isinstance(cmd_id, EnumDef)
    assert cmd_id.is_command_id is True
    assert [(m.name, m.value) for m in cmd_id.members] == [("None", 0), ("CmdId", 1001)]


def test_build_accepts_custom_command_id_predicate() -> None:
    builder = SchemaBuilder(command_id_predicate=lambda info, members, owner: info.name == "Reason")
    graph = builder.build(_command_id_snapshot().source())

    assert [e.name for e in graph.resolve("Game.Login").nested_enums] == ["CmdId"]


def test_build_prunes_unreferenced_top_level_enums(snapshot: SnapshotBuilder) -> None:
    snapshot.message("Game.Player", [("kind", "Game.Kind", 1)])
    snapshot.enum("Game.Kind", [("A", 0)])
    snapshot.enum("Game.Unused", [("B", 0)])
    snapshot.enum("Game.Player.Local", [("C", 0)], declaring="Game.Player")

    graph = build_schema(snapshot.source(), DumperConfig(prune_unreferenced_enums=True))

    assert "Game.Kind" in graph.index
    assert "Game.Unused" not in graph.index
    assert "Game.Player.Local" in graph.index


def test_build_of_empty_source_is_empty(snapshot: SnapshotBuilder) -> None:
    graph = build_schema(snapshot.plain("Game.Helper").source())
    assert len(graph) == 0
    assert graph.packages() == []


def _random_snapshot(seed: int) -> SnapshotBuilder:
    rng = random.Random(seed)
    packages = ["Game", "Game.Common", "Net"]
    messages = [f"{rng.choice(packages)}.M{i}" for i in range(rng.randint(5, 20))]
    enums = [f"{rng.choice(packages)}.E{i}" for i in range(rng.randint(1, 5))]
    scalars = ["System.Int32", "System.String", "System.Boolean", "System.Int64", "System.Byte[]"]

    builder = SnapshotBuilder()
    for name in enums:
        builder.enum(name, [(f"V{v}", v) for v in range(rng.randint(1, 4))])
    for name in messages:
        fields = []
        for number in range(1, rng.randint(1, 8) + 1):
            target = rng.choice(messages + enums + scalars)
            style = rng.random()
            if style < 0.2:
                type_ = repeated(target)
            elif style < 0.3:
                type_ = map_of(rng.choice(["System.Int32", "System.String"]), target)
            else:
                type_ = target
            fields.append((f"f{number}", type_, number))
        rng.shuffle(fields)
        builder.message(name, fields)
    return builder


@pytest.mark.parametrize("seed", range(12))
def test_build_of_random_type_sets_has_no_dangling_references(seed: int) -> None:
    builder = _random_snapshot(seed)
    graph = build_schema(builder.source())

    for message in graph.iter_messages():
        for field_def in message.fields:
            for ref in field_def.shape.references():
                assert ref in graph.index
    assert build_schema(builder.source()) == graph
