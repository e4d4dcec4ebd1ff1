"""End-to-end tests for the dump pipeline."""

from __future__ import annotations

from pathlib import Path

import pytest

from protodump.config import Dialect, DumperConfig
from protodump.emitters import ProtoEmitter
from protodump.errors import EmissionError, OutputCollisionError
from protodump.models import FieldDef, MessageDef, PrimitiveKind, ScalarShape, SchemaGraph
from protodump.orchestrator import Dumper
from tests._fixtures.snapshot_builder import SnapshotBuilder, player_item_snapshot


def test_dumper_writes_every_dialect(tmp_path: Path) -> None:
    snapshot_path = player_item_snapshot().write(tmp_path / "types.yml")
    config = DumperConfig(target_dialects=[Dialect.PROTO, Dialect.TYPESCRIPT])

    result = Dumper(config).run(snapshot_path, tmp_path / "out")

    assert result.ok
    assert sorted(f.path for f in result.files) == ["Game.proto", "Game.ts"]
    assert (tmp_path / "out" / "Game.proto").read_text(encoding="utf-8").startswith(
        "// Generated by protodump"
    )
    assert "export interface Player" in (tmp_path / "out" / "Game.ts").read_text(encoding="utf-8")


def test_dumper_output_is_identical_across_runs(tmp_path: Path) -> None:
    snapshot_path = player_item_snapshot().write(tmp_path / "types.yml")
    dumper = Dumper(DumperConfig(target_dialects=[Dialect.PROTO, Dialect.TYPESCRIPT]))

    first = dumper.run(snapshot_path, tmp_path / "a")
    second = dumper.run(snapshot_path, tmp_path / "b")

    assert [(f.path, f.content) for f in first.files] == [(f.path, f.content) for f in second.files]


def test_dumper_rejects_shared_extension_across_dialects(tmp_path: Path) -> None:
    config = DumperConfig(
        target_dialects=[Dialect.PROTO, Dialect.TYPESCRIPT], file_extension_override="txt"
    )
    with pytest.raises(OutputCollisionError):
        Dumper(config).dump(player_item_snapshot().source())


class _GraphBuilder:
    """Stands in for the schema builder with a prebuilt graph."""

    def __init__(self, graph: SchemaGraph) -> None:
        self.graph = graph

    def build(self, source: object) -> SchemaGraph:
        return self.graph


def _graph_with_broken_package() -> SchemaGraph:
    broken = MessageDef(
        package="Game",
        path=("Player",),
        fields=(
            FieldDef("Id", ScalarShape(PrimitiveKind.INT32), 1, "Game.Player"),
            FieldDef("id", ScalarShape(PrimitiveKind.INT32), 2, "Game.Player"),
        ),
    )
    return SchemaGraph(messages=(broken, MessageDef(package="Net", path=("Packet",))))


def test_dumper_keeps_good_files_when_one_fails(snapshot: SnapshotBuilder) -> None:
    dumper = Dumper(builder=_GraphBuilder(_graph_with_broken_package()))  # type: ignore[arg-type]

    result = dumper.dump(snapshot.source())

    assert not result.ok
    assert [f.path for f in result.files] == ["Net.proto"]
    assert [f.path for f in result.failures] == ["Game.proto"]


def test_dumper_atomic_output_writes_nothing(tmp_path: Path, snapshot: SnapshotBuilder) -> None:
    config = DumperConfig(atomic_output=True)
    dumper = Dumper(
        config,
        builder=_GraphBuilder(_graph_with_broken_package()),  # type: ignore[arg-type]
        source_opener=lambda path: snapshot.source(),
    )

    with pytest.raises(EmissionError):
        dumper.run(tmp_path / "ignored.yml", tmp_path / "out")
    assert not (tmp_path / "out").exists()


def test_dumper_accepts_explicit_emitters(snapshot: SnapshotBuilder) -> None:
    snapshot.message("Game.Player", [("id", "System.Int32", 1)])
    dumper = Dumper(emitters=[ProtoEmitter(extension="proto3")])

    result = dumper.dump(snapshot.source())

    assert [f.path for f in result.files] == ["Game.proto3"]
