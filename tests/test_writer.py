"""Tests for the output writer."""

from __future__ import annotations

from pathlib import Path

import pytest

from protodump.emitters import EmittedFile
from protodump.errors import OutputCollisionError
from protodump.writer import OutputWriter


def _file(path: str, content: str = "x\n") -> EmittedFile:
    return EmittedFile(path=path, content=content, dialect="proto")


def test_writer_replaces_old_output(tmp_path: Path) -> None:
    root = tmp_path / "out"
    root.mkdir()
    (root / "stale.proto").write_text("old", encoding="utf-8")

    written = OutputWriter(root).write([_file("Game.proto", "new\n"), _file("sub/Net.proto")])

    assert sorted(p.relative_to(root.resolve()).as_posix() for p in written) == [
        "Game.proto",
        "sub/Net.proto",
    ]
    assert not (root / "stale.proto").exists()
    assert (root / "Game.proto").read_text(encoding="utf-8") == "new\n"


def test_writer_keeps_old_output_when_asked(tmp_path: Path) -> None:
    root = tmp_path / "out"
    root.mkdir()
    (root / "stale.proto").write_text("old", encoding="utf-8")

    OutputWriter(root, clean=False).write([_file("Game.proto")])

    assert (root / "stale.proto").exists()
    assert (root / "Game.proto").exists()


def test_writer_refuses_escaping_paths(tmp_path: Path) -> None:
    with pytest.raises(OutputCollisionError):
        OutputWriter(tmp_path / "out").write([_file("../evil.proto")])
    assert not (tmp_path / "evil.proto").exists()


def test_writer_refuses_file_as_root(tmp_path: Path) -> None:
    root = tmp_path / "out"
    root.write_text("not a directory", encoding="utf-8")

    with pytest.raises(OutputCollisionError):
        OutputWriter(root).write([_file("Game.proto")])
