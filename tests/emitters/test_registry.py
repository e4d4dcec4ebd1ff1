"""Tests for emitter discovery and output path checks."""

from __future__ import annotations

import pytest

from protodump.config import Dialect
from protodump.emitters import (
    EmittedFile,
    ProtoEmitter,
    TypeScriptEmitter,
    available_emitters,
    check_output_paths,
    create_emitter,
)
from protodump.errors import OutputCollisionError


def test_create_emitter_returns_builtin_dialects() -> None:
    assert isinstance(create_emitter(Dialect.PROTO), ProtoEmitter)
    assert isinstance(create_emitter("ts"), TypeScriptEmitter)
    assert create_emitter("typescript", extension="d.ts").extension == "d.ts"
    assert {"proto", "typescript"} <= set(available_emitters())


def test_create_emitter_rejects_unknown_names() -> None:
    with pytest.raises(ValueError):
        create_emitter("cobol")


@pytest.mark.parametrize("path", ["/etc/passwd.proto", "../escape.proto", "a/../../b.proto"])
def test_check_output_paths_rejects_escaping_paths(path: str) -> None:
    with pytest.raises(OutputCollisionError):
        check_output_paths([EmittedFile(path=path, content="", dialect="proto")])


def test_check_output_paths_rejects_case_insensitive_duplicates() -> None:
    files = [
        EmittedFile(path="Game.proto", content="", dialect="proto"),
        EmittedFile(path="game.proto", content="", dialect="proto"),
    ]
    with pytest.raises(OutputCollisionError):
        check_output_paths(files)


def test_check_output_paths_accepts_distinct_paths() -> None:
    check_output_paths(
        [
            EmittedFile(path="Game.proto", content="", dialect="proto"),
            EmittedFile(path="Game.ts", content="", dialect="typescript"),
        ]
    )
