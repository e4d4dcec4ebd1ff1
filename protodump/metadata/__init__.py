"""Metadata sources exposing a program's compiled type table."""

from __future__ import annotations

from pathlib import Path

from .base import (
    FieldInfo,
    MetadataSource,
    MetadataUnavailableError,
    TypeInfo,
    TypeRef,
    parse_type_ref,
)
from .csharp import CSharpSource
from .snapshot import SnapshotSource

SNAPSHOT_SUFFIXES = {".yml", ".yaml", ".json"}


def open_source(path: Path) -> MetadataSource:
    """Open a metadata source for a snapshot file, a C# file or a directory of C# files."""
    path = path.expanduser()
    if not path.exists():
        raise MetadataUnavailableError(f"Metadata input not found: {path}")
    if path.is_file() and path.suffix.lower() in SNAPSHOT_SUFFIXES:
        return SnapshotSource.from_path(path)
    return CSharpSource.from_path(path)


__all__ = [
    "CSharpSource",
    "FieldInfo",
    "MetadataSource",
    "MetadataUnavailableError",
    "SnapshotSource",
    "TypeInfo",
    "TypeRef",
    "open_source",
    "parse_type_ref",
]
