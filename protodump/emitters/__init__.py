"""Emitters rendering a schema graph into target dialects."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Dict, Iterable, List

from ..config import ConfigError, Dialect
from .base import (
    EmissionFailure,
    EmissionResult,
    EmittedFile,
    Emitter,
    FilePlan,
    check_output_paths,
)
from .proto import ProtoEmitter
from .typescript import TypeScriptEmitter

_ENTRY_POINT_GROUP = "protodump.emitters"

_BUILTIN_FACTORIES: Dict[str, Callable[..., Emitter]] = {
    Dialect.PROTO.value: ProtoEmitter,
    Dialect.TYPESCRIPT.value: TypeScriptEmitter,
}


def available_emitters() -> List[str]:
    """Return the names of built-in and entry-point emitters."""
    names = list(_BUILTIN_FACTORIES)
    for entry in _iter_entry_points():
        if entry.name.lower() not in names:
            names.append(entry.name.lower())
    return names


def create_emitter(dialect: Dialect | str, *, extension: str | None = None) -> Emitter:
    """Return an emitter for ``dialect``, optionally overriding its file extension.

    Built-in dialects win over entry points registered under the same name.
    """
    key = _dialect_key(dialect)
    factory = _BUILTIN_FACTORIES.get(key)
    if factory is None:
        for entry in _iter_entry_points():
            if entry.name.lower() != key:
                continue
            try:
                factory = entry.load()
            except Exception as exc:  # pragma: no cover - defensive guard
                raise RuntimeError(f"Failed to load emitter entry point '{entry.name}': {exc}") from exc
            break
    if factory is None:
        raise ValueError(f"Unknown emitter requested: {key}")
    instance = factory(extension=extension)
    if not isinstance(instance, Emitter):
        raise TypeError(f"Emitter factory for '{key}' did not return an Emitter instance")
    return instance


def _dialect_key(dialect: Dialect | str) -> str:
    if isinstance(dialect, Dialect):
        return dialect.value
    try:
        return Dialect.parse(dialect).value
    except ConfigError:
        return dialect.strip().lower()


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    try:
        entry_points = metadata.entry_points()
    except Exception:  # pragma: no cover - metadata backend failure
        return []
    return list(entry_points.select(group=_ENTRY_POINT_GROUP))


__all__ = [
    "EmissionFailure",
    "EmissionResult",
    "EmittedFile",
    "Emitter",
    "FilePlan",
    "ProtoEmitter",
    "TypeScriptEmitter",
    "available_emitters",
    "check_output_paths",
    "create_emitter",
]
