"""Deterministic identifier conversion and escaping for emitted code.

Escaping rule, applied in order:

1. every character outside ``[A-Za-z0-9_]`` (plus ``$`` where the dialect
   allows it) becomes ``_``;
2. a leading digit gets a ``_`` prefix;
3. a reserved word gets a ``_`` suffix.

The same input always yields the same identifier.
"""

from __future__ import annotations

import re
from typing import FrozenSet, Iterable, Optional

from ..errors import EmissionError

TYPESCRIPT_RESERVED: FrozenSet[str] = frozenset(
    {
        # keywords
        "abstract", "any", "as", "async", "await", "bigint", "boolean", "break",
        "case", "catch", "class", "const", "constructor", "continue", "debugger",
        "declare", "default", "delete", "do", "else", "enum", "export", "extends",
        "false", "finally", "for", "from", "function", "get", "if", "implements",
        "import", "in", "infer", "instanceof", "interface", "is", "keyof", "let",
        "module", "namespace", "never", "new", "null", "number", "object", "of",
        "package", "private", "protected", "public", "readonly", "require",
        "return", "set", "static", "string", "super", "switch", "symbol", "this",
        "throw", "true", "try", "type", "typeof", "undefined", "unique", "unknown",
        "var", "void", "while", "with", "yield",
        # global types the generated declarations rely on
        "Array", "Record", "Uint8Array",
    }
)

_IDENTIFIER_ILLEGAL = re.compile(r"[^A-Za-z0-9_]")
_IDENTIFIER_ILLEGAL_DOLLAR = re.compile(r"[^A-Za-z0-9_$]")
_CAMEL_BOUNDARY = re.compile(r"(.)([A-Z][a-z]+)")
_LOWER_UPPER_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_REPEATED_UNDERSCORE = re.compile(r"_+")


def escape_identifier(
    name: str,
    *,
    reserved: Iterable[str] = (),
    allow_dollar: bool = False,
    qualified_name: Optional[str] = None,
    field_name: Optional[str] = None,
) -> str:
    pattern = _IDENTIFIER_ILLEGAL_DOLLAR if allow_dollar else _IDENTIFIER_ILLEGAL
    escaped = pattern.sub("_", name)
    if not escaped.strip("_"):
        raise EmissionError(
            f"Cannot derive an identifier from {name!r}",
            qualified_name=qualified_name,
            field_name=field_name,
        )
    if escaped[0].isdigit():
        escaped = f"_{escaped}"
    if escaped in set(reserved):
        escaped = f"{escaped}_"
    return escaped


def to_snake_case(name: str) -> str:
    """``PlayerId``/``playerId_`` -> ``player_id``."""
    stripped = name.rstrip("_")
    if not stripped:
        return name
    spaced = _CAMEL_BOUNDARY.sub(r"\1_\2", stripped)
    spaced = _LOWER_UPPER_BOUNDARY.sub(r"\1_\2", spaced)
    return _REPEATED_UNDERSCORE.sub("_", spaced).lower()


def to_lower_camel_case(name: str) -> str:
    """``player_id``/``PlayerId`` -> ``playerId``."""
    parts = [part for part in to_snake_case(name).split("_") if part]
    if not parts:
        return name
    return parts[0] + "".join(part[:1].upper() + part[1:] for part in parts[1:])


def to_upper_snake_case(name: str) -> str:
    return to_snake_case(name).upper()


__all__ = [
    "TYPESCRIPT_RESERVED",
    "escape_identifier",
    "to_lower_camel_case",
    "to_snake_case",
    "to_upper_snake_case",
]
