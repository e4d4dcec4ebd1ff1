"""Contract for read-only sources of compiled type metadata."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from ..errors import MetadataUnavailableError


@dataclass(frozen=True)
class TypeRef:
    """A declared field type as the source reports it.

    ``name`` is the full name of the type or of its generic definition
    (``Google.Protobuf.Collections.RepeatedField`1``); ``args`` holds the
    generic arguments of an instantiation.
    """

    name: str
    args: Tuple["TypeRef", ...] = ()

    @property
    def is_generic(self) -> bool:
        return bool(self.args)

    def __str__(self) -> str:
        if not self.args:
            return self.name
        inner = ", ".join(str(arg) for arg in self.args)
        return f"{self.name}<{inner}>"


@dataclass(frozen=True)
class TypeInfo:
    """A type discovered in the metadata; ``full_name`` is unique per source."""

    full_name: str
    name: str
    namespace: str = ""
    is_enum: bool = False


@dataclass(frozen=True)
class FieldInfo:
    """A field of ``declaring_type`` (a full type name)."""

    name: str
    declaring_type: str


class MetadataSource(ABC):
    """Read-only queries over a program's compiled type table.

    Implementations raise :class:`MetadataUnavailableError` for any query they
    cannot answer; callers never recover from it.
    """

    @abstractmethod
    def enumerate_types(self) -> Sequence[TypeInfo]:
        """Return every type, nested types included, in a stable order."""

    @abstractmethod
    def get_base_type(self, type_info: TypeInfo) -> Optional[str]:
        """Return the full name of the direct base type, if any."""

    @abstractmethod
    def list_fields(self, type_info: TypeInfo) -> Sequence[FieldInfo]:
        """Return the serializable fields of a type in declaration order."""

    @abstractmethod
    def list_nested_types(self, type_info: TypeInfo) -> Sequence[TypeInfo]:
        """Return the types declared directly inside ``type_info``."""

    @abstractmethod
    def list_enum_members(self, type_info: TypeInfo) -> Sequence[Tuple[str, int]]:
        """Return ``(name, value)`` pairs of an enum in declaration order."""

    @abstractmethod
    def get_field_type(self, field_info: FieldInfo) -> TypeRef:
        """Return the declared type of a field with its generic arguments."""

    @abstractmethod
    def get_field_ordinal(self, field_info: FieldInfo) -> Optional[int]:
        """Return the field number decorating a field, or None when absent."""


def normalize_type_name(name: str) -> str:
    """Normalise nested-type separators (``/`` and ``+``) to dots."""
    return name.replace("/", ".").replace("+", ".").strip()


def parse_type_ref(text: str) -> TypeRef:
    """Parse a type written as ``Name`2<Key, Value>`` into a :class:`TypeRef`.

    Generic arguments may nest. A generic definition without an arity suffix
    gets one from its argument count.
    """
    ref, index = _parse_type(text, 0)
    if text[index:].strip():
        raise MetadataUnavailableError(f"Unexpected trailing text in type '{text}'")
    return ref


def _parse_type(text: str, index: int) -> Tuple[TypeRef, int]:
    start = index
    while index < len(text) and text[index] not in "<>,":
        index += 1
    name = normalize_type_name(text[start:index])
    if not name:
        raise MetadataUnavailableError(f"Malformed type name '{text}'")
    if index >= len(text) or text[index] != "<":
        return TypeRef(name=name), index

    args = []
    index += 1
    while True:
        arg, index = _parse_type(text, index)
        args.append(arg)
        if index >= len(text):
            raise MetadataUnavailableError(f"Unterminated generic arguments in '{text}'")
        if text[index] == ",":
            index += 1
            continue
        if text[index] == ">":
            index += 1
            break
        raise MetadataUnavailableError(f"Malformed generic arguments in '{text}'")
    if "`" not in name:
        name = f"{name}`{len(args)}"
    return TypeRef(name=name, args=tuple(args)), index


__all__ = [
    "FieldInfo",
    "MetadataSource",
    "MetadataUnavailableError",
    "TypeInfo",
    "TypeRef",
    "normalize_type_name",
    "parse_type_ref",
]
