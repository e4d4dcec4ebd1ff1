"""Schema graph data model shared by the extractor and the emitters."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .errors import DuplicateDefinitionError, UnresolvedReferenceError


class PrimitiveKind(str, Enum):
    """Scalar value kinds understood by every dialect."""

    INT32 = "int32"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    SINT32 = "sint32"
    SINT64 = "sint64"
    FIXED32 = "fixed32"
    FIXED64 = "fixed64"
    SFIXED32 = "sfixed32"
    SFIXED64 = "sfixed64"
    FLOAT = "float"
    DOUBLE = "double"
    BOOL = "bool"
    STRING = "string"
    BYTES = "bytes"

    @property
    def is_integral(self) -> bool:
        return self not in {
            PrimitiveKind.FLOAT,
            PrimitiveKind.DOUBLE,
            PrimitiveKind.BOOL,
            PrimitiveKind.STRING,
            PrimitiveKind.BYTES,
        }

    @property
    def is_64bit(self) -> bool:
        return self.is_integral and self.value.endswith("64")

    @property
    def is_valid_map_key(self) -> bool:
        return self.is_integral or self in {PrimitiveKind.BOOL, PrimitiveKind.STRING}


@dataclass(frozen=True)
class ScalarShape:
    """Field holding a single primitive value."""

    kind: PrimitiveKind

    def references(self) -> Tuple[str, ...]:
        return ()


@dataclass(frozen=True)
class MessageShape:
    """Field holding an embedded message, referenced by qualified name."""

    ref: str

    def references(self) -> Tuple[str, ...]:
        return (self.ref,)


@dataclass(frozen=True)
class EnumShape:
    """Field holding an enum value, referenced by qualified name."""

    ref: str

    def references(self) -> Tuple[str, ...]:
        return (self.ref,)


ElementShape = Union[ScalarShape, MessageShape, EnumShape]
_ELEMENT_TYPES = (ScalarShape, MessageShape, EnumShape)


@dataclass(frozen=True)
class RepeatedShape:
    """Ordered sequence of scalar, message or enum values."""

    inner: ElementShape

    def __post_init__(self) -> None:
        if not isinstance(self.inner, _ELEMENT_TYPES):
            raise TypeError(f"Repeated fields cannot contain {type(self.inner).__name__}")

    def references(self) -> Tuple[str, ...]:
        return self.inner.references()


@dataclass(frozen=True)
class MapShape:
    """Key/value mapping with a primitive key."""

    key: PrimitiveKind
    value: ElementShape

    def __post_init__(self) -> None:
        if not isinstance(self.value, _ELEMENT_TYPES):
            raise TypeError(f"Map values cannot be {type(self.value).__name__}")

    def references(self) -> Tuple[str, ...]:
        return self.value.references()


FieldShape = Union[ScalarShape, MessageShape, EnumShape, RepeatedShape, MapShape]


def qualify(package: str, path: Tuple[str, ...]) -> str:
    """Join a package and a nesting path into a dot-separated qualified name."""
    local = ".".join(path)
    return f"{package}.{local}" if package else local


@dataclass(frozen=True)
class FieldDef:
    """A single message field; ``message`` is the owning message's handle."""

    name: str
    shape: FieldShape
    number: int
    message: str


@dataclass(frozen=True)
class EnumMember:
    name: str
    value: int


@dataclass(frozen=True)
class EnumDef:
    """Enum definition with members kept in declaration order."""

    package: str
    path: Tuple[str, ...]
    members: Tuple[EnumMember, ...] = ()
    parent: Optional[str] = None
    is_command_id: bool = False

    @property
    def name(self) -> str:
        return self.path[-1]

    @property
    def local_name(self) -> str:
        return ".".join(self.path)

    @property
    def qualified_name(self) -> str:
        return qualify(self.package, self.path)

    @property
    def has_aliases(self) -> bool:
        values = [member.value for member in self.members]
        return len(values) != len(set(values))


@dataclass(frozen=True)
class MessageDef:
    """Message definition owning its fields and nested definitions."""

    package: str
    path: Tuple[str, ...]
    fields: Tuple[FieldDef, ...] = ()
    nested_messages: Tuple["MessageDef", ...] = ()
    nested_enums: Tuple[EnumDef, ...] = ()
    parent: Optional[str] = None
    is_command_holder: bool = False

    @property
    def name(self) -> str:
        return self.path[-1]

    @property
    def local_name(self) -> str:
        return ".".join(self.path)

    @property
    def qualified_name(self) -> str:
        return qualify(self.package, self.path)


Definition = Union[MessageDef, EnumDef]


@dataclass(frozen=True)
class SchemaGraph:
    """Immutable set of reconstructed definitions for one run.

    ``index`` maps every qualified name, nested ones included, to its
    definition. Construction fails when any field references a name that is
    not in the index.
    """

    messages: Tuple[MessageDef, ...] = ()
    enums: Tuple[EnumDef, ...] = ()
    index: Mapping[str, Definition] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        entries: Dict[str, Definition] = {}
        for definition in _walk(self.messages, self.enums):
            key = definition.qualified_name
            if key in entries:
                raise DuplicateDefinitionError(
                    f"Duplicate definition '{key}'", message_name=key
                )
            entries[key] = definition
        object.__setattr__(self, "index", MappingProxyType(entries))
        self._check_references()

    def _check_references(self) -> None:
        for message in self.iter_messages():
            for field_def in message.fields:
                for ref in field_def.shape.references():
                    target = self.index.get(ref)
                    expected = EnumDef if _is_enum_ref(field_def.shape) else MessageDef
                    if not isinstance(target, expected):
                        raise UnresolvedReferenceError(
                            f"{message.qualified_name}.{field_def.name} references "
                            f"unknown {expected.__name__[:-3].lower()} '{ref}'",
                            message_name=message.qualified_name,
                            field_name=field_def.name,
                        )

    def resolve(self, ref: str) -> Definition:
        try:
            return self.index[ref]
        except KeyError:
            raise UnresolvedReferenceError(f"Unknown definition '{ref}'") from None

    def walk(self) -> Iterator[Definition]:
        """Yield every definition, parents before their nested definitions."""
        return _walk(self.messages, self.enums)

    def iter_messages(self) -> Iterator[MessageDef]:
        for definition in self.walk():
            if isinstance(definition, MessageDef):
                yield definition

    def iter_enums(self) -> Iterator[EnumDef]:
        for definition in self.walk():
            if isinstance(definition, EnumDef):
                yield definition

    def packages(self) -> List[str]:
        return sorted({d.package for d in (*self.messages, *self.enums)})

    def top_level(self, package: str) -> List[Definition]:
        """Return the package's top-level definitions in qualified-name order."""
        selected: List[Definition] = [
            d for d in (*self.messages, *self.enums) if d.package == package
        ]
        return sorted(selected, key=lambda d: d.qualified_name)

    def __len__(self) -> int:
        return len(self.index)


def _is_enum_ref(shape: FieldShape) -> bool:
    if isinstance(shape, RepeatedShape):
        return isinstance(shape.inner, EnumShape)
    if isinstance(shape, MapShape):
        return isinstance(shape.value, EnumShape)
    return isinstance(shape, EnumShape)


def _walk(
    messages: Tuple[MessageDef, ...], enums: Tuple[EnumDef, ...]
) -> Iterator[Definition]:
    for enum_def in enums:
        yield enum_def
    for message in messages:
        yield message
        yield from _walk(message.nested_messages, message.nested_enums)


__all__ = [
    "Definition",
    "ElementShape",
    "EnumDef",
    "EnumMember",
    "EnumShape",
    "FieldDef",
    "FieldShape",
    "MapShape",
    "MessageDef",
    "MessageShape",
    "PrimitiveKind",
    "RepeatedShape",
    "ScalarShape",
    "SchemaGraph",
    "qualify",
]
