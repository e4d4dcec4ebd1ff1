"""Structural classification of metadata types and field shapes."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

from ..config import DumperConfig
from ..errors import MetadataUnavailableError, UnmappedPrimitiveError, UnresolvedReferenceError
from ..logging import get_logger
from ..metadata.base import MetadataSource, TypeInfo, TypeRef, normalize_type_name
from ..models import (
    ElementShape,
    EnumShape,
    FieldShape,
    MapShape,
    MessageShape,
    PrimitiveKind,
    RepeatedShape,
    ScalarShape,
)

DEFAULT_MAX_DEPTH = 64


class TypeKind(str, Enum):
    """What a metadata type contributes to the schema."""

    MESSAGE = "message"
    ENUM = "enum"
    CONTAINER = "container"
    IGNORE = "ignore"


PRIMITIVE_TYPES: Dict[str, PrimitiveKind] = {
    "System.Int32": PrimitiveKind.INT32,
    "System.Int16": PrimitiveKind.INT32,
    "System.SByte": PrimitiveKind.INT32,
    "System.UInt32": PrimitiveKind.UINT32,
    "System.UInt16": PrimitiveKind.UINT32,
    "System.Byte": PrimitiveKind.UINT32,
    "System.Int64": PrimitiveKind.INT64,
    "System.UInt64": PrimitiveKind.UINT64,
    "System.Single": PrimitiveKind.FLOAT,
    "System.Double": PrimitiveKind.DOUBLE,
    "System.Boolean": PrimitiveKind.BOOL,
    "System.String": PrimitiveKind.STRING,
    "System.Byte[]": PrimitiveKind.BYTES,
    "Google.Protobuf.ByteString": PrimitiveKind.BYTES,
    "int": PrimitiveKind.INT32,
    "short": PrimitiveKind.INT32,
    "sbyte": PrimitiveKind.INT32,
    "uint": PrimitiveKind.UINT32,
    "ushort": PrimitiveKind.UINT32,
    "byte": PrimitiveKind.UINT32,
    "long": PrimitiveKind.INT64,
    "ulong": PrimitiveKind.UINT64,
    "float": PrimitiveKind.FLOAT,
    "double": PrimitiveKind.DOUBLE,
    "bool": PrimitiveKind.BOOL,
    "string": PrimitiveKind.STRING,
    "byte[]": PrimitiveKind.BYTES,
}

# Registered definitions keyed by full type name: (kind, qualified name).
Registry = Mapping[str, Tuple[TypeKind, str]]


def signature_matches(name: str, signature: str, arity: int = 0) -> bool:
    """Compare a reported type name against a configured signature.

    Names are compared as strings. A missing ```N`` arity suffix is supplied
    from ``arity``; a reported name without a namespace is compared with the
    signature's last segment.
    """
    candidate = normalize_type_name(name)
    target = normalize_type_name(signature)
    if arity:
        if "`" not in candidate:
            candidate = f"{candidate}`{arity}"
        if "`" not in target:
            target = f"{target}`{arity}"
    if candidate == target:
        return True
    if "." not in candidate:
        return candidate == target.rsplit(".", 1)[-1]
    return False


def primitive_kind(ref: TypeRef) -> Optional[PrimitiveKind]:
    if ref.args:
        return None
    name = normalize_type_name(ref.name)
    kind = PRIMITIVE_TYPES.get(name)
    if kind is None and "." not in name:
        kind = PRIMITIVE_TYPES.get(f"System.{name}")
        if kind is None and name == "ByteString":
            kind = PrimitiveKind.BYTES
    return kind


class TypeClassifier:
    """Decides which metadata types are messages or enums and shapes their fields."""

    def __init__(
        self,
        source: MetadataSource,
        *,
        base_message_type: str,
        repeated_container_type: str,
        map_container_type: str,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.source = source
        self.base_message_type = base_message_type
        self.repeated_container_type = repeated_container_type
        self.map_container_type = map_container_type
        self.max_depth = max_depth
        self.logger = get_logger("extraction.classifier")
        self._types: Dict[str, TypeInfo] = {}
        self._owners: Dict[str, TypeInfo] = {}
        self._kinds: Dict[str, TypeKind] = {}
        self._index_source()

    @classmethod
    def from_config(cls, source: MetadataSource, config: DumperConfig) -> "TypeClassifier":
        return cls(
            source,
            base_message_type=config.base_message_type,
            repeated_container_type=config.repeated_container_type,
            map_container_type=config.map_container_type,
        )

    def types(self) -> Tuple[TypeInfo, ...]:
        return tuple(self._types.values())

    def owner_of(self, type_info: TypeInfo) -> Optional[TypeInfo]:
        """Return the type that declares ``type_info``, if it is nested."""
        return self._owners.get(type_info.full_name)

    def classify(self, type_info: TypeInfo) -> TypeKind:
        cached = self._kinds.get(type_info.full_name)
        if cached is not None:
            return cached

        if type_info.is_enum:
            kind = TypeKind.ENUM
        elif self._inherits_message_base(type_info):
            kind = TypeKind.MESSAGE
        else:
            owner = self.owner_of(type_info)
            if owner is not None and self.classify(owner) is TypeKind.MESSAGE:
                kind = TypeKind.CONTAINER
            else:
                kind = TypeKind.IGNORE
        self._kinds[type_info.full_name] = kind
        self.logger.debug("Classified %s as %s", type_info.full_name, kind.value)
        return kind

    def resolve_shape(
        self,
        declared: TypeRef,
        registry: Registry,
        *,
        message_name: str,
        field_name: str,
    ) -> FieldShape:
        """Derive the shape of a field from its declared type.

        ``registry`` may contain definitions whose fields are not populated
        yet, so forward and mutual references resolve.
        """
        context = (message_name, field_name)
        if not declared.args:
            return self._element_shape(declared, registry, context)

        arity = len(declared.args)
        if arity == 2 and (
            signature_matches(declared.name, self.map_container_type, 2)
            or signature_matches(declared.name, self.repeated_container_type, 2)
        ):
            key = primitive_kind(declared.args[0])
            if key is None or not key.is_valid_map_key:
                raise UnmappedPrimitiveError(
                    f"{message_name}.{field_name} has unsupported map key type {declared.args[0]}",
                    message_name=message_name,
                    field_name=field_name,
                )
            value = self._element_shape(declared.args[1], registry, context)
            return MapShape(key=key, value=value)
        if arity == 1 and signature_matches(declared.name, self.repeated_container_type, 1):
            return RepeatedShape(inner=self._element_shape(declared.args[0], registry, context))

        raise UnmappedPrimitiveError(
            f"{message_name}.{field_name} has unrecognised container type {declared}",
            message_name=message_name,
            field_name=field_name,
        )

    def _element_shape(
        self, ref: TypeRef, registry: Registry, context: Tuple[str, str]
    ) -> ElementShape:
        message_name, field_name = context
        if ref.args:
            raise UnmappedPrimitiveError(
                f"{message_name}.{field_name} nests container type {ref} inside a container",
                message_name=message_name,
                field_name=field_name,
            )

        name = normalize_type_name(ref.name)
        registered = registry.get(name)
        if registered is not None:
            kind, qualified_name = registered
            if kind is TypeKind.ENUM:
                return EnumShape(ref=qualified_name)
            return MessageShape(ref=qualified_name)

        kind = primitive_kind(ref)
        if kind is not None:
            return ScalarShape(kind=kind)

        if name in self._types:
            raise UnresolvedReferenceError(
                f"{message_name}.{field_name} references {name}, which is not a "
                "message or enum in the schema",
                message_name=message_name,
                field_name=field_name,
            )
        raise UnmappedPrimitiveError(
            f"{message_name}.{field_name} has unmapped type {name}",
            message_name=message_name,
            field_name=field_name,
        )

    def _inherits_message_base(self, type_info: TypeInfo) -> bool:
        current: Optional[TypeInfo] = type_info
        for _ in range(self.max_depth):
            if current is None:
                return False
            base = self.source.get_base_type(current)
            if not base:
                return False
            if signature_matches(base, self.base_message_type):
                return True
            current = self._types.get(normalize_type_name(base))
        raise MetadataUnavailableError(
            f"Base type chain of {type_info.full_name} exceeds {self.max_depth} levels"
        )

    def _index_source(self) -> None:
        for type_info in self.source.enumerate_types():
            self._types[type_info.full_name] = type_info
        for type_info in self._types.values():
            for nested in self.source.list_nested_types(type_info):
                self._owners[nested.full_name] = type_info


__all__ = [
    "PRIMITIVE_TYPES",
    "Registry",
    "TypeClassifier",
    "TypeKind",
    "primitive_kind",
    "signature_matches",
]
