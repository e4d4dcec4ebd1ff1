"""Metadata source backed by a YAML/JSON dump of a type table.

A snapshot is a mapping with a ``types`` list. Each entry names a type and
optionally its namespace, enclosing type, base type, fields and enum members::

    types:
      - name: Player
        namespace: Game
        base: Google.Protobuf.MessageBase
        fields:
          - {name: id, type: System.Int32, ordinal: 1}
          - {name: items, type: "Google.Protobuf.Collections.RepeatedMessageField`1<Game.Item>", ordinal: 2}
      - name: Kind
        declaring_type: Game.Player
        enum: true
        members:
          - {name: None, value: 0}

Names follow Cecil conventions; ``/`` separated nested names are accepted.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import yaml

from ..logging import get_logger
from .base import (
    FieldInfo,
    MetadataSource,
    MetadataUnavailableError,
    TypeInfo,
    TypeRef,
    normalize_type_name,
    parse_type_ref,
)


_MAX_NESTING = 64


@dataclass
class _TypeEntry:
    info: TypeInfo
    base: Optional[str]
    declaring_type: Optional[str]
    fields: List[FieldInfo] = field(default_factory=list)
    members: List[Tuple[str, int]] = field(default_factory=list)
    nested: List[TypeInfo] = field(default_factory=list)


class SnapshotSource(MetadataSource):
    """Serves metadata queries from an in-memory snapshot document."""

    def __init__(self, document: Mapping[str, Any]) -> None:
        self.logger = get_logger("metadata.snapshot")
        self._entries: Dict[str, _TypeEntry] = {}
        self._order: List[str] = []
        self._field_types: Dict[Tuple[str, str], TypeRef] = {}
        self._field_ordinals: Dict[Tuple[str, str], Optional[int]] = {}
        self._load(document)

    @classmethod
    def from_path(cls, path: Path) -> "SnapshotSource":
        """Load a snapshot from a ``.yml``/``.yaml``/``.json`` file."""
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise MetadataUnavailableError(f"Cannot read snapshot {path}: {exc}") from exc
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise MetadataUnavailableError(f"Failed to parse {path.name}: {exc}") from exc
        if not isinstance(document, dict):
            raise MetadataUnavailableError(f"{path.name} must contain a mapping at the root")
        return cls(document)

    def enumerate_types(self) -> Sequence[TypeInfo]:
        return [self._entries[name].info for name in self._order]

    def get_base_type(self, type_info: TypeInfo) -> Optional[str]:
        return self._entry(type_info).base

    def list_fields(self, type_info: TypeInfo) -> Sequence[FieldInfo]:
        return list(self._entry(type_info).fields)

    def list_nested_types(self, type_info: TypeInfo) -> Sequence[TypeInfo]:
        return list(self._entry(type_info).nested)

    def list_enum_members(self, type_info: TypeInfo) -> Sequence[Tuple[str, int]]:
        entry = self._entry(type_info)
        if not entry.info.is_enum:
            raise MetadataUnavailableError(f"{type_info.full_name} is not an enum")
        return list(entry.members)

    def get_field_type(self, field_info: FieldInfo) -> TypeRef:
        key = (field_info.declaring_type, field_info.name)
        if key not in self._field_types:
            raise MetadataUnavailableError(
                f"No type recorded for {field_info.declaring_type}.{field_info.name}"
            )
        return self._field_types[key]

    def get_field_ordinal(self, field_info: FieldInfo) -> Optional[int]:
        key = (field_info.declaring_type, field_info.name)
        if key not in self._field_ordinals:
            raise MetadataUnavailableError(
                f"Unknown field {field_info.declaring_type}.{field_info.name}"
            )
        return self._field_ordinals[key]

    def _entry(self, type_info: TypeInfo) -> _TypeEntry:
        entry = self._entries.get(type_info.full_name)
        if entry is None:
            raise MetadataUnavailableError(f"Unknown type {type_info.full_name}")
        return entry

    def _load(self, document: Mapping[str, Any]) -> None:
        raw_types = document.get("types")
        if not isinstance(raw_types, list):
            raise MetadataUnavailableError("Snapshot must contain a 'types' list")

        for raw in raw_types:
            if not isinstance(raw, dict):
                raise MetadataUnavailableError("Snapshot type entries must be mappings")
            entry = self._parse_type(raw)
            full_name = entry.info.full_name
            if full_name in self._entries:
                raise MetadataUnavailableError(f"Type {full_name} listed twice in snapshot")
            self._entries[full_name] = entry
            self._order.append(full_name)

        for name in self._order:
            entry = self._entries[name]
            if entry.declaring_type is not None and not entry.info.namespace:
                entry.info = replace(entry.info, namespace=self._root_namespace(name))

        for name in self._order:
            entry = self._entries[name]
            if entry.declaring_type is None:
                continue
            owner = self._entries.get(entry.declaring_type)
            if owner is None:
                raise MetadataUnavailableError(
                    f"{name} declares unknown enclosing type {entry.declaring_type}"
                )
            owner.nested.append(entry.info)

        self.logger.debug("Loaded snapshot with %d types", len(self._order))

    def _parse_type(self, raw: Mapping[str, Any]) -> _TypeEntry:
        declaring = _as_name(raw.get("declaring_type"))
        full_name = _as_name(raw.get("full_name"))
        name = _as_name(raw.get("name"))
        namespace = _as_name(raw.get("namespace")) or ""

        if full_name is None:
            if name is None:
                raise MetadataUnavailableError("Snapshot type entry has no name")
            prefix = declaring or namespace
            full_name = f"{prefix}.{name}" if prefix else name
        if name is None:
            name = full_name.rsplit(".", 1)[-1]
        if declaring is None and "/" in str(raw.get("full_name", "")):
            declaring = normalize_type_name(str(raw["full_name"]).rsplit("/", 1)[0])
        if declaring is None and not namespace and full_name != name:
            namespace = full_name[: -len(name) - 1]

        info = TypeInfo(
            full_name=full_name,
            name=name,
            namespace=namespace,
            is_enum=bool(raw.get("enum", False)),
        )
        entry = _TypeEntry(info=info, base=_as_name(raw.get("base")), declaring_type=declaring)

        for raw_field in raw.get("fields") or []:
            entry.fields.append(self._parse_field(full_name, raw_field))
        for raw_member in raw.get("members") or []:
            entry.members.append(_parse_member(full_name, raw_member))
        return entry

    def _parse_field(self, declaring: str, raw: Any) -> FieldInfo:
        if not isinstance(raw, dict) or not raw.get("name"):
            raise MetadataUnavailableError(f"Malformed field entry on {declaring}")
        info = FieldInfo(name=str(raw["name"]), declaring_type=declaring)
        key = (declaring, info.name)
        if key in self._field_types:
            raise MetadataUnavailableError(f"Field {declaring}.{info.name} listed twice")
        self._field_types[key] = _parse_type_value(raw.get("type"), declaring, info.name)
        ordinal = raw.get("ordinal")
        if ordinal is not None and (isinstance(ordinal, bool) or not isinstance(ordinal, int)):
            raise MetadataUnavailableError(
                f"Ordinal of {declaring}.{info.name} must be an integer"
            )
        self._field_ordinals[key] = ordinal
        return info

    def _root_namespace(self, full_name: str) -> str:
        entry = self._entries[full_name]
        for _ in range(_MAX_NESTING):
            if entry.declaring_type is None:
                return entry.info.namespace
            owner = self._entries.get(entry.declaring_type)
            if owner is None:
                raise MetadataUnavailableError(
                    f"{full_name} declares unknown enclosing type {entry.declaring_type}"
                )
            entry = owner
        raise MetadataUnavailableError(f"Enclosing types of {full_name} form a cycle")


def _as_name(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return normalize_type_name(value)
    return None


def _parse_type_value(value: Any, declaring: str, field_name: str) -> TypeRef:
    if isinstance(value, str):
        return parse_type_ref(value)
    if isinstance(value, dict) and isinstance(value.get("name"), str):
        args = tuple(
            _parse_type_value(arg, declaring, field_name) for arg in value.get("args") or []
        )
        name = normalize_type_name(value["name"])
        if args and "`" not in name:
            name = f"{name}`{len(args)}"
        return TypeRef(name=name, args=args)
    raise MetadataUnavailableError(f"Missing type for {declaring}.{field_name}")


def _parse_member(declaring: str, raw: Any) -> Tuple[str, int]:
    if isinstance(raw, dict) and "name" in raw and isinstance(raw.get("value"), int):
        return str(raw["name"]), int(raw["value"])
    raise MetadataUnavailableError(f"Malformed enum member on {declaring}")


__all__ = ["SnapshotSource"]
