"""Two-pass construction of the schema graph from a metadata source."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from ..config import DumperConfig
from ..errors import DuplicateDefinitionError, MetadataUnavailableError, MissingFieldNumberError
from ..logging import get_logger
from ..metadata.base import MetadataSource, TypeInfo
from ..models import EnumDef, EnumMember, FieldDef, MessageDef, SchemaGraph, qualify
from .classifier import DEFAULT_MAX_DEPTH, TypeClassifier, TypeKind
from .command_ids import CommandIdPredicate, predicate_for


@dataclass
class _Placeholder:
    info: TypeInfo
    kind: TypeKind
    package: str
    path: Tuple[str, ...]
    parent: Optional[str]
    owner: Optional[TypeInfo]
    fields: List[FieldDef] = field(default_factory=list)
    members: List[EnumMember] = field(default_factory=list)
    is_command_id: bool = False
    is_command_holder: bool = False

    @property
    def qualified_name(self) -> str:
        return qualify(self.package, self.path)


class SchemaBuilder:
    """Builds an immutable :class:`SchemaGraph` or fails with a ``SchemaError``.

    Pass 1 registers a placeholder for every message and enum so that fields
    can reference definitions in any order. Pass 2 fills in enum members and
    message fields, resolving every reference against the pass-1 registry.
    """

    def __init__(
        self,
        config: DumperConfig | None = None,
        *,
        command_id_predicate: CommandIdPredicate | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.config = config or DumperConfig()
        self.command_id_predicate = command_id_predicate or predicate_for(self.config)
        self.max_depth = max_depth
        self.logger = get_logger("extraction.builder")

    def build(self, source: MetadataSource) -> SchemaGraph:
        classifier = TypeClassifier(
            source,
            base_message_type=self.config.base_message_type,
            repeated_container_type=self.config.repeated_container_type,
            map_container_type=self.config.map_container_type,
            max_depth=self.max_depth,
        )
        placeholders = self._register(classifier)
        self.logger.info(
            "Registered %d messages and %d enums",
            sum(1 for p in placeholders.values() if p.kind is TypeKind.MESSAGE),
            sum(1 for p in placeholders.values() if p.kind is TypeKind.ENUM),
        )

        self._populate_enums(source, placeholders)
        self._populate_messages(source, classifier, placeholders)
        if self.config.prune_unreferenced_enums:
            self._prune_enums(placeholders)

        graph = self._freeze(placeholders)
        self.logger.info("Schema graph holds %d definitions", len(graph))
        return graph

    def _register(self, classifier: TypeClassifier) -> Dict[str, _Placeholder]:
        placeholders: Dict[str, _Placeholder] = {}
        for type_info in classifier.types():
            kind = classifier.classify(type_info)
            if kind not in (TypeKind.MESSAGE, TypeKind.ENUM):
                continue
            package, path, owner = self._locate(classifier, type_info)
            placeholder = _Placeholder(
                info=type_info,
                kind=kind,
                package=package,
                path=path,
                parent=qualify(package, path[:-1]) if owner is not None else None,
                owner=owner,
            )
            qualified_name = placeholder.qualified_name
            if qualified_name in placeholders:
                other = placeholders[qualified_name].info.full_name
                raise DuplicateDefinitionError(
                    f"{type_info.full_name} and {other} both map to '{qualified_name}'",
                    message_name=qualified_name,
                )
            placeholders[qualified_name] = placeholder
        return placeholders

    def _locate(
        self, classifier: TypeClassifier, type_info: TypeInfo, depth: int = 0
    ) -> Tuple[str, Tuple[str, ...], Optional[TypeInfo]]:
        """Return ``(package, path, nearest enclosing message)`` for a definition.

        Holders nested directly in a message (``Player.Types``) are dropped from
        the path. Any other enclosing type is folded into the local name, so
        ``Game.LoginPanel.State`` becomes ``Game.LoginPanel_State``.
        """
        folded = [type_info.name]
        outermost = type_info
        current = classifier.owner_of(type_info)
        while current is not None:
            depth += 1
            if depth > self.max_depth:
                raise MetadataUnavailableError(
                    f"Enclosing types of {type_info.full_name} exceed {self.max_depth} levels"
                )
            kind = classifier.classify(current)
            if kind is TypeKind.MESSAGE:
                package, path, _ = self._locate(classifier, current, depth)
                return package, path + ("_".join(reversed(folded)),), current
            if kind is not TypeKind.CONTAINER:
                folded.append(current.name)
            outermost = current
            current = classifier.owner_of(current)
        return outermost.namespace, ("_".join(reversed(folded)),), None

    def _populate_enums(
        self, source: MetadataSource, placeholders: Dict[str, _Placeholder]
    ) -> None:
        dropped: List[str] = []
        for qualified_name, placeholder in placeholders.items():
            if placeholder.kind is not TypeKind.ENUM:
                continue
            members = list(source.list_enum_members(placeholder.info))
            placeholder.members = [EnumMember(name=n, value=v) for n, v in members]
            if not self.command_id_predicate(placeholder.info, members, placeholder.owner):
                continue
            placeholder.is_command_id = True
            if placeholder.parent is not None:
                placeholders[placeholder.parent].is_command_holder = True
            if not self.config.include_command_id_enums:
                dropped.append(qualified_name)

        for qualified_name in dropped:
            del placeholders[qualified_name]
        if dropped:
            self.logger.info("Skipped %d command-id enums", len(dropped))

    def _populate_messages(
        self,
        source: MetadataSource,
        classifier: TypeClassifier,
        placeholders: Dict[str, _Placeholder],
    ) -> None:
        registry = {
            p.info.full_name: (p.kind, qualified_name)
            for qualified_name, p in placeholders.items()
        }
        for qualified_name, placeholder in placeholders.items():
            if placeholder.kind is not TypeKind.MESSAGE:
                continue
            numbers: Dict[int, str] = {}
            names: Set[str] = set()
            for field_info in source.list_fields(placeholder.info):
                number = source.get_field_ordinal(field_info)
                if number is None or isinstance(number, bool) or number <= 0:
                    raise MissingFieldNumberError(
                        f"{qualified_name}.{field_info.name} has no usable field number",
                        message_name=qualified_name,
                        field_name=field_info.name,
                    )
                if number in numbers:
                    raise DuplicateDefinitionError(
                        f"{qualified_name}.{field_info.name} reuses field number {number} "
                        f"of {numbers[number]}",
                        message_name=qualified_name,
                        field_name=field_info.name,
                    )
                if field_info.name in names:
                    raise DuplicateDefinitionError(
                        f"{qualified_name} declares field {field_info.name} twice",
                        message_name=qualified_name,
                        field_name=field_info.name,
                    )
                shape = classifier.resolve_shape(
                    source.get_field_type(field_info),
                    registry,
                    message_name=qualified_name,
                    field_name=field_info.name,
                )
                numbers[number] = field_info.name
                names.add(field_info.name)
                placeholder.fields.append(
                    FieldDef(name=field_info.name, shape=shape, number=number, message=qualified_name)
                )
            self.logger.debug("%s: %d fields", qualified_name, len(placeholder.fields))

    def _prune_enums(self, placeholders: Dict[str, _Placeholder]) -> None:
        referenced: Set[str] = set()
        for placeholder in placeholders.values():
            for field_def in placeholder.fields:
                referenced.update(field_def.shape.references())
        unused = [
            name
            for name, p in placeholders.items()
            if p.kind is TypeKind.ENUM and p.parent is None and name not in referenced
        ]
        for name in unused:
            del placeholders[name]
        if unused:
            self.logger.info("Pruned %d unreferenced enums", len(unused))

    def _freeze(self, placeholders: Dict[str, _Placeholder]) -> SchemaGraph:
        children: Dict[Optional[str], List[_Placeholder]] = defaultdict(list)
        for qualified_name in sorted(placeholders):
            placeholder = placeholders[qualified_name]
            children[placeholder.parent].append(placeholder)

        def freeze_enum(placeholder: _Placeholder) -> EnumDef:
            return EnumDef(
                package=placeholder.package,
                path=placeholder.path,
                members=tuple(placeholder.members),
                parent=placeholder.parent,
                is_command_id=placeholder.is_command_id,
            )

        def freeze_message(placeholder: _Placeholder) -> MessageDef:
            nested = children.get(placeholder.qualified_name, [])
            return MessageDef(
                package=placeholder.package,
                path=placeholder.path,
                fields=tuple(placeholder.fields),
                nested_messages=tuple(
                    freeze_message(p) for p in nested if p.kind is TypeKind.MESSAGE
                ),
                nested_enums=tuple(freeze_enum(p) for p in nested if p.kind is TypeKind.ENUM),
                parent=placeholder.parent,
                is_command_holder=placeholder.is_command_holder,
            )

        roots = children.get(None, [])
        return SchemaGraph(
            messages=tuple(freeze_message(p) for p in roots if p.kind is TypeKind.MESSAGE),
            enums=tuple(freeze_enum(p) for p in roots if p.kind is TypeKind.ENUM),
        )


def build_schema(source: MetadataSource, config: DumperConfig | None = None) -> SchemaGraph:
    """Convenience wrapper around :class:`SchemaBuilder`."""
    return SchemaBuilder(config).build(source)


__all__ = ["SchemaBuilder", "build_schema"]
