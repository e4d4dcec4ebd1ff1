"""Proto3 IDL emitter."""

from __future__ import annotations

from collections import Counter
from typing import AbstractSet, Dict, FrozenSet, List, Sequence, Tuple

from ..errors import EmissionError
from ..models import (
    ElementShape,
    EnumDef,
    FieldDef,
    MapShape,
    MessageDef,
    RepeatedShape,
    ScalarShape,
    SchemaGraph,
)
from .base import Emitter, FilePlan
from .naming import escape_identifier, to_snake_case, to_upper_snake_case

_INDENT = "  "


class ProtoEmitter(Emitter):
    """Renders one ``.proto`` file per package.

    Top-level definitions appear in qualified-name order, nested definitions
    inside their parent, and fields in their declaration order. References
    within the package use the package-relative path unless a nested name in
    an enclosing message shadows its first segment; every other reference is
    fully qualified with a leading dot.
    """

    name = "proto"
    default_extension = "proto"
    template_name = "proto_file.j2"

    def render_file(self, graph: SchemaGraph, plan: FilePlan) -> str:
        definitions = graph.top_level(plan.package)
        prefixes = _member_prefixes(
            [d for d in definitions if isinstance(d, EnumDef)],
            {d.name for d in definitions},
        )
        blocks: List[str] = []
        for definition in definitions:
            if isinstance(definition, EnumDef):
                prefix = prefixes.get(definition.qualified_name, "")
                lines = self._render_enum(definition, 0, prefix)
            else:
                lines = self._render_message(graph, definition, plan.package, 0, ())
            blocks.append("\n".join(lines))
        return self.render_template(
            package=self._package_name(plan.package),
            imports=[self.file_name(imported) for imported in plan.imports],
            csharp_namespace=plan.package,
            blocks=blocks,
        )

    def _render_enum(self, enum_def: EnumDef, depth: int, prefix: str) -> List[str]:
        indent = _INDENT * depth
        name = escape_identifier(enum_def.name, qualified_name=enum_def.qualified_name)
        lines = [f"{indent}enum {name} {{"]
        if enum_def.has_aliases:
            lines.append(f"{indent}{_INDENT}option allow_alias = true;")
        for member in enum_def.members:
            member_name = escape_identifier(
                f"{prefix}{member.name}",
                qualified_name=enum_def.qualified_name,
                field_name=member.name,
            )
            lines.append(f"{indent}{_INDENT}{member_name} = {member.value};")
        lines.append(f"{indent}}}")
        return lines

    def _render_message(
        self,
        graph: SchemaGraph,
        message: MessageDef,
        package: str,
        depth: int,
        scopes: Tuple[FrozenSet[str], ...],
    ) -> List[str]:
        indent = _INDENT * depth
        name = escape_identifier(message.name, qualified_name=message.qualified_name)
        nested_names = frozenset(
            escape_identifier(d.name, qualified_name=d.qualified_name)
            for d in (*message.nested_enums, *message.nested_messages)
        )
        scopes = scopes + (nested_names,)

        fields: List[str] = []
        used: Dict[str, str] = {}
        for field_def in message.fields:
            field_name = escape_identifier(
                to_snake_case(field_def.name),
                qualified_name=message.qualified_name,
                field_name=field_def.name,
            )
            if field_name in used:
                raise EmissionError(
                    f"{message.qualified_name}: fields {used[field_name]} and {field_def.name} "
                    f"both render as '{field_name}'",
                    qualified_name=message.qualified_name,
                    field_name=field_def.name,
                )
            used[field_name] = field_def.name
            type_text = self._field_type(graph, message, field_def, package, scopes)
            fields.append(f"{indent}{_INDENT}{type_text} {field_name} = {field_def.number};")

        prefixes = _member_prefixes(
            message.nested_enums,
            {d.name for d in (*message.nested_enums, *message.nested_messages)} | set(used),
        )
        body: List[str] = []
        for enum_def in message.nested_enums:
            body.extend(self._render_enum(enum_def, depth + 1, prefixes.get(enum_def.qualified_name, "")))
        for nested in message.nested_messages:
            body.extend(self._render_message(graph, nested, package, depth + 1, scopes))
        body.extend(fields)

        if not body:
            return [f"{indent}message {name} {{}}"]
        return [f"{indent}message {name} {{", *body, f"{indent}}}"]

    def _field_type(
        self,
        graph: SchemaGraph,
        message: MessageDef,
        field_def: FieldDef,
        package: str,
        scopes: Tuple[FrozenSet[str], ...],
    ) -> str:
        shape = field_def.shape
        if isinstance(shape, RepeatedShape):
            return f"repeated {self._element_type(graph, shape.inner, package, scopes)}"
        if isinstance(shape, MapShape):
            if not shape.key.is_valid_map_key:
                raise EmissionError(
                    f"{message.qualified_name}.{field_def.name} uses {shape.key.value} as map key",
                    qualified_name=message.qualified_name,
                    field_name=field_def.name,
                )
            value = self._element_type(graph, shape.value, package, scopes)
            return f"map<{shape.key.value}, {value}>"
        return self._element_type(graph, shape, package, scopes)

    def _element_type(
        self,
        graph: SchemaGraph,
        shape: ElementShape,
        package: str,
        scopes: Tuple[FrozenSet[str], ...],
    ) -> str:
        if isinstance(shape, ScalarShape):
            return shape.kind.value
        target = graph.resolve(shape.ref)
        parts = [escape_identifier(part, qualified_name=target.qualified_name) for part in target.path]
        path = ".".join(parts)
        if target.package == package and not any(parts[0] in names for names in scopes):
            return path
        if not target.package:
            return f".{path}"
        return f".{self._package_name(target.package)}.{path}"

    @staticmethod
    def _package_name(package: str) -> str:
        if not package:
            return ""
        return ".".join(escape_identifier(part, qualified_name=package) for part in package.split("."))


def _member_prefixes(enums: Sequence[EnumDef], taken: AbstractSet[str] = frozenset()) -> Dict[str, str]:
    """Prefix members of enums whose names would clash in the enclosing scope.

    Proto enum values share the scope of their enum, so a member name may
    appear only once among sibling enums and must not equal the name of a
    sibling type or field (``taken``). Every enum taking part in such a clash
    gets its members prefixed with ``ENUM_NAME_``.
    """
    counts: Counter[str] = Counter()
    for enum_def in enums:
        counts.update({member.name for member in enum_def.members})
    clashing = {name for name, count in counts.items() if count > 1 or name in taken}
    prefixes: Dict[str, str] = {}
    for enum_def in enums:
        if any(member.name in clashing for member in enum_def.members):
            prefixes[enum_def.qualified_name] = f"{to_upper_snake_case(enum_def.name)}_"
    return prefixes


__all__ = ["ProtoEmitter"]
