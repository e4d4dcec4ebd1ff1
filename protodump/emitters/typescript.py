"""TypeScript declaration emitter."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterator, List, Sequence, Tuple

from ..errors import EmissionError
from ..models import (
    Definition,
    ElementShape,
    EnumDef,
    EnumShape,
    FieldDef,
    MapShape,
    MessageDef,
    MessageShape,
    PrimitiveKind,
    RepeatedShape,
    ScalarShape,
    SchemaGraph,
)
from .base import Emitter, FilePlan
from .naming import TYPESCRIPT_RESERVED, escape_identifier, to_lower_camel_case

_INDENT = "  "

SCALAR_TYPES: Dict[PrimitiveKind, str] = {
    PrimitiveKind.INT32: "number",
    PrimitiveKind.UINT32: "number",
    PrimitiveKind.SINT32: "number",
    PrimitiveKind.FIXED32: "number",
    PrimitiveKind.SFIXED32: "number",
    PrimitiveKind.INT64: "bigint",
    PrimitiveKind.UINT64: "bigint",
    PrimitiveKind.SINT64: "bigint",
    PrimitiveKind.FIXED64: "bigint",
    PrimitiveKind.SFIXED64: "bigint",
    PrimitiveKind.FLOAT: "number",
    PrimitiveKind.DOUBLE: "number",
    PrimitiveKind.BOOL: "boolean",
    PrimitiveKind.STRING: "string",
    PrimitiveKind.BYTES: "Uint8Array",
}


@dataclass
class _Module:
    """Naming state of the module being rendered."""

    package: str
    aliases: Dict[str, str]
    self_referenced: bool = False


class TypeScriptEmitter(Emitter):
    """Renders one ``.ts`` module of interfaces and enums per package.

    Nested definitions live in an ``export namespace`` merged with their
    parent interface. Definitions from other packages are reached through a
    namespace import of that package's module. A same-package reference whose
    first segment is shadowed by a nested name in scope goes through an import
    of the module itself. Import aliases never equal a name declared in the
    module or another alias; clashes get ``_`` suffixes.
    """

    name = "typescript"
    default_extension = "ts"
    template_name = "typescript_file.j2"

    def render_file(self, graph: SchemaGraph, plan: FilePlan) -> str:
        definitions = graph.top_level(plan.package)
        top_level: Dict[str, str] = {}
        for definition in definitions:
            name = self._type_name(definition.name, definition.qualified_name)
            _claim(top_level, name, definition.name, definition.qualified_name)

        taken = set(_declared_names(definitions))
        aliases: Dict[str, str] = {}
        for package in (*plan.imports, plan.package):
            alias = self.module_alias(package)
            while alias in taken:
                alias = f"{alias}_"
            taken.add(alias)
            aliases[package] = alias
        module = _Module(plan.package, aliases)

        blocks: List[str] = []
        for definition in definitions:
            if isinstance(definition, EnumDef):
                lines = self._render_enum(definition, 0)
            else:
                lines = self._render_message(graph, definition, module, 0, ())
            blocks.append("\n".join(lines))

        imported = list(plan.imports)
        if module.self_referenced:
            imported.append(plan.package)
        imports: List[Tuple[str, str]] = [
            (aliases[package], self.file_stem(package)) for package in imported
        ]
        return self.render_template(imports=imports, blocks=blocks)

    @staticmethod
    def module_alias(package: str) -> str:
        return escape_identifier(
            package.replace(".", "_") or "_global",
            reserved=TYPESCRIPT_RESERVED,
            allow_dollar=True,
            qualified_name=package,
        )

    def _render_enum(self, enum_def: EnumDef, depth: int) -> List[str]:
        indent = _INDENT * depth
        lines = [f"{indent}export enum {self._type_name(enum_def.name, enum_def.qualified_name)} {{"]
        used: Dict[str, str] = {}
        for member in enum_def.members:
            name = self._identifier(member.name, enum_def.qualified_name, member.name)
            _claim(used, name, member.name, enum_def.qualified_name)
            lines.append(f"{indent}{_INDENT}{name} = {member.value},")
        lines.append(f"{indent}}}")
        return lines

    def _render_message(
        self,
        graph: SchemaGraph,
        message: MessageDef,
        module: _Module,
        depth: int,
        scopes: Tuple[FrozenSet[str], ...],
    ) -> List[str]:
        indent = _INDENT * depth
        name = self._type_name(message.name, message.qualified_name)

        nested_names: Dict[str, str] = {}
        for child in (*message.nested_enums, *message.nested_messages):
            _claim(
                nested_names,
                self._type_name(child.name, child.qualified_name),
                child.name,
                message.qualified_name,
            )
        scopes = scopes + (frozenset(nested_names),)

        body: List[str] = []
        used: Dict[str, str] = {}
        for field_def in message.fields:
            field_name = self._identifier(
                to_lower_camel_case(field_def.name), message.qualified_name, field_def.name
            )
            _claim(used, field_name, field_def.name, message.qualified_name)
            optional = "?" if isinstance(field_def.shape, MessageShape) else ""
            type_text = self._field_type(graph, field_def, module, scopes)
            body.append(f"{indent}{_INDENT}{field_name}{optional}: {type_text};")

        if body:
            lines = [f"{indent}export interface {name} {{", *body, f"{indent}}}"]
        else:
            lines = [f"{indent}export interface {name} {{}}"]

        if message.nested_enums or message.nested_messages:
            nested: List[List[str]] = [
                self._render_enum(enum_def, depth + 1) for enum_def in message.nested_enums
            ]
            nested.extend(
                self._render_message(graph, child, module, depth + 1, scopes)
                for child in message.nested_messages
            )
            lines.append("")
            lines.append(f"{indent}export namespace {name} {{")
            for index, block in enumerate(nested):
                if index:
                    lines.append("")
                lines.extend(block)
            lines.append(f"{indent}}}")
        return lines

    def _field_type(
        self,
        graph: SchemaGraph,
        field_def: FieldDef,
        module: _Module,
        scopes: Tuple[FrozenSet[str], ...],
    ) -> str:
        shape = field_def.shape
        if isinstance(shape, RepeatedShape):
            return f"{self._element_type(graph, shape.inner, module, scopes)}[]"
        if isinstance(shape, MapShape):
            key = "number" if SCALAR_TYPES[shape.key] == "number" else "string"
            value = self._element_type(graph, shape.value, module, scopes)
            return f"Record<{key}, {value}>"
        return self._element_type(graph, shape, module, scopes)

    def _element_type(
        self,
        graph: SchemaGraph,
        shape: ElementShape,
        module: _Module,
        scopes: Tuple[FrozenSet[str], ...],
    ) -> str:
        if isinstance(shape, ScalarShape):
            return SCALAR_TYPES[shape.kind]
        if not isinstance(shape, (MessageShape, EnumShape)):
            raise EmissionError(f"Unsupported element shape {shape!r}")
        target = graph.resolve(shape.ref)
        parts = [self._type_name(part, target.qualified_name) for part in target.path]
        path = ".".join(parts)
        if target.package != module.package:
            return f"{module.aliases[target.package]}.{path}"
        if any(parts[0] in names for names in scopes):
            module.self_referenced = True
            return f"{module.aliases[module.package]}.{path}"
        return path

    @staticmethod
    def _type_name(name: str, qualified_name: str) -> str:
        return escape_identifier(
            name, reserved=TYPESCRIPT_RESERVED, allow_dollar=True, qualified_name=qualified_name
        )

    @staticmethod
    def _identifier(name: str, qualified_name: str, field_name: str) -> str:
        return escape_identifier(
            name,
            reserved=TYPESCRIPT_RESERVED,
            allow_dollar=True,
            qualified_name=qualified_name,
            field_name=field_name,
        )


def _declared_names(definitions: Sequence[Definition]) -> Iterator[str]:
    for definition in definitions:
        yield TypeScriptEmitter._type_name(definition.name, definition.qualified_name)
        if isinstance(definition, MessageDef):
            yield from _declared_names((*definition.nested_enums, *definition.nested_messages))


def _claim(used: Dict[str, str], identifier: str, original: str, qualified_name: str) -> None:
    if identifier in used:
        raise EmissionError(
            f"{qualified_name}: {used[identifier]} and {original} both render as '{identifier}'",
            qualified_name=qualified_name,
            field_name=original,
        )
    used[identifier] = original


__all__ = ["SCALAR_TYPES", "TypeScriptEmitter"]
