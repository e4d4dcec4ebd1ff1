"""Metadata source reading C# declarations with tree-sitter.

Works on decompiled or dummy-assembly C# sources (for example the output of
an IL2CPP dumper run through a decompiler). Field numbers come from either
the ``<Name>FieldNumber`` constants emitted by the protobuf C# generator or
from ``[ProtoMember(N)]`` attributes; enum member names honour
``[OriginalName("...")]``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import tree_sitter_c_sharp as tscsharp
from tree_sitter import Language, Node, Parser

from ..logging import get_logger
from .base import (
    FieldInfo,
    MetadataSource,
    MetadataUnavailableError,
    TypeInfo,
    TypeRef,
    normalize_type_name,
)

CSHARP_LANGUAGE = Language(tscsharp.language())

_TYPE_DECLARATIONS = {
    "class_declaration",
    "struct_declaration",
    "interface_declaration",
    "record_declaration",
    "enum_declaration",
}
_FIELD_NUMBER_SUFFIX = "FieldNumber"
_ORDINAL_ATTRIBUTES = {"ProtoMember", "ProtoMemberAttribute"}
_ORIGINAL_NAME_ATTRIBUTES = {"OriginalName", "OriginalNameAttribute"}
_USING_PATTERN = re.compile(
    r"^using\s+(?:static\s+)?(?:(?P<alias>\w+)\s*=\s*)?(?:global::)?(?P<target>[\w.`<>, ]+?)\s*;$"
)
_STRING_LITERAL = re.compile(r'"((?:[^"\\]|\\.)*)"')
_INT_LITERAL = re.compile(r"^([+-]?)\s*(0[xX][0-9a-fA-F_]+|0[bB][01_]+|[0-9][0-9_]*)[uUlL]*$")


@dataclass
class _Scope:
    namespace: str
    usings: Tuple[str, ...] = ()
    aliases: Mapping[str, str] = field(default_factory=dict)
    enclosing: Tuple[str, ...] = ()

    def nested(self, full_name: str) -> "_Scope":
        return _Scope(self.namespace, self.usings, self.aliases, self.enclosing + (full_name,))


@dataclass
class _Member:
    type_node: Node
    source: bytes
    ordinal: Optional[int]


@dataclass
class _Declared:
    info: TypeInfo
    scope: _Scope
    source: bytes
    base_node: Optional[Node] = None
    nested: List[TypeInfo] = field(default_factory=list)
    field_order: List[str] = field(default_factory=list)
    members: Dict[str, _Member] = field(default_factory=dict)
    enum_members: List[Tuple[str, int]] = field(default_factory=list)


class CSharpSource(MetadataSource):
    """Serves metadata queries from parsed C# declaration sources."""

    def __init__(self, sources: Mapping[str, bytes]) -> None:
        self.logger = get_logger("metadata.csharp")
        self._parser = Parser(CSHARP_LANGUAGE)
        self._types: Dict[str, _Declared] = {}
        self._order: List[str] = []
        self._type_refs: Dict[Tuple[str, str], TypeRef] = {}
        for name in sorted(sources):
            self._parse_source(name, sources[name])
        self.logger.info("Parsed %d C# types from %d sources", len(self._order), len(sources))

    @classmethod
    def from_path(cls, path: Path) -> "CSharpSource":
        """Load a single ``.cs`` file or every ``.cs`` file below a directory."""
        if path.is_dir():
            files = sorted(p for p in path.rglob("*.cs") if p.is_file())
        else:
            files = [path]
        if not files:
            raise MetadataUnavailableError(f"No C# sources found under {path}")
        sources: Dict[str, bytes] = {}
        for file_path in files:
            try:
                sources[str(file_path)] = file_path.read_bytes()
            except OSError as exc:
                raise MetadataUnavailableError(f"Cannot read {file_path}: {exc}") from exc
        return cls(sources)

    @classmethod
    def from_text(cls, text: str, name: str = "<memory>.cs") -> "CSharpSource":
        return cls({name: text.encode("utf-8")})

    def enumerate_types(self) -> Sequence[TypeInfo]:
        return [self._types[name].info for name in self._order]

    def get_base_type(self, type_info: TypeInfo) -> Optional[str]:
        declared = self._declared(type_info.full_name)
        if declared.base_node is None:
            return None
        outer_scope = _Scope(
            declared.scope.namespace,
            declared.scope.usings,
            declared.scope.aliases,
            declared.scope.enclosing[:-1],
        )
        return self._type_ref(declared.base_node, declared.source, outer_scope).name

    def list_fields(self, type_info: TypeInfo) -> Sequence[FieldInfo]:
        declared = self._declared(type_info.full_name)
        return [FieldInfo(name=name, declaring_type=type_info.full_name) for name in declared.field_order]

    def list_nested_types(self, type_info: TypeInfo) -> Sequence[TypeInfo]:
        return list(self._declared(type_info.full_name).nested)

    def list_enum_members(self, type_info: TypeInfo) -> Sequence[Tuple[str, int]]:
        declared = self._declared(type_info.full_name)
        if not declared.info.is_enum:
            raise MetadataUnavailableError(f"{type_info.full_name} is not an enum")
        return list(declared.enum_members)

    def get_field_type(self, field_info: FieldInfo) -> TypeRef:
        key = (field_info.declaring_type, field_info.name)
        cached = self._type_refs.get(key)
        if cached is not None:
            return cached
        declared = self._declared(field_info.declaring_type)
        member = self._member(declared, field_info)
        ref = self._type_ref(member.type_node, member.source, declared.scope)
        self._type_refs[key] = ref
        return ref

    def get_field_ordinal(self, field_info: FieldInfo) -> Optional[int]:
        declared = self._declared(field_info.declaring_type)
        return self._member(declared, field_info).ordinal

    def _declared(self, full_name: str) -> _Declared:
        declared = self._types.get(full_name)
        if declared is None:
            raise MetadataUnavailableError(f"Unknown type {full_name}")
        return declared

    @staticmethod
    def _member(declared: _Declared, field_info: FieldInfo) -> _Member:
        member = declared.members.get(field_info.name)
        if member is None:
            raise MetadataUnavailableError(
                f"Unknown field {field_info.declaring_type}.{field_info.name}"
            )
        return member

    # Parsing

    def _parse_source(self, name: str, source: bytes) -> None:
        tree = self._parser.parse(source)
        if tree.root_node.has_error:
            self.logger.warning("%s contains syntax errors; declarations may be incomplete", name)
        self._walk_container(tree.root_node, source, _Scope(namespace=""))

    def _walk_container(self, node: Node, source: bytes, scope: _Scope) -> None:
        usings = list(scope.usings)
        aliases = dict(scope.aliases)
        current = scope
        for child in node.named_children:
            kind = child.type
            if kind == "using_directive":
                self._add_using(_text(child, source), usings, aliases)
                current = _Scope(current.namespace, tuple(usings), dict(aliases))
            elif kind == "namespace_declaration":
                namespace = _join(current.namespace, _text(child.child_by_field_name("name"), source))
                body = child.child_by_field_name("body")
                if body is not None:
                    self._walk_container(body, source, _Scope(namespace, current.usings, current.aliases))
            elif kind == "file_scoped_namespace_declaration":
                namespace = _join(current.namespace, _text(child.child_by_field_name("name"), source))
                current = _Scope(namespace, current.usings, current.aliases)
                # Newer grammars nest the following declarations inside this node.
                self._walk_container(child, source, current)
            elif kind in _TYPE_DECLARATIONS:
                self._declare(child, source, current, None)

    @staticmethod
    def _add_using(text: str, usings: List[str], aliases: Dict[str, str]) -> None:
        match = _USING_PATTERN.match(" ".join(text.split()))
        if not match:
            return
        target = normalize_type_name(match.group("target").replace("global::", ""))
        if match.group("alias"):
            aliases[match.group("alias")] = target
        elif target not in usings:
            usings.append(target)

    def _declare(
        self, node: Node, source: bytes, scope: _Scope, outer: Optional[_Declared]
    ) -> None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return
        name = _text(name_node, source)
        type_parameters = _first_child(node, "type_parameter_list")
        if type_parameters is not None:
            name = f"{name}`{len(type_parameters.named_children)}"
        full_name = f"{outer.info.full_name}.{name}" if outer else _join(scope.namespace, name)

        declared = self._types.get(full_name)
        if declared is None:
            info = TypeInfo(
                full_name=full_name,
                name=name,
                namespace=scope.namespace,
                is_enum=node.type == "enum_declaration",
            )
            declared = _Declared(info=info, scope=scope.nested(full_name), source=source)
            self._types[full_name] = declared
            self._order.append(full_name)
            if outer is not None:
                outer.nested.append(info)

        base_list = _first_child(node, "base_list")
        if base_list is not None and declared.base_node is None and base_list.named_children:
            base = base_list.named_children[0]
            if base.type == "primary_constructor_base_type" and base.named_children:
                base = base.named_children[0]
            declared.base_node = base
            declared.source = source

        body = node.child_by_field_name("body")
        if body is None:
            return
        if declared.info.is_enum:
            self._collect_enum_members(declared, body, source)
            return

        constants: List[Tuple[str, int]] = []
        for child in body.named_children:
            if child.type in _TYPE_DECLARATIONS:
                self._declare(child, source, declared.scope, declared)
            elif child.type == "field_declaration":
                self._collect_field(declared, child, source, constants)
            elif child.type == "property_declaration":
                self._collect_property(declared, child, source)
        self._bind_field_numbers(declared, constants)

    def _collect_field(
        self,
        declared: _Declared,
        node: Node,
        source: bytes,
        constants: List[Tuple[str, int]],
    ) -> None:
        modifiers = _modifiers(node, source)
        declaration = _first_child(node, "variable_declaration")
        if declaration is None:
            return
        type_node = declaration.child_by_field_name("type")
        for declarator in declaration.named_children:
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name") or _first_child(declarator, "identifier")
            if name_node is None:
                continue
            name = _text(name_node, source)
            if "const" in modifiers:
                value = _declarator_value(declarator, name_node)
                number = _eval_int(value, source, {}) if value is not None else None
                if name.endswith(_FIELD_NUMBER_SUFFIX) and number is not None:
                    constants.append((name[: -len(_FIELD_NUMBER_SUFFIX)], number))
                continue
            if "static" in modifiers or type_node is None:
                continue
            self._add_member(declared, name, type_node, source, _attribute_ordinal(node, source))

    def _collect_property(self, declared: _Declared, node: Node, source: bytes) -> None:
        if "static" in _modifiers(node, source):
            return
        name_node = node.child_by_field_name("name")
        type_node = node.child_by_field_name("type")
        if name_node is None or type_node is None:
            return
        self._add_member(declared, _text(name_node, source), type_node, source, _attribute_ordinal(node, source))

    @staticmethod
    def _add_member(
        declared: _Declared, name: str, type_node: Node, source: bytes, ordinal: Optional[int]
    ) -> None:
        existing = declared.members.get(name)
        if existing is not None and existing.ordinal is not None:
            return
        declared.members[name] = _Member(type_node=type_node, source=source, ordinal=ordinal)
        if ordinal is not None and name not in declared.field_order:
            declared.field_order.append(name)

    def _bind_field_numbers(self, declared: _Declared, constants: List[Tuple[str, int]]) -> None:
        # Generated code pairs ``XFieldNumber`` with property ``X`` and backing field ``x_``.
        for name, number in constants:
            member = declared.members.get(name)
            if member is None:
                backing = declared.members.get(f"{name[:1].lower()}{name[1:]}_")
                if backing is None:
                    raise MetadataUnavailableError(
                        f"{declared.info.full_name} declares {name}{_FIELD_NUMBER_SUFFIX} "
                        f"but no matching property or field"
                    )
                member = backing
            declared.members[name] = _Member(member.type_node, member.source, number)
            if name not in declared.field_order:
                declared.field_order.append(name)

    def _collect_enum_members(self, declared: _Declared, body: Node, source: bytes) -> None:
        known: Dict[str, int] = {}
        next_value = 0
        for member in body.named_children:
            if member.type != "enum_member_declaration":
                continue
            name_node = member.child_by_field_name("name") or _first_child(member, "identifier")
            if name_node is None:
                continue
            name = _text(name_node, source)
            value_node = member.child_by_field_name("value")
            if value_node is None:
                clause = _first_child(member, "equals_value_clause")
                if clause is not None and clause.named_children:
                    value_node = clause.named_children[0]
            if value_node is None:
                value = next_value
            else:
                evaluated = _eval_int(value_node, source, known)
                if evaluated is None:
                    raise MetadataUnavailableError(
                        f"Cannot evaluate value of {declared.info.full_name}.{name}: "
                        f"{_text(value_node, source)}"
                    )
                value = evaluated
            known[name] = value
            next_value = value + 1
            declared.enum_members.append((_original_name(member, source) or name, value))

    # Type resolution

    def _type_ref(self, node: Node, source: bytes, scope: _Scope) -> TypeRef:
        kind = node.type
        if kind == "nullable_type":
            inner = node.child_by_field_name("type") or node.named_children[0]
            return self._type_ref(inner, source, scope)
        if kind == "array_type":
            element = node.child_by_field_name("type") or node.named_children[0]
            element_ref = self._type_ref(element, source, scope)
            return TypeRef(name=f"{element_ref.name}[]")
        if kind == "predefined_type":
            return TypeRef(name=_text(node, source))
        if kind in {"identifier", "generic_name", "qualified_name", "alias_qualified_name"}:
            written, arg_nodes, absolute = self._split_name(node, source, scope)
            args = tuple(self._type_ref(arg, source, scope) for arg in arg_nodes)
            name = written if absolute else self._resolve(written, scope)
            return TypeRef(name=name, args=args)
        return TypeRef(name=normalize_type_name(_text(node, source)))

    def _split_name(
        self, node: Node, source: bytes, scope: _Scope
    ) -> Tuple[str, List[Node], bool]:
        kind = node.type
        if kind == "generic_name":
            identifier = _first_child(node, "identifier")
            arguments = _first_child(node, "type_argument_list")
            arg_nodes = list(arguments.named_children) if arguments is not None else []
            name = _text(identifier, source) if identifier is not None else _text(node, source)
            return f"{name}`{len(arg_nodes)}", arg_nodes, False
        if kind == "qualified_name":
            qualifier = node.child_by_field_name("qualifier") or node.named_children[0]
            name_node = node.child_by_field_name("name") or node.named_children[-1]
            prefix, _, absolute = self._split_name(qualifier, source, scope)
            last, arg_nodes, _ = self._split_name(name_node, source, scope)
            return f"{prefix}.{last}", arg_nodes, absolute
        if kind == "alias_qualified_name":
            alias_node = node.child_by_field_name("alias") or node.named_children[0]
            name_node = node.child_by_field_name("name") or node.named_children[-1]
            alias = _text(alias_node, source)
            last, arg_nodes, _ = self._split_name(name_node, source, scope)
            if alias == "global":
                return last, arg_nodes, True
            return _join(scope.aliases.get(alias, alias), last), arg_nodes, True
        return _text(node, source), [], False

    def _resolve(self, written: str, scope: _Scope) -> str:
        first, _, rest = written.partition(".")
        if first in scope.aliases:
            return _join(scope.aliases[first], rest)

        candidates: List[str] = [f"{enclosing}.{written}" for enclosing in reversed(scope.enclosing)]
        namespace = scope.namespace
        while True:
            candidates.append(_join(namespace, written))
            if not namespace:
                break
            namespace = namespace.rpartition(".")[0]
        candidates.extend(_join(using, written) for using in scope.usings)
        for candidate in candidates:
            if candidate in self._types:
                return candidate
        return written


def _text(node: Optional[Node], source: bytes) -> str:
    if node is None:
        return ""
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="ignore")


def _join(prefix: str, name: str) -> str:
    if not prefix:
        return name
    if not name:
        return prefix
    return f"{prefix}.{name}"


def _first_child(node: Node, kind: str) -> Optional[Node]:
    for child in node.named_children:
        if child.type == kind:
            return child
    return None


def _modifiers(node: Node, source: bytes) -> set[str]:
    return {_text(child, source) for child in node.children if child.type == "modifier"}


def _declarator_value(declarator: Node, name_node: Node) -> Optional[Node]:
    for child in declarator.named_children:
        if child.start_byte == name_node.start_byte:
            continue
        if child.type == "equals_value_clause":
            return child.named_children[0] if child.named_children else None
        if child.type != "bracketed_argument_list":
            return child
    return None


def _attributes(node: Node, source: bytes) -> Iterable[Tuple[str, str]]:
    """Yield ``(short attribute name, argument text)`` for a declaration's attributes."""
    for attribute_list in node.named_children:
        if attribute_list.type != "attribute_list":
            continue
        for attribute in attribute_list.named_children:
            if attribute.type != "attribute":
                continue
            name_node = attribute.child_by_field_name("name") or attribute.named_children[0]
            short = re.split(r"::|\.", _text(name_node, source))[-1]
            arguments = _first_child(attribute, "attribute_argument_list")
            yield short, _text(arguments, source).strip("()") if arguments is not None else ""


def _attribute_ordinal(node: Node, source: bytes) -> Optional[int]:
    for name, arguments in _attributes(node, source):
        if name not in _ORDINAL_ATTRIBUTES:
            continue
        for argument in arguments.split(","):
            key, sep, value = argument.partition("=")
            if sep and key.strip() != "Tag":
                continue
            number = _parse_int(value if sep else key)
            if number is not None:
                return number
    return None


def _original_name(node: Node, source: bytes) -> Optional[str]:
    for name, arguments in _attributes(node, source):
        if name in _ORIGINAL_NAME_ATTRIBUTES:
            match = _STRING_LITERAL.search(arguments)
            if match:
                return match.group(1)
    return None


def _eval_int(node: Node, source: bytes, known: Mapping[str, int]) -> Optional[int]:
    kind = node.type
    if kind == "integer_literal":
        return _parse_int(_text(node, source))
    if kind == "parenthesized_expression" and node.named_children:
        return _eval_int(node.named_children[0], source, known)
    if kind == "cast_expression":
        value = node.child_by_field_name("value") or node.named_children[-1]
        return _eval_int(value, source, known)
    if kind == "prefix_unary_expression" and node.named_children:
        operand = _eval_int(node.named_children[-1], source, known)
        if operand is None:
            return None
        operator = _text(node, source).lstrip()[:1]
        if operator == "-":
            return -operand
        if operator == "~":
            return ~operand
        return operand
    if kind in {"identifier", "member_access_expression"}:
        return known.get(_text(node, source).rsplit(".", 1)[-1])
    return _parse_int(_text(node, source))


def _parse_int(text: str) -> Optional[int]:
    match = _INT_LITERAL.match(text.strip())
    if not match:
        return None
    sign, digits = match.groups()
    digits = digits.replace("_", "")
    base = {"0x": 16, "0b": 2}.get(digits[:2].lower(), 10)
    if base != 10:
        digits = digits[2:]
    if not digits:
        return None
    value = int(digits, base)
    return -value if sign == "-" else value


__all__ = ["CSHARP_LANGUAGE", "CSharpSource"]
