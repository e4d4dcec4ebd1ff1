"""Error taxonomy shared by extraction, emission and output stages."""

from __future__ import annotations

from typing import Optional


class ProtoDumpError(RuntimeError):
    """Base class for every failure raised by protodump."""


class SchemaError(ProtoDumpError):
    """Raised when a schema graph cannot be built or its output cannot be placed.

    A build either produces a complete graph or raises one of these; there is
    no partial schema to recover.
    """

    def __init__(
        self,
        message: str,
        *,
        message_name: Optional[str] = None,
        field_name: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message_name = message_name
        self.field_name = field_name


class MetadataUnavailableError(SchemaError):
    """Raised by a metadata source that cannot answer a query."""


class UnresolvedReferenceError(SchemaError):
    """Raised when a field references a type with no definition in the graph."""


class DuplicateDefinitionError(SchemaError):
    """Raised for colliding qualified names, field numbers or field names."""


class UnmappedPrimitiveError(SchemaError):
    """Raised when a field type matches no known shape."""


class MissingFieldNumberError(SchemaError):
    """Raised when a field carries no usable ordinal."""


class OutputCollisionError(SchemaError):
    """Raised when emitted paths collide or escape the output root."""


class EmissionError(ProtoDumpError):
    """Raised while rendering a single definition into a target dialect."""

    def __init__(
        self,
        message: str,
        *,
        qualified_name: Optional[str] = None,
        field_name: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.qualified_name = qualified_name
        self.field_name = field_name


__all__ = [
    "DuplicateDefinitionError",
    "EmissionError",
    "MetadataUnavailableError",
    "MissingFieldNumberError",
    "OutputCollisionError",
    "ProtoDumpError",
    "SchemaError",
    "UnmappedPrimitiveError",
    "UnresolvedReferenceError",
]
