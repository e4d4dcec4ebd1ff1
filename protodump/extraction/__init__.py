"""Schema extraction: type classification and graph construction."""

from .builder import SchemaBuilder, build_schema
from .classifier import TypeClassifier, TypeKind, signature_matches
from .command_ids import CommandIdPredicate, by_name, single_member_wrapper

__all__ = [
    "CommandIdPredicate",
    "SchemaBuilder",
    "TypeClassifier",
    "TypeKind",
    "build_schema",
    "by_name",
    "signature_matches",
    "single_member_wrapper",
]
