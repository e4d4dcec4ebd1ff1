"""Reconstruct protobuf schemas from compiled type metadata."""

__version__ = "0.3.0"
