from __future__ import annotations

import pytest

from tests._fixtures.snapshot_builder import SnapshotBuilder


@pytest.fixture
def snapshot() -> SnapshotBuilder:
    """Provide an empty snapshot builder using the default message base type."""
    return SnapshotBuilder()
