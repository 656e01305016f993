"""Fixtures building bare unit instances over a fresh store."""

from __future__ import annotations

import pytest

from concord.core.store import DocumentStore
from concord.framework.registry import UnitDependencies


@pytest.fixture
def deps() -> UnitDependencies:
    return UnitDependencies(store=DocumentStore())
