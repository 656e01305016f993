"""
Shared pytest fixtures for concord tests.

This module provides:
- A fresh document store and unit registry per test
- A fully wired synchronization engine (all units, all syncs)
- Settings, app and ``TestClient`` fixtures for HTTP tests

Usage:
    @pytest.mark.asyncio
    async def test_something(engine):
        await engine.invoke("Resource", "createResource", {...})
"""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from concord.api.app import build_engine, create_app
from concord.core.settings import ConcordSettings
from concord.core.store import DocumentStore
from concord.engine.engine import SyncEngine
from concord.engine.requesting import UNIT as REQUESTING_UNIT
from concord.framework.registry import UnitDependencies, UnitRegistry


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)
        if test_path.parts and test_path.parts[0] in ("api", "cli"):
            item.add_marker(pytest.mark.integration)
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Engine fixtures
# =============================================================================


@pytest.fixture
def settings() -> ConcordSettings:
    """Deterministic settings that ignore the developer's environment."""
    return ConcordSettings(
        _env_file=None,
        base_path="/api",
        sync_logging="off",
        request_timeout=2.0,
        json_logs=False,
    )


@pytest.fixture
def store() -> DocumentStore:
    return DocumentStore()


@pytest.fixture
def registry(store: DocumentStore, settings: ConcordSettings) -> UnitRegistry:
    """Registry with the Requesting mediator and every application unit."""
    registry = UnitRegistry(UnitDependencies(store=store, settings=settings))
    registry.load(REQUESTING_UNIT)
    registry.load_package("concord.units")
    return registry


@pytest.fixture
def engine(settings: ConcordSettings, store: DocumentStore) -> SyncEngine:
    """Engine with all units loaded and all syncs registered."""
    return build_engine(settings, store=store)


# =============================================================================
# HTTP fixtures
# =============================================================================


@pytest.fixture
def app(settings: ConcordSettings, engine: SyncEngine):
    return create_app(settings=settings, engine=engine)


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client
