"""
Tests for API dependency providers.
"""

from __future__ import annotations

from concord.api.deps import get_dispatcher, get_engine, get_settings
from concord.core.settings import ConcordSettings


class TestDeps:
    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
        assert isinstance(get_settings(), ConcordSettings)

    def test_state_providers(self, app):
        class _Request:
            pass

        request = _Request()
        request.app = app
        assert get_engine(request) is app.state.engine
        assert get_dispatcher(request) is app.state.dispatcher

    def test_settings_override_applied(self, app, settings):
        assert app.dependency_overrides[get_settings]() is settings
