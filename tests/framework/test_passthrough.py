"""
Tests for the passthrough route policy.
"""

from __future__ import annotations

import pytest

from concord.framework.passthrough import (
    DEFAULT_POLICY,
    EXCLUSIONS,
    INCLUSIONS,
    RouteDecision,
    RoutePolicy,
)


class TestDecide:
    def test_included(self):
        assert DEFAULT_POLICY.decide("/Resource/getResource") is RouteDecision.INCLUDED

    def test_excluded(self):
        assert DEFAULT_POLICY.decide("/Resource/createResource") is RouteDecision.EXCLUDED

    def test_unlisted_is_unverified_but_exposed(self):
        decision = DEFAULT_POLICY.decide("/Resource/brandNew")
        assert decision is RouteDecision.UNVERIFIED
        assert decision.exposed

    def test_requesting_is_hidden(self):
        assert DEFAULT_POLICY.decide("/Requesting/request") is RouteDecision.HIDDEN
        assert not RouteDecision.HIDDEN.exposed
        assert not RouteDecision.EXCLUDED.exposed

    def test_justification(self):
        assert DEFAULT_POLICY.justification("/Following/isFollowing")
        assert DEFAULT_POLICY.justification("/Following/follow") is None


class TestDefaults:
    def test_every_mutation_is_excluded(self):
        for route in ("/Following/follow", "/NotificationLog/logNotification", "/Resource/deleteResource"):
            assert route in EXCLUSIONS

    def test_lists_are_disjoint(self):
        assert not set(INCLUSIONS) & EXCLUSIONS

    def test_every_unit_operation_is_classified(self, registry):
        for descriptor in registry.descriptors():
            if descriptor.unit == "Requesting":
                continue
            assert DEFAULT_POLICY.decide(descriptor.route) is not RouteDecision.UNVERIFIED, descriptor.route


class TestValidation:
    def test_overlap_rejected(self):
        with pytest.raises(ValueError):
            RoutePolicy(inclusions={"/A/b": "why"}, exclusions=frozenset({"/A/b"}))
