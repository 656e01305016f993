"""
Tests for the concord error hierarchy and HTTP status mapping.
"""

from __future__ import annotations

import pytest

from concord.core.errors import (
    AuthError,
    ConcordError,
    ConflictError,
    DispatchError,
    DuplicateKeyError,
    DuplicateResolutionError,
    ErrorCategory,
    NotFoundError,
    OperationNotFoundError,
    ReactionLimitError,
    RequestTimeoutError,
    UnitError,
    UnknownRequestError,
    error_message,
    http_status_for,
)


class TestCategories:
    @pytest.mark.parametrize(
        "error, category",
        [
            (UnitError("x"), ErrorCategory.VALIDATION),
            (NotFoundError("x"), ErrorCategory.NOT_FOUND),
            (ConflictError("x"), ErrorCategory.CONFLICT),
            (AuthError("x"), ErrorCategory.AUTH),
            (DispatchError("x"), ErrorCategory.INTERNAL),
            (DuplicateKeyError("x"), ErrorCategory.CONFLICT),
            (RequestTimeoutError("r1", 1.0), ErrorCategory.TIMEOUT),
            (ReactionLimitError("f1", 10), ErrorCategory.ORCHESTRATION),
        ],
    )
    def test_default_category(self, error, category):
        assert error.category is category

    def test_category_override(self):
        error = UnitError("gone", category=ErrorCategory.NOT_FOUND)
        assert error.category is ErrorCategory.NOT_FOUND

    def test_unit_errors_share_a_base(self):
        assert issubclass(NotFoundError, UnitError)
        assert issubclass(ConflictError, UnitError)
        assert issubclass(AuthError, UnitError)
        assert issubclass(UnitError, ConcordError)


class TestHttpStatus:
    @pytest.mark.parametrize(
        "error, status",
        [
            (UnitError("bad"), 400),
            (NotFoundError("missing"), 404),
            (ConflictError("dup"), 409),
            (AuthError("no"), 403),
            (RequestTimeoutError("r1", 0.5), 504),
            (DispatchError("boom"), 500),
            (ValueError("plain"), 500),
        ],
    )
    def test_status(self, error, status):
        assert http_status_for(error) == status


class TestErrorMessage:
    def test_concord_message(self):
        assert error_message(UnitError("Resource name cannot be empty.")) == (
            "Resource name cannot be empty."
        )

    def test_plain_exception_message(self):
        assert error_message(RuntimeError("kaput")) == "kaput"

    def test_default_when_empty(self):
        assert error_message(RuntimeError()) == "Unknown error"
        assert error_message(UnitError(""), "fallback") == "fallback"


class TestContext:
    def test_with_context_sets_known_fields(self):
        error = DispatchError("boom").with_context(unit="Resource", operation="getResource")
        assert error.context.unit == "Resource"
        assert error.context.operation == "getResource"

    def test_with_context_unknown_fields_go_to_metadata(self):
        error = UnitError("bad").with_context(path="/x")
        assert error.context.metadata == {"path": "/x"}

    def test_to_dict(self):
        cause = KeyError("k")
        error = OperationNotFoundError("Resource", "nope")
        error.cause = cause
        data = error.to_dict()
        assert data["error_type"] == "OperationNotFoundError"
        assert data["category"] == "INTERNAL"
        assert data["context"] == {"unit": "Resource", "operation": "nope"}
        assert data["cause"] == str(cause)

    def test_mediator_errors_carry_request_id(self):
        assert UnknownRequestError("r9").context.request_id == "r9"
        assert DuplicateResolutionError("r9").context.request_id == "r9"

    def test_timeout_keeps_timeout(self):
        assert RequestTimeoutError("r1", 2.5).timeout == 2.5

    def test_repr(self):
        assert repr(UnitError("bad")) == "UnitError('bad', category=VALIDATION)"
