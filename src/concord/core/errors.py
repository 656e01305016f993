"""
Structured error types for concord.

Every failure that crosses a layer boundary (unit, dispatcher, mediator,
engine) is a ``ConcordError`` subclass. Errors carry a category used for
HTTP status mapping and logging, an optional ``ErrorContext`` with the
unit/operation/request involved, and an optional chained cause.

Manifesto:
    - **Typed hierarchy:** unit failures, dispatch faults, mediator faults
      and rule faults are distinct types
    - **Category drives status:** the HTTP layer never inspects messages
    - **Rich context:** errors carry the unit, operation and request id
    - **Error chaining:** wrap the original exception as ``cause``

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                        ConcordError                          │
        │              (category, context, cause)                      │
        ├──────────────────────────────────────────────────────────────┤
        │  UnitError (VALIDATION)     DispatchError (INTERNAL)         │
        │    NotFoundError              OperationNotFoundError         │
        │    ConflictError                                             │
        │    AuthError                                                 │
        │                                                              │
        │  MediatorError (INTERNAL)   SyncError (ORCHESTRATION)        │
        │    UnknownRequestError        ReactionLimitError             │
        │    DuplicateResolutionError                                  │
        │    RequestTimeoutError (TIMEOUT)                             │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> error = NotFoundError("Resource with ID 'r1' not found.")
    >>> error.category
    <ErrorCategory.NOT_FOUND: 'NOT_FOUND'>
    >>> http_status_for(error)
    404

Tags:
    error-handling, exception-hierarchy, error-context, concord

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories for classification and HTTP status mapping."""

    VALIDATION = "VALIDATION"        # Violated unit precondition
    NOT_FOUND = "NOT_FOUND"          # Missing entity or operation
    CONFLICT = "CONFLICT"            # Duplicate relationship or key
    AUTH = "AUTH"                    # Caller identity missing or mismatched
    TIMEOUT = "TIMEOUT"              # Pending request never resolved
    ORCHESTRATION = "ORCHESTRATION"  # Synchronization engine faults
    STORAGE = "STORAGE"              # Document store faults
    INTERNAL = "INTERNAL"            # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"


HTTP_STATUS_BY_CATEGORY: dict[ErrorCategory, int] = {
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.CONFLICT: 409,
    ErrorCategory.AUTH: 403,
    ErrorCategory.TIMEOUT: 504,
}


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        unit: Unit whose operation failed
        operation: Operation name
        request_id: Pending request identifier (mediator path)
        flow: Reaction flow the failure happened in
        metadata: Additional key-value pairs
    """

    unit: str | None = None
    operation: str | None = None
    request_id: str | None = None
    flow: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["unit", "operation", "request_id", "flow"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class ConcordError(Exception):
    """
    Base exception for all concord errors.

    Subclasses set ``default_category``; callers may override it per
    instance. ``message`` is what the HTTP layer returns to clients for
    unit-reported failures, so keep it free of internals.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str = "",
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> ConcordError:
        """
        Add context to this error (fluent API).

        Usage:
            raise DispatchError("boom").with_context(unit="Resource")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# UNIT ERRORS (reported by capability units, propagated verbatim)
# =============================================================================


class UnitError(ConcordError):
    """A unit rejected an operation because a precondition was violated."""

    default_category = ErrorCategory.VALIDATION


class NotFoundError(UnitError):
    """The entity an operation refers to does not exist."""

    default_category = ErrorCategory.NOT_FOUND


class ConflictError(UnitError):
    """The operation would duplicate an existing entity or relationship."""

    default_category = ErrorCategory.CONFLICT


class AuthError(UnitError):
    """The caller identity is missing or does not own the target."""

    default_category = ErrorCategory.AUTH


# =============================================================================
# DISPATCH ERRORS (surfaced to callers as a generic internal error)
# =============================================================================


class DispatchError(ConcordError):
    """Instantiation or dispatch fault inside the framework."""

    default_category = ErrorCategory.INTERNAL


class OperationNotFoundError(DispatchError):
    """No descriptor is registered for the (unit, operation) pair."""

    def __init__(self, unit: str, operation: str):
        super().__init__(
            f"Operation '{unit}.{operation}' is not registered.",
            context=ErrorContext(unit=unit, operation=operation),
        )


class StorageError(ConcordError):
    """Document store failure."""

    default_category = ErrorCategory.STORAGE


class DuplicateKeyError(StorageError):
    """Insert violated a unique key of a collection."""

    default_category = ErrorCategory.CONFLICT


# =============================================================================
# MEDIATOR ERRORS (synchronization bugs, rejected loudly)
# =============================================================================


class MediatorError(ConcordError):
    """Requesting mediator misuse."""

    default_category = ErrorCategory.INTERNAL


class UnknownRequestError(MediatorError):
    """Resolution of a request id that was never created."""

    def __init__(self, request_id: str):
        super().__init__(
            f"Unknown request '{request_id}'.",
            context=ErrorContext(request_id=request_id),
        )


class DuplicateResolutionError(MediatorError):
    """A pending request was resolved more than once."""

    def __init__(self, request_id: str):
        super().__init__(
            f"Request '{request_id}' has already been resolved.",
            context=ErrorContext(request_id=request_id),
        )


class RequestTimeoutError(MediatorError):
    """No resolution arrived before the network layer gave up waiting."""

    default_category = ErrorCategory.TIMEOUT

    def __init__(self, request_id: str, timeout: float | None):
        super().__init__(
            f"Request '{request_id}' timed out after {timeout}s.",
            context=ErrorContext(request_id=request_id),
        )
        self.timeout = timeout


# =============================================================================
# ENGINE ERRORS
# =============================================================================


class SyncError(ConcordError):
    """Synchronization engine fault."""

    default_category = ErrorCategory.ORCHESTRATION


class ReactionLimitError(SyncError):
    """A reaction flow emitted more actions than the configured bound."""

    def __init__(self, flow: str, limit: int):
        super().__init__(
            f"Flow '{flow}' exceeded {limit} actions.",
            context=ErrorContext(flow=flow),
        )
        self.limit = limit


def http_status_for(error: BaseException) -> int:
    """Resolve an exception to an HTTP status, defaulting to 500."""
    if isinstance(error, ConcordError):
        return HTTP_STATUS_BY_CATEGORY.get(error.category, 500)
    return 500


def error_message(error: BaseException, default: str = "Unknown error") -> str:
    """Client-facing message of an exception, or ``default`` when it has none."""
    if isinstance(error, ConcordError):
        return error.message or default
    return str(error) or default


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ConcordError",
    "UnitError",
    "NotFoundError",
    "ConflictError",
    "AuthError",
    "DispatchError",
    "OperationNotFoundError",
    "StorageError",
    "DuplicateKeyError",
    "MediatorError",
    "UnknownRequestError",
    "DuplicateResolutionError",
    "RequestTimeoutError",
    "SyncError",
    "ReactionLimitError",
    "HTTP_STATUS_BY_CATEGORY",
    "http_status_for",
    "error_message",
]
