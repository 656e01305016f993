"""Core primitives: errors, logging, settings and the document store."""

from concord.core.errors import (
    ConcordError,
    ConflictError,
    DispatchError,
    ErrorCategory,
    NotFoundError,
    UnitError,
)
from concord.core.logging import LogContext, configure_logging, get_logger
from concord.core.settings import ConcordSettings
from concord.core.store import DocumentStore

__all__ = [
    "ConcordError",
    "ConflictError",
    "DispatchError",
    "ErrorCategory",
    "NotFoundError",
    "UnitError",
    "LogContext",
    "configure_logging",
    "get_logger",
    "ConcordSettings",
    "DocumentStore",
]
