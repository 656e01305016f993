"""
Error-handling middleware — last-resort handler for unhandled exceptions.

Unit and mediator errors are encoded by the dispatcher itself; anything
that escapes it ends up here as ``{"error": ...}`` with status 500.
"""

from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse

from concord.core.logging import get_logger
from concord.framework.dispatcher import GENERIC_ERROR

log = get_logger(__name__)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — returns 500 with an error envelope."""
    log.error("unhandled_exception", path=request.url.path, error=repr(exc))
    detail = str(exc) if request.app.state.settings.debug else GENERIC_ERROR
    return JSONResponse(status_code=500, content={"error": detail or GENERIC_ERROR})
