"""
HTTP surface: app factory, dependencies, middleware and routers.

Run with::

    uvicorn concord.api:create_app --factory
"""

from concord.api.app import build_engine, create_app

__all__ = ["build_engine", "create_app"]
