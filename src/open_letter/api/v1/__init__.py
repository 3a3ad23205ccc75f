"""Version 1 API endpoints."""

from .endpoints import admin_router, dump_router, signatures_router

__all__ = [
    "signatures_router",
    "admin_router",
    "dump_router",
]
