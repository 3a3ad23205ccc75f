"""API endpoint modules for version 1."""

from .admin import router as admin_router
from .dump import router as dump_router
from .signatures import router as signatures_router

__all__ = [
    "signatures_router",
    "admin_router",
    "dump_router",
]
