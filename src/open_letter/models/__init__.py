# src/open_letter/models/__init__.py
"""SQLAlchemy models for the open letter application."""

from .nation_cache import NationCache
from .signature import Signature

__all__ = [
    "NationCache",
    "Signature",
]
