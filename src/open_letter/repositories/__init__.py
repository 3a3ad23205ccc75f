"""Data access layer returning typed records instead of ORM rows."""

from .nation_cache_repo import NationCacheRecord, NationCacheRepository
from .signature_repo import SignatureRecord, SignatureRepository

__all__ = [
    "NationCacheRecord",
    "NationCacheRepository",
    "SignatureRecord",
    "SignatureRepository",
]
