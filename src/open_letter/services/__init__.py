# src/open_letter/services/__init__.py
"""Business logic services for the open letter application."""

from .dump_ingest import DumpIngestionPipeline, DumpIngestionResult
from .dump_scheduler import DumpRefreshWorker
from .nation_lookup import NationDisplayData, NationLookupService
from .nationstates import NationStatesClient
from .rate_limiter import RateLimiter

__all__ = [
    "DumpIngestionPipeline",
    "DumpIngestionResult",
    "DumpRefreshWorker",
    "NationDisplayData",
    "NationLookupService",
    "NationStatesClient",
    "RateLimiter",
]
