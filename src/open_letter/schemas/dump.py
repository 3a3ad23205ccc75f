"""Schemas related to the dump ingestion trigger."""
from __future__ import annotations

from pydantic import BaseModel


class DumpRefreshResponse(BaseModel):
    """API response payload for a dump ingestion run."""

    success: bool
    message: str
    nations_processed: int
