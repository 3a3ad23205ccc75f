# src/open_letter/models/nation_cache.py
"""Locally cached NationStates display metadata."""

from datetime import datetime

from sqlalchemy import DateTime, Index, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from open_letter.db.session import Base
from open_letter.db.time import utcnow


class NationCache(Base):
    """Flag and region for a nation, keyed by the upstream nation name."""

    __tablename__ = "nation_cache"

    nation_name: Mapped[str] = mapped_column(Text, primary_key=True)
    flag_url: Mapped[str] = mapped_column(Text, nullable=False)
    region: Mapped[str] = mapped_column(Text, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )


# Serves the case-insensitive fallback in NationCacheRepository.get.
Index("ix_nation_cache_name_lower", func.lower(NationCache.nation_name))
