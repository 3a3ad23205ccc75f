"""Cache-aware lookup of nation display data (flag and region)."""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from open_letter.core.settings import settings
from open_letter.db.time import utcnow
from open_letter.repositories.nation_cache_repo import NationCacheRecord, NationCacheRepository
from open_letter.services.nationstates import (
    UNKNOWN_REGION,
    NationStatesClient,
    NationStatesError,
    get_nationstates_client,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NationDisplayData:
    """What the signature list shows next to a nation name."""

    name: str
    flag_url: str
    region: str


def _from_cache(entry: NationCacheRecord) -> NationDisplayData:
    return NationDisplayData(
        name=entry.nation_name,
        flag_url=entry.flag_url,
        region=entry.region or UNKNOWN_REGION,
    )


class NationLookupService:
    """Resolve display data from the cache, optionally falling back to the API.

    With ``live_fallback`` disabled the daily dump is the only way entries get
    into the cache and a miss is reported as not-found. With it enabled, a
    miss or an entry older than ``max_age`` triggers a throttled live lookup
    whose result is written back to the cache.
    """

    def __init__(
        self,
        client: NationStatesClient | None = None,
        *,
        live_fallback: bool | None = None,
        max_age: timedelta | None = None,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.client = client or get_nationstates_client()
        self.live_fallback = (
            settings.nation_lookup_live_fallback if live_fallback is None else live_fallback
        )
        self.max_age = max_age or timedelta(hours=settings.nation_cache_max_age_hours)
        self._now = now

    def _is_fresh(self, entry: NationCacheRecord, now: datetime) -> bool:
        return now - entry.last_updated < self.max_age

    async def lookup_display_data(self, db: Session, nation_name: str) -> NationDisplayData | None:
        """Return flag and region for ``nation_name``, or None if unknown.

        Never raises for upstream or data problems; those are logged and
        reported as not-found (or as the stale cached value when one exists).
        """
        repo = NationCacheRepository(db)
        try:
            cached = repo.get(nation_name)
        except SQLAlchemyError as exc:
            logger.error("Nation cache read failed for %s: %s", nation_name, exc)
            return None

        now = self._now()
        if cached is not None and (not self.live_fallback or self._is_fresh(cached, now)):
            logger.debug("Cache hit for %s", nation_name)
            return _from_cache(cached)
        if not self.live_fallback:
            return None

        try:
            info = await self.client.fetch_nation(nation_name)
        except (NationStatesError, httpx.HTTPError) as exc:
            logger.warning("Live lookup failed for %s: %s", nation_name, exc)
            return _from_cache(cached) if cached is not None else None

        if info is None:
            if cached is not None:
                self._invalidate(db, repo, cached.nation_name)
            return None

        self._store(db, repo, info.name, info.flag_url, info.region, now)
        return NationDisplayData(name=info.name, flag_url=info.flag_url, region=info.region)

    def _invalidate(self, db: Session, repo: NationCacheRepository, nation_name: str) -> None:
        try:
            repo.delete(nation_name)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Failed to remove cached entry for %s: %s", nation_name, exc)
            return
        logger.info("Removed invalid cached entry for %s", nation_name)

    def _store(
        self,
        db: Session,
        repo: NationCacheRepository,
        nation_name: str,
        flag_url: str,
        region: str,
        now: datetime,
    ) -> None:
        try:
            repo.upsert_many([(nation_name, flag_url, region)], updated_at=now)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Nation cache write failed for %s: %s", nation_name, exc)
            return
        logger.debug("Cache updated for %s", nation_name)


def get_nation_lookup_service() -> NationLookupService:
    """Build a lookup service bound to the shared NationStates client."""
    return NationLookupService(get_nationstates_client())
