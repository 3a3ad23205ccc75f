"""Data access helpers for the nation display cache."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import delete, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from open_letter.models.nation_cache import NationCache

__all__ = ["NationCacheRecord", "NationCacheRepository"]


@dataclass(frozen=True)
class NationCacheRecord:
    """Cached display metadata for a single nation."""

    nation_name: str
    flag_url: str
    region: str
    last_updated: datetime


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _to_record(row: NationCache) -> NationCacheRecord:
    return NationCacheRecord(
        nation_name=row.nation_name,
        flag_url=row.flag_url,
        region=row.region,
        last_updated=_as_utc(row.last_updated),
    )


class NationCacheRepository:
    """Thin wrapper around database access for nation cache entries."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get(self, nation_name: str) -> NationCacheRecord | None:
        """Return the entry for ``nation_name``, exact match first, then case-insensitive."""
        row = self.session.get(NationCache, nation_name)
        if row is None:
            row = self.session.execute(
                select(NationCache)
                .where(func.lower(NationCache.nation_name) == nation_name.lower())
                .limit(1)
            ).scalars().first()
        return _to_record(row) if row is not None else None

    def count(self) -> int:
        """Return the number of cached nations."""
        return int(self.session.execute(select(func.count()).select_from(NationCache)).scalar_one())

    def upsert_many(self, rows: Iterable[tuple[str, str, str]], *, updated_at: datetime) -> int:
        """Insert or refresh ``(nation_name, flag_url, region)`` rows in one statement.

        On a nation name conflict the flag URL, region and ``last_updated`` are
        overwritten. Duplicate names within ``rows`` collapse to the last one
        so the statement never touches the same row twice.

        Returns:
            Number of distinct rows written.
        """
        values_by_name: dict[str, dict[str, object]] = {}
        for nation_name, flag_url, region in rows:
            values_by_name[nation_name] = {
                "nation_name": nation_name,
                "flag_url": flag_url,
                "region": region,
                "last_updated": updated_at,
            }
        if not values_by_name:
            return 0

        insert = self._insert_construct()
        stmt = insert(NationCache).values(list(values_by_name.values()))
        stmt = stmt.on_conflict_do_update(
            index_elements=[NationCache.nation_name],
            set_={
                "flag_url": stmt.excluded.flag_url,
                "region": stmt.excluded.region,
                "last_updated": stmt.excluded.last_updated,
            },
        )
        self.session.execute(stmt)
        return len(values_by_name)

    def delete(self, nation_name: str) -> bool:
        """Remove the entry for ``nation_name``; return True if a row was deleted."""
        result = self.session.execute(
            delete(NationCache).where(NationCache.nation_name == nation_name)
        )
        return bool(result.rowcount)

    def _insert_construct(self):
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert
        if dialect == "sqlite":
            return sqlite.insert
        raise NotImplementedError(f"Batch upsert is not supported on {dialect!r}")
