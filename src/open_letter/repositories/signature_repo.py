"""Data access helpers for working with signatures."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from open_letter.db.time import utcnow
from open_letter.models.signature import Signature

__all__ = ["SignatureRecord", "SignatureRepository"]


@dataclass(frozen=True)
class SignatureRecord:
    """A stored signature, decoded from its ORM row."""

    id: int
    nation_name: str
    checksum: str
    signed_at: datetime


def _to_record(row: Signature) -> SignatureRecord:
    return SignatureRecord(
        id=row.id,
        nation_name=row.nation_name,
        checksum=row.checksum,
        signed_at=row.signed_at,
    )


class SignatureRepository:
    """Thin wrapper around database access for signature rows."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def list_signatures(self, order: Literal["asc", "desc"] = "desc") -> list[SignatureRecord]:
        """Return all signatures sorted by signing time."""
        column = Signature.signed_at.asc() if order == "asc" else Signature.signed_at.desc()
        rows = self.session.execute(select(Signature).order_by(column, Signature.id)).scalars()
        return [_to_record(row) for row in rows]

    def get_by_nation(self, nation_name: str) -> SignatureRecord | None:
        """Return the signature for ``nation_name`` if one exists."""
        row = self._find(nation_name)
        return _to_record(row) if row is not None else None

    def record_signature(
        self,
        nation_name: str,
        checksum: str,
        *,
        now: datetime | None = None,
    ) -> tuple[SignatureRecord, bool]:
        """Insert a signature, or refresh the existing one for the same nation.

        Args:
            nation_name: Nation name as submitted (case preserved).
            checksum: Verification checksum that proved control of the nation.
            now: Signing time; defaults to the current UTC time.

        Returns:
            The stored record and whether a new row was created.
        """
        signed_at = now or utcnow()
        row = self._find(nation_name)
        if row is None:
            row = Signature(nation_name=nation_name, checksum=checksum, signed_at=signed_at)
            self.session.add(row)
            try:
                self.session.commit()
            except IntegrityError:
                # Another request signed for this nation between our read and insert.
                self.session.rollback()
                row = self._find(nation_name)
                if row is None:
                    raise
            else:
                self.session.refresh(row)
                return _to_record(row), True

        row.checksum = checksum
        row.signed_at = signed_at
        self.session.commit()
        self.session.refresh(row)
        return _to_record(row), False

    def delete(self, signature_id: int) -> bool:
        """Delete the signature with ``signature_id``; unknown ids are a no-op."""
        row = self.session.get(Signature, signature_id)
        if row is None:
            return False
        self.session.delete(row)
        self.session.commit()
        return True

    def _find(self, nation_name: str) -> Signature | None:
        return self.session.execute(
            select(Signature).where(Signature.nation_name == nation_name)
        ).scalars().first()
