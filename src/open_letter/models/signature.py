# src/open_letter/models/signature.py
"""SQLAlchemy model for open letter signatures."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from open_letter.db.session import Base
from open_letter.db.time import utcnow


class Signature(Base):
    """A nation's signature on the letter.

    One row per nation name; re-signing refreshes ``checksum`` and
    ``signed_at`` in place.
    """

    __tablename__ = "signatures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    nation_name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    # Proof supplied at signing time; kept for audit, never shown publicly.
    checksum: Mapped[str] = mapped_column(Text, nullable=False)
    signed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        default=utcnow,
        server_default=func.now(),
    )
