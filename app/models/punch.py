"""
PunchRecord model — one row per user per civil day, holding the four punches.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import (Boolean, Column, Date, DateTime, ForeignKey, Index,
                        Integer, UniqueConstraint)
from sqlalchemy.orm import relationship

from app.db.base import Base

# Punch slots in the order they are filled during a workday
PUNCH_SLOTS = ("entrada", "almoco", "retorno", "saida")


class PunchRecord(Base):
    __tablename__ = "punch_records"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_punch_user_date"),
        Index("ix_punch_date", "date"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: int = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    date: date = Column(Date, nullable=False)  # type: ignore[assignment]  # civil date
    entrada: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    almoco: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    retorno: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    saida: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    auto_closed: bool = Column(  # type: ignore[assignment]
        Boolean, nullable=False, default=False, server_default="false"
    )
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User", back_populates="punches")

    def __repr__(self) -> str:
        return f"<PunchRecord user={self.user_id} date={self.date}>"
