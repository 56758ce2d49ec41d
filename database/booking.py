from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Integer, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from database.database import Base
from database.profile import new_id, utcnow


class Booking(Base):
    """A lesson booked by a student with a coach. Prices are informative only."""

    __tablename__ = "bookings"

    id:          Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    student_id:  Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    coach_id:    Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    date:        Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration:    Mapped[int] = mapped_column(Integer, nullable=False)      # minutes
    lesson_type: Mapped[str] = mapped_column(String(60), nullable=False)
    price:       Mapped[int] = mapped_column(Integer, nullable=False)
    status:      Mapped[str] = mapped_column(String(12), default="pending", nullable=False)   # pending | cancelled
    created_at:  Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
