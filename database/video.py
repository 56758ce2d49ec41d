from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Integer, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column

from database.database import Base
from database.profile import new_id, utcnow


class Video(Base):
    """Swing video sent by a student for review."""

    __tablename__ = "videos"

    id:          Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    student_id:  Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    coach_id:    Mapped[str | None] = mapped_column(String(36), ForeignKey("profiles.id"), nullable=True)
    title:       Mapped[str] = mapped_column(String(120), nullable=False)
    file_ref:    Mapped[str] = mapped_column(String(255), nullable=False)   # Telegram file_id
    duration:    Mapped[int | None] = mapped_column(Integer, nullable=True)

    status:      Mapped[str] = mapped_column(String(12), default="pending", nullable=False)   # pending | reviewed
    feedback:    Mapped[str | None] = mapped_column(Text, nullable=True)
    drills:      Mapped[list | None] = mapped_column(JSON, nullable=True)

    created_at:  Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
