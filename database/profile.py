from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, BigInteger, Boolean, Float
from sqlalchemy.orm import Mapped, mapped_column

from database.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Profile(Base):
    """Students and coaches. One row per account."""

    __tablename__ = "profiles"

    id:            Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email:         Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    full_name:     Mapped[str] = mapped_column(String(120), nullable=False)
    role:          Mapped[str] = mapped_column(String(10), default="student", nullable=False)   # student | coach
    avatar_url:    Mapped[str | None] = mapped_column(String(500), nullable=True)
    handicap:      Mapped[float | None] = mapped_column(Float, nullable=True)

    # Telegram account currently signed in to this profile
    telegram_id:   Mapped[int | None] = mapped_column(BigInteger, unique=True, nullable=True)
    notifications_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at:    Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    @property
    def first_name(self) -> str:
        return self.full_name.split(" ")[0] if self.full_name else ""

    @property
    def is_coach(self) -> bool:
        return self.role == "coach"
