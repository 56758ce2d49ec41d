from sqlalchemy import Column, String, Text, DateTime, ForeignKey

from database.database import Base
from database.profile import new_id, utcnow


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id           = Column(String(36), primary_key=True, default=new_id)
    sender_id    = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    recipient_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    content      = Column(Text, nullable=False)
    created_at   = Column(DateTime(timezone=True), default=utcnow)
    read_at      = Column(DateTime(timezone=True), nullable=True)   # None = unread
