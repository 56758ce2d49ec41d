# database/post.py
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, JSON

from database.database import Base
from database.profile import new_id, utcnow


class Post(Base):
    __tablename__ = "posts"

    id         = Column(String(36), primary_key=True, default=new_id)
    user_id    = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    content    = Column(Text, default="")
    image_urls = Column(JSON, nullable=True)                  # ordered, 0-4 public URLs
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
