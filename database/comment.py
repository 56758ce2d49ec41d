from sqlalchemy import Column, String, Text, DateTime, ForeignKey

from database.database import Base
from database.profile import new_id, utcnow


class Comment(Base):
    __tablename__ = "comments"

    id         = Column(String(36), primary_key=True, default=new_id)
    post_id    = Column(String(36), ForeignKey("posts.id"), nullable=False, index=True)
    user_id    = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    content    = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
