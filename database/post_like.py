from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint

from database.database import Base
from database.profile import new_id, utcnow


class PostLike(Base):
    __tablename__ = "likes"

    id         = Column(String(36), primary_key=True, default=new_id)
    post_id    = Column(String(36), ForeignKey("posts.id"), nullable=False, index=True)
    user_id    = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (UniqueConstraint("post_id", "user_id"),)  # 1 like / user
