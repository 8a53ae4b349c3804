from sqlalchemy import Column, String, DateTime, Integer, Text, Boolean, ForeignKey
from social_graph.database import Base, utcnow
import uuid


class Comment(Base):
    """Comment (or reply) on a shared trade setup."""
    __tablename__ = "trade_setup_comments"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    trade_setup_id = Column(String, ForeignKey("trade_setups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    content = Column(Text, nullable=False)
    # No foreign key: replies outlive a deleted parent
    parent_id = Column(String, nullable=True, index=True)
    is_edited = Column(Boolean, nullable=False, default=False)

    likes_count = Column(Integer, nullable=False, default=0)
    dislikes_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "trade_setup_id": self.trade_setup_id,
            "user_id": self.user_id,
            "content": self.content,
            "parent_id": self.parent_id,
            "is_edited": self.is_edited,
            "likes_count": self.likes_count,
            "dislikes_count": self.dislikes_count,
            "created_at": self.created_at,
        }

    def __repr__(self) -> str:
        return f"<Comment id={self.id} setup={self.trade_setup_id} parent={self.parent_id}>"
