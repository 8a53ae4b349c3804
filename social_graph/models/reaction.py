from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from social_graph.database import Base, utcnow
import enum
import uuid


class ReactionType(str, enum.Enum):
    LIKE = "LIKE"
    DISLIKE = "DISLIKE"


class CommentReaction(Base):
    """At most one like/dislike per (comment, user)."""
    __tablename__ = "comment_reactions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    comment_id = Column(String, ForeignKey("trade_setup_comments.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    reaction_type = Column(String(10), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('comment_id', 'user_id', name='unique_comment_reaction'),
    )

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "comment_id": self.comment_id,
            "user_id": self.user_id,
            "reaction_type": self.reaction_type,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<CommentReaction comment={self.comment_id} user={self.user_id} type={self.reaction_type}>"
