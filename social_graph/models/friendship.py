from sqlalchemy import Column, String, DateTime, UniqueConstraint, CheckConstraint
from social_graph.database import Base, utcnow
import enum
import uuid

class FriendshipStatus(str, enum.Enum):
    ACCEPTED = "ACCEPTED"
    BLOCKED = "BLOCKED"

class Friendship(Base):
    """Canonical relationship row for an unordered pair of users."""
    __tablename__ = "friendships"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    user1_id = Column(String, nullable=False, index=True)
    user2_id = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False)
    action_user_id = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # user1_id < user2_id is maintained by the identity normalizer
    __table_args__ = (
        UniqueConstraint('user1_id', 'user2_id', name='unique_friendship'),
        CheckConstraint('user1_id < user2_id', name='friendship_normalized_pair'),
    )

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "user1_id": self.user1_id,
            "user2_id": self.user2_id,
            "status": self.status,
            "action_user_id": self.action_user_id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self):
        return f"<Friendship id={self.id} user1={self.user1_id} user2={self.user2_id} status={self.status}>"
