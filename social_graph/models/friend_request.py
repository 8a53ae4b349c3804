from sqlalchemy import Column, String, DateTime, UniqueConstraint, CheckConstraint, Index
from social_graph.database import Base, utcnow
import enum
import uuid

class FriendRequestStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"

class FriendRequest(Base):
    """Directional friend request between two users.

    ``pair_low``/``pair_high`` hold the normalized pair so the store allows a
    single live request row per unordered pair.
    """
    __tablename__ = "friend_requests"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    sender_id = Column(String, nullable=False, index=True)
    recipient_id = Column(String, nullable=False, index=True)
    pair_low = Column(String, nullable=False)
    pair_high = Column(String, nullable=False)
    status = Column(String, default=FriendRequestStatus.PENDING.value, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('pair_low', 'pair_high', name='unique_friend_request_pair'),
        CheckConstraint('sender_id <> recipient_id', name='friend_request_not_self'),
        Index('ix_friend_requests_recipient_status', 'recipient_id', 'status'),
    )

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "sender_id": self.sender_id,
            "recipient_id": self.recipient_id,
            "status": self.status,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self):
        return f"<FriendRequest id={self.id} sender={self.sender_id} recipient={self.recipient_id} status={self.status}>"
