from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey, UniqueConstraint
from social_graph.database import Base, utcnow
import uuid


class TradeSetup(Base):
    """A trade setup shared to the social forum."""
    __tablename__ = "trade_setups"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    # Derived engagement counters, recomputed on every write that affects them
    likes_count = Column(Integer, nullable=False, default=0)
    comments_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow)

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "likes_count": self.likes_count,
            "comments_count": self.comments_count,
        }

    def __repr__(self) -> str:
        return f"<TradeSetup id={self.id} user_id={self.user_id}>"


class TradeSetupLike(Base):
    """One like per (trade setup, user)."""
    __tablename__ = "trade_setup_likes"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    trade_setup_id = Column(String, ForeignKey("trade_setups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint('trade_setup_id', 'user_id', name='unique_trade_setup_like'),
    )

    def to_row(self) -> dict:
        return {"id": self.id, "trade_setup_id": self.trade_setup_id, "user_id": self.user_id}
