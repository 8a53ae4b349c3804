from sqlalchemy import Column, String, DateTime, Boolean
from social_graph.database import Base, utcnow

class User(Base):
    """Profile row for a user issued by the authentication provider."""
    __tablename__ = "users"

    id = Column(String, primary_key=True)  # Auth provider UID
    email = Column(String, unique=True, index=True, nullable=True)
    username = Column(String, unique=True, index=True, nullable=True)
    avatar_url = Column(String, nullable=True)

    # Notification preferences
    email_friend_requests = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<User id={self.id} username={self.username}>"
