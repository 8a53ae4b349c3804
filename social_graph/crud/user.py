from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from social_graph.models.user import User


class UserCRUD:

    @staticmethod
    def get_user(db: Session, user_id: str) -> Optional[User]:
        """Get a user by ID."""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_users(db: Session, user_ids: Iterable[str]) -> List[User]:
        """Get the profiles for a set of user IDs (unknown IDs are skipped)."""
        user_ids = list(user_ids)
        if not user_ids:
            return []
        return db.query(User).filter(User.id.in_(user_ids)).all()

    @staticmethod
    def create_user(db: Session, user_id: str, username: Optional[str] = None, email: Optional[str] = None,
                    avatar_url: Optional[str] = None, email_friend_requests: bool = True) -> User:
        """Create a profile row and flush it (the caller commits)."""
        user = User(
            id=user_id,
            username=username,
            email=email,
            avatar_url=avatar_url,
            email_friend_requests=email_friend_requests,
        )
        db.add(user)
        db.flush()
        return user
