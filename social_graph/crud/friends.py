from sqlalchemy.orm import Session
from sqlalchemy import and_, or_
from typing import List, Optional
from social_graph.database import utcnow
from social_graph.models.friend_request import FriendRequest, FriendRequestStatus
from social_graph.models.friendship import Friendship, FriendshipStatus
from social_graph.services.identity import NormalizedPair, normalize


class FriendsCRUD:
    """Row-level access to ``friend_requests`` and ``friendships``.

    Methods flush but never commit; the calling service owns the transaction.
    """

    # --- friend_requests ---

    @staticmethod
    def find_request_between(db: Session, user_a: str, user_b: str) -> Optional[FriendRequest]:
        """Get the request row for the pair, whichever direction it was sent in."""
        pair = normalize(user_a, user_b)
        return db.query(FriendRequest).filter(
            and_(FriendRequest.pair_low == pair.first, FriendRequest.pair_high == pair.second)
        ).first()

    @staticmethod
    def create_request(db: Session, sender_id: str, recipient_id: str) -> FriendRequest:
        pair = normalize(sender_id, recipient_id)
        friend_request = FriendRequest(
            sender_id=sender_id,
            recipient_id=recipient_id,
            pair_low=pair.first,
            pair_high=pair.second,
            status=FriendRequestStatus.PENDING.value,
        )
        db.add(friend_request)
        db.flush()
        return friend_request

    @staticmethod
    def delete_request(db: Session, friend_request: FriendRequest) -> None:
        db.delete(friend_request)
        db.flush()

    @staticmethod
    def get_pending_request(db: Session, sender_id: str, recipient_id: str) -> Optional[FriendRequest]:
        return db.query(FriendRequest).filter(
            and_(
                FriendRequest.sender_id == sender_id,
                FriendRequest.recipient_id == recipient_id,
                FriendRequest.status == FriendRequestStatus.PENDING.value,
            )
        ).first()

    @staticmethod
    def set_request_status(db: Session, friend_request: FriendRequest, status: FriendRequestStatus) -> FriendRequest:
        friend_request.status = status.value
        friend_request.updated_at = utcnow()
        db.flush()
        return friend_request

    @staticmethod
    def delete_accepted_between(db: Session, user_a: str, user_b: str) -> int:
        """Delete the accepted request row for the pair; returns rows removed."""
        pair = normalize(user_a, user_b)
        rows = db.query(FriendRequest).filter(
            and_(
                FriendRequest.pair_low == pair.first,
                FriendRequest.pair_high == pair.second,
                FriendRequest.status == FriendRequestStatus.ACCEPTED.value,
            )
        ).all()
        for row in rows:
            db.delete(row)
        db.flush()
        return len(rows)

    @staticmethod
    def get_incoming_requests(db: Session, user_id: str) -> List[FriendRequest]:
        """Pending requests addressed to the user, newest first."""
        return db.query(FriendRequest).filter(
            and_(
                FriendRequest.recipient_id == user_id,
                FriendRequest.status == FriendRequestStatus.PENDING.value,
            )
        ).order_by(FriendRequest.created_at.desc()).all()

    @staticmethod
    def get_sent_requests(db: Session, user_id: str) -> List[FriendRequest]:
        """Pending requests sent by the user, newest first."""
        return db.query(FriendRequest).filter(
            and_(
                FriendRequest.sender_id == user_id,
                FriendRequest.status == FriendRequestStatus.PENDING.value,
            )
        ).order_by(FriendRequest.created_at.desc()).all()

    @staticmethod
    def get_accepted_requests(db: Session, user_id: str) -> List[FriendRequest]:
        return db.query(FriendRequest).filter(
            and_(
                or_(FriendRequest.sender_id == user_id, FriendRequest.recipient_id == user_id),
                FriendRequest.status == FriendRequestStatus.ACCEPTED.value,
            )
        ).order_by(FriendRequest.updated_at.desc()).all()

    @staticmethod
    def get_requests_with(db: Session, user_id: str, other_user_ids: List[str]) -> List[FriendRequest]:
        """All request rows between the user and any of the given users."""
        return db.query(FriendRequest).filter(
            or_(
                and_(FriendRequest.sender_id == user_id, FriendRequest.recipient_id.in_(other_user_ids)),
                and_(FriendRequest.recipient_id == user_id, FriendRequest.sender_id.in_(other_user_ids)),
            )
        ).all()

    # --- friendships ---

    @staticmethod
    def get_friendship(db: Session, pair: NormalizedPair) -> Optional[Friendship]:
        return db.query(Friendship).filter(
            and_(Friendship.user1_id == pair.first, Friendship.user2_id == pair.second)
        ).first()

    @staticmethod
    def upsert_friendship(db: Session, pair: NormalizedPair, status: FriendshipStatus, action_user_id: str) -> Friendship:
        """Insert or overwrite the canonical row for the pair."""
        friendship = FriendsCRUD.get_friendship(db, pair)
        if friendship is None:
            friendship = Friendship(user1_id=pair.first, user2_id=pair.second)
            db.add(friendship)
        friendship.status = status.value
        friendship.action_user_id = action_user_id
        friendship.updated_at = utcnow()
        db.flush()
        return friendship

    @staticmethod
    def delete_friendship(db: Session, friendship: Friendship) -> None:
        db.delete(friendship)
        db.flush()

    @staticmethod
    def get_blocked_user_ids(db: Session, user_id: str) -> List[str]:
        """IDs of users on the other side of a BLOCKED row, whoever blocked whom."""
        rows = db.query(Friendship).filter(
            and_(
                or_(Friendship.user1_id == user_id, Friendship.user2_id == user_id),
                Friendship.status == FriendshipStatus.BLOCKED.value,
            )
        ).all()
        return [row.user2_id if row.user1_id == user_id else row.user1_id for row in rows]
