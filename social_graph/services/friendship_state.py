"""Friendship lifecycle over the two relationship tables.

``friend_requests`` carries the directional request history
(pending -> accepted / declined, or deleted on cancel) and ``friendships``
carries the canonical per-pair row (ACCEPTED or BLOCKED). A BLOCKED row
always wins when the two are combined into a relationship state.
"""
import enum
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from social_graph.crud.friends import FriendsCRUD
from social_graph.crud.user import UserCRUD
from social_graph.database import transaction
from social_graph.errors import (
    AlreadyFriendsError,
    DuplicateRequestError,
    NotAuthorizedError,
    ReciprocalRequestError,
    RelationshipConflictError,
    RequestNotFoundError,
    SelfReferenceError,
)
from social_graph.models.friend_request import FriendRequest, FriendRequestStatus
from social_graph.models.friendship import Friendship, FriendshipStatus
from social_graph.services.identity import normalize
from social_graph.services.notifications import FriendRequestNotifier
from social_graph.utils.logger import get_logger

logger = get_logger(__name__)


class RelationshipState(str, enum.Enum):
    NONE = "NONE"
    PENDING_SENT = "PENDING_SENT"
    PENDING_RECEIVED = "PENDING_RECEIVED"
    FRIENDS = "FRIENDS"
    BLOCKED = "BLOCKED"


def _state_from_request(self_id: str, friend_request: Optional[FriendRequest]) -> RelationshipState:
    if friend_request is None:
        return RelationshipState.NONE
    if friend_request.status == FriendRequestStatus.ACCEPTED.value:
        return RelationshipState.FRIENDS
    if friend_request.status == FriendRequestStatus.PENDING.value:
        if friend_request.sender_id == self_id:
            return RelationshipState.PENDING_SENT
        return RelationshipState.PENDING_RECEIVED
    return RelationshipState.NONE


class FriendshipStateMachine:

    def __init__(self, db: Session, notifier: Optional[FriendRequestNotifier] = None):
        self.db = db
        self.notifier = notifier

    # --- requests ---

    async def send_request(self, self_id: str, other_id: str) -> FriendRequest:
        if self_id == other_id:
            raise SelfReferenceError("You can't send a friend request to yourself.")
        if self._is_blocked(self_id, other_id):
            raise NotAuthorizedError("You can't send a friend request to this user.")

        try:
            with transaction(self.db):
                existing = FriendsCRUD.find_request_between(self.db, self_id, other_id)
                if existing is not None:
                    self._check_existing(self_id, existing)
                    # Only a declined request gets here; a fresh request supersedes it
                    FriendsCRUD.delete_request(self.db, existing)
                friend_request = FriendsCRUD.create_request(self.db, self_id, other_id)
        except IntegrityError:
            # Someone else wrote a request for this pair between our read and insert
            logger.warning(f"Friend request insert raced for pair {self_id}/{other_id}")
            existing = FriendsCRUD.find_request_between(self.db, self_id, other_id)
            if existing is not None:
                self._check_existing(self_id, existing)
            raise DuplicateRequestError()

        logger.info(f"Friend request {friend_request.id} sent to {other_id}")
        self._notify_recipient(self_id, other_id)
        return friend_request

    async def accept_request(self, self_id: str, sender_id: str) -> FriendRequest:
        try:
            with transaction(self.db):
                friend_request = self._pending_or_raise(sender_id, self_id)
                FriendsCRUD.set_request_status(self.db, friend_request, FriendRequestStatus.ACCEPTED)
                pair = normalize(self_id, sender_id)
                friendship = FriendsCRUD.get_friendship(self.db, pair)
                if friendship is None or friendship.status != FriendshipStatus.BLOCKED.value:
                    FriendsCRUD.upsert_friendship(self.db, pair, FriendshipStatus.ACCEPTED, self_id)
        except IntegrityError:
            raise RelationshipConflictError()
        logger.info(f"Friend request from {sender_id} accepted")
        return friend_request

    async def decline_request(self, self_id: str, sender_id: str) -> FriendRequest:
        with transaction(self.db):
            friend_request = self._pending_or_raise(sender_id, self_id)
            FriendsCRUD.set_request_status(self.db, friend_request, FriendRequestStatus.DECLINED)
        logger.info(f"Friend request from {sender_id} declined")
        return friend_request

    async def cancel_request(self, self_id: str, recipient_id: str) -> None:
        with transaction(self.db):
            friend_request = self._pending_or_raise(self_id, recipient_id)
            FriendsCRUD.delete_request(self.db, friend_request)
        logger.info(f"Friend request to {recipient_id} cancelled")

    async def unfriend(self, self_id: str, other_id: str) -> bool:
        """Remove an accepted friendship in either direction; False if there was none."""
        if self_id == other_id:
            raise SelfReferenceError()
        with transaction(self.db):
            removed = FriendsCRUD.delete_accepted_between(self.db, self_id, other_id)
            friendship = FriendsCRUD.get_friendship(self.db, normalize(self_id, other_id))
            if friendship is not None and friendship.status == FriendshipStatus.ACCEPTED.value:
                FriendsCRUD.delete_friendship(self.db, friendship)
                removed += 1
        return removed > 0

    # --- blocking ---

    async def block(self, self_id: str, other_id: str) -> Friendship:
        if self_id == other_id:
            raise SelfReferenceError("You can't block yourself.")
        try:
            with transaction(self.db):
                friendship = FriendsCRUD.upsert_friendship(
                    self.db, normalize(self_id, other_id), FriendshipStatus.BLOCKED, self_id
                )
        except IntegrityError:
            logger.warning(f"Block of {other_id} conflicted with a concurrent write")
            raise RelationshipConflictError()
        logger.info(f"User {other_id} blocked")
        return friendship

    async def unblock(self, self_id: str, other_id: str) -> bool:
        """Lift a block placed by ``self_id``; False if the pair was not blocked."""
        if self_id == other_id:
            raise SelfReferenceError()
        pair = normalize(self_id, other_id)
        try:
            with transaction(self.db):
                friendship = FriendsCRUD.get_friendship(self.db, pair)
                if friendship is None or friendship.status != FriendshipStatus.BLOCKED.value:
                    return False
                if friendship.action_user_id != self_id:
                    raise NotAuthorizedError("Only the person who placed this block can remove it.")
                FriendsCRUD.delete_friendship(self.db, friendship)
                # Put back the accepted row the block overwrote
                history = FriendsCRUD.find_request_between(self.db, self_id, other_id)
                if history is not None and history.status == FriendRequestStatus.ACCEPTED.value:
                    FriendsCRUD.upsert_friendship(self.db, pair, FriendshipStatus.ACCEPTED, self_id)
        except IntegrityError:
            raise RelationshipConflictError()
        logger.info(f"User {other_id} unblocked")
        return True

    # --- queries ---

    async def get_relationship(self, self_id: str, other_id: str) -> RelationshipState:
        if self_id == other_id:
            return RelationshipState.NONE
        if self._is_blocked(self_id, other_id):
            return RelationshipState.BLOCKED
        return _state_from_request(self_id, FriendsCRUD.find_request_between(self.db, self_id, other_id))

    async def get_relationship_map(self, self_id: str, other_ids: List[str]) -> Dict[str, RelationshipState]:
        """Relationship with each of ``other_ids`` using two queries in total."""
        other_ids = [other_id for other_id in dict.fromkeys(other_ids) if other_id != self_id]
        states = {other_id: RelationshipState.NONE for other_id in other_ids}
        if not other_ids:
            return states
        for friend_request in FriendsCRUD.get_requests_with(self.db, self_id, other_ids):
            other_id = friend_request.recipient_id if friend_request.sender_id == self_id else friend_request.sender_id
            states[other_id] = _state_from_request(self_id, friend_request)
        for blocked_id in FriendsCRUD.get_blocked_user_ids(self.db, self_id):
            if blocked_id in states:
                states[blocked_id] = RelationshipState.BLOCKED
        return states

    async def list_friends(self, self_id: str) -> List[Tuple[str, FriendRequest]]:
        """(friend_id, accepted request) pairs, most recently accepted first; blocked pairs excluded."""
        blocked = set(FriendsCRUD.get_blocked_user_ids(self.db, self_id))
        friends = []
        for friend_request in FriendsCRUD.get_accepted_requests(self.db, self_id):
            friend_id = friend_request.recipient_id if friend_request.sender_id == self_id else friend_request.sender_id
            if friend_id not in blocked:
                friends.append((friend_id, friend_request))
        return friends

    async def list_incoming_requests(self, self_id: str) -> List[FriendRequest]:
        return FriendsCRUD.get_incoming_requests(self.db, self_id)

    async def list_sent_requests(self, self_id: str) -> List[FriendRequest]:
        return FriendsCRUD.get_sent_requests(self.db, self_id)

    # --- helpers ---

    def _is_blocked(self, user_a: str, user_b: str) -> bool:
        friendship = FriendsCRUD.get_friendship(self.db, normalize(user_a, user_b))
        return friendship is not None and friendship.status == FriendshipStatus.BLOCKED.value

    def _pending_or_raise(self, sender_id: str, recipient_id: str) -> FriendRequest:
        friend_request = FriendsCRUD.get_pending_request(self.db, sender_id, recipient_id)
        if friend_request is None:
            raise RequestNotFoundError()
        return friend_request

    @staticmethod
    def _check_existing(self_id: str, existing: FriendRequest) -> None:
        if existing.status == FriendRequestStatus.ACCEPTED.value:
            raise AlreadyFriendsError()
        if existing.status == FriendRequestStatus.PENDING.value:
            if existing.sender_id == self_id:
                raise DuplicateRequestError()
            raise ReciprocalRequestError()

    def _notify_recipient(self, sender_id: str, recipient_id: str) -> None:
        if self.notifier is None:
            return
        try:
            recipient = UserCRUD.get_user(self.db, recipient_id)
            if recipient is None or not recipient.email_friend_requests:
                return
            sender = UserCRUD.get_user(self.db, sender_id)
            self.notifier.notify_friend_request(recipient.email, sender.username if sender else None)
        except Exception as e:
            logger.warning(f"Could not schedule friend request email for {recipient_id}: {e}")
