"""Single entry point for the social layer.

Every public coroutine resolves the acting user, runs one operation and
returns an ``OperationResult``. Domain errors come back as typed failures;
anything else (storage unreachable, malformed rows) is logged and re-raised.
"""
from typing import Awaitable, Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from social_graph.auth import CurrentUserProvider
from social_graph.crud.comments import CommentsCRUD
from social_graph.crud.reactions import ReactionsCRUD
from social_graph.crud.user import UserCRUD
from social_graph.database import transaction
from social_graph.errors import CommentNotFoundError, NotAuthorizedError, SocialGraphError, ValidationError
from social_graph.models.comment import Comment
from social_graph.models.trade_setup import TradeSetup
from social_graph.realtime import ChangeFeed
from social_graph.schemas.comments import (
    CommentNodeResponse,
    CommentResponse,
    CountersResponse,
    ReactionResponse,
    SetupLikeResponse,
)
from social_graph.schemas.common import OperationResult
from social_graph.schemas.friends import (
    FriendRequestResponse,
    FriendResponse,
    FriendshipResponse,
    IncomingRequestResponse,
    RelationshipResponse,
    UserProfile,
)
from social_graph.services.comment_tree import CommentNode, build_tree
from social_graph.services.counter_sync import (
    COMMENT,
    COMMENTS_COUNT,
    LIKES_COUNT,
    TRADE_SETUP,
    EngagementCounterSync,
)
from social_graph.services.friendship_state import FriendshipStateMachine
from social_graph.services.notifications import FriendRequestNotifier
from social_graph.services.reaction_aggregator import (
    ReactionAggregator,
    counter_delta,
    parse_reaction_type,
    predict_transition,
)
from social_graph.utils.logger import clear_operation_context, get_logger, set_operation_context

logger = get_logger(__name__)

MAX_COMMENT_LENGTH = 5000


def read_counters(db: Session, entity_kind: str, entity_id: str) -> Optional[Dict[str, int]]:
    """Authoritative counters straight from storage (bypassing cached rows)."""
    if entity_kind == TRADE_SETUP:
        setup = db.query(TradeSetup).populate_existing().filter(TradeSetup.id == entity_id).first()
        if setup is None:
            return None
        return {"likes_count": setup.likes_count, "comments_count": setup.comments_count}
    if entity_kind == COMMENT:
        comment = db.query(Comment).populate_existing().filter(Comment.id == entity_id).first()
        if comment is None:
            return None
        return {"likes_count": comment.likes_count, "dislikes_count": comment.dislikes_count}
    raise ValidationError("Counters exist for trade setups and comments only.")


def connect_counter_feed(feed: ChangeFeed, counters: EngagementCounterSync,
                         session_factory: Callable[[], Session]) -> None:
    """Route engagement notifications into the counter sync and resync on reconnect."""
    for table in ("trade_setup_comments", "comment_reactions", "trade_setup_likes"):
        feed.subscribe(table, counters.apply_event)

    def resync():
        db = session_factory()
        try:
            counters.resync(lambda kind, entity_id: read_counters(db, kind, entity_id))
        finally:
            db.close()

    feed.on_reconnect(resync)


def _comment_response(comment: Comment, my_reaction: Optional[str] = None,
                      counts: Optional[Dict[str, int]] = None) -> CommentResponse:
    response = CommentResponse.model_validate(comment)
    response.my_reaction = my_reaction
    if counts:
        response.likes_count = counts.get("likes_count", response.likes_count)
        response.dislikes_count = counts.get("dislikes_count", response.dislikes_count)
    return response


class SocialGraphFacade:

    def __init__(self, db: Session, current_user: CurrentUserProvider,
                 counters: Optional[EngagementCounterSync] = None,
                 notifier: Optional[FriendRequestNotifier] = None):
        self.db = db
        self.current_user = current_user
        self.counters = counters or EngagementCounterSync()
        self.friendships = FriendshipStateMachine(db, notifier)
        self.reactions = ReactionAggregator(db)

    async def _execute(self, operation: str, handler: Callable[[str], Awaitable]) -> OperationResult:
        try:
            user_id = self.current_user.get_current_user_id()
        except SocialGraphError as e:
            return OperationResult.failure(e.kind, e.message)

        tokens = set_operation_context(user_id, operation)
        try:
            return OperationResult.success(await handler(user_id))
        except SocialGraphError as e:
            logger.info(f"{operation} refused: {e.kind}")
            return OperationResult.failure(e.kind, e.message)
        except Exception as e:
            logger.exception(f"{operation} failed unexpectedly: {e}")
            raise
        finally:
            # Next operation must see other sessions' writes, not cached rows
            if self.db.in_transaction():
                self.db.rollback()
            self.db.expire_all()
            clear_operation_context(tokens)

    # --- friendship ---

    async def send_request(self, other_id: str) -> OperationResult:
        async def handler(user_id):
            friend_request = await self.friendships.send_request(user_id, other_id)
            return FriendRequestResponse.model_validate(friend_request)
        return await self._execute("send_request", handler)

    async def accept_request(self, sender_id: str) -> OperationResult:
        async def handler(user_id):
            return FriendRequestResponse.model_validate(await self.friendships.accept_request(user_id, sender_id))
        return await self._execute("accept_request", handler)

    async def decline_request(self, sender_id: str) -> OperationResult:
        async def handler(user_id):
            return FriendRequestResponse.model_validate(await self.friendships.decline_request(user_id, sender_id))
        return await self._execute("decline_request", handler)

    async def cancel_request(self, recipient_id: str) -> OperationResult:
        async def handler(user_id):
            await self.friendships.cancel_request(user_id, recipient_id)
            return {"cancelled": True}
        return await self._execute("cancel_request", handler)

    async def unfriend(self, other_id: str) -> OperationResult:
        async def handler(user_id):
            return {"removed": await self.friendships.unfriend(user_id, other_id)}
        return await self._execute("unfriend", handler)

    async def block(self, other_id: str) -> OperationResult:
        async def handler(user_id):
            return FriendshipResponse.model_validate(await self.friendships.block(user_id, other_id))
        return await self._execute("block", handler)

    async def unblock(self, other_id: str) -> OperationResult:
        async def handler(user_id):
            return {"unblocked": await self.friendships.unblock(user_id, other_id)}
        return await self._execute("unblock", handler)

    async def get_relationship(self, other_id: str) -> OperationResult:
        async def handler(user_id):
            state = await self.friendships.get_relationship(user_id, other_id)
            return RelationshipResponse(user_id=user_id, other_user_id=other_id, status=state.value)
        return await self._execute("get_relationship", handler)

    async def get_relationship_map(self, other_ids: List[str]) -> OperationResult:
        async def handler(user_id):
            states = await self.friendships.get_relationship_map(user_id, other_ids)
            return {other_id: state.value for other_id, state in states.items()}
        return await self._execute("get_relationship_map", handler)

    async def list_friends(self) -> OperationResult:
        async def handler(user_id):
            friends = await self.friendships.list_friends(user_id)
            profiles = {user.id: user for user in UserCRUD.get_users(self.db, [friend_id for friend_id, _ in friends])}
            result = []
            for friend_id, friend_request in friends:
                profile = profiles.get(friend_id)
                result.append(FriendResponse(
                    id=friend_id,
                    username=profile.username if profile else None,
                    avatar_url=profile.avatar_url if profile else None,
                    friends_since=friend_request.updated_at,
                ))
            return result
        return await self._execute("list_friends", handler)

    async def list_incoming_requests(self) -> OperationResult:
        async def handler(user_id):
            requests = await self.friendships.list_incoming_requests(user_id)
            senders = {user.id: user for user in UserCRUD.get_users(self.db, [r.sender_id for r in requests])}
            result = []
            for friend_request in requests:
                response = IncomingRequestResponse.model_validate(friend_request)
                sender = senders.get(friend_request.sender_id)
                if sender is not None:
                    response.sender_profile = UserProfile.model_validate(sender)
                result.append(response)
            return result
        return await self._execute("list_incoming_requests", handler)

    async def list_sent_requests(self) -> OperationResult:
        async def handler(user_id):
            return [FriendRequestResponse.model_validate(r) for r in await self.friendships.list_sent_requests(user_id)]
        return await self._execute("list_sent_requests", handler)

    # --- comments ---

    async def post_comment(self, trade_setup_id: str, content: str) -> OperationResult:
        async def handler(user_id):
            return self._write_comment(user_id, trade_setup_id, content, parent_id=None)
        return await self._execute("post_comment", handler)

    async def post_reply(self, trade_setup_id: str, parent_comment_id: str, content: str) -> OperationResult:
        async def handler(user_id):
            parent = CommentsCRUD.get_comment(self.db, parent_comment_id)
            if parent is None or parent.trade_setup_id != trade_setup_id:
                raise CommentNotFoundError("The comment you are replying to is no longer available.")
            return self._write_comment(user_id, trade_setup_id, content, parent_id=parent_comment_id)
        return await self._execute("post_reply", handler)

    async def edit_comment(self, comment_id: str, content: str) -> OperationResult:
        async def handler(user_id):
            cleaned = self._clean_content(content)
            with transaction(self.db):
                comment = self._own_comment(user_id, comment_id, "edit")
                CommentsCRUD.update_comment_content(self.db, comment, cleaned)
            return _comment_response(comment)
        return await self._execute("edit_comment", handler)

    async def delete_comment(self, comment_id: str) -> OperationResult:
        async def handler(user_id):
            token = None
            try:
                with transaction(self.db):
                    comment = self._own_comment(user_id, comment_id, "delete")
                    trade_setup_id = comment.trade_setup_id
                    self._track(TRADE_SETUP, trade_setup_id)
                    token = self.counters.apply_optimistic(
                        TRADE_SETUP, trade_setup_id, "comment.delete", {COMMENTS_COUNT: -1}, user_id
                    )
                    if not CommentsCRUD.delete_comment(self.db, comment):
                        # Another session of this user deleted it first
                        raise CommentNotFoundError()
            except Exception:
                if token is not None:
                    self.counters.rollback(token)
                raise
            self.counters.confirm(token, comment_id)
            self.counters.forget(COMMENT, comment_id)
            return {"deleted": True, "comment_id": comment_id, "trade_setup_id": trade_setup_id}
        return await self._execute("delete_comment", handler)

    async def get_comments(self, trade_setup_id: str) -> OperationResult:
        async def handler(user_id):
            comments = self._load_comments(trade_setup_id)
            mine = ReactionsCRUD.get_user_reactions(self.db, user_id, [c.id for c in comments])
            return [_comment_response(c, mine.get(c.id), self.counters.get(COMMENT, c.id)) for c in comments]
        return await self._execute("get_comments", handler)

    async def build_comment_tree(self, trade_setup_id: str) -> OperationResult:
        async def handler(user_id):
            comments = self._load_comments(trade_setup_id)
            mine = ReactionsCRUD.get_user_reactions(self.db, user_id, [c.id for c in comments])

            def to_response(node: CommentNode) -> CommentNodeResponse:
                flat = _comment_response(node.comment, mine.get(node.id), self.counters.get(COMMENT, node.id))
                return CommentNodeResponse(
                    **flat.model_dump(),
                    replies=[to_response(reply) for reply in node.replies],
                )

            return [to_response(root) for root in build_tree(comments)]
        return await self._execute("build_comment_tree", handler)

    # --- reactions ---

    async def react(self, comment_id: str, reaction_type: str) -> OperationResult:
        async def handler(user_id):
            requested = parse_reaction_type(reaction_type)
            if CommentsCRUD.get_comment(self.db, comment_id) is None:
                raise CommentNotFoundError()
            self._track(COMMENT, comment_id)

            previous = self.reactions.current_reaction(comment_id, user_id)
            predicted = predict_transition(previous, requested)
            operation = self._reaction_operation(previous, predicted)
            token = self.counters.apply_optimistic(
                COMMENT, comment_id, operation, counter_delta(previous, predicted), user_id
            )
            try:
                outcome = await self.reactions.react(comment_id, user_id, requested)
            except Exception:
                self.counters.rollback(token)
                raise

            if outcome.operation != operation:
                # Another session changed this user's reaction in between; trust storage
                self.counters.rollback(token)
                self.counters.seed(COMMENT, comment_id, read_counters(self.db, COMMENT, comment_id) or {})
            else:
                self.counters.confirm(token, outcome.row_id)
            return ReactionResponse(
                comment_id=comment_id,
                reaction=outcome.reaction.value if outcome.reaction else None,
                likes_count=outcome.likes_count,
                dislikes_count=outcome.dislikes_count,
            )
        return await self._execute("react", handler)

    async def toggle_setup_like(self, trade_setup_id: str) -> OperationResult:
        async def handler(user_id):
            setup = CommentsCRUD.get_trade_setup(self.db, trade_setup_id)
            if setup is None:
                raise CommentNotFoundError("This trade setup is no longer available.")
            self._track(TRADE_SETUP, trade_setup_id)
            try:
                return self._toggle_setup_like(user_id, setup)
            except IntegrityError:
                # The same user liked it from another session first; that like stands
                logger.warning(f"Like of trade setup {trade_setup_id} raced; keeping the stored like")
                liked = CommentsCRUD.get_setup_like(self.db, trade_setup_id, user_id) is not None
                counts = read_counters(self.db, TRADE_SETUP, trade_setup_id) or {}
                return SetupLikeResponse(
                    trade_setup_id=trade_setup_id, liked=liked, likes_count=counts.get(LIKES_COUNT, 0)
                )
        return await self._execute("toggle_setup_like", handler)

    async def get_counters(self, entity_type: str, entity_id: str) -> OperationResult:
        async def handler(user_id):
            counts = self._track(entity_type, entity_id)
            return CountersResponse(entity_type=entity_type, entity_id=entity_id, **counts)
        return await self._execute("get_counters", handler)

    # --- counter sync ---

    def resync_counters(self) -> None:
        """Re-read every tracked counter from storage (feed reconnect)."""
        self.counters.resync(lambda kind, entity_id: read_counters(self.db, kind, entity_id))
        self.db.expire_all()

    # --- helpers ---

    def _track(self, entity_kind: str, entity_id: str) -> Dict[str, int]:
        """Displayed counters for an entity, seeding from storage on first use."""
        counts = self.counters.get(entity_kind, entity_id)
        if counts is not None:
            return counts
        authoritative = read_counters(self.db, entity_kind, entity_id)
        if authoritative is None:
            if entity_kind == TRADE_SETUP:
                raise CommentNotFoundError("This trade setup is no longer available.")
            raise CommentNotFoundError()
        return self.counters.seed(entity_kind, entity_id, authoritative)

    @staticmethod
    def _reaction_operation(previous, current) -> str:
        if previous is None:
            return f"{current.value}.insert"
        if current is None:
            return f"{previous.value}.delete"
        return f"{previous.value}->{current.value}"

    @staticmethod
    def _clean_content(content: str) -> str:
        content = (content or "").strip()
        if not content:
            raise ValidationError("Comment can't be empty.")
        if len(content) > MAX_COMMENT_LENGTH:
            raise ValidationError(f"Comment can't be longer than {MAX_COMMENT_LENGTH} characters.")
        return content

    def _own_comment(self, user_id: str, comment_id: str, action: str) -> Comment:
        comment = CommentsCRUD.get_comment(self.db, comment_id)
        if comment is None:
            raise CommentNotFoundError()
        if comment.user_id != user_id:
            raise NotAuthorizedError(f"You can only {action} your own comments.")
        return comment

    def _load_comments(self, trade_setup_id: str) -> List[Comment]:
        if CommentsCRUD.get_trade_setup(self.db, trade_setup_id) is None:
            raise CommentNotFoundError("This trade setup is no longer available.")
        return CommentsCRUD.list_comments(self.db, trade_setup_id)

    def _toggle_setup_like(self, user_id: str, setup: TradeSetup) -> SetupLikeResponse:
        token = None
        try:
            with transaction(self.db):
                existing = CommentsCRUD.get_setup_like(self.db, setup.id, user_id)
                if existing is None:
                    token = self.counters.apply_optimistic(
                        TRADE_SETUP, setup.id, "setup_like.insert", {LIKES_COUNT: 1}, user_id
                    )
                    row_id = CommentsCRUD.add_setup_like(self.db, setup, user_id).id
                else:
                    token = self.counters.apply_optimistic(
                        TRADE_SETUP, setup.id, "setup_like.delete", {LIKES_COUNT: -1}, user_id
                    )
                    row_id = existing.id
                    if not CommentsCRUD.remove_setup_like(self.db, setup, existing):
                        # Already unliked from another session; nothing was written
                        self.counters.rollback(token)
                        token = None
        except Exception:
            if token is not None:
                self.counters.rollback(token)
            raise
        if token is not None:
            self.counters.confirm(token, row_id)
        return SetupLikeResponse(trade_setup_id=setup.id, liked=existing is None, likes_count=setup.likes_count)

    def _write_comment(self, user_id: str, trade_setup_id: str, content: str,
                       parent_id: Optional[str]) -> CommentResponse:
        content = self._clean_content(content)
        setup = CommentsCRUD.get_trade_setup(self.db, trade_setup_id)
        if setup is None:
            raise CommentNotFoundError("This trade setup is no longer available.")
        self._track(TRADE_SETUP, trade_setup_id)

        # Write accepted for submission: apply the optimistic count now, undo on failure
        token = self.counters.apply_optimistic(
            TRADE_SETUP, trade_setup_id, "comment.insert", {COMMENTS_COUNT: 1}, user_id
        )
        try:
            with transaction(self.db):
                comment = CommentsCRUD.create_comment(self.db, setup, user_id, content, parent_id)
        except Exception:
            self.counters.rollback(token)
            raise
        self.counters.confirm(token, comment.id)
        return _comment_response(comment)
