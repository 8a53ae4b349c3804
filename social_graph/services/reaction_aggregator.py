from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from social_graph.crud.comments import CommentsCRUD
from social_graph.crud.reactions import ReactionsCRUD
from social_graph.database import transaction
from social_graph.errors import CommentNotFoundError, ValidationError
from social_graph.models.reaction import ReactionType
from social_graph.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ReactionOutcome:
    """Result of one react() call: the user's new reaction and fresh counters."""
    comment_id: str
    trade_setup_id: str
    reaction: Optional[ReactionType]
    previous: Optional[ReactionType]
    likes_count: int
    dislikes_count: int
    row_id: Optional[str] = None

    @property
    def operation(self) -> Optional[str]:
        """Change-feed operation this outcome produces, matching counter_sync naming."""
        if self.previous is None and self.reaction is not None:
            return f"{self.reaction.value}.insert"
        if self.previous is not None and self.reaction is None:
            return f"{self.previous.value}.delete"
        if self.previous is not None and self.reaction is not None:
            return f"{self.previous.value}->{self.reaction.value}"
        return None


def parse_reaction_type(value) -> ReactionType:
    if isinstance(value, ReactionType):
        return value
    try:
        return ReactionType(str(value).upper())
    except ValueError:
        raise ValidationError("Reaction must be LIKE or DISLIKE.")


def predict_transition(current: Optional[ReactionType], requested: ReactionType) -> Optional[ReactionType]:
    """Reaction the user ends up with: same type toggles off, other type replaces."""
    if current == requested:
        return None
    return requested


class ReactionAggregator:
    """Toggle/replace reactions with at most one row per (comment, user)."""

    def __init__(self, db: Session):
        self.db = db

    def current_reaction(self, comment_id: str, user_id: str) -> Optional[ReactionType]:
        reaction = ReactionsCRUD.get_reaction(self.db, comment_id, user_id)
        return ReactionType(reaction.reaction_type) if reaction else None

    async def react(self, comment_id: str, user_id: str, reaction_type) -> ReactionOutcome:
        requested = parse_reaction_type(reaction_type)
        try:
            return self._apply(comment_id, user_id, requested)
        except IntegrityError:
            # A concurrent call by the same user inserted first; re-run against that row
            logger.warning(f"Reaction insert on comment {comment_id} raced; retrying")
            return self._apply(comment_id, user_id, requested)

    def _apply(self, comment_id: str, user_id: str, requested: ReactionType) -> ReactionOutcome:
        with transaction(self.db):
            comment = CommentsCRUD.get_comment(self.db, comment_id)
            if comment is None:
                raise CommentNotFoundError()

            existing = ReactionsCRUD.get_reaction(self.db, comment_id, user_id)
            previous = ReactionType(existing.reaction_type) if existing else None
            row_id = existing.id if existing else None

            if existing is None:
                row_id = ReactionsCRUD.add_reaction(self.db, comment_id, user_id, requested).id
                current = requested
            elif previous == requested:
                ReactionsCRUD.remove_reaction(self.db, existing)
                current = None
            else:
                ReactionsCRUD.change_reaction(self.db, existing, requested)
                current = requested

            ReactionsCRUD.recount(self.db, comment)

        logger.debug(f"Reaction on {comment_id}: {previous} -> {current}")
        return ReactionOutcome(
            comment_id=comment_id,
            trade_setup_id=comment.trade_setup_id,
            reaction=current,
            previous=previous,
            likes_count=comment.likes_count,
            dislikes_count=comment.dislikes_count,
            row_id=row_id,
        )


def counter_delta(previous: Optional[ReactionType], current: Optional[ReactionType]) -> dict:
    """Counter movement for a transition between two reaction states."""
    names = {ReactionType.LIKE: "likes_count", ReactionType.DISLIKE: "dislikes_count"}
    delta = {}
    if previous is not None:
        delta[names[previous]] = delta.get(names[previous], 0) - 1
    if current is not None:
        delta[names[current]] = delta.get(names[current], 0) + 1
    return {name: amount for name, amount in delta.items() if amount}
