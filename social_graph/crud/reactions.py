from sqlalchemy.orm import Session
from sqlalchemy import and_, func
from typing import Dict, List, Optional
from social_graph.database import utcnow
from social_graph.models.comment import Comment
from social_graph.models.reaction import CommentReaction, ReactionType


class ReactionsCRUD:

    @staticmethod
    def get_reaction(db: Session, comment_id: str, user_id: str) -> Optional[CommentReaction]:
        return db.query(CommentReaction).filter(
            and_(CommentReaction.comment_id == comment_id, CommentReaction.user_id == user_id)
        ).first()

    @staticmethod
    def get_user_reactions(db: Session, user_id: str, comment_ids: List[str]) -> Dict[str, str]:
        """Map of comment_id -> reaction type for the user's reactions."""
        if not comment_ids:
            return {}
        rows = db.query(CommentReaction).filter(
            and_(CommentReaction.user_id == user_id, CommentReaction.comment_id.in_(comment_ids))
        ).all()
        return {row.comment_id: row.reaction_type for row in rows}

    @staticmethod
    def add_reaction(db: Session, comment_id: str, user_id: str, reaction_type: ReactionType) -> CommentReaction:
        reaction = CommentReaction(comment_id=comment_id, user_id=user_id, reaction_type=reaction_type.value)
        db.add(reaction)
        db.flush()
        return reaction

    @staticmethod
    def change_reaction(db: Session, reaction: CommentReaction, reaction_type: ReactionType) -> CommentReaction:
        reaction.reaction_type = reaction_type.value
        reaction.updated_at = utcnow()
        db.flush()
        return reaction

    @staticmethod
    def remove_reaction(db: Session, reaction: CommentReaction) -> None:
        db.delete(reaction)
        db.flush()

    @staticmethod
    def recount(db: Session, comment: Comment) -> Comment:
        """Recompute the like/dislike counters of a comment from its reactions."""
        rows = db.query(CommentReaction.reaction_type, func.count(CommentReaction.id)).filter(
            CommentReaction.comment_id == comment.id
        ).group_by(CommentReaction.reaction_type).all()
        counts = {reaction_type: count for reaction_type, count in rows}
        comment.likes_count = counts.get(ReactionType.LIKE.value, 0)
        comment.dislikes_count = counts.get(ReactionType.DISLIKE.value, 0)
        db.flush()
        return comment
