from sqlalchemy.orm import Session
from sqlalchemy import and_, func
from typing import List, Optional
from social_graph.database import utcnow
from social_graph.models.comment import Comment
from social_graph.models.trade_setup import TradeSetup, TradeSetupLike


class CommentsCRUD:
    """Row-level access to trade setups, their likes and their comments.

    Counter columns are recomputed from the child tables in the same
    transaction as the write that changed them.
    """

    @staticmethod
    def get_trade_setup(db: Session, trade_setup_id: str) -> Optional[TradeSetup]:
        return db.query(TradeSetup).filter(TradeSetup.id == trade_setup_id).first()

    @staticmethod
    def create_trade_setup(db: Session, user_id: str, title: str, description: Optional[str] = None) -> TradeSetup:
        trade_setup = TradeSetup(user_id=user_id, title=title, description=description)
        db.add(trade_setup)
        db.flush()
        return trade_setup

    @staticmethod
    def get_comment(db: Session, comment_id: str) -> Optional[Comment]:
        return db.query(Comment).filter(Comment.id == comment_id).first()

    @staticmethod
    def list_comments(db: Session, trade_setup_id: str) -> List[Comment]:
        """Every comment and reply on a trade setup, oldest first."""
        return db.query(Comment).filter(
            Comment.trade_setup_id == trade_setup_id
        ).order_by(Comment.created_at.asc()).all()

    @staticmethod
    def create_comment(db: Session, trade_setup: TradeSetup, user_id: str, content: str,
                       parent_id: Optional[str] = None) -> Comment:
        comment = Comment(
            trade_setup_id=trade_setup.id,
            user_id=user_id,
            content=content,
            parent_id=parent_id,
        )
        db.add(comment)
        db.flush()
        CommentsCRUD.recount_comments(db, trade_setup)
        return comment

    @staticmethod
    def update_comment_content(db: Session, comment: Comment, content: str) -> Comment:
        comment.content = content
        comment.is_edited = True
        comment.updated_at = utcnow()
        db.flush()
        return comment

    @staticmethod
    def delete_comment(db: Session, comment: Comment) -> bool:
        """Delete one comment; its replies stay and become orphans.

        Returns False when the row is already gone (deleted from another
        session after ``comment`` was loaded).
        """
        if not CommentsCRUD._lock_row(db, Comment, comment.id):
            return False
        trade_setup = CommentsCRUD.get_trade_setup(db, comment.trade_setup_id)
        db.delete(comment)
        db.flush()
        if trade_setup is not None:
            CommentsCRUD.recount_comments(db, trade_setup)
        return True

    @staticmethod
    def recount_comments(db: Session, trade_setup: TradeSetup) -> int:
        count = db.query(func.count(Comment.id)).filter(Comment.trade_setup_id == trade_setup.id).scalar() or 0
        trade_setup.comments_count = count
        db.flush()
        return count

    # --- trade setup likes ---

    @staticmethod
    def get_setup_like(db: Session, trade_setup_id: str, user_id: str) -> Optional[TradeSetupLike]:
        return db.query(TradeSetupLike).filter(
            and_(TradeSetupLike.trade_setup_id == trade_setup_id, TradeSetupLike.user_id == user_id)
        ).first()

    @staticmethod
    def add_setup_like(db: Session, trade_setup: TradeSetup, user_id: str) -> TradeSetupLike:
        like = TradeSetupLike(trade_setup_id=trade_setup.id, user_id=user_id)
        db.add(like)
        db.flush()
        CommentsCRUD.recount_setup_likes(db, trade_setup)
        return like

    @staticmethod
    def remove_setup_like(db: Session, trade_setup: TradeSetup, like: TradeSetupLike) -> bool:
        if not CommentsCRUD._lock_row(db, TradeSetupLike, like.id):
            return False
        db.delete(like)
        db.flush()
        CommentsCRUD.recount_setup_likes(db, trade_setup)
        return True

    @staticmethod
    def recount_setup_likes(db: Session, trade_setup: TradeSetup) -> int:
        count = db.query(func.count(TradeSetupLike.id)).filter(
            TradeSetupLike.trade_setup_id == trade_setup.id
        ).scalar() or 0
        trade_setup.likes_count = count
        db.flush()
        return count

    @staticmethod
    def _lock_row(db: Session, model, row_id: str) -> bool:
        # Column query so the answer comes from storage, not the identity map
        return db.query(model.id).filter(model.id == row_id).with_for_update().first() is not None
