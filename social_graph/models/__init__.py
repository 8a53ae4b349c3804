from social_graph.database import Base
from social_graph.models.user import User
from social_graph.models.friend_request import FriendRequest, FriendRequestStatus
from social_graph.models.friendship import Friendship, FriendshipStatus
from social_graph.models.trade_setup import TradeSetup, TradeSetupLike
from social_graph.models.comment import Comment
from social_graph.models.reaction import CommentReaction, ReactionType

__all__ = [
    "Base", "User", "FriendRequest", "FriendRequestStatus", "Friendship", "FriendshipStatus",
    "TradeSetup", "TradeSetupLike", "Comment", "CommentReaction", "ReactionType",
]
