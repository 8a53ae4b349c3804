from social_graph.crud.user import UserCRUD
from social_graph.crud.friends import FriendsCRUD
from social_graph.crud.comments import CommentsCRUD
from social_graph.crud.reactions import ReactionsCRUD

__all__ = ["UserCRUD", "FriendsCRUD", "CommentsCRUD", "ReactionsCRUD"]
