from social_graph.schemas.common import ErrorDetail, OperationResult
from social_graph.schemas.friends import (
    UserProfile, FriendRequestResponse, IncomingRequestResponse, FriendshipResponse,
    FriendResponse, RelationshipResponse, StatusResponse,
)
from social_graph.schemas.comments import (
    CommentCreate, CommentUpdate, ReactionCreate, CommentResponse, CommentNodeResponse,
    ReactionResponse, CountersResponse, SetupLikeResponse,
)

__all__ = [
    "ErrorDetail", "OperationResult",
    "UserProfile", "FriendRequestResponse", "IncomingRequestResponse", "FriendshipResponse",
    "FriendResponse", "RelationshipResponse", "StatusResponse",
    "CommentCreate", "CommentUpdate", "ReactionCreate", "CommentResponse", "CommentNodeResponse",
    "ReactionResponse", "CountersResponse", "SetupLikeResponse",
]
