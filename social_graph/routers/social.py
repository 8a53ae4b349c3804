from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from social_graph.dependencies import get_facade
from social_graph.schemas.comments import (
    CommentCreate,
    CommentNodeResponse,
    CommentResponse,
    CommentUpdate,
    CountersResponse,
    ReactionCreate,
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
    StatusResponse,
)
from social_graph.services.facade import SocialGraphFacade
from social_graph.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/social", tags=["social"])

ERROR_STATUS = {
    "NOT_AUTHENTICATED": status.HTTP_401_UNAUTHORIZED,
    "NOT_AUTHORIZED": status.HTTP_403_FORBIDDEN,
    "REQUEST_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "COMMENT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "DUPLICATE_REQUEST": status.HTTP_409_CONFLICT,
    "RECIPROCAL_REQUEST": status.HTTP_409_CONFLICT,
    "ALREADY_FRIENDS": status.HTTP_409_CONFLICT,
    "RELATIONSHIP_CONFLICT": status.HTTP_409_CONFLICT,
    "SELF_REFERENCE": status.HTTP_400_BAD_REQUEST,
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
}


def _unwrap(result: OperationResult):
    """Return the payload or raise the HTTP error matching the failure kind."""
    if result.ok:
        return result.data
    raise HTTPException(
        status_code=ERROR_STATUS.get(result.error.kind, status.HTTP_400_BAD_REQUEST),
        detail={"kind": result.error.kind, "message": result.error.message},
    )


# --- friend requests ---

@router.post("/friends/requests/{recipient_id}", response_model=FriendRequestResponse)
async def send_friend_request(recipient_id: str, facade: SocialGraphFacade = Depends(get_facade)):
    """Send a friend request to another user"""
    return _unwrap(await facade.send_request(recipient_id))


@router.post("/friends/requests/{sender_id}/accept", response_model=FriendRequestResponse)
async def accept_friend_request(sender_id: str, facade: SocialGraphFacade = Depends(get_facade)):
    return _unwrap(await facade.accept_request(sender_id))


@router.post("/friends/requests/{sender_id}/decline", response_model=FriendRequestResponse)
async def decline_friend_request(sender_id: str, facade: SocialGraphFacade = Depends(get_facade)):
    return _unwrap(await facade.decline_request(sender_id))


@router.delete("/friends/requests/{recipient_id}", response_model=StatusResponse)
async def cancel_friend_request(recipient_id: str, facade: SocialGraphFacade = Depends(get_facade)):
    """Cancel a sent friend request"""
    _unwrap(await facade.cancel_request(recipient_id))
    return StatusResponse(message="Friend request cancelled successfully", status="cancelled")


@router.get("/friends/requests", response_model=List[IncomingRequestResponse])
async def get_incoming_requests(facade: SocialGraphFacade = Depends(get_facade)):
    """Get pending friend requests for the current user"""
    return _unwrap(await facade.list_incoming_requests())


@router.get("/friends/requests/sent", response_model=List[FriendRequestResponse])
async def get_sent_requests(facade: SocialGraphFacade = Depends(get_facade)):
    return _unwrap(await facade.list_sent_requests())


# --- friends & blocks ---

@router.get("/friends", response_model=List[FriendResponse])
async def get_friends(facade: SocialGraphFacade = Depends(get_facade)):
    return _unwrap(await facade.list_friends())


@router.delete("/friends/{friend_id}", response_model=StatusResponse)
async def remove_friend(friend_id: str, facade: SocialGraphFacade = Depends(get_facade)):
    """Remove a friend (unfriend)"""
    data = _unwrap(await facade.unfriend(friend_id))
    if not data["removed"]:
        return StatusResponse(message="You are not friends with this user", status="none")
    return StatusResponse(message="Friend removed successfully", status="removed")


@router.post("/blocks/{user_id}", response_model=FriendshipResponse)
async def block_user(user_id: str, facade: SocialGraphFacade = Depends(get_facade)):
    return _unwrap(await facade.block(user_id))


@router.delete("/blocks/{user_id}", response_model=StatusResponse)
async def unblock_user(user_id: str, facade: SocialGraphFacade = Depends(get_facade)):
    data = _unwrap(await facade.unblock(user_id))
    if not data["unblocked"]:
        return StatusResponse(message="This user is not blocked", status="none")
    return StatusResponse(message="User unblocked successfully", status="unblocked")


@router.get("/relationships/{user_id}", response_model=RelationshipResponse)
async def get_relationship(user_id: str, facade: SocialGraphFacade = Depends(get_facade)):
    return _unwrap(await facade.get_relationship(user_id))


@router.get("/relationships")
async def get_relationship_map(
    user_ids: List[str] = Query(..., description="Users to resolve"),
    facade: SocialGraphFacade = Depends(get_facade),
):
    return _unwrap(await facade.get_relationship_map(user_ids))


# --- comments & reactions ---

@router.get("/trade-setups/{trade_setup_id}/comments/tree", response_model=List[CommentNodeResponse])
async def get_comment_tree(trade_setup_id: str, facade: SocialGraphFacade = Depends(get_facade)):
    return _unwrap(await facade.build_comment_tree(trade_setup_id))


@router.get("/trade-setups/{trade_setup_id}/comments", response_model=List[CommentResponse])
async def get_comments(trade_setup_id: str, facade: SocialGraphFacade = Depends(get_facade)):
    return _unwrap(await facade.get_comments(trade_setup_id))


@router.post("/trade-setups/{trade_setup_id}/comments", response_model=CommentResponse,
             status_code=status.HTTP_201_CREATED)
async def post_comment(trade_setup_id: str, body: CommentCreate, facade: SocialGraphFacade = Depends(get_facade)):
    return _unwrap(await facade.post_comment(trade_setup_id, body.content))


@router.post("/trade-setups/{trade_setup_id}/comments/{comment_id}/replies", response_model=CommentResponse,
             status_code=status.HTTP_201_CREATED)
async def post_reply(trade_setup_id: str, comment_id: str, body: CommentCreate,
                     facade: SocialGraphFacade = Depends(get_facade)):
    return _unwrap(await facade.post_reply(trade_setup_id, comment_id, body.content))


@router.patch("/comments/{comment_id}", response_model=CommentResponse)
async def edit_comment(comment_id: str, body: CommentUpdate, facade: SocialGraphFacade = Depends(get_facade)):
    return _unwrap(await facade.edit_comment(comment_id, body.content))


@router.delete("/comments/{comment_id}", response_model=StatusResponse)
async def delete_comment(comment_id: str, facade: SocialGraphFacade = Depends(get_facade)):
    _unwrap(await facade.delete_comment(comment_id))
    return StatusResponse(message="Comment deleted", status="deleted")


@router.post("/comments/{comment_id}/reactions", response_model=ReactionResponse)
async def react_to_comment(comment_id: str, body: ReactionCreate, facade: SocialGraphFacade = Depends(get_facade)):
    return _unwrap(await facade.react(comment_id, body.reaction_type))


@router.post("/trade-setups/{trade_setup_id}/like", response_model=SetupLikeResponse)
async def toggle_trade_setup_like(trade_setup_id: str, facade: SocialGraphFacade = Depends(get_facade)):
    return _unwrap(await facade.toggle_setup_like(trade_setup_id))


@router.get("/counters/{entity_type}/{entity_id}", response_model=CountersResponse)
async def get_counters(entity_type: str, entity_id: str, facade: SocialGraphFacade = Depends(get_facade)):
    return _unwrap(await facade.get_counters(entity_type, entity_id))
