from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime


class UserProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: Optional[str] = None
    avatar_url: Optional[str] = None


class FriendRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    sender_id: str
    recipient_id: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class IncomingRequestResponse(FriendRequestResponse):
    sender_profile: Optional[UserProfile] = None


class FriendshipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user1_id: str
    user2_id: str
    status: str
    action_user_id: str
    updated_at: Optional[datetime] = None


class FriendResponse(BaseModel):
    id: str
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    friends_since: Optional[datetime] = None


class RelationshipResponse(BaseModel):
    user_id: str
    other_user_id: str
    status: str  # NONE | PENDING_SENT | PENDING_RECEIVED | FRIENDS | BLOCKED


class StatusResponse(BaseModel):
    message: str
    status: str
