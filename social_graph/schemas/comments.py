from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class CommentUpdate(CommentCreate):
    pass


class ReactionCreate(BaseModel):
    reaction_type: str = Field(..., description="LIKE or DISLIKE")


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    trade_setup_id: str
    user_id: str
    content: str
    parent_id: Optional[str] = None
    is_edited: bool = False
    likes_count: int = 0
    dislikes_count: int = 0
    created_at: Optional[datetime] = None
    my_reaction: Optional[str] = None


class CommentNodeResponse(CommentResponse):
    replies: List["CommentNodeResponse"] = []


class ReactionResponse(BaseModel):
    comment_id: str
    reaction: Optional[str] = None
    likes_count: int
    dislikes_count: int


class CountersResponse(BaseModel):
    entity_type: str  # trade_setup | comment
    entity_id: str
    likes_count: int = 0
    dislikes_count: Optional[int] = None
    comments_count: Optional[int] = None


class SetupLikeResponse(BaseModel):
    trade_setup_id: str
    liked: bool
    likes_count: int


CommentNodeResponse.model_rebuild()
