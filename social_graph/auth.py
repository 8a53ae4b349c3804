from abc import ABC, abstractmethod
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from social_graph.config import settings
from social_graph.crud.user import UserCRUD
from social_graph.database import get_db
from social_graph.errors import NotAuthenticatedError


class CurrentUserProvider(ABC):
    """Source of the acting user's id for facade operations."""

    @abstractmethod
    def get_current_user_id(self) -> str:
        """Return the signed-in user's id or raise NotAuthenticatedError."""


class StaticUserProvider(CurrentUserProvider):
    """Provider bound to one known user id (or to nobody)."""

    def __init__(self, user_id: Optional[str] = None):
        self.user_id = user_id

    def get_current_user_id(self) -> str:
        if not self.user_id:
            raise NotAuthenticatedError()
        return self.user_id


async def get_current_user_id(
    request: Request,
    db: Session = Depends(get_db),
) -> str:
    """
    Resolve the acting user from the configured user id header.

    Raises:
        HTTPException: 401 if the header is missing or names an unknown user
    """
    user_id = request.headers.get(settings.USER_ID_HEADER)
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"{settings.USER_ID_HEADER} header is required",
        )
    if UserCRUD.get_user(db, user_id) is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid {settings.USER_ID_HEADER}",
        )
    return user_id
