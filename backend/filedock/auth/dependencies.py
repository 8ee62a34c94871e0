"""FastAPI dependencies for auth."""

import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from filedock.auth.cookies import ACCESS_COOKIE, REFRESH_COOKIE, set_access_cookie
from filedock.auth.jwt import (
    create_access_token,
    get_subject_from_access,
    get_subject_from_refresh,
)
from filedock.db.session import get_db
from filedock.users.models import User
from filedock.users.service import get_user_by_id

security = HTTPBearer(auto_error=False)
log = logging.getLogger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    response: Response,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Resolve the caller from the Bearer header or the access_token cookie.
    With neither, a valid refresh_token cookie mints a new access cookie.
    Raise 401 if nothing valid is presented.
    """
    user_id: Optional[str] = None
    refreshed = False
    token = credentials.credentials if credentials else request.cookies.get(ACCESS_COOKIE)
    if token:
        user_id = get_subject_from_access(token)
        if not user_id:
            log.debug("Invalid or expired access token")
            raise _unauthorized("Invalid or expired token")
    else:
        refresh_token = request.cookies.get(REFRESH_COOKIE)
        if not refresh_token:
            log.debug("Request missing access token")
            raise _unauthorized("Not authenticated")
        user_id = get_subject_from_refresh(refresh_token)
        if not user_id:
            log.debug("Invalid or expired refresh cookie")
            raise _unauthorized("Invalid or expired token")
        refreshed = True
    user = await get_user_by_id(session, user_id)
    if not user:
        log.warning("Token valid but user not found: id=%s", user_id)
        raise _unauthorized("User not found")
    if refreshed:
        set_access_cookie(response, create_access_token(user.id, user.username, user.is_admin))
        log.debug("Issued access cookie from refresh cookie for user=%s", user.username)
    return user


async def get_current_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Require current user to be admin."""
    if not current_user.is_admin:
        log.warning("Non-admin user attempted admin action: username=%s", current_user.username)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user
