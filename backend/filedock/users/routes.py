"""User routes: login, register, logout, refresh, me, admin user management."""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from filedock.auth.cookies import REFRESH_COOKIE, clear_auth_cookies, set_auth_cookies
from filedock.auth.dependencies import get_current_admin, get_current_user
from filedock.auth.jwt import (
    create_access_token,
    create_refresh_token,
    get_subject_from_refresh,
    verify_password,
)
from filedock.config import get_settings
from filedock.db.session import get_db
from filedock.limiter import limiter
from filedock.users.models import (
    AuthResponse,
    RefreshRequest,
    User,
    UserCreate,
    UserCredentials,
    UserResponse,
    UserUpdate,
)
from filedock.users.service import (
    create_user,
    delete_user,
    get_user_by_id,
    get_user_by_username,
    update_user,
)

router = APIRouter(prefix="/api", tags=["users"])
log = logging.getLogger(__name__)


def _issue_tokens(response: Response, user: User) -> AuthResponse:
    """Create an access/refresh pair, set both cookies, return the body."""
    settings = get_settings()
    access = create_access_token(user.id, user.username, user.is_admin)
    refresh = create_refresh_token(user.id, user.username, user.is_admin)
    set_auth_cookies(response, access, refresh)
    return AuthResponse(
        user=UserResponse.model_validate(user),
        token=access,
        refresh_token=refresh,
        expires_in=settings.access_token_expire_minutes * 60,
    )


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit("10/minute")
async def login(
    request: Request,
    response: Response,
    body: UserCredentials,
    session: Annotated[AsyncSession, Depends(get_db)],
) -> AuthResponse:
    """Login with username and password; returns tokens and sets auth cookies."""
    user = await get_user_by_username(session, body.username)
    if not user or not verify_password(body.password, user.password_hash):
        log.warning("Login failed for username=%s", body.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    log.info("Login successful for username=%s", user.username)
    return _issue_tokens(response, user)


@router.post("/auth/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def register(
    request: Request,
    body: UserCredentials,
    session: Annotated[AsyncSession, Depends(get_db)],
) -> UserResponse:
    """Self-registration of a non-admin account (if enabled)."""
    if not get_settings().allow_registration:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Registration is disabled",
        )
    try:
        user = await create_user(session, body.username, body.password, is_admin=False)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    await session.commit()
    return UserResponse.model_validate(user)


@router.post("/auth/refresh", response_model=AuthResponse)
@limiter.limit("20/minute")
async def refresh(
    request: Request,
    response: Response,
    session: Annotated[AsyncSession, Depends(get_db)],
    body: Optional[RefreshRequest] = None,
) -> AuthResponse:
    """Exchange a refresh token (body or cookie) for a new token pair."""
    token = (body.refresh_token if body else None) or request.cookies.get(REFRESH_COOKIE)
    user_id = get_subject_from_refresh(token) if token else None
    if not user_id:
        log.warning("Refresh failed: invalid or expired token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )
    user = await get_user_by_id(session, user_id)
    if not user:
        log.warning("Refresh failed: user not found id=%s", user_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    log.info("Refresh successful for username=%s", user.username)
    return _issue_tokens(response, user)


@router.post("/auth/logout")
async def logout(
    response: Response,
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """Clear auth cookies."""
    clear_auth_cookies(response)
    log.info("Logout username=%s", current_user.username)
    return {"detail": "Logged out successfully"}


@router.get("/auth/me", response_model=UserResponse)
async def me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> UserResponse:
    """Return current authenticated user."""
    return UserResponse.model_validate(current_user)


@router.get("/admin/users", response_model=list[UserResponse])
async def admin_list_users(
    current_user: Annotated[User, Depends(get_current_admin)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> list[UserResponse]:
    """List all users (admin only)."""
    result = await session.execute(select(User).order_by(User.username))
    users = result.scalars().all()
    log.info("Admin %s listed users count=%d", current_user.username, len(users))
    return [UserResponse.model_validate(u) for u in users]


@router.post("/admin/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def admin_create_user(
    payload: UserCreate,
    current_user: Annotated[User, Depends(get_current_admin)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> UserResponse:
    """Create a user with the given password and role (admin only)."""
    try:
        user = await create_user(session, payload.username, payload.password, payload.is_admin)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    await session.commit()
    log.info("Admin %s created user username=%s", current_user.username, user.username)
    return UserResponse.model_validate(user)


@router.put("/admin/users/{user_id}", response_model=UserResponse)
async def admin_update_user(
    user_id: str,
    payload: UserUpdate,
    current_user: Annotated[User, Depends(get_current_admin)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> UserResponse:
    """Rename a user or change their admin flag (admin only)."""
    user = await get_user_by_id(session, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    try:
        await update_user(session, user, payload)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    await session.commit()
    log.info("Admin %s updated user id=%s", current_user.username, user_id)
    return UserResponse.model_validate(user)


@router.delete("/admin/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def admin_delete_user(
    user_id: str,
    current_user: Annotated[User, Depends(get_current_admin)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    """Delete a user by id (admin only). The last admin cannot be deleted."""
    user = await get_user_by_id(session, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    try:
        await delete_user(session, user)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    await session.commit()
    log.info("Admin %s deleted user id=%s", current_user.username, user_id)
    return None
