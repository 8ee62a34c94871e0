"""User SQLAlchemy model and Pydantic schemas."""

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from filedock.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """User table: id is the token subject, username the login identifier."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )


# Pydantic schemas for API
class UserCredentials(BaseModel):
    """Login / register request body."""

    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=6, max_length=100)


class UserCreate(UserCredentials):
    """Payload for admin creating a new user."""

    is_admin: bool = False


class UserUpdate(BaseModel):
    """Payload for admin updating a user. Omitted fields stay unchanged."""

    username: Optional[str] = Field(default=None, min_length=3, max_length=50)
    is_admin: Optional[bool] = None


class UserResponse(BaseModel):
    """User as returned by API (no password)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    is_admin: bool
    created_at: datetime


class AuthResponse(BaseModel):
    """Login / refresh response. Tokens are also set as cookies."""

    user: UserResponse
    token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class RefreshRequest(BaseModel):
    """Refresh token request body (optional when the refresh cookie is sent)."""

    refresh_token: Optional[str] = None
