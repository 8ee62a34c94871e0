"""Admin overview routes: catalog/user stats and recent file activity."""

import logging
from datetime import datetime
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from filedock.auth.dependencies import get_current_admin
from filedock.db.session import get_db
from filedock.files.models import FileEntry, FileType, FileTypeStats
from filedock.files.store import FileStore
from filedock.users.models import User
from filedock.users.service import user_stats

router = APIRouter(prefix="/api/admin", tags=["admin"])
log = logging.getLogger(__name__)

# Max rows returned by /logs
LOG_LIMIT = 100


class UserStats(BaseModel):
    total_users: int
    admin_count: int


class AdminStats(BaseModel):
    """Response for GET /api/admin/stats."""

    users: UserStats
    files: List[FileTypeStats]


class ActivityEntry(BaseModel):
    """One catalog entry in the recent-activity log."""

    id: str
    type: FileType
    name: str
    size: int
    created_at: datetime


@router.get("/stats", response_model=AdminStats)
async def admin_stats(
    current_user: Annotated[User, Depends(get_current_admin)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> AdminStats:
    """User counts plus count and size per file type."""
    users = await user_stats(session)
    files = await FileStore(session).stats_by_type()
    return AdminStats(
        users=UserStats(**users),
        files=[FileTypeStats(**row) for row in files],
    )


@router.get("/logs", response_model=List[ActivityEntry])
async def admin_logs(
    current_user: Annotated[User, Depends(get_current_admin)],
    session: Annotated[AsyncSession, Depends(get_db)],
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    file_type: Annotated[Optional[FileType], Query(alias="type")] = None,
) -> List[ActivityEntry]:
    """Most recently created entries, newest first, optionally in a date range."""
    criteria = []
    if start_date is not None and end_date is not None:
        criteria.append(FileEntry.created_at.between(start_date, end_date))
    filters = {}
    if file_type is not None:
        filters["type"] = file_type
    entries = await FileStore(session).find(
        *criteria,
        order_by=(FileEntry.created_at.desc(),),
        limit=LOG_LIMIT,
        **filters,
    )
    log.info("Admin %s read activity log count=%d", current_user.username, len(entries))
    return [
        ActivityEntry(
            id=e.id, type=e.type, name=e.name, size=e.size, created_at=e.created_at
        )
        for e in entries
    ]
