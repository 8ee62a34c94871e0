"""File API routes: browse, search, upload, folders, content, download, admin sync."""

import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import FileResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from filedock.auth.dependencies import get_current_admin, get_current_user
from filedock.config import get_settings
from filedock.db.session import get_db
from filedock.files.models import (
    ContentResponse,
    ContentUpdate,
    FileEntryResponse,
    FileType,
    FileTypeStats,
    FolderCreate,
)
from filedock.files.service import FileService
from filedock.files.store import FileStore
from filedock.files.sync import DirectoryReconciler
from filedock.limiter import limiter
from filedock.users.models import User

router = APIRouter(prefix="/api/files", tags=["files"])
log = logging.getLogger(__name__)


def get_file_service(
    session: Annotated[AsyncSession, Depends(get_db)],
) -> FileService:
    """FastAPI dependency: FileService over the request session and configured root."""
    return FileService(FileStore(session), get_settings().storage_base_path)


def _normalize_path_param(value: Optional[str]) -> str:
    """Return a query value as-is. Do not replace + with space: filenames may contain +."""
    return value or ""


def _not_found(detail: str = "File not found") -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@router.get("", response_model=List[FileEntryResponse])
async def list_entries(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[FileService, Depends(get_file_service)],
    folder_id: Optional[str] = None,
    file_type: Annotated[Optional[FileType], Query(alias="type")] = None,
) -> List[FileEntryResponse]:
    """List the entries directly inside folder_id (root when omitted)."""
    entries = await service.list_entries(folder_id or None, file_type)
    return [FileEntryResponse.model_validate(e) for e in entries]


@router.get("/search", response_model=List[FileEntryResponse])
async def search_entries(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[FileService, Depends(get_file_service)],
    q: str = "",
    file_type: Annotated[Optional[FileType], Query(alias="type")] = None,
) -> List[FileEntryResponse]:
    """Search entries by name substring, optionally restricted to one type."""
    entries = await service.search_entries(q, file_type)
    log.info("search user=%s q=%r count=%d", current_user.username, q, len(entries))
    return [FileEntryResponse.model_validate(e) for e in entries]


@router.get("/admin/stats", response_model=List[FileTypeStats])
async def file_stats(
    current_user: Annotated[User, Depends(get_current_admin)],
    service: Annotated[FileService, Depends(get_file_service)],
) -> List[FileTypeStats]:
    """Count and total size per file type (admin only)."""
    return [FileTypeStats(**row) for row in await service.file_stats()]


@router.post("/admin/sync", status_code=status.HTTP_204_NO_CONTENT)
async def sync_files(
    request: Request,
    current_user: Annotated[User, Depends(get_current_admin)],
    session: Annotated[AsyncSession, Depends(get_db)],
) -> Response:
    """Rescan the storage root into the catalog (admin only)."""
    log.info("Admin %s requested sync", current_user.username)
    reconciler = DirectoryReconciler(
        FileStore(session),
        get_settings().storage_base_path,
        lock=getattr(request.app.state, "sync_lock", None),
    )
    await reconciler.synchronize()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/public/{entry_id}")
async def public_file(
    entry_id: str,
    service: Annotated[FileService, Depends(get_file_service)],
) -> FileResponse:
    """Serve a file inline by id without authentication (shareable links)."""
    try:
        target = await service.physical_path(entry_id)
        entry = await service.get_entry(entry_id)
    except FileNotFoundError:
        raise _not_found()
    except ValueError as e:
        raise _bad_request(str(e))
    return FileResponse(path=target, media_type=entry.mime_type)


@router.post("/upload", response_model=FileEntryResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("120/minute")
async def upload_file(
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[FileService, Depends(get_file_service)],
) -> FileEntryResponse:
    """
    Upload a file. Query params: name (file name), parent_id (optional folder id).
    Body: raw file bytes.
    """
    name = _normalize_path_param(request.query_params.get("name"))
    if not name.strip():
        raise _bad_request("Query parameter 'name' is required")
    parent_id = request.query_params.get("parent_id") or None
    body = await request.body()
    max_bytes = get_settings().max_upload_bytes
    if len(body) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="File size exceeds limit",
        )
    try:
        entry = await service.create_file(name, body, parent_id)
    except ValueError as e:
        log.warning("upload_file rejected name=%r parent_id=%r: %s", name, parent_id, e)
        raise _bad_request(str(e))
    log.info("upload_file user=%s name=%s size=%d", current_user.username, entry.name, entry.size)
    return FileEntryResponse.model_validate(entry)


@router.post("/folder", response_model=FileEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_folder(
    payload: FolderCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[FileService, Depends(get_file_service)],
) -> FileEntryResponse:
    """Create a folder under parent_id (root when omitted)."""
    try:
        folder = await service.create_folder(payload.name, payload.parent_id)
    except ValueError as e:
        raise _bad_request(str(e))
    return FileEntryResponse.model_validate(folder)


@router.get("/{entry_id}", response_model=FileEntryResponse)
async def get_entry(
    entry_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[FileService, Depends(get_file_service)],
) -> FileEntryResponse:
    try:
        entry = await service.get_entry(entry_id)
    except FileNotFoundError:
        raise _not_found()
    return FileEntryResponse.model_validate(entry)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_entry(
    entry_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[FileService, Depends(get_file_service)],
) -> Response:
    """Delete a file, or a folder with everything under it."""
    try:
        await service.delete_entry(entry_id)
    except FileNotFoundError:
        raise _not_found()
    log.info("delete_entry user=%s id=%s", current_user.username, entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{entry_id}/content", response_model=ContentResponse)
async def get_content(
    entry_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[FileService, Depends(get_file_service)],
) -> ContentResponse:
    """Text content of a text file."""
    try:
        content = await service.get_content(entry_id)
    except FileNotFoundError as e:
        raise _not_found(str(e))
    except ValueError as e:
        raise _bad_request(str(e))
    return ContentResponse(content=content)


@router.put("/{entry_id}/content", status_code=status.HTTP_204_NO_CONTENT)
async def update_content(
    entry_id: str,
    payload: ContentUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[FileService, Depends(get_file_service)],
) -> Response:
    """Replace the content of a text file."""
    if not payload.content:
        raise _bad_request("Content is required")
    try:
        await service.update_content(entry_id, payload.content)
    except FileNotFoundError as e:
        raise _not_found(str(e))
    except ValueError as e:
        raise _bad_request(str(e))
    log.info("update_content user=%s id=%s", current_user.username, entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{entry_id}/download")
async def download_file(
    entry_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[FileService, Depends(get_file_service)],
) -> FileResponse:
    """Download a file as an attachment under its display name."""
    try:
        target = await service.physical_path(entry_id)
        entry = await service.get_entry(entry_id)
    except FileNotFoundError:
        raise _not_found()
    except ValueError as e:
        raise _bad_request(str(e))
    log.info("download_file user=%s id=%s", current_user.username, entry_id)
    return FileResponse(
        path=target,
        filename=entry.name,
        media_type="application/octet-stream",
    )
