"""Catalog store: FileEntry CRUD over an async session.

Every mutation commits on its own, so a failure part way through a larger
operation (e.g. a sync pass) leaves earlier changes in place.
"""

import logging
from typing import Any, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from filedock.files.errors import StoreError
from filedock.files.models import FileEntry, FileType

log = logging.getLogger(__name__)

_DEFAULT_ORDER = (FileEntry.type, FileEntry.name)


class FileStore:
    """Explicit handle on the files table; pass one to whatever needs the catalog."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def _scalars(self, stmt) -> List[FileEntry]:
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreError(f"Query failed: {e}") from e
        return list(result.scalars().all())

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StoreError(f"Commit failed: {e}") from e

    async def find_all(self) -> List[FileEntry]:
        """Every entry, files and folders."""
        return await self._scalars(select(FileEntry))

    async def find(
        self,
        *criteria: Any,
        order_by: Sequence[Any] = _DEFAULT_ORDER,
        limit: Optional[int] = None,
        **filters: Any,
    ) -> List[FileEntry]:
        """Entries matching column=value filters and extra SQL criteria."""
        stmt = select(FileEntry).filter_by(**filters).where(*criteria).order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        return await self._scalars(stmt)

    async def find_one(self, **filters: Any) -> Optional[FileEntry]:
        """First entry matching column=value filters (None values match NULL)."""
        stmt = select(FileEntry).filter_by(**filters).limit(1)
        rows = await self._scalars(stmt)
        return rows[0] if rows else None

    async def get(self, entry_id: str) -> Optional[FileEntry]:
        try:
            return await self.session.get(FileEntry, entry_id)
        except SQLAlchemyError as e:
            raise StoreError(f"Lookup of {entry_id} failed: {e}") from e

    async def find_children(self, parent_id: Optional[str]) -> List[FileEntry]:
        return await self.find(parent_id=parent_id)

    async def create(self, **attrs: Any) -> FileEntry:
        entry = FileEntry(**attrs)
        self.session.add(entry)
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise StoreError(f"Insert of {attrs.get('name')!r} failed: {e}") from e
        await self._commit()
        return entry

    async def update(self, entry: FileEntry, **attrs: Any) -> FileEntry:
        for key, value in attrs.items():
            setattr(entry, key, value)
        await self._commit()
        return entry

    async def destroy(self, entry: FileEntry) -> None:
        try:
            await self.session.delete(entry)
        except SQLAlchemyError as e:
            raise StoreError(f"Delete of {entry.id} failed: {e}") from e
        await self._commit()

    async def stats_by_type(self) -> List[dict]:
        """Count and total size per FileType."""
        stmt = (
            select(
                FileEntry.type,
                func.count(FileEntry.id),
                func.coalesce(func.sum(FileEntry.size), 0),
            )
            .group_by(FileEntry.type)
            .order_by(FileEntry.type)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreError(f"Stats query failed: {e}") from e
        return [
            {"type": FileType(row[0]), "count": int(row[1]), "total_size": int(row[2])}
            for row in result.all()
        ]
