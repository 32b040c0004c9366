"""Version repository — scoped storage of version rows for one subject.

Every query filters on the (subject_id, subject_class) pair, so subjects that
share the versions table never see each other's history. The repository
flushes but never commits; the caller owns the transaction.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from versioned.entities.version import Version
from versioned.errors import ConflictError, StorageError

logger = logging.getLogger(__name__)


class VersionRepository:
    def __init__(self, session: AsyncSession, subject_id: int, subject_class: str):
        self._session = session
        self.subject_id = subject_id
        self.subject_class = subject_class

    @classmethod
    def for_entity(cls, session: AsyncSession, entity) -> "VersionRepository":
        return cls(session, entity.version_identity(), entity.version_type_tag())

    def _scope(self, model=Version):
        return (model.subject_id == self.subject_id) & (model.subject_class == self.subject_class)

    @contextmanager
    def _storage_errors(self, action: str):
        # Version queries must not flush pending changes of the host entity.
        try:
            with self._session.sync_session.no_autoflush:
                yield
        except SQLAlchemyError as exc:
            logger.warning(
                "Version store %s failed for %s#%s: %s",
                action, self.subject_class, self.subject_id, exc,
            )
            raise StorageError(
                f"Could not {action} versions of {self.subject_class}#{self.subject_id}"
            ) from exc

    def _next_version_no(self):
        existing = aliased(Version)
        return (
            select(func.coalesce(func.max(existing.version_no), 0) + 1)
            .where(self._scope(existing))
            .scalar_subquery()
        )

    async def insert(
        self,
        name: str | None,
        data: str,
        content_hash: str,
        *,
        created_at: datetime | None = None,
        user_id: str | None = None,
    ) -> Version:
        """Insert a version row numbered one past the subject's current maximum.

        The next number is computed by a subquery inside the INSERT itself, so
        assignment and insert are one statement. A duplicate number raised by
        the unique constraint rolls the session back and surfaces as
        ConflictError.
        """
        timestamp = created_at or datetime.now(timezone.utc)
        stmt = (
            insert(Version)
            .values(
                version_no=self._next_version_no(),
                subject_id=self.subject_id,
                subject_class=self.subject_class,
                name=name,
                data=data,
                hash=content_hash,
                created_at=timestamp,
                updated_at=timestamp,
                user_id=user_id,
            )
            .returning(Version.id)
        )
        try:
            with self._session.sync_session.no_autoflush:
                result = await self._session.execute(stmt)
                row_id = result.scalar_one()
        except IntegrityError as exc:
            await self._session.rollback()
            raise ConflictError(self.subject_id, self.subject_class, str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            raise StorageError(
                f"Could not insert version of {self.subject_class}#{self.subject_id}"
            ) from exc

        with self._storage_errors("load"):
            version = await self._session.get(Version, row_id)
        logger.debug(
            "Stored version %s of %s#%s (id=%s)",
            version.version_no, self.subject_class, self.subject_id, row_id,
        )
        return version

    async def get(self, version_no: int) -> Version | None:
        with self._storage_errors("read"):
            result = await self._session.execute(
                select(Version).where(self._scope(), Version.version_no == version_no)
            )
            return result.scalar_one_or_none()

    async def list(
        self,
        descending: bool = True,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Version]:
        order = Version.version_no.desc() if descending else Version.version_no.asc()
        stmt = select(Version).where(self._scope()).order_by(order)
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        with self._storage_errors("list"):
            result = await self._session.execute(stmt)
            return list(result.scalars().all())

    async def count(self) -> int:
        with self._storage_errors("count"):
            result = await self._session.execute(
                select(func.count(Version.id)).where(self._scope())
            )
            return int(result.scalar() or 0)

    async def max_version_no(self) -> int:
        with self._storage_errors("read"):
            result = await self._session.execute(
                select(func.max(Version.version_no)).where(self._scope())
            )
            return int(result.scalar() or 0)

    async def latest(self) -> Version | None:
        with self._storage_errors("read"):
            result = await self._session.execute(
                select(Version)
                .where(self._scope())
                .order_by(Version.version_no.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def delete_one(self, version_no: int) -> bool:
        with self._storage_errors("delete"):
            result = await self._session.execute(
                delete(Version).where(self._scope(), Version.version_no == version_no)
            )
        return result.rowcount > 0

    async def delete_range(self, from_version_no: int) -> int:
        """Delete every version numbered ``from_version_no`` or higher."""
        with self._storage_errors("delete"):
            result = await self._session.execute(
                delete(Version).where(self._scope(), Version.version_no >= from_version_no)
            )
        return result.rowcount

    async def delete_all(self) -> int:
        with self._storage_errors("delete"):
            result = await self._session.execute(delete(Version).where(self._scope()))
        return result.rowcount

    async def renumber(self) -> int:
        """Renumber the subject's versions 1..N in capture order.

        Rows are read FOR UPDATE where the backend supports it and rewritten in
        two passes through negative numbers, so the unique constraint holds at
        every statement. Returns how many rows changed number.
        """
        with self._storage_errors("renumber"):
            result = await self._session.execute(
                select(Version)
                .where(self._scope())
                .order_by(Version.created_at.asc(), Version.id.asc())
                .with_for_update()
            )
            versions = list(result.scalars().all())
            changed = [
                (version, position)
                for position, version in enumerate(versions, start=1)
                if version.version_no != position
            ]
            if not changed:
                return 0

            for version, position in changed:
                version.version_no = -position
            await self._session.flush()
            for version, position in changed:
                version.version_no = position
            await self._session.flush()

        logger.info(
            "Renumbered %d of %d versions for %s#%s",
            len(changed), len(versions), self.subject_class, self.subject_id,
        )
        return len(changed)
