"""Version lifecycle controller — when versions are captured and how they are replayed.

Restore, rollback and undo all write the stored data back through the host
binding's normal save path, so the save itself decides whether the overwritten
state becomes a new version.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from versioned.binding import HostBinding, load_stored_attributes
from versioned.config import settings
from versioned.context import current_actor
from versioned.entities.version import Version
from versioned.errors import PartialRollbackError, StorageError
from versioned.registry import TypeRegistry, type_registry
from versioned.repository import VersionRepository
from versioned.serializer import content_hash, deserialize, serialize

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 255


class VersionController:
    def __init__(
        self,
        session: AsyncSession,
        binding: HostBinding | None = None,
        registry: TypeRegistry | None = None,
    ):
        self._session = session
        self.binding = binding or HostBinding(session)
        self.registry = registry or type_registry
        self.binding.on_before_update(self.capture_on_update)
        self.binding.on_before_delete(self.capture_on_delete)

    def repository(self, entity) -> VersionRepository:
        return VersionRepository.for_entity(self._session, entity)

    # -- capture -----------------------------------------------------------

    async def capture_on_update(self, entity) -> int | bool:
        """Before-update hook: store the entity's state as it was before the change."""
        if not entity.is_versioned():
            logger.debug("Versioning off for %s, capture skipped", entity.version_type_tag())
            return False
        return await self._capture(entity)

    async def capture_on_delete(self, entity) -> int | bool:
        """Before-delete hook: keep the last state when the model opts in."""
        if not entity.version_on_delete() or not entity.is_versioned():
            return False
        return await self._capture(entity)

    async def capture_manual(
        self,
        entity,
        name: str = "",
        *,
        captured_at: datetime | None = None,
        actor_id=None,
        commit: bool = True,
    ) -> int | bool:
        """Store the entity's state now, e.g. to save a named draft.

        ``captured_at`` replays a capture at the entity's own timestamp. With
        ``commit`` the session is committed, pending entity changes included.
        """
        version_id = await self._capture(
            entity, name, captured_at=captured_at, actor_id=actor_id
        )
        if version_id and commit:
            await self._session.commit()
        return version_id

    async def _capture(
        self,
        entity,
        name: str = "",
        *,
        captured_at: datetime | None = None,
        actor_id=None,
    ) -> int | bool:
        if entity.version_identity() is None:
            logger.debug(
                "%s has not been stored yet, capture skipped", entity.version_type_tag()
            )
            return False

        unknown = entity.unknown_original_keys()
        stored = await load_stored_attributes(self._session, entity, unknown) if unknown else None
        attributes = entity.pre_mutation_attributes(stored)
        payload, digest = serialize(attributes, entity.version_timestamp_field())
        version = await self.repository(entity).insert(
            self._version_name(entity, attributes, name),
            payload,
            digest,
            created_at=captured_at,
            user_id=self._actor(actor_id),
        )
        logger.info(
            "Captured version %s of %s#%s",
            version.version_no, version.subject_class, version.subject_id,
        )
        return version.id

    @staticmethod
    def _version_name(entity, attributes: dict, name: str) -> str:
        if name:
            return name[:NAME_MAX_LENGTH]
        title = attributes.get(entity.version_title_field())
        if title is None:
            return ""
        return str(title)[:NAME_MAX_LENGTH]

    @staticmethod
    def _actor(actor_id) -> str | None:
        if actor_id is not None:
            return str(actor_id)
        if settings.track_actor:
            return current_actor.get()
        return None

    # -- inspection --------------------------------------------------------

    def is_versioned(self, entity) -> bool:
        return entity.is_versioned()

    async def get_version(self, entity, version_no: int):
        """Rebuild version ``version_no`` as a detached instance, or None."""
        version = await self.repository(entity).get(version_no)
        if version is None:
            return None
        return self._build(version)

    async def get_previous_version(self, entity):
        version = await self.repository(entity).latest()
        if version is None:
            return None
        return self._build(version)

    def _build(self, version: Version):
        return self.registry.build(version.subject_class, deserialize(version.data))

    async def get_all_versions(
        self, entity, limit: int | None = None, offset: int | None = None
    ) -> list[Version]:
        return await self.repository(entity).list(descending=True, limit=limit, offset=offset)

    async def get_version_count(self, entity) -> int:
        return await self.repository(entity).count()

    async def get_current_version_no(self, entity) -> int:
        return await self.get_version_count(entity) + 1

    async def has_changed_since_latest(self, entity) -> bool:
        """Whether the live entity differs from its newest version, timestamps aside."""
        latest = await self.repository(entity).latest()
        if latest is None:
            return True
        unloaded = entity.unloaded_attribute_keys()
        stored = await load_stored_attributes(self._session, entity, unloaded) if unloaded else None
        current = content_hash(entity.version_attributes(stored), entity.version_timestamp_field())
        return current != latest.hash

    # -- replay ------------------------------------------------------------

    async def restore(self, entity, version_no: int) -> bool:
        """Apply version ``version_no`` to the live entity and save it.

        The save records the overwritten state as a new version, so history
        only grows. Returns False when the version does not exist.
        """
        version = await self.repository(entity).get(version_no)
        if version is None:
            return False
        entity.apply_version_data(deserialize(version.data))
        await self.binding.persist(entity)
        logger.info(
            "Restored %s#%s to version %s",
            version.subject_class, version.subject_id, version_no,
        )
        return True

    async def rollback_to_version(self, entity, version_no: int) -> bool:
        """Apply version ``version_no`` and drop it and every later version.

        Raises PartialRollbackError when the entity was saved but the history
        could not be pruned.
        """
        repository = self.repository(entity)
        version = await repository.get(version_no)
        if version is None:
            return False
        entity.apply_version_data(deserialize(version.data))
        await self.binding.persist(entity)

        try:
            removed = await repository.delete_range(version_no)
            await self._session.commit()
        except (StorageError, SQLAlchemyError) as exc:
            await self._session.rollback()
            logger.error(
                "Rollback of %s#%s to version %s saved but not pruned: %s",
                repository.subject_class, repository.subject_id, version_no, exc,
            )
            raise PartialRollbackError(
                repository.subject_id, repository.subject_class, version_no
            ) from exc

        logger.info(
            "Rolled back %s#%s to version %s (%d versions removed)",
            repository.subject_class, repository.subject_id, version_no, removed,
        )
        return True

    async def undo(self, entity, record_undo: bool = False) -> bool:
        """Revert the live entity to its newest version.

        By default the undo is not recorded and the consumed version is
        removed, so history shrinks by one. With ``record_undo`` the save is
        versioned like any other and history is kept, which allows a redo.
        Returns False when there is nothing to undo.
        """
        repository = self.repository(entity)
        version = await repository.latest()
        if version is None:
            return False
        entity.apply_version_data(deserialize(version.data))

        if record_undo:
            await self.binding.persist(entity)
        else:
            with entity.suspend_versioning():
                await repository.delete_one(version.version_no)
                await self.binding.persist(entity)

        logger.info(
            "Undid %s#%s to version %s%s",
            repository.subject_class, repository.subject_id, version.version_no,
            " (recorded)" if record_undo else "",
        )
        return True

    # -- pruning -----------------------------------------------------------

    async def delete_version(self, entity, version_no: int) -> bool:
        """Delete one version and renumber the rest to close the gap."""
        repository = self.repository(entity)
        deleted = await repository.delete_one(version_no)
        if deleted:
            await repository.renumber()
        await self._session.commit()
        return deleted

    async def delete_all_versions(self, entity) -> int:
        removed = await self.repository(entity).delete_all()
        await self._session.commit()
        logger.info(
            "Deleted %d versions of %s#%s",
            removed, entity.version_type_tag(), entity.version_identity(),
        )
        return removed

    async def renumber(self, entity) -> int:
        changed = await self.repository(entity).renumber()
        await self._session.commit()
        return changed
