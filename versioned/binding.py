"""Host binding — lets a SQLAlchemy model opt in to versioning.

``VersionedMixin`` gives a declarative model the attributes the controller
needs (identity, type tag, pre-mutation values, title field, a way to apply
stored data). ``HostBinding`` is the save path: it runs before-update and
before-delete hooks ahead of the flush that changes the row.
"""

from __future__ import annotations

import base64
import enum
import logging
import uuid
from contextlib import contextmanager
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Awaitable, Callable

from sqlalchemy import inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from versioned.config import settings
from versioned.errors import InvalidVersionDataError

logger = logging.getLogger(__name__)

Hook = Callable[[Any], Awaitable[Any]]


def _python_type(column) -> type | None:
    try:
        return column.type.python_type
    except NotImplementedError:
        return None


def _coerce(column, value):
    """Turn a JSON-decoded value back into the column's Python type."""
    if value is None:
        return None
    target = _python_type(column)
    if target is None or isinstance(value, target):
        return value
    if target is datetime and isinstance(value, str):
        return datetime.fromisoformat(value)
    if target is date and isinstance(value, str):
        return date.fromisoformat(value)
    if target is time and isinstance(value, str):
        return time.fromisoformat(value)
    if target is Decimal:
        return Decimal(str(value))
    if target is uuid.UUID:
        return uuid.UUID(str(value))
    if target is bytes and isinstance(value, str):
        return base64.b64decode(value, validate=True)
    if isinstance(target, type) and issubclass(target, enum.Enum):
        return target(value)
    if target is float and isinstance(value, int):
        return float(value)
    return value


class VersionedMixin:
    """Mixin for declarative models whose prior states are kept as versions."""

    # Type tag stored with each version; defaults to the class name.
    __version_type__ = None
    # Attribute whose pre-mutation value names a version.
    __version_title_field__ = None
    # Last-modified attribute, left out of content hashes and never restored.
    __version_timestamp_field__ = None
    # Capture the last state before a delete; None falls back to settings.
    __version_on_delete__ = None

    _versioning_enabled = True

    @classmethod
    def version_type_tag(cls) -> str:
        return cls.__version_type__ or cls.__name__

    @classmethod
    def version_title_field(cls) -> str:
        return cls.__version_title_field__ or settings.title_field

    @classmethod
    def version_timestamp_field(cls) -> str:
        return cls.__version_timestamp_field__ or settings.timestamp_field

    @classmethod
    def version_on_delete(cls) -> bool:
        if cls.__version_on_delete__ is None:
            return settings.version_on_delete
        return cls.__version_on_delete__

    @property
    def versioning_enabled(self) -> bool:
        return self._versioning_enabled

    @versioning_enabled.setter
    def versioning_enabled(self, enabled: bool) -> None:
        self._versioning_enabled = bool(enabled)

    def is_versioned(self) -> bool:
        return self._versioning_enabled

    @contextmanager
    def suspend_versioning(self):
        """Turn versioning off for the block, restoring the previous flag on exit."""
        previous = self._versioning_enabled
        self._versioning_enabled = False
        try:
            yield self
        finally:
            self._versioning_enabled = previous

    def version_identity(self) -> int | None:
        """Primary key of the persisted row, or None before the first insert."""
        identity = inspect(self).identity
        if not identity:
            return None
        return identity[0]

    def unloaded_attribute_keys(self) -> set[str]:
        """Columns with no value in memory, e.g. after an expire or a rollback."""
        state = inspect(self)
        return {attr.key for attr in state.mapper.column_attrs if attr.key not in state.dict}

    def unknown_original_keys(self) -> set[str]:
        """Columns whose value before the pending changes is not in memory."""
        state = inspect(self)
        unknown = set()
        for attr in state.mapper.column_attrs:
            history = state.attrs[attr.key].history
            if not history.deleted and not history.unchanged:
                unknown.add(attr.key)
        return unknown

    def version_attributes(self, stored: dict[str, Any] | None = None) -> dict[str, Any]:
        """Current column values, including unsaved changes.

        Columns not held in memory are taken from ``stored``.
        """
        state = inspect(self)
        stored = stored or {}
        return {
            attr.key: state.dict[attr.key] if attr.key in state.dict else stored.get(attr.key)
            for attr in state.mapper.column_attrs
        }

    def pre_mutation_attributes(self, stored: dict[str, Any] | None = None) -> dict[str, Any]:
        """Column values as last loaded or flushed, ignoring unsaved changes.

        Where the prior value is not in memory (expired, never loaded, or
        changed from None) it comes from ``stored``, the row as committed.
        """
        state = inspect(self)
        stored = stored or {}
        original = {}
        for attr in state.mapper.column_attrs:
            history = state.attrs[attr.key].history
            if history.deleted:
                original[attr.key] = history.deleted[0]
            elif history.unchanged:
                original[attr.key] = history.unchanged[0]
            else:
                original[attr.key] = stored.get(attr.key)
        return original

    @classmethod
    def _coerce_version_data(cls, data: dict[str, Any]) -> dict[str, Any]:
        mapper = inspect(cls)
        columns = {attr.key: attr.columns[0] for attr in mapper.column_attrs}
        unknown = sorted(set(data) - set(columns))
        if unknown:
            raise InvalidVersionDataError(
                f"{cls.__name__} has no attributes {', '.join(unknown)}"
            )
        try:
            return {key: _coerce(columns[key], value) for key, value in data.items()}
        except (TypeError, ValueError) as exc:
            raise InvalidVersionDataError(
                f"Version data does not fit {cls.__name__}: {exc}"
            ) from exc

    def apply_version_data(self, data: dict[str, Any]):
        """Overwrite the live entity with stored version data.

        Every value is validated before the first attribute is set. The
        primary key and the last-modified field are left alone so the row
        keeps its identity and its timestamp moves forward on save.
        """
        mapper = inspect(type(self))
        skipped = {mapper.get_property_by_column(column).key for column in mapper.primary_key}
        skipped.add(self.version_timestamp_field())
        values = self._coerce_version_data(data)
        for key, value in values.items():
            if key in skipped:
                continue
            setattr(self, key, value)
        return self

    @classmethod
    def from_version_data(cls, data: dict[str, Any]):
        """Build a detached instance holding stored version data."""
        instance = cls()
        for key, value in cls._coerce_version_data(data).items():
            setattr(instance, key, value)
        return instance


async def load_stored_attributes(
    session: AsyncSession, entity, keys: set[str] | None = None
) -> dict[str, Any]:
    """Read the entity's row as committed, leaving the instance untouched.

    Pending changes on the instance are not flushed first.
    """
    identity = inspect(entity).identity
    if not identity:
        return {}
    mapper = inspect(type(entity))
    attrs = [attr for attr in mapper.column_attrs if keys is None or attr.key in keys]
    if not attrs:
        return {}
    stmt = select(*(attr.columns[0].label(attr.key) for attr in attrs)).where(
        *(column == value for column, value in zip(mapper.primary_key, identity))
    )
    with session.sync_session.no_autoflush:
        row = (await session.execute(stmt)).mappings().one_or_none()
    return dict(row) if row is not None else {}


class HostBinding:
    """Save path for versioned entities bound to one session."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._before_update: list[Hook] = []
        self._before_delete: list[Hook] = []

    @property
    def session(self) -> AsyncSession:
        return self._session

    def on_before_update(self, hook: Hook) -> None:
        if hook not in self._before_update:
            self._before_update.append(hook)

    def on_before_delete(self, hook: Hook) -> None:
        if hook not in self._before_delete:
            self._before_delete.append(hook)

    async def persist(self, entity):
        """Save the entity, running before-update hooks if a stored row changes."""
        state = inspect(entity)
        if state.persistent and self._session.is_modified(entity, include_collections=False):
            for hook in self._before_update:
                await hook(entity)
        self._session.add(entity)
        try:
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise
        return entity

    async def delete(self, entity) -> None:
        """Delete the entity, running before-delete hooks first."""
        if inspect(entity).persistent:
            logger.debug(
                "Deleting %s, running %d hook(s)",
                type(entity).__name__, len(self._before_delete),
            )
            for hook in self._before_delete:
                await hook(entity)
        await self._session.delete(entity)
        try:
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise
