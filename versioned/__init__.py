"""Record-level versioning for SQLAlchemy models."""

from versioned.binding import HostBinding, VersionedMixin
from versioned.context import acting_as, current_actor
from versioned.controller import VersionController
from versioned.entities.version import Version
from versioned.errors import (
    ConflictError,
    InvalidVersionDataError,
    PartialRollbackError,
    StorageError,
    UnknownTypeError,
    VersioningError,
)
from versioned.registry import TypeRegistry, type_registry
from versioned.repository import VersionRepository

__all__ = [
    "HostBinding", "VersionedMixin", "VersionController", "VersionRepository",
    "Version", "TypeRegistry", "type_registry", "acting_as", "current_actor",
    "VersioningError", "StorageError", "ConflictError", "PartialRollbackError",
    "UnknownTypeError", "InvalidVersionDataError",
]
