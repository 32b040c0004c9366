"""Exceptions raised by the version store.

Missing versions and skipped captures are not errors: lookups return None and
captures return False so callers can branch on them directly.
"""

from __future__ import annotations


class VersioningError(Exception):
    """Base class for version store failures."""
    pass


class StorageError(VersioningError):
    """Raised when the backing database rejects a read or write."""
    pass


class ConflictError(StorageError):
    """Raised when two captures raced for the same version number.

    The session has been rolled back; re-attempting the capture is safe.
    """

    def __init__(self, subject_id: int, subject_class: str, detail: str = ""):
        self.subject_id = subject_id
        self.subject_class = subject_class
        message = f"Version number conflict for {subject_class}#{subject_id}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class PartialRollbackError(VersioningError):
    """Raised when a rollback saved the entity but could not prune its history.

    Versions at or above ``version_no`` still exist for the subject and must be
    removed (``scripts/repair_versions.py prune``) to finish the rollback.
    """

    def __init__(self, subject_id: int, subject_class: str, version_no: int):
        self.subject_id = subject_id
        self.subject_class = subject_class
        self.version_no = version_no
        super().__init__(
            f"Rollback of {subject_class}#{subject_id} to version {version_no} "
            "was saved but history pruning failed"
        )


class UnknownTypeError(VersioningError, LookupError):
    """Raised when a stored type tag has no registered factory."""

    def __init__(self, type_tag: str):
        self.type_tag = type_tag
        super().__init__(f"No factory registered for type tag {type_tag!r}")


class InvalidVersionDataError(VersioningError, ValueError):
    """Raised when version data names attributes the live entity does not have."""
    pass
