"""Per-request actor attribution for version captures."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar

current_actor: ContextVar[str | None] = ContextVar("versioned_current_actor", default=None)


@contextmanager
def acting_as(actor_id):
    """Attribute captures made inside the block to ``actor_id``."""
    token = current_actor.set(None if actor_id is None else str(actor_id))
    try:
        yield
    finally:
        current_actor.reset(token)
