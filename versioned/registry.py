"""Type registry — maps stored subject type tags to factories.

Version rows only carry a type tag; rebuilding a historical entity goes
through a factory registered here at import time.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from versioned.errors import UnknownTypeError

logger = logging.getLogger(__name__)

Factory = Callable[[dict[str, Any]], Any]


class TypeRegistry:
    def __init__(self):
        self._factories: dict[str, Factory] = {}
        self._classes: dict[str, type] = {}

    def register(self, cls=None, *, tag: str | None = None, factory: Factory | None = None):
        """Register a versioned class under its type tag.

        Usable as ``@registry.register`` or ``registry.register(Model, factory=...)``.
        The factory defaults to ``cls.from_version_data`` when present, else
        the class constructor called with keyword arguments.
        """
        def decorator(klass):
            type_tag = tag or _type_tag_of(klass)
            if factory is not None:
                build = factory
            elif hasattr(klass, "from_version_data"):
                build = klass.from_version_data
            else:
                build = lambda data: klass(**data)  # noqa: E731
            existing = self._classes.get(type_tag)
            if existing is not None and existing is not klass:
                logger.warning(
                    "Replacing %s with %s for type tag %r",
                    existing.__name__, klass.__name__, type_tag,
                )
            self._classes[type_tag] = klass
            self._factories[type_tag] = build
            return klass

        if cls is None:
            return decorator
        return decorator(cls)

    def unregister(self, type_tag: str) -> None:
        self._factories.pop(type_tag, None)
        self._classes.pop(type_tag, None)

    def is_registered(self, type_tag: str) -> bool:
        return type_tag in self._factories

    def build(self, type_tag: str, data: dict[str, Any]):
        try:
            factory = self._factories[type_tag]
        except KeyError:
            raise UnknownTypeError(type_tag) from None
        return factory(data)


def _type_tag_of(klass) -> str:
    return getattr(klass, "__version_type__", None) or klass.__name__


type_registry = TypeRegistry()
