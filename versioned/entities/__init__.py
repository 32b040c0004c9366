from versioned.entities.version import Version

__all__ = ["Version"]
