from versioned.schemas.versions import VersionResponse, VersionDetailResponse

__all__ = ["VersionResponse", "VersionDetailResponse"]
