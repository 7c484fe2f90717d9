from .account import (
    PlatformId,
    AccountCredential,
    RefreshedToken,
    UploadedVideo,
    TokenUpdate,
    as_utc,
)
from .upload import (
    UNTITLED_VIDEO,
    VideoMetadata,
    UploadSelection,
    AccountUploadResult,
    PlatformUploadReport,
    OverallUploadReport,
)

__all__ = [
    "PlatformId", "AccountCredential", "RefreshedToken", "UploadedVideo",
    "TokenUpdate", "as_utc",
    "UNTITLED_VIDEO", "VideoMetadata", "UploadSelection",
    "AccountUploadResult", "PlatformUploadReport", "OverallUploadReport",
]
