from .auth_service import AuthService
from .credential_store import CredentialStore, JsonCredentialStore
from .publish_service import PublishService
from .token_lifecycle import TokenLifecycleManager
from .upload_orchestrator import CredentialSource, UploadOrchestrator, UploadRunResult

__all__ = [
    "AuthService",
    "CredentialStore",
    "JsonCredentialStore",
    "PublishService",
    "TokenLifecycleManager",
    "CredentialSource",
    "UploadOrchestrator",
    "UploadRunResult",
]
