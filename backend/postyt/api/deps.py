from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..errors import AuthenticationError
from ..services import AuthService, JsonCredentialStore, PublishService, UploadOrchestrator
from ..services.platforms import PlatformRegistry, default_registry

bearer_scheme = HTTPBearer(auto_error=False)


@lru_cache
def get_registry() -> PlatformRegistry:
    return default_registry()


@lru_cache
def get_credential_store() -> JsonCredentialStore:
    return JsonCredentialStore()


def get_publish_service(registry: PlatformRegistry = Depends(get_registry)) -> PublishService:
    return PublishService(UploadOrchestrator(registry))


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """401 without a bearer token, 403 when it does not verify."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Access token required")
    try:
        return AuthService.user_id_from_token(credentials.credentials)
    except AuthenticationError as exc:
        raise HTTPException(status_code=403, detail="Invalid or expired token") from exc
