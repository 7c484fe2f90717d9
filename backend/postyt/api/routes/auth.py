from fastapi import APIRouter, Depends, HTTPException

from ...errors import ConfigurationError, UnimplementedPlatform, UnsupportedPlatform
from ...services.platforms import PlatformRegistry
from ..deps import get_current_user, get_registry


router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/{platform}/url")
async def get_auth_url(
    platform: str,
    user_id: str = Depends(get_current_user),
    registry: PlatformRegistry = Depends(get_registry),
):
    """Return the provider consent URL for linking a new account."""
    try:
        adapter = registry.require(platform)
        return {"authUrl": adapter.get_auth_url(user_id)}
    except UnsupportedPlatform as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except UnimplementedPlatform as exc:
        raise HTTPException(status_code=501, detail=str(exc)) from exc
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
