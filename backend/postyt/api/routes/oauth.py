import asyncio
import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from ...config import settings
from ...errors import PostytError
from ...services import JsonCredentialStore
from ...services.platforms import PlatformRegistry
from ..deps import get_credential_store, get_registry


logger = logging.getLogger("uvicorn.error")

router = APIRouter(prefix="/oauth", tags=["oauth"])


def _redirect(base_url: str, platform: str) -> RedirectResponse:
    return RedirectResponse(f"{base_url}?{urlencode({'platform': platform})}", status_code=302)


@router.get("/{platform}/callback")
async def oauth_callback(
    platform: str,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    registry: PlatformRegistry = Depends(get_registry),
    store: JsonCredentialStore = Depends(get_credential_store),
):
    """Finish an OAuth flow and link the account to the user in ``state``."""
    if error or not code or not state:
        logger.warning("OAuth callback for %s rejected: error=%s", platform, error or "missing code/state")
        return _redirect(settings.auth_error_url, platform)
    try:
        adapter = registry.require(platform)
        credential = await asyncio.to_thread(adapter.handle_callback, code, state=state)
        store.upsert_account(state, adapter.name, credential)
    except PostytError as exc:
        logger.warning("OAuth callback for %s failed: %s", platform, exc)
        return _redirect(settings.auth_error_url, platform)
    logger.info("Linked %s account %s for user %s", platform, credential.account_id, state)
    return _redirect(settings.auth_success_url, platform)
