from __future__ import annotations

from datetime import datetime
import logging

from ..errors import RefreshError, TokenRefreshFailed
from ..models import AccountCredential, as_utc
from ..utils.oauth import now_utc
from .platforms.base import PlatformAdapter

logger = logging.getLogger("uvicorn.error")


class TokenLifecycleManager:
    """Decides whether a stored credential must be refreshed before use."""

    @classmethod
    def ensure_valid(
        cls,
        credential: AccountCredential,
        adapter: PlatformAdapter,
        *,
        now: datetime | None = None,
    ) -> tuple[AccountCredential, bool]:
        """Return a usable credential and whether it was refreshed.

        The input credential is never mutated. A refresh happens only when
        ``now`` is strictly after the stored expiry; credentials without an
        expiry are used as-is.

        Raises:
            TokenRefreshFailed: the provider rejected the refresh.
        """
        current = now or now_utc()
        if not credential.is_expired(current):
            return credential, False

        logger.info(
            "Refreshing expired %s token for account %s",
            adapter.name,
            credential.account_id,
        )
        try:
            refreshed = adapter.refresh_token(
                credential.refresh_token,
                account_id=credential.account_id,
            )
        except RefreshError as exc:
            raise TokenRefreshFailed(adapter.name, credential.account_id, exc) from exc

        update: dict[str, object] = {
            "access_token": refreshed.access_token,
            "expiry_date": as_utc(refreshed.expiry_date),
        }
        if refreshed.refresh_token:
            update["refresh_token"] = refreshed.refresh_token
        return credential.model_copy(update=update), True
