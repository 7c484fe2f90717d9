from __future__ import annotations

from datetime import datetime, timedelta, timezone
import base64
import hashlib
import hmac


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def expires_at(expires_in: int | str | None, *, now: datetime | None = None) -> datetime | None:
    """Turn an OAuth ``expires_in`` (seconds) into an absolute UTC timestamp."""
    if expires_in in (None, ""):
        return None
    try:
        seconds = int(expires_in)
    except (TypeError, ValueError):
        return None
    return (now or now_utc()) + timedelta(seconds=seconds)


def pkce_verifier(secret: str, state: str) -> str:
    """Derive a PKCE code verifier from the OAuth state.

    The verifier is reproducible from ``state`` alone, so the callback does
    not need server-side session storage.
    """
    digest = hmac.new(secret.encode("utf-8"), state.encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def pkce_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
