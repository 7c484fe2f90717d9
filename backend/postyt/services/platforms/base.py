"""Abstract base class for platform adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable

import requests

from ...config import settings
from ...errors import ConfigurationError, UnimplementedPlatform
from ...models import AccountCredential, PlatformId, RefreshedToken, UploadedVideo


class PlatformAdapter(ABC):
    """Interface contract every platform integration implements.

    The orchestrator only talks to adapters through these four operations,
    so every adapter keeps exactly the same signatures.
    """

    platform: PlatformId
    implemented: bool = True

    def __init__(self, session_factory: Callable[[], requests.Session] = requests.Session):
        self._session_factory = session_factory

    @property
    def name(self) -> str:
        return self.platform.value

    @property
    def redirect_uri(self) -> str:
        return settings.redirect_uri(self.name)

    def _require_settings(self, **values: str | None) -> None:
        missing = [key for key, value in values.items() if not value]
        if missing:
            env_names = ", ".join(f"POSTYT_{key.upper()}" for key in missing)
            raise ConfigurationError(f"{self.name} OAuth is not configured. Set {env_names}.")

    @abstractmethod
    def get_auth_url(self, user_id: str) -> str:
        """Build the provider consent URL carrying ``user_id`` as opaque state.

        Raises:
            ConfigurationError: OAuth client settings are missing.
        """

    @abstractmethod
    def handle_callback(self, code: str, *, state: str | None = None) -> AccountCredential:
        """Exchange an authorization code and look up the account identity.

        Raises:
            OAuthExchangeError: the code was rejected.
            ProviderApiError: the identity lookup failed.
        """

    @abstractmethod
    def refresh_token(self, refresh_token: str | None, *, account_id: str | None = None) -> RefreshedToken:
        """Exchange a refresh token for a new access token.

        Raises:
            RefreshError: with ``revoked=True`` when re-authorization is required.
        """

    @abstractmethod
    def upload_video(
        self,
        *,
        video_path: Path,
        title: str,
        description: str,
        tags: list[str],
        access_token: str,
    ) -> UploadedVideo:
        """Publish the file with the most private default the platform allows.

        Either returns a usable video id/url or raises ``UploadError``.
        """


class UnimplementedAdapter(PlatformAdapter):
    """Registered placeholder for a platform whose integration does not exist yet."""

    implemented = False

    def __init__(self, platform: PlatformId):
        super().__init__()
        self.platform = platform

    def get_auth_url(self, user_id: str) -> str:
        raise UnimplementedPlatform(self.name)

    def handle_callback(self, code: str, *, state: str | None = None) -> AccountCredential:
        raise UnimplementedPlatform(self.name)

    def refresh_token(self, refresh_token: str | None, *, account_id: str | None = None) -> RefreshedToken:
        raise UnimplementedPlatform(self.name)

    def upload_video(
        self,
        *,
        video_path: Path,
        title: str,
        description: str,
        tags: list[str],
        access_token: str,
    ) -> UploadedVideo:
        raise UnimplementedPlatform(self.name)
