from __future__ import annotations


class PostytError(Exception):
    """Base class for every error raised by the publishing core."""


class InvalidRequest(PostytError):
    """The upload request itself is malformed; no partial report is produced."""


class ConfigurationError(PostytError):
    """Required OAuth client settings are missing for a platform."""


class UnsupportedPlatform(PostytError):
    def __init__(self, platform: str):
        super().__init__(f"Unsupported platform: {platform}")
        self.platform = platform


class UnimplementedPlatform(PostytError):
    def __init__(self, platform: str):
        super().__init__(f"Platform not yet implemented: {platform}")
        self.platform = platform


class AccountNotFound(PostytError):
    def __init__(self, platform: str, account_id: str):
        super().__init__(f"Account {account_id} not found for {platform}")
        self.platform = platform
        self.account_id = account_id


class ProviderError(PostytError):
    """An error reported by a third-party platform API."""

    def __init__(self, platform: str, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.platform = platform
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class OAuthExchangeError(ProviderError):
    """Authorization code was rejected (invalid, expired or already used)."""


class ProviderApiError(ProviderError):
    """A provider call other than the token exchange failed."""


class RefreshError(ProviderError):
    """Refresh token exchange failed.

    ``revoked`` is True when the refresh token itself is no longer valid and
    the user must re-authorize; False for transient provider failures.
    """

    def __init__(
        self,
        platform: str,
        message: str,
        *,
        status_code: int | None = None,
        revoked: bool = False,
    ):
        super().__init__(platform, message, status_code=status_code)
        self.revoked = revoked


class UploadError(ProviderError):
    """The video could not be published; nothing usable was created."""


class TokenRefreshFailed(PostytError):
    def __init__(self, platform: str, account_id: str, cause: RefreshError):
        super().__init__(f"Token refresh failed: {cause}")
        self.platform = platform
        self.account_id = account_id
        self.cause = cause

    @property
    def revoked(self) -> bool:
        return self.cause.revoked


class AuthenticationError(PostytError):
    """Bearer token could not be verified."""


class CredentialStoreError(PostytError):
    """The credential state file cannot be read back safely."""
