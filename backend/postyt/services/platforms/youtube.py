from __future__ import annotations

from pathlib import Path
import logging

from google.auth.exceptions import RefreshError as GoogleRefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaFileUpload

from ...config import settings
from ...errors import OAuthExchangeError, ProviderApiError, RefreshError, UploadError
from ...models import AccountCredential, PlatformId, RefreshedToken, UploadedVideo, as_utc
from ...utils.provider_errors import extract_http_error_detail, http_error_status
from .base import PlatformAdapter

logger = logging.getLogger("uvicorn.error")


class YouTubeAdapter(PlatformAdapter):
    """YouTube Data API v3 through Google OAuth."""

    platform = PlatformId.YOUTUBE

    SCOPES = [
        "https://www.googleapis.com/auth/youtube.upload",
        "https://www.googleapis.com/auth/youtube.readonly",
    ]
    AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
    PRIVACY_STATUS = "unlisted"

    def _client_config(self) -> dict:
        self._require_settings(
            youtube_client_id=settings.youtube_client_id,
            youtube_client_secret=settings.youtube_client_secret,
        )
        return {
            "web": {
                "client_id": settings.youtube_client_id,
                "client_secret": settings.youtube_client_secret,
                "auth_uri": self.AUTH_URI,
                "token_uri": settings.google_token_uri,
            }
        }

    def _flow(self) -> Flow:
        return Flow.from_client_config(
            self._client_config(),
            scopes=self.SCOPES,
            redirect_uri=self.redirect_uri,
            autogenerate_code_verifier=False,
        )

    def get_auth_url(self, user_id: str) -> str:
        auth_url, _ = self._flow().authorization_url(
            access_type="offline",
            include_granted_scopes="true",
            prompt="consent",  # always re-issue a refresh token
            state=user_id,
        )
        return auth_url

    def handle_callback(self, code: str, *, state: str | None = None) -> AccountCredential:
        flow = self._flow()
        try:
            flow.fetch_token(code=code)
        except Exception as exc:
            raise OAuthExchangeError(self.name, f"YouTube code exchange failed: {exc}") from exc
        credentials = flow.credentials

        try:
            youtube = build("youtube", "v3", credentials=credentials, cache_discovery=False)
            response = youtube.channels().list(part="snippet", mine=True).execute()
        except HttpError as exc:
            raise ProviderApiError(
                self.name,
                f"YouTube channel lookup failed: {extract_http_error_detail(exc)}",
                status_code=http_error_status(exc),
            ) from exc

        items = response.get("items") or []
        if not items:
            raise ProviderApiError(self.name, "Authenticated account has no YouTube channel")
        channel = items[0]

        return AccountCredential(
            account_id=str(channel["id"]),
            account_name=str(channel.get("snippet", {}).get("title") or channel["id"]),
            access_token=credentials.token,
            refresh_token=credentials.refresh_token,
            expiry_date=as_utc(credentials.expiry),
        )

    def refresh_token(self, refresh_token: str | None, *, account_id: str | None = None) -> RefreshedToken:
        if not refresh_token:
            raise RefreshError(self.name, "No refresh token stored; re-authorization required", revoked=True)
        config = self._client_config()["web"]
        creds = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=config["token_uri"],
            client_id=config["client_id"],
            client_secret=config["client_secret"],
            scopes=self.SCOPES,
        )
        try:
            creds.refresh(Request())
        except GoogleRefreshError as exc:
            detail = str(exc)
            raise RefreshError(
                self.name,
                f"YouTube token refresh failed: {detail}",
                revoked="invalid_grant" in detail,
            ) from exc
        except TransportError as exc:
            raise RefreshError(self.name, f"YouTube token refresh failed: {exc}") from exc

        return RefreshedToken(access_token=creds.token, expiry_date=as_utc(creds.expiry))

    def upload_video(
        self,
        *,
        video_path: Path,
        title: str,
        description: str,
        tags: list[str],
        access_token: str,
    ) -> UploadedVideo:
        creds = Credentials(token=access_token)
        try:
            youtube = build("youtube", "v3", credentials=creds, cache_discovery=False)
            response = youtube.videos().insert(
                part="snippet,status",
                body={
                    "snippet": {
                        "title": title[:100],
                        "description": description,
                        "tags": tags,
                        "categoryId": settings.youtube_category_id,
                    },
                    "status": {
                        "privacyStatus": self.PRIVACY_STATUS,
                        "selfDeclaredMadeForKids": False,
                    },
                },
                media_body=MediaFileUpload(str(video_path), chunksize=-1, resumable=True),
            ).execute()
        except HttpError as exc:
            raise UploadError(
                self.name,
                extract_http_error_detail(exc),
                status_code=http_error_status(exc),
            ) from exc

        video_id = response.get("id") if isinstance(response, dict) else None
        if not video_id:
            raise UploadError(self.name, f"Unexpected YouTube response: {response}")
        logger.info("YouTube upload complete: video_id=%s", video_id)
        return UploadedVideo(
            video_id=str(video_id),
            video_url=f"https://www.youtube.com/watch?v={video_id}",
        )
