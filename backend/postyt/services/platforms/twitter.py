from __future__ import annotations

from pathlib import Path
from typing import Any
from urllib.parse import urlencode
import logging
import time

import requests

from ...config import settings
from ...errors import OAuthExchangeError, ProviderApiError, RefreshError, UploadError
from ...models import AccountCredential, PlatformId, RefreshedToken, UploadedVideo
from ...utils.oauth import expires_at, pkce_challenge, pkce_verifier
from ...utils.provider_errors import extract_twitter_error, response_payload
from .base import PlatformAdapter

logger = logging.getLogger("uvicorn.error")


class TwitterAdapter(PlatformAdapter):
    """X (Twitter) API v2 with OAuth 2.0 authorization code + PKCE."""

    platform = PlatformId.TWITTER

    AUTH_URL = "https://x.com/i/oauth2/authorize"
    API_BASE = "https://api.x.com/2"
    SCOPES = ("tweet.read", "tweet.write", "users.read", "media.write", "offline.access")
    SEGMENT_BYTES = 4 * 1024 * 1024
    _REVOKED_ERRORS = {"invalid_grant", "invalid_request"}

    def _client_id(self) -> str:
        self._require_settings(twitter_client_id=settings.twitter_client_id)
        return str(settings.twitter_client_id)

    def _auth(self) -> tuple[str, str] | None:
        # Confidential clients authenticate with HTTP basic, public ones send client_id only.
        if settings.twitter_client_secret:
            return self._client_id(), settings.twitter_client_secret
        return None

    def get_auth_url(self, user_id: str) -> str:
        query = urlencode(
            {
                "response_type": "code",
                "client_id": self._client_id(),
                "redirect_uri": self.redirect_uri,
                "scope": " ".join(self.SCOPES),
                "state": user_id,
                "code_challenge": pkce_challenge(pkce_verifier(settings.jwt_secret, user_id)),
                "code_challenge_method": "S256",
            }
        )
        return f"{self.AUTH_URL}?{query}"

    def _token_request(self, session: requests.Session, data: dict[str, str]) -> tuple[requests.Response, dict[str, Any]]:
        resp = session.post(
            f"{self.API_BASE}/oauth2/token",
            data={"client_id": self._client_id(), **data},
            auth=self._auth(),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=settings.http_timeout_seconds,
        )
        return resp, response_payload(resp)

    def handle_callback(self, code: str, *, state: str | None = None) -> AccountCredential:
        if not state:
            raise OAuthExchangeError(
                self.name,
                "X callback is missing the OAuth state needed to rebuild the PKCE verifier",
            )
        with self._session_factory() as session:
            resp, payload = self._token_request(
                session,
                {
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                    "code_verifier": pkce_verifier(settings.jwt_secret, state),
                },
            )
            if resp.status_code >= 400 or not payload.get("access_token"):
                raise OAuthExchangeError(
                    self.name,
                    f"X code exchange failed: {extract_twitter_error(resp)}",
                    status_code=resp.status_code,
                )
            access_token = str(payload["access_token"])

            me_resp = session.get(
                f"{self.API_BASE}/users/me",
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=settings.http_timeout_seconds,
            )
            if me_resp.status_code >= 400:
                raise ProviderApiError(
                    self.name,
                    f"X user lookup failed: {extract_twitter_error(me_resp)}",
                    status_code=me_resp.status_code,
                )
            user = response_payload(me_resp).get("data") or {}

        if not user.get("id"):
            raise ProviderApiError(self.name, "X user lookup returned no id")
        return AccountCredential(
            account_id=str(user["id"]),
            account_name=f"@{user['username']}" if user.get("username") else str(user.get("name") or user["id"]),
            access_token=access_token,
            refresh_token=payload.get("refresh_token"),
            expiry_date=expires_at(payload.get("expires_in")),
        )

    def refresh_token(self, refresh_token: str | None, *, account_id: str | None = None) -> RefreshedToken:
        if not refresh_token:
            raise RefreshError(self.name, "No refresh token stored; re-authorization required", revoked=True)
        try:
            with self._session_factory() as session:
                resp, payload = self._token_request(
                    session,
                    {"grant_type": "refresh_token", "refresh_token": refresh_token},
                )
        except requests.RequestException as exc:
            raise RefreshError(self.name, f"X token refresh failed: {exc}") from exc

        if resp.status_code >= 400 or not payload.get("access_token"):
            raise RefreshError(
                self.name,
                f"X token refresh failed: {extract_twitter_error(resp)}",
                status_code=resp.status_code,
                revoked=str(payload.get("error") or "") in self._REVOKED_ERRORS,
            )
        return RefreshedToken(
            access_token=str(payload["access_token"]),
            expiry_date=expires_at(payload.get("expires_in")),
            refresh_token=payload.get("refresh_token"),
        )

    def _media_call(
        self,
        session: requests.Session,
        token: str,
        *,
        data: dict[str, Any],
        files: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        resp = session.post(
            f"{self.API_BASE}/media/upload",
            headers={"Authorization": f"Bearer {token}"},
            data=data,
            files=files,
            timeout=settings.upload_timeout_seconds if files else settings.http_timeout_seconds,
        )
        if resp.status_code >= 400:
            raise UploadError(
                self.name,
                f"X media {data.get('command', '').lower()} failed: {extract_twitter_error(resp)}",
                status_code=resp.status_code,
            )
        if not resp.content:
            return {}
        payload = response_payload(resp)
        # v2 wraps the media object in "data"; v1.1-style responses are flat.
        return payload.get("data", payload)

    def _wait_processing(self, session: requests.Session, token: str, media_id: str, info: dict[str, Any] | None) -> None:
        deadline = time.monotonic() + settings.publish_timeout_seconds
        while info:
            state = str(info.get("state") or "").lower()
            if state == "succeeded":
                return
            if state == "failed":
                error = info.get("error") or {}
                raise UploadError(self.name, f"X media processing failed: {error.get('message') or error or 'unknown'}")
            if time.monotonic() >= deadline:
                raise UploadError(self.name, f"X media processing did not finish in time (state: {state})")
            time.sleep(int(info.get("check_after_secs") or settings.publish_poll_interval_seconds))
            resp = session.get(
                f"{self.API_BASE}/media/upload",
                headers={"Authorization": f"Bearer {token}"},
                params={"command": "STATUS", "media_id": media_id},
                timeout=settings.http_timeout_seconds,
            )
            if resp.status_code >= 400:
                raise UploadError(
                    self.name,
                    f"X media status failed: {extract_twitter_error(resp)}",
                    status_code=resp.status_code,
                )
            payload = response_payload(resp)
            info = (payload.get("data", payload) or {}).get("processing_info")

    def _upload_media(self, session: requests.Session, token: str, video_path: Path) -> str:
        size = video_path.stat().st_size
        init = self._media_call(
            session,
            token,
            data={
                "command": "INIT",
                "media_type": "video/mp4",
                "total_bytes": str(size),
                "media_category": "tweet_video",
            },
        )
        media_id = str(init.get("id") or init.get("media_id_string") or "")
        if not media_id:
            raise UploadError(self.name, f"X media init returned no id: {init}")

        with video_path.open("rb") as source:
            segment_index = 0
            while True:
                chunk = source.read(self.SEGMENT_BYTES)
                if not chunk:
                    break
                self._media_call(
                    session,
                    token,
                    data={"command": "APPEND", "media_id": media_id, "segment_index": str(segment_index)},
                    files={"media": (video_path.name, chunk, "application/octet-stream")},
                )
                segment_index += 1

        final = self._media_call(session, token, data={"command": "FINALIZE", "media_id": media_id})
        self._wait_processing(session, token, media_id, final.get("processing_info"))
        return media_id

    def upload_video(
        self,
        *,
        video_path: Path,
        title: str,
        description: str,
        tags: list[str],
        access_token: str,
    ) -> UploadedVideo:
        hashtags = " ".join(f"#{tag.replace(' ', '')}" for tag in tags)
        text = " ".join(part for part in (title, hashtags) if part)[:280]
        try:
            with self._session_factory() as session:
                media_id = self._upload_media(session, access_token, video_path)
                resp = session.post(
                    f"{self.API_BASE}/tweets",
                    headers={"Authorization": f"Bearer {access_token}"},
                    json={"text": text, "media": {"media_ids": [media_id]}},
                    timeout=settings.http_timeout_seconds,
                )
        except requests.RequestException as exc:
            raise UploadError(self.name, f"X upload failed: {exc}") from exc

        if resp.status_code >= 400:
            raise UploadError(
                self.name,
                f"X post failed: {extract_twitter_error(resp)}",
                status_code=resp.status_code,
            )
        post_id = (response_payload(resp).get("data") or {}).get("id")
        if not post_id:
            raise UploadError(
                self.name,
                f"X post returned no id: {resp.text[:300]}",
                status_code=resp.status_code,
            )
        return UploadedVideo(
            video_id=str(post_id),
            video_url=f"https://x.com/i/web/status/{post_id}",
        )
