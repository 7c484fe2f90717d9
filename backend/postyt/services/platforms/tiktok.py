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
from ...utils.oauth import expires_at
from ...utils.provider_errors import extract_tiktok_error, response_payload
from .base import PlatformAdapter

logger = logging.getLogger("uvicorn.error")


class TikTokAdapter(PlatformAdapter):
    """TikTok Login Kit + Content Posting API (direct post)."""

    platform = PlatformId.TIKTOK

    AUTH_URL = "https://www.tiktok.com/v2/auth/authorize/"
    API_BASE = "https://open.tiktokapis.com/v2"
    SCOPES = ("user.info.basic", "video.publish")
    PRIVACY_LEVEL = "SELF_ONLY"
    MAX_SINGLE_CHUNK_BYTES = 64 * 1024 * 1024
    CHUNK_BYTES = 10 * 1024 * 1024
    _REVOKED_ERRORS = {"invalid_grant", "invalid_request", "access_token_invalid"}

    def _client(self) -> tuple[str, str]:
        self._require_settings(
            tiktok_client_key=settings.tiktok_client_key,
            tiktok_client_secret=settings.tiktok_client_secret,
        )
        return str(settings.tiktok_client_key), str(settings.tiktok_client_secret)

    def get_auth_url(self, user_id: str) -> str:
        client_key, _ = self._client()
        query = urlencode(
            {
                "client_key": client_key,
                "scope": ",".join(self.SCOPES),
                "response_type": "code",
                "redirect_uri": self.redirect_uri,
                "state": user_id,
            }
        )
        return f"{self.AUTH_URL}?{query}"

    def _token_request(self, session: requests.Session, data: dict[str, str]) -> tuple[requests.Response, dict[str, Any]]:
        client_key, client_secret = self._client()
        resp = session.post(
            f"{self.API_BASE}/oauth/token/",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data={"client_key": client_key, "client_secret": client_secret, **data},
            timeout=settings.http_timeout_seconds,
        )
        return resp, response_payload(resp)

    def handle_callback(self, code: str, *, state: str | None = None) -> AccountCredential:
        with self._session_factory() as session:
            resp, payload = self._token_request(
                session,
                {
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                },
            )
            if resp.status_code >= 400 or not payload.get("access_token"):
                raise OAuthExchangeError(
                    self.name,
                    f"TikTok code exchange failed: {extract_tiktok_error(resp)}",
                    status_code=resp.status_code,
                )
            access_token = str(payload["access_token"])

            info_resp = session.get(
                f"{self.API_BASE}/user/info/",
                params={"fields": "open_id,display_name,username"},
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=settings.http_timeout_seconds,
            )
            if info_resp.status_code >= 400:
                raise ProviderApiError(
                    self.name,
                    f"TikTok user lookup failed: {extract_tiktok_error(info_resp)}",
                    status_code=info_resp.status_code,
                )
            user = (response_payload(info_resp).get("data") or {}).get("user") or {}

        open_id = str(user.get("open_id") or payload.get("open_id") or "")
        if not open_id:
            raise ProviderApiError(self.name, "TikTok user lookup returned no open_id")
        return AccountCredential(
            account_id=open_id,
            account_name=str(user.get("display_name") or user.get("username") or open_id),
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
            raise RefreshError(self.name, f"TikTok token refresh failed: {exc}") from exc

        if resp.status_code >= 400 or not payload.get("access_token"):
            error_code = str(payload.get("error") or "").lower()
            raise RefreshError(
                self.name,
                f"TikTok token refresh failed: {extract_tiktok_error(resp)}",
                status_code=resp.status_code,
                revoked=error_code in self._REVOKED_ERRORS,
            )
        return RefreshedToken(
            access_token=str(payload["access_token"]),
            expiry_date=expires_at(payload.get("expires_in")),
            refresh_token=payload.get("refresh_token"),
        )

    @staticmethod
    def _caption(title: str, description: str, tags: list[str]) -> str:
        parts = [title]
        if description:
            parts.append(description)
        if tags:
            parts.append(" ".join(f"#{tag.replace(' ', '')}" for tag in tags))
        return "\n\n".join(parts)[:2200]

    def _post_json(self, session: requests.Session, path: str, token: str, body: dict[str, Any]) -> dict[str, Any]:
        resp = session.post(
            f"{self.API_BASE}{path}",
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json; charset=UTF-8",
            },
            json=body,
            timeout=settings.http_timeout_seconds,
        )
        payload = response_payload(resp)
        error = payload.get("error")
        error_code = str(error.get("code") or "ok") if isinstance(error, dict) else "ok"
        if resp.status_code >= 400 or error_code != "ok":
            raise UploadError(
                self.name,
                f"TikTok {path} failed: {extract_tiktok_error(resp)}",
                status_code=resp.status_code,
            )
        if not payload:
            raise UploadError(
                self.name,
                f"TikTok {path} returned an unreadable response: {resp.text[:300]}",
                status_code=resp.status_code,
            )
        return payload.get("data") or {}

    def _chunk_plan(self, size: int) -> tuple[int, int]:
        if size <= self.MAX_SINGLE_CHUNK_BYTES:
            return size, 1
        # The trailing remainder is merged into the last chunk.
        return self.CHUNK_BYTES, size // self.CHUNK_BYTES

    def _put_chunks(self, session: requests.Session, upload_url: str, video_path: Path, size: int) -> None:
        chunk_size, chunk_count = self._chunk_plan(size)
        with video_path.open("rb") as source:
            for index in range(chunk_count):
                start = index * chunk_size
                end = size - 1 if index == chunk_count - 1 else start + chunk_size - 1
                source.seek(start)
                chunk = source.read(end - start + 1)
                resp = session.put(
                    upload_url,
                    headers={
                        "Content-Type": "video/mp4",
                        "Content-Length": str(len(chunk)),
                        "Content-Range": f"bytes {start}-{end}/{size}",
                    },
                    data=chunk,
                    timeout=settings.upload_timeout_seconds,
                )
                if resp.status_code not in (200, 201, 206):
                    raise UploadError(
                        self.name,
                        f"TikTok media transfer failed ({resp.status_code}): {resp.text[:300]}",
                        status_code=resp.status_code,
                    )

    def _wait_published(self, session: requests.Session, token: str, publish_id: str) -> dict[str, Any]:
        deadline = time.monotonic() + settings.publish_timeout_seconds
        last_status = ""
        while time.monotonic() < deadline:
            data = self._post_json(session, "/post/publish/status/fetch/", token, {"publish_id": publish_id})
            status = str(data.get("status") or "").upper()
            if status == "PUBLISH_COMPLETE":
                return data
            if status == "FAILED":
                raise UploadError(self.name, f"TikTok publish failed: {data.get('fail_reason') or 'unknown reason'}")
            last_status = status or last_status
            time.sleep(settings.publish_poll_interval_seconds)
        suffix = f" (last status: {last_status})" if last_status else ""
        raise UploadError(self.name, f"TikTok publish did not complete in time{suffix}")

    def upload_video(
        self,
        *,
        video_path: Path,
        title: str,
        description: str,
        tags: list[str],
        access_token: str,
    ) -> UploadedVideo:
        size = video_path.stat().st_size
        chunk_size, chunk_count = self._chunk_plan(size)
        try:
            with self._session_factory() as session:
                creator = self._post_json(session, "/post/publish/creator_info/query/", access_token, {})
                username = str(creator.get("creator_username") or "")
                options = creator.get("privacy_level_options") or []
                privacy = self.PRIVACY_LEVEL if not options or self.PRIVACY_LEVEL in options else str(options[0])

                init = self._post_json(
                    session,
                    "/post/publish/video/init/",
                    access_token,
                    {
                        "post_info": {
                            "title": self._caption(title, description, tags),
                            "privacy_level": privacy,
                        },
                        "source_info": {
                            "source": "FILE_UPLOAD",
                            "video_size": size,
                            "chunk_size": chunk_size,
                            "total_chunk_count": chunk_count,
                        },
                    },
                )
                publish_id = str(init.get("publish_id") or "")
                upload_url = init.get("upload_url")
                if not publish_id or not upload_url:
                    raise UploadError(self.name, f"TikTok init returned no upload URL: {init}")

                self._put_chunks(session, str(upload_url), video_path, size)
                status = self._wait_published(session, access_token, publish_id)
        except requests.RequestException as exc:
            raise UploadError(self.name, f"TikTok upload failed: {exc}") from exc

        post_ids = status.get("publicaly_available_post_id") or []
        post_id = str(post_ids[0]) if post_ids else None
        profile_url = f"https://www.tiktok.com/@{username}" if username else "https://www.tiktok.com/"
        logger.info("TikTok publish complete: publish_id=%s post_id=%s", publish_id, post_id)
        return UploadedVideo(
            video_id=post_id or publish_id,
            video_url=f"{profile_url}/video/{post_id}" if post_id and username else profile_url,
        )
