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
from ...utils.provider_errors import extract_graph_error, graph_error_code, response_payload
from .base import PlatformAdapter

logger = logging.getLogger("uvicorn.error")


class InstagramAdapter(PlatformAdapter):
    """Instagram Reels through the Instagram API with Instagram Login.

    Long-lived Instagram tokens refresh themselves: the same token is stored
    as access and refresh token and exchanged for a fresh one on expiry.
    """

    platform = PlatformId.INSTAGRAM

    AUTH_URL = "https://www.instagram.com/oauth/authorize"
    TOKEN_URL = "https://api.instagram.com/oauth/access_token"
    GRAPH_ROOT = "https://graph.instagram.com"
    SCOPES = ("instagram_business_basic", "instagram_business_content_publish")

    @classmethod
    def _graph_base(cls) -> str:
        return f"{cls.GRAPH_ROOT}/{settings.meta_graph_api_version}"

    def _client(self) -> tuple[str, str]:
        self._require_settings(
            instagram_app_id=settings.instagram_app_id,
            instagram_app_secret=settings.instagram_app_secret,
        )
        return str(settings.instagram_app_id), str(settings.instagram_app_secret)

    def get_auth_url(self, user_id: str) -> str:
        app_id, _ = self._client()
        query = urlencode(
            {
                "client_id": app_id,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "scope": ",".join(self.SCOPES),
                "state": user_id,
                "force_reauth": "true",
            }
        )
        return f"{self.AUTH_URL}?{query}"

    def handle_callback(self, code: str, *, state: str | None = None) -> AccountCredential:
        app_id, app_secret = self._client()
        with self._session_factory() as session:
            resp = session.post(
                self.TOKEN_URL,
                data={
                    "client_id": app_id,
                    "client_secret": app_secret,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                    "code": code,
                },
                timeout=settings.http_timeout_seconds,
            )
            payload: dict[str, Any] = response_payload(resp) if resp.status_code < 400 else {}
            # Newer responses wrap the token in {"data": [...]}
            if isinstance(payload.get("data"), list) and payload["data"]:
                payload = payload["data"][0]
            short_token = payload.get("access_token")
            if not short_token:
                raise OAuthExchangeError(
                    self.name,
                    f"Instagram code exchange failed: {extract_graph_error(resp)}",
                    status_code=resp.status_code,
                )

            long_resp = session.get(
                f"{self.GRAPH_ROOT}/access_token",
                params={
                    "grant_type": "ig_exchange_token",
                    "client_secret": app_secret,
                    "access_token": short_token,
                },
                timeout=settings.http_timeout_seconds,
            )
            if long_resp.status_code >= 400 or not response_payload(long_resp).get("access_token"):
                raise OAuthExchangeError(
                    self.name,
                    f"Instagram long-lived token exchange failed: {extract_graph_error(long_resp)}",
                    status_code=long_resp.status_code,
                )
            long_payload = response_payload(long_resp)
            token = str(long_payload["access_token"])

            me_resp = session.get(
                f"{self._graph_base()}/me",
                params={"fields": "user_id,username", "access_token": token},
                timeout=settings.http_timeout_seconds,
            )
            if me_resp.status_code >= 400:
                raise ProviderApiError(
                    self.name,
                    f"Instagram profile lookup failed: {extract_graph_error(me_resp)}",
                    status_code=me_resp.status_code,
                )
            me = response_payload(me_resp)

        account_id = str(me.get("user_id") or me.get("id") or payload.get("user_id") or "")
        if not account_id:
            raise ProviderApiError(self.name, "Instagram profile lookup returned no user id")
        return AccountCredential(
            account_id=account_id,
            account_name=str(me.get("username") or account_id),
            access_token=token,
            refresh_token=token,
            expiry_date=expires_at(long_payload.get("expires_in")),
        )

    def refresh_token(self, refresh_token: str | None, *, account_id: str | None = None) -> RefreshedToken:
        if not refresh_token:
            raise RefreshError(self.name, "No long-lived token stored; re-authorization required", revoked=True)
        try:
            with self._session_factory() as session:
                resp = session.get(
                    f"{self.GRAPH_ROOT}/refresh_access_token",
                    params={"grant_type": "ig_refresh_token", "access_token": refresh_token},
                    timeout=settings.http_timeout_seconds,
                )
        except requests.RequestException as exc:
            raise RefreshError(self.name, f"Instagram token refresh failed: {exc}") from exc

        token = response_payload(resp).get("access_token") if resp.status_code < 400 else None
        if not token:
            raise RefreshError(
                self.name,
                f"Instagram token refresh failed: {extract_graph_error(resp)}",
                status_code=resp.status_code,
                revoked=graph_error_code(resp) == 190,
            )
        return RefreshedToken(
            access_token=str(token),
            expiry_date=expires_at(response_payload(resp).get("expires_in")),
            refresh_token=str(token),
        )

    def _create_container(self, session: requests.Session, token: str, caption: str) -> tuple[str, str]:
        resp = session.post(
            f"{self._graph_base()}/me/media",
            data={
                "media_type": "REELS",
                "upload_type": "resumable",
                "caption": caption,
                "share_to_feed": "false",
                "access_token": token,
            },
            timeout=settings.http_timeout_seconds,
        )
        if resp.status_code >= 400:
            raise UploadError(
                self.name,
                f"Instagram container creation failed: {extract_graph_error(resp)}",
                status_code=resp.status_code,
            )
        payload = response_payload(resp)
        container_id = payload.get("id")
        upload_uri = payload.get("uri")
        if not container_id or not upload_uri:
            raise UploadError(
                self.name,
                f"Instagram container creation returned no upload URI: {resp.text[:300]}",
                status_code=resp.status_code,
            )
        return str(container_id), str(upload_uri)

    def _send_file(self, session: requests.Session, token: str, upload_uri: str, video_path: Path) -> None:
        file_size = video_path.stat().st_size
        with video_path.open("rb") as source:
            resp = session.post(
                upload_uri,
                headers={
                    "Authorization": f"OAuth {token}",
                    "offset": "0",
                    "file_size": str(file_size),
                    "Content-Type": "application/octet-stream",
                },
                data=source,
                timeout=settings.upload_timeout_seconds,
            )
        if resp.status_code >= 400:
            raise UploadError(
                self.name,
                f"Instagram video transfer failed: {extract_graph_error(resp)}",
                status_code=resp.status_code,
            )

    def _wait_container_ready(self, session: requests.Session, token: str, container_id: str) -> None:
        deadline = time.monotonic() + settings.publish_timeout_seconds
        last_status = ""
        while time.monotonic() < deadline:
            resp = session.get(
                f"{self._graph_base()}/{container_id}",
                params={"fields": "status_code,status", "access_token": token},
                timeout=settings.http_timeout_seconds,
            )
            if resp.status_code >= 400:
                raise UploadError(
                    self.name,
                    f"Instagram container status failed: {extract_graph_error(resp)}",
                    status_code=resp.status_code,
                )
            payload = response_payload(resp)
            status_code = str(payload.get("status_code") or "").upper()
            if status_code == "FINISHED":
                return
            if status_code in {"ERROR", "EXPIRED"}:
                detail = payload.get("status") or status_code
                raise UploadError(self.name, f"Instagram container failed: {detail}")
            last_status = status_code or last_status
            time.sleep(settings.publish_poll_interval_seconds)
        suffix = f" (last status: {last_status})" if last_status else ""
        raise UploadError(self.name, f"Instagram container did not finish processing in time{suffix}")

    def _publish(self, session: requests.Session, token: str, container_id: str) -> tuple[str, str]:
        resp = session.post(
            f"{self._graph_base()}/me/media_publish",
            data={"creation_id": container_id, "access_token": token},
            timeout=settings.http_timeout_seconds,
        )
        if resp.status_code >= 400:
            raise UploadError(
                self.name,
                f"media_publish failed: {extract_graph_error(resp)}",
                status_code=resp.status_code,
            )
        media_id = str(response_payload(resp).get("id") or "").strip()
        if not media_id:
            raise UploadError(
                self.name,
                f"media_publish returned no media id: {resp.text[:300]}",
                status_code=resp.status_code,
            )

        permalink: str | None = None
        info = session.get(
            f"{self._graph_base()}/{media_id}",
            params={"fields": "permalink", "access_token": token},
            timeout=settings.http_timeout_seconds,
        )
        if info.status_code < 400:
            permalink = str(response_payload(info).get("permalink") or "").strip() or None
        return media_id, permalink or f"https://www.instagram.com/reel/{media_id}/"

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
        caption = "\n\n".join(part for part in (title, description, hashtags) if part)[:2200]
        try:
            with self._session_factory() as session:
                container_id, upload_uri = self._create_container(session, access_token, caption)
                self._send_file(session, access_token, upload_uri, video_path)
                self._wait_container_ready(session, access_token, container_id)
                media_id, permalink = self._publish(session, access_token, container_id)
        except requests.RequestException as exc:
            raise UploadError(self.name, f"Instagram upload failed: {exc}") from exc
        logger.info("Instagram reel published: media_id=%s", media_id)
        return UploadedVideo(video_id=media_id, video_url=permalink)
