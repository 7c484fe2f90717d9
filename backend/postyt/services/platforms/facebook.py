from __future__ import annotations

from pathlib import Path
from typing import Any
from urllib.parse import urlencode
import logging

import requests

from ...config import settings
from ...errors import OAuthExchangeError, ProviderApiError, RefreshError, UploadError
from ...models import AccountCredential, PlatformId, RefreshedToken, UploadedVideo
from ...utils.provider_errors import extract_graph_error, graph_error_code, response_payload
from .base import PlatformAdapter

logger = logging.getLogger("uvicorn.error")


class FacebookAdapter(PlatformAdapter):
    """Facebook Page videos through the Graph API.

    The linked account is a Page. Its access token is a page token derived
    from a long-lived user token, which Graph issues without an expiry, so
    the credential is stored as non-expiring. The user token is kept as the
    refresh token to re-derive the page token on demand.
    """

    platform = PlatformId.FACEBOOK

    SCOPES = ("pages_show_list", "pages_read_engagement", "pages_manage_posts", "publish_video")
    _INVALID_TOKEN_CODES = {102, 190}

    @classmethod
    def _graph_base(cls) -> str:
        return f"https://graph.facebook.com/{settings.meta_graph_api_version}"

    @classmethod
    def _video_base(cls) -> str:
        return f"https://graph-video.facebook.com/{settings.meta_graph_api_version}"

    def _client(self) -> tuple[str, str]:
        self._require_settings(
            facebook_app_id=settings.facebook_app_id,
            facebook_app_secret=settings.facebook_app_secret,
        )
        return str(settings.facebook_app_id), str(settings.facebook_app_secret)

    def get_auth_url(self, user_id: str) -> str:
        app_id, _ = self._client()
        query = urlencode(
            {
                "client_id": app_id,
                "redirect_uri": self.redirect_uri,
                "state": user_id,
                "scope": ",".join(self.SCOPES),
                "response_type": "code",
                "auth_type": "rerequest",
            }
        )
        return f"https://www.facebook.com/{settings.meta_graph_api_version}/dialog/oauth?{query}"

    def _exchange_long_lived(self, session: requests.Session, access_token: str) -> tuple[requests.Response, str | None]:
        app_id, app_secret = self._client()
        resp = session.get(
            f"{self._graph_base()}/oauth/access_token",
            params={
                "grant_type": "fb_exchange_token",
                "client_id": app_id,
                "client_secret": app_secret,
                "fb_exchange_token": access_token,
            },
            timeout=settings.http_timeout_seconds,
        )
        if resp.status_code >= 400:
            return resp, None
        token = response_payload(resp).get("access_token")
        return resp, str(token) if token else None

    def _list_pages(self, session: requests.Session, user_token: str) -> list[dict[str, Any]]:
        url = f"{self._graph_base()}/me/accounts"
        params: dict[str, str] | None = {"fields": "id,name,access_token", "access_token": user_token}
        pages: list[dict[str, Any]] = []
        while url:
            resp = session.get(url, params=params, timeout=settings.http_timeout_seconds)
            params = None
            if resp.status_code >= 400:
                raise ProviderApiError(
                    self.name,
                    f"Failed to list Facebook pages: {extract_graph_error(resp)}",
                    status_code=resp.status_code,
                )
            payload = response_payload(resp)
            batch = payload.get("data", [])
            if isinstance(batch, list):
                pages.extend(item for item in batch if isinstance(item, dict))
            paging = payload.get("paging") or {}
            next_url = paging.get("next") if isinstance(paging, dict) else None
            url = str(next_url) if next_url else ""
        return pages

    def handle_callback(self, code: str, *, state: str | None = None) -> AccountCredential:
        app_id, app_secret = self._client()
        with self._session_factory() as session:
            resp = session.get(
                f"{self._graph_base()}/oauth/access_token",
                params={
                    "client_id": app_id,
                    "client_secret": app_secret,
                    "redirect_uri": self.redirect_uri,
                    "code": code,
                },
                timeout=settings.http_timeout_seconds,
            )
            if resp.status_code >= 400 or not response_payload(resp).get("access_token"):
                raise OAuthExchangeError(
                    self.name,
                    f"Facebook code exchange failed: {extract_graph_error(resp)}",
                    status_code=resp.status_code,
                )
            short_token = str(response_payload(resp)["access_token"])

            exchange_resp, user_token = self._exchange_long_lived(session, short_token)
            if not user_token:
                raise OAuthExchangeError(
                    self.name,
                    f"Facebook long-lived token exchange failed: {extract_graph_error(exchange_resp)}",
                    status_code=exchange_resp.status_code,
                )
            pages = self._list_pages(session, user_token)

        page = next((p for p in pages if p.get("id") and p.get("access_token")), None)
        if page is None:
            raise ProviderApiError(self.name, "No manageable Facebook page returned for this user")
        if len(pages) > 1:
            logger.info("Facebook user manages %d pages; linking %s", len(pages), page.get("id"))

        return AccountCredential(
            account_id=str(page["id"]),
            account_name=str(page.get("name") or page["id"]),
            access_token=str(page["access_token"]),
            refresh_token=user_token,
            expiry_date=None,
        )

    def refresh_token(self, refresh_token: str | None, *, account_id: str | None = None) -> RefreshedToken:
        if not refresh_token:
            raise RefreshError(self.name, "No user token stored; re-authorization required", revoked=True)
        if not account_id:
            raise RefreshError(self.name, "Facebook refresh requires the page id")

        try:
            with self._session_factory() as session:
                exchange_resp, user_token = self._exchange_long_lived(session, refresh_token)
                if not user_token:
                    raise RefreshError(
                        self.name,
                        f"Facebook user token exchange failed: {extract_graph_error(exchange_resp)}",
                        status_code=exchange_resp.status_code,
                        revoked=graph_error_code(exchange_resp) in self._INVALID_TOKEN_CODES,
                    )
                page_resp = session.get(
                    f"{self._graph_base()}/{account_id}",
                    params={"fields": "access_token", "access_token": user_token},
                    timeout=settings.http_timeout_seconds,
                )
        except requests.RequestException as exc:
            raise RefreshError(self.name, f"Facebook token refresh failed: {exc}") from exc

        page_token = response_payload(page_resp).get("access_token") if page_resp.status_code < 400 else None
        if not page_token:
            raise RefreshError(
                self.name,
                f"Could not derive page token for {account_id}: {extract_graph_error(page_resp)}",
                status_code=page_resp.status_code,
                revoked=graph_error_code(page_resp) in self._INVALID_TOKEN_CODES,
            )
        return RefreshedToken(
            access_token=str(page_token),
            expiry_date=None,
            refresh_token=user_token,
        )

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
        full_description = "\n\n".join(part for part in (description, hashtags) if part)
        try:
            with self._session_factory() as session, video_path.open("rb") as source:
                resp = session.post(
                    f"{self._video_base()}/me/videos",
                    data={
                        "title": title,
                        "description": full_description,
                        "published": "true",
                        "secret": "true",  # reachable by link only
                        "access_token": access_token,
                    },
                    files={"source": (video_path.name, source, "video/mp4")},
                    timeout=settings.upload_timeout_seconds,
                )
        except requests.RequestException as exc:
            raise UploadError(self.name, f"Facebook upload failed: {exc}") from exc

        if resp.status_code >= 400:
            raise UploadError(
                self.name,
                f"Video upload failed: {extract_graph_error(resp)}",
                status_code=resp.status_code,
            )
        video_id = response_payload(resp).get("id")
        if not video_id:
            raise UploadError(
                self.name,
                f"Unexpected Facebook response: {resp.text[:300]}",
                status_code=resp.status_code,
            )
        return UploadedVideo(
            video_id=str(video_id),
            video_url=f"https://www.facebook.com/{video_id}",
        )
