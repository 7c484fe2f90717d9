import os
import tempfile

_DATA_DIR = tempfile.mkdtemp(prefix="postyt-tests-")
os.environ.setdefault("POSTYT_DATA_DIR", _DATA_DIR)
os.environ.setdefault("POSTYT_UPLOADS_DIR", os.path.join(_DATA_DIR, "uploads"))
os.environ.setdefault("POSTYT_JWT_SECRET", "test-secret")
os.environ.setdefault("POSTYT_PUBLISH_POLL_INTERVAL_SECONDS", "0")

import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock, Mock

import pytest

from postyt.errors import RefreshError, UploadError
from postyt.models import AccountCredential, PlatformId, RefreshedToken, UploadedVideo
from postyt.services.platforms import PlatformAdapter, PlatformRegistry, UnimplementedAdapter


NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeAdapter(PlatformAdapter):
    """In-memory adapter recording every call it receives."""

    def __init__(
        self,
        platform: PlatformId,
        *,
        refresh_failures: tuple[str, ...] = (),
        upload_failures: tuple[str, ...] = (),
        rotated_refresh_token: str | None = None,
        upload_delays: dict[str, float] | None = None,
    ):
        super().__init__()
        self.platform = platform
        self.refresh_failures = set(refresh_failures)
        self.upload_failures = set(upload_failures)
        self.rotated_refresh_token = rotated_refresh_token
        self.upload_delays = upload_delays or {}
        self.refresh_calls: list[tuple[str | None, str | None]] = []
        self.upload_calls: list[dict] = []
        self._lock = threading.Lock()

    def get_auth_url(self, user_id: str) -> str:
        return f"https://auth.example/{self.name}?state={user_id}"

    def handle_callback(self, code: str, *, state: str | None = None) -> AccountCredential:
        return AccountCredential(
            account_id=f"{self.name}-{code}",
            account_name="Linked Channel",
            access_token="linked-token",
            refresh_token="linked-refresh",
        )

    def refresh_token(self, refresh_token: str | None, *, account_id: str | None = None) -> RefreshedToken:
        with self._lock:
            self.refresh_calls.append((refresh_token, account_id))
        if account_id in self.refresh_failures:
            raise RefreshError(self.name, "invalid_grant: token revoked", status_code=400, revoked=True)
        return RefreshedToken(
            access_token=f"new-{account_id}",
            expiry_date=NOW + timedelta(hours=1),
            refresh_token=self.rotated_refresh_token,
        )

    def upload_video(self, *, video_path, title, description, tags, access_token) -> UploadedVideo:
        delay = self.upload_delays.get(access_token)
        if delay:
            threading.Event().wait(delay)
        with self._lock:
            self.upload_calls.append(
                {
                    "video_path": video_path,
                    "title": title,
                    "description": description,
                    "tags": tags,
                    "access_token": access_token,
                }
            )
        if access_token in self.upload_failures:
            raise UploadError(self.name, "Quota exceeded", status_code=403)
        return UploadedVideo(video_id=f"vid-{access_token}", video_url=f"https://video.example/{access_token}")


class FakeCredentialSource:
    def __init__(self, accounts: dict[tuple[str, str], AccountCredential] | None = None):
        self.accounts = dict(accounts or {})
        self.lookups: list[tuple[str, str, str]] = []

    def find_account(self, user_id: str, platform: str, account_id: str) -> AccountCredential | None:
        self.lookups.append((user_id, platform, account_id))
        return self.accounts.get((platform, account_id))


def credential(account_id: str, *, token: str | None = None, expired: bool = False, name: str = "") -> AccountCredential:
    return AccountCredential(
        account_id=account_id,
        account_name=name or f"Account {account_id}",
        access_token=token or f"token-{account_id}",
        refresh_token=f"refresh-{account_id}",
        expiry_date=(NOW - timedelta(minutes=5)) if expired else (datetime.now(timezone.utc) + timedelta(days=1)),
    )


def make_registry(**adapters: PlatformAdapter) -> PlatformRegistry:
    mapping: dict[PlatformId, PlatformAdapter] = {
        platform: UnimplementedAdapter(platform) for platform in PlatformId
    }
    for name, adapter in adapters.items():
        mapping[PlatformId(name)] = adapter
    return PlatformRegistry(mapping)


def http_response(status_code: int = 200, payload=None, *, text: str | None = None) -> Mock:
    response = Mock()
    response.status_code = status_code
    if payload is None:
        response.json.side_effect = ValueError("no json")
        response.content = b""
    else:
        response.json.return_value = payload
        response.content = b"{...}"
    response.text = text if text is not None else str(payload or "")
    return response


@pytest.fixture
def video_file(tmp_path: Path) -> Path:
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64)
    return path


@pytest.fixture
def http_session():
    """A mocked ``requests.Session`` plus the factory adapters are built with."""
    session = MagicMock()
    session.__enter__.return_value = session
    session.__exit__.return_value = False
    factory = Mock(return_value=session)
    return session, factory
