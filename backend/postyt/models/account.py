from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, field_validator


class PlatformId(str, Enum):
    """Platforms a video can be published to."""

    YOUTUBE = "youtube"
    TIKTOK = "tiktok"
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    TWITTER = "twitter"
    REDDIT = "reddit"
    SNAPCHAT = "snapchat"

    @classmethod
    def parse(cls, value: str) -> PlatformId | None:
        try:
            return cls(value)
        except ValueError:
            return None


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize naive datetimes (assumed UTC) to aware UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AccountCredential(BaseModel):
    """OAuth tokens and identity of one linked platform account."""

    account_id: str
    account_name: str = ""
    access_token: str
    refresh_token: str | None = None
    expiry_date: datetime | None = None  # None: token does not expire

    @field_validator("expiry_date")
    @classmethod
    def normalize_expiry(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)

    def is_expired(self, now: datetime) -> bool:
        # Strictly after the expiry instant; no skew allowance.
        if self.expiry_date is None:
            return False
        return now > self.expiry_date


@dataclass
class RefreshedToken:
    access_token: str
    expiry_date: datetime | None
    refresh_token: str | None = None  # set when the provider rotates it


@dataclass
class UploadedVideo:
    video_id: str
    video_url: str


@dataclass
class TokenUpdate:
    """A refreshed token the caller must persist."""

    platform: str
    account_id: str
    access_token: str
    expiry_date: datetime | None
    refresh_token: str | None = None
