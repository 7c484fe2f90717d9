from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator
import json

from pydantic import BaseModel, ConfigDict, Field, RootModel, ValidationError, field_validator

from ..errors import InvalidRequest


UNTITLED_VIDEO = "Untitled video"


class VideoMetadata(BaseModel):
    """Metadata shared by every upload of one request."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value: list[str]) -> list[str]:
        return [tag.strip() for tag in value if isinstance(tag, str) and tag.strip()]

    @classmethod
    def from_form(
        cls,
        title: str | None = None,
        description: str | None = None,
        tags: str | None = None,
    ) -> VideoMetadata:
        """Build metadata from raw form fields (``tags`` is comma separated)."""
        return cls(
            title=title,
            description=description,
            tags=tags.split(",") if tags else [],
        )

    @property
    def display_title(self) -> str:
        return (self.title or "").strip() or UNTITLED_VIDEO

    @property
    def display_description(self) -> str:
        return self.description or ""


class UploadSelection(RootModel[dict[str, list[str] | None]]):
    """Platform -> ordered account ids chosen for one upload."""

    @classmethod
    def parse(cls, raw: str | dict[str, Any] | None) -> UploadSelection:
        if raw is None:
            raise InvalidRequest("No accounts selected")
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except ValueError as exc:
                raise InvalidRequest(f"Invalid selected accounts format: {exc}") from exc
        if not isinstance(raw, dict):
            raise InvalidRequest("Selected accounts must be an object of platform -> account ids")
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            raise InvalidRequest(f"Invalid selected accounts: {exc.error_count()} error(s)") from exc

    def platforms(self) -> Iterator[tuple[str, list[str]]]:
        """Yield non-empty platform entries in selection order."""
        for platform, account_ids in self.root.items():
            if not account_ids:
                continue
            yield platform, list(account_ids)


@dataclass
class AccountUploadResult:
    account_id: str
    success: bool
    account_name: str | None = None
    video_id: str | None = None
    video_url: str | None = None
    error: str | None = None

    @classmethod
    def uploaded(
        cls,
        account_id: str,
        *,
        account_name: str | None,
        video_id: str,
        video_url: str,
    ) -> AccountUploadResult:
        return cls(
            account_id=account_id,
            success=True,
            account_name=account_name,
            video_id=video_id,
            video_url=video_url,
        )

    @classmethod
    def failed(cls, account_id: str, error: str, *, account_name: str | None = None) -> AccountUploadResult:
        return cls(account_id=account_id, success=False, account_name=account_name, error=error)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"accountId": self.account_id, "success": self.success}
        if self.account_name:
            payload["accountName"] = self.account_name
        if self.success:
            payload["videoId"] = self.video_id
            payload["videoUrl"] = self.video_url
        else:
            payload["error"] = self.error
        return payload


@dataclass
class PlatformUploadReport:
    account_results: list[AccountUploadResult] = field(default_factory=list)
    error: str | None = None  # platform unsupported or not implemented

    @property
    def all_failed(self) -> bool:
        return bool(self.account_results) and not any(r.success for r in self.account_results)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "accountResults": [result.to_dict() for result in self.account_results],
        }
        if self.error:
            payload["error"] = self.error
        return payload


@dataclass
class OverallUploadReport:
    success: bool = True
    platforms: dict[str, PlatformUploadReport] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": {"success": self.success},
            "platforms": {name: report.to_dict() for name, report in self.platforms.items()},
        }
