from __future__ import annotations

from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol
import logging

from ..config import settings
from ..errors import InvalidRequest, PostytError, UnsupportedPlatform
from ..models import (
    AccountCredential,
    AccountUploadResult,
    OverallUploadReport,
    PlatformUploadReport,
    TokenUpdate,
    UploadSelection,
    VideoMetadata,
)
from .platforms.base import PlatformAdapter
from .platforms.registry import PlatformRegistry, default_registry
from .token_lifecycle import TokenLifecycleManager

logger = logging.getLogger("uvicorn.error")

UNSUPPORTED_PLATFORM = "unsupported platform"
NOT_IMPLEMENTED = "not yet implemented"
ACCOUNT_NOT_FOUND = "account not found"


class CredentialSource(Protocol):
    def find_account(self, user_id: str, platform: str, account_id: str) -> AccountCredential | None:
        ...


@dataclass
class UploadRunResult:
    report: OverallUploadReport
    token_updates: list[TokenUpdate] = field(default_factory=list)


@dataclass
class _AccountJob:
    platform: str
    index: int
    account_id: str
    adapter: PlatformAdapter


@dataclass
class _AccountOutcome:
    result: AccountUploadResult
    token_update: TokenUpdate | None = None


class UploadOrchestrator:
    """Fans one video out to every selected account.

    Each account is an independent unit of work on a bounded thread pool.
    Failures are recorded in that account's result; results keep the
    submission order of the selection.
    """

    def __init__(self, registry: PlatformRegistry | None = None, *, max_parallel: int | None = None):
        self.registry = registry or default_registry()
        self.max_parallel = max(1, max_parallel or settings.upload_max_parallel)

    @staticmethod
    def _coerce_selection(selection: UploadSelection | Mapping[str, Any] | str) -> UploadSelection:
        if isinstance(selection, UploadSelection):
            return selection
        if isinstance(selection, Mapping):
            return UploadSelection.parse(dict(selection))
        if isinstance(selection, str):
            return UploadSelection.parse(selection)
        raise InvalidRequest("Selected accounts must be an object of platform -> account ids")

    def _upload_one(
        self,
        job: _AccountJob,
        user_id: str,
        video_path: Path,
        metadata: VideoMetadata,
        credential_source: CredentialSource,
    ) -> _AccountOutcome:
        credential = credential_source.find_account(user_id, job.platform, job.account_id)
        if credential is None:
            logger.warning("Upload skipped: %s account %s not found", job.platform, job.account_id)
            return _AccountOutcome(AccountUploadResult.failed(job.account_id, ACCOUNT_NOT_FOUND))

        account_name = credential.account_name or None
        token_update: TokenUpdate | None = None
        try:
            credential, refreshed = TokenLifecycleManager.ensure_valid(credential, job.adapter)
            if refreshed:
                token_update = TokenUpdate(
                    platform=job.platform,
                    account_id=credential.account_id,
                    access_token=credential.access_token,
                    expiry_date=credential.expiry_date,
                    refresh_token=credential.refresh_token,
                )
            uploaded = job.adapter.upload_video(
                video_path=video_path,
                title=metadata.display_title,
                description=metadata.display_description,
                tags=list(metadata.tags),
                access_token=credential.access_token,
            )
        except PostytError as exc:
            logger.warning("Upload to %s account %s failed: %s", job.platform, job.account_id, exc)
            result = AccountUploadResult.failed(job.account_id, str(exc), account_name=account_name)
            return _AccountOutcome(result, token_update)
        except Exception as exc:
            logger.exception("Unexpected error uploading to %s account %s", job.platform, job.account_id)
            result = AccountUploadResult.failed(
                job.account_id,
                f"Unexpected error: {exc}",
                account_name=account_name,
            )
            return _AccountOutcome(result, token_update)

        logger.info("Uploaded to %s account %s: %s", job.platform, job.account_id, uploaded.video_url)
        result = AccountUploadResult.uploaded(
            job.account_id,
            account_name=account_name,
            video_id=uploaded.video_id,
            video_url=uploaded.video_url,
        )
        return _AccountOutcome(result, token_update)

    def run_upload(
        self,
        user_id: str,
        video_path: str | Path,
        metadata: VideoMetadata,
        selection: UploadSelection | Mapping[str, Any] | str,
        credential_source: CredentialSource,
    ) -> UploadRunResult:
        """Upload ``video_path`` to every selected account.

        Returns the aggregate report plus the refreshed tokens the caller
        must persist. Only a malformed request raises (``InvalidRequest``).
        """
        path = Path(video_path)
        if not path.is_file():
            raise InvalidRequest(f"Video file not found: {path}")
        parsed = self._coerce_selection(selection)

        report = OverallUploadReport()
        jobs: list[_AccountJob] = []
        for platform, account_ids in parsed.platforms():
            platform_report = PlatformUploadReport()
            report.platforms[platform] = platform_report
            try:
                adapter = self.registry.resolve(platform)
            except UnsupportedPlatform:
                logger.warning("Upload requested for unsupported platform %r", platform)
                platform_report.error = UNSUPPORTED_PLATFORM
                continue
            if not adapter.implemented:
                platform_report.error = NOT_IMPLEMENTED
                continue
            jobs.extend(
                _AccountJob(platform=platform, index=index, account_id=account_id, adapter=adapter)
                for index, account_id in enumerate(account_ids)
            )

        outcomes: dict[tuple[str, int], _AccountOutcome] = {}
        if jobs:
            workers = min(self.max_parallel, len(jobs))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                future_map = {
                    pool.submit(self._upload_one, job, user_id, path, metadata, credential_source): job
                    for job in jobs
                }
                for future in as_completed(future_map):
                    job = future_map[future]
                    outcomes[(job.platform, job.index)] = future.result()

        token_updates: list[TokenUpdate] = []
        for job in jobs:
            outcome = outcomes[(job.platform, job.index)]
            report.platforms[job.platform].account_results.append(outcome.result)
            if outcome.token_update is not None:
                token_updates.append(outcome.token_update)

        for platform, platform_report in report.platforms.items():
            if platform_report.all_failed:
                logger.warning("Every %s upload failed", platform)
                report.success = False

        return UploadRunResult(report=report, token_updates=token_updates)
