from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any
import logging

from ..models import OverallUploadReport, UploadSelection, VideoMetadata
from .credential_store import JsonCredentialStore
from .upload_orchestrator import UploadOrchestrator

logger = logging.getLogger("uvicorn.error")


class PublishService:
    """Runs one upload request end to end and owns the temporary video file."""

    def __init__(self, orchestrator: UploadOrchestrator | None = None):
        self.orchestrator = orchestrator or UploadOrchestrator()

    @staticmethod
    def _discard(video_path: Path) -> None:
        try:
            video_path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Failed to delete temporary upload %s", video_path, exc_info=True)

    def publish(
        self,
        user_id: str,
        video_path: str | Path,
        metadata: VideoMetadata,
        selection: UploadSelection | Mapping[str, Any] | str,
        store: JsonCredentialStore,
    ) -> OverallUploadReport:
        path = Path(video_path)
        try:
            result = self.orchestrator.run_upload(user_id, path, metadata, selection, store)
        finally:
            self._discard(path)

        if result.token_updates:
            logger.info("Persisting %d refreshed token(s) for user %s", len(result.token_updates), user_id)
            try:
                store.apply_token_updates(user_id, result.token_updates)
            except Exception:
                # Uploads already happened; the report must still reach the caller.
                logger.exception("Failed to persist refreshed tokens for user %s", user_id)
        return result.report
