import asyncio
import logging
import uuid
from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from ...config import settings
from ...errors import InvalidRequest
from ...models import UploadSelection, VideoMetadata
from ...services import JsonCredentialStore, PublishService
from ..deps import get_credential_store, get_current_user, get_publish_service


logger = logging.getLogger("uvicorn.error")

router = APIRouter(tags=["upload"])

_CHUNK_BYTES = 1024 * 1024


async def _save_upload(video: UploadFile) -> Path:
    """Stream the multipart file into the uploads directory, enforcing the size limit."""
    suffix = Path(video.filename or "").suffix or ".mp4"
    target = settings.uploads_dir / f"{uuid.uuid4().hex}{suffix}"
    written = 0
    try:
        with target.open("wb") as out:
            while chunk := await video.read(_CHUNK_BYTES):
                written += len(chunk)
                if written > settings.max_upload_size_bytes:
                    raise HTTPException(status_code=413, detail="Video exceeds the maximum upload size")
                out.write(chunk)
    except BaseException:
        target.unlink(missing_ok=True)
        raise
    finally:
        await video.close()
    return target


@router.post("/upload")
async def upload_video(
    video: UploadFile | None = File(None),
    title: str | None = Form(None),
    description: str | None = Form(None),
    tags: str | None = Form(None),
    selectedAccounts: str | None = Form(None),
    user_id: str = Depends(get_current_user),
    store: JsonCredentialStore = Depends(get_credential_store),
    publisher: PublishService = Depends(get_publish_service),
):
    """Publish one video to every selected account.

    Responds 200 with the full report even when some uploads failed.
    """
    if video is None or not video.filename:
        raise HTTPException(status_code=400, detail="No video file provided")
    try:
        selection = UploadSelection.parse(selectedAccounts)
        metadata = VideoMetadata.from_form(title, description, tags)
    except InvalidRequest as exc:
        await video.close()
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    video_path = await _save_upload(video)
    try:
        report = await asyncio.to_thread(
            publisher.publish, user_id, video_path, metadata, selection, store
        )
    except InvalidRequest as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Upload request failed for user %s", user_id)
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})
    return report.to_dict()
