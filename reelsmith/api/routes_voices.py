"""FastAPI routes for the voice library."""

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from reelsmith.api.deps import get_registry
from reelsmith.api.errors import to_http_exception
from reelsmith.core.exceptions import ReelsmithError
from reelsmith.core.logging_config import get_logger
from reelsmith.models.schemas import ApiResponse
from reelsmith.utils.io_utils import scoped_workspace, write_bytes

router = APIRouter(prefix="/v1/voices", tags=["voices"])


@router.post("/clone", response_model=ApiResponse)
async def clone_voice(
    name: str = Form(...),
    organization_id: Optional[str] = Form(default=None),
    audio: list[UploadFile] = File(...),
    services: dict = Depends(get_registry),
) -> ApiResponse:
    """Clone a voice from uploaded samples."""
    logger = get_logger(__name__, voice_name=name)
    if not audio:
        raise HTTPException(status_code=400, detail="At least one audio sample is required")

    settings = services["settings"]
    with scoped_workspace("clone-", parent=settings.temp_dir, logger=logger) as workspace:
        sample_paths: list[Path] = []
        for index, upload in enumerate(audio):
            suffix = Path(upload.filename or "").suffix or ".mp3"
            sample_paths.append(write_bytes(workspace / f"sample_{index}{suffix}", await upload.read()))
        try:
            voice = await services["voice_library"].clone(name, sample_paths, organization_id=organization_id)
        except ReelsmithError as e:
            logger.error(f"Voice cloning failed: {e}")
            raise to_http_exception(e) from e

    return ApiResponse(data=voice.model_dump(mode="json"), message="Voice cloned")


@router.get("", response_model=ApiResponse)
async def list_voices(organization_id: Optional[str] = None, services: dict = Depends(get_registry)) -> ApiResponse:
    """Global voices plus the organization's own."""
    voices = services["voice_library"].list_voices(organization_id)
    return ApiResponse(data=[v.model_dump(mode="json") for v in voices])
