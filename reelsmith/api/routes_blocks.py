"""FastAPI routes for block input upload and rendering."""

from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from reelsmith.api.deps import get_registry
from reelsmith.api.errors import to_http_exception
from reelsmith.core.exceptions import ReelsmithError
from reelsmith.core.logging_config import get_logger
from reelsmith.models.schemas import ApiResponse, RenderBlockRequest

router = APIRouter(prefix="/v1/blocks", tags=["blocks"])


@router.post("/{block_id}/upload", response_model=ApiResponse)
async def upload_block_media(
    block_id: str,
    file: UploadFile = File(...),
    services: dict = Depends(get_registry),
) -> ApiResponse:
    """Attach the user's image or video to a block."""
    logger = get_logger(__name__, block_id=block_id)
    data = await file.read()
    logger.info(f"Upload for block {block_id}: {file.filename} ({file.content_type}, {len(data)} bytes)")

    try:
        block = await services["block_renderer"].attach_input(
            block_id, data, file.filename or "upload", file.content_type or ""
        )
    except ReelsmithError as e:
        logger.error(f"Upload failed: {e}")
        raise to_http_exception(e) from e

    return ApiResponse(data=block.model_dump(mode="json"), message="Media uploaded")


@router.post("/{block_id}/generate", response_model=ApiResponse)
async def generate_block_video(
    block_id: str,
    request: Optional[RenderBlockRequest] = None,
    services: dict = Depends(get_registry),
) -> ApiResponse:
    """Render a block: generate, optionally re-voice, caption and store its clip."""
    logger = get_logger(__name__, block_id=block_id)
    voice_id = request.voice_id if request else None

    try:
        report = await services["block_renderer"].render(block_id, voice_id=voice_id)
    except ReelsmithError as e:
        logger.error(f"Render failed: {e}")
        raise to_http_exception(e) from e

    return ApiResponse(data=report.model_dump(mode="json"), message="Block rendered")
