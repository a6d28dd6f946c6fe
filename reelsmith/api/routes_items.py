"""FastAPI routes for content items: creation, script planning and final render."""

from typing import Optional

from fastapi import APIRouter, Depends

from reelsmith.api.deps import get_registry
from reelsmith.api.errors import to_http_exception
from reelsmith.core.exceptions import ReelsmithError
from reelsmith.core.logging_config import get_logger
from reelsmith.models.schemas import ApiResponse, CreateItemRequest, PlanScriptRequest

router = APIRouter(prefix="/v1/items", tags=["items"])


@router.post("", response_model=ApiResponse)
async def create_item(request: CreateItemRequest, services: dict = Depends(get_registry)) -> ApiResponse:
    """Create a content item in DRAFT."""
    item = services["repository"].create_item(request.title, request.script, request.organization_id)
    return ApiResponse(data=item.model_dump(mode="json"), message="Item created")


@router.get("/{item_id}", response_model=ApiResponse)
async def get_item(item_id: str, services: dict = Depends(get_registry)) -> ApiResponse:
    """Item with its blocks in order."""
    repository = services["repository"]
    try:
        item = repository.get_item(item_id)
    except ReelsmithError as e:
        raise to_http_exception(e) from e

    return ApiResponse(
        data={
            "item": item.model_dump(mode="json"),
            "blocks": [b.model_dump(mode="json") for b in repository.list_blocks(item_id)],
        }
    )


@router.post("/{item_id}/script", response_model=ApiResponse)
async def generate_script(
    item_id: str,
    request: Optional[PlanScriptRequest] = None,
    services: dict = Depends(get_registry),
) -> ApiResponse:
    """Plan the item's blocks (existing blocks are returned unless forced)."""
    logger = get_logger(__name__, item_id=item_id)
    try:
        blocks = await services["script_planner"].plan_item(item_id, force=bool(request and request.force))
    except ReelsmithError as e:
        logger.error(f"Script planning failed: {e}")
        raise to_http_exception(e) from e

    return ApiResponse(data=[b.model_dump(mode="json") for b in blocks], message=f"{len(blocks)} blocks")


@router.post("/{item_id}/render", response_model=ApiResponse)
async def render_item(item_id: str, services: dict = Depends(get_registry)) -> ApiResponse:
    """Stitch every block of the item into the final video."""
    logger = get_logger(__name__, item_id=item_id)
    try:
        result = await services["final_assembler"].assemble(item_id)
    except ReelsmithError as e:
        logger.error(f"Final assembly failed: {e}")
        raise to_http_exception(e) from e

    return ApiResponse(data=result.model_dump(mode="json"), message="Video assembled")
