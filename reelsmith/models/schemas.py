"""Pydantic models and schemas for the block render and assembly pipeline."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from reelsmith.core.exceptions import PreconditionViolation


ALLOWED_DURATIONS = (4, 6, 8)
DEFAULT_DURATION = 4


def utc_now() -> datetime:
    """Timezone-aware current time used for record timestamps."""
    return datetime.now(timezone.utc)


def normalize_duration(
    value: Any,
    allowed: tuple[int, ...] = ALLOWED_DURATIONS,
    default: int = DEFAULT_DURATION,
    strict: bool = False,
) -> int:
    """
    Coerce a requested block duration into the allowed set.

    Args:
        value: Requested duration (any type; model output is not trusted)
        allowed: Allowed durations in seconds
        default: Duration used for unexpected values
        strict: Raise instead of falling back to the default

    Returns:
        A duration from ``allowed``

    Raises:
        PreconditionViolation: If strict and the value is not allowed
    """
    try:
        seconds = int(value)
        exact = float(value) == seconds
    except (TypeError, ValueError):
        seconds, exact = None, False

    if exact and seconds in allowed:
        return seconds
    if strict:
        raise PreconditionViolation(
            f"Block duration {value!r} is not one of {list(allowed)}", {"duration": value}
        )
    return default


# ============================================================================
# Enums
# ============================================================================


class BlockType(str, Enum):
    """Kind of scene a block represents."""

    NARRATOR = "NARRATOR"
    SHOWCASE = "SHOWCASE"


class BlockStatus(str, Enum):
    """Lifecycle status of a block."""

    WAITING_INPUT = "WAITING_INPUT"
    READY = "READY"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class MediaType(str, Enum):
    """Kind of media a user uploaded for a block."""

    VIDEO = "VIDEO"
    IMAGE = "IMAGE"


class ItemStatus(str, Enum):
    """Lifecycle status of a content item."""

    DRAFT = "DRAFT"
    SCRIPTED = "SCRIPTED"
    COMPLETED = "COMPLETED"


# ============================================================================
# Persisted Entities
# ============================================================================


class Block(BaseModel):
    """One scene/shot of a content item."""

    id: str = Field(..., description="Unique block identifier")
    content_item_id: str = Field(..., description="Parent content item identifier")
    order: int = Field(..., ge=1, description="1-based position within the parent item")
    type: BlockType = Field(default=BlockType.NARRATOR, description="Block kind (NARRATOR or SHOWCASE)")
    duration_target: int = Field(default=4, description="Target clip duration in seconds (4, 6 or 8)")
    script: str = Field(default="", description="Spoken script text")
    visual_prompt: str = Field(default="", description="Prompt describing the visuals to generate")
    instructions: str = Field(default="", description="Filming instructions for the user")
    input_media_path: Optional[str] = Field(default=None, description="Storage path of the uploaded input media")
    input_media_type: Optional[MediaType] = Field(default=None, description="Kind of uploaded input media")
    generated_video_path: Optional[str] = Field(default=None, description="Storage path of the rendered clip")
    status: BlockStatus = Field(default=BlockStatus.WAITING_INPUT, description="Lifecycle status")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update timestamp")

    @property
    def is_video_input(self) -> bool:
        return self.input_media_type == MediaType.VIDEO

    def usable_media_path(self) -> Optional[str]:
        """Media reference usable for final assembly: rendered clip, else an uploaded video."""
        if self.generated_video_path:
            return self.generated_video_path
        if self.is_video_input:
            return self.input_media_path
        return None


class ContentItem(BaseModel):
    """A content idea that owns an ordered set of blocks."""

    id: str = Field(..., description="Unique content item identifier")
    title: str = Field(..., description="Idea title, used as the intent for script planning")
    script: str = Field(default="", description="User draft of the script")
    organization_id: Optional[str] = Field(default=None, description="Owning organization")
    status: ItemStatus = Field(default=ItemStatus.DRAFT, description="Lifecycle status")
    final_video_path: Optional[str] = Field(default=None, description="Storage path of the stitched video")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update timestamp")


class Voice(BaseModel):
    """An external voice identity available for re-voicing."""

    id: str = Field(..., description="Unique voice record identifier")
    name: str = Field(..., description="Display name")
    elevenlabs_voice_id: str = Field(..., description="Voice identifier at the voice service")
    organization_id: Optional[str] = Field(default=None, description="Owning organization (None = global)")
    preview_url: str = Field(default="", description="Public URL of the cached preview audio")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")


# ============================================================================
# Script Planning Models
# ============================================================================


class ScriptBlock(BaseModel):
    """One block as planned by the script generator, before persistence."""

    type: BlockType = Field(..., description="Block kind")
    duration_target: float = Field(..., description="Requested duration in seconds (normalized on persist)")
    script: str = Field(..., description="Words to be spoken or shown")
    visual_prompt: str = Field(default="", description="Prompt for clip generation")
    user_instructions: str = Field(default="", description="What the user should film or upload")


class ScriptPlan(BaseModel):
    """Structured output of the script generator."""

    blocks: list[ScriptBlock] = Field(..., description="Planned blocks in playback order")


# ============================================================================
# Alignment & Caption Models
# ============================================================================


class CharacterTiming(BaseModel):
    """Timing of a single character of the aligned transcript."""

    char: str = Field(..., description="The character")
    start: float = Field(..., description="Start time in seconds")
    end: float = Field(..., description="End time in seconds")


class AlignmentData(BaseModel):
    """Per-character timings covering an entire transcript."""

    characters: list[CharacterTiming] = Field(default_factory=list, description="Characters in transcript order")

    @property
    def text(self) -> str:
        return "".join(c.char for c in self.characters)

    def is_empty(self) -> bool:
        return not self.characters


class WordTiming(BaseModel):
    """A word reconstructed from character timings."""

    text: str
    start: float
    end: float


class CaptionCue(BaseModel):
    """A timed caption group of one to three words."""

    text: str = Field(..., description="Caption text")
    start: float = Field(..., description="Start time in seconds")
    end: float = Field(..., description="End time in seconds")
    word_count: int = Field(default=1, description="Number of words in the cue")


class CaptionStyle(BaseModel):
    """Visual style of burned-in captions."""

    font_name: str = "Montserrat"
    font_size: int = 72
    primary_colour: str = "&H00FFFFFF"
    outline_colour: str = "&H00000000"
    outline: int = 4
    margin_v: int = 260
    play_res_x: int = 720
    play_res_y: int = 1280


# ============================================================================
# Media Models
# ============================================================================


class TrimPolicy(BaseModel):
    """Fixed lead/trail shaved off every clip before concatenation."""

    enabled: bool = Field(default=False, description="Whether trimming is applied")
    start_seconds: float = Field(default=0.0, ge=0.0, description="Seconds removed from each clip's start")
    end_seconds: float = Field(default=0.0, ge=0.0, description="Seconds removed from each clip's end")


class MediaInfo(BaseModel):
    """Subset of ffprobe output the pipeline relies on."""

    duration: float = Field(default=0.0, description="Container duration in seconds (0.0 when unknown)")
    has_video: bool = Field(default=False)
    has_audio: bool = Field(default=False)
    width: Optional[int] = Field(default=None)
    height: Optional[int] = Field(default=None)


# ============================================================================
# Pipeline Results
# ============================================================================


class BlockRenderReport(BaseModel):
    """What happened while rendering one block."""

    block: Block
    revoiced: bool = Field(default=False, description="Whether the clip audio was replaced by a transformed voice")
    captioned: bool = Field(default=False, description="Whether captions were burned into the clip")
    degradations: list[str] = Field(default_factory=list, description="Stages that fell back to a degraded result")


class AssemblyResult(BaseModel):
    """Outcome of final assembly."""

    item: ContentItem
    block_ids: list[str] = Field(default_factory=list, description="Block ids in stitched order")
    signed_url: Optional[str] = Field(default=None, description="Signed URL of the stitched video")


# ============================================================================
# API Request/Response Models
# ============================================================================


class CreateItemRequest(BaseModel):
    """Request to create a content item."""

    title: str = Field(..., min_length=1, description="Idea title")
    script: str = Field(default="", description="User draft of the script")
    organization_id: Optional[str] = Field(default=None, description="Owning organization")


class RenderBlockRequest(BaseModel):
    """Request to render a block."""

    voice_id: Optional[str] = Field(default=None, description="External voice id used to re-voice the clip")


class PlanScriptRequest(BaseModel):
    """Request to (re)plan the blocks of a content item."""

    force: bool = Field(default=False, description="Replace existing blocks instead of returning them")


class ApiResponse(BaseModel):
    """Envelope used by every HTTP endpoint."""

    success: bool = Field(default=True)
    data: Any = Field(default=None)
    message: Optional[str] = Field(default=None)
