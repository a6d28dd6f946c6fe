"""Block render orchestrator - input upload and the per-block render state machine."""

from pathlib import Path
from typing import Any, Optional

from reelsmith.core.config import Settings
from reelsmith.core.exceptions import (
    AlignmentFailed,
    MediaEngineError,
    PreconditionViolation,
    StorageFailure,
    VoiceServiceError,
)
from reelsmith.models.schemas import (
    Block,
    BlockRenderReport,
    BlockStatus,
    MediaType,
    normalize_duration,
)
from reelsmith.services.clip_generator import SEED_IMAGE_MIME_TYPES, ClipGenerator, compose_prompt
from reelsmith.services.media_processor import MediaProcessor
from reelsmith.services.subtitles import SubtitleSynthesizer
from reelsmith.services.voice_client import VoiceClient
from reelsmith.storage.object_store import generated_clip_key, input_media_key
from reelsmith.storage.repository import RecordRepository
from reelsmith.utils.error_handler import format_error_message, record_degradation
from reelsmith.utils.io_utils import file_extension, image_mime_type, safe_unlink, scoped_workspace, write_bytes


class BlockRenderer:
    """
    Drives one block from uploaded input to a finished clip.

    States: WAITING_INPUT -> READY -> PROCESSING -> COMPLETED | FAILED.
    Re-voicing and captioning are optional stages whose failures degrade the
    result instead of failing the block.
    """

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        repository: RecordRepository,
        object_store: Any,
        clip_generator: ClipGenerator,
        voice_client: VoiceClient,
        media_processor: MediaProcessor,
        subtitles: Optional[SubtitleSynthesizer] = None,
    ):
        """
        Initialize the renderer.

        Args:
            settings: Application settings
            logger: Logger instance
            repository: Record repository
            object_store: Object store for inputs and rendered clips
            clip_generator: Clip generation client
            voice_client: Voice service client (re-voicing and alignment)
            media_processor: ffmpeg wrapper
            subtitles: Caption track builder
        """
        self.settings = settings
        self.logger = logger
        self.repository = repository
        self.object_store = object_store
        self.clip_generator = clip_generator
        self.voice_client = voice_client
        self.media = media_processor
        self.subtitles = subtitles or SubtitleSynthesizer(settings, logger)

    async def attach_input(self, block_id: str, data: bytes, filename: str, content_type: str) -> Block:
        """
        Upload the user's media for a block and mark it READY.

        Args:
            block_id: Target block
            data: File contents
            filename: Original file name (its extension is kept)
            content_type: MIME type; ``video/*`` marks the block as a video input, anything
                else must be a PNG, JPEG or WebP seed image

        Returns:
            The updated block

        Raises:
            EntityNotFound: If the block does not exist
            PreconditionViolation: If an image input is not a supported seed format (block unchanged)
            StorageFailure: If the upload returned no path (block unchanged)
        """
        self.repository.get_block(block_id)
        content_type = content_type or "application/octet-stream"
        media_type = MediaType.VIDEO if content_type.startswith("video/") else MediaType.IMAGE
        if media_type == MediaType.IMAGE:
            content_type = self._seed_image_type(block_id, data)
        key = input_media_key(block_id, file_extension(filename))

        uploaded = await self.object_store.upload(key, data, content_type)
        if not uploaded:
            raise StorageFailure(f"Upload of block input {key} returned no path", {"block_id": block_id})

        block = self.repository.update_block(
            block_id,
            input_media_path=uploaded,
            input_media_type=media_type,
            status=BlockStatus.READY,
        )
        self.logger.info(f"Block {block_id} input attached ({media_type.value}, {len(data)} bytes)")
        return block

    async def render(self, block_id: str, voice_id: Optional[str] = None) -> BlockRenderReport:
        """
        Render a block into a finished clip.

        Args:
            block_id: Block to render
            voice_id: Optional external voice id used to re-voice the clip

        Returns:
            BlockRenderReport with the COMPLETED block and the stages that degraded

        Raises:
            EntityNotFound: If the block does not exist
            PreconditionViolation: If the block's input is a video (block unchanged)
            ClipGenerationError, StorageFailure, MediaEngineError: Block is FAILED first
        """
        block = self.repository.get_block(block_id)
        log = self.logger.bind(block_id=block_id, item_id=block.content_item_id)

        if block.is_video_input:
            raise PreconditionViolation(
                "Blocks with a video input are used as-is and cannot be rendered",
                {"block_id": block_id},
            )
        duration = normalize_duration(
            block.duration_target,
            allowed=tuple(self.settings.allowed_block_durations),
            default=self.settings.default_block_duration,
            strict=self.settings.strict_block_durations,
        )

        block = self.repository.update_block(block_id, status=BlockStatus.PROCESSING)
        log.info("=" * 60)
        log.info(f"Rendering block {block_id} (order {block.order}, {duration}s, voice={voice_id or 'original'})")
        log.info("=" * 60)

        try:
            with scoped_workspace(f"render-{block_id}-", parent=self.settings.temp_dir, logger=log) as workspace:
                report = await self._render_in(workspace, block, duration, voice_id, log)
        except Exception as e:
            self.repository.update_block(block_id, status=BlockStatus.FAILED, generated_video_path=None)
            log.error(format_error_message("Rendering block", e, {"block_id": block_id}))
            raise

        log.info(
            f"✅ Block {block_id} completed (revoiced={report.revoiced}, captioned={report.captioned}, "
            f"degraded={report.degradations or 'none'})"
        )
        return report

    async def _render_in(
        self,
        workspace: Path,
        block: Block,
        duration: int,
        voice_id: Optional[str],
        log: Any,
    ) -> BlockRenderReport:
        degradations: list[str] = []

        # Step 1: Seed image
        image_bytes = None
        if block.input_media_path:
            image_bytes = await self.object_store.download(block.input_media_path)
            if image_bytes is None:
                raise StorageFailure(
                    f"Download of block input {block.input_media_path} returned nothing",
                    {"block_id": block.id},
                )

        # Step 2: Clip generation
        log.info("Step 1: Generating clip...")
        prompt = compose_prompt(block.visual_prompt, block.instructions, block.script)
        clip_bytes = await self.clip_generator.generate_clip(prompt, image_bytes, duration)
        current = write_bytes(workspace / "clip.mp4", clip_bytes)

        # Step 3: Optional re-voicing
        revoiced = False
        if voice_id:
            log.info("Step 2: Transforming voice...")
            try:
                current = await self._revoice(workspace, current, voice_id)
                revoiced = True
            except (VoiceServiceError, MediaEngineError) as e:
                degradations.append(
                    record_degradation(log, "voice_transform", block.id, e, service="Voice Transform")
                )

        # Step 4: Optional captions
        captioned = False
        if block.script.strip():
            log.info("Step 3: Burning captions...")
            try:
                current = await self._caption(workspace, current, block.script)
                captioned = True
            except (VoiceServiceError, MediaEngineError, ValueError, OSError) as e:
                degradations.append(record_degradation(log, "captions", block.id, e, service="Captions"))

        # Step 5: Persist
        log.info("Step 4: Uploading clip...")
        key = generated_clip_key(block.id)
        uploaded = await self.object_store.upload(key, current.read_bytes(), "video/mp4")
        if not uploaded:
            raise StorageFailure(f"Upload of rendered clip {key} returned no path", {"block_id": block.id})

        completed = self.repository.update_block(
            block.id,
            generated_video_path=uploaded,
            status=BlockStatus.COMPLETED,
        )
        return BlockRenderReport(
            block=completed,
            revoiced=revoiced,
            captioned=captioned,
            degradations=degradations,
        )

    def _seed_image_type(self, block_id: str, data: bytes) -> str:
        mime_type = image_mime_type(data)
        if mime_type not in SEED_IMAGE_MIME_TYPES:
            raise PreconditionViolation(
                f"Unsupported seed image format: {mime_type or 'unknown'} (expected PNG, JPEG or WebP)",
                {"block_id": block_id},
            )
        return mime_type

    async def _revoice(self, workspace: Path, clip: Path, voice_id: str) -> Path:
        source_audio = await self.media.extract_audio(clip, workspace / "source_audio.mp3")
        transformed = await self.voice_client.transform_voice(source_audio, voice_id)
        voice_track = write_bytes(workspace / "voice.mp3", transformed)
        revoiced = await self.media.replace_audio(clip, voice_track, workspace / "revoiced.mp4")
        for superseded in (source_audio, voice_track, clip):
            safe_unlink(superseded, self.logger)
        return revoiced

    async def _caption(self, workspace: Path, clip: Path, script: str) -> Path:
        audio = await self.media.extract_audio(clip, workspace / "caption_audio.mp3")
        alignment = await self.voice_client.align_audio(audio.read_bytes(), script)
        safe_unlink(audio, self.logger)
        if alignment.is_empty():
            raise AlignmentFailed("Alignment returned no characters")

        track = workspace / "captions.ass"
        track.write_text(self.subtitles.build_track(alignment), encoding="utf-8")
        captioned = await self.media.burn_captions(clip, track, workspace / "captioned.mp4")
        for superseded in (track, clip):
            safe_unlink(superseded, self.logger)
        return captioned
