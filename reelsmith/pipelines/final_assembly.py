"""Final assembly orchestrator - stitches every block of a content item into one video."""

from pathlib import Path
from typing import Any, Optional

from reelsmith.core.config import Settings
from reelsmith.core.exceptions import PreconditionViolation, StorageFailure
from reelsmith.models.schemas import AssemblyResult, Block, BlockStatus, ItemStatus, TrimPolicy
from reelsmith.services.media_processor import MediaProcessor
from reelsmith.storage.object_store import final_render_key
from reelsmith.storage.repository import RecordRepository
from reelsmith.utils.io_utils import safe_unlink, scoped_workspace, write_bytes
from reelsmith.utils.parallel_executor import ParallelExecutor

ASSEMBLABLE_STATUSES = (BlockStatus.COMPLETED, BlockStatus.READY)


def find_unready_blocks(blocks: list[Block]) -> list[Block]:
    """Blocks that are not finished or have no media to stitch."""
    return [b for b in blocks if b.status not in ASSEMBLABLE_STATUSES or b.usable_media_path() is None]


class FinalAssembler:
    """Builds the final video of a content item from its blocks."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        repository: RecordRepository,
        object_store: Any,
        media_processor: MediaProcessor,
        executor: Optional[ParallelExecutor] = None,
    ):
        """
        Initialize the assembler.

        Args:
            settings: Application settings
            logger: Logger instance
            repository: Record repository
            object_store: Object store holding block media and final renders
            media_processor: ffmpeg wrapper
            executor: Bounded-concurrency runner for block downloads
        """
        self.settings = settings
        self.logger = logger
        self.repository = repository
        self.object_store = object_store
        self.media = media_processor
        self.executor = executor or ParallelExecutor(settings, logger)

    def trim_policy(self) -> TrimPolicy:
        return TrimPolicy(
            enabled=self.settings.stitch_trim_enabled,
            start_seconds=self.settings.stitch_trim_start_seconds,
            end_seconds=self.settings.stitch_trim_end_seconds,
        )

    async def assemble(self, item_id: str) -> AssemblyResult:
        """
        Stitch the blocks of an item, in order, and store the result.

        Args:
            item_id: Content item to assemble

        Returns:
            AssemblyResult with the COMPLETED item and a signed URL

        Raises:
            EntityNotFound: If the item does not exist
            PreconditionViolation: If the item has no blocks or any block is not ready
            StorageFailure: If a download or the final upload returns nothing
            MediaEngineError: If probing, silence muxing or stitching fails
        """
        log = self.logger.bind(item_id=item_id)
        self.repository.get_item(item_id)
        blocks = self.repository.list_blocks(item_id)

        if not blocks:
            raise PreconditionViolation(f"Item {item_id} has no blocks to assemble", {"item_id": item_id})
        unready = find_unready_blocks(blocks)
        if unready:
            raise PreconditionViolation(
                f"{len(unready)} of {len(blocks)} blocks are not ready for assembly",
                {"item_id": item_id, "unready": [b.id for b in unready]},
            )

        log.info("=" * 60)
        log.info(f"Assembling item {item_id} from {len(blocks)} blocks")
        log.info("=" * 60)

        with scoped_workspace(f"assemble-{item_id}-", parent=self.settings.temp_dir, logger=log) as workspace:
            log.info("Step 1: Downloading block media...")
            clip_paths = await self._download_all(blocks, workspace, item_id)

            log.info("Step 2: Checking audio streams...")
            clip_paths = [await self._ensure_audio(path) for path in clip_paths]

            log.info("Step 3: Stitching...")
            output = await self.media.stitch(
                clip_paths,
                workspace / "final.mp4",
                self.trim_policy(),
                normalize=self.settings.stitch_normalize_frames,
            )

            log.info("Step 4: Uploading final video...")
            key = final_render_key(item_id)
            uploaded = await self.object_store.upload(key, output.read_bytes(), "video/mp4")
            if not uploaded:
                raise StorageFailure(f"Upload of final render {key} returned no path", {"item_id": item_id})

        item = self.repository.update_item(item_id, final_video_path=uploaded, status=ItemStatus.COMPLETED)
        signed_url = await self.object_store.signed_url(uploaded)
        log.info(f"✅ Item {item_id} assembled: {uploaded}")
        return AssemblyResult(item=item, block_ids=[b.id for b in blocks], signed_url=signed_url)

    async def _download_all(self, blocks: list[Block], workspace: Path, item_id: str) -> list[Path]:
        def make_task(index: int, block: Block):
            media_path = block.usable_media_path()
            target = workspace / f"{index:03d}_{block.id}{Path(media_path).suffix or '.mp4'}"

            async def task() -> Path:
                data = await self.object_store.download(media_path)
                if data is None:
                    raise StorageFailure(
                        f"Download of {media_path} returned nothing",
                        {"block_id": block.id},
                    )
                return write_bytes(target, data)

            return task

        results = await self.executor.execute_api_calls(
            [make_task(i, b) for i, b in enumerate(blocks)],
            task_names=[f"download block {b.order}" for b in blocks],
            item_id=item_id,
        )
        for _, error in results:
            if error is not None:
                raise error
        return [path for path, _ in results]

    async def _ensure_audio(self, path: Path) -> Path:
        info = await self.media.probe(path)
        if not info.has_video:
            raise PreconditionViolation(f"Block media {path.name} has no video stream")
        if info.has_audio:
            return path
        self.logger.info(f"{path.name} has no audio; adding a silent track")
        with_audio = await self.media.add_silent_audio(path, path.with_name(f"{path.stem}_audio{path.suffix}"))
        safe_unlink(path, self.logger)
        return with_audio
