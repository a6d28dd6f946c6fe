"""Storage repository for content items, blocks and voices."""

import json
import os
import threading
import uuid
from pathlib import Path
from typing import Any, Optional

from reelsmith.core.config import Settings
from reelsmith.core.exceptions import EntityNotFound
from reelsmith.models.schemas import Block, ContentItem, Voice, utc_now


def new_id() -> str:
    return uuid.uuid4().hex


class RecordRepository:
    """
    JSON-file repository for pipeline records.

    Layout under ``settings.storage_path``::

        items/<item_id>.json     one ContentItem
        blocks/<item_id>.json    every Block of that item
        voices/<voice_id>.json   one Voice

    Writes go to a temporary file and are renamed into place, so a reader
    never sees a half-written record. Writes are serialized with a lock; the
    last writer wins per entity.
    """

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the repository.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.storage_path = Path(settings.storage_path)
        self.items_path = self.storage_path / "items"
        self.blocks_path = self.storage_path / "blocks"
        self.voices_path = self.storage_path / "voices"
        for path in (self.items_path, self.blocks_path, self.voices_path):
            path.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # File helpers
    # ------------------------------------------------------------------

    def _write_json(self, file_path: Path, payload: Any) -> None:
        tmp_path = file_path.with_name(f".{file_path.name}.{uuid.uuid4().hex}.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, file_path)

    @staticmethod
    def _read_json(file_path: Path) -> Any:
        with open(file_path, "r", encoding="utf-8") as f:
            return json.load(f)

    # ------------------------------------------------------------------
    # Content items
    # ------------------------------------------------------------------

    def create_item(self, title: str, script: str = "", organization_id: Optional[str] = None) -> ContentItem:
        """Create and persist a new content item in DRAFT."""
        item = ContentItem(id=new_id(), title=title, script=script, organization_id=organization_id)
        self.save_item(item)
        self.logger.info(f"Content item created: {item.id}")
        return item

    def save_item(self, item: ContentItem) -> ContentItem:
        with self._lock:
            self._write_json(self.items_path / f"{item.id}.json", item.model_dump(mode="json"))
        return item

    def get_item(self, item_id: str) -> ContentItem:
        """
        Load a content item.

        Raises:
            EntityNotFound: If the item does not exist
        """
        file_path = self.items_path / f"{item_id}.json"
        if not file_path.exists():
            raise EntityNotFound(f"Content item not found: {item_id}", {"item_id": item_id})
        return ContentItem(**self._read_json(file_path))

    def update_item(self, item_id: str, **changes: Any) -> ContentItem:
        """Apply field changes to an item and bump ``updated_at``."""
        with self._lock:
            item = self.get_item(item_id)
            updated = ContentItem.model_validate({**item.model_dump(), **changes, "updated_at": utc_now()})
            return self.save_item(updated)

    def list_items(self) -> list[ContentItem]:
        return [ContentItem(**self._read_json(f)) for f in sorted(self.items_path.glob("*.json"))]

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def _load_blocks(self, item_id: str) -> list[Block]:
        file_path = self.blocks_path / f"{item_id}.json"
        if not file_path.exists():
            return []
        return [Block(**raw) for raw in self._read_json(file_path)]

    def _save_blocks(self, item_id: str, blocks: list[Block]) -> None:
        self._write_json(
            self.blocks_path / f"{item_id}.json",
            [block.model_dump(mode="json") for block in sorted(blocks, key=lambda b: b.order)],
        )

    def list_blocks(self, item_id: str) -> list[Block]:
        """Blocks of an item, sorted by ``order``."""
        return sorted(self._load_blocks(item_id), key=lambda b: b.order)

    def get_block(self, block_id: str) -> Block:
        """
        Load a block by id.

        Raises:
            EntityNotFound: If no item owns a block with this id
        """
        for file_path in self.blocks_path.glob("*.json"):
            for raw in self._read_json(file_path):
                if raw.get("id") == block_id:
                    return Block(**raw)
        raise EntityNotFound(f"Block not found: {block_id}", {"block_id": block_id})

    def update_block(self, block_id: str, **changes: Any) -> Block:
        """Apply field changes to a block and bump ``updated_at``."""
        with self._lock:
            block = self.get_block(block_id)
            blocks = self._load_blocks(block.content_item_id)
            updated = Block.model_validate({**block.model_dump(), **changes, "updated_at": utc_now()})
            self._save_blocks(
                block.content_item_id,
                [updated if b.id == block_id else b for b in blocks],
            )
            return updated

    def replace_blocks(self, item_id: str, blocks: list[Block]) -> list[Block]:
        """
        Replace every block of an item in one write.

        Args:
            item_id: Owning content item
            blocks: New blocks (their ``content_item_id`` must match)

        Returns:
            The stored blocks, sorted by order
        """
        if any(b.content_item_id != item_id for b in blocks):
            raise ValueError(f"Every block must belong to item {item_id}")
        with self._lock:
            self.get_item(item_id)
            self._save_blocks(item_id, blocks)
        self.logger.info(f"Replaced blocks of item {item_id} ({len(blocks)} blocks)")
        return self.list_blocks(item_id)

    # ------------------------------------------------------------------
    # Voices
    # ------------------------------------------------------------------

    def create_voice(
        self,
        name: str,
        elevenlabs_voice_id: str,
        organization_id: Optional[str] = None,
        preview_url: str = "",
    ) -> Voice:
        voice = Voice(
            id=new_id(),
            name=name,
            elevenlabs_voice_id=elevenlabs_voice_id,
            organization_id=organization_id,
            preview_url=preview_url,
        )
        with self._lock:
            self._write_json(self.voices_path / f"{voice.id}.json", voice.model_dump(mode="json"))
        return voice

    def get_voice(self, voice_id: str) -> Voice:
        file_path = self.voices_path / f"{voice_id}.json"
        if not file_path.exists():
            raise EntityNotFound(f"Voice not found: {voice_id}", {"voice_id": voice_id})
        return Voice(**self._read_json(file_path))

    def update_voice(self, voice_id: str, **changes: Any) -> Voice:
        with self._lock:
            voice = Voice.model_validate({**self.get_voice(voice_id).model_dump(), **changes})
            self._write_json(self.voices_path / f"{voice.id}.json", voice.model_dump(mode="json"))
            return voice

    def find_voice_by_external_id(self, elevenlabs_voice_id: str) -> Optional[Voice]:
        for voice in self._all_voices():
            if voice.elevenlabs_voice_id == elevenlabs_voice_id:
                return voice
        return None

    def list_voices(self, organization_id: Optional[str] = None) -> list[Voice]:
        """Global voices plus those owned by ``organization_id``, newest first."""
        voices = [
            v for v in self._all_voices() if v.organization_id is None or v.organization_id == organization_id
        ]
        return sorted(voices, key=lambda v: v.created_at, reverse=True)

    def _all_voices(self) -> list[Voice]:
        return [Voice(**self._read_json(f)) for f in self.voices_path.glob("*.json")]
