"""Voice Library - cloned and catalog voices available for re-voicing."""

from pathlib import Path
from typing import Any, Optional

from reelsmith.core.config import Settings
from reelsmith.core.exceptions import StorageFailure, VoiceServiceError
from reelsmith.models.schemas import Voice
from reelsmith.services.voice_client import VoiceClient
from reelsmith.storage.object_store import voice_preview_key, voice_sample_key
from reelsmith.storage.repository import RecordRepository
from reelsmith.utils.error_handler import record_degradation

# Prebuilt voices added to every deployment
DEFAULT_CATALOG = [
    {"id": "5vkxOzoz40FrElmLP4P7", "name": "Gaby"},
    {"id": "7uSWXMmzGnsyxZwYFfmK", "name": "Alexander"},
]


class VoiceLibrary:
    """Creates, seeds and lists voices."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        repository: RecordRepository,
        voice_client: VoiceClient,
        object_store: Any,
    ):
        """
        Initialize the voice library.

        Args:
            settings: Application settings
            logger: Logger instance
            repository: Record repository
            voice_client: Voice service client
            object_store: Object store (previews go to the public bucket)
        """
        self.settings = settings
        self.logger = logger
        self.repository = repository
        self.voice_client = voice_client
        self.object_store = object_store

    async def _publish_audio(self, key: str, data: bytes) -> str:
        uploaded = await self.object_store.upload(key, data, "audio/mpeg", bucket=self.settings.public_bucket)
        if not uploaded:
            raise StorageFailure(f"Upload of {key} returned no path", {"path": key})
        return self.object_store.public_url(uploaded, bucket=self.settings.public_bucket)

    async def clone(self, name: str, sample_paths: list[Path], organization_id: Optional[str] = None) -> Voice:
        """
        Clone a voice from samples and persist it.

        The preview is best effort: a voice without a preview is still usable.

        Args:
            name: Display name
            sample_paths: Audio samples
            organization_id: Owning organization (None for a global voice)

        Returns:
            The persisted Voice

        Raises:
            CloneFailed: If the voice service rejects the clone
        """
        external_id = await self.voice_client.clone_voice(name, sample_paths)

        preview_url = ""
        try:
            audio = await self.voice_client.synthesize_speech(self.settings.voice_preview_text, external_id)
            preview_url = await self._publish_audio(voice_preview_key(external_id), audio)
        except (VoiceServiceError, StorageFailure) as e:
            record_degradation(self.logger, "voice_preview", external_id, e)

        voice = self.repository.create_voice(
            name=name,
            elevenlabs_voice_id=external_id,
            organization_id=organization_id,
            preview_url=preview_url,
        )
        self.logger.info(f"Voice '{name}' stored as {voice.id} (external id {external_id})")
        return voice

    async def seed(self, catalog: Optional[list[dict]] = None) -> list[Voice]:
        """
        Add catalog voices and cache one audio sample of each.

        A voice that cannot be fetched or uploaded is skipped; the rest of
        the catalog is still processed.

        Args:
            catalog: Entries with ``id`` and ``name`` (DEFAULT_CATALOG when None)

        Returns:
            The created or updated voices
        """
        seeded: list[Voice] = []
        for entry in catalog or DEFAULT_CATALOG:
            external_id, name = entry["id"], entry["name"]
            self.logger.info(f"Seeding voice {name} ({external_id})")
            try:
                voice = await self._seed_one(external_id, name)
            except (VoiceServiceError, StorageFailure) as e:
                self.logger.error(f"Failed to seed voice {name}: {e}")
                continue
            if voice is not None:
                seeded.append(voice)
        self.logger.info(f"Seeded {len(seeded)} of {len(catalog or DEFAULT_CATALOG)} voices")
        return seeded

    async def _seed_one(self, external_id: str, name: str) -> Optional[Voice]:
        try:
            await self.voice_client.add_shared_voice(external_id, name)
        except VoiceServiceError as e:
            # Usually means the voice is already in the account
            self.logger.debug(f"Could not add {name} to the account: {e}")

        details = await self.voice_client.get_voice(external_id)
        samples = details.get("samples") or []
        if samples:
            audio = await self.voice_client.fetch_voice_sample(external_id, samples[0]["sample_id"])
        elif details.get("preview_url"):
            audio = await self.voice_client.fetch_url(details["preview_url"])
        else:
            self.logger.warning(f"No samples or preview for voice {name}; skipping")
            return None

        public_url = await self._publish_audio(voice_sample_key(external_id), audio)
        existing = self.repository.find_voice_by_external_id(external_id)
        if existing:
            return self.repository.update_voice(existing.id, name=name, preview_url=public_url)
        return self.repository.create_voice(name=name, elevenlabs_voice_id=external_id, preview_url=public_url)

    def list_voices(self, organization_id: Optional[str] = None) -> list[Voice]:
        """Global voices plus the organization's own."""
        return self.repository.list_voices(organization_id)
