"""Service wiring shared by the HTTP API and the CLI."""

from typing import Any

from reelsmith.core.config import Settings
from reelsmith.pipelines.block_renderer import BlockRenderer
from reelsmith.pipelines.final_assembly import FinalAssembler
from reelsmith.services.clip_generator import ClipGenerator
from reelsmith.services.media_processor import MediaProcessor
from reelsmith.services.script_generator import ScriptGenerator, ScriptPlanner
from reelsmith.services.subtitles import SubtitleSynthesizer
from reelsmith.services.voice_client import VoiceClient
from reelsmith.services.voice_library import VoiceLibrary
from reelsmith.storage.object_store import create_object_store
from reelsmith.storage.repository import RecordRepository
from reelsmith.utils.parallel_executor import ParallelExecutor


def get_services(settings: Settings, logger: Any) -> dict:
    """Get all service instances."""
    repository = RecordRepository(settings, logger)
    object_store = create_object_store(settings, logger)
    media_processor = MediaProcessor(settings, logger)
    voice_client = VoiceClient(settings, logger)
    clip_generator = ClipGenerator(settings, logger)

    return {
        "settings": settings,
        "repository": repository,
        "object_store": object_store,
        "media_processor": media_processor,
        "voice_client": voice_client,
        "block_renderer": BlockRenderer(
            settings,
            logger,
            repository=repository,
            object_store=object_store,
            clip_generator=clip_generator,
            voice_client=voice_client,
            media_processor=media_processor,
            subtitles=SubtitleSynthesizer(settings, logger),
        ),
        "final_assembler": FinalAssembler(
            settings,
            logger,
            repository=repository,
            object_store=object_store,
            media_processor=media_processor,
            executor=ParallelExecutor(settings, logger),
        ),
        "script_planner": ScriptPlanner(settings, logger, repository, ScriptGenerator(settings, logger)),
        "voice_library": VoiceLibrary(settings, logger, repository, voice_client, object_store),
    }
