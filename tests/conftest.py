"""Shared pytest fixtures and configuration."""

from io import BytesIO
from pathlib import Path
from types import SimpleNamespace
from typing import Optional

import pytest
from PIL import Image

from reelsmith.core.config import Settings
from reelsmith.core.exceptions import AlignmentFailed, QuotaExceeded
from reelsmith.core.logging_config import get_logger
from reelsmith.models.schemas import AlignmentData, Block, BlockStatus, CharacterTiming, MediaInfo
from reelsmith.storage.object_store import LocalObjectStore
from reelsmith.storage.repository import RecordRepository, new_id
from reelsmith.utils.error_handler import reset_degradation_counts


@pytest.fixture
def settings(tmp_path):
    """Create test settings instance with storage under tmp_path."""
    settings = Settings()
    settings.storage_path = str(tmp_path / "records")
    settings.local_object_store_path = str(tmp_path / "objects")
    settings.temp_dir = str(tmp_path / "work")
    settings.storage_backend = "local"
    settings.enable_rate_limiting = False
    settings.elevenlabs_api_key = "test-elevenlabs-key"
    settings.google_api_keys = ["key-a", "key-b"]
    settings.google_api_key = None
    return settings


@pytest.fixture
def logger():
    """Create test logger instance."""
    return get_logger(__name__)


@pytest.fixture(autouse=True)
def clean_degradations():
    reset_degradation_counts()
    yield
    reset_degradation_counts()


@pytest.fixture
def repository(settings, logger):
    return RecordRepository(settings, logger)


@pytest.fixture
def object_store(settings, logger):
    return LocalObjectStore(Path(settings.local_object_store_path), logger)


def alignment_for(text: str, char_seconds: float = 0.1) -> AlignmentData:
    """Evenly timed alignment of a transcript."""
    return AlignmentData(
        characters=[
            CharacterTiming(char=c, start=i * char_seconds, end=(i + 1) * char_seconds) for i, c in enumerate(text)
        ]
    )


def encode_image(image_format: str = "PNG", size: tuple[int, int] = (8, 8)) -> bytes:
    """Small solid image encoded with Pillow."""
    buffer = BytesIO()
    Image.new("RGB", size, (240, 200, 120)).save(buffer, format=image_format)
    return buffer.getvalue()


def make_blocks(item_id: str, durations: list[int], scripts: Optional[list[str]] = None) -> list[Block]:
    scripts = scripts or ["Line one." for _ in durations]
    return [
        Block(
            id=new_id(),
            content_item_id=item_id,
            order=index + 1,
            duration_target=duration,
            script=scripts[index],
            visual_prompt=f"Shot {index + 1}",
            status=BlockStatus.WAITING_INPUT,
        )
        for index, duration in enumerate(durations)
    ]


class FakeMediaProcessor:
    """Records engine calls and writes tagged files instead of running ffmpeg."""

    def __init__(self, audio: bool = True):
        self.calls: list[tuple] = []
        self.audio = audio
        self.stitched_inputs: list[list[bytes]] = []

    async def extract_audio(self, video_path: Path, output_path: Path) -> Path:
        self.calls.append(("extract_audio", video_path.name))
        output_path.write_bytes(b"AUDIO:" + video_path.read_bytes())
        return output_path

    async def replace_audio(self, video_path: Path, audio_path: Path, output_path: Path) -> Path:
        self.calls.append(("replace_audio", video_path.name, audio_path.name))
        output_path.write_bytes(video_path.read_bytes() + b"|VOICE:" + audio_path.read_bytes())
        return output_path

    async def burn_captions(self, video_path: Path, subtitle_path: Path, output_path: Path) -> Path:
        self.calls.append(("burn_captions", video_path.name))
        assert "[Events]" in subtitle_path.read_text(encoding="utf-8")
        output_path.write_bytes(video_path.read_bytes() + b"|CAPTIONED")
        return output_path

    async def probe(self, path: Path) -> MediaInfo:
        self.calls.append(("probe", path.name))
        return MediaInfo(duration=4.0, has_video=True, has_audio=self.audio)

    async def add_silent_audio(self, video_path: Path, output_path: Path) -> Path:
        self.calls.append(("add_silent_audio", video_path.name))
        output_path.write_bytes(video_path.read_bytes() + b"|SILENCE")
        return output_path

    async def stitch(self, input_paths, output_path, trim_policy=None, normalize=True) -> Path:
        self.calls.append(("stitch", [p.name for p in input_paths], trim_policy))
        self.stitched_inputs.append([p.read_bytes() for p in input_paths])
        output_path.write_bytes(b"||".join(p.read_bytes() for p in input_paths))
        return output_path


class FakeClipGenerator:
    def __init__(self, clip: bytes = b"CLIP", error: Optional[Exception] = None):
        self.clip = clip
        self.error = error
        self.requests: list[dict] = []

    async def generate_clip(self, prompt: str, image_bytes: Optional[bytes] = None, duration: int = 4) -> bytes:
        self.requests.append({"prompt": prompt, "image_bytes": image_bytes, "duration": duration})
        if self.error:
            raise self.error
        return self.clip


class FakeVoiceClient:
    def __init__(self, transform_error: Optional[Exception] = None, align_error: Optional[Exception] = None):
        self.transform_error = transform_error
        self.align_error = align_error
        self.aligned_texts: list[str] = []

    async def transform_voice(self, source_audio, target_voice_id: str) -> bytes:
        if self.transform_error:
            raise self.transform_error
        return f"VOICE-{target_voice_id}".encode()

    async def align_audio(self, audio_bytes: bytes, expected_text: str) -> AlignmentData:
        self.aligned_texts.append(expected_text)
        if self.align_error:
            raise self.align_error
        return alignment_for(expected_text)


@pytest.fixture
def media():
    return FakeMediaProcessor()


@pytest.fixture
def seed_png():
    return encode_image("PNG")


@pytest.fixture
def quota_error():
    return QuotaExceeded("ElevenLabs quota exceeded: HTTP 401: quota")


@pytest.fixture
def alignment_error():
    return AlignmentFailed("Network error calling ElevenLabs /forced-alignment: connection reset")


@pytest.fixture
def fakes():
    """Test doubles and builders shared by the orchestrator tests."""
    return SimpleNamespace(
        media=FakeMediaProcessor,
        clip_generator=FakeClipGenerator,
        voice_client=FakeVoiceClient,
        alignment_for=alignment_for,
        encode_image=encode_image,
        make_blocks=make_blocks,
    )
