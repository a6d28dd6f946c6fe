"""Voice client - ElevenLabs speech-to-speech, forced alignment, cloning and TTS."""

import json
from pathlib import Path
from typing import Any, Optional, Union

import httpx

from reelsmith.core.config import Settings
from reelsmith.core.exceptions import (
    AlignmentFailed,
    CloneFailed,
    QuotaExceeded,
    SynthesisFailed,
    TransformFailed,
    VoiceServiceError,
)
from reelsmith.models.schemas import AlignmentData, CharacterTiming
from reelsmith.utils.rate_limiter import get_elevenlabs_limiter

QUOTA_STATUS = "quota_exceeded"

# Fixed synthesis parameters (not configurable per call)
VOICE_SETTINGS = {"stability": 0.5, "similarity_boost": 0.75}


def parse_error_body(response: httpx.Response) -> tuple[Optional[str], str]:
    """
    Pull the structured status and message out of an error response.

    ElevenLabs reports errors as ``{"detail": {"status": ..., "message": ...}}``;
    validation errors use ``{"detail": "..."}`` or a list instead.

    Args:
        response: Non-2xx response

    Returns:
        Tuple of (status or None, human-readable message)
    """
    fallback = f"HTTP {response.status_code}"
    try:
        body = response.json()
    except (json.JSONDecodeError, ValueError):
        text = response.text.strip() if response.content else ""
        return None, f"{fallback}: {text[:300]}" if text else fallback

    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict):
        status = detail.get("status")
        message = detail.get("message") or status or fallback
        return status, f"{fallback}: {message}"
    if detail:
        return None, f"{fallback}: {detail}"
    return None, fallback


class VoiceClient:
    """Async client for the ElevenLabs REST API."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the voice client.

        Args:
            settings: Application settings
            logger: Logger instance
            transport: Optional httpx transport (used by tests)
        """
        self.settings = settings
        self.logger = logger
        self.base_url = settings.elevenlabs_base_url.rstrip("/")
        self.transport = transport
        self.rate_limiter = (
            get_elevenlabs_limiter(max_calls=settings.elevenlabs_rate_limit)
            if settings.enable_rate_limiting
            else None
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"xi-api-key": self.settings.elevenlabs_api_key or ""},
            timeout=self.settings.elevenlabs_timeout_seconds,
            transport=self.transport,
        )

    async def _request(self, method: str, path: str, error_cls: type, **kwargs: Any) -> httpx.Response:
        """
        Send one request and classify failures.

        Args:
            method: HTTP method
            path: Path relative to the API base URL
            error_cls: Exception raised for non-quota failures
            **kwargs: Passed through to ``httpx.AsyncClient.request``

        Returns:
            The successful response

        Raises:
            QuotaExceeded: If the body reports ``quota_exceeded``
            error_cls: For every other transport or service failure
        """
        if not self.settings.elevenlabs_api_key:
            raise error_cls("ElevenLabs API key not configured (set ELEVENLABS_API_KEY)")

        if self.rate_limiter:
            await self.rate_limiter.wait_if_needed(path.split("/")[1] if "/" in path else path)

        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise error_cls(f"Network error calling ElevenLabs {path}: {e}", {"path": path}) from e

        if response.is_success:
            return response

        status, message = parse_error_body(response)
        context = {"path": path, "status_code": response.status_code}
        if status == QUOTA_STATUS:
            raise QuotaExceeded(f"ElevenLabs quota exceeded: {message}", context)
        raise error_cls(f"ElevenLabs {path} failed: {message}", context)

    # ------------------------------------------------------------------
    # Re-voicing and alignment
    # ------------------------------------------------------------------

    async def transform_voice(self, source_audio: Union[Path, bytes], target_voice_id: str) -> bytes:
        """
        Re-voice an audio track with speech-to-speech.

        Args:
            source_audio: Audio file path or raw bytes
            target_voice_id: ElevenLabs voice id

        Returns:
            Transformed audio (MP3 bytes)

        Raises:
            QuotaExceeded: If the account quota is exhausted (caller falls back)
            TransformFailed: For any other failure
        """
        data = source_audio.read_bytes() if isinstance(source_audio, Path) else source_audio
        self.logger.info(f"Transforming {len(data)} bytes of audio to voice {target_voice_id}")

        response = await self._request(
            "POST",
            f"/speech-to-speech/{target_voice_id}",
            TransformFailed,
            files={"audio": ("audio.mp3", data, "audio/mpeg")},
            data={"model_id": self.settings.elevenlabs_sts_model},
            params={"output_format": self.settings.elevenlabs_output_format},
        )
        if not response.content:
            raise TransformFailed("ElevenLabs returned an empty audio body", {"voice_id": target_voice_id})
        return response.content

    async def align_audio(self, audio_bytes: bytes, expected_text: str) -> AlignmentData:
        """
        Align audio against its expected transcript.

        Args:
            audio_bytes: Spoken audio
            expected_text: Transcript the audio should contain

        Returns:
            Per-character timings over the transcript

        Raises:
            AlignmentFailed: On any transport, service or parsing failure
        """
        try:
            response = await self._request(
                "POST",
                "/forced-alignment",
                AlignmentFailed,
                files={"file": ("audio.mp3", audio_bytes, "audio/mpeg")},
                data={"text": expected_text},
            )
        except QuotaExceeded as e:
            raise AlignmentFailed(str(e), e.context) from e

        try:
            payload = response.json()
            characters = [
                CharacterTiming(char=c["text"], start=float(c["start"]), end=float(c["end"]))
                for c in payload.get("characters") or []
            ]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise AlignmentFailed(f"Unreadable alignment response: {e}") from e

        self.logger.debug(f"Aligned {len(characters)} characters")
        return AlignmentData(characters=characters)

    # ------------------------------------------------------------------
    # Voice creation and synthesis
    # ------------------------------------------------------------------

    async def clone_voice(self, name: str, sample_audio_paths: list[Path]) -> str:
        """
        Create an instant voice clone from audio samples.

        Args:
            name: Voice display name
            sample_audio_paths: One or more sample files

        Returns:
            The new ElevenLabs voice id

        Raises:
            CloneFailed: If no samples are given or the service rejects the clone
        """
        if not sample_audio_paths:
            raise CloneFailed("At least one audio sample is required to clone a voice")

        files = [
            ("files", (Path(p).name, Path(p).read_bytes(), "audio/mpeg"))
            for p in sample_audio_paths
        ]
        self.logger.info(f"Cloning voice '{name}' from {len(files)} samples")
        try:
            response = await self._request("POST", "/voices/add", CloneFailed, files=files, data={"name": name})
        except QuotaExceeded as e:
            raise CloneFailed(str(e), e.context) from e

        try:
            voice_id = response.json()["voice_id"]
        except (ValueError, KeyError, TypeError) as e:
            raise CloneFailed(f"Clone response carried no voice_id: {e}") from e
        self.logger.info(f"Voice cloned: {voice_id}")
        return voice_id

    async def synthesize_speech(self, text: str, voice_id: str) -> bytes:
        """
        Plain text-to-speech with the fixed synthesis parameters.

        Args:
            text: Text to speak
            voice_id: ElevenLabs voice id

        Returns:
            MP3 bytes

        Raises:
            SynthesisFailed: On any failure
        """
        if not text or not text.strip():
            raise SynthesisFailed("Text cannot be empty")
        try:
            response = await self._request(
                "POST",
                f"/text-to-speech/{voice_id}",
                SynthesisFailed,
                json={
                    "text": text,
                    "model_id": self.settings.elevenlabs_tts_model,
                    "voice_settings": VOICE_SETTINGS,
                },
                params={"output_format": self.settings.elevenlabs_output_format},
            )
        except QuotaExceeded as e:
            raise SynthesisFailed(str(e), e.context) from e
        return response.content

    # ------------------------------------------------------------------
    # Catalog helpers (voice seeding)
    # ------------------------------------------------------------------

    async def add_shared_voice(self, voice_id: str, name: str) -> None:
        """Add a library voice to the account."""
        await self._request("POST", f"/voices/add/{voice_id}", VoiceServiceError, json={"name": name})

    async def get_voice(self, voice_id: str) -> dict:
        """Voice details, including ``samples`` and ``preview_url``."""
        response = await self._request("GET", f"/voices/{voice_id}", VoiceServiceError)
        try:
            return response.json()
        except ValueError as e:
            raise VoiceServiceError(f"Unreadable voice details for {voice_id}") from e

    async def fetch_voice_sample(self, voice_id: str, sample_id: str) -> bytes:
        """Raw audio of one voice sample."""
        response = await self._request("GET", f"/voices/{voice_id}/samples/{sample_id}/audio", VoiceServiceError)
        return response.content

    async def fetch_url(self, url: str) -> bytes:
        """Download a public URL (e.g. a voice preview)."""
        try:
            async with httpx.AsyncClient(timeout=self.settings.elevenlabs_timeout_seconds, transport=self.transport) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise VoiceServiceError(f"Could not download {url}: {e}") from e
        return response.content
