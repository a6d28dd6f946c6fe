"""Clip Generator - Veo image/text-to-video jobs through a pool of Google API keys."""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

import httpx
from google import genai
from google.genai import errors, types

from reelsmith.core.config import Settings
from reelsmith.core.exceptions import ClipGenerationTimeout, GenerationEmpty, GenerationFailed
from reelsmith.utils.io_utils import image_mime_type
from reelsmith.utils.rate_limiter import RateLimiter, get_google_limiter

# Seed image types the video model accepts
SEED_IMAGE_MIME_TYPES = frozenset({"image/png", "image/jpeg", "image/webp"})


def compose_prompt(visual_prompt: str, instructions: str = "", script: str = "") -> str:
    """
    Build the generation prompt for a block.

    Args:
        visual_prompt: Scene description (the script is used when empty)
        instructions: Optional action/filming direction
        script: Optional spoken line

    Returns:
        Prompt text, one section per line
    """
    parts = [visual_prompt.strip() or script.strip()]
    if instructions and instructions.strip():
        parts.append(f"Action: {instructions.strip()}")
    if script and script.strip():
        parts.append(f'Dialogue: "{script.strip()}"')
    return "\n".join(p for p in parts if p)


def seed_image(image_bytes: Optional[bytes]) -> Optional[types.Image]:
    """Wrap seed image bytes for the video model, rejecting formats it does not take."""
    if not image_bytes:
        return None
    mime_type = image_mime_type(image_bytes)
    if mime_type not in SEED_IMAGE_MIME_TYPES:
        raise GenerationFailed(f"Unsupported seed image format: {mime_type or 'unknown'}")
    return types.Image(image_bytes=image_bytes, mime_type=mime_type)


def is_quota_error(error: Exception) -> bool:
    return isinstance(error, errors.APIError) and (
        error.code == 429 or str(getattr(error, "status", "")).upper() == "RESOURCE_EXHAUSTED"
    )


def is_transient_error(error: Exception) -> bool:
    if isinstance(error, errors.APIError):
        return (error.code or 0) >= 500
    return isinstance(error, (httpx.TransportError, asyncio.TimeoutError))


class GoogleKeyPool:
    """
    Round-robin pool of API keys with a per-key rate limit.

    Keys that report quota exhaustion are parked for a cool-down and skipped
    until it expires. When every key is parked, ``acquire`` waits for the
    first one to come back.
    """

    def __init__(
        self,
        keys: list[str],
        cooldown_seconds: float = 60.0,
        rate_limiter: Optional[RateLimiter] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.keys = list(dict.fromkeys(k for k in keys if k))
        self.cooldown_seconds = cooldown_seconds
        self.rate_limiter = rate_limiter
        self._clock = clock
        self._sleep = sleep
        self._next = 0
        self._parked_until: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self.keys)

    def label(self, key: str) -> str:
        """Log-safe name of a key."""
        return f"google-key-{self.keys.index(key) + 1}"

    def park(self, key: str) -> None:
        """Take a key out of rotation for the cool-down period."""
        self._parked_until[key] = self._clock() + self.cooldown_seconds

    def is_parked(self, key: str) -> bool:
        until = self._parked_until.get(key)
        if until is None:
            return False
        if until <= self._clock():
            del self._parked_until[key]
            return False
        return True

    async def acquire(self) -> str:
        """
        Next usable key, honoring cool-downs and the per-key rate limit.

        Raises:
            GenerationFailed: If the pool is empty
        """
        if not self.keys:
            raise GenerationFailed("No Google API keys configured (set GOOGLE_API_KEYS or GOOGLE_API_KEY)")

        while True:
            for offset in range(len(self.keys)):
                key = self.keys[(self._next + offset) % len(self.keys)]
                if not self.is_parked(key):
                    self._next = (self.keys.index(key) + 1) % len(self.keys)
                    if self.rate_limiter:
                        await self.rate_limiter.wait_if_needed(self.label(key))
                    return key
            earliest = min(self._parked_until.values())
            await self._sleep(max(0.0, earliest - self._clock()))


class ClipGenerator:
    """Submits clip generation jobs and waits for their result."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        client_factory: Optional[Callable[[str], Any]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the clip generator.

        Args:
            settings: Application settings
            logger: Logger instance
            client_factory: Builds a client for an API key (``genai.Client`` by default)
            sleep: Awaitable sleep used between polls
        """
        self.settings = settings
        self.logger = logger
        self.client_factory = client_factory or (lambda key: genai.Client(api_key=key))
        self._sleep = sleep
        self._clients: dict[str, Any] = {}
        self.pool = GoogleKeyPool(
            settings.google_key_pool(),
            cooldown_seconds=settings.google_key_cooldown_seconds,
            rate_limiter=get_google_limiter(max_calls=settings.google_rate_limit)
            if settings.enable_rate_limiting
            else None,
            sleep=sleep,
        )

    def _client_for(self, key: str) -> Any:
        if key not in self._clients:
            self._clients[key] = self.client_factory(key)
        return self._clients[key]

    async def generate_clip(self, prompt: str, image_bytes: Optional[bytes] = None, duration: int = 4) -> bytes:
        """
        Generate one clip.

        Only quota (429) and transient (5xx, transport) failures are retried,
        each time with the next key of the pool; any other rejection fails
        immediately.

        Args:
            prompt: Generation prompt
            image_bytes: Optional seed image (PNG/JPEG/WebP)
            duration: Clip length in seconds (4, 6 or 8)

        Returns:
            Clip bytes (MP4)

        Raises:
            GenerationFailed: If the seed image is unsupported, or the job failed or ran out of attempts
            GenerationEmpty: If the job finished without a clip
            ClipGenerationTimeout: If the job did not finish within the maximum wait
        """
        image = seed_image(image_bytes)
        max_attempts = max(1, self.settings.clip_max_attempts)
        last_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            key = await self.pool.acquire()
            label = self.pool.label(key)
            self.logger.info(f"Clip generation attempt {attempt}/{max_attempts} ({label}, {duration}s)")
            try:
                return await self._run_job(self._client_for(key), prompt, image, duration)
            except (errors.APIError, httpx.TransportError) as e:
                last_error = e
                if is_quota_error(e):
                    self.pool.park(key)
                    self.logger.warning(f"{label} is rate limited; parked for {self.pool.cooldown_seconds:.0f}s")
                    continue
                if is_transient_error(e):
                    self.logger.warning(f"Transient clip generation error on {label}: {e}")
                    continue
                raise GenerationFailed(f"Clip generation rejected: {e}", {"key": label}) from e

        raise GenerationFailed(
            f"Clip generation failed after {max_attempts} attempts: {last_error}",
            {"attempts": max_attempts},
        )

    async def _run_job(self, client: Any, prompt: str, image: Optional[types.Image], duration: int) -> bytes:
        operation = await client.aio.models.generate_videos(
            model=self.settings.veo_model,
            prompt=prompt,
            image=image,
            config=types.GenerateVideosConfig(
                aspect_ratio=self.settings.clip_aspect_ratio,
                duration_seconds=duration,
                number_of_videos=1,
            ),
        )

        waited = 0.0
        interval = self.settings.clip_poll_interval_seconds
        max_wait = self.settings.clip_max_wait_seconds
        while not operation.done:
            if waited >= max_wait:
                raise ClipGenerationTimeout(
                    f"Clip job did not finish within {max_wait:.0f}s",
                    {"operation": getattr(operation, "name", None)},
                )
            step = min(interval, max_wait - waited)
            self.logger.debug(f"Clip job running; next poll in {step:.0f}s ({waited:.0f}s elapsed)")
            await self._sleep(step)
            waited += step
            operation = await client.aio.operations.get(operation)
            interval = min(interval + self.settings.clip_poll_backoff_step_seconds, self.settings.clip_poll_max_interval_seconds)

        if operation.error:
            raise GenerationFailed(f"Clip job failed: {operation.error}", {"operation": getattr(operation, "name", None)})

        response = operation.response or getattr(operation, "result", None)
        generated = getattr(response, "generated_videos", None) or []
        if not generated or generated[0].video is None:
            reasons = getattr(response, "rai_media_filtered_reasons", None)
            raise GenerationEmpty(f"Clip job finished without a video{f' ({reasons})' if reasons else ''}")

        video = generated[0].video
        if video.video_bytes:
            data = video.video_bytes
        else:
            data = await client.aio.files.download(file=video)
        if not data:
            raise GenerationEmpty("Generated clip could not be downloaded")

        self.logger.info(f"Clip generated ({len(data)} bytes, {waited:.0f}s of polling)")
        return data
