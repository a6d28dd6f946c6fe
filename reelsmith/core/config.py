"""Application configuration using pydantic-settings."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via environment variables or a .env file.
    See .env.example for a template.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================================================
    # Application Settings
    # ========================================================================
    app_name: str = Field(default="Reelsmith", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    log_file: Optional[str] = Field(default=None, description="Optional path to a rotating log file")
    log_json: bool = Field(default=False, description="Write the log file as JSON lines instead of text")

    # ========================================================================
    # Voice Service (ElevenLabs) Settings
    # ========================================================================
    elevenlabs_api_key: Optional[str] = Field(default=None, description="ElevenLabs API key")
    elevenlabs_base_url: str = Field(
        default="https://api.elevenlabs.io/v1", description="ElevenLabs API base URL"
    )
    elevenlabs_sts_model: str = Field(
        default="eleven_multilingual_sts_v2", description="Speech-to-speech model used for re-voicing clips"
    )
    elevenlabs_tts_model: str = Field(
        default="eleven_multilingual_v2", description="Text-to-speech model used for voice previews"
    )
    elevenlabs_output_format: str = Field(
        default="mp3_44100_128", description="Audio output format requested from ElevenLabs"
    )
    elevenlabs_timeout_seconds: float = Field(
        default=120.0, description="HTTP timeout for ElevenLabs calls in seconds"
    )
    voice_preview_text: str = Field(
        default=(
            "¡Hola! Esta es una vista previa de mi voz clonada. Puedo leer cualquier texto que me des "
            "con alta calidad y realismo. ¡Pruébame en tu próximo proyecto de video!"
        ),
        description="Text spoken in the preview generated for every cloned voice",
    )

    # ========================================================================
    # Clip Generation (Google Veo / Gemini) Settings
    # ========================================================================
    google_api_keys: list[str] = Field(
        default_factory=list,
        description="Pool of Google API keys used for clip generation (JSON list, e.g. '[\"key1\", \"key2\"]')",
    )
    google_api_key: Optional[str] = Field(
        default=None, description="Single Google API key (added to the pool when set)"
    )
    veo_model: str = Field(default="veo-3.1-generate-preview", description="Video generation model")
    script_model: str = Field(default="gemini-2.5-flash", description="Model used for script planning")
    script_language: str = Field(default="Spanish", description="Language of generated scripts and instructions")
    script_max_total_seconds: int = Field(
        default=20, description="Upper bound for the summed block durations of a planned script"
    )
    clip_aspect_ratio: str = Field(default="9:16", description="Aspect ratio requested for generated clips")
    clip_poll_interval_seconds: float = Field(
        default=10.0, description="Initial interval between clip job status polls (seconds)"
    )
    clip_poll_backoff_step_seconds: float = Field(
        default=5.0, description="Amount added to the poll interval after every poll (capped-linear backoff)"
    )
    clip_poll_max_interval_seconds: float = Field(
        default=30.0, description="Upper bound for the poll interval (seconds)"
    )
    clip_max_wait_seconds: float = Field(
        default=900.0, description="Maximum time to wait for one clip job before giving up (seconds)"
    )
    clip_max_attempts: int = Field(
        default=4, description="Maximum attempts per clip across the key pool (transient/quota errors only)"
    )
    google_key_cooldown_seconds: float = Field(
        default=60.0, description="How long a key that reported quota exhaustion is parked (seconds)"
    )

    # ========================================================================
    # Block Settings
    # ========================================================================
    allowed_block_durations: list[int] = Field(
        default=[4, 6, 8], description="Allowed block target durations in seconds"
    )
    default_block_duration: int = Field(
        default=4, description="Duration used when a block carries an unexpected target duration"
    )
    strict_block_durations: bool = Field(
        default=False,
        description="Reject unexpected block durations instead of normalizing them to the default",
    )

    # ========================================================================
    # Object Storage Settings
    # ========================================================================
    storage_backend: str = Field(default="supabase", description="Object storage backend: supabase or local")
    supabase_url: Optional[str] = Field(default=None, description="Supabase project URL")
    supabase_service_role_key: Optional[str] = Field(default=None, description="Supabase service role key")
    storage_bucket: str = Field(default="video-assets", description="Private bucket for block and render media")
    public_bucket: str = Field(default="public-assets", description="Public bucket for voice previews")
    signed_url_ttl_seconds: int = Field(default=3600, description="Signed URL lifetime in seconds")
    storage_timeout_seconds: float = Field(default=120.0, description="HTTP timeout for storage calls")
    local_object_store_path: str = Field(
        default="storage/objects", description="Root directory used by the local object store"
    )

    # ========================================================================
    # Persistence Settings
    # ========================================================================
    storage_path: str = Field(default="storage/records", description="Storage path for block/item/voice records")

    # ========================================================================
    # Media Engine (ffmpeg) Settings
    # ========================================================================
    ffmpeg_binary: str = Field(default="ffmpeg", description="ffmpeg executable")
    ffprobe_binary: str = Field(default="ffprobe", description="ffprobe executable")
    ffmpeg_timeout_seconds: float = Field(
        default=600.0, description="Maximum runtime of a single ffmpeg/ffprobe invocation (seconds)"
    )
    video_width: int = Field(default=720, description="Output frame width in pixels (9:16)")
    video_height: int = Field(default=1280, description="Output frame height in pixels (9:16)")
    video_codec: str = Field(default="libx264", description="Video codec for re-encoded output")
    pixel_format: str = Field(default="yuv420p", description="Pixel format for re-encoded output")
    audio_sample_rate: int = Field(default=44100, description="Audio sample rate used when normalizing clips")
    temp_dir: Optional[str] = Field(
        default=None, description="Parent directory for per-render workspaces (system temp dir when unset)"
    )

    # ========================================================================
    # Stitching Settings
    # ========================================================================
    stitch_trim_enabled: bool = Field(
        default=True, description="Shave a fixed lead/trail off every clip before concatenation"
    )
    stitch_trim_start_seconds: float = Field(default=0.5, description="Seconds removed from the start of each clip")
    stitch_trim_end_seconds: float = Field(default=0.5, description="Seconds removed from the end of each clip")
    stitch_normalize_frames: bool = Field(
        default=True, description="Letterbox/pillarbox every clip into the output frame before concatenation"
    )

    # ========================================================================
    # Caption Settings
    # ========================================================================
    caption_font_dir: str = Field(default="assets/fonts", description="Font directory passed to the subtitle renderer")
    caption_font_name: str = Field(default="Montserrat", description="Caption font family")
    caption_font_size: int = Field(default=72, description="Caption font size at the output resolution")
    caption_primary_colour: str = Field(default="&H00FFFFFF", description="Caption fill colour (ASS &HAABBGGRR)")
    caption_outline_colour: str = Field(default="&H00000000", description="Caption outline colour (ASS &HAABBGGRR)")
    caption_outline: int = Field(default=4, description="Caption outline width")
    caption_margin_v: int = Field(default=260, description="Caption distance from the bottom edge in pixels")

    # ========================================================================
    # Rate Limiting & Parallelism Settings
    # ========================================================================
    enable_rate_limiting: bool = Field(
        default=True,
        description="Enable rate limiting for API calls to prevent hitting limits (default: true)",
    )
    elevenlabs_rate_limit: int = Field(
        default=100, description="ElevenLabs API calls per minute (default: 100)"
    )
    google_rate_limit: int = Field(
        default=10, description="Google API calls per minute, per key (default: 10)"
    )
    max_parallel_downloads: int = Field(
        default=4, description="Maximum number of block downloads running concurrently during final assembly"
    )

    def google_key_pool(self) -> list[str]:
        """Return the de-duplicated list of configured Google API keys."""
        keys = [key.strip() for key in self.google_api_keys if key and key.strip()]
        if self.google_api_key and self.google_api_key.strip() not in keys:
            keys.append(self.google_api_key.strip())
        return keys


# Global settings instance
settings = Settings()
