"""Exception taxonomy for the render and assembly pipelines."""

from typing import Any, Optional


class ReelsmithError(Exception):
    """Base class for every error raised by the pipeline."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        return self.message


# ============================================================================
# Voice service errors
# ============================================================================


class VoiceServiceError(ReelsmithError):
    """Any failure reported by the voice service."""


class TransformFailed(VoiceServiceError):
    """Speech-to-speech transformation failed."""


class QuotaExceeded(VoiceServiceError):
    """The voice service reported exhausted usage quota. Callers fall back instead of retrying."""


class AlignmentFailed(VoiceServiceError):
    """Forced alignment failed."""


class CloneFailed(VoiceServiceError):
    """Voice cloning failed."""


class SynthesisFailed(VoiceServiceError):
    """Text-to-speech synthesis failed."""


# ============================================================================
# Media engine errors
# ============================================================================


class MediaEngineError(ReelsmithError):
    """Failure while running ffmpeg or ffprobe."""

    def __init__(
        self,
        message: str,
        stage: str = "ffmpeg",
        stderr: str = "",
        context: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.stage = stage
        self.stderr = stderr


class EngineUnavailable(MediaEngineError):
    """The ffmpeg binary could not be started."""


class ProbeFailed(MediaEngineError):
    """ffprobe could not read the file."""


class StitchFailed(MediaEngineError):
    """Concatenating clips failed."""


class NoInputs(MediaEngineError):
    """Stitch was requested with an empty input list."""


class MediaProcessingError(MediaEngineError):
    """Audio extraction, audio replacement or caption burn failed."""


class MediaEngineTimeout(MediaEngineError):
    """An engine invocation ran past the configured timeout and was killed."""


# ============================================================================
# Clip generation errors
# ============================================================================


class ClipGenerationError(ReelsmithError):
    """Clip generation could not produce a clip."""


class GenerationFailed(ClipGenerationError):
    """The generation job failed or was rejected."""


class GenerationEmpty(ClipGenerationError):
    """The generation job finished without producing a clip."""


class ClipGenerationTimeout(ClipGenerationError):
    """The generation job did not finish within the maximum wait."""


# ============================================================================
# Pipeline errors
# ============================================================================


class ScriptGenerationFailed(ReelsmithError):
    """The script generator returned no usable block plan."""


class PreconditionViolation(ReelsmithError):
    """The requested operation is not allowed in the entity's current state."""


class StorageFailure(ReelsmithError):
    """Object storage returned no result for an upload or download."""


class EntityNotFound(ReelsmithError):
    """A block, item or voice record does not exist."""
