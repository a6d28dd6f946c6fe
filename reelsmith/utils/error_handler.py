"""Error Handler - readable error messages and auditable graceful degradation."""

from collections import Counter
from typing import Any, Optional

from reelsmith.core.exceptions import QuotaExceeded

# Process-wide count of swallowed failures, keyed by "stage:ErrorType"
_degradations: Counter = Counter()


def format_error_message(
    operation: str,
    error: Exception,
    context: Optional[dict] = None,
    suggestion: Optional[str] = None,
) -> str:
    """
    Format a readable error message.

    Args:
        operation: What operation was being performed (e.g., "Rendering block")
        error: The exception that occurred
        context: Additional context (e.g., {"block_id": "b_123", "stage": "captions"})
        suggestion: Optional suggestion for how to fix the issue

    Returns:
        Formatted error message
    """
    merged = dict(getattr(error, "context", None) or {})
    merged.update(context or {})

    context_str = ""
    if merged:
        context_str = f" ({', '.join(f'{k}={v}' for k, v in merged.items())})"

    message = f"{operation} failed{context_str}: {type(error).__name__}: {error}"
    if suggestion:
        message += f" | suggestion: {suggestion}"
    return message


def get_fallback_suggestion(service: str, error: Exception) -> Optional[str]:
    """
    Get a suggestion for how to handle a service failure.

    Args:
        service: Service name ("Voice Transform", "Captions", "Clip Generation", "Storage")
        error: The exception

    Returns:
        Suggestion string or None
    """
    error_msg = str(error).lower()

    if service == "Voice Transform":
        if isinstance(error, QuotaExceeded):
            return "Voice service quota exhausted. Clip keeps its original audio until the quota resets."
        if "api key" in error_msg or "unauthorized" in error_msg or "401" in error_msg:
            return "Check ELEVENLABS_API_KEY. Clip keeps its original audio."
        return "Voice transform failed. Clip keeps its original audio."

    elif service == "Captions":
        if "timeout" in error_msg or "network" in error_msg:
            return "Alignment service unreachable. Clip is delivered without captions."
        return "Captioning failed. Clip is delivered without captions."

    elif service == "Clip Generation":
        if "quota" in error_msg or "429" in error_msg or "resource_exhausted" in error_msg:
            return "All Google API keys are rate limited. Add keys to GOOGLE_API_KEYS or retry later."
        if "api key" in error_msg or "permission" in error_msg or "403" in error_msg:
            return "Check GOOGLE_API_KEYS; the key was rejected."
        if "timeout" in error_msg or "did not finish" in error_msg:
            return "Generation job exceeded CLIP_MAX_WAIT_SECONDS. Retry the block render."
        return "Clip generation failed. Retry the block render."

    elif service == "Storage":
        return "Object storage returned no result. Check SUPABASE_URL, the service key and bucket names."

    return None


def record_degradation(
    logger: Any,
    stage: str,
    entity_id: str,
    error: Exception,
    service: Optional[str] = None,
) -> str:
    """
    Record a swallowed failure so degraded outputs stay auditable.

    Emits one structured warning (stage, entity id and error kind are bound as
    extra fields) and bumps the in-process degradation counter.

    Args:
        logger: Logger instance
        stage: Pipeline stage that degraded (e.g. "voice_transform", "captions")
        entity_id: Block or item identifier
        error: The swallowed exception
        service: Optional service name used to look up a suggestion

    Returns:
        The counter key that was incremented
    """
    error_kind = type(error).__name__
    key = f"{stage}:{error_kind}"
    _degradations[key] += 1

    suggestion = get_fallback_suggestion(service, error) if service else None
    context = {"entity_id": entity_id, "stage": stage}
    message = format_error_message(f"Stage {stage}", error, context=context, suggestion=suggestion)

    bound = logger.bind(event="degraded_output", stage=stage, entity_id=entity_id, error_kind=error_kind)
    bound.warning(message)
    return key


def get_degradation_counts() -> dict[str, int]:
    """Snapshot of the degradation counter."""
    return dict(_degradations)


def reset_degradation_counts() -> None:
    """Clear the degradation counter (used by tests)."""
    _degradations.clear()
