"""Subtitle Synthesizer - turns character alignments into burned-in caption tracks."""

from typing import Any, Optional

from reelsmith.core.config import Settings
from reelsmith.models.schemas import AlignmentData, CaptionCue, CaptionStyle, WordTiming

MAX_WORDS_PER_CUE = 3
SENTENCE_ENDINGS = (".", "!", "?")

_STYLE_FORMAT = (
    "Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, "
    "Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, "
    "Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding"
)
_EVENT_FORMAT = "Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text"


def group_words(alignment: AlignmentData) -> list[WordTiming]:
    """
    Rebuild words from a flat character stream.

    Whitespace closes the current word (its end is the previous character's
    end); the next word starts at the first character after the whitespace.
    Runs of whitespace never produce empty words.

    Args:
        alignment: Per-character timings

    Returns:
        Words in transcript order
    """
    words: list[WordTiming] = []
    current: list[str] = []
    word_start = 0.0
    last_end = 0.0

    for timing in alignment.characters:
        if timing.char.isspace():
            if current:
                words.append(WordTiming(text="".join(current), start=word_start, end=last_end))
                current = []
            continue
        if not current:
            word_start = timing.start
        current.append(timing.char)
        last_end = timing.end

    if current:
        words.append(WordTiming(text="".join(current), start=word_start, end=last_end))
    return words


def group_cues(words: list[WordTiming], max_words: int = MAX_WORDS_PER_CUE) -> list[CaptionCue]:
    """
    Group words into caption cues.

    A cue closes once it holds ``max_words`` words or its last word ends a
    sentence, whichever comes first.

    Args:
        words: Timed words
        max_words: Word cap per cue

    Returns:
        Upper-cased caption cues
    """
    cues: list[CaptionCue] = []
    pending: list[WordTiming] = []

    def flush() -> None:
        if not pending:
            return
        cues.append(
            CaptionCue(
                text=" ".join(w.text for w in pending).upper(),
                start=pending[0].start,
                end=pending[-1].end,
                word_count=len(pending),
            )
        )
        pending.clear()

    for word in words:
        pending.append(word)
        if len(pending) >= max_words or word.text.endswith(SENTENCE_ENDINGS):
            flush()
    flush()
    return cues


def format_ass_timestamp(seconds: float) -> str:
    """Format seconds as ``H:MM:SS.CS`` (centisecond precision)."""
    total_cs = int(round(max(0.0, seconds) * 100))
    hours, rem = divmod(total_cs, 360000)
    minutes, rem = divmod(rem, 6000)
    secs, centis = divmod(rem, 100)
    return f"{hours}:{minutes:02d}:{secs:02d}.{centis:02d}"


def parse_ass_timestamp(value: str) -> float:
    """Inverse of :func:`format_ass_timestamp`."""
    hours, minutes, rest = value.strip().split(":")
    secs, centis = rest.split(".")
    return int(hours) * 3600 + int(minutes) * 60 + int(secs) + int(centis) / 100


def _escape_ass_text(text: str) -> str:
    # Braces open override blocks and backslashes start \N, \n, \h escapes in ASS;
    # newlines would end the event line
    return (
        text.replace("\\", "/")
        .replace("{", "(")
        .replace("}", ")")
        .replace("\r", " ")
        .replace("\n", " ")
    )


def render_ass(cues: list[CaptionCue], style: CaptionStyle) -> str:
    """
    Serialize cues into an ASS subtitle track with a single bottom-anchored style.

    Args:
        cues: Caption cues
        style: Visual style and canvas resolution

    Returns:
        ASS document text
    """
    style_line = (
        f"Style: Default,{style.font_name},{style.font_size},{style.primary_colour},&H000000FF,"
        f"{style.outline_colour},&H80000000,-1,0,0,0,100,100,0,0,1,{style.outline},0,2,"
        f"40,40,{style.margin_v},1"
    )
    lines = [
        "[Script Info]",
        "ScriptType: v4.00+",
        f"PlayResX: {style.play_res_x}",
        f"PlayResY: {style.play_res_y}",
        "WrapStyle: 0",
        "ScaledBorderAndShadow: yes",
        "",
        "[V4+ Styles]",
        f"Format: {_STYLE_FORMAT}",
        style_line,
        "",
        "[Events]",
        f"Format: {_EVENT_FORMAT}",
    ]
    for cue in cues:
        lines.append(
            f"Dialogue: 0,{format_ass_timestamp(cue.start)},{format_ass_timestamp(cue.end)},"
            f"Default,,0,0,0,,{_escape_ass_text(cue.text)}"
        )
    return "\n".join(lines) + "\n"


def parse_ass_events(document: str) -> list[CaptionCue]:
    """
    Read ``Dialogue`` events back out of an ASS document.

    Args:
        document: ASS text

    Returns:
        Cues in document order
    """
    fields: Optional[list[str]] = None
    in_events = False
    cues: list[CaptionCue] = []

    for raw_line in document.splitlines():
        line = raw_line.strip()
        if line.startswith("["):
            in_events = line.lower() == "[events]"
            continue
        if not in_events:
            continue
        if line.startswith("Format:"):
            fields = [f.strip() for f in line[len("Format:"):].split(",")]
            continue
        if line.startswith("Dialogue:") and fields:
            # Text is the last field and may itself contain commas
            values = line[len("Dialogue:"):].strip().split(",", len(fields) - 1)
            event = dict(zip(fields, values))
            text = event.get("Text", "").strip()
            cues.append(
                CaptionCue(
                    text=text,
                    start=parse_ass_timestamp(event["Start"]),
                    end=parse_ass_timestamp(event["End"]),
                    word_count=len(text.split()),
                )
            )
    return cues


class SubtitleSynthesizer:
    """Builds caption tracks for rendered clips."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the synthesizer.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.style = CaptionStyle(
            font_name=settings.caption_font_name,
            font_size=settings.caption_font_size,
            primary_colour=settings.caption_primary_colour,
            outline_colour=settings.caption_outline_colour,
            outline=settings.caption_outline,
            margin_v=settings.caption_margin_v,
            play_res_x=settings.video_width,
            play_res_y=settings.video_height,
        )

    def build_cues(self, alignment: AlignmentData) -> list[CaptionCue]:
        """Words, then cues, from an alignment."""
        if alignment.is_empty():
            raise ValueError("Alignment contains no characters; nothing to caption")
        words = group_words(alignment)
        cues = group_cues(words)
        self.logger.debug(f"Built {len(cues)} caption cues from {len(words)} words")
        return cues

    def build_track(self, alignment: AlignmentData) -> str:
        """
        Build a complete ASS track from an alignment.

        Args:
            alignment: Per-character timings (must not be empty)

        Returns:
            ASS document text

        Raises:
            ValueError: If the alignment is empty
        """
        return render_ass(self.build_cues(alignment), self.style)
