"""Tests for the subtitle synthesizer."""

import pytest

from reelsmith.models.schemas import AlignmentData, CaptionStyle, CharacterTiming, WordTiming
from reelsmith.services.subtitles import (
    SubtitleSynthesizer,
    format_ass_timestamp,
    group_cues,
    group_words,
    parse_ass_events,
    parse_ass_timestamp,
    render_ass,
)


def timed(text: str, step: float = 0.1) -> AlignmentData:
    return AlignmentData(
        characters=[CharacterTiming(char=c, start=i * step, end=(i + 1) * step) for i, c in enumerate(text)]
    )


def words(*texts: str) -> list[WordTiming]:
    return [WordTiming(text=t, start=float(i), end=float(i) + 0.5) for i, t in enumerate(texts)]


def test_group_words_count_and_text():
    """W space-separated words yield W words with the original text."""
    text = "hola mundo esto es una prueba"
    result = group_words(timed(text))

    assert len(result) == 6
    assert " ".join(w.text for w in result) == text


def test_group_words_timing_uses_neighbouring_characters():
    """A word ends at its last character and the next starts after the space."""
    result = group_words(timed("ab cd"))

    assert result[0].start == pytest.approx(0.0)
    assert result[0].end == pytest.approx(0.2)
    assert result[1].start == pytest.approx(0.3)
    assert result[1].end == pytest.approx(0.5)


def test_group_words_collapses_whitespace_runs():
    """Leading, trailing and repeated whitespace never produces empty words."""
    result = group_words(timed("  uno   dos \n tres  "))

    assert [w.text for w in result] == ["uno", "dos", "tres"]


def test_group_cues_caps_at_three_words():
    """No cue holds more than three words."""
    cues = group_cues(words("a", "b", "c", "d", "e", "f", "g"))

    assert [c.word_count for c in cues] == [3, 3, 1]
    assert all(c.word_count <= 3 for c in cues)


def test_group_cues_breaks_on_sentence_end():
    """A cue closes early only after a word ending with . ! or ?"""
    cues = group_cues(words("Hi.", "are", "you", "ok?", "yes", "sure", "thing", "now!"))

    assert [c.text for c in cues] == ["HI.", "ARE YOU OK?", "YES SURE THING", "NOW!"]
    for cue in cues:
        if cue.word_count < 3 and cue is not cues[-1]:
            assert cue.text.endswith((".", "!", "?"))


def test_group_cues_span_first_start_to_last_end():
    """Cue timing covers its first word's start to its last word's end."""
    cues = group_cues(words("one", "two", "three"))

    assert cues[0].start == 0.0
    assert cues[0].end == 2.5


def test_format_ass_timestamp():
    """Timestamps are H:MM:SS.CS."""
    assert format_ass_timestamp(0) == "0:00:00.00"
    assert format_ass_timestamp(1.5) == "0:00:01.50"
    assert format_ass_timestamp(3723.456) == "1:02:03.46"
    assert parse_ass_timestamp("1:02:03.46") == pytest.approx(3723.46)


def test_render_ass_header():
    """The track declares the 720x1280 canvas and one bottom-anchored style."""
    document = render_ass([], CaptionStyle())

    assert "PlayResX: 720" in document
    assert "PlayResY: 1280" in document
    assert "Style: Default,Montserrat,72," in document
    assert "[Events]" in document


def test_render_and_parse_reproduce_cues():
    """Parsing the serialized track reproduces text and timing."""
    cues = group_cues(group_words(timed("Esto es real. Compra ahora, ya!")))
    parsed = parse_ass_events(render_ass(cues, CaptionStyle()))

    assert len(parsed) == len(cues)
    for original, restored in zip(cues, parsed):
        assert restored.text == original.text
        assert restored.start == pytest.approx(original.start, abs=0.005)
        assert restored.end == pytest.approx(original.end, abs=0.005)


def test_text_with_braces_is_escaped():
    """Override-block braces never reach the track."""
    cues = group_cues(words("{bad}"))
    document = render_ass(cues, CaptionStyle())

    assert "{" not in document.split("[Events]")[1]


def test_backslash_escapes_never_reach_the_track():
    r"""Words like \N or \h are drawn as text, not as a line break or hard space."""
    cues = group_cues(words("uno\\Ndos", "tres\\h"))
    events = parse_ass_events(render_ass(cues, CaptionStyle()))

    assert "\\" not in events[0].text
    assert events[0].text == "UNO/NDOS TRES/H"


def test_build_track_rejects_empty_alignment(settings, logger):
    """Empty alignment is a ValueError."""
    with pytest.raises(ValueError):
        SubtitleSynthesizer(settings, logger).build_track(AlignmentData())


def test_build_track_uses_configured_style(settings, logger):
    """Style values come from settings."""
    settings.caption_font_size = 64
    track = SubtitleSynthesizer(settings, logger).build_track(timed("hola"))

    assert "Style: Default,Montserrat,64," in track
    assert parse_ass_events(track)[0].text == "HOLA"
