"""Tests for the filter-graph builder."""

import pytest

from reelsmith.models.schemas import TrimPolicy
from reelsmith.services.filter_graph import (
    Filter,
    FilterGraph,
    FilterGraphError,
    FrameSpec,
    build_concat_graph,
    compute_keep,
    format_seconds,
    plan_segments,
)

TRIM = TrimPolicy(enabled=True, start_seconds=0.5, end_seconds=0.5)


def test_compute_keep():
    """D=5.0, S=0.5, E=0.5 keeps 4.0; D=0.6 keeps nothing."""
    assert compute_keep(5.0, 0.5, 0.5) == pytest.approx(4.0)
    assert compute_keep(0.6, 0.5, 0.5) == 0.0


def test_format_seconds():
    assert format_seconds(4.0) == "4"
    assert format_seconds(0.25) == "0.25"
    assert format_seconds(1 / 3) == "0.333"
    assert format_seconds(0.0) == "0"


def test_concat_without_trim_uses_native_streams():
    """Trim and normalization off: one concat over the input streams."""
    plan = build_concat_graph([None, None], TrimPolicy(enabled=False))

    assert plan.filter_complex == "[0:v][0:a][1:v][1:a]concat=n=2:v=1:a=1[outv][outa]"
    assert (plan.video_label, plan.audio_label) == ("outv", "outa")


def test_trimmed_graph():
    """Each clip gets its own trim chains, concatenated in order."""
    plan = build_concat_graph([5.0, 6.0], TRIM)

    assert plan.filter_complex == (
        "[0:v]trim=start=0.5:end=4.5,setpts=PTS-STARTPTS[v0];"
        "[0:a]atrim=start=0.5:end=4.5,asetpts=PTS-STARTPTS[a0];"
        "[1:v]trim=start=0.5:end=5.5,setpts=PTS-STARTPTS[v1];"
        "[1:a]atrim=start=0.5:end=5.5,asetpts=PTS-STARTPTS[a1];"
        "[v0][a0][v1][a1]concat=n=2:v=1:a=1[outv][outa]"
    )


def test_degenerate_clip_keeps_its_place():
    """A clip shorter than the trim becomes an empty segment instead of failing."""
    plan = build_concat_graph([4.0, 0.6, 4.0], TRIM)

    assert plan.segments[1].degenerate
    assert plan.segments[1].keep == 0.0
    assert "[1:v]trim=start=0.5:end=0.5," in plan.filter_complex
    assert "concat=n=3:v=1:a=1" in plan.filter_complex


def test_missing_duration_counts_as_zero():
    segments = plan_segments([None], TRIM)

    assert segments[0].duration == 0.0
    assert segments[0].degenerate


def test_normalization_precedes_trim():
    """Frame normalization and trim compose in one chain per clip."""
    plan = build_concat_graph([5.0], TRIM, FrameSpec())

    assert plan.filter_complex.startswith(
        "[0:v]scale=720:1280:force_original_aspect_ratio=decrease,"
        "pad=720:1280:(ow-iw)/2:(oh-ih)/2,setsar=1,"
        "trim=start=0.5:end=4.5,setpts=PTS-STARTPTS[v0];"
        "[0:a]aformat=sample_rates=44100:channel_layouts=stereo,"
        "atrim=start=0.5:end=4.5,asetpts=PTS-STARTPTS[a0];"
    )


def test_normalization_without_trim():
    plan = build_concat_graph([None], TrimPolicy(enabled=False), FrameSpec(width=360, height=640))

    assert "scale=360:640" in plan.filter_complex
    assert "trim" not in plan.filter_complex


def test_empty_input_is_rejected():
    with pytest.raises(FilterGraphError):
        build_concat_graph([], TRIM)


def test_graph_rejects_undefined_label():
    graph = FilterGraph()

    with pytest.raises(FilterGraphError, match="before it is defined"):
        graph.add(["v9"], [Filter("null")], ["x"])


def test_graph_rejects_duplicate_output():
    graph = FilterGraph()
    graph.add(["0:v"], [Filter("null")], ["v0"])

    with pytest.raises(FilterGraphError, match="defined twice"):
        graph.add(["1:v"], [Filter("null")], ["v0"])


def test_graph_rejects_label_consumed_twice():
    graph = FilterGraph()
    graph.add(["0:v"], [Filter("null")], ["v0"])
    graph.add(["v0"], [Filter("null")], ["v1"])

    with pytest.raises(FilterGraphError, match="consumed twice"):
        graph.add(["v0"], [Filter("null")], ["v2"])


def test_new_label_is_unique_per_prefix():
    graph = FilterGraph()

    assert [graph.new_label("v"), graph.new_label("v"), graph.new_label("a")] == ["v0", "v1", "a0"]
