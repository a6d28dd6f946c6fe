"""Filter-Graph Builder - trim/normalize/concat graphs for ffmpeg ``-filter_complex``.

Graphs are assembled as an ordered list of nodes ({input labels, filter
chain, output labels}) and compiled to ffmpeg's textual syntax only at the
end, so labels are allocated and validated in one place.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from reelsmith.models.schemas import TrimPolicy

VIDEO_OUT = "outv"
AUDIO_OUT = "outa"

ParamValue = Union[str, int, float]


class FilterGraphError(ValueError):
    """The graph references an unknown label or defines one twice."""


def format_seconds(value: float) -> str:
    """Compact decimal seconds: 4.0 -> "4", 0.25 -> "0.25", 1/3 -> "0.333"."""
    text = f"{value:.3f}".rstrip("0").rstrip(".")
    return text if text not in ("", "-0") else "0"


def compute_keep(duration: float, start_trim: float, end_trim: float) -> float:
    """Seconds of a clip that survive trimming, clamped at zero."""
    return max(0.0, duration - start_trim - end_trim)


@dataclass
class Filter:
    """One filter with positional and/or named parameters."""

    name: str
    args: list[ParamValue] = field(default_factory=list)
    kwargs: dict[str, ParamValue] = field(default_factory=dict)

    def compile(self) -> str:
        params = [self._value(a) for a in self.args]
        params += [f"{k}={self._value(v)}" for k, v in self.kwargs.items()]
        return f"{self.name}={':'.join(params)}" if params else self.name

    @staticmethod
    def _value(value: ParamValue) -> str:
        if isinstance(value, float):
            return format_seconds(value)
        return str(value)


@dataclass
class FilterNode:
    """A linear filter chain from input labels to output labels."""

    inputs: list[str]
    filters: list[Filter]
    outputs: list[str]

    def compile(self) -> str:
        ins = "".join(f"[{label}]" for label in self.inputs)
        outs = "".join(f"[{label}]" for label in self.outputs)
        chain = ",".join(f.compile() for f in self.filters)
        return f"{ins}{chain}{outs}"


def stream_ref(input_index: int, kind: str) -> str:
    """Label referring to a native stream of an input file, e.g. ``2:v``."""
    return f"{input_index}:{kind}"


class FilterGraph:
    """Ordered collection of filter nodes with label bookkeeping."""

    def __init__(self) -> None:
        self.nodes: list[FilterNode] = []
        self._counters: dict[str, int] = {}
        self._defined: set[str] = set()
        self._consumed: set[str] = set()

    def new_label(self, prefix: str) -> str:
        """Allocate a label that is unique within this graph."""
        index = self._counters.get(prefix, 0)
        self._counters[prefix] = index + 1
        return f"{prefix}{index}"

    def add(self, inputs: list[str], filters: list[Filter], outputs: list[str]) -> FilterNode:
        """
        Append a node.

        Args:
            inputs: Labels consumed (stream refs like ``0:v`` or earlier outputs)
            filters: Filter chain applied in order
            outputs: Labels produced

        Returns:
            The node that was added

        Raises:
            FilterGraphError: On undefined, reused or duplicate labels
        """
        if not filters:
            raise FilterGraphError("A filter node needs at least one filter")
        for label in inputs:
            # Native input streams ("0:v") may feed several nodes; graph labels only one
            if ":" in label:
                continue
            if label not in self._defined:
                raise FilterGraphError(f"Label [{label}] is used before it is defined")
            if label in self._consumed:
                raise FilterGraphError(f"Label [{label}] is consumed twice")
            self._consumed.add(label)
        for label in outputs:
            if label in self._defined:
                raise FilterGraphError(f"Label [{label}] is defined twice")
            self._defined.add(label)
        node = FilterNode(inputs=list(inputs), filters=list(filters), outputs=list(outputs))
        self.nodes.append(node)
        return node

    def compile(self) -> str:
        """Render the graph in ffmpeg ``-filter_complex`` syntax."""
        return ";".join(node.compile() for node in self.nodes)


@dataclass
class FrameSpec:
    """Target frame the clips are letterboxed/pillarboxed into."""

    width: int = 720
    height: int = 1280
    sample_rate: int = 44100


@dataclass
class ClipSegment:
    """Planned contribution of one input to the concatenation."""

    index: int
    duration: Optional[float] = None
    start: float = 0.0
    keep: Optional[float] = None

    @property
    def degenerate(self) -> bool:
        return self.keep is not None and self.keep <= 0.0


@dataclass
class ConcatPlan:
    """Compiled graph plus the labels to map into the output file."""

    graph: FilterGraph
    segments: list[ClipSegment]
    video_label: str = VIDEO_OUT
    audio_label: str = AUDIO_OUT

    @property
    def filter_complex(self) -> str:
        return self.graph.compile()


def plan_segments(durations: list[Optional[float]], trim: TrimPolicy) -> list[ClipSegment]:
    """
    Compute the trim window of every clip.

    Args:
        durations: Probed duration per clip (None when trim is disabled)
        trim: Global trim policy

    Returns:
        One segment per clip, in input order
    """
    segments = []
    for index, duration in enumerate(durations):
        if not trim.enabled:
            segments.append(ClipSegment(index=index, duration=duration))
            continue
        total = duration or 0.0
        segments.append(
            ClipSegment(
                index=index,
                duration=total,
                start=trim.start_seconds,
                keep=compute_keep(total, trim.start_seconds, trim.end_seconds),
            )
        )
    return segments


def build_concat_graph(
    durations: list[Optional[float]],
    trim: TrimPolicy,
    frame: Optional[FrameSpec] = None,
) -> ConcatPlan:
    """
    Build the trim + normalize + concat graph for N inputs.

    Every input must carry one video and one audio stream. With trim and
    normalization both off the graph is a single concat over the native
    streams; otherwise each clip gets its own video and audio chain first.
    A clip whose keep window is zero keeps its place as an empty segment
    (``start == end``).

    Args:
        durations: Duration per input in seconds (ignored when trim is disabled)
        trim: Global trim policy
        frame: Frame/audio normalization target, or None to skip it

    Returns:
        ConcatPlan with output labels ``outv``/``outa``
    """
    if not durations:
        raise FilterGraphError("Cannot build a concat graph without inputs")

    graph = FilterGraph()
    segments = plan_segments(durations, trim)
    concat_inputs: list[str] = []

    for segment in segments:
        video_filters: list[Filter] = []
        audio_filters: list[Filter] = []

        if frame is not None:
            video_filters += [
                Filter("scale", [frame.width, frame.height], {"force_original_aspect_ratio": "decrease"}),
                Filter("pad", [frame.width, frame.height, "(ow-iw)/2", "(oh-ih)/2"]),
                Filter("setsar", [1]),
            ]
            audio_filters.append(
                Filter("aformat", kwargs={"sample_rates": frame.sample_rate, "channel_layouts": "stereo"})
            )

        if trim.enabled:
            window = {"start": float(segment.start), "end": float(segment.start + (segment.keep or 0.0))}
            video_filters += [Filter("trim", kwargs=window), Filter("setpts", ["PTS-STARTPTS"])]
            audio_filters += [Filter("atrim", kwargs=window), Filter("asetpts", ["PTS-STARTPTS"])]

        video_label = stream_ref(segment.index, "v")
        audio_label = stream_ref(segment.index, "a")
        if video_filters:
            out = graph.new_label("v")
            graph.add([video_label], video_filters, [out])
            video_label = out
        if audio_filters:
            out = graph.new_label("a")
            graph.add([audio_label], audio_filters, [out])
            audio_label = out
        concat_inputs += [video_label, audio_label]

    graph.add(
        concat_inputs,
        [Filter("concat", kwargs={"n": len(segments), "v": 1, "a": 1})],
        [VIDEO_OUT, AUDIO_OUT],
    )
    return ConcatPlan(graph=graph, segments=segments)
