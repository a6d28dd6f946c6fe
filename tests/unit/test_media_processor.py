"""Tests for the ffmpeg/ffprobe process runner."""

import asyncio
import json
from pathlib import Path
from unittest.mock import patch

import pytest

from reelsmith.core.exceptions import (
    EngineUnavailable,
    MediaEngineTimeout,
    MediaProcessingError,
    NoInputs,
    ProbeFailed,
    StitchFailed,
)
from reelsmith.models.schemas import TrimPolicy
from reelsmith.services.media_processor import MediaProcessor, escape_filter_value


class FakeProcess:
    def __init__(self, returncode: int = 0, stdout: bytes = b"", stderr: bytes = b"", hang: bool = False):
        self.returncode = returncode
        self._stdout = stdout
        self._stderr = stderr
        self._hang = hang
        self.killed = False

    async def communicate(self):
        if self._hang:
            await asyncio.sleep(3600)
        return self._stdout, self._stderr

    def kill(self):
        self.killed = True

    async def wait(self):
        return self.returncode


class FakeExec:
    """Replacement for asyncio.create_subprocess_exec that scripts responses by binary."""

    def __init__(self, responses: dict):
        self.responses = responses
        self.calls: list[list[str]] = []

    async def __call__(self, *args, **kwargs):
        self.calls.append(list(args))
        response = self.responses[Path(args[0]).name]
        if isinstance(response, Exception):
            raise response
        return response() if callable(response) else response


def probe_output(duration="5.0", audio=True) -> bytes:
    streams = [{"codec_type": "video", "width": 720, "height": 1280}]
    if audio:
        streams.append({"codec_type": "audio"})
    payload = {"streams": streams, "format": {} if duration is None else {"duration": duration}}
    return json.dumps(payload).encode()


@pytest.fixture
def processor(settings, logger):
    return MediaProcessor(settings, logger)


def run(coro):
    return asyncio.run(coro)


def test_probe_reads_duration_and_streams(processor):
    fake = FakeExec({"ffprobe": FakeProcess(stdout=probe_output("4.25"))})
    with patch("asyncio.create_subprocess_exec", fake):
        info = run(processor.probe(Path("clip.mp4")))

    assert info.duration == pytest.approx(4.25)
    assert info.has_video and info.has_audio
    assert (info.width, info.height) == (720, 1280)
    assert fake.calls[0][-1] == "clip.mp4"


def test_probe_missing_duration_is_zero(processor):
    fake = FakeExec({"ffprobe": FakeProcess(stdout=probe_output(None, audio=False))})
    with patch("asyncio.create_subprocess_exec", fake):
        info = run(processor.probe(Path("clip.mp4")))

    assert info.duration == 0.0
    assert not info.has_audio


def test_probe_failure(processor):
    fake = FakeExec({"ffprobe": FakeProcess(returncode=1, stderr=b"moov atom not found")})
    with patch("asyncio.create_subprocess_exec", fake):
        with pytest.raises(ProbeFailed) as exc_info:
            run(processor.probe(Path("broken.mp4")))

    assert "moov atom" in exc_info.value.stderr


def test_probe_unreadable_output(processor):
    fake = FakeExec({"ffprobe": FakeProcess(stdout=b"not json")})
    with patch("asyncio.create_subprocess_exec", fake):
        with pytest.raises(ProbeFailed):
            run(processor.probe(Path("clip.mp4")))


def test_stitch_without_inputs_never_runs_engine(processor, tmp_path):
    fake = FakeExec({})
    with patch("asyncio.create_subprocess_exec", fake):
        with pytest.raises(NoInputs):
            run(processor.stitch([], tmp_path / "out.mp4", TrimPolicy(enabled=True)))

    assert fake.calls == []


def test_stitch_builds_trimmed_command(processor, tmp_path):
    fake = FakeExec(
        {
            "ffprobe": lambda: FakeProcess(stdout=probe_output("5.0")),
            "ffmpeg": lambda: FakeProcess(),
        }
    )
    inputs = [tmp_path / "a.mp4", tmp_path / "b.mp4"]
    with patch("asyncio.create_subprocess_exec", fake):
        run(processor.stitch(inputs, tmp_path / "out.mp4", TrimPolicy(enabled=True, start_seconds=0.5, end_seconds=0.5)))

    ffmpeg_call = fake.calls[-1]
    assert ffmpeg_call[0] == "ffmpeg"
    assert ffmpeg_call.count("-i") == 2
    graph = ffmpeg_call[ffmpeg_call.index("-filter_complex") + 1]
    assert "trim=start=0.5:end=4.5" in graph
    assert graph.endswith("concat=n=2:v=1:a=1[outv][outa]")
    assert ffmpeg_call[ffmpeg_call.index("-c:v") + 1] == "libx264"
    assert ffmpeg_call[ffmpeg_call.index("-pix_fmt") + 1] == "yuv420p"
    maps = [ffmpeg_call[i + 1] for i, a in enumerate(ffmpeg_call) if a == "-map"]
    assert maps == ["[outv]", "[outa]"]


def test_stitch_without_trim_skips_probing(processor, tmp_path):
    fake = FakeExec({"ffmpeg": lambda: FakeProcess()})
    with patch("asyncio.create_subprocess_exec", fake):
        run(processor.stitch([tmp_path / "a.mp4"], tmp_path / "out.mp4", TrimPolicy(enabled=False), normalize=False))

    assert [c[0] for c in fake.calls] == ["ffmpeg"]
    graph = fake.calls[0][fake.calls[0].index("-filter_complex") + 1]
    assert graph == "[0:v][0:a]concat=n=1:v=1:a=1[outv][outa]"


def test_stitch_failure_carries_stderr(processor, tmp_path):
    fake = FakeExec({"ffmpeg": FakeProcess(returncode=1, stderr=b"Invalid data found")})
    with patch("asyncio.create_subprocess_exec", fake):
        with pytest.raises(StitchFailed) as exc_info:
            run(processor.stitch([tmp_path / "a.mp4"], tmp_path / "out.mp4"))

    assert "Invalid data found" in exc_info.value.stderr


def test_replace_audio_command(processor, tmp_path):
    fake = FakeExec({"ffmpeg": FakeProcess()})
    with patch("asyncio.create_subprocess_exec", fake):
        run(processor.replace_audio(tmp_path / "v.mp4", tmp_path / "a.mp3", tmp_path / "o.mp4"))

    args = fake.calls[0]
    pairs = list(zip(args, args[1:]))
    for expected in (("-map", "0:v:0"), ("-map", "1:a:0"), ("-c:v", "copy"), ("-c:a", "aac")):
        assert expected in pairs
    assert "-shortest" in args


def test_extract_audio_uses_mp3(processor, tmp_path):
    fake = FakeExec({"ffmpeg": FakeProcess()})
    with patch("asyncio.create_subprocess_exec", fake):
        run(processor.extract_audio(tmp_path / "v.mp4", tmp_path / "a.mp3"))

    args = fake.calls[0]
    assert "-vn" in args
    assert args[args.index("-c:a") + 1] == "libmp3lame"


def test_burn_captions_filter(processor, tmp_path):
    fake = FakeExec({"ffmpeg": FakeProcess()})
    with patch("asyncio.create_subprocess_exec", fake):
        run(processor.burn_captions(tmp_path / "v.mp4", Path("/tmp/caps.ass"), tmp_path / "o.mp4"))

    args = fake.calls[0]
    vf = args[args.index("-vf") + 1]
    assert vf.startswith("subtitles=filename='/tmp/caps.ass':fontsdir=")
    assert args[args.index("-c:a") + 1] == "copy"


def test_mutating_failure_is_media_processing_error(processor, tmp_path):
    fake = FakeExec({"ffmpeg": FakeProcess(returncode=1, stderr=b"boom")})
    with patch("asyncio.create_subprocess_exec", fake):
        with pytest.raises(MediaProcessingError) as exc_info:
            run(processor.extract_audio(tmp_path / "v.mp4", tmp_path / "a.mp3"))

    assert exc_info.value.stage == "extract_audio"


def test_timeout_kills_process(processor, tmp_path):
    processor.timeout = 0.01
    process = FakeProcess(hang=True)
    fake = FakeExec({"ffmpeg": process})
    with patch("asyncio.create_subprocess_exec", fake):
        with pytest.raises(MediaEngineTimeout):
            run(processor.extract_audio(tmp_path / "v.mp4", tmp_path / "a.mp3"))

    assert process.killed


def test_missing_binary(processor, tmp_path):
    fake = FakeExec({"ffmpeg": FileNotFoundError("ffmpeg")})
    with patch("asyncio.create_subprocess_exec", fake):
        with pytest.raises(EngineUnavailable):
            run(processor.extract_audio(tmp_path / "v.mp4", tmp_path / "a.mp3"))


def test_check_availability_never_raises(processor):
    with patch("asyncio.create_subprocess_exec", FakeExec({"ffmpeg": FileNotFoundError("ffmpeg")})):
        assert run(processor.check_availability()) is False

    with patch("asyncio.create_subprocess_exec", FakeExec({"ffmpeg": FakeProcess(stdout=b"ffmpeg version 6.1")})):
        assert run(processor.check_availability()) is True


def test_escape_filter_value():
    assert escape_filter_value("C:\\fonts") == "'C\\:\\\\fonts'"
    assert escape_filter_value("it's") == "'it\\'s'"
