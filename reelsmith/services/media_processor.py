"""Media Processor - runs ffmpeg/ffprobe for the render and assembly pipelines."""

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

from reelsmith.core.config import Settings
from reelsmith.core.exceptions import (
    EngineUnavailable,
    MediaEngineTimeout,
    MediaProcessingError,
    NoInputs,
    ProbeFailed,
    StitchFailed,
)
from reelsmith.models.schemas import MediaInfo, TrimPolicy
from reelsmith.services.filter_graph import ConcatPlan, FrameSpec, build_concat_graph


def escape_filter_value(value: str) -> str:
    """Escape a path for use as a filter option value inside ``-vf``."""
    escaped = value.replace("\\", "\\\\").replace(":", "\\:").replace("'", "\\'")
    return f"'{escaped}'"


class MediaProcessor:
    """Thin async wrapper around the ffmpeg and ffprobe binaries."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize the media processor.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.ffmpeg = settings.ffmpeg_binary
        self.ffprobe = settings.ffprobe_binary
        self.timeout = settings.ffmpeg_timeout_seconds
        self.frame = FrameSpec(
            width=settings.video_width,
            height=settings.video_height,
            sample_rate=settings.audio_sample_rate,
        )

    async def _run(
        self,
        args: list[str],
        stage: str,
        error_cls: type = MediaProcessingError,
        timeout: Optional[float] = None,
    ) -> tuple[str, str]:
        """
        Run one engine invocation.

        Args:
            args: Full argument vector (binary first)
            stage: Stage name for errors and logs
            error_cls: Exception raised on non-zero exit
            timeout: Override for the configured timeout

        Returns:
            Tuple of (stdout, stderr)

        Raises:
            EngineUnavailable: If the binary cannot be started
            MediaEngineTimeout: If the process runs past the timeout
            error_cls: If the process exits non-zero
        """
        self.logger.debug(f"[{stage}] {' '.join(args)}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise EngineUnavailable(f"Cannot start {args[0]}: {e}", stage=stage) from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout or self.timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise MediaEngineTimeout(
                f"{stage} did not finish within {timeout or self.timeout:.0f}s", stage=stage
            ) from e

        stdout_dec = stdout.decode("utf-8", errors="ignore") if stdout else ""
        stderr_dec = stderr.decode("utf-8", errors="ignore") if stderr else ""
        if proc.returncode != 0:
            self.logger.error(f"[{stage}] ffmpeg exited with code {proc.returncode}: {stderr_dec[-800:]}")
            raise error_cls(
                f"{stage} failed with exit code {proc.returncode}: {stderr_dec[-400:]}",
                stage=stage,
                stderr=stderr_dec,
            )
        return stdout_dec, stderr_dec

    # ------------------------------------------------------------------
    # Probing
    # ------------------------------------------------------------------

    async def probe(self, path: Path) -> MediaInfo:
        """
        Read duration and stream layout of a media file.

        Args:
            path: File to probe

        Returns:
            MediaInfo (duration 0.0 when the container reports none)

        Raises:
            ProbeFailed: If ffprobe fails or returns unreadable output
        """
        args = [
            self.ffprobe,
            "-v", "error",
            "-show_entries", "format=duration:stream=codec_type,width,height",
            "-of", "json",
            str(path),
        ]
        try:
            stdout, _ = await self._run(args, stage="probe", error_cls=ProbeFailed)
        except ProbeFailed:
            raise
        except MediaProcessingError as e:
            raise ProbeFailed(str(e), stage="probe", stderr=e.stderr) from e

        try:
            payload = json.loads(stdout or "{}")
        except json.JSONDecodeError as e:
            raise ProbeFailed(f"Unreadable ffprobe output for {path}", stage="probe", stderr=stdout) from e

        info = MediaInfo()
        raw_duration = (payload.get("format") or {}).get("duration")
        try:
            info.duration = float(raw_duration) if raw_duration not in (None, "N/A") else 0.0
        except (TypeError, ValueError):
            info.duration = 0.0

        for stream in payload.get("streams") or []:
            codec_type = stream.get("codec_type")
            if codec_type == "video" and not info.has_video:
                info.has_video = True
                info.width = stream.get("width")
                info.height = stream.get("height")
            elif codec_type == "audio":
                info.has_audio = True
        return info

    async def probe_duration(self, path: Path) -> float:
        """Duration of a media file in seconds (0.0 when unknown)."""
        return (await self.probe(path)).duration

    # ------------------------------------------------------------------
    # Mutating operations
    # ------------------------------------------------------------------

    async def build_stitch_plan(
        self,
        input_paths: list[Path],
        trim_policy: TrimPolicy,
        normalize: bool = True,
    ) -> ConcatPlan:
        """
        Probe inputs (when trimming) and build the concat graph.

        Args:
            input_paths: Clips in playback order
            trim_policy: Global trim policy
            normalize: Letterbox every clip into the output frame

        Returns:
            ConcatPlan ready to execute
        """
        if trim_policy.enabled:
            durations: list[Optional[float]] = [await self.probe_duration(p) for p in input_paths]
        else:
            durations = [None] * len(input_paths)

        plan = build_concat_graph(durations, trim_policy, self.frame if normalize else None)
        for segment in plan.segments:
            if segment.degenerate:
                self.logger.warning(
                    f"Clip {input_paths[segment.index].name} ({segment.duration:.2f}s) is shorter than the "
                    f"configured trim ({trim_policy.start_seconds}s + {trim_policy.end_seconds}s); "
                    f"it becomes an empty segment"
                )
        return plan

    async def stitch(
        self,
        input_paths: list[Path],
        output_path: Path,
        trim_policy: Optional[TrimPolicy] = None,
        normalize: bool = True,
    ) -> Path:
        """
        Concatenate clips into one file, in order.

        Args:
            input_paths: Clips in playback order; each must have video and audio
            output_path: Destination file
            trim_policy: Global trim policy (disabled when None)
            normalize: Letterbox every clip into the output frame

        Returns:
            output_path

        Raises:
            NoInputs: If input_paths is empty (checked before running ffmpeg)
            ProbeFailed: If an input cannot be probed while trimming
            StitchFailed: If ffmpeg exits non-zero (carries stderr)
        """
        if not input_paths:
            raise NoInputs("No clips to stitch", stage="stitch")

        trim_policy = trim_policy or TrimPolicy()
        plan = await self.build_stitch_plan(input_paths, trim_policy, normalize=normalize)

        args = [self.ffmpeg, "-y", "-hide_banner"]
        for path in input_paths:
            args += ["-i", str(path)]
        args += [
            "-filter_complex", plan.filter_complex,
            "-map", f"[{plan.video_label}]",
            "-map", f"[{plan.audio_label}]",
            "-c:v", self.settings.video_codec,
            "-pix_fmt", self.settings.pixel_format,
            "-c:a", "aac",
            "-movflags", "+faststart",
            str(output_path),
        ]

        self.logger.info(
            f"Stitching {len(input_paths)} clips (trim={'on' if trim_policy.enabled else 'off'}, "
            f"normalize={'on' if normalize else 'off'}) -> {output_path.name}"
        )
        await self._run(args, stage="stitch", error_cls=StitchFailed)
        return output_path

    async def extract_audio(self, video_path: Path, output_path: Path) -> Path:
        """Strip the video stream and re-encode the audio to MP3."""
        args = [
            self.ffmpeg, "-y", "-hide_banner",
            "-i", str(video_path),
            "-vn",
            "-c:a", "libmp3lame",
            "-q:a", "2",
            str(output_path),
        ]
        await self._run(args, stage="extract_audio")
        return output_path

    async def replace_audio(self, video_path: Path, audio_path: Path, output_path: Path) -> Path:
        """Copy the video stream, re-encode the new audio, stop at the shorter input."""
        args = [
            self.ffmpeg, "-y", "-hide_banner",
            "-i", str(video_path),
            "-i", str(audio_path),
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-c:v", "copy",
            "-c:a", "aac",
            "-shortest",
            str(output_path),
        ]
        await self._run(args, stage="replace_audio")
        return output_path

    async def burn_captions(self, video_path: Path, subtitle_path: Path, output_path: Path) -> Path:
        """Render the subtitle track onto the video, copying the audio stream."""
        subtitles_filter = (
            f"subtitles=filename={escape_filter_value(str(subtitle_path))}"
            f":fontsdir={escape_filter_value(str(Path(self.settings.caption_font_dir)))}"
        )
        args = [
            self.ffmpeg, "-y", "-hide_banner",
            "-i", str(video_path),
            "-vf", subtitles_filter,
            "-c:v", self.settings.video_codec,
            "-pix_fmt", self.settings.pixel_format,
            "-c:a", "copy",
            str(output_path),
        ]
        await self._run(args, stage="burn_captions")
        return output_path

    async def add_silent_audio(self, video_path: Path, output_path: Path) -> Path:
        """Mux a silent stereo track under a video that has no audio."""
        args = [
            self.ffmpeg, "-y", "-hide_banner",
            "-i", str(video_path),
            "-f", "lavfi",
            "-i", f"anullsrc=channel_layout=stereo:sample_rate={self.settings.audio_sample_rate}",
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-c:v", "copy",
            "-c:a", "aac",
            "-shortest",
            str(output_path),
        ]
        await self._run(args, stage="add_silent_audio")
        return output_path

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    async def check_availability(self) -> bool:
        """
        Verify that ffmpeg is installed and responds.

        Never raises: an unavailable engine is logged as a warning so the
        process can still serve non-video requests.

        Returns:
            True if ``ffmpeg -version`` succeeded
        """
        try:
            stdout, _ = await self._run([self.ffmpeg, "-version"], stage="check_availability", timeout=10)
        except Exception as e:
            self.logger.warning(f"ffmpeg is not available ({e}); video endpoints will fail until it is installed")
            return False

        version_line = stdout.splitlines()[0] if stdout else "unknown version"
        self.logger.info(f"ffmpeg available: {version_line}")
        return True
