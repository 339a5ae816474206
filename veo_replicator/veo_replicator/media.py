"""
Media utilities for probing videos and sampling one still per scene.
"""

from __future__ import annotations

import base64
import json
import logging
import math
import shutil
import subprocess
import threading
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from .config import BATCH_SIZE, SCENE_INTERVAL_SECONDS
from .errors import FrameExtractionError
from .types import ExtractedFrame, VideoMetadata

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


# ---------------------------------------------------------------------------
# Scene timeline helpers
# ---------------------------------------------------------------------------

def _format_clock(seconds: float) -> str:
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins:02d}:{secs:02d}"


def format_time_range(start_seconds: float, end_seconds: float) -> str:
    """Format a scene window as MM:SS-MM:SS."""
    return f"{_format_clock(start_seconds)}-{_format_clock(end_seconds)}"


def scene_time_range(scene_index: int, interval_seconds: float = SCENE_INTERVAL_SECONDS) -> str:
    return format_time_range(scene_index * interval_seconds, (scene_index + 1) * interval_seconds)


def scene_count(duration: float, interval_seconds: float = SCENE_INTERVAL_SECONDS) -> int:
    """Number of full scenes in a video: floor(duration / interval)."""
    if duration <= 0:
        return 0
    return int(math.floor(duration / interval_seconds))


def batch_count(total_scenes: int, batch_size: int = BATCH_SIZE) -> int:
    return int(math.ceil(total_scenes / batch_size)) if total_scenes > 0 else 0


def batch_window(batch_index: int, total_scenes: int, batch_size: int = BATCH_SIZE) -> Tuple[int, int]:
    """Return the half-open scene window [start, end) for a batch."""
    start = batch_index * batch_size
    return start, min(start + batch_size, total_scenes)


def encode_data_url(data: bytes, mime_type: str = "image/jpeg") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


# ---------------------------------------------------------------------------
# ffprobe / ffmpeg
# ---------------------------------------------------------------------------

def _ensure_binary_exists(binary: str) -> None:
    if shutil.which(binary) is None:
        raise FrameExtractionError(
            f"Required binary '{binary}' not found on PATH. Please install ffmpeg."
        )


def _parse_frame_rate(rate_str: Optional[str]) -> Optional[float]:
    if not rate_str:
        return None
    if "/" in rate_str:
        numerator, denominator = rate_str.split("/", 1)
        try:
            return float(numerator) / float(denominator)
        except (ValueError, ZeroDivisionError):
            return None
    try:
        return float(rate_str)
    except ValueError:
        return None


def probe_video(path: str) -> VideoMetadata:
    """
    Use ffprobe to extract duration, resolution, fps and container metadata.
    """
    src = Path(path).expanduser().resolve()
    if not src.exists():
        raise FrameExtractionError(f"Video file not found: {src}")
    _ensure_binary_exists("ffprobe")
    cmd = [
        "ffprobe",
        "-v",
        "error",
        "-print_format",
        "json",
        "-show_format",
        "-show_streams",
        str(src),
    ]
    logger.debug("Running ffprobe: %s", " ".join(cmd))
    try:
        result = subprocess.run(
            cmd, capture_output=True, text=True, check=True  # noqa: S603,S607
        )
        info = json.loads(result.stdout)
    except (subprocess.CalledProcessError, json.JSONDecodeError) as exc:
        raise FrameExtractionError(f"ffprobe failed for {src}: {exc}") from exc

    fmt = info.get("format", {})
    video_stream = next(
        (stream for stream in info.get("streams", []) if stream.get("codec_type") == "video"),
        {},
    )
    format_name = (fmt.get("format_name") or src.suffix.lstrip(".") or "unknown").split(",")[0]

    return VideoMetadata(
        duration=float(fmt.get("duration") or 0.0),
        width=int(video_stream.get("width") or 0),
        height=int(video_stream.get("height") or 0),
        fps=_parse_frame_rate(video_stream.get("r_frame_rate")) or 0.0,
        format=format_name,
        file_name=src.name,
        file_size=int(fmt.get("size") or src.stat().st_size),
    )


def _grab_frame(src: Path, timestamp: float) -> bytes:
    cmd = [
        "ffmpeg",
        "-hide_banner",
        "-loglevel", "error",
        "-ss", f"{timestamp:.3f}",  # Seek to timestamp
        "-i", str(src),
        "-frames:v", "1",           # Extract exactly 1 frame
        "-qscale:v", "2",
        "-f", "image2",
        "-vcodec", "mjpeg",
        "pipe:1",
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, check=True)  # noqa: S603,S607
    except subprocess.CalledProcessError as exc:
        raise FrameExtractionError(
            f"Failed to extract frame at {timestamp:.2f}s: {exc.stderr!r}"
        ) from exc
    if not result.stdout:
        raise FrameExtractionError(f"ffmpeg returned no image data at {timestamp:.2f}s")
    return result.stdout


def extract_frames(
    video_path: str,
    interval_seconds: float = SCENE_INTERVAL_SECONDS,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> List[ExtractedFrame]:
    """
    Sample one JPEG still at the start of every scene window.

    Covers floor(duration / interval) scenes. Progress is reported 0-100. If
    cancel_event is set mid-way the frames gathered so far are returned.
    """
    _ensure_binary_exists("ffmpeg")
    src = Path(video_path).expanduser().resolve()
    metadata = probe_video(str(src))
    _report(on_progress, 10)

    frame_count = scene_count(metadata.duration, interval_seconds)
    _report(on_progress, 20)

    frames: List[ExtractedFrame] = []
    for idx in range(frame_count):
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Frame extraction cancelled after %d/%d frames", idx, frame_count)
            return frames
        timestamp = idx * interval_seconds
        data = _grab_frame(src, timestamp)
        frames.append(
            ExtractedFrame(
                scene_index=idx,
                timestamp=timestamp,
                time_range=format_time_range(timestamp, timestamp + interval_seconds),
                image=encode_data_url(data),
            )
        )
        _report(on_progress, round(20 + ((idx + 1) / frame_count) * 70))

    _report(on_progress, 100)
    logger.debug("Extracted %d frames from %s", len(frames), src.name)
    return frames


def _report(callback: Optional[ProgressCallback], value: int) -> None:
    if callback is not None:
        callback(int(value))


__all__ = [
    "format_time_range",
    "scene_time_range",
    "scene_count",
    "batch_count",
    "batch_window",
    "encode_data_url",
    "probe_video",
    "extract_frames",
]
