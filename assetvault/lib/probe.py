"""Audio/video inspection and derivation via ffprobe and ffmpeg.

Both tools only work on files, so inputs are spilled to scoped temp files.
Each invocation is bounded by a timeout; a hung process is killed and
reported as ``GeneratorTimeout``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from fractions import Fraction
from pathlib import Path
from typing import Any

from assetvault.lib.exceptions import GeneratorTimeout, NoStreamFound, ToolError
from assetvault.lib.tempfiles import temp_media_file

logger = logging.getLogger(__name__)

FFPROBE = "ffprobe"
FFMPEG = "ffmpeg"

DEFAULT_TIMEOUT = 120.0

VIDEO_THUMBNAIL_AT = 1.0
VIDEO_THUMBNAIL_SIZE = (640, 360)
PREVIEW_SIZE = (1280, 720)
PREVIEW_DURATION = 5.0


@dataclass
class VideoMetadata:
    width: int
    height: int
    duration: float
    format: str
    codec: str | None = None
    frame_rate: float | None = None
    bit_rate: int | None = None
    audio_codec: str | None = None
    audio_bit_rate: int | None = None


@dataclass
class AudioMetadata:
    duration: float
    format: str
    codec: str | None = None
    bit_rate: int | None = None
    sample_rate: int | None = None
    channels: int | None = None


async def run_tool(cmd: list[str], timeout: float = DEFAULT_TIMEOUT) -> bytes:
    """Run an external tool and return its stdout.

    Raises ``GeneratorTimeout`` when *timeout* elapses and ``ToolError`` on a
    non-zero exit.
    """
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise GeneratorTimeout(f"{cmd[0]} exceeded {timeout:g}s") from None
    except asyncio.CancelledError:
        proc.kill()
        await proc.wait()
        raise

    if proc.returncode != 0:
        raise ToolError(cmd[0], proc.returncode, stderr.decode(errors="replace"))
    return stdout


async def probe(path: Path, timeout: float = DEFAULT_TIMEOUT) -> dict[str, Any]:
    """Return ffprobe's JSON description of *path*."""
    cmd = [
        FFPROBE,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(path),
    ]
    output = await run_tool(cmd, timeout)
    return json.loads(output or b"{}")


def _find_stream(probe_data: dict[str, Any], codec_type: str) -> dict[str, Any] | None:
    for stream in probe_data.get("streams", []):
        if stream.get("codec_type") == codec_type:
            return stream
    return None


def _int(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _frame_rate(value: str | None) -> float | None:
    if not value:
        return None
    try:
        rate = Fraction(value)
    except (ValueError, ZeroDivisionError):
        return None
    return round(float(rate), 3) if rate else None


def parse_video_metadata(probe_data: dict[str, Any]) -> VideoMetadata:
    video = _find_stream(probe_data, "video")
    if video is None:
        raise NoStreamFound("video")
    audio = _find_stream(probe_data, "audio") or {}
    fmt = probe_data.get("format", {})

    return VideoMetadata(
        width=_int(video.get("width")) or 0,
        height=_int(video.get("height")) or 0,
        duration=float(fmt.get("duration") or video.get("duration") or 0),
        format=fmt.get("format_name", "unknown"),
        codec=video.get("codec_name"),
        frame_rate=_frame_rate(video.get("r_frame_rate")),
        bit_rate=_int(fmt.get("bit_rate")),
        audio_codec=audio.get("codec_name"),
        audio_bit_rate=_int(audio.get("bit_rate")),
    )


def parse_audio_metadata(probe_data: dict[str, Any]) -> AudioMetadata:
    audio = _find_stream(probe_data, "audio")
    if audio is None:
        raise NoStreamFound("audio")
    fmt = probe_data.get("format", {})

    return AudioMetadata(
        duration=float(fmt.get("duration") or audio.get("duration") or 0),
        format=fmt.get("format_name", "unknown"),
        codec=audio.get("codec_name"),
        bit_rate=_int(audio.get("bit_rate")) or _int(fmt.get("bit_rate")),
        sample_rate=_int(audio.get("sample_rate")),
        channels=_int(audio.get("channels")),
    )


async def extract_video_metadata(data: bytes, timeout: float = DEFAULT_TIMEOUT) -> VideoMetadata:
    async with temp_media_file(".bin", data) as source:
        return parse_video_metadata(await probe(source, timeout))


async def extract_audio_metadata(data: bytes, timeout: float = DEFAULT_TIMEOUT) -> AudioMetadata:
    async with temp_media_file(".bin", data) as source:
        return parse_audio_metadata(await probe(source, timeout))


def _fit_filter(width: int, height: int, pad: bool = False) -> str:
    scale = f"scale={width}:{height}:force_original_aspect_ratio=decrease"
    if pad:
        # libx264 requires even dimensions
        return f"{scale},pad=ceil(iw/2)*2:ceil(ih/2)*2"
    return scale


async def video_thumbnail(
    data: bytes,
    at: float = VIDEO_THUMBNAIL_AT,
    size: tuple[int, int] = VIDEO_THUMBNAIL_SIZE,
    timeout: float = DEFAULT_TIMEOUT,
) -> bytes:
    """Capture one JPEG frame at *at* seconds, fitted inside *size*."""
    async with temp_media_file(".bin", data) as source, temp_media_file(".jpg") as target:
        cmd = [
            FFMPEG, "-y",
            "-ss", f"{at:g}",
            "-i", str(source),
            "-frames:v", "1",
            "-vf", _fit_filter(*size),
            "-q:v", "3",
            str(target),
        ]
        await run_tool(cmd, timeout)
        frame = await asyncio.to_thread(target.read_bytes)
    if not frame:
        raise NoStreamFound("video")
    return frame


async def video_preview(
    data: bytes,
    start: float = 0.0,
    duration: float = PREVIEW_DURATION,
    size: tuple[int, int] = PREVIEW_SIZE,
    timeout: float = DEFAULT_TIMEOUT,
) -> bytes:
    """Cut a short H.264 clip starting at *start* for quick previews."""
    async with temp_media_file(".bin", data) as source, temp_media_file(".mp4") as target:
        cmd = [
            FFMPEG, "-y",
            "-ss", f"{start:g}",
            "-t", f"{duration:g}",
            "-i", str(source),
            "-vf", _fit_filter(*size, pad=True),
            "-c:v", "libx264",
            "-preset", "fast",
            "-pix_fmt", "yuv420p",
            "-c:a", "aac",
            "-movflags", "+faststart",
            "-f", "mp4",
            str(target),
        ]
        await run_tool(cmd, timeout)
        return await asyncio.to_thread(target.read_bytes)
