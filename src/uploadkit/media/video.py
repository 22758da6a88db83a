"""Video probing and frame capture through ffprobe/ffmpeg."""

import asyncio
import json
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from uploadkit.errors import DecodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VideoInfo:
    duration: float
    width: int
    height: int


def find_tool(name: str, override: Path | None = None) -> str | None:
    """
    Locate an external binary.

    1. Explicit path from config.
    2. ``tools/`` directory under the working directory.
    3. System PATH.
    """
    if override is not None:
        if override.exists():
            return str(override)
        logger.warning("Configured %s not found at %s", name, override)

    target_name = f"{name}.exe" if os.name == "nt" else name
    local_path = Path.cwd() / "tools" / target_name
    if local_path.exists():
        return str(local_path)

    return shutil.which(target_name)


async def run_tool(*args: str) -> bytes:
    """Run an external tool and return its stdout; non-zero exit raises DecodeError."""
    process = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await process.communicate()
    except asyncio.CancelledError:
        process.kill()
        raise

    if process.returncode != 0:
        message = stderr.decode(errors="replace").strip() or f"exit code {process.returncode}"
        raise DecodeError(f"{Path(args[0]).name} failed: {message}")
    return stdout


def clamp_seek_time(preferred: float, duration: float) -> float:
    """Seek offset for the preview frame, never past the end of the clip."""
    if duration <= 0:
        return 0.0
    return max(0.0, min(preferred, duration))


async def probe_video(path: Path, ffprobe: str) -> VideoInfo:
    """Read duration and dimensions of the first video stream."""
    output = await run_tool(
        ffprobe,
        "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=width,height,duration:format=duration",
        "-of", "json",
        str(path),
    )

    try:
        info = json.loads(output)
        stream = info["streams"][0]
        duration = info.get("format", {}).get("duration") or stream.get("duration") or 0
        return VideoInfo(
            duration=float(duration),
            width=int(stream["width"]),
            height=int(stream["height"]),
        )
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise DecodeError(f"No readable video stream in {path.name}") from e


async def capture_frame(path: Path, at_seconds: float, ffmpeg: str) -> bytes:
    """Grab a single frame as JPEG bytes."""
    return await run_tool(
        ffmpeg,
        "-v", "error",
        "-ss", f"{at_seconds:.3f}",
        "-i", str(path),
        "-frames:v", "1",
        "-f", "image2pipe",
        "-vcodec", "mjpeg",
        "-",
    )
