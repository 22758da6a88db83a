"""Preview generation for candidate files."""

import asyncio
import base64
import io
import logging
import tempfile
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Union

from PIL import Image

from uploadkit.config import PreviewConfig
from uploadkit.errors import DecodeError
from uploadkit.files.handle import FILE_ICONS, FileCategory, FileHandle
from uploadkit.media.video import capture_frame, clamp_seek_time, find_tool, probe_video

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImagePreview:
    url: str
    width: int | None = None
    height: int | None = None
    type: Literal["image"] = field(default="image", init=False)


@dataclass(frozen=True)
class VideoPreview:
    url: str
    duration: float
    width: int
    height: int
    type: Literal["video"] = field(default="video", init=False)


@dataclass(frozen=True)
class IconPreview:
    category: FileCategory
    icon: str
    type: Literal["other"] = field(default="other", init=False)


PreviewResult = Union[ImagePreview, VideoPreview, IconPreview]


def to_data_url(data: bytes, mime_type: str) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def icon_preview(file: FileHandle) -> IconPreview:
    category = file.category
    return IconPreview(category=category, icon=FILE_ICONS[category])


def _image_preview(file: FileHandle) -> ImagePreview:
    try:
        data = file.read_bytes()
    except OSError as e:
        raise DecodeError(f"Failed to read {file.name}: {e}") from e

    # Dimensions are optional: formats Pillow cannot parse still get a URL.
    width = height = None
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
    except (OSError, ValueError, Image.DecompressionBombError):
        logger.debug("Could not read dimensions of %s", file.name)

    return ImagePreview(url=to_data_url(data, file.mime_type), width=width, height=height)


def _spill_to_temp(file: FileHandle) -> Path:
    suffix = f".{file.extension}" if file.extension else ""
    with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp:
        tmp.write(file.read_bytes())
    return Path(tmp.name)


@asynccontextmanager
async def _media_source(file: FileHandle) -> AsyncIterator[Path]:
    """Path to the file's content; in-memory content lives in a temp file for the duration."""
    if file.path is not None:
        yield file.path
        return

    tmp_path = await asyncio.to_thread(_spill_to_temp, file)
    try:
        yield tmp_path
    finally:
        tmp_path.unlink(missing_ok=True)


async def _video_preview(
    file: FileHandle,
    config: PreviewConfig,
    ffprobe: str,
    ffmpeg: str,
) -> VideoPreview:
    async with _media_source(file) as path:
        info = await probe_video(path, ffprobe)
        seek = clamp_seek_time(config.video_preview_time, info.duration)
        frame = await capture_frame(path, seek, ffmpeg)
        if not frame and seek > 0:
            # seeking to the very end of a short clip can yield nothing
            frame = await capture_frame(path, 0.0, ffmpeg)

    if not frame:
        raise DecodeError(f"No frame could be captured from {file.name}")

    return VideoPreview(
        url=to_data_url(frame, "image/jpeg"),
        duration=info.duration,
        width=info.width,
        height=info.height,
    )


async def generate_preview(
    file: FileHandle,
    config: PreviewConfig | None = None,
) -> PreviewResult:
    """
    Build a lightweight preview for a file.

    Images become a data URL of their content, videos a data URL of a single
    frame captured near the start, everything else an icon identifier.

    Args:
        file: File to preview
        config: Video seek offset and tool locations

    Returns:
        ImagePreview, VideoPreview or IconPreview

    Raises:
        DecodeError: If the file's content cannot be read or decoded
    """
    config = config or PreviewConfig()
    category = file.category

    if category is FileCategory.IMAGE:
        return await asyncio.to_thread(_image_preview, file)

    if category is FileCategory.VIDEO:
        ffprobe = find_tool("ffprobe", config.ffprobe_path)
        ffmpeg = find_tool("ffmpeg", config.ffmpeg_path)
        if ffprobe is None or ffmpeg is None:
            logger.warning("ffprobe/ffmpeg not found, using icon preview for %s", file.name)
            return icon_preview(file)
        return await _video_preview(file, config, ffprobe, ffmpeg)

    return icon_preview(file)


async def generate_previews(
    files: Sequence[FileHandle],
    config: PreviewConfig | None = None,
) -> list[PreviewResult | None]:
    """Generate previews concurrently; files that fail to decode map to None."""

    async def _safe(file: FileHandle) -> PreviewResult | None:
        try:
            return await generate_preview(file, config)
        except DecodeError as e:
            logger.warning("Preview failed for %s: %s", file.name, e)
            return None

    return list(await asyncio.gather(*(_safe(f) for f in files)))
