"""Image resizing and re-encoding before upload."""

import asyncio
import io
import logging

from PIL import Image

from uploadkit.config import CompressionConfig
from uploadkit.errors import DecodeError
from uploadkit.files.handle import FileCategory, FileHandle

logger = logging.getLogger(__name__)

PIL_FORMATS = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}


def compute_target_size(
    width: int,
    height: int,
    max_width: int,
    max_height: int,
) -> tuple[int, int]:
    """Largest size within the bounds that keeps the aspect ratio. Never upscales."""
    ratio = min(max_width / width, max_height / height)

    if ratio < 1:
        return max(1, int(width * ratio)), max(1, int(height * ratio))

    return width, height


def resize_image(
    image: Image.Image,
    max_width: int,
    max_height: int,
) -> Image.Image:
    """Resize image while maintaining aspect ratio."""
    new_size = compute_target_size(image.width, image.height, max_width, max_height)

    if new_size != image.size:
        return image.resize(new_size, Image.Resampling.LANCZOS)

    return image


def encode_image(image: Image.Image, mime_type: str, quality: float) -> bytes:
    """Encode an image to bytes in the given format."""
    pil_format = PIL_FORMATS[mime_type]

    # JPEG has no alpha channel or palette
    if pil_format == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    buffer = io.BytesIO()
    if pil_format == "PNG":
        image.save(buffer, pil_format, optimize=True)
    else:
        image.save(buffer, pil_format, quality=round(quality * 100))
    return buffer.getvalue()


def _compress(file: FileHandle, config: CompressionConfig) -> FileHandle:
    try:
        with Image.open(io.BytesIO(file.read_bytes())) as img:
            img.load()
            original_size = img.size
            resized = resize_image(img, config.max_width, config.max_height)
            data = encode_image(resized, config.format, config.quality)
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Failed to load image {file.name}: {e}") from e

    if not data:
        raise DecodeError(f"Failed to compress image {file.name}")

    logger.debug(
        "Compressed %s: %sx%s -> %sx%s, %d -> %d bytes",
        file.name,
        *original_size,
        *resized.size,
        file.size_bytes,
        len(data),
    )
    return FileHandle.from_bytes(file.name, data, mime_type=config.format)


async def compress_image(
    file: FileHandle,
    config: CompressionConfig | None = None,
) -> FileHandle:
    """
    Resize and re-encode an image.

    Decoding and encoding run in a worker thread.

    Args:
        file: Image to compress
        config: Target bounds, quality and output format

    Returns:
        New in-memory FileHandle with the original name and the output MIME type

    Raises:
        DecodeError: If the file is not an image or cannot be decoded/encoded
    """
    config = config or CompressionConfig()

    if file.category is not FileCategory.IMAGE:
        raise DecodeError(f"File is not an image: {file.name}")

    return await asyncio.to_thread(_compress, file, config)
