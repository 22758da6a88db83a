"""Image compression and preview generation."""

from uploadkit.media.preview import (
    IconPreview,
    ImagePreview,
    PreviewResult,
    VideoPreview,
    generate_preview,
    generate_previews,
)
from uploadkit.media.process import compress_image, compute_target_size, resize_image

__all__ = [
    "IconPreview",
    "ImagePreview",
    "PreviewResult",
    "VideoPreview",
    "generate_preview",
    "generate_previews",
    "compress_image",
    "compute_target_size",
    "resize_image",
]
