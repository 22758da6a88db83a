"""File references and MIME-based categories."""

import mimetypes
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

DEFAULT_MIME_TYPE = "application/octet-stream"


class FileCategory(str, Enum):
    """Broad kind of file, derived from its MIME type."""

    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"
    AUDIO = "audio"
    UNKNOWN = "unknown"


# Lookup order matters: the first category listing a MIME type wins.
SUPPORTED_TYPES: dict[FileCategory, tuple[str, ...]] = {
    FileCategory.IMAGE: ("image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"),
    FileCategory.VIDEO: ("video/mp4", "video/webm", "video/mov", "video/avi"),
    FileCategory.DOCUMENT: (
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ),
    FileCategory.AUDIO: ("audio/mp3", "audio/wav", "audio/ogg"),
}

ALL_SUPPORTED_TYPES: tuple[str, ...] = tuple(
    mime for types in SUPPORTED_TYPES.values() for mime in types
)

FILE_ICONS: dict[FileCategory, str] = {
    FileCategory.IMAGE: "image-outline",
    FileCategory.VIDEO: "videocam-outline",
    FileCategory.DOCUMENT: "document-text-outline",
    FileCategory.AUDIO: "musical-notes-outline",
    FileCategory.UNKNOWN: "document-outline",
}

# mimetypes disagrees with the browser names for a few formats
_MIME_ALIASES = {
    "audio/mpeg": "audio/mp3",
    "audio/x-wav": "audio/wav",
    "video/quicktime": "video/mov",
    "video/x-msvideo": "video/avi",
}


def get_file_category(mime_type: str) -> FileCategory:
    """Map a MIME type to its category, or UNKNOWN."""
    for category, types in SUPPORTED_TYPES.items():
        if mime_type in types:
            return category
    return FileCategory.UNKNOWN


def get_file_icon(mime_type: str) -> str:
    """Icon identifier for a MIME type."""
    return FILE_ICONS[get_file_category(mime_type)]


def guess_mime_type(name: str) -> str:
    """Guess a MIME type from a file name."""
    mime_type, _ = mimetypes.guess_type(name)
    if mime_type is None:
        return DEFAULT_MIME_TYPE
    return _MIME_ALIASES.get(mime_type, mime_type)


@dataclass(frozen=True)
class FileHandle:
    """
    Immutable reference to a file's content.

    Content lives either on disk (``path``) or in memory (``data``). The
    pipeline only reads through the handle and never copies or modifies the
    underlying file.
    """

    name: str
    size_bytes: int
    mime_type: str
    path: Path | None = None
    data: bytes | None = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        if (self.path is None) == (self.data is None):
            raise ValueError("FileHandle needs exactly one of path or data")
        if self.size_bytes < 0:
            raise ValueError(f"Negative size for {self.name}: {self.size_bytes}")

    @classmethod
    def from_path(cls, path: Path, mime_type: str | None = None) -> "FileHandle":
        """Create a handle for a file on disk."""
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        return cls(
            name=path.name,
            size_bytes=path.stat().st_size,
            mime_type=mime_type if mime_type is not None else guess_mime_type(path.name),
            path=path,
        )

    @classmethod
    def from_bytes(cls, name: str, data: bytes, mime_type: str | None = None) -> "FileHandle":
        """Create a handle for in-memory content."""
        return cls(
            name=name,
            size_bytes=len(data),
            mime_type=mime_type if mime_type is not None else guess_mime_type(name),
            data=bytes(data),
        )

    @property
    def category(self) -> FileCategory:
        return get_file_category(self.mime_type)

    @property
    def extension(self) -> str:
        return self.name.rsplit(".", 1)[-1].lower() if "." in self.name else ""

    def read_bytes(self) -> bytes:
        """Read the whole content. Blocking."""
        if self.data is not None:
            return self.data
        return self.path.read_bytes()

    def iter_chunks(self, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        """Yield the content in chunks of at most ``chunk_size`` bytes. Blocking."""
        if self.data is not None:
            for start in range(0, len(self.data), chunk_size):
                yield self.data[start : start + chunk_size]
            return

        with open(self.path, "rb") as f:
            while chunk := f.read(chunk_size):
                yield chunk
