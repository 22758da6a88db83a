"""File references and validation."""

from uploadkit.files.handle import FileCategory, FileHandle, get_file_category, get_file_icon
from uploadkit.files.validation import (
    BatchValidationResult,
    ValidationResult,
    format_file_size,
    validate_batch,
    validate_size,
    validate_type,
)

__all__ = [
    "FileCategory",
    "FileHandle",
    "get_file_category",
    "get_file_icon",
    "BatchValidationResult",
    "ValidationResult",
    "format_file_size",
    "validate_batch",
    "validate_size",
    "validate_type",
]
