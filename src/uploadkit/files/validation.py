"""File type, size and batch validation."""

import math
from collections.abc import Sequence
from dataclasses import dataclass, field

from uploadkit.files.handle import ALL_SUPPORTED_TYPES, FileCategory, FileHandle

MB = 1024 * 1024

SIZE_LIMITS: dict[FileCategory, int] = {
    FileCategory.IMAGE: 10 * MB,
    FileCategory.VIDEO: 100 * MB,
    FileCategory.DOCUMENT: 25 * MB,
    FileCategory.AUDIO: 50 * MB,
}
DEFAULT_SIZE_LIMIT = 10 * MB

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


@dataclass
class ValidationResult:
    """Result of validating a single file."""

    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass
class BatchValidationResult:
    """Result of validating a batch of files."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    valid_files: list[FileHandle] = field(default_factory=list)
    total_size: int = 0


def format_file_size(num_bytes: int) -> str:
    """Human readable size, e.g. ``10 MB`` or ``1.5 KB``."""
    if num_bytes <= 0:
        return "0 Bytes"

    exponent = min(int(math.floor(math.log(num_bytes, 1024))), len(_SIZE_UNITS) - 1)
    value = num_bytes / 1024**exponent
    formatted = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{formatted} {_SIZE_UNITS[exponent]}"


def size_limit_for(category: FileCategory) -> int:
    return SIZE_LIMITS.get(category, DEFAULT_SIZE_LIMIT)


def validate_type(file: FileHandle | None, allowed_types: Sequence[str] = ()) -> ValidationResult:
    """
    Check a file's MIME type against a whitelist.

    Args:
        file: File to check
        allowed_types: Accepted MIME types; empty means every supported type

    Returns:
        ValidationResult with a single error when rejected
    """
    if file is None or not file.mime_type:
        return ValidationResult(valid=False, errors=["Invalid file"])

    allowed = allowed_types or ALL_SUPPORTED_TYPES
    if file.mime_type not in allowed:
        return ValidationResult(
            valid=False,
            errors=[f"File type {file.mime_type} is not supported"],
        )

    return ValidationResult(valid=True)


def validate_size(file: FileHandle | None, max_size: int | None = None) -> ValidationResult:
    """
    Check a file's size against its category limit or an explicit override.

    Args:
        file: File to check
        max_size: Limit in bytes; None or 0 uses the per-category default

    Returns:
        ValidationResult with a single error when rejected
    """
    if file is None:
        return ValidationResult(valid=False, errors=["Invalid file"])

    limit = max_size or size_limit_for(file.category)
    if file.size_bytes > limit:
        return ValidationResult(
            valid=False,
            errors=[f"File size exceeds limit of {format_file_size(limit)}"],
        )

    return ValidationResult(valid=True)


def validate_batch(
    files: Sequence[FileHandle],
    max_files: int = 10,
    allowed_types: Sequence[str] = (),
    max_total_size: int | None = None,
    max_size: int | None = None,
) -> BatchValidationResult:
    """
    Validate a batch of candidate files.

    Too many files rejects the batch outright without looking at any file.
    Per-file type and size failures are collected and the offending file is
    skipped while the rest are still checked. Exceeding ``max_total_size``
    with the individually valid files rejects the whole batch.

    Args:
        files: Candidate files in selection order
        max_files: Maximum number of files in the batch
        allowed_types: MIME whitelist; empty means every supported type
        max_total_size: Cap on the summed size of valid files, in bytes; None or 0 means no cap
        max_size: Per-file size override, in bytes

    Returns:
        BatchValidationResult with errors, accepted files and their total size
    """
    if len(files) > max_files:
        return BatchValidationResult(
            valid=False,
            errors=[f"Too many files. Maximum {max_files} allowed."],
        )

    errors: list[str] = []
    valid_files: list[FileHandle] = []
    total_size = 0

    for file in files:
        type_result = validate_type(file, allowed_types)
        if not type_result.valid:
            errors.extend(f"{file.name}: {error}" for error in type_result.errors)
            continue

        size_result = validate_size(file, max_size)
        if not size_result.valid:
            errors.extend(f"{file.name}: {error}" for error in size_result.errors)
            continue

        valid_files.append(file)
        total_size += file.size_bytes

    if max_total_size and total_size > max_total_size:
        errors.append(f"Total file size exceeds limit of {format_file_size(max_total_size)}")
        return BatchValidationResult(valid=False, errors=errors, total_size=total_size)

    return BatchValidationResult(
        valid=not errors,
        errors=errors,
        valid_files=valid_files,
        total_size=total_size,
    )


def get_orientation(width: int, height: int) -> str:
    if width > height:
        return "landscape"
    if height > width:
        return "portrait"
    return "square"
