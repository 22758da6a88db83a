"""Error types raised by the upload pipeline."""

from enum import Enum


class UploadKitError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(UploadKitError):
    """Configuration file or environment is missing or invalid."""


class FileValidationError(UploadKitError):
    """One or more candidate files failed validation."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Validation failed")


class DecodeError(UploadKitError):
    """Media could not be read, decoded or re-encoded."""


class TransportErrorKind(str, Enum):
    """Why an upload request failed."""

    HTTP_STATUS = "http_status"
    NETWORK = "network"
    TIMEOUT = "timeout"
    ABORTED = "aborted"


class TransportError(UploadKitError):
    """A single file's upload failed."""

    def __init__(
        self,
        message: str,
        kind: TransportErrorKind = TransportErrorKind.NETWORK,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    @property
    def aborted(self) -> bool:
        return self.kind is TransportErrorKind.ABORTED
