"""HTTP transport for single-file uploads."""

from uploadkit.transport.http import parse_response, upload_file
from uploadkit.transport.multipart import MultipartBody

__all__ = ["MultipartBody", "parse_response", "upload_file"]
