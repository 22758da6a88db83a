"""Streaming single-field multipart/form-data body."""

import uuid
from collections.abc import Callable, Iterator

from uploadkit.files.handle import FileHandle


class UploadAborted(Exception):
    """Raised from inside the body iterator to stop sending."""


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\r", "").replace("\n", "")


class MultipartBody:
    """
    Iterable request body with a known length.

    ``requests`` sends an iterable with ``__len__`` using a plain
    Content-Length instead of chunked transfer encoding. Each chunk is
    reported through ``on_sent`` once the transport asks for the next one,
    i.e. after it has been written to the socket.
    """

    def __init__(
        self,
        file: FileHandle,
        field_name: str = "file",
        chunk_size: int = 64 * 1024,
        on_sent: Callable[[int, int], None] | None = None,
        should_abort: Callable[[], bool] | None = None,
    ):
        self.file = file
        self.chunk_size = chunk_size
        self.boundary = uuid.uuid4().hex
        self._on_sent = on_sent
        self._should_abort = should_abort
        self._head = (
            f"--{self.boundary}\r\n"
            f'Content-Disposition: form-data; name="{_quote(field_name)}"; '
            f'filename="{_quote(file.name)}"\r\n'
            f"Content-Type: {file.mime_type}\r\n"
            "\r\n"
        ).encode("utf-8")
        self._tail = f"\r\n--{self.boundary}--\r\n".encode("utf-8")

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    def __len__(self) -> int:
        return len(self._head) + self.file.size_bytes + len(self._tail)

    def _check_abort(self) -> None:
        if self._should_abort is not None and self._should_abort():
            raise UploadAborted(f"Upload of {self.file.name} aborted")

    def __iter__(self) -> Iterator[bytes]:
        total = len(self)
        sent = 0

        self._check_abort()
        yield self._head
        sent += len(self._head)

        for chunk in self.file.iter_chunks(self.chunk_size):
            self._check_abort()
            yield chunk
            sent += len(chunk)
            if self._on_sent is not None:
                self._on_sent(sent, total)

        yield self._tail
        sent += len(self._tail)
        if self._on_sent is not None:
            self._on_sent(sent, total)
