"""Shared fixtures: generated images and a fake HTTP session."""

import re
import threading
import time
from pathlib import Path

import pytest
from PIL import Image

from uploadkit.files.handle import FileHandle

_FILENAME_RE = re.compile(rb'filename="([^"]*)"')


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, json_body=None, text="", reason="OK"):
        self.status_code = status_code
        self.reason = reason
        self.text = text
        self._json_body = json_body

    def json(self):
        if self._json_body is None:
            raise ValueError("No JSON object could be decoded")
        return self._json_body


class FakeHttp:
    """
    Stands in for requests.Session.

    Consumes the streamed body like a real connection would, records the
    request, and answers with ``respond(filename, body)`` or a JSON echo.
    """

    def __init__(self, respond=None, delay=0.0, chunk_delay=0.0):
        self.respond = respond
        self.delay = delay
        self.chunk_delay = chunk_delay
        self.requests = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return None

    def request(self, method, url, data=None, headers=None, timeout=None):
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            chunks = []
            for chunk in data:
                chunks.append(chunk)
                if self.chunk_delay:
                    time.sleep(self.chunk_delay)
            body = b"".join(chunks)
            if self.delay:
                time.sleep(self.delay)

            match = _FILENAME_RE.search(body)
            filename = match.group(1).decode() if match else ""
            with self._lock:
                self.requests.append(
                    {"method": method, "url": url, "headers": headers, "body": body, "filename": filename}
                )

            if self.respond is not None:
                return self.respond(filename, body)
            return FakeResponse(json_body={"name": filename, "size": len(body)})
        finally:
            with self._lock:
                self.in_flight -= 1


@pytest.fixture
def fake_http():
    return FakeHttp()


@pytest.fixture
def make_image(tmp_path):
    """Create an image file on disk and return its FileHandle."""

    def _make(name="photo.png", size=(64, 48), mode="RGB", fmt="PNG", mime_type=None) -> FileHandle:
        path: Path = tmp_path / name
        Image.new(mode, size, color=(200, 120, 40) if mode == "RGB" else 0).save(path, fmt)
        return FileHandle.from_path(path, mime_type=mime_type)

    return _make


def make_file(name: str, size: int, mime_type: str) -> FileHandle:
    """In-memory file of ``size`` bytes."""
    return FileHandle.from_bytes(name, b"x" * size, mime_type=mime_type)
