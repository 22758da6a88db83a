"""Tests for the single-file HTTP transport."""

import asyncio
import threading

import pytest
import requests

from conftest import FakeHttp, FakeResponse, make_file
from uploadkit.cancel import CancellationToken
from uploadkit.errors import TransportError, TransportErrorKind
from uploadkit.transport.http import upload_file
from uploadkit.transport.multipart import MultipartBody, UploadAborted


class TestMultipartBody:
    """Tests for MultipartBody."""

    def test_length_matches_content(self):
        """The advertised length equals the bytes produced."""
        file = make_file("a.png", 1000, "image/png")
        body = MultipartBody(file, chunk_size=64)
        assert len(b"".join(body)) == len(body)

    def test_single_field_layout(self):
        """The body holds one part with the field name, file name and type."""
        file = make_file("a.png", 5, "image/png")
        body = MultipartBody(file, field_name="upload")
        data = b"".join(body)

        assert body.content_type == f"multipart/form-data; boundary={body.boundary}"
        assert data.startswith(f"--{body.boundary}\r\n".encode())
        assert b'Content-Disposition: form-data; name="upload"; filename="a.png"' in data
        assert b"Content-Type: image/png\r\n\r\nxxxxx\r\n" in data
        assert data.endswith(f"--{body.boundary}--\r\n".encode())

    def test_progress_reaches_total(self):
        """Progress is reported per chunk and ends at the full length."""
        reports = []
        file = make_file("a.png", 100, "image/png")
        body = MultipartBody(file, chunk_size=30, on_sent=lambda sent, total: reports.append(sent))
        list(body)
        assert reports == sorted(reports)
        assert reports[-1] == len(body)
        assert len(reports) == 5

    def test_abort_between_chunks(self):
        """The abort check stops iteration."""
        calls = []
        body = MultipartBody(
            make_file("a.png", 100, "image/png"),
            chunk_size=10,
            should_abort=lambda: len(calls) > 2,
            on_sent=lambda sent, total: calls.append(sent),
        )
        with pytest.raises(UploadAborted):
            list(body)


class TestUploadFile:
    """Tests for upload_file()."""

    @pytest.mark.asyncio
    async def test_success_returns_json(self, fake_http):
        """A 2xx response resolves with the parsed JSON body."""
        file = make_file("photo.png", 300, "image/png")
        progress = []

        result = await upload_file(
            file,
            "https://example.test/upload",
            on_progress=lambda percent, sent, total: progress.append((percent, sent, total)),
            headers={"Authorization": "Bearer t"},
            http=fake_http,
            chunk_size=100,
        )

        assert result["name"] == "photo.png"
        request = fake_http.requests[0]
        assert request["method"] == "POST"
        assert request["url"] == "https://example.test/upload"
        assert request["headers"]["Authorization"] == "Bearer t"
        assert request["headers"]["Content-Type"].startswith("multipart/form-data; boundary=")
        assert request["headers"]["Content-Length"] == str(len(request["body"]))
        assert progress[-1][0] == 100
        assert progress[-1][1] == progress[-1][2] == len(request["body"])

    @pytest.mark.asyncio
    async def test_progress_on_loop_thread(self, fake_http):
        """Progress callbacks run on the event loop thread."""
        threads = set()
        await upload_file(
            make_file("a.png", 50, "image/png"),
            "https://example.test/upload",
            on_progress=lambda *args: threads.add(threading.get_ident()),
            http=fake_http,
        )
        assert threads == {threading.get_ident()}

    @pytest.mark.asyncio
    async def test_non_json_body_returns_text(self):
        """Unparseable bodies come back as raw text."""
        http = FakeHttp(respond=lambda name, body: FakeResponse(text="stored"))
        result = await upload_file(make_file("a.png", 5, "image/png"), "https://x.test", http=http)
        assert result == "stored"

    @pytest.mark.asyncio
    async def test_error_status(self):
        """Non-2xx responses raise an http_status TransportError."""
        http = FakeHttp(
            respond=lambda name, body: FakeResponse(status_code=500, reason="Internal Server Error")
        )
        with pytest.raises(TransportError) as exc_info:
            await upload_file(make_file("a.png", 5, "image/png"), "https://x.test", http=http)

        assert exc_info.value.kind is TransportErrorKind.HTTP_STATUS
        assert exc_info.value.status_code == 500
        assert str(exc_info.value) == "Upload failed: 500 Internal Server Error"

    @pytest.mark.asyncio
    async def test_network_error(self):
        """Connection problems raise a network TransportError."""

        def refuse(name, body):
            raise requests.ConnectionError("connection refused")

        with pytest.raises(TransportError) as exc_info:
            await upload_file(
                make_file("a.png", 5, "image/png"), "https://x.test", http=FakeHttp(respond=refuse)
            )
        assert exc_info.value.kind is TransportErrorKind.NETWORK

    @pytest.mark.asyncio
    async def test_method_and_field_name(self, fake_http):
        """Method and field name are configurable."""
        await upload_file(
            make_file("a.png", 5, "image/png"),
            "https://x.test",
            method="PUT",
            field_name="attachment",
            http=fake_http,
        )
        request = fake_http.requests[0]
        assert request["method"] == "PUT"
        assert b'name="attachment"' in request["body"]

    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, fake_http):
        """An already cancelled token aborts without a request."""
        token = CancellationToken()
        token.cancel()
        with pytest.raises(TransportError) as exc_info:
            await upload_file(
                make_file("a.png", 5, "image/png"), "https://x.test", cancel_token=token, http=fake_http
            )
        assert exc_info.value.aborted
        assert fake_http.requests == []

    @pytest.mark.asyncio
    async def test_cancel_during_upload(self):
        """Cancelling mid-body aborts promptly."""
        token = CancellationToken()
        http = FakeHttp(chunk_delay=0.01)

        def cancel_on_first_progress(percent, sent, total):
            token.cancel()

        with pytest.raises(TransportError) as exc_info:
            await asyncio.wait_for(
                upload_file(
                    make_file("big.png", 10_000, "image/png"),
                    "https://x.test",
                    on_progress=cancel_on_first_progress,
                    cancel_token=token,
                    http=http,
                    chunk_size=10,
                ),
                timeout=2,
            )
        assert exc_info.value.kind is TransportErrorKind.ABORTED

    @pytest.mark.asyncio
    async def test_timeout(self):
        """A slow server fails the upload with a timeout error."""
        http = FakeHttp(delay=0.5)
        with pytest.raises(TransportError) as exc_info:
            await upload_file(
                make_file("a.png", 5, "image/png"), "https://x.test", timeout=0.05, http=http
            )
        assert exc_info.value.kind is TransportErrorKind.TIMEOUT


class TestCancellationToken:
    """Tests for CancellationToken."""

    @pytest.mark.asyncio
    async def test_wait_wakes_on_cancel(self):
        token = CancellationToken()
        waiter = asyncio.ensure_future(token.wait())
        await asyncio.sleep(0)
        assert not waiter.done()

        token.cancel()
        await asyncio.wait_for(waiter, timeout=1)
        assert token.cancelled

    @pytest.mark.asyncio
    async def test_cancel_from_other_thread(self):
        token = CancellationToken()
        threading.Timer(0.01, token.cancel).start()
        await asyncio.wait_for(token.wait(), timeout=1)

    @pytest.mark.asyncio
    async def test_wait_after_cancel_returns_immediately(self):
        token = CancellationToken()
        token.cancel()
        token.cancel()
        await asyncio.wait_for(token.wait(), timeout=1)
