"""Single-file HTTP upload with progress, timeout and abort."""

import asyncio
import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any

import requests

from uploadkit.cancel import CancellationToken
from uploadkit.errors import TransportError, TransportErrorKind
from uploadkit.files.handle import FileHandle
from uploadkit.transport.multipart import MultipartBody, UploadAborted

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, int, int], None]


def parse_response(response: requests.Response) -> Any:
    """Parsed JSON body of a 2xx response, or its raw text if it is not JSON."""
    if not 200 <= response.status_code < 300:
        raise TransportError(
            f"Upload failed: {response.status_code} {response.reason}",
            kind=TransportErrorKind.HTTP_STATUS,
            status_code=response.status_code,
        )

    try:
        return response.json()
    except ValueError:
        return response.text


def _discard_result(task: asyncio.Future) -> None:
    if not task.cancelled():
        task.exception()


async def upload_file(
    file: FileHandle,
    endpoint_url: str,
    *,
    on_progress: ProgressCallback | None = None,
    headers: Mapping[str, str] | None = None,
    method: str = "POST",
    field_name: str = "file",
    timeout: float | None = None,
    cancel_token: CancellationToken | None = None,
    http: requests.Session | None = None,
    chunk_size: int = 64 * 1024,
) -> Any:
    """
    Upload one file as a single-field multipart/form-data request.

    The blocking request runs in a worker thread; progress callbacks are
    handed back to the event loop so callers only ever see them on the loop
    thread. The cancellation token is checked between body chunks and awaited
    alongside the request, so an abort returns without waiting for the
    server.

    Args:
        file: File to send
        endpoint_url: Target URL
        on_progress: Called with (percent, bytes_sent, bytes_total)
        headers: Extra request headers
        method: HTTP method
        field_name: Multipart field name for the file
        timeout: Seconds before the upload is abandoned; None waits forever
        cancel_token: Token that aborts the upload when cancelled
        http: Session to send with; a one-off session is used when None
        chunk_size: Bytes per body chunk

    Returns:
        Parsed JSON response, or the raw response text

    Raises:
        TransportError: On non-2xx status, network failure, timeout or abort
    """
    token = cancel_token or CancellationToken()
    if token.cancelled:
        raise TransportError(f"Upload aborted: {file.name}", kind=TransportErrorKind.ABORTED)

    loop = asyncio.get_running_loop()
    abandoned = threading.Event()

    def should_abort() -> bool:
        return abandoned.is_set() or token.cancelled

    def report(sent: int, total: int) -> None:
        if on_progress is not None and not abandoned.is_set():
            loop.call_soon_threadsafe(on_progress, sent / total * 100, sent, total)

    def send() -> Any:
        body = MultipartBody(
            file,
            field_name=field_name,
            chunk_size=chunk_size,
            on_sent=report,
            should_abort=should_abort,
        )
        request_headers = {
            **(headers or {}),
            "Content-Type": body.content_type,
            "Content-Length": str(len(body)),
        }
        client = http if http is not None else requests
        try:
            response = client.request(
                method,
                endpoint_url,
                data=body,
                headers=request_headers,
                timeout=timeout,
            )
        except UploadAborted as e:
            raise TransportError(str(e), kind=TransportErrorKind.ABORTED) from e
        except requests.Timeout as e:
            raise TransportError(
                f"Upload failed: timed out ({e})", kind=TransportErrorKind.TIMEOUT
            ) from e
        except (requests.RequestException, OSError) as e:
            if should_abort():
                raise TransportError(
                    f"Upload aborted: {file.name}", kind=TransportErrorKind.ABORTED
                ) from e
            raise TransportError(
                f"Upload failed: Network error ({e})", kind=TransportErrorKind.NETWORK
            ) from e
        return parse_response(response)

    logger.debug("Uploading %s (%d bytes) to %s", file.name, file.size_bytes, endpoint_url)

    worker = asyncio.ensure_future(asyncio.to_thread(send))
    cancelled = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait(
            {worker, cancelled},
            timeout=timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )
    finally:
        cancelled.cancel()
        if not worker.done():
            # the thread stops at its next chunk; nobody awaits it any more
            abandoned.set()
            worker.add_done_callback(_discard_result)

    if worker not in done:
        if token.cancelled:
            raise TransportError(f"Upload aborted: {file.name}", kind=TransportErrorKind.ABORTED)
        raise TransportError(
            f"Upload timed out after {timeout}s: {file.name}",
            kind=TransportErrorKind.TIMEOUT,
        )

    result = worker.result()
    logger.debug("Uploaded %s", file.name)
    return result
