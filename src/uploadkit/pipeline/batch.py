"""Concurrency-limited batch upload."""

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import TypeVar

import requests

from uploadkit.cancel import CancellationToken
from uploadkit.config import CompressionConfig, UploadConfig
from uploadkit.errors import TransportError, TransportErrorKind
from uploadkit.files.handle import FileCategory, FileHandle
from uploadkit.media.process import compress_image
from uploadkit.pipeline._shared import FileResult, TaskStatus, UploadTask
from uploadkit.pipeline.session import BatchSession
from uploadkit.transport.http import upload_file

logger = logging.getLogger(__name__)

T = TypeVar("T")

FileProgressCallback = Callable[[int, float], None]
OverallProgressCallback = Callable[[float, int, int], None]


def chunk_list(items: Sequence[T], size: int) -> list[list[T]]:
    """Split a sequence into consecutive chunks of at most ``size`` items."""
    if size < 1:
        raise ValueError(f"Chunk size must be at least 1, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def _aborted(task: UploadTask) -> TransportError:
    return TransportError(f"Upload aborted: {task.file.name}", kind=TransportErrorKind.ABORTED)


async def _compress_unless_cancelled(
    task: UploadTask,
    config: CompressionConfig,
    token: CancellationToken,
) -> FileHandle:
    """Compress a task's image, giving up as soon as the token is cancelled."""
    if token.cancelled:
        raise _aborted(task)

    worker = asyncio.ensure_future(compress_image(task.file, config))
    cancelled = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait({worker, cancelled}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        cancelled.cancel()
        if not worker.done():
            # the decode thread runs to completion; its result is dropped
            worker.cancel()

    if worker not in done:
        raise _aborted(task)
    return worker.result()


async def upload_batch(
    files: Sequence[FileHandle],
    endpoint_url: str,
    config: UploadConfig | None = None,
    *,
    on_file_progress: FileProgressCallback | None = None,
    on_overall_progress: OverallProgressCallback | None = None,
    session: BatchSession | None = None,
    http: requests.Session | None = None,
) -> list[FileResult]:
    """
    Upload many files, at most ``config.concurrency`` at a time.

    Files are split into ordered chunks of ``concurrency`` files. Every
    upload in a chunk runs concurrently and the next chunk starts only once
    the whole chunk has finished. A failing file never affects its siblings:
    it is recorded as failed and the batch carries on. Nothing is retried.

    Images are compressed first when ``config.compression.enabled`` is set.

    Cancelling the session's token aborts in-flight uploads and fails every
    file that has not started yet without touching the network.

    Args:
        files: Files to upload, in caller order
        endpoint_url: Target URL, one request per file
        config: Concurrency, transport and compression settings
        on_file_progress: Called with (index, percent) as bytes are sent
        on_overall_progress: Called with (percent, completed, total) once per finished file
        session: Session that owns the tasks and the cancellation token
        http: requests session shared by all uploads of the batch

    Returns:
        One FileResult per input file, ordered by input position
    """
    config = config or UploadConfig()
    session = session or BatchSession()
    tasks = session.start_batch(files)
    token = session.token

    total = len(tasks)
    completed = 0
    results: list[FileResult] = []

    def finish(task: UploadTask) -> None:
        nonlocal completed
        completed += 1
        results.append(FileResult.from_task(task))
        if on_overall_progress is not None:
            on_overall_progress(completed / total * 100, completed, total)

    async def run(task: UploadTask) -> None:
        def progress(percent: float, sent: int, total_bytes: int) -> None:
            if task.status is not TaskStatus.UPLOADING:
                return
            task.progress_percent = percent
            if on_file_progress is not None:
                on_file_progress(task.index, percent)

        task.start()
        try:
            payload = task.file
            if config.compression.enabled and payload.category is FileCategory.IMAGE:
                payload = await _compress_unless_cancelled(task, config.compression, token)

            result = await upload_file(
                payload,
                endpoint_url,
                on_progress=progress,
                headers=config.headers,
                method=config.method,
                field_name=config.field_name,
                timeout=config.timeout,
                cancel_token=token,
                http=http,
                chunk_size=config.chunk_size,
            )
        except Exception as e:
            logger.warning("Upload failed for %s: %s", task.file.name, e)
            task.fail(e)
        else:
            task.succeed(result)
        finish(task)

    logger.info(
        "Uploading %d files to %s (concurrency=%d)", total, endpoint_url, config.concurrency
    )

    try:
        for chunk in chunk_list(tasks, config.concurrency):
            if token.cancelled:
                for task in chunk:
                    task.fail(_aborted(task))
                    finish(task)
                continue
            await asyncio.gather(*(run(task) for task in chunk))
    finally:
        session.finish_batch()

    results.sort(key=lambda r: r.index)

    failed = sum(1 for r in results if not r.success)
    logger.info("Batch complete: %d succeeded, %d failed", total - failed, failed)
    return results
