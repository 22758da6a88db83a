"""Batch sessions and concurrency-limited uploads."""

from .batch import chunk_list, upload_batch
from .session import BatchSession, create_batch_session
from ._shared import BatchProgress, FileResult, TaskStatus, UploadTask

__all__ = [
    "chunk_list",
    "upload_batch",
    "BatchSession",
    "create_batch_session",
    "BatchProgress",
    "FileResult",
    "TaskStatus",
    "UploadTask",
]
