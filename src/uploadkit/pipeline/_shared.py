"""Shared types for upload pipelines."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from uploadkit.files.handle import FileHandle


class TaskStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (TaskStatus.SUCCEEDED, TaskStatus.FAILED)


@dataclass
class UploadTask:
    """Upload state of one file in a batch."""

    index: int
    file: FileHandle
    status: TaskStatus = TaskStatus.PENDING
    progress_percent: float = 0.0
    result: Any = None
    error: Exception | None = None

    def start(self) -> None:
        if self.status is not TaskStatus.PENDING:
            raise RuntimeError(f"Task {self.index} cannot start from {self.status.value}")
        self.status = TaskStatus.UPLOADING

    def succeed(self, result: Any) -> None:
        self._finish(TaskStatus.SUCCEEDED)
        self.result = result
        self.progress_percent = 100.0

    def fail(self, error: Exception) -> None:
        self._finish(TaskStatus.FAILED)
        self.error = error

    def _finish(self, status: TaskStatus) -> None:
        if self.status.terminal:
            raise RuntimeError(f"Task {self.index} already {self.status.value}")
        self.status = status


@dataclass(frozen=True)
class FileResult:
    """Outcome of one file, as returned from a batch upload."""

    index: int
    success: bool
    result: Any = None
    error: Exception | None = None

    @classmethod
    def from_task(cls, task: UploadTask) -> "FileResult":
        return cls(
            index=task.index,
            success=task.status is TaskStatus.SUCCEEDED,
            result=task.result,
            error=task.error,
        )


@dataclass(frozen=True)
class BatchProgress:
    completed_count: int = 0
    total_count: int = 0

    @property
    def percent(self) -> float:
        if self.total_count == 0:
            return 0.0
        return self.completed_count / self.total_count * 100
