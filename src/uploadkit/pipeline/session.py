"""Caller-owned state for one set of candidate files and their uploads."""

import logging
from collections.abc import Callable, Sequence
from dataclasses import replace

import requests

from uploadkit.cancel import CancellationToken
from uploadkit.config import PipelineConfig
from uploadkit.errors import FileValidationError
from uploadkit.files.handle import FileHandle
from uploadkit.files.validation import BatchValidationResult, validate_batch
from uploadkit.media.preview import PreviewResult, generate_previews
from uploadkit.pipeline._shared import BatchProgress, FileResult, TaskStatus, UploadTask

logger = logging.getLogger(__name__)

FileAddCallback = Callable[[FileHandle], None]
FileRemoveCallback = Callable[[str], None]


class BatchSession:
    """
    Candidate files, their previews, and the tasks of the current upload.

    Sessions share nothing, so several batches can run side by side. File
    names are unique within a session since removal is by name.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        *,
        on_file_add: FileAddCallback | None = None,
        on_file_remove: FileRemoveCallback | None = None,
    ):
        self.config = config or PipelineConfig()
        self.on_file_add = on_file_add
        self.on_file_remove = on_file_remove
        self.files: list[FileHandle] = []
        self.previews: dict[str, PreviewResult | None] = {}
        self.tasks: list[UploadTask] = []
        self.token = CancellationToken()
        self._uploading = False

    @property
    def uploading(self) -> bool:
        return self._uploading

    @property
    def progress(self) -> BatchProgress:
        completed = sum(1 for task in self.tasks if task.status.terminal)
        return BatchProgress(completed_count=completed, total_count=len(self.tasks))

    def add_files(self, files: Sequence[FileHandle], *, strict: bool = False) -> BatchValidationResult:
        """
        Validate new files together with the current ones and keep the valid ones.

        Args:
            files: Newly selected files
            strict: Raise instead of returning errors, and add nothing

        Returns:
            BatchValidationResult whose ``valid_files`` are the newly added files

        Raises:
            FileValidationError: In strict mode, when anything was rejected
        """
        errors: list[str] = []
        fresh: list[FileHandle] = []
        names = {f.name for f in self.files}
        for file in files:
            if file.name in names:
                errors.append(f"{file.name}: File already added")
                continue
            names.add(file.name)
            fresh.append(file)

        policy = self.config.validation
        result = validate_batch(
            self.files + fresh,
            max_files=policy.max_files,
            allowed_types=policy.allowed_types,
            max_total_size=policy.max_total_size,
            max_size=policy.max_size,
        )
        errors.extend(result.errors)

        if strict and errors:
            raise FileValidationError(errors)

        accepted_ids = {id(f) for f in result.valid_files}
        accepted = [f for f in fresh if id(f) in accepted_ids]
        for file in accepted:
            self.files.append(file)
            if self.on_file_add is not None:
                self.on_file_add(file)

        return BatchValidationResult(
            valid=not errors,
            errors=errors,
            valid_files=accepted,
            total_size=result.total_size,
        )

    def remove_file(self, name: str) -> bool:
        """Drop a candidate file and its preview. Returns False if it was not present."""
        for i, file in enumerate(self.files):
            if file.name == name:
                del self.files[i]
                self.previews.pop(name, None)
                if self.on_file_remove is not None:
                    self.on_file_remove(name)
                return True
        return False

    def clear(self) -> None:
        """Abort any running upload and forget all files, previews and tasks."""
        if self._uploading:
            self.token.cancel()
        for file in list(self.files):
            self.remove_file(file.name)
        self.tasks = []

    def cancel(self) -> None:
        """Abort the running upload."""
        self.token.cancel()

    async def generate_previews(self) -> dict[str, PreviewResult | None]:
        """Create previews for files that do not have one yet."""
        missing = [f for f in self.files if f.name not in self.previews]
        previews = await generate_previews(missing, self.config.preview)
        for file, preview in zip(missing, previews):
            self.previews[file.name] = preview
        return dict(self.previews)

    def start_batch(self, files: Sequence[FileHandle]) -> list[UploadTask]:
        """Create pending tasks for a new upload and arm a fresh cancellation token."""
        if self._uploading:
            raise RuntimeError("An upload is already running in this session")
        self._uploading = True
        self.token = CancellationToken()
        self.tasks = [UploadTask(index=i, file=file) for i, file in enumerate(files)]
        return self.tasks

    def finish_batch(self) -> None:
        self._uploading = False

    def failed_files(self) -> list[FileHandle]:
        return [task.file for task in self.tasks if task.status is TaskStatus.FAILED]

    async def upload(
        self,
        endpoint_url: str,
        *,
        on_file_progress: Callable[[int, float], None] | None = None,
        on_overall_progress: Callable[[float, int, int], None] | None = None,
        http: requests.Session | None = None,
    ) -> list[FileResult]:
        """Upload every candidate file."""
        from uploadkit.pipeline.batch import upload_batch

        return await upload_batch(
            list(self.files),
            endpoint_url,
            self.config.upload,
            on_file_progress=on_file_progress,
            on_overall_progress=on_overall_progress,
            session=self,
            http=http,
        )

    async def retry_failed(
        self,
        endpoint_url: str,
        *,
        on_file_progress: Callable[[int, float], None] | None = None,
        on_overall_progress: Callable[[float, int, int], None] | None = None,
        http: requests.Session | None = None,
    ) -> list[FileResult]:
        """
        Upload again only the files that failed last time.

        Indices in callbacks, results and tasks keep referring to the
        original batch.
        """
        from uploadkit.pipeline.batch import upload_batch

        failed = [task for task in self.tasks if task.status is TaskStatus.FAILED]
        if not failed:
            return []

        previous = list(self.tasks)

        def file_progress(index: int, percent: float) -> None:
            if on_file_progress is not None:
                on_file_progress(failed[index].index, percent)

        logger.info("Retrying %d failed uploads", len(failed))
        results = await upload_batch(
            [task.file for task in failed],
            endpoint_url,
            self.config.upload,
            on_file_progress=file_progress,
            on_overall_progress=on_overall_progress,
            session=self,
            http=http,
        )

        for old, new in zip(failed, self.tasks):
            new.index = old.index
            previous[old.index] = new
        self.tasks = previous

        return [replace(r, index=failed[r.index].index) for r in results]


def create_batch_session(
    config: PipelineConfig | None = None,
    *,
    on_file_add: FileAddCallback | None = None,
    on_file_remove: FileRemoveCallback | None = None,
) -> BatchSession:
    """Create an independent session for one uploader."""
    return BatchSession(config, on_file_add=on_file_add, on_file_remove=on_file_remove)
