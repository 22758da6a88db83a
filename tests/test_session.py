"""Tests for BatchSession."""

import pytest

from conftest import FakeHttp, FakeResponse, make_file
from uploadkit.config import PipelineConfig, ValidationConfig
from uploadkit.errors import FileValidationError
from uploadkit.media.preview import IconPreview
from uploadkit.pipeline._shared import TaskStatus
from uploadkit.pipeline.session import create_batch_session


def _config(**validation) -> PipelineConfig:
    return PipelineConfig(validation=ValidationConfig(**validation))


class TestAddFiles:
    """Tests for BatchSession.add_files()."""

    def test_valid_files_added(self):
        """Accepted files are kept and reported to on_file_add."""
        added = []
        session = create_batch_session(on_file_add=added.append)
        files = [make_file("a.pdf", 10, "application/pdf"), make_file("b.png", 10, "image/png")]

        result = session.add_files(files)

        assert result.valid
        assert result.valid_files == files
        assert session.files == files
        assert added == files

    def test_invalid_file_skipped(self):
        """Rejected files are reported while the rest are still added."""
        session = create_batch_session()
        good = make_file("a.pdf", 10, "application/pdf")
        bad = make_file("a.zip", 10, "application/zip")

        result = session.add_files([good, bad])

        assert not result.valid
        assert result.errors == ["a.zip: File type application/zip is not supported"]
        assert session.files == [good]

    def test_duplicate_name_rejected(self):
        session = create_batch_session()
        session.add_files([make_file("a.pdf", 10, "application/pdf")])

        result = session.add_files([make_file("a.pdf", 20, "application/pdf")])

        assert result.errors == ["a.pdf: File already added"]
        assert len(session.files) == 1

    def test_count_includes_existing_files(self):
        """The file limit applies to the combined set."""
        session = create_batch_session(_config(max_files=2))
        session.add_files([make_file("a.pdf", 1, "application/pdf")])

        result = session.add_files(
            [make_file("b.pdf", 1, "application/pdf"), make_file("c.pdf", 1, "application/pdf")]
        )

        assert result.errors == ["Too many files. Maximum 2 allowed."]
        assert [f.name for f in session.files] == ["a.pdf"]

    def test_strict_mode_raises(self):
        """Strict mode raises with every error and adds nothing."""
        session = create_batch_session()
        files = [make_file("a.pdf", 1, "application/pdf"), make_file("b.zip", 1, "application/zip")]

        with pytest.raises(FileValidationError) as exc_info:
            session.add_files(files, strict=True)

        assert exc_info.value.errors == ["b.zip: File type application/zip is not supported"]
        assert session.files == []


class TestRemoveAndClear:
    """Tests for removing files from a session."""

    @pytest.mark.asyncio
    async def test_remove_drops_preview(self):
        """Removing a file drops its preview and notifies on_file_remove."""
        removed = []
        session = create_batch_session(on_file_remove=removed.append)
        session.add_files([make_file("a.pdf", 1, "application/pdf")])
        previews = await session.generate_previews()
        assert isinstance(previews["a.pdf"], IconPreview)

        assert session.remove_file("a.pdf")

        assert session.files == []
        assert session.previews == {}
        assert removed == ["a.pdf"]

    def test_remove_unknown(self):
        session = create_batch_session()
        assert not session.remove_file("missing.pdf")

    def test_clear(self):
        removed = []
        session = create_batch_session(on_file_remove=removed.append)
        session.add_files([make_file("a.pdf", 1, "application/pdf"), make_file("b.pdf", 1, "application/pdf")])

        session.clear()

        assert session.files == []
        assert session.tasks == []
        assert removed == ["a.pdf", "b.pdf"]

    @pytest.mark.asyncio
    async def test_previews_generated_once(self):
        """Existing previews are kept when new files are added."""
        session = create_batch_session()
        session.add_files([make_file("a.pdf", 1, "application/pdf")])
        first = await session.generate_previews()
        session.add_files([make_file("b.mp3", 1, "audio/mp3")])
        second = await session.generate_previews()

        assert second["a.pdf"] is first["a.pdf"]
        assert second["b.mp3"].icon == "musical-notes-outline"


class TestSessionUpload:
    """Tests for uploading through a session."""

    @pytest.mark.asyncio
    async def test_upload_tracks_progress(self, fake_http):
        session = create_batch_session()
        session.add_files([make_file("a.pdf", 10, "application/pdf"), make_file("b.pdf", 10, "application/pdf")])

        results = await session.upload("https://x.test", http=fake_http)

        assert all(r.success for r in results)
        assert session.progress.completed_count == 2
        assert session.progress.percent == 100
        assert not session.uploading

    @pytest.mark.asyncio
    async def test_retry_keeps_original_indices(self):
        """Retrying failed files reports them under their original positions."""
        flaky = {"b.pdf"}

        def respond(name, body):
            if name in flaky:
                return FakeResponse(status_code=503, reason="Service Unavailable")
            return FakeResponse(json_body={"name": name})

        http = FakeHttp(respond=respond)
        session = create_batch_session()
        session.add_files(
            [make_file(name, 10, "application/pdf") for name in ("a.pdf", "b.pdf", "c.pdf")]
        )

        first = await session.upload("https://x.test", http=http)
        assert [r.success for r in first] == [True, False, True]
        assert [f.name for f in session.failed_files()] == ["b.pdf"]

        flaky.clear()
        progress = []
        retried = await session.retry_failed(
            "https://x.test",
            on_file_progress=lambda index, percent: progress.append(index),
            http=http,
        )

        assert [(r.index, r.success) for r in retried] == [(1, True)]
        assert set(progress) == {1}
        assert [t.index for t in session.tasks] == [0, 1, 2]
        assert all(t.status is TaskStatus.SUCCEEDED for t in session.tasks)
        assert session.failed_files() == []

    @pytest.mark.asyncio
    async def test_retry_without_failures(self):
        session = create_batch_session()
        assert await session.retry_failed("https://x.test") == []

    def test_sessions_are_independent(self):
        """Two sessions never share files or tokens."""
        first = create_batch_session()
        second = create_batch_session()
        first.add_files([make_file("a.pdf", 1, "application/pdf")])
        first.cancel()

        assert second.files == []
        assert first.token is not second.token
        assert not second.token.cancelled

    def test_start_twice_rejected(self):
        session = create_batch_session()
        session.start_batch([])
        with pytest.raises(RuntimeError):
            session.start_batch([])
