"""Terminal rendering of pipeline callbacks."""

from collections.abc import Sequence

from rich.console import Console
from rich.table import Table
from tqdm import tqdm

from uploadkit.files.handle import FileHandle
from uploadkit.files.validation import BatchValidationResult, format_file_size
from uploadkit.pipeline._shared import FileResult


class ConsoleRenderer:
    """
    Draws pipeline events on a terminal.

    The pipeline never renders anything itself; pass the bound methods of a
    renderer as its callbacks.
    """

    def __init__(self, console: Console | None = None, show_progress: bool = True):
        self.console = console or Console()
        self.show_progress = show_progress
        self.file_percent: dict[int, float] = {}
        self.completed = 0
        self.total = 0
        self._bar: tqdm | None = None

    def on_file_add(self, file: FileHandle) -> None:
        self.console.print(
            f"[green]+[/green] {file.name} ({file.mime_type}, {format_file_size(file.size_bytes)})"
        )

    def on_file_remove(self, file_name: str) -> None:
        self.console.print(f"[yellow]-[/yellow] {file_name}")

    def on_file_progress(self, index: int, percent: float) -> None:
        self.file_percent[index] = percent
        if self._bar is not None:
            self._bar.set_postfix_str(f"#{index + 1} {percent:.0f}%")

    def on_overall_progress(self, percent: float, completed: int, total: int) -> None:
        if self._bar is None:
            self._bar = tqdm(
                total=total,
                desc="Uploading",
                unit="file",
                disable=not self.show_progress,
            )
        self._bar.update(completed - self.completed)
        self.completed = completed
        self.total = total
        if completed == total:
            self.close()

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None

    def show_validation(self, result: BatchValidationResult) -> None:
        """Print accepted files and validation errors."""
        if result.valid_files:
            table = Table(title=f"Accepted ({len(result.valid_files)})", show_header=True)
            table.add_column("#", style="dim")
            table.add_column("Name")
            table.add_column("Type")
            table.add_column("Size", justify="right")
            for i, file in enumerate(result.valid_files):
                table.add_row(str(i + 1), file.name, file.mime_type, format_file_size(file.size_bytes))
            self.console.print(table)
            self.console.print(f"Total size: {format_file_size(result.total_size)}")

        if result.errors:
            self.console.print(f"\n[red]Validation failed ({len(result.errors)} errors):[/red]")
            for error in result.errors:
                self.console.print(f"  {error}")

    def show_results(self, results: Sequence[FileResult], files: Sequence[FileHandle]) -> None:
        """Print a summary of a finished batch."""
        succeeded = sum(1 for r in results if r.success)
        failed = [r for r in results if not r.success]

        self.console.print(f"\n[green]Uploaded: {succeeded}[/green]")
        if failed:
            self.console.print(f"[red]Failed: {len(failed)}[/red]")
            for r in failed[:10]:
                self.console.print(f"  {files[r.index].name}: {r.error}")
