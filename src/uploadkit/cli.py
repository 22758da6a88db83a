"""CLI entrypoint for uploadkit."""

import asyncio
import logging
from pathlib import Path
from typing import Annotated

import dotenv
import requests
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from uploadkit.config import (
    ENDPOINT_ENV_VAR,
    CompressionConfig,
    PipelineConfig,
    load_pipeline_config,
)
from uploadkit.errors import ConfigError, DecodeError
from uploadkit.files.handle import FileHandle

app = typer.Typer(
    name="uploadkit",
    help="Validate, preview, compress and upload batches of files",
    no_args_is_help=True,
)
console = Console()

# Default config path (relative to package root: src/uploadkit/cli.py -> repo root)
PACKAGE_ROOT = Path(__file__).parent.parent.parent
DEFAULT_CONFIG = PACKAGE_ROOT / "configs" / "uploadkit.yaml"

ConfigOption = Annotated[Path | None, typer.Option("--config", "-c", help="Pipeline config path")]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
):
    """Set up logging and load .env for all commands."""
    dotenv.load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_config(config: Path | None) -> PipelineConfig:
    try:
        if config is not None:
            return load_pipeline_config(config)
        if DEFAULT_CONFIG.exists():
            return load_pipeline_config(DEFAULT_CONFIG)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e
    return PipelineConfig()


def _open_files(paths: list[Path]) -> list[FileHandle]:
    try:
        return [FileHandle.from_path(p) for p in paths]
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e


@app.command()
def validate(
    files: Annotated[list[Path], typer.Argument(help="Files to validate")],
    config: ConfigOption = None,
    max_files: Annotated[int | None, typer.Option(help="Maximum files per batch")] = None,
    allowed_type: Annotated[
        list[str] | None, typer.Option(help="Allowed MIME type (repeatable)")
    ] = None,
    max_total_size: Annotated[int | None, typer.Option(help="Total size cap in bytes")] = None,
):
    """Check files against the type, size and count policy."""
    from uploadkit.files.validation import validate_batch
    from uploadkit.render import ConsoleRenderer

    policy = _load_config(config).validation
    updates = {
        "max_files": max_files,
        "allowed_types": allowed_type,
        "max_total_size": max_total_size,
    }
    policy = policy.model_copy(update={k: v for k, v in updates.items() if v is not None})

    result = validate_batch(
        _open_files(files),
        max_files=policy.max_files,
        allowed_types=policy.allowed_types,
        max_total_size=policy.max_total_size,
        max_size=policy.max_size,
    )
    ConsoleRenderer(console).show_validation(result)

    if not result.valid:
        raise typer.Exit(1)
    console.print("\n[green]All files valid.[/green]")


@app.command()
def preview(
    files: Annotated[list[Path], typer.Argument(help="Files to preview")],
    config: ConfigOption = None,
):
    """Show preview metadata for files."""
    from uploadkit.files.validation import get_orientation
    from uploadkit.media.preview import IconPreview, VideoPreview, generate_previews

    handles = _open_files(files)
    previews = asyncio.run(generate_previews(handles, _load_config(config).preview))

    table = Table(title="Previews", show_header=True)
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Size", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Detail")

    for file, result in zip(handles, previews):
        if result is None:
            table.add_row(file.name, "[red]error[/red]", "", "", "")
        elif isinstance(result, IconPreview):
            table.add_row(file.name, result.type, "", "", result.icon)
        else:
            size = ""
            if result.width and result.height:
                orientation = get_orientation(result.width, result.height)
                size = f"{result.width}x{result.height} ({orientation})"
            duration = f"{result.duration:.1f}s" if isinstance(result, VideoPreview) else ""
            table.add_row(file.name, result.type, size, duration, f"{len(result.url)} chars")

    console.print(table)


@app.command()
def compress(
    file: Annotated[Path, typer.Argument(help="Image to compress")],
    output: Annotated[Path, typer.Option("--output", "-o", help="Output file")],
    max_width: Annotated[int, typer.Option(help="Maximum width")] = 1920,
    max_height: Annotated[int, typer.Option(help="Maximum height")] = 1080,
    quality: Annotated[float, typer.Option(help="Quality between 0 and 1")] = 0.8,
    image_format: Annotated[str, typer.Option("--format", help="Output MIME type")] = "image/jpeg",
):
    """Resize and re-encode an image."""
    from uploadkit.files.validation import format_file_size
    from uploadkit.media.process import compress_image

    try:
        settings = CompressionConfig(
            enabled=True,
            max_width=max_width,
            max_height=max_height,
            quality=quality,
            format=image_format,
        )
    except ValueError as e:
        console.print(f"[red]Invalid options: {e}[/red]")
        raise typer.Exit(1) from e

    handle = _open_files([file])[0]
    try:
        compressed = asyncio.run(compress_image(handle, settings))
    except DecodeError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    output.write_bytes(compressed.read_bytes())
    console.print(
        f"[green]{file.name}: {format_file_size(handle.size_bytes)} -> "
        f"{format_file_size(compressed.size_bytes)}[/green]"
    )
    console.print(f"Saved to {output}")


@app.command()
def upload(
    files: Annotated[list[Path], typer.Argument(help="Files to upload")],
    endpoint: Annotated[
        str, typer.Option("--endpoint", "-e", help="Upload URL", envvar=ENDPOINT_ENV_VAR)
    ],
    config: ConfigOption = None,
    concurrency: Annotated[int | None, typer.Option(help="Uploads in flight at once")] = None,
    compress_images: Annotated[bool, typer.Option("--compress", help="Compress images first")] = False,
    timeout: Annotated[float | None, typer.Option(help="Per-file timeout in seconds")] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Validate only, don't upload")] = False,
):
    """Validate and upload a batch of files."""
    from uploadkit.pipeline.session import create_batch_session
    from uploadkit.render import ConsoleRenderer

    pipeline_config = _load_config(config)
    upload_config = pipeline_config.upload
    if concurrency is not None:
        upload_config = upload_config.model_copy(update={"concurrency": concurrency})
    if timeout is not None:
        upload_config = upload_config.model_copy(update={"timeout": timeout})
    if compress_images:
        compression = upload_config.compression.model_copy(update={"enabled": True})
        upload_config = upload_config.model_copy(update={"compression": compression})
    pipeline_config = pipeline_config.model_copy(update={"upload": upload_config})

    renderer = ConsoleRenderer(console)
    session = create_batch_session(
        pipeline_config,
        on_file_add=renderer.on_file_add,
        on_file_remove=renderer.on_file_remove,
    )

    console.print(f"[bold]Validating {len(files)} files...[/bold]")
    result = session.add_files(_open_files(files))
    renderer.show_validation(result)

    if not result.valid:
        console.print("[red]Nothing uploaded.[/red]")
        raise typer.Exit(1)

    if dry_run:
        console.print("\n[yellow]DRY RUN - no files uploaded[/yellow]")
        return

    console.print(f"\n[bold]Uploading to {endpoint}...[/bold]")
    with requests.Session() as http:
        results = asyncio.run(
            session.upload(
                endpoint,
                on_file_progress=renderer.on_file_progress,
                on_overall_progress=renderer.on_overall_progress,
                http=http,
            )
        )
    renderer.close()
    renderer.show_results(results, session.files)

    if any(not r.success for r in results):
        raise typer.Exit(1)


@app.command()
def version():
    """Show version information."""
    from uploadkit import __version__

    console.print(f"uploadkit version {__version__}")


if __name__ == "__main__":
    app()
