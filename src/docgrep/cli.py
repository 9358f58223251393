"""Command line interface for DocGrep."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from docgrep.config import AppConfig
from docgrep.errors import DocGrepError
from docgrep.ingestion.pdf_loader import PdfTextExtractor
from docgrep.search.searcher import CorpusSearcher


console = Console()
app = typer.Typer(help="DocGrep - find the PDFs that contain a piece of text")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _format_size(size: Optional[int]) -> str:
    if size is None:
        return "-"
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


@app.command()
def search(
    folder: Path = typer.Argument(..., help="Folder to search recursively."),
    query: str = typer.Argument(..., help="Text to look for (case-insensitive)."),
    ext: List[str] = typer.Option(
        list(AppConfig().extensions), "--ext", help="File extensions to search."
    ),
    workers: Optional[int] = typer.Option(None, help="Parallel extractions (default: CPU count)"),
    timeout: float = typer.Option(
        AppConfig().extraction_timeout, help="Per-document extraction timeout in seconds"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Search every document under FOLDER for QUERY."""
    _setup_logging(verbose)
    config = AppConfig(extensions=tuple(ext), extraction_timeout=timeout, max_workers=workers)
    searcher = CorpusSearcher(
        PdfTextExtractor(timeout=config.extraction_timeout), max_workers=config.max_workers
    )

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Searching", total=None)

        def _on_progress(processed: int, total: int) -> None:
            progress.update(task, completed=processed, total=total)

        try:
            report = searcher.search_directory(
                folder,
                query,
                extensions=config.normalized_extensions(),
                progress=_on_progress,
            )
        except DocGrepError as exc:
            raise typer.BadParameter(exc.message) from exc

    if report.message:
        console.print(f"[yellow]{report.message}.[/yellow]")
        return

    if report.matches:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Document")
        table.add_column("Path")
        table.add_column("Size", justify="right")
        for match in report.matches:
            table.add_row(match.display_name, match.relative_path or match.identifier, _format_size(match.size_bytes))
        console.print(table)
    else:
        console.print("[yellow]No matches found.[/yellow]")

    console.print(
        f"Matched {report.matching_count} of {report.total_documents} documents "
        f"in {report.elapsed_seconds:.2f}s"
        + (f" ([red]{report.failed_documents} could not be read[/red])" if report.failed_documents else "")
    )


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(3000, help="Server port"),
    ttl: float = typer.Option(AppConfig().session_ttl, help="Upload session lifetime in seconds"),
    upload_dir: Path = typer.Option(None, "--upload-dir", help="Where uploaded files are kept"),
    max_files: int = typer.Option(AppConfig().max_upload_files, help="Max files per upload"),
    max_file_size: int = typer.Option(
        AppConfig().max_upload_bytes, help="Max size of one uploaded file in bytes"
    ),
    workers: Optional[int] = typer.Option(None, help="Parallel extractions per search"),
    timeout: float = typer.Option(
        AppConfig().extraction_timeout, help="Per-document extraction timeout in seconds"
    ),
) -> None:
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - defensive
        raise typer.BadParameter(
            "uvicorn is not installed. Install it with \"python -m pip install uvicorn\""
        ) from exc

    from docgrep.web.app import create_app

    config = AppConfig(
        session_ttl=ttl,
        upload_dir=upload_dir,
        max_upload_files=max_files,
        max_upload_bytes=max_file_size,
        max_workers=workers,
        extraction_timeout=timeout,
    )
    web_app = create_app(config)

    console.print(f"Starting DocGrep API on http://{host}:{port} (uploads: {config.resolve_upload_dir()})")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    app()
