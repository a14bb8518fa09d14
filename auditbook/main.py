from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from . import config
from .errors import ReportError
from .ledger import AccountingMode
from .logging_setup import configure_logging
from .models import reset_engine
from .pipeline.run import run_build
from .storage import list_failures

app = typer.Typer(help="Audit report builder for accounting journals with linked source documents")


@app.command()
def build(
    input_path: Path = typer.Option(..., "--input", "-i", help="Path to the AC2 XML export"),
    output_path: Path = typer.Option(..., "--output", "-o", help="PDF output path"),
    mode: Optional[AccountingMode] = typer.Option(
        None, "--mode", case_sensitive=False, help="Accounting mode, detected from the journal when omitted"
    ),
    debug_cells: bool = typer.Option(False, "--debug-cells", help="Outline every text cell"),
    debug_lines: bool = typer.Option(False, "--debug-lines", help="Color table rules by kind"),
    journal: bool = typer.Option(True, "--journal/--no-journal", help="Record the run in the run journal"),
    out: Optional[Path] = typer.Option(None, "--out", help="Directory of the run journal"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level"),
) -> None:
    configure_logging(log_level)
    if out:
        config.set_out_dir(out)
        reset_engine()
    settings = config.load_settings(debug_cells=debug_cells, debug_lines=debug_lines)
    try:
        result = run_build(input_path, output_path, mode=mode, settings=settings, journal=journal)
    except ReportError as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"DOCUMENTS: {result.documents}")
    typer.echo(f"PAGES: {result.pages}")
    typer.echo(f"EMBED FAILURES: {len(result.failures)}")
    for failure in result.failures:
        typer.echo(
            f"FAILED: {failure.document_path} (page {failure.embed_page}) {failure.stage}: {failure.cause}",
            err=True,
        )


@app.command()
def failures(
    out: Optional[Path] = typer.Option(None, "--out", help="Directory of the run journal"),
    limit: int = typer.Option(50, "--limit", help="Number of failures to list"),
) -> None:
    if out:
        config.set_out_dir(out)
        reset_engine()
    records = list_failures(limit=limit)
    if not records:
        typer.echo("No embed failures recorded")
        return
    for record in records:
        typer.echo(f"#{record.run_id} {record.document_path} (page {record.embed_page}) {record.stage}: {record.cause}")


if __name__ == "__main__":
    app()
