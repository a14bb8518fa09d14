from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .. import config
from ..config import ReportSettings, load_settings
from ..errors import OutputError, ReportError
from ..ledger import AccountingMode, Dossier, EmbedFailure
from ..models import RunStatus
from ..storage import record_run
from .ingest import load_dossier
from .layout import LayoutEngine
from .surface import ReportSurface


logger = logging.getLogger(__name__)


@dataclass
class ReportResult:
    output_path: Path
    mode: AccountingMode
    documents: int = 0
    pages: int = 0
    failures: List[EmbedFailure] = field(default_factory=list)


def _temp_path(output_path: Path) -> Path:
    return output_path.with_name(f".{output_path.name}.tmp")


def render_report(
    dossier: Dossier,
    output_path: Path,
    settings: Optional[ReportSettings] = None,
    generated_at: Optional[datetime] = None,
) -> ReportResult:
    """Lay out every document of ``dossier`` into one PDF at ``output_path``.

    The PDF is written next to the target first and moved into place once
    complete, so a failed write never leaves a truncated report behind.
    """
    settings = settings or load_settings()
    output_path = Path(output_path)
    temp_path = _temp_path(output_path)
    if not dossier.documents:
        logger.warning("No transactions with linked documents; the report is empty")

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        surface = ReportSurface(temp_path, settings)
        engine = LayoutEngine(dossier, settings, surface, generated_at=generated_at)
        failures = engine.build()
        surface.save()
        temp_path.replace(output_path)
    except OSError as exc:
        temp_path.unlink(missing_ok=True)
        raise OutputError(f"Cannot write report to {output_path}: {exc}") from exc

    logger.info(
        "Wrote %d pages for %d documents to %s (%d embed failures)",
        surface.page_number,
        len(dossier.documents),
        output_path,
        len(failures),
    )
    return ReportResult(
        output_path=output_path,
        mode=dossier.mode,
        documents=len(dossier.documents),
        pages=surface.page_number,
        failures=failures,
    )


def build_report(
    input_path: Path,
    output_path: Path,
    mode: Optional[AccountingMode] = None,
    settings: Optional[ReportSettings] = None,
    generated_at: Optional[datetime] = None,
) -> ReportResult:
    dossier = load_dossier(Path(input_path), mode=mode)
    return render_report(dossier, output_path, settings=settings, generated_at=generated_at)


def _journal(input_path: Path, output_path: Path, status: RunStatus, **fields) -> None:
    try:
        record_run(input_path, output_path, status, **fields)
    except (SQLAlchemyError, OSError):
        logger.exception("Could not record the run in %s", config.DB_PATH)


def run_build(
    input_path: Path,
    output_path: Path,
    mode: Optional[AccountingMode] = None,
    settings: Optional[ReportSettings] = None,
    journal: bool = True,
) -> ReportResult:
    """Build a report and record the outcome in the run journal.

    A journal that cannot be written is logged and does not fail the build.
    """
    try:
        result = build_report(input_path, output_path, mode=mode, settings=settings)
    except ReportError as exc:
        logger.error("Report build failed for %s: %s", input_path, exc)
        if journal:
            _journal(
                input_path,
                output_path,
                RunStatus.FAILED,
                mode=mode.value if mode else None,
                fail_code=type(exc).__name__,
                fail_detail=str(exc),
            )
        raise

    if journal:
        _journal(
            input_path,
            output_path,
            RunStatus.READY,
            failures=result.failures,
            mode=result.mode.value,
            documents=result.documents,
            pages=result.pages,
        )
    return result
