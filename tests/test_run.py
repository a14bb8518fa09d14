from __future__ import annotations

from datetime import datetime
from pathlib import Path

import fitz
import pytest
from typer.testing import CliRunner

from auditbook.errors import InputError, OutputError
from auditbook.main import app
from auditbook.models import RunStatus
from auditbook.pipeline import embed
from auditbook.pipeline.run import build_report, run_build
from auditbook.storage import list_failures, list_runs
from conftest import journal_row, make_pdf, write_ac2


runner = CliRunner()


def test_fifty_documents_one_missing(accounting_dir: Path, tmp_path: Path) -> None:
    rows = []
    for number in range(1, 50):
        make_pdf(accounting_dir / "docs" / f"doc_{number:02d}.pdf", label=f"Doc {number}")
        rows.append(journal_row(f"B{number:02d}", f"docs/doc_{number:02d}.pdf"))
    rows.append(journal_row("B50", "docs/doc_50.pdf"))
    export = write_ac2(accounting_dir / "books.xml", rows)
    output = tmp_path / "report" / "books.pdf"

    result = build_report(export, output, generated_at=datetime(2024, 2, 1, 9, 0))

    assert result.documents == 50
    assert result.pages == 50
    assert [failure.document_path for failure in result.failures] == ["docs/doc_50.pdf"]
    with fitz.open(str(output)) as doc:
        assert doc.page_count == 50
    assert not (output.parent / ".books.pdf.tmp").exists()


def test_empty_journal_gives_empty_report(tmp_path: Path) -> None:
    export = write_ac2(tmp_path / "empty.xml", [])
    result = build_report(export, tmp_path / "empty.pdf")
    assert result.documents == 0
    assert result.failures == []
    assert (tmp_path / "empty.pdf").exists()


def test_unwritable_output_raises(sample_export: Path, tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    with pytest.raises(OutputError):
        build_report(sample_export, blocker / "report.pdf")


def test_run_build_records_ready_run(sample_export: Path, tmp_path: Path) -> None:
    result = run_build(sample_export, tmp_path / "report.pdf")

    runs = list_runs()
    assert len(runs) == 1
    assert runs[0].status == RunStatus.READY
    assert runs[0].page_count == result.pages == 4
    assert runs[0].failure_count == 1
    assert runs[0].mode == "accrual"

    failures = list_failures(run_id=runs[0].id)
    assert [(record.document_path, record.stage) for record in failures] == [("receipts/missing.pdf", "exists")]


def test_run_build_records_failed_run(tmp_path: Path) -> None:
    with pytest.raises(InputError):
        run_build(tmp_path / "nope.xml", tmp_path / "report.pdf")

    runs = list_runs()
    assert len(runs) == 1
    assert runs[0].status == RunStatus.FAILED
    assert runs[0].fail_code == "InputError"


def test_run_build_without_journal(sample_export: Path, tmp_path: Path) -> None:
    run_build(sample_export, tmp_path / "report.pdf", journal=False)
    assert list_runs() == []


def test_cli_build_reports_failures_and_exits_zero(sample_export: Path, tmp_path: Path, journal_dir: Path) -> None:
    output = tmp_path / "cli.pdf"
    result = runner.invoke(
        app,
        ["build", "-i", str(sample_export), "-o", str(output), "--out", str(journal_dir), "--mode", "ACCRUAL"],
    )
    assert result.exit_code == 0, result.output
    assert "DOCUMENTS: 3" in result.output
    assert "PAGES: 4" in result.output
    assert "EMBED FAILURES: 1" in result.output
    assert output.exists()

    listed = runner.invoke(app, ["failures", "--out", str(journal_dir)])
    assert listed.exit_code == 0
    assert "receipts/missing.pdf (page 1) exists:" in listed.output


def test_cli_build_missing_input_exits_one(tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["build", "-i", str(tmp_path / "nope.xml"), "-o", str(tmp_path / "x.pdf"), "--no-journal"]
    )
    assert result.exit_code == 1
    assert not (tmp_path / "x.pdf").exists()


def test_cli_failures_empty_journal(journal_dir: Path) -> None:
    result = runner.invoke(app, ["failures", "--out", str(journal_dir)])
    assert result.exit_code == 0
    assert "No embed failures recorded" in result.output


def test_source_that_breaks_pymupdf_does_not_abort_the_run(accounting_dir: Path, tmp_path: Path, monkeypatch) -> None:
    make_pdf(accounting_dir / "good.pdf")
    make_pdf(accounting_dir / "weird.pdf")
    export = write_ac2(
        accounting_dir / "books.xml",
        [journal_row("G1", "good.pdf"), journal_row("W1", "weird.pdf")],
    )
    real_open = fitz.open

    def fussy_open(*args, **kwargs):
        if args and str(args[0]).endswith("weird.pdf"):
            raise KeyError("xref")
        return real_open(*args, **kwargs)

    monkeypatch.setattr(embed.fitz, "open", fussy_open)
    output = tmp_path / "books.pdf"
    result = build_report(export, output)

    assert result.pages == 2
    assert [(f.document_path, f.stage) for f in result.failures] == [("weird.pdf", "import")]
    assert "KeyError('xref')" in result.failures[0].cause
    with real_open(str(output)) as doc:
        assert doc[0].get_images()
        weird_text = " ".join(doc[1].get_text().split())
    assert "embedding file" in weird_text
