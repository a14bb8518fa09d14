from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional

from sqlmodel import select

from .ledger import EmbedFailure
from .models import EmbedFailureRecord, ReportRun, RunStatus, get_session, init_db


def record_run(
    input_path: Path,
    output_path: Path,
    status: RunStatus,
    failures: Iterable[EmbedFailure] = (),
    mode: Optional[str] = None,
    documents: int = 0,
    pages: int = 0,
    fail_code: Optional[str] = None,
    fail_detail: Optional[str] = None,
) -> ReportRun:
    init_db()
    failures = list(failures)
    run = ReportRun(
        input_path=str(input_path),
        output_path=str(output_path),
        status=status,
        mode=mode,
        document_count=documents,
        page_count=pages,
        failure_count=len(failures),
        fail_code=fail_code,
        fail_detail=fail_detail,
    )
    with get_session() as session:
        session.add(run)
        session.commit()
        session.refresh(run)
        for failure in failures:
            session.add(
                EmbedFailureRecord(
                    run_id=run.id,
                    document_path=failure.document_path,
                    resolved_path=str(failure.resolved_path) if failure.resolved_path else None,
                    embed_page=failure.embed_page,
                    stage=failure.stage,
                    cause=failure.cause,
                )
            )
        session.commit()
    return run


def list_runs(limit: int = 20) -> List[ReportRun]:
    init_db()
    with get_session() as session:
        statement = select(ReportRun).order_by(ReportRun.id.desc()).limit(limit)
        return list(session.exec(statement))


def list_failures(limit: int = 50, run_id: Optional[int] = None) -> List[EmbedFailureRecord]:
    init_db()
    with get_session() as session:
        statement = select(EmbedFailureRecord)
        if run_id is not None:
            statement = statement.where(EmbedFailureRecord.run_id == run_id)
        statement = statement.order_by(EmbedFailureRecord.id.desc()).limit(limit)
        return list(session.exec(statement))
