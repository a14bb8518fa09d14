from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel, create_engine, Session

from . import config


class RunStatus(str, Enum):
    READY = "READY"
    FAILED = "FAILED"


class ReportRun(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    input_path: str
    output_path: str
    status: RunStatus = Field(default=RunStatus.READY)
    mode: Optional[str] = None
    document_count: int = 0
    page_count: int = 0
    failure_count: int = 0
    fail_code: Optional[str] = None
    fail_detail: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)


class EmbedFailureRecord(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    run_id: int = Field(foreign_key="reportrun.id", index=True)
    document_path: str
    resolved_path: Optional[str] = None
    embed_page: int = 1
    stage: str
    cause: str
    created_at: datetime = Field(default_factory=datetime.now)


engine = create_engine(f"sqlite:///{config.DB_PATH}")


def reset_engine() -> None:
    global engine
    engine = create_engine(f"sqlite:///{config.DB_PATH}")


def init_db() -> None:
    config.OUT_DIR.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(engine)


def get_session() -> Session:
    return Session(engine, expire_on_commit=False)
