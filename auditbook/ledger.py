from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path, PurePath
from typing import List, Optional, Tuple

from . import config


class AccountingMode(str, Enum):
    ACCRUAL = "accrual"
    CASH_BASIS = "cash-basis"


def normalize_whitespace(text: str) -> str:
    # split() without arguments collapses space, tab, CR and LF runs
    return " ".join((text or "").split())


@dataclass(frozen=True)
class Transaction:
    unique: str
    section: str
    date: Optional[date]
    ident: str
    path: str
    description: str = ""
    account_debit: str = ""
    account_credit: str = ""
    amount: str = ""
    amount_currency: str = ""
    exchange_currency: str = ""
    exchange_rate: str = ""
    # cash basis accounting
    account: str = ""
    category: str = ""
    income: str = ""
    expenses: str = ""
    cost_center: str = ""
    cost_center_description: str = ""

    @property
    def formatted_date(self) -> str:
        if self.date is None:
            return ""
        return self.date.strftime(config.DATE_FORMAT)

    @property
    def normalized_description(self) -> str:
        return normalize_whitespace(self.description)

    @property
    def is_cash_basis(self) -> bool:
        return bool(self.income or self.expenses or self.category)

    @property
    def is_immaterial(self) -> bool:
        return not self.account and not self.category and bool(self.cost_center)

    def is_foreign(self, base_currency: str) -> bool:
        if not self.exchange_currency or not base_currency:
            return False
        return self.exchange_currency != base_currency


@dataclass(frozen=True)
class Document:
    """All transactions citing one linked source file."""

    path: str
    transactions: Tuple[Transaction, ...]
    staging_id: str
    # linked path exactly as written in the journal, untrimmed
    raw_path: str = ""
    resolved_path: Optional[Path] = None
    is_valid_file: bool = False
    page_count: int = 0

    @property
    def title(self) -> str:
        return PurePath(self.path).stem

    def ident_list(self) -> List[str]:
        idents: List[str] = []
        for tx in self.transactions:
            if tx.ident not in idents:
                idents.append(tx.ident)
        return idents

    def ident_string(self) -> str:
        return ", ".join(ident for ident in self.ident_list() if ident)


@dataclass(frozen=True)
class Dossier:
    company_name: str
    street: str
    zip_code: str
    place: str
    base_currency: str
    period_start: Optional[date]
    period_end: Optional[date]
    last_saved: str
    accounting_file_path: str
    source_path: Optional[Path] = None
    mode: AccountingMode = AccountingMode.ACCRUAL
    documents: Tuple[Document, ...] = field(default_factory=tuple)

    @property
    def accounting_file_name(self) -> str:
        return PurePath(self.accounting_file_path.replace("\\", "/")).name

    def formatted_period(self) -> str:
        start = self.period_start.strftime(config.DATE_FORMAT) if self.period_start else config.UNKNOWN_STR
        end = self.period_end.strftime(config.DATE_FORMAT) if self.period_end else config.UNKNOWN_STR
        return f"{start} – {end}"

    def resolve_relative_path(self, path: str) -> Path:
        """Resolve a linked document path against the export's directory."""
        candidate = Path(path.strip())
        if candidate.is_absolute():
            return candidate.resolve()
        if self.source_path is None:
            raise ValueError(f"cannot resolve '{path}' without the accounting file location")
        return (Path(self.source_path).resolve().parent / candidate).resolve()


@dataclass(frozen=True)
class EmbedFailure:
    """One failed embed, as reported to the operator and the run journal."""

    document_path: str
    embed_page: int
    stage: str
    cause: str
    resolved_path: Optional[Path] = None
