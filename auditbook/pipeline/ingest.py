from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from lxml import etree

from ..config import UNKNOWN_STR
from ..errors import InputError
from ..ledger import AccountingMode, Dossier, Transaction
from .embed import page_count
from .grouping import group_by_document, inspect_documents


logger = logging.getLogger(__name__)

DATE_FORMATS = ("%Y-%m-%d", "%d.%m.%Y")

# File info ids, German export first.
FILE_INFO_IDS: Dict[str, Tuple[str, ...]] = {
    "company_name": ("Firma", "Company"),
    "street": ("Adresse1", "Address1"),
    "zip_code": ("Postleitzahl", "Zip"),
    "place": ("Ort", "City"),
    "accounting_file_path": ("Dateiname", "FileName"),
    "base_currency": ("Basiswährung", "BasicCurrency"),
    "opening_date": ("Eröffnungsdatum", "OpeningDate"),
    "closure_date": ("Abschlussdatum", "ClosureDate"),
    "date_last_saved": ("DatumLetzteSpeicherung", "DateLastSaved"),
    "time_last_saved": ("ZeitLetzteSpeicherung", "TimeLastSaved"),
}

JOURNAL_FIELDS: Dict[str, str] = {
    "unique": "Unique",
    "section": "Section",
    "ident": "Doc",
    "path": "DocLink",
    "description": "Description",
    "account_debit": "AccountDebit",
    "account_credit": "AccountCredit",
    "amount": "Amount",
    "amount_currency": "AmountCurrency",
    "exchange_currency": "ExchangeCurrency",
    "exchange_rate": "ExchangeRate",
    "account": "Account",
    "category": "Category",
    "income": "Income",
    "expenses": "Expenses",
    "cost_center": "Cc3",
    "cost_center_description": "Cc3Des",
}


def parse_date(value: str) -> Optional[date]:
    value = (value or "").strip()
    if not value:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def read_tree(path: Path) -> etree._Element:
    if not path.exists():
        raise InputError(f"Accounting file not found: {path}")
    parser = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=True)
    try:
        root = etree.parse(str(path), parser).getroot()
    except (etree.XMLSyntaxError, OSError) as exc:
        raise InputError(f"Cannot read accounting file {path}: {exc}") from exc
    if root.tag != "AC2":
        raise InputError(f"{path} is not an AC2 export (root element <{root.tag}>)")
    return root


def table_by_id(root: etree._Element, table_id: str) -> etree._Element:
    for table in root.iterfind("Table"):
        if table.get("ID") == table_id:
            return table
    raise InputError(f"no Table for ID '{table_id}' found")


def _rows(table: etree._Element) -> Iterable[etree._Element]:
    return table.iterfind("RowList/Row")


def _text(row: etree._Element, tag: str) -> str:
    return row.findtext(tag, default="") or ""


def file_info_values(table: etree._Element) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for row in _rows(table):
        key = _text(row, "IdXml")
        value = _text(row, "Value")
        if key and value and key not in values:
            values[key] = value
    return values


def guarded_value(values: Dict[str, str], field: str) -> str:
    value = _first_value(values, field)
    if value:
        return value
    logger.warning("couldn't find value for id '%s'", "/".join(FILE_INFO_IDS[field]))
    return UNKNOWN_STR


def guarded_date(values: Dict[str, str], field: str) -> Optional[date]:
    raw = guarded_value(values, field)
    if raw == UNKNOWN_STR:
        return None
    parsed = parse_date(raw)
    if parsed is None:
        logger.warning("cannot parse date '%s' for '%s'", raw, field)
    return parsed


def transaction_from_row(row: etree._Element) -> Transaction:
    values = {field: _text(row, tag) for field, tag in JOURNAL_FIELDS.items()}
    return Transaction(date=parse_date(_text(row, "Date")), **values)


def journal_from_table(table: etree._Element) -> List[Transaction]:
    journal: List[Transaction] = []
    for row in _rows(table):
        if _text(row, "Section") == "*" or not _text(row, "DocLink").strip():
            continue
        journal.append(transaction_from_row(row))
    return journal


def _first_value(values: Dict[str, str], field: str) -> str:
    return next((values[key] for key in FILE_INFO_IDS[field] if values.get(key)), "")


def _last_saved(values: Dict[str, str]) -> str:
    parts = (_first_value(values, "date_last_saved"), _first_value(values, "time_last_saved"))
    stamp = " ".join(part for part in parts if part)
    if not stamp:
        logger.warning("couldn't find the last saved timestamp")
        return UNKNOWN_STR
    return stamp


def detect_mode(transactions: Iterable[Transaction]) -> AccountingMode:
    if any(tx.is_cash_basis for tx in transactions):
        return AccountingMode.CASH_BASIS
    return AccountingMode.ACCRUAL


def load_dossier(path: Path, mode: AccountingMode | None = None, inspect: bool = True) -> Dossier:
    """Read a Banana AC2 XML export into a Dossier.

    Missing file info values are replaced by UNKNOWN_STR; only an unreadable
    file or a missing Journal/FileInfo table raises InputError.
    """
    path = Path(path)
    root = read_tree(path)
    journal = journal_from_table(table_by_id(root, "Journal"))
    values = file_info_values(table_by_id(root, "FileInfo"))

    base_currency = guarded_value(values, "base_currency")
    dossier = Dossier(
        company_name=guarded_value(values, "company_name"),
        street=guarded_value(values, "street"),
        zip_code=guarded_value(values, "zip_code"),
        place=guarded_value(values, "place"),
        base_currency="" if base_currency == UNKNOWN_STR else base_currency,
        period_start=guarded_date(values, "opening_date"),
        period_end=guarded_date(values, "closure_date"),
        last_saved=_last_saved(values),
        accounting_file_path=guarded_value(values, "accounting_file_path"),
        source_path=path.resolve(),
        mode=mode or detect_mode(journal),
    )
    documents = group_by_document(journal)
    if inspect:
        documents = inspect_documents(documents, dossier.resolve_relative_path, page_count)
    logger.info("Loaded %d transactions in %d documents from %s", len(journal), len(documents), path)
    return replace(dossier, documents=tuple(documents))
