from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from auditbook.config import UNKNOWN_STR
from auditbook.errors import InputError
from auditbook.ledger import AccountingMode
from auditbook.pipeline.ingest import load_dossier, parse_date
from conftest import DEFAULT_FILE_INFO, journal_row, write_ac2


def test_load_sample_export(sample_export: Path) -> None:
    dossier = load_dossier(sample_export)

    assert dossier.company_name == "Muster GmbH"
    assert dossier.street == "Hauptstrasse 1"
    assert dossier.zip_code == "10115"
    assert dossier.place == "Berlin"
    assert dossier.base_currency == "EUR"
    assert dossier.period_start == date(2023, 1, 1)
    assert dossier.period_end == date(2023, 12, 31)
    assert dossier.last_saved == "15.01.2024 10:30:00"
    assert dossier.accounting_file_name == "muster_2023.ac2"
    assert dossier.mode is AccountingMode.ACCRUAL


def test_journal_filters_and_grouping(sample_export: Path) -> None:
    dossier = load_dossier(sample_export)
    by_path = {doc.path: doc for doc in dossier.documents}

    assert [doc.path for doc in dossier.documents] == [
        "receipts/aws_2023-10.pdf",
        "receipts/hetzner_2023-10.pdf",
        "receipts/missing.pdf",
    ]
    # Section "*" row R6 and unlinked row R5 are dropped
    idents = [tx.ident for doc in dossier.documents for tx in doc.transactions]
    assert sorted(idents) == ["R1", "R2", "R3", "R4"]
    assert by_path["receipts/hetzner_2023-10.pdf"].ident_string() == "R1, R2"

    foreign = by_path["receipts/aws_2023-10.pdf"].transactions[0]
    assert foreign.exchange_currency == "USD"
    assert foreign.amount_currency == "100.00"
    assert foreign.is_foreign(dossier.base_currency)


def test_documents_are_inspected(sample_export: Path) -> None:
    by_path = {doc.path: doc for doc in load_dossier(sample_export).documents}

    hetzner = by_path["receipts/hetzner_2023-10.pdf"]
    assert hetzner.is_valid_file
    assert hetzner.page_count == 2
    assert hetzner.resolved_path == (sample_export.parent / "receipts" / "hetzner_2023-10.pdf").resolve()

    missing = by_path["receipts/missing.pdf"]
    assert not missing.is_valid_file
    assert missing.page_count == 0


def test_skip_inspection(sample_export: Path) -> None:
    documents = load_dossier(sample_export, inspect=False).documents
    assert all(doc.resolved_path is None and not doc.is_valid_file for doc in documents)


def test_missing_file_info_values_use_sentinel(tmp_path: Path) -> None:
    info = {key: value for key, value in DEFAULT_FILE_INFO.items() if key not in ("Ort", "Basiswährung", "Abschlussdatum")}
    export = write_ac2(tmp_path / "partial.xml", [journal_row("A1", "a.pdf")], file_info=info)

    dossier = load_dossier(export, inspect=False)
    assert dossier.place == UNKNOWN_STR
    assert dossier.base_currency == ""
    assert dossier.period_end is None
    assert dossier.formatted_period() == f"01.01.2023 – {UNKNOWN_STR}"


def test_english_file_info_ids(tmp_path: Path) -> None:
    info = {
        "Company": "Example Ltd",
        "Address1": "1 High Street",
        "Zip": "EC1A",
        "City": "London",
        "FileName": "/home/books/example.ac2",
        "BasicCurrency": "GBP",
        "OpeningDate": "2023-04-01",
        "ClosureDate": "2024-03-31",
        "DateLastSaved": "2024-04-02",
    }
    export = write_ac2(tmp_path / "english.xml", [journal_row("A1", "a.pdf")], file_info=info)

    dossier = load_dossier(export, inspect=False)
    assert dossier.company_name == "Example Ltd"
    assert dossier.base_currency == "GBP"
    assert dossier.period_start == date(2023, 4, 1)
    assert dossier.last_saved == "2024-04-02"
    assert dossier.accounting_file_name == "example.ac2"


def test_cash_basis_detected(tmp_path: Path) -> None:
    rows = [
        journal_row("K1", "a.pdf", Income="50.00", Account="1000", Category="3000"),
        journal_row("K2", "a.pdf", Cc3="CC1"),
    ]
    export = write_ac2(tmp_path / "cash.xml", rows)

    dossier = load_dossier(export, inspect=False)
    assert dossier.mode is AccountingMode.CASH_BASIS
    immaterial = [tx for tx in dossier.documents[0].transactions if tx.is_immaterial]
    assert [tx.ident for tx in immaterial] == ["K2"]


def test_explicit_mode_wins(tmp_path: Path) -> None:
    export = write_ac2(tmp_path / "cash.xml", [journal_row("K1", "a.pdf", Income="50.00")])
    assert load_dossier(export, mode=AccountingMode.ACCRUAL, inspect=False).mode is AccountingMode.ACCRUAL


def test_parse_date() -> None:
    assert parse_date("2023-10-01") == date(2023, 10, 1)
    assert parse_date("01.10.2023") == date(2023, 10, 1)
    assert parse_date("") is None
    assert parse_date("yesterday") is None


def test_missing_export_raises(tmp_path: Path) -> None:
    with pytest.raises(InputError, match="not found"):
        load_dossier(tmp_path / "nope.xml")


def test_malformed_export_raises(tmp_path: Path) -> None:
    broken = tmp_path / "broken.xml"
    broken.write_text("<AC2><Table ID='Journal'>", encoding="utf-8")
    with pytest.raises(InputError):
        load_dossier(broken)


def test_wrong_root_raises(tmp_path: Path) -> None:
    other = tmp_path / "other.xml"
    other.write_text("<Invoice/>", encoding="utf-8")
    with pytest.raises(InputError, match="not an AC2 export"):
        load_dossier(other)


def test_missing_journal_table_raises(tmp_path: Path) -> None:
    export = tmp_path / "nojournal.xml"
    export.write_text("<AC2><Table ID='FileInfo'><RowList/></Table></AC2>", encoding="utf-8")
    with pytest.raises(InputError, match="Journal"):
        load_dossier(export)
