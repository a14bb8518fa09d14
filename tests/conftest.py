from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest
from lxml import etree
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from auditbook import config
from auditbook.models import reset_engine


DEFAULT_FILE_INFO = {
    "Firma": "Muster GmbH",
    "Adresse1": "Hauptstrasse 1",
    "Postleitzahl": "10115",
    "Ort": "Berlin",
    "Dateiname": "C:\\Buchhaltung\\muster_2023.ac2",
    "Basiswährung": "EUR",
    "Eröffnungsdatum": "01.01.2023",
    "Abschlussdatum": "31.12.2023",
    "DatumLetzteSpeicherung": "15.01.2024",
    "ZeitLetzteSpeicherung": "10:30:00",
}


def make_pdf(path: Path, pages: int = 1, pagesize=A4, label: str = "Invoice") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    canv = canvas.Canvas(str(path), pagesize=pagesize)
    for number in range(1, pages + 1):
        canv.setFont("Helvetica", 24)
        canv.drawString(72, pagesize[1] - 96, f"{label} page {number}")
        canv.showPage()
    canv.save()
    return path


def write_ac2(path: Path, rows: Iterable[Dict[str, str]], file_info: Optional[Dict[str, str]] = None) -> Path:
    root = etree.Element("AC2", version="1.0")
    info_table = etree.SubElement(root, "Table", ID="FileInfo")
    info_rows = etree.SubElement(info_table, "RowList")
    for key, value in (DEFAULT_FILE_INFO if file_info is None else file_info).items():
        row = etree.SubElement(info_rows, "Row")
        etree.SubElement(row, "IdXml").text = key
        etree.SubElement(row, "Value").text = value

    journal = etree.SubElement(root, "Table", ID="Journal")
    journal_rows = etree.SubElement(journal, "RowList")
    for index, values in enumerate(rows, start=1):
        row = etree.SubElement(journal_rows, "Row", ID=str(index))
        etree.SubElement(row, "Unique").text = str(index)
        for tag, value in values.items():
            etree.SubElement(row, tag).text = value

    path.parent.mkdir(parents=True, exist_ok=True)
    etree.ElementTree(root).write(str(path), encoding="utf-8", xml_declaration=True)
    return path


def journal_row(ident: str, link: str, amount: str = "100.00", **extra: str) -> Dict[str, str]:
    row = {
        "Date": "2023-10-01",
        "Doc": ident,
        "DocLink": link,
        "Description": f"Booking {ident}",
        "AccountDebit": "6000",
        "AccountCredit": "1200",
        "Amount": amount,
    }
    row.update(extra)
    return row


@pytest.fixture(autouse=True)
def journal_dir(tmp_path: Path) -> Path:
    out_dir = tmp_path / "journal"
    config.set_out_dir(out_dir)
    reset_engine()
    return out_dir


@pytest.fixture
def accounting_dir(tmp_path: Path) -> Path:
    path = tmp_path / "accounting"
    path.mkdir()
    return path


@pytest.fixture
def sample_export(accounting_dir: Path) -> Path:
    make_pdf(accounting_dir / "receipts" / "hetzner_2023-10.pdf", pages=2, label="Hetzner")
    make_pdf(accounting_dir / "receipts" / "aws_2023-10.pdf", pages=1, label="AWS")
    rows: List[Dict[str, str]] = [
        journal_row("R2", "receipts/hetzner_2023-10.pdf", "20.00"),
        journal_row("R1", "receipts/hetzner_2023-10.pdf", "10.00"),
        journal_row(
            "R3",
            "receipts/aws_2023-10.pdf",
            "92.35",
            AmountCurrency="100.00",
            ExchangeCurrency="USD",
            ExchangeRate="0.923512",
        ),
        journal_row("R4", "receipts/missing.pdf", "5.00"),
        journal_row("R5", "", "7.00"),
        journal_row("R6", "receipts/aws_2023-10.pdf", "1.00", Section="*"),
    ]
    return write_ac2(accounting_dir / "muster_2023.xml", rows)
