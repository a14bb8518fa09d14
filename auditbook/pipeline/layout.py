from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Sequence, Tuple

from ..config import DATE_TIME_FORMAT, ReportSettings
from ..ledger import AccountingMode, Document, Dossier, EmbedFailure, Transaction
from .embed import fetch_page, scale_to_fit
from .overlay import draw_embed_errors
from .surface import ReportSurface
from .text_fit import fit_font_size, truncate_with_ellipsis


logger = logging.getLogger(__name__)

HEADER_MARGIN = 1.5
IDENT_MARGIN = 1.5
FOOTER_MARGIN = 0.5
EMBED_PADDING = 1.0
# Below this height (mm) the source page goes on a page of its own.
MIN_EMBED_HEIGHT = 60.0


@dataclass(frozen=True)
class Column:
    key: str
    label: str
    width: float  # 0 takes the remaining width
    align: str = "L"


@dataclass(frozen=True)
class ColumnSchema:
    columns: Tuple[Column, ...]
    foreign_amounts: bool
    mark_immaterial: bool

    def widths(self, area_width: float) -> List[float]:
        fixed = sum(column.width for column in self.columns)
        flexible = [column for column in self.columns if not column.width]
        rest = max(0.0, area_width - fixed) / max(1, len(flexible))
        return [column.width or rest for column in self.columns]


ACCRUAL_SCHEMA = ColumnSchema(
    columns=(
        Column("ident", "Doc", 23),
        Column("date", "Date", 14),
        Column("description", "Description", 0),
        Column("account_debit", "Debit", 14, "R"),
        Column("account_credit", "Credit", 14, "R"),
        Column("amount", "Amount", 20, "R"),
    ),
    foreign_amounts=True,
    mark_immaterial=False,
)

CASH_BASIS_SCHEMA = ColumnSchema(
    columns=(
        Column("ident", "Doc", 23),
        Column("date", "Date", 14),
        Column("description", "Description", 0),
        Column("account", "Account", 14, "R"),
        Column("category", "Category", 16, "R"),
        Column("income", "Income", 18, "R"),
        Column("expenses", "Expenses", 18, "R"),
    ),
    foreign_amounts=False,
    mark_immaterial=True,
)

SCHEMAS: Dict[AccountingMode, ColumnSchema] = {
    AccountingMode.ACCRUAL: ACCRUAL_SCHEMA,
    AccountingMode.CASH_BASIS: CASH_BASIS_SCHEMA,
}


def ident_group_starts(idents: Sequence[str]) -> List[int]:
    """Row indices that open a new run of equal idents."""
    starts: List[int] = []
    previous = None
    for index, ident in enumerate(idents):
        if index == 0 or ident != previous:
            starts.append(index)
        previous = ident
    return starts


@dataclass
class RenderCursor:
    embed_page: int = 1
    total_pages: int = 1
    pages: int = 0


class LayoutEngine:
    """
    Composes the report: per document one page per source page, each with
    header, ledger table (first page only), embedded source page and footer.
    """

    def __init__(
        self,
        dossier: Dossier,
        settings: ReportSettings,
        surface: ReportSurface,
        generated_at: datetime | None = None,
    ) -> None:
        self.dossier = dossier
        self.settings = settings
        self.surface = surface
        self.schema = SCHEMAS[dossier.mode]
        self.generated_at = generated_at or datetime.now()
        self.failures: List[EmbedFailure] = []

    @property
    def footer_top(self) -> float:
        st = self.settings
        return st.margin + st.area_height - st.footer_height

    def build(self) -> List[EmbedFailure]:
        for document in self.dossier.documents:
            self.render_document(document)
        return self.failures

    def render_document(self, document: Document) -> int:
        """Render all pages of one document; returns the number of physical pages."""
        cursor = RenderCursor()
        first_page = self.surface.page_number
        while cursor.embed_page <= cursor.total_pages:
            cursor.total_pages = max(self.render_page(document, cursor.embed_page), 1)
            cursor.embed_page += 1
        cursor.pages = self.surface.page_number - first_page
        return cursor.pages

    def render_page(self, document: Document, embed_page: int) -> int:
        """Render source page ``embed_page`` of ``document``; returns the source total.

        On the first source page the ledger table comes first. A table taller
        than the page continues on extra pages, and when too little room is
        left below it the source page moves to a page of its own.
        """
        self._start_page(document, embed_page)
        if embed_page == 1:
            self._table_header()
            self._table_rows(document)
            if self.footer_top - self.surface.y - 2 * EMBED_PADDING < MIN_EMBED_HEIGHT:
                self._footer(embed_page, self._expected_total(document))
                self._start_page(document, embed_page, continued=True)
        total = self._embed(document, embed_page)
        self._footer(embed_page, max(total, embed_page))
        return total

    def _start_page(self, document: Document, embed_page: int, continued: bool = False) -> None:
        st = self.settings
        self.surface.add_page()
        self.surface.rect(st.margin, st.margin, st.area_width, st.area_height)
        self._header(document, embed_page, continued=continued)

    @staticmethod
    def _expected_total(document: Document) -> int:
        return max(document.page_count, 1)

    # -- header --------------------------------------------------------
    def _header(self, document: Document, embed_page: int, continued: bool = False) -> None:
        st = self.settings
        s = self.surface
        title = document.title
        if embed_page > 1 or continued:
            title = f"{title} (cont.)"
        text_width = st.area_width - st.qr_block
        qr_x = st.margin + text_width

        s.bookmark(title, f"{document.staging_id}-{s.page_number}")

        size = fit_font_size(title, text_width, HEADER_MARGIN, st.title_font_size, st.font_name_bold)
        s.set_font("B", size)
        s.set_xy(st.margin, st.margin + 1.5)
        s.cell(text_width, 7, title, valign="T", margin=HEADER_MARGIN)

        path_part = f"{document.path} – "
        idents = document.ident_string()
        size = fit_font_size(path_part + idents, text_width, HEADER_MARGIN, st.breadcrumb_font_size, st.font_name)
        s.set_font("", size)
        s.set_xy(st.margin, st.margin + 9)
        s.cell(s.string_width(path_part) + HEADER_MARGIN, 5, path_part, valign="T", margin=HEADER_MARGIN)
        s.set_font("B", size)
        s.cell(s.string_width(idents), 5, idents, valign="T")

        s.line(qr_x, st.margin, qr_x, st.margin + st.qr_block)
        qr_value = document.raw_path or document.path
        s.qr_code(qr_value, st.page_width - st.margin - st.qr_block + 0.5, st.margin + 0.5, st.qr_block - 1)

        end_of_header = st.margin + st.qr_block
        s.line(st.margin, end_of_header, st.page_width - st.margin, end_of_header)
        s.set_xy(st.margin, end_of_header)

    # -- table ---------------------------------------------------------
    def _table_header(self) -> None:
        st = self.settings
        s = self.surface
        s.set_font("B", st.table_font_size)
        for column, width in zip(self.schema.columns, self.schema.widths(st.area_width)):
            margin = IDENT_MARGIN if column.key == "ident" else 0.0
            s.cell(width, st.row_height, column.label, align=column.align, margin=margin)
        s.ln(st.row_height)
        s.hline(debug_color="teal")

    def _cell_value(self, tx: Transaction, key: str) -> str:
        base = self.dossier.base_currency
        label = self.settings.currency_label(base)
        if key == "date":
            return tx.formatted_date
        if key == "description":
            return tx.normalized_description
        if key == "amount":
            return f"{tx.amount} {label}" if tx.amount else ""
        if key in ("income", "expenses"):
            value = getattr(tx, key)
            return f"{value} {label}" if value else ""
        return str(getattr(tx, key))

    def _table_rows(self, document: Document) -> None:
        st = self.settings
        s = self.surface
        transactions = document.transactions
        widths = self.schema.widths(st.area_width)
        starts = set(ident_group_starts([tx.ident for tx in transactions]))

        for index, tx in enumerate(transactions):
            fresh_page = False
            if s.y + st.row_height > self.footer_top:
                s.hline(debug_color="magenta")
                self._footer(1, self._expected_total(document))
                self._start_page(document, 1, continued=True)
                self._table_header()
                fresh_page = True

            immaterial = self.schema.mark_immaterial and tx.is_immaterial
            style = "I" if immaterial else ""
            if immaterial:
                s.rect(st.margin, s.y, st.area_width, st.row_height, fill=st.immaterial_fill, stroke=False)

            if index in starts or fresh_page:
                # a continued table repeats the ident on its first row
                if index in starts and index and not fresh_page:
                    s.hline(debug_color="magenta")
                ident = tx.ident
            else:
                # continuation of the same voucher
                s.hline(widths[0], dotted=True, debug_color="green")
                ident = ""

            for column, width in zip(self.schema.columns, widths):
                s.set_font(style, st.table_font_size)
                if column.key == "amount" and self.schema.foreign_amounts and tx.is_foreign(self.dossier.base_currency):
                    self._foreign_amount_cell(width, tx, style)
                    continue
                value = ident if column.key == "ident" else self._cell_value(tx, column.key)
                margin = IDENT_MARGIN if column.key == "ident" else 0.0
                text = truncate_with_ellipsis(value, width, s.font_name, st.table_font_size)
                s.cell(width, st.row_height, text, align=column.align, margin=margin)
            s.ln(st.row_height)
        s.hline(debug_color="magenta")

    def _foreign_amount_cell(self, width: float, tx: Transaction, style: str) -> None:
        st = self.settings
        s = self.surface
        x, y = s.x, s.y
        big = s.font_height(st.table_font_size)
        small = s.font_height(st.foreign_font_size)
        pad = max(0.0, (st.row_height - big - small) / 2)

        base = f"{tx.amount} {st.currency_label(self.dossier.base_currency)}"
        s.set_font(style, st.table_font_size)
        s.cell(width, big + pad, base, ln=2, align="R", valign="B")

        exchange = f"{tx.amount_currency} {tx.exchange_currency} – {tx.exchange_rate[:6]}"
        s.set_font(style, st.foreign_font_size)
        s.cell(width, small + pad, exchange, ln=2, align="R", valign="T")

        s.set_font(style, st.table_font_size)
        s.set_xy(x + width, y)

    # -- embed ---------------------------------------------------------
    def _embed(self, document: Document, embed_page: int) -> int:
        st = self.settings
        s = self.surface
        top = s.y
        bottom = self.footer_top
        page, errors, resolved = fetch_page(self.dossier, document.path, embed_page, zoom=st.embed_zoom)
        if errors:
            draw_embed_errors(s, errors, top, bottom, source=str(resolved or document.path))
            self.failures.extend(
                EmbedFailure(
                    document_path=document.path,
                    embed_page=embed_page,
                    stage=error.stage,
                    cause=error.cause,
                    resolved_path=resolved,
                )
                for error in errors
            )
            return 1

        box_w = st.area_width - 2 * EMBED_PADDING
        box_h = bottom - top - 2 * EMBED_PADDING
        w, h = scale_to_fit(page.width, page.height, box_w, box_h)
        if w and h:
            x = st.margin + EMBED_PADDING + (box_w - w) / 2
            s.image(page.image, x, top + EMBED_PADDING, w, h)
        else:
            logger.warning("%s: no room left on the page for source page %d", document.path, embed_page)
        return page.total_pages

    # -- footer --------------------------------------------------------
    def _footer(self, embed_page: int, embed_total: int) -> None:
        st = self.settings
        s = self.surface
        d = self.dossier
        start = self.footer_top
        s.line(st.margin, start, st.page_width - st.margin, start, debug_color="magenta")

        count_info = f"{embed_page}/{max(embed_total, 1)} – Page {s.page_number}"
        rows = [
            [(d.company_name, "L", ""), (count_info, "C", "B"), (f"File: {d.accounting_file_name}", "R", "")],
            [(d.street, "L", ""), ("", "C", ""), (f"Accounting data as of: {d.last_saved}", "R", "")],
            [
                (f"{d.zip_code} {d.place}", "L", ""),
                (d.formatted_period(), "C", ""),
                (f"Report was created on: {self.generated_at.strftime(DATE_TIME_FORMAT)}", "R", ""),
            ],
        ]

        line_height = (st.footer_height - 1) / 3
        cell_width = st.area_width / 3
        s.set_xy(st.margin, start + 0.5)
        for row in rows:
            for text, align, style in row:
                size = fit_font_size(text, cell_width, FOOTER_MARGIN, st.footer_font_size, st.font_for_style(style))
                s.set_font(style, size)
                s.cell(cell_width, line_height, text, align=align, margin=FOOTER_MARGIN)
            s.ln(line_height)
