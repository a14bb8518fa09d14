from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Tuple
import json

from reportlab.lib.pagesizes import A4, LETTER
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont


PACKAGE_DIR = Path(__file__).resolve().parent
OUT_DIR = Path.cwd() / "out"
DB_PATH = OUT_DIR / "auditbook.db"
STYLE_PRESET_PATH = PACKAGE_DIR / "assets" / "report_style.json"

# Placeholder for file info values missing from the export.
UNKNOWN_STR = "<ERROR>"

DATE_FORMAT = "%d.%m.%Y"
DATE_TIME_FORMAT = "%d.%m.%Y %H:%M"

CURRENCY_SYMBOLS: Dict[str, str] = {
    "EUR": "€",
    "USD": "$",
    "GBP": "£",
}

PAGE_SIZES: Dict[str, Tuple[float, float]] = {
    "A4": A4,
    "LETTER": LETTER,
}


def load_style_preset() -> dict:
    with STYLE_PRESET_PATH.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def set_out_dir(path: Path) -> None:
    global OUT_DIR, DB_PATH
    OUT_DIR = path
    DB_PATH = OUT_DIR / "auditbook.db"


@dataclass(frozen=True)
class ReportSettings:
    """Immutable layout configuration handed to the layout engine.

    Lengths are millimetres, font sizes points.
    """

    page_width: float = 210.0
    page_height: float = 297.0
    margin: float = 10.0
    font_name: str = "Helvetica"
    font_name_italic: str = "Helvetica-Oblique"
    font_name_bold: str = "Helvetica-Bold"
    row_height: float = 5.0
    footer_height: float = 10.0
    qr_block: float = 15.0
    table_font_size: float = 7.0
    foreign_font_size: float = 4.0
    footer_font_size: float = 6.8
    title_font_size: float = 18.0
    breadcrumb_font_size: float = 10.0
    embed_zoom: float = 2.0
    line_width: float = 0.3
    immaterial_fill: str = "#EFEFEF"
    debug_cells: bool = False
    debug_lines: bool = False
    currency_symbols: Dict[str, str] = field(default_factory=lambda: dict(CURRENCY_SYMBOLS))

    @property
    def area_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def area_height(self) -> float:
        return self.page_height - 2 * self.margin

    def currency_label(self, code: str) -> str:
        return self.currency_symbols.get(code, code)

    def font_for_style(self, style: str) -> str:
        if style == "B":
            return self.font_name_bold
        if style == "I":
            return self.font_name_italic
        if style:
            raise ValueError(f"text style '{style}' is not supported")
        return self.font_name


def _register_fonts(font_files: Dict[str, str]) -> None:
    for name, filename in font_files.items():
        path = Path(filename)
        if not path.is_absolute():
            path = PACKAGE_DIR / "assets" / path
        pdfmetrics.registerFont(TTFont(name, str(path)))


def load_settings(**overrides) -> ReportSettings:
    """Read the style preset once and freeze it into ``ReportSettings``.

    Keyword overrides win over the preset (the CLI passes debug switches
    this way). TTF files listed under ``font_files`` are registered with
    reportlab before the settings are returned.
    """
    preset = load_style_preset()
    _register_fonts(preset.get("font_files") or {})

    page_w, page_h = PAGE_SIZES.get(str(preset.get("page_size", "A4")).upper(), A4)
    symbols = dict(CURRENCY_SYMBOLS)
    symbols.update(preset.get("currency_symbols") or {})

    values = {
        "page_width": page_w / mm,
        "page_height": page_h / mm,
        "margin": float(preset.get("margin_mm", 10)),
        "font_name": str(preset.get("font_name", "Helvetica")),
        "font_name_italic": str(preset.get("font_name_italic", "Helvetica-Oblique")),
        "font_name_bold": str(preset.get("font_name_bold", "Helvetica-Bold")),
        "row_height": float(preset.get("row_height_mm", 5)),
        "footer_height": float(preset.get("footer_height_mm", 10)),
        "qr_block": float(preset.get("qr_block_mm", 15)),
        "table_font_size": float(preset.get("table_font_size", 7)),
        "foreign_font_size": float(preset.get("foreign_font_size", 4)),
        "footer_font_size": float(preset.get("footer_font_size", 6.8)),
        "title_font_size": float(preset.get("title_font_size", 18)),
        "breadcrumb_font_size": float(preset.get("breadcrumb_font_size", 10)),
        "embed_zoom": float(preset.get("embed_zoom", 2.0)),
        "line_width": float(preset.get("line_width", 0.3)),
        "immaterial_fill": str(preset.get("immaterial_fill", "#EFEFEF")),
        "currency_symbols": symbols,
    }
    values.update(overrides)
    return ReportSettings(**values)
