from __future__ import annotations

import io
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

from reportlab.graphics import renderPDF
from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

from ..config import ReportSettings
from .text_fit import string_width


DEBUG_COLORS: Dict[str, colors.Color] = {
    "magenta": colors.HexColor("#B4257A"),
    "teal": colors.HexColor("#4395B7"),
    "green": colors.HexColor("#3E8C5F"),
    "vermilion": colors.HexColor("#DA6A35"),
    "amber_light": colors.HexColor("#F9DD9D"),
}

DOTTED = (0.6, 0.6)


def _hex(value: str, default=colors.black) -> colors.Color:
    if not value:
        return default
    try:
        return colors.HexColor("#" + str(value).lstrip("#"))
    except ValueError:
        return default


class ReportSurface:
    """
    Page/cell/line/font operations on a reportlab canvas.

    Coordinates are millimetres measured from the top-left page corner and a
    text cursor (x, y) moves the way table cells are laid out: left to right,
    then down one row.
    """

    def __init__(self, output: Path | io.BytesIO, settings: ReportSettings) -> None:
        self.settings = settings
        self.canvas = canvas.Canvas(
            output if isinstance(output, io.BytesIO) else str(output),
            pagesize=(settings.page_width * mm, settings.page_height * mm),
        )
        self.x = settings.margin
        self.y = settings.margin
        self.font_name = settings.font_name
        self.font_size = settings.table_font_size
        self.pages = 0
        self._page_open = False

    # -- pages ---------------------------------------------------------
    def add_page(self) -> int:
        if self._page_open:
            self.canvas.showPage()
        self._page_open = True
        self.pages += 1
        self.x = self.settings.margin
        self.y = self.settings.margin
        self.canvas.setLineWidth(self.settings.line_width)
        self.set_font("", self.font_size)
        return self.pages

    @property
    def page_number(self) -> int:
        return self.pages

    def save(self) -> None:
        if self._page_open:
            self.canvas.showPage()
            self._page_open = False
        self.canvas.save()

    def bookmark(self, title: str, key: str) -> None:
        self.canvas.bookmarkPage(key)
        self.canvas.addOutlineEntry(title, key, level=0)

    # -- cursor --------------------------------------------------------
    def set_xy(self, x: float, y: float) -> None:
        self.x = x
        self.y = y

    def ln(self, h: float) -> None:
        self.x = self.settings.margin
        self.y += h

    def _py(self, y: float) -> float:
        return (self.settings.page_height - y) * mm

    # -- fonts ---------------------------------------------------------
    def set_font(self, style: str, size: float) -> None:
        self.font_name = self.settings.font_for_style(style)
        self.font_size = size
        self.canvas.setFont(self.font_name, size)

    def string_width(self, text: str) -> float:
        return string_width(text, self.font_name, self.font_size)

    def font_height(self, size: Optional[float] = None) -> float:
        return (size or self.font_size) / mm

    # -- drawing -------------------------------------------------------
    def cell(
        self,
        w: float,
        h: float,
        text: str = "",
        ln: int = 0,
        align: str = "L",
        valign: str = "M",
        margin: float = 0.0,
        fill: Optional[str] = None,
    ) -> None:
        """Draw ``text`` in a w×h box at the cursor and advance it.

        ``ln`` 0 moves right, 1 moves to the start of the next row and 2 moves
        directly below the cell.
        """
        if fill:
            self.canvas.setFillColor(_hex(fill))
            self.canvas.rect(self.x * mm, self._py(self.y + h), w * mm, h * mm, stroke=0, fill=1)
        if self.settings.debug_cells:
            self.canvas.saveState()
            self.canvas.setStrokeColor(DEBUG_COLORS["vermilion"])
            self.canvas.rect(self.x * mm, self._py(self.y + h), w * mm, h * mm, stroke=1, fill=0)
            self.canvas.restoreState()

        if text:
            ascent = pdfmetrics.getAscent(self.font_name, self.font_size) / mm
            descent = pdfmetrics.getDescent(self.font_name, self.font_size) / mm
            if valign == "T":
                baseline = self.y + ascent
            elif valign == "B":
                baseline = self.y + h + descent
            else:
                baseline = self.y + (h + ascent + descent) / 2

            width = self.string_width(text)
            if align == "R":
                tx = self.x + w - margin - width
            elif align == "C":
                tx = self.x + (w - width) / 2
            else:
                tx = self.x + margin
            self.canvas.setFillColor(colors.black)
            self.canvas.setFont(self.font_name, self.font_size)
            self.canvas.drawString(tx * mm, self._py(baseline), text)

        if ln == 1:
            self.ln(h)
        elif ln == 2:
            self.y += h
        else:
            self.x += w

    def line(
        self,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        dash: Sequence[float] = (),
        debug_color: str = "",
    ) -> None:
        self.canvas.saveState()
        if dash:
            self.canvas.setDash([d * mm for d in dash], 0)
        if self.settings.debug_lines and debug_color:
            self.canvas.setStrokeColor(DEBUG_COLORS[debug_color])
        self.canvas.line(x1 * mm, self._py(y1), x2 * mm, self._py(y2))
        self.canvas.restoreState()

    def hline(self, x_offset: float = 0.0, dotted: bool = False, debug_color: str = "") -> None:
        """Horizontal rule across the text area at the cursor row."""
        left = self.settings.margin + x_offset
        right = self.settings.page_width - self.settings.margin
        self.line(left, self.y, right, self.y, dash=DOTTED if dotted else (), debug_color=debug_color)

    def rect(self, x: float, y: float, w: float, h: float, fill: Optional[str] = None, stroke: bool = True) -> None:
        self.canvas.saveState()
        if fill:
            self.canvas.setFillColor(_hex(fill))
        self.canvas.rect(x * mm, self._py(y + h), w * mm, h * mm, stroke=int(stroke), fill=int(bool(fill)))
        self.canvas.restoreState()

    def circle(self, x: float, y: float, r: float, fill: bool = False) -> None:
        self.canvas.saveState()
        self.canvas.setFillColor(colors.black)
        self.canvas.circle(x * mm, self._py(y), r * mm, stroke=int(not fill), fill=int(fill))
        self.canvas.restoreState()

    def polyline(self, points: Sequence[Tuple[float, float]], close: bool = False) -> None:
        path = self.canvas.beginPath()
        first, *rest = points
        path.moveTo(first[0] * mm, self._py(first[1]))
        for px, py in rest:
            path.lineTo(px * mm, self._py(py))
        if close:
            path.close()
        self.canvas.drawPath(path, stroke=1, fill=0)

    def arc(self, x1: float, y1: float, x2: float, y2: float, start: float, extent: float) -> None:
        """Arc inside the box (x1, y1)-(x2, y2); angles counter-clockwise in degrees."""
        self.canvas.arc(x1 * mm, self._py(y2), x2 * mm, self._py(y1), startAng=start, extent=extent)

    def image(self, data: bytes, x: float, y: float, w: float, h: float) -> None:
        self.canvas.drawImage(
            ImageReader(io.BytesIO(data)),
            x * mm,
            self._py(y + h),
            width=w * mm,
            height=h * mm,
            mask=None,
            preserveAspectRatio=False,
        )

    def qr_code(self, value: str, x: float, y: float, size: float) -> None:
        widget = QrCodeWidget(value, barLevel="L")
        x0, y0, x1, y1 = widget.getBounds()
        side = size * mm
        drawing = Drawing(side, side, transform=[side / (x1 - x0), 0, 0, side / (y1 - y0), 0, 0])
        drawing.add(widget)
        renderPDF.draw(drawing, self.canvas, x * mm, self._py(y + size))
