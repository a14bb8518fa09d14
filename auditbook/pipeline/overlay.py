from __future__ import annotations

import logging
from typing import List, Sequence

from ..errors import EmbedError
from .surface import ReportSurface
from .text_fit import ELLIPSIS, truncate_with_ellipsis, wrap_words


logger = logging.getLogger(__name__)

GLYPH_SIZE = 40.0
GLYPH_GAP = 5.0
TEXT_SIZE = 11.0
LINE_HEIGHT = 5.0
TEXT_MARGIN = 1.5
HEADLINE = "One or more error(s) occurred during embedding the file:"


def overlay_lines(failures: Sequence[EmbedError]) -> List[str]:
    return [HEADLINE, ""] + [f"- {failure}" for failure in failures]


def _draw_sad_document(surface: ReportSurface, x: float, y: float, size: float) -> None:
    w = size * 0.7
    h = size * 0.9
    left = x + (size - w) / 2
    top = y + (size - h) / 2
    fold = w * 0.25
    surface.polyline(
        [
            (left, top),
            (left + w - fold, top),
            (left + w, top + fold),
            (left + w, top + h),
            (left, top + h),
        ],
        close=True,
    )
    surface.polyline([(left + w - fold, top), (left + w - fold, top + fold), (left + w, top + fold)])

    eye_y = top + h * 0.42
    surface.circle(left + w * 0.33, eye_y, size * 0.025, fill=True)
    surface.circle(left + w * 0.67, eye_y, size * 0.025, fill=True)
    mouth_w = w * 0.4
    mouth_top = top + h * 0.62
    surface.arc(left + (w - mouth_w) / 2, mouth_top, left + (w + mouth_w) / 2, mouth_top + mouth_w * 0.6, 20, 140)


def draw_embed_errors(
    surface: ReportSurface,
    failures: Sequence[EmbedError],
    top: float,
    bottom: float,
    source: str = "",
) -> None:
    """Replace the embed region between ``top`` and ``bottom`` with a diagnostic."""
    for failure in failures:
        logger.warning("%s: error during %s (%s)", source, failure.stage, failure.cause)

    settings = surface.settings
    y = top + GLYPH_GAP
    if bottom - top >= GLYPH_SIZE + 2 * GLYPH_GAP + 2 * LINE_HEIGHT:
        x = settings.margin + (settings.area_width - GLYPH_SIZE) / 2
        _draw_sad_document(surface, x, y, GLYPH_SIZE)
        y += GLYPH_SIZE + 2 * GLYPH_GAP

    surface.set_font("", TEXT_SIZE)
    width = settings.area_width - 2 * TEXT_MARGIN
    lines: List[str] = []
    for text in overlay_lines(failures):
        lines.extend(wrap_words(text, width, surface.font_name, TEXT_SIZE) if text else [""])

    room = max(0, int((bottom - y) // LINE_HEIGHT))
    if len(lines) > room:
        lines = lines[:room]
        if lines:
            lines[-1] = ELLIPSIS

    surface.set_xy(settings.margin, y)
    for line in lines:
        fitted = truncate_with_ellipsis(line, settings.area_width, surface.font_name, TEXT_SIZE)
        surface.cell(settings.area_width, LINE_HEIGHT, fitted, ln=1, align="L", valign="T", margin=TEXT_MARGIN)
