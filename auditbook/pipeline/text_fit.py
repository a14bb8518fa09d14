from __future__ import annotations

from typing import Callable, List

from reportlab.lib.units import mm
from reportlab.pdfbase.pdfmetrics import stringWidth


ELLIPSIS = "…"
FONT_STEP = 0.5
# Lower bound for shrink-to-fit; overflowing text at this size is left as is.
MIN_FONT_SIZE = 4.0
# Horizontal room kept free in truncated table cells (mm).
CELL_INSET = 1.5

Measure = Callable[[str, str, float], float]


def string_width(text: str, font_name: str, size: float) -> float:
    """Width of ``text`` in millimetres."""
    return stringWidth(text, font_name, size) / mm


def fit_font_size(
    text: str,
    max_width: float,
    margin: float,
    base_size: float,
    font_name: str,
    measure: Measure = string_width,
) -> float:
    """
    Shrink the font in FONT_STEP increments until ``text`` fits between the margins.
    Never larger than ``base_size``, never smaller than MIN_FONT_SIZE.
    """
    size = float(base_size)
    available = max_width - 2 * margin
    while size > MIN_FONT_SIZE and measure(text, font_name, size) > available:
        size -= FONT_STEP
    return max(size, MIN_FONT_SIZE) if size < base_size else size


def truncate_with_ellipsis(
    text: str,
    max_width: float,
    font_name: str,
    size: float,
    measure: Measure = string_width,
) -> str:
    available = max_width - CELL_INSET
    if measure(text, font_name, size) <= available:
        return text
    body = text[: -len(ELLIPSIS)] if text.endswith(ELLIPSIS) else text
    while body:
        body = body[:-1]
        candidate = body + ELLIPSIS
        if measure(candidate, font_name, size) <= available:
            return candidate
    return ""


def wrap_words(
    text: str,
    max_width: float,
    font_name: str,
    size: float,
    measure: Measure = string_width,
) -> List[str]:
    """
    Word wrap used for free text blocks. A single word wider than the line
    is put on its own line and left to overflow.
    """
    words = (text or "").split()
    if not words:
        return [""]

    lines: List[str] = []
    cur: List[str] = []
    for w in words:
        test = " ".join(cur + [w])
        if measure(test, font_name, size) <= max_width:
            cur.append(w)
            continue
        if cur:
            lines.append(" ".join(cur))
            cur = [w]
        else:
            lines.append(w)
    if cur:
        lines.append(" ".join(cur))
    return lines
