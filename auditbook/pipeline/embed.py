from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import fitz  # PyMuPDF

from ..errors import EmbedError, ImportPanic
from ..ledger import Dossier


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportedPage:
    image: bytes
    width: float   # source page size in points
    height: float
    total_pages: int


def scale_to_fit(source_w: float, source_h: float, box_w: float, box_h: float) -> Tuple[float, float]:
    if source_w <= 0 or source_h <= 0 or box_w <= 0 or box_h <= 0:
        return 0.0, 0.0
    aspect = source_w / source_h
    if box_w / box_h > aspect:
        return aspect * box_h, box_h
    return box_w, box_w / aspect


def resolve_source(dossier: Dossier, path: str) -> Path:
    try:
        return dossier.resolve_relative_path(path)
    except (OSError, RuntimeError, ValueError) as exc:
        raise EmbedError("resolve", exc) from exc


def check_exists(path: Path) -> None:
    try:
        size = path.stat().st_size
    except OSError as exc:
        raise EmbedError("exists", exc.strerror or exc) from exc
    if not path.is_file():
        raise EmbedError("exists", f"'{path}' is not a file")
    if size == 0:
        raise EmbedError("exists", f"'{path}' is empty")


def page_count(path: Path) -> int:
    """Number of pages of a source file; raises EmbedError when it can't be read."""
    check_exists(path)
    try:
        with fitz.open(str(path)) as doc:
            return doc.page_count
    except (RuntimeError, ValueError, OSError) as exc:
        raise EmbedError("import", exc) from exc
    except Exception as exc:
        logger.exception("Unexpected failure counting pages of %s", path)
        raise ImportPanic(exc) from exc


def import_page(path: Path, page_index: int, zoom: float = 2.0) -> ImportedPage:
    """Rasterize page ``page_index`` (1-based) of a source document.

    Any exception raised by PyMuPDF ends up as an EmbedError tagged
    ``import``; unexpected ones are logged with their traceback first.
    """
    try:
        with fitz.open(str(path)) as doc:
            total = doc.page_count
            if not 1 <= page_index <= total:
                raise EmbedError("import", f"page {page_index} is outside 1-{total}")
            page = doc.load_page(page_index - 1)
            rect = page.rect
            pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
            return ImportedPage(
                image=pix.tobytes("png"),
                width=float(rect.width),
                height=float(rect.height),
                total_pages=total,
            )
    except EmbedError:
        raise
    except (RuntimeError, ValueError, OSError) as exc:
        raise EmbedError("import", f"'{exc}', try to reexport the file in order to fix it") from exc
    except Exception as exc:
        logger.exception("Unexpected failure importing %s", path)
        raise ImportPanic(exc) from exc


def fetch_page(
    dossier: Dossier,
    path: str,
    page_index: int,
    zoom: float = 2.0,
) -> Tuple[Optional[ImportedPage], List[EmbedError], Optional[Path]]:
    """Run resolve, existence check and import; stop at the first failing stage."""
    try:
        resolved = resolve_source(dossier, path)
    except EmbedError as exc:
        return None, [exc], None
    try:
        check_exists(resolved)
        return import_page(resolved, page_index, zoom=zoom), [], resolved
    except EmbedError as exc:
        return None, [exc], resolved
