from __future__ import annotations

import hashlib
import logging
from dataclasses import replace
from pathlib import Path, PurePath
from typing import Callable, Dict, Iterable, List

from slugify import slugify

from ..errors import EmbedError
from ..ledger import Document, Transaction


logger = logging.getLogger(__name__)


def staging_id(path: str) -> str:
    """Stable, filesystem-safe identifier for one linked document."""
    stem = slugify(PurePath(path.replace("\\", "/")).stem) or "document"
    digest = hashlib.sha1(path.encode("utf-8")).hexdigest()[:8]
    return f"{stem}-{digest}"


def _base_name(document: Document) -> str:
    return PurePath(document.path.replace("\\", "/")).name


def group_by_document(transactions: Iterable[Transaction]) -> List[Document]:
    groups: Dict[str, List[Transaction]] = {}
    for tx in transactions:
        key = (tx.path or "").strip()
        if not key:
            continue
        groups.setdefault(key, []).append(tx)

    documents = [
        Document(
            path=key,
            # sorted() is stable: equal idents keep journal order
            transactions=tuple(sorted(items, key=lambda tx: tx.ident)),
            staging_id=staging_id(key),
            raw_path=items[0].path,
        )
        for key, items in groups.items()
    ]
    documents.sort(key=_base_name)
    return documents


def inspect_documents(
    documents: Iterable[Document],
    resolve: Callable[[str], Path],
    page_counter: Callable[[Path], int],
) -> List[Document]:
    """Attach resolved path, validity and page count to each document.

    Failures are logged and leave the document marked invalid; the layout
    engine reports them again on the page itself.
    """
    inspected: List[Document] = []
    for document in documents:
        try:
            resolved = resolve(document.path)
        except (OSError, RuntimeError, ValueError) as exc:
            logger.warning("%s: cannot resolve path: %s", document.path, exc)
            inspected.append(document)
            continue
        try:
            pages = page_counter(resolved)
        except EmbedError as exc:
            logger.warning("%s: not a readable source file: %s", resolved, exc)
            inspected.append(replace(document, resolved_path=resolved))
            continue
        inspected.append(
            replace(document, resolved_path=resolved, is_valid_file=pages > 0, page_count=pages)
        )
    return inspected
