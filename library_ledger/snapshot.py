"""Catalog snapshot codec.

A snapshot is a UTF-8 JSON envelope::

    {
      "metadata": {"version": "1.0", "created": "1700000000"},
      "books": [{"isbn": ..., "title": ..., "author": ..., "category": ...,
                 "stock": 0, "loaned": 0}, ...]
    }

Decoding is deliberately lenient: unknown keys are ignored, missing counters
default to 0 and a malformed book entry is dropped rather than failing the
whole load. Only an envelope that is not an object, or a "books" value that
is not an array, is treated as corrupt.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Optional, Tuple, Union

from library_ledger.book import Book, isbn_fits
from library_ledger.catalog import Catalog
from library_ledger.exceptions import CorruptSnapshotError, IOFailureError

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0"

PathLike = Union[str, os.PathLike]


def encode(catalog: Catalog) -> bytes:
    envelope = {
        "metadata": {
            "version": SNAPSHOT_VERSION,
            "created": str(int(time.time())),
        },
        "books": list(catalog.iter_records()),
    }
    return (json.dumps(envelope, indent=2, ensure_ascii=False) + "\n").encode("utf-8")


def decode(data: Union[bytes, str]) -> Catalog:
    try:
        text = data.decode("utf-8") if isinstance(data, bytes) else data
        payload = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CorruptSnapshotError(f"Snapshot is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise CorruptSnapshotError("Snapshot top level is not an object.")

    entries = payload.get("books", [])
    if not isinstance(entries, list):
        raise CorruptSnapshotError('Snapshot "books" value is not an array.')

    catalog = Catalog()
    for position, entry in enumerate(entries):
        book = _book_from_entry(entry)
        if book is None:
            logger.warning("Skipping malformed snapshot entry #%d", position)
            continue
        if not isbn_fits(book.isbn):
            logger.warning("Skipping snapshot entry #%d: ISBN %r is too long", position, book.isbn)
            continue
        if book.isbn in catalog:
            logger.warning("Skipping duplicate ISBN %s in snapshot entry #%d", book.isbn, position)
            continue
        catalog.restore_book(book)
    return catalog


def _book_from_entry(entry: Any) -> Optional[Book]:
    if not isinstance(entry, dict):
        return None
    isbn = entry.get("isbn")
    title = entry.get("title")
    if not isinstance(isbn, str) or not isinstance(title, str):
        return None
    author = entry.get("author")
    category = entry.get("category")
    return Book(
        isbn=isbn,
        title=title,
        author=author if isinstance(author, str) else "",
        category=category if isinstance(category, str) else None,
        stock=_count(entry, "stock"),
        loaned=_count(entry, "loaned"),
    )


def _count(entry: dict, key: str) -> int:
    value = entry.get(key, 0)
    if not isinstance(value, int) or isinstance(value, bool):
        return 0
    if value < 0:
        logger.warning("Negative %s %d for ISBN %s clamped to 0", key, value, entry.get("isbn"))
        return 0
    return value


# ------------------------- Files ------------------------- #
def save_snapshot(path: PathLike, catalog: Catalog) -> None:
    """Write the snapshot through a temporary file and rename it into place.

    A failure at any point leaves the previously committed snapshot intact.
    """
    target = Path(path)
    payload = encode(catalog)
    tmp_name = None
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
        with os.fdopen(fd, "wb") as fh:
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, target)
    except OSError as exc:
        if tmp_name and os.path.exists(tmp_name):
            try:
                os.remove(tmp_name)
            except OSError:
                logger.warning("Could not remove temporary snapshot %s", tmp_name)
        raise IOFailureError(f"Could not write snapshot {target}: {exc}") from exc


def load_snapshot(path: PathLike) -> Catalog:
    try:
        with open(path, "rb") as fh:
            data = fh.read()
    except OSError as exc:
        raise IOFailureError(f"Could not read snapshot {path}: {exc}") from exc
    return decode(data)


def load_catalog(path: PathLike, legacy_path: Optional[PathLike] = None) -> Tuple[Catalog, str]:
    """Load the catalog at startup, never failing.

    Returns the catalog and where it came from: ``"primary"``, ``"legacy"``
    or ``"empty"``. A catalog recovered from the legacy snapshot is written
    back to the primary path.
    """
    try:
        return load_snapshot(path), "primary"
    except (IOFailureError, CorruptSnapshotError) as exc:
        if os.path.exists(path):
            logger.warning("Primary snapshot unusable: %s", exc)
        else:
            logger.info("No snapshot at %s", path)

    if legacy_path and os.path.exists(legacy_path):
        try:
            catalog = load_snapshot(legacy_path)
        except (IOFailureError, CorruptSnapshotError) as exc:
            logger.warning("Legacy snapshot unusable: %s", exc)
        else:
            logger.info("Migrating %d books from legacy snapshot %s", len(catalog), legacy_path)
            try:
                save_snapshot(path, catalog)
            except IOFailureError as exc:
                logger.warning("Could not persist migrated snapshot: %s", exc)
            return catalog, "legacy"

    return Catalog(), "empty"
