"""Library Ledger - catalog persistence and loan reconciliation.

This package contains:
- Book model (book.py) and error types (exceptions.py)
- In-memory catalog store (catalog.py) and ordering engine (ordering.py)
- JSON snapshot codec (snapshot.py)
- Binary loan/return ledger with replay and borrow history (ledger.py)
- Operation log and file exports (oplog.py, exporter.py)
- Session facade tying it together (library.py)
"""
from library_ledger.book import Book
from library_ledger.catalog import Catalog
from library_ledger.exceptions import (
    CorruptSnapshotError,
    DuplicateKeyError,
    InsufficientStockError,
    InvalidArgumentError,
    IOFailureError,
    LibraryError,
    NotFoundError,
    OverReturnError,
)
from library_ledger.ledger import LedgerAction, LedgerEvent, TransactionLedger
from library_ledger.ordering import SortKey, sort_books

__all__ = [
    "Book",
    "Catalog",
    "CorruptSnapshotError",
    "DuplicateKeyError",
    "InsufficientStockError",
    "InvalidArgumentError",
    "IOFailureError",
    "LedgerAction",
    "LedgerEvent",
    "LibraryError",
    "NotFoundError",
    "OverReturnError",
    "SortKey",
    "TransactionLedger",
    "sort_books",
]
