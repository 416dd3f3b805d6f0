import logging
from typing import Any, Dict, List, Optional

from config import settings
from library_ledger.book import Book
from library_ledger.catalog import Catalog
from library_ledger.exceptions import IOFailureError
from library_ledger.ledger import HistoryEntry, ReplayReport, TransactionLedger
from library_ledger.oplog import OperationLog
from library_ledger.ordering import SortKey, sort_books
from library_ledger.snapshot import load_catalog, save_snapshot

logger = logging.getLogger(__name__)


class Library:
    """Manages the book catalog and its persistence.

    On startup the last snapshot is loaded (falling back to the legacy
    snapshot, then to an empty catalog) and, if configured, the ledger is
    replayed over it. Loans and returns are mirrored into the ledger and every
    mutation into the operation log. ``save()`` rewrites the snapshot.
    """

    def __init__(self, snapshot_file: Optional[str] = None, ledger_file: Optional[str] = None,
                 legacy_ledger_file: Optional[str] = None, operation_log_file: Optional[str] = None,
                 legacy_snapshot_file: Optional[str] = None, replay_ledger: Optional[bool] = None) -> None:
        self.snapshot_file = snapshot_file or settings.resolve(settings.snapshot_file)
        self.legacy_snapshot_file = legacy_snapshot_file or settings.resolve(settings.legacy_snapshot_file)
        self.ledger = TransactionLedger(
            ledger_file or settings.resolve(settings.ledger_file),
            legacy_ledger_file or settings.resolve(settings.legacy_ledger_file),
        )
        self.oplog = OperationLog(operation_log_file or settings.resolve(settings.operation_log_file))

        self.catalog, self.loaded_from = load_catalog(self.snapshot_file, self.legacy_snapshot_file)
        logger.info("Loaded %d books (%s)", len(self.catalog), self.loaded_from)

        if replay_ledger is None:
            replay_ledger = settings.replay_ledger_on_startup
        self.last_replay: Optional[ReplayReport] = None
        if replay_ledger:
            try:
                self.replay_ledger()
            except IOFailureError as exc:
                logger.warning("Skipping ledger replay: %s", exc)

    # ------------------------- Core operations ------------------------- #
    def add_book(self, isbn: str, title: str, author: str, category: Optional[str] = None,
                 stock: int = 0) -> Book:
        book = self.catalog.add_book(isbn, title, author, category, stock)
        self.oplog.record("add", book.isbn, book.title)
        return book

    def remove_book(self, isbn: str) -> Book:
        book = self.catalog.remove_book(isbn)
        self.oplog.record("remove", book.isbn, book.title)
        return book

    def update_book(self, isbn: str, title: str, author: str, category: Optional[str] = None,
                    stock: int = 0) -> Book:
        book = self.catalog.update_book(isbn, title, author, category, stock)
        self.oplog.record("update", book.isbn, book.title)
        return book

    def loan_book(self, isbn: str, quantity: int) -> Book:
        book = self.catalog.loan_book(isbn, quantity)
        # The loan stands even if the audit trail cannot be written.
        self.ledger.log_loan(book.isbn, book.title, quantity)
        self.oplog.record("loan", book.isbn, book.title)
        return book

    def return_book(self, isbn: str, quantity: int) -> Book:
        book = self.catalog.return_book(isbn, quantity)
        self.ledger.log_return(book.isbn, book.title, quantity)
        self.oplog.record("return", book.isbn, book.title)
        return book

    # ------------------------- Queries ------------------------- #
    def find_book(self, isbn: str) -> Optional[Book]:
        return self.catalog.find_book(isbn)

    def find_by_title(self, title: str) -> List[Book]:
        return self.catalog.find_by_title(title)

    def find_by_author(self, author: str) -> List[Book]:
        return self.catalog.find_by_author(author)

    def search_books(self, keyword: str) -> List[Book]:
        return self.catalog.find_by_keyword(keyword)

    def list_books(self, sort: Optional[SortKey] = None) -> List[Book]:
        """Books in catalog order, or in ``sort`` order without touching the catalog."""
        books = self.catalog.list_books()
        if sort is not None:
            books = sort_books(books, sort)
        return books

    def sort_books(self, key: SortKey) -> None:
        """Re-sequence the catalog itself; the new order is kept on save."""
        self.catalog.sort_by(key)
        self.oplog.record(f"sort:{SortKey.parse(key).value}")

    def get_statistics(self) -> Dict[str, Any]:
        return self.catalog.get_statistics()

    def borrow_history(self) -> List[HistoryEntry]:
        return self.ledger.build_outstanding_history()

    # ------------------------- Persistence ------------------------- #
    def replay_ledger(self) -> ReplayReport:
        self.last_replay = self.ledger.replay(self.catalog)
        return self.last_replay

    def save(self) -> None:
        save_snapshot(self.snapshot_file, self.catalog)
        logger.info("Saved %d books to %s", len(self.catalog), self.snapshot_file)

    def close(self) -> None:
        """Persist the catalog before the session ends."""
        self.save()
