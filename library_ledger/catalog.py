from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional

from library_ledger.book import ISBN_WIDTH, Book, isbn_fits
from library_ledger.exceptions import (
    DuplicateKeyError,
    InsufficientStockError,
    InvalidArgumentError,
    NotFoundError,
    OverReturnError,
)
from library_ledger.ordering import SortKey, sort_books

logger = logging.getLogger(__name__)


class Catalog:
    """In-memory book collection keyed by ISBN.

    The catalog is the only owner of its Book objects. Every read returns
    copies, so callers can keep or mutate results without touching the live
    records. Lookups are linear scans except for the ISBN key itself.
    """

    def __init__(self, books: Optional[Iterable[Book]] = None) -> None:
        self._books: Dict[str, Book] = {}
        for book in books or ():
            self.restore_book(book)

    def __len__(self) -> int:
        return len(self._books)

    def __contains__(self, isbn: object) -> bool:
        return isbn in self._books

    # ------------------------- Core operations ------------------------- #
    def add_book(self, isbn: str, title: str, author: str, category: Optional[str] = None,
                 stock: int = 0) -> Book:
        """Append a new book. Loaned starts at zero."""
        self._require_text(isbn=isbn, title=title, author=author)
        if not isbn_fits(isbn):
            raise InvalidArgumentError(f"isbn must be at most {ISBN_WIDTH - 1} bytes, got {isbn!r}.")
        self._require_count("stock", stock)
        if isbn in self._books:
            raise DuplicateKeyError(f"Book with ISBN {isbn} already exists.")
        book = Book(isbn, title, author, category, stock=stock, loaned=0)
        self._books[isbn] = book
        return book.copy()

    def remove_book(self, isbn: str) -> Book:
        book = self._books.pop(isbn, None)
        if book is None:
            raise NotFoundError(f"Book with ISBN {isbn} not found.")
        return book.copy()

    def update_book(self, isbn: str, title: str, author: str, category: Optional[str] = None,
                    stock: int = 0) -> Book:
        """Overwrite the descriptive fields and stock. Loaned is left alone."""
        book = self._get(isbn)
        self._require_text(title=title, author=author)
        self._require_count("stock", stock)
        updated = Book(isbn, title, author, category, stock=stock, loaned=book.loaned)
        book.title = updated.title
        book.author = updated.author
        book.category = updated.category
        book.stock = updated.stock
        return book.copy()

    def loan_book(self, isbn: str, quantity: int) -> Book:
        self._require_quantity(quantity)
        book = self._get(isbn)
        if book.stock < quantity:
            raise InsufficientStockError(
                f"Cannot loan {quantity} of {isbn}: only {book.stock} in stock."
            )
        book.stock -= quantity
        book.loaned += quantity
        return book.copy()

    def return_book(self, isbn: str, quantity: int) -> Book:
        self._require_quantity(quantity)
        book = self._get(isbn)
        if book.loaned < quantity:
            raise OverReturnError(
                f"Cannot return {quantity} of {isbn}: only {book.loaned} on loan."
            )
        book.loaned -= quantity
        book.stock += quantity
        return book.copy()

    # ------------------------- Search ------------------------- #
    def find_book(self, isbn: str) -> Optional[Book]:
        book = self._books.get(isbn)
        return book.copy() if book else None

    def find_exact(self, isbn: str) -> List[Book]:
        book = self._books.get(isbn)
        return [book.copy()] if book else []

    def find_by_title(self, title: str) -> List[Book]:
        return [b.copy() for b in self._books.values() if b.title == title]

    def find_by_author(self, author: str) -> List[Book]:
        return [b.copy() for b in self._books.values() if b.author == author]

    def find_by_keyword(self, keyword: str) -> List[Book]:
        """Substring match against title, author or category."""
        return [
            b.copy() for b in self._books.values()
            if keyword in b.title or keyword in b.author or keyword in b.category
        ]

    def list_books(self) -> List[Book]:
        return [b.copy() for b in self._books.values()]

    def iter_records(self) -> Iterator[Dict[str, Any]]:
        """Flat per-book records in catalog order, as consumed by exports."""
        for book in self._books.values():
            yield book.to_dict()

    def get_statistics(self) -> Dict[str, Any]:
        books = self._books.values()
        return {
            "total_books": len(self._books),
            "unique_authors": len({b.author for b in books}),
            "total_stock": sum(b.stock for b in books),
            "total_loaned": sum(b.loaned for b in books),
        }

    # ------------------------- Ordering ------------------------- #
    def sort_by(self, key: "SortKey | str") -> None:
        """Re-sequence the catalog in place."""
        ordered = sort_books(list(self._books.values()), key)
        self._books = {b.isbn: b for b in ordered}

    # ------------------------- Reconciliation ------------------------- #
    def apply_replayed_loan(self, isbn: str, quantity: int) -> bool:
        """Fold a ledger loan into the counters.

        Stock is clamped at zero instead of going negative, even when that
        breaks stock + loaned conservation.
        """
        book = self._books.get(isbn)
        if book is None:
            return False
        if book.stock >= quantity:
            book.stock -= quantity
        else:
            logger.warning("Ledger loan of %d for %s exceeds stock %d; clamping stock to 0",
                           quantity, isbn, book.stock)
            book.stock = 0
        book.loaned += quantity
        return True

    def apply_replayed_return(self, isbn: str, quantity: int) -> bool:
        book = self._books.get(isbn)
        if book is None:
            return False
        if book.loaned >= quantity:
            book.loaned -= quantity
            book.stock += quantity
        else:
            book.stock += book.loaned
            book.loaned = 0
        return True

    # ------------------------- Utilities ------------------------- #
    def _get(self, isbn: str) -> Book:
        book = self._books.get(isbn)
        if book is None:
            raise NotFoundError(f"Book with ISBN {isbn} not found.")
        return book

    def restore_book(self, book: Book) -> None:
        """Insert a fully-populated record (counters included), as when loading a snapshot."""
        if book.isbn in self._books:
            raise DuplicateKeyError(f"Book with ISBN {book.isbn} already exists.")
        self._books[book.isbn] = book.copy()

    @staticmethod
    def _require_text(**fields: Optional[str]) -> None:
        for name, value in fields.items():
            if value is None or not str(value).strip():
                raise InvalidArgumentError(f"{name} cannot be empty.")

    @staticmethod
    def _require_count(name: str, value: int) -> None:
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise InvalidArgumentError(f"{name} must be a non-negative integer, got {value!r}.")

    @staticmethod
    def _require_quantity(quantity: int) -> None:
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise InvalidArgumentError(f"Quantity must be a positive integer, got {quantity!r}.")
