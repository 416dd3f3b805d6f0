from __future__ import annotations

DEFAULT_CATEGORY = "uncategorized"

# The ledger stores ISBNs in a NUL-terminated 20-byte field.
ISBN_WIDTH = 20


def isbn_fits(isbn: str) -> bool:
    return len(isbn.encode("utf-8")) <= ISBN_WIDTH - 1


class Book:
    """A single title in the catalog together with its stock and loan counters."""

    def __init__(self, isbn: str, title: str, author: str, category: str | None = None,
                 stock: int = 0, loaned: int = 0) -> None:
        self.isbn = isbn
        self.title = title.strip()
        self.author = author.strip()
        self.category = category.strip() if category and category.strip() else DEFAULT_CATEGORY
        self.stock = stock
        self.loaned = loaned

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} (ISBN: {self.isbn})"

    def __repr__(self) -> str:  # pragma: no cover
        return (f"Book(isbn={self.isbn!r}, title={self.title!r}, stock={self.stock}, "
                f"loaned={self.loaned})")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Book):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    @property
    def total_units(self) -> int:
        return self.stock + self.loaned

    def copy(self) -> "Book":
        return Book(self.isbn, self.title, self.author, self.category, self.stock, self.loaned)

    def to_dict(self) -> dict:
        return {
            "isbn": self.isbn,
            "title": self.title,
            "author": self.author,
            "category": self.category,
            "stock": self.stock,
            "loaned": self.loaned,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(
            isbn=data["isbn"],
            title=data["title"],
            author=data.get("author") or "",
            category=data.get("category"),
            stock=data.get("stock", 0),
            loaned=data.get("loaned", 0),
        )
