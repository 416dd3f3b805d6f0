import logging
from functools import wraps
from typing import Optional

import typer

from config import settings
from library_ledger.exceptions import LibraryError
from library_ledger.exporter import export_borrow_data, export_csv, export_json
from library_ledger.library import Library
from library_ledger.ordering import SortKey
from library_ledger.ui_helpers import (
    print_history_result,
    print_list_result,
    print_stats_result,
    set_output_mode,
)

logging.basicConfig(level=getattr(logging, settings.log_level, logging.WARNING))
logger = logging.getLogger(__name__)

app = typer.Typer(help=f"{settings.app_name} CLI")


def _open_library() -> Library:
    return Library()


def handle_errors(func):
    """Report catalog and file errors as 'Error: ...' with exit code 1."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (LibraryError, ValueError) as e:
            print(f"Error: {e}")
            raise typer.Exit(code=1)
    return wrapper


def _parse_sort(value: Optional[str]) -> Optional[SortKey]:
    if value is None:
        return None
    try:
        return SortKey.parse(value)
    except ValueError as e:
        raise typer.BadParameter(str(e))


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global CLI options (e.g. output mode)."""
    if output:
        set_output_mode(output)


@app.command("list")
@handle_errors
def cli_list(sort: Optional[str] = typer.Option(None, "--sort", "-s", help="Order by: stock | loan")):
    """List all books, optionally ordered by stock (ascending) or loans (descending)."""
    key = _parse_sort(sort)
    lib = _open_library()
    print_list_result(lib.list_books(sort=key))


@app.command("add")
@handle_errors
def cli_add(
    isbn: str,
    title: str,
    author: str,
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Category (default: uncategorized)"),
    stock: int = typer.Option(0, "--stock", help="Units available to loan"),
):
    """Add a new book."""
    lib = _open_library()
    book = lib.add_book(isbn, title, author, category, stock)
    lib.save()
    print(f"Successfully added: {book.title} by {book.author}")


@app.command("remove")
@handle_errors
def cli_remove(isbn: str):
    """Remove a book by ISBN. The ledger keeps its history."""
    lib = _open_library()
    lib.remove_book(isbn)
    lib.save()
    print(f"Book with ISBN {isbn} has been removed.")


@app.command("update")
@handle_errors
def cli_update(
    isbn: str,
    title: str,
    author: str,
    category: Optional[str] = typer.Option(None, "--category", "-c"),
    stock: int = typer.Option(0, "--stock"),
):
    """Overwrite a book's title, author, category and stock."""
    lib = _open_library()
    book = lib.update_book(isbn, title, author, category, stock)
    lib.save()
    print(f"Updated: {book.title} by {book.author} (stock={book.stock}, loaned={book.loaned})")


@app.command("find")
@handle_errors
def cli_find(isbn: str):
    """Find a book by ISBN and show its details."""
    lib = _open_library()
    book = lib.find_book(isbn)
    if not book:
        print(f"Book with ISBN {isbn} not found.")
        return
    print("Book Found")
    print(f"Title: {book.title}")
    print(f"Author: {book.author}")
    print(f"ISBN: {book.isbn}")
    print(f"Category: {book.category}")
    print(f"Stock: {book.stock}")
    print(f"Loaned: {book.loaned}")


@app.command("search")
@handle_errors
def cli_search(
    query: str = typer.Argument(..., help="Keyword, or exact value with --title/--author"),
    title: bool = typer.Option(False, "--title", "-t", help="Exact title match"),
    author: bool = typer.Option(False, "--author", "-a", help="Exact author match"),
):
    """Search by keyword (title, author or category), or by exact title/author."""
    lib = _open_library()
    if title:
        books = lib.find_by_title(query)
    elif author:
        books = lib.find_by_author(query)
    else:
        books = lib.search_books(query)
    if not books:
        print("No books matched.")
        return
    print_list_result(books)


@app.command("loan")
@handle_errors
def cli_loan(isbn: str, quantity: int = typer.Argument(1)):
    """Loan out copies of a book."""
    lib = _open_library()
    book = lib.loan_book(isbn, quantity)
    lib.save()
    print(f"Loaned {quantity} x {book.title} (stock={book.stock}, loaned={book.loaned})")


@app.command("return")
@handle_errors
def cli_return(isbn: str, quantity: int = typer.Argument(1)):
    """Return loaned copies of a book."""
    lib = _open_library()
    book = lib.return_book(isbn, quantity)
    lib.save()
    print(f"Returned {quantity} x {book.title} (stock={book.stock}, loaned={book.loaned})")


@app.command("history")
@handle_errors
def cli_history():
    """Show every loan and whether it has been returned."""
    lib = _open_library()
    print_history_result(lib.borrow_history())


@app.command("replay")
@handle_errors
def cli_replay(save: bool = typer.Option(False, "--save", help="Write the reconciled catalog back")):
    """Replay the ledger over the loaded snapshot to reconcile counters."""
    lib = _open_library()
    report = lib.replay_ledger()
    print(f"Replayed {report.source} ledger: {report.applied} applied, {report.skipped} skipped")
    if save:
        lib.save()


@app.command("stats")
@handle_errors
def cli_stats():
    """Show library statistics."""
    lib = _open_library()
    print_stats_result(lib.get_statistics())


@app.command("export")
@handle_errors
def cli_export(
    kind: str = typer.Argument("csv", help="csv | json | log | borrow"),
    output: str = typer.Argument("library_export", help="Output file name"),
):
    """Export the catalog (csv, json), the operation log or the borrow data."""
    lib = _open_library()
    kind = kind.lower()
    if kind == "csv":
        filename = output if output.endswith(".csv") else f"{output}.csv"
        count = export_csv(filename, lib.catalog.iter_records())
        print(f"Exported {count} books to {filename}")
    elif kind == "json":
        filename = output if output.endswith(".json") else f"{output}.json"
        count = export_json(filename, lib.catalog.iter_records())
        print(f"Exported {count} books to {filename}")
    elif kind == "log":
        lib.oplog.export(output)
        print(f"Exported operation log to {output}")
    elif kind == "borrow":
        count = export_borrow_data(output, lib.ledger)
        print(f"Exported {count} loans to {output}")
    else:
        print(f"Unsupported export kind: {kind}. Use csv, json, log or borrow.")
        raise typer.Exit(code=2)


if __name__ == "__main__":
    app()
