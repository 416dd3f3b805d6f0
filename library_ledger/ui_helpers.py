import os
import json
from datetime import datetime
from typing import Any, Dict, List
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def print_list_result(books: List[Any]) -> None:
    """Print books in the current output mode.
    - plain: 'ISBN - Title by Author [category] stock=N loaned=M' lines, or 'No books in library.'
    - json: array of flat book records
    - rich: Rich table
    """
    mode = get_output_mode()

    if not books:
        print("No books in library.")
        return

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="Books", show_lines=True, header_style="bold cyan")
        table.add_column("ISBN", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Category", style="white")
        table.add_column("Stock", justify="right")
        table.add_column("Loaned", justify="right")
        for b in books:
            table.add_row(b.isbn, b.title, b.author, b.category, str(b.stock), str(b.loaned))
        _console.print(table)
    else:
        for b in books:
            print(f"{b.isbn} - {b.title} by {b.author} [{b.category}] stock={b.stock} loaned={b.loaned}")


def print_stats_result(stats: Dict[str, Any]) -> None:
    mode = get_output_mode()

    if not stats:
        print("No statistics available.")
        return

    labels = {
        "total_books": "Total Books",
        "unique_authors": "Unique Authors",
        "total_stock": "In Stock",
        "total_loaned": "On Loan",
    }

    if mode == "json":
        print(json.dumps({key: stats.get(key, 0) for key in labels}, ensure_ascii=False))
    elif mode == "rich":
        content = "\n".join(f"[bold]{label}:[/] {stats.get(key, 0)}" for key, label in labels.items())
        _console.print(Panel.fit(content, title="Stats", border_style="blue"))
    else:
        for key, label in labels.items():
            print(f"{label}: {stats.get(key, 0)}")


def print_history_result(entries: List[Any]) -> None:
    """Print the borrow history: status, time of the loan, title."""
    mode = get_output_mode()

    if not entries:
        print("No borrow history.")
        return

    rows = [
        (e.status, datetime.fromtimestamp(e.timestamp).strftime("%Y-%m-%d %H:%M:%S"), e.title)
        for e in entries
    ]
    if mode == "json":
        print(json.dumps([{"status": s, "borrowed_at": t, "title": title} for s, t, title in rows],
                         ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="Borrow History", header_style="bold cyan")
        table.add_column("Status")
        table.add_column("Borrowed At", no_wrap=True)
        table.add_column("Title")
        for status, when, title in rows:
            style = "green" if status == "returned" else "yellow"
            table.add_row(f"[{style}]{status}[/]", when, title)
        _console.print(table)
    else:
        for status, when, title in rows:
            print(f"{status} | {when} | {title}")
