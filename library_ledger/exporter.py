"""File exports built on the catalog's flat record stream and the ledger."""
from __future__ import annotations

import csv
import json
import os
from datetime import datetime
from typing import Any, Dict, Iterable, Union

from library_ledger.exceptions import IOFailureError
from library_ledger.ledger import TransactionLedger
from library_ledger.oplog import TIME_FORMAT

PathLike = Union[str, os.PathLike]

RECORD_FIELDS = ["isbn", "title", "author", "category", "stock", "loaned"]


def export_csv(path: PathLike, records: Iterable[Dict[str, Any]]) -> int:
    count = 0
    try:
        with open(path, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=RECORD_FIELDS, extrasaction="ignore")
            writer.writeheader()
            for record in records:
                writer.writerow(record)
                count += 1
    except OSError as exc:
        raise IOFailureError(f"Could not write {path}: {exc}") from exc
    return count


def export_json(path: PathLike, records: Iterable[Dict[str, Any]]) -> int:
    book_data = [{k: record.get(k) for k in RECORD_FIELDS} for record in records]
    try:
        with open(path, "w", encoding="utf-8") as jsonfile:
            json.dump(book_data, jsonfile, indent=2, ensure_ascii=False)
    except OSError as exc:
        raise IOFailureError(f"Could not write {path}: {exc}") from exc
    return len(book_data)


def export_borrow_data(path: PathLike, ledger: TransactionLedger) -> int:
    """One CSV row per loan: when it happened and which title."""
    count = 0
    try:
        with open(path, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.writer(csvfile)
            writer.writerow(["borrowed_at", "title"])
            for event in ledger.iter_loan_events():
                writer.writerow([datetime.fromtimestamp(event.timestamp).strftime(TIME_FORMAT), event.title])
                count += 1
    except OSError as exc:
        raise IOFailureError(f"Could not write {path}: {exc}") from exc
    return count
