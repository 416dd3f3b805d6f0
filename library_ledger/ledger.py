"""Append-only binary ledger of loan and return events.

Two fixed-width record layouts exist on disk. The current one carries the
action and a denormalized title; the legacy one (written by older versions to
a separate file) has only isbn, quantity and timestamp and always means a
loan. A replay reads exactly one of the two files: the current file when it
exists, otherwise the legacy file.
"""
from __future__ import annotations

import logging
import os
import struct
import time
from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Deque, Dict, Iterator, List, Optional, Tuple, Union

from library_ledger.book import ISBN_WIDTH
from library_ledger.catalog import Catalog
from library_ledger.exceptions import IOFailureError

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

TITLE_WIDTH = 100

# action:int32, isbn:char[20], title:char[100], quantity:int32, timestamp:int64
CURRENT_RECORD = struct.Struct(f"<i{ISBN_WIDTH}s{TITLE_WIDTH}siq")
# isbn:char[20], quantity:int32, timestamp:int64
LEGACY_RECORD = struct.Struct(f"<{ISBN_WIDTH}siq")

SOURCE_CURRENT = "current"
SOURCE_LEGACY = "legacy"
SOURCE_NONE = "none"

STATUS_RETURNED = "returned"
STATUS_OUTSTANDING = "outstanding"


class LedgerAction(IntEnum):
    LOAN = 1
    RETURN = 2


@dataclass(frozen=True)
class LedgerEvent:
    action: int
    isbn: str
    title: str
    quantity: int
    timestamp: int


@dataclass
class LoanLot:
    """One loan event and how much of it is still out."""

    event: LedgerEvent
    remaining: int


@dataclass(frozen=True)
class HistoryEntry:
    status: str
    timestamp: int
    title: str


@dataclass
class ReplayReport:
    source: str = SOURCE_NONE
    applied: int = 0
    skipped: int = 0
    skipped_isbns: List[str] = field(default_factory=list)


# ------------------------- Wire helpers ------------------------- #
def _pack_text(text: str, width: int) -> bytes:
    # Keep one trailing NUL and never cut a UTF-8 sequence in half.
    raw = (text or "").encode("utf-8")[: width - 1]
    return raw.decode("utf-8", "ignore").encode("utf-8")


def _unpack_text(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", "replace")


def encode_record(event: LedgerEvent) -> bytes:
    return CURRENT_RECORD.pack(
        int(event.action),
        _pack_text(event.isbn, ISBN_WIDTH),
        _pack_text(event.title, TITLE_WIDTH),
        event.quantity,
        event.timestamp,
    )


def decode_record(chunk: bytes) -> LedgerEvent:
    action, isbn, title, quantity, timestamp = CURRENT_RECORD.unpack(chunk)
    return LedgerEvent(action, _unpack_text(isbn), _unpack_text(title), quantity, timestamp)


def encode_legacy_record(isbn: str, quantity: int, timestamp: int) -> bytes:
    return LEGACY_RECORD.pack(_pack_text(isbn, ISBN_WIDTH), quantity, timestamp)


def decode_legacy_record(chunk: bytes) -> LedgerEvent:
    isbn, quantity, timestamp = LEGACY_RECORD.unpack(chunk)
    return LedgerEvent(LedgerAction.LOAN, _unpack_text(isbn), "", quantity, timestamp)


def _read_records(path: PathLike, layout: struct.Struct, decoder) -> Iterator[LedgerEvent]:
    try:
        with open(path, "rb") as fh:
            while True:
                chunk = fh.read(layout.size)
                if not chunk:
                    return
                if len(chunk) < layout.size:
                    # A crash mid-append leaves a short tail; that is end-of-stream.
                    logger.warning("Ignoring truncated %d-byte trailing record in %s", len(chunk), path)
                    return
                yield decoder(chunk)
    except OSError as exc:
        raise IOFailureError(f"Could not read ledger {path}: {exc}") from exc


class TransactionLedger:
    """Loan/return audit trail stored as fixed-size binary records."""

    def __init__(self, path: PathLike, legacy_path: Optional[PathLike] = None) -> None:
        self.path = path
        self.legacy_path = legacy_path

    # ------------------------- Writing ------------------------- #
    def append(self, action: LedgerAction, isbn: str, title: str, quantity: int,
               timestamp: Optional[int] = None) -> bool:
        """Append one event. Never raises on I/O problems.

        Returns True when the record reached the file. Failures are reported
        on this module's logger so the in-memory operation that triggered the
        append is never blocked by the audit trail.
        """
        try:
            action = LedgerAction(action)
        except ValueError:
            logger.warning("Refusing to log unknown ledger action %r", action)
            return False
        if not isbn or quantity <= 0:
            logger.warning("Refusing to log %s with isbn=%r quantity=%r", action.name, isbn, quantity)
            return False

        event = LedgerEvent(action, isbn, title or "", quantity,
                            int(time.time()) if timestamp is None else timestamp)
        try:
            with open(self.path, "ab") as fh:
                fh.write(encode_record(event))
                fh.flush()
        except OSError as exc:
            logger.warning("Ledger append to %s failed (%s %s x%d): %s",
                           self.path, action.name, isbn, quantity, exc)
            return False
        return True

    def log_loan(self, isbn: str, title: str, quantity: int) -> bool:
        return self.append(LedgerAction.LOAN, isbn, title, quantity)

    def log_return(self, isbn: str, title: str, quantity: int) -> bool:
        return self.append(LedgerAction.RETURN, isbn, title, quantity)

    # ------------------------- Reading ------------------------- #
    def read_events(self) -> Tuple[str, List[LedgerEvent]]:
        """Read the whole ledger, choosing exactly one on-disk format."""
        if os.path.exists(self.path):
            return SOURCE_CURRENT, list(_read_records(self.path, CURRENT_RECORD, decode_record))
        if self.legacy_path and os.path.exists(self.legacy_path):
            logger.info("No ledger at %s; reading legacy loan log %s", self.path, self.legacy_path)
            return SOURCE_LEGACY, list(_read_records(self.legacy_path, LEGACY_RECORD, decode_legacy_record))
        return SOURCE_NONE, []

    def iter_loan_events(self) -> Iterator[LedgerEvent]:
        if not os.path.exists(self.path):
            return
        for event in _read_records(self.path, CURRENT_RECORD, decode_record):
            if event.action == LedgerAction.LOAN:
                yield event

    # ------------------------- Reconciliation ------------------------- #
    def replay(self, catalog: Catalog) -> ReplayReport:
        """Fold every ledger event into the catalog's stock/loaned counters."""
        source, events = self.read_events()
        report = ReplayReport(source=source)
        for event in events:
            if event.quantity <= 0:
                logger.warning("Skipping ledger event for %s with quantity %d", event.isbn, event.quantity)
                applied = False
            elif event.action == LedgerAction.LOAN:
                applied = catalog.apply_replayed_loan(event.isbn, event.quantity)
            elif event.action == LedgerAction.RETURN:
                applied = catalog.apply_replayed_return(event.isbn, event.quantity)
            else:
                logger.warning("Skipping ledger event with unknown action %r", event.action)
                applied = False

            if applied:
                report.applied += 1
            else:
                report.skipped += 1
                report.skipped_isbns.append(event.isbn)

        logger.info("Replayed %s ledger: %d applied, %d skipped",
                    source, report.applied, report.skipped)
        return report

    def build_outstanding_history(self) -> List[HistoryEntry]:
        """Mark each loan as returned or outstanding.

        Returns are matched against earlier loans of the same ISBN oldest
        first. A return with nothing left to match is ignored. Entries come
        back in ledger order.
        """
        if not os.path.exists(self.path):
            return []

        lots: List[LoanLot] = []
        open_lots: Dict[str, Deque[LoanLot]] = {}
        for event in _read_records(self.path, CURRENT_RECORD, decode_record):
            if event.action == LedgerAction.LOAN:
                lot = LoanLot(event, event.quantity)
                lots.append(lot)
                if lot.remaining > 0:
                    open_lots.setdefault(event.isbn, deque()).append(lot)
            elif event.action == LedgerAction.RETURN:
                queue = open_lots.get(event.isbn)
                left = event.quantity
                while queue and left > 0:
                    lot = queue[0]
                    used = min(lot.remaining, left)
                    lot.remaining -= used
                    left -= used
                    if lot.remaining == 0:
                        queue.popleft()

        return [
            HistoryEntry(
                STATUS_RETURNED if lot.remaining == 0 else STATUS_OUTSTANDING,
                lot.event.timestamp,
                lot.event.title,
            )
            for lot in lots
        ]
