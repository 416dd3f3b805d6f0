import os

import pytest

from library_ledger.catalog import Catalog
from library_ledger.ledger import (
    CURRENT_RECORD,
    LEGACY_RECORD,
    LedgerAction,
    LedgerEvent,
    TransactionLedger,
    decode_record,
    encode_legacy_record,
    encode_record,
)


@pytest.fixture
def ledger(tmp_path):
    return TransactionLedger(tmp_path / "borrow_log.bin", tmp_path / "loan.bin")


def _catalog(**stocks):
    cat = Catalog()
    for isbn, stock in stocks.items():
        cat.add_book(isbn, f"Title {isbn}", "Author", stock=stock)
    return cat


def test_record_layouts_match_fixed_widths():
    assert CURRENT_RECORD.size == 136
    assert LEGACY_RECORD.size == 32


def test_record_fields_are_nul_padded_and_truncated():
    event = LedgerEvent(LedgerAction.RETURN, "X" * 30, "é" * 80, 7, 1700000000)
    chunk = encode_record(event)
    assert len(chunk) == CURRENT_RECORD.size
    assert chunk[:4] == (2).to_bytes(4, "little")
    decoded = decode_record(chunk)
    assert decoded.isbn == "X" * 19
    # 99 bytes available: 49 two-byte characters fit
    assert decoded.title == "é" * 49
    assert (decoded.quantity, decoded.timestamp) == (7, 1700000000)


def test_append_writes_one_record_per_event(ledger):
    assert ledger.log_loan("111", "Dune", 2) is True
    assert ledger.log_return("111", "Dune", 1) is True
    assert os.path.getsize(ledger.path) == 2 * CURRENT_RECORD.size
    source, events = ledger.read_events()
    assert source == "current"
    assert [(e.action, e.isbn, e.title, e.quantity) for e in events] == [
        (LedgerAction.LOAN, "111", "Dune", 2),
        (LedgerAction.RETURN, "111", "Dune", 1),
    ]


def test_append_failure_is_logged_and_swallowed(tmp_path, caplog):
    ledger = TransactionLedger(tmp_path / "missing-dir" / "borrow_log.bin")
    with caplog.at_level("WARNING", logger="library_ledger.ledger"):
        assert ledger.log_loan("111", "Dune", 1) is False
    assert "Ledger append" in caplog.text


def test_append_rejects_invalid_input(ledger):
    assert ledger.append(LedgerAction.LOAN, "", "T", 1) is False
    assert ledger.append(LedgerAction.LOAN, "1", "T", 0) is False
    assert ledger.append(9, "1", "T", 1) is False
    assert not os.path.exists(ledger.path)


def test_replay_applies_loans_and_returns(ledger):
    ledger.log_loan("A", "Title A", 2)
    ledger.log_loan("B", "Title B", 1)
    ledger.log_return("A", "Title A", 1)
    cat = _catalog(A=5, B=1)

    report = ledger.replay(cat)
    assert (report.source, report.applied, report.skipped) == ("current", 3, 0)
    a, b = cat.find_book("A"), cat.find_book("B")
    assert (a.stock, a.loaned) == (4, 1)
    assert (b.stock, b.loaned) == (0, 1)


def test_replay_skips_deleted_books(ledger):
    ledger.log_loan("gone", "Deleted", 1)
    ledger.log_loan("A", "Title A", 1)
    cat = _catalog(A=2)
    report = ledger.replay(cat)
    assert report.skipped == 1
    assert report.skipped_isbns == ["gone"]
    assert cat.find_book("A").loaned == 1


def test_replay_clamps_stock_instead_of_going_negative(ledger):
    ledger.log_loan("A", "Title A", 5)
    cat = _catalog(A=2)
    ledger.replay(cat)
    book = cat.find_book("A")
    assert (book.stock, book.loaned) == (0, 5)


def test_replay_over_return_collapses_loaned(ledger):
    ledger.log_loan("A", "Title A", 1)
    ledger.log_return("A", "Title A", 3)
    cat = _catalog(A=4)
    ledger.replay(cat)
    book = cat.find_book("A")
    assert (book.stock, book.loaned) == (4, 0)


def test_replay_is_repeatable_against_fresh_catalogs(ledger):
    ledger.log_loan("A", "Title A", 3)
    ledger.log_return("A", "Title A", 1)
    ledger.log_loan("B", "Title B", 9)
    first, second = _catalog(A=5, B=4), _catalog(A=5, B=4)
    ledger.replay(first)
    ledger.replay(second)
    assert [b.to_dict() for b in first.list_books()] == [b.to_dict() for b in second.list_books()]


def test_replay_without_any_ledger(ledger):
    cat = _catalog(A=1)
    report = ledger.replay(cat)
    assert (report.source, report.applied) == ("none", 0)
    assert cat.find_book("A").stock == 1


def test_legacy_ledger_fallback_treats_records_as_loans(ledger):
    with open(ledger.legacy_path, "wb") as fh:
        fh.write(encode_legacy_record("A", 2, 1600000000))
        fh.write(encode_legacy_record("B", 4, 1600000001))
        fh.write(encode_legacy_record("A", 1, 1600000002))
    cat = _catalog(A=5, B=3)

    report = ledger.replay(cat)
    assert report.source == "legacy"
    a, b = cat.find_book("A"), cat.find_book("B")
    assert (a.stock, a.loaned) == (2, 3)
    assert (b.stock, b.loaned) == (0, 4)


def test_current_ledger_wins_over_legacy(ledger):
    with open(ledger.legacy_path, "wb") as fh:
        fh.write(encode_legacy_record("A", 4, 1600000000))
    ledger.log_loan("A", "Title A", 1)
    cat = _catalog(A=5)
    report = ledger.replay(cat)
    assert report.source == "current"
    assert cat.find_book("A").loaned == 1


def test_truncated_trailing_record_is_end_of_stream(ledger):
    ledger.log_loan("A", "Title A", 1)
    ledger.log_loan("A", "Title A", 1)
    with open(ledger.path, "ab") as fh:
        fh.write(encode_record(LedgerEvent(LedgerAction.LOAN, "A", "Title A", 1, 0))[:50])
    cat = _catalog(A=5)
    report = ledger.replay(cat)
    assert report.applied == 2
    assert cat.find_book("A").loaned == 2
    assert len(ledger.build_outstanding_history()) == 2


def test_unknown_action_is_skipped(ledger):
    with open(ledger.path, "wb") as fh:
        fh.write(encode_record(LedgerEvent(7, "A", "Title A", 1, 0)))
    cat = _catalog(A=5)
    report = ledger.replay(cat)
    assert (report.applied, report.skipped) == (0, 1)


def _write_events(ledger, events):
    with open(ledger.path, "wb") as fh:
        for action, isbn, qty, ts in events:
            fh.write(encode_record(LedgerEvent(action, isbn, f"Title {isbn}@{ts}", qty, ts)))


def test_fifo_matching_consumes_oldest_lot_first(ledger):
    _write_events(ledger, [
        (LedgerAction.LOAN, "X", 3, 1),
        (LedgerAction.LOAN, "X", 2, 2),
        (LedgerAction.RETURN, "X", 4, 3),
    ])
    history = ledger.build_outstanding_history()
    assert [(h.status, h.timestamp) for h in history] == [("returned", 1), ("outstanding", 2)]
    assert history[0].title == "Title X@1"


def test_history_matches_returns_per_isbn(ledger):
    _write_events(ledger, [
        (LedgerAction.LOAN, "X", 1, 1),
        (LedgerAction.LOAN, "Y", 1, 2),
        (LedgerAction.RETURN, "Y", 1, 3),
        (LedgerAction.LOAN, "X", 2, 4),
        (LedgerAction.RETURN, "X", 2, 5),
    ])
    history = ledger.build_outstanding_history()
    assert [h.status for h in history] == ["returned", "returned", "outstanding"]
    assert [h.timestamp for h in history] == [1, 2, 4]


def test_return_without_outstanding_lot_has_no_effect(ledger):
    _write_events(ledger, [
        (LedgerAction.RETURN, "X", 5, 1),
        (LedgerAction.LOAN, "X", 2, 2),
        (LedgerAction.RETURN, "X", 2, 3),
        (LedgerAction.RETURN, "X", 9, 4),
        (LedgerAction.LOAN, "X", 1, 5),
    ])
    history = ledger.build_outstanding_history()
    assert [(h.status, h.timestamp) for h in history] == [("returned", 2), ("outstanding", 5)]


def test_history_empty_without_ledger(ledger):
    assert ledger.build_outstanding_history() == []


def test_iter_loan_events(ledger):
    ledger.log_loan("A", "Title A", 1)
    ledger.log_return("A", "Title A", 1)
    ledger.log_loan("B", "Title B", 2)
    assert [e.isbn for e in ledger.iter_loan_events()] == ["A", "B"]
