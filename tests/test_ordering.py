import pytest

from library_ledger.book import Book
from library_ledger.ordering import SortKey, sort_books


def _books(stocks=(), loaned=()):
    return [Book(str(i), f"T{i}", "A", stock=s, loaned=l)
            for i, (s, l) in enumerate(zip(stocks, loaned))]


def test_stock_ascending():
    books = _books(stocks=[5, 1, 3], loaned=[0, 0, 0])
    assert [b.stock for b in sort_books(books, SortKey.STOCK_ASCENDING)] == [1, 3, 5]


def test_loan_descending():
    books = _books(stocks=[0, 0, 0], loaned=[0, 4, 2])
    assert [b.loaned for b in sort_books(books, SortKey.LOAN_DESCENDING)] == [4, 2, 0]


def test_result_is_a_permutation_of_the_same_objects():
    books = _books(stocks=[3, 3, 1, 2], loaned=[0, 0, 0, 0])
    result = sort_books(books, "stock")
    assert sorted(map(id, result)) == sorted(map(id, books))
    assert [b.isbn for b in books] == ["0", "1", "2", "3"]


def test_equal_keys_compared_as_a_set():
    books = _books(stocks=[2, 1, 2, 1, 2], loaned=[0] * 5)
    result = sort_books(books, SortKey.STOCK_ASCENDING)
    assert [b.stock for b in result] == [1, 1, 2, 2, 2]
    assert {b.isbn for b in result[:2]} == {"1", "3"}
    assert {b.isbn for b in result[2:]} == {"0", "2", "4"}


def test_empty_and_single():
    assert sort_books([], "loan") == []
    one = _books(stocks=[1], loaned=[1])
    assert sort_books(one, "loan") == one


def test_large_presorted_input():
    books = _books(stocks=list(range(20000)), loaned=[0] * 20000)
    result = sort_books(books, SortKey.LOAN_DESCENDING)
    assert len(result) == 20000
    result = sort_books(list(reversed(books)), SortKey.STOCK_ASCENDING)
    assert [b.stock for b in result] == list(range(20000))


def test_parse_sort_key():
    assert SortKey.parse("Stock") is SortKey.STOCK_ASCENDING
    assert SortKey.parse(" loan ") is SortKey.LOAN_DESCENDING
    assert SortKey.parse(SortKey.LOAN_DESCENDING) is SortKey.LOAN_DESCENDING
    with pytest.raises(ValueError, match="Unknown sort key"):
        SortKey.parse("title")
