"""Ordering engine: re-sequences the catalog by stock or loan volume.

Sorting works on a plain list of references (the index) which is partitioned
in place; the caller then rebuilds its ordered storage from the result. The
partition scheme is not stable, so books with equal keys come back in no
particular order.
"""
from __future__ import annotations

import random
from enum import Enum
from typing import Callable, List, Sequence, Tuple

from library_ledger.book import Book


class SortKey(str, Enum):
    STOCK_ASCENDING = "stock"
    LOAN_DESCENDING = "loan"

    @classmethod
    def parse(cls, value: "str | SortKey") -> "SortKey":
        if isinstance(value, SortKey):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(k.value for k in cls)
            raise ValueError(f"Unknown sort key {value!r}. Use one of: {choices}.") from None


def _stock_ascending(a: Book, b: Book) -> int:
    return (a.stock > b.stock) - (a.stock < b.stock)


def _loan_descending(a: Book, b: Book) -> int:
    return (a.loaned < b.loaned) - (a.loaned > b.loaned)


_COMPARATORS = {
    SortKey.STOCK_ASCENDING: _stock_ascending,
    SortKey.LOAN_DESCENDING: _loan_descending,
}


def _partition(index: List[Book], low: int, high: int,
               cmp: Callable[[Book, Book], int]) -> Tuple[int, int]:
    """Three-way partition of index[low..high] around a random pivot.

    Returns (lt, gt): everything left of lt sorts before the pivot,
    everything right of gt sorts after it, and lt..gt ties with it.
    """
    # Random pivot keeps already-sorted catalogs out of the quadratic case.
    pivot = index[random.randint(low, high)]
    lt, i, gt = low, low, high
    while i <= gt:
        order = cmp(index[i], pivot)
        if order < 0:
            index[lt], index[i] = index[i], index[lt]
            lt += 1
            i += 1
        elif order > 0:
            index[i], index[gt] = index[gt], index[i]
            gt -= 1
        else:
            i += 1
    return lt, gt


def _quick_sort(index: List[Book], cmp: Callable[[Book, Book], int]) -> None:
    # The larger side is deferred, so at most O(log n) ranges are pending.
    stack = [(0, len(index) - 1)]
    while stack:
        low, high = stack.pop()
        while low < high:
            lt, gt = _partition(index, low, high, cmp)
            if lt - low < high - gt:
                stack.append((gt + 1, high))
                high = lt - 1
            else:
                stack.append((low, lt - 1))
                low = gt + 1


def sort_books(books: Sequence[Book], key: "SortKey | str") -> List[Book]:
    """Return the books permuted into ``key`` order.

    The returned list holds the same objects that were passed in; nothing is
    copied.
    """
    cmp = _COMPARATORS[SortKey.parse(key)]
    index = list(books)
    if len(index) > 1:
        _quick_sort(index, cmp)
    return index
