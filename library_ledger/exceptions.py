class LibraryError(Exception):
    """Base class for all catalog, snapshot and ledger errors."""


class InvalidArgumentError(LibraryError, ValueError):
    """Malformed or missing required input."""


class DuplicateKeyError(LibraryError, ValueError):
    pass


class NotFoundError(LibraryError, LookupError):
    pass


class InsufficientStockError(LibraryError):
    pass


class OverReturnError(LibraryError):
    pass


class CorruptSnapshotError(LibraryError):
    """The snapshot payload is not a JSON object or its "books" value is not an array."""


class IOFailureError(LibraryError, OSError):
    """A data file could not be opened, read or written."""
