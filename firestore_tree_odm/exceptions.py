"""Exception types raised by the schema tree."""


class FirestoreTreeError(Exception):
    """Base class for errors raised by ``firestore_tree_odm``."""


class SchemaMismatch(FirestoreTreeError, ValueError):
    """
    A path does not line up with a schema's declared ancestry.

    Raised before any I/O is attempted: the collection names in the path
    differ from the schema's parent chain, or the path has the wrong depth.
    """

    def __init__(self, message: str, path: str = None, expected: str = None):
        super().__init__(message)
        self.path = path
        self.expected = expected


class TransactionAborted(FirestoreTreeError):
    """Firestore gave up retrying a transaction after repeated write conflicts."""

    def __init__(self, message: str, attempts: int = None):
        super().__init__(message)
        self.attempts = attempts


__all__ = [
    "FirestoreTreeError",
    "SchemaMismatch",
    "TransactionAborted",
]
