"""
Exception hierarchy for vectorkit.

Every error raised on purpose by the index derives from VectorIndexError, so
callers can catch the whole family in one place. Input errors also derive from
the matching builtin (ValueError, KeyError, OSError) so code that already
handles those keeps working.
"""

from typing import Optional


class VectorIndexError(Exception):
    """Base class for all vector index errors."""


class DimensionMismatchError(VectorIndexError, ValueError):
    """A vector's length disagrees with the index dimension."""

    def __init__(self, expected: int, actual: int, context: str = "Vector") -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{context} dimension {actual} doesn't match index dimension {expected}"
        )


class EmptyIndexError(VectorIndexError):
    """Operation is meaningless on an index with no documents."""


class InvalidParameterError(VectorIndexError, ValueError):
    """A configuration or call parameter is outside its valid domain."""


class DocumentNotFoundError(VectorIndexError, KeyError):
    """No document with the requested id exists in the index."""

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(document_id)

    def __str__(self) -> str:
        return f"Document '{self.document_id}' not found in index"


class DuplicateDocumentError(VectorIndexError, ValueError):
    """A document id is already present in the index or repeated in a batch."""


class PersistenceError(VectorIndexError, OSError):
    """Saving or loading a snapshot failed."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.path = path
        if path is not None:
            message = f"{message}: {path}"
        super().__init__(message)

    def __str__(self) -> str:
        return self.args[0]
