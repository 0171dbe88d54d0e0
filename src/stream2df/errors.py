from typing import Optional


class Stream2dfError(RuntimeError):
    """Base class of all errors raised by stream2df."""


class StreamError(Stream2dfError):
    """Raised when the input is not a readable Arrow IPC stream."""


class EmptyStreamError(StreamError):
    """Raised when the input holds no bytes at all, e.g., because the
    producing stage of a shell pipeline failed."""


class SchemaMismatchError(StreamError):
    """Raised when consecutive streams in one input disagree on the schema."""


class QueryError(Stream2dfError):
    """Raised when a query cannot be planned or evaluated."""


class SqlSyntaxError(QueryError):
    """Raised when the query text does not parse."""

    def __init__(self, message: str, *, position: Optional[int] = None) -> None:
        if position is not None:
            message = f"{message} at position {position}"
        super().__init__(message)
        self.position = position


class UnknownTableError(QueryError):
    def __init__(self, name: str, known: list[str]) -> None:
        super().__init__(
            f"table '{name}' not found; registered tables: {', '.join(known) or '<none>'}"
        )
        self.name = name


class UnknownColumnError(QueryError):
    def __init__(self, name: str, known: list[str]) -> None:
        super().__init__(
            f"column '{name}' not found; available columns: {', '.join(known)}"
        )
        self.name = name
