"""Exception taxonomy for metadata aggregation and graph layout."""

from __future__ import annotations


class SchemaVizError(Exception):
    """Base class for all schemaviz errors."""


class MetadataProviderError(SchemaVizError):
    """A metadata provider call failed (transport or service error)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ListTablesFailed(SchemaVizError):
    """Table enumeration failed; fatal to the aggregation cycle.

    The message is the underlying cause's message, unchanged.
    """

    def __init__(self, schema: str, cause: BaseException) -> None:
        super().__init__(str(cause))
        self.schema = schema
        self.cause = cause


class TableStructureFailed(SchemaVizError):
    """Structure fetch for a single table failed; the table is degraded."""

    def __init__(self, table: str, cause: BaseException) -> None:
        super().__init__(f"{table}: {str(cause) or type(cause).__name__}")
        self.table = table
        self.cause = cause


class LayoutInvariantViolation(SchemaVizError, ValueError):
    """Layout called with an index/total combination that has no position."""
