from __future__ import annotations

from typing import Protocol

from schemaviz.models.metadata import TableStructure, TableSummary


class MetadataProvider(Protocol):
    """Read-only access to a database's schema metadata.

    Both calls are idempotent and raise
    :class:`~schemaviz.engine.errors.MetadataProviderError` on failure.
    """

    async def list_tables(self, schema: str) -> list[TableSummary]:
        ...

    async def get_table_structure(self, schema: str, table: str) -> TableStructure:
        ...
