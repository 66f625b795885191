"""MetadataAggregator — fan-out/fan-in collection of per-table metadata for a schema."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from schemaviz.engine.errors import ListTablesFailed, TableStructureFailed
from schemaviz.models.metadata import (
    ColumnMetadata,
    Diagnostic,
    ForeignKeyDescriptor,
    TableMetadata,
    TableStructure,
    TableSummary,
)
from schemaviz.providers.base import MetadataProvider

logger = logging.getLogger(__name__)

PRIMARY_KEY = "PRIMARY KEY"


@dataclass
class AggregationResult:
    """Tables in list order plus diagnostics for degraded ones."""

    schema: str
    tables: list[TableMetadata] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def degraded_tables(self) -> list[str]:
        return [d.table for d in self.diagnostics]


def normalize_structure(summary: TableSummary, structure: TableStructure) -> TableMetadata:
    """Convert a raw structure response into :class:`TableMetadata`.

    A column is a primary key iff a ``PRIMARY KEY`` constraint names it.
    """
    pk_columns = {
        c.column_name
        for c in structure.constraints
        if c.constraint_type == PRIMARY_KEY and c.column_name
    }
    columns = [
        ColumnMetadata(
            name=col.column_name,
            data_type=col.data_type,
            nullable=col.is_nullable.upper() == "YES",
            default_expression=col.column_default,
            is_primary_key=col.column_name in pk_columns,
        )
        for col in structure.columns
    ]
    foreign_keys = [
        ForeignKeyDescriptor(
            constraint_name=fk.constraint_name,
            source_column=fk.column_name,
            target_table=fk.referenced_table,
            target_column=fk.referenced_column,
        )
        for fk in structure.foreign_keys
    ]
    return TableMetadata(
        name=summary.table_name,
        columns=columns,
        foreign_keys=foreign_keys,
        row_count_estimate=summary.row_count,
    )


class MetadataAggregator:
    """Collects the table list, then every table's structure concurrently.

    At most *max_concurrency* structure requests are in flight at once and each
    is bounded by *request_timeout* seconds. A failed or timed-out table is
    degraded to an empty one; only a failed table list aborts the cycle.
    """

    def __init__(
        self,
        provider: MetadataProvider,
        max_concurrency: int = 8,
        request_timeout: Optional[float] = 10.0,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.provider = provider
        self.max_concurrency = max_concurrency
        self.request_timeout = request_timeout

    async def aggregate(self, schema: str) -> AggregationResult:
        """Return every table of *schema* with its structure.

        Raises :class:`ListTablesFailed` if the table list cannot be fetched.
        """
        try:
            summaries = await self.provider.list_tables(schema)
        except Exception as exc:
            logger.error("Listing tables for schema '%s' failed: %s", schema, exc)
            raise ListTablesFailed(schema, exc) from exc

        semaphore = asyncio.Semaphore(self.max_concurrency)
        outcomes = await asyncio.gather(
            *(self._fetch_one(schema, summary, semaphore) for summary in summaries)
        )

        result = AggregationResult(schema=schema)
        for table, failure in outcomes:
            result.tables.append(table)
            if failure is not None:
                result.diagnostics.append(Diagnostic(table=failure.table, message=str(failure)))
        return result

    async def _fetch_one(
        self,
        schema: str,
        summary: TableSummary,
        semaphore: asyncio.Semaphore,
    ) -> tuple[TableMetadata, Optional[TableStructureFailed]]:
        async with semaphore:
            try:
                structure = await asyncio.wait_for(
                    self.provider.get_table_structure(schema, summary.table_name),
                    timeout=self.request_timeout,
                )
            except Exception as exc:
                failure = TableStructureFailed(summary.table_name, exc)
                logger.warning("Loading structure of table '%s.%s' failed: %s", schema, summary.table_name, failure)
                degraded = TableMetadata(
                    name=summary.table_name,
                    row_count_estimate=summary.row_count,
                    degraded=True,
                )
                return degraded, failure
        return normalize_structure(summary, structure), None
