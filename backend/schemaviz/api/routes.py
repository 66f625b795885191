"""REST API routes for the schema graph — view state, refresh, layout, context switches."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException

from schemaviz.config import Settings, settings
from schemaviz.engine.aggregator import MetadataAggregator
from schemaviz.engine.context import ApplicationContext
from schemaviz.engine.controller import GraphViewController
from schemaviz.engine.signal_bus import SignalBus
from schemaviz.models.api import (
    ContextResponse,
    DatabaseSelectRequest,
    GraphSnapshot,
    LayoutRequest,
    RelationshipsResponse,
    SchemaSelectRequest,
    SignalRecord,
)
from schemaviz.providers.base import MetadataProvider
from schemaviz.providers.http import HttpMetadataProvider
from schemaviz.providers.sample import SampleMetadataProvider, list_samples

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1")


def build_provider(config: Settings, context: ApplicationContext) -> MetadataProvider:
    """Sample provider when ``config.sample`` is set, otherwise the HTTP metadata API."""
    if config.sample:
        logger.info("Serving schema metadata from sample '%s'", config.sample)
        return SampleMetadataProvider.from_sample(config.sample)
    return HttpMetadataProvider(
        config.metadata_base_url,
        headers=context.request_headers,
        timeout=config.http_timeout,
    )


# --- Module-level singletons ---
bus = SignalBus()
context = ApplicationContext(
    bus,
    schema=settings.default_schema,
    database_id=settings.database_id,
    api_token=settings.api_token,
)
provider = build_provider(settings, context)
controller = GraphViewController(
    MetadataAggregator(
        provider,
        max_concurrency=settings.max_concurrency,
        request_timeout=settings.request_timeout,
    ),
    context,
    bus,
    layout=settings.default_layout,
)


# ------------------------------------------------------------------
# Graph
# ------------------------------------------------------------------

@router.get("/graph", response_model=GraphSnapshot)
async def get_graph() -> GraphSnapshot:
    """Return the latest committed graph and the controller state."""
    return controller.snapshot()


@router.post("/graph/refresh", response_model=GraphSnapshot)
async def refresh_graph() -> GraphSnapshot:
    """Rebuild the graph for the active schema."""
    if not context.schema:
        raise HTTPException(status_code=400, detail="No schema selected. Call /context/schema first.")
    await controller.refresh()
    return controller.snapshot()


@router.put("/graph/layout", response_model=GraphSnapshot)
async def change_layout(request: LayoutRequest) -> GraphSnapshot:
    """Re-project node positions under another layout; nodes and edges are unchanged."""
    controller.set_layout(request.layout)
    return controller.snapshot()


@router.get("/graph/tables/{table}/relationships", response_model=RelationshipsResponse)
async def get_relationships(table: str) -> dict[str, Any]:
    """Return the foreign keys of *table* and the tables referencing it."""
    try:
        return controller.relationships(table)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Table '{table}' not found in graph.") from None


# ------------------------------------------------------------------
# Application context
# ------------------------------------------------------------------

@router.get("/context", response_model=ContextResponse)
async def get_context() -> dict[str, Any]:
    return context.as_dict()


@router.put("/context/schema", response_model=GraphSnapshot)
async def select_schema(request: SchemaSelectRequest) -> GraphSnapshot:
    """Switch the active schema; subscribers rebuild from the new context."""
    context.set_schema(request.schema_name)
    await controller.wait_idle()
    return controller.snapshot()


@router.put("/context/database", response_model=GraphSnapshot)
async def select_database(request: DatabaseSelectRequest) -> GraphSnapshot:
    """Switch the active database; the graph is rebuilt for the current schema."""
    context.set_database(request.database_id)
    await controller.wait_idle()
    return controller.snapshot()


# ------------------------------------------------------------------
# Signals & samples
# ------------------------------------------------------------------

@router.get("/signals", response_model=list[SignalRecord])
async def get_signals() -> list[dict[str, Any]]:
    """Return the history of published context-change signals."""
    return bus.get_history()


@router.get("/samples")
async def get_samples() -> list[dict[str, str]]:
    """Return the built-in sample schemas from the samples/ directory."""
    return list_samples()
