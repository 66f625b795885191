"""GraphViewController — lifecycle of the schema relationship graph.

Runs aggregate → assemble → layout whenever the active schema or database
changes, on first activation, or on explicit refresh, and exposes the latest
committed model to the renderer.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Optional

import networkx as nx

from schemaviz.engine.aggregator import MetadataAggregator
from schemaviz.engine.assembler import GraphAssembler
from schemaviz.engine.context import ApplicationContext
from schemaviz.engine.errors import ListTablesFailed
from schemaviz.engine.layout import DEFAULT_BOX, NodeBox, apply_layout
from schemaviz.engine.signal_bus import SignalBus, Subscription, Topic
from schemaviz.models.api import GraphSnapshot
from schemaviz.models.graph import GraphModel, LayoutKind
from schemaviz.models.metadata import Diagnostic

logger = logging.getLogger(__name__)

# Topics that invalidate the graph for the now-active schema
REBUILD_TOPICS = (Topic.SCHEMA_CHANGED, Topic.DATABASE_CHANGED)

Listener = Callable[[GraphModel], None]


class ViewState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class GraphViewController:
    """Owns the current :class:`GraphModel` and replaces it wholesale.

    Every rebuild captures a generation number when it starts and commits
    only if no newer rebuild has started since, so a slow stale cycle can
    never overwrite a newer one.
    """

    def __init__(
        self,
        aggregator: MetadataAggregator,
        context: ApplicationContext,
        bus: SignalBus,
        assembler: Optional[GraphAssembler] = None,
        layout: LayoutKind = LayoutKind.GRID,
        box: NodeBox = DEFAULT_BOX,
    ) -> None:
        self.aggregator = aggregator
        self.context = context
        self.bus = bus
        self.assembler = assembler or GraphAssembler()
        self.box = box
        self.layout: LayoutKind = LayoutKind(layout)

        self.state: ViewState = ViewState.IDLE
        self.model: GraphModel = GraphModel()
        self.schema: Optional[str] = None
        self.error: Optional[str] = None
        self.diagnostics: list[Diagnostic] = []
        self.generation: int = 0

        self._graph: nx.MultiDiGraph = nx.MultiDiGraph()
        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task] = set()
        self._subscriptions: list[Subscription] = []
        self.start()

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    async def activate(self) -> bool:
        """First activation for the current schema."""
        self.start()
        return await self.rebuild()

    async def refresh(self) -> bool:
        """Explicit user-initiated rebuild."""
        return await self.rebuild()

    async def rebuild(self) -> bool:
        """Run one full aggregation cycle; return ``True`` if its result was committed."""
        self.generation += 1
        generation = self.generation
        schema = self.context.schema

        if not schema:
            self._commit(ViewState.IDLE, GraphModel(), schema=None)
            return True

        self.state = ViewState.LOADING
        logger.info("Rebuilding graph for schema '%s' (generation %d)", schema, generation)
        try:
            result = await self.aggregator.aggregate(schema)
        except ListTablesFailed as exc:
            if not self._is_current(generation):
                return False
            self._commit(ViewState.ERROR, GraphModel(), schema=schema, error=str(exc))
            return True
        except Exception as exc:
            return self._fail(generation, schema, exc)

        try:
            model = self.assembler.assemble(result.tables)
        except Exception as exc:
            return self._fail(generation, schema, exc)
        if not self._is_current(generation):
            return False
        self._commit(ViewState.READY, model, schema=schema, diagnostics=result.diagnostics)
        logger.info(
            "Graph for schema '%s' ready: %d table(s), %d relationship(s), %d degraded",
            schema, self.model.table_count, self.model.relationship_count, len(self.diagnostics),
        )
        return True

    def _fail(self, generation: int, schema: str, exc: Exception) -> bool:
        logger.exception("Unexpected failure rebuilding graph for schema '%s'", schema)
        if not self._is_current(generation):
            return False
        self._commit(ViewState.ERROR, GraphModel(), schema=schema, error=str(exc) or type(exc).__name__)
        return True

    def set_layout(self, kind: LayoutKind) -> GraphModel:
        """Re-project the existing nodes under *kind* without re-aggregating."""
        self.layout = LayoutKind(kind)
        self.model = apply_layout(self.model, self.layout, self.box)
        self._notify()
        return self.model

    # ------------------------------------------------------------------
    # Signal handling
    # ------------------------------------------------------------------

    def _on_context_changed(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Context changed outside an event loop; graph not rebuilt")
            return
        task = loop.create_task(self.rebuild())
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Graph rebuild failed", exc_info=task.exception())

    async def wait_idle(self) -> None:
        """Wait until every signal-triggered rebuild has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def start(self) -> None:
        """Subscribe to context signals; a no-op while already subscribed."""
        if self._subscriptions:
            return
        self._subscriptions = [
            self.bus.subscribe(topic, self._on_context_changed) for topic in REBUILD_TOPICS
        ]

    def close(self) -> None:
        """Release all bus subscriptions until the next :meth:`start`."""
        for subscription in self._subscriptions:
            subscription.release()
        self._subscriptions = []

    # ------------------------------------------------------------------
    # Commit & listeners
    # ------------------------------------------------------------------

    def _is_current(self, generation: int) -> bool:
        if generation != self.generation:
            logger.debug("Discarding stale graph generation %d (latest %d)", generation, self.generation)
            return False
        return True

    def _commit(
        self,
        state: ViewState,
        model: GraphModel,
        schema: Optional[str],
        error: Optional[str] = None,
        diagnostics: Optional[list[Diagnostic]] = None,
    ) -> None:
        model = apply_layout(model, self.layout, self.box)
        self.model = model
        self._graph = self.assembler.to_networkx(model)
        self.state = state
        self.schema = schema
        self.error = error
        self.diagnostics = list(diagnostics or [])
        if error is not None:
            logger.error("Graph for schema '%s' unavailable: %s", schema, error)
        self._notify()

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* with every newly committed or re-projected model."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.model)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def relationships(self, table: str) -> dict[str, Any]:
        return self.assembler.relationships(self.model, self._graph, table)

    def snapshot(self) -> GraphSnapshot:
        return GraphSnapshot(
            state=self.state.value,
            schema_name=self.schema,
            layout=self.layout,
            generation=self.generation,
            error=self.error,
            graph=self.model,
            diagnostics=self.diagnostics,
            table_count=self.model.table_count,
            relationship_count=self.model.relationship_count,
        )
