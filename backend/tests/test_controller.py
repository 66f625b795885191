"""Tests for GraphViewController — state machine, signals, layout switching, stale cycles."""

import asyncio

import pytest

from schemaviz.engine.aggregator import MetadataAggregator
from schemaviz.engine.assembler import GraphAssembler
from schemaviz.engine.context import ApplicationContext
from schemaviz.engine.controller import GraphViewController, ViewState
from schemaviz.engine.errors import MetadataProviderError
from schemaviz.engine.signal_bus import SignalBus, Topic
from schemaviz.models.graph import LayoutKind
from schemaviz.models.metadata import TableStructure, TableSummary


# ---------------------------------------------------------------------------
# Helpers – multi-schema provider with failures, delays and a gate
# ---------------------------------------------------------------------------


def _table(columns, pk=None, fks=()):
    return {
        "columns": [{"column_name": c, "data_type": "integer", "is_nullable": "NO"} for c in columns],
        "constraints": [{"constraint_type": "PRIMARY KEY", "column_name": pk}] if pk else [],
        "foreign_keys": [
            {"constraint_name": f"{col}_fkey", "column_name": col, "referenced_table": target, "referenced_column": "id"}
            for col, target in fks
        ],
    }


def _schemas() -> dict:
    return {
        "public": {
            "users": _table(["id", "email", "name", "created_at", "is_active"], pk="id"),
            "orders": _table(["id", "user_id", "total", "placed_at"], pk="id", fks=[("user_id", "users")]),
        },
        "reporting": {
            "daily_sales": _table(["day", "revenue"], pk="day"),
        },
    }


class FakeProvider:
    def __init__(self, schemas, failing=(), list_errors=None, delays=None):
        self.schemas = schemas
        self.failing = set(failing)
        self.list_errors = list_errors or {}
        self.delays = delays or {}
        self.gate: asyncio.Event | None = None
        self.list_calls = 0

    async def list_tables(self, schema):
        self.list_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(self.delays.get(schema, 0))
        if schema in self.list_errors:
            raise self.list_errors[schema]
        return [TableSummary(table_name=name) for name in self.schemas.get(schema, {})]

    async def get_table_structure(self, schema, table):
        if table in self.failing:
            raise MetadataProviderError(f"transport error on {table}")
        return TableStructure(**self.schemas[schema][table])


def _make(provider=None, schema="public", layout=LayoutKind.GRID):
    bus = SignalBus()
    ctx = ApplicationContext(bus, schema=schema)
    provider = provider or FakeProvider(_schemas())
    ctrl = GraphViewController(MetadataAggregator(provider), ctx, bus, layout=layout)
    return ctrl, ctx, bus, provider


def _run(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class TestStateMachine:
    def test_initial_state_idle_and_empty(self):
        ctrl, *_ = _make()
        assert ctrl.state == ViewState.IDLE
        assert ctrl.model.nodes == []
        assert ctrl.snapshot().state == "idle"

    def test_activate_reaches_ready(self):
        ctrl, *_ = _make()
        assert _run(ctrl.activate()) is True
        assert ctrl.state == ViewState.READY
        assert ctrl.schema == "public"
        assert ctrl.model.node_ids() == ["users", "orders"]
        assert [(e.source, e.target, e.label) for e in ctrl.model.edges] == [("orders", "users", "user_id")]

    def test_activate_without_schema_stays_idle(self):
        ctrl, *_ = _make(schema=None)
        _run(ctrl.activate())
        assert ctrl.state == ViewState.IDLE
        assert ctrl.model.nodes == []

    def test_positions_assigned_on_rebuild(self):
        ctrl, *_ = _make()
        _run(ctrl.activate())
        assert [(n.position.x, n.position.y) for n in ctrl.model.nodes] == [(0, 0), (330, 0)]

    def test_degraded_table_still_ready(self):
        ctrl, *_ = _make(FakeProvider(_schemas(), failing={"orders"}))
        _run(ctrl.activate())

        assert ctrl.state == ViewState.READY
        assert ctrl.error is None
        orders = ctrl.model.nodes[1]
        assert orders.payload.columns == []
        assert [e for e in ctrl.model.edges if e.source == "orders"] == []
        assert len(ctrl.model.nodes[0].payload.columns) == 5
        assert [d.table for d in ctrl.diagnostics] == ["orders"]

    def test_list_failure_enters_error_and_clears_graph(self):
        provider = FakeProvider(_schemas())
        ctrl, ctx, _bus, _ = _make(provider)
        _run(ctrl.activate())
        assert ctrl.model.table_count == 2

        provider.list_errors["public"] = MetadataProviderError('relation "pg_class" is not accessible')
        _run(ctrl.refresh())

        assert ctrl.state == ViewState.ERROR
        assert ctrl.error == 'relation "pg_class" is not accessible'
        assert ctrl.model.nodes == []
        assert ctrl.model.edges == []
        assert ctrl.diagnostics == []

    def test_recovery_from_error_via_refresh(self):
        provider = FakeProvider(_schemas(), list_errors={"public": MetadataProviderError("down")})
        ctrl, *_ = _make(provider)
        _run(ctrl.activate())
        assert ctrl.state == ViewState.ERROR

        provider.list_errors.clear()
        _run(ctrl.refresh())
        assert ctrl.state == ViewState.READY
        assert ctrl.error is None

    def test_unexpected_aggregator_error_enters_error(self):
        class BrokenAggregator(MetadataAggregator):
            async def aggregate(self, schema):
                raise RuntimeError("cursor already closed")

        bus = SignalBus()
        ctx = ApplicationContext(bus, schema="public")
        ctrl = GraphViewController(BrokenAggregator(FakeProvider(_schemas())), ctx, bus)
        assert _run(ctrl.activate()) is True
        assert ctrl.state == ViewState.ERROR
        assert ctrl.error == "cursor already closed"
        assert ctrl.model.nodes == []

    def test_unexpected_assembler_error_enters_error(self):
        class BrokenAssembler(GraphAssembler):
            def assemble(self, tables):
                raise KeyError("users")

        bus = SignalBus()
        ctx = ApplicationContext(bus, schema="public")
        ctrl = GraphViewController(
            MetadataAggregator(FakeProvider(_schemas())), ctx, bus, assembler=BrokenAssembler()
        )
        _run(ctrl.activate())
        assert ctrl.state == ViewState.ERROR
        assert ctrl.error == "'users'"

    def test_unexpected_error_without_message_uses_type_name(self):
        class BrokenAggregator(MetadataAggregator):
            async def aggregate(self, schema):
                raise LookupError()

        bus = SignalBus()
        ctx = ApplicationContext(bus, schema="public")
        ctrl = GraphViewController(BrokenAggregator(FakeProvider(_schemas())), ctx, bus)
        _run(ctrl.activate())
        assert ctrl.state == ViewState.ERROR
        assert ctrl.error == "LookupError"

    def test_loading_keeps_previous_model(self):
        provider = FakeProvider(_schemas())
        ctrl, *_ = _make(provider)

        async def scenario():
            await ctrl.activate()
            previous = ctrl.model
            provider.gate = asyncio.Event()
            task = asyncio.create_task(ctrl.refresh())
            await asyncio.sleep(0)
            during = (ctrl.state, ctrl.model)
            provider.gate.set()
            await task
            return previous, during

        previous, (state, model) = _run(scenario())
        assert state == ViewState.LOADING
        assert model is previous
        assert ctrl.state == ViewState.READY


# ---------------------------------------------------------------------------
# Layout switching
# ---------------------------------------------------------------------------


class TestLayout:
    def test_set_layout_reprojects_without_reaggregating(self):
        provider = FakeProvider(_schemas())
        ctrl, *_ = _make(provider)
        _run(ctrl.activate())
        before = ctrl.model
        calls = provider.list_calls

        after = ctrl.set_layout(LayoutKind.CIRCULAR)

        assert provider.list_calls == calls
        assert ctrl.layout == LayoutKind.CIRCULAR
        assert after.node_ids() == before.node_ids()
        assert after.edges == before.edges
        assert [n.payload for n in after.nodes] == [n.payload for n in before.nodes]
        assert (after.nodes[0].position.x, after.nodes[0].position.y) == pytest.approx((600, 300))

    def test_layout_survives_rebuild(self):
        ctrl, *_ = _make(layout=LayoutKind.HIERARCHICAL)
        _run(ctrl.activate())
        assert ctrl.snapshot().layout == LayoutKind.HIERARCHICAL
        ctrl.set_layout(LayoutKind.CIRCULAR)
        _run(ctrl.refresh())
        assert ctrl.layout == LayoutKind.CIRCULAR
        assert ctrl.model.nodes[0].position.x == pytest.approx(600)

    def test_set_layout_on_empty_graph(self):
        ctrl, *_ = _make()
        model = ctrl.set_layout(LayoutKind.CIRCULAR)
        assert model.nodes == []


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------


class TestSignals:
    def test_subscribes_to_schema_and_database_changes(self):
        _ctrl, _ctx, bus, _ = _make()
        assert bus.subscriber_count(Topic.SCHEMA_CHANGED) == 1
        assert bus.subscriber_count(Topic.DATABASE_CHANGED) == 1
        assert bus.subscriber_count(Topic.CONNECTION_CHANGED) == 0

    def test_schema_changed_rebuilds_for_new_schema(self):
        ctrl, ctx, *_ = _make()

        async def scenario():
            await ctrl.activate()
            ctx.set_schema("reporting")
            await ctrl.wait_idle()

        _run(scenario())
        assert ctrl.state == ViewState.READY
        assert ctrl.schema == "reporting"
        assert ctrl.model.node_ids() == ["daily_sales"]

    def test_database_changed_rebuilds_current_schema(self):
        provider = FakeProvider(_schemas())
        ctrl, ctx, *_ = _make(provider)

        async def scenario():
            await ctrl.activate()
            ctx.set_database(2)
            await ctrl.wait_idle()

        _run(scenario())
        assert provider.list_calls == 2
        assert ctrl.generation == 2

    def test_close_releases_subscriptions(self):
        ctrl, ctx, bus, _ = _make()

        async def scenario():
            ctrl.close()
            ctx.set_schema("reporting")
            await ctrl.wait_idle()

        _run(scenario())
        assert bus.subscriber_count(Topic.SCHEMA_CHANGED) == 0
        assert bus.subscriber_count(Topic.DATABASE_CHANGED) == 0
        assert ctrl.generation == 0
        assert ctrl.state == ViewState.IDLE

    def test_start_after_close_resubscribes(self):
        ctrl, ctx, bus, _ = _make()

        async def scenario():
            await ctrl.activate()
            ctrl.close()
            ctrl.start()
            ctrl.start()
            ctx.set_schema("reporting")
            await ctrl.wait_idle()

        _run(scenario())
        assert bus.subscriber_count(Topic.SCHEMA_CHANGED) == 1
        assert ctrl.state == ViewState.READY
        assert ctrl.schema == "reporting"
        assert ctrl.model.node_ids() == ["daily_sales"]

    def test_activate_after_close_resubscribes(self):
        ctrl, ctx, bus, _ = _make()
        ctrl.close()

        async def scenario():
            await ctrl.activate()
            ctx.set_database(7)
            await ctrl.wait_idle()

        _run(scenario())
        assert bus.subscriber_count(Topic.DATABASE_CHANGED) == 1
        assert ctrl.generation == 2

    def test_signal_outside_event_loop_is_ignored(self):
        ctrl, ctx, *_ = _make()
        ctx.set_schema("reporting")
        assert ctrl.generation == 0


# ---------------------------------------------------------------------------
# Overlapping rebuilds
# ---------------------------------------------------------------------------


class TestGenerations:
    def test_stale_cycle_never_overwrites_newer(self):
        provider = FakeProvider(_schemas(), delays={"public": 0.1})
        ctrl, ctx, *_ = _make(provider)

        async def scenario():
            slow = asyncio.create_task(ctrl.rebuild())
            await asyncio.sleep(0)
            ctx.schema = "reporting"
            fast_committed = await ctrl.rebuild()
            slow_committed = await slow
            return slow_committed, fast_committed

        slow_committed, fast_committed = _run(scenario())
        assert fast_committed is True
        assert slow_committed is False
        assert ctrl.schema == "reporting"
        assert ctrl.model.node_ids() == ["daily_sales"]

    def test_stale_error_is_discarded(self):
        provider = FakeProvider(
            _schemas(),
            list_errors={"public": MetadataProviderError("timeout")},
            delays={"public": 0.1},
        )
        ctrl, ctx, *_ = _make(provider)

        async def scenario():
            slow = asyncio.create_task(ctrl.rebuild())
            await asyncio.sleep(0)
            ctx.schema = "reporting"
            await ctrl.rebuild()
            return await slow

        assert _run(scenario()) is False
        assert ctrl.state == ViewState.READY
        assert ctrl.error is None

    def test_rapid_signals_settle_on_latest_schema(self):
        provider = FakeProvider(_schemas(), delays={"public": 0.05})
        ctrl, ctx, *_ = _make(provider)

        async def scenario():
            ctx.set_schema("public")
            ctx.set_schema("reporting")
            await ctrl.wait_idle()

        _run(scenario())
        assert ctrl.generation == 2
        assert ctrl.schema == "reporting"


# ---------------------------------------------------------------------------
# Listeners, snapshot, relationships
# ---------------------------------------------------------------------------


class TestObservers:
    def test_listener_receives_committed_and_reprojected_models(self):
        ctrl, *_ = _make()
        received = []
        remove = ctrl.add_listener(received.append)

        _run(ctrl.activate())
        ctrl.set_layout(LayoutKind.HIERARCHICAL)
        remove()
        ctrl.set_layout(LayoutKind.GRID)

        assert len(received) == 2
        assert received[0].node_ids() == ["users", "orders"]

    def test_snapshot_counts(self):
        ctrl, *_ = _make()
        _run(ctrl.activate())
        snap = ctrl.snapshot()
        assert snap.state == "ready"
        assert snap.schema_name == "public"
        assert snap.table_count == 2
        assert snap.relationship_count == 1
        assert snap.generation == 1

    def test_relationships(self):
        ctrl, *_ = _make()
        _run(ctrl.activate())
        rel = ctrl.relationships("users")
        assert [r["table"] for r in rel["referenced_by"]] == ["orders"]
        with pytest.raises(KeyError):
            ctrl.relationships("missing")
