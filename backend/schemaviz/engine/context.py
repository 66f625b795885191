"""ApplicationContext — shared selection state read by signal consumers."""

from __future__ import annotations

from typing import Optional

from schemaviz.engine.signal_bus import SignalBus, Topic


class ApplicationContext:
    """Holds the active connection, database and schema.

    Every setter publishes the matching :class:`Topic` after updating state,
    so subscribers always observe the new value.
    """

    def __init__(
        self,
        bus: SignalBus,
        schema: Optional[str] = None,
        database_id: Optional[int] = None,
        connection_id: Optional[int] = None,
        api_token: Optional[str] = None,
    ) -> None:
        self.bus = bus
        self.schema = schema
        self.database_id = database_id
        self.connection_id = connection_id
        self.api_token = api_token

    def set_schema(self, schema: Optional[str]) -> None:
        self.schema = schema
        self.bus.publish(Topic.SCHEMA_CHANGED)

    def set_database(self, database_id: Optional[int]) -> None:
        self.database_id = database_id
        self.bus.publish(Topic.DATABASE_CHANGED)

    def set_connection(self, connection_id: Optional[int], database_id: Optional[int] = None) -> None:
        self.connection_id = connection_id
        self.database_id = database_id
        self.bus.publish(Topic.CONNECTION_CHANGED)

    def request_headers(self) -> dict[str, str]:
        """Headers identifying the caller and the active database to the metadata API."""
        headers: dict[str, str] = {}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        if self.database_id is not None:
            headers["X-Database-Id"] = str(self.database_id)
        return headers

    def as_dict(self) -> dict[str, Optional[object]]:
        return {
            "connection_id": self.connection_id,
            "database_id": self.database_id,
            "schema_name": self.schema,
        }
