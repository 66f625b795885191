from pydantic import BaseModel
from typing import Optional

from .graph import GraphModel, LayoutKind
from .metadata import Diagnostic


class LayoutRequest(BaseModel):
    layout: LayoutKind


class SchemaSelectRequest(BaseModel):
    schema_name: str


class DatabaseSelectRequest(BaseModel):
    database_id: Optional[int] = None


class ContextResponse(BaseModel):
    connection_id: Optional[int] = None
    database_id: Optional[int] = None
    schema_name: Optional[str] = None


class GraphSnapshot(BaseModel):
    state: str
    schema_name: Optional[str] = None
    layout: LayoutKind
    generation: int = 0
    error: Optional[str] = None
    graph: GraphModel = GraphModel()
    diagnostics: list[Diagnostic] = []
    table_count: int = 0
    relationship_count: int = 0


class RelationshipItem(BaseModel):
    constraint_name: str
    table: str
    column: str
    foreign_column: str
    resolved: bool = True


class RelationshipsResponse(BaseModel):
    table: str
    foreign_keys: list[RelationshipItem] = []
    referenced_by: list[RelationshipItem] = []


class SignalRecord(BaseModel):
    timestamp: str
    topic: str
    delivered: int
