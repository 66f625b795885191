from .metadata import (
    TableSummary, ColumnInfo, ConstraintInfo, ForeignKeyInfo, TableStructure,
    ColumnMetadata, ForeignKeyDescriptor, TableMetadata, Diagnostic,
)
from .graph import LayoutKind, Position, GraphNode, GraphEdge, GraphModel
from .api import (
    LayoutRequest, SchemaSelectRequest, DatabaseSelectRequest, ContextResponse,
    GraphSnapshot, RelationshipItem, RelationshipsResponse, SignalRecord,
)
