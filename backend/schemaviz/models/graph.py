from enum import Enum

from pydantic import BaseModel, computed_field

from .metadata import ColumnMetadata, TableMetadata


# Columns a node box shows before collapsing the rest into "+N more"
DISPLAY_COLUMN_LIMIT = 10


class LayoutKind(str, Enum):
    GRID = "grid"
    CIRCULAR = "circular"
    HIERARCHICAL = "hierarchical"


class Position(BaseModel):
    x: float = 0.0
    y: float = 0.0


class GraphNode(BaseModel):
    id: str
    position: Position = Position()
    payload: TableMetadata

    def display_columns(self, limit: int = DISPLAY_COLUMN_LIMIT) -> tuple[list[ColumnMetadata], int]:
        """Return the first *limit* columns and how many are hidden."""
        columns = self.payload.columns
        return columns[:limit], max(0, len(columns) - limit)

    @computed_field
    @property
    def hidden_column_count(self) -> int:
        return self.display_columns()[1]


class GraphEdge(BaseModel):
    id: str
    source: str
    target: str
    label: str
    target_column: str = ""
    constraint_name: str = ""
    resolved: bool = True


class GraphModel(BaseModel):
    nodes: list[GraphNode] = []
    edges: list[GraphEdge] = []

    @property
    def table_count(self) -> int:
        return len(self.nodes)

    @property
    def relationship_count(self) -> int:
        return len(self.edges)

    def node_ids(self) -> list[str]:
        return [n.id for n in self.nodes]
