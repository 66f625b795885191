"""GraphAssembler — builds the relationship graph from aggregated table metadata."""

from __future__ import annotations

import logging
from typing import Any

import networkx as nx

from schemaviz.models.graph import GraphEdge, GraphModel, GraphNode
from schemaviz.models.metadata import TableMetadata

logger = logging.getLogger(__name__)


class GraphAssembler:
    """Turns a list of :class:`TableMetadata` into a :class:`GraphModel`.

    Foreign keys pointing at tables outside the node set are kept as
    unresolved edges (``resolved=False``).
    """

    def assemble(self, tables: list[TableMetadata]) -> GraphModel:
        """Build the model. Identical input always yields an identical model."""
        nodes: list[GraphNode] = []
        seen: set[str] = set()
        for table in tables:
            if table.name in seen:
                logger.warning("Duplicate table '%s' in metadata; keeping the first", table.name)
                continue
            seen.add(table.name)
            nodes.append(GraphNode(id=table.name, payload=table))

        edges: list[GraphEdge] = []
        for node in nodes:
            for fk in node.payload.foreign_keys:
                edges.append(GraphEdge(
                    id=f"{node.id}-{fk.target_table}-{len(edges)}",
                    source=node.id,
                    target=fk.target_table,
                    label=fk.source_column,
                    target_column=fk.target_column,
                    constraint_name=fk.constraint_name,
                    resolved=fk.target_table in seen,
                ))

        return GraphModel(nodes=nodes, edges=edges)

    # ------------------------------------------------------------------
    # NetworkX view
    # ------------------------------------------------------------------

    @staticmethod
    def to_networkx(model: GraphModel) -> nx.MultiDiGraph:
        """Export *model* as a ``MultiDiGraph`` keyed by edge id.

        Unresolved edges are left out so no phantom node is created.
        """
        graph = nx.MultiDiGraph()
        for node in model.nodes:
            graph.add_node(node.id, columns=len(node.payload.columns), degraded=node.payload.degraded)
        for edge in model.edges:
            if not edge.resolved:
                continue
            graph.add_edge(
                edge.source,
                edge.target,
                key=edge.id,
                column=edge.label,
                foreign_column=edge.target_column,
                constraint_name=edge.constraint_name,
            )
        return graph

    @staticmethod
    def relationships(model: GraphModel, graph: nx.MultiDiGraph, table: str) -> dict[str, Any]:
        """Return outgoing ``foreign_keys`` and incoming ``referenced_by`` for *table*.

        Raises ``KeyError`` if *table* is not a node of *graph*.
        """
        if not graph.has_node(table):
            raise KeyError(table)

        # Outgoing references come from the model so unresolved ones are included
        foreign_keys = [
            {
                "constraint_name": e.constraint_name,
                "table": e.target,
                "column": e.label,
                "foreign_column": e.target_column,
                "resolved": e.resolved,
            }
            for e in model.edges
            if e.source == table
        ]
        referenced_by = [
            {
                "constraint_name": data.get("constraint_name", ""),
                "table": u,
                "column": data.get("column", ""),
                "foreign_column": data.get("foreign_column", ""),
                "resolved": True,
            }
            for u, _v, data in graph.in_edges(table, data=True)
        ]
        return {"table": table, "foreign_keys": foreign_keys, "referenced_by": referenced_by}
