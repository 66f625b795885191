"""Layout strategies — pure functions mapping a node ordinal to 2-D coordinates."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable

from schemaviz.engine.errors import LayoutInvariantViolation
from schemaviz.models.graph import GraphModel, LayoutKind, Position

HIERARCHY_FAN_OUT = 3
MIN_CIRCLE_RADIUS = 300
CIRCLE_RADIUS_PER_NODE = 50


@dataclass(frozen=True)
class NodeBox:
    """Footprint reserved for each node; spacing is size plus padding."""

    width: float = 280
    height: float = 300
    padding: float = 50

    @property
    def step_x(self) -> float:
        return self.width + self.padding

    @property
    def step_y(self) -> float:
        return self.height + self.padding


DEFAULT_BOX = NodeBox()


def _grid(index: int, total: int, box: NodeBox) -> Position:
    cols = math.ceil(math.sqrt(total))
    return Position(x=(index % cols) * box.step_x, y=(index // cols) * box.step_y)


def _circular(index: int, total: int, box: NodeBox) -> Position:
    radius = max(MIN_CIRCLE_RADIUS, total * CIRCLE_RADIUS_PER_NODE)
    angle = (index / total) * 2 * math.pi
    return Position(x=radius + radius * math.cos(angle), y=radius + radius * math.sin(angle))


def _hierarchical(index: int, total: int, box: NodeBox) -> Position:
    level, pos_in_level = divmod(index, HIERARCHY_FAN_OUT)
    return Position(x=pos_in_level * box.step_x, y=level * box.step_y)


STRATEGIES: dict[LayoutKind, Callable[[int, int, NodeBox], Position]] = {
    LayoutKind.GRID: _grid,
    LayoutKind.CIRCULAR: _circular,
    LayoutKind.HIERARCHICAL: _hierarchical,
}


def position(index: int, total: int, kind: LayoutKind, box: NodeBox = DEFAULT_BOX) -> Position:
    """Return the position of node *index* out of *total* under *kind*.

    Raises :class:`LayoutInvariantViolation` when *total* is not positive or
    *index* falls outside ``[0, total)``.
    """
    if total <= 0:
        raise LayoutInvariantViolation(f"Cannot lay out {total} node(s)")
    if not 0 <= index < total:
        raise LayoutInvariantViolation(f"Node index {index} out of range for {total} node(s)")
    return STRATEGIES[LayoutKind(kind)](index, total, box)


def layout_positions(total: int, kind: LayoutKind, box: NodeBox = DEFAULT_BOX) -> list[Position]:
    """Positions for every node of a *total*-node graph. Empty for ``total <= 0``."""
    if total <= 0:
        return []
    return [position(i, total, kind, box) for i in range(total)]


def apply_layout(model: GraphModel, kind: LayoutKind, box: NodeBox = DEFAULT_BOX) -> GraphModel:
    """Return a copy of *model* with node positions re-projected under *kind*.

    Node ids, payloads and edges are carried over unchanged.
    """
    positions = layout_positions(len(model.nodes), kind, box)
    nodes = [
        node.model_copy(update={"position": pos})
        for node, pos in zip(model.nodes, positions)
    ]
    return GraphModel(nodes=nodes, edges=list(model.edges))
