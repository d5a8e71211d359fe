"""
Layout algorithms for workflow nodes.

Provides layout strategies used by the automatic arrangement actions:
- Layered: Hierarchical layout following edge direction (left-to-right or top-to-bottom)
- Grid: Simple grid arrangement
- Group frames: bounding box around the members of a new group

Layout functions never touch the nodes they are given. They return a
mapping of node id -> new Position, which the store writes back through
the same bulk position path as a manual drag.
"""

from collections import defaultdict, deque
from typing import TYPE_CHECKING

from .models import Position

if TYPE_CHECKING:
    from .models import Edge, Node


# Default layout parameters
DEFAULT_SPACING_X = 280
DEFAULT_SPACING_Y = 160
DEFAULT_START_X = 100
DEFAULT_START_Y = 100

HORIZONTAL = "horizontal"
VERTICAL = "vertical"


def grid_layout(
    nodes: list["Node"],
    spacing_x: float = DEFAULT_SPACING_X,
    spacing_y: float = DEFAULT_SPACING_Y,
    start_x: float = DEFAULT_START_X,
    start_y: float = DEFAULT_START_Y,
    columns: int | None = None
) -> dict[str, Position]:
    """
    Arrange nodes in a grid pattern.

    Args:
        nodes: List of nodes to arrange
        spacing_x: Horizontal spacing between nodes
        spacing_y: Vertical spacing between nodes
        start_x: X coordinate of first node
        start_y: Y coordinate of first node
        columns: Number of columns (auto-calculated if None)

    Returns:
        Mapping of node id to its new position
    """
    if not nodes:
        return {}

    # Auto-calculate columns based on node count
    if columns is None:
        columns = max(3, int(len(nodes) ** 0.5) + 1)

    positions: dict[str, Position] = {}
    for i, node in enumerate(nodes):
        row = i // columns
        col = i % columns
        positions[node.id] = Position(
            x=start_x + col * spacing_x,
            y=start_y + row * spacing_y,
        )
    return positions


def assign_layers(nodes: list["Node"], edges: list["Edge"]) -> dict[str, int]:
    """
    Longest-path layering: each node sits one layer past its deepest parent.

    Nodes with no incoming edges are at layer 0. Any node left over after the
    topological walk (only possible on a cyclic graph) is placed at layer 0.
    """
    node_ids = [n.id for n in nodes]
    known = set(node_ids)
    children: dict[str, list[str]] = defaultdict(list)
    in_degree: dict[str, int] = {nid: 0 for nid in node_ids}

    for edge in edges:
        if edge.source in known and edge.target in known:
            children[edge.source].append(edge.target)
            in_degree[edge.target] += 1

    levels: dict[str, int] = {nid: 0 for nid in node_ids}
    queue = deque(nid for nid in node_ids if in_degree[nid] == 0)

    while queue:
        current = queue.popleft()
        for child in children[current]:
            levels[child] = max(levels[child], levels[current] + 1)
            in_degree[child] -= 1
            if in_degree[child] == 0:
                queue.append(child)

    return levels


def layered_layout(
    nodes: list["Node"],
    edges: list["Edge"],
    direction: str = HORIZONTAL,
    spacing_x: float = DEFAULT_SPACING_X,
    spacing_y: float = DEFAULT_SPACING_Y,
    start_x: float = DEFAULT_START_X,
    start_y: float = DEFAULT_START_Y,
) -> dict[str, Position]:
    """
    Arrange nodes in layers following the direction of data flow.

    Sources are placed in the first layer and every other node one layer
    past its deepest upstream node. Within a layer, nodes keep their
    canvas stacking order.

    Args:
        nodes: List of nodes to arrange
        edges: List of edges defining the flow
        direction: "horizontal" (left-to-right) or "vertical" (top-to-bottom)
        spacing_x: Horizontal spacing between nodes
        spacing_y: Vertical spacing between nodes
        start_x: X coordinate of first node
        start_y: Y coordinate of first node

    Returns:
        Mapping of node id to its new position
    """
    if direction not in (HORIZONTAL, VERTICAL):
        raise ValueError(f"Unknown layout direction: {direction}")
    if not nodes:
        return {}

    levels = assign_layers(nodes, edges)

    positions: dict[str, Position] = {}
    level_counts: dict[int, int] = defaultdict(int)
    for node in nodes:
        level = levels[node.id]
        idx = level_counts[level]
        level_counts[level] += 1

        if direction == HORIZONTAL:
            positions[node.id] = Position(
                x=start_x + level * spacing_x,
                y=start_y + idx * spacing_y,
            )
        else:
            positions[node.id] = Position(
                x=start_x + idx * spacing_x,
                y=start_y + level * spacing_y,
            )

    return positions


# Group frames
DEFAULT_NODE_WIDTH = 280
DEFAULT_NODE_HEIGHT = 120
GROUP_PADDING = 40
GROUP_TITLE_HEIGHT = 40


def group_bounds(
    nodes: list["Node"],
    padding: float = GROUP_PADDING,
    title_height: float = GROUP_TITLE_HEIGHT,
) -> tuple[Position, float, float]:
    """
    Frame enclosing `nodes` (absolute positions) with padding and a title bar.

    Nodes without an explicit size count as DEFAULT_NODE_WIDTH x DEFAULT_NODE_HEIGHT.

    Returns:
        (top-left position, width, height) of the frame
    """
    if not nodes:
        raise ValueError("Cannot frame an empty set of nodes")

    min_x = min(n.position.x for n in nodes)
    min_y = min(n.position.y for n in nodes)
    max_x = max(n.position.x + (n.width or DEFAULT_NODE_WIDTH) for n in nodes)
    max_y = max(n.position.y + (n.height or DEFAULT_NODE_HEIGHT) for n in nodes)

    origin = Position(x=min_x - padding, y=min_y - padding - title_height)
    width = max_x - min_x + padding * 2
    height = max_y - min_y + padding * 2 + title_height
    return origin, width, height
