"""Selection state for the canvas (node and edge ids, in selection order)."""

from typing import Iterable, Optional


class SelectionManager:
    """
    Tracks selected node and edge ids.

    Selection is view state, but delete and clipboard actions read from it,
    so it must be pruned whenever nodes or edges disappear.
    """

    def __init__(self):
        # dicts keep selection order and give O(1) membership
        self._nodes: dict[str, None] = {}
        self._edges: dict[str, None] = {}

    @property
    def node_ids(self) -> list[str]:
        return list(self._nodes)

    @property
    def edge_ids(self) -> list[str]:
        return list(self._edges)

    @property
    def single_node_id(self) -> Optional[str]:
        """The node the inspector should show, if exactly one is selected."""
        if len(self._nodes) == 1:
            return next(iter(self._nodes))
        return None

    def is_selected(self, node_id: str) -> bool:
        return node_id in self._nodes

    def select(self, ids: Iterable[str], additive: bool = False) -> None:
        """Select nodes. A non-additive select replaces nodes and drops edges."""
        if not additive:
            self._nodes.clear()
            self._edges.clear()
        for node_id in ids:
            self._nodes[node_id] = None

    def toggle(self, node_id: str) -> None:
        """Modifier-click: flip one node in or out of the selection."""
        if node_id in self._nodes:
            del self._nodes[node_id]
        else:
            self._nodes[node_id] = None

    def select_edges(self, ids: Iterable[str], additive: bool = False) -> None:
        """Select edges. A non-additive select replaces edges and drops nodes."""
        if not additive:
            self._nodes.clear()
            self._edges.clear()
        for edge_id in ids:
            self._edges[edge_id] = None

    def select_all(self, node_ids: Iterable[str], edge_ids: Iterable[str] = ()) -> None:
        self._nodes = dict.fromkeys(node_ids)
        self._edges = dict.fromkeys(edge_ids)

    def clear(self) -> None:
        self._nodes.clear()
        self._edges.clear()

    def prune(self, existing_node_ids: Iterable[str], existing_edge_ids: Iterable[str]) -> None:
        """Drop ids that no longer exist in the graph."""
        nodes = set(existing_node_ids)
        edges = set(existing_edge_ids)
        self._nodes = {nid: None for nid in self._nodes if nid in nodes}
        self._edges = {eid: None for eid in self._edges if eid in edges}

    def to_dict(self) -> dict:
        return {"node_ids": self.node_ids, "edge_ids": self.edge_ids}
