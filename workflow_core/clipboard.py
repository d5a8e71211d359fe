"""
Clipboard for copy / paste / duplicate of node selections.

Copy keeps the selected nodes plus only the edges whose both endpoints are
selected. Paste issues fresh ids for everything, remaps internal edges
through an old-id -> new-id map and shifts positions so the copy is visible.
"""

from typing import Callable, Iterable, Mapping

from .models import Edge, Node, generate_edge_id, generate_node_id


def _fresh_id(make_id: Callable[[], str], taken: set[str]) -> str:
    new_id = make_id()
    while new_id in taken:
        new_id = make_id()
    taken.add(new_id)
    return new_id


class ClipboardManager:
    """Holds one copied sub-graph and produces non-colliding pastes of it."""

    def __init__(self):
        self._nodes: list[Node] = []
        self._edges: list[Edge] = []
        self._paste_count = 0
        # every id ever handed out by a paste, so pastes never collide
        self._issued: set[str] = set()

    @property
    def has_content(self) -> bool:
        return bool(self._nodes)

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    def copy(self, nodes: Mapping[str, Node], edges: Iterable[Edge], selected_ids: Iterable[str]) -> bool:
        """
        Snapshot the selected nodes and their internal edges.

        Returns False (leaving the clipboard untouched) when nothing is selected.
        """
        selected = [nid for nid in selected_ids if nid in nodes]
        if not selected:
            return False
        chosen = set(selected)
        # a copied group brings its members along
        for node in nodes.values():
            if node.parent_id in chosen and node.id not in chosen:
                selected.append(node.id)
                chosen.add(node.id)

        self._nodes = []
        for nid in selected:
            node = nodes[nid].model_copy(deep=True)
            if node.parent_id is not None and node.parent_id not in chosen:
                # copied without its group: detach, keeping the canvas position
                parent = nodes.get(node.parent_id)
                if parent is not None:
                    node.position = node.position.offset(parent.position.x, parent.position.y)
                node.parent_id = None
                node.hidden = False
            self._nodes.append(node)
        self._edges = [
            e.model_copy(deep=True)
            for e in edges
            if e.source in chosen and e.target in chosen
        ]
        self._paste_count = 0
        return True

    def build_paste(
        self,
        taken_ids: Iterable[str],
        offset: tuple[float, float],
    ) -> tuple[list[Node], list[Edge]]:
        """
        Produce a fresh copy of the clipboard contents.

        Each successive paste of the same contents is shifted one more
        `offset` step so stacked copies stay distinguishable.

        Args:
            taken_ids: node and edge ids currently in the graph
            offset: (dx, dy) visual delta per paste

        Returns:
            (new nodes, new edges); both empty if the clipboard is empty
        """
        if not self._nodes:
            return [], []

        self._paste_count += 1
        dx = offset[0] * self._paste_count
        dy = offset[1] * self._paste_count
        taken = set(taken_ids) | self._issued

        id_map: dict[str, str] = {}
        new_nodes: list[Node] = []
        for node in self._nodes:
            id_map[node.id] = _fresh_id(generate_node_id, taken)
        for node in self._nodes:
            update = {"id": id_map[node.id]}
            if node.parent_id is None:
                update["position"] = node.position.offset(dx, dy)
            else:
                # members stay put relative to their (shifted) group
                update["parent_id"] = id_map[node.parent_id]
            new_nodes.append(node.model_copy(deep=True, update=update))

        new_edges: list[Edge] = []
        for edge in self._edges:
            new_edges.append(edge.model_copy(
                deep=True,
                update={
                    "id": _fresh_id(generate_edge_id, taken),
                    "source": id_map[edge.source],
                    "target": id_map[edge.target],
                },
            ))

        self._issued |= set(id_map.values())
        self._issued |= {e.id for e in new_edges}
        return new_nodes, new_edges

    def contents(self) -> tuple[list[Node], list[Edge]]:
        """Deep copies of what is on the clipboard (ids unchanged)."""
        return (
            [n.model_copy(deep=True) for n in self._nodes],
            [e.model_copy(deep=True) for e in self._edges],
        )

    def clear(self) -> None:
        self._nodes = []
        self._edges = []
        self._paste_count = 0
