"""
Graph Store - Canonical state for one open workflow editor.

This module implements:
- Single owner of nodes, edges, selection, clipboard and the dirty flag
- O(1) node/edge lookups via index dictionaries
- Linear undo/redo history using snapshots, with gesture coalescing
- Validated connections (see workflow_core.connection)
- Atomic bulk operations: cascade delete, paste, bulk replace, load
- Group frames: parent/child node relations with relative positions
- Layout operations delegated to workflow_core.layout

Every accepted mutation builds the complete next state first, records the
previous state in history, then swaps the new state in. Nothing is ever
half applied.
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator, Optional

from pydantic import ValidationError as PydanticValidationError

from .clipboard import ClipboardManager
from .config import EditorSettings
from .connection import ConnectionResult, ConnectionValidator
from .errors import ValidationError
from .history import HistoryManager
from .layout import grid_layout, group_bounds, layered_layout
from .models import (
    Edge, EdgeData, EdgeKind, GraphSnapshot, Node, NodeData, NodeType,
    Position, WorkflowMeta, generate_group_id, generate_node_id,
)
from .node_factory import create_default_node_data, create_node as factory_create_node
from .selection import SelectionManager
from .validation import IssueSeverity, ValidationIssue, errors_only, validate_graph

logger = logging.getLogger(__name__)


def _pydantic_issues(exc: PydanticValidationError) -> list[ValidationIssue]:
    issues = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()))
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message=f"{location}: {err.get('msg', 'invalid value')}" if location else err.get("msg", ""),
        ))
    return issues


def _coerce(model: type, value: Any, what: str):
    """Accept a model instance or a plain dict; malformed input is a ValidationError."""
    if isinstance(value, model):
        return value.model_copy(deep=True)
    try:
        return model.model_validate(value)
    except PydanticValidationError as e:
        raise ValidationError(f"Malformed {what}", _pydantic_issues(e)) from e


class GraphStore:
    """
    Manages a single workflow graph's state, history and selection.

    Features:
    - O(1) node/edge lookups via index dictionaries
    - Snapshot-based undo/redo history with gesture coalescing
    - Change callbacks for real-time sync

    Construct one per editor session and call `close()` when the editor
    unmounts. Readers get deep copies (`snapshot()`, `get_node()`); the only
    way to change the graph is through the methods below.
    """

    def __init__(self, settings: Optional[EditorSettings] = None):
        self._settings = settings or EditorSettings()
        self._nodes: dict[str, Node] = {}   # insertion order = stacking order
        self._edges: dict[str, Edge] = {}
        self._edges_by_node: dict[str, set[str]] = {}   # node_id -> set of edge_ids
        self._meta = WorkflowMeta()
        self._history = HistoryManager(self._settings.max_history)
        self._selection = SelectionManager()
        self._clipboard = ClipboardManager()
        self._dirty = False  # True if unsaved changes exist
        self._dirty_before_gesture = False
        self._version = 0
        self._on_change_callbacks: list[Callable[[], None]] = []

    # --- Index Management ---

    def _rebuild_indexes(self):
        """Rebuild the node -> edges index from the current edge set."""
        self._edges_by_node = {nid: set() for nid in self._nodes}
        for edge in self._edges.values():
            self._edges_by_node.setdefault(edge.source, set()).add(edge.id)
            self._edges_by_node.setdefault(edge.target, set()).add(edge.id)

    # --- Properties ---

    @property
    def settings(self) -> EditorSettings:
        return self._settings

    @property
    def is_dirty(self) -> bool:
        """Check if there are unsaved changes."""
        return self._dirty

    @property
    def version(self) -> int:
        """Incremented on every accepted change to the graph."""
        return self._version

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def in_gesture(self) -> bool:
        return self._history.in_gesture

    @property
    def history_size(self) -> int:
        return len(self._history.entries())

    @property
    def node_ids(self) -> list[str]:
        return list(self._nodes)

    @property
    def edge_ids(self) -> list[str]:
        return list(self._edges)

    @property
    def selected_node_ids(self) -> list[str]:
        return self._selection.node_ids

    @property
    def selected_edge_ids(self) -> list[str]:
        return self._selection.edge_ids

    @property
    def meta(self) -> WorkflowMeta:
        return self._meta.model_copy()

    @property
    def has_clipboard(self) -> bool:
        return self._clipboard.has_content

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a copy of a node by ID (O(1) lookup)."""
        node = self._nodes.get(node_id)
        return node.model_copy(deep=True) if node else None

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        """Get a copy of an edge by ID (O(1) lookup)."""
        edge = self._edges.get(edge_id)
        return edge.model_copy(deep=True) if edge else None

    def get_edges_for_node(self, node_id: str) -> list[Edge]:
        """Get copies of all edges touching a node (O(1) index lookup)."""
        return [
            self._edges[eid].model_copy(deep=True)
            for eid in self._edges_by_node.get(node_id, ())
            if eid in self._edges
        ]

    def snapshot(self) -> GraphSnapshot:
        """An owned, read-only copy of the graph for the renderer."""
        return self._current().clone()

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        return {
            "graph": self._current().to_json_dict(),
            "meta": self._meta.model_dump(),
            "selection": self._selection.to_dict(),
            "is_dirty": self._dirty,
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
            "in_gesture": self.in_gesture,
            "version": self._version,
        }

    # --- Change Callbacks ---

    def on_change(self, callback: Callable[[], None]):
        """Register a callback for graph or selection changes."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        """Notify all registered callbacks of a change."""
        for callback in self._on_change_callbacks:
            callback()

    # --- State transitions ---

    def _current(self) -> GraphSnapshot:
        return GraphSnapshot(
            nodes=list(self._nodes.values()),
            edges=list(self._edges.values()),
            version=self._version,
        )

    def _install(self, nodes: dict[str, Node], edges: dict[str, Edge]):
        self._nodes = nodes
        self._edges = edges
        self._rebuild_indexes()
        self._selection.prune(self._nodes, self._edges)

    def _install_snapshot(self, snapshot: GraphSnapshot):
        self._install(
            {n.id: n for n in snapshot.nodes},
            {e.id: e for e in snapshot.edges},
        )

    def _touch(self):
        self._dirty = True
        self._version += 1
        self._notify_change()

    def _commit(self, label: str, nodes: dict[str, Node], edges: dict[str, Edge]):
        """Record the current state, then swap in the prepared next state."""
        self._close_open_gesture()
        self._history.record(self._current(), label)
        self._install(nodes, edges)
        logger.debug("Committed '%s' (%d nodes, %d edges)", label, len(nodes), len(edges))
        self._touch()

    def _check_graph(self, nodes: dict[str, Node], edges: dict[str, Edge], what: str):
        """Refuse a prepared state that breaks any invariant."""
        candidate = GraphSnapshot(nodes=list(nodes.values()), edges=list(edges.values()))
        errors = errors_only(validate_graph(candidate))
        if errors:
            logger.info("Refused %s: %s", what, errors[0].message)
            raise ValidationError(f"Invalid {what}: {errors[0].message}", errors)

    # --- Gestures ---

    def begin_gesture(self, label: str = "drag") -> bool:
        """
        Start a continuous interaction (drag, pan, multi-node move).

        Position updates until `end_gesture()` produce a single history entry.
        Returns False if a gesture was already open (it stays open).
        """
        started = self._history.begin_gesture(self._current(), label)
        if started:
            self._dirty_before_gesture = self._dirty
            logger.debug("Gesture '%s' started", label)
        return started

    def end_gesture(self) -> bool:
        """Close the gesture. Returns True if it recorded a history entry."""
        if not self._history.in_gesture:
            return False
        label = self._history.gesture_label
        recorded = self._history.end_gesture(self._current())
        logger.debug("Gesture '%s' ended (recorded=%s)", label, recorded)
        if recorded:
            self._notify_change()
        return recorded

    def cancel_gesture(self) -> bool:
        """Abort the gesture, restoring the pre-gesture graph without a history entry."""
        before = self._history.cancel_gesture()
        if before is None:
            return False
        if not before.same_graph(self._current()):
            self._install_snapshot(before)
            self._version += 1
        self._dirty = self._dirty_before_gesture
        logger.debug("Gesture cancelled")
        self._notify_change()
        return True

    @contextmanager
    def gesture(self, label: str = "drag") -> Iterator["GraphStore"]:
        """Bracket a gesture; an exception inside the block cancels it."""
        started = self.begin_gesture(label)
        try:
            yield self
        except BaseException:
            if started:
                self.cancel_gesture()
            raise
        else:
            if started:
                self.end_gesture()

    def _close_open_gesture(self):
        if self._history.in_gesture:
            logger.debug("Closing open gesture '%s'", self._history.gesture_label)
            self.end_gesture()

    # --- Undo/Redo ---

    def undo(self) -> bool:
        """Undo the last action. Returns False at the bottom of the stack."""
        self._close_open_gesture()
        previous = self._history.undo(self._current())
        if previous is None:
            return False
        self._install_snapshot(previous)
        self._touch()
        return True

    def redo(self) -> bool:
        """Redo the last undone action. Returns False at the top of the stack."""
        self._close_open_gesture()
        following = self._history.redo(self._current())
        if following is None:
            return False
        self._install_snapshot(following)
        self._touch()
        return True

    # --- Load / Save ---

    def _reset(self):
        self._install({}, {})
        self._history.clear()
        self._selection.clear()
        self._dirty = False
        self._version += 1

    def load(self, data: GraphSnapshot | dict) -> list[ValidationIssue]:
        """
        Replace the whole graph with a deserialized snapshot.

        On success history is reset and the graph is clean (not dirty).
        A malformed snapshot leaves an empty graph and raises ValidationError.

        Returns:
            Non-fatal issues (warnings, info) found in the loaded graph
        """
        try:
            if isinstance(data, GraphSnapshot):
                snapshot = data.clone()
            elif isinstance(data, dict):
                snapshot = GraphSnapshot.from_json_dict(data)
            else:
                raise ValidationError(f"Expected a graph object, got {type(data).__name__}")
        except PydanticValidationError as e:
            self._reset()
            self._notify_change()
            logger.warning("Load failed: malformed graph")
            raise ValidationError("Malformed graph", _pydantic_issues(e)) from e
        except ValidationError:
            self._reset()
            self._notify_change()
            raise

        issues = validate_graph(snapshot)
        errors = errors_only(issues)
        if errors:
            self._reset()
            self._notify_change()
            logger.warning("Load failed: %s", errors[0].message)
            raise ValidationError(f"Invalid graph: {errors[0].message}", errors)

        self._reset()
        self._install_snapshot(snapshot)
        self._notify_change()
        logger.info("Loaded graph (%d nodes, %d edges)", len(self._nodes), len(self._edges))
        return issues

    def clear(self):
        """Close the current workflow: empty graph, no history, clean."""
        self._reset()
        self._meta = WorkflowMeta()
        self._notify_change()

    def mark_saved(self):
        """Called by the persistence layer after a successful save."""
        self._dirty = False
        self._notify_change()

    def update_meta(self, name: Optional[str] = None, description: Optional[str] = None) -> WorkflowMeta:
        """Update workflow name/description (not tracked in undo history)."""
        update = {}
        if name is not None:
            update["name"] = name
        if description is not None:
            update["description"] = description
        if update:
            self._meta = self._meta.model_copy(update=update)
            self._dirty = True
            self._notify_change()
        return self.meta

    # --- Node Operations ---

    def add_node(self, node: Node | dict) -> Node:
        """Add a node. A duplicate id raises ValidationError and changes nothing."""
        return self.add_nodes([node])[0]

    def add_nodes(self, nodes: Iterable[Node | dict]) -> list[Node]:
        """Add several nodes as one history entry."""
        new_nodes = [_coerce(Node, n, "node") for n in nodes]
        if not new_nodes:
            return []

        seen: set[str] = set()
        for node in new_nodes:
            if node.id in self._nodes or node.id in seen:
                raise ValidationError(
                    f"Duplicate node id: {node.id}",
                    [ValidationIssue(IssueSeverity.ERROR, f"Duplicate node id: {node.id}", node_id=node.id)],
                )
            seen.add(node.id)

        nodes_next = dict(self._nodes)
        for node in new_nodes:
            nodes_next[node.id] = node
        self._commit("add node", nodes_next, dict(self._edges))
        return [n.model_copy(deep=True) for n in new_nodes]

    def create_node(
        self,
        node_type: NodeType | str,
        x: float = 0,
        y: float = 0,
        label: Optional[str] = None,
    ) -> Node:
        """Palette drop: build a node from the per-type defaults and add it."""
        node = factory_create_node(node_type, x, y, label)
        while node.id in self._nodes:
            node.id = generate_node_id()
        return self.add_node(node)

    def update_node(self, node_id: str, data: dict[str, Any]) -> Optional[Node]:
        """
        Apply an inspector patch to a node's data.

        `config` is merged key by key; `label`, `description`, `inputs` and
        `outputs` are replaced. Port changes that would break existing edges
        raise ValidationError. Returns None if the node does not exist.
        """
        node = self._nodes.get(node_id)
        if node is None:
            return None

        merged = node.data.model_dump(by_alias=True)
        for key, value in data.items():
            if value is None:
                continue
            if key == "config":
                if not isinstance(value, dict):
                    raise ValidationError(f"Node config must be an object, got {type(value).__name__}")
                merged["config"] = {**merged["config"], **value}
            elif key in ("label", "description", "inputs", "outputs"):
                merged[key] = value
            else:
                raise ValidationError(f"Unknown node data field: {key}")

        new_data = _coerce(NodeData, merged, "node data")
        if new_data == node.data:
            return node.model_copy(deep=True)

        nodes_next = dict(self._nodes)
        nodes_next[node_id] = node.model_copy(update={"data": new_data})
        if "inputs" in data or "outputs" in data:
            detached = self._detached_edges(node, nodes_next[node_id])
            if detached:
                issues = [
                    ValidationIssue(IssueSeverity.ERROR, f"Edge {e.id} is attached to a removed port", edge_id=e.id)
                    for e in detached
                ]
                logger.info("Refused port change on %s: %d edges attached", node_id, len(detached))
                raise ValidationError(f"Invalid port change: {len(detached)} edges use removed ports", issues)
            self._check_graph(nodes_next, self._edges, "port change")
        self._commit("update node", nodes_next, dict(self._edges))
        return nodes_next[node_id].model_copy(deep=True)

    def _detached_edges(self, old: Node, new: Node) -> list[Edge]:
        """Edges on `old` whose declared port is gone from `new`."""
        detached = []
        for eid in self._edges_by_node.get(old.id, ()):
            edge = self._edges[eid]
            if edge.source == old.id:
                handle, before, after = edge.source_handle, old.output_port, new.output_port
            else:
                handle, before, after = edge.target_handle, old.input_port, new.input_port
            if before(handle) is not None and after(handle) is None:
                detached.append(edge)
        return detached

    def remove_nodes(self, ids: Iterable[str]) -> bool:
        """
        Delete nodes and every edge touching them as one history entry.

        Deleting a group deletes its members too. Unknown ids are ignored;
        returns False if nothing was removed.
        """
        doomed = {nid for nid in ids if nid in self._nodes}
        if not doomed:
            return False
        doomed |= {nid for nid, n in self._nodes.items() if n.parent_id in doomed}

        doomed_edges: set[str] = set()
        for nid in doomed:
            doomed_edges |= self._edges_by_node.get(nid, set())

        nodes_next = {nid: n for nid, n in self._nodes.items() if nid not in doomed}
        edges_next = {eid: e for eid, e in self._edges.items() if eid not in doomed_edges}
        self._commit("delete nodes", nodes_next, edges_next)
        logger.debug("Removed %d nodes and %d edges", len(doomed), len(doomed_edges))
        return True

    def update_node_positions(self, positions: dict[str, Position | dict]) -> bool:
        """
        Bulk position write used by drags and layouts.

        Inside a gesture the writes coalesce into the gesture's single
        history entry; outside one, each call is its own entry.
        Unknown node ids raise ValidationError and nothing moves.
        """
        missing = [nid for nid in positions if nid not in self._nodes]
        if missing:
            raise ValidationError(f"Cannot move unknown nodes: {', '.join(missing)}")
        if not positions:
            return False

        nodes_next = dict(self._nodes)
        changed = False
        for nid, pos in positions.items():
            pos = _coerce(Position, pos, "position")
            if nodes_next[nid].position != pos:
                nodes_next[nid] = nodes_next[nid].model_copy(update={"position": pos})
                changed = True
        if not changed:
            return False

        if self._history.in_gesture:
            self._install(nodes_next, self._edges)
            self._touch()
        else:
            self._commit("move nodes", nodes_next, dict(self._edges))
        return True

    def set_nodes(self, nodes: Iterable[Node | dict]) -> None:
        """
        Bulk replace the node list (renderer node changes, external loads).

        Edges whose endpoint node disappears are dropped with it. Coalesces
        inside a gesture. Raises ValidationError if the result is invalid.
        """
        new_nodes = [_coerce(Node, n, "node") for n in nodes]
        nodes_next: dict[str, Node] = {}
        for node in new_nodes:
            if node.id in nodes_next:
                raise ValidationError(f"Duplicate node id: {node.id}")
            nodes_next[node.id] = node
        edges_next = {
            eid: e for eid, e in self._edges.items()
            if e.source in nodes_next and e.target in nodes_next
        }
        self._check_graph(nodes_next, edges_next, "node set")

        if self._history.in_gesture:
            self._install(nodes_next, edges_next)
            self._touch()
        else:
            self._commit("set nodes", nodes_next, edges_next)

    # --- Edge Operations ---

    def add_edge(self, edge: Edge | dict) -> ConnectionResult:
        """
        Add an edge after connection validation.

        A rejected connection returns a result naming the failed rule and
        leaves the graph and history untouched.
        """
        edge = _coerce(Edge, edge, "edge")
        if edge.id in self._edges:
            raise ValidationError(f"Duplicate edge id: {edge.id}")

        result = ConnectionValidator(self._nodes, self._edges.values()).validate_edge(edge)
        if not result:
            logger.info("Connection rejected (%s): %s", result.reason.value, result.message)
            return result

        edges_next = dict(self._edges)
        edges_next[edge.id] = edge
        self._commit("connect", dict(self._nodes), edges_next)
        return ConnectionResult.accept(edge.model_copy(deep=True))

    def add_edges(self, edges: Iterable[Edge | dict]) -> list[Edge]:
        """
        Add several edges as one history entry.

        Each edge is checked against the current edges plus those accepted
        earlier in the batch. Any rejection raises ValidationError and
        nothing is added.
        """
        new_edges = [_coerce(Edge, e, "edge") for e in edges]
        if not new_edges:
            return []

        edges_next = dict(self._edges)
        for edge in new_edges:
            if edge.id in edges_next:
                raise ValidationError(f"Duplicate edge id: {edge.id}")
            result = ConnectionValidator(self._nodes, edges_next.values()).validate_edge(edge)
            if not result:
                logger.info("Bulk connect rejected (%s): %s", result.reason.value, result.message)
                raise ValidationError(
                    f"Connection rejected ({result.reason.value}): {result.message}",
                    [ValidationIssue(IssueSeverity.ERROR, result.message, edge_id=edge.id)],
                )
            edges_next[edge.id] = edge

        self._commit("connect", dict(self._nodes), edges_next)
        return [e.model_copy(deep=True) for e in new_edges]

    def connect(
        self,
        source: str,
        source_handle: Optional[str],
        target: str,
        target_handle: Optional[str],
    ) -> ConnectionResult:
        """
        Handle a connect gesture from the canvas.

        Edges out of a condition node are drawn as conditional branches;
        edges from a named output port carry the port name as their label.
        """
        kind = EdgeKind.SMOOTHSTEP
        data = EdgeData()
        source_node = self._nodes.get(source)
        if source_node is not None:
            port = source_node.output_port(source_handle)
            if source_node.type == NodeType.CONDITION:
                kind = EdgeKind.CONDITIONAL
                if port is not None:
                    data = EdgeData(label=port.name or port.id)
            elif port is not None and port.name:
                kind = EdgeKind.LABELED
                data = EdgeData(source_port_name=port.name)

        return self.add_edge(Edge(
            source=source,
            source_handle=source_handle,
            target=target,
            target_handle=target_handle,
            kind=kind,
            data=data,
        ))

    def remove_edges(self, ids: Iterable[str]) -> bool:
        """Delete edges as one history entry. Returns False if nothing was removed."""
        doomed = {eid for eid in ids if eid in self._edges}
        if not doomed:
            return False
        edges_next = {eid: e for eid, e in self._edges.items() if eid not in doomed}
        self._commit("delete edges", dict(self._nodes), edges_next)
        return True

    def set_edges(self, edges: Iterable[Edge | dict]) -> None:
        """Bulk replace the edge set. Raises ValidationError if the result is invalid."""
        new_edges = [_coerce(Edge, e, "edge") for e in edges]
        edges_next: dict[str, Edge] = {}
        for edge in new_edges:
            if edge.id in edges_next:
                raise ValidationError(f"Duplicate edge id: {edge.id}")
            edges_next[edge.id] = edge
        self._check_graph(self._nodes, edges_next, "edge set")

        if self._history.in_gesture:
            self._install(self._nodes, edges_next)
            self._touch()
        else:
            self._commit("set edges", dict(self._nodes), edges_next)

    # --- Groups ---

    def _group(self, group_id: str) -> Optional[Node]:
        node = self._nodes.get(group_id)
        return node if node is not None and node.is_group else None

    def _groupable(self, ids: Iterable[str]) -> list[str]:
        """Top-level, non-group nodes among `ids`, in canvas order."""
        wanted = set(ids)
        return [
            nid for nid, node in self._nodes.items()
            if nid in wanted and not node.is_group and node.parent_id is None
        ]

    def absolute_position(self, node_id: str) -> Optional[Position]:
        """Canvas position of a node, resolving group-relative coordinates."""
        node = self._nodes.get(node_id)
        if node is None:
            return None
        parent = self._nodes.get(node.parent_id) if node.parent_id else None
        if parent is None:
            return node.position.model_copy()
        return node.position.offset(parent.position.x, parent.position.y)

    def create_group(
        self,
        node_ids: Iterable[str],
        label: Optional[str] = None,
        color: str = "default",
    ) -> Optional[str]:
        """
        Wrap nodes in a new group frame as one history entry.

        The frame is sized around the members, which switch to coordinates
        relative to it. Nodes already in a group (and groups) are skipped.
        Returns the group id, or None if nothing could be grouped.
        """
        members = self._groupable(node_ids)
        if not members:
            return None

        origin, width, height = group_bounds([self._nodes[nid] for nid in members])
        group_id = generate_group_id()
        while group_id in self._nodes:
            group_id = generate_group_id()
        group_data = create_default_node_data(NodeType.GROUP, label)
        group_data.config["color"] = color
        group = Node(
            id=group_id,
            type=NodeType.GROUP,
            position=origin,
            width=width,
            height=height,
            data=group_data,
        )

        # the frame goes first so it stacks beneath its members
        nodes_next = {group_id: group}
        member_set = set(members)
        for nid, node in self._nodes.items():
            if nid in member_set:
                node = node.model_copy(update={
                    "parent_id": group_id,
                    "position": node.position.offset(-origin.x, -origin.y),
                })
            nodes_next[nid] = node
        self._commit("group", nodes_next, dict(self._edges))
        logger.debug("Grouped %d nodes into %s", len(members), group_id)
        return group_id

    def ungroup(self, group_id: str) -> bool:
        """Remove a group frame, returning its members to canvas coordinates."""
        group = self._group(group_id)
        if group is None:
            return False

        nodes_next: dict[str, Node] = {}
        for nid, node in self._nodes.items():
            if nid == group_id:
                continue
            if node.parent_id == group_id:
                node = node.model_copy(update={
                    "parent_id": None,
                    "hidden": False,
                    "position": node.position.offset(group.position.x, group.position.y),
                })
            nodes_next[nid] = node
        edges_next = {
            eid: e for eid, e in self._edges.items()
            if group_id not in (e.source, e.target)
        }
        self._commit("ungroup", nodes_next, edges_next)
        return True

    def add_nodes_to_group(self, node_ids: Iterable[str], group_id: str) -> bool:
        """Move top-level nodes into an existing group, keeping their canvas position."""
        group = self._group(group_id)
        if group is None:
            return False
        members = self._groupable(node_ids)
        if not members:
            return False

        collapsed = bool(group.data.config.get("collapsed", False))
        nodes_next = dict(self._nodes)
        for nid in members:
            node = self._nodes[nid]
            nodes_next[nid] = node.model_copy(update={
                "parent_id": group_id,
                "hidden": collapsed,
                "position": node.position.offset(-group.position.x, -group.position.y),
            })
        self._commit("add to group", nodes_next, dict(self._edges))
        return True

    def remove_nodes_from_group(self, node_ids: Iterable[str]) -> bool:
        """Detach nodes from their groups, keeping their canvas position."""
        wanted = set(node_ids)
        nodes_next = dict(self._nodes)
        changed = False
        for nid, node in self._nodes.items():
            if nid not in wanted or node.parent_id is None:
                continue
            nodes_next[nid] = node.model_copy(update={
                "parent_id": None,
                "hidden": False,
                "position": self.absolute_position(nid),
            })
            changed = True
        if not changed:
            return False
        self._commit("remove from group", nodes_next, dict(self._edges))
        return True

    def update_group_style(
        self,
        group_id: str,
        label: Optional[str] = None,
        color: Optional[str] = None,
        collapsed: Optional[bool] = None,
    ) -> bool:
        """
        Relabel, recolor or collapse a group. Collapsing hides its members.

        Returns False if the group does not exist or nothing changed.
        """
        group = self._group(group_id)
        if group is None:
            return False

        data = group.data.model_copy(deep=True)
        if label is not None:
            data.label = label
        if color is not None:
            data.config["color"] = color
        if collapsed is not None:
            data.config["collapsed"] = collapsed
        if data == group.data:
            return False

        nodes_next = dict(self._nodes)
        nodes_next[group_id] = group.model_copy(update={"data": data})
        if collapsed is not None:
            for nid, node in self._nodes.items():
                if node.parent_id == group_id and node.hidden != collapsed:
                    nodes_next[nid] = node.model_copy(update={"hidden": collapsed})
        self._commit("group style", nodes_next, dict(self._edges))
        return True

    def toggle_group_collapse(self, group_id: str) -> bool:
        group = self._group(group_id)
        if group is None:
            return False
        collapsed = bool(group.data.config.get("collapsed", False))
        return self.update_group_style(group_id, collapsed=not collapsed)

    def get_group_children(self, group_id: str) -> list[Node]:
        """Copies of a group's members, in canvas order."""
        return [
            node.model_copy(deep=True)
            for node in self._nodes.values()
            if node.parent_id == group_id
        ]

    # --- Selection ---

    def select(self, ids: Iterable[str], additive: bool = False):
        """Select nodes (unknown ids are ignored)."""
        self._selection.select([nid for nid in ids if nid in self._nodes], additive)
        self._notify_change()

    def toggle_selection(self, node_id: str):
        if node_id in self._nodes:
            self._selection.toggle(node_id)
            self._notify_change()

    def select_edges(self, ids: Iterable[str], additive: bool = False):
        self._selection.select_edges([eid for eid in ids if eid in self._edges], additive)
        self._notify_change()

    def select_all(self):
        self._selection.select_all(self._nodes, self._edges)
        self._notify_change()

    def clear_selection(self):
        self._selection.clear()
        self._notify_change()

    # --- Clipboard ---

    def copy_selected_nodes(self) -> bool:
        """Copy the selected nodes and the edges between them."""
        return self._clipboard.copy(self._nodes, self._edges.values(), self._selection.node_ids)

    def paste_nodes(self, offset: Optional[tuple[float, float]] = None) -> list[str]:
        """
        Paste the clipboard as one history entry and select the new nodes.

        Returns the new node ids (empty if the clipboard is empty).
        """
        offset = offset or self._settings.paste_offset
        taken = set(self._nodes) | set(self._edges)
        new_nodes, new_edges = self._clipboard.build_paste(taken, offset)
        if not new_nodes:
            return []

        nodes_next = dict(self._nodes)
        nodes_next.update((n.id, n) for n in new_nodes)
        edges_next = dict(self._edges)
        edges_next.update((e.id, e) for e in new_edges)
        self._commit("paste", nodes_next, edges_next)

        new_ids = [n.id for n in new_nodes]
        self._selection.select(new_ids)
        self._notify_change()
        return new_ids

    def duplicate_selected_nodes(self) -> list[str]:
        """Copy the selection and paste it straight back, offset."""
        if not self.copy_selected_nodes():
            return []
        return self.paste_nodes(self._settings.paste_offset)

    # --- Layout Operations (delegated to workflow_core.layout) ---

    def apply_layout(self, strategy: str = "layered", direction: str = "horizontal") -> bool:
        """
        Automatically arrange nodes.

        Strategies:
        - layered: Follow edge direction, `direction` is horizontal or vertical
        - grid: Simple grid layout

        Only top-level nodes are arranged; group members move with their
        group. The new positions go through the drag path as one gesture,
        so the whole layout undoes in a single step.
        """
        nodes = [n for n in self._nodes.values() if n.parent_id is None]
        if not nodes:
            return False

        spacing = {
            "spacing_x": self._settings.layout_spacing_x,
            "spacing_y": self._settings.layout_spacing_y,
        }
        if strategy == "layered":
            positions = layered_layout(nodes, list(self._edges.values()), direction, **spacing)
        elif strategy == "grid":
            positions = grid_layout(nodes, **spacing)
        else:
            raise ValueError(f"Unknown layout strategy: {strategy}")

        with self.gesture(f"layout:{strategy}"):
            moved = self.update_node_positions(positions)
        return moved

    # --- Lifecycle ---

    def close(self):
        """Tear down the session: drop listeners and all state."""
        self._on_change_callbacks.clear()
        self._history.clear()
        self._clipboard.clear()
        self._selection.clear()
        self._nodes = {}
        self._edges = {}
        self._edges_by_node = {}
