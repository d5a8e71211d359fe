"""
Connection validation - decide whether a proposed edge may be added.

The checks run in a fixed order and stop at the first failure, so the
caller always learns the specific rule that refused the connection:

1. self-loop
2. cycle (a path already leads from the target back to the source)
3. endpoint resolution (missing nodes; undeclared ports are untyped passthroughs)
4. port type compatibility
5. target port arity
6. duplicate connection

Validation never mutates the graph.
"""

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Optional

from .models import Edge, Node, PortType


class RejectionReason(str, Enum):
    """Which rule refused a connection."""
    SELF_LOOP = "self_loop"
    CYCLE = "cycle"
    MISSING_ENDPOINT = "missing_endpoint"
    TYPE_MISMATCH = "type_mismatch"
    ARITY = "arity"
    DUPLICATE = "duplicate"


@dataclass
class ConnectionResult:
    """Outcome of a connect attempt: accepted, or rejected with a reason."""
    accepted: bool
    reason: Optional[RejectionReason] = None
    message: str = ""
    edge: Optional[Edge] = None

    def __bool__(self) -> bool:
        return self.accepted

    @classmethod
    def accept(cls, edge: Optional[Edge] = None) -> "ConnectionResult":
        return cls(accepted=True, edge=edge)

    @classmethod
    def reject(cls, reason: RejectionReason, message: str) -> "ConnectionResult":
        return cls(accepted=False, reason=reason, message=message)

    def to_dict(self) -> dict:
        result = {"accepted": self.accepted}
        if self.reason is not None:
            result["reason"] = self.reason.value
            result["message"] = self.message
        if self.edge is not None:
            result["edge"] = self.edge.to_json_dict()
        return result


def are_types_compatible(source_type: PortType, target_type: PortType) -> bool:
    """`any` matches every type in both directions; otherwise types must be equal."""
    if source_type == PortType.ANY or target_type == PortType.ANY:
        return True
    return source_type == target_type


def would_create_cycle(edges: Iterable[Edge], source_id: str, target_id: str) -> bool:
    """
    Check whether adding source -> target would close a directed cycle.

    Searches for an existing path from target back to source using an
    iterative DFS with an explicit visited set (O(V+E)).
    """
    adjacency: dict[str, list[str]] = defaultdict(list)
    for edge in edges:
        adjacency[edge.source].append(edge.target)

    visited: set[str] = set()
    stack = [target_id]
    while stack:
        current = stack.pop()
        if current == source_id:
            return True
        if current in visited:
            continue
        visited.add(current)
        for child in adjacency.get(current, []):
            if child not in visited:
                stack.append(child)
    return False


class ConnectionValidator:
    """
    Pure predicate over a read-only view of the graph.

    Args:
        nodes: node id -> Node
        edges: the current edge set
    """

    def __init__(self, nodes: Mapping[str, Node], edges: Iterable[Edge]):
        self._nodes = nodes
        self._edges = list(edges)

    def validate(
        self,
        source: str,
        source_handle: Optional[str],
        target: str,
        target_handle: Optional[str],
    ) -> ConnectionResult:
        if source == target:
            return ConnectionResult.reject(
                RejectionReason.SELF_LOOP,
                f"Cannot connect node {source} to itself",
            )

        if would_create_cycle(self._edges, source, target):
            return ConnectionResult.reject(
                RejectionReason.CYCLE,
                f"Connecting {source} -> {target} would create a cycle",
            )

        source_node = self._nodes.get(source)
        target_node = self._nodes.get(target)
        if source_node is None or target_node is None:
            missing = source if source_node is None else target
            return ConnectionResult.reject(
                RejectionReason.MISSING_ENDPOINT,
                f"Node not found: {missing}",
            )

        source_port = source_node.output_port(source_handle)
        target_port = target_node.input_port(target_handle)

        if source_port is not None and target_port is not None:
            if not are_types_compatible(source_port.type, target_port.type):
                return ConnectionResult.reject(
                    RejectionReason.TYPE_MISMATCH,
                    f"Type mismatch: {source_port.type.value} -> {target_port.type.value}",
                )

        allows_multiple = target_port is not None and target_port.multiple
        if not allows_multiple:
            for edge in self._edges:
                if edge.target == target and edge.target_handle == target_handle:
                    return ConnectionResult.reject(
                        RejectionReason.ARITY,
                        f"Input {target}.{target_handle} already has a connection",
                    )

        key = (source, source_handle, target, target_handle)
        if any(edge.connection_key == key for edge in self._edges):
            return ConnectionResult.reject(
                RejectionReason.DUPLICATE,
                f"Connection {source}.{source_handle} -> {target}.{target_handle} already exists",
            )

        return ConnectionResult.accept()

    def validate_edge(self, edge: Edge) -> ConnectionResult:
        return self.validate(edge.source, edge.source_handle, edge.target, edge.target_handle)
