"""
Graph validation - Check a whole graph snapshot for structural issues.

Used when a graph arrives in bulk (load, bulk replace) rather than through
validated connect gestures. Any ERROR issue means the graph must be refused
as a whole.
"""

from collections import defaultdict, deque
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .connection import are_types_compatible

if TYPE_CHECKING:
    from .models import GraphSnapshot


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Breaks a graph invariant, must be refused
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a graph."""
    severity: IssueSeverity
    message: str
    node_id: str | None = None
    edge_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.node_id:
            result["node_id"] = self.node_id
        if self.edge_id:
            result["edge_id"] = self.edge_id
        return result


def find_cycle_nodes(node_ids: list[str], edges) -> set[str]:
    """
    Return the nodes that sit on (or downstream of) a cycle.

    Kahn's algorithm: whatever cannot be peeled off in topological order is
    part of a cycle. An empty result means the graph is acyclic.
    """
    in_degree: dict[str, int] = {nid: 0 for nid in node_ids}
    children: dict[str, list[str]] = defaultdict(list)
    for edge in edges:
        if edge.source in in_degree and edge.target in in_degree:
            children[edge.source].append(edge.target)
            in_degree[edge.target] += 1

    queue = deque(nid for nid, deg in in_degree.items() if deg == 0)
    while queue:
        current = queue.popleft()
        for child in children[current]:
            in_degree[child] -= 1
            if in_degree[child] == 0:
                queue.append(child)

    return {nid for nid, deg in in_degree.items() if deg > 0}


def validate_graph(snapshot: "GraphSnapshot") -> list[ValidationIssue]:
    """
    Validate a graph snapshot and return a list of issues.

    Checks for:
    - Duplicate node or edge ids - ERROR
    - Edges referencing non-existent nodes - ERROR
    - Self-referencing edges - ERROR
    - Directed cycles - ERROR
    - More than one edge into a single-arity input - ERROR
    - Incompatible port types - ERROR
    - Group members whose parent is missing or not a group - ERROR
    - Disconnected nodes - WARNING
    - Required inputs with no incoming edge - WARNING
    - Empty graph - INFO

    Args:
        snapshot: The graph to validate

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []

    nodes = snapshot.nodes
    edges = snapshot.edges

    if not nodes:
        if edges:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message="Graph has edges but no nodes"
            ))
        else:
            issues.append(ValidationIssue(
                severity=IssueSeverity.INFO,
                message="Graph has no nodes"
            ))
        return issues

    # Quick lookup
    node_map = {}
    for node in nodes:
        if node.id in node_map:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate node id: {node.id}",
                node_id=node.id
            ))
        node_map[node.id] = node

    seen_edge_ids: set[str] = set()
    for edge in edges:
        if edge.id in seen_edge_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate edge id: {edge.id}",
                edge_id=edge.id
            ))
        seen_edge_ids.add(edge.id)

    # Endpoint and port checks
    incoming: dict[tuple, int] = defaultdict(int)
    connected: set[str] = set()
    for edge in edges:
        source_node = node_map.get(edge.source)
        target_node = node_map.get(edge.target)
        if source_node is None:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Edge references non-existent source node: {edge.source}",
                edge_id=edge.id
            ))
        if target_node is None:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Edge references non-existent target node: {edge.target}",
                edge_id=edge.id
            ))
        if source_node is None or target_node is None:
            continue

        if edge.source == edge.target:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message="Self-referencing edge (node points to itself)",
                edge_id=edge.id,
                node_id=edge.source
            ))

        connected.add(edge.source)
        connected.add(edge.target)

        source_port = source_node.output_port(edge.source_handle)
        target_port = target_node.input_port(edge.target_handle)
        if source_port is not None and target_port is not None:
            if not are_types_compatible(source_port.type, target_port.type):
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=(
                        f"Type mismatch on edge: {source_port.type.value} -> "
                        f"{target_port.type.value}"
                    ),
                    edge_id=edge.id
                ))

        key = (edge.target, edge.target_handle)
        incoming[key] += 1
        if incoming[key] == 2 and not (target_port is not None and target_port.multiple):
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Input {edge.target}.{edge.target_handle} has more than one connection",
                edge_id=edge.id,
                node_id=edge.target
            ))

    # Group membership
    for node in nodes:
        if node.parent_id is None:
            continue
        parent = node_map.get(node.parent_id)
        if parent is None:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Node {node.id} belongs to missing group: {node.parent_id}",
                node_id=node.id
            ))
        elif not parent.is_group or parent.id == node.id:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Parent of {node.id} is not a group: {node.parent_id}",
                node_id=node.id
            ))
        elif node.is_group:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Groups cannot be nested: {node.id}",
                node_id=node.id
            ))

    cyclic = find_cycle_nodes(list(node_map), edges)
    if cyclic:
        issues.append(ValidationIssue(
            severity=IssueSeverity.ERROR,
            message=f"Graph contains a cycle through: {', '.join(sorted(cyclic))}"
        ))

    # Orphans
    if len(node_map) > 1:
        for node in nodes:
            if node.id not in connected and not node.is_group:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.WARNING,
                    message=f"Disconnected node: {node.data.label or node.type.value}",
                    node_id=node.id
                ))

    # Required inputs left open
    for node in nodes:
        for port in node.data.inputs:
            if port.required and incoming.get((node.id, port.id), 0) == 0:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.WARNING,
                    message=f"Required input '{port.name or port.id}' is not connected",
                    node_id=node.id
                ))

    return issues


def errors_only(issues: list[ValidationIssue]) -> list[ValidationIssue]:
    return [i for i in issues if i.severity == IssueSeverity.ERROR]


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    return {
        "total": len(issues),
        "errors": len([i for i in issues if i.severity == IssueSeverity.ERROR]),
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": len([i for i in issues if i.severity == IssueSeverity.ERROR]) == 0
    }
