"""
Error types raised by the graph engine.

Connection rejections are not exceptions: they are reported as a
`ConnectionResult` (see `workflow_core.connection`) so the canvas can show
which rule failed without unwinding the caller.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .validation import ValidationIssue


class GraphError(Exception):
    """Base class for graph engine errors."""


class ValidationError(GraphError):
    """
    A mutation or load was refused because it would break a graph invariant
    (duplicate id, malformed node/edge, dangling reference, cycle, ...).

    The store is never partially updated when this is raised.
    """

    def __init__(self, message: str, issues: "list[ValidationIssue] | None" = None):
        super().__init__(message)
        self.message = message
        self.issues = list(issues or [])

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "issues": [issue.to_dict() for issue in self.issues],
        }
