"""
Workflow Core - Graph model and edit engine for the workflow editor canvas.

This package holds the canonical graph state, connection rules, undo/redo
history, selection and clipboard. The HTTP backend and the CLI both build
on it, ensuring a single source of truth for all graph logic.
"""

from .models import (
    # Enums
    PortType,
    NodeType,
    EdgeKind,
    # Core models
    Port,
    Position,
    NodeData,
    Node,
    EdgeData,
    Edge,
    GraphSnapshot,
    WorkflowMeta,
    # Request models (for API)
    CreateNodeRequest,
    UpdateNodeRequest,
    ConnectRequest,
    IdsRequest,
    SelectRequest,
    PositionsRequest,
    GestureRequest,
    PasteRequest,
    LayoutRequest,
    MetaRequest,
    GroupRequest,
    GroupMembersRequest,
    GroupStyleRequest,
)

from .errors import GraphError, ValidationError
from .connection import (
    ConnectionValidator,
    ConnectionResult,
    RejectionReason,
    are_types_compatible,
    would_create_cycle,
)
from .validation import validate_graph, validation_summary, ValidationIssue, IssueSeverity
from .history import HistoryManager, HistoryEntry
from .selection import SelectionManager
from .clipboard import ClipboardManager
from .node_factory import create_default_node_data, create_node
from .layout import grid_layout, layered_layout
from .config import EditorSettings, get_settings
from .store import GraphStore

__all__ = [
    # Enums
    "PortType",
    "NodeType",
    "EdgeKind",
    # Models
    "Port",
    "Position",
    "NodeData",
    "Node",
    "EdgeData",
    "Edge",
    "GraphSnapshot",
    "WorkflowMeta",
    # Request models
    "CreateNodeRequest",
    "UpdateNodeRequest",
    "ConnectRequest",
    "IdsRequest",
    "SelectRequest",
    "PositionsRequest",
    "GestureRequest",
    "PasteRequest",
    "LayoutRequest",
    "MetaRequest",
    "GroupRequest",
    "GroupMembersRequest",
    "GroupStyleRequest",
    # Errors
    "GraphError",
    "ValidationError",
    # Connections
    "ConnectionValidator",
    "ConnectionResult",
    "RejectionReason",
    "are_types_compatible",
    "would_create_cycle",
    # Validation
    "validate_graph",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
    # Editing
    "HistoryManager",
    "HistoryEntry",
    "SelectionManager",
    "ClipboardManager",
    "GraphStore",
    # Node factory
    "create_default_node_data",
    "create_node",
    # Layout
    "grid_layout",
    "layered_layout",
    # Config
    "EditorSettings",
    "get_settings",
]
