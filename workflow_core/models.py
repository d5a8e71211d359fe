"""
Core data models for workflow graphs.

These models define the canonical schema for the editor canvas:
- Nodes carrying typed input/output ports and a per-type config record
- Edges connecting an output port on one node to an input port on another
- Snapshots of the whole graph, handed out read-only to the renderer

Field Naming Convention:
- Python attributes use snake_case (`source_handle`, `target_handle`)
- The renderer's wire format uses camelCase (`sourceHandle`); both are
  accepted on input and `to_json_dict()` emits the camelCase form
- For backward compatibility, `from`/`to` are accepted on edges and converted
"""

import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PortType(str, Enum):
    """Data types a port can carry."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    ANY = "any"


class NodeType(str, Enum):
    """Closed set of node kinds available in the palette."""
    START = "start"
    END = "end"
    LLM = "llm"
    HTTP = "http"
    CONDITION = "condition"
    LOOP = "loop"
    CODE = "code"
    TEMPLATE = "template"
    VARIABLE = "variable"
    INPUT = "input"
    OUTPUT = "output"
    DB_SELECT = "db_select"
    DB_INSERT = "db_insert"
    DB_UPDATE = "db_update"
    DB_DELETE = "db_delete"
    DB_MIGRATE = "db_migrate"
    GROUP = "group"


class EdgeKind(str, Enum):
    """Visual-only edge styles. Never consulted by connection validation."""
    DEFAULT = "default"
    SMOOTHSTEP = "smoothstep"
    LABELED = "labeled"
    CONDITIONAL = "conditional"


def generate_node_id() -> str:
    """Generate a unique node ID."""
    return f"node-{uuid.uuid4().hex[:8]}"


def generate_edge_id() -> str:
    """Generate a unique edge ID."""
    return f"edge-{uuid.uuid4().hex[:8]}"


def generate_group_id() -> str:
    """Generate a unique group node ID."""
    return f"group-{uuid.uuid4().hex[:8]}"


class Port(BaseModel):
    """A named, typed attachment point on a node."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = ""
    type: PortType = PortType.ANY
    required: bool = False   # inputs only
    multiple: bool = False   # inputs only: accept more than one incoming edge
    default_value: Any = Field(default=None, alias="defaultValue")

    @field_validator("type", mode="before")
    @classmethod
    def untyped_is_any(cls, value: Any) -> Any:
        """Ports declared without a type are implicitly `any`."""
        if value is None or value == "":
            return PortType.ANY
        return value


class Position(BaseModel):
    """Canvas coordinates of a node's top-left corner."""
    x: float = 0
    y: float = 0

    def offset(self, dx: float, dy: float) -> "Position":
        return Position(x=self.x + dx, y=self.y + dy)


def _check_unique_port_ids(ports: list[Port], direction: str) -> list[Port]:
    seen: set[str] = set()
    for port in ports:
        if port.id in seen:
            raise ValueError(f"Duplicate {direction} port id: {port.id}")
        seen.add(port.id)
    return ports


class NodeData(BaseModel):
    """Inspector-editable payload of a node."""
    label: str = ""
    description: str = ""
    config: dict[str, Any] = Field(default_factory=dict)
    inputs: list[Port] = Field(default_factory=list)
    outputs: list[Port] = Field(default_factory=list)

    @field_validator("inputs")
    @classmethod
    def unique_inputs(cls, ports: list[Port]) -> list[Port]:
        return _check_unique_port_ids(ports, "input")

    @field_validator("outputs")
    @classmethod
    def unique_outputs(cls, ports: list[Port]) -> list[Port]:
        return _check_unique_port_ids(ports, "output")


class Node(BaseModel):
    """
    A node placed on the workflow canvas.

    A node inside a group has `parent_id` set and its position is relative
    to the group. Group nodes carry an explicit `width`/`height`.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=generate_node_id)
    type: NodeType
    position: Position = Field(default_factory=Position)
    data: NodeData = Field(default_factory=NodeData)
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    width: Optional[float] = None
    height: Optional[float] = None
    hidden: bool = False  # collapsed group member

    @property
    def is_group(self) -> bool:
        return self.type == NodeType.GROUP

    def input_port(self, handle: Optional[str]) -> Optional[Port]:
        """Resolve an input port by handle id (None if undeclared)."""
        for port in self.data.inputs:
            if port.id == handle:
                return port
        return None

    def output_port(self, handle: Optional[str]) -> Optional[Port]:
        """Resolve an output port by handle id (None if undeclared)."""
        for port in self.data.outputs:
            if port.id == handle:
                return port
        return None

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class EdgeData(BaseModel):
    """Optional display payload of an edge."""
    model_config = ConfigDict(populate_by_name=True)

    label: Optional[str] = None
    source_port_name: Optional[str] = Field(default=None, alias="sourcePortName")


class Edge(BaseModel):
    """
    A directed edge from an output port to an input port.

    Uses `source`/`target` for node ids and `source_handle`/`target_handle`
    for port ids. Accepts `sourceHandle`/`targetHandle` and the legacy
    `from`/`to` names on input.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=generate_edge_id)
    source: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target: str
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")
    kind: EdgeKind = Field(default=EdgeKind.DEFAULT, alias="type")
    data: EdgeData = Field(default_factory=EdgeData)

    @model_validator(mode="before")
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        """Convert legacy 'from'/'to' fields to 'source'/'target'."""
        if isinstance(data, dict):
            data = dict(data)
            if "from" in data and "source" not in data:
                data["source"] = data.pop("from")
            if "to" in data and "target" not in data:
                data["target"] = data.pop("to")
        return data

    @property
    def connection_key(self) -> tuple:
        return (self.source, self.source_handle, self.target, self.target_handle)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GraphSnapshot(BaseModel):
    """
    An owned, versioned copy of the whole graph.

    The store hands these out to the renderer and keeps them in history.
    Node order is stacking order on the canvas.
    """
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    version: int = 0

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict with the renderer's field names."""
        return {
            "nodes": [n.to_json_dict() for n in self.nodes],
            "edges": [e.to_json_dict() for e in self.edges],
            "version": self.version,
        }

    @classmethod
    def from_json_dict(cls, data: dict) -> "GraphSnapshot":
        """Create a snapshot from a JSON dict (raises pydantic errors on any bad shape)."""
        return cls.model_validate(data)

    def clone(self) -> "GraphSnapshot":
        return self.model_copy(deep=True)

    def same_graph(self, other: "GraphSnapshot") -> bool:
        """Compare graph content, ignoring the version counter."""
        return self.nodes == other.nodes and self.edges == other.edges


class WorkflowMeta(BaseModel):
    """Workflow-level metadata shown in the editor header."""
    name: str = "Untitled Workflow"
    description: str = ""


# --- API Request Models ---

class CreateNodeRequest(BaseModel):
    """Palette drop: a node type tag plus a canvas position."""
    type: NodeType
    x: float = 0
    y: float = 0
    label: Optional[str] = None


class UpdateNodeRequest(BaseModel):
    """Inspector write-back (partial node data)."""
    label: Optional[str] = None
    description: Optional[str] = None
    config: Optional[dict[str, Any]] = None
    inputs: Optional[list[Port]] = None
    outputs: Optional[list[Port]] = None


class ConnectRequest(BaseModel):
    """A connect gesture from the canvas."""
    model_config = ConfigDict(populate_by_name=True)

    source: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target: str
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")


class IdsRequest(BaseModel):
    ids: list[str] = Field(default_factory=list)


class SelectRequest(BaseModel):
    node_ids: list[str] = Field(default_factory=list)
    edge_ids: list[str] = Field(default_factory=list)
    additive: bool = False


class PositionsRequest(BaseModel):
    """Bulk position write (drag frames and layout results)."""
    positions: dict[str, Position]


class GestureRequest(BaseModel):
    label: str = "drag"


class PasteRequest(BaseModel):
    x: Optional[float] = None
    y: Optional[float] = None


class LayoutRequest(BaseModel):
    strategy: str = "layered"
    direction: str = "horizontal"


class MetaRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class GroupRequest(BaseModel):
    """Wrap nodes in a new group."""
    node_ids: list[str]
    label: Optional[str] = None
    color: str = "default"


class GroupMembersRequest(BaseModel):
    node_ids: list[str]


class GroupStyleRequest(BaseModel):
    label: Optional[str] = None
    color: Optional[str] = None
    collapsed: Optional[bool] = None
