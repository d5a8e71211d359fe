"""
Default node data for palette drops.

Each node type gets a default label, a config record shaped for that type,
and its input/output ports.
"""

from typing import Any, Optional

from .models import Node, NodeData, NodeType, Port, PortType


def _port(port_id: str, name: str, port_type: PortType = PortType.ANY, **kwargs: Any) -> Port:
    return Port(id=port_id, name=name, type=port_type, **kwargs)


# node type -> (default label, config factory, inputs, outputs)
_DEFAULTS: dict[NodeType, tuple] = {
    NodeType.START: (
        "Start",
        lambda: {},
        [],
        [_port("output", "output")],
    ),
    NodeType.END: (
        "End",
        lambda: {},
        [_port("input", "input", required=True)],
        [],
    ),
    NodeType.LLM: (
        "LLM Call",
        lambda: {
            "model": "gpt-4",
            "systemPrompt": "",
            "userPrompt": "",
            "temperature": 0.7,
            "maxTokens": 2048,
        },
        [_port("input", "Input")],
        [_port("output", "Output", PortType.STRING)],
    ),
    NodeType.HTTP: (
        "HTTP Request",
        lambda: {"method": "GET", "url": "", "headers": {}, "body": None},
        [_port("input", "Input")],
        [_port("output", "Response")],
    ),
    NodeType.CONDITION: (
        "Condition",
        lambda: {"conditions": [], "logic": "and"},
        [_port("input", "Input", required=True)],
        [_port("true", "True"), _port("false", "False")],
    ),
    NodeType.LOOP: (
        "Loop",
        lambda: {"mode": "forEach", "maxIterations": 1000},
        [_port("input", "Input", PortType.ARRAY, required=True)],
        [_port("loop", "Loop Body"), _port("done", "Done", PortType.ARRAY)],
    ),
    NodeType.CODE: (
        "Code",
        lambda: {
            "language": "javascript",
            "code": "async function main(inputs) {\n  return { output: inputs };\n}",
            "timeout": 30000,
        },
        [_port("input", "Input")],
        [_port("output", "Output")],
    ),
    NodeType.TEMPLATE: (
        "Text Template",
        lambda: {"template": ""},
        [_port("input", "Variables", PortType.OBJECT)],
        [_port("output", "Text", PortType.STRING)],
    ),
    NodeType.VARIABLE: (
        "Variable",
        lambda: {"variableName": "myVar", "valueType": "string", "value": ""},
        [_port("input", "Input")],
        [_port("output", "Output")],
    ),
    NodeType.INPUT: (
        "Form Input",
        lambda: {
            "inputType": "text",
            "name": "input",
            "label": "User Input",
            "placeholder": "",
            "required": True,
        },
        [],
        [_port("output", "Output")],
    ),
    NodeType.OUTPUT: (
        "Output",
        lambda: {"outputType": "text", "title": "Result", "showTimestamp": False},
        [_port("input", "Input", required=True)],
        [],
    ),
    NodeType.DB_SELECT: (
        "DB Select",
        lambda: {"operation": "select", "table": "table_name", "where": "", "limit": 100},
        [_port("params", "Params", PortType.OBJECT)],
        [_port("rows", "rows", PortType.ARRAY), _port("count", "count", PortType.NUMBER)],
    ),
    NodeType.DB_INSERT: (
        "DB Insert",
        lambda: {"operation": "insert", "table": "table_name", "values": {"field": "value"}},
        [_port("values", "values", PortType.OBJECT)],
        [
            _port("insertedId", "insertedId", PortType.STRING),
            _port("rowsAffected", "rowsAffected", PortType.NUMBER),
        ],
    ),
    NodeType.DB_UPDATE: (
        "DB Update",
        lambda: {
            "operation": "update",
            "table": "table_name",
            "where": "",
            "values": {"field": "value"},
        },
        [_port("values", "values", PortType.OBJECT)],
        [_port("rowsAffected", "rowsAffected", PortType.NUMBER)],
    ),
    NodeType.DB_DELETE: (
        "DB Delete",
        lambda: {"operation": "delete", "table": "table_name", "where": ""},
        [_port("params", "Params", PortType.OBJECT)],
        [_port("rowsAffected", "rowsAffected", PortType.NUMBER)],
    ),
    NodeType.DB_MIGRATE: (
        "DB Migrate",
        lambda: {"operation": "migrate", "sql": "CREATE TABLE example (id INT PRIMARY KEY);"},
        [_port("sql", "sql", PortType.STRING)],
        [
            _port("applied", "applied", PortType.BOOLEAN),
            _port("appliedCount", "appliedCount", PortType.NUMBER),
        ],
    ),
    NodeType.GROUP: (
        "New Group",
        lambda: {"color": "default", "collapsed": False},
        [],
        [],
    ),
}


def create_default_node_data(node_type: NodeType | str, label: Optional[str] = None) -> NodeData:
    """Build fresh default data for a node type (ports and config are new copies)."""
    node_type = NodeType(node_type)
    default_label, make_config, inputs, outputs = _DEFAULTS[node_type]
    return NodeData(
        label=label or default_label,
        config=make_config(),
        inputs=[p.model_copy() for p in inputs],
        outputs=[p.model_copy() for p in outputs],
    )


def create_node(
    node_type: NodeType | str,
    x: float = 0,
    y: float = 0,
    label: Optional[str] = None,
) -> Node:
    """Convert a palette drop (type tag + canvas position) into a new Node."""
    node_type = NodeType(node_type)
    return Node(
        type=node_type,
        position={"x": x, "y": y},
        data=create_default_node_data(node_type, label),
    )
