import pytest

from workflow_core import EditorSettings, GraphStore, Node, Port


def _ports(items):
    ports = []
    for item in items or []:
        if isinstance(item, Port):
            ports.append(item)
        elif isinstance(item, tuple):
            port_id, port_type, *rest = item
            extra = rest[0] if rest else {}
            ports.append(Port(id=port_id, name=port_id, type=port_type, **extra))
        else:
            ports.append(Port(id=item, name=item))
    return ports


@pytest.fixture
def make_node():
    """
    Build a node with the given ports.

    Ports may be given as ids (untyped), (id, type) or (id, type, extras).
    """
    def _make(node_id, inputs=None, outputs=None, x=0, y=0, node_type="code", label=None):
        return Node(
            id=node_id,
            type=node_type,
            position={"x": x, "y": y},
            data={
                "label": label or node_id,
                "inputs": _ports(inputs),
                "outputs": _ports(outputs),
            },
        )
    return _make


@pytest.fixture
def store():
    return GraphStore(EditorSettings(max_history=50))


@pytest.fixture
def chain(store, make_node):
    """A -> B -> C with untyped single-arity ports."""
    for nid in ("A", "B", "C"):
        store.add_node(make_node(nid, inputs=["in"], outputs=["out"]))
    assert store.connect("A", "out", "B", "in").accepted
    assert store.connect("B", "out", "C", "in").accepted
    return store
