"""Tests for palette defaults."""

import pytest

from workflow_core import NodeType, PortType, create_default_node_data, create_node


@pytest.mark.parametrize("node_type", [t for t in NodeType if t != NodeType.GROUP])
def test_every_type_has_defaults(node_type):
    data = create_default_node_data(node_type)
    assert data.label
    assert data.inputs or data.outputs


def test_group_has_no_ports():
    data = create_default_node_data(NodeType.GROUP)
    assert data.inputs == [] and data.outputs == []
    assert data.config == {"color": "default", "collapsed": False}


def test_start_has_no_inputs_and_end_no_outputs():
    assert create_default_node_data("start").inputs == []
    assert create_default_node_data("end").outputs == []


def test_condition_branches():
    data = create_default_node_data(NodeType.CONDITION)
    assert [p.id for p in data.outputs] == ["true", "false"]
    assert all(p.type == PortType.ANY for p in data.outputs)


def test_defaults_are_fresh_copies():
    first = create_default_node_data("http")
    first.config["headers"]["X-Test"] = "1"
    first.inputs[0].name = "changed"
    second = create_default_node_data("http")
    assert second.config["headers"] == {}
    assert second.inputs[0].name == "Input"


def test_create_node_position_and_label():
    node = create_node("llm", 40, 60, label="Summarize")
    assert node.type == NodeType.LLM
    assert (node.position.x, node.position.y) == (40, 60)
    assert node.data.label == "Summarize"
    assert node.id.startswith("node-")


def test_unknown_type():
    with pytest.raises(ValueError):
        create_node("teleport")
