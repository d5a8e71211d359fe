"""Tests for automatic layout."""

import pytest

from workflow_core import Edge, grid_layout, layered_layout
from workflow_core.layout import assign_layers, group_bounds


@pytest.fixture
def diamond(make_node):
    nodes = [make_node(n) for n in "ABCD"]
    edges = [
        Edge(source="A", target="B"),
        Edge(source="A", target="C"),
        Edge(source="B", target="D"),
        Edge(source="C", target="D"),
    ]
    return nodes, edges


def test_assign_layers_uses_longest_path(make_node):
    nodes = [make_node(n) for n in "ABC"]
    edges = [Edge(source="A", target="B"), Edge(source="B", target="C"), Edge(source="A", target="C")]
    assert assign_layers(nodes, edges) == {"A": 0, "B": 1, "C": 2}


def test_layered_horizontal(diamond):
    nodes, edges = diamond
    positions = layered_layout(nodes, edges, spacing_x=200, spacing_y=100, start_x=0, start_y=0)
    assert positions["A"].x == 0
    assert positions["B"].x == positions["C"].x == 200
    assert positions["D"].x == 400
    assert positions["B"].y != positions["C"].y


def test_layered_vertical(diamond):
    nodes, edges = diamond
    positions = layered_layout(nodes, edges, direction="vertical", start_x=0, start_y=0, spacing_y=100)
    assert [positions[n].y for n in "ABCD"] == [0, 100, 100, 200]


def test_layered_unknown_direction(diamond):
    nodes, edges = diamond
    with pytest.raises(ValueError):
        layered_layout(nodes, edges, direction="diagonal")


def test_layout_does_not_touch_nodes(diamond):
    nodes, edges = diamond
    layered_layout(nodes, edges)
    assert all(n.position.x == 0 and n.position.y == 0 for n in nodes)


def test_grid(make_node):
    nodes = [make_node(f"n{i}") for i in range(5)]
    positions = grid_layout(nodes, spacing_x=10, spacing_y=20, start_x=0, start_y=0, columns=2)
    assert (positions["n0"].x, positions["n0"].y) == (0, 0)
    assert (positions["n1"].x, positions["n1"].y) == (10, 0)
    assert (positions["n4"].x, positions["n4"].y) == (0, 40)


def test_empty_inputs():
    assert grid_layout([]) == {}
    assert layered_layout([], []) == {}


def test_group_bounds_pads_members(make_node):
    nodes = [make_node("A", x=100, y=100), make_node("B", x=400, y=200)]
    origin, width, height = group_bounds(nodes)
    assert (origin.x, origin.y) == (60, 20)
    assert width == 300 + 280 + 80
    assert height == 100 + 120 + 80 + 40


def test_group_bounds_uses_explicit_size(make_node):
    node = make_node("A").model_copy(update={"width": 100, "height": 50})
    origin, width, height = group_bounds([node], padding=10, title_height=0)
    assert (origin.x, origin.y, width, height) == (-10, -10, 120, 70)


def test_group_bounds_empty():
    with pytest.raises(ValueError):
        group_bounds([])
