"""Tests for whole-graph validation."""

from workflow_core import (
    Edge,
    GraphSnapshot,
    IssueSeverity,
    validate_graph,
    validation_summary,
)
from workflow_core.validation import errors_only, find_cycle_nodes


def _messages(issues, severity=IssueSeverity.ERROR):
    return [i.message for i in issues if i.severity == severity]


class TestValidateGraph:

    def test_empty_graph_is_info_only(self):
        issues = validate_graph(GraphSnapshot())
        assert [i.severity for i in issues] == [IssueSeverity.INFO]

    def test_edges_without_nodes(self):
        issues = validate_graph(GraphSnapshot(edges=[Edge(source="a", target="b")]))
        assert errors_only(issues)

    def test_clean_chain(self, make_node):
        nodes = [make_node(n, inputs=["in"], outputs=["out"]) for n in "AB"]
        edges = [Edge(source="A", source_handle="out", target="B", target_handle="in")]
        assert errors_only(validate_graph(GraphSnapshot(nodes=nodes, edges=edges))) == []

    def test_dangling_edge(self, make_node):
        snap = GraphSnapshot(nodes=[make_node("A")], edges=[Edge(id="e1", source="A", target="ghost")])
        errors = errors_only(validate_graph(snap))
        assert any("ghost" in e.message and e.edge_id == "e1" for e in errors)

    def test_duplicate_ids(self, make_node):
        snap = GraphSnapshot(
            nodes=[make_node("A"), make_node("A"), make_node("B")],
            edges=[
                Edge(id="e", source="A", target="B", target_handle="x"),
                Edge(id="e", source="A", target="B", target_handle="y"),
            ],
        )
        messages = _messages(validate_graph(snap))
        assert "Duplicate node id: A" in messages
        assert "Duplicate edge id: e" in messages

    def test_self_loop(self, make_node):
        snap = GraphSnapshot(nodes=[make_node("A")], edges=[Edge(source="A", target="A")])
        assert any("Self-referencing" in m for m in _messages(validate_graph(snap)))

    def test_cycle(self, make_node):
        nodes = [make_node(n) for n in "ABC"]
        edges = [
            Edge(source="A", target="B"),
            Edge(source="B", target="C"),
            Edge(source="C", target="A"),
        ]
        messages = _messages(validate_graph(GraphSnapshot(nodes=nodes, edges=edges)))
        assert any("cycle" in m for m in messages)

    def test_type_mismatch(self, make_node):
        a = make_node("A", outputs=[("out", "number")])
        b = make_node("B", inputs=[("in", "boolean")])
        snap = GraphSnapshot(nodes=[a, b], edges=[
            Edge(source="A", source_handle="out", target="B", target_handle="in"),
        ])
        assert any("number -> boolean" in m for m in _messages(validate_graph(snap)))

    def test_over_connected_single_input(self, make_node):
        nodes = [make_node("A", outputs=["out"]), make_node("B", outputs=["out"]), make_node("C", inputs=["in"])]
        edges = [
            Edge(source="A", source_handle="out", target="C", target_handle="in"),
            Edge(source="B", source_handle="out", target="C", target_handle="in"),
        ]
        messages = _messages(validate_graph(GraphSnapshot(nodes=nodes, edges=edges)))
        assert any("more than one connection" in m for m in messages)

    def test_multiple_input_allows_fan_in(self, make_node):
        nodes = [
            make_node("A", outputs=["out"]),
            make_node("B", outputs=["out"]),
            make_node("C", inputs=[("in", "any", {"multiple": True})]),
        ]
        edges = [
            Edge(source="A", source_handle="out", target="C", target_handle="in"),
            Edge(source="B", source_handle="out", target="C", target_handle="in"),
        ]
        assert errors_only(validate_graph(GraphSnapshot(nodes=nodes, edges=edges))) == []

    def test_warnings_for_orphans_and_open_required_inputs(self, make_node):
        nodes = [make_node("A", inputs=[("in", "any", {"required": True})]), make_node("B")]
        issues = validate_graph(GraphSnapshot(nodes=nodes))
        warnings = _messages(issues, IssueSeverity.WARNING)
        assert "Disconnected node: A" in warnings
        assert "Disconnected node: B" in warnings
        assert any("Required input" in w for w in warnings)
        assert errors_only(issues) == []

    def test_summary(self, make_node):
        snap = GraphSnapshot(nodes=[make_node("A")], edges=[Edge(source="A", target="ghost")])
        summary = validation_summary(validate_graph(snap))
        assert summary["errors"] == 1
        assert not summary["valid"]


class TestFindCycleNodes:

    def test_acyclic(self):
        edges = [Edge(source="A", target="B"), Edge(source="B", target="C")]
        assert find_cycle_nodes(["A", "B", "C"], edges) == set()

    def test_reports_nodes_on_cycle(self):
        edges = [Edge(source="A", target="B"), Edge(source="B", target="A")]
        assert find_cycle_nodes(["A", "B", "C"], edges) == {"A", "B"}


class TestGroupMembership:

    def _group(self, make_node, group_id="G"):
        return make_node(group_id, node_type="group")

    def test_member_of_existing_group(self, make_node):
        member = make_node("A").model_copy(update={"parent_id": "G"})
        issues = validate_graph(GraphSnapshot(nodes=[self._group(make_node), member]))
        assert errors_only(issues) == []
        assert "Disconnected node: G" not in _messages(issues, IssueSeverity.WARNING)

    def test_missing_group(self, make_node):
        member = make_node("A").model_copy(update={"parent_id": "G"})
        messages = _messages(validate_graph(GraphSnapshot(nodes=[member])))
        assert "Node A belongs to missing group: G" in messages

    def test_parent_must_be_a_group(self, make_node):
        member = make_node("A").model_copy(update={"parent_id": "B"})
        messages = _messages(validate_graph(GraphSnapshot(nodes=[member, make_node("B")])))
        assert "Parent of A is not a group: B" in messages

    def test_groups_do_not_nest(self, make_node):
        inner = self._group(make_node, "H").model_copy(update={"parent_id": "G"})
        messages = _messages(validate_graph(GraphSnapshot(nodes=[self._group(make_node), inner])))
        assert "Groups cannot be nested: H" in messages
