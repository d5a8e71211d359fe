"""Tests for connection validation rules."""

import pytest

from workflow_core import (
    ConnectionValidator,
    Edge,
    PortType,
    RejectionReason,
    are_types_compatible,
    would_create_cycle,
)


def _validator(nodes, edges=()):
    return ConnectionValidator({n.id: n for n in nodes}, list(edges))


class TestTypeCompatibility:

    @pytest.mark.parametrize("other", list(PortType))
    def test_any_matches_everything_both_ways(self, other):
        assert are_types_compatible(PortType.ANY, other)
        assert are_types_compatible(other, PortType.ANY)

    def test_identical_types_match(self):
        assert are_types_compatible(PortType.NUMBER, PortType.NUMBER)

    def test_different_concrete_types_do_not_match(self):
        assert not are_types_compatible(PortType.STRING, PortType.NUMBER)
        assert not are_types_compatible(PortType.ARRAY, PortType.OBJECT)


class TestCycleDetection:

    def test_path_back_to_source_is_a_cycle(self):
        edges = [Edge(source="A", target="B"), Edge(source="B", target="C")]
        assert would_create_cycle(edges, "C", "A")

    def test_forward_edge_is_not_a_cycle(self):
        edges = [Edge(source="A", target="B"), Edge(source="B", target="C")]
        assert not would_create_cycle(edges, "A", "C")

    def test_diamond_is_not_a_cycle(self):
        edges = [
            Edge(source="A", target="B"),
            Edge(source="A", target="C"),
            Edge(source="B", target="D"),
        ]
        assert not would_create_cycle(edges, "C", "D")


class TestConnectionValidator:

    def test_self_loop_rejected(self, make_node):
        a = make_node("A", inputs=["in"], outputs=["out"])
        result = _validator([a]).validate("A", "out", "A", "in")
        assert not result.accepted
        assert result.reason == RejectionReason.SELF_LOOP

    def test_any_output_into_string_input_then_arity(self, make_node):
        """Scenario: A.out(any) -> B.in(string) accepted, C -> B.in rejected for arity."""
        a = make_node("A", outputs=[("out", "any")])
        b = make_node("B", inputs=[("in", "string")])
        c = make_node("C", outputs=[("out", "string")])

        assert _validator([a, b, c]).validate("A", "out", "B", "in").accepted

        existing = [Edge(source="A", source_handle="out", target="B", target_handle="in")]
        result = _validator([a, b, c], existing).validate("C", "out", "B", "in")
        assert not result.accepted
        assert result.reason == RejectionReason.ARITY

    def test_closing_a_chain_is_rejected_as_cycle(self, make_node):
        """Scenario: A -> B -> C, then C -> A is a cycle."""
        nodes = [make_node(n, inputs=["in"], outputs=["out"]) for n in "ABC"]
        edges = [
            Edge(source="A", source_handle="out", target="B", target_handle="in"),
            Edge(source="B", source_handle="out", target="C", target_handle="in"),
        ]
        result = _validator(nodes, edges).validate("C", "out", "A", "in")
        assert result.reason == RejectionReason.CYCLE
        assert "cycle" in result.message

    def test_type_mismatch_rejected(self, make_node):
        a = make_node("A", outputs=[("out", "number")])
        b = make_node("B", inputs=[("in", "string")])
        result = _validator([a, b]).validate("A", "out", "B", "in")
        assert result.reason == RejectionReason.TYPE_MISMATCH
        assert "number -> string" in result.message

    def test_multiple_port_accepts_second_edge(self, make_node):
        a = make_node("A", outputs=[("out", "string")])
        b = make_node("B", outputs=[("out", "string")])
        c = make_node("C", inputs=[("in", "string", {"multiple": True})])
        existing = [Edge(source="A", source_handle="out", target="C", target_handle="in")]
        assert _validator([a, b, c], existing).validate("B", "out", "C", "in").accepted

    def test_duplicate_into_multiple_port_rejected(self, make_node):
        a = make_node("A", outputs=["out"])
        c = make_node("C", inputs=[("in", "any", {"multiple": True})])
        existing = [Edge(source="A", source_handle="out", target="C", target_handle="in")]
        result = _validator([a, c], existing).validate("A", "out", "C", "in")
        assert result.reason == RejectionReason.DUPLICATE

    def test_missing_endpoint_rejected(self, make_node):
        a = make_node("A", outputs=["out"])
        result = _validator([a]).validate("A", "out", "ghost", "in")
        assert result.reason == RejectionReason.MISSING_ENDPOINT
        assert "ghost" in result.message

    def test_undeclared_port_skips_type_check(self, make_node):
        a = make_node("A", outputs=[("out", "number")])
        b = make_node("B", inputs=[("in", "string")])
        # "other" is not declared on B, so it is an untyped passthrough
        assert _validator([a, b]).validate("A", "out", "B", "other").accepted

    def test_undeclared_port_still_single_arity(self, make_node):
        a = make_node("A")
        b = make_node("B")
        c = make_node("C")
        existing = [Edge(source="A", target="C")]
        result = _validator([a, b, c], existing).validate("B", None, "C", None)
        assert result.reason == RejectionReason.ARITY

    def test_checks_short_circuit_in_order(self, make_node):
        """A connection that is both cyclic and mistyped reports the cycle."""
        a = make_node("A", inputs=[("in", "string")], outputs=[("out", "number")])
        b = make_node("B", inputs=[("in", "number")], outputs=[("out", "number")])
        edges = [Edge(source="A", source_handle="out", target="B", target_handle="in")]
        result = _validator([a, b], edges).validate("B", "out", "A", "in")
        assert result.reason == RejectionReason.CYCLE

    def test_validator_does_not_mutate_inputs(self, make_node):
        a = make_node("A", outputs=["out"])
        b = make_node("B", inputs=["in"])
        nodes = {"A": a, "B": b}
        edges = []
        ConnectionValidator(nodes, edges).validate("A", "out", "B", "in")
        assert edges == []
        assert set(nodes) == {"A", "B"}

    def test_result_to_dict(self, make_node):
        a = make_node("A")
        result = _validator([a]).validate("A", None, "A", None)
        assert result.to_dict()["reason"] == "self_loop"
        assert not bool(result)
