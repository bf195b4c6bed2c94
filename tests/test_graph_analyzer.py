# tests/test_graph_analyzer.py
import pytest

from workflow_transfer.core.graph_analyzer import graph_analyzer
from workflow_transfer.models.item_models import Edge


def _edges(pairs):
    edges = {}
    for source, target in pairs:
        edges.setdefault(source, []).append(Edge(target_node_id=target))
    return edges


class TestDetectCycle:

    @pytest.mark.parametrize("pairs,expected_path", [
        ([("A", "B"), ("B", "A")], ["A", "B", "A"]),
        ([("A", "A")], ["A", "A"]),
        ([("A", "B"), ("B", "C"), ("C", "A")], ["A", "B", "C", "A"]),
    ])
    def test_cycles_are_found(self, pairs, expected_path):
        node_ids = sorted({n for pair in pairs for n in pair})
        has_cycle, path = graph_analyzer.detect_cycle(node_ids, _edges(pairs))
        assert has_cycle
        assert path == expected_path

    def test_diamond_is_acyclic(self):
        pairs = [("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")]
        assert graph_analyzer.detect_cycle(["A", "B", "C", "D"], _edges(pairs)) == (False, [])

    def test_cycle_not_reachable_from_first_node(self):
        pairs = [("A", "B"), ("C", "D"), ("D", "C")]
        has_cycle, path = graph_analyzer.detect_cycle(["A", "B", "C", "D"], _edges(pairs))
        assert has_cycle
        assert path == ["C", "D", "C"]

    def test_long_chain_does_not_hit_recursion_limit(self):
        node_ids = [f"n{i}" for i in range(5000)]
        pairs = list(zip(node_ids, node_ids[1:]))
        assert graph_analyzer.detect_cycle(node_ids, _edges(pairs)) == (False, [])

    def test_empty_graph(self):
        assert graph_analyzer.detect_cycle([], {}) == (False, [])


class TestDetectOrphans:

    def test_single_node_is_never_orphan(self):
        assert graph_analyzer.detect_orphans(["A"], {}) == []

    def test_two_unconnected_nodes_are_both_orphans(self):
        assert graph_analyzer.detect_orphans(["A", "B"], {}) == ["A", "B"]

    def test_connected_nodes_are_not_orphans(self):
        edges = _edges([("A", "B")])
        assert graph_analyzer.detect_orphans(["A", "B", "C"], edges) == ["C"]

    def test_source_with_empty_edge_list_is_orphan(self):
        edges = {"A": [], "B": [Edge("C")]}
        assert graph_analyzer.detect_orphans(["A", "B", "C"], edges) == ["A"]

    def test_self_loop_is_not_orphan(self):
        assert graph_analyzer.detect_orphans(["A", "B"], _edges([("A", "A")])) == ["B"]


class TestFindDanglingEdges:

    def test_unknown_target(self):
        dangling = graph_analyzer.find_dangling_edges(["A"], _edges([("A", "Z")]))
        assert [(d.source, d.target, d.missing) for d in dangling] == [("A", "Z", "target")]

    def test_unknown_source(self):
        dangling = graph_analyzer.find_dangling_edges(["A"], _edges([("Q", "A")]))
        assert [(d.source, d.missing) for d in dangling] == [("Q", "source")]

    def test_clean_graph(self):
        assert graph_analyzer.find_dangling_edges(["A", "B"], _edges([("A", "B")])) == []
