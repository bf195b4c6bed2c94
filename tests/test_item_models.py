# tests/test_item_models.py
from workflow_transfer.models.item_models import (
    Edge,
    has_credentials,
    node_key_index,
    node_label,
    parse_connections,
    same_tag_multiset,
    tag_names,
)


class TestTags:

    def test_mixed_tag_shapes(self):
        assert tag_names(["a", {"id": "1", "name": "b"}, {"id": "2"}, 3]) == ["a", "b"]
        assert tag_names(None) == []

    def test_multiset_comparison(self):
        assert same_tag_multiset(["a", "b"], [{"name": "b"}, "a"])
        assert not same_tag_multiset(["a", "a"], ["a"])
        assert same_tag_multiset(None, [])


class TestParseConnections:

    def test_flattens_outputs(self):
        parsed = parse_connections({
            "If": {"main": [[{"node": "A"}], [{"node": "B"}, {"node": "C"}]]},
        })
        assert parsed.edges["If"] == [
            Edge("A", "main", 0),
            Edge("B", "main", 1),
            Edge("C", "main", 1),
        ]
        assert parsed.edge_count == 3
        assert parsed.warnings == []

    def test_malformed_structures_become_warnings(self):
        parsed = parse_connections({
            "A": {"main": "oops"},
            "B": "oops",
            "C": {"main": [None, "x", [1, {"type": "main"}]]},
        })
        assert "Connection type 'main' for node 'A' is not an array" in parsed.warnings
        assert len(parsed.warnings) == 4
        assert parsed.edges["C"] == [Edge(None, "main", 2)]

    def test_non_mapping_connections(self):
        assert parse_connections(None).edge_count == 0


class TestNodes:

    def test_key_index_resolves_names_and_ids(self):
        node_ids, lookup = node_key_index([
            {"id": "n1", "name": "Trigger"},
            {"name": "NoId"},
            {"id": "n3"},
            {"type": "orphan-without-key"},
        ])
        assert node_ids == ["n1", "NoId", "n3"]
        assert lookup["Trigger"] == "n1"
        assert lookup["n1"] == "n1"
        assert lookup["NoId"] == "NoId"

    def test_ids_win_over_names(self):
        _, lookup = node_key_index([{"id": "a", "name": "b"}, {"id": "b", "name": "c"}])
        assert lookup["b"] == "b"

    def test_labels(self):
        assert node_label({"id": "n1", "name": "HTTP"}) == '"HTTP" (n1)'
        assert node_label({"id": "n1"}) == '"n1"'
        assert node_label({}) == '"unnamed"'

    def test_has_credentials(self):
        assert has_credentials({"nodes": [{"credentials": {"api": {"id": "1"}}}]})
        assert not has_credentials({"nodes": [{"credentials": {}}]})
        assert not has_credentials({"nodes": "bad"})
