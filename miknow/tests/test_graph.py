"""Unit tests for the graph synthesizer and graph helpers."""

import random
from collections import Counter

from miknow.graph import (
    FEATURE_NODES,
    HIGHLIGHT_COLOR,
    GraphData,
    GraphEdge,
    GraphNode,
    dangling_edges,
    generate_knowledge_graph,
    graph_stats,
    highlight_nodes,
)

FEATURE_IDS = {node["id"] for node in FEATURE_NODES}


class TestGenerateKnowledgeGraph:
    """Tests for generate_knowledge_graph."""

    def test_empty_notes(self):
        """Test that no notes give an empty graph."""
        graph = generate_knowledge_graph([])
        assert graph.to_dict() == {"nodes": [], "edges": []}

    def test_node_counts(self):
        """Test five feature nodes followed by one node per note."""
        notes = [f"note number {i}" for i in range(7)]

        graph = generate_knowledge_graph(notes, rng=random.Random(1))

        assert len(graph.nodes) == 5 + 7
        assert [n.id for n in graph.nodes[:5]] == ["analysis", "links", "qa", "graph", "generation"]
        assert [n.id for n in graph.nodes[5:]] == [f"note-{i}" for i in range(7)]

    def test_each_note_has_one_or_two_distinct_feature_edges(self):
        """Test that each note links to one or two different feature nodes."""
        for seed in range(25):
            notes = ["a", "b", "c", "d"]
            graph = generate_knowledge_graph(notes, rng=random.Random(seed))

            for index in range(len(notes)):
                targets = [e.to for e in graph.edges if e.from_ == f"note-{index}"]
                assert 1 <= len(targets) <= 2
                assert len(set(targets)) == len(targets)
                assert set(targets) <= FEATURE_IDS

    def test_feature_mesh_has_no_self_edges(self):
        """Test that feature-to-feature edges never loop and are width 2."""
        for seed in range(25):
            graph = generate_knowledge_graph(["x"], rng=random.Random(seed))
            mesh = [e for e in graph.edges if e.from_ in FEATURE_IDS]
            assert all(e.from_ != e.to for e in mesh)
            assert all(e.width == 2 for e in mesh)
            assert len(mesh) <= 20

    def test_label_truncation(self):
        """Test that labels longer than 30 characters are cut with an ellipsis."""
        long_note = "x" * 31
        exact_note = "y" * 30

        graph = generate_knowledge_graph([long_note, exact_note], rng=random.Random(0))

        assert graph.nodes[5].label == "x" * 30 + "..."
        assert graph.nodes[6].label == exact_note
        assert graph.nodes[5].value == 5
        assert graph.nodes[5].color == "#4caf50"

    def test_seeded_output_is_reproducible(self):
        """Test that the same seed gives the same graph."""
        notes = ["alpha", "beta", "gamma"]
        first = generate_knowledge_graph(notes, rng=random.Random(42))
        second = generate_knowledge_graph(notes, rng=random.Random(42))
        assert first == second

    def test_second_edge_probability_is_roughly_half(self):
        """Test that about half of the notes get a second edge."""
        rng = random.Random(7)
        graph = generate_knowledge_graph([str(i) for i in range(2000)], rng=rng)

        per_note = Counter(e.from_ for e in graph.edges if str(e.from_).startswith("note-"))
        doubles = sum(1 for count in per_note.values() if count == 2)
        assert 800 < doubles < 1200

    def test_serializes_edge_source_as_from(self):
        """Test that edges serialize their source under 'from'."""
        graph = generate_knowledge_graph(["a"], rng=random.Random(0))
        edge = graph.to_dict()["edges"][0]
        assert edge["from"] == "note-0"
        assert "from_" not in edge


class TestGraphHelpers:
    """Tests for search highlighting, dangling edge detection and stats."""

    def _graph(self):
        return GraphData(
            nodes=[
                GraphNode(id="analysis", label="Note Analysis", value=8, color="#9c27b0"),
                GraphNode(id="note-0", label="Photosynthesis basics", value=5),
                GraphNode(id="custom", label="Other"),
            ],
            edges=[
                GraphEdge(from_="note-0", to="analysis", width=1),
                GraphEdge(from_="note-0", to="missing"),
            ],
        )

    def test_highlight_matches_case_insensitively(self):
        """Test case-insensitive label matching."""
        highlighted = highlight_nodes(self._graph(), "PHOTO")

        colors = {n.id: n.color for n in highlighted.nodes}
        assert colors["note-0"] == HIGHLIGHT_COLOR
        assert colors["analysis"] == "#9c27b0"
        assert colors["custom"] == "#9c27b0"

    def test_highlight_defaults_note_color(self):
        """Test that unmatched note nodes get the default note color."""
        highlighted = highlight_nodes(self._graph(), "nothing matches")
        assert {n.id: n.color for n in highlighted.nodes}["note-0"] == "#4caf50"

    def test_dangling_edges_are_reported_not_removed(self):
        """Test that edges to missing nodes are reported and kept."""
        graph = self._graph()

        dangling = dangling_edges(graph)

        assert len(dangling) == 1
        assert dangling[0].to == "missing"
        assert len(graph.edges) == 2

    def test_graph_stats(self):
        """Test node, note, edge and dangling edge counts."""
        assert graph_stats(self._graph()) == {
            "total_nodes": 3,
            "note_nodes": 1,
            "total_edges": 2,
            "dangling_edges": 1,
        }

    def test_imported_shapes_are_accepted(self):
        """Test integer ids and extra vis.js fields from imported files."""
        graph = GraphData.model_validate({
            "nodes": [{"id": 1, "label": "one", "value": 3, "group": "g"}],
            "edges": [{"from": 1, "to": 2}],
        })
        assert graph.nodes[0].id == 1
        assert graph.edges[0].from_ == 1
        assert graph.to_dict()["nodes"][0]["group"] == "g"
