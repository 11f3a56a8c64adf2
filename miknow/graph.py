"""Knowledge graph data for the graph view.

The synthesized graph is decorative: notes are attached to the app's feature
nodes at random, with no similarity analysis behind the edges.
"""

import logging
import random
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

NOTE_COLOR = "#4caf50"
FEATURE_COLOR = "#9c27b0"
HIGHLIGHT_COLOR = "#ff5722"

NOTE_LABEL_LIMIT = 30
SECOND_EDGE_PROBABILITY = 0.5
FEATURE_EDGE_PROBABILITY = 0.3

NodeId = Union[str, int]


class GraphNode(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: NodeId
    label: str = ""
    value: float = 1
    color: Optional[str] = None


class GraphEdge(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    from_: NodeId = Field(alias="from")
    to: NodeId
    width: Optional[float] = None


class GraphData(BaseModel):
    nodes: List[GraphNode] = []
    edges: List[GraphEdge] = []

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


FEATURE_NODES = [
    {"id": "analysis", "label": "Note Analysis", "value": 8, "color": "#9c27b0"},
    {"id": "links", "label": "Link Suggestions", "value": 7, "color": "#673ab7"},
    {"id": "qa", "label": "Q&A", "value": 6, "color": "#3f51b5"},
    {"id": "graph", "label": "Graph View", "value": 7, "color": "#2196f3"},
    {"id": "generation", "label": "Note Generation", "value": 6, "color": "#03a9f4"},
]


def note_label(note: str) -> str:
    if len(note) > NOTE_LABEL_LIMIT:
        return note[:NOTE_LABEL_LIMIT] + "..."
    return note


def generate_knowledge_graph(
    notes: List[str],
    rng: Optional[random.Random] = None,
) -> GraphData:
    """
    Build a graph linking each note to one or two feature nodes.

    Args:
        notes: Note texts; one node per note
        rng: Random source. Defaults to a fresh unseeded generator, so
             output differs between calls; pass a seeded Random to reproduce it.

    Returns:
        GraphData with the 5 feature nodes followed by the note nodes
    """
    if not notes:
        return GraphData()

    if rng is None:
        rng = random.Random()

    feature_nodes = [GraphNode(**node) for node in FEATURE_NODES]
    note_nodes = [
        GraphNode(id=f"note-{index}", label=note_label(note), value=5, color=NOTE_COLOR)
        for index, note in enumerate(notes)
    ]

    edges: List[GraphEdge] = []
    feature_count = len(feature_nodes)

    for note_node in note_nodes:
        first = rng.randrange(feature_count)
        edges.append(GraphEdge(from_=note_node.id, to=feature_nodes[first].id, width=1))

        if rng.random() < SECOND_EDGE_PROBABILITY:
            second = rng.randrange(feature_count)
            while second == first:
                second = rng.randrange(feature_count)
            edges.append(GraphEdge(from_=note_node.id, to=feature_nodes[second].id, width=1))

    for source_index, source in enumerate(feature_nodes):
        for target_index, target in enumerate(feature_nodes):
            if source_index != target_index and rng.random() < FEATURE_EDGE_PROBABILITY:
                edges.append(GraphEdge(from_=source.id, to=target.id, width=2))

    logger.debug(f"Generated graph with {len(feature_nodes) + len(note_nodes)} nodes and {len(edges)} edges")
    return GraphData(nodes=feature_nodes + note_nodes, edges=edges)


def default_node_color(node: GraphNode) -> str:
    if str(node.id).startswith("note-"):
        return NOTE_COLOR
    return FEATURE_COLOR


def highlight_nodes(graph: GraphData, term: str) -> GraphData:
    """Color nodes whose label contains term (case-insensitive) with the highlight color."""
    needle = term.lower()
    nodes = []
    for node in graph.nodes:
        if needle and needle in node.label.lower():
            color = HIGHLIGHT_COLOR
        else:
            color = node.color or default_node_color(node)
        nodes.append(node.model_copy(update={"color": color}))
    return GraphData(nodes=nodes, edges=list(graph.edges))


def dangling_edges(graph: GraphData) -> List[GraphEdge]:
    """Edges whose endpoints are not node ids. Reported only, never removed."""
    node_ids = {node.id for node in graph.nodes}
    return [
        edge for edge in graph.edges
        if edge.from_ not in node_ids or edge.to not in node_ids
    ]


def graph_stats(graph: GraphData) -> Dict[str, int]:
    return {
        "total_nodes": len(graph.nodes),
        "note_nodes": sum(1 for node in graph.nodes if str(node.id).startswith("note-")),
        "total_edges": len(graph.edges),
        "dangling_edges": len(dangling_edges(graph)),
    }
