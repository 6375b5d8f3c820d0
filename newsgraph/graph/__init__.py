"""Graph model: typed nodes, edges and their derived visual attributes."""

from newsgraph.graph.model import (
    ArticleNode,
    Edge,
    EdgeStyle,
    EdgeType,
    Graph,
    GraphVariant,
    KeywordNode,
    Node,
    build_graph,
    edge_style,
    fill_color,
    node_radius,
    stroke_color,
    truncate_label,
)

__all__ = [
    "ArticleNode",
    "Edge",
    "EdgeStyle",
    "EdgeType",
    "Graph",
    "GraphVariant",
    "KeywordNode",
    "Node",
    "build_graph",
    "edge_style",
    "fill_color",
    "node_radius",
    "stroke_color",
    "truncate_label",
]
