"""Typed keyword/article graph built from bookmarks API responses."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union

from pydantic import ValidationError
from typing_extensions import assert_never

from newsgraph.config import GraphStyleConfig
from newsgraph.contracts import GraphPayload
from newsgraph.errors import ConstructionError


LOGGER = logging.getLogger(__name__)

ELLIPSIS = "…"

POSITIVE_FILL = "#86efac"
NEGATIVE_FILL = "#fca5a5"
NEUTRAL_FILL = "#0f766e"
ROOT_FILL = "#fef3c7"
ARTICLE_FILL = "#60a5fa"

POSITIVE_STROKE = "#4ade80"
NEGATIVE_STROKE = "#f87171"
NEUTRAL_STROKE = "#0d9488"
ROOT_STROKE = "#f59e0b"
ARTICLE_STROKE = "#3b82f6"


class GraphVariant(str, Enum):
    """Which exploration endpoint produced the graph."""

    FULL = "full"
    SIMILARITY = "similarity"


class EdgeType(str, Enum):
    """Relation kinds understood by the layout."""

    COOCCURRENCE = "cooccurrence"
    SIMILARITY = "similarity"
    HAS_KEYWORD = "has_keyword"


@dataclass(frozen=True)
class KeywordNode:
    """Keyword vertex carrying frequency and sentiment statistics."""

    id: str
    label: str
    doc_frequency: int
    bookmark_frequency: int
    sentiment_score: float
    is_root: bool = False
    similarity_score: Optional[float] = None


@dataclass(frozen=True)
class ArticleNode:
    """Article vertex; ``label`` is truncated for display, ``title`` is not."""

    id: str
    label: str
    title: str
    url: str


Node = Union[KeywordNode, ArticleNode]


@dataclass(frozen=True)
class Edge:
    """Typed relation between two node ids."""

    source_id: str
    target_id: str
    type: EdgeType
    weight: float

    @property
    def key(self) -> str:
        return f"{self.source_id}->{self.target_id}:{self.type.value}"


@dataclass(frozen=True)
class EdgeStyle:
    """Stroke attributes used to draw an edge."""

    width: float
    color: str
    dash: Optional[str]

    @property
    def dashed(self) -> bool:
        return self.dash is not None


@dataclass(frozen=True)
class Graph:
    """Container for a validated graph; every edge endpoint is a known node."""

    nodes: Tuple[Node, ...]
    edges: Tuple[Edge, ...]
    variant: GraphVariant = GraphVariant.FULL
    keyword: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "_index", {node.id: node for node in self.nodes})

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    @property
    def keyword_nodes(self) -> List[KeywordNode]:
        return [node for node in self.nodes if isinstance(node, KeywordNode)]

    @property
    def article_nodes(self) -> List[ArticleNode]:
        return [node for node in self.nodes if isinstance(node, ArticleNode)]

    @property
    def has_connections(self) -> bool:
        return bool(self.edges)

    def node(self, node_id: str) -> Node:
        """Return the node with ``node_id``; raises ``KeyError`` when absent."""

        return self._index[node_id]  # type: ignore[attr-defined]

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._index  # type: ignore[attr-defined]

    def neighbors(self, node_id: str) -> List[str]:
        result: List[str] = []
        for edge in self.edges:
            if edge.source_id == node_id:
                result.append(edge.target_id)
            elif edge.target_id == node_id:
                result.append(edge.source_id)
        return result


def truncate_label(text: str, max_chars: int) -> str:
    """Cut ``text`` to ``max_chars`` characters and mark the cut with an ellipsis."""

    return text[:max_chars] + ELLIPSIS if len(text) > max_chars else text


def _is_similarity_root(node: KeywordNode, variant: GraphVariant) -> bool:
    return variant is GraphVariant.SIMILARITY and node.is_root


def node_radius(node: Node, style: GraphStyleConfig, variant: GraphVariant = GraphVariant.FULL) -> float:
    """Return the disc radius for ``node``.

    Keyword radii grow linearly with the larger of document and bookmark
    frequency and are clamped to ``[keyword_radius_min, keyword_radius_max]``.
    Root keywords of a similarity graph get a fixed bonus on top.
    """

    if isinstance(node, KeywordNode):
        frequency = max(node.doc_frequency, node.bookmark_frequency)
        scaled = style.keyword_radius_min + style.keyword_radius_scale * frequency
        radius = max(style.keyword_radius_min, min(style.keyword_radius_max, scaled))
        if _is_similarity_root(node, variant):
            radius += style.root_radius_bonus
        return radius
    if isinstance(node, ArticleNode):
        return style.article_radius
    assert_never(node)


def _sentiment_bucket(score: float, threshold: float) -> int:
    if score > threshold:
        return 1
    if score < -threshold:
        return -1
    return 0


def fill_color(node: Node, style: GraphStyleConfig, variant: GraphVariant = GraphVariant.FULL) -> str:
    if isinstance(node, KeywordNode):
        if _is_similarity_root(node, variant):
            return ROOT_FILL
        bucket = _sentiment_bucket(node.sentiment_score, style.sentiment_threshold)
        return {1: POSITIVE_FILL, -1: NEGATIVE_FILL, 0: NEUTRAL_FILL}[bucket]
    if isinstance(node, ArticleNode):
        return ARTICLE_FILL
    assert_never(node)


def stroke_color(node: Node, style: GraphStyleConfig, variant: GraphVariant = GraphVariant.FULL) -> str:
    if isinstance(node, KeywordNode):
        if _is_similarity_root(node, variant):
            return ROOT_STROKE
        bucket = _sentiment_bucket(node.sentiment_score, style.sentiment_threshold)
        return {1: POSITIVE_STROKE, -1: NEGATIVE_STROKE, 0: NEUTRAL_STROKE}[bucket]
    if isinstance(node, ArticleNode):
        return ARTICLE_STROKE
    assert_never(node)


def edge_style(edge: Edge) -> EdgeStyle:
    """Map an edge to its stroke; solid widths scale with the edge weight."""

    if edge.type is EdgeType.HAS_KEYWORD:
        return EdgeStyle(width=1.0, color="#bfdbfe", dash="4 3")
    if edge.type is EdgeType.COOCCURRENCE:
        return EdgeStyle(width=max(1.0, min(5.0, edge.weight * 0.6)), color="#d0d5dd", dash=None)
    if edge.type is EdgeType.SIMILARITY:
        return EdgeStyle(width=max(2.0, min(10.0, edge.weight * 10.0)), color="#a78bfa", dash=None)
    assert_never(edge.type)


def build_graph(
    payload: Union[GraphPayload, Mapping[str, Any]],
    *,
    variant: GraphVariant = GraphVariant.FULL,
    style: Optional[GraphStyleConfig] = None,
    keyword: Optional[str] = None,
) -> Graph:
    """Build a graph from a graph endpoint response.

    Args:
        payload: Decoded JSON body or an already validated ``GraphPayload``.
        variant: Endpoint that produced the payload.
        style: Display constants; defaults apply when omitted.
        keyword: Keyword that was explored, kept for display.

    Returns:
        Graph: Nodes in payload order followed by edges whose endpoints both exist;
            repeated edges keep their first occurrence.

    Raises:
        ConstructionError: If a required field is missing or malformed, or a
            node id is repeated.
    """

    style = style or GraphStyleConfig()
    if isinstance(payload, GraphPayload):
        validated = payload
    else:
        try:
            validated = GraphPayload.model_validate(payload)
        except ValidationError as exc:
            LOGGER.warning("Rejected malformed graph payload: %s", exc)
            raise ConstructionError(f"malformed graph payload: {exc.error_count()} error(s)") from exc

    nodes: List[Node] = []
    seen: Dict[str, Node] = {}
    for raw_keyword in validated.keyword_nodes:
        node: Node = KeywordNode(
            id=raw_keyword.id,
            label=raw_keyword.keyword,
            doc_frequency=raw_keyword.doc_frequency,
            bookmark_frequency=raw_keyword.bookmark_frequency,
            sentiment_score=raw_keyword.sentiment_score,
            is_root=raw_keyword.is_root,
            similarity_score=raw_keyword.similarity_score,
        )
        _register(node, nodes, seen)
    for raw_article in validated.article_nodes:
        node = ArticleNode(
            id=raw_article.id,
            label=truncate_label(raw_article.title, style.article_label_max_chars),
            title=raw_article.title,
            url=raw_article.url,
        )
        _register(node, nodes, seen)

    edges: List[Edge] = []
    edge_keys: Set[str] = set()
    dropped = 0
    duplicates = 0
    for raw_edge in validated.edges:
        if raw_edge.source not in seen or raw_edge.target not in seen:
            dropped += 1
            continue
        edge = Edge(
            source_id=raw_edge.source,
            target_id=raw_edge.target,
            type=EdgeType(raw_edge.type),
            weight=raw_edge.weight,
        )
        if edge.key in edge_keys:
            duplicates += 1
            continue
        edge_keys.add(edge.key)
        edges.append(edge)
    if dropped:
        LOGGER.warning(
            "Dropped edges with dangling endpoints",
            extra={"dropped": dropped, "kept": len(edges), "keyword": keyword},
        )
    if duplicates:
        LOGGER.warning(
            "Dropped duplicate edges",
            extra={"duplicates": duplicates, "kept": len(edges), "keyword": keyword},
        )
    return Graph(nodes=tuple(nodes), edges=tuple(edges), variant=variant, keyword=keyword)


def _register(node: Node, nodes: List[Node], seen: Dict[str, Node]) -> None:
    if node.id in seen:
        raise ConstructionError(f"duplicate node id in graph payload: {node.id}")
    seen[node.id] = node
    nodes.append(node)
