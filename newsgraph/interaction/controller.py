"""Translate pointer input into simulation perturbations and navigation."""
from __future__ import annotations

import logging
import webbrowser
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Set

from typing_extensions import assert_never

from newsgraph.config import InteractionConfig
from newsgraph.graph.model import ArticleNode, Graph, GraphVariant, KeywordNode, Node
from newsgraph.interaction.viewport import IDENTITY, Point, ViewportTransform
from newsgraph.layout.simulation import ForceSimulationEngine

LOGGER = logging.getLogger(__name__)


class ClickAction(str, Enum):
    """Outcome of clicking a node."""

    EXPLORE = "explore"
    OPEN_URL = "open_url"
    INERT = "inert"


@dataclass(frozen=True)
class Tooltip:
    """Hover tooltip anchored at a screen position."""

    node_id: str
    text: str
    anchor: Point


def is_constrained_viewport(width: float, *, touch: bool, config: InteractionConfig) -> bool:
    """Return True when pan/zoom gestures would fight page scrolling."""

    return touch or width < config.constrained_max_width


def tooltip_text(node: Node, variant: GraphVariant) -> str:
    if isinstance(node, KeywordNode):
        if variant is GraphVariant.SIMILARITY and not node.is_root and node.similarity_score is not None:
            return f"{node.label} (similarity {node.similarity_score * 100:.0f}%)"
        return node.label
    if isinstance(node, ArticleNode):
        return node.title
    assert_never(node)


class InteractionController:
    """Pointer handling for one displayed graph; all state here is ephemeral."""

    def __init__(
        self,
        engine: ForceSimulationEngine,
        graph: Graph,
        *,
        config: Optional[InteractionConfig] = None,
        on_explore: Callable[[str], object],
        open_url: Callable[[str], object] = webbrowser.open_new_tab,
        on_wake: Optional[Callable[[], None]] = None,
        constrained: bool = False,
    ) -> None:
        self._engine = engine
        self._graph = graph
        self._config = config or InteractionConfig()
        self._on_explore = on_explore
        self._open_url = open_url
        self._on_wake = on_wake
        self._constrained = constrained
        self._transform = IDENTITY
        self._dragging: Set[str] = set()
        self._tooltip: Optional[Tooltip] = None

    @property
    def transform(self) -> ViewportTransform:
        return self._transform

    @property
    def zoom_enabled(self) -> bool:
        return not self._constrained

    @property
    def tooltip(self) -> Optional[Tooltip]:
        return self._tooltip

    @property
    def dragging(self) -> frozenset[str]:
        return frozenset(self._dragging)

    def drag_start(self, node_id: str) -> None:
        """Pin ``node_id`` where it is and heat the simulation."""

        x, y = self._engine.position(node_id)
        self._engine.pin(node_id, x, y)
        self._dragging.add(node_id)
        self._engine.raise_energy()
        if self._on_wake is not None:
            self._on_wake()

    def drag_move(self, node_id: str, pointer: Point) -> None:
        """Move the pin of a dragged node to the scene point under ``pointer``."""

        if node_id not in self._dragging:
            return
        x, y = self._transform.invert(pointer)
        self._engine.pin(node_id, x, y)

    def drag_end(self, node_id: str) -> None:
        if node_id not in self._dragging:
            return
        self._dragging.discard(node_id)
        self._engine.unpin(node_id)
        if not self._dragging:
            self._engine.release_energy()

    def zoom(self, factor: float, anchor: Point) -> ViewportTransform:
        """Multiply the scale by ``factor`` around ``anchor``; no-op when constrained."""

        if self._constrained or factor <= 0:
            return self._transform
        self._transform = self._transform.scale_to(
            self._transform.k * factor,
            anchor,
            scale_min=self._config.scale_min,
            scale_max=self._config.scale_max,
        )
        return self._transform

    def wheel(self, steps: float, anchor: Point) -> ViewportTransform:
        return self.zoom(self._config.wheel_zoom_step ** steps, anchor)

    def pan(self, dx: float, dy: float) -> ViewportTransform:
        if self._constrained:
            return self._transform
        self._transform = self._transform.translate_by(dx, dy)
        return self._transform

    def hover(self, node_id: str) -> Tooltip:
        """Show the full label of ``node_id`` next to its rendered position."""

        node = self._graph.node(node_id)
        anchor = self._transform.apply(self._engine.position(node_id))
        self._tooltip = Tooltip(node_id=node_id, text=tooltip_text(node, self._graph.variant), anchor=anchor)
        return self._tooltip

    def hover_end(self) -> None:
        self._tooltip = None

    def click(self, node_id: str) -> ClickAction:
        """Dispatch a click: keywords re-explore, articles open externally."""

        node = self._graph.node(node_id)
        if isinstance(node, KeywordNode):
            if self._graph.variant is GraphVariant.SIMILARITY and node.is_root:
                return ClickAction.INERT
            LOGGER.info("Exploring keyword from graph click", extra={"keyword": node.label})
            self._on_explore(node.label)
            return ClickAction.EXPLORE
        if isinstance(node, ArticleNode):
            self._open_url(node.url)
            return ClickAction.OPEN_URL
        assert_never(node)

    def node_at(self, pointer: Point) -> Optional[str]:
        """Return the topmost node whose disc contains the screen point ``pointer``."""

        x, y = self._transform.invert(pointer)
        hit: Optional[str] = None
        for node in self._graph.nodes:
            node_x, node_y = self._engine.position(node.id)
            radius = self._engine.radius(node.id)
            if (x - node_x) ** 2 + (y - node_y) ** 2 <= radius * radius:
                hit = node.id
        return hit


__all__ = [
    "ClickAction",
    "InteractionController",
    "Tooltip",
    "is_constrained_viewport",
    "tooltip_text",
]
