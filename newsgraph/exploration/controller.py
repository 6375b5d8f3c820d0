"""Fetch-and-rebuild coordination for keyword exploration.

Every call to :meth:`ExplorationController.explore` issues a request tagged
with a monotonically increasing sequence number. When a response arrives it
is compared with the latest number issued; anything older is discarded, so
rapid clicks can never leave an earlier keyword's graph on screen.
"""
from __future__ import annotations

import asyncio
import logging
import webbrowser
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from typing_extensions import Protocol

from newsgraph.config import AppConfig, ExplorationConfig
from newsgraph.contracts import KeywordRankItem, KeywordRankResponse
from newsgraph.errors import ConstructionError, SupersededResponse, TransportError
from newsgraph.graph.model import Graph, GraphVariant, build_graph
from newsgraph.interaction.controller import InteractionController, is_constrained_viewport
from newsgraph.layout.simulation import ForceSimulationEngine
from newsgraph.render.loop import RenderLoop

LOGGER = logging.getLogger(__name__)

GraphChangedCallback = Callable[[Optional[Graph], Optional[ForceSimulationEngine]], None]


class GraphSource(Protocol):
    """Subset of the bookmarks API client used during exploration."""

    async def fetch_keywords(self, limit: Optional[int] = None) -> KeywordRankResponse:
        ...

    async def fetch_graph(self, keyword: str, exploration: ExplorationConfig) -> Dict[str, Any]:
        ...

    async def fetch_similarity_graph(self, keyword: str, exploration: ExplorationConfig) -> Dict[str, Any]:
        ...


class ExplorationState(str, Enum):
    """Lifecycle of the displayed exploration."""

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class ExplorationOutcome(str, Enum):
    """What a single ``explore`` call ended up doing."""

    LOADED = "loaded"
    FAILED = "failed"
    SUPERSEDED = "superseded"
    IGNORED = "ignored"


@dataclass(frozen=True)
class ExplorationRequest:
    """One issued fetch; only the latest sequence number may change the display."""

    sequence_number: int
    keyword: str
    variant: GraphVariant
    params: ExplorationConfig


class ExplorationController:
    """Own the displayed graph, its engine and the exploration state machine."""

    def __init__(
        self,
        source: GraphSource,
        config: AppConfig,
        *,
        view: Optional[Union[GraphVariant, str]] = None,
        render_loop: Optional[RenderLoop] = None,
        on_graph_changed: Optional[GraphChangedCallback] = None,
        open_url: Callable[[str], object] = webbrowser.open_new_tab,
        viewport_width: Optional[float] = None,
        touch: bool = False,
    ) -> None:
        self._source = source
        self._config = config
        self._view = GraphVariant(view or config.exploration.view)
        self._render_loop = render_loop
        self._on_graph_changed = on_graph_changed
        self._open_url = open_url
        self._constrained = is_constrained_viewport(
            config.viewport.width if viewport_width is None else viewport_width,
            touch=touch,
            config=config.interaction,
        )
        self._state = ExplorationState.IDLE
        self._latest_sequence = 0
        self._graph: Optional[Graph] = None
        self._engine: Optional[ForceSimulationEngine] = None
        self._interaction: Optional[InteractionController] = None
        self._active_keyword: Optional[str] = None
        self._error: Optional[str] = None
        self._keywords: List[KeywordRankItem] = []
        self._pending: List[asyncio.Task] = []

    @property
    def state(self) -> ExplorationState:
        return self._state

    @property
    def view(self) -> GraphVariant:
        return self._view

    @property
    def graph(self) -> Optional[Graph]:
        return self._graph

    @property
    def engine(self) -> Optional[ForceSimulationEngine]:
        return self._engine

    @property
    def interaction(self) -> Optional[InteractionController]:
        return self._interaction

    @property
    def active_keyword(self) -> Optional[str]:
        return self._active_keyword

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def keywords(self) -> List[KeywordRankItem]:
        return list(self._keywords)

    @property
    def latest_sequence(self) -> int:
        return self._latest_sequence

    @property
    def status_text(self) -> str:
        """Short status line shown above the graph."""

        if self._state is ExplorationState.LOADING:
            return "loading"
        if self._state is ExplorationState.FAILED:
            return self._error or ""
        if self._state is ExplorationState.LOADED and self._graph is not None and not self._graph.has_connections:
            return "no connections"
        return ""

    def set_view(self, view: Union[GraphVariant, str]) -> None:
        """Switch between the full and similarity endpoints for later explorations."""

        self._view = GraphVariant(view)

    async def mount(self) -> ExplorationOutcome:
        """Load the ranked keyword list and explore the top keyword.

        If an exploration was issued while the keyword list was in flight,
        the list is still stored but neither a failure nor the automatic
        exploration may touch the display.

        Returns:
            ExplorationOutcome: Result of the automatic exploration, ``FAILED``
            when the keyword list could not be fetched, ``SUPERSEDED`` when
            the user explored first, or ``IGNORED`` when the list is empty.
        """

        sequence = self._latest_sequence
        try:
            ranking = await self._source.fetch_keywords(self._config.api.keyword_limit)
        except (TransportError, ConstructionError) as exc:
            if sequence != self._latest_sequence:
                LOGGER.debug("Dropping keyword list failure after exploration", extra={"tag": exc.tag})
                return ExplorationOutcome.SUPERSEDED
            LOGGER.warning("Keyword list unavailable", extra={"tag": exc.tag})
            self._fail(exc.tag)
            return ExplorationOutcome.FAILED
        self._keywords = list(ranking.keywords)
        LOGGER.info("Loaded keyword ranking", extra={"count": len(self._keywords), "total": ranking.total})
        if sequence != self._latest_sequence:
            LOGGER.debug(
                "Skipping automatic exploration",
                extra={"active_keyword": self._active_keyword, "latest": self._latest_sequence},
            )
            return ExplorationOutcome.SUPERSEDED
        if not self._keywords:
            return ExplorationOutcome.IGNORED
        return await self.explore(self._keywords[0].keyword)

    async def explore(self, keyword: str) -> ExplorationOutcome:
        """Fetch and display the graph for ``keyword``.

        Args:
            keyword: Keyword to centre the exploration on; surrounding
                whitespace is trimmed and blank input is ignored.

        Returns:
            ExplorationOutcome: What happened to this particular request.
        """

        keyword = keyword.strip()
        if not keyword:
            return ExplorationOutcome.IGNORED
        request = self._issue(keyword)
        try:
            payload = await self._fetch(request)
            self._check_current(request)
            graph = build_graph(
                payload,
                variant=request.variant,
                style=self._config.graph,
                keyword=request.keyword,
            )
        except SupersededResponse as exc:
            LOGGER.debug(
                "Dropping superseded exploration response",
                extra={"keyword": request.keyword, "sequence": exc.sequence_number, "latest": exc.latest},
            )
            return ExplorationOutcome.SUPERSEDED
        except (TransportError, ConstructionError) as exc:
            if request.sequence_number != self._latest_sequence:
                LOGGER.debug(
                    "Dropping failure of superseded exploration",
                    extra={"keyword": request.keyword, "tag": exc.tag},
                )
                return ExplorationOutcome.SUPERSEDED
            LOGGER.warning("Exploration failed", extra={"keyword": request.keyword, "tag": exc.tag})
            self._fail(exc.tag)
            return ExplorationOutcome.FAILED
        self._display(request, graph)
        return ExplorationOutcome.LOADED

    def schedule_explore(self, keyword: str) -> asyncio.Task:
        """Start :meth:`explore` on the running loop; used as the click callback."""

        task = asyncio.get_running_loop().create_task(self.explore(keyword))
        self._pending.append(task)
        task.add_done_callback(self._forget)
        return task

    async def drain(self) -> None:
        """Wait for every exploration started by :meth:`schedule_explore`."""

        while self._pending:
            await asyncio.gather(*list(self._pending))

    def _forget(self, task: asyncio.Task) -> None:
        if task in self._pending:
            self._pending.remove(task)

    def _issue(self, keyword: str) -> ExplorationRequest:
        self._latest_sequence += 1
        request = ExplorationRequest(
            sequence_number=self._latest_sequence,
            keyword=keyword,
            variant=self._view,
            params=self._config.exploration,
        )
        self._state = ExplorationState.LOADING
        self._error = None
        LOGGER.info(
            "Exploring keyword",
            extra={"keyword": keyword, "sequence": request.sequence_number, "view": request.variant.value},
        )
        return request

    async def _fetch(self, request: ExplorationRequest) -> Dict[str, Any]:
        if request.variant is GraphVariant.SIMILARITY:
            return await self._source.fetch_similarity_graph(request.keyword, request.params)
        return await self._source.fetch_graph(request.keyword, request.params)

    def _check_current(self, request: ExplorationRequest) -> None:
        if request.sequence_number != self._latest_sequence:
            raise SupersededResponse(request.sequence_number, self._latest_sequence)

    def _display(self, request: ExplorationRequest, graph: Graph) -> None:
        engine = ForceSimulationEngine(
            self._config.simulation,
            viewport=self._config.viewport,
            style=self._config.graph,
        )
        engine.start(graph)
        if self._engine is not None:
            self._engine.stop()
        self._graph = graph
        self._engine = engine
        self._interaction = InteractionController(
            engine,
            graph,
            config=self._config.interaction,
            on_explore=self.schedule_explore,
            open_url=self._open_url,
            on_wake=self._render_loop.resume if self._render_loop is not None else None,
            constrained=self._constrained,
        )
        self._active_keyword = request.keyword
        self._state = ExplorationState.LOADED
        if self._render_loop is not None:
            self._render_loop.bind(engine, graph)
        LOGGER.info(
            "Exploration loaded",
            extra={
                "keyword": request.keyword,
                "nodes": graph.node_count,
                "edges": graph.edge_count,
                "sequence": request.sequence_number,
            },
        )
        self._notify()

    def _fail(self, tag: str) -> None:
        if self._engine is not None:
            self._engine.stop()
        self._graph = None
        self._engine = None
        self._interaction = None
        self._error = tag
        self._state = ExplorationState.FAILED
        if self._render_loop is not None:
            self._render_loop.unbind()
        self._notify()

    def _notify(self) -> None:
        if self._on_graph_changed is not None:
            self._on_graph_changed(self._graph, self._engine)


__all__ = [
    "ExplorationController",
    "ExplorationOutcome",
    "ExplorationRequest",
    "ExplorationState",
    "GraphSource",
]
