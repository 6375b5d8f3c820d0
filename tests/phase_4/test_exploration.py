"""Tests for the exploration state machine and response supersession."""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

from newsgraph.config import APIConfig, AppConfig, ExplorationConfig
from newsgraph.contracts import KeywordRankResponse
from newsgraph.errors import TransportError
from newsgraph.exploration.controller import ExplorationController, ExplorationOutcome, ExplorationState
from newsgraph.graph.model import GraphVariant
from newsgraph.interaction.controller import ClickAction
from newsgraph.render.loop import RecordingScene, RenderLoop

FIXTURE_PATH = Path(__file__).resolve().parents[1] / "fixtures" / "golden" / "ai_graph.json"


def _single_keyword_payload(keyword: str) -> Dict[str, Any]:
    return {
        "keyword_nodes": [
            {"id": f"kw:{keyword}", "keyword": keyword, "doc_frequency": 2, "bookmark_frequency": 1, "sentiment_score": 0}
        ],
        "article_nodes": [],
        "edges": [],
    }


class _FakeSource:
    """In-memory stand-in for the bookmarks API client."""

    def __init__(
        self,
        graphs: Optional[Dict[str, Any]] = None,
        *,
        keywords: Optional[List[str]] = None,
        keyword_error: Optional[TransportError] = None,
    ) -> None:
        self.graphs = graphs or {}
        self.keywords = keywords or []
        self.keyword_error = keyword_error
        self.gates: Dict[str, asyncio.Event] = {}
        self.keywords_gate: Optional[asyncio.Event] = None
        self.calls: List[Tuple[str, str]] = []
        self.explorations: List[ExplorationConfig] = []

    async def fetch_keywords(self, limit: Optional[int] = None) -> KeywordRankResponse:
        self.calls.append(("keywords", str(limit)))
        if self.keywords_gate is not None:
            await self.keywords_gate.wait()
        if self.keyword_error is not None:
            raise self.keyword_error
        return KeywordRankResponse.model_validate(
            {
                "total": len(self.keywords),
                "keywords": [{"keyword": keyword, "frequency": 10 - index} for index, keyword in enumerate(self.keywords)],
            }
        )

    async def _respond(self, keyword: str) -> Dict[str, Any]:
        gate = self.gates.get(keyword)
        if gate is not None:
            await gate.wait()
        result = self.graphs[keyword]
        if isinstance(result, Exception):
            raise result
        return result

    async def fetch_graph(self, keyword: str, exploration: ExplorationConfig) -> Dict[str, Any]:
        self.calls.append(("graph", keyword))
        self.explorations.append(exploration)
        return await self._respond(keyword)

    async def fetch_similarity_graph(self, keyword: str, exploration: ExplorationConfig) -> Dict[str, Any]:
        self.calls.append(("similarity", keyword))
        self.explorations.append(exploration)
        return await self._respond(keyword)


@pytest.fixture()
def config() -> AppConfig:
    return AppConfig(api=APIConfig(base_url="http://api.test", timeout_seconds=5))


@pytest.fixture()
def ai_payload() -> dict:
    with FIXTURE_PATH.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def test_explore_loads_graph_and_engine(config: AppConfig, ai_payload: dict) -> None:
    source = _FakeSource({"AI": ai_payload})
    notifications = []
    controller = ExplorationController(
        source,
        config,
        on_graph_changed=lambda graph, engine: notifications.append((graph, engine)),
    )

    outcome = asyncio.run(controller.explore("  AI "))

    assert outcome is ExplorationOutcome.LOADED
    assert source.calls == [("graph", "AI")]
    assert controller.state is ExplorationState.LOADED
    assert controller.active_keyword == "AI"
    assert controller.graph is not None and controller.graph.node_count == 9
    assert controller.engine is not None and controller.engine.running
    assert controller.status_text == ""
    assert notifications == [(controller.graph, controller.engine)]


def test_blank_keyword_is_ignored(config: AppConfig) -> None:
    source = _FakeSource()
    controller = ExplorationController(source, config)
    assert asyncio.run(controller.explore("   ")) is ExplorationOutcome.IGNORED
    assert source.calls == []
    assert controller.state is ExplorationState.IDLE
    assert controller.latest_sequence == 0


def test_late_response_never_overwrites_newer_one(config: AppConfig) -> None:
    source = _FakeSource({"A": _single_keyword_payload("A"), "B": _single_keyword_payload("B")})
    controller = ExplorationController(source, config)

    async def _run():
        source.gates["A"] = asyncio.Event()
        task_a = asyncio.create_task(controller.explore("A"))
        await asyncio.sleep(0)
        assert controller.state is ExplorationState.LOADING
        assert controller.status_text == "loading"
        outcome_b = await controller.explore("B")
        source.gates["A"].set()
        outcome_a = await task_a
        return outcome_a, outcome_b

    outcome_a, outcome_b = asyncio.run(_run())

    assert outcome_b is ExplorationOutcome.LOADED
    assert outcome_a is ExplorationOutcome.SUPERSEDED
    assert controller.active_keyword == "B"
    assert controller.graph is not None
    assert [node.id for node in controller.graph.nodes] == ["kw:B"]
    assert controller.latest_sequence == 2


def test_late_failure_of_superseded_request_is_dropped(config: AppConfig) -> None:
    source = _FakeSource({"A": TransportError("graph_error_500", status_code=500), "B": _single_keyword_payload("B")})
    controller = ExplorationController(source, config)

    async def _run():
        source.gates["A"] = asyncio.Event()
        task_a = asyncio.create_task(controller.explore("A"))
        await asyncio.sleep(0)
        await controller.explore("B")
        source.gates["A"].set()
        return await task_a

    assert asyncio.run(_run()) is ExplorationOutcome.SUPERSEDED
    assert controller.state is ExplorationState.LOADED
    assert controller.error is None


def test_transport_failure_clears_graph(config: AppConfig, ai_payload: dict) -> None:
    source = _FakeSource({"AI": ai_payload, "down": TransportError("graph_error:backend_down", status_code=502)})
    scene = RecordingScene()
    render_loop = RenderLoop(scene)
    controller = ExplorationController(source, config, render_loop=render_loop)

    async def _run():
        await controller.explore("AI")
        render_loop.frame()
        return await controller.explore("down")

    assert asyncio.run(_run()) is ExplorationOutcome.FAILED
    assert controller.state is ExplorationState.FAILED
    assert controller.graph is None
    assert controller.engine is None
    assert controller.interaction is None
    assert controller.status_text == "graph_error:backend_down"
    assert scene.last_frame is None
    assert scene.cleared == 1
    assert render_loop.suspended


def test_malformed_payload_fails_with_construction_tag(config: AppConfig) -> None:
    source = _FakeSource({"bad": {"keyword_nodes": [{"id": "k"}], "article_nodes": [], "edges": []}})
    controller = ExplorationController(source, config)
    assert asyncio.run(controller.explore("bad")) is ExplorationOutcome.FAILED
    assert controller.status_text == "graph_construction_error"


def test_mount_explores_top_keyword(config: AppConfig, ai_payload: dict) -> None:
    source = _FakeSource({"AI": ai_payload}, keywords=["AI", "economy"])
    controller = ExplorationController(source, config)

    assert asyncio.run(controller.mount()) is ExplorationOutcome.LOADED
    assert source.calls == [("keywords", "30"), ("graph", "AI")]
    assert [item.keyword for item in controller.keywords] == ["AI", "economy"]
    assert controller.active_keyword == "AI"


def test_mount_with_empty_ranking_stays_idle(config: AppConfig) -> None:
    controller = ExplorationController(_FakeSource(), config)
    assert asyncio.run(controller.mount()) is ExplorationOutcome.IGNORED
    assert controller.state is ExplorationState.IDLE


def test_mount_failure_reports_tag(config: AppConfig) -> None:
    source = _FakeSource(keyword_error=TransportError("keywords_error_network"))
    controller = ExplorationController(source, config)
    assert asyncio.run(controller.mount()) is ExplorationOutcome.FAILED
    assert controller.state is ExplorationState.FAILED
    assert controller.status_text == "keywords_error_network"


def _mount_after_user_explores(controller: ExplorationController, source: _FakeSource, keyword: str):
    async def _run():
        source.keywords_gate = asyncio.Event()
        mount_task = asyncio.create_task(controller.mount())
        await asyncio.sleep(0)
        user_outcome = await controller.explore(keyword)
        source.keywords_gate.set()
        return user_outcome, await mount_task

    return asyncio.run(_run())


def test_late_keyword_list_failure_keeps_user_exploration(config: AppConfig) -> None:
    source = _FakeSource(
        {"USER": _single_keyword_payload("USER")},
        keyword_error=TransportError("keywords_error_500", status_code=500),
    )
    controller = ExplorationController(source, config)

    user_outcome, mount_outcome = _mount_after_user_explores(controller, source, "USER")

    assert user_outcome is ExplorationOutcome.LOADED
    assert mount_outcome is ExplorationOutcome.SUPERSEDED
    assert controller.graph is not None
    assert controller.state is ExplorationState.LOADED
    assert controller.active_keyword == "USER"
    assert controller.error is None


def test_late_keyword_list_does_not_override_user_choice(config: AppConfig) -> None:
    source = _FakeSource(
        {"USER": _single_keyword_payload("USER"), "TOP": _single_keyword_payload("TOP")},
        keywords=["TOP", "USER"],
    )
    controller = ExplorationController(source, config)

    _, mount_outcome = _mount_after_user_explores(controller, source, "USER")

    assert mount_outcome is ExplorationOutcome.SUPERSEDED
    assert controller.active_keyword == "USER"
    assert [item.keyword for item in controller.keywords] == ["TOP", "USER"]
    assert ("graph", "TOP") not in source.calls
    assert controller.latest_sequence == 1


def test_request_parameters_reach_the_source(config: AppConfig) -> None:
    tuned = config.model_copy(
        update={"exploration": ExplorationConfig(max_keyword_nodes=7, similarity_threshold=0.6)}
    )
    source = _FakeSource({"A": _single_keyword_payload("A")})
    controller = ExplorationController(source, tuned)

    asyncio.run(controller.explore("A"))
    controller.set_view(GraphVariant.SIMILARITY)
    asyncio.run(controller.explore("A"))

    assert source.explorations == [tuned.exploration, tuned.exploration]
    assert source.explorations[0].max_keyword_nodes == 7
    assert source.explorations[1].similarity_threshold == 0.6


@pytest.mark.parametrize(
    ("viewport_width", "touch", "zoom_enabled"),
    [(None, False, True), (500, False, False), (1024, True, False)],
)
def test_viewport_size_and_touch_gate_navigation(
    config: AppConfig, viewport_width: Optional[float], touch: bool, zoom_enabled: bool
) -> None:
    source = _FakeSource({"A": _single_keyword_payload("A")})
    controller = ExplorationController(source, config, viewport_width=viewport_width, touch=touch)

    asyncio.run(controller.explore("A"))

    assert controller.interaction is not None
    assert controller.interaction.zoom_enabled is zoom_enabled


def test_zero_neighbors_shows_no_connections(config: AppConfig) -> None:
    source = _FakeSource({"lonely": _single_keyword_payload("lonely")})
    controller = ExplorationController(source, config)
    asyncio.run(controller.explore("lonely"))

    assert controller.status_text == "no connections"
    engine = controller.engine
    assert engine is not None
    engine.tick()
    assert engine.converged


def test_similarity_view_uses_similarity_endpoint(config: AppConfig) -> None:
    payload = {
        "keyword_nodes": [
            {"id": "X", "keyword": "X", "doc_frequency": 3, "bookmark_frequency": 0, "sentiment_score": 0, "is_root": True},
            {"id": "Y", "keyword": "Y", "doc_frequency": 1, "bookmark_frequency": 0, "sentiment_score": 0, "similarity_score": 0.5},
        ],
        "article_nodes": [],
        "edges": [{"source": "X", "target": "Y", "type": "similarity", "weight": 0.5}],
    }
    source = _FakeSource({"X": payload})
    controller = ExplorationController(source, config, view="similarity")

    asyncio.run(controller.explore("X"))

    assert source.calls == [("similarity", "X")]
    assert controller.graph is not None and controller.graph.variant is GraphVariant.SIMILARITY
    assert controller.interaction is not None
    assert controller.interaction.click("X") is ClickAction.INERT


def test_keyword_click_triggers_new_exploration(config: AppConfig, ai_payload: dict) -> None:
    source = _FakeSource({"AI": ai_payload, "LLM": _single_keyword_payload("LLM")})
    controller = ExplorationController(source, config, open_url=lambda url: None)

    async def _run():
        await controller.explore("AI")
        assert controller.interaction is not None
        assert controller.interaction.click("kw:llm") is ClickAction.EXPLORE
        await controller.drain()

    asyncio.run(_run())
    assert controller.active_keyword == "LLM"
    assert source.calls == [("graph", "AI"), ("graph", "LLM")]


def test_view_switch_applies_to_next_exploration(config: AppConfig, ai_payload: dict) -> None:
    source = _FakeSource({"AI": ai_payload})
    controller = ExplorationController(source, config)
    controller.set_view(GraphVariant.SIMILARITY)
    asyncio.run(controller.explore("AI"))
    assert source.calls == [("similarity", "AI")]
