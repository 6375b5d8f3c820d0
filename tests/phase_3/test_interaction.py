"""Tests for pointer interaction and viewport navigation."""
from __future__ import annotations

import json
from pathlib import Path
from typing import List

import pytest

from newsgraph.config import InteractionConfig, SimulationConfig
from newsgraph.graph.model import Graph, GraphVariant, build_graph
from newsgraph.interaction.controller import (
    ClickAction,
    InteractionController,
    is_constrained_viewport,
    tooltip_text,
)
from newsgraph.interaction.viewport import IDENTITY, ViewportTransform
from newsgraph.layout.simulation import ForceSimulationEngine

FIXTURE_PATH = Path(__file__).resolve().parents[1] / "fixtures" / "golden" / "ai_graph.json"

SIMILARITY_PAYLOAD = {
    "keyword_nodes": [
        {"id": "X", "keyword": "X", "doc_frequency": 4, "bookmark_frequency": 2, "sentiment_score": 0.1, "is_root": True},
        {
            "id": "Y",
            "keyword": "Y",
            "doc_frequency": 2,
            "bookmark_frequency": 1,
            "sentiment_score": 0.0,
            "similarity_score": 0.714,
        },
    ],
    "article_nodes": [],
    "edges": [{"source": "X", "target": "Y", "type": "similarity", "weight": 0.714}],
}


class _Recorder:
    def __init__(self) -> None:
        self.explored: List[str] = []
        self.opened: List[str] = []
        self.wakes = 0

    def explore(self, keyword: str) -> None:
        self.explored.append(keyword)

    def open(self, url: str) -> None:
        self.opened.append(url)

    def wake(self) -> None:
        self.wakes += 1


@pytest.fixture()
def ai_graph() -> Graph:
    with FIXTURE_PATH.open("r", encoding="utf-8") as handle:
        return build_graph(json.load(handle), keyword="AI")


@pytest.fixture()
def recorder() -> _Recorder:
    return _Recorder()


def _controller(graph: Graph, recorder: _Recorder, *, constrained: bool = False):
    engine = ForceSimulationEngine()
    engine.start(graph)
    controller = InteractionController(
        engine,
        graph,
        on_explore=recorder.explore,
        open_url=recorder.open,
        on_wake=recorder.wake,
        constrained=constrained,
    )
    return engine, controller


def test_zoom_is_clamped(ai_graph: Graph, recorder: _Recorder) -> None:
    _, controller = _controller(ai_graph, recorder)
    assert controller.zoom(100.0, (10.0, 10.0)).k == 4.0
    assert controller.zoom(1e-6, (10.0, 10.0)).k == 0.2


def test_zoom_keeps_anchor_fixed() -> None:
    transform = ViewportTransform(x=30.0, y=-15.0, k=1.5)
    anchor = (200.0, 120.0)
    zoomed = transform.scale_to(3.0, anchor, scale_min=0.2, scale_max=4.0)
    scene_point = transform.invert(anchor)
    assert zoomed.apply(scene_point) == pytest.approx(anchor)


def test_zoom_and_pan_leave_simulation_untouched(ai_graph: Graph, recorder: _Recorder) -> None:
    engine, controller = _controller(ai_graph, recorder)
    before = engine.positions()
    controller.zoom(2.0, (100.0, 100.0))
    controller.pan(40.0, -25.0)
    controller.wheel(-3, (0.0, 0.0))
    assert engine.positions() == before
    assert controller.transform != IDENTITY


def test_constrained_viewport_disables_navigation(ai_graph: Graph, recorder: _Recorder) -> None:
    _, controller = _controller(ai_graph, recorder, constrained=True)
    assert not controller.zoom_enabled
    assert controller.zoom(2.0, (0.0, 0.0)) == IDENTITY
    assert controller.pan(10.0, 10.0) == IDENTITY


@pytest.mark.parametrize(
    ("width", "touch", "expected"),
    [(500.0, False, True), (900.0, True, True), (900.0, False, False), (640.0, False, False)],
)
def test_is_constrained_viewport(width: float, touch: bool, expected: bool) -> None:
    assert is_constrained_viewport(width, touch=touch, config=InteractionConfig()) is expected


def test_click_keyword_explores_label(ai_graph: Graph, recorder: _Recorder) -> None:
    _, controller = _controller(ai_graph, recorder)
    assert controller.click("kw:ml") is ClickAction.EXPLORE
    assert recorder.explored == ["machine learning"]
    assert recorder.opened == []


def test_click_article_opens_url(ai_graph: Graph, recorder: _Recorder) -> None:
    _, controller = _controller(ai_graph, recorder)
    assert controller.click("art:102") is ClickAction.OPEN_URL
    assert recorder.opened == ["https://news.example.com/102"]
    assert recorder.explored == []


def test_similarity_root_click_is_inert(recorder: _Recorder) -> None:
    graph = build_graph(SIMILARITY_PAYLOAD, variant=GraphVariant.SIMILARITY)
    _, controller = _controller(graph, recorder)
    assert controller.click("X") is ClickAction.INERT
    assert controller.click("Y") is ClickAction.EXPLORE
    assert recorder.explored == ["Y"]


def test_hover_article_shows_full_title(ai_graph: Graph, recorder: _Recorder) -> None:
    engine, controller = _controller(ai_graph, recorder)
    controller.pan(5.0, 7.0)
    tooltip = controller.hover("art:101")
    assert tooltip.text == "How large language models are reshaping search"
    x, y = engine.position("art:101")
    assert tooltip.anchor == (x + 5.0, y + 7.0)
    controller.hover_end()
    assert controller.tooltip is None


def test_similarity_tooltip_includes_percentage() -> None:
    graph = build_graph(SIMILARITY_PAYLOAD, variant=GraphVariant.SIMILARITY)
    assert tooltip_text(graph.node("Y"), graph.variant) == "Y (similarity 71%)"
    assert tooltip_text(graph.node("X"), graph.variant) == "X"


def test_drag_pins_and_heats_simulation(ai_graph: Graph, recorder: _Recorder) -> None:
    engine, controller = _controller(ai_graph, recorder)
    while engine.running:
        engine.tick()
    controller.zoom(2.0, (0.0, 0.0))

    controller.drag_start("kw:llm")
    assert engine.running
    assert engine.alpha_target == SimulationConfig().drag_alpha_target
    assert recorder.wakes == 1
    assert controller.dragging == frozenset({"kw:llm"})

    controller.drag_move("kw:llm", (400.0, 300.0))
    engine.tick()
    assert engine.position("kw:llm") == (200.0, 150.0)

    controller.drag_end("kw:llm")
    assert not engine.node_state("kw:llm").pinned
    assert engine.alpha_target == 0.0
    assert controller.dragging == frozenset()


def test_drag_move_without_start_is_ignored(ai_graph: Graph, recorder: _Recorder) -> None:
    engine, controller = _controller(ai_graph, recorder)
    before = engine.position("kw:ai")
    controller.drag_move("kw:ai", (1.0, 1.0))
    assert engine.position("kw:ai") == before
    assert not engine.node_state("kw:ai").pinned


def test_node_at_hits_rendered_disc(ai_graph: Graph, recorder: _Recorder) -> None:
    engine, controller = _controller(ai_graph, recorder)
    while engine.running:
        engine.tick()
    controller.pan(12.0, -8.0)
    target = controller.transform.apply(engine.position("art:103"))
    assert controller.node_at(target) == "art:103"
    assert controller.node_at((-5000.0, -5000.0)) is None
