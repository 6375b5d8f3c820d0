"""Damped force-directed layout for keyword/article graphs.

The engine owns one ``SimulationState`` per node and advances all of them
with :meth:`ForceSimulationEngine.tick`. A tick applies, in order, link
springs, many-body repulsion, centering and collision relaxation to node
velocities, integrates positions, and finally decays the energy ``alpha``.
Nothing here depends on a renderer; callers read :meth:`positions` after
each tick.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np

from newsgraph.config import GraphStyleConfig, SimulationConfig, ViewportConfig
from newsgraph.graph.model import Graph, node_radius
from newsgraph.layout.spatial import RepulsionSolver, jiggle, neighbor_pairs, select_repulsion

LOGGER = logging.getLogger(__name__)

_INITIAL_RADIUS = 10.0
_INITIAL_ANGLE = math.pi * (3.0 - math.sqrt(5.0))


class EngineState(str, Enum):
    """Lifecycle of a simulation run."""

    IDLE = "idle"
    RUNNING = "running"


@dataclass
class SimulationState:
    """Mutable kinematic record for one node."""

    x: float
    y: float
    vx: float = 0.0
    vy: float = 0.0
    pinned_x: Optional[float] = None
    pinned_y: Optional[float] = None

    @property
    def pinned(self) -> bool:
        return self.pinned_x is not None and self.pinned_y is not None


@dataclass(frozen=True)
class _Link:
    source: int
    target: int
    distance: float
    strength: float
    bias: float


class ForceSimulationEngine:
    """Iterative physics solver assigning 2-D positions to graph nodes."""

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        *,
        viewport: Optional[ViewportConfig] = None,
        style: Optional[GraphStyleConfig] = None,
        repulsion: Optional[RepulsionSolver] = None,
    ) -> None:
        self._config = config or SimulationConfig()
        self._viewport = viewport or ViewportConfig()
        self._style = style or GraphStyleConfig()
        self._repulsion_override = repulsion
        self._repulsion: Optional[RepulsionSolver] = repulsion
        self._state = EngineState.IDLE
        self._graph: Optional[Graph] = None
        self._ids: List[str] = []
        self._index: Dict[str, int] = {}
        self._states: List[SimulationState] = []
        self._radii: List[float] = []
        self._links: List[_Link] = []
        self._alpha = 0.0
        self._alpha_target = 0.0
        self._converged = False
        self._tick_count = 0

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is EngineState.RUNNING

    @property
    def alpha(self) -> float:
        return self._alpha

    @property
    def alpha_target(self) -> float:
        return self._alpha_target

    @property
    def converged(self) -> bool:
        return self._converged

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def graph(self) -> Optional[Graph]:
        return self._graph

    @property
    def repulsion(self) -> Optional[RepulsionSolver]:
        return self._repulsion

    def start(self, graph: Graph) -> None:
        """Seed fresh state for every node of ``graph`` and begin running.

        Any state from a previous graph is discarded.
        """

        self._graph = graph
        self._ids = [node.id for node in graph.nodes]
        self._index = {node_id: index for index, node_id in enumerate(self._ids)}
        self._states = self._seed_states(len(self._ids))
        self._radii = [node_radius(node, self._style, graph.variant) for node in graph.nodes]
        self._links = self._build_links(graph)
        if self._repulsion_override is None:
            self._repulsion = select_repulsion(
                len(self._ids),
                exact_max_nodes=self._config.exact_repulsion_max_nodes,
                theta=self._config.barnes_hut_theta,
            )
        self._alpha = 1.0
        self._alpha_target = 0.0
        self._converged = False
        self._tick_count = 0
        self._state = EngineState.RUNNING
        LOGGER.debug(
            "Simulation started",
            extra={"nodes": len(self._ids), "links": len(self._links), "solver": type(self._repulsion).__name__},
        )

    def stop(self) -> None:
        """Stop ticking while keeping the current layout."""

        self._state = EngineState.IDLE

    def restart(self) -> None:
        """Resume a stopped or converged run without reseeding positions."""

        if self._graph is None:
            return
        self._converged = False
        self._state = EngineState.RUNNING

    def set_alpha_target(self, target: float) -> None:
        self._alpha_target = max(0.0, min(1.0, target))

    def raise_energy(self) -> None:
        """Hold alpha near the drag target so neighbours keep adjusting."""

        self.set_alpha_target(self._config.drag_alpha_target)
        self.restart()

    def release_energy(self) -> None:
        self.set_alpha_target(0.0)

    def pin(self, node_id: str, x: float, y: float) -> None:
        """Hold ``node_id`` at ``(x, y)`` until :meth:`unpin` is called."""

        state = self._states[self._index[node_id]]
        if not (math.isfinite(x) and math.isfinite(y)):
            LOGGER.warning("Ignoring non-finite pin position", extra={"node_id": node_id})
            return
        state.pinned_x = x
        state.pinned_y = y
        state.x = x
        state.y = y
        state.vx = 0.0
        state.vy = 0.0

    def unpin(self, node_id: str) -> None:
        state = self._states[self._index[node_id]]
        state.pinned_x = None
        state.pinned_y = None

    def node_state(self, node_id: str) -> SimulationState:
        return self._states[self._index[node_id]]

    def position(self, node_id: str) -> Tuple[float, float]:
        state = self._states[self._index[node_id]]
        return (state.x, state.y)

    def positions(self) -> Dict[str, Tuple[float, float]]:
        return {node_id: (state.x, state.y) for node_id, state in zip(self._ids, self._states)}

    def radius(self, node_id: str) -> float:
        return self._radii[self._index[node_id]]

    def tick(self) -> None:
        """Advance the simulation by one step.

        Coincident bodies and zero-length links are separated with a
        deterministic jiggle, so the step never divides by zero.
        """

        if not self._states:
            self._alpha = self._config.alpha_floor
            self._finish()
            return
        self._sanitize()
        alpha = self._alpha
        self._apply_links(alpha)
        self._apply_repulsion(alpha)
        self._apply_centering()
        for _ in range(self._config.collision_iterations):
            self._apply_collisions()
        max_speed = self._integrate()
        self._sanitize()
        self._tick_count += 1
        self._decay_alpha(max_speed)

    def _seed_states(self, count: int) -> List[SimulationState]:
        cx, cy = self._viewport.center
        states: List[SimulationState] = []
        for index in range(count):
            radius = _INITIAL_RADIUS * math.sqrt(0.5 + index)
            angle = index * _INITIAL_ANGLE
            states.append(SimulationState(x=cx + radius * math.cos(angle), y=cy + radius * math.sin(angle)))
        return states

    def _build_links(self, graph: Graph) -> List[_Link]:
        degree = [0] * len(self._ids)
        resolved: List[Tuple[int, int, float]] = []
        for edge in graph.edges:
            source = self._index[edge.source_id]
            target = self._index[edge.target_id]
            if source == target:
                continue
            degree[source] += 1
            degree[target] += 1
            resolved.append((source, target, self._config.link_distances[edge.type.value]))
        links: List[_Link] = []
        for source, target, distance in resolved:
            links.append(
                _Link(
                    source=source,
                    target=target,
                    distance=distance,
                    strength=1.0 / min(degree[source], degree[target]),
                    bias=degree[source] / (degree[source] + degree[target]),
                )
            )
        return links

    def _apply_links(self, alpha: float) -> None:
        for position, link in enumerate(self._links):
            source = self._states[link.source]
            target = self._states[link.target]
            x = target.x + target.vx - source.x - source.vx or jiggle(2 * position)
            y = target.y + target.vy - source.y - source.vy or jiggle(2 * position + 1)
            length = math.sqrt(x * x + y * y)
            factor = (length - link.distance) / length * alpha * link.strength
            x *= factor
            y *= factor
            target.vx -= x * link.bias
            target.vy -= y * link.bias
            source.vx += x * (1.0 - link.bias)
            source.vy += y * (1.0 - link.bias)

    def _apply_repulsion(self, alpha: float) -> None:
        if len(self._states) < 2 or self._repulsion is None:
            return
        xs = np.fromiter((state.x for state in self._states), dtype=float, count=len(self._states))
        ys = np.fromiter((state.y for state in self._states), dtype=float, count=len(self._states))
        dvx, dvy = self._repulsion.accumulate(xs, ys, self._config.charge_strength * alpha)
        for state, delta_x, delta_y in zip(self._states, dvx.tolist(), dvy.tolist()):
            state.vx += delta_x
            state.vy += delta_y

    def _apply_centering(self) -> None:
        cx, cy = self._viewport.center
        count = len(self._states)
        shift_x = sum(state.x for state in self._states) / count - cx
        shift_y = sum(state.y for state in self._states) / count - cy
        for state in self._states:
            state.x -= shift_x
            state.y -= shift_y

    def _apply_collisions(self) -> None:
        if len(self._states) < 2:
            return
        padding = self._config.collision_padding
        radii = [radius + padding for radius in self._radii]
        xs = np.fromiter((state.x + state.vx for state in self._states), dtype=float, count=len(self._states))
        ys = np.fromiter((state.y + state.vy for state in self._states), dtype=float, count=len(self._states))
        count = len(self._states)
        for first, second in neighbor_pairs(xs, ys, 2.0 * max(radii)):
            a = self._states[first]
            b = self._states[second]
            x = (a.x + a.vx) - (b.x + b.vx)
            y = (a.y + a.vy) - (b.y + b.vy)
            reach = radii[first] + radii[second]
            distance2 = x * x + y * y
            if distance2 >= reach * reach:
                continue
            if x == 0.0:
                x = jiggle(first * count + second)
            if y == 0.0:
                y = jiggle(second * count + first)
            distance = math.sqrt(x * x + y * y)
            factor = (reach - distance) / distance
            x *= factor
            y *= factor
            # The larger disc moves less.
            area_a = radii[first] * radii[first]
            area_b = radii[second] * radii[second]
            share = area_b / (area_a + area_b)
            a.vx += x * share
            a.vy += y * share
            b.vx -= x * (1.0 - share)
            b.vy -= y * (1.0 - share)

    def _integrate(self) -> float:
        damping = self._config.damping
        max_speed = 0.0
        for state in self._states:
            if state.pinned:
                state.x = state.pinned_x  # type: ignore[assignment]
                state.y = state.pinned_y  # type: ignore[assignment]
                state.vx = 0.0
                state.vy = 0.0
                continue
            state.x += state.vx * damping
            state.y += state.vy * damping
            state.vx *= damping
            state.vy *= damping
            max_speed = max(max_speed, math.hypot(state.vx, state.vy))
        return max_speed

    def _sanitize(self) -> None:
        cx, cy = self._viewport.center
        for index, state in enumerate(self._states):
            if all(math.isfinite(value) for value in (state.x, state.y, state.vx, state.vy)):
                continue
            LOGGER.warning("Resetting node with non-finite state", extra={"node_id": self._ids[index]})
            if state.pinned:
                state.x, state.y = state.pinned_x, state.pinned_y  # type: ignore[assignment]
            else:
                state.x = cx + jiggle(index) * 1e6
                state.y = cy + jiggle(index + 1) * 1e6
            state.vx = 0.0
            state.vy = 0.0

    def _decay_alpha(self, max_speed: float) -> None:
        config = self._config
        self._alpha += (self._alpha_target - self._alpha) * config.alpha_decay
        self._alpha = max(self._alpha, config.alpha_floor)
        if self._alpha_target > 0.0:
            return
        if max_speed <= config.rest_speed:
            self._alpha = min(self._alpha, config.alpha_floor)
        if self._alpha < config.alpha_min:
            self._finish()

    def _finish(self) -> None:
        if not self._converged:
            LOGGER.debug("Simulation converged", extra={"ticks": self._tick_count})
        self._converged = True
        self._state = EngineState.IDLE


__all__ = ["EngineState", "ForceSimulationEngine", "SimulationState"]
