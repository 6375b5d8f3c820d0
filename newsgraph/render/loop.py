"""Frame loop that advances the simulation and pushes positions to a scene."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from typing_extensions import Protocol

from newsgraph.graph.model import Graph
from newsgraph.layout.simulation import ForceSimulationEngine

LOGGER = logging.getLogger(__name__)

Segment = Tuple[float, float, float, float]


@dataclass(frozen=True)
class Frame:
    """Node centres and edge endpoints for one rendered frame."""

    index: int
    nodes: Dict[str, Tuple[float, float]]
    edges: Dict[str, Segment]


class SceneWriter(Protocol):
    """Visual layer receiving positions each frame."""

    def write_frame(self, frame: Frame) -> None:
        """Replace the drawn node and edge positions with ``frame``."""

    def clear(self) -> None:
        """Remove everything from the scene."""


@dataclass
class RecordingScene:
    """In-memory scene keeping the most recent frame."""

    last_frame: Optional[Frame] = None
    frames_written: int = 0
    cleared: int = 0

    def write_frame(self, frame: Frame) -> None:
        self.last_frame = frame
        self.frames_written += 1

    def clear(self) -> None:
        self.last_frame = None
        self.cleared += 1


class RenderLoop:
    """Tick the bound engine once per frame until it converges.

    The loop suspends itself once the engine stops running and is woken by
    :meth:`resume` (drag) or :meth:`bind` (graph rebuild).
    """

    def __init__(self, scene: SceneWriter) -> None:
        self._scene = scene
        self._engine: Optional[ForceSimulationEngine] = None
        self._graph: Optional[Graph] = None
        self._frame_index = 0
        self._wake = asyncio.Event()
        self._closed = False

    @property
    def suspended(self) -> bool:
        return self._engine is None or not self._engine.running

    @property
    def frame_index(self) -> int:
        return self._frame_index

    def bind(self, engine: ForceSimulationEngine, graph: Graph) -> None:
        self._engine = engine
        self._graph = graph
        self._frame_index = 0
        self.resume()

    def unbind(self) -> None:
        self._engine = None
        self._graph = None
        self._scene.clear()

    def resume(self) -> None:
        self._wake.set()

    def close(self) -> None:
        self._closed = True
        self._wake.set()

    def frame(self) -> bool:
        """Advance one tick if running, draw, and report whether to keep going."""

        if self._engine is None or self._graph is None:
            return False
        if self._engine.running:
            self._engine.tick()
        self._write()
        return self._engine.running

    def run(self, max_frames: int = 10_000) -> int:
        """Run frames synchronously until the engine converges or ``max_frames`` pass."""

        frames = 0
        while frames < max_frames and not self.suspended:
            self.frame()
            frames += 1
        return frames

    async def run_async(self, frame_interval: float = 1.0 / 60.0) -> None:
        """Drive frames on the event loop, sleeping while suspended."""

        while not self._closed:
            if self.suspended:
                self._wake.clear()
                await self._wake.wait()
                continue
            self.frame()
            await asyncio.sleep(frame_interval)
        LOGGER.debug("Render loop closed", extra={"frames": self._frame_index})

    def _write(self) -> None:
        assert self._engine is not None and self._graph is not None
        positions = self._engine.positions()
        edges: Dict[str, Segment] = {}
        for edge in self._graph.edges:
            x1, y1 = positions[edge.source_id]
            x2, y2 = positions[edge.target_id]
            edges[edge.key] = (x1, y1, x2, y2)
        self._scene.write_frame(Frame(index=self._frame_index, nodes=positions, edges=edges))
        self._frame_index += 1


__all__ = ["Frame", "RecordingScene", "RenderLoop", "SceneWriter"]
