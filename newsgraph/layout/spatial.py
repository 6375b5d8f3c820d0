"""Spatial structures backing the many-body and collision forces."""
from __future__ import annotations

import math
from typing import Dict, Iterator, List, Optional, Tuple

import numpy as np
from typing_extensions import Protocol

MAX_QUADTREE_DEPTH = 32
DEFAULT_DISTANCE_MIN2 = 1.0


def jiggle(seed: int) -> float:
    """Return a tiny non-zero offset derived deterministically from ``seed``.

    Used wherever two bodies coincide exactly and a direction is required.
    """

    bucket = (seed * 2654435761) % 1000
    return ((bucket + 1) / 1001.0 - 0.5) * 1e-6


def _soften(distance2: float, distance_min2: float) -> float:
    if distance2 < distance_min2:
        return math.sqrt(distance_min2 * distance2)
    return distance2


class RepulsionSolver(Protocol):
    """Accumulates many-body velocity deltas for a set of equally charged bodies."""

    def accumulate(self, xs: np.ndarray, ys: np.ndarray, scale: float) -> Tuple[np.ndarray, np.ndarray]:
        """Return per-body ``(dvx, dvy)`` for charge ``scale`` (strength times alpha)."""


class ExactRepulsion:
    """All-pairs repulsion; quadratic, intended for small graphs."""

    def __init__(self, *, distance_min2: float = DEFAULT_DISTANCE_MIN2) -> None:
        self._distance_min2 = distance_min2

    def accumulate(self, xs: np.ndarray, ys: np.ndarray, scale: float) -> Tuple[np.ndarray, np.ndarray]:
        count = xs.shape[0]
        if count < 2:
            return np.zeros(count), np.zeros(count)
        # dx[i, j] points from body i towards body j.
        dx = xs[np.newaxis, :] - xs[:, np.newaxis]
        dy = ys[np.newaxis, :] - ys[:, np.newaxis]
        coincident = (dx == 0.0) & (dy == 0.0)
        np.fill_diagonal(coincident, False)
        if coincident.any():
            rows, cols = np.nonzero(coincident)
            for row, col in zip(rows.tolist(), cols.tolist()):
                dx[row, col] = jiggle(row * count + col)
                dy[row, col] = jiggle(col * count + row)
        distance2 = dx * dx + dy * dy
        distance2 = np.where(
            distance2 < self._distance_min2,
            np.sqrt(self._distance_min2 * distance2),
            distance2,
        )
        np.fill_diagonal(distance2, np.inf)
        weight = scale / distance2
        return (dx * weight).sum(axis=1), (dy * weight).sum(axis=1)


class _Quad:
    """Square cell of the Barnes-Hut tree."""

    __slots__ = ("x0", "y0", "size", "children", "indices", "count", "cx", "cy")

    def __init__(self, x0: float, y0: float, size: float) -> None:
        self.x0 = x0
        self.y0 = y0
        self.size = size
        self.children: Optional[List[Optional[_Quad]]] = None
        self.indices: List[int] = []
        self.count = 0
        self.cx = 0.0
        self.cy = 0.0

    def contains(self, x: float, y: float) -> bool:
        return self.x0 <= x <= self.x0 + self.size and self.y0 <= y <= self.y0 + self.size


class QuadTree:
    """Point quadtree that aggregates body count and centre of mass per cell."""

    def __init__(self, xs: np.ndarray, ys: np.ndarray) -> None:
        self._xs = xs
        self._ys = ys
        min_x, max_x = float(xs.min()), float(xs.max())
        min_y, max_y = float(ys.min()), float(ys.max())
        extent = max(max_x - min_x, max_y - min_y, 1.0)
        self.root = _Quad(min_x, min_y, extent)
        for index in range(xs.shape[0]):
            self._insert(self.root, index, 0)
        self._aggregate(self.root)

    def _insert(self, quad: _Quad, index: int, depth: int) -> None:
        if quad.children is None:
            if not quad.indices or depth >= MAX_QUADTREE_DEPTH or self._same_position(quad.indices[0], index):
                quad.indices.append(index)
                return
            existing = quad.indices
            quad.indices = []
            quad.children = [None, None, None, None]
            for other in existing:
                self._insert_child(quad, other, depth)
        self._insert_child(quad, index, depth)

    def _insert_child(self, quad: _Quad, index: int, depth: int) -> None:
        assert quad.children is not None
        half = quad.size / 2.0
        right = int(self._xs[index] >= quad.x0 + half)
        bottom = int(self._ys[index] >= quad.y0 + half)
        slot = right + 2 * bottom
        child = quad.children[slot]
        if child is None:
            child = _Quad(quad.x0 + half * right, quad.y0 + half * bottom, half)
            quad.children[slot] = child
        self._insert(child, index, depth + 1)

    def _same_position(self, first: int, second: int) -> bool:
        return self._xs[first] == self._xs[second] and self._ys[first] == self._ys[second]

    def _aggregate(self, quad: _Quad) -> None:
        if quad.children is None:
            quad.count = len(quad.indices)
            if quad.count:
                quad.cx = float(self._xs[quad.indices].mean())
                quad.cy = float(self._ys[quad.indices].mean())
            return
        total = 0
        sum_x = 0.0
        sum_y = 0.0
        for child in quad.children:
            if child is None:
                continue
            self._aggregate(child)
            total += child.count
            sum_x += child.cx * child.count
            sum_y += child.cy * child.count
        quad.count = total
        if total:
            quad.cx = sum_x / total
            quad.cy = sum_y / total


class BarnesHutRepulsion:
    """Quadtree approximation: distant cells act as a single aggregated body."""

    def __init__(self, *, theta: float = 0.9, distance_min2: float = DEFAULT_DISTANCE_MIN2) -> None:
        self._theta2 = theta * theta
        self._distance_min2 = distance_min2

    def accumulate(self, xs: np.ndarray, ys: np.ndarray, scale: float) -> Tuple[np.ndarray, np.ndarray]:
        count = xs.shape[0]
        fx = np.zeros(count)
        fy = np.zeros(count)
        if count < 2:
            return fx, fy
        tree = QuadTree(xs, ys)
        for index in range(count):
            fx[index], fy[index] = self._accumulate_one(tree.root, index, xs, ys, scale, count)
        return fx, fy

    def _accumulate_one(
        self,
        root: _Quad,
        index: int,
        xs: np.ndarray,
        ys: np.ndarray,
        scale: float,
        count: int,
    ) -> Tuple[float, float]:
        x = float(xs[index])
        y = float(ys[index])
        total_x = 0.0
        total_y = 0.0
        stack = [root]
        while stack:
            quad = stack.pop()
            if quad.count == 0:
                continue
            if quad.children is not None:
                dx = quad.cx - x
                dy = quad.cy - y
                distance2 = dx * dx + dy * dy
                far_enough = quad.size * quad.size / self._theta2 < distance2
                if far_enough and not quad.contains(x, y):
                    distance2 = _soften(distance2, self._distance_min2)
                    weight = scale * quad.count / distance2
                    total_x += dx * weight
                    total_y += dy * weight
                    continue
                stack.extend(child for child in quad.children if child is not None)
                continue
            for other in quad.indices:
                if other == index:
                    continue
                dx = float(xs[other]) - x
                dy = float(ys[other]) - y
                if dx == 0.0 and dy == 0.0:
                    dx = jiggle(index * count + other)
                    dy = jiggle(other * count + index)
                distance2 = _soften(dx * dx + dy * dy, self._distance_min2)
                weight = scale / distance2
                total_x += dx * weight
                total_y += dy * weight
        return total_x, total_y


def select_repulsion(node_count: int, *, exact_max_nodes: int, theta: float) -> RepulsionSolver:
    """Pick the exact solver for small graphs and Barnes-Hut above ``exact_max_nodes``."""

    if node_count <= exact_max_nodes:
        return ExactRepulsion()
    return BarnesHutRepulsion(theta=theta)


def neighbor_pairs(xs: np.ndarray, ys: np.ndarray, cell_size: float) -> Iterator[Tuple[int, int]]:
    """Yield each candidate pair ``(i, j)`` with ``i < j`` once from a uniform grid.

    Bodies further apart than ``cell_size`` on either axis are never paired,
    and bodies with non-finite coordinates are skipped.
    """

    if cell_size <= 0 or not math.isfinite(cell_size):
        return
    inv_cell = 1.0 / cell_size
    grid: Dict[Tuple[int, int], List[int]] = {}
    cells: List[Tuple[int, Tuple[int, int]]] = []
    for index in range(xs.shape[0]):
        x = float(xs[index])
        y = float(ys[index])
        if not (math.isfinite(x) and math.isfinite(y)):
            continue
        cell = (int(math.floor(x * inv_cell)), int(math.floor(y * inv_cell)))
        cells.append((index, cell))
        grid.setdefault(cell, []).append(index)
    for index, (cx, cy) in cells:
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for other in grid.get((cx + dx, cy + dy), ()):
                    if other > index:
                        yield index, other


__all__ = [
    "BarnesHutRepulsion",
    "ExactRepulsion",
    "QuadTree",
    "RepulsionSolver",
    "jiggle",
    "neighbor_pairs",
    "select_repulsion",
]
