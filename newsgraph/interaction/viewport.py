"""Pan/zoom transform applied to the rendered scene only."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Tuple

Point = Tuple[float, float]


@dataclass(frozen=True)
class ViewportTransform:
    """Uniform scale ``k`` followed by translation ``(x, y)``: screen = scene * k + t."""

    x: float = 0.0
    y: float = 0.0
    k: float = 1.0

    def apply(self, point: Point) -> Point:
        return (point[0] * self.k + self.x, point[1] * self.k + self.y)

    def invert(self, point: Point) -> Point:
        return ((point[0] - self.x) / self.k, (point[1] - self.y) / self.k)

    def translate_by(self, dx: float, dy: float) -> "ViewportTransform":
        return replace(self, x=self.x + dx, y=self.y + dy)

    def scale_to(self, k: float, anchor: Point, *, scale_min: float, scale_max: float) -> "ViewportTransform":
        """Return a transform with scale ``k`` (clamped) keeping ``anchor`` fixed on screen.

        Args:
            k: Requested scale factor.
            anchor: Screen point that must not move, typically the pointer.
            scale_min: Lower bound of the scale extent.
            scale_max: Upper bound of the scale extent.

        Returns:
            ViewportTransform: The rescaled transform.
        """

        clamped = max(scale_min, min(scale_max, k))
        scene_x, scene_y = self.invert(anchor)
        return ViewportTransform(
            x=anchor[0] - scene_x * clamped,
            y=anchor[1] - scene_y * clamped,
            k=clamped,
        )

    def to_svg(self) -> str:
        return f"translate({self.x},{self.y}) scale({self.k})"


IDENTITY = ViewportTransform()

__all__ = ["IDENTITY", "Point", "ViewportTransform"]
