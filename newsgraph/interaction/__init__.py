"""Pointer interaction and viewport navigation."""

from newsgraph.interaction.controller import (
    ClickAction,
    InteractionController,
    Tooltip,
    is_constrained_viewport,
    tooltip_text,
)
from newsgraph.interaction.viewport import IDENTITY, ViewportTransform

__all__ = [
    "ClickAction",
    "IDENTITY",
    "InteractionController",
    "Tooltip",
    "ViewportTransform",
    "is_constrained_viewport",
    "tooltip_text",
]
