"""Exception taxonomy shared across the explorer."""
from __future__ import annotations

from typing import Optional


class NewsGraphError(Exception):
    """Base class for errors raised by newsgraph."""


class ConfigError(NewsGraphError, RuntimeError):
    """Raised when configuration cannot be loaded."""


class ConstructionError(NewsGraphError, ValueError):
    """Raised when a server graph payload cannot be turned into a graph."""

    @property
    def tag(self) -> str:
        return "graph_construction_error"


class TransportError(NewsGraphError):
    """Network or HTTP failure reported with an opaque, user-visible tag."""

    def __init__(self, tag: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(tag)
        self.tag = tag
        self.status_code = status_code


class SupersededResponse(NewsGraphError):
    """A response arrived after a newer request was issued; it must be dropped."""

    def __init__(self, sequence_number: int, latest: int) -> None:
        super().__init__(f"response {sequence_number} superseded by request {latest}")
        self.sequence_number = sequence_number
        self.latest = latest


__all__ = [
    "ConfigError",
    "ConstructionError",
    "NewsGraphError",
    "SupersededResponse",
    "TransportError",
]
