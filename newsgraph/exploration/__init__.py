"""Keyword exploration state machine."""

from newsgraph.exploration.controller import (
    ExplorationController,
    ExplorationOutcome,
    ExplorationRequest,
    ExplorationState,
    GraphSource,
)

__all__ = [
    "ExplorationController",
    "ExplorationOutcome",
    "ExplorationRequest",
    "ExplorationState",
    "GraphSource",
]
