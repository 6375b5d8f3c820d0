"""Force-directed layout engine and its spatial helpers."""

from newsgraph.layout.simulation import EngineState, ForceSimulationEngine, SimulationState
from newsgraph.layout.spatial import BarnesHutRepulsion, ExactRepulsion, select_repulsion

__all__ = [
    "BarnesHutRepulsion",
    "EngineState",
    "ExactRepulsion",
    "ForceSimulationEngine",
    "SimulationState",
    "select_repulsion",
]
