"""Ray Grid package."""

from .game import (
    BoundaryRef,
    CellKind,
    Direction,
    GridState,
    Level,
    LevelConfigError,
    LevelLoader,
    RayGridGame,
    RayTracer,
    SimulationResult,
)
from .signals import FireRay, ResetObstacles, SignalDecoder, ToggleCell

__all__ = [
    "BoundaryRef",
    "CellKind",
    "Direction",
    "FireRay",
    "GridState",
    "Level",
    "LevelConfigError",
    "LevelLoader",
    "RayGridGame",
    "RayTracer",
    "ResetObstacles",
    "SignalDecoder",
    "SimulationResult",
    "ToggleCell",
]
