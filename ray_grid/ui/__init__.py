"""User interface package for the ray grid game."""

from .main import (
    LEVEL_ENV_VAR,
    RayGridApp,
    UIDirectories,
    main,
    resolve_directories,
    run,
)
from .toolkit import RayGridUI

__all__ = [
    "LEVEL_ENV_VAR",
    "UIDirectories",
    "RayGridApp",
    "RayGridUI",
    "main",
    "resolve_directories",
    "run",
]
