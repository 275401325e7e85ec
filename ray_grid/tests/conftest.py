"""Fixtures shared by the session, signal and UI tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from ray_grid.game import LevelLoader, RayGridGame


LEVEL_ROOT = Path(__file__).resolve().parents[1] / "levels"


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def game(clock: FakeClock) -> RayGridGame:
    level = LevelLoader(LEVEL_ROOT).load("level_reference")
    return RayGridGame(level, clock=clock, session_start=0.0)
