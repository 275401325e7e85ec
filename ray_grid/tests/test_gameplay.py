import dataclasses
import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ray_grid.game import (
    BoundaryRef,
    BoundarySide,
    CellKind,
    Direction,
    GameSettings,
    GridState,
    Level,
    LevelConfigError,
    LevelLoader,
    Outcome,
    RayTracer,
)


def fixture_path(*parts: str) -> Path:
    return Path(__file__).resolve().parents[1].joinpath(*parts)


OPPOSITE = {
    BoundarySide.LEFT: BoundarySide.RIGHT,
    BoundarySide.RIGHT: BoundarySide.LEFT,
    BoundarySide.TOP: BoundarySide.BOTTOM,
    BoundarySide.BOTTOM: BoundarySide.TOP,
}


@pytest.mark.parametrize("side", list(BoundarySide))
@pytest.mark.parametrize("index", [0, 3, 7])
def test_empty_grid_exits_straight_across(side: BoundarySide, index: int):
    grid = GridState(8)
    entry = BoundaryRef(side, index)
    opposite = BoundaryRef(OPPOSITE[side], index)
    tracer = RayTracer()

    result = tracer.trace(grid, entry, opposite)
    assert result.outcome is Outcome.WIN
    assert result.exit_info == opposite
    assert len(result.path) == 8

    elsewhere = BoundaryRef(OPPOSITE[side], (index + 1) % 8)
    missed = tracer.trace(grid, entry, elsewhere)
    assert missed.outcome is Outcome.LOSE
    assert missed.exit_info == opposite
    assert missed.kind == RayTracer.REASON_WRONG_EXIT


def test_left_entry_reports_right_exit_with_row_index():
    result = RayTracer().trace(
        GridState(8),
        BoundaryRef(BoundarySide.LEFT, 3),
        BoundaryRef(BoundarySide.RIGHT, 3),
    )

    assert result.won
    assert result.exit_info.side is BoundarySide.RIGHT
    assert result.exit_info.index == 3
    assert [(step.row, step.col) for step in result.path] == [(3, c) for c in range(8)]
    assert all(step.direction is Direction.EAST for step in result.path)


def test_obstacle_turns_counterclockwise_by_default():
    grid = GridState(8)
    grid.apply_fixed([(3, 4)])
    entry = BoundaryRef(BoundarySide.LEFT, 3)

    result = RayTracer().trace(grid, entry, BoundaryRef(BoundarySide.TOP, 4))

    assert result.won
    assert result.path[4].cell_kind is CellKind.FIXED
    assert result.path[4].direction is Direction.EAST
    assert result.path[5].direction is Direction.NORTH


def test_clockwise_rotation_setting():
    grid = GridState(8)
    grid.apply_fixed([(3, 4)])
    tracer = RayTracer.from_settings(GameSettings(rotation="clockwise"))

    result = tracer.trace(
        grid, BoundaryRef(BoundarySide.LEFT, 3), BoundaryRef(BoundarySide.BOTTOM, 4)
    )

    assert result.won


def test_player_obstacles_rotate_like_fixed_ones():
    grid = GridState(8)
    grid.toggle(3, 4, play_mode=True)

    result = RayTracer().trace(
        grid, BoundaryRef(BoundarySide.LEFT, 3), BoundaryRef(BoundarySide.TOP, 4)
    )

    assert result.won
    assert result.path[4].cell_kind is CellKind.PLAYER


def test_deflection_cycle_is_detected_as_loop():
    grid = GridState(4)
    grid.apply_fixed([(2, 2), (1, 2), (1, 1), (2, 1)])

    result = RayTracer().trace_from(
        grid, (2, 1), Direction.EAST, BoundaryRef(BoundarySide.RIGHT, 0)
    )

    assert result.outcome is Outcome.LOSE
    assert result.kind == RayTracer.REASON_LOOP
    assert "Loop detected" in result.reason
    assert result.exit_info is None
    assert [(step.row, step.col) for step in result.path] == [(2, 2), (1, 2), (1, 1), (2, 1)]


def test_step_ceiling_ends_simulation():
    result = RayTracer(max_steps=3).trace(
        GridState(8), BoundaryRef(BoundarySide.LEFT, 0), BoundaryRef(BoundarySide.RIGHT, 0)
    )

    assert result.outcome is Outcome.LOSE
    assert result.kind == RayTracer.REASON_STEP_LIMIT
    assert len(result.path) == 3


def test_entry_outside_grid_never_enters():
    result = RayTracer().trace(
        GridState(8), BoundaryRef(BoundarySide.LEFT, 10), BoundaryRef(BoundarySide.RIGHT, 0)
    )

    assert result.outcome is Outcome.LOSE
    assert result.kind == RayTracer.REASON_NEVER_ENTERED
    assert result.path == ()


def test_trace_does_not_mutate_grid():
    loader = LevelLoader(fixture_path("levels"))
    level = loader.load("level_reference")
    grid = GridState.for_level(level)
    before = grid.rows()

    RayTracer().trace(grid, level.entry, level.exit)

    assert grid.rows() == before


def test_reference_level_without_help_misses_exit():
    level = LevelLoader(fixture_path("levels")).load("level_reference")
    grid = GridState.for_level(level)

    result = RayTracer.from_settings(level.settings).trace(grid, level.entry, level.exit)

    assert result.outcome is Outcome.LOSE
    assert result.exit_info == BoundaryRef(BoundarySide.TOP, 6)
    assert result.reason == "Ray exited at TOP @ 7, not the target exit."


def test_reference_level_solution_crosses_a_cell_twice():
    level = LevelLoader(fixture_path("levels")).load("level_reference")
    grid = GridState.for_level(level)
    grid.toggle(2, 6, play_mode=True)
    grid.toggle(2, 5, play_mode=True)

    result = RayTracer().trace(grid, level.entry, level.exit)

    assert result.won
    assert result.exit_info == BoundaryRef(BoundarySide.BOTTOM, 5)
    visits = [step for step in result.path if (step.row, step.col) == (3, 5)]
    assert [step.direction for step in visits] == [Direction.EAST, Direction.SOUTH]


def test_result_is_frozen_and_serialisable():
    result = RayTracer().trace(
        GridState(3), BoundaryRef(BoundarySide.TOP, 1), BoundaryRef(BoundarySide.BOTTOM, 1)
    )

    with pytest.raises(dataclasses.FrozenInstanceError):
        result.reason = "changed"  # type: ignore[misc]
    payload = result.as_dict()
    assert payload["outcome"] == "WIN"
    assert payload["exit"] == {"side": "bottom", "index": 1}
    assert payload["path"][0] == {"r": 0, "c": 1, "direction": "SOUTH", "cell": "empty"}
    json.dumps(payload)


def test_edit_mode_toggle_cycle():
    grid = GridState(8)

    assert grid.toggle(1, 1, play_mode=False) is CellKind.FIXED
    assert grid.toggle(1, 1, play_mode=False) is CellKind.EMPTY
    assert grid.toggle(1, 1, play_mode=False) is CellKind.FIXED

    grid.cells[2][2] = CellKind.PLAYER
    assert grid.toggle(2, 2, play_mode=False) is CellKind.EMPTY
    assert grid.toggle(2, 2, play_mode=False) is CellKind.FIXED


def test_play_mode_toggle_leaves_fixed_cells_alone():
    grid = GridState(8)
    grid.apply_fixed([(0, 0)])

    assert grid.toggle(0, 0, play_mode=True) is None
    assert grid.kind_at(0, 0) is CellKind.FIXED
    assert grid.toggle(0, 1, play_mode=True) is CellKind.PLAYER
    assert grid.toggle(0, 1, play_mode=True) is CellKind.EMPTY


def test_reset_player_obstacles_is_idempotent():
    grid = GridState(5)
    grid.apply_fixed([(0, 0), (4, 4)])
    for position in [(1, 1), (2, 3), (3, 0)]:
        grid.toggle(*position, play_mode=True)

    assert grid.reset_player_obstacles() == 3
    once = grid.rows()
    assert grid.reset_player_obstacles() == 0
    assert grid.rows() == once
    assert grid.positions(CellKind.FIXED) == [(0, 0), (4, 4)]


def test_clear_fixed_obstacles_keeps_player_cells():
    grid = GridState(5)
    grid.apply_fixed([(0, 0), (4, 4)])
    grid.toggle(2, 2, play_mode=True)

    assert grid.clear_fixed_obstacles() == 2
    assert grid.count(CellKind.FIXED) == 0
    assert grid.kind_at(2, 2) is CellKind.PLAYER


def test_loader_reads_reference_level():
    level = LevelLoader(fixture_path("levels")).load("level_reference")

    assert level.size == 8
    assert level.entry == BoundaryRef(BoundarySide.LEFT, 3)
    assert level.exit == BoundaryRef(BoundarySide.BOTTOM, 5)
    assert len(level.fixed_obstacles) == 8
    assert level.settings.signal_window_ms == 3000
    assert level.metadata["dimensions"] == "8x8"


def test_loader_lists_levels():
    names = LevelLoader(fixture_path("levels")).names()

    assert "level_reference" in names
    assert "level_open_field" in names


@pytest.mark.parametrize(
    "override",
    [
        {"entry": {"side": "diagonal", "index": 0}},
        {"exit": {"side": "left", "index": 8}},
        {"fixed_obstacles": [[8, 0]]},
        {"size": 0},
        {"settings": {"rotation": "sideways"}},
        {"entry": {"index": 2}},
    ],
)
def test_loader_rejects_invalid_levels(tmp_path: Path, override):
    data = {
        "name": "Broken",
        "size": 8,
        "entry": {"side": "left", "index": 0},
        "exit": {"side": "right", "index": 0},
    }
    data.update(override)
    (tmp_path / "broken.json").write_text(json.dumps(data))

    with pytest.raises(LevelConfigError):
        LevelLoader(tmp_path).load("broken")


def test_loader_missing_level(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        LevelLoader(tmp_path).load("nope")


def test_boundary_resolution_helpers():
    assert BoundaryRef(BoundarySide.RIGHT, 2).outside_start(8) == ((2, 8), Direction.WEST)
    assert BoundaryRef(BoundarySide.BOTTOM, 5).outside_start(8) == ((8, 5), Direction.NORTH)
    assert BoundaryRef(BoundarySide.TOP, 1).cell(8) == (0, 1)
    assert BoundaryRef(BoundarySide.BOTTOM, 5).describe() == "BOTTOM @ 6"
    level = Level(
        name="Tiny",
        entry=BoundaryRef(BoundarySide.TOP, 0),
        exit=BoundaryRef(BoundarySide.BOTTOM, 0),
        size=2,
    )
    assert level.inside((1, 1))
    assert not level.inside((2, 0))
