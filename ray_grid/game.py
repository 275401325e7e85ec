"""Core game logic for the ray grid puzzle."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .signals import (
    Command,
    FeedStatus,
    FireRay,
    ResetObstacles,
    SignalDecoder,
    SignalIngress,
    ToggleCell,
    wall_clock_ms,
)

logger = logging.getLogger(__name__)


DEFAULT_GRID_SIZE = 8
DEFAULT_MAX_STEPS = 512
DEFAULT_SIGNAL_WINDOW_MS = 3000.0
DEFAULT_ANIMATION_DELAY_MS = 90.0

COUNTERCLOCKWISE = "counterclockwise"
CLOCKWISE = "clockwise"


class LevelConfigError(ValueError):
    """Raised when a level definition cannot produce a meaningful simulation."""


class Direction(Enum):
    """Cardinal directions for the ray, stored as ``(d_row, d_col)``."""

    NORTH = (-1, 0)
    EAST = (0, 1)
    SOUTH = (1, 0)
    WEST = (0, -1)

    @property
    def vector(self) -> Tuple[int, int]:
        return self.value

    def turn_left(self) -> "Direction":
        mapping = {
            Direction.NORTH: Direction.WEST,
            Direction.WEST: Direction.SOUTH,
            Direction.SOUTH: Direction.EAST,
            Direction.EAST: Direction.NORTH,
        }
        return mapping[self]

    def turn_right(self) -> "Direction":
        mapping = {
            Direction.NORTH: Direction.EAST,
            Direction.EAST: Direction.SOUTH,
            Direction.SOUTH: Direction.WEST,
            Direction.WEST: Direction.NORTH,
        }
        return mapping[self]


class CellKind(Enum):
    """Contents of a single grid cell."""

    EMPTY = "empty"
    PLAYER = "player"
    FIXED = "fixed"

    @property
    def is_obstacle(self) -> bool:
        return self is not CellKind.EMPTY


class BoundarySide(Enum):
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"

    @staticmethod
    def from_name(name: object) -> "BoundarySide":
        try:
            return BoundarySide(str(name).lower())
        except ValueError as exc:
            raise LevelConfigError(f"Invalid boundary side: {name!r}") from exc


@dataclass(frozen=True)
class BoundaryRef:
    """A perimeter cell: ``index`` is a row on left/right, a column on top/bottom."""

    side: BoundarySide
    index: int

    @classmethod
    def parse(cls, data: Dict[str, object]) -> "BoundaryRef":
        try:
            side = data["side"]
            index = int(data["index"])  # type: ignore[arg-type]
        except (KeyError, TypeError, ValueError) as exc:
            raise LevelConfigError(f"Malformed boundary definition: {data!r}") from exc
        return cls(BoundarySide.from_name(side), index)

    def cell(self, size: int) -> Tuple[int, int]:
        if self.side is BoundarySide.LEFT:
            return self.index, 0
        if self.side is BoundarySide.RIGHT:
            return self.index, size - 1
        if self.side is BoundarySide.TOP:
            return 0, self.index
        return size - 1, self.index

    def outside_start(self, size: int) -> Tuple[Tuple[int, int], Direction]:
        """Position one step outside the grid and the inward direction."""

        if self.side is BoundarySide.LEFT:
            return (self.index, -1), Direction.EAST
        if self.side is BoundarySide.RIGHT:
            return (self.index, size), Direction.WEST
        if self.side is BoundarySide.TOP:
            return (-1, self.index), Direction.SOUTH
        return (size, self.index), Direction.NORTH

    def describe(self) -> str:
        return f"{self.side.value.upper()} @ {self.index + 1}"

    def as_dict(self) -> Dict[str, object]:
        return {"side": self.side.value, "index": self.index}


@dataclass
class GameSettings:
    """Tunables shared by the tracer, the signal decoder and playback."""

    max_steps: int = DEFAULT_MAX_STEPS
    signal_window_ms: float = DEFAULT_SIGNAL_WINDOW_MS
    animation_delay_ms: float = DEFAULT_ANIMATION_DELAY_MS
    rotation: str = COUNTERCLOCKWISE

    def __post_init__(self) -> None:
        if self.rotation not in (COUNTERCLOCKWISE, CLOCKWISE):
            raise LevelConfigError(f"Unknown rotation: {self.rotation!r}")
        if self.max_steps <= 0:
            raise LevelConfigError("max_steps must be positive")
        if self.signal_window_ms < 0 or self.animation_delay_ms < 0:
            raise LevelConfigError("Timing settings must not be negative")


@dataclass
class Level:
    """In-memory representation of a level definition."""

    name: str
    entry: BoundaryRef
    exit: BoundaryRef
    size: int = DEFAULT_GRID_SIZE
    fixed_obstacles: List[Tuple[int, int]] = field(default_factory=list)
    settings: GameSettings = field(default_factory=GameSettings)

    @property
    def metadata(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "dimensions": f"{self.size}x{self.size}",
            "entry": self.entry.as_dict(),
            "exit": self.exit.as_dict(),
        }

    def inside(self, position: Tuple[int, int]) -> bool:
        row, col = position
        return 0 <= row < self.size and 0 <= col < self.size

    def validate(self) -> None:
        if self.size <= 0:
            raise LevelConfigError(f"Grid size must be positive, got {self.size}")
        for label, boundary in (("entry", self.entry), ("exit", self.exit)):
            if not 0 <= boundary.index < self.size:
                raise LevelConfigError(
                    f"{label} index {boundary.index} outside 0..{self.size - 1}"
                )
        for position in self.fixed_obstacles:
            if not self.inside(position):
                raise LevelConfigError(f"Fixed obstacle {position} lies outside the grid")


class LevelLoader:
    """Load level files stored as JSON."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def names(self) -> List[str]:
        return sorted(path.stem for path in self.root.glob("*.json"))

    def load(self, name: str) -> Level:
        path = self.root / f"{name}.json"
        if not path.exists():
            raise FileNotFoundError(path)
        data = json.loads(path.read_text())
        level = self.parse_level(data)
        logger.debug("Loaded level %s from %s", level.name, path)
        return level

    @staticmethod
    def parse_level(data: Dict) -> Level:
        try:
            entry = data["entry"]
            exit_ = data["exit"]
        except KeyError as exc:
            raise LevelConfigError(f"Level is missing {exc.args[0]!r}") from exc
        raw_settings = data.get("settings", {}) or {}
        try:
            settings = GameSettings(
                max_steps=int(raw_settings.get("max_steps", DEFAULT_MAX_STEPS)),
                signal_window_ms=float(
                    raw_settings.get("signal_window_ms", DEFAULT_SIGNAL_WINDOW_MS)
                ),
                animation_delay_ms=float(
                    raw_settings.get("animation_delay_ms", DEFAULT_ANIMATION_DELAY_MS)
                ),
                rotation=str(raw_settings.get("rotation", COUNTERCLOCKWISE)).lower(),
            )
            size = int(data.get("size", DEFAULT_GRID_SIZE))
            fixed_obstacles = [
                (int(row), int(col)) for row, col in data.get("fixed_obstacles", [])
            ]
        except LevelConfigError:
            raise
        except (TypeError, ValueError) as exc:
            raise LevelConfigError(f"Malformed level definition: {exc}") from exc
        level = Level(
            name=data.get("name", "Untitled"),
            entry=BoundaryRef.parse(entry),
            exit=BoundaryRef.parse(exit_),
            size=size,
            fixed_obstacles=fixed_obstacles,
            settings=settings,
        )
        level.validate()
        return level


class GridState:
    """N×N matrix of cell kinds plus the edit/play mutation policy."""

    def __init__(self, size: int = DEFAULT_GRID_SIZE):
        if size <= 0:
            raise ValueError(f"Grid size must be positive, got {size}")
        self.size = size
        self.cells: List[List[CellKind]] = [
            [CellKind.EMPTY for _ in range(size)] for _ in range(size)
        ]

    @classmethod
    def for_level(cls, level: Level) -> "GridState":
        grid = cls(level.size)
        grid.apply_fixed(level.fixed_obstacles)
        return grid

    def inside(self, row: int, col: int) -> bool:
        return 0 <= row < self.size and 0 <= col < self.size

    def kind_at(self, row: int, col: int) -> CellKind:
        return self.cells[row][col]

    def apply_fixed(self, positions: Iterable[Tuple[int, int]]) -> None:
        for row, col in positions:
            self.cells[row][col] = CellKind.FIXED

    def toggle(self, row: int, col: int, *, play_mode: bool) -> Optional[CellKind]:
        """Toggle a cell and return its new kind, or ``None`` when refused.

        In play mode only ``EMPTY`` and ``PLAYER`` swap; fixed cells are left
        alone. In edit mode the cycle is ``FIXED -> EMPTY``, ``EMPTY -> FIXED``
        and ``PLAYER -> EMPTY`` (a second toggle then makes it fixed).
        """

        current = self.cells[row][col]
        if play_mode:
            if current is CellKind.FIXED:
                return None
            updated = CellKind.EMPTY if current is CellKind.PLAYER else CellKind.PLAYER
        elif current is CellKind.EMPTY:
            updated = CellKind.FIXED
        else:
            updated = CellKind.EMPTY
        self.cells[row][col] = updated
        return updated

    def _clear_kind(self, kind: CellKind) -> int:
        cleared = 0
        for row in self.cells:
            for col, value in enumerate(row):
                if value is kind:
                    row[col] = CellKind.EMPTY
                    cleared += 1
        return cleared

    def reset_player_obstacles(self) -> int:
        return self._clear_kind(CellKind.PLAYER)

    def clear_fixed_obstacles(self) -> int:
        return self._clear_kind(CellKind.FIXED)

    def positions(self, kind: CellKind) -> List[Tuple[int, int]]:
        return [
            (row, col)
            for row in range(self.size)
            for col in range(self.size)
            if self.cells[row][col] is kind
        ]

    def count(self, kind: CellKind) -> int:
        return sum(1 for row in self.cells for value in row if value is kind)

    def copy(self) -> "GridState":
        clone = GridState(self.size)
        clone.cells = [list(row) for row in self.cells]
        return clone

    def rows(self) -> List[List[str]]:
        return [[value.value for value in row] for row in self.cells]


class Outcome(Enum):
    WIN = "WIN"
    LOSE = "LOSE"


@dataclass(frozen=True)
class PathStep:
    """One in-grid cell visited by the ray."""

    row: int
    col: int
    direction: Direction  # direction on entry, before any rotation
    cell_kind: CellKind


@dataclass(frozen=True)
class SimulationResult:
    outcome: Outcome
    path: Tuple[PathStep, ...]
    reason: str
    kind: str
    exit_info: Optional[BoundaryRef] = None
    steps: int = 0

    @property
    def won(self) -> bool:
        return self.outcome is Outcome.WIN

    def as_dict(self) -> Dict[str, object]:
        return {
            "outcome": self.outcome.value,
            "reason": self.reason,
            "kind": self.kind,
            "exit": self.exit_info.as_dict() if self.exit_info else None,
            "steps": self.steps,
            "path": [
                {
                    "r": step.row,
                    "c": step.col,
                    "direction": step.direction.name,
                    "cell": step.cell_kind.value,
                }
                for step in self.path
            ],
        }


class RayTracer:
    """Deterministic walk of a single ray across a :class:`GridState`."""

    REASON_EXITED = "exited"
    REASON_WRONG_EXIT = "wrong exit"
    REASON_NEVER_ENTERED = "never entered"
    REASON_LOOP = "loop detected"
    REASON_STEP_LIMIT = "step limit reached"

    def __init__(self, max_steps: int = DEFAULT_MAX_STEPS, rotation: str = COUNTERCLOCKWISE):
        if rotation not in (COUNTERCLOCKWISE, CLOCKWISE):
            raise ValueError(f"Unknown rotation: {rotation!r}")
        self.max_steps = max_steps
        self.rotation = rotation

    @classmethod
    def from_settings(cls, settings: GameSettings) -> "RayTracer":
        return cls(max_steps=settings.max_steps, rotation=settings.rotation)

    def rotate(self, direction: Direction) -> Direction:
        if self.rotation == CLOCKWISE:
            return direction.turn_right()
        return direction.turn_left()

    def trace(
        self, grid: GridState, entry: BoundaryRef, exit: BoundaryRef
    ) -> SimulationResult:
        start, direction = entry.outside_start(grid.size)
        return self._walk(grid, start, direction, exit)

    def trace_from(
        self,
        grid: GridState,
        position: Tuple[int, int],
        direction: Direction,
        exit: BoundaryRef,
    ) -> SimulationResult:
        """Launch the ray from a cell instead of from outside the grid."""

        return self._walk(grid, position, direction, exit)

    @staticmethod
    def exit_boundary(
        size: int, last_inside: Tuple[int, int], outside: Tuple[int, int]
    ) -> BoundaryRef:
        row, col = last_inside
        next_row, next_col = outside
        if next_row < 0:
            return BoundaryRef(BoundarySide.TOP, col)
        if next_row >= size:
            return BoundaryRef(BoundarySide.BOTTOM, col)
        if next_col < 0:
            return BoundaryRef(BoundarySide.LEFT, row)
        if next_col >= size:
            return BoundaryRef(BoundarySide.RIGHT, row)
        raise ValueError(f"{outside} is inside the grid")

    def _walk(
        self,
        grid: GridState,
        start: Tuple[int, int],
        direction: Direction,
        exit: BoundaryRef,
    ) -> SimulationResult:
        row, col = start
        visited: Set[Tuple[int, int, Direction]] = set()
        path: List[PathStep] = []

        steps = 0
        while steps < self.max_steps:
            steps += 1
            d_row, d_col = direction.vector
            next_row, next_col = row + d_row, col + d_col

            if not grid.inside(next_row, next_col):
                if not grid.inside(row, col):
                    return SimulationResult(
                        outcome=Outcome.LOSE,
                        path=tuple(path),
                        reason="Ray never entered the grid (invalid entry config).",
                        kind=self.REASON_NEVER_ENTERED,
                        steps=steps,
                    )
                exit_info = self.exit_boundary(grid.size, (row, col), (next_row, next_col))
                if exit_info == exit:
                    return SimulationResult(
                        outcome=Outcome.WIN,
                        path=tuple(path),
                        reason="Ray exited through the designated exit.",
                        kind=self.REASON_EXITED,
                        exit_info=exit_info,
                        steps=steps,
                    )
                return SimulationResult(
                    outcome=Outcome.LOSE,
                    path=tuple(path),
                    reason=f"Ray exited at {exit_info.describe()}, not the target exit.",
                    kind=self.REASON_WRONG_EXIT,
                    exit_info=exit_info,
                    steps=steps,
                )

            row, col = next_row, next_col
            key = (row, col, direction)
            if key in visited:
                return SimulationResult(
                    outcome=Outcome.LOSE,
                    path=tuple(path),
                    reason="Loop detected (ray revisited the same cell with the same direction).",
                    kind=self.REASON_LOOP,
                    steps=steps,
                )
            visited.add(key)

            cell = grid.kind_at(row, col)
            path.append(PathStep(row, col, direction, cell))
            if cell.is_obstacle:
                direction = self.rotate(direction)

        return SimulationResult(
            outcome=Outcome.LOSE,
            path=tuple(path),
            reason="Step limit reached (likely looping).",
            kind=self.REASON_STEP_LIMIT,
            steps=steps,
        )


@dataclass
class RayPlayback:
    """Reveal a traced path one cell per ``step_delay_ms``."""

    result: SimulationResult
    step_delay_ms: float = DEFAULT_ANIMATION_DELAY_MS
    elapsed_ms: float = 0.0

    @property
    def total_steps(self) -> int:
        return len(self.result.path)

    @property
    def revealed(self) -> int:
        if self.step_delay_ms <= 0:
            return self.total_steps
        return min(self.total_steps, int(self.elapsed_ms // self.step_delay_ms) + 1)

    @property
    def finished(self) -> bool:
        if self.step_delay_ms <= 0 or not self.result.path:
            return True
        return self.elapsed_ms >= self.total_steps * self.step_delay_ms

    def advance(self, delta_ms: float) -> bool:
        self.elapsed_ms += max(0.0, delta_ms)
        return self.finished

    def visible_path(self) -> Sequence[PathStep]:
        return self.result.path[: self.revealed]

    def head(self) -> Optional[PathStep]:
        if self.finished or not self.result.path:
            return None
        return self.result.path[self.revealed - 1]


class RayGridGame:
    """Session object owning the grid, the decoder and the fire/playback cycle."""

    def __init__(
        self,
        level: Level,
        *,
        clock: Callable[[], float] = wall_clock_ms,
        session_start: Optional[float] = None,
    ):
        self.level = level
        self.settings = level.settings
        self.clock = clock
        self.grid = GridState.for_level(level)
        self.tracer = RayTracer.from_settings(self.settings)
        self.decoder = SignalDecoder(level.size, window_ms=self.settings.signal_window_ms)
        self.ingress = SignalIngress(
            session_start if session_start is not None else clock(), clock=clock
        )
        self.play_mode = False
        self.status = self.describe_level()
        self.last_result: Optional[SimulationResult] = None
        self.playback: Optional[RayPlayback] = None
        self.fire_count = 0
        self.game_won = False
        self.play_started_at: Optional[float] = None

    # ------------------------------------------------------------------
    # Status helpers
    # ------------------------------------------------------------------
    def describe_level(self) -> str:
        return f"Entry: {self.level.entry.describe()} | Exit: {self.level.exit.describe()}"

    def _set_status(self, message: str) -> None:
        self.status = f"{self.describe_level()} | {message}"
        logger.info(self.status)

    @property
    def animating(self) -> bool:
        return self.playback is not None and not self.playback.finished

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def toggle_cell(self, row: int, col: int) -> Optional[CellKind]:
        if self.animating:
            logger.debug("Toggle (%d, %d) ignored during playback", row, col)
            return None
        if not self.grid.inside(row, col):
            logger.debug("Toggle (%d, %d) outside the grid", row, col)
            return None
        previous = self.grid.kind_at(row, col)
        updated = self.grid.toggle(row, col, play_mode=self.play_mode)
        label = f"({row + 1},{col + 1})"
        if updated is None:
            logger.debug("Fixed obstacle at %s is locked in play mode", label)
        elif self.play_mode:
            self._set_status(f"Toggled cell {label}")
        elif previous is CellKind.FIXED:
            self._set_status(f"Removed fixed obstacle at {label}")
        elif previous is CellKind.PLAYER:
            self._set_status(
                f"Removed player obstacle at {label}, click again to add fixed obstacle"
            )
        else:
            self._set_status(f"Added fixed obstacle at {label}")
        return updated

    def reset_player_obstacles(self) -> int:
        cleared = self.grid.reset_player_obstacles()
        self._set_status("Player obstacles reset.")
        return cleared

    def clear_all_player_obstacles(self) -> int:
        cleared = self.grid.reset_player_obstacles()
        self.playback = None
        self.last_result = None
        self._set_status("Cleared all player obstacles and ray visuals.")
        return cleared

    def clear_fixed_obstacles(self) -> Optional[int]:
        if self.play_mode:
            self._set_status("Cannot clear fixed obstacles in Play Mode")
            return None
        cleared = self.grid.clear_fixed_obstacles()
        self._set_status(f"Cleared {cleared} fixed obstacle(s)")
        return cleared

    def toggle_edit_play_mode(self) -> bool:
        self.play_mode = not self.play_mode
        self.fire_count = 0
        self.game_won = False
        if self.play_mode:
            self.play_started_at = self.clock()
            self._set_status("Play Mode")
        else:
            self.play_started_at = None
            self._set_status("Edit Mode")
        return self.play_mode

    def fire_ray(self) -> Optional[SimulationResult]:
        if self.animating:
            logger.debug("Fire request ignored during playback")
            return None
        self.fire_count += 1
        result = self.tracer.trace(self.grid.copy(), self.level.entry, self.level.exit)
        self.last_result = result
        self.playback = RayPlayback(result, step_delay_ms=self.settings.animation_delay_ms)
        logger.debug("Traced ray: %s after %d steps", result.kind, result.steps)
        if self.playback.finished:
            self._finish_playback()
        return result

    def _finish_playback(self) -> None:
        result = self.last_result
        if result is None:
            return
        if result.won:
            self.game_won = True
            self.status = f"CLEARED. {self.describe_level()} | {result.reason}"
        else:
            extra = ""
            if result.exit_info is not None:
                extra = f" Exit reached: {result.exit_info.describe()}."
            self.status = f"FAILED. {self.describe_level()} | {result.reason}{extra}"
        logger.info(self.status)

    # ------------------------------------------------------------------
    # Signal routing
    # ------------------------------------------------------------------
    def handle_command(self, command: Optional[Command]) -> None:
        if isinstance(command, ToggleCell):
            if self.toggle_cell(command.row, command.col) is not None:
                first, second = command.signals
                self.status += f" via signals [{first},{second}]"
        elif isinstance(command, FireRay):
            if self.animating:
                logger.debug("Signal fire ignored during playback")
                return
            self._set_status("Fired ray via single signal 9")
            self.fire_ray()
        elif isinstance(command, ResetObstacles):
            self.grid.reset_player_obstacles()
            self._set_status("Reset player obstacles via double signal 9")
        elif command is not None:
            raise TypeError(f"Unknown command: {command!r}")

    def dispatch(self, commands: Iterable[Command]) -> None:
        for command in commands:
            self.handle_command(command)

    def receive_signal(self, signal: int, timestamp: Optional[float] = None) -> None:
        if self.animating:
            logger.debug("Signal %s ignored during playback", signal)
            return
        if timestamp is None:
            timestamp = self.clock()
        self.dispatch(self.decoder.on_signal(signal, timestamp))

    def receive_record(self, record: Dict[str, object]) -> None:
        accepted = self.ingress.accept(record)
        if accepted is not None:
            self.receive_signal(accepted.signal, accepted.timestamp)

    def connect_feed(self, feed: Optional[object]) -> FeedStatus:
        return self.ingress.connect(
            feed, lambda raw: self.receive_signal(raw.signal, raw.timestamp)
        )

    def update(self, delta_ms: float, now: Optional[float] = None) -> None:
        """Advance playback and fire the decoder's pending timer when due."""

        if self.playback is not None and not self.playback.finished:
            if self.playback.advance(delta_ms):
                self._finish_playback()
        self.dispatch(self.decoder.poll(self.clock() if now is None else now))

    def close(self) -> None:
        self.decoder.reset()
        self.ingress.disconnect()
        self.playback = None
