"""Simple command line demo for the ray grid logic."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .game import LevelConfigError, LevelLoader, RayGridGame, SimulationResult
from .signals import JsonLinesFeed

DEFAULT_LEVEL = "level_reference"


def default_level_root() -> Path:
    return Path(__file__).resolve().parent / "levels"


def render_board(game: RayGridGame, result: Optional[SimulationResult]) -> List[str]:
    """Text picture of the grid: ``#`` fixed, ``o`` player, ``*`` ray path."""

    path_cells = {(step.row, step.col) for step in result.path} if result else set()
    symbols = {"fixed": "#", "player": "o"}
    lines = []
    for row, values in enumerate(game.grid.rows()):
        line = []
        for col, value in enumerate(values):
            symbol = symbols.get(value, ".")
            if symbol == "." and (row, col) in path_cells:
                symbol = "*"
            line.append(symbol)
        lines.append(" ".join(line))
    return lines


def replay_signals(game: RayGridGame, feed: JsonLinesFeed) -> None:
    """Feed recorded presses through the session using their own timestamps."""

    previous: Optional[float] = None
    for record in feed.records():
        accepted = game.ingress.accept(record)
        if accepted is None:
            continue
        if previous is not None:
            game.update(accepted.timestamp - previous, now=accepted.timestamp)
        previous = accepted.timestamp
        game.receive_signal(accepted.signal, accepted.timestamp)
    if previous is not None:
        settle = game.settings.signal_window_ms
        game.update(settle, now=previous + settle)
        while game.animating:
            game.update(game.settings.animation_delay_ms, now=previous + settle)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ray grid text demo")
    parser.add_argument("--level", default=DEFAULT_LEVEL, help="Level name to load.")
    parser.add_argument(
        "--levels-dir",
        type=Path,
        default=None,
        help="Directory holding level JSON files.",
    )
    parser.add_argument(
        "--place",
        action="append",
        default=[],
        metavar="ROW,COL",
        help="Place a player obstacle (1-based) before firing. Repeatable.",
    )
    parser.add_argument(
        "--signals",
        type=Path,
        default=None,
        help="Replay mat presses from a JSON-lines file instead of firing directly.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    loader = LevelLoader(args.levels_dir or default_level_root())
    try:
        level = loader.load(args.level)
    except (FileNotFoundError, LevelConfigError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    game = RayGridGame(level, session_start=0.0)
    game.toggle_edit_play_mode()
    for placement in args.place:
        try:
            row, col = (int(value) - 1 for value in placement.split(","))
        except ValueError:
            print(f"error: bad placement {placement!r}, expected ROW,COL", file=sys.stderr)
            return 2
        game.toggle_cell(row, col)

    if args.signals is not None:
        replay_signals(game, JsonLinesFeed(args.signals))
        result = game.last_result
    else:
        game.settings.animation_delay_ms = 0.0
        result = game.fire_ray()

    print("=== Ray Grid Demo ===")
    print(f"Level: {level.name} ({level.size}x{level.size})")
    print(game.describe_level())
    for line in render_board(game, result):
        print(f"  {line}")
    if result is None:
        print("No ray fired.")
    else:
        print(f"Outcome: {result.outcome.value} - {result.reason}")
        print(f"Cells visited: {len(result.path)}")
    print(game.status)
    game.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
