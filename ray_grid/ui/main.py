"""Interactive UI for playing ray grid levels using pygame."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from ..game import BoundarySide, LevelConfigError, LevelLoader, RayGridGame
from ..signals import JsonLinesFeed, wall_clock_ms
from . import layout
from .toolkit import RayGridUI, ensure_pygame

logger = logging.getLogger(__name__)

LEVEL_ENV_VAR = "RAY_GRID_LEVEL_ROOT"
DEFAULT_LEVEL = "level_reference"


@dataclass(frozen=True)
class UIDirectories:
    """Bundle with resolved directories required by the UI."""

    level_root: Path


def _default_level_root() -> Path:
    return Path(__file__).resolve().parents[1] / "levels"


def _read_directory(env_var: str, fallback: Path) -> Path:
    value = os.environ.get(env_var)
    if value:
        return Path(value).expanduser()
    return fallback


def resolve_directories(check_exists: bool = True) -> UIDirectories:
    """Resolve UI directories using environment variables.

    Parameters
    ----------
    check_exists:
        When *True*, raise :class:`FileNotFoundError` if a resolved directory does
        not exist on disk. Disable this in contexts where you want to inspect the
        chosen paths without touching the filesystem.
    """

    level_root = _read_directory(LEVEL_ENV_VAR, _default_level_root())
    if check_exists and not level_root.exists():
        raise FileNotFoundError(
            f"Required level directory does not exist: {level_root}"
        )
    return UIDirectories(level_root=level_root)


class RayGridApp:
    """Pygame driven application wrapping one :class:`RayGridGame` session."""

    def __init__(
        self,
        game: RayGridGame,
        *,
        tile_size: int = layout.TILE_SIZE,
    ) -> None:
        pygame = ensure_pygame()
        pygame.display.set_caption(f"Ray Grid - {game.level.name}")
        self.game = game
        self.geometry = layout.compute_geometry(game.grid.size, tile_size)
        self.screen = pygame.display.set_mode(self.geometry.window)
        self.clock = pygame.time.Clock()
        board_x, board_y, board_w, board_h = self.geometry.board
        self.board_origin = (board_x, board_y)
        self.board_view = RayGridUI(
            game,
            cell_size=tile_size,
            surface=pygame.Surface((board_w, board_h)),
        )
        self.font = pygame.font.Font(pygame.font.get_default_font(), 16)

    def _to_board(self, event):
        pygame = ensure_pygame()
        if event.type != pygame.MOUSEBUTTONDOWN:
            return event
        x, y = event.pos
        return pygame.event.Event(
            event.type,
            button=event.button,
            pos=(x - self.board_origin[0], y - self.board_origin[1]),
        )

    def handle_events(self, events: Sequence[object]) -> bool:
        """Route events to the board; return ``False`` when the window closes."""

        pygame = ensure_pygame()
        board_events = []
        for event in events:
            if event.type == pygame.QUIT:
                return False
            if event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                return False
            board_events.append(self._to_board(event))
        self.board_view.process_events(board_events)
        return True

    def draw(self) -> None:
        pygame = ensure_pygame()
        self.screen.fill(layout.BACKGROUND_COLOR)
        surface = self.board_view.render()
        size = self.game.grid.size
        for row in range(size):
            for col in range(size):
                self.board_view.draw_label(row, col, f"{row + 1},{col + 1}")
        self.screen.blit(surface, self.board_origin)
        self._draw_marker(self.game.level.entry, "IN", layout.ENTRY_COLOR)
        self._draw_marker(self.game.level.exit, "OUT", layout.EXIT_COLOR)
        self._draw_footer()
        pygame.display.flip()

    def _draw_marker(self, boundary, text: str, color: Tuple[int, int, int]) -> None:
        tile = self.board_view.cell_size
        row, col = boundary.cell(self.game.grid.size)
        center_x = self.board_origin[0] + col * tile + tile // 2
        center_y = self.board_origin[1] + row * tile + tile // 2
        offset = tile // 2 + layout.BOARD_OUTER_PADDING // 2
        if boundary.side is BoundarySide.LEFT:
            center_x -= offset
        elif boundary.side is BoundarySide.RIGHT:
            center_x += offset
        elif boundary.side is BoundarySide.TOP:
            center_y -= offset
        else:
            center_y += offset
        label = self.font.render(text, True, color)
        rect = label.get_rect()
        rect.center = (center_x, center_y)
        self.screen.blit(label, rect)

    def _footer_lines(self) -> List[str]:
        mode = "Play Mode" if self.game.play_mode else "Edit Mode"
        return [
            self.game.status,
            f"{mode} | Shots: {self.game.fire_count} | {self.game.ingress.status.message}",
            "SPACE fire  R reset  C clear  F clear fixed  M mode  1-9 mat signals",
        ]

    def _draw_footer(self) -> None:
        pygame = ensure_pygame()
        rect = pygame.Rect(self.geometry.footer)
        self.screen.fill(layout.FOOTER_BACKGROUND_COLOR, rect)
        y = rect.y + layout.FOOTER_PADDING
        for line in self._footer_lines():
            label = self.font.render(line, True, layout.TEXT_COLOR)
            self.screen.blit(label, (rect.x + layout.FOOTER_PADDING, y))
            y += label.get_height() + 4

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------
    def run(self) -> None:
        pygame = ensure_pygame()
        try:
            while True:
                delta = self.clock.tick(60)
                if not self.handle_events(pygame.event.get()):
                    return
                self.game.update(float(delta))
                self.draw()
        finally:
            self.game.close()
            pygame.quit()


def run(level_name: str = DEFAULT_LEVEL, feed_path: Optional[Path] = None) -> None:
    """Entry point helper that instantiates and runs the UI."""

    directories = resolve_directories()
    level = LevelLoader(directories.level_root).load(level_name)
    game = RayGridGame(level, clock=wall_clock_ms)
    game.connect_feed(JsonLinesFeed(feed_path) if feed_path else None)
    app = RayGridApp(game)
    app.run()


def bootstrap_directories() -> UIDirectories:
    """Return resolved directories and print a short bootstrap message."""

    directories = resolve_directories()
    message = (
        "Ray Grid UI bootstrap\n"
        f"  levels: {directories.level_root}\n"
        f"Set {LEVEL_ENV_VAR} to point to a custom level directory if needed."
    )
    print(message)
    return directories


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ray Grid UI launcher")
    parser.add_argument(
        "--info",
        action="store_true",
        help="Print resolved resource directories and exit without launching the UI.",
    )
    parser.add_argument(
        "--list-levels",
        action="store_true",
        help="List the level files found in the level directory and exit.",
    )
    parser.add_argument("--level", default=DEFAULT_LEVEL, help="Level name to play.")
    parser.add_argument(
        "--feed",
        type=Path,
        default=None,
        help="JSON-lines file of mat presses to replay as the signal feed.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        if args.info:
            bootstrap_directories()
            return 0
        if args.list_levels:
            directories = resolve_directories()
            print("Available levels:")
            for name in LevelLoader(directories.level_root).names():
                print(f"  {name}")
            return 0
        bootstrap_directories()
        run(args.level, args.feed)
    except (FileNotFoundError, LevelConfigError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":  # pragma: no cover - manual invocation entry point
    sys.exit(main())
