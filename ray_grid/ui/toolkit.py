"""Minimal pygame based board renderer and input mapper.

This module intentionally keeps the rendering deterministic so it can be
exercised in automated tests using the SDL ``dummy`` video driver.
"""

from __future__ import annotations

import os
from typing import Callable, Dict, Iterable, Optional, Tuple

from ..game import CellKind, RayGridGame
from . import layout


# Pygame is optional for the library but required for the UI helpers.  The
# import is performed lazily in ``ensure_pygame`` so test environments can
# control the SDL configuration (e.g. select the ``dummy`` video driver).
_PYGAME = None


def ensure_pygame():
    global _PYGAME
    if _PYGAME is None:
        os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
        _PYGAME = __import__("pygame")
        _PYGAME.display.init()
        _PYGAME.font.init()
    return _PYGAME


CELL_COLORS: Dict[CellKind, Tuple[int, int, int]] = {
    CellKind.EMPTY: layout.EMPTY_COLOR,
    CellKind.PLAYER: layout.PLAYER_COLOR,
    CellKind.FIXED: layout.FIXED_COLOR,
}


class RayGridUI:
    """Pygame board view that maps clicks and keys onto a :class:`RayGridGame`."""

    def __init__(
        self,
        game: RayGridGame,
        *,
        cell_size: int = 32,
        surface=None,
        use_display: bool = False,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        pygame = ensure_pygame()
        self.game = game
        self.cell_size = cell_size
        self.clock = clock or game.clock
        side = self.game.grid.size * cell_size
        self.surface = surface or pygame.Surface((side, side))
        self.screen = None
        if use_display:
            self.screen = pygame.display.set_mode((side, side))
        self.font = pygame.font.Font(pygame.font.get_default_font(), 14)
        self.key_actions: Dict[int, Callable[[], object]] = {
            pygame.K_SPACE: self.game.fire_ray,
            pygame.K_r: self.game.reset_player_obstacles,
            pygame.K_c: self.game.clear_all_player_obstacles,
            pygame.K_f: self.game.clear_fixed_obstacles,
            pygame.K_m: self.game.toggle_edit_play_mode,
        }
        # Number keys stand in for the floor mats.
        self.signal_keys: Dict[int, int] = {
            getattr(pygame, f"K_{number}"): number for number in range(1, 10)
        }

    # ------------------------------------------------------------------
    # Input handling
    def process_events(self, events: Iterable[object]) -> None:
        pygame = ensure_pygame()
        for event in events:
            if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                self._handle_click(event.pos)
            elif event.type == pygame.KEYDOWN:
                self._handle_key(event.key)

    def cell_from_pixel(self, pos: Tuple[int, int]) -> Optional[Tuple[int, int]]:
        x, y = pos
        row = y // self.cell_size
        col = x // self.cell_size
        if not self.game.grid.inside(row, col):
            return None
        return row, col

    def _handle_click(self, pos: Tuple[int, int]) -> None:
        cell = self.cell_from_pixel(pos)
        if cell is None:
            return
        self.game.toggle_cell(*cell)

    def _handle_key(self, key: int) -> None:
        if key in self.signal_keys:
            self.game.receive_signal(self.signal_keys[key], self.clock())
            return
        action = self.key_actions.get(key)
        if action is not None and not self.game.animating:
            action()

    # ------------------------------------------------------------------
    # Rendering helpers
    def render(self):
        pygame = ensure_pygame()
        self.surface.fill(layout.BOARD_BACKGROUND_COLOR)
        self._draw_cells()
        self._draw_boundaries()
        self._draw_ray()
        if self.screen:
            self.screen.blit(self.surface, (0, 0))
            pygame.display.flip()
        return self.surface

    def _cell_rect(self, row: int, col: int, inset: int = 0):
        pygame = ensure_pygame()
        return pygame.Rect(
            col * self.cell_size + inset,
            row * self.cell_size + inset,
            self.cell_size - 2 * inset,
            self.cell_size - 2 * inset,
        )

    def _draw_cells(self) -> None:
        pygame = ensure_pygame()
        grid = self.game.grid
        for row in range(grid.size):
            for col in range(grid.size):
                rect = self._cell_rect(row, col)
                self.surface.fill(CELL_COLORS[grid.kind_at(row, col)], rect)
                pygame.draw.rect(self.surface, layout.GRID_LINE_COLOR, rect, 1)

    def _draw_boundaries(self) -> None:
        pygame = ensure_pygame()
        size = self.game.grid.size
        for boundary, color in (
            (self.game.level.entry, layout.ENTRY_COLOR),
            (self.game.level.exit, layout.EXIT_COLOR),
        ):
            row, col = boundary.cell(size)
            pygame.draw.rect(self.surface, color, self._cell_rect(row, col), 3)

    def _draw_ray(self) -> None:
        playback = self.game.playback
        if playback is None:
            return
        inset = max(2, self.cell_size // 4)
        head = playback.head()
        for step in playback.visible_path():
            color = layout.RAY_HEAD_COLOR if step is head else layout.RAY_COLOR
            self.surface.fill(color, self._cell_rect(step.row, step.col, inset))

    def draw_label(self, row: int, col: int, text: str) -> None:
        # Render text centred in the cell.  Using the default font makes the
        # output deterministic across systems.
        label = self.font.render(text, True, layout.TEXT_COLOR)
        rect = label.get_rect()
        rect.center = (
            col * self.cell_size + self.cell_size // 2,
            row * self.cell_size + self.cell_size // 2,
        )
        self.surface.blit(label, rect)


__all__ = ["RayGridUI", "ensure_pygame"]
