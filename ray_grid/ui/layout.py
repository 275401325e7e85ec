"""Layout constants for the ray grid UI."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

# Tile metrics
TILE_SIZE: int = 72
GRID_PADDING: int = 24
BOARD_OUTER_PADDING: int = 48

# Status footer metrics
FOOTER_HEIGHT: int = 96
FOOTER_PADDING: int = 16

# Colors expressed as RGB tuples
BACKGROUND_COLOR: Tuple[int, int, int] = (12, 14, 26)
BOARD_BACKGROUND_COLOR: Tuple[int, int, int] = (20, 24, 44)
FOOTER_BACKGROUND_COLOR: Tuple[int, int, int] = (40, 44, 72)
GRID_LINE_COLOR: Tuple[int, int, int] = (58, 64, 96)
TEXT_COLOR: Tuple[int, int, int] = (232, 236, 244)
EMPTY_COLOR: Tuple[int, int, int] = (24, 24, 30)
PLAYER_COLOR: Tuple[int, int, int] = (80, 140, 255)
FIXED_COLOR: Tuple[int, int, int] = (190, 80, 100)
RAY_COLOR: Tuple[int, int, int] = (255, 140, 60)
RAY_HEAD_COLOR: Tuple[int, int, int] = (255, 220, 110)
ENTRY_COLOR: Tuple[int, int, int] = (130, 210, 255)
EXIT_COLOR: Tuple[int, int, int] = (140, 255, 180)
ACCENT_COLOR: Tuple[int, int, int] = (255, 94, 0)


@dataclass(frozen=True)
class BoardGeometry:
    """Pixel rectangles for the major UI regions."""

    board: Tuple[int, int, int, int]
    footer: Tuple[int, int, int, int]
    window: Tuple[int, int]


def compute_geometry(grid_size: int, tile_size: int = TILE_SIZE) -> BoardGeometry:
    """Compute useful rectangles for rendering the game window.

    The board is surrounded by :data:`BOARD_OUTER_PADDING` so the entry and
    exit markers can be drawn just outside the grid.
    """

    board_side = grid_size * tile_size
    board_x = BOARD_OUTER_PADDING
    board_y = BOARD_OUTER_PADDING

    footer_x = board_x
    footer_y = board_y + board_side + GRID_PADDING

    window_width = board_x + board_side + BOARD_OUTER_PADDING
    window_height = footer_y + FOOTER_HEIGHT + BOARD_OUTER_PADDING // 2

    return BoardGeometry(
        board=(board_x, board_y, board_side, board_side),
        footer=(footer_x, footer_y, board_side, FOOTER_HEIGHT),
        window=(window_width, window_height),
    )
