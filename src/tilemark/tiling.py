"""Tile placement grids.

Every grid here is a pure function of canvas bounds, tile extent and
spacing. Nothing is cached.
"""

from __future__ import annotations

import math
from typing import Iterator, Optional, Tuple

from .errors import InvalidTileSpacing

# Text runs are placed along a 45 degree diagonal; the grid therefore spans
# one extra canvas extent on each side so the rotated placements still reach
# every corner.
ROTATION_DEGREES = 45.0


def text_pitch(font_size: float, spacing: float) -> int:
    """Distance in pixels between neighbouring text runs on both axes.

    ``spacing`` is a percentage multiplier on a base unit of
    ``font_size / 100``.
    """
    pitch = int((font_size / 100) * spacing)
    if pitch < 1:
        raise InvalidTileSpacing(
            f"font size {font_size} with spacing {spacing} gives a pitch below one pixel"
        )
    return pitch


def expanded_axis(lower: int, upper: int, pitch: int) -> range:
    """Origins along one axis, from ``lower - (upper - lower)`` up to ``upper * 2``."""
    return range(lower - (upper - lower), upper * 2, pitch)


def text_tile_origins(width: int, height: int, pitch: int) -> Iterator[Tuple[int, int]]:
    for y in expanded_axis(0, height, pitch):
        for x in expanded_axis(0, width, pitch):
            yield x, y


def count_text_tiles(width: int, height: int, pitch: int) -> int:
    return len(expanded_axis(0, width, pitch)) * len(expanded_axis(0, height, pitch))


def rotate_point(x: float, y: float, degrees: float = ROTATION_DEGREES) -> Tuple[float, float]:
    """Rotate ``(x, y)`` about the canvas origin."""
    radians = math.radians(degrees)
    sin, cos = math.sin(radians), math.cos(radians)
    return x * cos - y * sin, x * sin + y * cos


def stencil_gaps(stencil_width: int, stencil_height: int, spacing: float) -> Tuple[int, int]:
    """Gap in pixels left between neighbouring stencils.

    The division by ten damps the spacing value so the same number produces
    a much tighter grid than it does for text.
    """
    gap_x = int((stencil_width * spacing / 100) / 10)
    gap_y = int((stencil_height * spacing / 100) / 10)
    return gap_x, gap_y


def stencil_tile_origins(
    width: int,
    height: int,
    stencil_size: Tuple[int, int],
    gaps: Tuple[int, int],
) -> Iterator[Tuple[int, int]]:
    step_x, step_y = _stencil_steps(stencil_size, gaps)
    for y in range(0, height, step_y):
        for x in range(0, width, step_x):
            yield x, y


def count_stencil_tiles(width: int, height: int, stencil_size: Tuple[int, int], gaps: Tuple[int, int]) -> int:
    step_x, step_y = _stencil_steps(stencil_size, gaps)
    return len(range(0, width, step_x)) * len(range(0, height, step_y))


def tile_limit(
    width: int,
    height: int,
    max_tiles: Optional[int],
    per_megapixel: Optional[float] = None,
) -> Optional[int]:
    """Largest tile count allowed on a ``width`` x ``height`` canvas.

    ``max_tiles`` is a floor; with ``per_megapixel`` set the limit grows with
    canvas area so large photos keep the same tile density as small ones.
    """
    if max_tiles is None:
        return None
    if not per_megapixel:
        return max_tiles
    return max(max_tiles, int(per_megapixel * width * height / 1_000_000))


def check_tile_budget(count: int, max_tiles: Optional[int]) -> None:
    if max_tiles is not None and count > max_tiles:
        raise InvalidTileSpacing(f"spacing produces {count} tiles, the limit is {max_tiles}")


def _stencil_steps(stencil_size: Tuple[int, int], gaps: Tuple[int, int]) -> Tuple[int, int]:
    step_x = stencil_size[0] + gaps[0]
    step_y = stencil_size[1] + gaps[1]
    if step_x < 1 or step_y < 1:
        raise InvalidTileSpacing(f"stencil step {step_x}x{step_y} must be at least one pixel")
    return step_x, step_y


__all__ = [
    "ROTATION_DEGREES",
    "text_pitch",
    "expanded_axis",
    "text_tile_origins",
    "count_text_tiles",
    "rotate_point",
    "stencil_gaps",
    "stencil_tile_origins",
    "count_stencil_tiles",
    "tile_limit",
    "check_tile_budget",
]
