"""Stencil resizing."""

from __future__ import annotations

from typing import Tuple

from PIL import Image

from .errors import InvalidTileSpacing
from .io import RasterBuffer

# Absorbs float error in width * (target / width) so 25.0 never truncates to 24.
_EPSILON = 1e-9


def stencil_target_size(canvas_width: int, stencil_size: Tuple[int, int], size_percent: float) -> Tuple[int, int]:
    """Size of a stencil scaled to ``size_percent`` of the canvas width.

    The aspect ratio of the stencil is kept.
    """
    stencil_width, stencil_height = stencil_size
    if stencil_width <= 0 or stencil_height <= 0:
        raise InvalidTileSpacing(f"stencil has no pixels: {stencil_width}x{stencil_height}")
    scale = canvas_width * (size_percent / 100) / stencil_width
    return int(stencil_width * scale + _EPSILON), int(stencil_height * scale + _EPSILON)


def resize(buffer: RasterBuffer, target_width: int, target_height: int) -> RasterBuffer:
    """Return a Lanczos-resampled copy of ``buffer`` at the given size."""
    if target_width < 1 or target_height < 1:
        raise InvalidTileSpacing(
            f"stencil would be resized to {target_width}x{target_height}, at least 1x1 is required"
        )
    if (target_width, target_height) == buffer.size:
        return RasterBuffer(image=buffer.image.copy(), format=buffer.format)
    resized = buffer.image.resize((target_width, target_height), Image.LANCZOS)
    return RasterBuffer(image=resized, format=buffer.format)


__all__ = ["stencil_target_size", "resize"]
