from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from ..color import apply_opacity, clamp_opacity, parse_color
from ..fonts import load_glyph_face, packaged_font_bytes
from ..io import RasterBuffer
from ..logger import log
from ..schemas import TextWatermark
from ..tiling import (
    ROTATION_DEGREES,
    check_tile_budget,
    count_text_tiles,
    rotate_point,
    text_pitch,
    text_tile_origins,
)
from .base import PipelineBase


@dataclass(frozen=True)
class GlyphRun:
    """Coverage of one rendered string, positioned relative to its baseline origin."""

    coverage: np.ndarray
    left: int
    top: int
    advance: int

    @property
    def is_empty(self) -> bool:
        return self.coverage.size == 0


def render_glyph_run(face: ImageFont.FreeTypeFont, text: str) -> GlyphRun:
    left, top, right, bottom = face.getbbox(text, anchor="ls")
    advance = int(math.floor(face.getlength(text) + 0.5))
    width, height = right - left, bottom - top
    if width <= 0 or height <= 0:
        return GlyphRun(np.zeros((0, 0), dtype=np.float32), 0, 0, advance)
    mask = Image.new("L", (width, height), 0)
    ImageDraw.Draw(mask).text((-left, -top), text, font=face, fill=255, anchor="ls")
    coverage = np.asarray(mask, dtype=np.float32) / 255.0
    return GlyphRun(coverage, left, top, advance)


class TextWatermarkPipeline(PipelineBase):
    """Stamps a string repeatedly along 45 degree diagonals.

    Each run is drawn upright; only its baseline origin is rotated about the
    canvas origin. Origins come from a grid that overshoots the canvas by one
    extent on every side, otherwise the rotated placements leave the corners
    bare.
    """

    name = "text"

    def __init__(
        self,
        font_bytes: Optional[bytes] = None,
        max_tiles: Optional[int] = None,
        max_tiles_per_megapixel: Optional[float] = None,
    ) -> None:
        super().__init__(max_tiles=max_tiles, max_tiles_per_megapixel=max_tiles_per_megapixel)
        self.font_bytes = font_bytes

    def execute(self, buffer: RasterBuffer, spec: TextWatermark) -> Dict[str, Any]:
        width, height = buffer.size
        opacity = clamp_opacity(spec.opacity)
        color = apply_opacity(parse_color(spec.color), opacity)
        pitch = text_pitch(spec.font_size, spec.spacing)
        check_tile_budget(count_text_tiles(width, height, pitch), self.tile_limit(width, height))

        face = load_glyph_face(self.font_bytes or packaged_font_bytes(), spec.font_size)
        run = render_glyph_run(face, spec.text)

        transmittance = np.ones((height, width), dtype=np.float32)
        alpha = color.a / 255.0
        drawn = 0
        if not run.is_empty and alpha > 0:
            absorption = 1.0 - alpha * run.coverage
            for x, y in text_tile_origins(width, height, pitch):
                # Rotate the run's horizontal midpoint, then start the baseline there.
                start_x, start_y = rotate_point(x + run.advance / 2, y, ROTATION_DEGREES)
                if _stamp(transmittance, absorption, int(start_x) + run.left, int(start_y) + run.top):
                    drawn += 1
            self._over_uniform(buffer, color, transmittance)

        log.debug(f"Text watermark: pitch={pitch}px, runs drawn={drawn}, color={color.as_tuple()}")
        return {
            "mode": self.name,
            "pitch": pitch,
            "tilesDrawn": drawn,
            "rotation": ROTATION_DEGREES,
        }


def _stamp(transmittance: np.ndarray, absorption: np.ndarray, origin_x: int, origin_y: int) -> bool:
    """Multiply ``absorption`` into ``transmittance`` at the given top-left, clipped to the canvas."""
    canvas_h, canvas_w = transmittance.shape
    run_h, run_w = absorption.shape
    x0, y0 = max(origin_x, 0), max(origin_y, 0)
    x1, y1 = min(origin_x + run_w, canvas_w), min(origin_y + run_h, canvas_h)
    if x0 >= x1 or y0 >= y1:
        return False
    transmittance[y0:y1, x0:x1] *= absorption[y0 - origin_y:y1 - origin_y, x0 - origin_x:x1 - origin_x]
    return True


__all__ = ["GlyphRun", "render_glyph_run", "TextWatermarkPipeline"]
