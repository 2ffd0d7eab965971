from __future__ import annotations

from typing import Any, Dict

import numpy as np
from PIL import Image

from ..color import clamp_opacity
from ..io import RasterBuffer, decode_image
from ..logger import log
from ..resample import resize, stencil_target_size
from ..schemas import ImageWatermark
from ..tiling import check_tile_budget, count_stencil_tiles, stencil_gaps, stencil_tile_origins
from .base import PipelineBase

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)
# Rounding in the weighted sum can put pure white just under 255.
_LUMA_EPSILON = 1e-6


def luminance_stencil(image: Image.Image, opacity: float) -> Image.Image:
    """Replace every pixel with ``(L, L, L, alpha * opacity)``.

    ``L`` is the Rec. 601 luma of the pixel, so colored marks become neutral
    gray while keeping their shading and transparency.
    """
    pixels = np.asarray(image.convert("RGBA"), dtype=np.float64)
    luma = np.floor(pixels[..., :3] @ LUMA_WEIGHTS + _LUMA_EPSILON)
    alpha = np.floor(pixels[..., 3] * clamp_opacity(opacity))
    stencil = np.stack([luma, luma, luma, alpha], axis=-1)
    return Image.fromarray(np.clip(stencil, 0, 255).astype(np.uint8))


class ImageWatermarkPipeline(PipelineBase):
    """Tiles a grayscale copy of a watermark image across the canvas."""

    name = "image"

    def execute(self, buffer: RasterBuffer, spec: ImageWatermark) -> Dict[str, Any]:
        stencil_source = decode_image(spec.stencil_source)
        target_width, target_height = stencil_target_size(buffer.width, stencil_source.size, spec.size_percent)
        resized = resize(stencil_source, target_width, target_height)
        stencil = luminance_stencil(resized.image, spec.opacity)

        gaps = stencil_gaps(target_width, target_height, spec.spacing)
        count = count_stencil_tiles(buffer.width, buffer.height, stencil.size, gaps)
        check_tile_budget(count, self.tile_limit(buffer.width, buffer.height))

        # Tiles never overlap, so one layer composited once equals compositing each tile in turn.
        layer = Image.new("RGBA", buffer.size, (0, 0, 0, 0))
        drawn = 0
        for x, y in stencil_tile_origins(buffer.width, buffer.height, stencil.size, gaps):
            layer.paste(stencil, (x, y))
            drawn += 1
        buffer.image.alpha_composite(layer)

        log.debug(
            f"Image watermark: stencil={target_width}x{target_height}, gaps={gaps}, tiles drawn={drawn}"
        )
        return {
            "mode": self.name,
            "stencilSize": [target_width, target_height],
            "gaps": list(gaps),
            "tilesDrawn": drawn,
        }


__all__ = ["LUMA_WEIGHTS", "luminance_stencil", "ImageWatermarkPipeline"]
