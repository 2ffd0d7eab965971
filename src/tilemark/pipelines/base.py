from __future__ import annotations

from typing import Any, Dict, Optional

import numpy as np
from PIL import Image

from ..color import ColorSpec
from ..io import RasterBuffer
from ..tiling import tile_limit


class PipelineBase:
    """Common surface of the watermark renderers.

    A pipeline mutates the :class:`RasterBuffer` it is handed and returns a
    small metadata dict describing what it drew.
    """

    name = "base"

    def __init__(self, max_tiles: Optional[int] = None, max_tiles_per_megapixel: Optional[float] = None) -> None:
        self.max_tiles = max_tiles
        self.max_tiles_per_megapixel = max_tiles_per_megapixel

    def tile_limit(self, width: int, height: int) -> Optional[int]:
        return tile_limit(width, height, self.max_tiles, self.max_tiles_per_megapixel)

    def execute(self, buffer: RasterBuffer, spec: Any) -> Dict[str, Any]:
        raise NotImplementedError

    def _over_uniform(self, buffer: RasterBuffer, color: ColorSpec, transmittance: np.ndarray) -> None:
        """Blend a premultiplied uniform ``color`` into ``buffer`` in place.

        ``transmittance`` holds, per pixel, the product of ``1 - alpha * coverage``
        over every run drawn there. Repeating the over operator with one
        source color collapses to ``dst * T + (color / alpha) * (1 - T)``.
        """
        if color.a == 0:
            return
        premultiplied = _to_premultiplied(buffer.image)
        source = np.array(color.as_tuple(), dtype=np.float32) / color.a
        weight = transmittance[..., None]
        blended = premultiplied * weight + source * (1.0 - weight)
        buffer.image.paste(_from_premultiplied(blended), (0, 0))


def _to_premultiplied(image: Image.Image) -> np.ndarray:
    pixels = np.asarray(image.convert("RGBA"), dtype=np.float32) / 255.0
    pixels[..., :3] *= pixels[..., 3:4]
    return pixels


def _from_premultiplied(pixels: np.ndarray) -> Image.Image:
    alpha = pixels[..., 3:4]
    rgb = np.divide(pixels[..., :3], alpha, out=np.zeros_like(pixels[..., :3]), where=alpha > 0)
    straight = np.concatenate([rgb, alpha], axis=-1)
    quantized = np.clip(np.rint(straight * 255.0), 0, 255).astype(np.uint8)
    return Image.fromarray(quantized)


__all__ = ["PipelineBase"]
