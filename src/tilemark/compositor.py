"""Decode, stamp and re-encode one image.

Every call owns its :class:`~tilemark.io.RasterBuffer` from decode to encode
and keeps no state afterwards, so calls may run concurrently.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .errors import InvalidParameter, InvalidTileSpacing, WatermarkError
from .io import ImageFormat, decode_image, encode_image
from .logger import log
from .pipelines import ImageWatermarkPipeline, PipelineBase, TextWatermarkPipeline
from .schemas import ImageWatermark, TextWatermark, WatermarkSpec

# Fields whose bad values leave the tile grid without a usable pitch or extent.
_GEOMETRY_FIELDS = {"font_size", "spacing", "size_percent"}


@dataclass
class WatermarkResult:
    data: bytes
    format: ImageFormat
    width: int
    height: int
    metadata: Dict[str, Any] = field(default_factory=dict)


class Compositor:
    """Runs the decode, render and encode stages for one watermark spec.

    ``font_bytes`` is the TrueType face used for text marks; when omitted the
    face bundled with the package is read on each text call.
    """

    def __init__(
        self,
        font_bytes: Optional[bytes] = None,
        max_tiles: Optional[int] = None,
        max_tiles_per_megapixel: Optional[float] = None,
    ) -> None:
        self.font_bytes = font_bytes
        self.max_tiles = max_tiles
        self.max_tiles_per_megapixel = max_tiles_per_megapixel

    def run(self, input_bytes: bytes, spec: WatermarkSpec) -> WatermarkResult:
        started = time.perf_counter()
        pipeline = self._select_pipeline(spec)
        log.info(f"Applying {pipeline.name} watermark: {spec!r}")
        try:
            buffer = decode_image(input_bytes)
            log.info(f"Decoded {buffer.format.value} image {buffer.width}x{buffer.height}")
            metadata = pipeline.execute(buffer, spec)
            data = encode_image(buffer)
        except WatermarkError as exc:
            log.error(f"{pipeline.name} watermark failed: {type(exc).__name__}: {exc}")
            raise
        elapsed = time.perf_counter() - started
        metadata.update({"format": buffer.format.value, "processingTime": round(elapsed, 4)})
        log.info(f"Encoded {buffer.format.value} result: {len(data)} bytes in {elapsed:.3f}s")
        return WatermarkResult(
            data=data,
            format=buffer.format,
            width=buffer.width,
            height=buffer.height,
            metadata=metadata,
        )

    def _select_pipeline(self, spec: WatermarkSpec) -> PipelineBase:
        if isinstance(spec, TextWatermark):
            return TextWatermarkPipeline(
                font_bytes=self.font_bytes,
                max_tiles=self.max_tiles,
                max_tiles_per_megapixel=self.max_tiles_per_megapixel,
            )
        if isinstance(spec, ImageWatermark):
            return ImageWatermarkPipeline(
                max_tiles=self.max_tiles, max_tiles_per_megapixel=self.max_tiles_per_megapixel
            )
        raise TypeError(f"unsupported watermark spec: {type(spec).__name__}")


def apply(input_bytes: bytes, spec: WatermarkSpec, font_bytes: Optional[bytes] = None) -> bytes:
    return Compositor(font_bytes=font_bytes).run(input_bytes, spec).data


def apply_text_watermark(
    image_bytes: bytes,
    text: str,
    color_hex: str,
    opacity: float,
    font_size: float,
    spacing: float,
    font_bytes: Optional[bytes] = None,
) -> bytes:
    spec = _build_spec(
        TextWatermark, text=text, color=color_hex, opacity=opacity, font_size=font_size, spacing=spacing
    )
    return apply(image_bytes, spec, font_bytes=font_bytes)


def apply_image_watermark(
    image_bytes: bytes,
    stencil_bytes: bytes,
    opacity: float,
    spacing: float,
    size_percent: float,
) -> bytes:
    spec = _build_spec(
        ImageWatermark,
        stencil_source=stencil_bytes,
        opacity=opacity,
        spacing=spacing,
        size_percent=size_percent,
    )
    return apply(image_bytes, spec)


def _build_spec(model: type, **values: Any) -> WatermarkSpec:
    try:
        return model(**values)
    except ValidationError as exc:
        fields = {str(error["loc"][0]) for error in exc.errors() if error.get("loc")}
        message = "; ".join(f"{'.'.join(map(str, error['loc']))}: {error['msg']}" for error in exc.errors())
        if fields & _GEOMETRY_FIELDS:
            raise InvalidTileSpacing(message) from exc
        raise InvalidParameter(message) from exc


__all__ = [
    "Compositor",
    "WatermarkResult",
    "apply",
    "apply_text_watermark",
    "apply_image_watermark",
]
