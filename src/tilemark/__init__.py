"""Repeating text and image watermarks for PNG and JPEG pictures."""

__version__ = "1.0.0"

from .compositor import Compositor, WatermarkResult, apply, apply_image_watermark, apply_text_watermark
from .errors import (
    FontLoadFailure,
    InvalidColor,
    InvalidParameter,
    InvalidTileSpacing,
    UnsupportedOrCorruptImage,
    WatermarkError,
)
from .schemas import ImageWatermark, TextWatermark, WatermarkSpec

__all__ = [
    "Compositor",
    "WatermarkResult",
    "apply",
    "apply_text_watermark",
    "apply_image_watermark",
    "TextWatermark",
    "ImageWatermark",
    "WatermarkSpec",
    "WatermarkError",
    "UnsupportedOrCorruptImage",
    "InvalidColor",
    "InvalidParameter",
    "FontLoadFailure",
    "InvalidTileSpacing",
]
