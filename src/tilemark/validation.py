"""Turns raw form values into validated watermark specs.

Absent or unparsable numbers fall back to the configured defaults and
opacity is clamped. Anything that still cannot form a valid spec is a
client error. The engine never guesses at values itself.
"""

from __future__ import annotations

import math
from typing import Optional

from pydantic import ValidationError

from .color import clamp_opacity, parse_color
from .config import Settings
from .errors import InvalidTileSpacing
from .logger import log
from .schemas import ImageWatermark, TextWatermark


class InvalidWatermarkRequest(ValueError):
    """Form values that cannot be turned into a watermark spec."""


def parse_float(raw: Optional[str], default: float, field: str) -> float:
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        log.warning(f"Could not parse {field}={raw!r}, using default {default}")
        return default
    if math.isnan(value) or math.isinf(value):
        log.warning(f"Non-finite {field}={raw!r}, using default {default}")
        return default
    return value


def _require_positive(value: float, field: str) -> float:
    if value <= 0:
        raise InvalidTileSpacing(f"{field} must be positive, got {value}")
    return value


def build_text_watermark(
    settings: Settings,
    text: Optional[str],
    color: Optional[str] = None,
    opacity: Optional[str] = None,
    font_size: Optional[str] = None,
    spacing: Optional[str] = None,
) -> TextWatermark:
    if not text:
        raise InvalidWatermarkRequest("No text provided for watermark")
    color = color or settings.default_color
    # A bad color fails the whole request, bulk included, before any file is decoded.
    parse_color(color)
    spec_values = {
        "text": text,
        "color": color,
        "opacity": clamp_opacity(parse_float(opacity, settings.default_opacity, "opacity")),
        "font_size": _require_positive(parse_float(font_size, settings.default_font_size, "fontSize"), "fontSize"),
        "spacing": _require_positive(parse_float(spacing, settings.default_spacing, "spacing"), "spacing"),
    }
    try:
        return TextWatermark(**spec_values)
    except ValidationError as exc:
        raise InvalidWatermarkRequest(str(exc)) from exc


def build_image_watermark(
    settings: Settings,
    stencil_source: Optional[bytes],
    opacity: Optional[str] = None,
    spacing: Optional[str] = None,
    size_percent: Optional[str] = None,
) -> ImageWatermark:
    if not stencil_source:
        raise InvalidWatermarkRequest("No watermark image provided")
    spec_values = {
        "stencil_source": stencil_source,
        "opacity": clamp_opacity(parse_float(opacity, settings.default_opacity, "opacity")),
        "spacing": _require_positive(parse_float(spacing, settings.default_spacing, "spacing"), "spacing"),
        "size_percent": _require_positive(
            parse_float(size_percent, settings.default_size_percent, "watermarkSize"), "watermarkSize"
        ),
    }
    try:
        return ImageWatermark(**spec_values)
    except ValidationError as exc:
        raise InvalidWatermarkRequest(str(exc)) from exc


__all__ = [
    "InvalidWatermarkRequest",
    "parse_float",
    "build_text_watermark",
    "build_image_watermark",
]
