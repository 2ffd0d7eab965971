from __future__ import annotations

import io
from importlib import resources

from PIL import ImageFont

from .errors import FontLoadFailure

FONT_PACKAGE = "tilemark.assets.fonts"
FONT_RESOURCE = "SourceCodePro-Bold.ttf"


def packaged_font_bytes() -> bytes:
    """Raw bytes of the bold face shipped inside the package."""
    try:
        return resources.files(FONT_PACKAGE).joinpath(FONT_RESOURCE).read_bytes()
    except (FileNotFoundError, ModuleNotFoundError, OSError) as exc:
        raise FontLoadFailure(f"bundled font {FONT_RESOURCE} is missing: {exc}") from exc


def load_glyph_face(font_bytes: bytes, size: float) -> ImageFont.FreeTypeFont:
    """Parse a TrueType face at ``size`` pixels (points at 72 DPI).

    A fresh face is built on every call; nothing is shared between callers.
    """
    if not font_bytes:
        raise FontLoadFailure("font data is empty")
    try:
        return ImageFont.truetype(io.BytesIO(font_bytes), size=size)
    except (OSError, ValueError) as exc:
        raise FontLoadFailure(f"failed to parse font: {exc}") from exc


__all__ = ["packaged_font_bytes", "load_glyph_face"]
