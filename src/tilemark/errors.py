"""Error types raised by the watermark engine."""


class WatermarkError(Exception):
    """Base class for every failure the engine reports to its caller."""


class UnsupportedOrCorruptImage(WatermarkError):
    """Source or stencil bytes could not be decoded, or the result could not be encoded."""


class InvalidColor(WatermarkError, ValueError):
    """A color string is not a ``#RRGGBB`` hex value."""


class FontLoadFailure(WatermarkError):
    """The bold glyph face could not be parsed.

    The face ships with the package, so this points at a packaging defect
    rather than bad input.
    """


class InvalidParameter(WatermarkError, ValueError):
    """A watermark parameter is out of range, e.g. empty text."""


class InvalidTileSpacing(InvalidParameter):
    """Tile pitch or stencil extent collapsed below one pixel, or too many tiles."""


__all__ = [
    "WatermarkError",
    "UnsupportedOrCorruptImage",
    "InvalidColor",
    "FontLoadFailure",
    "InvalidParameter",
    "InvalidTileSpacing",
]
