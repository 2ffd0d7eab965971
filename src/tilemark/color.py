from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Tuple

from .errors import InvalidColor

_HEX_PATTERN = re.compile(r"^#(?P<digits>[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


@dataclass(frozen=True)
class ColorSpec:
    """8-bit RGBA color.

    After :func:`apply_opacity` the channels are premultiplied by the
    opacity factor, so ``r``, ``g`` and ``b`` never exceed ``a``.
    """

    r: int
    g: int
    b: int
    a: int = 255

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return self.r, self.g, self.b, self.a


def parse_color(value: str) -> ColorSpec:
    """Parse ``#RRGGBB`` (or the ``#RGB`` shorthand) into an opaque color."""
    if not isinstance(value, str):
        raise InvalidColor(f"color must be a string, got {type(value).__name__}")
    match = _HEX_PATTERN.match(value.strip())
    if match is None:
        raise InvalidColor(f"invalid hex color: {value!r}")
    digits = match.group("digits")
    if len(digits) == 3:
        digits = "".join(ch * 2 for ch in digits)
    return ColorSpec(
        r=int(digits[0:2], 16),
        g=int(digits[2:4], 16),
        b=int(digits[4:6], 16),
    )


def apply_opacity(color: ColorSpec, factor: float) -> ColorSpec:
    """Scale every channel, alpha included, by ``factor`` and truncate to 8 bits.

    ``factor`` is expected to be clamped to [0, 1] already.
    """
    return ColorSpec(
        r=_scale_channel(color.r, factor),
        g=_scale_channel(color.g, factor),
        b=_scale_channel(color.b, factor),
        a=_scale_channel(color.a, factor),
    )


def clamp_opacity(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def _scale_channel(channel: int, factor: float) -> int:
    return max(0, min(255, int(channel * factor)))


__all__ = ["ColorSpec", "parse_color", "apply_opacity", "clamp_opacity"]
