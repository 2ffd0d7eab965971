"""Decoding and encoding of raster images.

Only PNG and JPEG are accepted. The format detected at decode time travels
with the pixels in :class:`RasterBuffer` so the result is always encoded in
the format it arrived in.
"""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import UnsupportedOrCorruptImage
from .logger import log


class ImageFormat(str, Enum):
    """Image encodings the engine can read and write."""

    PNG = "png"
    JPEG = "jpeg"

    @property
    def pillow_name(self) -> str:
        return self.value.upper()

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"

    @classmethod
    def from_pillow(cls, name: str | None) -> "ImageFormat":
        for member in cls:
            if member.pillow_name == (name or "").upper():
                return member
        raise UnsupportedOrCorruptImage(f"unsupported image format: {name}")


SUPPORTED_PILLOW_FORMATS = tuple(member.pillow_name for member in ImageFormat)
WIDE_GRAY_MODES = ("I;16", "I;16B", "I;16L", "I;16N", "I")


@dataclass
class RasterBuffer:
    """RGBA pixels of one image plus the format it was decoded from.

    The buffer is mutated in place while a watermark is composited; its size
    never changes after decoding.
    """

    image: Image.Image
    format: ImageFormat

    @property
    def size(self) -> Tuple[int, int]:
        return self.image.size

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height


def decode_image(data: bytes) -> RasterBuffer:
    """Decode PNG or JPEG bytes into an RGBA :class:`RasterBuffer`."""
    if not data:
        raise UnsupportedOrCorruptImage("image payload is empty")
    try:
        with Image.open(io.BytesIO(data), formats=SUPPORTED_PILLOW_FORMATS) as opened:
            image_format = ImageFormat.from_pillow(opened.format)
            opened.load()
            rgba = _to_eight_bit(opened).convert("RGBA")
    except UnsupportedOrCorruptImage:
        raise
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exc:
        raise UnsupportedOrCorruptImage(f"failed to decode image: {exc}") from exc
    return RasterBuffer(image=rgba, format=image_format)


def encode_image(buffer: RasterBuffer, image_format: ImageFormat | None = None) -> bytes:
    """Encode ``buffer`` in its own format.

    Passing a different ``image_format`` is rejected: output never changes
    encoding. PNG output drops the alpha channel when every pixel is opaque;
    JPEG output always drops alpha and uses the encoder's default quality.
    """
    try:
        target = buffer.format if image_format is None else ImageFormat(image_format)
    except ValueError as exc:
        raise UnsupportedOrCorruptImage(f"unsupported output format: {image_format}") from exc
    if target is not buffer.format:
        raise UnsupportedOrCorruptImage(
            f"refusing to transcode {buffer.format.value} input to {target.value}"
        )

    image = buffer.image
    if target is ImageFormat.JPEG:
        image = image.convert("RGB")
    elif _is_opaque(image):
        image = image.convert("RGB")

    output = io.BytesIO()
    try:
        image.save(output, format=target.pillow_name)
    except (OSError, ValueError, KeyError) as exc:
        raise UnsupportedOrCorruptImage(f"failed to encode {target.value} image: {exc}") from exc
    data = output.getvalue()
    log.debug(f"Encoded {target.value} image {image.size[0]}x{image.size[1]}: {len(data)} bytes")
    return data


def to_data_url(data: bytes, image_format: ImageFormat) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{image_format.mime_type};base64,{encoded}"


def _to_eight_bit(image: Image.Image) -> Image.Image:
    """Scale 16-bit grayscale (and its 32-bit container) down to 8-bit ``L``.

    Converting these modes straight to RGBA clips every sample above 255.
    """
    if image.mode not in WIDE_GRAY_MODES:
        return image
    samples = np.clip(np.asarray(image).astype(np.int64), 0, 0xFFFF)
    return Image.fromarray((samples >> 8).astype(np.uint8))


def _is_opaque(image: Image.Image) -> bool:
    if image.mode != "RGBA":
        return True
    low, _high = image.getchannel("A").getextrema()
    return low == 255


__all__ = [
    "ImageFormat",
    "RasterBuffer",
    "SUPPORTED_PILLOW_FORMATS",
    "decode_image",
    "encode_image",
    "to_data_url",
]
