from __future__ import annotations

import pytest
from PIL import Image

from tilemark.errors import InvalidTileSpacing, UnsupportedOrCorruptImage
from tilemark.io import ImageFormat, RasterBuffer
from tilemark.pipelines.image import ImageWatermarkPipeline, luminance_stencil
from tilemark.schemas import ImageWatermark


def _canvas(size=(100, 100)) -> RasterBuffer:
    return RasterBuffer(Image.new("RGBA", size, (255, 255, 255, 255)), ImageFormat.PNG)


def _spec(stencil: bytes, **overrides) -> ImageWatermark:
    values = {"stencil_source": stencil, "size_percent": 25, "opacity": 1.0, "spacing": 100}
    values.update(overrides)
    return ImageWatermark(**values)


def test_luminance_of_pure_red() -> None:
    stencil = luminance_stencil(Image.new("RGBA", (1, 1), (255, 0, 0, 255)), 0.5)
    assert stencil.getpixel((0, 0)) == (76, 76, 76, 127)


def test_luminance_keeps_white_and_alpha_shape() -> None:
    source = Image.new("RGBA", (2, 1))
    source.putdata([(255, 255, 255, 255), (0, 0, 255, 40)])
    stencil = luminance_stencil(source, 1.0)
    assert stencil.getpixel((0, 0)) == (255, 255, 255, 255)
    assert stencil.getpixel((1, 0)) == (29, 29, 29, 40)


def test_stencil_is_tiled_from_top_left(stencil_png_bytes) -> None:
    canvas = _canvas()
    metadata = ImageWatermarkPipeline().execute(canvas, _spec(stencil_png_bytes))
    assert metadata["stencilSize"] == [25, 25]
    assert metadata["gaps"] == [2, 2]
    assert metadata["tilesDrawn"] == 16

    inside = canvas.image.getpixel((5, 5))
    assert all(abs(channel - 76) <= 1 for channel in inside[:3])
    assert canvas.image.getpixel((26, 5)) == (255, 255, 255, 255)
    assert canvas.image.getpixel((30, 30))[0] <= 77
    assert canvas.size == (100, 100)


def test_half_opacity_blends_over_white(stencil_png_bytes) -> None:
    canvas = _canvas()
    ImageWatermarkPipeline().execute(canvas, _spec(stencil_png_bytes, opacity=0.5))
    red, green, blue, alpha = canvas.image.getpixel((5, 5))
    assert abs(red - 166) <= 2
    assert red == green == blue
    assert alpha == 255


def test_clamped_opacity_zero_changes_nothing(stencil_png_bytes) -> None:
    canvas = _canvas()
    ImageWatermarkPipeline().execute(canvas, _spec(stencil_png_bytes, opacity=-0.3))
    assert canvas.image.getextrema()[0] == (255, 255)


def test_corrupt_stencil_is_rejected() -> None:
    with pytest.raises(UnsupportedOrCorruptImage):
        ImageWatermarkPipeline().execute(_canvas(), _spec(b"garbage"))


def test_stencil_collapsing_to_zero_pixels_is_rejected(stencil_png_bytes) -> None:
    with pytest.raises(InvalidTileSpacing):
        ImageWatermarkPipeline().execute(_canvas((3, 3)), _spec(stencil_png_bytes, size_percent=10))


def test_tile_budget_is_enforced(stencil_png_bytes) -> None:
    with pytest.raises(InvalidTileSpacing):
        ImageWatermarkPipeline(max_tiles=4).execute(_canvas(), _spec(stencil_png_bytes))
