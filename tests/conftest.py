from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from tilemark.config import get_settings
from tilemark.main import create_app


@pytest.fixture(autouse=True)
def setup_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("TILEMARK_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("TILEMARK_LOG_TO_FILE", "false")
    monkeypatch.delenv("TILEMARK_DEFAULTS_CONFIG", raising=False)
    monkeypatch.delenv("TILEMARK_FONT_PATH", raising=False)
    get_settings.cache_clear()

    yield

    get_settings.cache_clear()


@pytest.fixture
def test_app() -> Generator[TestClient, None, None]:
    app = create_app()
    with TestClient(app) as client:
        yield client


@pytest.fixture
def sample_png_bytes() -> bytes:
    image = Image.new("RGB", (64, 64), color=(255, 255, 255))
    return to_bytes(image, "PNG")


@pytest.fixture
def sample_jpeg_bytes() -> bytes:
    image = Image.new("RGB", (80, 48), color=(120, 140, 160))
    return to_bytes(image, "JPEG")


@pytest.fixture
def stencil_png_bytes() -> bytes:
    image = Image.new("RGBA", (50, 50), color=(255, 0, 0, 255))
    return to_bytes(image, "PNG")


@pytest.fixture
def bmp_bytes() -> bytes:
    image = Image.new("RGB", (16, 16), color=(10, 20, 30))
    return to_bytes(image, "BMP")


def to_bytes(image: Image.Image, image_format: str) -> bytes:
    buffer = BytesIO()
    image.save(buffer, format=image_format)
    return buffer.getvalue()


def open_image(data: bytes) -> Image.Image:
    image = Image.open(BytesIO(data))
    image.load()
    return image
