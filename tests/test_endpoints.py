from __future__ import annotations

import base64
import importlib
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

import tilemark.main
from tilemark.config import get_settings
from tilemark.main import create_app

from .conftest import open_image


def _decode_result(item: dict):
    header, payload = item["data"].split(",", 1)
    return header, open_image(base64.b64decode(payload))


def test_health(test_app) -> None:
    response = test_app.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_root_lists_endpoints(test_app) -> None:
    data = test_app.get("/").json()
    assert data["service"] == "Tilemark Watermark Service"
    assert "/api/watermark/text" in data["endpoints"]


def test_text_watermark_png(test_app, sample_png_bytes) -> None:
    response = test_app.post(
        "/api/watermark/text",
        files={"image": ("photo.png", sample_png_bytes, "image/png")},
        data={"text": "Sample", "color": "#336699", "opacity": "0.7", "fontSize": "20", "spacing": "150", "uniqueId": "abc"},
    )
    assert response.status_code == 200
    assert response.headers["X-Unique-Id"] == "abc"
    assert "no-store" in response.headers["Cache-Control"]
    assert response.headers["Pragma"] == "no-cache"
    body = response.json()
    assert body["message"] == "Watermark applied successfully"
    item = body["results"][0]
    assert item["filename"] == "photo.png"
    assert item["uniqueId"] == "abc"
    header, image = _decode_result(item)
    assert header == "data:image/png;base64"
    assert image.size == (64, 64)


def test_text_watermark_jpeg_keeps_format_and_generates_id(test_app, sample_jpeg_bytes) -> None:
    response = test_app.post(
        "/api/watermark/text",
        files={"image": ("photo.jpg", sample_jpeg_bytes, "image/jpeg")},
        data={"text": "Sample", "opacity": "not-a-number"},
    )
    assert response.status_code == 200
    assert response.headers["X-Unique-Id"]
    header, image = _decode_result(response.json()["results"][0])
    assert header == "data:image/jpeg;base64"
    assert image.format == "JPEG"
    assert image.size == (80, 48)


def test_text_watermark_requires_text(test_app, sample_png_bytes) -> None:
    response = test_app.post(
        "/api/watermark/text",
        files={"image": ("photo.png", sample_png_bytes, "image/png")},
        data={"color": "#000000"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "No text provided for watermark"


def test_text_watermark_requires_image(test_app) -> None:
    response = test_app.post("/api/watermark/text", data={"text": "Sample"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Unable to get file"


def test_invalid_color_is_unprocessable(test_app, sample_png_bytes) -> None:
    response = test_app.post(
        "/api/watermark/text",
        files={"image": ("photo.png", sample_png_bytes, "image/png")},
        data={"text": "Sample", "color": "blue"},
    )
    assert response.status_code == 422
    assert "invalid hex color" in response.json()["detail"]


def test_unsupported_image_is_unprocessable(test_app, bmp_bytes) -> None:
    response = test_app.post(
        "/api/watermark/text",
        files={"image": ("photo.bmp", bmp_bytes, "image/bmp")},
        data={"text": "Sample"},
    )
    assert response.status_code == 422


def test_zero_spacing_is_a_bad_request(test_app, sample_png_bytes) -> None:
    response = test_app.post(
        "/api/watermark/text",
        files={"image": ("photo.png", sample_png_bytes, "image/png")},
        data={"text": "Sample", "spacing": "0"},
    )
    assert response.status_code == 400


def test_oversized_upload_is_rejected(sample_png_bytes, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TILEMARK_MAX_UPLOAD_BYTES", "16")
    get_settings.cache_clear()
    with TestClient(create_app()) as client:
        response = client.post(
            "/api/watermark/text",
            files={"image": ("photo.png", sample_png_bytes, "image/png")},
            data={"text": "Sample"},
        )
    assert response.status_code == 413


def test_image_watermark(test_app, sample_png_bytes, stencil_png_bytes) -> None:
    response = test_app.post(
        "/api/watermark/image",
        files={
            "image": ("photo.png", sample_png_bytes, "image/png"),
            "watermarkImage": ("logo.png", stencil_png_bytes, "image/png"),
        },
        data={"opacity": "0.8", "spacing": "100", "watermarkSize": "25"},
    )
    assert response.status_code == 200
    header, image = _decode_result(response.json()["results"][0])
    assert header == "data:image/png;base64"
    assert image.size == (64, 64)
    red, green, blue = image.convert("RGB").getpixel((2, 2))
    assert red == green == blue
    assert red < 255


def test_image_watermark_requires_stencil(test_app, sample_png_bytes) -> None:
    response = test_app.post(
        "/api/watermark/image",
        files={"image": ("photo.png", sample_png_bytes, "image/png")},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "No watermark image provided"


def test_bulk_text_skips_failed_files(test_app, sample_png_bytes, sample_jpeg_bytes, bmp_bytes) -> None:
    response = test_app.post(
        "/api/watermark/bulk/text",
        files=[
            ("images", ("a.png", sample_png_bytes, "image/png")),
            ("images", ("b.bmp", bmp_bytes, "image/bmp")),
            ("images", ("c.jpg", sample_jpeg_bytes, "image/jpeg")),
        ],
        data={"text": "Sample"},
    )
    assert response.status_code == 200
    results = response.json()["results"]
    assert [item["filename"] for item in results] == ["a.png", "c.jpg"]
    assert results[0]["uniqueId"] != results[1]["uniqueId"]
    assert results[1]["data"].startswith("data:image/jpeg;base64,")


def test_bulk_image(test_app, sample_png_bytes, stencil_png_bytes) -> None:
    response = test_app.post(
        "/api/watermark/bulk/image",
        files=[
            ("images", ("a.png", sample_png_bytes, "image/png")),
            ("images", ("b.png", sample_png_bytes, "image/png")),
            ("watermarkImage", ("logo.png", stencil_png_bytes, "image/png")),
        ],
    )
    assert response.status_code == 200
    assert len(response.json()["results"]) == 2


def test_bulk_requires_files(test_app) -> None:
    response = test_app.post("/api/watermark/bulk/text", data={"text": "Sample"})
    assert response.status_code == 400
    assert response.json()["detail"] == "No files provided"


def test_bulk_text_with_bad_color_fails_the_whole_request(test_app, sample_png_bytes, sample_jpeg_bytes) -> None:
    response = test_app.post(
        "/api/watermark/bulk/text",
        files=[
            ("images", ("a.png", sample_png_bytes, "image/png")),
            ("images", ("b.jpg", sample_jpeg_bytes, "image/jpeg")),
        ],
        data={"text": "Sample", "color": "notacolor"},
    )
    assert response.status_code == 422
    assert "invalid hex color" in response.json()["detail"]


def test_importing_the_service_creates_no_log_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("TILEMARK_LOG_TO_FILE", raising=False)
    monkeypatch.delenv("TILEMARK_LOG_DIR", raising=False)
    get_settings.cache_clear()

    module = importlib.reload(tilemark.main)

    assert not hasattr(module, "app")
    assert not (tmp_path / "logs").exists()


def test_main_runs_uvicorn_with_app_factory(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []
    monkeypatch.setattr(tilemark.main.uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))

    tilemark.main.main()

    target, kwargs = calls[0]
    assert target == "tilemark.main:create_app"
    assert kwargs["factory"] is True
    assert kwargs["port"] == get_settings().port
