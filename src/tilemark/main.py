"""FastAPI application exposing the watermark engine."""

from __future__ import annotations

import uuid
from typing import Callable, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, Response, UploadFile
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from . import __version__
from .compositor import Compositor, WatermarkResult
from .config import Settings, get_settings
from .errors import (
    FontLoadFailure,
    InvalidColor,
    InvalidParameter,
    InvalidTileSpacing,
    UnsupportedOrCorruptImage,
    WatermarkError,
)
from .io import to_data_url
from .logger import log, setup_logger
from .schemas import ErrorResponse, WatermarkResponse, WatermarkResultItem, WatermarkSpec
from .validation import InvalidWatermarkRequest, build_image_watermark, build_text_watermark

ERROR_STATUS = {
    UnsupportedOrCorruptImage: 422,
    InvalidColor: 422,
    InvalidParameter: 400,
    FontLoadFailure: 500,
}

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}

ERROR_RESPONSES = {400: {"model": ErrorResponse}, 413: {"model": ErrorResponse}, 422: {"model": ErrorResponse}}


def generate_unique_id() -> str:
    return uuid.uuid4().hex


def status_for(exc: WatermarkError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status
    return 500


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    if settings is None:
        get_settings.cache_clear()
        settings = get_settings()
    setup_logger(settings.log_level, settings.log_dir if settings.log_to_file else None)

    try:
        font_bytes = settings.font_bytes
    except OSError as exc:
        raise FontLoadFailure(f"cannot read font {settings.resolved_font_path}: {exc}") from exc
    compositor = Compositor(
        font_bytes=font_bytes,
        max_tiles=settings.max_tiles,
        max_tiles_per_megapixel=settings.max_tiles_per_megapixel,
    )

    app = FastAPI(
        title="Tilemark Watermark Service",
        description="Stamps repeating text or image watermarks across uploaded pictures",
        version=__version__,
    )

    def get_settings_dep() -> Settings:
        return settings

    def get_compositor() -> Compositor:
        return compositor

    @app.on_event("startup")
    async def startup_event() -> None:
        log.info("Starting Tilemark Watermark Service")
        log.info(f"Glyph face: {settings.resolved_font_path}")
        log.info(
            f"Tile limit per image: {settings.max_tiles}, or {settings.max_tiles_per_megapixel:g} per megapixel"
        )

    @app.exception_handler(WatermarkError)
    async def watermark_error_handler(request: Request, exc: WatermarkError) -> JSONResponse:
        status_code = status_for(exc)
        if status_code >= 500:
            log.exception(f"Watermark engine failure on {request.url.path}: {exc}")
        else:
            log.warning(f"Rejected {request.url.path}: {type(exc).__name__}: {exc}")
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    @app.get("/")
    async def root() -> Dict[str, object]:
        return {
            "service": "Tilemark Watermark Service",
            "version": __version__,
            "status": "running",
            "endpoints": [
                "/api/watermark/text",
                "/api/watermark/image",
                "/api/watermark/bulk/text",
                "/api/watermark/bulk/image",
            ],
        }

    @app.get("/health", response_model=Dict[str, str])
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/watermark/text", response_model=WatermarkResponse, responses=ERROR_RESPONSES)
    async def text_watermark(
        response: Response,
        image: Optional[UploadFile] = File(default=None),
        text: Optional[str] = Form(default=None),
        color: Optional[str] = Form(default=None),
        opacity: Optional[str] = Form(default=None),
        font_size: Optional[str] = Form(default=None, alias="fontSize"),
        spacing: Optional[str] = Form(default=None),
        unique_id: Optional[str] = Form(default=None, alias="uniqueId"),
        settings: Settings = Depends(get_settings_dep),
        compositor: Compositor = Depends(get_compositor),
    ) -> WatermarkResponse:
        if image is None:
            raise HTTPException(status_code=400, detail="Unable to get file")
        spec = _validated(lambda: build_text_watermark(settings, text, color, opacity, font_size, spacing))
        image_bytes = await _read_upload(image, settings.max_upload_bytes)
        return await _single_result(response, compositor, image, image_bytes, spec, unique_id)

    @app.post("/api/watermark/image", response_model=WatermarkResponse, responses=ERROR_RESPONSES)
    async def image_watermark(
        response: Response,
        image: Optional[UploadFile] = File(default=None),
        watermark_image: Optional[UploadFile] = File(default=None, alias="watermarkImage"),
        opacity: Optional[str] = Form(default=None),
        spacing: Optional[str] = Form(default=None),
        watermark_size: Optional[str] = Form(default=None, alias="watermarkSize"),
        unique_id: Optional[str] = Form(default=None, alias="uniqueId"),
        settings: Settings = Depends(get_settings_dep),
        compositor: Compositor = Depends(get_compositor),
    ) -> WatermarkResponse:
        if image is None:
            raise HTTPException(status_code=400, detail="Unable to get file")
        if watermark_image is None:
            raise HTTPException(status_code=400, detail="No watermark image provided")
        stencil_bytes = await _read_upload(watermark_image, settings.max_upload_bytes)
        spec = _validated(lambda: build_image_watermark(settings, stencil_bytes, opacity, spacing, watermark_size))
        image_bytes = await _read_upload(image, settings.max_upload_bytes)
        return await _single_result(response, compositor, image, image_bytes, spec, unique_id)

    @app.post("/api/watermark/bulk/text", response_model=WatermarkResponse, responses=ERROR_RESPONSES)
    async def bulk_text_watermark(
        images: Optional[List[UploadFile]] = File(default=None),
        text: Optional[str] = Form(default=None),
        color: Optional[str] = Form(default=None),
        opacity: Optional[str] = Form(default=None),
        font_size: Optional[str] = Form(default=None, alias="fontSize"),
        spacing: Optional[str] = Form(default=None),
        settings: Settings = Depends(get_settings_dep),
        compositor: Compositor = Depends(get_compositor),
    ) -> WatermarkResponse:
        if not images:
            raise HTTPException(status_code=400, detail="No files provided")
        spec = _validated(lambda: build_text_watermark(settings, text, color, opacity, font_size, spacing))
        return await _bulk_results(compositor, images, spec, settings.max_bulk_upload_bytes)

    @app.post("/api/watermark/bulk/image", response_model=WatermarkResponse, responses=ERROR_RESPONSES)
    async def bulk_image_watermark(
        images: Optional[List[UploadFile]] = File(default=None),
        watermark_image: Optional[UploadFile] = File(default=None, alias="watermarkImage"),
        opacity: Optional[str] = Form(default=None),
        spacing: Optional[str] = Form(default=None),
        watermark_size: Optional[str] = Form(default=None, alias="watermarkSize"),
        settings: Settings = Depends(get_settings_dep),
        compositor: Compositor = Depends(get_compositor),
    ) -> WatermarkResponse:
        if not images:
            raise HTTPException(status_code=400, detail="No files provided")
        if watermark_image is None:
            raise HTTPException(status_code=400, detail="No watermark image provided")
        stencil_bytes = await _read_upload(watermark_image, settings.max_upload_bytes)
        spec = _validated(lambda: build_image_watermark(settings, stencil_bytes, opacity, spacing, watermark_size))
        return await _bulk_results(compositor, images, spec, settings.max_bulk_upload_bytes)

    return app


def _validated(build: Callable[[], WatermarkSpec]) -> WatermarkSpec:
    try:
        return build()
    except (InvalidWatermarkRequest, InvalidTileSpacing) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


async def _read_upload(upload: UploadFile, limit: int) -> bytes:
    data = await upload.read()
    if not data:
        raise HTTPException(status_code=400, detail="uploaded file is empty")
    if len(data) > limit:
        raise HTTPException(status_code=413, detail=f"uploaded file exceeds {limit} bytes")
    return data


def _result_item(filename: Optional[str], result: WatermarkResult, unique_id: str) -> WatermarkResultItem:
    return WatermarkResultItem(
        filename=filename,
        data=to_data_url(result.data, result.format),
        uniqueId=unique_id,
    )


async def _single_result(
    response: Response,
    compositor: Compositor,
    upload: UploadFile,
    image_bytes: bytes,
    spec: WatermarkSpec,
    unique_id: Optional[str],
) -> WatermarkResponse:
    unique_id = unique_id or generate_unique_id()
    log.info(f"Processing {upload.filename} with uniqueId {unique_id}")
    result = await run_in_threadpool(compositor.run, image_bytes, spec)
    response.headers.update(NO_CACHE_HEADERS)
    response.headers["X-Unique-Id"] = unique_id
    return WatermarkResponse(results=[_result_item(upload.filename, result, unique_id)])


async def _bulk_results(
    compositor: Compositor,
    uploads: List[UploadFile],
    spec: WatermarkSpec,
    limit: int,
) -> WatermarkResponse:
    payloads = []
    total = 0
    for upload in uploads:
        data = await upload.read()
        total += len(data)
        if total > limit:
            raise HTTPException(status_code=413, detail=f"bulk upload exceeds {limit} bytes")
        payloads.append((upload.filename, data))

    results: List[WatermarkResultItem] = []
    for filename, data in payloads:
        unique_id = generate_unique_id()
        try:
            result = await run_in_threadpool(compositor.run, data, spec)
        except WatermarkError as exc:
            log.warning(f"Skipping {filename} ({unique_id}): {type(exc).__name__}: {exc}")
            continue
        results.append(_result_item(filename, result, unique_id))
    log.info(f"Bulk watermark finished: {len(results)}/{len(payloads)} files succeeded")
    return WatermarkResponse(results=results)


def main() -> None:
    """Run the service with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "tilemark.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
