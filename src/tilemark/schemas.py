from __future__ import annotations

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .color import clamp_opacity


class TextWatermark(BaseModel):
    """Diagonal repeated text."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str = Field(..., min_length=1)
    color: str = "#000000"
    font_size: float = Field(..., gt=0)
    opacity: float
    spacing: float = Field(..., gt=0)

    @field_validator("opacity")
    @classmethod
    def _clamp_opacity(cls, value: float) -> float:
        return clamp_opacity(value)


class ImageWatermark(BaseModel):
    """A desaturated, translucent stencil repeated on an axis-aligned grid."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["image"] = "image"
    stencil_source: bytes = Field(..., repr=False)
    size_percent: float = Field(..., gt=0)
    opacity: float
    spacing: float = Field(..., gt=0)

    @field_validator("opacity")
    @classmethod
    def _clamp_opacity(cls, value: float) -> float:
        return clamp_opacity(value)


WatermarkSpec = Union[TextWatermark, ImageWatermark]


class WatermarkResultItem(BaseModel):
    filename: Optional[str] = None
    data: str
    uniqueId: str


class WatermarkResponse(BaseModel):
    message: str = "Watermark applied successfully"
    results: List[WatermarkResultItem] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    detail: str


__all__ = [
    "TextWatermark",
    "ImageWatermark",
    "WatermarkSpec",
    "WatermarkResultItem",
    "WatermarkResponse",
    "ErrorResponse",
]
