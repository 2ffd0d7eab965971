from .base import PipelineBase
from .image import ImageWatermarkPipeline
from .text import TextWatermarkPipeline

__all__ = ["PipelineBase", "ImageWatermarkPipeline", "TextWatermarkPipeline"]
