"""Capture pipeline: prompts, extraction, normalization and orchestration."""

from .capture import (
    CaptureOrchestrator,
    CaptureRequest,
    CaptureResult,
    ImageUpload,
    PipelineRun,
    PipelineStage,
)
from .json_extract import extract_and_parse, extract_json_object, parse_json_object
from .normalizer import normalize_brain

__all__ = [
    "CaptureOrchestrator",
    "CaptureRequest",
    "CaptureResult",
    "ImageUpload",
    "PipelineRun",
    "PipelineStage",
    "extract_and_parse",
    "extract_json_object",
    "normalize_brain",
    "parse_json_object",
]
