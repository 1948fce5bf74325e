"""Dreamgate providers."""

from .base import GenerationService, InputLocator, ModelSelector, PageScan, SubmitStrategy
from .dreamina import DreaminaService
from .results import ExtractionConfig, GenerationResult, ImageBox, ImageResult, select_batch

__all__ = [
    "GenerationService",
    "InputLocator",
    "SubmitStrategy",
    "ModelSelector",
    "PageScan",
    "DreaminaService",
    "ExtractionConfig",
    "GenerationResult",
    "ImageBox",
    "ImageResult",
    "select_batch",
]
