"""Extraction service boundary."""

from .base import ContentPart, ExtractionResponse, ExtractionService

__all__ = [
    "ContentPart",
    "ExtractionResponse",
    "ExtractionService",
]
