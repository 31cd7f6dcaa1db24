"""Text recognizer base class and factory.

A recognizer turns a receipt photo into text lines in top-to-bottom
reading order. Nothing else about the recognition engine leaks into the
ledger.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import BeautyTrackConfig


class TextRecognizer(ABC):
    """Abstract base for receipt text recognition."""

    @abstractmethod
    async def recognize_lines(self, image_path: str) -> list[str]:
        """Return the recognized lines of text in reading order."""
        ...


def create_recognizer(config: BeautyTrackConfig) -> TextRecognizer:
    """Create a text recognizer based on configuration."""
    backend_name = config.ocr.backend

    match backend_name:
        case "claude":
            from .claude import ClaudeTextRecognizer

            return ClaudeTextRecognizer(
                api_key=config.ocr.claude.api_key,
                model=config.ocr.claude.model,
            )
        case _:
            raise ValueError(f"Unknown OCR backend: {backend_name!r} (choose: claude)")
