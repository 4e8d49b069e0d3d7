"""Label text recognition base class and factory."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import ShelfwatchConfig


PROMPT = """\
This image is a photo of a product label or package.
Transcribe all printed text exactly as it appears, line by line.
Keep dates, numbers and punctuation unchanged (for example "MFG: 01/01/2025"
or "Best before 6 months"). Do not translate, summarize or add commentary.
If no text is visible, return an empty response.
"""


class TextRecognizer(ABC):
    """Abstract base for reading printed text off a product label photo."""

    @abstractmethod
    async def recognize_text(self, image_path: str) -> str:
        """Return all text visible on the label, as plain text."""
        ...


def create_recognizer(config: ShelfwatchConfig) -> TextRecognizer:
    """Create a text recognizer based on configuration."""
    backend_name = config.recognition.backend

    match backend_name:
        case "claude":
            from .claude import ClaudeTextRecognizer

            return ClaudeTextRecognizer(
                api_key=config.recognition.claude.api_key,
                model=config.recognition.claude.model,
            )
        case "gemini":
            from .gemini import GeminiTextRecognizer

            return GeminiTextRecognizer(
                api_key=config.recognition.gemini.api_key,
                model=config.recognition.gemini.model,
            )
        case _:
            raise ValueError(
                f"不明な文字認識バックエンド: {backend_name!r}  "
                f"(claude / gemini から選択してください)"
            )


def clean_response(text: str) -> str:
    """Strip surrounding whitespace and markdown fences from model output."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines).strip()
    return cleaned
