"""Gemini API backend for label text recognition."""

from __future__ import annotations

import mimetypes
from pathlib import Path

from . import PROMPT, TextRecognizer, clean_response


class GeminiTextRecognizer(TextRecognizer):
    """Read label text using Google Gemini's vision capability."""

    def __init__(self, api_key: str = "", model: str = "gemini-2.0-flash") -> None:
        self._api_key = api_key
        self._model = model

    async def recognize_text(self, image_path: str) -> str:
        if not self._api_key:
            raise ValueError(
                "Gemini APIキーが設定されていません。"
                "設定ファイルまたは GEMINI_API_KEY 環境変数を確認してください。"
            )

        try:
            import google.generativeai as genai
        except ImportError:
            raise ImportError(
                "google-generativeai SDK is required: pip install google-generativeai"
            ) from None

        genai.configure(api_key=self._api_key)
        model = genai.GenerativeModel(self._model)

        data = Path(image_path).read_bytes()
        mime_type = mimetypes.guess_type(image_path)[0] or "image/jpeg"
        response = await model.generate_content_async(
            [{"mime_type": mime_type, "data": data}, PROMPT]
        )
        return clean_response(response.text or "")
