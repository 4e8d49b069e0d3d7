"""Claude API backend for label text recognition."""

from __future__ import annotations

import base64
import mimetypes
from pathlib import Path

from . import PROMPT, TextRecognizer, clean_response


class ClaudeTextRecognizer(TextRecognizer):
    """Read label text using Claude's vision capability."""

    def __init__(self, api_key: str = "", model: str = "claude-sonnet-4-5-20250929") -> None:
        self._api_key = api_key
        self._model = model

    async def recognize_text(self, image_path: str) -> str:
        if not self._api_key:
            raise ValueError(
                "Anthropic APIキーが設定されていません。"
                "設定ファイルまたは ANTHROPIC_API_KEY 環境変数を確認してください。"
            )

        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic SDK is required: pip install anthropic"
            ) from None

        data = Path(image_path).read_bytes()
        media_type = mimetypes.guess_type(image_path)[0] or "image/jpeg"
        content = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": media_type,
                    "data": base64.standard_b64encode(data).decode(),
                },
            },
            {"type": "text", "text": PROMPT},
        ]

        client = anthropic.AsyncAnthropic(api_key=self._api_key)
        response = await client.messages.create(
            model=self._model,
            max_tokens=1024,
            messages=[{"role": "user", "content": content}],
        )

        if not response.content:
            return ""
        return clean_response(response.content[0].text)
