"""Claude API backend for receipt text recognition."""

from __future__ import annotations

import base64
import mimetypes
from pathlib import Path

from . import TextRecognizer

_PROMPT = """\
This image is a photo of a purchase receipt.
Transcribe every line of printed text exactly as it appears, from top to
bottom, one receipt line per output line. Keep prices, quantities and
currency symbols as printed. Do not add commentary, headings or markdown.
"""


class ClaudeTextRecognizer(TextRecognizer):
    """Transcribe receipt photos using Claude's vision capability."""

    def __init__(self, api_key: str = "", model: str = "claude-sonnet-4-5-20250929") -> None:
        self._api_key = api_key
        self._model = model

    async def recognize_lines(self, image_path: str) -> list[str]:
        if not self._api_key:
            raise ValueError(
                "Anthropic API key is not set. "
                "Check the config file or the ANTHROPIC_API_KEY environment variable."
            )

        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic SDK is required: pip install 'beautytrack[ocr]'"
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
            {"type": "text", "text": _PROMPT},
        ]

        client = anthropic.AsyncAnthropic(api_key=self._api_key)
        response = await client.messages.create(
            model=self._model,
            max_tokens=2048,
            messages=[{"role": "user", "content": content}],
        )

        return _split_lines(response.content[0].text)


def _split_lines(text: str) -> list[str]:
    """Split the transcription into lines, dropping markdown fences."""
    return [
        line
        for line in text.splitlines()
        if not line.strip().startswith("```")
    ]
