"""Anthropic Claude vision extractor."""

import base64
import logging
from typing import Any

import anthropic

from receipt_capture.errors import ExtractionError
from receipt_capture.fields import ExtractedFields, parse_extraction_text
from receipt_capture.prompt import EXPENSE_EXTRACTION_PROMPT
from receipt_capture.providers.base import BaseExtractor

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT = EXPENSE_EXTRACTION_PROMPT


class AnthropicExtractor(BaseExtractor):
    def __init__(self, api_key: str, model: str) -> None:
        self.client = anthropic.Anthropic(api_key=api_key)
        self.model = model

    def extract(self, image_bytes: bytes) -> ExtractedFields:
        b64 = base64.standard_b64encode(image_bytes).decode("utf-8")
        content: list[Any] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": "image/jpeg",
                    "data": b64,
                },
            },
            {"type": "text", "text": "Extract the expense fields from this receipt."},
        ]

        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=1024,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": content}],
            )
        except anthropic.AnthropicError as e:
            raise ExtractionError(f"Anthropic request failed: {e}") from e

        texts = [block.text for block in response.content if getattr(block, "type", None) == "text"]
        text = "".join(texts)
        LOGGER.debug("Anthropic extraction response: %s", text)
        return parse_extraction_text(text)
