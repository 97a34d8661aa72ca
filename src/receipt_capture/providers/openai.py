"""OpenAI-compatible vision extractor.

``base_url`` points the client at any host speaking the chat-completions
protocol (Groq, a local gateway), which is how the Llama vision models are
reached.
"""

import logging
from typing import Any, Optional

import openai
from openai import OpenAI

from receipt_capture.codec import to_data_url
from receipt_capture.errors import ExtractionError
from receipt_capture.fields import ExtractedFields, parse_extraction_text
from receipt_capture.prompt import EXPENSE_EXTRACTION_PROMPT
from receipt_capture.providers.base import BaseExtractor

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT = EXPENSE_EXTRACTION_PROMPT


class OpenAIExtractor(BaseExtractor):
    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None) -> None:
        self.client = OpenAI(api_key=api_key, base_url=base_url)
        self.model = model

    def extract(self, image_bytes: bytes) -> ExtractedFields:
        content: list[Any] = [
            {"type": "text", "text": "Extract the expense fields from this receipt."},
            {
                "type": "image_url",
                "image_url": {"url": to_data_url(image_bytes), "detail": "high"},
            },
        ]

        try:
            response = self.client.chat.completions.create(
                model=self.model,
                max_tokens=1024,
                temperature=0.1,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": content},
                ],
            )
        except openai.OpenAIError as e:
            raise ExtractionError(f"OpenAI request failed: {e}") from e

        if not response.choices:
            raise ExtractionError("OpenAI returned no choices")
        text = response.choices[0].message.content or ""
        LOGGER.debug("OpenAI extraction response: %s", text)
        return parse_extraction_text(text)
