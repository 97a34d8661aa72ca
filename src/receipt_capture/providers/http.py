"""Extractor backed by a plain JSON-over-HTTP analysis endpoint.

Request body::

    {"imagen": "data:image/jpeg;base64,..."}

Successful response body::

    {"success": true, "datos": {"monto": 1200, "descripcion": "...",
                                "fecha": "2024-05-01", "tipo_gasto": "material"}}

Every field inside ``datos`` is optional.
"""

import logging
from typing import Optional

import requests

from receipt_capture.codec import to_data_url
from receipt_capture.errors import ExtractionError
from receipt_capture.fields import ExtractedFields
from receipt_capture.providers.base import BaseExtractor

LOGGER = logging.getLogger(__name__)

IMAGE_FIELD = "imagen"
RESULT_FIELD = "datos"
HEADERS = {"Accept": "application/json"}


class HttpExtractor(BaseExtractor):
    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()

    def extract(self, image_bytes: bytes) -> ExtractedFields:
        body = {IMAGE_FIELD: to_data_url(image_bytes)}
        LOGGER.info("POST %s (%d image bytes)", self.endpoint, len(image_bytes))
        try:
            r = self.session.post(
                self.endpoint, json=body, headers=HEADERS, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise ExtractionError(f"Extraction request failed: {e}") from e

        if not r.ok:
            raise ExtractionError(f"Extraction service returned {r.status_code}: {r.text[:200]}")

        try:
            payload = r.json()
        except ValueError as e:
            raise ExtractionError("Extraction service returned malformed JSON") from e

        fields = payload.get(RESULT_FIELD) if isinstance(payload, dict) else None
        if not isinstance(fields, dict):
            raise ExtractionError(f"Extraction response has no {RESULT_FIELD!r} object")
        return ExtractedFields.from_payload(fields)
