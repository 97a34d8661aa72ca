"""Extracted expense fields and the conservative form-merge rule."""

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from receipt_capture.errors import ExtractionError
from receipt_capture.postprocessing import parse_amount, strip_code_fences

LOGGER = logging.getLogger(__name__)

# Wire names used by the extraction service and the expense form.
AMOUNT = "monto"
DESCRIPTION = "descripcion"
DATE = "fecha"
CATEGORY = "tipo_gasto"

FORM_FIELDS = (AMOUNT, DESCRIPTION, DATE, CATEGORY)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _format_amount(amount: float) -> str:
    return f"{amount:.2f}".rstrip("0").rstrip(".")


@dataclass
class ExtractedFields:
    """Fields returned by an extractor.  Any of them may be missing."""

    amount: Optional[float] = None
    description: Optional[str] = None
    date: Optional[str] = None
    category: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ExtractedFields":
        return cls(
            amount=parse_amount(payload.get(AMOUNT)),
            description=_text(payload.get(DESCRIPTION)),
            date=_text(payload.get(DATE)),
            category=_text(payload.get(CATEGORY)),
        )

    def as_form_values(self) -> dict[str, str]:
        """Non-empty fields keyed by form name, as form strings."""
        values = {
            AMOUNT: _format_amount(self.amount) if self.amount is not None else None,
            DESCRIPTION: self.description,
            DATE: self.date,
            CATEGORY: self.category,
        }
        return {key: value for key, value in values.items() if value}

    def is_empty(self) -> bool:
        return not self.as_form_values()


def parse_extraction_text(text: Optional[str]) -> ExtractedFields:
    """Parse a model's JSON answer into :class:`ExtractedFields`."""
    if not text:
        raise ExtractionError("Empty response from extractor")
    try:
        payload = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Extractor returned malformed JSON: {e}") from e
    if not isinstance(payload, dict):
        raise ExtractionError(f"Expected a JSON object, got {type(payload).__name__}")
    return ExtractedFields.from_payload(payload)


def merge_into_form(form: Mapping[str, str], fields: ExtractedFields) -> dict[str, str]:
    """Return *form* updated with every non-empty extracted value.

    Values already in the form are only replaced when the extractor produced
    something for that field; a missing or null field never blanks them.
    """
    merged = dict(form)
    updates = fields.as_form_values()
    merged.update(updates)
    LOGGER.debug("Merged extracted fields into form: %s", sorted(updates))
    return merged
