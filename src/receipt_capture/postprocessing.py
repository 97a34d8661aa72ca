"""Clean-up of extraction responses.

Vision models asked for "pure JSON" still sometimes wrap it in a markdown
code fence, and receipts print amounts in whatever locale the shop uses.

Amount normalisation
--------------------
``"$ 1.234,56"``  →  ``1234.56``   (comma is the decimal separator)
``"1,234.56"``    →  ``1234.56``   (dot is the decimal separator)
``"12.500"``      →  ``12500.0``   (three digits after the only dot: thousands)
``"12,5"``        →  ``12.5``      (one or two digits after the only comma: decimal)

When both separators appear, whichever comes last is the decimal separator.
A lone separator is decimal when at most two digits follow it.
"""

import re
from typing import Optional, Union

# ── Helpers ────────────────────────────────────────────────────────────────────

_CODE_FENCE = re.compile(r"^\s*```(?:json|JSON)?\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)

# Everything that is not a digit, separator or sign
_NOT_NUMERIC = re.compile(r"[^0-9.,\-]")


def _normalise_separators(text: str) -> str:
    has_dot = "." in text
    has_comma = "," in text

    if has_dot and has_comma:
        if text.rfind(".") > text.rfind(","):
            return text.replace(",", "")
        return text.replace(".", "").replace(",", ".")

    for sep in (".", ","):
        if sep in text:
            decimals = len(text) - text.rfind(sep) - 1
            if decimals <= 2 and text.count(sep) == 1:
                return text.replace(sep, ".")
            return text.replace(sep, "")

    return text


# ── Public API ─────────────────────────────────────────────────────────────────


def strip_code_fences(text: str) -> str:
    """Remove a markdown code fence wrapped around the whole response."""
    match = _CODE_FENCE.match(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_amount(value: Union[str, int, float, None]) -> Optional[float]:
    """Turn a printed amount into a float, or ``None`` when it is not one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)

    cleaned = _NOT_NUMERIC.sub("", str(value))
    if not cleaned or not any(ch.isdigit() for ch in cleaned):
        return None
    try:
        return float(_normalise_separators(cleaned))
    except ValueError:
        return None
