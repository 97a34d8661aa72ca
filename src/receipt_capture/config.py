"""Configuration loading from environment variables and CLI flags."""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from receipt_capture.enhance import EnhancementMode


class Provider(str, Enum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    HTTP = "http"


DEFAULTS = {
    Provider.ANTHROPIC: "claude-sonnet-4-6",
    Provider.OPENAI: "gpt-4o",
    Provider.HTTP: "",
}

ENV_KEYS = {
    Provider.ANTHROPIC: "ANTHROPIC_API_KEY",
    Provider.OPENAI: "OPENAI_API_KEY",
}

ENDPOINT_ENV = "RECEIPT_EXTRACTOR_URL"
BASE_URL_ENV = "OPENAI_BASE_URL"
MODE_ENV = "RECEIPT_CAPTURE_MODE"

DEFAULT_MODE = EnhancementMode.STRONG


@dataclass
class Config:
    provider: Provider
    model: str
    api_key: str = ""
    endpoint: str = ""
    base_url: Optional[str] = None

    @classmethod
    def from_env(
        cls,
        provider: Provider,
        model_override: Optional[str] = None,
        api_key_override: Optional[str] = None,
        endpoint_override: Optional[str] = None,
    ) -> "Config":
        model = model_override or DEFAULTS[provider]

        if provider == Provider.HTTP:
            endpoint = endpoint_override or os.environ.get(ENDPOINT_ENV, "")
            if not endpoint:
                raise RuntimeError(
                    f"No endpoint for {provider.value}. "
                    f"Set {ENDPOINT_ENV} in your environment or .env file, or pass --endpoint."
                )
            return cls(provider=provider, model=model, endpoint=endpoint)

        api_key = api_key_override or os.environ.get(ENV_KEYS[provider], "")
        if not api_key:
            raise RuntimeError(
                f"No API key for {provider.value}. "
                f"Set {ENV_KEYS[provider]} in your environment or .env file."
            )
        base_url = os.environ.get(BASE_URL_ENV) if provider == Provider.OPENAI else None
        return cls(provider=provider, model=model, api_key=api_key, base_url=base_url or None)


def mode_from_env() -> EnhancementMode:
    """The persisted enhancement-mode preference, or the default."""
    value = os.environ.get(MODE_ENV, "").strip().lower()
    try:
        return EnhancementMode(value)
    except ValueError:
        return DEFAULT_MODE
