import os
from dataclasses import dataclass
from typing import Any, Dict

# Local app - configuration comes from the environment (and .env loaded by the entry point)


def _get_secret_or_env(key: str, default: str = "") -> str:
    return str(os.getenv(key, default))


DEFAULT_MODEL = "gemini-2.5-flash-preview-05-20"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
KEY_STORAGE_ID = "contiWizard_gemini_key"

# Product constants, not user-tunable
GENERATION_CONFIG: Dict[str, Any] = {
    "temperature": 0.7,
    "maxOutputTokens": 2048,
    "topP": 0.95,
    "topK": 40,
}

# Attempts per request, including the first
MAX_ATTEMPTS = 3

MIN_CUTS = 1
MAX_CUTS = 30


@dataclass(frozen=True)
class ContiConfig:
    gemini_api_key: str
    model: str
    base_url: str
    request_timeout_sec: int
    key_file: str

    @property
    def endpoint(self) -> str:
        return f"{self.base_url.rstrip('/')}/models/{self.model}:generateContent"


def load_config() -> ContiConfig:
    # GOOGLE_API_KEY is accepted as a fallback for the default key
    api_key = _get_secret_or_env("GEMINI_API_KEY") or _get_secret_or_env("GOOGLE_API_KEY", "")
    timeout_sec = int(_get_secret_or_env("CONTI_REQUEST_TIMEOUT_SEC", "60") or "60")

    return ContiConfig(
        gemini_api_key=api_key.strip(),
        model=_get_secret_or_env("CONTI_GEMINI_MODEL", DEFAULT_MODEL) or DEFAULT_MODEL,
        base_url=_get_secret_or_env("CONTI_GEMINI_BASE_URL", DEFAULT_BASE_URL) or DEFAULT_BASE_URL,
        request_timeout_sec=timeout_sec,
        key_file=_get_secret_or_env("CONTI_KEY_FILE", ""),  # empty -> KeyStore default under .cache
    )
