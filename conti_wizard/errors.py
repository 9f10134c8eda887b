from __future__ import annotations

from enum import Enum
from typing import FrozenSet, Optional

RETRIABLE_STATUSES: FrozenSet[int] = frozenset({429, 500, 502, 503, 504})

EXCERPT_LIMIT = 200


class ErrorKind(str, Enum):
    NETWORK = "network"
    HTTP = "http"
    NO_CANDIDATES = "no_candidates"
    SAFETY_BLOCKED = "safety_blocked"
    TRUNCATED = "truncated"
    EMPTY_RESPONSE = "empty_response"
    MALFORMED_RESPONSE = "malformed_response"
    UNPARSABLE_RESPONSE = "unparsable_response"
    CANCELLED = "cancelled"
    MISSING_API_KEY = "missing_api_key"


def excerpt_of(text: Optional[str], limit: int = EXCERPT_LIMIT) -> str:
    return (text or "")[:limit]


class RequestError(RuntimeError):
    """A classified failure of one storyboard generation request."""

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind,
        http_status: Optional[int] = None,
        raw_body: Optional[str] = None,
        excerpt: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.http_status = http_status
        self.raw_body = raw_body
        self.excerpt = excerpt

    @property
    def retriable(self) -> bool:
        return self.http_status in RETRIABLE_STATUSES

    def __repr__(self) -> str:
        return f"RequestError(kind={self.kind.value!r}, http_status={self.http_status!r}, message={str(self)!r})"


_KIND_GUIDANCE = {
    ErrorKind.NETWORK: "Could not reach the Gemini API. Check your internet connection and try again.",
    ErrorKind.NO_CANDIDATES: "The model returned no answer. Try rephrasing the synopsis.",
    ErrorKind.SAFETY_BLOCKED: "The response was blocked by the model's safety filters. Try softening the synopsis or tone.",
    ErrorKind.TRUNCATED: "The response was cut off at the token limit. Try requesting fewer cuts.",
    ErrorKind.EMPTY_RESPONSE: "The model returned an empty response. Please try again.",
    ErrorKind.MALFORMED_RESPONSE: "The API returned a response that could not be read. Please try again.",
    ErrorKind.UNPARSABLE_RESPONSE: "Could not read a storyboard from the model's answer. Please try again.",
    ErrorKind.CANCELLED: "Generation was cancelled.",
    ErrorKind.MISSING_API_KEY: "An API key is required. Enter your Gemini API key first.",
}


def _http_guidance(status: Optional[int]) -> Optional[str]:
    if status == 400:
        return "The request was rejected (HTTP 400). Check that your API key is valid for the Gemini API."
    if status in (401, 403):
        return "Authentication failed. Check your API key and its permissions."
    if status == 404:
        return "The configured Gemini model was not found. Check CONTI_GEMINI_MODEL."
    if status == 429:
        return "Rate limit reached. Wait a minute and try again."
    if status is not None and status >= 500:
        return "The Gemini service is unstable right now. Please try again shortly."
    return None


def describe_error(exc: BaseException) -> str:
    """Map an exception to a short user-facing guidance string."""
    if isinstance(exc, RequestError):
        if exc.kind is ErrorKind.HTTP:
            guidance = _http_guidance(exc.http_status)
            if guidance:
                return guidance
        elif exc.kind in _KIND_GUIDANCE:
            return _KIND_GUIDANCE[exc.kind]
    return str(exc) or exc.__class__.__name__
