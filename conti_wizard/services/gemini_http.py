from __future__ import annotations

from threading import Event
from typing import Any, Callable, Dict, Optional

import requests

from conti_wizard.config import GENERATION_CONFIG, MAX_ATTEMPTS, ContiConfig
from conti_wizard.errors import ErrorKind, RequestError
from conti_wizard.services import with_backoff

SAFETY_FINISH_REASONS = frozenset({"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII", "IMAGE_SAFETY"})
TRUNCATION_FINISH_REASONS = frozenset({"MAX_TOKENS"})


def build_request_body(prompt: str) -> Dict[str, Any]:
    return {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": dict(GENERATION_CONFIG),
    }


def generate_content(
    *,
    api_key: str,
    prompt: str,
    cfg: ContiConfig,
    session: Optional[requests.Session] = None,
) -> Dict[str, Any]:
    """POST one generateContent request and return the parsed JSON body.

    Raises RequestError for transport failures, non-2xx statuses and non-JSON bodies.
    """
    http = session or requests
    try:
        resp = http.post(
            cfg.endpoint,
            params={"key": api_key},
            headers={"Content-Type": "application/json"},
            json=build_request_body(prompt),
            timeout=cfg.request_timeout_sec,
        )
    except requests.RequestException as e:
        raise RequestError(f"Gemini request failed: {e}", kind=ErrorKind.NETWORK) from e

    if not resp.ok:
        try:
            detail = resp.text
        except Exception:  # noqa: BLE001
            detail = "<no body>"
        raise RequestError(
            f"Gemini error: HTTP {resp.status_code} {detail[:500]}",
            kind=ErrorKind.HTTP,
            http_status=resp.status_code,
            raw_body=detail,
        )

    try:
        data = resp.json()
    except ValueError as e:
        raise RequestError(
            "Gemini returned a body that is not JSON",
            kind=ErrorKind.MALFORMED_RESPONSE,
            http_status=resp.status_code,
            raw_body=resp.text,
        ) from e
    if not isinstance(data, dict):
        raise RequestError(
            "Gemini returned an unexpected JSON body",
            kind=ErrorKind.MALFORMED_RESPONSE,
            http_status=resp.status_code,
            raw_body=resp.text,
        )
    return data


def _candidate_text(candidate: Dict[str, Any]) -> str:
    content = candidate.get("content")
    if not isinstance(content, dict):
        return ""
    parts = content.get("parts") or []
    texts = []
    for part in parts:
        if not isinstance(part, dict) or part.get("thought"):
            continue
        text = part.get("text")
        if isinstance(text, str):
            texts.append(text)
    return "".join(texts)


def extract_text(data: Dict[str, Any]) -> str:
    """Classify a generateContent body and return the first candidate's trimmed text."""
    candidates = data.get("candidates") or []
    if not isinstance(candidates, list) or not candidates:
        feedback = data.get("promptFeedback")
        block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        suffix = f" (prompt blocked: {block_reason})" if block_reason else ""
        raise RequestError(f"Gemini returned no candidates{suffix}", kind=ErrorKind.NO_CANDIDATES)

    first = candidates[0] if isinstance(candidates[0], dict) else {}
    finish_reason = str(first.get("finishReason") or "").upper()
    if finish_reason in SAFETY_FINISH_REASONS:
        raise RequestError(f"Response blocked by safety filters ({finish_reason})", kind=ErrorKind.SAFETY_BLOCKED)
    if finish_reason in TRUNCATION_FINISH_REASONS:
        raise RequestError("Response truncated at the output token limit", kind=ErrorKind.TRUNCATED)

    text = _candidate_text(first).strip()
    if not text:
        raise RequestError("Gemini returned an empty response", kind=ErrorKind.EMPTY_RESPONSE)
    return text


def call_once(
    api_key: str,
    prompt: str,
    *,
    cfg: ContiConfig,
    session: Optional[requests.Session] = None,
) -> str:
    data = generate_content(api_key=api_key, prompt=prompt, cfg=cfg, session=session)
    return extract_text(data)


def execute_with_retry(
    api_key: str,
    prompt: str,
    *,
    cfg: ContiConfig,
    on_log: Optional[Callable[[str], None]] = None,
    on_retry: Optional[Callable[[int], None]] = None,
    on_attempt: Optional[Callable[[], None]] = None,
    cancel: Optional[Event] = None,
    session: Optional[requests.Session] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> str:
    """Call Gemini with bounded exponential backoff on transient HTTP statuses."""
    if on_log:
        on_log(f"Gemini: calling {cfg.model} (timeout {cfg.request_timeout_sec}s, up to {MAX_ATTEMPTS} attempts)…")

    def attempt() -> str:
        if on_attempt:
            on_attempt()
        return call_once(api_key, prompt, cfg=cfg, session=session)

    text = with_backoff(
        attempt,
        max_attempts=MAX_ATTEMPTS,
        is_retriable=lambda e: isinstance(e, RequestError) and e.retriable,
        on_log=on_log,
        on_retry=on_retry,
        cancel=cancel,
        sleep=sleep,
    )
    if on_log:
        on_log(f"Gemini: received {len(text)} characters")
    return text
