import random
import time
from threading import Event
from typing import Callable, Optional, Tuple, TypeVar

import requests

from conti_wizard.config import DEFAULT_BASE_URL, MAX_ATTEMPTS
from conti_wizard.errors import ErrorKind, RequestError

T = TypeVar("T")


def backoff_delay(attempt: int, *, base_delay: float = 0.6, max_delay: float = 4.0, jitter: float = 0.25, rng: Optional[random.Random] = None) -> float:
    """Seconds to wait before ``attempt`` (1-based; attempt 1 never waits)."""
    if attempt < 2:
        return 0.0
    uniform = (rng or random).uniform
    return min(max_delay, base_delay * (2 ** (attempt - 2))) + uniform(0.0, jitter)


def _short_reason(exc: Optional[Exception]) -> str:
    status = getattr(exc, "http_status", None)
    if status is not None:
        return f"HTTP {status}"
    return type(exc).__name__ if exc is not None else "error"


def _raise_cancelled(attempt: int, max_attempts: int) -> None:
    raise RequestError(
        f"Cancelled before attempt {attempt}/{max_attempts}",
        kind=ErrorKind.CANCELLED,
    )


def with_backoff(
    func: Callable[[], T],
    *,
    max_attempts: int = MAX_ATTEMPTS,
    base_delay: float = 0.6,
    max_delay: float = 4.0,
    jitter: float = 0.25,
    is_retriable: Callable[[Exception], bool] = lambda e: getattr(e, "retriable", False),
    on_log: Optional[Callable[[str], None]] = None,
    on_retry: Optional[Callable[[int], None]] = None,
    cancel: Optional[Event] = None,
    sleep: Optional[Callable[[float], None]] = None,
    rng: Optional[random.Random] = None,
) -> T:
    """Run ``func`` up to ``max_attempts`` times, sequentially.

    Only errors accepted by ``is_retriable`` are retried; anything else propagates on first
    occurrence. After the last attempt the last error is re-raised unchanged.
    """
    attempts = max(1, max_attempts)
    last_exc: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        if attempt > 1:
            delay = backoff_delay(attempt, base_delay=base_delay, max_delay=max_delay, jitter=jitter, rng=rng)
            if on_retry:
                on_retry(attempt)
            if on_log:
                on_log(f"Retrying ({attempt}/{attempts}) after {_short_reason(last_exc)} (sleep {delay:.1f}s)…")
            if cancel is not None and sleep is None:
                if cancel.wait(delay):
                    _raise_cancelled(attempt, attempts)
            else:
                (sleep or time.sleep)(delay)
        if cancel is not None and cancel.is_set():
            _raise_cancelled(attempt, attempts)
        try:
            return func()
        except Exception as e:  # noqa: BLE001
            if attempt == attempts or not is_retriable(e):
                raise
            last_exc = e
    raise RuntimeError("with_backoff: exhausted retries")  # unreachable: the last attempt returns or raises


def gemini_models_probe(api_key: str, base_url: str = DEFAULT_BASE_URL, timeout_sec: int = 8) -> Tuple[bool, str]:
    try:
        resp = requests.get(
            f"{base_url.rstrip('/')}/models",
            params={"key": api_key},
            timeout=timeout_sec,
        )
        if resp.ok:
            return True, f"HTTP {resp.status_code}, {len(resp.json().get('models', []))} models"
        return False, f"HTTP {resp.status_code}: {resp.text[:200]}"
    except Exception as e:  # noqa: BLE001
        return False, str(e)
