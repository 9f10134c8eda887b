from __future__ import annotations

from threading import Event, Lock
from typing import Callable, Optional

import requests

from conti_wizard.config import MAX_ATTEMPTS, ContiConfig, load_config
from conti_wizard.errors import ErrorKind, RequestError
from conti_wizard.services.gemini_http import execute_with_retry
from conti_wizard.services.prompt import build_prompt
from conti_wizard.services.recovery import recover
from conti_wizard.types import GenerationRequest, Stage, StoryboardDocument


_TERMINAL = (Stage.DONE, Stage.FAILED)


class Pipeline:
    """Thin, UI-oriented wrapper over the storyboard services.

    Responsibilities:
    - Own `cfg` and the optional HTTP session
    - Track the per-request stage (Idle -> ... -> Done/Failed)
    - Reject overlapping requests; only one generation runs at a time
    - Centralize logging through an injected callback
    """

    def __init__(
        self,
        cfg: Optional[ContiConfig] = None,
        on_log: Optional[Callable[[str], None]] = None,
        session: Optional[requests.Session] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.on_log: Callable[[str], None] = on_log or (lambda _msg: None)
        self.cfg: ContiConfig = cfg or load_config()
        self.session = session
        self._sleep = sleep
        self._busy = Lock()
        self.stage: Stage = Stage.IDLE
        self.on_log(f"📋 Loaded configuration: model={self.cfg.model}, max_attempts={MAX_ATTEMPTS}")

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    def _enter(self, stage: Stage) -> None:
        if self.stage in _TERMINAL and stage is not Stage.IDLE:
            raise RuntimeError(f"Cannot enter {stage.value} after {self.stage.value}")
        self.stage = stage

    def generate(
        self,
        request: GenerationRequest,
        api_key: Optional[str] = None,
        cancel: Optional[Event] = None,
    ) -> StoryboardDocument:
        """Build the prompt, call Gemini with retry, and recover a normalized storyboard."""
        if not self._busy.acquire(blocking=False):
            raise RuntimeError("A storyboard request is already in progress")
        try:
            self.stage = Stage.IDLE
            key = (api_key or self.cfg.gemini_api_key or "").strip()
            if not key:
                self._enter(Stage.FAILED)
                raise RequestError("Gemini API key is missing", kind=ErrorKind.MISSING_API_KEY)

            self._enter(Stage.BUILDING)
            prompt = build_prompt(request)
            self.on_log(f"🧱 Prompt built ({request.cut_count} cuts, {len(prompt)} characters)")

            self._enter(Stage.REQUESTING)
            try:
                raw = execute_with_retry(
                    key,
                    prompt,
                    cfg=self.cfg,
                    on_log=self.on_log,
                    on_retry=self._on_retry,
                    on_attempt=self._on_attempt,
                    cancel=cancel,
                    session=self.session,
                    sleep=self._sleep,
                )
            except Exception as e:
                self._enter(Stage.FAILED)
                self.on_log(f"❌ Request failed: {e}")
                raise

            self._enter(Stage.PARSING)
            try:
                doc = recover(raw, on_log=self.on_log, on_parsed=lambda: self._enter(Stage.NORMALIZING))
            except RequestError as e:
                self._enter(Stage.FAILED)
                self.on_log(f"❌ {e}")
                raise

            self._enter(Stage.DONE)
            self.on_log(f"✅ Storyboard ready: {doc.cut_count} cuts")
            return doc
        finally:
            self._busy.release()

    def _on_retry(self, attempt: int) -> None:
        self._enter(Stage.RETRYING)

    def _on_attempt(self) -> None:
        self._enter(Stage.REQUESTING)
