from __future__ import annotations

import pytest
import requests

from conftest import FakeResponse, FakeSession, gemini_body
from conti_wizard.config import GENERATION_CONFIG, MAX_ATTEMPTS
from conti_wizard.errors import ErrorKind, RequestError
from conti_wizard.services.gemini_http import build_request_body, call_once, execute_with_retry


def test_request_body_shape():
    body = build_request_body("hello")
    assert body["contents"] == [{"parts": [{"text": "hello"}]}]
    assert body["generationConfig"] == GENERATION_CONFIG
    assert set(body["generationConfig"]) == {"temperature", "maxOutputTokens", "topP", "topK"}


def test_call_once_returns_trimmed_text_and_sends_key_as_query(cfg):
    session = FakeSession(FakeResponse(200, gemini_body("  \n{\"title\": \"T\"}\n  ")))
    assert call_once("secret", "prompt", cfg=cfg, session=session) == '{"title": "T"}'
    call = session.calls[0]
    assert call["url"].endswith(f"/models/{cfg.model}:generateContent")
    assert call["params"] == {"key": "secret"}
    assert call["json"]["contents"][0]["parts"][0]["text"] == "prompt"
    assert call["timeout"] == cfg.request_timeout_sec


def test_call_once_joins_text_parts_and_skips_thoughts(cfg):
    body = {
        "candidates": [
            {
                "content": {"parts": [{"text": "thinking", "thought": True}, {"text": "{\"a\":"}, {"text": " 1}"}]},
                "finishReason": "STOP",
            }
        ]
    }
    session = FakeSession(FakeResponse(200, body))
    assert call_once("k", "p", cfg=cfg, session=session) == '{"a": 1}'


@pytest.mark.parametrize(
    "body, kind",
    [
        ({"candidates": []}, ErrorKind.NO_CANDIDATES),
        ({"promptFeedback": {"blockReason": "SAFETY"}}, ErrorKind.NO_CANDIDATES),
        (gemini_body("partial", "SAFETY"), ErrorKind.SAFETY_BLOCKED),
        (gemini_body("partial", "PROHIBITED_CONTENT"), ErrorKind.SAFETY_BLOCKED),
        (gemini_body("{\"title\": \"cut of", "MAX_TOKENS"), ErrorKind.TRUNCATED),
        (gemini_body("   \n "), ErrorKind.EMPTY_RESPONSE),
        ({"candidates": [{"finishReason": "STOP"}]}, ErrorKind.EMPTY_RESPONSE),
    ],
)
def test_call_once_classifies_candidates(cfg, body, kind):
    session = FakeSession(FakeResponse(200, body))
    with pytest.raises(RequestError) as info:
        call_once("k", "p", cfg=cfg, session=session)
    assert info.value.kind is kind


def test_call_once_http_error_keeps_status_and_body(cfg):
    session = FakeSession(FakeResponse(401, text='{"error": "API key not valid"}'))
    with pytest.raises(RequestError) as info:
        call_once("k", "p", cfg=cfg, session=session)
    assert info.value.kind is ErrorKind.HTTP
    assert info.value.http_status == 401
    assert info.value.raw_body == '{"error": "API key not valid"}'
    assert not info.value.retriable


def test_call_once_non_json_body_is_malformed(cfg):
    session = FakeSession(FakeResponse(200, text="<html>oops</html>"))
    with pytest.raises(RequestError) as info:
        call_once("k", "p", cfg=cfg, session=session)
    assert info.value.kind is ErrorKind.MALFORMED_RESPONSE
    assert info.value.raw_body == "<html>oops</html>"


def test_call_once_network_error(cfg):
    session = FakeSession(requests.ConnectionError("connection reset"))
    with pytest.raises(RequestError) as info:
        call_once("k", "p", cfg=cfg, session=session)
    assert info.value.kind is ErrorKind.NETWORK
    assert info.value.http_status is None


@pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
def test_execute_retries_transient_status_then_succeeds(cfg, sleeps, status):
    session = FakeSession(FakeResponse(status, text="busy"), FakeResponse(200, gemini_body(" ok ")))
    logs = []
    text = execute_with_retry("k", "p", cfg=cfg, session=session, sleep=sleeps.append, on_log=logs.append)
    assert text == "ok"
    assert len(session.calls) == 2
    assert len(sleeps) == 1
    assert any("Retrying (2/3)" in line for line in logs)


def test_execute_does_not_retry_auth_failure(cfg, sleeps):
    session = FakeSession(FakeResponse(401, text="denied"), FakeResponse(200, gemini_body("never")))
    with pytest.raises(RequestError) as info:
        execute_with_retry("k", "p", cfg=cfg, session=session, sleep=sleeps.append)
    assert info.value.http_status == 401
    assert len(session.calls) == 1
    assert sleeps == []


def test_execute_does_not_retry_safety_block(cfg, sleeps):
    session = FakeSession(FakeResponse(200, gemini_body("", "SAFETY")), FakeResponse(200, gemini_body("never")))
    with pytest.raises(RequestError) as info:
        execute_with_retry("k", "p", cfg=cfg, session=session, sleep=sleeps.append)
    assert info.value.kind is ErrorKind.SAFETY_BLOCKED
    assert len(session.calls) == 1


def test_execute_raises_last_error_after_max_attempts(cfg, sleeps):
    session = FakeSession(
        FakeResponse(500, text="first"),
        FakeResponse(502, text="second"),
        FakeResponse(503, text="third"),
    )
    with pytest.raises(RequestError) as info:
        execute_with_retry("k", "p", cfg=cfg, session=session, sleep=sleeps.append)
    assert info.value.http_status == 503
    assert info.value.raw_body == "third"
    assert len(session.calls) == 3
    assert len(sleeps) == 2


@pytest.mark.parametrize("status", [400, 401, 403, 404, 501])
def test_execute_does_not_retry_other_statuses(cfg, sleeps, status):
    session = FakeSession(FakeResponse(status, text="nope"), FakeResponse(200, gemini_body("never")))
    with pytest.raises(RequestError) as info:
        execute_with_retry("k", "p", cfg=cfg, session=session, sleep=sleeps.append)
    assert info.value.http_status == status
    assert len(session.calls) == 1
    assert sleeps == []


def test_execute_does_not_retry_network_errors(cfg, sleeps):
    session = FakeSession(requests.ConnectionError("reset"), FakeResponse(200, gemini_body("never")))
    with pytest.raises(RequestError) as info:
        execute_with_retry("k", "p", cfg=cfg, session=session, sleep=sleeps.append)
    assert info.value.kind is ErrorKind.NETWORK
    assert len(session.calls) == 1
    assert sleeps == []


def test_attempt_cap_ignores_environment(cfg, sleeps, monkeypatch):
    monkeypatch.setenv("CONTI_MAX_ATTEMPTS", "10")
    session = FakeSession(*[FakeResponse(503, text="busy") for _ in range(10)])
    with pytest.raises(RequestError):
        execute_with_retry("k", "p", cfg=cfg, session=session, sleep=sleeps.append)
    assert len(session.calls) == MAX_ATTEMPTS == 3
