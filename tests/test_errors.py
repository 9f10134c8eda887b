from __future__ import annotations

import pytest

from conti_wizard.errors import ErrorKind, RequestError, describe_error


def _http(status):
    return RequestError("raw", kind=ErrorKind.HTTP, http_status=status)


@pytest.mark.parametrize(
    "status, needle",
    [
        (401, "Authentication"),
        (403, "Authentication"),
        (429, "Rate limit"),
        (500, "unstable"),
        (503, "unstable"),
        (404, "model"),
        (400, "API key"),
    ],
)
def test_http_guidance(status, needle):
    assert needle in describe_error(_http(status))


def test_kind_guidance():
    assert "safety" in describe_error(RequestError("x", kind=ErrorKind.SAFETY_BLOCKED))
    assert "fewer cuts" in describe_error(RequestError("x", kind=ErrorKind.TRUNCATED))
    assert "internet" in describe_error(RequestError("x", kind=ErrorKind.NETWORK))


def test_unmapped_falls_back_to_message():
    assert describe_error(_http(418)) == "raw"
    assert describe_error(ValueError("boom")) == "boom"


def test_retriable_statuses():
    assert _http(429).retriable
    assert _http(504).retriable
    assert not _http(501).retriable
    assert not _http(401).retriable
    assert not RequestError("x", kind=ErrorKind.NETWORK).retriable
