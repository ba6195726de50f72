"""Unit tests for status code and reason phrase resolution."""

import pytest

from token_server.domain.status_codes import reason_phrase_for, resolve_status


def test_reason_phrase_for_standard_code():
    assert reason_phrase_for(404) == "Not Found"


def test_reason_phrase_for_registry_only_code():
    assert reason_phrase_for(420) == "Method Failure"


def test_reason_phrase_for_unknown_code():
    with pytest.raises(ValueError):
        reason_phrase_for(299)


@pytest.mark.parametrize(
    ("value", "code", "reason"),
    [
        ("200", 200, "OK"),
        ("  404 ", 404, "Not Found"),
        ("Payload Too Large", 413, "Payload Too Large"),
        ("unprocessable entity", 422, "unprocessable entity"),
        ("I'm a teapot", 418, "I'm a teapot"),
    ],
)
def test_resolve_status(value, code, reason):
    resolved = resolve_status(value)
    assert (resolved.code, resolved.reason) == (code, reason)


def test_resolve_status_rejects_unknown():
    with pytest.raises(ValueError, match="invalid HTTP response code"):
        resolve_status("Nope")
