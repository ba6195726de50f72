"""Lookup between HTTP status codes and reason phrases."""

from http import HTTPStatus
from typing import NamedTuple

# Phrases that clients commonly use which ``http.HTTPStatus`` spells differently
# or does not know at all.
_EXTRA_PHRASES = {
    "i'm a teapot": 418,
    "payload too large": 413,
    "request entity too large": 413,
    "content too large": 413,
    "request-uri too long": 414,
    "uri too long": 414,
    "requested range not satisfiable": 416,
    "range not satisfiable": 416,
    "insufficient space on resource": 419,
    "method failure": 420,
    "unprocessable entity": 422,
    "unprocessable content": 422,
}

_EXTRA_CODES = {
    419: "Insufficient Space on Resource",
    420: "Method Failure",
}


class ResolvedStatus(NamedTuple):
    code: int
    reason: str


def _phrase_index() -> dict[str, int]:
    index = {status.phrase.lower(): status.value for status in HTTPStatus}
    index.update(_EXTRA_PHRASES)
    return index


_PHRASE_TO_CODE = _phrase_index()


def reason_phrase_for(code: int) -> str:
    """Return the canonical reason phrase for ``code``.

    Raises ``ValueError`` for codes that are not registered.
    """
    if code in _EXTRA_CODES:
        return _EXTRA_CODES[code]
    return HTTPStatus(code).phrase


def resolve_status(value: str) -> ResolvedStatus:
    """Resolve a numeric status code or a reason phrase into both halves.

    A reason phrase is matched case-insensitively and kept as typed; a numeric
    code is paired with its canonical phrase.
    """
    text = value.strip()
    code = _PHRASE_TO_CODE.get(text.lower())
    if code is not None:
        return ResolvedStatus(code, text)
    if text.isdigit():
        code = int(text)
        try:
            return ResolvedStatus(code, reason_phrase_for(code))
        except ValueError:
            pass
    raise ValueError(f"invalid HTTP response code or reason phrase: {value}")
