"""Lenient JSON parsing for truncated or malformed model output."""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

_OPENING_FENCE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_CLOSING_FENCE = re.compile(r"\s*```\s*$")
_TRAILING_COMMA = re.compile(r",\s*$")
_DANGLING_COLON = re.compile(r'"\s*:\s*$')

# Partial keyword after a colon or inside an array, e.g. `"ok": tr` -> `"ok": true`
_PARTIAL_KEYWORDS = (
    (re.compile(r"[:\[,]\s*t[rue]*$", re.IGNORECASE), re.compile(r"t[rue]*$", re.IGNORECASE), "true"),
    (re.compile(r"[:\[,]\s*f[alse]*$", re.IGNORECASE), re.compile(r"f[alse]*$", re.IGNORECASE), "false"),
    (re.compile(r"[:\[,]\s*n[ull]*$", re.IGNORECASE), re.compile(r"n[ull]*$", re.IGNORECASE), "null"),
)

_CLOSERS = {"{": "}", "[": "]"}

# Cut inside a number, e.g. `150.`, `-` or `1e-`
_NUMBER_TAIL = re.compile(r"(?<=[\d:\[,\s])[-+.eE]+$")
_PARTIAL_UNICODE_ESCAPE = re.compile(r"\\u[0-9a-fA-F]{0,3}$")


def clean_text(text: str | None) -> str:
    """Strip surrounding markdown code fences and whitespace."""
    if not text:
        return ""
    cleaned = text.strip()
    cleaned = _OPENING_FENCE.sub("", cleaned)
    cleaned = _CLOSING_FENCE.sub("", cleaned)
    return cleaned.strip()


@dataclass
class _ScanState:
    """Where a left-to-right scan of JSON text ended up."""

    closers: list[str] = field(default_factory=list)
    in_string: bool = False
    escape_pending: bool = False
    escape_start: int = -1
    string_start: int = -1
    string_in_object: bool = False


def _scan(text: str) -> _ScanState:
    state = _ScanState()
    for i, char in enumerate(text):
        if state.in_string:
            if state.escape_pending:
                state.escape_pending = False
            elif char == "\\":
                state.escape_pending = True
                state.escape_start = i
            elif char == '"':
                state.in_string = False
            continue

        if char == '"':
            state.in_string = True
            state.string_start = i
            state.string_in_object = bool(state.closers) and state.closers[-1] == "}"
        elif char in _CLOSERS:
            state.closers.append(_CLOSERS[char])
        elif char in "}]" and state.closers and state.closers[-1] == char:
            state.closers.pop()
    return state


def _is_property_name(text: str, state: _ScanState) -> bool:
    """True when the text ends in an object key with no colon after it."""
    if not text.endswith('"') or not state.string_in_object:
        return False
    before = text[: state.string_start].rstrip()
    return before.endswith(("{", ","))


def _close_string(text: str, state: _ScanState) -> str:
    if state.escape_pending:
        text = text[:-1]
    else:
        match = _PARTIAL_UNICODE_ESCAPE.search(text)
        if match and match.start() == state.escape_start:
            text = text[: match.start()]
    return text + '"'


def repair(text: str) -> str:
    """
    Best-effort repair of truncated JSON text.

    Closes an unterminated string (dropping a half-written escape), drops a
    half-written number tail and a trailing comma, completes a truncated
    true/false/null, fills a dangling key with null, and appends whatever
    brackets and braces are still open.
    """
    repaired = text.strip()
    if not repaired:
        return "{}"

    state = _scan(repaired)
    if state.in_string:
        repaired = _close_string(repaired, state)
    else:
        repaired = _NUMBER_TAIL.sub("", repaired).rstrip()
        repaired = _TRAILING_COMMA.sub("", repaired)

        for detect, tail, keyword in _PARTIAL_KEYWORDS:
            if detect.search(repaired):
                repaired = tail.sub(keyword, repaired)
                break

        if _DANGLING_COLON.search(repaired):
            repaired += "null"

    if _is_property_name(repaired, state):
        repaired += ": null"

    return repaired + "".join(reversed(_scan(repaired).closers))


def safe_parse(text: str | None) -> Any:
    """
    Parse model output as JSON, repairing it if needed.

    Never raises. Returns the parsed value, or None when the text is empty or
    cannot be repaired.
    """
    cleaned = clean_text(text)
    if not cleaned:
        return None

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    repaired = repair(cleaned)
    try:
        return json.loads(repaired)
    except json.JSONDecodeError as e:
        logger.error(f"JSON repair failed: {e}")
        logger.error("Attempted repair of: %s", cleaned)
        logger.error("Repaired string was: %s", repaired)
        return None
