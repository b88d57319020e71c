"""Absent-value detection for outgoing parameters."""

from __future__ import annotations

import json
from typing import Any

_EMPTY_LITERALS = {"{}", "[]"}


def is_absent(value: Any) -> bool:
    """Return True when ``value`` should be left out of the request.

    Unfinished structured inputs may arrive serialized (``"{}"``,
    ``"[\\n  {}\\n]"``), so strings holding JSON are judged by what they
    decode to. Zero and False are real values.
    """
    if value is None:
        return True
    if isinstance(value, str):
        if value == "":
            return True
        text = value.strip()
        if text in _EMPTY_LITERALS:
            return True
        try:
            decoded = json.loads(text)
        except (ValueError, RecursionError):
            return False
        return is_absent(decoded)
    if isinstance(value, (list, tuple)):
        return len(value) == 0 or all(
            isinstance(element, dict) and not element for element in value
        )
    if isinstance(value, dict):
        return not value
    return False
