"""Logging helpers with redaction."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Mapping


_SENSITIVE_KEYS = re.compile(r"(token|secret|api[_-]?key|password|authorization)", re.IGNORECASE)
_MAX_VALUE_LENGTH = 200
# httpx logs every request line at INFO; the executor already logs a redacted one.
_CHATTY_LOGGERS = ("httpx", "httpcore")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    if logging.getLogger().getEffectiveLevel() > logging.DEBUG:
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def redact_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of ``payload`` safe to log: credentials masked, lazy values and long text elided."""
    redacted: Dict[str, Any] = {}
    for key, value in payload.items():
        if _SENSITIVE_KEYS.search(str(key)):
            redacted[key] = "***REDACTED***"
        elif isinstance(value, Mapping):
            redacted[key] = redact_payload(value)
        elif callable(value):
            redacted[key] = "<expression>"
        elif isinstance(value, str) and len(value) > _MAX_VALUE_LENGTH:
            redacted[key] = f"{value[:_MAX_VALUE_LENGTH]}... ({len(value)} chars)"
        else:
            redacted[key] = value
    return redacted
