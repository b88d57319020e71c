"""URL template resolution for GLPI operation paths."""

from __future__ import annotations

import re
from typing import Any, Callable, List
from urllib.parse import quote

from .errors import MissingPathParameterError
from .models import ParameterLookup
from .values import is_absent

_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")


def placeholders(template: str) -> List[str]:
    return _PLACEHOLDER.findall(template)


def resolve_path(template: str, lookup: Callable[[str], ParameterLookup]) -> str:
    """Substitute every ``{name}`` token in ``template``.

    Tokens whose parameter is not applicable or empty stay in place during
    the pass; any token left afterwards raises MissingPathParameterError.
    """

    def _substitute(match: "re.Match[str]") -> str:
        result = lookup(match.group(1))
        if not result.applicable or is_absent(result.value):
            return match.group(0)
        return quote(_path_value(result.value), safe="")

    resolved = _PLACEHOLDER.sub(_substitute, template)
    missing = placeholders(resolved)
    if missing:
        raise MissingPathParameterError(template, missing)
    return resolved


def _path_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
