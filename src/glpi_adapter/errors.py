"""Error taxonomy for GLPI request execution."""

from __future__ import annotations

from typing import Any, Iterable, List, Optional


class ExecutionError(Exception):
    pass


class OperationError(ExecutionError):
    """The operation identifier is missing or does not parse."""


class MissingPathParameterError(ExecutionError):
    def __init__(self, template: str, missing: Iterable[str]) -> None:
        self.template = template
        self.missing: List[str] = list(missing)
        names = ", ".join(self.missing)
        super().__init__(f"Missing required path parameter(s) for {template}: {names}")


class AuthenticationError(ExecutionError):
    pass


class ParameterEvaluationError(ExecutionError):
    def __init__(self, name: str, message: str) -> None:
        self.name = name
        super().__init__(f"Could not evaluate parameter '{name}': {message}")


class RemoteError(ExecutionError):
    def __init__(
        self, message: str, status_code: Optional[int] = None, body: Any = None
    ) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)
