"""Internal models for GLPI operations, parameters and requests."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Mapping, Optional

from .errors import OperationError, ParameterEvaluationError

if TYPE_CHECKING:
    from .config import Settings


HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")
PAYLOAD_METHODS = frozenset({"POST", "PUT", "PATCH"})


class Destination(str, Enum):
    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    BODY = "body"


@dataclass(frozen=True)
class OperationDescriptor:
    method: str
    template: str
    description: str = field(default="", compare=False)

    @property
    def identifier(self) -> str:
        return f"{self.method} {self.template}"

    @property
    def carries_payload(self) -> bool:
        return self.method in PAYLOAD_METHODS

    @classmethod
    def parse(cls, identifier: Any) -> "OperationDescriptor":
        """Parse ``"METHOD /template"`` into a descriptor.

        Raises OperationError for anything that is not a supported method
        followed by a template starting with ``/``.
        """
        if not isinstance(identifier, str) or not identifier.strip():
            raise OperationError("No operation selected")
        method, _, template = identifier.strip().partition(" ")
        template = template.strip()
        if method not in HTTP_METHODS:
            raise OperationError(f"Unsupported HTTP method in operation '{identifier}'")
        if not template.startswith("/"):
            raise OperationError(f"Operation '{identifier}' has no path template")
        return cls(method=method, template=template)


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    destination: Destination
    key: Optional[str] = None
    operations: FrozenSet[str] = frozenset()
    schema_type: Optional[str] = None
    required: bool = False
    description: str = field(default="", compare=False)

    @property
    def target_key(self) -> str:
        return self.key or self.name

    @property
    def unrestricted(self) -> bool:
        return not self.operations

    def applies_to(self, operation: str) -> bool:
        return self.unrestricted or operation in self.operations


@dataclass(frozen=True)
class GlpiCredentials:
    base_url: str
    username: str
    password: str = field(repr=False)
    client_id: str = ""
    client_secret: str = field(default="", repr=False)
    scope: str = "api"
    verify_ssl: bool = True

    @property
    def api_url(self) -> str:
        return self.base_url.rstrip("/") + "/api.php"

    @property
    def token_url(self) -> str:
        return self.api_url + "/token"

    @classmethod
    def from_settings(cls, settings: "Settings") -> "GlpiCredentials":
        return cls(
            base_url=settings.glpi_url,
            username=settings.glpi_username,
            password=settings.glpi_password,
            client_id=settings.glpi_client_id,
            client_secret=settings.glpi_client_secret,
            scope=settings.glpi_scope or "api",
            verify_ssl=not settings.glpi_ignore_ssl_issues,
        )


@dataclass(frozen=True)
class AccessToken:
    value: str = field(repr=False)
    expires_at: Optional[float] = None
    token_type: str = "Bearer"
    issued_at: Optional[float] = None

    def is_valid(self, now: Optional[float] = None, leeway: float = 30.0) -> bool:
        if not self.value:
            return False
        if self.expires_at is None:
            return True
        if self.issued_at is not None:
            # Short-lived tokens keep at least half their lifetime.
            leeway = min(leeway, max(self.expires_at - self.issued_at, 0.0) / 2)
        current = time.time() if now is None else now
        return current < self.expires_at - leeway

    def as_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.value}"}


@dataclass(frozen=True)
class ParameterLookup:
    name: str
    value: Any = None
    applicable: bool = True

    @classmethod
    def not_applicable(cls, name: str) -> "ParameterLookup":
        return cls(name=name, applicable=False)


class ExecutionItem:
    """One input record: a bag of parameter values addressed by name.

    Values may be callables, evaluated on lookup. A name the item does not
    carry is reported as not applicable; a value that fails to evaluate
    raises ParameterEvaluationError.
    """

    def __init__(self, parameters: Optional[Mapping[str, Any]] = None, index: int = 0) -> None:
        self.parameters: Dict[str, Any] = dict(parameters or {})
        self.index = index

    def lookup(self, name: str) -> ParameterLookup:
        if name not in self.parameters:
            return ParameterLookup.not_applicable(name)
        value = self.parameters[name]
        if callable(value):
            try:
                value = value()
            except Exception as exc:
                raise ParameterEvaluationError(name, str(exc)) from exc
        return ParameterLookup(name=name, value=value)

    def __repr__(self) -> str:
        return f"ExecutionItem(index={self.index}, parameters={sorted(self.parameters)})"


@dataclass
class RequestDescriptor:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, Any] = field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class OutputRecord:
    data: Dict[str, Any]
    item_index: int = 0
    failed: bool = False
