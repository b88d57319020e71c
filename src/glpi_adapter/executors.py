"""Request construction and execution for GLPI operations."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from .auth import TokenManager
from .errors import OperationError, ParameterEvaluationError, RemoteError
from .logging import redact_payload
from .models import (
    AccessToken,
    Destination,
    ExecutionItem,
    FieldDescriptor,
    GlpiCredentials,
    OperationDescriptor,
    RequestDescriptor,
)
from .parameters import ParameterIndex
from .paths import resolve_path
from .values import is_absent

logger = logging.getLogger(__name__)

OPERATION_PARAMETER = "operation"
_JSON_TYPES = {"object", "array"}


class RequestBuilder:
    def __init__(self, index: ParameterIndex, api_url: str) -> None:
        self.index = index
        self.api_url = api_url.rstrip("/")

    def resolve_operation(
        self, item: ExecutionItem, default: Optional[str] = None
    ) -> OperationDescriptor:
        selected = item.lookup(OPERATION_PARAMETER)
        identifier = selected.value if selected.applicable and selected.value else default
        if identifier is None:
            raise OperationError("No operation selected")
        return OperationDescriptor.parse(identifier)

    def build(
        self,
        item: ExecutionItem,
        operation: OperationDescriptor,
        token: Optional[AccessToken] = None,
    ) -> RequestDescriptor:
        path = resolve_path(operation.template, item.lookup)
        request = RequestDescriptor(
            method=operation.method,
            url=f"{self.api_url}{path}",
            headers={"Accept": "application/json"},
        )

        classified = self.index.classify(operation.identifier)
        body: Dict[str, Any] = {}
        for descriptor in classified.routable():
            result = item.lookup(descriptor.name)
            if not result.applicable or is_absent(result.value):
                continue
            if descriptor.destination == Destination.QUERY:
                request.query[descriptor.target_key] = _query_value(result.value)
            elif descriptor.destination == Destination.HEADER:
                request.headers[descriptor.target_key] = _header_value(descriptor, result.value)
            elif descriptor.destination == Destination.BODY and operation.carries_payload:
                body[descriptor.target_key] = _body_value(descriptor, result.value)

        if operation.carries_payload:
            request.headers["Content-Type"] = "application/json"
            if body:
                request.body = body

        if token is not None:
            request.headers.update(token.as_header())
        return request


class GlpiExecutor:
    def __init__(
        self,
        index: ParameterIndex,
        credentials: GlpiCredentials,
        timeout_seconds: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.credentials = credentials
        self.builder = RequestBuilder(index, credentials.api_url)
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def execute(
        self,
        item: ExecutionItem,
        token_manager: TokenManager,
        operation: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        descriptor = self.builder.resolve_operation(item, operation)
        # Built once without the token so configuration errors surface before any network call.
        request = self.builder.build(item, descriptor)
        token = await token_manager.get_token()
        request.headers.update(token.as_header())

        logger.info(
            "GLPI request item=%s %s %s query=%s headers=%s",
            item.index,
            request.method,
            request.url,
            redact_payload(request.query),
            redact_payload(request.headers),
        )
        response = await self.send(request)
        return normalize_response(response)

    async def send(self, request: RequestDescriptor) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                verify=self.credentials.verify_ssl,
                transport=self.transport,
            ) as client:
                response = await client.request(
                    request.method,
                    request.url,
                    headers=request.headers,
                    params=request.query or None,
                    json=request.body,
                )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            body = _decode(exc.response)
            raise RemoteError(
                _remote_message(exc.response, body),
                status_code=exc.response.status_code,
                body=body,
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteError(f"GLPI request failed: {exc}") from exc
        except (httpx.InvalidURL, TypeError, ValueError) as exc:
            # Raised by httpx while encoding the URL, headers or JSON body.
            raise RemoteError(f"Could not encode GLPI request: {exc}") from exc
        return response


def normalize_response(response: httpx.Response) -> List[Dict[str, Any]]:
    """One record per element for sequences, one record otherwise."""
    if not response.content:
        return [{"status": "ok"}]
    body = _decode(response)
    if isinstance(body, list):
        return [_as_record(element) for element in body]
    return [_as_record(body)]


def _as_record(value: Any) -> Dict[str, Any]:
    if isinstance(value, dict):
        return value
    return {"data": value}


def _decode(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _remote_message(response: httpx.Response, body: Any) -> str:
    detail = ""
    if isinstance(body, dict):
        detail = str(body.get("detail") or body.get("title") or body.get("message") or "")
    elif isinstance(body, str):
        detail = body.strip()[:200]
    message = f"GLPI returned HTTP {response.status_code} for {response.request.method} {response.request.url}"
    return f"{message}: {detail}" if detail else message


def _query_value(value: Any) -> Any:
    if isinstance(value, dict):
        return json.dumps(value)
    if isinstance(value, (list, tuple)):
        return [_query_value(element) for element in value]
    return value


def _header_value(descriptor: FieldDescriptor, value: Any) -> str:
    if isinstance(value, bool):
        text = "true" if value else "false"
    else:
        text = str(value)
    try:
        text.encode("ascii")
    except UnicodeEncodeError as exc:
        raise ParameterEvaluationError(descriptor.name, f"header value is not ASCII: {text!r}") from exc
    return text


def _body_value(descriptor: FieldDescriptor, value: Any) -> Any:
    if descriptor.schema_type in _JSON_TYPES and isinstance(value, str):
        try:
            return json.loads(value)
        except (ValueError, RecursionError) as exc:
            raise ParameterEvaluationError(descriptor.name, f"invalid JSON: {exc}") from exc
    try:
        json.dumps(value)
    except (TypeError, ValueError, RecursionError) as exc:
        raise ParameterEvaluationError(descriptor.name, f"not JSON serializable: {exc}") from exc
    return value
