"""OpenAPI document loader and GLPI operation/parameter extraction."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import httpx
from pydantic import BaseModel, ConfigDict, Field, create_model

from .models import HTTP_METHODS, Destination, FieldDescriptor, OperationDescriptor


logger = logging.getLogger(__name__)

_FieldKey = Tuple[str, Destination, Optional[str]]


class OpenAPILoader:
    def __init__(
        self,
        cache_seconds: int = 3600,
        verify_ssl: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.cache_seconds = cache_seconds
        self.verify_ssl = verify_ssl
        self.transport = transport
        self._cache: Dict[str, Tuple[float, Dict[str, Any]]] = {}

    async def load_spec(self, url: str) -> Optional[Dict[str, Any]]:
        cached = self._cache.get(url)
        if cached and time.time() - cached[0] < self.cache_seconds:
            return cached[1]

        async with httpx.AsyncClient(
            timeout=30, verify=self.verify_ssl, transport=self.transport
        ) as client:
            response = await client.get(url, headers={"Accept": "application/json"})
            if response.status_code != 200:
                logger.warning("Failed to fetch OpenAPI spec: %s (%s)", url, response.status_code)
                return None
            data = response.json()

        self._cache[url] = (time.time(), data)
        return data

    def load_file(self, path: str | Path) -> Dict[str, Any]:
        with Path(path).open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def extract_operations(self, spec: Dict[str, Any]) -> List[OperationDescriptor]:
        operations: List[OperationDescriptor] = []
        for path, method, operation, _ in self._iter_operations(spec):
            description = operation.get("summary") or operation.get("description") or ""
            operations.append(
                OperationDescriptor(method=method, template=path, description=description)
            )
        return operations

    def extract_fields(self, spec: Dict[str, Any]) -> List[FieldDescriptor]:
        """Build one descriptor per routable parameter, merged across operations."""
        merged: Dict[_FieldKey, Dict[str, Any]] = {}

        for path, method, operation, shared_parameters in self._iter_operations(spec):
            identifier = f"{method} {path}"
            parameters = [*shared_parameters, *(operation.get("parameters") or [])]
            for parameter in parameters:
                parameter = self._resolve(spec, parameter)
                name = parameter.get("name")
                location = parameter.get("in")
                if not name or location not in {"path", "query", "header"}:
                    continue
                schema = self._resolve(spec, parameter.get("schema") or {})
                self._merge(
                    merged,
                    (name, Destination(location), None),
                    identifier,
                    schema.get("type"),
                    location == "path" or bool(parameter.get("required")),
                    parameter.get("description") or "",
                )

            body_schema = self._extract_body_schema(spec, operation.get("requestBody") or {})
            properties = (body_schema or {}).get("properties") or {}
            for name, prop_schema in properties.items():
                prop_schema = self._resolve(spec, prop_schema or {})
                self._merge(
                    merged,
                    (name, Destination.BODY, None),
                    identifier,
                    prop_schema.get("type"),
                    False,
                    prop_schema.get("description") or "",
                )

        return [
            FieldDescriptor(
                name=name,
                destination=destination,
                key=key,
                operations=frozenset(entry["operations"]),
                schema_type=entry["schema_type"],
                required=entry["required"],
                description=entry["description"],
            )
            for (name, destination, key), entry in merged.items()
        ]

    def _iter_operations(
        self, spec: Dict[str, Any]
    ) -> Iterable[Tuple[str, str, Dict[str, Any], List[Dict[str, Any]]]]:
        paths = spec.get("paths") or {}
        for path, methods in paths.items():
            if not path.startswith("/"):
                logger.warning("Skipping OpenAPI path without leading slash: %s", path)
                continue
            shared_parameters = (methods or {}).get("parameters") or []
            for method, operation in (methods or {}).items():
                if method.upper() not in HTTP_METHODS:
                    continue
                yield path, method.upper(), operation or {}, shared_parameters

    def _merge(
        self,
        merged: Dict[_FieldKey, Dict[str, Any]],
        key: _FieldKey,
        operation: str,
        schema_type: Optional[str],
        required: bool,
        description: str,
    ) -> None:
        entry = merged.setdefault(
            key,
            {
                "operations": set(),
                "schema_type": schema_type,
                "required": required,
                "description": description,
            },
        )
        entry["operations"].add(operation)
        entry["required"] = entry["required"] or required
        if not entry["schema_type"]:
            entry["schema_type"] = schema_type
        if not entry["description"]:
            entry["description"] = description

    def _extract_body_schema(
        self, spec: Dict[str, Any], request_body: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        request_body = self._resolve(spec, request_body)
        content = request_body.get("content") or {}
        json_body = content.get("application/json") or {}
        schema = json_body.get("schema")
        if not schema:
            return None
        schema = self._resolve(spec, schema)
        # allOf compositions are flattened into one property map
        if "allOf" in schema:
            properties: Dict[str, Any] = {}
            for part in schema["allOf"]:
                properties.update((self._resolve(spec, part).get("properties") or {}))
            return {"type": "object", "properties": properties}
        return schema

    def _resolve(self, spec: Dict[str, Any], node: Dict[str, Any], depth: int = 0) -> Dict[str, Any]:
        ref = node.get("$ref") if isinstance(node, dict) else None
        if not ref:
            return node
        if depth > 16 or not ref.startswith("#/"):
            logger.warning("Unresolvable OpenAPI reference: %s", ref)
            return {}
        target: Any = spec
        for part in ref[2:].split("/"):
            part = part.replace("~1", "/").replace("~0", "~")
            target = target.get(part) if isinstance(target, dict) else None
            if target is None:
                logger.warning("Dangling OpenAPI reference: %s", ref)
                return {}
        return self._resolve(spec, target, depth + 1)


def build_input_model(
    operation: OperationDescriptor, fields: Iterable[FieldDescriptor]
) -> type[BaseModel]:
    """Pydantic model describing the parameters an operation accepts."""
    definitions: Dict[str, Tuple[Any, Any]] = {}
    seen: Set[str] = set()

    for descriptor in fields:
        if descriptor.name in seen:
            continue
        seen.add(descriptor.name)
        attribute = _sanitize_name(descriptor.name)
        while attribute in definitions:
            attribute += "_"
        required = descriptor.destination == Destination.PATH
        field_type = _schema_to_type(descriptor.schema_type)
        default = Field(
            ... if required else None,
            alias=descriptor.name,
            description=descriptor.description or None,
        )
        definitions[attribute] = (field_type if required else Optional[field_type], default)

    model_config = ConfigDict(extra="allow", populate_by_name=True)
    model_name = f"{_sanitize_name(operation.identifier)}Input"
    return create_model(model_name, __config__=model_config, **definitions)


def _schema_to_type(schema_type: Optional[str]) -> Any:
    if schema_type == "integer":
        return int
    if schema_type == "number":
        return float
    if schema_type == "boolean":
        return bool
    if schema_type == "array":
        return List[Any]
    if schema_type == "object":
        return Dict[str, Any]
    if schema_type == "string":
        return str
    return Any


def _sanitize_name(name: str) -> str:
    sanitized = "".join(ch if ch.isalnum() else "_" for ch in name).strip("_")
    if not sanitized or sanitized[0].isdigit():
        sanitized = f"p_{sanitized}"
    return sanitized
