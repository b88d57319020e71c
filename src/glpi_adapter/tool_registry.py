"""Operation catalogue for the GLPI adapter."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from .config import Settings
from .models import FieldDescriptor, OperationDescriptor
from .openapi import OpenAPILoader, build_input_model
from .parameters import ParameterIndex, glpi_header_fields


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GlpiTool:
    tool_name: str
    description: str
    operation: OperationDescriptor
    input_model: type[BaseModel]


class ToolRegistry:
    def __init__(self, settings: Settings, openapi_loader: OpenAPILoader) -> None:
        self.settings = settings
        self.openapi_loader = openapi_loader
        self.index: Optional[ParameterIndex] = None
        self.operations: List[OperationDescriptor] = []

    async def load_document(self) -> Dict[str, Any]:
        if self.settings.glpi_openapi_path:
            return self.openapi_loader.load_file(self.settings.glpi_openapi_path)
        url = self.settings.openapi_url()
        spec = await self.openapi_loader.load_spec(url)
        if not spec:
            raise RuntimeError(f"GLPI OpenAPI document unavailable: {url}")
        return spec

    async def load(self) -> ParameterIndex:
        if self.index is not None:
            return self.index
        spec = await self.load_document()
        return self.build(spec)

    def build(self, spec: Dict[str, Any]) -> ParameterIndex:
        fields: List[FieldDescriptor] = [
            *self.openapi_loader.extract_fields(spec),
            *glpi_header_fields(),
        ]
        self.operations = self.openapi_loader.extract_operations(spec)
        self.index = ParameterIndex(fields)
        logger.info(
            "Loaded %s GLPI operations and %s parameters", len(self.operations), len(fields)
        )
        return self.index

    def tools(self) -> List[GlpiTool]:
        if self.index is None:
            raise RuntimeError("Operation catalogue not loaded")
        allowlist = self.settings.operation_allowlist()
        tools: List[GlpiTool] = []
        for operation in self.operations:
            if allowlist and operation.identifier not in allowlist:
                continue
            fields = self.index.fields_for(operation.identifier)
            tools.append(
                GlpiTool(
                    tool_name=self._format_tool_name(operation),
                    description=operation.description or operation.identifier,
                    operation=operation,
                    input_model=build_input_model(operation, fields),
                )
            )
        return tools

    def _format_tool_name(self, operation: OperationDescriptor) -> str:
        base = self._sanitize_name(f"{operation.method} {operation.template}")
        return f"glpi_{base}"

    def _sanitize_name(self, name: str) -> str:
        sanitized = "".join(ch.lower() if ch.isalnum() else "_" for ch in name)
        while "__" in sanitized:
            sanitized = sanitized.replace("__", "_")
        return sanitized.strip("_")
