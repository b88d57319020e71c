"""MCP server setup for the GLPI adapter."""

import logging
from typing import Any, Awaitable, Callable, Dict, List

from fastmcp import FastMCP
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from .config import Settings
from .errors import ExecutionError
from .openapi import OpenAPILoader
from .service import AdapterService, records_as_json
from .tool_registry import GlpiTool, ToolRegistry

logger = logging.getLogger(__name__)


async def build_server(settings: Settings) -> tuple[FastMCP, object | None]:
    openapi_loader = OpenAPILoader(
        cache_seconds=settings.adapter_openapi_cache_seconds,
        verify_ssl=not settings.glpi_ignore_ssl_issues,
    )
    registry = ToolRegistry(settings, openapi_loader)
    index = await registry.load()
    service = AdapterService.from_settings(settings, index)

    mcp = FastMCP(settings.service_name, instructions=_instructions())
    app = _get_http_app(mcp, settings)
    _attach_auth(app, settings)
    _attach_healthcheck(app)

    for tool in registry.tools():
        handler = _tool_handler(service, tool)
        mcp.tool(name=tool.tool_name, description=tool.description)(handler)
        logger.info("Registered tool: %s (%s)", tool.tool_name, tool.operation.identifier)

    mcp.tool(name="glpi_batch")(_batch_handler(service))
    return mcp, app


async def run_operation(
    service: AdapterService,
    operation: str,
    items: List[Dict[str, Any]],
    continue_on_fail: bool = False,
) -> Dict[str, Any]:
    try:
        records = await service.execute_batch(
            items, operation=operation, continue_on_fail=continue_on_fail
        )
    except ExecutionError as exc:
        logger.error("Operation %s failed: %s", operation, exc)
        return _format_error(str(exc))
    return _format_result(records_as_json(records))


def _tool_handler(
    service: AdapterService, tool: GlpiTool
) -> Callable[[Any], Awaitable[Dict[str, Any]]]:
    async def handler(payload: tool.input_model) -> Dict[str, Any]:
        parameters = payload.model_dump(by_alias=True, exclude_none=True)
        return await run_operation(service, tool.operation.identifier, [parameters])

    handler.__name__ = tool.tool_name
    return handler


def _batch_handler(service: AdapterService) -> Callable[..., Awaitable[Dict[str, Any]]]:
    async def glpi_batch(
        operation: str,
        items: List[Dict[str, Any]],
        continue_on_fail: bool = False,
    ) -> Dict[str, Any]:
        """Run one GLPI operation (e.g. "GET /Assistance/Ticket/{id}") for each item."""
        return await run_operation(service, operation, items, continue_on_fail)

    return glpi_batch


def _format_result(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"content": [{"type": "json", "json": records}]}


def _format_error(message: str) -> Dict[str, Any]:
    return {"content": [{"type": "text", "text": message}], "is_error": True}


def _attach_auth(app, settings: Settings) -> None:  # type: ignore[no-untyped-def]
    if not app:
        logger.warning("FastMCP app not available; auth middleware disabled")
        return
    if not settings.adapter_auth_token:
        logger.info("No adapter auth token configured; HTTP transport is unauthenticated")
        return

    async def auth_middleware(request, call_next):  # type: ignore[no-untyped-def]
        if request.method == "OPTIONS":
            return await call_next(request)
        if request.url.path.endswith("/health"):
            return await call_next(request)

        auth_header = request.headers.get("authorization", "")
        token = auth_header.replace("Bearer", "").strip()
        if token == settings.adapter_auth_token:
            return await call_next(request)
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    app.add_middleware(BaseHTTPMiddleware, dispatch=auth_middleware)


def _attach_healthcheck(app) -> None:  # type: ignore[no-untyped-def]
    if not app:
        return

    async def healthcheck(_request):  # type: ignore[no-untyped-def]
        return JSONResponse({"status": "ok"})

    app.add_route("/health", healthcheck, methods=["GET"])


def _instructions() -> str:
    return (
        "GLPI adapter. Each tool maps to one GLPI high-level API operation; "
        "glpi_batch runs an operation over several parameter sets."
    )


def _get_http_app(mcp: FastMCP, settings: Settings):  # type: ignore[no-untyped-def]
    transport = settings.adapter_transport.lower()
    if transport in {"http"}:
        app = mcp.http_app(transport="http", stateless_http=True, json_response=True)
        _attach_cors(app)
        return app
    if transport in {"streamable-http", "streamablehttp"}:
        app = mcp.http_app(
            transport="streamable-http", stateless_http=True, json_response=True
        )
        _attach_cors(app)
        return app
    if transport in {"sse"}:
        app = mcp.http_app(transport="sse")
        _attach_cors(app)
        return app
    return None


def _attach_cors(app) -> None:  # type: ignore[no-untyped-def]
    if not app:
        return
    from starlette.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
