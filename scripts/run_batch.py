"""Run one GLPI operation over a JSON file of parameter sets."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
from pathlib import Path
from typing import Any, Dict, List

from glpi_adapter.config import get_settings
from glpi_adapter.errors import ExecutionError
from glpi_adapter.logging import configure_logging
from glpi_adapter.openapi import OpenAPILoader
from glpi_adapter.service import AdapterService, records_as_json
from glpi_adapter.tool_registry import ToolRegistry


def _load_items(path: Path) -> List[Dict[str, Any]]:
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if isinstance(data, dict):
        return [data]
    return list(data)


async def _run(args: argparse.Namespace) -> List[Dict[str, Any]]:
    settings = get_settings()
    if args.openapi:
        settings.glpi_openapi_path = args.openapi
    configure_logging(args.log_level or settings.adapter_log_level)

    loader = OpenAPILoader(
        cache_seconds=settings.adapter_openapi_cache_seconds,
        verify_ssl=not settings.glpi_ignore_ssl_issues,
    )
    registry = ToolRegistry(settings, loader)
    index = await registry.load()
    service = AdapterService.from_settings(settings, index)

    items = _load_items(Path(args.items).expanduser().resolve()) if args.items else [{}]
    records = await service.execute_batch(
        items, operation=args.operation, continue_on_fail=args.continue_on_fail
    )
    return records_as_json(records)


def main() -> None:
    parser = argparse.ArgumentParser(description="Execute a GLPI operation for each item")
    parser.add_argument(
        "operation",
        help='Operation identifier, e.g. "GET /Assistance/Ticket/{id}"',
    )
    parser.add_argument(
        "--items",
        default=os.getenv("GLPI_ITEMS_PATH", ""),
        help="Path to a JSON object or array of parameter objects",
    )
    parser.add_argument(
        "--openapi",
        default=os.getenv("GLPI_OPENAPI_PATH", ""),
        help="Local GLPI OpenAPI document (default: fetched from the GLPI server)",
    )
    parser.add_argument(
        "--continue-on-fail",
        action="store_true",
        help="Record per-item failures instead of aborting",
    )
    parser.add_argument("--log-level", default="", help="Override ADAPTER_LOG_LEVEL")

    args = parser.parse_args()
    try:
        output = asyncio.run(_run(args))
    except ExecutionError as exc:
        raise SystemExit(f"GLPI batch failed: {exc}")
    print(json.dumps(output, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
