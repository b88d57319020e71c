"""CLI entry point for the GLPI adapter."""

from __future__ import annotations

import asyncio
import logging

import uvicorn

from .config import Settings, get_settings
from .logging import configure_logging
from .server import build_server

logger = logging.getLogger(__name__)

HTTP_TRANSPORTS = {"http", "streamable-http", "streamablehttp", "sse"}


def check_settings(settings: Settings) -> None:
    """Refuse to start without a usable GLPI connection."""
    missing = settings.missing_glpi_settings()
    if missing:
        raise SystemExit(f"Missing GLPI settings: {', '.join(missing)}")
    if not settings.glpi_url.startswith(("http://", "https://")):
        raise SystemExit(f"GLPI_URL must be an http(s) URL, got {settings.glpi_url!r}")
    transport = settings.adapter_transport.lower()
    if transport != "stdio" and transport not in HTTP_TRANSPORTS:
        raise SystemExit(f"Unsupported ADAPTER_TRANSPORT: {settings.adapter_transport}")
    if settings.glpi_ignore_ssl_issues:
        logger.warning("TLS verification disabled for %s", settings.glpi_url)


async def _run() -> None:
    settings = get_settings()
    configure_logging(settings.adapter_log_level)
    check_settings(settings)

    mcp, app = await build_server(settings)
    transport = settings.adapter_transport.lower()
    logger.info(
        "Starting %s transport=%s glpi=%s user=%s",
        settings.service_name,
        transport,
        settings.glpi_url,
        settings.glpi_username,
    )

    if transport in HTTP_TRANSPORTS:
        if not app:
            raise RuntimeError(f"HTTP app unavailable for transport={transport}")
        config = uvicorn.Config(app, host=settings.adapter_host, port=settings.adapter_port)
        await uvicorn.Server(config).serve()
        return
    await mcp.run_stdio_async()


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
