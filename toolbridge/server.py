"""
MCP server exposing the provider tools through FastMCP v2.

This module builds and runs the server with:
- One tool per provider operation (Google Maps, SerpApi finance and flights,
  Gmail, Google Calendar), registered from the toolbridge.tools registry
- A logging middleware that records every tool call with a request id
- Health and readiness HTTP endpoints (streamable-http transport only)
- Structured JSON logging on stderr
- stdio transport by default, streamable HTTP when MCP_TRANSPORT says so

Startup sequence:

    1. Configure logging
    2. Load the calendar catalog (one calendarList call, falls back to
       "primary" when calendar credentials are missing or rejected)
    3. build_server(catalog) registers the tools, with the catalog baked
       into the calendarId parameter descriptions
    4. Run the selected transport

The catalog is passed in explicitly so tests can build a server from any
snapshot without touching the network.

Running the server:
    python -m toolbridge.server

    With MCP_TRANSPORT=streamable-http it listens on MCP_HOST:MCP_PORT with:
    - MCP endpoint at /mcp (Streamable HTTP)
    - Health check at /health
    - Readiness check at /ready
"""

import asyncio
import json
import logging
import sys
import time
import uuid
from typing import Sequence

from fastmcp import FastMCP
from fastmcp.server.middleware import CallNext, Middleware, MiddlewareContext
from fastmcp.tools.tool import Tool, ToolResult
from mcp.types import CallToolRequestParams, ListToolsRequest
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from toolbridge.config import settings
from toolbridge.credentials import credential_status
from toolbridge.providers.calendar import CalendarCatalog, load_calendar_catalog
from toolbridge.tools import TOOLS_BY_NAME, build_tools

# ---------------------------------------------------------------------------
# Structured JSON Logging
# ---------------------------------------------------------------------------
# stdout carries the MCP protocol when running over stdio, so log lines go
# to stderr. Structured fields are attached with extra={"tool_data": {...}}.


class JSONLogFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Example output:

        {"timestamp": "2026-02-06 10:30:00,123", "level": "INFO",
         "logger": "toolbridge", "message": "Tool call completed",
         "request_id": "1a2b3c4d", "tool": "geocode", "provider": "maps"}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "tool_data"):
            log_entry.update(record.tool_data)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: str) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONLogFormatter())
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )


logger = logging.getLogger("toolbridge")


# ---------------------------------------------------------------------------
# Tool call logging middleware
# ---------------------------------------------------------------------------


class ToolCallLoggingMiddleware(Middleware):
    """
    Logs every tools/list and tools/call request.

    Each tool call gets a short request id so the start and completion lines
    (and any failure logged by the tool boundary in between) can be
    correlated. Arguments are not logged: they can hold email bodies and
    addresses.
    """

    async def on_list_tools(
        self,
        context: MiddlewareContext[ListToolsRequest],
        call_next: CallNext[ListToolsRequest, Sequence[Tool]],
    ) -> Sequence[Tool]:
        tools = await call_next(context)
        logger.debug("Listed tools", extra={"tool_data": {"total_tools": len(tools)}})
        return tools

    async def on_call_tool(
        self,
        context: MiddlewareContext[CallToolRequestParams],
        call_next: CallNext[CallToolRequestParams, ToolResult],
    ) -> ToolResult:
        request_id = str(uuid.uuid4())[:8]
        tool_name = context.message.name
        spec = TOOLS_BY_NAME.get(tool_name)
        tool_data = {
            "request_id": request_id,
            "tool": tool_name,
            "provider": spec.kind.value if spec else None,
        }

        logger.info("Tool call started", extra={"tool_data": tool_data})
        started = time.perf_counter()
        try:
            result = await call_next(context)
        except Exception:
            logger.warning(
                "Tool call raised",
                extra={"tool_data": {**tool_data, "outcome": "raised"}},
            )
            raise

        logger.info(
            "Tool call completed",
            extra={
                "tool_data": {
                    **tool_data,
                    "outcome": "completed",
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                }
            },
        )
        return result


# ---------------------------------------------------------------------------
# Server factory
# ---------------------------------------------------------------------------


def build_server(catalog: CalendarCatalog | None = None) -> FastMCP:
    """
    Create the FastMCP server with every provider tool registered.

    Args:
        catalog: Startup calendar snapshot used for the calendarId
                 descriptions (the "primary" fallback when omitted)
    """
    if catalog is None:
        catalog = CalendarCatalog.fallback()

    mcp = FastMCP(
        name="toolbridge",
        instructions=(
            "Tools for Google Maps (geocoding, places, directions, distance "
            "matrix), Google Finance quotes, Google Flights search, Gmail and "
            "Google Calendar. Every tool returns a single Markdown document."
        ),
        middleware=[ToolCallLoggingMiddleware()],
    )

    for tool in build_tools(catalog):
        mcp.add_tool(tool)

    # Health and readiness: plain HTTP routes, only served by streamable-http.

    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> Response:
        """Liveness probe: is the server process alive and responsive?"""
        return JSONResponse({"status": "healthy"})

    @mcp.custom_route("/ready", methods=["GET"])
    async def readiness_check(request: Request) -> Response:
        """Readiness probe: is at least one provider configured?"""
        providers = credential_status()
        if not any(configured for name, configured in providers.items() if name != "news"):
            return JSONResponse(
                {"status": "not_ready", "reason": "no provider credentials configured", "providers": providers},
                status_code=503,
            )
        return JSONResponse(
            {
                "status": "ready",
                "providers": providers,
                "calendar_catalog": "loaded" if catalog.loaded else "fallback",
            }
        )

    return mcp


# ---------------------------------------------------------------------------
# Server entry point
# ---------------------------------------------------------------------------


def main() -> None:
    configure_logging(settings.log_level)
    logger.info(
        "Provider configuration",
        extra={"tool_data": {"providers": credential_status()}},
    )

    catalog = asyncio.run(load_calendar_catalog())
    mcp = build_server(catalog)

    if settings.transport == "stdio":
        logger.info("Starting MCP server (transport=stdio)")
        mcp.run(transport="stdio")
        return

    logger.info(
        "Starting MCP server on %s:%d (transport=%s)",
        settings.host,
        settings.port,
        settings.transport,
    )
    mcp.run(
        transport=settings.transport,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
