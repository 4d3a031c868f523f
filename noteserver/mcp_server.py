#!/usr/bin/env python3
"""MCP transport: every composed method is published as a tool."""

import json
import logging
from typing import Any, Dict, List

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent
from mcp.server.models import InitializationOptions
from mcp.server.lowlevel import NotificationOptions

from noteserver.core.registry import DispatchSurface
from noteserver.errors import INTERNAL_ERROR, ServiceError

logger = logging.getLogger(__name__)

SERVER_NAME = "noteserver"
SERVER_VERSION = "1.0.0"


class NoteServerMCP:
    """MCP Server exposing the noteserver plugins as Service.Method tools."""

    def __init__(self, surface: DispatchSurface):
        self.surface = surface
        self.app = Server(SERVER_NAME)
        self._register_handlers()

    def list_tools(self) -> List[Tool]:
        tools = []
        for name in self.surface.names():
            method = self.surface.lookup(name)
            tools.append(
                Tool(
                    name=name,
                    description=method.description or name,
                    inputSchema=method.input_schema(),
                )
            )
        return tools

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Call a composed method and wrap the outcome as a JSON-ready dict."""
        try:
            result = await self.surface.call(name, arguments or {})
        except ServiceError as e:
            return {"error": e.to_dict(), "tool": name}
        except Exception as e:
            logger.error(f"Unhandled error in {name}: {e}", exc_info=True)
            return {"error": {"code": INTERNAL_ERROR, "message": f"internal error: {e}"}, "tool": name}
        return {"result": result}

    def _register_handlers(self):
        """Register MCP protocol handlers."""

        @self.app.list_tools()
        async def list_tools() -> List[Tool]:
            return self.list_tools()

        @self.app.call_tool()
        async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
            outcome = await self.call_tool(name, arguments)
            return [
                TextContent(
                    type="text",
                    text=json.dumps(outcome, indent=2, ensure_ascii=False),
                )
            ]

    async def run(self):
        """Serve MCP over stdin/stdout."""
        async with stdio_server() as (read_stream, write_stream):
            await self.app.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=SERVER_VERSION,
                    capabilities=self.app.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                ),
            )
