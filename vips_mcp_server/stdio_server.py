"""
stdio transport for the libvips MCP Server, built on the MCP Python SDK.

Tool discovery and dispatch are shared with the HTTP server; only the
transport differs.
"""
import argparse
import asyncio
from typing import Any, Dict, List

import mcp.types as types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from . import server as http_server
from .exceptions import ImageProcessingError
from .log import get_logger, setup_logging
from .tools import tool_descriptors

logger = get_logger("stdio")

server = Server(http_server.SERVER_INFO["name"])


@server.list_tools()
async def list_tools() -> List[types.Tool]:
    return [types.Tool(**tool) for tool in tool_descriptors()]


@server.call_tool()
async def call_tool(name: str, arguments: Dict[str, Any]) -> List[types.TextContent]:
    # image work is blocking; keep the event loop free for the transport
    result = await asyncio.to_thread(
        http_server.handle_tools_call, {"name": name, "arguments": arguments or {}})
    text = [types.TextContent(type="text", text=item["text"]) for item in result["content"]]
    if result.get("isError"):
        # the SDK reports raised exceptions as isError results
        raise ImageProcessingError("".join(item.text for item in text))
    return text


async def run_server():
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main():
    parser = argparse.ArgumentParser(description="libvips MCP Server (stdio)")
    parser.add_argument("--working-dir", type=str, default=None, help="Directory for relative image paths")
    parser.add_argument("--log-level", type=str, default="info", help="debug, info, warning or error")
    args = parser.parse_args()

    setup_logging(args.log_level)
    http_server.initialize_image_manager(working_dir=args.working_dir)
    logger.info("libvips MCP Server v%s running on stdio", http_server.SERVER_INFO["version"])
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
