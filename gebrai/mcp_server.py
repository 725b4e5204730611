import asyncio
from pathlib import Path
from typing import Any, Coroutine, Dict, List, Optional

import mcp.types as types
import typer
from loguru import logger
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from gebrai import __version__
from gebrai.app import GeoGebraApp
from gebrai.config import GeoGebraServerConfig
from gebrai.log import LogSetup
from gebrai.tools.registry import ToolRegistry

app = typer.Typer()


class ToolCallFailed(Exception):
    """Carries a failure envelope out of the call handler so the transport marks the result as an error."""


def to_mcp_tools(registry: ToolRegistry) -> List[types.Tool]:
    return [
        types.Tool(name=d.name, description=d.description, inputSchema=d.input_schema)
        for d in registry.list_tools()
    ]


async def call_registry_tool(registry: ToolRegistry, name: str, arguments: Optional[Dict[str, Any]]) -> List[types.TextContent]:
    result = await registry.execute_tool(name, arguments or {})
    if result.is_error:
        raise ToolCallFailed(result.text)
    return [types.TextContent(type="text", text=item.text) for item in result.content]


def create_mcp_server(geogebra: GeoGebraApp) -> Server:
    server = Server("gebrai", version=__version__)

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return to_mcp_tools(geogebra.registry)

    @server.call_tool()
    async def call_tool(name: str, arguments: Dict[str, Any]) -> List[types.TextContent]:
        return await call_registry_tool(geogebra.registry, name, arguments)

    return server


async def run_until_signalled(geogebra: GeoGebraApp, main: Coroutine[Any, Any, Any]) -> None:
    """Runs `main` until it returns or SIGINT/SIGTERM cancels it, then shuts the app down."""
    task = asyncio.ensure_future(main)
    installed = geogebra.pool.install_signal_handlers(task)
    try:
        await task
    except asyncio.CancelledError:
        if not task.cancelled():
            raise
        logger.info("MCP server stopped")
    finally:
        geogebra.pool.remove_signal_handlers(installed)
        await geogebra.shutdown()


async def _run_stdio(server: Server) -> None:
    async with stdio_server() as (read_stream, write_stream):
        logger.info("MCP server listening on stdio")
        await server.run(read_stream, write_stream, server.create_initialization_options())


async def serve_stdio(geogebra: GeoGebraApp) -> None:
    server = create_mcp_server(geogebra)
    await geogebra.start()
    await run_until_signalled(geogebra, _run_stdio(server))


@app.command()
def run_mcp_command(
    env_file: Optional[Path] = typer.Option(None, help="Optional .env file loaded before reading the environment"),
    log_level: Optional[str] = typer.Option(None, help="Log level, overrides LOG_LEVEL"),
    log_to_stderr: bool = typer.Option(False, help="Log to stderr instead of a log file"),
) -> None:
    """Run the GeoGebra MCP server over stdio."""
    config = GeoGebraServerConfig.from_env(env_file)
    if log_level:
        config.log_level = log_level.upper()
    # stdout carries the protocol, never log there
    LogSetup.configure(config.log_dir, config.log_level, "stderr" if log_to_stderr else "file")
    asyncio.run(serve_stdio(GeoGebraApp(config)))


def run() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    run()
