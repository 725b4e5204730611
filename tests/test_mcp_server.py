import asyncio
import json
import os
import signal
import sys

import pytest

from gebrai.mcp_server import ToolCallFailed, call_registry_tool, create_mcp_server, run_until_signalled, to_mcp_tools


def test_every_registry_tool_is_exposed(geogebra_app):
    tools = to_mcp_tools(geogebra_app.registry)
    assert len(tools) == geogebra_app.registry.tool_count
    point = next(t for t in tools if t.name == "geogebra_create_point")
    assert point.inputSchema["required"] == ["name", "x", "y"]
    assert point.description.startswith("Create a point")


def test_successful_call_returns_text_content(geogebra_app):
    content = asyncio.run(call_registry_tool(geogebra_app.registry, "geogebra_create_point", {"name": "P", "x": 2, "y": 3}))
    assert len(content) == 1
    assert content[0].type == "text"
    payload = json.loads(content[0].text)
    assert payload["success"] is True
    assert payload["point"]["x"] == 2


def test_failed_call_raises_with_envelope(geogebra_app):
    with pytest.raises(ToolCallFailed) as info:
        asyncio.run(call_registry_tool(geogebra_app.registry, "geogebra_create_point", {"name": "1bad", "x": 0, "y": 0}))
    payload = json.loads(str(info.value))
    assert payload["success"] is False
    assert "must start with a letter" in payload["error"]


def test_missing_arguments_are_treated_as_empty(geogebra_app):
    content = asyncio.run(call_registry_tool(geogebra_app.registry, "ping", None))
    assert json.loads(content[0].text)["message"] == "pong"


def test_server_is_named(geogebra_app):
    server = create_mcp_server(geogebra_app)
    assert server.name == "gebrai"


@pytest.mark.skipif(sys.platform == "win32", reason="loop signal handlers need a POSIX platform")
def test_sigterm_stops_server_and_releases_instances(geogebra_app, factory):
    async def run():
        await geogebra_app.registry.execute_tool("geogebra_create_point", {"name": "A", "x": 1, "y": 2})
        asyncio.get_running_loop().call_later(0.05, os.kill, os.getpid(), signal.SIGTERM)
        await asyncio.wait_for(run_until_signalled(geogebra_app, asyncio.sleep(60)), timeout=5)
        return await geogebra_app.registry.execute_tool("geogebra_create_point", {"name": "B", "x": 0, "y": 0})

    after = asyncio.run(run())
    assert geogebra_app.pool.closed
    assert len(factory.created) == 1
    assert factory.last.cleanup_calls == 1
    assert after.is_error
    assert "closed" in after.payload()["error"]


def test_server_finishing_normally_still_shuts_down(geogebra_app, factory):
    async def main():
        await geogebra_app.registry.execute_tool("ping", {})

    asyncio.run(run_until_signalled(geogebra_app, main()))
    assert geogebra_app.pool.closed


@pytest.mark.skipif(os.getenv("GEBRAI_BROWSER_TESTS") != "1", reason="needs Playwright Chromium and network access")
def test_real_browser_round_trip(server_config):
    from gebrai.app import GeoGebraApp

    app = GeoGebraApp(server_config)

    async def run():
        try:
            point = await app.registry.execute_tool("geogebra_create_point", {"name": "A", "x": 1, "y": 2})
            png = await app.registry.execute_tool("geogebra_export_png", {})
            return point.payload(), png.payload()
        finally:
            await app.shutdown()

    point, png = asyncio.run(run())
    assert point["point"]["x"] == pytest.approx(1)
    assert point["point"]["y"] == pytest.approx(2)
    assert png["data"]
