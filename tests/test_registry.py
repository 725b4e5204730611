import asyncio
from typing import Annotated, List, Optional

from pydantic import Field

from gebrai.data_classes import ToolResult
from gebrai.errors import CommandExecutionError, McpErrorCode
from gebrai.performance import PerformanceMonitor
from gebrai.tools.registry import Tool, ToolRegistry
from gebrai.tools.schema import create_tool_schema_from_callable


async def rotate(name: str, angle: float, unit: str = "degrees", center: Optional[str] = None) -> dict:
    """
    Rotate an object around a center.

    Args:
        name: object to rotate
        angle: rotation angle
        unit ({degrees, radians}): angle unit
        center: rotation center, the origin when omitted
    """
    return {"name": name, "angle": angle, "unit": unit, "center": center}


async def count_vertices(vertices: List[str], limit: Annotated[int, Field(ge=1, le=5)] = 3) -> dict:
    """Count vertices."""
    return {"count": min(len(vertices), limit)}


def test_schema_from_docstring_and_signature():
    description, schema, model = create_tool_schema_from_callable(rotate)
    assert description == "Rotate an object around a center."
    assert schema["type"] == "object"
    assert schema["required"] == ["name", "angle"]
    properties = schema["properties"]
    assert properties["name"] == {"type": "string", "description": "object to rotate"}
    assert properties["angle"]["type"] == "number"
    assert properties["unit"]["enum"] == ["degrees", "radians"]
    assert properties["unit"]["default"] == "degrees"
    assert "title" not in properties["center"]
    assert model.model_validate({"name": "A", "angle": 90}).unit == "degrees"


def test_schema_carries_constraints():
    _, schema, _ = create_tool_schema_from_callable(count_vertices)
    assert schema["properties"]["vertices"]["type"] == "array"
    assert schema["properties"]["limit"]["minimum"] == 1
    assert schema["properties"]["limit"]["maximum"] == 5


def test_parameterless_handler():
    async def ping() -> dict:
        """Ping."""
        return {}

    description, schema, model = create_tool_schema_from_callable(ping)
    assert description == "Ping."
    assert schema == {"type": "object", "properties": {}}
    assert model is None


def test_register_and_execute():
    registry = ToolRegistry()
    tool = registry.register(rotate)
    assert isinstance(tool, Tool)
    assert "rotate" in registry
    assert len(registry) == 1
    result = asyncio.run(registry.execute_tool("rotate", {"name": "A", "angle": 45}))
    assert not result.is_error
    assert result.payload() == {"name": "A", "angle": 45.0, "unit": "degrees", "center": None, "success": True}


def test_register_with_explicit_name():
    registry = ToolRegistry()
    registry.register(rotate, name="geogebra_rotate", description="Rotate things")
    descriptor = registry.list_tools()[0]
    assert descriptor.name == "geogebra_rotate"
    assert descriptor.description == "Rotate things"


def test_validation_failure_envelope():
    registry = ToolRegistry()
    registry.register(count_vertices)
    result = asyncio.run(registry.execute_tool("count_vertices", {"vertices": ["A"], "limit": 9}))
    assert result.is_error
    payload = result.payload()
    assert payload["success"] is False
    assert payload["code"] == int(McpErrorCode.INVALID_PARAMS)
    assert payload["error"].startswith("Invalid parameters: limit")


def test_handler_errors_never_escape():
    async def explode() -> dict:
        """Always fails."""
        raise RuntimeError("boom")

    async def reject() -> dict:
        """Fails the way the applet does."""
        raise CommandExecutionError("Foo(1)")

    monitor = PerformanceMonitor()
    registry = ToolRegistry(monitor=monitor)
    registry.register_many([explode, reject])

    async def run():
        return await registry.execute_tool("explode"), await registry.execute_tool("reject")

    exploded, rejected = asyncio.run(run())
    assert exploded.is_error
    assert exploded.payload() == {"success": False, "error": "boom", "code": int(McpErrorCode.INTERNAL_ERROR)}
    assert rejected.payload()["code"] == int(McpErrorCode.TOOL_EXECUTION_ERROR)
    assert rejected.payload()["error"] == "Failed to execute command: Foo(1)"
    assert monitor.stats("explode").success_rate == 0.0


def test_handler_may_return_its_own_envelope():
    async def custom() -> ToolResult:
        """Returns a prepared result."""
        return ToolResult.failure("not today", reason="maintenance")

    registry = ToolRegistry()
    registry.register(custom)
    result = asyncio.run(registry.execute_tool("custom"))
    assert result.is_error
    assert result.payload()["reason"] == "maintenance"


def test_explicit_unsuccessful_payload_is_an_error():
    async def soft_fail() -> dict:
        """Reports failure without raising."""
        return {"success": False, "error": "nothing to do"}

    registry = ToolRegistry()
    registry.register(soft_fail)
    assert asyncio.run(registry.execute_tool("soft_fail")).is_error


def test_unknown_tool():
    registry = ToolRegistry()
    result = asyncio.run(registry.execute_tool("nope", {}))
    assert result.is_error
    assert result.payload()["code"] == int(McpErrorCode.TOOL_NOT_FOUND)
    assert not registry.has_tool("nope")
