from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError

from gebrai.data_classes import ToolDescriptor, ToolResult
from gebrai.errors import GeoGebraError, McpErrorCode, RetryExhaustedError, ToolNotFoundError
from gebrai.performance import PerformanceMonitor
from gebrai.tools.schema import create_tool_schema_from_callable

ToolHandler = Callable[..., Awaitable[Union[Dict[str, Any], ToolResult]]]


class Tool(BaseModel):
    """A named async handler together with its generated input schema."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    input_schema: Dict[str, Any]
    handler: ToolHandler
    params_model: Optional[Type[BaseModel]] = None

    @classmethod
    def from_callable(cls, handler: ToolHandler, name: Optional[str] = None, description: Optional[str] = None) -> "Tool":
        tool_name = name or handler.__name__
        doc_description, input_schema, params_model = create_tool_schema_from_callable(handler, tool_name)
        return cls(
            name=tool_name,
            description=description or doc_description,
            input_schema=input_schema,
            handler=handler,
            params_model=params_model,
        )

    @property
    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(name=self.name, description=self.description, input_schema=self.input_schema)


def _format_validation_error(error: ValidationError) -> str:
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "arguments"
        problems.append(f"{location}: {item.get('msg')}")
    return "Invalid parameters: " + "; ".join(problems)


class ToolRegistry:
    """
    Maps tool names to handlers and runs them inside a failure envelope.

    `execute_tool` never raises: unknown tools, invalid arguments and handler errors all
    come back as a ToolResult with `is_error` set.
    """

    def __init__(self, monitor: Optional[PerformanceMonitor] = None):
        self._tools: Dict[str, Tool] = {}
        self.monitor = monitor or PerformanceMonitor()

    def register(self, handler: Union[Tool, ToolHandler], name: Optional[str] = None, description: Optional[str] = None) -> Tool:
        tool = handler if isinstance(handler, Tool) else Tool.from_callable(handler, name, description)
        if tool.name in self._tools:
            logger.warning("Tool {name} is already registered, replacing it", name=tool.name)
        self._tools[tool.name] = tool
        return tool

    def register_many(self, handlers: Iterable[Union[Tool, ToolHandler]]) -> None:
        for handler in handlers:
            self.register(handler)

    def list_tools(self) -> List[ToolDescriptor]:
        return [tool.descriptor for tool in self._tools.values()]

    def get_tool(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(name) from None

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    @property
    def tool_count(self) -> int:
        return len(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    async def execute_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> ToolResult:
        arguments = arguments or {}
        try:
            tool = self.get_tool(name)
        except ToolNotFoundError as e:
            logger.warning("Unknown tool requested: {name}", name=name)
            return ToolResult.failure(e.message, code=int(e.code))

        try:
            params = tool.params_model.model_validate(arguments) if tool.params_model else None
        except ValidationError as e:
            return ToolResult.failure(_format_validation_error(e), code=int(McpErrorCode.INVALID_PARAMS))
        kwargs = dict(params) if params is not None else {}

        logger.debug("Executing tool {name}", name=name, arguments=arguments)
        try:
            async with self.monitor.measure(name):
                outcome = await tool.handler(**kwargs)
        except RetryExhaustedError as e:
            cause = e.last_error
            detail = cause.message if isinstance(cause, GeoGebraError) else str(cause)
            logger.error("Tool {name} failed after {attempts} attempts: {error}", name=name, attempts=e.attempts, error=detail)
            return ToolResult.failure(f"{e.label} failed after {e.attempts} attempts: {detail}", code=int(e.code))
        except GeoGebraError as e:
            logger.error("Tool {name} failed: {error}", name=name, error=e.message)
            return ToolResult.failure(e.message, code=int(e.code))
        except Exception as e:
            logger.exception("Tool {name} raised an unexpected error", name=name)
            return ToolResult.failure(str(e) or e.__class__.__name__, code=int(McpErrorCode.INTERNAL_ERROR))

        if isinstance(outcome, ToolResult):
            return outcome
        payload = dict(outcome or {})
        payload.setdefault("success", True)
        return ToolResult.from_payload(payload, is_error=not payload["success"])
