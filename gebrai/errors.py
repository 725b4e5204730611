from enum import IntEnum
from typing import Any, Dict, List, Optional


class McpErrorCode(IntEnum):
    """JSON-RPC 2.0 error codes plus the server specific tool codes."""
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    TOOL_NOT_FOUND = -32001
    TOOL_EXECUTION_ERROR = -32002


class GeoGebraError(Exception):
    """Base class for every error raised by gebrai."""
    code: McpErrorCode = McpErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.data = data

    def to_error_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": int(self.code), "message": self.message}
        if self.data:
            payload["data"] = self.data
        return payload


class GeoGebraConnectionError(GeoGebraError, ConnectionError):
    """The browser could not be launched or the applet never became ready."""


class NotInitializedError(GeoGebraError):
    """An operation was attempted on a session that is not ready."""

    def __init__(self, message: str = "GeoGebra instance is not initialized"):
        super().__init__(message)


class CommandExecutionError(GeoGebraError):
    """The applet reported a failure while evaluating a command string."""
    code = McpErrorCode.TOOL_EXECUTION_ERROR

    def __init__(self, command: str, message: Optional[str] = None):
        self.command = command
        super().__init__(message or f"Failed to execute command: {command}", {"command": command})


class ExportError(GeoGebraError):
    """No export method produced valid output."""
    code = McpErrorCode.TOOL_EXECUTION_ERROR

    def __init__(self, export_format: str, message: str, attempts: Optional[List[str]] = None):
        self.export_format = export_format
        self.attempts = attempts or []
        if self.attempts:
            message = f"{message} (tried: {', '.join(self.attempts)})"
        super().__init__(message, {"format": export_format, "attempts": self.attempts})


class ToolValidationError(GeoGebraError, ValueError):
    """Caller supplied arguments failed local checks."""
    code = McpErrorCode.INVALID_PARAMS


class ToolNotFoundError(GeoGebraError, KeyError):
    code = McpErrorCode.TOOL_NOT_FOUND

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Tool not found: {name}", {"tool": name})

    def __str__(self) -> str:
        return self.message


class PoolExhaustedError(GeoGebraError):
    """Every pooled instance is leased and the pool is at capacity."""


class RetryExhaustedError(GeoGebraError):
    """Raised by the retry wrapper once all attempts have failed."""

    def __init__(self, label: str, attempts: int, last_error: BaseException):
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{label} failed after {attempts} attempts: {last_error}",
            {"label": label, "attempts": attempts},
        )


class PoolClosedError(GeoGebraError):
    """The pool has been shut down and no longer hands out instances."""

    def __init__(self, message: str = "Instance pool is closed"):
        super().__init__(message)
