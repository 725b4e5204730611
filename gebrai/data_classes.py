import base64
import json
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict

from gebrai.errors import CommandExecutionError

ExportFormat = Literal["png", "svg", "pdf", "gif", "mp4"]

MIME_TYPES: Dict[str, str] = {
    "png": "image/png",
    "svg": "image/svg+xml",
    "pdf": "application/pdf",
    "gif": "image/gif",
    "mp4": "video/mp4",
}


class GeoGebraConfig(BaseModel):
    """
    Applet parameters passed to GeoGebra's deployggb loader.
    """
    app_name: str = Field(default="classic", description="GeoGebra app variant", examples=["classic", "graphing", "geometry", "3d"])
    width: int = Field(default=800, ge=100, le=5000, description="Canvas width in pixels")
    height: int = Field(default=600, ge=100, le=5000, description="Canvas height in pixels")
    show_menu_bar: bool = False
    show_tool_bar: bool = False
    show_algebra_input: bool = False
    show_reset_icon: bool = False
    enable_right_click: bool = True
    language: str = "en"

    def to_applet_parameters(self) -> Dict[str, Any]:
        """Camel-cased parameter object understood by GGBApplet."""
        return {
            "appName": self.app_name,
            "width": self.width,
            "height": self.height,
            "showMenuBar": self.show_menu_bar,
            "showToolBar": self.show_tool_bar,
            "showAlgebraInput": self.show_algebra_input,
            "showResetIcon": self.show_reset_icon,
            "enableRightClick": self.enable_right_click,
            "language": self.language,
            "id": "ggbApplet",
        }


class CommandResult(BaseModel):
    """Outcome of a single command evaluated by the applet."""
    success: bool
    result: Optional[str] = None
    error: Optional[str] = None
    command: Optional[str] = Field(default=None, exclude=True)

    def raise_for_status(self) -> "CommandResult":
        if not self.success:
            raise CommandExecutionError(self.command or "", self.error)
        return self


class ObjectInfo(BaseModel):
    name: str
    type: str
    value: Optional[float] = None
    value_string: Optional[str] = None
    visible: bool = True
    defined: bool = True
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None
    color: Optional[str] = None


class SessionState(BaseModel):
    id: str
    is_ready: bool
    last_activity: float
    config: GeoGebraConfig


class ExportArtifact(BaseModel):
    """
    Rendered payload together with what is known about it.
    Text formats (svg) keep their UTF-8 text in `data` as bytes too.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    format: ExportFormat
    data: bytes = Field(repr=False)
    width: Optional[int] = None
    height: Optional[int] = None
    frame_count: Optional[int] = None
    path: Optional[Path] = None

    @property
    def mime_type(self) -> str:
        return MIME_TYPES[self.format]

    @property
    def size(self) -> int:
        return len(self.data)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_text(self) -> str:
        return self.data.decode("utf-8")


class AnimationOptions(BaseModel):
    """Frame capture and encoding parameters for animated exports."""
    format: Literal["gif", "mp4"] = "gif"
    duration: int = Field(default=5000, ge=1000, le=60000, description="Animation length in milliseconds")
    frame_rate: Optional[int] = Field(default=None, ge=1, le=60, description="Frames per second, 10 for gif and 30 for mp4 when omitted")
    quality: Optional[int] = Field(default=None, ge=0, le=100, description="MP4 CRF, 23 when omitted; gif palette output ignores it")
    width: Optional[int] = Field(default=None, ge=100, le=5000)
    height: Optional[int] = Field(default=None, ge=100, le=5000)

    @property
    def effective_frame_rate(self) -> int:
        if self.frame_rate is not None:
            return self.frame_rate
        return 10 if self.format == "gif" else 30

    @property
    def effective_quality(self) -> int:
        if self.quality is not None:
            return self.quality
        return 80 if self.format == "gif" else 23

    @property
    def frame_count(self) -> int:
        # ceil(duration / 1000 * frame_rate) without float rounding surprises
        return -(-self.duration * self.effective_frame_rate // 1000)


class PoolStats(BaseModel):
    total_instances: int = 0
    active_instances: int = 0
    idle_instances: int = 0
    average_usage: float = 0.0
    oldest_instance_age: float = Field(default=0.0, description="Seconds since the oldest entry was created")
    memory_estimate: int = Field(default=0, description="Estimated memory in MB")


class PerformanceStats(BaseModel):
    count: int = 0
    average_duration: float = 0.0
    median_duration: float = 0.0
    min_duration: float = 0.0
    max_duration: float = 0.0
    p95_duration: float = 0.0
    p99_duration: float = 0.0
    success_rate: float = 0.0


class ToolDescriptor(BaseModel):
    name: str
    description: str
    input_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    """Protocol envelope returned for every tool invocation."""
    content: List[TextContent] = Field(default_factory=list)
    is_error: bool = False

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], is_error: bool = False) -> "ToolResult":
        return cls(content=[TextContent(text=json.dumps(payload, indent=2, default=str))], is_error=is_error)

    @classmethod
    def failure(cls, error: str, **extra: Any) -> "ToolResult":
        return cls.from_payload({"success": False, "error": error, **extra}, is_error=True)

    @property
    def text(self) -> str:
        return "\n".join(item.text for item in self.content)

    def payload(self) -> Dict[str, Any]:
        """Decoded JSON of the first text item."""
        return json.loads(self.content[0].text) if self.content else {}
