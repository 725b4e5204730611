import asyncio
import re
import uuid
from typing import Any, Callable, Dict, List, Optional

from gebrai.data_classes import AnimationOptions, CommandResult, GeoGebraConfig, ObjectInfo, SessionState
from gebrai.errors import ExportError, GeoGebraConnectionError, NotInitializedError
from gebrai.interfaces.session import IGeoGebraSession

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-png-payload"
SVG_TEXT = '<svg xmlns="http://www.w3.org/2000/svg" width="800" height="600"></svg>'
PDF_BYTES = b"%PDF-1.4\nfake"

NUMBER = r"[+-]?\d+(?:\.\d+)?"
POINT = re.compile(rf"^\s*([A-Za-z]\w*)\s*=\s*\(\s*({NUMBER})\s*,\s*({NUMBER})\s*\)\s*$")
ASSIGNMENT = re.compile(r"^\s*([A-Za-z]\w*)\s*(?:\([^)]*\))?\s*[=:](?!=)\s*(.*)$")
TYPES_BY_COMMAND = {
    "Line": "line",
    "Circle": "circle",
    "Polygon": "polygon",
    "Slider": "numeric",
    "Curve": "curve",
    "ImplicitCurve": "implicitcurve",
}


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSession(IGeoGebraSession):
    """
    In-memory stand-in for a browser hosted applet.

    Points written as `A = (x, y)` keep their coordinates, other assignments are stored by name
    with a type derived from the command. Commands listed in `failing_commands` are reported as
    failed by the applet.
    """

    def __init__(
            self,
            config: GeoGebraConfig,
            clock: Callable[[], float],
            init_delay: float = 0.0,
            fail_init: bool = False,
            export_failures: int = 0,
            failing_commands: Optional[List[str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.config = config
        self._clock = clock
        self._last_activity = clock()
        self.init_delay = init_delay
        self.fail_init = fail_init
        self.export_failures = export_failures
        self.failing_commands = set(failing_commands or [])
        self.ready = False
        self.initialize_calls = 0
        self.cleanup_calls = 0
        self.new_construction_calls = 0
        self.export_calls = 0
        self.commands: List[str] = []
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.view: Dict[str, Any] = {}
        self.animating: Dict[str, bool] = {}
        self.speeds: Dict[str, float] = {}
        self.traced: Dict[str, bool] = {}
        self.animation_running = False

    @property
    def last_activity(self) -> float:
        return self._last_activity

    def _use(self) -> None:
        if not self.ready:
            raise NotInitializedError(f"GeoGebra instance {self.id} is not initialized")
        self._last_activity = self._clock()

    async def initialize(self, headless: bool = True) -> None:
        self.initialize_calls += 1
        if self.init_delay:
            await asyncio.sleep(self.init_delay)
        if self.fail_init:
            raise GeoGebraConnectionError("applet never loaded")
        self.ready = True

    async def is_ready(self) -> bool:
        return self.ready

    def get_state(self) -> SessionState:
        return SessionState(id=self.id, is_ready=self.ready, last_activity=self._last_activity, config=self.config)

    async def eval_command(self, command: str) -> CommandResult:
        self._use()
        self.commands.append(command)
        if command in self.failing_commands:
            return CommandResult(success=False, error=f"Failed to execute command: {command}", command=command)
        point = POINT.match(command)
        if point:
            name, x, y = point.group(1), float(point.group(2)), float(point.group(3))
            self.objects[name] = {"type": "point", "x": x, "y": y, "value_string": f"{name} = ({x}, {y})"}
            return CommandResult(success=True, result=self.objects[name]["value_string"], command=command)
        assignment = ASSIGNMENT.match(command)
        if assignment:
            name, definition = assignment.group(1), assignment.group(2)
            head = definition.split("(", 1)[0].strip()
            value = None
            if head == "Slider":
                value = float(definition[len("Slider("):].split(",")[0])
            self.objects[name] = {
                "type": TYPES_BY_COMMAND.get(head, "function" if "(x)" in command else "numeric"),
                "value": value,
                "value_string": f"{name}: {definition}",
            }
            return CommandResult(success=True, result=self.objects[name]["value_string"], command=command)
        return CommandResult(success=True, command=command)

    async def eval_command_get_labels(self, command: str) -> List[str]:
        result = await self.eval_command(command)
        assignment = ASSIGNMENT.match(command)
        return [assignment.group(1)] if result.success and assignment else []

    async def delete_object(self, name: str) -> None:
        self._use()
        self.objects.pop(name, None)

    async def new_construction(self) -> None:
        self._use()
        self.new_construction_calls += 1
        self.objects.clear()

    async def reset(self) -> None:
        await self.new_construction()

    async def refresh_views(self) -> None:
        self._use()

    async def set_coord_system(self, xmin: float, xmax: float, ymin: float, ymax: float) -> None:
        self._use()
        self.view["coord_system"] = (xmin, xmax, ymin, ymax)

    async def set_axes_visible(self, x_axis: bool, y_axis: bool) -> None:
        self._use()
        self.view["axes"] = (x_axis, y_axis)

    async def set_grid_visible(self, visible: bool) -> None:
        self._use()
        self.view["grid"] = visible

    async def set_value(self, name: str, value: float) -> None:
        self._use()
        self.objects[name]["value"] = value

    async def get_all_object_names(self, object_type: Optional[str] = None) -> List[str]:
        self._use()
        return [name for name, obj in self.objects.items() if object_type is None or obj["type"] == object_type]

    async def get_object_info(self, name: str) -> Optional[ObjectInfo]:
        self._use()
        obj = self.objects.get(name)
        if obj is None:
            return None
        return ObjectInfo(
            name=name,
            type=obj["type"],
            value=obj.get("value"),
            value_string=obj.get("value_string"),
            x=obj.get("x"),
            y=obj.get("y"),
        )

    async def exists(self, name: str) -> bool:
        self._use()
        return name in self.objects

    async def is_defined(self, name: str) -> bool:
        return await self.exists(name)

    async def get_value(self, name: str) -> float:
        self._use()
        return self.objects[name].get("value") or 0.0

    async def get_value_string(self, name: str) -> str:
        self._use()
        obj = self.objects.get(name)
        return obj["value_string"] if obj else ""

    async def get_x_coord(self, name: str) -> float:
        self._use()
        return self.objects[name].get("x") or 0.0

    async def get_y_coord(self, name: str) -> float:
        self._use()
        return self.objects[name].get("y") or 0.0

    async def get_z_coord(self, name: str) -> float:
        self._use()
        return 0.0

    async def export_png(self, scale: float = 1.0, transparent: bool = False, dpi: int = 72,
                         width: Optional[int] = None, height: Optional[int] = None) -> bytes:
        self._use()
        self.export_calls += 1
        if self.export_failures > 0:
            self.export_failures -= 1
            raise ExportError("png", "All PNG export methods failed", ["full", "no_dpi"])
        return PNG_BYTES

    async def export_svg(self) -> str:
        self._use()
        self.export_calls += 1
        return SVG_TEXT

    async def export_pdf(self) -> bytes:
        self._use()
        self.export_calls += 1
        return PDF_BYTES

    async def set_animating(self, name: str, animate: bool) -> None:
        self._use()
        self.animating[name] = animate

    async def set_animation_speed(self, name: str, speed: float) -> None:
        self._use()
        self.speeds[name] = speed

    async def start_animation(self) -> None:
        self._use()
        self.animation_running = True

    async def stop_animation(self) -> None:
        self._use()
        self.animation_running = False

    async def is_animation_running(self) -> bool:
        self._use()
        return self.animation_running

    async def set_trace(self, name: str, enabled: bool) -> None:
        self._use()
        self.traced[name] = enabled

    async def capture_animation_frames(self, options: AnimationOptions) -> List[bytes]:
        self._use()
        return [PNG_BYTES] * options.frame_count

    async def cleanup(self) -> None:
        self.cleanup_calls += 1
        self.ready = False


class FakeSessionFactory:
    """Session factory for the pool that remembers every session it produced."""

    def __init__(self, clock: Optional[FakeClock] = None, **session_kwargs: Any):
        self.clock = clock or FakeClock()
        self.session_kwargs = session_kwargs
        self.created: List[FakeSession] = []

    def __call__(self, config: GeoGebraConfig) -> FakeSession:
        session = FakeSession(config, self.clock, **self.session_kwargs)
        self.created.append(session)
        return session

    @property
    def last(self) -> FakeSession:
        return self.created[-1]
