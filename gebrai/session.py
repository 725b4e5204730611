import asyncio
import base64
import binascii
import re
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from loguru import logger
from playwright.async_api import async_playwright, Browser, Page, Playwright

from gebrai.applet import render_applet_page
from gebrai.config import SessionTimeouts
from gebrai.data_classes import AnimationOptions, CommandResult, GeoGebraConfig, ObjectInfo, SessionState
from gebrai.errors import ExportError, GeoGebraConnectionError, NotInitializedError
from gebrai.health import ReadinessProber
from gebrai.interfaces.session import IGeoGebraSession

BROWSER_ARGS: List[str] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
]

# label of an assignment such as "A = (1, 2)", "f(x) = x^2" or "line1: y = 2x"
ASSIGNMENT_LABEL = re.compile(r"^\s*([A-Za-z][A-Za-z0-9_]*)\s*(?:\([^)]*\))?\s*[=:](?!=)")

_DATA_URL_PREFIX = re.compile(r"^data:[^;,]+;base64,")

_EVAL_COMMAND_JS = """(command) => {
    const api = window.ggbApplet;
    if (!api) { return { success: false, error: "GeoGebra applet is not available" }; }
    try {
        const ok = api.evalCommand(command);
        return ok === false
            ? { success: false, error: "Command execution failed: " + command }
            : { success: true, error: null };
    } catch (e) {
        return { success: false, error: String(e && e.message ? e.message : e) };
    }
}"""

_OBJECT_INFO_JS = """(name) => {
    const api = window.ggbApplet;
    if (!api.exists(name)) { return null; }
    const finite = (v) => (typeof v === "number" && Number.isFinite(v)) ? v : null;
    return {
        name: name,
        type: api.getObjectType(name),
        value: finite(api.getValue(name)),
        value_string: api.getValueString(name),
        visible: api.getVisible(name),
        defined: api.isDefined(name),
        x: finite(api.getXcoord(name)),
        y: finite(api.getYcoord(name)),
        z: finite(api.getZcoord(name)),
        color: api.getColor(name)
    };
}"""

_PNG_ATTEMPT_JS = """([mode, scale, transparent, dpi]) => {
    const api = window.ggbApplet;
    switch (mode) {
        case "full": return api.getPNGBase64(scale, transparent, dpi);
        case "no_dpi": return api.getPNGBase64(scale, transparent);
        case "scale_only": return api.getPNGBase64(scale);
        default: return api.getPNGBase64(1);
    }
}"""

_GRAPHICS_SIZE_JS = """() => {
    const api = window.ggbApplet;
    const g = api.getGraphicsOptions ? api.getGraphicsOptions() : {};
    return { width: g.width || 0, height: g.height || 0 };
}"""

_SVG_RACE_JS = """(graceMs) => new Promise((resolve) => {
    const api = window.ggbApplet;
    const attempts = [];
    let done = false;
    const valid = (v) => typeof v === "string" && (v.includes("<svg") || v.includes("<?xml"));
    const finish = (value, method) => {
        if (!done && valid(value)) { done = true; resolve({ svg: value, method: method, attempts: attempts }); }
    };
    try {
        attempts.push("exportSVG(callback)");
        api.exportSVG((svg) => finish(svg, "exportSVG(callback)"));
    } catch (e) {}
    const direct = [
        ["exportSVG()", () => api.exportSVG()],
        ["exportSVG('construction')", () => api.exportSVG("construction")],
        ["getSVG()", () => api.getSVG ? api.getSVG() : null]
    ];
    for (const [method, call] of direct) {
        if (done) { break; }
        try {
            attempts.push(method);
            finish(call(), method);
        } catch (e) {}
    }
    setTimeout(() => {
        if (!done) { done = true; resolve({ svg: null, method: null, attempts: attempts }); }
    }, graceMs);
})"""


class GeoGebraSession(IGeoGebraSession):
    """
    One headless Chromium page hosting a GeoGebra applet, driven through Playwright.

    Every operation requires a successful `initialize()` and refreshes the activity timestamp.
    """

    def __init__(
            self,
            config: Optional[GeoGebraConfig] = None,
            timeouts: Optional[SessionTimeouts] = None,
            clock: Callable[[], float] = time.monotonic,
            session_id: Optional[str] = None,
    ):
        self.id = session_id or str(uuid.uuid4())
        self.config = config or GeoGebraConfig()
        self.timeouts = timeouts or SessionTimeouts()
        self._clock = clock
        self._last_activity = clock()
        self._ready = False
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._page: Optional[Page] = None

    @property
    def last_activity(self) -> float:
        return self._last_activity

    def _touch(self) -> None:
        self._last_activity = self._clock()

    def _ensure_initialized(self) -> Page:
        if not self._ready or self._page is None:
            raise NotInitializedError(f"GeoGebra instance {self.id} is not initialized")
        self._touch()
        return self._page

    async def initialize(self, headless: bool = True) -> None:
        if self._ready:
            return
        logger.info("Initializing GeoGebra instance {id}", id=self.id, app=self.config.app_name, headless=headless)
        timeout_ms = self.timeouts.ready_timeout * 1000
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=headless, args=BROWSER_ARGS)
            self._page = await self._browser.new_page(
                viewport={"width": self.config.width, "height": self.config.height}
            )
            await self._page.set_content(render_applet_page(self.config), wait_until="load", timeout=timeout_ms)
            prober = ReadinessProber(self._page, timeout=self.timeouts.ready_timeout)
            await prober.wait_until_ready()
            await prober.check_modules()
        except GeoGebraConnectionError:
            await self.cleanup()
            raise
        except Exception as e:
            await self.cleanup()
            raise GeoGebraConnectionError(f"Failed to initialize GeoGebra instance {self.id}: {e}") from e
        self._ready = True
        self._touch()
        logger.info("GeoGebra instance {id} is ready", id=self.id)

    async def is_ready(self) -> bool:
        if not self._ready or self._page is None:
            return False
        report = await ReadinessProber(self._page, timeout=0).probe()
        return report.ready

    def get_state(self) -> SessionState:
        return SessionState(id=self.id, is_ready=self._ready, last_activity=self._last_activity, config=self.config)

    async def _call(self, method: str, *args: Any) -> Any:
        """Invokes `ggbApplet.<method>(*args)` in the page."""
        page = self._ensure_initialized()
        return await page.evaluate(
            "([method, args]) => window.ggbApplet[method](...args)",
            [method, list(args)],
        )

    # commands

    async def eval_command(self, command: str) -> CommandResult:
        page = self._ensure_initialized()
        raw: Dict[str, Any] = await page.evaluate(_EVAL_COMMAND_JS, command)
        result = CommandResult(success=bool(raw.get("success")), error=raw.get("error"), command=command)
        if result.success:
            match = ASSIGNMENT_LABEL.match(command)
            if match:
                try:
                    result.result = await self.get_value_string(match.group(1))
                except Exception as e:
                    logger.debug("No value for {label}: {error}", label=match.group(1), error=str(e))
            logger.debug("Executed command", command=command, instance=self.id)
        else:
            logger.warning("Command failed", command=command, error=result.error, instance=self.id)
        return result

    async def eval_command_get_labels(self, command: str) -> List[str]:
        labels = await self._call("evalCommandGetLabels", command)
        if not labels:
            return []
        return [label for label in str(labels).split(",") if label]

    async def delete_object(self, name: str) -> None:
        await self._call("deleteObject", name)

    async def new_construction(self) -> None:
        await self._call("newConstruction")
        logger.debug("Construction cleared", instance=self.id)

    async def reset(self) -> None:
        await self._call("reset")

    async def refresh_views(self) -> None:
        await self._call("refreshViews")

    async def set_coord_system(self, xmin: float, xmax: float, ymin: float, ymax: float) -> None:
        await self._call("setCoordSystem", xmin, xmax, ymin, ymax)

    async def set_axes_visible(self, x_axis: bool, y_axis: bool) -> None:
        await self._call("setAxesVisible", x_axis, y_axis)

    async def set_grid_visible(self, visible: bool) -> None:
        await self._call("setGridVisible", visible)

    async def set_value(self, name: str, value: float) -> None:
        await self._call("setValue", name, value)

    # queries

    async def get_all_object_names(self, object_type: Optional[str] = None) -> List[str]:
        if object_type:
            names = await self._call("getAllObjectNames", object_type)
        else:
            names = await self._call("getAllObjectNames")
        return list(names or [])

    async def get_object_info(self, name: str) -> Optional[ObjectInfo]:
        page = self._ensure_initialized()
        raw = await page.evaluate(_OBJECT_INFO_JS, name)
        return ObjectInfo.model_validate(raw) if raw else None

    async def exists(self, name: str) -> bool:
        return bool(await self._call("exists", name))

    async def is_defined(self, name: str) -> bool:
        return bool(await self._call("isDefined", name))

    async def get_value(self, name: str) -> float:
        return float(await self._call("getValue", name))

    async def get_value_string(self, name: str) -> str:
        return str(await self._call("getValueString", name))

    async def get_x_coord(self, name: str) -> float:
        return float(await self._call("getXcoord", name))

    async def get_y_coord(self, name: str) -> float:
        return float(await self._call("getYcoord", name))

    async def get_z_coord(self, name: str) -> float:
        return float(await self._call("getZcoord", name))

    # exports

    async def export_png(
            self,
            scale: float = 1.0,
            transparent: bool = False,
            dpi: int = 72,
            width: Optional[int] = None,
            height: Optional[int] = None,
    ) -> bytes:
        page = self._ensure_initialized()
        effective_scale = scale
        if width is not None and height is not None:
            size = await page.evaluate(_GRAPHICS_SIZE_JS)
            current_width = size.get("width") or self.config.width
            current_height = size.get("height") or self.config.height
            effective_scale = min(width / current_width, height / current_height)

        attempts: List[str] = []
        for mode in ("full", "no_dpi", "scale_only", "default_scale"):
            attempts.append(f"getPNGBase64[{mode}]")
            try:
                raw = await page.evaluate(_PNG_ATTEMPT_JS, [mode, effective_scale, transparent, dpi])
            except Exception as e:
                logger.debug("PNG export attempt failed", mode=mode, error=str(e), instance=self.id)
                continue
            data = _decode_png(raw)
            if data:
                logger.debug("PNG exported", mode=mode, scale=effective_scale, dpi=dpi, instance=self.id)
                return data
        raise ExportError("png", "PNG export produced no valid data", attempts)

    async def export_svg(self) -> str:
        page = self._ensure_initialized()
        outcome = await page.evaluate(_SVG_RACE_JS, int(self.timeouts.svg_grace * 1000))
        svg = outcome.get("svg")
        if not svg:
            raise ExportError("svg", "SVG export produced no valid content", outcome.get("attempts"))
        logger.debug("SVG exported", method=outcome.get("method"), instance=self.id)
        return svg

    async def export_pdf(self) -> bytes:
        page = self._ensure_initialized()
        try:
            return await asyncio.wait_for(
                page.pdf(
                    format="A4",
                    print_background=True,
                    margin={"top": "0.5in", "right": "0.5in", "bottom": "0.5in", "left": "0.5in"},
                ),
                timeout=self.timeouts.pdf_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ExportError("pdf", f"PDF rendering timed out after {self.timeouts.pdf_timeout:.0f}s", ["page.pdf"]) from e

    # animation

    async def set_animating(self, name: str, animate: bool) -> None:
        await self._call("setAnimating", name, animate)

    async def set_animation_speed(self, name: str, speed: float) -> None:
        await self._call("setAnimationSpeed", name, speed)

    async def start_animation(self) -> None:
        await self._call("startAnimation")

    async def stop_animation(self) -> None:
        await self._call("stopAnimation")

    async def is_animation_running(self) -> bool:
        return bool(await self._call("isAnimationRunning"))

    async def set_trace(self, name: str, enabled: bool) -> None:
        await self._call("setTrace", name, enabled)

    async def capture_animation_frames(self, options: AnimationOptions) -> List[bytes]:
        interval = 1.0 / options.effective_frame_rate
        frames: List[bytes] = []
        was_running = await self.is_animation_running()
        if not was_running:
            await self.start_animation()
        try:
            for _ in range(options.frame_count):
                frames.append(await self.export_png(width=options.width, height=options.height))
                await asyncio.sleep(interval)
        finally:
            if not was_running:
                await self.stop_animation()
        logger.debug("Captured animation frames", count=len(frames), instance=self.id)
        return frames

    async def cleanup(self) -> None:
        self._ready = False
        page, browser, playwright = self._page, self._browser, self._playwright
        self._page = self._browser = self._playwright = None
        for name, closer in (("page", page), ("browser", browser)):
            if closer is None:
                continue
            try:
                await closer.close()
            except Exception as e:
                logger.debug("Ignoring error while closing {name}: {error}", name=name, error=str(e))
        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as e:
                logger.debug("Ignoring error while stopping playwright: {error}", error=str(e))
        if page is not None or browser is not None:
            logger.info("GeoGebra instance {id} cleaned up", id=self.id)


def _decode_png(raw: Any) -> Optional[bytes]:
    """Strips an optional data URL prefix and returns decoded bytes, None when the payload is unusable."""
    if not isinstance(raw, str) or not raw:
        return None
    payload = _DATA_URL_PREFIX.sub("", raw.strip())
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return None
    return data or None
