import asyncio
import time
from typing import Any, Callable, Optional, Protocol

from loguru import logger
from pydantic import BaseModel

from gebrai.errors import GeoGebraConnectionError

READINESS_SCRIPT = """() => ({
    appletPresent: !!window.ggbApplet,
    readyFlag: window.ggbReady === true,
    evalCommandAvailable: !!window.ggbApplet && typeof window.ggbApplet.evalCommand === "function",
    existsAvailable: !!window.ggbApplet && typeof window.ggbApplet.exists === "function"
})"""

MODULE_CHECK_SCRIPT = """() => {
    try {
        const api = window.ggbApplet;
        const evaluated = api.evalCommand("1+1");
        const created = api.evalCommand("gebraiProbe = Slider(0, 1, 0.1)");
        const present = api.exists("gebraiProbe");
        if (present) { api.deleteObject("gebraiProbe"); }
        return { commands: evaluated !== false, scripting: created !== false && present };
    } catch (e) {
        return { commands: false, scripting: false, error: String(e) };
    }
}"""


class EvaluatingPage(Protocol):
    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        ...


class ReadinessReport(BaseModel):
    applet_present: bool = False
    ready_flag: bool = False
    eval_command_available: bool = False
    exists_available: bool = False
    error: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.applet_present and self.ready_flag and self.eval_command_available and self.exists_available


class ReadinessProber:
    """
    Polls the page hosting an applet until the applet API can accept commands.
    """

    def __init__(
            self,
            page: EvaluatingPage,
            timeout: float = 30.0,
            poll_interval: float = 0.25,
            clock: Callable[[], float] = time.monotonic,
    ):
        self.page = page
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.clock = clock
        self.last_report: Optional[ReadinessReport] = None

    async def probe(self) -> ReadinessReport:
        try:
            raw = await self.page.evaluate(READINESS_SCRIPT)
        except Exception as e:
            report = ReadinessReport(error=str(e))
        else:
            raw = raw or {}
            report = ReadinessReport(
                applet_present=bool(raw.get("appletPresent")),
                ready_flag=bool(raw.get("readyFlag")),
                eval_command_available=bool(raw.get("evalCommandAvailable")),
                exists_available=bool(raw.get("existsAvailable")),
            )
        self.last_report = report
        return report

    async def wait_until_ready(self) -> ReadinessReport:
        """Polls until ready, raising GeoGebraConnectionError once the timeout has elapsed."""
        deadline = self.clock() + self.timeout
        while True:
            report = await self.probe()
            if report.ready:
                return report
            if self.clock() >= deadline:
                logger.error("GeoGebra applet not ready", report=report.model_dump())
                raise GeoGebraConnectionError(
                    f"GeoGebra applet was not ready within {self.timeout:.1f}s",
                    report.model_dump(),
                )
            await asyncio.sleep(self.poll_interval)

    async def check_modules(self, attempts: int = 10, interval: float = 0.5) -> bool:
        """
        Verifies that the command engine answers, not just that the API object exists.
        Returns False when the engine still fails after every attempt; callers decide whether that is fatal.
        """
        for attempt in range(1, attempts + 1):
            try:
                result = await self.page.evaluate(MODULE_CHECK_SCRIPT) or {}
            except Exception as e:
                result = {"error": str(e)}
            if result.get("commands") and result.get("scripting"):
                logger.debug("GeoGebra modules loaded after {attempt} attempt(s)", attempt=attempt)
                return True
            await asyncio.sleep(interval)
        logger.warning("GeoGebra modules did not confirm after {attempts} attempts", attempts=attempts)
        return False
