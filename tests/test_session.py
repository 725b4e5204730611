import asyncio

import pytest

from gebrai.config import SessionTimeouts
from gebrai.errors import ExportError, GeoGebraConnectionError, NotInitializedError
from gebrai import session as session_module
from gebrai.session import GeoGebraSession

PNG_DATA_URL = "data:image/png;base64,iVBORw=="


class StubPage:
    """Page stand-in: `respond(expression, arg)` answers `evaluate`, exceptions it returns are raised."""

    def __init__(self, respond=None, pdf_delay: float = 0.0, fail_content: bool = False):
        self.respond = respond or (lambda expression, arg: None)
        self.pdf_delay = pdf_delay
        self.fail_content = fail_content
        self.evaluated = []
        self.close_calls = 0

    async def evaluate(self, expression, arg=None):
        self.evaluated.append((expression, arg))
        answer = self.respond(expression, arg)
        if isinstance(answer, Exception):
            raise answer
        return answer

    async def pdf(self, **kwargs):
        await asyncio.sleep(self.pdf_delay)
        return b"%PDF-1.4"

    async def set_content(self, html, wait_until=None, timeout=None):
        if self.fail_content:
            raise RuntimeError("net::ERR_NAME_NOT_RESOLVED")

    async def close(self):
        self.close_calls += 1


class StubBrowser:
    def __init__(self, page: StubPage):
        self.page = page
        self.close_calls = 0

    async def new_page(self, viewport=None):
        return self.page

    async def close(self):
        self.close_calls += 1


class StubPlaywright:
    def __init__(self, browser: StubBrowser):
        self.browser = browser
        self.chromium = self
        self.stop_calls = 0

    async def launch(self, headless=True, args=None):
        return self.browser

    async def start(self):
        return self

    async def stop(self):
        self.stop_calls += 1


def ready_session(page: StubPage, **timeouts) -> GeoGebraSession:
    session = GeoGebraSession(timeouts=SessionTimeouts(retry_delay=0, **timeouts))
    session._page = page
    session._ready = True
    return session


def png_modes(page: StubPage):
    return [arg[0] for expression, arg in page.evaluated if expression == session_module._PNG_ATTEMPT_JS]


def test_png_falls_back_through_every_mode():
    answers = {
        "full": RuntimeError("getPNGBase64 is not a function"),
        "no_dpi": None,
        "scale_only": "not base64!",
        "default_scale": PNG_DATA_URL,
    }
    page = StubPage(lambda expression, arg: answers[arg[0]])
    data = asyncio.run(ready_session(page).export_png(scale=2, transparent=True, dpi=300))
    assert data == b"\x89PNG"
    assert png_modes(page) == ["full", "no_dpi", "scale_only", "default_scale"]
    assert page.evaluated[0][1] == ["full", 2, True, 300]


def test_png_stops_at_first_valid_payload():
    page = StubPage(lambda expression, arg: PNG_DATA_URL if arg[0] == "no_dpi" else None)
    asyncio.run(ready_session(page).export_png())
    assert png_modes(page) == ["full", "no_dpi"]


def test_png_target_size_sets_the_scale():
    def respond(expression, arg):
        if expression == session_module._GRAPHICS_SIZE_JS:
            return {"width": 800, "height": 600}
        return PNG_DATA_URL

    page = StubPage(respond)
    asyncio.run(ready_session(page).export_png(width=400, height=600))
    assert page.evaluated[1][1][1] == pytest.approx(0.5)


def test_png_failure_lists_attempts():
    page = StubPage(lambda expression, arg: "")
    with pytest.raises(ExportError) as info:
        asyncio.run(ready_session(page).export_png())
    assert info.value.export_format == "png"
    assert info.value.attempts == [
        "getPNGBase64[full]", "getPNGBase64[no_dpi]", "getPNGBase64[scale_only]", "getPNGBase64[default_scale]",
    ]
    assert "tried: getPNGBase64[full]" in info.value.message


def test_svg_without_valid_content_fails():
    attempts = ["exportSVG(callback)", "exportSVG()", "getSVG()"]
    page = StubPage(lambda expression, arg: {"svg": None, "method": None, "attempts": attempts})
    session = ready_session(page, svg_grace=0.25)
    with pytest.raises(ExportError) as info:
        asyncio.run(session.export_svg())
    assert info.value.attempts == attempts
    assert page.evaluated[0][1] == 250


def test_svg_returns_first_valid_result():
    svg = '<svg xmlns="http://www.w3.org/2000/svg"></svg>'
    page = StubPage(lambda expression, arg: {"svg": svg, "method": "exportSVG()", "attempts": ["exportSVG()"]})
    assert asyncio.run(ready_session(page).export_svg()) == svg


def test_pdf_timeout_becomes_export_error():
    page = StubPage(pdf_delay=1.0)
    with pytest.raises(ExportError) as info:
        asyncio.run(ready_session(page, pdf_timeout=0.01).export_pdf())
    assert info.value.export_format == "pdf"
    assert "timed out" in info.value.message


def test_pdf_within_timeout():
    page = StubPage()
    assert asyncio.run(ready_session(page).export_pdf()).startswith(b"%PDF")


def test_successful_command_reads_back_the_value():
    def respond(expression, arg):
        if expression == session_module._EVAL_COMMAND_JS:
            return {"success": True, "error": None}
        return "A = (1, 2)"

    page = StubPage(respond)
    result = asyncio.run(ready_session(page).eval_command("A = (1, 2)"))
    assert result.success
    assert result.result == "A = (1, 2)"
    assert page.evaluated[1][1] == ["getValueString", ["A"]]


def test_operations_require_initialize():
    session = GeoGebraSession()
    for operation in (session.export_png(), session.export_svg(), session.eval_command("A = (1, 2)")):
        with pytest.raises(NotInitializedError):
            asyncio.run(operation)
    assert asyncio.run(session.is_ready()) is False


def test_cleanup_is_idempotent():
    page = StubPage()
    browser = StubBrowser(page)
    playwright = StubPlaywright(browser)
    session = ready_session(page)
    session._browser = browser
    session._playwright = playwright

    async def run():
        await session.cleanup()
        await session.cleanup()

    asyncio.run(run())
    assert (page.close_calls, browser.close_calls, playwright.stop_calls) == (1, 1, 1)
    assert session.get_state().is_ready is False
    with pytest.raises(NotInitializedError):
        asyncio.run(session.get_value("A"))


def test_failed_initialize_releases_the_browser(monkeypatch):
    page = StubPage(fail_content=True)
    browser = StubBrowser(page)
    playwright = StubPlaywright(browser)
    monkeypatch.setattr(session_module, "async_playwright", lambda: playwright)
    session = GeoGebraSession(timeouts=SessionTimeouts(ready_timeout=1))
    with pytest.raises(GeoGebraConnectionError) as info:
        asyncio.run(session.initialize())
    assert "ERR_NAME_NOT_RESOLVED" in info.value.message
    assert (page.close_calls, browser.close_calls, playwright.stop_calls) == (1, 1, 1)
    assert session.get_state().is_ready is False
    assert session._page is None
