import asyncio

import pytest

from gebrai.errors import GeoGebraConnectionError
from gebrai.health import ReadinessProber
from tests.fakes import FakeClock

NOT_READY = {"appletPresent": True, "readyFlag": False, "evalCommandAvailable": True, "existsAvailable": True}
READY = {"appletPresent": True, "readyFlag": True, "evalCommandAvailable": True, "existsAvailable": True}


class ScriptedPage:
    """Answers `evaluate` from a list of canned results; exceptions in the list are raised."""

    def __init__(self, answers, clock: FakeClock = None, step: float = 0.0):
        self.answers = list(answers)
        self.clock = clock
        self.step = step
        self.calls = 0

    async def evaluate(self, expression, arg=None):
        self.calls += 1
        if self.clock is not None:
            self.clock.advance(self.step)
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer


def test_ready_after_a_few_polls():
    page = ScriptedPage([None, NOT_READY, READY])
    prober = ReadinessProber(page, timeout=5, poll_interval=0)
    report = asyncio.run(prober.wait_until_ready())
    assert report.ready
    assert page.calls == 3


def test_evaluation_errors_are_reported_not_raised():
    page = ScriptedPage([RuntimeError("Execution context was destroyed")])
    report = asyncio.run(ReadinessProber(page).probe())
    assert not report.ready
    assert report.error == "Execution context was destroyed"


def test_times_out_with_connection_error():
    clock = FakeClock()
    page = ScriptedPage([NOT_READY], clock=clock, step=1.0)
    prober = ReadinessProber(page, timeout=3, poll_interval=0, clock=clock)
    with pytest.raises(GeoGebraConnectionError) as info:
        asyncio.run(prober.wait_until_ready())
    assert "not ready within 3.0s" in info.value.message
    assert info.value.data["ready_flag"] is False
    assert prober.last_report.applet_present


def test_module_check():
    ok = ScriptedPage([{"commands": True, "scripting": False}, {"commands": True, "scripting": True}])
    assert asyncio.run(ReadinessProber(ok).check_modules(attempts=3, interval=0)) is True
    broken = ScriptedPage([{"commands": False, "scripting": False, "error": "not loaded"}])
    assert asyncio.run(ReadinessProber(broken).check_modules(attempts=2, interval=0)) is False
    assert broken.calls == 2
