import pytest

from taprelay.pour import PourState
from taprelay.tap_service import TapService

pytestmark = pytest.mark.filterwarnings("ignore::DeprecationWarning")


class FakeClock:
    def __init__(self):
        self.now = 0

    def __call__(self):
        return self.now


def make_service(initial=10000, cont=3000, interval=500):
    clock = FakeClock()
    service = TapService(initial, cont, interval, clock)
    events = []
    service.on_pour_started(lambda pid, pulses: events.append(("start", pid, pulses)))
    service.on_flow_status(lambda pid, poured, rem: events.append(("flow", pid, poured, rem)))
    service.on_pour_done(lambda pid, poured, rem: events.append(("done", pid, poured, rem)))
    return service, clock, events


def test_valve_closed_initially():
    service, _, _ = make_service()
    assert service.valve_open is False


def test_start_pour_opens_valve_and_reports_start():
    service, _, events = make_service()
    service.start_pour(4, "pour-a")
    assert service.valve_open is True
    assert service.pour_machine.state is PourState.POURING
    assert events == [("start", "pour-a", 4)]


def test_pulses_complete_pour_and_close_valve():
    service, _, events = make_service()
    service.start_pour(3, "pour-b")
    for _ in range(3):
        service.pulse()
    assert service.valve_open is False
    assert service.pour_machine.state is PourState.IDLE
    assert events[-1] == ("done", "pour-b", 3, 0)


def test_flow_status_sent_at_interval():
    service, clock, events = make_service(interval=500)
    service.start_pour(4, "pour-c")
    service.pulse()
    clock.now = 499
    service.tick()
    assert [e for e in events if e[0] == "flow"] == []
    clock.now = 500
    service.tick()
    assert events[-1] == ("flow", "pour-c", 1, 3)


def test_no_flow_status_after_pour_done():
    service, clock, events = make_service(interval=500)
    service.start_pour(1, "pour-d")
    service.pulse()
    clock.now = 5000
    service.tick()
    assert [e for e in events if e[0] == "flow"] == []


def test_no_flow_status_before_start():
    service, clock, events = make_service()
    clock.now = 5000
    service.tick()
    assert events == []


def test_timeout_closes_valve():
    service, clock, events = make_service(initial=10000, interval=100000)
    service.start_pour(5, "pour-e")
    clock.now = 10000
    service.tick()
    assert service.valve_open is False
    assert events[-1] == ("done", "pour-e", 0, 5)


def test_pulse_when_idle_does_nothing():
    service, _, events = make_service()
    service.tick()
    service.pulse()
    assert service.pour_machine.state is PourState.IDLE
    assert events == []