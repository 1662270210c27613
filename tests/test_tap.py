import pytest

from taprelay.tap import Tap, TapEvent, TapState


class FakeClock:
    def __init__(self, now=0):
        self.now = now

    def __call__(self):
        return self.now


def make_tap(clock=None, **kwargs):
    clock = clock or FakeClock()
    tap = Tap(clock=clock, **kwargs)
    log = []
    tap.on_state_change(lambda s: log.append(("state", s)))
    tap.on_initializing(lambda: log.append("initializing"))
    tap.on_ready(lambda: log.append("ready"))
    tap.on_pouring(lambda: log.append("pouring"))
    tap.on_done(lambda poured, rem: log.append(("done", poured, rem)))
    tap.on_disconnected(lambda: log.append("disconnected"))
    tap.on_flow_status(lambda rem, poured: log.append(("flow", rem, poured)))
    return tap, log, clock


def ready_tap(**kwargs):
    tap, log, clock = make_tap(**kwargs)
    tap.cycle()
    tap.trigger(TapEvent.CONNECTED)
    log.clear()
    return tap, log, clock


def test_enum_values_match_table_layout():
    assert [s.name for s in TapState] == [
        "INITIALIZING", "READY", "POURING", "DONE", "DISCONNECTED"
    ]
    assert TapState(0) is TapState.INITIALIZING
    assert TapState(4) is TapState.DISCONNECTED
    assert TapEvent(0) is TapEvent.CONNECTED
    assert TapEvent(5) is TapEvent.TIMER


def test_initializing_entered_on_first_cycle():
    tap, log, _ = make_tap()
    assert tap.state is None
    tap.cycle()
    assert tap.state is TapState.INITIALIZING
    assert log == ["initializing", ("state", TapState.INITIALIZING)]


def test_connected_moves_to_ready():
    tap, log, _ = make_tap()
    tap.cycle()
    tap.trigger(TapEvent.CONNECTED)
    assert tap.state is TapState.READY
    assert log[-2:] == ["ready", ("state", TapState.READY)]


def test_start_ignored_when_not_ready():
    tap, log, _ = make_tap()
    tap.cycle()
    assert tap.start(5, 42) is tap
    assert tap.state is TapState.INITIALIZING
    assert tap.current_id == 0


def test_start_from_ready_begins_pouring():
    tap, log, _ = ready_tap()
    tap.start(3, 7)
    assert tap.state is TapState.POURING
    assert tap.current_id == 7
    assert log == ["pouring", ("state", TapState.POURING)]


def test_flow_counts_down_and_finishes():
    pulses = 3
    tap, log, _ = ready_tap()
    tap.start(pulses, 1)
    log.clear()
    for _ in range(pulses):
        tap.flow()
    flows = [entry for entry in log if entry[0] == "flow"]
    assert len(flows) == pulses
    assert all(rem + poured == pulses for _, rem, poured in flows)
    assert flows[-1] == ("flow", 0, pulses)
    assert ("done", pulses, 0) in log
    assert tap.state is TapState.DONE


def test_flow_outside_pouring_is_ignored():
    tap, log, _ = ready_tap()
    tap.flow()
    assert log == []
    assert tap.state is TapState.READY


def test_initial_timeout_ends_pour():
    tap, log, clock = ready_tap(initial_timeout_ms=1000)
    tap.start(5, 2)
    clock.now += 999
    tap.cycle()
    assert tap.state is TapState.POURING
    clock.now += 1
    tap.cycle()
    assert tap.state is TapState.DONE
    assert ("done", 0, 5) in log


def test_continue_timeout_after_flow():
    tap, log, clock = ready_tap(initial_timeout_ms=10000, continue_timeout_ms=3000)
    tap.start(5, 2)
    clock.now += 2000
    tap.flow()
    clock.now += 2999
    tap.cycle()
    assert tap.state is TapState.POURING
    clock.now += 1
    tap.cycle()
    assert tap.state is TapState.DONE
    assert ("done", 1, 4) in log


def test_done_returns_to_ready_on_ready_event():
    tap, log, _ = ready_tap()
    tap.start(1, 3)
    tap.flow()
    assert tap.state is TapState.DONE
    tap.trigger(TapEvent.READY)
    assert tap.state is TapState.READY
    tap.start(2, 4)
    assert tap.current_id == 4


def test_disconnect_and_reconnect():
    tap, log, _ = ready_tap()
    tap.trigger(TapEvent.DISCONNECT)
    assert tap.state is TapState.DISCONNECTED
    assert log == ["disconnected", ("state", TapState.DISCONNECTED)]
    tap.trigger(TapEvent.CONNECTED)
    assert tap.state is TapState.READY


def test_disconnect_ignored_while_pouring():
    tap, _, _ = ready_tap()
    tap.start(4, 1)
    tap.trigger(TapEvent.DISCONNECT)
    assert tap.state is TapState.POURING


def test_update_flow_reports_current_counts():
    tap, log, _ = ready_tap()
    tap.start(4, 1)
    tap.flow()
    log.clear()
    tap.update_flow()
    assert log == [("flow", 3, 1)]


@pytest.mark.parametrize("register", ["on_ready", "on_done", "on_flow_status"])
def test_registration_returns_tap_and_replaces(register):
    tap = Tap(clock=FakeClock())
    calls = []
    assert getattr(tap, register)(lambda *a: calls.append("first")) is tap
    getattr(tap, register)(lambda *a: calls.append("second"))
    tap.cycle()
    tap.trigger(TapEvent.CONNECTED)
    tap.start(1, 1)
    tap.flow()
    assert "first" not in calls
    assert "second" in calls