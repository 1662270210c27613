"""Pour service: ties a pour machine to a valve, a flow meter and a status timer."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from taprelay.leds import Led
from taprelay.machine import Clock, _monotonic_ms
from taprelay.pour import Pour

log = logging.getLogger(__name__)

INITIAL_TIMEOUT_MS = 10000
CONTINUE_TIMEOUT_MS = 3000
FLOW_UPDATE_INTERVAL_MS = 500

FLOWMETER_PIN = 21
VALVE_PIN = 22

PourDoneCallback = Callable[[str, int, int], None]
FlowStatusCallback = Callable[[str, int, int], None]
PourStartedCallback = Callable[[str, int], None]


class TapService:
    """Opens the valve for a pour, counts flow pulses and reports progress.

    Callbacks:
      * ``on_pour_started(pour_id, pulses)``;
      * ``on_flow_status(pour_id, poured, remaining)`` every update interval;
      * ``on_pour_done(pour_id, poured, remaining)`` when the pour ends.
    """

    def __init__(
        self,
        initial_timeout_ms: int = INITIAL_TIMEOUT_MS,
        continue_timeout_ms: int = CONTINUE_TIMEOUT_MS,
        flow_update_interval_ms: int = FLOW_UPDATE_INTERVAL_MS,
        clock: Optional[Clock] = None,
    ) -> None:
        self._clock: Clock = clock or _monotonic_ms
        self._valve = Led(VALVE_PIN)
        self._valve.turn(False)
        self._interval = flow_update_interval_ms
        self._next_update: Optional[int] = None

        self._pour_done_cb: Optional[PourDoneCallback] = None
        self._flow_status_cb: Optional[FlowStatusCallback] = None
        self._pour_started_cb: Optional[PourStartedCallback] = None

        self._pour = (
            Pour(initial_timeout_ms, continue_timeout_ms, self._clock)
            .on_pour_done(self._handle_pour_done)
            .on_flow_status(self._handle_flow_status)
            .on_pour_start(self._handle_pour_started)
        )

    @property
    def pour_machine(self) -> Pour:
        """The underlying pour state machine."""
        return self._pour

    @property
    def valve_open(self) -> bool:
        return self._valve.on

    def start_pour(self, pulses: int, pour_id: str) -> None:
        """Open the valve and start pouring ``pulses`` pulses."""
        self._valve.turn(True)
        self._pour.start(pulses, pour_id)
        self._next_update = self._clock() + self._interval

    def pulse(self) -> None:
        """Register one rising edge from the flow meter."""
        self._pour.flow()

    def tick(self) -> None:
        """Advance timers and the pour machine by one step."""
        if self._next_update is not None:
            now = self._clock()
            if now >= self._next_update:
                self._next_update = now + self._interval
                self._pour.update_flow()
        self._pour.cycle()

    def on_pour_done(self, callback: PourDoneCallback) -> None:
        self._pour_done_cb = callback

    def on_flow_status(self, callback: FlowStatusCallback) -> None:
        self._flow_status_cb = callback

    def on_pour_started(self, callback: PourStartedCallback) -> None:
        self._pour_started_cb = callback

    def _handle_pour_done(self, poured: int, remaining: int) -> None:
        self._next_update = None
        self._valve.turn(False)
        if self._pour_done_cb is not None:
            self._pour_done_cb(self._pour.current_id, poured, remaining)
        log.info(
            "Pour completed! Pulses poured: %d, Remaining: %d, ID: %s",
            poured,
            remaining,
            self._pour.current_id,
        )

    def _handle_flow_status(self, remaining: int, poured: int) -> None:
        if self._flow_status_cb is not None:
            self._flow_status_cb(self._pour.current_id, poured, remaining)

    def _handle_pour_started(self, pulses: int) -> None:
        if self._pour_started_cb is not None:
            self._pour_started_cb(self._pour.current_id, pulses)