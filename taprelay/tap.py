"""Tap state machine: waits for a connection, pours a counted number of pulses."""

from __future__ import annotations

import enum
import logging
from typing import Callable, Optional

from taprelay.machine import Clock, Counter, Machine, Timer

log = logging.getLogger(__name__)


class TapState(enum.IntEnum):
    INITIALIZING = 0
    READY = 1
    POURING = 2
    DONE = 3
    DISCONNECTED = 4


class TapEvent(enum.IntEnum):
    CONNECTED = 0
    POUR = 1
    STOP = 2
    READY = 3
    DISCONNECT = 4
    TIMER = 5


_TRANSITIONS = {
    TapState.INITIALIZING: {
        TapEvent.CONNECTED: TapState.READY,
        TapEvent.DISCONNECT: TapState.DISCONNECTED,
    },
    TapState.READY: {
        TapEvent.POUR: TapState.POURING,
        TapEvent.DISCONNECT: TapState.DISCONNECTED,
    },
    TapState.POURING: {
        TapEvent.STOP: TapState.DONE,
        TapEvent.TIMER: TapState.DONE,
    },
    TapState.DONE: {
        TapEvent.READY: TapState.READY,
    },
    TapState.DISCONNECTED: {
        TapEvent.CONNECTED: TapState.READY,
    },
}

_STATE_HANDLERS = {
    TapState.INITIALIZING: "initializing",
    TapState.READY: "ready",
    TapState.POURING: "pouring",
    TapState.DISCONNECTED: "disconnected",
}


class Tap(Machine):
    """A tap that pours a requested number of flow-meter pulses.

    Callbacks:
      * ``on_state_change(state)`` after every state entry;
      * ``on_initializing()``, ``on_ready()``, ``on_pouring()``,
        ``on_disconnected()`` on entering those states;
      * ``on_done(poured, remaining)`` on entering DONE;
      * ``on_flow_status(remaining, poured)`` on every flow update.
    """

    def __init__(
        self,
        initial_timeout_ms: int = 10000,
        continue_timeout_ms: int = 3000,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(_TRANSITIONS, TapState.INITIALIZING, clock)
        self._initial_timeout = initial_timeout_ms
        self._continue_timeout = continue_timeout_ms
        self._current_id = 0
        self._pour_pulses = 0
        self._timer = Timer(0)
        self._remaining = Counter(0)
        self._callbacks: dict[str, Callable[..., None]] = {}

    @property
    def current_id(self) -> int:
        """Identifier of the current (or last) pour."""
        return self._current_id

    def start(self, pulses: int, pour_id: int) -> "Tap":
        """Begin pouring ``pulses`` pulses; ignored unless the tap is READY."""
        if self.state is TapState.READY:
            self._pour_pulses = pulses
            self._remaining.set(pulses)
            self._current_id = pour_id
            log.info("Starting pour > pulses: %d, ID: %d", pulses, pour_id)
            self.trigger(TapEvent.POUR)
        else:
            log.warning("Cannot start pour, not in READY state. Current state: %s", self.state)
        return self

    def flow(self) -> "Tap":
        """Register one flow-meter pulse while pouring."""
        if self.state is TapState.POURING:
            self._remaining.decrement()
            self._timer.set_from_now(self, self._continue_timeout)
            self.update_flow()
            if self._remaining.expired():
                log.info("Pour finished (flow count reached)")
                self.trigger(TapEvent.STOP)
        return self

    def update_flow(self) -> "Tap":
        """Report remaining and poured pulses to the flow-status handler."""
        remaining = self._remaining.value
        self._notify("flow_status", remaining, self._pour_pulses - remaining)
        return self

    def on_state_change(self, callback: Callable[[TapState], None]) -> "Tap":
        return self._register("state_change", callback)

    def on_initializing(self, callback: Callable[[], None]) -> "Tap":
        return self._register("initializing", callback)

    def on_ready(self, callback: Callable[[], None]) -> "Tap":
        return self._register("ready", callback)

    def on_pouring(self, callback: Callable[[], None]) -> "Tap":
        return self._register("pouring", callback)

    def on_done(self, callback: Callable[[int, int], None]) -> "Tap":
        return self._register("done", callback)

    def on_disconnected(self, callback: Callable[[], None]) -> "Tap":
        return self._register("disconnected", callback)

    def on_flow_status(self, callback: Callable[[int, int], None]) -> "Tap":
        return self._register("flow_status", callback)

    def _register(self, name: str, callback: Callable[..., None]) -> "Tap":
        self._callbacks[name] = callback
        return self

    def _notify(self, name: str, *args: int) -> None:
        callback = self._callbacks.get(name)
        if callback is not None:
            callback(*args)

    def _event_occurs(self, event: TapEvent) -> bool:
        if event is TapEvent.TIMER:
            return self._timer.expired(self)
        if event is TapEvent.STOP:
            return self._remaining.expired()
        return False

    def _on_enter(self, state: TapState) -> None:
        log.info("Entering %s state", state.name)
        if state is TapState.POURING:
            self._timer.set(self._initial_timeout)
            if self._remaining.value < 1:
                self._remaining.set(self._pour_pulses)
        if state is TapState.DONE:
            remaining = self._remaining.value
            self._notify("done", self._pour_pulses - remaining, remaining)
        else:
            self._notify(_STATE_HANDLERS[state])
        self._notify("state_change", state)