"""Deprecated pour state machine: counts flow pulses until a target is reached."""

from __future__ import annotations

import enum
import logging
import warnings
from typing import Callable, Optional

from taprelay.machine import Clock, Counter, Machine, Timer

log = logging.getLogger(__name__)

_ID_LENGTH = 31


class PourState(enum.IntEnum):
    IDLE = 0
    POURING = 1


class _Event(enum.IntEnum):
    TIMER = 0
    START = 1
    STOP = 2


_TRANSITIONS = {
    PourState.IDLE: {_Event.START: PourState.POURING},
    PourState.POURING: {_Event.TIMER: PourState.IDLE, _Event.STOP: PourState.IDLE},
}


class Pour(Machine):
    """Pours a number of pulses, stopping on count or timeout.

    Deprecated in favour of :class:`taprelay.tap.Tap`.

    Callbacks:
      * ``on_pour_start(pulses)`` on entering POURING;
      * ``on_pour_done(poured, remaining)`` on leaving POURING;
      * ``on_flow_status(remaining, poured)`` on :meth:`update_flow`.
    """

    def __init__(
        self,
        initial_timeout_ms: int = 10000,
        continue_timeout_ms: int = 3000,
        clock: Optional[Clock] = None,
    ) -> None:
        warnings.warn(
            "Pour is deprecated and will be removed in future versions. Use Tap instead.",
            DeprecationWarning,
            stacklevel=2,
        )
        super().__init__(_TRANSITIONS, PourState.IDLE, clock)
        self._initial_timeout = initial_timeout_ms
        self._continue_timeout = continue_timeout_ms
        self._pour_pulses = 0
        self._current_id = ""
        self._timer = Timer()
        self._remaining = Counter(0)
        self._callbacks: dict[str, Callable[..., None]] = {}

    @property
    def current_id(self) -> str:
        """Identifier of the current (or last) pour, at most 31 characters."""
        return self._current_id

    def start(self, pulses: int, pour_id: str = "") -> "Pour":
        """Request a pour of ``pulses`` pulses under the given identifier."""
        self._pour_pulses = pulses
        self._remaining.set(pulses)
        self._current_id = pour_id[:_ID_LENGTH]
        log.info("Starting > pulses: %d, ID: %s", pulses, pour_id)
        self.trigger(_Event.START)
        return self

    def flow(self) -> "Pour":
        """Register one flow-meter pulse while pouring."""
        if self.state is PourState.POURING:
            self._remaining.decrement()
            self._timer.set_from_now(self, self._continue_timeout)
            if self._remaining.expired():
                self.trigger(_Event.STOP)
        return self

    def update_flow(self) -> "Pour":
        """Report remaining and poured pulses to the flow-status handler."""
        remaining = self._remaining.value
        self._notify("flow_status", remaining, self._pour_pulses - remaining)
        return self

    def on_pour_done(self, callback: Callable[[int, int], None]) -> "Pour":
        return self._register("pour_done", callback)

    def on_flow_status(self, callback: Callable[[int, int], None]) -> "Pour":
        return self._register("flow_status", callback)

    def on_pour_start(self, callback: Callable[[int], None]) -> "Pour":
        return self._register("pour_start", callback)

    def _register(self, name: str, callback: Callable[..., None]) -> "Pour":
        self._callbacks[name] = callback
        return self

    def _notify(self, name: str, *args: int) -> None:
        callback = self._callbacks.get(name)
        if callback is not None:
            callback(*args)

    def _event_occurs(self, event: _Event) -> bool:
        if event is _Event.TIMER:
            return self._timer.expired(self)
        if event is _Event.STOP:
            return self._remaining.expired()
        return False

    def _on_enter(self, state: PourState) -> None:
        if state is PourState.IDLE:
            log.info("Entering IDLE state")
        elif state is PourState.POURING:
            log.info("Starting pour")
            self._timer.set(self._initial_timeout)
            self._notify("pour_start", self._pour_pulses)
            if self._remaining.value < 1:
                self._remaining.set(self._pour_pulses)

    def _on_exit(self, state: PourState) -> None:
        if state is PourState.POURING:
            remaining = self._remaining.value
            self._notify("pour_done", self._pour_pulses - remaining, remaining)