"""A small table-driven state machine with timer and counter helpers."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Hashable, Mapping, Optional

Clock = Callable[[], int]


def _monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class Machine:
    """State machine driven by a transition table.

    ``transitions`` maps each state to a mapping of event -> next state.
    Events are checked in table order during :meth:`cycle`. The initial
    state is entered lazily, on the first :meth:`cycle` or :meth:`trigger`,
    so that handlers registered after construction see its entry.

    Subclasses customise behaviour through the ``_on_enter``, ``_on_exit``,
    ``_on_loop`` and ``_event_occurs`` hooks.
    """

    def __init__(
        self,
        transitions: Mapping[Hashable, Mapping[Hashable, Hashable]],
        initial: Hashable,
        clock: Optional[Clock] = None,
    ) -> None:
        self._transitions = {state: dict(events) for state, events in transitions.items()}
        self._clock: Clock = clock or _monotonic_ms
        self._current: Optional[Hashable] = None
        self._pending: Optional[Hashable] = initial
        self._entered_at = self._clock()

    @property
    def state(self) -> Optional[Hashable]:
        """The current state, or None before the initial state is entered."""
        return self._current

    def now_ms(self) -> int:
        """Current time in milliseconds according to the machine's clock."""
        return self._clock()

    def trigger(self, event: Hashable) -> "Machine":
        """Force ``event``: take its transition from the current state, if any."""
        self._settle()
        target = self._transitions.get(self._current, {}).get(event)
        if target is not None:
            self._enter(target)
        return self

    def cycle(self) -> "Machine":
        """Run one step: loop action, then the first event that occurs."""
        self._settle()
        self._on_loop(self._current)
        for event, target in self._transitions.get(self._current, {}).items():
            if self._event_occurs(event):
                self._enter(target)
                break
        return self

    def _settle(self) -> None:
        if self._pending is not None:
            target, self._pending = self._pending, None
            self._enter(target)

    def _enter(self, target: Hashable) -> None:
        if self._current is not None:
            self._on_exit(self._current)
        self._current = target
        self._entered_at = self._clock()
        self._on_enter(target)

    def _elapsed_ms(self) -> int:
        return self._clock() - self._entered_at

    def _on_enter(self, state: Hashable) -> None:
        pass

    def _on_exit(self, state: Hashable) -> None:
        pass

    def _on_loop(self, state: Optional[Hashable]) -> None:
        pass

    def _event_occurs(self, event: Hashable) -> bool:
        return False


@dataclass
class Timer:
    """Timeout measured from the moment the owning machine entered its state."""

    value: Optional[int] = None

    def set(self, ms: Optional[int]) -> None:
        """Set the timeout relative to state entry; None turns it off."""
        self.value = ms

    def set_from_now(self, machine: Machine, ms: int) -> None:
        """Set the timeout to expire ``ms`` milliseconds from now."""
        self.value = machine._elapsed_ms() + ms

    def expired(self, machine: Machine) -> bool:
        return self.value is not None and machine._elapsed_ms() >= self.value


@dataclass
class Counter:
    """Down counter that never goes below zero."""

    value: int = 0

    def set(self, value: int) -> None:
        self.value = value

    def decrement(self) -> None:
        if self.value > 0:
            self.value -= 1

    def expired(self) -> bool:
        return self.value <= 0