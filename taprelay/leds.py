"""Status LEDs: built-in LED plus an RGB indicator."""

from __future__ import annotations

from dataclasses import dataclass

PIN_LED = 13
PIN_BLUE = 44
PIN_GREEN = 46
PIN_RED = 45


@dataclass
class Led:
    """A single on/off LED attached to a pin."""

    pin: int
    on: bool = False

    def turn(self, on: bool) -> None:
        self.on = bool(on)


class LedService:
    """Drives the red, green and blue status LEDs."""

    def __init__(self) -> None:
        self.builtin = Led(PIN_LED)
        self.blue_led = Led(PIN_BLUE)
        self.green_led = Led(PIN_GREEN)
        self.red_led = Led(PIN_RED)

    def set_green(self, on: bool) -> None:
        self.green_led.turn(on)

    def set_blue(self, on: bool) -> None:
        self.blue_led.turn(on)

    def set_red(self, on: bool) -> None:
        self.red_led.turn(on)

    def green(self) -> None:
        """Show only green."""
        self.set_red(False)
        self.set_blue(False)
        self.set_green(True)

    def blue(self) -> None:
        """Show only blue."""
        self.set_red(False)
        self.set_green(False)
        self.set_blue(True)

    def red(self) -> None:
        """Show only red."""
        self.set_green(False)
        self.set_blue(False)
        self.set_red(True)

    def colours(self) -> dict[str, bool]:
        """Which of the red, green and blue LEDs are lit."""
        return {
            "red": self.red_led.on,
            "green": self.green_led.on,
            "blue": self.blue_led.on,
        }