"""Tap controller: links the tap machine, the status LEDs and MQTT commands."""

from __future__ import annotations

import argparse
import enum
import json
import logging
import math
import time
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from taprelay.leds import LedService
from taprelay.machine import Clock
from taprelay.messages import MessageError, error_description, state_to_string
from taprelay.mqtt_client import MqttConnection, PahoTransport, Transport
from taprelay.tap import Tap, TapEvent, TapState

log = logging.getLogger(__name__)

TOPIC_COMMAND = "tap/command"
TOPIC_STATE = "tap/state"
TOPIC_DONE = "tap/done"
TOPIC_ERROR = "tap/error"
TOPIC_INPUT = "tap/input"

_MESSAGE_LIMIT = 255
_STATUS_LIMIT = 63
_INVALID_COMMAND = "Controller instance is null or command is invalid"


@dataclass(frozen=True)
class TapConfig:
    tap_id: int
    tap_name: str


class CommandType(enum.IntEnum):
    POUR = 1
    CONTINUE = 2


@dataclass(frozen=True)
class JsonCommand:
    tap_id: int = 0
    command_type: int = 0
    pulses: int = 0
    is_valid: bool = False


class CommandError(ValueError):
    """A command message could not be understood."""

    def __init__(self, code: MessageError) -> None:
        super().__init__(error_description(code))
        self.code = code


def _as_unsigned(value: object, bits: int) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return 0
        value = int(value)
    if isinstance(value, int) and 0 <= value < 1 << bits:
        return value
    return 0


def parse_json_message(payload: Union[bytes, str]) -> JsonCommand:
    """Parse ``{"data": [tapId, commandType, pulses]}`` into a command.

    Raises :class:`CommandError` when the text is not JSON or the data
    array is missing or not of length three.
    """
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    text = payload.split(b"\0", 1)[0]
    try:
        doc = json.loads(text.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        log.warning("JSON parsing failed: %s", exc)
        raise CommandError(MessageError.JSON_PARSE_ERROR) from exc

    data = doc.get("data") if isinstance(doc, dict) else None
    if not isinstance(data, list) or len(data) != 3:
        raise CommandError(MessageError.INVALID_FORMAT)

    tap_id, command_type, pulses = data
    return JsonCommand(
        tap_id=_as_unsigned(tap_id, 16),
        command_type=_as_unsigned(command_type, 8),
        pulses=_as_unsigned(pulses, 16),
        is_valid=True,
    )


class Controller:
    """Runs one tap: takes pour commands over MQTT and reports its state."""

    def __init__(
        self,
        leds: LedService,
        config: TapConfig,
        transport: Transport,
        broker: str,
        port: int = 1883,
        client_id: str = "client_id",
        clock: Optional[Clock] = None,
    ) -> None:
        self.leds = leds
        self.config = config
        self._transport = transport
        self.leds.set_blue(True)
        self.leds.set_red(True)
        self.leds.set_green(True)

        self.tap = (
            Tap(clock=clock)
            .on_state_change(self._publish_state)
            .on_initializing(self.leds.red)
            .on_ready(self.leds.blue)
            .on_pouring(self.leds.green)
            .on_done(self._tap_done)
            .on_disconnected(self._tap_disconnected)
        )
        self.mqtt = MqttConnection(transport, broker, port, client_id, clock)

    def begin(self) -> None:
        """Hook up connection handlers and connect to the broker."""
        self.mqtt.on_connected(self._connected).on_disconnected(self._disconnected).connect()

    def publish(self, topic: str, payload: str) -> None:
        self.mqtt.publish(topic, payload)

    def handle_message(self, topic: str, payload: Union[bytes, str]) -> None:
        """Handle one incoming MQTT message."""
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        payload = payload[:_MESSAGE_LIMIT]
        log.info("MQTT message - topic: %s, size: %d, body: %r", topic, len(payload), payload)
        if topic != TOPIC_COMMAND:
            return
        try:
            command = parse_json_message(payload)
        except CommandError as exc:
            self.handle_error(error_description(exc.code))
            command = JsonCommand()
        self.process_command(command)

    def process_command(self, command: JsonCommand) -> None:
        """Carry out a parsed command addressed to this tap."""
        if not command.is_valid:
            self.handle_error(_INVALID_COMMAND)
            return
        if command.tap_id != self.config.tap_id:
            return

        log.info(
            "Tap ID: %d, command: %d, pulses: %d",
            command.tap_id,
            command.command_type,
            command.pulses,
        )
        if command.command_type == CommandType.POUR:
            self.tap.start(command.pulses, command.tap_id)
            return
        if command.command_type == CommandType.CONTINUE:
            self.tap.trigger(TapEvent.READY)
        self.handle_error(error_description(MessageError.UNKNOWN_COMMAND))
        log.warning("Command type: %d", command.command_type)

    def handle_error(self, message: str) -> None:
        self.publish(TOPIC_ERROR, message)

    def button_pressed(self) -> None:
        """Report a tag read at this tap."""
        self.publish(TOPIC_INPUT, f'{{"data":[{self.config.tap_id}, "tag-id"]}}')

    def run_once(self) -> None:
        """Advance the connection and the tap by one step."""
        self.mqtt.cycle()
        self.tap.cycle()

    def _connected(self) -> None:
        self._transport.on_message(self.handle_message)
        self._transport.subscribe(TOPIC_COMMAND)
        self.tap.trigger(TapEvent.CONNECTED)

    def _disconnected(self) -> None:
        self.tap.trigger(TapEvent.DISCONNECT)

    def _publish_state(self, state: TapState) -> None:
        message = (
            f'{{"state":"{state_to_string(state)}",'
            f'"id":{self.config.tap_id},"name":"{self.config.tap_name}"}}'
        )
        self.publish(TOPIC_STATE, message[:_STATUS_LIMIT])

    def _tap_done(self, poured: int, remaining: int) -> None:
        self.leds.red()
        message = f'{{"data":[{self.config.tap_id},{poured},{remaining}]}}'
        self.publish(TOPIC_DONE, message[:_STATUS_LIMIT])

    def _tap_disconnected(self) -> None:
        log.info("Tap state: DISCONNECTED")
        self.leds.set_blue(True)
        self.leds.set_red(True)
        self.leds.set_green(True)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run a tap controller over MQTT.")
    parser.add_argument("--broker", default="192.168.4.2")
    parser.add_argument("--port", type=int, default=1883)
    parser.add_argument("--client-id", default="client_id")
    parser.add_argument("--tap-id", type=int, default=99)
    parser.add_argument("--tap-name", default="01")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    controller = Controller(
        LedService(),
        TapConfig(args.tap_id, args.tap_name),
        PahoTransport(args.client_id),
        args.broker,
        args.port,
        args.client_id,
    )
    controller.begin()
    try:
        while True:
            controller.run_once()
            time.sleep(0.01)
    except KeyboardInterrupt:
        return 0