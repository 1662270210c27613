"""MQTT connection state machine and a paho-mqtt based transport."""

from __future__ import annotations

import enum
import logging
from typing import Callable, Optional, Protocol, Union

import paho.mqtt.client as mqtt

from taprelay.machine import Clock, Machine

log = logging.getLogger(__name__)

LIVENESS_INTERVAL_MS = 5000

MessageHandler = Callable[[str, bytes], None]


class Transport(Protocol):
    """What :class:`MqttConnection` needs from an MQTT client."""

    def connect(self, broker: str, port: int) -> bool: ...

    def connected(self) -> bool: ...

    def poll(self) -> None: ...

    def stop(self) -> None: ...

    def publish(self, topic: str, payload: Union[str, bytes]) -> None: ...

    def subscribe(self, topic: str) -> None: ...

    def on_message(self, handler: MessageHandler) -> None: ...


class ClientState(enum.IntEnum):
    DISCONNECTED = 0
    CONNECTED = 1


class _Event(enum.IntEnum):
    CONNECT = 0
    DISCONNECT = 1


_TRANSITIONS = {
    ClientState.DISCONNECTED: {_Event.CONNECT: ClientState.CONNECTED},
    ClientState.CONNECTED: {_Event.DISCONNECT: ClientState.DISCONNECTED},
}


class MqttConnection(Machine):
    """Keeps a broker connection up and reports connects and disconnects.

    While disconnected, every :meth:`cycle` tries to connect. While
    connected, the link is polled every five seconds and re-established
    if it has dropped.

    Callbacks: ``on_connected()`` and ``on_disconnected()``, both without
    arguments. Entering the initial DISCONNECTED state also stops the
    transport and reports a disconnect.
    """

    def __init__(
        self,
        transport: Transport,
        broker: str,
        port: int,
        client_id: str = "client_id",
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(_TRANSITIONS, ClientState.DISCONNECTED, clock)
        self._transport = transport
        self._broker = broker
        self._port = port
        self.client_id = client_id
        self._connected = False
        self._last_check = self.now_ms()
        self._callbacks: dict[str, Callable[[], None]] = {}

    @property
    def is_connected(self) -> bool:
        return self._connected

    def cycle(self) -> "MqttConnection":
        """Run one step: try to connect, or check that the link is alive."""
        super().cycle()
        return self

    def connect(self) -> "MqttConnection":
        """Try to connect now; on success the machine enters CONNECTED."""
        self._settle()
        if self._event_occurs(_Event.CONNECT):
            self.trigger(_Event.CONNECT)
        return self

    def disconnect(self) -> "MqttConnection":
        """Drop the connection, if there is one."""
        if self._connected:
            self.trigger(_Event.DISCONNECT)
        return self

    def publish(self, topic: str, payload: Union[str, bytes]) -> "MqttConnection":
        """Publish ``payload`` on ``topic``; silently dropped when disconnected."""
        if self._connected:
            self._transport.publish(topic, payload)
        return self

    def on_connected(self, callback: Callable[[], None]) -> "MqttConnection":
        self._callbacks["connected"] = callback
        return self

    def on_disconnected(self, callback: Callable[[], None]) -> "MqttConnection":
        self._callbacks["disconnected"] = callback
        return self

    def _notify(self, name: str) -> None:
        callback = self._callbacks.get(name)
        if callback is not None:
            callback()

    def _event_occurs(self, event: _Event) -> bool:
        if event is _Event.CONNECT:
            return not self._connected and bool(
                self._transport.connect(self._broker, self._port)
            )
        return False

    def _on_enter(self, state: ClientState) -> None:
        if state is ClientState.CONNECTED:
            log.info("Connected to %s:%d", self._broker, self._port)
            self._connected = True
            self._notify("connected")
        else:
            self._connected = False
            self._transport.stop()
            log.info("Disconnected from %s:%d", self._broker, self._port)
            self._notify("disconnected")

    def _on_loop(self, state: Optional[ClientState]) -> None:
        if state is not ClientState.CONNECTED:
            return
        now = self.now_ms()
        if now - self._last_check < LIVENESS_INTERVAL_MS:
            return
        self._transport.poll()
        self._last_check = self.now_ms()
        if not self._transport.connected():
            log.warning("Connection lost, reconnecting")
            self.trigger(_Event.DISCONNECT)
            self.connect()


class PahoTransport:
    """Transport backed by a paho-mqtt client, driven by :meth:`poll`."""

    def __init__(self, client_id: str = "client_id") -> None:
        if hasattr(mqtt, "CallbackAPIVersion"):
            self._client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        else:
            self._client = mqtt.Client(client_id=client_id)

    def connect(self, broker: str, port: int) -> bool:
        try:
            result = self._client.connect(broker, port)
        except (OSError, ValueError) as exc:
            log.warning("Cannot connect to %s:%d: %s", broker, port, exc)
            return False
        return result == 0

    def connected(self) -> bool:
        return bool(self._client.is_connected())

    def poll(self) -> None:
        self._client.loop(timeout=0)

    def stop(self) -> None:
        self._client.disconnect()

    def publish(self, topic: str, payload: Union[str, bytes]) -> None:
        self._client.publish(topic, payload)

    def subscribe(self, topic: str) -> None:
        self._client.subscribe(topic)

    def on_message(self, handler: MessageHandler) -> None:
        def deliver(client: object, userdata: object, message: mqtt.MQTTMessage) -> None:
            handler(message.topic, message.payload)

        self._client.on_message = deliver