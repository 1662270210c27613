"""MQTT-controlled beverage tap: pour state machines, connection handling and status colours."""

__version__ = "0.1.0"