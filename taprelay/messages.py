"""Message error codes and human-readable descriptions."""

from __future__ import annotations

import enum

from taprelay.tap import TapState


class MessageError(enum.IntEnum):
    SUCCESS = 0
    INVALID_FORMAT = -2
    UNKNOWN_COMMAND = -3
    JSON_PARSE_ERROR = -4


_DESCRIPTIONS = {
    MessageError.SUCCESS: "Success",
    MessageError.INVALID_FORMAT: "Invalid message format",
    MessageError.UNKNOWN_COMMAND: "Unknown command type",
    MessageError.JSON_PARSE_ERROR: "JSON parsing error",
}


def error_description(code: int) -> str:
    """Describe a message error code; unknown codes give "Undefined error"."""
    try:
        return _DESCRIPTIONS[MessageError(code)]
    except (ValueError, TypeError):
        return "Undefined error"


def state_to_string(state: object) -> str:
    """Name of a tap state, or "UNKNOWN" for anything else."""
    try:
        return TapState(state).name
    except (ValueError, TypeError):
        return "UNKNOWN"