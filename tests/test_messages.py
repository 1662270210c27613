import pytest

from taprelay.messages import MessageError, error_description, state_to_string
from taprelay.tap import TapState


@pytest.mark.parametrize(
    "code, text",
    [
        (MessageError.SUCCESS, "Success"),
        (MessageError.INVALID_FORMAT, "Invalid message format"),
        (MessageError.UNKNOWN_COMMAND, "Unknown command type"),
        (MessageError.JSON_PARSE_ERROR, "JSON parsing error"),
    ],
)
def test_error_descriptions(code, text):
    assert error_description(code) == text


def test_error_codes_match_wire_values():
    assert error_description(-2) == "Invalid message format"
    assert error_description(0) == "Success"


@pytest.mark.parametrize("code", [-1, 1, 99, None])
def test_unknown_error_code(code):
    assert error_description(code) == "Undefined error"


@pytest.mark.parametrize(
    "state, text",
    [
        (TapState.INITIALIZING, "INITIALIZING"),
        (TapState.READY, "READY"),
        (TapState.POURING, "POURING"),
        (TapState.DONE, "DONE"),
        (TapState.DISCONNECTED, "DISCONNECTED"),
    ],
)
def test_state_names(state, text):
    assert state_to_string(state) == text
    assert state_to_string(int(state)) == text


@pytest.mark.parametrize("state", [-1, 5, None, "READY"])
def test_unknown_state(state):
    assert state_to_string(state) == "UNKNOWN"