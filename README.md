# taprelay

`taprelay` drives a beverage tap from MQTT. The broker sends it pour
commands. It counts flow-meter pulses until the requested amount has
been poured or the flow stops, and it reports the tap's state and each
finished pour back over MQTT. Three status colours (red, green, blue)
show what the tap is doing.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Running

```
taprelay
```

This starts the controller. It connects to the MQTT broker through
paho-mqtt, subscribes to `tap/command` once connected, and keeps the
connection and tap state machines running until interrupted with
Ctrl-C. It logs at INFO level.

Options:

| Option        | Default       | Meaning                          |
|---------------|---------------|----------------------------------|
| `--broker`    | `192.168.4.2` | Broker host                      |
| `--port`      | `1883`        | Broker port                      |
| `--client-id` | `client_id`   | MQTT client id                   |
| `--tap-id`    | `99`          | Id of this tap in messages       |
| `--tap-name`  | `01`          | Name of this tap in state messages |

While the connection is down, every step tries to connect again. While
it is up, the client is polled every five seconds. If the link has
dropped, the tap is marked DISCONNECTED and a reconnect is attempted.

## MQTT protocol

Incoming, on `tap/command`:

```json
{"data": [99, 1, 250]}
```

The three values are the tap id, the command type and the pulse count.
Only the first 255 bytes of a message are read. A command addressed to
another tap id is ignored.

| Command type | Meaning                                               |
|--------------|-------------------------------------------------------|
| 1            | Pour the given number of pulses (only when READY)     |
| 2            | Continue: return the tap from DONE to READY; then also reports `Unknown command type` |
| other        | Reports `Unknown command type`                        |

Outgoing:

| Topic       | Payload                                                         |
|-------------|-----------------------------------------------------------------|
| `tap/state` | `{"state":"READY","id":99,"name":"01"}` on every state change   |
| `tap/done`  | `{"data":[99,<poured>,<remaining>]}` when a pour ends           |
| `tap/error` | A short error text                                              |
| `tap/input` | `{"data":[99, "tag-id"]}` from `Controller.button_pressed()`    |

State and done messages are cut to 63 characters. Messages are only
published while the connection is up.

If a command is not valid JSON, `JSON parsing error` is published on
`tap/error`. If its `data` field is not a list of exactly three values,
`Invalid message format` is published. In both cases,
`Controller instance is null or command is invalid` follows.

## Tap states

`Tap` (in `taprelay.tap`) moves through these states, listed in
`TapState`:

- **INITIALIZING**: just started (red).
- **READY**: connected and idle (blue).
- **POURING**: counting pulses (green). The pour ends when the pulse
  count reaches zero. It also ends when no pulse arrives in time: 10 s
  before the first pulse and 3 s after each pulse, by default.
- **DONE**: the pour has finished and was reported (red).
- **DISCONNECTED**: the broker connection was lost (all colours on).

`taprelay.messages.state_to_string` gives the name used in `tap/state`
messages. `taprelay.messages.error_description` gives the text for each
`MessageError`.

## Library use

The pieces can be used on their own. Every machine takes an optional
`clock`, a callable that returns milliseconds, which makes it easy to
drive in tests.

- `taprelay.machine`: `Machine`, a small table-driven state machine,
  with `Timer` and `Counter` helpers.
- `taprelay.tap`: the `Tap` state machine. Its callbacks are
  `on_state_change`, `on_initializing`, `on_ready`, `on_pouring`,
  `on_done`, `on_disconnected` and `on_flow_status`. Use `start()` to
  begin a pour and `flow()` for each pulse.
- `taprelay.pour`: `Pour`, an older and simpler pour machine with
  `IDLE` and `POURING` states. Constructing it issues a
  `DeprecationWarning`, so new code should use `Tap`.
- `taprelay.tap_service`: `TapService`, which ties a `Pour` to a valve
  flag (`valve_open`), flow-meter pulses (`pulse()`) and periodic flow
  reports (`tick()`).
- `taprelay.leds`: `LedService`, the three status colours. `colours()`
  shows which of them are lit.
- `taprelay.mqtt_client`: `MqttConnection`, the reconnecting connection
  machine, over any transport with the methods of `PahoTransport`.
- `taprelay.controller`: `Controller`, which wires a `Tap`, a
  `LedService` and an `MqttConnection` together. It also provides
  `parse_json_message` for decoding commands.

## What it does not do

`taprelay` talks to no hardware:

- The LEDs and the valve are flags in memory.
- Flow-meter pulses come only from calls to `Tap.flow()` or
  `TapService.pulse()`.
- The `taprelay` command has no button input. `tap/input` is sent only
  when a program calls `Controller.button_pressed()`.
- The command does not feed any pulses into the tap. Unless the calling
  program supplies them, a pour started there ends by timeout.