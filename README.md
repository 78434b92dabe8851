# samsungnasa

Talk to Samsung air conditioners over the NASA protocol on their RS485 bus,
and expose the units seen on the bus through a small JSON HTTP API.

The package is built in layers:

- `samsungnasa.packet` encodes and decodes NASA frames: `Packet`, `Address`,
  `Command` and `MessageSet`, with CRC16 checking (`crc16`). A frame that does
  not decode raises `PacketDecodeError`, whose `result` attribute is a
  `DecodeResult` saying why (bad start or end byte, size mismatch, unexpected
  size, CRC error).
- `samsungnasa.processing` turns decoded packets into calls on a
  `MessageTarget` (power, mode, temperatures, fan mode, swing, preset, error
  code, power meter readings) with `process_packet`. Only notification
  packets update state; the sender's address is registered for every packet.
  `build_request_packet` and `publish_request` build and send request packets
  from a `ProtocolRequest`.
- `samsungnasa.bridge` provides `SamsungACBridge`, a `MessageTarget` that
  reads bytes from a serial port, reassembles frames, keeps a `DeviceState`
  per unit address and sends `ControlRequest`s to known units.
- `samsungnasa.api.BridgeApi` answers the HTTP endpoints with `ApiResponse`
  objects, and `samsungnasa.server` serves them with the standard library's
  HTTP server and can send UDP status updates.

## Installation

```
pip install .
```

## Running the bridge

```
samsungnasa --serial /dev/ttyUSB0
```

The command opens the serial port (8 data bits, even parity, one stop bit),
serves the HTTP API in a background thread and polls the bus until
interrupted with Ctrl-C. Options:

| Option             | Default | Meaning                                               |
|--------------------|---------|-------------------------------------------------------|
| `--serial`         | —       | serial device or pyserial URL (required)              |
| `--baud`           | 2400    | baud rate                                             |
| `--host`           | all     | address to listen on                                  |
| `--port`           | 80      | HTTP port                                             |
| `--device-timeout` | 60      | seconds after which a silent unit counts as offline   |
| `--udp-target`     | none    | `HOST:PORT` to send compact JSON status updates to    |
| `--udp-interval`   | 5       | seconds between status updates                        |
| `--verbose`        | off     | log debug output                                      |

A UDP status update lists the online units (outdoor units, whose address
starts with `10.`, also carry outdoor temperature, power, current and
voltage) plus a `timestamp` in seconds of uptime. Nothing is sent while no
unit has been seen.

### Endpoints

| Method  | Path              | Purpose                                      |
|---------|-------------------|----------------------------------------------|
| GET     | `/`               | Bridge name, version and uptime in seconds   |
| OPTIONS | `/`               | CORS preflight                               |
| GET     | `/devices`        | Discovered units with type and online flag   |
| GET     | `/device`         | State of one unit (`?address=20.00.00`)      |
| POST    | `/device/control` | Send a control request (JSON body)           |
| GET     | `/device/sensors` | Temperatures, error code and power readings  |

Every answer carries `Access-Control-Allow-Origin: *`. Unknown paths answer
404 `Not Found`; unknown units answer 404 with `{"error": "Device not found"}`;
a missing `address` parameter, a missing or invalid body, or a body without
an `address` field answers 400.

A control body names the unit and any of the settings to change:

```json
{"address": "20.00.00", "power": true, "mode": 1, "target_temperature": 22.5,
 "fan_mode": 2, "swing_vertical": true, "preset": "quiet"}
```

Modes: 0 auto, 1 cool, 2 dry, 3 fan, 4 heat. Fan modes: 0 auto, 1 low,
2 mid, 3 high, 4 turbo. Presets: `none`, `sleep`, `quiet`, `fast`,
`longreach`, `eco`, `windfree`; an unknown name means `none`, and a number is
taken as the preset's wire value. When a mode is set, a power message is sent
with it, carrying the request's `power` value (off when `power` is not given).

## Using the library

```python
from samsungnasa.packet import Address, DataType, MessageNumber, Packet

packet = Packet.create(Address.parse("20.00.00"), DataType.Request,
                       MessageNumber.ENUM_in_operation_power, 1)
frame = packet.encode()
assert Packet.decode(frame).messages[0].value == 1
```

To drive a bridge without the HTTP server, create a `SamsungACBridge` with an
open serial port (anything with `in_waiting`, `read`, `write` and `flush`,
such as `serial.Serial`), call `loop()` regularly, and read state with
`get_device_state()`. `feed()` takes raw bytes directly, which helps when
replaying captured traffic. `control_device()` returns `False` for a unit
that has not been seen on the bus.

```python
from samsungnasa.bridge import ControlRequest, SamsungACBridge
from samsungnasa.processing import Mode

bridge = SamsungACBridge(port=serial_port)
bridge.loop()
if bridge.is_device_known("20.00.00"):
    bridge.control_device("20.00.00", ControlRequest(power=True, mode=Mode.Cool))
```

## What it does not do

The package has no firmware-update endpoint, no serial-line test endpoint
and no network-status endpoint, and it does not announce itself over mDNS.
It reports no memory figures in `/`.

## Tests

```
pip install .[test]
pytest
```