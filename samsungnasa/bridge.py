"""Bridge between a NASA serial bus and the state of the units seen on it."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Optional, Protocol, Union

from samsungnasa.packet import (
    START_BYTE,
    Packet,
    PacketDecodeError,
    bytes_to_hex,
)
from samsungnasa.processing import (
    FanMode,
    MessageTarget,
    Mode,
    Preset,
    ProtocolRequest,
    process_packet,
    publish_request,
)

logger = logging.getLogger(__name__)

DEFAULT_DEVICE_TIMEOUT = 60.0
TRANSMISSION_TIMEOUT = 0.5
MAX_BYTES_PER_LOOP = 64

_DEVICE_TYPES = {
    0x10: "Outdoor",
    0x20: "Indoor",
    0x50: "WiredRemote",
    0x62: "WiFiKit",
}


class SerialPort(Protocol):
    """The part of a serial port (such as ``serial.Serial``) the bridge uses."""

    @property
    def in_waiting(self) -> int: ...

    def read(self, size: int = 1) -> bytes: ...

    def write(self, data: bytes) -> Optional[int]: ...

    def flush(self) -> None: ...


@dataclass
class DeviceState:
    """Last known state of one unit on the bus."""

    power: bool = False
    mode: Union[Mode, int] = Mode.Unknown
    target_temperature: float = 0.0
    room_temperature: float = 0.0
    outdoor_temperature: float = 0.0
    eva_in_temperature: float = 0.0
    eva_out_temperature: float = 0.0
    fan_mode: Union[FanMode, int] = FanMode.Unknown
    swing_vertical: bool = False
    swing_horizontal: bool = False
    preset: Union[Preset, int] = Preset.NONE
    error_code: int = 0
    instantaneous_power: float = 0.0
    cumulative_energy: float = 0.0
    current: float = 0.0
    voltage: float = 0.0
    last_update: float = 0.0
    custom_sensors: dict[int, float] = field(default_factory=dict)


@dataclass
class ControlRequest:
    """Changes a client asks for; a field left as None is not changed."""

    power: Optional[bool] = None
    mode: Optional[Union[Mode, int]] = None
    target_temperature: Optional[float] = None
    fan_mode: Optional[Union[FanMode, int]] = None
    swing_vertical: Optional[bool] = None
    swing_horizontal: Optional[bool] = None
    preset: Optional[Union[Preset, int]] = None


class SamsungACBridge(MessageTarget):
    """Reads packets from a serial port, tracks unit state and sends control requests.

    ``port`` is an open serial port (8 data bits, even parity, usually 2400 baud);
    ``clock`` returns the current time in seconds.
    """

    def __init__(
        self,
        port: Optional[SerialPort] = None,
        device_timeout: float = DEFAULT_DEVICE_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.port = port
        self.device_timeout = device_timeout
        self._clock = clock
        self._rx_buffer = bytearray()
        self._devices: dict[str, DeviceState] = {}
        self._discovered: set[str] = set()
        self._last_transmission = 0.0

    # -- receiving ---------------------------------------------------------

    def feed(self, data: Iterable[int]) -> None:
        """Take bytes received from the bus and process every complete packet."""
        chunk = bytes(data)
        if chunk:
            self._last_transmission = self._clock()
        for byte in chunk:
            if not self._rx_buffer and byte != START_BYTE:
                continue
            self._rx_buffer.append(byte)
        while self._rx_buffer and self._process_step():
            pass

    def loop(self) -> None:
        """Drop a stale partial packet, then read and process what the port holds."""
        now = self._clock()
        if self._rx_buffer and now - self._last_transmission >= TRANSMISSION_TIMEOUT:
            logger.debug("Transmission timeout - clearing buffer")
            self._rx_buffer.clear()
        if self.port is None:
            return
        available = min(self.port.in_waiting, MAX_BYTES_PER_LOOP)
        if available > 0:
            self.feed(self.port.read(available))

    def _process_step(self) -> bool:
        """Try the packet at the head of the buffer; return whether bytes were consumed."""
        buffer = self._rx_buffer
        if len(buffer) < 3:
            return False
        expected = ((buffer[1] << 8) | buffer[2]) + 2
        if len(buffer) < expected:
            return False
        try:
            packet = Packet.decode(buffer[:expected])
        except PacketDecodeError as error:
            logger.debug("Packet decode failed: %d", int(error.result))
            del buffer[0]
            return True
        logger.debug("Valid NASA packet received")
        del buffer[:expected]
        process_packet(packet, self)
        return True

    # -- queries -----------------------------------------------------------

    def get_discovered_devices(self) -> list[str]:
        return sorted(self._discovered)

    def is_device_known(self, address: str) -> bool:
        return address in self._discovered

    def is_device_online(self, address: str) -> bool:
        state = self._devices.get(address)
        if state is None:
            return False
        return self._clock() - state.last_update < self.device_timeout

    def get_device_type(self, address: str) -> str:
        klass_text, dot, _ = address.partition(".")
        if not dot:
            return "Unknown"
        try:
            klass = int(klass_text, 16) & 0xFF
        except ValueError:
            klass = 0
        return _DEVICE_TYPES.get(klass, "Other")

    def get_device_state(self, address: str) -> DeviceState:
        """A copy of the state of ``address``, or a default state if it is unknown."""
        state = self._devices.get(address)
        if state is None:
            return DeviceState()
        return replace(state, custom_sensors=dict(state.custom_sensors))

    # -- control -----------------------------------------------------------

    def control_device(self, address: str, request: ControlRequest) -> bool:
        """Send ``request`` to a known unit; return False if the unit is unknown."""
        if not self.is_device_known(address):
            logger.debug("Device %s not known", address)
            return False
        protocol_request = ProtocolRequest(
            power=request.power,
            mode=request.mode,
            target_temperature=request.target_temperature,
            fan_mode=request.fan_mode,
            swing_vertical=request.swing_vertical,
            swing_horizontal=request.swing_horizontal,
            preset=request.preset,
        )
        publish_request(self, address, protocol_request)
        return True

    # -- MessageTarget -----------------------------------------------------

    def publish_data(self, data: bytes) -> None:
        if self.port is None:
            raise RuntimeError("no serial port to send on")
        logger.debug("Sending data: %s", bytes_to_hex(data))
        self.port.write(bytes(data))
        self.port.flush()

    def register_address(self, address: str) -> None:
        if address not in self._discovered:
            logger.debug(
                "Discovered new device: %s (%s)", address, self.get_device_type(address)
            )
            self._discovered.add(address)
        self._touch(address)

    def _state(self, address: str) -> DeviceState:
        return self._devices.setdefault(address, DeviceState())

    def _touch(self, address: str) -> None:
        self._state(address).last_update = self._clock()

    def _set(self, address: str, name: str, value: object) -> None:
        setattr(self._state(address), name, value)
        self._touch(address)
        logger.debug("Device %s %s: %s", address, name, value)

    def set_power(self, address: str, value: bool) -> None:
        self._set(address, "power", value)

    def set_room_temperature(self, address: str, value: float) -> None:
        self._set(address, "room_temperature", value)

    def set_target_temperature(self, address: str, value: float) -> None:
        self._set(address, "target_temperature", value)

    def set_outdoor_temperature(self, address: str, value: float) -> None:
        self._set(address, "outdoor_temperature", value)

    def set_indoor_eva_in_temperature(self, address: str, value: float) -> None:
        self._set(address, "eva_in_temperature", value)

    def set_indoor_eva_out_temperature(self, address: str, value: float) -> None:
        self._set(address, "eva_out_temperature", value)

    def set_mode(self, address: str, mode: Union[Mode, int]) -> None:
        self._set(address, "mode", mode)

    def set_fan_mode(self, address: str, fan_mode: Union[FanMode, int]) -> None:
        self._set(address, "fan_mode", fan_mode)

    def set_swing_vertical(self, address: str, vertical: bool) -> None:
        self._set(address, "swing_vertical", vertical)

    def set_swing_horizontal(self, address: str, horizontal: bool) -> None:
        self._set(address, "swing_horizontal", horizontal)

    def set_preset(self, address: str, preset: Union[Preset, int]) -> None:
        self._set(address, "preset", preset)

    def set_custom_sensor(self, address: str, message_number: int, value: float) -> None:
        self._state(address).custom_sensors[message_number] = value
        self._touch(address)
        logger.debug("Device %s custom sensor 0x%04X: %.2f", address, message_number, value)

    def set_error_code(self, address: str, error_code: int) -> None:
        self._set(address, "error_code", error_code)

    def set_outdoor_instantaneous_power(self, address: str, value: float) -> None:
        self._set(address, "instantaneous_power", value)

    def set_outdoor_cumulative_energy(self, address: str, value: float) -> None:
        self._set(address, "cumulative_energy", value)

    def set_outdoor_current(self, address: str, value: float) -> None:
        self._set(address, "current", value)

    def set_outdoor_voltage(self, address: str, value: float) -> None:
        self._set(address, "voltage", value)