"""Interpreting NASA packets for a device target and building control requests."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Union

from samsungnasa.packet import Address, DataType, MessageNumber, MessageSet, Packet

logger = logging.getLogger(__name__)


class Mode(IntEnum):
    Unknown = -1
    Auto = 0
    Cool = 1
    Dry = 2
    Fan = 3
    Heat = 4


class FanMode(IntEnum):
    Unknown = -1
    Auto = 0
    Low = 1
    Mid = 2
    High = 3
    Turbo = 4
    Off = 5


class Preset(IntEnum):
    NONE = 0
    Sleep = 1
    Quiet = 2
    Fast = 3
    Longreach = 6
    Eco = 7
    Windfree = 9


class SwingMode(IntEnum):
    Fix = 0
    Vertical = 1
    Horizontal = 2
    All = 3


@dataclass
class ProtocolRequest:
    """Changes to send to a unit; a field left as None is not sent."""

    power: Optional[bool] = None
    mode: Optional[Union[Mode, int]] = None
    target_temperature: Optional[float] = None
    fan_mode: Optional[Union[FanMode, int]] = None
    swing_vertical: Optional[bool] = None
    swing_horizontal: Optional[bool] = None
    preset: Optional[Union[Preset, int]] = None


class MessageTarget(ABC):
    """Receiver of decoded device state and sender of encoded packets."""

    @abstractmethod
    def publish_data(self, data: bytes) -> None: ...

    @abstractmethod
    def register_address(self, address: str) -> None: ...

    @abstractmethod
    def set_power(self, address: str, value: bool) -> None: ...

    @abstractmethod
    def set_room_temperature(self, address: str, value: float) -> None: ...

    @abstractmethod
    def set_target_temperature(self, address: str, value: float) -> None: ...

    @abstractmethod
    def set_outdoor_temperature(self, address: str, value: float) -> None: ...

    @abstractmethod
    def set_indoor_eva_in_temperature(self, address: str, value: float) -> None: ...

    @abstractmethod
    def set_indoor_eva_out_temperature(self, address: str, value: float) -> None: ...

    @abstractmethod
    def set_mode(self, address: str, mode: Mode) -> None: ...

    @abstractmethod
    def set_fan_mode(self, address: str, fan_mode: FanMode) -> None: ...

    @abstractmethod
    def set_swing_vertical(self, address: str, vertical: bool) -> None: ...

    @abstractmethod
    def set_swing_horizontal(self, address: str, horizontal: bool) -> None: ...

    @abstractmethod
    def set_preset(self, address: str, preset: Union[Preset, int]) -> None: ...

    @abstractmethod
    def set_custom_sensor(self, address: str, message_number: int, value: float) -> None: ...

    @abstractmethod
    def set_error_code(self, address: str, error_code: int) -> None: ...

    @abstractmethod
    def set_outdoor_instantaneous_power(self, address: str, value: float) -> None: ...

    @abstractmethod
    def set_outdoor_cumulative_energy(self, address: str, value: float) -> None: ...

    @abstractmethod
    def set_outdoor_current(self, address: str, value: float) -> None: ...

    @abstractmethod
    def set_outdoor_voltage(self, address: str, value: float) -> None: ...


_OPERATION_MODES = {0: Mode.Auto, 1: Mode.Cool, 2: Mode.Dry, 3: Mode.Fan, 4: Mode.Heat}

_REAL_FAN_MODES = {
    1: FanMode.Low,
    2: FanMode.Mid,
    3: FanMode.High,
    4: FanMode.Turbo,
    **{value: FanMode.Auto for value in range(10, 16)},
    254: FanMode.Off,
}

_NASA_FAN_MODES = {FanMode.Low: 1, FanMode.Mid: 2, FanMode.High: 3, FanMode.Turbo: 4}

_REPORTED_FAN_MODES = {
    0: FanMode.Auto,
    1: FanMode.Low,
    2: FanMode.Mid,
    3: FanMode.High,
    4: FanMode.Turbo,
}


def operation_mode_to_mode(value: int) -> Mode:
    """Map the operation-mode value reported by a unit to a Mode."""
    return _OPERATION_MODES.get(value, Mode.Unknown)


def fan_mode_real_to_fan_mode(value: int) -> FanMode:
    """Map the real fan-mode value reported by a unit to a FanMode."""
    return _REAL_FAN_MODES.get(value, FanMode.Unknown)


def fan_mode_to_nasa_fan_mode(mode: Union[FanMode, int]) -> int:
    """The wire value for a requested fan mode; anything unlisted means auto."""
    return _NASA_FAN_MODES.get(mode, 0)


def _int16(value: int) -> int:
    value &= 0xFFFF
    return value - 0x10000 if value & 0x8000 else value


def _preset(value: int) -> Union[Preset, int]:
    try:
        return Preset(value)
    except ValueError:
        return value


def process_packet(packet: Packet, target: MessageTarget) -> None:
    """Register the sender and hand every message of a notification to ``target``."""
    source = str(packet.sa)
    dest = str(packet.da)
    target.register_address(source)
    logger.debug("MSG: %s", packet)

    data_type = packet.command.data_type
    if data_type == DataType.Ack:
        logger.debug("Ack %s", packet)
        return
    if data_type != DataType.Notification:
        return

    for message in packet.messages:
        process_message_set(source, dest, message, target)


def process_message_set(
    source: str, dest: str, message: MessageSet, target: MessageTarget
) -> None:
    """Apply one message set from ``source`` to ``target``."""
    number = message.message_number
    value = message.value
    target.set_custom_sensor(source, int(number) & 0xFFFF, float(value))
    logger.debug("s:%s d:%s %s", source, dest, message)

    if number == MessageNumber.VAR_in_temp_room_f:
        target.set_room_temperature(source, value / 10.0)
    elif number == MessageNumber.VAR_in_temp_target_f:
        target.set_target_temperature(source, value / 10.0)
    elif number == MessageNumber.ENUM_in_operation_power:
        target.set_power(source, value != 0)
    elif number == MessageNumber.ENUM_in_operation_mode:
        target.set_mode(source, operation_mode_to_mode(value))
    elif number == MessageNumber.ENUM_in_fan_mode:
        target.set_fan_mode(source, _REPORTED_FAN_MODES.get(value, FanMode.Unknown))
    elif number == MessageNumber.ENUM_in_louver_hl_swing:
        target.set_swing_vertical(source, value == 1)
    elif number == MessageNumber.ENUM_in_louver_lr_swing:
        target.set_swing_horizontal(source, value == 1)
    elif number == MessageNumber.ENUM_in_alt_mode:
        target.set_preset(source, _preset(value))
    elif number == MessageNumber.VAR_out_sensor_airout:
        target.set_outdoor_temperature(source, _int16(value) / 10.0)
    elif number == MessageNumber.VAR_in_temp_eva_in_f:
        target.set_indoor_eva_in_temperature(source, _int16(value) / 10.0)
    elif number == MessageNumber.VAR_in_temp_eva_out_f:
        target.set_indoor_eva_out_temperature(source, _int16(value) / 10.0)
    elif number == MessageNumber.VAR_out_error_code:
        target.set_error_code(source, int(value))
    elif number == MessageNumber.LVAR_OUT_CONTROL_WATTMETER_1W_1MIN_SUM:
        target.set_outdoor_instantaneous_power(source, float(value))
    elif number == MessageNumber.LVAR_OUT_CONTROL_WATTMETER_ALL_UNIT_ACCUM:
        target.set_outdoor_cumulative_energy(source, float(value))
    elif number == MessageNumber.VAR_OUT_SENSOR_CT1:
        target.set_outdoor_current(source, value / 10.0)
    elif number == MessageNumber.LVAR_NM_OUT_SENSOR_VOLTAGE:
        target.set_outdoor_voltage(source, float(value))
    else:
        logger.debug("Undefined s:%s d:%s %s", source, dest, message)


def build_request_packet(address: str, request: ProtocolRequest) -> Packet:
    """Build a request packet to ``address`` carrying the fields set in ``request``.

    Setting a mode always sends a power message as well.
    """
    packet = Packet.create_partial(Address.parse(address), DataType.Request)
    messages = packet.messages

    send_power = request.power is not None
    if request.mode is not None:
        send_power = True
        messages.append(MessageSet(MessageNumber.ENUM_in_operation_mode, value=int(request.mode)))

    if send_power:
        messages.append(
            MessageSet(MessageNumber.ENUM_in_operation_power, value=1 if request.power else 0)
        )

    if request.target_temperature is not None:
        messages.append(
            MessageSet(
                MessageNumber.VAR_in_temp_target_f,
                value=int(request.target_temperature * 10.0),
            )
        )

    if request.fan_mode is not None:
        messages.append(
            MessageSet(
                MessageNumber.ENUM_in_fan_mode,
                value=fan_mode_to_nasa_fan_mode(request.fan_mode),
            )
        )

    if request.swing_vertical is not None:
        messages.append(
            MessageSet(
                MessageNumber.ENUM_in_louver_hl_swing,
                value=1 if request.swing_vertical else 0,
            )
        )

    if request.swing_horizontal is not None:
        messages.append(
            MessageSet(
                MessageNumber.ENUM_in_louver_lr_swing,
                value=1 if request.swing_horizontal else 0,
            )
        )

    if request.preset is not None:
        messages.append(MessageSet(MessageNumber.ENUM_in_alt_mode, value=int(request.preset)))

    return packet


def publish_request(
    target: MessageTarget, address: str, request: ProtocolRequest
) -> Optional[Packet]:
    """Encode ``request`` and publish it through ``target``.

    Returns the packet sent, or None when the request holds nothing to send.
    """
    packet = build_request_packet(address, request)
    if not packet.messages:
        return None
    logger.debug("publish packet %s", packet)
    target.publish_data(packet.encode())
    return packet