"""Wire format of the NASA bus: addresses, commands, message sets and packets."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable, Sequence, TypeVar, Union

logger = logging.getLogger(__name__)

START_BYTE = 0x32
END_BYTE = 0x34
MIN_PACKET_SIZE = 16
MAX_PACKET_SIZE = 1500
_MAX_STRUCTURE = 255


class AddressClass(IntEnum):
    Outdoor = 0x10
    HTU = 0x11
    Indoor = 0x20
    ERV = 0x30
    Diffuser = 0x35
    MCU = 0x38
    RMC = 0x40
    WiredRemote = 0x50
    PIM = 0x58
    SIM = 0x59
    Peak = 0x5A
    PowerDivider = 0x5B
    OnOffController = 0x60
    WiFiKit = 0x62
    CentralController = 0x65
    DMS = 0x6A
    JIGTester = 0x80
    BroadcastSelfLayer = 0xB0
    BroadcastControlLayer = 0xB1
    BroadcastSetLayer = 0xB2
    BroadcastControlAndSetLayer = 0xB3
    BroadcastModuleLayer = 0xB4
    BroadcastCSM = 0xB7
    BroadcastLocalLayer = 0xB8
    BroadcastCSML = 0xBF
    Undefined = 0xFF


class PacketType(IntEnum):
    StandBy = 0
    Normal = 1
    Gathering = 2
    Install = 3
    Download = 4


class DataType(IntEnum):
    Undefined = 0
    Read = 1
    Write = 2
    Request = 3
    Notification = 4
    Response = 5
    Ack = 6
    Nack = 7


class MessageSetType(IntEnum):
    Enum = 0
    Variable = 1
    LongVariable = 2
    Structure = 3


class MessageNumber(IntEnum):
    Undefined = 0
    ENUM_in_operation_power = 0x4000
    ENUM_in_operation_automatic_cleaning = 0x4111
    ENUM_in_water_heater_power = 0x4065
    ENUM_in_operation_mode = 0x4001
    ENUM_in_water_heater_mode = 0x4066
    ENUM_in_fan_mode = 0x4006
    ENUM_in_fan_mode_real = 0x4007
    ENUM_in_alt_mode = 0x4060
    ENUM_in_louver_hl_swing = 0x4011
    ENUM_in_louver_lr_swing = 0x407E
    ENUM_in_state_humidity_percent = 0x4038
    VAR_in_temp_room_f = 0x4203
    VAR_in_temp_target_f = 0x4201
    VAR_in_temp_water_outlet_target_f = 0x4247
    VAR_in_temp_water_tank_f = 0x4237
    VAR_out_sensor_airout = 0x8204
    VAR_in_temp_water_heater_target_f = 0x4235
    VAR_in_temp_eva_in_f = 0x4205
    VAR_in_temp_eva_out_f = 0x4206
    VAR_out_error_code = 0x8235
    LVAR_OUT_CONTROL_WATTMETER_1W_1MIN_SUM = 0x8413
    LVAR_OUT_CONTROL_WATTMETER_ALL_UNIT_ACCUM = 0x8414
    VAR_OUT_SENSOR_CT1 = 0x8217
    LVAR_NM_OUT_SENSOR_VOLTAGE = 0x24FC


class DecodeResult(IntEnum):
    Ok = 0
    InvalidStartByte = 1
    InvalidEndByte = 2
    SizeDidNotMatch = 3
    UnexpectedSize = 4
    CrcError = 5


class PacketDecodeError(ValueError):
    """Raised when bytes do not form a valid packet; ``result`` tells why."""

    def __init__(self, result: DecodeResult, message: str = "") -> None:
        super().__init__(message or result.name)
        self.result = result


_E = TypeVar("_E", bound=IntEnum)


def _coerce(enum_cls: type[_E], value: int) -> Union[_E, int]:
    """Return the enum member for ``value``, or the plain int if none exists."""
    try:
        return enum_cls(value)
    except ValueError:
        return value


def crc16(data: Sequence[int], start: int, length: int) -> int:
    """CRC-16 (polynomial 0x1021, initial value 0) over ``data[start:start+length]``."""
    crc = 0
    for byte in data[start:start + length]:
        crc ^= (byte & 0xFF) << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return crc


def bytes_to_hex(data: Iterable[int]) -> str:
    """Format bytes as upper-case, space-separated hex pairs."""
    return " ".join(f"{byte:02X}" for byte in data)


def variable_to_signed(value: int) -> int:
    """Interpret an unsigned 16-bit variable as signed."""
    if value < 65535:
        return value
    return value - 65535 - 1


_packet_numbers = itertools.count()


@dataclass(frozen=True)
class Address:
    klass: Union[AddressClass, int]
    channel: int
    address: int

    SIZE = 3

    @classmethod
    def parse(cls, text: str) -> "Address":
        """Parse an address written as three hex fields, e.g. ``"20.00.00"``."""
        parts = text.split(".")
        if len(parts) != 3:
            raise ValueError(f"invalid address {text!r}")
        try:
            klass, channel, address = (int(part, 16) for part in parts)
        except ValueError:
            raise ValueError(f"invalid address {text!r}") from None
        for part in (klass, channel, address):
            if not 0 <= part <= 0xFF:
                raise ValueError(f"invalid address {text!r}")
        return cls(_coerce(AddressClass, klass), channel, address)

    @classmethod
    def my_address(cls) -> "Address":
        """The address this bridge sends from."""
        return cls(AddressClass.JIGTester, 0xFF, 0)

    @classmethod
    def decode(cls, data: Sequence[int], index: int) -> "Address":
        return cls(_coerce(AddressClass, data[index]), data[index + 1], data[index + 2])

    def encode(self) -> bytes:
        return bytes((int(self.klass) & 0xFF, self.channel & 0xFF, self.address & 0xFF))

    def __str__(self) -> str:
        return f"{int(self.klass) & 0xFF:02x}.{self.channel & 0xFF:02x}.{self.address & 0xFF:02x}"


@dataclass
class Command:
    packet_information: bool = True
    protocol_version: int = 2
    retry_count: int = 0
    packet_type: Union[PacketType, int] = PacketType.StandBy
    data_type: Union[DataType, int] = DataType.Undefined
    packet_number: int = 0

    SIZE = 3

    @classmethod
    def decode(cls, data: Sequence[int], index: int) -> "Command":
        first, second = data[index], data[index + 1]
        return cls(
            packet_information=(first & 128) >> 7 == 1,
            protocol_version=(first & 96) >> 5,
            retry_count=(first & 24) >> 3,
            packet_type=_coerce(PacketType, (second & 240) >> 4),
            data_type=_coerce(DataType, second & 15),
            packet_number=data[index + 2],
        )

    def encode(self) -> bytes:
        first = (
            ((1 if self.packet_information else 0) << 7)
            + (self.protocol_version << 5)
            + (self.retry_count << 3)
        )
        second = (int(self.packet_type) << 4) + int(self.data_type)
        return bytes((first & 0xFF, second & 0xFF, self.packet_number & 0xFF))

    def __str__(self) -> str:
        return (
            "{"
            f"PacketInformation: {int(self.packet_information)};"
            f"ProtocolVersion: {self.protocol_version};"
            f"RetryCount: {self.retry_count};"
            f"PacketType: {int(self.packet_type)};"
            f"DataType: {int(self.data_type)};"
            f"PacketNumber: {self.packet_number}"
            "}"
        )


@dataclass
class MessageSet:
    message_number: Union[MessageNumber, int]
    value: int = 0
    structure: bytes = b""
    size: int = field(default=2, compare=False)

    @property
    def type(self) -> MessageSetType:
        return MessageSetType((int(self.message_number) & 1536) >> 9)

    @classmethod
    def decode(cls, data: Sequence[int], index: int, capacity: int) -> "MessageSet":
        """Decode one message set at ``index``; ``size`` says how many bytes it took."""
        number = _coerce(MessageNumber, data[index] * 256 + data[index + 1])
        message = cls(number)
        kind = message.type
        if kind is MessageSetType.Enum:
            message.value = data[index + 2]
            message.size = 3
        elif kind is MessageSetType.Variable:
            message.value = data[index + 2] << 8 | data[index + 3]
            message.size = 4
        elif kind is MessageSetType.LongVariable:
            message.value = int.from_bytes(bytes(data[index + 2:index + 6]), "big", signed=True)
            if len(data) < index + 6:
                raise IndexError("long variable truncated")
            message.size = 6
        else:
            if capacity != 1:
                logger.debug("structure messages can only have one message but is %d", capacity)
                return message
            message.size = len(data) - index - 3
            length = min((message.size - 2) & 0xFF, _MAX_STRUCTURE)
            message.structure = bytes(data[index + 2:index + 2 + length])
        return message

    def encode(self) -> bytes:
        number = int(self.message_number) & 0xFFFF
        out = bytearray(((number >> 8) & 0xFF, number & 0xFF))
        kind = self.type
        if kind is MessageSetType.Enum:
            out.append(self.value & 0xFF)
        elif kind is MessageSetType.Variable:
            out += bytes(((self.value >> 8) & 0xFF, self.value & 0xFF))
        elif kind is MessageSetType.LongVariable:
            out += (self.value & 0xFFFFFFFF).to_bytes(4, "little")
        else:
            out += self.structure
        return bytes(out)

    def __str__(self) -> str:
        number = f"{int(self.message_number) & 0xFFFF:x}"
        kind = self.type
        if kind is MessageSetType.Structure:
            return f"Structure #{number} = {len(self.structure)}"
        return f"{kind.name} {number} = {self.value}"


@dataclass
class Packet:
    sa: Address
    da: Address
    command: Command = field(default_factory=Command)
    messages: list[MessageSet] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        da: Address,
        data_type: DataType,
        message_number: Union[MessageNumber, int],
        value: int,
    ) -> "Packet":
        packet = cls.create_partial(da, data_type)
        packet.messages.append(MessageSet(message_number, value=value))
        return packet

    @classmethod
    def create_partial(cls, da: Address, data_type: DataType) -> "Packet":
        """A packet from this bridge to ``da`` with the next packet number and no messages."""
        command = Command(
            packet_information=True,
            packet_type=PacketType.Normal,
            data_type=data_type,
            packet_number=next(_packet_numbers) & 0xFF,
        )
        return cls(Address.my_address(), da, command)

    @classmethod
    def decode(cls, data: Sequence[int]) -> "Packet":
        """Decode a complete packet, raising PacketDecodeError if it is invalid."""
        data = bytes(data)
        if not data:
            raise PacketDecodeError(DecodeResult.UnexpectedSize)
        if data[0] != START_BYTE:
            raise PacketDecodeError(DecodeResult.InvalidStartByte)
        if len(data) < MIN_PACKET_SIZE or len(data) > MAX_PACKET_SIZE:
            raise PacketDecodeError(DecodeResult.UnexpectedSize)
        size = data[1] << 8 | data[2]
        if size + 2 != len(data):
            raise PacketDecodeError(DecodeResult.SizeDidNotMatch)
        if data[-1] != END_BYTE:
            raise PacketDecodeError(DecodeResult.InvalidEndByte)

        actual = crc16(data, 3, size - 4)
        expected = data[-3] << 8 | data[-2]
        if actual != expected:
            logger.debug(
                "NASA: invalid crc - got %d but should be %d: %s",
                actual, expected, bytes_to_hex(data),
            )
            raise PacketDecodeError(
                DecodeResult.CrcError, f"crc {actual:#06x} does not match {expected:#06x}"
            )

        cursor = 3
        sa = Address.decode(data, cursor)
        cursor += Address.SIZE
        da = Address.decode(data, cursor)
        cursor += Address.SIZE
        command = Command.decode(data, cursor)
        cursor += Command.SIZE

        capacity = data[cursor]
        cursor += 1
        messages = []
        try:
            for _ in range(capacity):
                message = MessageSet.decode(data, cursor, capacity)
                messages.append(message)
                cursor += message.size
        except IndexError:
            raise PacketDecodeError(
                DecodeResult.UnexpectedSize, "message sets run past the end of the packet"
            ) from None
        return cls(sa, da, command, messages)

    def encode(self) -> bytes:
        out = bytearray((START_BYTE, 0, 0))
        out += self.sa.encode()
        out += self.da.encode()
        out += self.command.encode()
        out.append(len(self.messages) & 0xFF)
        for message in self.messages:
            out += message.encode()

        end_position = len(out) + 1
        out[1] = (end_position >> 8) & 0xFF
        out[2] = end_position & 0xFF

        checksum = crc16(out, 3, end_position - 4)
        out += bytes(((checksum >> 8) & 0xFF, checksum & 0xFF, END_BYTE))
        return bytes(out)

    def __str__(self) -> str:
        head = f"#Packet Src:{self.sa} Dst:{self.da} {self.command}\n"
        return head + "\n".join(f" > {message}" for message in self.messages)