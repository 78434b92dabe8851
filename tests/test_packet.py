import pytest

from samsungnasa.packet import (
    Address,
    AddressClass,
    Command,
    DataType,
    DecodeResult,
    MessageNumber,
    MessageSet,
    MessageSetType,
    Packet,
    PacketDecodeError,
    PacketType,
    bytes_to_hex,
    crc16,
    variable_to_signed,
)


INDOOR = Address(AddressClass.Indoor, 0, 0)


def _sample_packet():
    packet = Packet.create_partial(INDOOR, DataType.Request)
    packet.messages.append(MessageSet(MessageNumber.ENUM_in_operation_power, value=1))
    packet.messages.append(MessageSet(MessageNumber.VAR_in_temp_target_f, value=215))
    return packet


def test_crc16_standard_check_value():
    data = b"123456789"
    assert crc16(data, 0, len(data)) == 0x31C3


def test_crc16_respects_start_and_length():
    data = b"xx123456789yy"
    assert crc16(data, 2, 9) == crc16(b"123456789", 0, 9)


def test_crc16_empty_is_zero():
    assert crc16(b"abc", 1, 0) == 0


def test_bytes_to_hex():
    assert bytes_to_hex([0x32, 0x0A, 0xFF]) == "32 0A FF"
    assert bytes_to_hex(b"") == ""


def test_variable_to_signed():
    assert variable_to_signed(100) == 100
    assert variable_to_signed(65535) == -1
    assert variable_to_signed(65536) == 0


def test_address_parse_and_str_round_trip():
    address = Address.parse("20.00.00")
    assert address == INDOOR
    assert address.klass is AddressClass.Indoor
    assert str(address) == "20.00.00"


def test_address_parse_unknown_class_keeps_int():
    address = Address.parse("21.01.0a")
    assert address.klass == 0x21
    assert str(address) == "21.01.0a"


@pytest.mark.parametrize("text", ["20.00", "zz.00.00", "20.00.00.00", "100.00.00"])
def test_address_parse_rejects_malformed(text):
    with pytest.raises(ValueError):
        Address.parse(text)


def test_my_address():
    assert str(Address.my_address()) == "80.ff.00"


def test_address_encode_decode_round_trip():
    address = Address(AddressClass.Outdoor, 0x01, 0x02)
    encoded = address.encode()
    assert encoded == bytes([0x10, 0x01, 0x02])
    assert Address.decode(b"\x00" + encoded, 1) == address


def test_command_round_trip():
    command = Command(
        packet_information=False,
        protocol_version=3,
        retry_count=2,
        packet_type=PacketType.Gathering,
        data_type=DataType.Notification,
        packet_number=200,
    )
    assert Command.decode(command.encode(), 0) == command


def test_command_str():
    command = Command(packet_type=PacketType.Normal, data_type=DataType.Request, packet_number=7)
    assert str(command) == (
        "{PacketInformation: 1;ProtocolVersion: 2;RetryCount: 0;"
        "PacketType: 1;DataType: 3;PacketNumber: 7}"
    )


def test_message_set_type_from_number():
    assert MessageSet(MessageNumber.ENUM_in_operation_power).type is MessageSetType.Enum
    assert MessageSet(MessageNumber.VAR_in_temp_room_f).type is MessageSetType.Variable
    assert MessageSet(MessageNumber.LVAR_NM_OUT_SENSOR_VOLTAGE).type is MessageSetType.LongVariable
    assert MessageSet(0x4601).type is MessageSetType.Structure


def test_message_set_variable_round_trip():
    message = MessageSet(MessageNumber.VAR_in_temp_room_f, value=0x1234)
    decoded = MessageSet.decode(message.encode(), 0, 1)
    assert decoded == message
    assert decoded.size == 4


def test_message_set_enum_decode():
    decoded = MessageSet.decode(bytes([0x40, 0x00, 0x01]), 0, 1)
    assert decoded.message_number is MessageNumber.ENUM_in_operation_power
    assert decoded.value == 1
    assert decoded.size == 3


def test_message_set_long_variable_encodes_low_byte_first():
    message = MessageSet(MessageNumber.LVAR_OUT_CONTROL_WATTMETER_1W_1MIN_SUM, value=0x01020304)
    assert message.encode() == bytes([0x84, 0x13, 0x04, 0x03, 0x02, 0x01])


def test_message_set_long_variable_decodes_high_byte_first():
    decoded = MessageSet.decode(bytes([0x84, 0x13, 0x01, 0x02, 0x03, 0x04]), 0, 1)
    assert decoded.value == 0x01020304
    assert decoded.size == 6


def test_message_set_str():
    assert str(MessageSet(MessageNumber.ENUM_in_operation_power, value=1)) == "Enum 4000 = 1"
    assert str(MessageSet(MessageNumber.VAR_in_temp_room_f, value=215)) == "Variable 4203 = 215"
    assert str(MessageSet(0x4601, structure=b"abc")) == "Structure #4601 = 3"


def test_packet_encode_frame():
    data = _sample_packet().encode()
    assert data[0] == 0x32
    assert data[-1] == 0x34
    assert (data[1] << 8 | data[2]) == len(data) - 2
    assert data[3:6] == Address.my_address().encode()
    assert data[6:9] == INDOOR.encode()


def test_packet_round_trip():
    packet = _sample_packet()
    decoded = Packet.decode(packet.encode())
    assert decoded == packet
    assert [m.size for m in decoded.messages] == [3, 4]


def test_packet_numbers_increase():
    first = Packet.create_partial(INDOOR, DataType.Request).command.packet_number
    second = Packet.create_partial(INDOOR, DataType.Request).command.packet_number
    assert second == (first + 1) % 256


def test_packet_create():
    packet = Packet.create(INDOOR, DataType.Write, MessageNumber.ENUM_in_fan_mode, 3)
    assert packet.sa == Address.my_address()
    assert packet.command.packet_type is PacketType.Normal
    assert packet.command.data_type is DataType.Write
    assert packet.messages == [MessageSet(MessageNumber.ENUM_in_fan_mode, value=3)]


def test_packet_structure_round_trip():
    packet = Packet.create_partial(INDOOR, DataType.Notification)
    packet.messages.append(MessageSet(0x4601, structure=b"\x01\x02\x03"))
    decoded = Packet.decode(packet.encode())
    assert decoded.messages[0].structure == b"\x01\x02\x03"
    assert decoded.messages[0].size == 5


def test_packet_unknown_message_number_kept():
    packet = Packet.create(INDOOR, DataType.Notification, 0x4299, 42)
    decoded = Packet.decode(packet.encode())
    assert decoded.messages[0].message_number == 0x4299
    assert decoded.messages[0].value == 42


def test_packet_str():
    packet = Packet.create(INDOOR, DataType.Request, MessageNumber.ENUM_in_operation_power, 1)
    text = str(packet)
    assert text.startswith("#Packet Src:80.ff.00 Dst:20.00.00 {")
    assert text.endswith("\n > Enum 4000 = 1")


def _decode_error(data):
    with pytest.raises(PacketDecodeError) as info:
        Packet.decode(data)
    return info.value.result


def test_decode_invalid_start_byte():
    data = bytearray(_sample_packet().encode())
    data[0] = 0x33
    assert _decode_error(data) is DecodeResult.InvalidStartByte


def test_decode_too_short():
    assert _decode_error(bytes([0x32, 0x00, 0x05, 0x00, 0x00, 0x34])) is DecodeResult.UnexpectedSize


def test_decode_empty():
    assert _decode_error(b"") is DecodeResult.UnexpectedSize


def test_decode_size_mismatch():
    data = _sample_packet().encode() + b"\x00"
    assert _decode_error(data) is DecodeResult.SizeDidNotMatch


def test_decode_invalid_end_byte():
    data = bytearray(_sample_packet().encode())
    data[-1] = 0x00
    assert _decode_error(data) is DecodeResult.InvalidEndByte


def test_decode_crc_error():
    data = bytearray(_sample_packet().encode())
    data[10] ^= 0xFF
    assert _decode_error(data) is DecodeResult.CrcError


def test_decode_error_is_value_error():
    with pytest.raises(ValueError):
        Packet.decode(b"\x00" * 20)