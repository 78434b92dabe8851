import pytest

from samsungnasa.bridge import ControlRequest, DeviceState, SamsungACBridge
from samsungnasa.packet import (
    Address,
    AddressClass,
    Command,
    DataType,
    MessageNumber,
    MessageSet,
    Packet,
    PacketType,
)
from samsungnasa.processing import FanMode, Mode


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


class FakePort:
    def __init__(self, incoming=b""):
        self.incoming = bytearray(incoming)
        self.written = bytearray()
        self.flushes = 0

    @property
    def in_waiting(self):
        return len(self.incoming)

    def read(self, size=1):
        chunk = bytes(self.incoming[:size])
        del self.incoming[:size]
        return chunk

    def write(self, data):
        self.written += data
        return len(data)

    def flush(self):
        self.flushes += 1


INDOOR = "20.00.00"
OUTDOOR = "10.00.00"


def notification(source, *messages, data_type=DataType.Notification):
    command = Command(packet_type=PacketType.Normal, data_type=data_type)
    return Packet(
        Address.parse(source), Address.parse("b0.ff.20"), command, list(messages)
    ).encode()


def make_bridge(port=None, timeout=60.0):
    clock = FakeClock()
    return SamsungACBridge(port, device_timeout=timeout, clock=clock), clock


def test_feed_notification_updates_state():
    bridge, _ = make_bridge()
    bridge.feed(notification(INDOOR, MessageSet(MessageNumber.VAR_in_temp_room_f, value=235)))
    assert bridge.is_device_known(INDOOR)
    state = bridge.get_device_state(INDOOR)
    assert state.room_temperature == pytest.approx(23.5)
    assert state.custom_sensors[0x4203] == 235.0


def test_feed_power_mode_and_fan():
    bridge, _ = make_bridge()
    bridge.feed(notification(INDOOR, MessageSet(MessageNumber.ENUM_in_operation_power, value=1)))
    bridge.feed(notification(INDOOR, MessageSet(MessageNumber.ENUM_in_operation_mode, value=4)))
    bridge.feed(notification(INDOOR, MessageSet(MessageNumber.ENUM_in_fan_mode, value=3)))
    state = bridge.get_device_state(INDOOR)
    assert state.power is True
    assert state.mode == Mode.Heat
    assert state.fan_mode == FanMode.High


def test_outdoor_negative_temperature():
    bridge, _ = make_bridge()
    bridge.feed(notification(OUTDOOR, MessageSet(MessageNumber.VAR_out_sensor_airout, value=0xFFF6)))
    assert bridge.get_device_state(OUTDOOR).outdoor_temperature == pytest.approx(-1.0)


def test_non_notification_only_registers():
    bridge, _ = make_bridge()
    frame = notification(
        INDOOR, MessageSet(MessageNumber.VAR_in_temp_room_f, value=235), data_type=DataType.Ack
    )
    bridge.feed(frame)
    assert bridge.is_device_known(INDOOR)
    assert bridge.get_device_state(INDOOR).room_temperature == 0.0


def test_garbage_before_start_byte_is_skipped():
    bridge, _ = make_bridge()
    frame = notification(INDOOR, MessageSet(MessageNumber.VAR_in_temp_target_f, value=220))
    bridge.feed(b"\x00\x11\xff" + frame)
    assert bridge.get_device_state(INDOOR).target_temperature == pytest.approx(22.0)


def test_packet_split_across_feeds():
    bridge, _ = make_bridge()
    frame = notification(INDOOR, MessageSet(MessageNumber.ENUM_in_louver_hl_swing, value=1))
    bridge.feed(frame[:7])
    assert not bridge.is_device_known(INDOOR)
    bridge.feed(frame[7:])
    assert bridge.get_device_state(INDOOR).swing_vertical is True


def test_corrupt_packet_dropped_then_valid_processed():
    bridge, _ = make_bridge()
    bad = bytearray(notification(OUTDOOR, MessageSet(MessageNumber.ENUM_in_operation_power, value=1)))
    bad[-2] ^= 0xFF
    good = notification(INDOOR, MessageSet(MessageNumber.ENUM_in_louver_lr_swing, value=1))
    bridge.feed(bytes(bad) + good)
    assert not bridge.is_device_known(OUTDOOR)
    assert bridge.get_device_state(INDOOR).swing_horizontal is True


def test_two_packets_in_one_feed():
    bridge, _ = make_bridge()
    first = notification(INDOOR, MessageSet(MessageNumber.ENUM_in_operation_power, value=1))
    second = notification(OUTDOOR, MessageSet(MessageNumber.LVAR_NM_OUT_SENSOR_VOLTAGE, value=230))
    bridge.feed(first + second)
    assert bridge.get_discovered_devices() == [OUTDOOR, INDOOR]
    assert bridge.get_device_state(OUTDOOR).voltage == 230.0


def test_transmission_timeout_clears_partial_packet():
    port = FakePort()
    bridge, clock = make_bridge(port)
    frame = notification(INDOOR, MessageSet(MessageNumber.ENUM_in_operation_power, value=1))
    bridge.feed(frame[:8])
    clock.now += 0.6
    bridge.loop()
    bridge.feed(frame[8:])
    assert not bridge.is_device_known(INDOOR)


def test_loop_reads_at_most_64_bytes_per_call():
    frames = b"".join(
        notification(INDOOR, MessageSet(MessageNumber.ENUM_in_operation_power, value=1))
        for _ in range(5)
    )
    port = FakePort(frames)
    bridge, _ = make_bridge(port)
    bridge.loop()
    assert port.in_waiting == len(frames) - 64
    while port.in_waiting:
        bridge.loop()
    assert bridge.get_device_state(INDOOR).power is True


def test_device_online_respects_timeout():
    bridge, clock = make_bridge(timeout=10.0)
    bridge.feed(notification(INDOOR, MessageSet(MessageNumber.ENUM_in_operation_power, value=0)))
    assert bridge.is_device_online(INDOOR)
    clock.now += 10.0
    assert not bridge.is_device_online(INDOOR)
    assert not bridge.is_device_online("30.00.00")


@pytest.mark.parametrize(
    "address, expected",
    [
        ("10.00.00", "Outdoor"),
        ("20.00.01", "Indoor"),
        ("50.00.00", "WiredRemote"),
        ("62.00.00", "WiFiKit"),
        ("30.00.00", "Other"),
        ("nodots", "Unknown"),
    ],
)
def test_device_type(address, expected):
    bridge, _ = make_bridge()
    assert bridge.get_device_type(address) == expected


def test_get_device_state_returns_copy_and_default():
    bridge, _ = make_bridge()
    assert bridge.get_device_state("99.00.00") == DeviceState()
    bridge.set_custom_sensor(INDOOR, 0x4038, 45.0)
    copy = bridge.get_device_state(INDOOR)
    copy.custom_sensors[0x4038] = 0.0
    copy.power = True
    state = bridge.get_device_state(INDOOR)
    assert state.custom_sensors[0x4038] == 45.0
    assert state.power is False


def test_setters_refresh_last_update():
    bridge, clock = make_bridge()
    bridge.set_error_code(OUTDOOR, 101)
    clock.now = 250.0
    bridge.set_outdoor_current(OUTDOOR, 3.5)
    state = bridge.get_device_state(OUTDOOR)
    assert state.last_update == 250.0
    assert state.error_code == 101
    assert state.current == 3.5


def test_control_unknown_device_sends_nothing():
    port = FakePort()
    bridge, _ = make_bridge(port)
    assert bridge.control_device(INDOOR, ControlRequest(power=True)) is False
    assert port.written == b""


def test_control_known_device_writes_request():
    port = FakePort()
    bridge, _ = make_bridge(port)
    bridge.register_address(INDOOR)
    assert bridge.control_device(INDOOR, ControlRequest(mode=Mode.Cool, target_temperature=24.0))
    sent = Packet.decode(bytes(port.written))
    assert port.flushes == 1
    assert str(sent.da) == INDOOR
    assert sent.sa.klass == AddressClass.JIGTester
    assert sent.command.data_type == DataType.Request
    assert [(m.message_number, m.value) for m in sent.messages] == [
        (MessageNumber.ENUM_in_operation_mode, 1),
        (MessageNumber.ENUM_in_operation_power, 0),
        (MessageNumber.VAR_in_temp_target_f, 240),
    ]


def test_control_empty_request_writes_nothing():
    port = FakePort()
    bridge, _ = make_bridge(port)
    bridge.register_address(INDOOR)
    assert bridge.control_device(INDOOR, ControlRequest()) is True
    assert port.written == b""


def test_publish_without_port_raises():
    bridge, _ = make_bridge()
    with pytest.raises(RuntimeError):
        bridge.publish_data(b"\x32")