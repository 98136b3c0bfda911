import struct

import pytest

from rdd2.topic_flatbuffer import (
    FLIGHT_STATE_SIZE,
    MOTOR_OUTPUT_SIZE,
    AttitudeEuler,
    FlatbufferError,
    FlightState,
    MotorOutput,
    MotorRaw4u16,
    MotorValues4f,
    RateTriplet,
    RcChannels16,
    Vec3f,
    pack_flight_state,
    pack_motor_output,
    unpack_flight_state,
    unpack_motor_output,
)


@pytest.fixture
def flight_state():
    return FlightState(
        gyro=Vec3f(0.5, -0.25, 1.5),
        accel=Vec3f(0.0, 0.125, -9.75),
        rc=RcChannels16(tuple(1000 + 10 * i for i in range(16))),
        status=bytes(range(24)),
        attitude=AttitudeEuler(0.25, -0.5, 2.0),
        attitude_desired=AttitudeEuler(-0.125, 0.375, 1.0),
        rate_desired=RateTriplet(3.0, -3.0, 0.75),
        rate_cmd=RateTriplet(0.0625, -0.0625, 0.5),
        main_loop_latency_us=123,
    )


@pytest.fixture
def motor_output():
    return MotorOutput(
        motors=MotorValues4f(0.25, 0.5, 0.75, 1.0),
        raw=MotorRaw4u16(48, 500, 1200, 2047),
        armed=True,
        test_mode=False,
    )


def test_flight_state_round_trip(flight_state):
    blob = pack_flight_state(flight_state)
    assert unpack_flight_state(blob) == flight_state


def test_flight_state_blob_size_and_header(flight_state):
    blob = pack_flight_state(flight_state)
    assert len(blob) == FLIGHT_STATE_SIZE == 198
    (root,) = struct.unpack_from("<I", blob, 0)
    assert root == 4 + 22
    assert struct.unpack_from("<HH", blob, 4) == (22, 172)
    assert struct.unpack_from("<I", blob, root) == (22,)


def test_flight_state_latency_written_little_endian(flight_state):
    blob = pack_flight_state(flight_state)
    (latency,) = struct.unpack_from("<I", blob, 26 + 168)
    assert latency == flight_state.main_loop_latency_us


def test_flight_state_default_round_trip():
    assert unpack_flight_state(pack_flight_state(FlightState())) == FlightState()


def test_flight_state_wrong_size_rejected(flight_state):
    blob = pack_flight_state(flight_state)
    with pytest.raises(FlatbufferError):
        unpack_flight_state(blob[:-1])
    with pytest.raises(FlatbufferError):
        unpack_flight_state(blob + b"\x00")


def test_flight_state_bad_root_offset_rejected(flight_state):
    blob = bytearray(pack_flight_state(flight_state))
    blob[0] += 1
    with pytest.raises(FlatbufferError):
        unpack_flight_state(bytes(blob))


def test_flight_state_bad_vtable_distance_rejected(flight_state):
    blob = bytearray(pack_flight_state(flight_state))
    struct.pack_into("<I", blob, 26, 20)
    with pytest.raises(FlatbufferError):
        unpack_flight_state(bytes(blob))


@pytest.mark.parametrize("entry", range(11))
def test_flight_state_bad_vtable_entry_rejected(flight_state, entry):
    blob = bytearray(pack_flight_state(flight_state))
    blob[4 + 2 * entry] ^= 0x01
    with pytest.raises(FlatbufferError):
        unpack_flight_state(bytes(blob))


def test_flight_state_status_length_checked():
    with pytest.raises(ValueError):
        FlightState(status=b"\x00" * 23)


def test_rc_channels_length_checked():
    with pytest.raises(ValueError):
        RcChannels16((1500,) * 15)


def test_rc_channels_indexing():
    rc = RcChannels16(tuple(range(16)))
    assert rc[4] == 4
    assert list(rc) == list(range(16))
    assert len(rc) == 16


def test_struct_sizes_match_layout():
    assert Vec3f.size() == 12
    assert RcChannels16.size() == 64
    assert MotorValues4f.size() == 16
    assert MotorRaw4u16.size() == 8


def test_motor_output_round_trip(motor_output):
    blob = pack_motor_output(motor_output)
    assert unpack_motor_output(blob) == motor_output


def test_motor_output_blob_layout(motor_output):
    blob = pack_motor_output(motor_output)
    assert len(blob) == MOTOR_OUTPUT_SIZE == 48
    assert struct.unpack_from("<HH", blob, 4) == (12, 32)
    assert struct.unpack_from("<4H", blob, 4 + 4) == (4, 20, 28, 29)
    assert blob[16 + 28] == 1
    assert blob[16 + 29] == 0


def test_motor_output_flags_round_trip():
    output = MotorOutput(armed=False, test_mode=True)
    decoded = unpack_motor_output(pack_motor_output(output))
    assert decoded.armed is False
    assert decoded.test_mode is True


def test_motor_output_nonzero_flag_byte_is_true(motor_output):
    blob = bytearray(pack_motor_output(motor_output))
    blob[16 + 29] = 7
    assert unpack_motor_output(bytes(blob)).test_mode is True


def test_motor_output_wrong_size_rejected(motor_output):
    with pytest.raises(FlatbufferError):
        unpack_motor_output(pack_motor_output(motor_output)[:40])


def test_motor_output_bad_vtable_rejected(motor_output):
    blob = bytearray(pack_motor_output(motor_output))
    struct.pack_into("<H", blob, 4 + 10, 30)
    with pytest.raises(FlatbufferError):
        unpack_motor_output(bytes(blob))


def test_flight_blob_is_not_motor_blob(flight_state):
    with pytest.raises(FlatbufferError):
        unpack_motor_output(pack_flight_state(flight_state))