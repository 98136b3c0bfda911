import struct

import pytest

from rdd2.sitl_flatbuffer import SimInput, SimInputError, unpack_sim_input
from rdd2.topic_flatbuffer import FlatbufferError, RcChannels16, Vec3f

_DEFAULT_OFFSETS = (4, 16, 28, 92, 93, 94, 96)
_TABLE_BYTES = 104


def build_sim_input(
    gyro=(0.5, -0.25, 1.0),
    accel=(0.0, 0.0, -9.75),
    channels=tuple(1500 for _ in range(16)),
    link_quality=0,
    rc_valid=False,
    imu_valid=False,
    boot_ns=0,
    field_offsets=_DEFAULT_OFFSETS,
    object_size=_TABLE_BYTES,
    identifier=b"SYSI",
):
    vtable = struct.pack(
        f"<HH{len(field_offsets)}H", 4 + 2 * len(field_offsets), object_size, *field_offsets
    )
    table_offset = 8 + len(vtable)
    table = bytearray(_TABLE_BYTES)
    struct.pack_into("<I", table, 0, len(vtable))
    struct.pack_into("<3f", table, 4, *gyro)
    struct.pack_into("<3f", table, 16, *accel)
    struct.pack_into("<16i", table, 28, *channels)
    table[92] = link_quality
    table[93] = 1 if rc_valid else 0
    table[94] = 1 if imu_valid else 0
    struct.pack_into("<Q", table, 96, boot_ns)
    return struct.pack("<I", table_offset) + identifier + vtable + bytes(table)


def test_full_message_round_trip():
    channels = tuple(1000 + 50 * i for i in range(16))
    blob = build_sim_input(
        channels=channels,
        link_quality=87,
        rc_valid=True,
        imu_valid=True,
        boot_ns=0x0123456789ABCDEF,
    )
    assert unpack_sim_input(blob) == SimInput(
        gyro=Vec3f(0.5, -0.25, 1.0),
        accel=Vec3f(0.0, 0.0, -9.75),
        rc=RcChannels16(channels),
        rc_link_quality=87,
        rc_valid=True,
        imu_valid=True,
        target_boot_time_ns=0x0123456789ABCDEF,
    )


def test_optional_fields_absent_from_short_vtable():
    blob = build_sim_input(
        link_quality=50, rc_valid=True, imu_valid=True, boot_ns=99, field_offsets=(4, 16, 28)
    )
    decoded = unpack_sim_input(blob)
    assert decoded.rc_link_quality == 0
    assert decoded.rc_valid is False
    assert decoded.imu_valid is False
    assert decoded.target_boot_time_ns == 0
    assert decoded.gyro == Vec3f(0.5, -0.25, 1.0)


def test_optional_fields_with_zero_offset_default():
    blob = build_sim_input(
        rc_valid=True, imu_valid=True, field_offsets=(4, 16, 28, 0, 0, 0, 0)
    )
    decoded = unpack_sim_input(blob)
    assert (decoded.rc_valid, decoded.imu_valid) == (False, False)


def test_missing_required_field_rejected():
    with pytest.raises(SimInputError):
        unpack_sim_input(build_sim_input(field_offsets=(0, 16, 28)))


def test_required_field_missing_from_vtable_rejected():
    with pytest.raises(SimInputError):
        unpack_sim_input(build_sim_input(field_offsets=(4, 16)))


def test_wrong_identifier_rejected():
    with pytest.raises(SimInputError):
        unpack_sim_input(build_sim_input(identifier=b"SYLG"))


def test_short_buffer_rejected():
    with pytest.raises(SimInputError):
        unpack_sim_input(b"\x08\x00\x00\x00SYS")


def test_root_offset_past_end_rejected():
    blob = bytearray(build_sim_input())
    struct.pack_into("<I", blob, 0, len(blob))
    with pytest.raises(SimInputError):
        unpack_sim_input(bytes(blob))


def test_vtable_distance_beyond_start_rejected():
    blob = bytearray(build_sim_input())
    (table_offset,) = struct.unpack_from("<I", blob, 0)
    struct.pack_into("<I", blob, table_offset, table_offset + 1)
    with pytest.raises(SimInputError):
        unpack_sim_input(bytes(blob))


def test_truncated_table_rejected():
    blob = build_sim_input()
    with pytest.raises(SimInputError):
        unpack_sim_input(blob[:-40])


def test_optional_field_outside_object_rejected():
    offsets = (4, 16, 28, 92, 93, 94, 96)
    blob = build_sim_input(field_offsets=offsets, object_size=94)
    with pytest.raises(SimInputError):
        unpack_sim_input(blob)


def test_error_is_a_flatbuffer_error():
    with pytest.raises(FlatbufferError):
        unpack_sim_input(b"")


def test_nonzero_flag_byte_is_true():
    blob = bytearray(build_sim_input())
    (table_offset,) = struct.unpack_from("<I", blob, 0)
    blob[table_offset + 93] = 5
    assert unpack_sim_input(bytes(blob)).rc_valid is True