"""Decoding of the simulator input FlatBuffer ("SYSI") sent to the flight stack."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

from rdd2.topic_flatbuffer import FlatbufferError, RcChannels16, Vec3f

SIM_INPUT_IDENTIFIER = b"SYSI"

_FIELD_GYRO = 0
_FIELD_ACCEL = 1
_FIELD_RC = 2
_FIELD_RC_LINK_QUALITY = 3
_FIELD_RC_VALID = 4
_FIELD_IMU_VALID = 5
_FIELD_TARGET_BOOT_TIME_NS = 6

_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")


class SimInputError(FlatbufferError):
    """Raised when a simulator input blob is malformed or out of bounds."""


@dataclass(frozen=True)
class SimInput:
    """Sensor and RC values carried by one simulator input message."""

    gyro: Vec3f = field(default_factory=Vec3f)
    accel: Vec3f = field(default_factory=Vec3f)
    rc: RcChannels16 = field(default_factory=RcChannels16)
    rc_link_quality: int = 0
    rc_valid: bool = False
    imu_valid: bool = False
    target_boot_time_ns: int = 0


class _Table:
    def __init__(self, buf: bytes, table_offset: int) -> None:
        self.buf = buf
        self.offset = table_offset

    def field_offset(self, field_index: int) -> tuple[int, int]:
        """Return (field offset, object size); offset 0 means the field is absent."""
        size = len(self.buf)
        entry_offset = 4 + field_index * 2

        if self.offset + 4 > size:
            raise SimInputError("table header out of bounds")

        (vtable_distance,) = _U32.unpack_from(self.buf, self.offset)
        if vtable_distance > self.offset:
            raise SimInputError("vtable before start of buffer")

        vtable_offset = self.offset - vtable_distance
        if vtable_offset + 4 > size:
            raise SimInputError("vtable header out of bounds")

        vtable_size, object_size = struct.unpack_from("<HH", self.buf, vtable_offset)
        if vtable_offset + vtable_size > size:
            raise SimInputError("vtable out of bounds")

        if entry_offset >= vtable_size:
            return 0, object_size
        (offset,) = _U16.unpack_from(self.buf, vtable_offset + entry_offset)
        return offset, object_size

    def struct_slice(self, field_index: int, field_size: int, name: str) -> bytes:
        offset, object_size = self.field_offset(field_index)
        self._check_bounds(offset, object_size, field_size, name)
        start = self.offset + offset
        return self.buf[start : start + field_size]

    def optional_slice(self, field_index: int, field_size: int, name: str) -> bytes | None:
        offset, object_size = self.field_offset(field_index)
        if offset == 0:
            return None
        self._check_bounds(offset, object_size, field_size, name)
        start = self.offset + offset
        return self.buf[start : start + field_size]

    def _check_bounds(self, offset: int, object_size: int, field_size: int, name: str) -> None:
        if offset == 0 or offset >= object_size:
            raise SimInputError(f"{name}: field missing or outside object")
        if self.offset + offset + field_size > len(self.buf):
            raise SimInputError(f"{name}: field out of bounds")


def unpack_sim_input(buf) -> SimInput:
    """Decode a simulator input blob.

    Gyro, accel and RC channels are required; link quality, the validity
    flags and the target boot time default to zero/False when absent.
    """
    data = bytes(buf)
    if len(data) < 8:
        raise SimInputError("buffer too short")
    if data[4:8] != SIM_INPUT_IDENTIFIER:
        raise SimInputError("missing SYSI file identifier")

    (table_offset,) = _U32.unpack_from(data, 0)
    if table_offset >= len(data):
        raise SimInputError("root table offset out of bounds")

    table = _Table(data, table_offset)

    gyro = Vec3f.from_bytes(table.struct_slice(_FIELD_GYRO, Vec3f.size(), "gyro"))
    accel = Vec3f.from_bytes(table.struct_slice(_FIELD_ACCEL, Vec3f.size(), "accel"))
    rc = RcChannels16.from_bytes(table.struct_slice(_FIELD_RC, RcChannels16.size(), "rc"))

    lq = table.optional_slice(_FIELD_RC_LINK_QUALITY, 1, "rc_link_quality")
    rc_valid = table.optional_slice(_FIELD_RC_VALID, 1, "rc_valid")
    imu_valid = table.optional_slice(_FIELD_IMU_VALID, 1, "imu_valid")
    boot_time = table.optional_slice(
        _FIELD_TARGET_BOOT_TIME_NS, _U64.size, "target_boot_time_ns"
    )

    return SimInput(
        gyro=gyro,
        accel=accel,
        rc=rc,
        rc_link_quality=lq[0] if lq is not None else 0,
        rc_valid=rc_valid is not None and rc_valid[0] != 0,
        imu_valid=imu_valid is not None and imu_valid[0] != 0,
        target_boot_time_ns=_U64.unpack(boot_time)[0] if boot_time is not None else 0,
    )