"""Fixed-layout FlatBuffer encoding of the flight-state and motor-output topics.

Both messages are a root table of inline structs, so every blob has a fixed
size and fixed field offsets. Packing writes that exact layout; unpacking
checks the root offset and the whole vtable before reading any field.
"""

from __future__ import annotations

import struct
from dataclasses import astuple, dataclass, field
from typing import ClassVar, Iterator

FLIGHT_STATE_SIZE = 198
MOTOR_OUTPUT_SIZE = 48
CONTROL_STATUS_SIZE = 24

_FLIGHT_VTABLE_OFFSET = 4
_FLIGHT_VTABLE_SIZE = 22
_FLIGHT_TABLE_OFFSET = _FLIGHT_VTABLE_OFFSET + _FLIGHT_VTABLE_SIZE
_FLIGHT_OBJECT_SIZE = 172
_FLIGHT_FIELD_GYRO = 4
_FLIGHT_FIELD_ACCEL = 16
_FLIGHT_FIELD_RC = 28
_FLIGHT_FIELD_STATUS = 96
_FLIGHT_FIELD_ATTITUDE = 120
_FLIGHT_FIELD_ATTITUDE_DESIRED = 132
_FLIGHT_FIELD_RATE_DESIRED = 144
_FLIGHT_FIELD_RATE_CMD = 156
_FLIGHT_FIELD_MAIN_LOOP_LATENCY_US = 168
_FLIGHT_FIELDS = (
    _FLIGHT_FIELD_GYRO,
    _FLIGHT_FIELD_ACCEL,
    _FLIGHT_FIELD_RC,
    _FLIGHT_FIELD_STATUS,
    _FLIGHT_FIELD_ATTITUDE,
    _FLIGHT_FIELD_ATTITUDE_DESIRED,
    _FLIGHT_FIELD_RATE_DESIRED,
    _FLIGHT_FIELD_RATE_CMD,
    _FLIGHT_FIELD_MAIN_LOOP_LATENCY_US,
)

_MOTOR_VTABLE_OFFSET = 4
_MOTOR_VTABLE_SIZE = 12
_MOTOR_TABLE_OFFSET = _MOTOR_VTABLE_OFFSET + _MOTOR_VTABLE_SIZE
_MOTOR_OBJECT_SIZE = 32
_MOTOR_FIELD_MOTORS = 4
_MOTOR_FIELD_RAW = 20
_MOTOR_FIELD_ARMED = 28
_MOTOR_FIELD_TEST_MODE = 29
_MOTOR_FIELDS = (
    _MOTOR_FIELD_MOTORS,
    _MOTOR_FIELD_RAW,
    _MOTOR_FIELD_ARMED,
    _MOTOR_FIELD_TEST_MODE,
)

_U32 = struct.Struct("<I")


class FlatbufferError(ValueError):
    """Raised when a topic blob does not have the expected layout."""


class _Struct:
    """Shared behaviour for fixed-size little-endian structs."""

    _FORMAT: ClassVar[struct.Struct]

    @classmethod
    def size(cls) -> int:
        return cls._FORMAT.size

    def to_bytes(self) -> bytes:
        return self._FORMAT.pack(*astuple(self))

    @classmethod
    def from_bytes(cls, data):
        return cls(*cls._FORMAT.unpack(data))

    def __iter__(self) -> Iterator:
        return iter(astuple(self))


@dataclass(frozen=True)
class Vec3f(_Struct):
    """Three-component float vector (x, y, z)."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<3f")


@dataclass(frozen=True)
class AttitudeEuler(_Struct):
    """Roll, pitch and yaw angles in radians."""

    roll: float = 0.0
    pitch: float = 0.0
    yaw: float = 0.0
    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<3f")


@dataclass(frozen=True)
class RateTriplet(_Struct):
    """Roll, pitch and yaw rates in radians per second."""

    roll: float = 0.0
    pitch: float = 0.0
    yaw: float = 0.0
    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<3f")


@dataclass(frozen=True)
class MotorValues4f(_Struct):
    """Normalised command for each of the four motors."""

    m0: float = 0.0
    m1: float = 0.0
    m2: float = 0.0
    m3: float = 0.0
    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<4f")


@dataclass(frozen=True)
class MotorRaw4u16(_Struct):
    """Raw output value for each of the four motors."""

    m0: int = 0
    m1: int = 0
    m2: int = 0
    m3: int = 0
    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<4H")


@dataclass(frozen=True)
class RcChannels16(_Struct):
    """Sixteen RC channel pulse widths in microseconds."""

    channels: tuple[int, ...] = (0,) * 16
    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<16i")

    def __post_init__(self) -> None:
        channels = tuple(int(value) for value in self.channels)
        if len(channels) != 16:
            raise ValueError(f"expected 16 RC channels, got {len(channels)}")
        object.__setattr__(self, "channels", channels)

    def to_bytes(self) -> bytes:
        return self._FORMAT.pack(*self.channels)

    @classmethod
    def from_bytes(cls, data) -> "RcChannels16":
        return cls(cls._FORMAT.unpack(data))

    def __iter__(self) -> Iterator[int]:
        return iter(self.channels)

    def __getitem__(self, index):
        return self.channels[index]

    def __len__(self) -> int:
        return len(self.channels)


@dataclass(frozen=True)
class FlightState:
    """One flight-state snapshot; ``status`` is the raw 24-byte control status."""

    gyro: Vec3f = field(default_factory=Vec3f)
    accel: Vec3f = field(default_factory=Vec3f)
    rc: RcChannels16 = field(default_factory=RcChannels16)
    status: bytes = bytes(CONTROL_STATUS_SIZE)
    attitude: AttitudeEuler = field(default_factory=AttitudeEuler)
    attitude_desired: AttitudeEuler = field(default_factory=AttitudeEuler)
    rate_desired: RateTriplet = field(default_factory=RateTriplet)
    rate_cmd: RateTriplet = field(default_factory=RateTriplet)
    main_loop_latency_us: int = 0

    def __post_init__(self) -> None:
        status = bytes(self.status)
        if len(status) != CONTROL_STATUS_SIZE:
            raise ValueError(
                f"control status must be {CONTROL_STATUS_SIZE} bytes, got {len(status)}"
            )
        object.__setattr__(self, "status", status)


@dataclass(frozen=True)
class MotorOutput:
    """One motor-output sample."""

    motors: MotorValues4f = field(default_factory=MotorValues4f)
    raw: MotorRaw4u16 = field(default_factory=MotorRaw4u16)
    armed: bool = False
    test_mode: bool = False


def _pack_fixed_table(
    total_size: int, vtable_size: int, object_size: int, field_offsets: tuple[int, ...]
) -> bytearray:
    buf = bytearray(total_size)
    _U32.pack_into(buf, 0, 4 + vtable_size)
    struct.pack_into(
        f"<HH{len(field_offsets)}H", buf, 4, vtable_size, object_size, *field_offsets
    )
    _U32.pack_into(buf, 4 + vtable_size, vtable_size)
    return buf


def _check_fixed_table(
    buf,
    name: str,
    total_size: int,
    vtable_offset: int,
    vtable_size: int,
    object_size: int,
    field_offsets: tuple[int, ...],
) -> int:
    if len(buf) != total_size:
        raise FlatbufferError(f"{name}: expected {total_size} bytes, got {len(buf)}")

    table_offset = vtable_offset + vtable_size
    (root_offset,) = _U32.unpack_from(buf, 0)
    if root_offset != table_offset:
        raise FlatbufferError(f"{name}: unexpected root offset {root_offset}")

    (vtable_distance,) = _U32.unpack_from(buf, table_offset)
    if vtable_distance != table_offset - vtable_offset:
        raise FlatbufferError(f"{name}: unexpected vtable distance {vtable_distance}")

    expected = (vtable_size, object_size, *field_offsets)
    entries = struct.unpack_from(f"<{len(expected)}H", buf, vtable_offset)
    if entries != expected:
        raise FlatbufferError(f"{name}: unexpected vtable layout")

    return table_offset


def pack_flight_state(state: FlightState) -> bytes:
    """Encode a flight-state snapshot as a fixed-size FlatBuffer blob."""
    buf = _pack_fixed_table(
        FLIGHT_STATE_SIZE, _FLIGHT_VTABLE_SIZE, _FLIGHT_OBJECT_SIZE, _FLIGHT_FIELDS
    )
    table = _FLIGHT_TABLE_OFFSET
    parts = (
        (_FLIGHT_FIELD_GYRO, state.gyro.to_bytes()),
        (_FLIGHT_FIELD_ACCEL, state.accel.to_bytes()),
        (_FLIGHT_FIELD_RC, state.rc.to_bytes()),
        (_FLIGHT_FIELD_STATUS, state.status),
        (_FLIGHT_FIELD_ATTITUDE, state.attitude.to_bytes()),
        (_FLIGHT_FIELD_ATTITUDE_DESIRED, state.attitude_desired.to_bytes()),
        (_FLIGHT_FIELD_RATE_DESIRED, state.rate_desired.to_bytes()),
        (_FLIGHT_FIELD_RATE_CMD, state.rate_cmd.to_bytes()),
        (_FLIGHT_FIELD_MAIN_LOOP_LATENCY_US, _U32.pack(state.main_loop_latency_us)),
    )
    for offset, data in parts:
        start = table + offset
        buf[start : start + len(data)] = data
    return bytes(buf)


def unpack_flight_state(buf) -> FlightState:
    """Decode a flight-state blob, raising FlatbufferError if its layout is wrong."""
    table = _check_fixed_table(
        buf,
        "flight_state",
        FLIGHT_STATE_SIZE,
        _FLIGHT_VTABLE_OFFSET,
        _FLIGHT_VTABLE_SIZE,
        _FLIGHT_OBJECT_SIZE,
        _FLIGHT_FIELDS,
    )
    view = memoryview(bytes(buf))

    def read(cls, offset):
        start = table + offset
        return cls.from_bytes(view[start : start + cls.size()])

    status_start = table + _FLIGHT_FIELD_STATUS
    (latency,) = _U32.unpack_from(view, table + _FLIGHT_FIELD_MAIN_LOOP_LATENCY_US)
    return FlightState(
        gyro=read(Vec3f, _FLIGHT_FIELD_GYRO),
        accel=read(Vec3f, _FLIGHT_FIELD_ACCEL),
        rc=read(RcChannels16, _FLIGHT_FIELD_RC),
        status=bytes(view[status_start : status_start + CONTROL_STATUS_SIZE]),
        attitude=read(AttitudeEuler, _FLIGHT_FIELD_ATTITUDE),
        attitude_desired=read(AttitudeEuler, _FLIGHT_FIELD_ATTITUDE_DESIRED),
        rate_desired=read(RateTriplet, _FLIGHT_FIELD_RATE_DESIRED),
        rate_cmd=read(RateTriplet, _FLIGHT_FIELD_RATE_CMD),
        main_loop_latency_us=latency,
    )


def pack_motor_output(output: MotorOutput) -> bytes:
    """Encode a motor-output sample as a fixed-size FlatBuffer blob."""
    buf = _pack_fixed_table(
        MOTOR_OUTPUT_SIZE, _MOTOR_VTABLE_SIZE, _MOTOR_OBJECT_SIZE, _MOTOR_FIELDS
    )
    table = _MOTOR_TABLE_OFFSET
    motors = output.motors.to_bytes()
    raw = output.raw.to_bytes()
    start = table + _MOTOR_FIELD_MOTORS
    buf[start : start + len(motors)] = motors
    start = table + _MOTOR_FIELD_RAW
    buf[start : start + len(raw)] = raw
    buf[table + _MOTOR_FIELD_ARMED] = 1 if output.armed else 0
    buf[table + _MOTOR_FIELD_TEST_MODE] = 1 if output.test_mode else 0
    return bytes(buf)


def unpack_motor_output(buf) -> MotorOutput:
    """Decode a motor-output blob, raising FlatbufferError if its layout is wrong."""
    table = _check_fixed_table(
        buf,
        "motor_output",
        MOTOR_OUTPUT_SIZE,
        _MOTOR_VTABLE_OFFSET,
        _MOTOR_VTABLE_SIZE,
        _MOTOR_OBJECT_SIZE,
        _MOTOR_FIELDS,
    )
    data = bytes(buf)
    motors_start = table + _MOTOR_FIELD_MOTORS
    raw_start = table + _MOTOR_FIELD_RAW
    return MotorOutput(
        motors=MotorValues4f.from_bytes(
            data[motors_start : motors_start + MotorValues4f.size()]
        ),
        raw=MotorRaw4u16.from_bytes(data[raw_start : raw_start + MotorRaw4u16.size()]),
        armed=data[table + _MOTOR_FIELD_ARMED] != 0,
        test_mode=data[table + _MOTOR_FIELD_TEST_MODE] != 0,
    )