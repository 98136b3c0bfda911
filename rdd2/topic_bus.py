"""Latest-value topics shared between the control loop, shells and transports."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from rdd2.topic_flatbuffer import FLIGHT_STATE_SIZE, MOTOR_OUTPUT_SIZE, RcChannels16

MOCAP_FRAME_MAX_PAYLOAD = 512
MOCAP_FRAME_MAX_KEYEXPR = 96
MOCAP_RIGID_BODY_MAX = 4

_U32_MASK = 0xFFFFFFFF


@dataclass(frozen=True)
class MocapFrame:
    """One raw motion-capture frame as received from the network."""

    payload: bytes = b""
    keyexpr: str = ""
    receive_count: int = 0
    receive_stamp_ms: int = 0

    def __post_init__(self) -> None:
        payload = bytes(self.payload)
        if len(payload) > MOCAP_FRAME_MAX_PAYLOAD:
            raise ValueError(f"mocap payload exceeds {MOCAP_FRAME_MAX_PAYLOAD} bytes")
        if len(self.keyexpr) > MOCAP_FRAME_MAX_KEYEXPR:
            raise ValueError(f"mocap keyexpr exceeds {MOCAP_FRAME_MAX_KEYEXPR} characters")
        object.__setattr__(self, "payload", payload)


@dataclass(frozen=True)
class MocapRigidBodyPose:
    """Pose of a single tracked rigid body."""

    id: int = 0
    position_m: tuple[float, float, float] = (0.0, 0.0, 0.0)
    attitude_xyzw: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)
    residual: float = 0.0
    tracking_valid: bool = False

    def __post_init__(self) -> None:
        position = tuple(float(v) for v in self.position_m)
        attitude = tuple(float(v) for v in self.attitude_xyzw)
        if len(position) != 3:
            raise ValueError("position_m must have 3 components")
        if len(attitude) != 4:
            raise ValueError("attitude_xyzw must have 4 components")
        object.__setattr__(self, "position_m", position)
        object.__setattr__(self, "attitude_xyzw", attitude)


@dataclass(frozen=True)
class MocapRigidBodies:
    """Decoded rigid-body poses from one motion-capture frame."""

    timestamp_us: int = 0
    frame_number: int = 0
    count: int = 0
    receive_count: int = 0
    receive_stamp_ms: int = 0
    bodies: tuple[MocapRigidBodyPose, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        bodies = tuple(self.bodies)
        if len(bodies) > MOCAP_RIGID_BODY_MAX:
            raise ValueError(f"at most {MOCAP_RIGID_BODY_MAX} rigid bodies are supported")
        object.__setattr__(self, "bodies", bodies)


class Topic:
    """A single-publisher topic holding its latest sample and a generation counter.

    ``size`` is the fixed byte size of a sample, or None for topics whose
    samples are Python objects without a wire form.
    """

    def __init__(self, name: str, size: int | None = None) -> None:
        self.name = name
        self.size = size
        self._lock = threading.Lock()
        self._value: Any = None
        self._generation = 0

    def __repr__(self) -> str:
        return f"Topic({self.name!r}, size={self.size!r}, generation={self.generation()})"

    def publish(self, value: Any) -> None:
        """Store a new sample and advance the generation."""
        if isinstance(value, (bytes, bytearray, memoryview)):
            value = bytes(value)
            if self.size is not None and len(value) != self.size:
                raise ValueError(
                    f"{self.name}: sample must be {self.size} bytes, got {len(value)}"
                )
        with self._lock:
            self._value = value
            self._generation = (self._generation + 1) & _U32_MASK

    def read(self) -> Any:
        """Return the latest sample; raises LookupError if none was published."""
        with self._lock:
            if self._generation == 0:
                raise LookupError(f"{self.name}: no sample published")
            return self._value

    def generation(self) -> int:
        """Number of samples published so far (32-bit); 0 means none."""
        with self._lock:
            return self._generation

    def has_sample(self) -> bool:
        return self.generation() != 0

    def copy_blob(self, buf_size: int) -> bytes | None:
        """Return the latest sample as bytes, or None if nothing was published.

        Raises ValueError if the sample does not fit in ``buf_size`` bytes.
        """
        if self.size is None:
            raise TypeError(f"{self.name}: topic has no fixed-size wire form")
        if not self.has_sample():
            return None
        if self.size > buf_size:
            raise ValueError(f"{self.name}: {self.size}-byte sample exceeds buffer of {buf_size}")
        value = self.read()
        return value if isinstance(value, bytes) else value.to_bytes()


class TopicBus:
    """The set of topics the flight stack publishes."""

    def __init__(self) -> None:
        self.rc = Topic("rc", RcChannels16.size())
        self.flight_state = Topic("flight_state", FLIGHT_STATE_SIZE)
        self.motor_output = Topic("motor_output", MOTOR_OUTPUT_SIZE)
        self.mocap_frame = Topic("mocap_frame")
        self.mocap_rigid_bodies = Topic("mocap_rigid_bodies")