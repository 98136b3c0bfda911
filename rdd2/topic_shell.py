"""Human-readable formatting of topic samples for the shell."""

from __future__ import annotations

from rdd2.topic_bus import MOCAP_RIGID_BODY_MAX, MocapRigidBodies
from rdd2.topic_flatbuffer import RcChannels16, unpack_motor_output


def format_motor_output(blob) -> str:
    """Format a motor-output blob; raises FlatbufferError if it is invalid."""
    output = unpack_motor_output(blob)
    m, r = output.motors, output.raw
    return "motor armed=%1d test_mode=%1d out=[%6.3f/%4u %6.3f/%4u %6.3f/%4u %6.3f/%4u]" % (
        1 if output.armed else 0,
        1 if output.test_mode else 0,
        m.m0,
        r.m0,
        m.m1,
        r.m1,
        m.m2,
        r.m2,
        m.m3,
        r.m3,
    )


def format_rc(rc) -> str:
    """Format sixteen RC channels as two lines.

    Accepts an RcChannels16 or its 64-byte encoding.
    """
    if isinstance(rc, (bytes, bytearray, memoryview)):
        data = bytes(rc)
        if len(data) != RcChannels16.size():
            raise ValueError(f"rc: invalid sample size {len(data)}")
        rc = RcChannels16.from_bytes(data)
    channels = tuple(rc)
    low = " ".join("%4d" % value for value in channels[:8])
    high = " ".join("%4d" % value for value in channels[8:])
    return f"rc ch0-7=[{low}]\nrc ch8-15=[{high}]"


def format_mocap_rigid_bodies(mocap: MocapRigidBodies) -> str:
    """Format decoded rigid-body poses, one line per body after a header."""
    count = min(mocap.count, MOCAP_RIGID_BODY_MAX)
    lines = [
        "mocap_rigid_bodies frame=%d timestamp_us=%d count=%d rx=%d"
        % (mocap.frame_number, mocap.timestamp_us, count, mocap.receive_count)
    ]
    for index, body in enumerate(mocap.bodies[:count]):
        lines.append(
            "  body[%d] id=%d valid=%d residual=%9.6f "
            "pos_m=[%9.5f %9.5f %9.5f] quat_xyzw=[%9.6f %9.6f %9.6f %9.6f]"
            % (
                index,
                body.id,
                1 if body.tracking_valid else 0,
                body.residual,
                *body.position_m,
                *body.attitude_xyzw,
            )
        )
    return "\n".join(lines)