"""RC stick shaping and quad-X motor mixing for the body-rate loop.

Axes are FLU (x forward, y left, z up). The mixer assumes motor channels
1..4 are front-right, rear-right, rear-left and front-left.
"""

from __future__ import annotations

from rdd2.topic_flatbuffer import MotorValues4f, RateTriplet, RcChannels16

CONTROL_RATE_HZ = 1600
CONTROL_PERIOD_NS = 625_000
CONTROL_DT_S = 1.0 / 1600.0
ATTITUDE_AUTOLEVEL_RATE_HZ = 200
ATTITUDE_BACKGROUND_RATE_HZ = 100
FLIGHT_STATE_PUBLISH_RATE_HZ = 200
ATTITUDE_AUTOLEVEL_DIV = CONTROL_RATE_HZ // ATTITUDE_AUTOLEVEL_RATE_HZ
ATTITUDE_BACKGROUND_DIV = CONTROL_RATE_HZ // ATTITUDE_BACKGROUND_RATE_HZ
FLIGHT_STATE_PUBLISH_DIV = CONTROL_RATE_HZ // FLIGHT_STATE_PUBLISH_RATE_HZ
RC_STALE_TIMEOUT_MS = 100
THROTTLE_ARM_MAX = 1050
PID_INTEGRATE_THROTTLE_MIN = 0.02
ROLL_CHANNEL_INDEX = 0
PITCH_CHANNEL_INDEX = 1
THROTTLE_CHANNEL_INDEX = 2
YAW_CHANNEL_INDEX = 3
ARM_CHANNEL_INDEX = 4
MAX_ROLL_PITCH_RATE_RAD_S = 6.0
MAX_YAW_RATE_RAD_S = 3.5

RC_US_CENTER = 1500
RC_US_MIN = 1000
RC_US_MAX = 2000
ARM_SWITCH_THRESHOLD_US = 1600

# (roll, pitch, yaw) mix per motor: front-right, rear-right, rear-left, front-left.
_MOTOR_MIX = (
    (-1.0, -1.0, -1.0),
    (-1.0, 1.0, 1.0),
    (1.0, 1.0, -1.0),
    (1.0, -1.0, 1.0),
)


def _clamp(value: float, low: float, high: float) -> float:
    if value < low:
        return low
    if value > high:
        return high
    return value


def _norm_centered(pulse_us: int) -> float:
    return _clamp((pulse_us - RC_US_CENTER) / 500.0, -1.0, 1.0)


def _norm_throttle(pulse_us: int) -> float:
    return _clamp((pulse_us - RC_US_MIN) / (RC_US_MAX - RC_US_MIN), 0.0, 1.0)


def arm_switch_high(rc: RcChannels16) -> bool:
    """True when the arm switch channel is above its threshold."""
    return rc[ARM_CHANNEL_INDEX] > ARM_SWITCH_THRESHOLD_US


def throttle_us(rc: RcChannels16) -> int:
    """Raw throttle pulse width in microseconds."""
    return rc[THROTTLE_CHANNEL_INDEX]


def throttle_input_from_rc(rc: RcChannels16) -> float:
    """Throttle stick normalised to 0..1."""
    return _norm_throttle(throttle_us(rc))


def yaw_desired_from_rc(rc: RcChannels16) -> float:
    """Desired yaw rate in rad/s; right stick gives negative (clockwise) yaw."""
    return -_norm_centered(rc[YAW_CHANNEL_INDEX]) * MAX_YAW_RATE_RAD_S


def rate_desired_from_rc(rc: RcChannels16) -> RateTriplet:
    """Desired body rates in rad/s from the roll, pitch and yaw sticks."""
    return RateTriplet(
        roll=_norm_centered(rc[ROLL_CHANNEL_INDEX]) * MAX_ROLL_PITCH_RATE_RAD_S,
        pitch=_norm_centered(rc[PITCH_CHANNEL_INDEX]) * MAX_ROLL_PITCH_RATE_RAD_S,
        yaw=yaw_desired_from_rc(rc),
    )


def mix_quad_x(throttle: float, rate_cmd: RateTriplet) -> MotorValues4f:
    """Mix throttle and rate commands into four motor values in 0..1.

    Corrections are scaled down uniformly so that neither the highest nor the
    lowest motor saturates when the throttle leaves room for them.
    """
    corrections = [
        rate_cmd.roll * roll + rate_cmd.pitch * pitch + rate_cmd.yaw * yaw
        for roll, pitch, yaw in _MOTOR_MIX
    ]
    max_up = max([0.0, *corrections])
    max_down = max([0.0, *(-c for c in corrections)])

    scale = 1.0
    if max_up > (1.0 - throttle) and max_up > 0.0:
        scale = (1.0 - throttle) / max_up
    if max_down > throttle and max_down > 0.0:
        scale = min(scale, throttle / max_down)

    return MotorValues4f(*(_clamp(throttle + c * scale, 0.0, 1.0) for c in corrections))