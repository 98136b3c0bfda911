import pytest

from rdd2 import rate_control as rc_ctl
from rdd2.topic_flatbuffer import MotorValues4f, RateTriplet, RcChannels16


def make_rc(**overrides):
    channels = [1500] * 16
    channels[rc_ctl.THROTTLE_CHANNEL_INDEX] = 1000
    for index, value in overrides.items():
        channels[int(index[2:])] = value
    return RcChannels16(tuple(channels))


def test_centered_sticks_give_zero_rates():
    assert rc_ctl.rate_desired_from_rc(make_rc()) == RateTriplet(0.0, 0.0, 0.0)


def test_full_roll_gives_max_rate_and_clamps():
    full = rc_ctl.rate_desired_from_rc(make_rc(ch0=2000))
    beyond = rc_ctl.rate_desired_from_rc(make_rc(ch0=2600))
    assert full.roll == pytest.approx(rc_ctl.MAX_ROLL_PITCH_RATE_RAD_S)
    assert beyond.roll == full.roll


def test_full_negative_pitch():
    rate = rc_ctl.rate_desired_from_rc(make_rc(ch1=1000))
    assert rate.pitch == pytest.approx(-rc_ctl.MAX_ROLL_PITCH_RATE_RAD_S)


def test_yaw_is_inverted():
    assert rc_ctl.yaw_desired_from_rc(make_rc(ch3=2000)) == pytest.approx(
        -rc_ctl.MAX_YAW_RATE_RAD_S
    )
    assert rc_ctl.yaw_desired_from_rc(make_rc(ch3=1000)) == pytest.approx(
        rc_ctl.MAX_YAW_RATE_RAD_S
    )


@pytest.mark.parametrize(
    "pulse, expected", [(1000, 0.0), (900, 0.0), (2000, 1.0), (2100, 1.0), (1500, 0.5)]
)
def test_throttle_normalisation(pulse, expected):
    rc = make_rc(ch2=pulse)
    assert rc_ctl.throttle_us(rc) == pulse
    assert rc_ctl.throttle_input_from_rc(rc) == pytest.approx(expected)


def test_arm_switch_threshold():
    assert not rc_ctl.arm_switch_high(make_rc(ch4=1600))
    assert rc_ctl.arm_switch_high(make_rc(ch4=1601))


def test_mix_without_correction_is_flat():
    motors = rc_ctl.mix_quad_x(0.3, RateTriplet())
    assert list(motors) == [pytest.approx(0.3)] * 4


def test_mix_positive_roll_raises_left_motors():
    m = rc_ctl.mix_quad_x(0.5, RateTriplet(roll=0.1))
    assert m.m2 > m.m1 and m.m3 > m.m0


def test_mix_positive_pitch_raises_rear_motors():
    m = rc_ctl.mix_quad_x(0.5, RateTriplet(pitch=0.1))
    assert m.m1 > m.m0 and m.m2 > m.m3


def test_mix_saturation_scales_into_range():
    assert rc_ctl.mix_quad_x(0.5, RateTriplet(roll=1.0)) == MotorValues4f(0.0, 0.0, 1.0, 1.0)


@pytest.mark.parametrize(
    "throttle, cmd",
    [
        (0.0, RateTriplet(1.0, -2.0, 0.5)),
        (1.0, RateTriplet(-3.0, 0.2, 0.1)),
        (0.2, RateTriplet(0.05, 0.05, 0.05)),
        (0.9, RateTriplet(0.5, 0.5, -0.5)),
    ],
)
def test_mix_outputs_stay_in_unit_range(throttle, cmd):
    assert all(0.0 <= value <= 1.0 for value in rc_ctl.mix_quad_x(throttle, cmd))


def test_mix_preserves_mean_throttle_when_unsaturated():
    motors = rc_ctl.mix_quad_x(0.5, RateTriplet(0.05, -0.03, 0.02))
    assert sum(motors) / 4 == pytest.approx(0.5)