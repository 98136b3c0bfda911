# rdd2

Building blocks of a quadrotor flight controller, in plain Python with no
third-party dependencies.

## Modules

- **`rdd2.topic_flatbuffer`**: the message types (`Vec3f`, `RcChannels16`,
  `AttitudeEuler`, `RateTriplet`, `MotorValues4f`, `MotorRaw4u16`,
  `FlightState`, `MotorOutput`) and the fixed-layout FlatBuffer codecs
  `pack_flight_state` / `unpack_flight_state` (198-byte blobs) and
  `pack_motor_output` / `unpack_motor_output` (48-byte blobs). Unpacking
  checks the size, root offset and whole vtable and raises `FlatbufferError`
  if any of them is wrong. `FlightState.status` is kept as the raw 24-byte
  control-status struct.
- **`rdd2.sitl_flatbuffer`**: `unpack_sim_input` reads a simulator input
  blob (file identifier `SYSI`) into a `SimInput`. Gyro, accel and RC
  channels are required; link quality, `rc_valid`, `imu_valid` and
  `target_boot_time_ns` default to zero/False when absent. Every read is
  bounds-checked; a malformed blob raises `SimInputError` (a subclass of
  `FlatbufferError`).
- **`rdd2.rate_control`**: RC stick shaping and mixing. `arm_switch_high`,
  `throttle_us`, `throttle_input_from_rc` (0..1), `yaw_desired_from_rc`,
  `rate_desired_from_rc` (rad/s, ±6 roll/pitch, ±3.5 yaw) and `mix_quad_x`.
  The module also holds the loop-rate and channel-index constants.
- **`rdd2.topic_bus`**: `Topic`, a thread-safe latest-value store with a
  32-bit generation counter (`publish`, `read`, `generation`, `has_sample`,
  `copy_blob`), and `TopicBus` with the topics `rc`, `flight_state`,
  `motor_output`, `mocap_frame` and `mocap_rigid_bodies`. The motion-capture
  sample types are `MocapFrame`, `MocapRigidBodyPose` and `MocapRigidBodies`.
- **`rdd2.rc_input`**: `RcInput.handle_event` takes `InputEvent`s (ABS codes
  1..16 set channels, MSC `EVENT_LINK_QUALITY` / `EVENT_VALID` set link
  quality and validity); a `sync` event makes a new `RcSnapshot`, available
  from `latest()`, and publishes the channels on the bus's `rc` topic.
- **`rdd2.sitl_transport`**: `InputStore`, a double-buffered store for the
  latest simulator blob with `wait_next`, and `SitlTransport`, which
  validates and stores input blobs, feeds their RC values into an `RcInput`,
  and hands out flight-state and motor-output blobs that changed since a
  given generation.
- **`rdd2.sitl_udp`**: `UdpCoordinator`, a UDP link to a simulator (usable
  as a context manager), and the `rdd2-sitl-udp` command.
- **`rdd2.topic_shell`**: text formatting with `format_motor_output`,
  `format_rc` and `format_mocap_rigid_bodies`.
- **`rdd2.top_shell`**: `parse_top_args` for `top [period_ms|once|stop]`
  and `TopMonitor.render`, which turns `ThreadSample`s into a CPU/stack
  table showing CPU use since the previous render.

## Install

```
pip install .
```

With the test requirements:

```
pip install ".[test]"
```

## Examples

Pack a motor output and read it back:

```python
from rdd2.topic_flatbuffer import (
    MotorOutput, MotorRaw4u16, MotorValues4f,
    pack_motor_output, unpack_motor_output,
)

blob = pack_motor_output(MotorOutput(
    motors=MotorValues4f(0.1, 0.2, 0.3, 0.4),
    raw=MotorRaw4u16(100, 200, 300, 400),
    armed=True,
))
assert len(blob) == 48
assert unpack_motor_output(blob).armed
```

Turn sticks into a rate setpoint and mix a rate command:

```python
from rdd2.rate_control import mix_quad_x, rate_desired_from_rc
from rdd2.topic_flatbuffer import RateTriplet, RcChannels16

rc = RcChannels16((1500, 1500, 1000, 1500) + (1500,) * 12)
print(rate_desired_from_rc(rc))  # all zero at centre sticks

motors = mix_quad_x(0.5, RateTriplet(roll=0.1, pitch=0.0, yaw=0.0))
```

`mix_quad_x` assumes FLU body axes with motors 1 to 4 at front-right,
rear-right, rear-left and front-left. When a correction would push a motor
past 0 or 1, all corrections are scaled down by the same factor, and the
results are clamped to 0..1.

Render the thread table:

```python
from rdd2.top_shell import ThreadSample, TopMonitor

monitor = TopMonitor()
print(monitor.render([ThreadSample("t1", name="main", execution_cycles=50,
                                   stack_size=1024, stack_used=256)],
                     total_cycles=100))
```

## SITL over UDP

```
rdd2-sitl-udp --help
```

Options: `--host` (simulator IPv4 address, default `127.0.0.1`),
`--rx-port` (default 4243), `--flight-port` (default 4244) and
`--motor-port` (default 4245). The command receives simulator input blobs on
the receive port and applies their RC values. Whenever the flight-state or
motor-output topic has a new sample, it sends that blob to its own port on
the simulator host. It runs until interrupted.

## What this package does not do

- There is no control loop: no PID rate controller, attitude estimator or
  flight-mode logic. Nothing in the package publishes on the `flight_state`
  or `motor_output` topics by itself, so `rdd2-sitl-udp` on its own only
  takes in input and sends nothing back.
- There is no motor driver output and no IMU or RC receiver driver; RC
  values come in only as `InputEvent`s or simulator blobs.
- There is no on-card flight logging and no transport other than UDP.
- `rdd2.topic_shell` has no formatter for the flight-state snapshot, and
  `rdd2.top_shell` does not read thread statistics from the system; the
  caller supplies the `ThreadSample`s.

## Tests

```
pytest
```