"""RC receiver input: collects channel events into a consistent latest sample."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable

from rdd2.topic_bus import TopicBus
from rdd2.topic_flatbuffer import RcChannels16

RC_CHANNEL_COUNT = 16
EVENT_LINK_QUALITY = 0x1000
EVENT_VALID = 0x1001

_THROTTLE_CHANNEL_INDEX = 2
_RC_US_CENTER = 1500
_RC_US_MIN = 1000


class EventType(IntEnum):
    """Input event types."""

    KEY = 0x01
    REL = 0x02
    ABS = 0x03
    MSC = 0x04


@dataclass(frozen=True)
class InputEvent:
    """One input event; ``sync`` marks the end of a report."""

    type: int
    code: int
    value: int
    sync: bool = False


@dataclass(frozen=True)
class RcSnapshot:
    """The latest complete RC report."""

    rc: RcChannels16
    stamp_ms: int
    valid: bool


def _default_channels() -> list[int]:
    channels = [_RC_US_CENTER] * RC_CHANNEL_COUNT
    channels[_THROTTLE_CHANNEL_INDEX] = _RC_US_MIN
    return channels


def _uptime_ms() -> int:
    return int(time.monotonic() * 1000)


class RcInput:
    """Accumulates RC events and publishes a snapshot on each sync event.

    Channel events (ABS codes 1..16) go to a staging area; a sync event copies
    it to the latest snapshot, stamps it with ``clock()`` in milliseconds and
    publishes the channels on the bus's ``rc`` topic.
    """

    def __init__(
        self, bus: TopicBus | None = None, clock: Callable[[], int] | None = None
    ) -> None:
        self._bus = bus
        self._clock = clock if clock is not None else _uptime_ms
        self._lock = threading.Lock()
        self._staging = _default_channels()
        self._staging_valid = False
        self._latest = RcSnapshot(RcChannels16(tuple(_default_channels())), 0, False)
        self._link_quality = 0

    def handle_event(self, event: InputEvent) -> None:
        """Apply one input event."""
        with self._lock:
            if event.type == EventType.ABS and 1 <= event.code <= RC_CHANNEL_COUNT:
                self._staging[event.code - 1] = event.value
                self._staging_valid = True
            elif event.type == EventType.MSC and event.code == EVENT_LINK_QUALITY:
                self._link_quality = event.value
            elif event.type == EventType.MSC and event.code == EVENT_VALID:
                self._staging_valid = event.value != 0

            if not event.sync:
                return

            snapshot = RcSnapshot(
                rc=RcChannels16(tuple(self._staging)),
                stamp_ms=int(self._clock()),
                valid=self._staging_valid,
            )
            self._latest = snapshot

        if self._bus is not None:
            self._bus.rc.publish(snapshot.rc)

    def latest(self) -> RcSnapshot:
        """Return the latest complete report."""
        with self._lock:
            return self._latest

    def link_quality(self) -> int:
        """Last reported uplink quality, truncated to 8 bits."""
        with self._lock:
            return self._link_quality & 0xFF