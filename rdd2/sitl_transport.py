"""Simulator input store and the glue between simulator blobs and the flight stack."""

from __future__ import annotations

import threading

from rdd2.rc_input import EVENT_LINK_QUALITY, EVENT_VALID, EventType, InputEvent, RcInput
from rdd2.sitl_flatbuffer import SimInput, unpack_sim_input
from rdd2.topic_bus import Topic, TopicBus
from rdd2.topic_flatbuffer import FLIGHT_STATE_SIZE, MOTOR_OUTPUT_SIZE

INPUT_MAX_SIZE = 256

_U32_MASK = 0xFFFFFFFF


class InputStore:
    """Double-buffered store for the latest simulator input blob.

    Each publish advances a 32-bit generation counter; generation 0 means
    nothing has been published yet.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._slots: list[bytes] = [b"", b""]
        self._generation = 0

    @property
    def generation(self) -> int:
        with self._cond:
            return self._generation

    def publish(self, blob) -> int:
        """Store a blob and return its generation."""
        data = bytes(blob)
        if not data or len(data) > INPUT_MAX_SIZE:
            raise ValueError(f"input blob must be 1..{INPUT_MAX_SIZE} bytes, got {len(data)}")
        with self._cond:
            next_generation = (self._generation + 1) & _U32_MASK
            self._slots[next_generation & 1] = data
            self._generation = next_generation
            self._cond.notify_all()
            return next_generation

    def latest(self, buf_size: int = INPUT_MAX_SIZE) -> tuple[bytes, int] | None:
        """Return (blob, generation), or None if nothing fits or nothing was published."""
        with self._cond:
            if self._generation == 0:
                return None
            blob = self._slots[self._generation & 1]
            if not blob or len(blob) > buf_size:
                return None
            return blob, self._generation

    def wait_next(self, last_generation: int, timeout: float | None = None) -> int | None:
        """Wait for a generation other than ``last_generation``.

        Returns the new generation, or None if the timeout (seconds) ran out.
        """
        with self._cond:
            ready = self._cond.wait_for(
                lambda: self._generation not in (0, last_generation), timeout
            )
            return self._generation if ready else None


class SitlTransport:
    """Feeds simulator input into the RC path and exposes outgoing topic blobs."""

    def __init__(self, bus: TopicBus, rc_input: RcInput | None = None) -> None:
        self.bus = bus
        self.rc_input = rc_input
        self.store = InputStore()

    def handle_input_blob(self, blob) -> SimInput:
        """Validate, store and apply one simulator input blob.

        Raises ValueError for an empty or oversized blob and SimInputError
        for a malformed one; nothing is stored in either case.
        """
        data = bytes(blob)
        if not data or len(data) > INPUT_MAX_SIZE:
            raise ValueError(f"input blob must be 1..{INPUT_MAX_SIZE} bytes, got {len(data)}")
        sim_input = unpack_sim_input(data)
        self.store.publish(data)
        self._report_rc(sim_input)
        return sim_input

    def _report_rc(self, sim_input: SimInput) -> None:
        if self.rc_input is None:
            return
        for index, value in enumerate(sim_input.rc):
            self.rc_input.handle_event(InputEvent(EventType.ABS, index + 1, value))
        self.rc_input.handle_event(
            InputEvent(EventType.MSC, EVENT_LINK_QUALITY, sim_input.rc_link_quality)
        )
        self.rc_input.handle_event(
            InputEvent(EventType.MSC, EVENT_VALID, 1 if sim_input.rc_valid else 0, sync=True)
        )

    @staticmethod
    def _blob_if_updated(
        topic: Topic, buf_size: int, last_generation: int
    ) -> tuple[bytes, int] | None:
        generation = topic.generation()
        if generation == 0 or generation == last_generation:
            return None
        blob = topic.copy_blob(buf_size)
        if blob is None:
            return None
        return blob, generation

    def flight_state_blob_if_updated(self, last_generation: int) -> tuple[bytes, int] | None:
        """Return (blob, generation) if flight_state changed since ``last_generation``."""
        return self._blob_if_updated(self.bus.flight_state, FLIGHT_STATE_SIZE, last_generation)

    def motor_output_blob_if_updated(self, last_generation: int) -> tuple[bytes, int] | None:
        """Return (blob, generation) if motor_output changed since ``last_generation``."""
        return self._blob_if_updated(self.bus.motor_output, MOTOR_OUTPUT_SIZE, last_generation)