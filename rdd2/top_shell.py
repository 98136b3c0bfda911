"""Compact per-thread CPU and stack usage table for the ``top`` shell command."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from typing import Hashable, Iterable

DEFAULT_PERIOD_MS = 1000
MAX_THREADS = 32
NAME_LEN = 31
STATE_LEN = 15
USAGE = "usage: top [period_ms|once|stop]"

_U32_MAX = 0xFFFFFFFF
_CLEAR_SCREEN = "\033[2J\033[H"
_HEADER = "kind  prio state        cpu%  stack% used/size  name"
_RULE = "----  ---- ----------- ----- ------ ---------- -------------------------------"
_PERIOD_RE = re.compile(r"\s*\+?\d+")


@dataclass(frozen=True)
class ThreadSample:
    """Runtime statistics of one thread at the moment of sampling.

    ``thread`` identifies the thread across samples; an empty ``name`` is
    shown as the identifier instead.
    """

    thread: Hashable
    name: str = ""
    state: str = ""
    execution_cycles: int = 0
    stack_size: int = 0
    stack_used: int = 0
    priority: int = 0
    current: bool = False


@dataclass(frozen=True)
class TopCommand:
    """A parsed ``top`` command: ``action`` is "once", "stop" or "watch"."""

    action: str
    period_ms: int = DEFAULT_PERIOD_MS


def parse_top_args(args) -> TopCommand:
    """Parse the arguments after ``top``; raises ValueError on bad input."""
    args = list(args)
    if len(args) > 1:
        raise ValueError(USAGE)
    if not args:
        return TopCommand("watch", DEFAULT_PERIOD_MS)

    arg = args[0]
    if arg == "once":
        return TopCommand("once", 0)
    if arg == "stop":
        return TopCommand("stop", 0)

    if not _PERIOD_RE.fullmatch(arg):
        raise ValueError(f"invalid period: {arg}")
    period = int(arg)
    if period == 0 or period > _U32_MAX:
        raise ValueError(f"invalid period: {arg}")
    return TopCommand("watch", period)


@dataclass
class _Row:
    thread: Hashable
    name: str
    state: str
    execution_cycles: int
    display_cycles: int
    stack_size: int
    stack_used: int
    priority: int
    current: bool


def _row_from_sample(sample: ThreadSample) -> _Row:
    name = sample.name or str(sample.thread)
    state = sample.state[:STATE_LEN] or "-"
    stack_used = sample.stack_used if 0 <= sample.stack_used <= sample.stack_size else 0
    return _Row(
        thread=sample.thread,
        name=name[:NAME_LEN],
        state=state,
        execution_cycles=sample.execution_cycles,
        display_cycles=sample.execution_cycles,
        stack_size=sample.stack_size,
        stack_used=stack_used,
        priority=sample.priority,
        current=sample.current,
    )


def _percent_x10(part: int, total: int) -> int:
    if total == 0:
        return 0
    return ((part * 1000) // total) & _U32_MAX


class TopMonitor:
    """Renders the thread table, reporting CPU use since the previous render."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._prev: dict[Hashable, int] = {}
        self._prev_total_cycles = 0
        self._prev_valid = False

    def render(
        self,
        samples: Iterable[ThreadSample],
        total_cycles: int | None,
        watch_mode: bool = False,
        period_ms: int = 0,
    ) -> str:
        """Return the table text for ``samples``.

        ``total_cycles`` is the execution cycle count of all threads; None
        means runtime statistics are unavailable and raises RuntimeError.
        """
        if total_cycles is None:
            raise RuntimeError("thread runtime stats unavailable")

        with self._lock:
            samples = list(samples)
            truncated = len(samples) > MAX_THREADS
            rows = [_row_from_sample(sample) for sample in samples[:MAX_THREADS]]

            delta_total = 0
            if self._prev_valid and total_cycles >= self._prev_total_cycles:
                delta_total = total_cycles - self._prev_total_cycles

            if delta_total > 0:
                for row in rows:
                    prev = self._prev.get(row.thread)
                    if prev is not None and row.execution_cycles >= prev:
                        row.display_cycles = row.execution_cycles - prev

            rows.sort(key=lambda r: (-r.display_cycles, r.priority, r.name))

            lines = [_HEADER, _RULE]
            denominator = delta_total if delta_total > 0 else total_cycles
            for row in rows:
                stack_percent = (
                    (row.stack_used * 100) // row.stack_size if row.stack_size > 0 else 0
                )
                cpu_x10 = _percent_x10(row.display_cycles, denominator)
                lines.append(
                    "%-4s  %4d %-11.11s %3d.%1d%% %5d%% %4d/%-5d  %-31.31s"
                    % (
                        "curr" if row.current else "thr",
                        row.priority,
                        row.state,
                        cpu_x10 // 10,
                        cpu_x10 % 10,
                        stack_percent,
                        row.stack_used,
                        row.stack_size,
                        row.name,
                    )
                )

            if truncated:
                lines.append(f"truncated at {MAX_THREADS} threads")

            if watch_mode:
                since = "since last refresh" if delta_total > 0 else "since boot"
                lines.append(f"refresh every {period_ms} ms; Ctrl-C to stop; cpu% is {since}")
            else:
                since = "since last sample" if delta_total > 0 else "since boot"
                lines.append(f"cpu% is {since}")

            self._prev = {row.thread: row.execution_cycles for row in rows}
            self._prev_total_cycles = total_cycles
            self._prev_valid = True

        text = "\n".join(lines) + "\n"
        return _CLEAR_SCREEN + text if watch_mode else text