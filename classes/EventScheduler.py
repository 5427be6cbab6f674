"""
EventScheduler: Thin facade over a discrete-event kernel

Converts orchestration decisions into timed callbacks. The facade is not an
event kernel itself; it adapts one:
- SimPyScheduler: simpy.Environment, time unit = milliseconds
- Ns3Scheduler (Ns3Backend module): ns.Simulator via cppyy event trampolines

Ordering contract shared by both kernels: callbacks due at the same instant
run in insertion order, and the stop deadline pre-empts anything scheduled at
exactly the deadline.

Copyright (c) 2025 MultiPAN Research Team
Licensed under the MIT License
"""

import abc
from typing import Any, Callable, Optional

import simpy


class EventScheduler(abc.ABC):
    """Kernel-agnostic scheduling interface (all times in ms)"""

    def __init__(self):
        self.context: Optional[int] = None
        self.stop_time: Optional[float] = None

    @abc.abstractmethod
    def now(self) -> float:
        """Current simulation time in ms"""

    @abc.abstractmethod
    def schedule(self, delay_ms: float, callback: Callable, *args: Any,
                 context: Optional[int] = None):
        """Run callback(*args) after delay_ms; returns a kernel event handle"""

    @abc.abstractmethod
    def run(self) -> None:
        """Execute events until the stop deadline (or until none are left)"""

    def schedule_at(self, at_ms: float, callback: Callable, *args: Any,
                    context: Optional[int] = None):
        delay = at_ms - self.now()
        if delay < 0:
            raise ValueError(f"cannot schedule in the past ({at_ms} < {self.now()})")
        return self.schedule(delay, callback, *args, context=context)

    def schedule_repeating(self, interval_ms: float, callback: Callable, *args: Any,
                           context: Optional[int] = None):
        """
        Call callback(*args) every interval_ms, first call after one interval.

        Built on schedule() by self-reinvocation; the chain ends only at the
        stop deadline, or when the callback returns False.
        """
        if interval_ms <= 0:
            raise ValueError("repeat interval must be positive")

        def tick():
            if callback(*args) is False:
                return
            self.schedule(interval_ms, tick, context=context)

        return self.schedule(interval_ms, tick, context=context)

    def stop(self, at_ms: float) -> None:
        self.stop_time = float(at_ms)

    def destroy(self) -> None:
        self.context = None
        self.stop_time = None

    def _invoke(self, callback: Callable, args: tuple, context: Optional[int]) -> None:
        previous = self.context
        self.context = context
        try:
            callback(*args)
        finally:
            self.context = previous


class SimPyScheduler(EventScheduler):
    """
    SimPy-backed scheduler.

    Each scheduled callback is a simpy Timeout with the callback attached to
    its callbacks list, so ties are resolved by SimPy's event id (insertion
    order). run(until=...) installs the deadline with URGENT priority, which
    places it ahead of NORMAL events due at the same instant.
    """

    def __init__(self, env: Optional[simpy.Environment] = None):
        super().__init__()
        self.env = env or simpy.Environment()

    def now(self) -> float:
        return self.env.now

    def schedule(self, delay_ms, callback, *args, context=None):
        if delay_ms < 0:
            raise ValueError(f"negative delay: {delay_ms}")
        event = self.env.timeout(delay_ms)
        event.callbacks.append(lambda _event: self._invoke(callback, args, context))
        return event

    def run(self) -> None:
        if self.stop_time is None:
            self.env.run()
        elif self.stop_time > self.env.now:
            self.env.run(until=self.stop_time)

    def destroy(self) -> None:
        super().destroy()
        self.env = simpy.Environment()
