"""
RoundPolicy: Pluggable stagger and round-period arithmetic

Two policy families decide *when* networks act:
- Stagger policies map a NetworkId to the start delay of its coordinator and
  first send round. Linear stagger keeps PAN coordinators from starting in
  lock-step; jittered stagger adds a bounded random offset on top.
- Round-period policies give the delay between consecutive send rounds of one
  network, either a fixed period or the slot-span formula scaled by the PAN
  count (optionally shortened by a random noise term).

All times are milliseconds.

Copyright (c) 2025 MultiPAN Research Team
Licensed under the MIT License
"""

import abc
import random


class StaggerPolicy(abc.ABC):
    """Start offset per network"""

    @abc.abstractmethod
    def delay(self, network_id: int) -> float:
        """Start delay in ms for the given network"""


class LinearStagger(StaggerPolicy):
    """delay = network_id * step; strictly increasing in network_id for step > 0"""

    def __init__(self, step_ms: float):
        if step_ms <= 0:
            raise ValueError("stagger step must be positive")
        self.step_ms = float(step_ms)

    @classmethod
    def from_round_span(cls, slot_length_ms: float, node_count: int,
                        slot_interval_ms: float) -> "LinearStagger":
        """Step equal to one full round: every leaf slot plus the trailing interval."""
        return cls(slot_length_ms * max(0, node_count - 1) + slot_interval_ms)

    def delay(self, network_id: int) -> float:
        return network_id * self.step_ms

    def __repr__(self):
        return f"LinearStagger(step_ms={self.step_ms})"


class JitteredStagger(LinearStagger):
    """Linear stagger plus a uniform jitter in [0, max_jitter_ms)"""

    def __init__(self, step_ms: float, max_jitter_ms: float, rng: random.Random = None):
        super().__init__(step_ms)
        if max_jitter_ms < 0:
            raise ValueError("stagger jitter must be non-negative")
        self.max_jitter_ms = float(max_jitter_ms)
        self.rng = rng or random

    def delay(self, network_id: int) -> float:
        jitter = self.rng.uniform(0.0, self.max_jitter_ms) if self.max_jitter_ms else 0.0
        return super().delay(network_id) + jitter

    def __repr__(self):
        return f"JitteredStagger(step_ms={self.step_ms}, max_jitter_ms={self.max_jitter_ms})"


class RoundPeriodPolicy(abc.ABC):
    """Delay between consecutive send rounds of one network"""

    @abc.abstractmethod
    def period(self, device_count: int, slot_length_ms: float,
               inter_slot_gap_ms: float) -> float:
        """Next round period in ms"""


class FixedRoundPeriod(RoundPeriodPolicy):
    """
    Constant period, optionally perturbed by a uniform jitter in
    [-jitter_ms, +jitter_ms]. The result never drops below min_period_ms.
    """

    def __init__(self, period_ms: float, jitter_ms: float = 0.0,
                 rng: random.Random = None, min_period_ms: float = 1.0):
        if period_ms <= 0:
            raise ValueError("round period must be positive")
        if jitter_ms < 0:
            raise ValueError("round jitter must be non-negative")
        self.period_ms = float(period_ms)
        self.jitter_ms = float(jitter_ms)
        self.rng = rng or random
        self.min_period_ms = min_period_ms

    def period(self, device_count, slot_length_ms, inter_slot_gap_ms):
        if not self.jitter_ms:
            return self.period_ms
        jitter = self.rng.uniform(-self.jitter_ms, self.jitter_ms)
        return max(self.min_period_ms, self.period_ms + jitter)

    def __repr__(self):
        return f"FixedRoundPeriod(period_ms={self.period_ms}, jitter_ms={self.jitter_ms})"


class ScaledRoundPeriod(RoundPeriodPolicy):
    """
    (slot_length * (devices - 1) + gap - noise) * pan_count

    One network's round spans all of its leaf slots plus the inter-slot gap;
    multiplying by the PAN count leaves room for every other staggered network
    to run its round before this one repeats. With `noisy`, noise is drawn
    from 1..gap so successive rounds drift apart instead of staying aligned.
    """

    def __init__(self, pan_count: int, noisy: bool = False, rng: random.Random = None):
        if pan_count < 1:
            raise ValueError("pan count must be at least 1")
        self.pan_count = pan_count
        self.noisy = noisy
        self.rng = rng or random

    def period(self, device_count, slot_length_ms, inter_slot_gap_ms):
        noise = 0
        if self.noisy and inter_slot_gap_ms >= 1:
            noise = 1 + self.rng.randrange(int(inter_slot_gap_ms))
        span = slot_length_ms * max(0, device_count - 1) + inter_slot_gap_ms - noise
        # a gap of 0 with no leaves would stall the timer at the same instant
        return max(1.0, span) * self.pan_count

    def __repr__(self):
        return f"ScaledRoundPeriod(pan_count={self.pan_count}, noisy={self.noisy})"
