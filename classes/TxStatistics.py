"""
TxStatistics: Delivery statistics aggregator

Counts requested, attempted and successfully received transmissions across
every PAN in a run and derives the delivery ratio on demand. One instance is
owned by the orchestrator and handed to each network.

Copyright (c) 2025 MultiPAN Research Team
Licensed under the MIT License
"""

from collections import Counter
from dataclasses import dataclass, field

from MacPrimitives import MacStatus


@dataclass(frozen=True)
class StatsSnapshot:
    """
    Point-in-time view of the counters.

    Attributes:
        requested: Attempts scheduled by send rounds
        attempted: MCPS-DATA.confirm callbacks seen (any status)
        received: MCPS-DATA.indication callbacks seen at coordinators
        ratio: received * 100 / attempted, 0.0 when nothing was attempted
    """
    requested: int
    attempted: int
    received: int
    ratio: float


@dataclass
class TxStatistics:
    """
    Tracks transmission counters for the whole simulation.

    Attributes:
        requested: Count of data requests scheduled
        attempted: Count of data confirms reported by the MAC
        received: Count of data indications reported by receivers
        status_counts: Confirm count per MacStatus
    """
    requested: int = 0
    attempted: int = 0
    received: int = 0
    status_counts: Counter = field(default_factory=Counter)

    def record_requested(self) -> None:
        self.requested += 1

    def record_attempted(self, status: MacStatus) -> None:
        self.attempted += 1
        self.status_counts[status] += 1

    def record_received(self) -> None:
        self.received += 1

    def snapshot(self) -> StatsSnapshot:
        """Return the counters with the derived delivery ratio (percent)."""
        ratio = self.received * 100.0 / self.attempted if self.attempted else 0.0
        return StatsSnapshot(
            requested=self.requested,
            attempted=self.attempted,
            received=self.received,
            ratio=ratio,
        )

    def format_report(self) -> str:
        snap = self.snapshot()
        return (
            f"total Requested TX: {snap.requested}"
            f"\ttotal Tried TX: {snap.attempted}"
            f"\ttotal Successful RX: {snap.received}"
            f"\tratio: {snap.ratio:.1f}%"
        )
