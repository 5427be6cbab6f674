"""
Topology: Typed placement and channel-model configuration

Replaces attribute-string configuration of mobility and propagation helpers
with validated dataclasses:
- PositionPolicy: grid or bounded random-disc layout around an anchor point
- ChannelModelConfig: log-distance exponent, radio range and airtime figures

Copyright (c) 2025 MultiPAN Research Team
Licensed under the MIT License
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

Coordinates = Tuple[float, float, float]


class LayoutKind(Enum):
    GRID = "grid"
    RANDOM_DISC = "random_disc"


@dataclass(frozen=True)
class PositionPolicy:
    """
    Placement of the devices of one PAN.

    Attributes:
        kind: GRID (row-major, square-ish) or RANDOM_DISC (uniform rho/theta)
        anchor: (x, y) centre of the disc or origin of the grid in meters
        spread: Maximum disc radius in meters (RANDOM_DISC)
        grid_spacing: Distance between grid neighbours in meters (GRID)
    """
    kind: LayoutKind = LayoutKind.RANDOM_DISC
    anchor: Tuple[float, float] = (0.0, 0.0)
    spread: float = 5.0
    grid_spacing: float = 2.0

    def __post_init__(self):
        if not isinstance(self.kind, LayoutKind):
            raise ValueError(f"unknown layout kind: {self.kind!r}")
        if self.spread < 0:
            raise ValueError("spread must be non-negative")
        if self.grid_spacing <= 0:
            raise ValueError("grid spacing must be positive")

    @classmethod
    def anchored(cls, network_id: int, pan_spacing: float,
                 kind: LayoutKind = LayoutKind.RANDOM_DISC,
                 spread: float = 5.0, grid_spacing: float = 2.0) -> "PositionPolicy":
        """Policy whose anchor sits on the diagonal at network_id * pan_spacing."""
        offset = network_id * pan_spacing
        return cls(kind=kind, anchor=(offset, offset), spread=spread,
                   grid_spacing=grid_spacing)

    def positions(self, count: int,
                  rng: Optional[np.random.Generator] = None) -> List[Coordinates]:
        """
        Allocate `count` positions according to the layout.

        Args:
            count: Number of devices
            rng: numpy Generator for RANDOM_DISC; the global numpy state is
                 used when omitted so np.random.seed() keeps runs reproducible

        Returns:
            List of (x, y, z) tuples, z always 0
        """
        ax, ay = self.anchor
        if self.kind is LayoutKind.GRID:
            cols = max(1, math.ceil(math.sqrt(count)))
            idx = np.arange(count)
            xs = ax + (idx % cols) * self.grid_spacing
            ys = ay + (idx // cols) * self.grid_spacing
        else:
            uniform = rng.uniform if rng is not None else np.random.uniform
            rho = uniform(0.0, self.spread, size=count)
            theta = uniform(0.0, 2 * math.pi, size=count)
            xs = ax + rho * np.cos(theta)
            ys = ay + rho * np.sin(theta)
        return [(float(x), float(y), 0.0) for x, y in zip(xs, ys)]


@dataclass(frozen=True)
class ChannelModelConfig:
    """
    Parameters of one shared channel.

    The ns-3 backend feeds path_loss_exponent/reference_loss_db into a
    LogDistancePropagationLossModel; the shared-medium backend only uses
    range_m and the airtime figures.
    """
    path_loss_exponent: float = 3.0
    reference_loss_db: float = 46.6777
    range_m: float = 30.0
    propagation_speed: float = 2.99792458e8
    bit_rate_kbps: float = 250.0
    phy_overhead_bytes: int = 6
    mac_overhead_bytes: int = 11

    def __post_init__(self):
        if self.path_loss_exponent <= 0:
            raise ValueError("path loss exponent must be positive")
        if self.range_m <= 0:
            raise ValueError("radio range must be positive")
        if self.bit_rate_kbps <= 0 or self.propagation_speed <= 0:
            raise ValueError("bit rate and propagation speed must be positive")

    def airtime_ms(self, payload_size: int) -> float:
        frame_bytes = self.phy_overhead_bytes + self.mac_overhead_bytes + payload_size
        return frame_bytes * 8 / self.bit_rate_kbps

    def propagation_delay_ms(self, distance_m: float) -> float:
        return distance_m / self.propagation_speed * 1e3


def distance(a: Coordinates, b: Coordinates) -> float:
    return math.dist(a, b)
