"""
MacPrimitives: MAC service primitives exchanged with the radio backend

Immutable request/confirm/indication records passed by value between the
PAN networks and whichever backend owns the MAC (in-process shared medium or
ns-3 LR-WPAN). Field names follow the IEEE 802.15.4 MLME/MCPS primitives.

Copyright (c) 2025 MultiPAN Research Team
Licensed under the MIT License
"""

from dataclasses import dataclass
from enum import Enum


class MacStatus(Enum):
    """Outcome codes reported in MLME/MCPS confirms"""
    SUCCESS = "success"
    CHANNEL_ACCESS_FAILURE = "channel_access_failure"
    NO_ACK = "no_ack"
    TRANSACTION_OVERFLOW = "transaction_overflow"
    INVALID_PARAMETER = "invalid_parameter"

    @property
    def ok(self) -> bool:
        return self is MacStatus.SUCCESS


@dataclass(frozen=True)
class StartRequest:
    """
    MLME-START.request parameters for a PAN coordinator.

    Attributes:
        pan_id: PAN identifier (the owning network's NetworkId)
        logical_channel: 2.4 GHz O-QPSK channel, 11..26
        is_coordinator: Whether the device becomes the PAN coordinator
        beacon_order: BO, 15 disables beacons
        superframe_order: SO, must not exceed BO
    """
    pan_id: int
    logical_channel: int
    is_coordinator: bool = True
    beacon_order: int = 15
    superframe_order: int = 15

    def __post_init__(self):
        if not 11 <= self.logical_channel <= 26:
            raise ValueError(f"logical channel {self.logical_channel} outside 11..26")
        if not 0 <= self.superframe_order <= self.beacon_order <= 15:
            raise ValueError(
                f"invalid orders BO={self.beacon_order} SO={self.superframe_order}"
            )


@dataclass(frozen=True)
class StartConfirm:
    """MLME-START.confirm"""
    device_address: str
    status: MacStatus


@dataclass(frozen=True)
class DataRequest:
    """
    MCPS-DATA.request parameters.

    Attributes:
        src_address: Short address of the originating device
        dst_address: Short address of the destination (the coordinator)
        dst_pan_id: Destination PAN
        payload_size: MSDU length in bytes
        msdu_handle: Handle echoed back in the confirm
        ack_requested: TX_OPTION_ACK when True, TX_OPTION_NONE otherwise
    """
    src_address: str
    dst_address: str
    dst_pan_id: int
    payload_size: int
    msdu_handle: int = 0
    ack_requested: bool = False

    def __post_init__(self):
        if self.payload_size < 0:
            raise ValueError("payload size must be non-negative")


@dataclass(frozen=True)
class DataConfirm:
    """MCPS-DATA.confirm"""
    device_address: str
    msdu_handle: int
    status: MacStatus


@dataclass(frozen=True)
class DataIndication:
    """MCPS-DATA.indication, fired on the receiving device"""
    src_address: str
    dst_address: str
    src_pan_id: int
    payload_size: int
