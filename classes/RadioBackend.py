"""
RadioBackend: Interface to the radio/MAC/PHY collaborator

The orchestration core never touches PHY or MAC internals. Everything it
needs from the medium goes through this interface:
- device creation, channel binding, positioning and PAN association
- MLME-START and MCPS-DATA requests
- asynchronous confirm/indication callbacks

Implementations: SharedMediumBackend (in-process, SharedMedium module) and
LrWpanBackend (ns-3 LR-WPAN, Ns3Backend module).

Copyright (c) 2025 MultiPAN Research Team
Licensed under the MIT License
"""

import abc
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from MacPrimitives import DataConfirm, DataIndication, DataRequest, StartConfirm, StartRequest
from Topology import ChannelModelConfig, Coordinates

StartConfirmCallback = Callable[[StartConfirm], None]
DataConfirmCallback = Callable[[DataConfirm], None]
DataIndicationCallback = Callable[[DataIndication], None]


def format_short_address(value: int) -> str:
    """Render a 16-bit short address as 'HH:LL'."""
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"short address out of range: {value}")
    return f"{value >> 8:02x}:{value & 0xFF:02x}"


@dataclass(eq=False)
class DeviceHandle:
    """
    Backend-side handle of one radio device.

    Attributes:
        key: Backend-unique integer used for callback dispatch
        address: Short address ('HH:LL')
        channel: Currently bound channel reference (not owned)
        position: Last assigned (x, y, z)
        pan_id: Associated PAN, None before association
        logical_channel: Current 2.4 GHz channel number
    """
    key: int
    address: str
    channel: Optional[Any] = None
    position: Optional[Coordinates] = None
    pan_id: Optional[int] = None
    coordinator_address: Optional[str] = None
    logical_channel: int = 11
    on_start_confirm: Optional[StartConfirmCallback] = field(default=None, repr=False)
    on_data_confirm: Optional[DataConfirmCallback] = field(default=None, repr=False)
    on_data_indication: Optional[DataIndicationCallback] = field(default=None, repr=False)


class RadioBackend(abc.ABC):
    """Radio/MAC/PHY collaborator consumed by PanNetwork and ChannelController"""

    @abc.abstractmethod
    def create_channel(self, model: ChannelModelConfig) -> Any:
        """Create a shared channel object owned by the backend"""

    @abc.abstractmethod
    def channel_id(self, channel: Any) -> int:
        """Stable identifier of a channel object (for logs and datasets)"""

    @abc.abstractmethod
    def create_device(self, address: str) -> DeviceHandle:
        ...

    @abc.abstractmethod
    def bind_channel(self, device: DeviceHandle, channel: Any) -> None:
        """Point the device's PHY at `channel`; takes effect immediately"""

    @abc.abstractmethod
    def set_position(self, device: DeviceHandle, position: Coordinates) -> None:
        ...

    @abc.abstractmethod
    def associate(self, device: DeviceHandle, pan_id: int,
                  coordinator: DeviceHandle) -> None:
        """Manually associate a leaf with its coordinator (no bootstrap)"""

    @abc.abstractmethod
    def tune(self, device: DeviceHandle, logical_channel: int) -> None:
        ...

    @abc.abstractmethod
    def start_beacon(self, device: DeviceHandle, request: StartRequest) -> None:
        """MLME-START.request; outcome arrives through the start confirm callback"""

    @abc.abstractmethod
    def send_data(self, device: DeviceHandle, request: DataRequest) -> None:
        """MCPS-DATA.request; outcome arrives through confirm/indication callbacks"""

    def set_start_confirm_callback(self, device: DeviceHandle,
                                   callback: StartConfirmCallback) -> None:
        device.on_start_confirm = callback

    def set_data_confirm_callback(self, device: DeviceHandle,
                                  callback: DataConfirmCallback) -> None:
        device.on_data_confirm = callback

    def set_data_indication_callback(self, device: DeviceHandle,
                                     callback: DataIndicationCallback) -> None:
        device.on_data_indication = callback
