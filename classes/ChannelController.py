"""
ChannelController: Scheduled runtime channel reassignment

Rebinds a device (or every device of a PAN) to another shared channel at a
given simulation time. This demonstrates a hot channel swap, not a guarded
handover: no compatibility check is made, and if a leaf moves without its
coordinator the MAC simply stops delivering its frames. That shows up only
as a lower delivery ratio.

Copyright (c) 2025 MultiPAN Research Team
Licensed under the MIT License
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from EventScheduler import EventScheduler
from RadioBackend import DeviceHandle, RadioBackend


@dataclass(frozen=True)
class Reassignment:
    """A channel swap that has been applied"""
    at_ms: float
    device_address: str
    old_channel_id: Optional[int]
    new_channel_id: int


class ChannelController:
    def __init__(self, scheduler: EventScheduler, backend: RadioBackend, data_collector=None):
        self.scheduler = scheduler
        self.backend = backend
        self.data_collector = data_collector
        self.history: List[Reassignment] = []
        self.pending = 0

    def schedule_reassignment(self, device: DeviceHandle, new_channel: Any, at_ms: float,
                              context: Optional[int] = None) -> None:
        """
        One-shot rebind of `device` to `new_channel` at absolute time `at_ms`.

        Args:
            device: Target device handle
            new_channel: Channel reference owned by the backend
            at_ms: Absolute simulation time in ms, not earlier than now

        Raises:
            ValueError: at_ms lies in the past
        """
        if at_ms < self.scheduler.now():
            raise ValueError(f"reassignment time {at_ms}ms is in the past "
                             f"(now {self.scheduler.now()}ms)")
        self.pending += 1
        self.scheduler.schedule_at(at_ms, self._change_channel, device, new_channel,
                                   context=context)

    def schedule_network_reassignment(self, network, new_channel: Any, at_ms: float) -> None:
        """Move every device of a PAN, coordinator first, and its channel reference."""
        if at_ms < self.scheduler.now():
            raise ValueError(f"reassignment time {at_ms}ms is in the past "
                             f"(now {self.scheduler.now()}ms)")
        self.scheduler.schedule_at(at_ms, self._retarget_network, network, new_channel,
                                   context=network.network_id)
        for slot in network.slots:
            self.schedule_reassignment(slot.device, new_channel, at_ms,
                                       context=network.network_id + slot.device_index)

    def _retarget_network(self, network, new_channel: Any) -> None:
        network.channel = new_channel

    def _change_channel(self, device: DeviceHandle, new_channel: Any) -> None:
        old = device.channel
        self.backend.bind_channel(device, new_channel)
        self.pending -= 1

        now = self.scheduler.now()
        record = Reassignment(
            at_ms=now,
            device_address=device.address,
            old_channel_id=self.backend.channel_id(old) if old is not None else None,
            new_channel_id=self.backend.channel_id(new_channel),
        )
        self.history.append(record)
        print(f"[{now / 1000:8.3f}s] device {device.address}'s channel has been changed to: "
              f"{record.new_channel_id}")

        if self.data_collector is not None:
            self.data_collector.record_channel_event(
                timestamp=now,
                device_address=device.address,
                old_channel_id=record.old_channel_id,
                new_channel_id=record.new_channel_id,
            )
