"""
SharedMedium: In-process contention medium for PAN devices

A deliberately small stand-in for an 802.15.4 PHY/MAC, driven by the same
EventScheduler as the orchestrator so tests and quick sweeps run without
ns-3. It models only what the orchestration layer can influence:
- airtime occupancy per transmission (overhead + payload at 250 kb/s)
- collisions between transmissions overlapping in time on the same channel
  object and logical channel, when the interferer is within radio range of
  the receiver
- reception only when the receiver is bound to the sender's channel object
  and logical channel at end of airtime, and within radio range

No propagation loss, fading, CCA or backoff is modelled. Frames are sent
without acknowledgement unless the request asks for one, matching the
TX_OPTION_NONE default of the orchestrated traffic.

Copyright (c) 2025 MultiPAN Research Team
Licensed under the MIT License
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from EventScheduler import EventScheduler
from MacPrimitives import (DataConfirm, DataIndication, DataRequest, MacStatus,
                           StartConfirm, StartRequest)
from RadioBackend import DeviceHandle, RadioBackend
from Topology import ChannelModelConfig, Coordinates, distance


@dataclass(eq=False)
class MediumDevice(DeviceHandle):
    transmitting: bool = False
    beaconing: bool = False


@dataclass(eq=False)
class SharedChannel:
    """One shared medium; devices point at it, the backend owns it."""
    channel_id: int
    model: ChannelModelConfig
    active: List["Transmission"] = field(default_factory=list)

    def __repr__(self):
        return f"SharedChannel({self.channel_id})"


@dataclass(eq=False)
class Transmission:
    sender: MediumDevice
    channel: SharedChannel
    logical_channel: int
    request: DataRequest
    start_ms: float
    end_ms: float
    overlaps: List["Transmission"] = field(default_factory=list)
    delivered: bool = False


@dataclass(frozen=True)
class TxRecord:
    """Completed transmission, kept for inspection and datasets"""
    start_ms: float
    end_ms: float
    src_address: str
    dst_address: str
    channel_id: int
    logical_channel: int
    collided: bool
    delivered: bool


class SharedMediumBackend(RadioBackend):
    """
    RadioBackend implementation over an EventScheduler.

    Args:
        scheduler: Kernel facade used for airtime and callback delivery
        keep_log: Keep a TxRecord per finished transmission in `tx_log`
    """

    def __init__(self, scheduler: EventScheduler, keep_log: bool = True):
        self.scheduler = scheduler
        self.keep_log = keep_log
        self.devices: Dict[str, MediumDevice] = {}
        self.channels: List[SharedChannel] = []
        self.tx_log: List[TxRecord] = []
        self._next_key = 0

    # ------------------------------------------------------------------ setup
    def create_channel(self, model: ChannelModelConfig) -> SharedChannel:
        channel = SharedChannel(channel_id=len(self.channels), model=model)
        self.channels.append(channel)
        return channel

    def channel_id(self, channel: SharedChannel) -> int:
        return channel.channel_id

    def create_device(self, address: str) -> MediumDevice:
        if address in self.devices:
            raise ValueError(f"duplicate device address {address}")
        device = MediumDevice(key=self._next_key, address=address)
        self._next_key += 1
        self.devices[address] = device
        return device

    def bind_channel(self, device, channel):
        device.channel = channel

    def set_position(self, device, position: Coordinates):
        device.position = position

    def associate(self, device, pan_id, coordinator):
        device.pan_id = pan_id
        device.coordinator_address = coordinator.address

    def tune(self, device, logical_channel):
        device.logical_channel = logical_channel

    # ------------------------------------------------------------ primitives
    def start_beacon(self, device: MediumDevice, request: StartRequest) -> None:
        device.pan_id = request.pan_id
        device.logical_channel = request.logical_channel
        device.beaconing = request.is_coordinator
        confirm = StartConfirm(device_address=device.address, status=MacStatus.SUCCESS)
        self.scheduler.schedule(0, self._deliver, device.on_start_confirm, confirm,
                                context=device.key)

    def send_data(self, device: MediumDevice, request: DataRequest) -> None:
        if device.channel is None:
            raise RuntimeError(f"device {device.address} is not bound to a channel")

        if device.transmitting:
            confirm = DataConfirm(device.address, request.msdu_handle,
                                  MacStatus.CHANNEL_ACCESS_FAILURE)
            self.scheduler.schedule(0, self._deliver, device.on_data_confirm, confirm,
                                    context=device.key)
            return

        now = self.scheduler.now()
        channel = device.channel
        tx = Transmission(
            sender=device,
            channel=channel,
            logical_channel=device.logical_channel,
            request=request,
            start_ms=now,
            end_ms=now + channel.model.airtime_ms(request.payload_size),
        )
        for other in channel.active:
            if other.logical_channel == tx.logical_channel:
                other.overlaps.append(tx)
                tx.overlaps.append(other)
        channel.active.append(tx)
        device.transmitting = True
        self.scheduler.schedule(tx.end_ms - now, self._finish, tx, context=device.key)

    # -------------------------------------------------------------- internal
    def _finish(self, tx: Transmission) -> None:
        tx.channel.active.remove(tx)
        tx.sender.transmitting = False

        receiver = self.devices.get(tx.request.dst_address)
        collided = receiver is not None and self._interfered(tx, receiver)
        tx.delivered = (receiver is not None and not collided
                        and self._can_hear(tx, receiver))

        status = MacStatus.SUCCESS
        if tx.request.ack_requested and not tx.delivered:
            status = MacStatus.NO_ACK

        if self.keep_log:
            self.tx_log.append(TxRecord(
                start_ms=tx.start_ms,
                end_ms=tx.end_ms,
                src_address=tx.sender.address,
                dst_address=tx.request.dst_address,
                channel_id=tx.channel.channel_id,
                logical_channel=tx.logical_channel,
                collided=collided,
                delivered=tx.delivered,
            ))

        # confirm is inserted first so it always precedes the indication
        confirm = DataConfirm(tx.sender.address, tx.request.msdu_handle, status)
        self.scheduler.schedule(0, self._deliver, tx.sender.on_data_confirm, confirm,
                                context=tx.sender.key)
        if tx.delivered:
            indication = DataIndication(
                src_address=tx.sender.address,
                dst_address=receiver.address,
                src_pan_id=tx.sender.pan_id if tx.sender.pan_id is not None else -1,
                payload_size=tx.request.payload_size,
            )
            self.scheduler.schedule(0, self._deliver, receiver.on_data_indication,
                                    indication, context=receiver.key)

    def _in_range(self, a: MediumDevice, b: MediumDevice, model: ChannelModelConfig) -> bool:
        if a.position is None or b.position is None:
            return True
        return distance(a.position, b.position) <= model.range_m

    def _can_hear(self, tx: Transmission, receiver: MediumDevice) -> bool:
        return (receiver.channel is tx.channel
                and receiver.logical_channel == tx.logical_channel
                and self._in_range(tx.sender, receiver, tx.channel.model))

    def _interfered(self, tx: Transmission, receiver: MediumDevice) -> bool:
        return any(self._in_range(other.sender, receiver, tx.channel.model)
                   for other in tx.overlaps)

    @staticmethod
    def _deliver(callback, record) -> None:
        if callback is not None:
            callback(record)

    def device(self, address: str) -> Optional[MediumDevice]:
        return self.devices.get(address)
