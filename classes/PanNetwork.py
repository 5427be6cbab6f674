"""
PanNetwork: One beacon-enabled IEEE 802.15.4 personal-area network

This module implements the network entity orchestrated by MultiPanSimulation:
- Device roster with device 0 as PAN coordinator and the rest as leaves
- Placement of devices from a PositionPolicy anchored by NetworkId
- Binding of every device to a shared (non-owned) channel reference
- Coordinator start-up (MLME-START) after a stagger delay
- Slotted send rounds: one MCPS-DATA attempt per leaf, spaced by slot length,
  rescheduled after a pluggable round period

Copyright (c) 2025 MultiPAN Research Team
Licensed under the MIT License
"""

import itertools
from dataclasses import dataclass, field
from typing import Any, List, Optional

from Config import Config
from EventScheduler import EventScheduler
from MacPrimitives import (DataConfirm, DataIndication, DataRequest, StartConfirm,
                           StartRequest)
from RadioBackend import DeviceHandle, RadioBackend, format_short_address
from RoundPolicy import RoundPeriodPolicy, ScaledRoundPeriod
from Topology import PositionPolicy
from TxStatistics import TxStatistics


class SequencingError(RuntimeError):
    """A lifecycle operation was called out of order (install/start/send_round)."""


@dataclass(frozen=True)
class DeviceSlot:
    """Position of a device within its PAN; index 0 is the coordinator."""
    network_id: int
    device_index: int
    device: DeviceHandle = field(compare=False)

    @property
    def is_coordinator(self) -> bool:
        return self.device_index == 0


class NetworkIdAllocator:
    """Monotonic NetworkId source owned by one orchestrator."""

    def __init__(self, start: int = 0):
        self._counter = itertools.count(start)

    def allocate(self) -> int:
        return next(self._counter)


class PanNetwork:
    """
    A PAN: one coordinator plus leaf devices sharing a channel reference.

    Lifecycle: created -> install() -> start() -> send_round() repeatedly ->
    cleanup(). The repeating send round ends at the scheduler's stop
    deadline, at stop(), or after max_rounds rounds.
    """

    def __init__(self, network_id: int, backend: RadioBackend, scheduler: EventScheduler,
                 stats: TxStatistics, channel: Any = None,
                 position_policy: Optional[PositionPolicy] = None,
                 round_policy: Optional[RoundPeriodPolicy] = None,
                 data_collector=None, packet_size: int = None,
                 ack_requested: bool = None, max_rounds: Optional[int] = None,
                 verbose: bool = None, rng=None):
        """
        Initialize an empty PAN.

        Args:
            network_id: Unique NetworkId, also used as PAN id
            backend: Radio/MAC collaborator that owns devices and channels
            scheduler: Event scheduling facade
            stats: Shared statistics aggregator
            channel: Channel reference the devices are bound to on install
            position_policy: Default placement (anchored at the origin if omitted)
            round_policy: Period between send rounds
            data_collector: Optional DataCollector for dataset rows
            packet_size: MSDU size per attempt in bytes
            ack_requested: Request MAC acknowledgements for data frames
            max_rounds: Stop rescheduling after this many rounds (None = unbounded)
            verbose: Print per-attempt scheduling lines
            rng: numpy Generator for random-disc placement
        """
        if not 0 <= network_id <= 0xFF:
            raise ValueError(f"network id {network_id} does not fit a short address")
        if max_rounds is not None and max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")

        self.network_id = network_id
        self.backend = backend
        self.scheduler = scheduler
        self.stats = stats
        self.channel = channel
        self.position_policy = position_policy or PositionPolicy()
        self.round_policy = round_policy or ScaledRoundPeriod(pan_count=1)
        self.data_collector = data_collector
        self.packet_size = Config.PACKET_SIZE if packet_size is None else packet_size
        self.ack_requested = Config.ACK_REQUESTED if ack_requested is None else ack_requested
        self.max_rounds = max_rounds
        self.verbose = Config.VERBOSE if verbose is None else verbose
        self.rng = rng

        self.slots: List[DeviceSlot] = []
        self.installed = False
        self.started = False
        self.started_at: Optional[float] = None
        self.start_status = None
        self.logical_channel: Optional[int] = None

        self.round_index = 0
        self.last_round_ms: Optional[float] = None
        self._stopped = False

    # getter, setter
    @property
    def coordinator(self) -> DeviceHandle:
        if not self.slots:
            raise SequencingError(f"PAN {self.network_id} has no devices; call install() first")
        return self.slots[0].device

    @property
    def leaves(self) -> List[DeviceSlot]:
        return self.slots[1:]

    @property
    def devices(self) -> List[DeviceHandle]:
        return [slot.device for slot in self.slots]

    def set_channel(self, channel: Any) -> None:
        if self.installed:
            raise SequencingError("channel must be set before install(); "
                                  "use ChannelController to move installed devices")
        self.channel = channel

    def slot_offsets(self, slot_length_ms: float) -> List[float]:
        """Per-leaf offsets from round start, strictly increasing by slot_length_ms."""
        return [slot.device_index * slot_length_ms for slot in self.leaves]

    # ---------------------------------------------------------------- install
    def install(self, device_count: int, position_policy: Optional[PositionPolicy] = None) -> None:
        """
        Create devices, place them and bind them to the network's channel.

        Args:
            device_count: Devices in this PAN including the coordinator
            position_policy: Overrides the policy given at construction

        Raises:
            SequencingError: already installed, or no channel bound
            ValueError: device_count outside 1..255
        """
        if self.installed:
            raise SequencingError(f"PAN {self.network_id} is already installed")
        if self.channel is None:
            raise SequencingError(f"PAN {self.network_id} has no channel; call set_channel() first")
        if not 1 <= device_count <= 0xFF:
            raise ValueError(f"device count {device_count} outside 1..255")

        policy = position_policy or self.position_policy
        positions = policy.positions(device_count, self.rng)

        for index, position in enumerate(positions):
            address = format_short_address((self.network_id << 8) | (index + 1))
            device = self.backend.create_device(address)
            self.backend.set_position(device, position)
            self.backend.bind_channel(device, self.channel)
            self.slots.append(DeviceSlot(self.network_id, index, device))

        coordinator = self.coordinator
        for slot in self.leaves:
            self.backend.associate(slot.device, self.network_id, coordinator)

        self._install_callbacks()
        self.position_policy = policy
        self.installed = True

    def _install_callbacks(self) -> None:
        for slot in self.slots:
            self.backend.set_data_confirm_callback(slot.device, self._on_data_confirm)
            self.backend.set_data_indication_callback(slot.device, self._on_data_indication)
        self.backend.set_start_confirm_callback(self.coordinator, self._on_start_confirm)

    # callback methods
    def _on_start_confirm(self, confirm: StartConfirm) -> None:
        self.start_status = confirm.status
        if self.verbose:
            print(f"[{self._now_s():8.3f}s] PAN {self.network_id}: "
                  f"MLME-START.confirm {confirm.status.name}")

    def _on_data_confirm(self, confirm: DataConfirm) -> None:
        self.stats.record_attempted(confirm.status)
        if self.data_collector is not None:
            self.data_collector.record_attempt(
                timestamp=self.scheduler.now(),
                network_id=self.network_id,
                device_address=confirm.device_address,
                event="confirm",
                status=confirm.status.name,
            )

    def _on_data_indication(self, indication: DataIndication) -> None:
        self.stats.record_received()
        if self.verbose:
            print(f"[{self._now_s():8.3f}s] data from {indication.src_address} "
                  f"successfully received, MCPS-DATA.indication issued.")
        if self.data_collector is not None:
            self.data_collector.record_attempt(
                timestamp=self.scheduler.now(),
                network_id=self.network_id,
                device_address=indication.src_address,
                event="indication",
                status="SUCCESS",
            )

    # ------------------------------------------------------------------ start
    def start(self, logical_channel: int, start_delay_ms: float = 0.0) -> None:
        """
        Schedule MLME-START.request on the coordinator.

        Args:
            logical_channel: 2.4 GHz channel 11..26 for this PAN
            start_delay_ms: Delay before the request is issued

        Raises:
            SequencingError: not installed, or already started
        """
        if not self.installed:
            raise SequencingError(f"PAN {self.network_id}: start() before install()")
        if self.started:
            raise SequencingError(f"PAN {self.network_id} was already started")

        request = StartRequest(
            pan_id=self.network_id,
            logical_channel=logical_channel,
            is_coordinator=True,
            beacon_order=Config.BEACON_ORDER,
            superframe_order=Config.SUPERFRAME_ORDER,
        )
        self.started = True
        self.logical_channel = logical_channel

        print(f"[{self._now_s():8.3f}s] Scheduling MLME-START.request...(ID: {self.network_id}, "
              f"ch {logical_channel}, +{start_delay_ms / 1000:.3f}s)")
        self.scheduler.schedule(start_delay_ms, self._start_beacon, request,
                                context=self.network_id)

    def _start_beacon(self, request: StartRequest) -> None:
        self.started_at = self.scheduler.now()
        self.backend.start_beacon(self.coordinator, request)
        for slot in self.leaves:
            self.backend.tune(slot.device, request.logical_channel)

    # ------------------------------------------------------------------ rounds
    def send_round(self, slot_length_ms: float, inter_slot_gap_ms: float) -> None:
        """
        Schedule one data attempt per leaf and reschedule the next round.

        Leaf i transmits at now + i * slot_length_ms. The Requested counter is
        bumped here, at schedule time, so it always leads Attempted/Received.

        Raises:
            SequencingError: called before install()
        """
        if not self.installed:
            raise SequencingError(f"PAN {self.network_id}: send_round() before install()")

        now = self.scheduler.now()
        round_number = self.round_index
        self.round_index += 1
        self.last_round_ms = now

        coordinator = self.coordinator
        for slot in self.leaves:
            delay = slot.device_index * slot_length_ms
            request = DataRequest(
                src_address=slot.device.address,
                dst_address=coordinator.address,
                dst_pan_id=self.network_id,
                payload_size=self.packet_size,
                msdu_handle=round_number & 0xFF,
                ack_requested=self.ack_requested,
            )
            if self.verbose:
                begin = (now + delay) / 1000
                print(f"[{now / 1000:8.3f}s] PAN {self.network_id}: device {slot.device_index} "
                      f"- scheduled [{begin:.3f}s ~ {begin + slot_length_ms / 1000:.3f}s]")
            self.scheduler.schedule(delay, self._transmit, slot, request,
                                    context=self.network_id + slot.device_index)
            self.stats.record_requested()
            if self.data_collector is not None:
                self.data_collector.record_attempt(
                    timestamp=now,
                    network_id=self.network_id,
                    device_address=slot.device.address,
                    event="scheduled",
                    round_index=round_number,
                    slot_offset_ms=delay,
                )

        next_period = self._reschedule(slot_length_ms, inter_slot_gap_ms)

        if self.data_collector is not None:
            self.data_collector.record_round(
                timestamp=now,
                network_id=self.network_id,
                round_index=round_number,
                leaf_count=len(self.leaves),
                next_round_ms=next_period,
            )

    def _transmit(self, slot: DeviceSlot, request: DataRequest) -> None:
        # the channel is read here, at execution time, not when the round was scheduled
        if self.data_collector is not None:
            self.data_collector.record_attempt(
                timestamp=self.scheduler.now(),
                network_id=self.network_id,
                device_address=slot.device.address,
                event="transmit",
                channel_id=self.backend.channel_id(slot.device.channel),
            )
        self.backend.send_data(slot.device, request)

    def _reschedule(self, slot_length_ms: float, inter_slot_gap_ms: float) -> Optional[float]:
        if self._stopped:
            return None
        if self.max_rounds is not None and self.round_index >= self.max_rounds:
            return None

        period = self.round_policy.period(len(self.slots), slot_length_ms, inter_slot_gap_ms)
        if self.verbose:
            print(f"[{self._now_s():8.3f}s] :: next round will be called at: "
                  f"{(self.scheduler.now() + period) / 1000:.3f}s, PAN {self.network_id}")
        self.scheduler.schedule(period, self.send_round, slot_length_ms, inter_slot_gap_ms,
                                context=self.network_id)
        return period

    # ---------------------------------------------------------------- teardown
    def stop(self) -> None:
        """Stop token: the pending round still runs but will not reschedule."""
        self._stopped = True

    @property
    def stopped(self) -> bool:
        return self._stopped

    def cleanup(self) -> None:
        """
        Release callback references at simulation teardown.

        Called by the orchestrator after the kernel is destroyed so that no
        bound method of this network outlives the run.
        """
        self.stop()
        for slot in self.slots:
            slot.device.on_data_confirm = None
            slot.device.on_data_indication = None
            slot.device.on_start_confirm = None

    def _now_s(self) -> float:
        return self.scheduler.now() / 1000

    def __repr__(self):
        return (f"PanNetwork(id={self.network_id}, devices={len(self.slots)}, "
                f"rounds={self.round_index})")
