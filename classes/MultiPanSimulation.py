"""
MultiPAN: Multi-network slotted medium-access orchestration

This module implements the main simulation orchestrator for the MultiPAN
framework, which studies how many independent IEEE 802.15.4 PANs behave when
they share one transmission medium.

Key Responsibilities:
    - Network Construction: Creates N PanNetwork entities with fresh NetworkIds,
      each placed in its own region (position policy anchored by NetworkId)
    - Stagger Scheduling: Offsets coordinator start-up and the first send round
      of each PAN so that rounds of different PANs do not align
    - Channel Assignment: Cycles PAN coordinators through logical channels 11..26
      and binds devices to a shared channel object (or alternates for hopping)
    - Channel Hopping: Schedules runtime channel reassignment of devices
    - Statistics: Aggregates requested/attempted/received counts across all PANs
      and prints the end-of-run report just before the stop deadline

Scheduling Model:
    Single-threaded discrete-event execution. Start requests and send rounds
    scheduled for the same instant run in insertion order; launch_all() always
    inserts a network's start before its first round.

Copyright (c) 2025 MultiPAN Research Team
Licensed under the MIT License
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

from ChannelController import ChannelController
from Config import Config
from DataCollector import DataCollector
from EventScheduler import EventScheduler, SimPyScheduler
from PanNetwork import NetworkIdAllocator, PanNetwork, SequencingError
from RadioBackend import RadioBackend
from RoundPolicy import (FixedRoundPeriod, JitteredStagger, LinearStagger, RoundPeriodPolicy,
                         ScaledRoundPeriod, StaggerPolicy)
from SharedMedium import SharedMediumBackend
from Topology import ChannelModelConfig, LayoutKind, PositionPolicy
from TxStatistics import StatsSnapshot, TxStatistics


@dataclass(frozen=True)
class HopRequest:
    """
    Channel hop for one device (or a whole PAN when device_index is None).

    Attributes:
        network_id: Target PAN
        device_index: Device within the PAN, None for every device
        at_ms: Absolute simulation time of the swap
        channel_index: Index into MultiPanSimulation.get_channel()
    """
    network_id: int
    device_index: Optional[int]
    at_ms: float
    channel_index: int = 1


def default_stagger_policy(node_count: Optional[int] = None) -> StaggerPolicy:
    """One round span of `node_count` devices per NetworkId, unless Config.STAGGER_STEP is set."""
    step = Config.STAGGER_STEP
    if step is None:
        nodes = Config.NODE_COUNT if node_count is None else node_count
        step = LinearStagger.from_round_span(Config.SLOT_LENGTH, nodes,
                                             Config.SLOT_INTERVAL).step_ms
    if Config.STAGGER_JITTER:
        return JitteredStagger(step, Config.STAGGER_JITTER)
    return LinearStagger(step)


def default_round_policy(pan_count: Optional[int] = None) -> RoundPeriodPolicy:
    """Period scaled by `pan_count`, unless Config.ROUND_PERIOD is set."""
    if Config.ROUND_PERIOD is not None:
        return FixedRoundPeriod(Config.ROUND_PERIOD)
    pans = pan_count if pan_count else Config.PAN_COUNT
    return ScaledRoundPeriod(pans, noisy=Config.NOISY_SLOT_INTERVAL)


class MultiPanSimulation:
    def __init__(self, scheduler: Optional[EventScheduler] = None,
                 backend: Optional[RadioBackend] = None,
                 stats: Optional[TxStatistics] = None,
                 data_collector: Optional[DataCollector] = None,
                 stagger_policy: Optional[StaggerPolicy] = None,
                 round_policy: Optional[RoundPeriodPolicy] = None,
                 channel_model: Optional[ChannelModelConfig] = None,
                 slot_length_ms: Optional[float] = None,
                 slot_interval_ms: Optional[float] = None,
                 shared_channel: bool = True, max_rounds: Optional[int] = None,
                 rng=None):
        """
        Initialize the MultiPAN simulation environment.

        Every collaborator can be injected; anything omitted is built from
        Config (SimPy kernel, in-process shared medium, fresh counters).
        Omitted stagger and round policies are sized at launch from the
        networks actually built.

        Attributes:
            networks: PanNetwork objects in NetworkId order
            channels: Channel references; index 0 is the primary shared medium
            id_allocator: NetworkId source owned by this simulation
            controller: ChannelController for runtime reassignment
            report_snapshot: Counters captured by the terminal report
        """
        self.scheduler = scheduler or SimPyScheduler()
        self.backend = backend or SharedMediumBackend(self.scheduler)
        self.stats = stats or TxStatistics()
        if data_collector is None and Config.DATA_COLLECTION_ENABLED:
            data_collector = DataCollector()
        self.data_collector = data_collector

        self.stagger_policy: Optional[StaggerPolicy] = stagger_policy
        self.round_policy: Optional[RoundPeriodPolicy] = round_policy
        self.channel_model = channel_model or ChannelModelConfig(
            path_loss_exponent=Config.PATH_LOSS_EXPONENT,
            reference_loss_db=Config.REFERENCE_LOSS_DB,
            range_m=Config.RADIO_RANGE,
        )
        self.slot_length_ms = Config.SLOT_LENGTH if slot_length_ms is None else slot_length_ms
        self.slot_interval_ms = Config.SLOT_INTERVAL if slot_interval_ms is None else slot_interval_ms
        self.shared_channel = shared_channel
        self.max_rounds = max_rounds
        self.rng = rng

        self.id_allocator = NetworkIdAllocator()
        self.networks: List[PanNetwork] = []
        self.channels: List[Any] = []
        self.controller = ChannelController(self.scheduler, self.backend, self.data_collector)

        self.device_count: Optional[int] = None
        self.stop_ms: Optional[float] = None
        self.report_snapshot: Optional[StatsSnapshot] = None
        self._launched = set()

    # -------------------------------------------------------------- channels
    def get_channel(self, index: int = 0) -> Any:
        """Channel by index, creating alternates on first use."""
        if index < 0:
            raise ValueError("channel index must be non-negative")
        while len(self.channels) <= index:
            self.channels.append(self.backend.create_channel(self.channel_model))
        return self.channels[index]

    def logical_channel_for(self, network_id: int) -> int:
        channels = Config.LOGICAL_CHANNELS
        if Config.CYCLE_LOGICAL_CHANNELS:
            return channels[network_id % len(channels)]
        return channels[0]

    def network(self, network_id: int) -> PanNetwork:
        for network in self.networks:
            if network.network_id == network_id:
                return network
        raise KeyError(f"no PAN with id {network_id}")

    # ----------------------------------------------------------------- build
    def build_networks(self, count: int, device_count: int) -> List[PanNetwork]:
        """
        Construct and install `count` PANs of `device_count` devices each.

        Each PAN gets the next NetworkId and a position policy anchored at
        (id * PAN_SPACING, id * PAN_SPACING), so PANs occupy distinct regions.
        With shared_channel every PAN is bound to channel 0; otherwise each
        PAN gets its own channel object.

        Returns:
            The new PanNetwork objects, in NetworkId order
        """
        if count < 0:
            raise ValueError("network count must be non-negative")

        layout = LayoutKind(Config.LAYOUT)
        built = []
        for _ in range(count):
            network_id = self.id_allocator.allocate()
            policy = PositionPolicy.anchored(
                network_id, Config.PAN_SPACING, kind=layout,
                spread=Config.SPREAD_RANGE, grid_spacing=Config.GRID_SPACING,
            )
            channel = (self.get_channel(0) if self.shared_channel
                       else self.backend.create_channel(self.channel_model))

            network = PanNetwork(
                network_id=network_id,
                backend=self.backend,
                scheduler=self.scheduler,
                stats=self.stats,
                channel=channel,
                position_policy=policy,
                round_policy=self.round_policy,
                data_collector=self.data_collector,
                max_rounds=self.max_rounds,
                rng=self.rng,
            )
            print(f"Setting up PAN network...(ID: {network_id})")
            network.install(device_count)
            built.append(network)

        self.networks.extend(built)
        self.device_count = device_count
        return built

    # ---------------------------------------------------------------- launch
    def launch_all(self, networks: Optional[Iterable[PanNetwork]] = None,
                   stagger_policy: Optional[StaggerPolicy] = None,
                   stop_ms: Optional[float] = None) -> None:
        """
        Start every network once and schedule its first send round.

        Timing Strategy:
            - Start delay: stagger_policy.delay(network_id)
            - First send round at the same delay, inserted after the start so
              the coordinator is beaconing before any leaf slot opens
            - Terminal report at stop - STOP_EPSILON_MS, ahead of the stop event

        Args:
            networks: Networks to launch (default: every built network)
            stagger_policy: Overrides the simulation's stagger policy
            stop_ms: Simulation horizon (default: Config.SIM_TIME seconds)

        Raises:
            SequencingError: a network was already launched
            ValueError: the horizon is not positive
        """
        targets = list(self.networks if networks is None else networks)

        for network in targets:
            if network.network_id in self._launched:
                raise SequencingError(f"PAN {network.network_id} was already launched")

        horizon = None
        if self.stop_ms is None:
            horizon = float(Config.SIM_TIME * 1000 if stop_ms is None else stop_ms)
            if horizon <= 0:
                raise ValueError(f"stop time must be positive, got {horizon} ms")

        policy = (stagger_policy or self.stagger_policy
                  or default_stagger_policy(self.device_count))
        self.stagger_policy = policy
        if self.round_policy is None:
            self.round_policy = default_round_policy(len(self.networks))

        for network in targets:
            network.round_policy = self.round_policy
            delay = policy.delay(network.network_id)
            network.start(self.logical_channel_for(network.network_id), delay)
            self.scheduler.schedule(delay, network.send_round,
                                    self.slot_length_ms, self.slot_interval_ms,
                                    context=network.network_id)
            self._launched.add(network.network_id)

        if horizon is not None:
            self.stop_ms = horizon
            self.scheduler.stop(self.stop_ms)
            self.scheduler.schedule_at(self.stop_ms - Config.STOP_EPSILON_MS, self.report)
            if self.data_collector is not None:
                self.scheduler.schedule_repeating(Config.STATS_SAMPLE_INTERVAL, self._sample_stats)

    def schedule_hops(self, hops: Iterable[HopRequest]) -> None:
        """Apply channel hop requests through the ChannelController."""
        for hop in hops:
            network = self.network(hop.network_id)
            channel = self.get_channel(hop.channel_index)
            if hop.device_index is None:
                self.controller.schedule_network_reassignment(network, channel, hop.at_ms)
                continue
            if not 0 <= hop.device_index < len(network.slots):
                raise ValueError(f"PAN {hop.network_id} has no device {hop.device_index}")
            device = network.slots[hop.device_index].device
            self.controller.schedule_reassignment(device, channel, hop.at_ms,
                                                  context=hop.network_id + hop.device_index)

    def _sample_stats(self) -> None:
        self.data_collector.record_stats_sample(self.scheduler.now(), self.stats.snapshot())

    # ------------------------------------------------------------------- run
    def run(self) -> Optional[StatsSnapshot]:
        """
        Execute the kernel until the stop deadline and tear down.

        Execution Flow:
            1. Run the event loop (launch_all() must have set the horizon)
            2. Always destroy the kernel and release network callbacks
            3. Write the dataset summary when collection is enabled

        Returns:
            Snapshot taken by the terminal report (None if it never ran)
        """
        if self.stop_ms is None:
            raise SequencingError("launch_all() must be called before run()")

        sim_end = None
        try:
            print(f"Starting simulator run (stop time: {self.stop_ms / 1000:g}s)...")
            self.scheduler.run()
            sim_end = self.scheduler.now()
            print(f"Simulator finished at {sim_end / 1000:g}s")
        except Exception as e:
            print(f"Error during simulation execution: {e}")
            raise
        finally:
            self.scheduler.destroy()
            for network in self.networks:
                network.cleanup()
            print("Simulator destroyed")

        if self.data_collector is not None:
            self.data_collector.sim_time_end_seconds = float(sim_end) / 1000
            summary = self.data_collector.generate_summary_report()
            print("\n=== DATASET SUMMARY ===")
            print(f"Total attempt events: {summary['total_attempt_events']}")
            print(f"Total rounds:         {summary['total_rounds']}")
            print(f"Sim time:             {summary['sim_time_seconds']:.2f}s")
            print(f"Wall-clock elapsed:   {summary['wall_clock_seconds']:.2f}s")

        return self.report_snapshot

    def report(self) -> StatsSnapshot:
        """
        Print the configuration block and the delivery summary line.

        Scheduled by launch_all() just before the stop deadline so that it
        reflects the final counters of the run.

        Returns:
            The snapshot that was printed
        """
        snapshot = self.stats.snapshot()
        self.report_snapshot = snapshot
        print(
            "\n\nCONFIGURATION"
            f"\nPAN network count: {len(self.networks)}"
            f"\nnode count per PAN: {self.device_count}"
            f"\nslot length(ms): {self.slot_length_ms}"
            f"\nslot interval(ms): {self.slot_interval_ms}"
            f"\nstagger: {self.stagger_policy!r}"
            f"\nround period: {self.round_policy!r}"
            f"\npacket size: {Config.PACKET_SIZE}"
            f"\n{self.stats.format_report()}\n\n"
        )
        return snapshot
