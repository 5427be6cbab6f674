"""
MultiPAN: Multi-network slotted medium-access simulation

This is the main entry point for running MultiPAN simulations. It provides:
- Command-line argument parsing for simulation parameters
- Backend selection (in-process SimPy shared medium or ns-3 LR-WPAN)
- RNG seeding for reproducibility
- Simulation orchestration and cleanup

Usage:
    python main.py [OPTIONS]

Options:
    --stop SECONDS         Simulation duration (default: from Config.SIM_TIME)
    --pans INT             PAN network count (default: from Config.PAN_COUNT)
    --nodes INT            Devices per PAN incl. coordinator (default: Config.NODE_COUNT)
    --slot-length MS       Leaf slot length (default: Config.SLOT_LENGTH)
    --slot-interval MS     Gap after the last slot (default: Config.SLOT_INTERVAL)
    --round-period MS      Fixed period between rounds (default: scaled by PAN count)
    --stagger-step MS      Start offset step between PANs (default: one round span)
    --stagger-jitter MS    Max random jitter added to each start offset
    --noise                Shorten each round period by a random 1..slot-interval ms
    --packet-size BYTES    MSDU size (default: Config.PACKET_SIZE)
    --spread M             Device placement radius (default: Config.SPREAD_RANGE)
    --backend NAME         simpy or ns3 (default: Config.BACKEND)
    --seed INT             RNG seed (default: Config.SEED)
    --run INT              RNG run number (default: 0)
    --output DIR           Output directory (default: Config.DATA_OUTPUT_DIR)
    --collect {0,1}        Write CSV dataset (default: from Config)
    --hop NET:DEV:AT_MS[:CH]
                           Move device DEV of PAN NET (or '*' for the whole PAN)
                           to channel CH (default 1) at AT_MS. Repeatable.
    --verbose              Print per-attempt scheduling lines
"""

import argparse
import random
import time

import numpy as np

from Config import Config
from DataCollector import DataCollector
from MultiPanSimulation import HopRequest, MultiPanSimulation


def parse_hop(text):
    """
    Parse a NET:DEV:AT_MS[:CH] hop option.

    Returns:
        HopRequest with device_index None when DEV is '*'

    Raises:
        argparse.ArgumentTypeError: malformed value
    """
    parts = text.split(":")
    if len(parts) not in (3, 4):
        raise argparse.ArgumentTypeError(f"expected NET:DEV:AT_MS[:CH], got {text!r}")
    try:
        network_id = int(parts[0])
        device_index = None if parts[1] == "*" else int(parts[1])
        at_ms = float(parts[2])
        channel_index = int(parts[3]) if len(parts) == 4 else 1
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid hop {text!r}: {e}")
    if network_id < 0 or at_ms < 0 or channel_index < 0 or (device_index is not None and device_index < 0):
        raise argparse.ArgumentTypeError(f"invalid hop {text!r}: values must be non-negative")
    return HopRequest(network_id, device_index, at_ms, channel_index)


def positive_float(text):
    """argparse type for a strictly positive float."""
    try:
        value = float(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a number, got {text!r}")
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {text!r}")
    return value


def parse_args(argv=None):
    """
    Parse command-line arguments for simulation configuration.

    Returns:
        Namespace object with parsed arguments
    """
    p = argparse.ArgumentParser(description="MultiPAN slotted medium-access simulation")
    p.add_argument("--stop", type=positive_float, default=Config.SIM_TIME, help="sim time (s)")
    p.add_argument("--pans", type=int, default=Config.PAN_COUNT)
    p.add_argument("--nodes", type=int, default=Config.NODE_COUNT)
    p.add_argument("--slot-length", type=float, default=Config.SLOT_LENGTH)
    p.add_argument("--slot-interval", type=float, default=Config.SLOT_INTERVAL)
    p.add_argument("--round-period", type=float, default=Config.ROUND_PERIOD)
    p.add_argument("--stagger-step", type=float, default=Config.STAGGER_STEP)
    p.add_argument("--stagger-jitter", type=float, default=Config.STAGGER_JITTER)
    p.add_argument("--noise", action="store_true", default=Config.NOISY_SLOT_INTERVAL)
    p.add_argument("--packet-size", type=int, default=Config.PACKET_SIZE)
    p.add_argument("--spread", type=float, default=Config.SPREAD_RANGE)
    p.add_argument("--backend", choices=["simpy", "ns3"], default=Config.BACKEND)
    p.add_argument("--seed", type=int, default=Config.SEED)
    p.add_argument("--run", type=int, default=0)
    p.add_argument("--output", type=str, default=Config.DATA_OUTPUT_DIR)
    p.add_argument("--collect", type=int, choices=[0, 1], default=int(Config.DATA_COLLECTION_ENABLED),
                   help="1=write CSV dataset, 0=console report only")
    p.add_argument("--hop", type=parse_hop, action="append", default=[],
                   help="NET:DEV:AT_MS[:CH], DEV may be '*'")
    p.add_argument("--verbose", action="store_true", default=Config.VERBOSE)
    return p.parse_args(argv)


def apply_config(args):
    """Copy parsed arguments onto Config"""
    Config.SIM_TIME = float(args.stop)
    Config.PAN_COUNT, Config.NODE_COUNT = args.pans, args.nodes
    Config.SLOT_LENGTH, Config.SLOT_INTERVAL = args.slot_length, args.slot_interval
    Config.ROUND_PERIOD = args.round_period
    Config.STAGGER_STEP = args.stagger_step
    Config.STAGGER_JITTER = args.stagger_jitter
    Config.NOISY_SLOT_INTERVAL = bool(args.noise)
    Config.PACKET_SIZE = args.packet_size
    Config.SPREAD_RANGE = args.spread
    Config.BACKEND = args.backend
    Config.SEED = args.seed
    Config.DATA_OUTPUT_DIR = args.output
    Config.DATA_COLLECTION_ENABLED = bool(args.collect)
    Config.VERBOSE = bool(args.verbose)


def build_kernel(backend_name, seed, run):
    """
    Create the scheduler/backend pair for the chosen medium.

    The ns-3 path also defines the cppyy trampolines and seeds RngSeedManager.

    Returns:
        (scheduler, backend); both None for simpy, so the simulation builds
        its own defaults
    """
    if backend_name != "ns3":
        return None, None

    from ns import ns
    from Ns3Backend import LrWpanBackend, Ns3Scheduler, setup_cppyy_callbacks

    setup_cppyy_callbacks()
    ns.RngSeedManager.SetSeed(seed)
    ns.RngSeedManager.SetRun(run)
    scheduler = Ns3Scheduler()
    return scheduler, LrWpanBackend(scheduler)


def run_simulation(argv=None):
    """
    Execute a single MultiPAN simulation run with configured parameters.

    This function:
    1. Parses command-line arguments
    2. Applies configuration overrides
    3. Seeds all RNGs (Python random, numpy, ns-3) for reproducibility
    4. Creates, launches and runs the simulation
    5. Performs cleanup on success or failure

    Returns:
        StatsSnapshot captured by the end-of-run report
    """
    args = parse_args(argv)
    apply_config(args)

    print(f"🔧 Configuration: backend={Config.BACKEND}, PANs={Config.PAN_COUNT}, "
          f"nodes={Config.NODE_COUNT}, collect={Config.DATA_COLLECTION_ENABLED}")

    random.seed(args.seed)
    np.random.seed(args.seed)

    scheduler, backend = build_kernel(Config.BACKEND, args.seed, args.run)

    data_collector = None
    if Config.DATA_COLLECTION_ENABLED:
        run_id = (f"{time.strftime('%Y%m%d_%H%M%S')}_seed{args.seed}_run{args.run}"
                  f"_pans{Config.PAN_COUNT}")
        data_collector = DataCollector()
        data_collector.init_data_files(run_id, Config.DATA_OUTPUT_DIR)

    print("Starting MultiPAN Simulation...")

    try:
        sim = MultiPanSimulation(scheduler=scheduler, backend=backend,
                                 data_collector=data_collector)
        sim.build_networks(Config.PAN_COUNT, Config.NODE_COUNT)
        sim.launch_all()
        sim.schedule_hops(args.hop)
        snapshot = sim.run()
        print("✅ Simulation completed successfully")
        return snapshot

    except Exception as e:
        print(f"❌ Simulation failed: {e}")
        import traceback
        traceback.print_exc()

        if scheduler is not None:
            scheduler.destroy()
        raise


if __name__ == "__main__":
    run_simulation()
