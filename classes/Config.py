"""
MultiPAN Configuration Parameters

This module defines all simulation parameters for the MultiPAN framework,
including PAN topology, slot timing, stagger policy, channel assignment and
dataset collection settings.

Parameter categories:
- PAN count, devices per PAN and spatial placement
- Slot length, slot interval and round jitter
- Beacon-enabled start parameters (logical channel, beacon/superframe order)
- Medium backend selection (in-process shared medium or ns-3 LR-WPAN)
- Data collection and output settings

Copyright (c) 2025 MultiPAN Research Team
Licensed under the MIT License
"""

class Config:
    """Global configuration parameters for MultiPAN simulation"""

    SEED = 1337

    # ============================================================================
    # PAN Topology Configuration
    # ============================================================================
    PAN_COUNT = 3
    NODE_COUNT = 5
    SPREAD_RANGE = 5.0
    PAN_SPACING = 20.0
    LAYOUT = "random_disc"
    GRID_SPACING = 2.0

    # ============================================================================
    # Slot / Round Timing (milliseconds)
    # ============================================================================
    SLOT_LENGTH = 1000
    SLOT_INTERVAL = 1000
    NOISY_SLOT_INTERVAL = False
    ROUND_PERIOD = None
    STAGGER_STEP = None
    STAGGER_JITTER = 0.0

    # ============================================================================
    # Traffic
    # ============================================================================
    PACKET_SIZE = 10
    ACK_REQUESTED = False

    # ============================================================================
    # Beacon-enabled Start Parameters
    # ============================================================================
    LOGICAL_CHANNELS = tuple(range(11, 27))
    CYCLE_LOGICAL_CHANNELS = True
    BEACON_ORDER = 15
    SUPERFRAME_ORDER = 15

    # ============================================================================
    # Channel Model
    # ============================================================================
    PATH_LOSS_EXPONENT = 3.0
    REFERENCE_LOSS_DB = 46.6777
    RADIO_RANGE = 30.0

    # ============================================================================
    # Run Control
    # ============================================================================
    SIM_TIME = 30.0
    STOP_EPSILON_MS = 1e-6
    BACKEND = "simpy"
    NS3_INCLUDE_DIR = None  # extra header path for cppyy, e.g. "<ns-3 root>/build/include"
    VERBOSE = False

    # ============================================================================
    # Data Collection Settings
    # ============================================================================
    DATA_COLLECTION_ENABLED = False
    DATA_OUTPUT_DIR = "multipan_dataset"
    STATS_SAMPLE_INTERVAL = 1000
