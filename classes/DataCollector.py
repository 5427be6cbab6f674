"""
DataCollector: Dataset generation for MultiPAN runs

This module manages data collection across four record types:
1. Attempt-level events (scheduled / transmit / confirm / indication)
2. Send rounds per network
3. Runtime channel reassignments
4. Periodic samples of the global delivery counters

Rows are kept in memory and, once init_data_files() has been called, also
appended to CSV files with synchronized simulation timestamps (ms).

Copyright (c) 2025 MultiPAN Research Team
Licensed under the MIT License
"""

import csv
import json
from pathlib import Path
import time as time_module
import numpy as np


class DataCollector:
    """
    Manages dataset collection and CSV export.

    Maintains in-memory buffers for all record types and writes
    to disk incrementally to support long simulations.
    """

    ATTEMPT_HEADERS = [
        'timestamp', 'network_id', 'device_address', 'event', 'status',
        'round_index', 'slot_offset_ms', 'channel_id'
    ]
    ROUND_HEADERS = [
        'timestamp', 'network_id', 'round_index', 'leaf_count', 'next_round_ms'
    ]
    CHANNEL_HEADERS = [
        'timestamp', 'device_address', 'old_channel_id', 'new_channel_id'
    ]
    SAMPLE_HEADERS = [
        'timestamp', 'requested', 'attempted', 'received', 'ratio'
    ]

    def __init__(self):
        self.attempt_data = []
        self.round_data = []
        self.channel_event_data = []
        self.stats_sample_data = []

        # Metadata
        self.output_dir = None
        self.simulation_start_time = None
        self.data_files = {}
        self._headers = {}

        self.sim_time_end_seconds = 0.0
        self.wall_clock_seconds = 0.0

    def init_data_files(self, run_id, output_dir="dataset"):
        """
        Initialize CSV files with headers for a new simulation run.

        Args:
            run_id: Unique identifier for this simulation run
            output_dir: Directory path for dataset output

        Creates four CSV files:
        - attempts_{run_id}.csv: Per-attempt lifecycle events
        - rounds_{run_id}.csv: Send rounds and the period to the next one
        - channel_events_{run_id}.csv: Channel reassignments
        - stats_samples_{run_id}.csv: Periodic counter samples
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        for key, headers in (('attempts', self.ATTEMPT_HEADERS),
                             ('rounds', self.ROUND_HEADERS),
                             ('channel_events', self.CHANNEL_HEADERS),
                             ('stats_samples', self.SAMPLE_HEADERS)):
            path = self.output_dir / f"{key}_{run_id}.csv"
            with open(path, 'w', newline='') as f:
                csv.writer(f).writerow(headers)
            self._headers[str(path)] = headers
            self.data_files[key] = path

        self.simulation_start_time = time_module.time()

    def record_attempt(self, timestamp, network_id, device_address, event, **kwargs):
        """Record one attempt lifecycle event"""
        row = {
            'timestamp': timestamp,
            'network_id': network_id,
            'device_address': device_address,
            'event': event,
            'status': kwargs.get('status', ''),
            'round_index': kwargs.get('round_index', ''),
            'slot_offset_ms': kwargs.get('slot_offset_ms', ''),
            'channel_id': kwargs.get('channel_id', ''),
        }
        self.attempt_data.append(row)
        self._append_to_csv('attempts', row)

    def record_round(self, timestamp, network_id, round_index, leaf_count, next_round_ms=None):
        """Record a send round; next_round_ms is None when the timer stopped"""
        row = {
            'timestamp': timestamp,
            'network_id': network_id,
            'round_index': round_index,
            'leaf_count': leaf_count,
            'next_round_ms': '' if next_round_ms is None else next_round_ms,
        }
        self.round_data.append(row)
        self._append_to_csv('rounds', row)

    def record_channel_event(self, timestamp, device_address, old_channel_id, new_channel_id):
        row = {
            'timestamp': timestamp,
            'device_address': device_address,
            'old_channel_id': '' if old_channel_id is None else old_channel_id,
            'new_channel_id': new_channel_id,
        }
        self.channel_event_data.append(row)
        self._append_to_csv('channel_events', row)

    def record_stats_sample(self, timestamp, snapshot):
        """
        Record a sample of the global counters.

        Args:
            timestamp: Simulation time in ms
            snapshot: TxStatistics.snapshot() result
        """
        row = {
            'timestamp': timestamp,
            'requested': snapshot.requested,
            'attempted': snapshot.attempted,
            'received': snapshot.received,
            'ratio': round(snapshot.ratio, 3),
        }
        self.stats_sample_data.append(row)
        self._append_to_csv('stats_samples', row)

    def _append_to_csv(self, key, row_dict):
        """
        Internal method: Append a single row to CSV file using DictWriter.

        Does nothing until init_data_files() has created the file.

        Args:
            key: Record type ('attempts', 'rounds', ...)
            row_dict: Dictionary of column_name → value
        """
        filename = self.data_files.get(key)
        if filename is None:
            return
        try:
            headers = self._headers[str(filename)]
            with open(filename, 'a', newline='') as f:
                dw = csv.DictWriter(f, fieldnames=headers)
                dw.writerow({k: row_dict.get(k, "") for k in headers})
        except OSError as e:
            print(f"Error writing to {filename}: {e}")

    def mean_round_periods(self):
        """
        Mean spacing between consecutive rounds, per network.

        Returns:
            Dict of network_id → mean period in ms (networks with fewer than
            two rounds are omitted)
        """
        by_network = {}
        for row in self.round_data:
            by_network.setdefault(row['network_id'], []).append(row['timestamp'])
        return {
            network_id: float(np.mean(np.diff(np.asarray(times, dtype=float))))
            for network_id, times in sorted(by_network.items())
            if len(times) >= 2
        }

    def generate_summary_report(self):
        """
        Generate dataset statistics and metadata.

        Writes dataset_summary.json into the output directory when files are
        enabled, containing:
        - Record counts across all record types
        - Simulation timing (sim time vs wall-clock time)
        - Mean round period per network
        - List of generated data files

        Returns:
            Dictionary containing summary statistics
        """
        self.wall_clock_seconds = time_module.time() - (self.simulation_start_time or time_module.time())
        summary = {
            'total_attempt_events': len(self.attempt_data),
            'total_rounds': len(self.round_data),
            'total_channel_events': len(self.channel_event_data),
            'total_stats_samples': len(self.stats_sample_data),
            'sim_time_seconds': self.sim_time_end_seconds,
            'wall_clock_seconds': self.wall_clock_seconds,
            'unique_networks': len({row['network_id'] for row in self.round_data}),
            'mean_round_period_ms': {str(k): v for k, v in self.mean_round_periods().items()},
            'data_files': {key: str(path) for key, path in self.data_files.items()},
        }

        if self.output_dir is not None:
            summary_file = self.output_dir / "dataset_summary.json"
            with open(summary_file, 'w') as f:
                json.dump(summary, f, indent=2)

        return summary
