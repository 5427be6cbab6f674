import csv
import json

from DataCollector import DataCollector
from MultiPanSimulation import HopRequest, MultiPanSimulation
from RoundPolicy import FixedRoundPeriod, LinearStagger
from TxStatistics import StatsSnapshot


def read_rows(path):
    with open(path, newline='') as f:
        return list(csv.DictReader(f))


def test_rows_are_kept_in_memory_before_init():
    collector = DataCollector()
    collector.record_attempt(timestamp=0, network_id=0, device_address="00:02", event="scheduled")
    assert len(collector.attempt_data) == 1
    assert collector.data_files == {}


def test_csv_files_have_headers_and_rows(tmp_path):
    collector = DataCollector()
    collector.init_data_files("t1", tmp_path)
    assert set(collector.data_files) == {'attempts', 'rounds', 'channel_events', 'stats_samples'}

    collector.record_attempt(timestamp=1000, network_id=0, device_address="00:02",
                             event="transmit", channel_id=0)
    collector.record_channel_event(timestamp=3100, device_address="00:02",
                                   old_channel_id=0, new_channel_id=1)
    collector.record_stats_sample(2000, StatsSnapshot(4, 3, 2, 66.6666))

    [attempt] = read_rows(tmp_path / "attempts_t1.csv")
    assert attempt['event'] == "transmit"
    assert attempt['channel_id'] == "0"
    assert attempt['status'] == ""

    [swap] = read_rows(tmp_path / "channel_events_t1.csv")
    assert (swap['old_channel_id'], swap['new_channel_id']) == ("0", "1")

    [sample] = read_rows(tmp_path / "stats_samples_t1.csv")
    assert sample['ratio'] == "66.667"
    assert read_rows(tmp_path / "rounds_t1.csv") == []


def test_mean_round_periods_per_network():
    collector = DataCollector()
    for t in (0, 2000, 4000):
        collector.record_round(timestamp=t, network_id=0, round_index=t // 2000, leaf_count=4)
    collector.record_round(timestamp=1000, network_id=1, round_index=0, leaf_count=4)
    assert collector.mean_round_periods() == {0: 2000.0}


def test_summary_report_written_to_output_dir(tmp_path):
    collector = DataCollector()
    collector.init_data_files("t2", tmp_path)
    collector.record_round(timestamp=0, network_id=0, round_index=0, leaf_count=4,
                           next_round_ms=2000)
    collector.record_round(timestamp=2000, network_id=0, round_index=1, leaf_count=4)
    collector.sim_time_end_seconds = 30.0

    summary = collector.generate_summary_report()
    on_disk = json.loads((tmp_path / "dataset_summary.json").read_text())
    assert on_disk['total_rounds'] == summary['total_rounds'] == 2
    assert on_disk['unique_networks'] == 1
    assert on_disk['mean_round_period_ms'] == {"0": 2000.0}
    assert on_disk['sim_time_seconds'] == 30.0


def test_simulation_run_fills_every_dataset(tmp_path):
    collector = DataCollector()
    collector.init_data_files("run", tmp_path)
    sim = MultiPanSimulation(data_collector=collector, stagger_policy=LinearStagger(1000),
                             round_policy=FixedRoundPeriod(2000))
    sim.build_networks(2, 3)
    sim.launch_all(stop_ms=6000)
    sim.schedule_hops([HopRequest(network_id=1, device_index=2, at_ms=3100)])
    sim.run()

    rounds = read_rows(tmp_path / "rounds_run.csv")
    assert [(r['network_id'], float(r['timestamp'])) for r in rounds] == [
        ("0", 0.0), ("1", 1000.0), ("0", 2000.0), ("1", 3000.0), ("0", 4000.0), ("1", 5000.0),
    ]
    [swap] = read_rows(tmp_path / "channel_events_run.csv")
    assert swap['device_address'] == "01:03"
    assert len(read_rows(tmp_path / "stats_samples_run.csv")) == 5

    summary = json.loads((tmp_path / "dataset_summary.json").read_text())
    assert summary['sim_time_seconds'] == 6.0
    assert summary['mean_round_period_ms'] == {"0": 2000.0, "1": 2000.0}
