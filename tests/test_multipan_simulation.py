import math

import pytest

from Config import Config
from DataCollector import DataCollector
from MultiPanSimulation import MultiPanSimulation
from PanNetwork import SequencingError
from RoundPolicy import FixedRoundPeriod, LinearStagger, ScaledRoundPeriod


def three_by_five(**kwargs):
    sim = MultiPanSimulation(stagger_policy=LinearStagger(1000),
                             round_policy=FixedRoundPeriod(2000), **kwargs)
    sim.build_networks(3, 5)
    sim.launch_all()
    return sim


def test_three_pans_of_five_for_thirty_seconds():
    sim = three_by_five()
    samples = []
    sim.scheduler.schedule_repeating(100, lambda: samples.append(sim.stats.snapshot()))
    snapshot = sim.run()

    assert len(samples) > 100
    for s in samples:
        assert s.requested >= s.attempted >= s.received
        assert 0.0 <= s.ratio <= 100.0

    assert [n.started_at for n in sim.networks] == [0, 1000, 2000]
    assert [n.round_index for n in sim.networks] == [15, 15, 14]
    assert snapshot.requested == 176
    # leaf slots at or after 30 s never transmit
    assert snapshot.attempted == 162
    # a 2 s period is shorter than the 4 s round, so from the third slot on
    # two leaves of the same PAN share each slot and collide
    assert snapshot.received == 6
    assert snapshot.ratio == pytest.approx(6 * 100 / 162)


def test_complete_rounds_match_stagger():
    sim = three_by_five(data_collector=DataCollector())
    sim.run()

    stop = Config.SIM_TIME * 1000
    complete = {}
    for row in sim.data_collector.round_data:
        if row['timestamp'] + 2000 <= stop:
            complete[row['network_id']] = complete.get(row['network_id'], 0) + 1
    assert complete == {
        n.network_id: math.floor((stop - n.started_at) / 2000) for n in sim.networks
    }
    assert complete == {0: 15, 1: 14, 2: 14}


def test_report_is_printed_before_teardown(capsys):
    sim = three_by_five()
    snapshot = sim.run()
    out = capsys.readouterr().out

    assert sim.report_snapshot == snapshot
    assert "CONFIGURATION" in out
    assert "PAN network count: 3" in out
    assert "node count per PAN: 5" in out
    assert "total Requested TX: 176" in out
    assert out.index("ratio: 3.7%") < out.index("Simulator destroyed")


def test_logical_channels_cycle_and_pans_are_anchored_apart():
    sim = three_by_five()
    assert [n.logical_channel for n in sim.networks] == [11, 12, 13]
    for network in sim.networks:
        ax = ay = network.network_id * Config.PAN_SPACING
        for x, y, _ in (d.position for d in network.devices):
            assert math.hypot(x - ax, y - ay) <= Config.SPREAD_RANGE


def test_single_logical_channel_when_cycling_disabled():
    Config.CYCLE_LOGICAL_CHANNELS = False
    sim = three_by_five()
    assert {n.logical_channel for n in sim.networks} == {11}


def test_default_policies_are_sized_at_launch():
    sim = MultiPanSimulation()
    assert sim.stagger_policy is None and sim.round_policy is None

    sim.build_networks(3, 5)
    sim.launch_all()
    assert isinstance(sim.round_policy, ScaledRoundPeriod)
    assert sim.round_policy.pan_count == 3
    assert sim.stagger_policy.step_ms == 5000
    assert all(n.round_policy is sim.round_policy for n in sim.networks)

    snapshot = sim.run()
    assert [n.started_at for n in sim.networks] == [0, 5000, 10000]
    assert [n.round_index for n in sim.networks] == [2, 2, 2]
    assert snapshot.requested == 24


def test_default_stagger_follows_built_device_count():
    Config.CYCLE_LOGICAL_CHANNELS = False
    assert Config.NODE_COUNT == 5
    sim = MultiPanSimulation()
    sim.build_networks(3, 8)
    sim.launch_all(stop_ms=120000)
    snapshot = sim.run()

    assert sim.stagger_policy.step_ms == 8000
    assert [n.started_at for n in sim.networks] == [0, 8000, 16000]
    assert [n.round_index for n in sim.networks] == [5, 5, 5]
    # staggered by a full 8-device round, PANs on one logical channel never overlap
    assert snapshot.requested == snapshot.attempted == snapshot.received == 105
    assert snapshot.ratio == 100.0


def test_default_period_follows_built_network_count():
    assert Config.PAN_COUNT == 3
    sim = MultiPanSimulation()
    sim.build_networks(6, 5)
    sim.launch_all()
    assert sim.round_policy.pan_count == 6
    assert sim.round_policy.period(5, 1000, 1000) == 30000


def test_config_overrides_still_win_over_built_shape():
    Config.STAGGER_STEP = 1234
    Config.ROUND_PERIOD = 4321
    sim = MultiPanSimulation()
    sim.build_networks(2, 8)
    sim.launch_all()
    assert sim.stagger_policy.step_ms == 1234
    assert isinstance(sim.round_policy, FixedRoundPeriod)
    sim.run()
    assert [n.started_at for n in sim.networks] == [0, 1234]


@pytest.mark.parametrize("stop_ms", [0, -5000])
def test_non_positive_stop_is_rejected(stop_ms):
    sim = MultiPanSimulation()
    sim.build_networks(2, 3)
    with pytest.raises(ValueError, match="stop time must be positive"):
        sim.launch_all(stop_ms=stop_ms)
    assert not any(n.started for n in sim.networks)


def test_non_positive_config_sim_time_is_rejected():
    Config.SIM_TIME = 0
    sim = MultiPanSimulation()
    sim.build_networks(1, 2)
    with pytest.raises(ValueError):
        sim.launch_all()


def test_coordinator_only_pans_report_zero_ratio(capsys):
    sim = MultiPanSimulation(stagger_policy=LinearStagger(1000),
                             round_policy=FixedRoundPeriod(2000))
    sim.build_networks(2, 1)
    sim.launch_all(stop_ms=10000)
    snapshot = sim.run()

    assert snapshot.requested == snapshot.attempted == snapshot.received == 0
    assert all(n.round_index > 0 for n in sim.networks)
    assert "ratio: 0.0%" in capsys.readouterr().out


def test_separate_channels_when_not_shared():
    sim = MultiPanSimulation(shared_channel=False)
    sim.build_networks(2, 2)
    assert sim.networks[0].channel is not sim.networks[1].channel


def test_launch_twice_is_a_sequencing_error():
    sim = three_by_five()
    with pytest.raises(SequencingError):
        sim.launch_all()


def test_run_before_launch_is_a_sequencing_error():
    sim = MultiPanSimulation()
    sim.build_networks(1, 2)
    with pytest.raises(SequencingError):
        sim.run()


def test_stats_are_sampled_while_collecting():
    sim = three_by_five(data_collector=DataCollector())
    sim.run()
    samples = sim.data_collector.stats_sample_data
    assert [s['timestamp'] for s in samples] == list(range(1000, 30000, 1000))
    requested = [s['requested'] for s in samples]
    assert requested == sorted(requested)


def test_max_rounds_caps_every_network():
    sim = MultiPanSimulation(stagger_policy=LinearStagger(1000),
                             round_policy=FixedRoundPeriod(2000), max_rounds=3)
    sim.build_networks(3, 5)
    sim.launch_all()
    snapshot = sim.run()
    assert [n.round_index for n in sim.networks] == [3, 3, 3]
    assert snapshot.requested == 36
