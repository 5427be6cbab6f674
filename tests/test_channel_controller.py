import pytest

from ChannelController import ChannelController
from MultiPanSimulation import HopRequest, MultiPanSimulation
from RoundPolicy import FixedRoundPeriod, LinearStagger
from Topology import ChannelModelConfig


def hopping_simulation():
    """One PAN, coordinator plus one leaf transmitting at 1, 3, 5, 7 and 9 s."""
    sim = MultiPanSimulation(stagger_policy=LinearStagger(1000),
                             round_policy=FixedRoundPeriod(2000))
    sim.build_networks(1, 2)
    sim.launch_all(stop_ms=10000)
    return sim


def channel_ids(sim):
    return [record.channel_id for record in sim.backend.tx_log]


def test_leaf_swap_at_3100_lowers_ratio():
    sim = hopping_simulation()
    sim.schedule_hops([HopRequest(network_id=0, device_index=1, at_ms=3100)])
    snapshot = sim.run()

    assert channel_ids(sim) == [0, 0, 1, 1, 1]
    assert (snapshot.requested, snapshot.attempted, snapshot.received) == (5, 5, 2)
    assert snapshot.ratio == 40.0

    [swap] = sim.controller.history
    assert swap.at_ms == 3100
    assert swap.device_address == "00:02"
    assert (swap.old_channel_id, swap.new_channel_id) == (0, 1)
    assert sim.controller.pending == 0


def test_swap_and_swap_back():
    sim = hopping_simulation()
    sim.schedule_hops([
        HopRequest(network_id=0, device_index=1, at_ms=3100, channel_index=1),
        HopRequest(network_id=0, device_index=1, at_ms=6100, channel_index=0),
    ])
    snapshot = sim.run()

    assert channel_ids(sim) == [0, 0, 1, 0, 0]
    assert snapshot.received == 4
    assert snapshot.ratio == 80.0


def test_whole_network_moves_together():
    sim = hopping_simulation()
    sim.schedule_hops([HopRequest(network_id=0, device_index=None, at_ms=3100)])
    snapshot = sim.run()

    network = sim.network(0)
    assert network.channel is sim.get_channel(1)
    assert len(sim.controller.history) == 2
    assert channel_ids(sim) == [0, 0, 1, 1, 1]
    assert snapshot.received == 5


def test_swap_is_printed(capsys):
    sim = hopping_simulation()
    sim.schedule_hops([HopRequest(network_id=0, device_index=1, at_ms=3100)])
    sim.run()
    assert "device 00:02's channel has been changed to: 1" in capsys.readouterr().out


def test_reassignment_in_the_past_is_rejected(scheduler, backend):
    controller = ChannelController(scheduler, backend)
    device = backend.create_device("00:01")
    channel = backend.create_channel(ChannelModelConfig())
    scheduler.schedule(50, lambda: None)
    scheduler.run()
    with pytest.raises(ValueError):
        controller.schedule_reassignment(device, channel, 10)


def test_unknown_hop_target_is_rejected():
    sim = hopping_simulation()
    with pytest.raises(KeyError):
        sim.schedule_hops([HopRequest(network_id=9, device_index=0, at_ms=100)])
    with pytest.raises(ValueError):
        sim.schedule_hops([HopRequest(network_id=0, device_index=5, at_ms=100)])
