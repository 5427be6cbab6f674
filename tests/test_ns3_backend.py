import pytest

pytest.importorskip("ns")

from MultiPanSimulation import MultiPanSimulation  # noqa: E402
from Ns3Backend import LrWpanBackend, Ns3Scheduler, setup_cppyy_callbacks  # noqa: E402
from RoundPolicy import FixedRoundPeriod, LinearStagger  # noqa: E402


@pytest.fixture
def ns3_kernel():
    setup_cppyy_callbacks()
    scheduler = Ns3Scheduler()
    return scheduler, LrWpanBackend(scheduler)


def test_scheduler_orders_by_time(ns3_kernel):
    scheduler, _ = ns3_kernel
    order = []
    scheduler.schedule(5, order.append, "b", context=1)
    scheduler.schedule(1, order.append, "a")
    scheduler.stop(10)
    scheduler.run()
    scheduler.destroy()
    assert order == ["a", "b"]


def test_lr_wpan_pan_sends_rounds(ns3_kernel):
    scheduler, backend = ns3_kernel
    sim = MultiPanSimulation(scheduler=scheduler, backend=backend,
                             stagger_policy=LinearStagger(1000),
                             round_policy=FixedRoundPeriod(5000))
    sim.build_networks(1, 3)
    sim.launch_all(stop_ms=4000)
    snapshot = sim.run()

    assert snapshot.requested == 2
    assert snapshot.attempted <= snapshot.requested
    assert snapshot.received <= snapshot.attempted


def test_include_dir_is_added_to_cppyy(monkeypatch, tmp_path):
    import cppyy

    added = []
    monkeypatch.setattr(cppyy, "add_include_path", added.append)
    setup_cppyy_callbacks(include_dir=str(tmp_path))
    assert added == [str(tmp_path)]
