from MacPrimitives import MacStatus
from TxStatistics import TxStatistics


def test_fresh_counters_report_zero_ratio():
    snap = TxStatistics().snapshot()
    assert (snap.requested, snap.attempted, snap.received) == (0, 0, 0)
    assert snap.ratio == 0.0


def test_ratio_is_percentage_of_attempted():
    stats = TxStatistics()
    for _ in range(5):
        stats.record_requested()
    for _ in range(4):
        stats.record_attempted(MacStatus.SUCCESS)
    for _ in range(3):
        stats.record_received()

    snap = stats.snapshot()
    assert snap.requested == 5
    assert snap.attempted == 4
    assert snap.received == 3
    assert snap.ratio == 75.0


def test_status_counts_split_by_confirm_status():
    stats = TxStatistics()
    stats.record_attempted(MacStatus.SUCCESS)
    stats.record_attempted(MacStatus.NO_ACK)
    stats.record_attempted(MacStatus.NO_ACK)
    assert stats.status_counts[MacStatus.NO_ACK] == 2
    assert stats.status_counts[MacStatus.SUCCESS] == 1
    assert stats.attempted == 3


def test_format_report_line():
    stats = TxStatistics()
    stats.record_requested()
    stats.record_requested()
    stats.record_attempted(MacStatus.SUCCESS)
    stats.record_attempted(MacStatus.SUCCESS)
    stats.record_attempted(MacStatus.SUCCESS)
    stats.record_received()

    assert stats.format_report() == (
        "total Requested TX: 2\ttotal Tried TX: 3\t"
        "total Successful RX: 1\tratio: 33.3%"
    )


def test_format_report_with_nothing_attempted():
    assert TxStatistics().format_report().endswith("ratio: 0.0%")
