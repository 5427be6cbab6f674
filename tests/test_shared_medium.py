import pytest

from MacPrimitives import DataRequest, MacStatus, StartRequest
from Topology import ChannelModelConfig


@pytest.fixture
def channel(backend):
    return backend.create_channel(ChannelModelConfig())


@pytest.fixture
def trio(backend, channel):
    """Coordinator 00:01 with leaves 00:02 and 00:03, all collecting callbacks."""
    events = []
    devices = []
    for address in ("00:01", "00:02", "00:03"):
        device = backend.create_device(address)
        backend.bind_channel(device, channel)
        backend.set_data_confirm_callback(device, lambda c: events.append(("confirm", c)))
        backend.set_data_indication_callback(device, lambda i: events.append(("indication", i)))
        devices.append(device)
    return devices, events


def request(src, dst="00:01", ack=False):
    return DataRequest(src_address=src, dst_address=dst, dst_pan_id=0, payload_size=10,
                       ack_requested=ack)


def kinds(events):
    return [kind for kind, _ in events]


def test_single_frame_is_delivered_confirm_first(scheduler, backend, trio):
    (coord, leaf, _), events = trio
    scheduler.schedule(10, backend.send_data, leaf, request("00:02"))
    scheduler.run()

    assert kinds(events) == ["confirm", "indication"]
    assert events[0][1].status is MacStatus.SUCCESS
    assert events[1][1].src_address == "00:02"
    assert events[1][1].dst_address == "00:01"
    record = backend.tx_log[0]
    assert record.delivered and not record.collided
    assert record.end_ms == pytest.approx(10.864)


def test_overlapping_frames_collide(scheduler, backend, trio):
    (_, a, b), events = trio
    scheduler.schedule(10, backend.send_data, a, request("00:02"))
    scheduler.schedule(10.5, backend.send_data, b, request("00:03"))
    scheduler.run()

    assert kinds(events) == ["confirm", "confirm"]
    assert all(r.collided and not r.delivered for r in backend.tx_log)


def test_collision_reports_no_ack_when_ack_requested(scheduler, backend, trio):
    (_, a, b), events = trio
    scheduler.schedule(10, backend.send_data, a, request("00:02", ack=True))
    scheduler.schedule(10, backend.send_data, b, request("00:03", ack=True))
    scheduler.run()
    assert [c.status for _, c in events] == [MacStatus.NO_ACK, MacStatus.NO_ACK]


def test_other_channel_object_neither_interferes_nor_delivers(scheduler, backend, trio):
    (_, a, b), events = trio
    backend.bind_channel(b, backend.create_channel(ChannelModelConfig()))
    scheduler.schedule(10, backend.send_data, a, request("00:02"))
    scheduler.schedule(10, backend.send_data, b, request("00:03"))
    scheduler.run()

    delivered = {r.src_address: r.delivered for r in backend.tx_log}
    assert delivered == {"00:02": True, "00:03": False}
    assert not any(r.collided for r in backend.tx_log)
    assert kinds(events).count("indication") == 1


def test_other_logical_channel_is_not_heard(scheduler, backend, trio):
    (coord, leaf, _), events = trio
    backend.tune(coord, 12)
    scheduler.schedule(10, backend.send_data, leaf, request("00:02"))
    scheduler.run()
    assert kinds(events) == ["confirm"]
    assert backend.tx_log[0].logical_channel == 11


def test_out_of_range_is_not_delivered(scheduler, backend, trio):
    (coord, leaf, _), events = trio
    backend.set_position(coord, (0.0, 0.0, 0.0))
    backend.set_position(leaf, (100.0, 0.0, 0.0))
    scheduler.schedule(10, backend.send_data, leaf, request("00:02"))
    scheduler.run()
    assert kinds(events) == ["confirm"]


def test_busy_device_fails_channel_access(scheduler, backend, trio):
    (_, leaf, _), events = trio
    scheduler.schedule(10, backend.send_data, leaf, request("00:02"))
    scheduler.schedule(10, backend.send_data, leaf, request("00:02"))
    scheduler.run()

    statuses = [c.status for kind, c in events if kind == "confirm"]
    assert statuses == [MacStatus.CHANNEL_ACCESS_FAILURE, MacStatus.SUCCESS]


def test_start_beacon_confirms_and_tunes(scheduler, backend, trio):
    (coord, _, _), _ = trio
    confirms = []
    backend.set_start_confirm_callback(coord, confirms.append)
    backend.start_beacon(coord, StartRequest(pan_id=3, logical_channel=15))
    scheduler.run()

    assert confirms[0].status is MacStatus.SUCCESS
    assert coord.beaconing and coord.pan_id == 3 and coord.logical_channel == 15


def test_unbound_device_cannot_send(backend):
    device = backend.create_device("00:09")
    with pytest.raises(RuntimeError):
        backend.send_data(device, request("00:09"))


def test_duplicate_address_is_rejected(backend):
    backend.create_device("00:01")
    with pytest.raises(ValueError):
        backend.create_device("00:01")
