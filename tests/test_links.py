"""Tests for link objects and their pools."""

import threading

import pytest

from metabot_fleet.devices.links import (
    BluetoothLink,
    BluetoothLinkPool,
    LinkUnavailable,
    OSCLink,
    OSCLinkPool,
    PortConflict,
    TransportError,
)


def test_claim_marks_link_unavailable():
    pool = BluetoothLinkPool()
    link = pool.add(BluetoothLink("bt-1", "00:11"))

    pool.claim(link, "alpha")

    assert link.available is False
    assert link.owner == "alpha"
    assert pool.available_links() == []


def test_second_claim_fails():
    pool = BluetoothLinkPool()
    link = pool.add(BluetoothLink("bt-1"))
    pool.claim(link, "alpha")

    with pytest.raises(LinkUnavailable):
        pool.claim(link, "beta")

    assert link.owner == "alpha"


def test_release_by_other_owner_is_refused():
    pool = BluetoothLinkPool()
    link = pool.add(BluetoothLink("bt-1"))
    pool.claim(link, "alpha")

    pool.release(link, "beta")

    assert link.available is False
    pool.release(link, "alpha")
    assert link.available is True
    assert link.owner is None


def test_concurrent_claims_have_single_winner():
    pool = BluetoothLinkPool()
    link = pool.add(BluetoothLink("bt-1"))
    winners = []
    barrier = threading.Barrier(8)

    def contender(name: str) -> None:
        barrier.wait()
        try:
            pool.claim(link, name)
        except LinkUnavailable:
            return
        winners.append(name)

    threads = [threading.Thread(target=contender, args=(f"e{i}",)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(winners) == 1
    assert link.owner == winners[0]


def test_duplicate_link_name_rejected():
    pool = BluetoothLinkPool([BluetoothLink("bt-1")])

    with pytest.raises(ValueError):
        pool.add(BluetoothLink("bt-1"))


def test_send_without_writer_raises_transport_error():
    link = BluetoothLink("bt-1")

    with pytest.raises(TransportError):
        link.send(b"h\r\n")


def test_send_wraps_writer_failure():
    def broken(data: bytes) -> None:
        raise OSError("gone")

    link = BluetoothLink("bt-1", writer=broken)

    with pytest.raises(TransportError) as excinfo:
        link.send(b"h\r\n")

    assert isinstance(excinfo.value.__cause__, OSError)


def test_deliver_reaches_listener_only_when_set():
    link = BluetoothLink("bt-1")
    received = []

    link.deliver(b"dropped")
    link.set_listener(received.append)
    link.deliver(b"h=1\r\n")

    assert received == [b"h=1\r\n"]


def test_osc_register_conflict():
    pool = OSCLinkPool((9000, 9005))
    first = OSCLink("127.0.0.1", 9000)
    second = OSCLink("127.0.0.1", 9000)

    pool.register(first)
    pool.register(first)

    with pytest.raises(PortConflict):
        pool.register(second)


def test_osc_reassign_returns_free_port():
    pool = OSCLinkPool((9000, 9002))
    pool.register(OSCLink("127.0.0.1", 9000))
    pool.register(OSCLink("127.0.0.1", 9001))

    moved = pool.reassign_port(OSCLink("10.0.0.2", 9000))

    assert moved.port == 9002
    assert moved.address == "10.0.0.2"


def test_osc_reassign_exhausted_range():
    pool = OSCLinkPool((9000, 9000))
    pool.register(OSCLink("127.0.0.1", 9000))

    with pytest.raises(PortConflict):
        pool.reassign_port(OSCLink("127.0.0.1", 9000))


def test_osc_unregister_frees_port():
    pool = OSCLinkPool((9000, 9005))
    link = OSCLink("127.0.0.1", 9000)
    pool.register(link)

    pool.unregister(link)

    assert pool.is_bound(9000) is False


def test_osc_deliver_only_while_listening():
    link = OSCLink("127.0.0.1", 9000)
    received = []
    link.refresh(received.append)

    link.deliver(b"/dx 5")
    link.listen()
    link.deliver(b"/dy 5")
    link.close()
    link.deliver(b"/dx 6")

    assert received == [b"/dy 5"]


def test_invalid_osc_port_range():
    with pytest.raises(ValueError):
        OSCLinkPool((9010, 9000))
