from __future__ import annotations

from udpfetch.net import Datagram, Impairment, TimedOut, UdpEndpoint


def test_impairment_direction():
    inbound_only = Impairment(loss_rate=1.0, outbound=False)
    assert inbound_only.should_drop(inbound=True) is True
    assert inbound_only.should_drop(inbound=False) is False
    assert Impairment().should_drop(inbound=True) is False


def test_receive_times_out_as_a_value():
    ep = UdpEndpoint.listening("127.0.0.1", 0, timeout_ms=50)
    try:
        got = ep.receive()
    finally:
        ep.close()
    assert isinstance(got, TimedOut)
    assert got.timeout_s == 0.05


def test_outbound_loss_drops_sends():
    server = UdpEndpoint.listening("127.0.0.1", 0, timeout_ms=200)
    lossy = UdpEndpoint.sending(impairment=Impairment(loss_rate=1.0, inbound=False))
    clean = UdpEndpoint.sending()
    try:
        lossy.sendto(b"lost", server.address)
        clean.sendto(b"kept", server.address)
        got = server.receive()
    finally:
        for ep in (server, lossy, clean):
            ep.close()
    assert isinstance(got, Datagram)
    assert got.data == b"kept"
