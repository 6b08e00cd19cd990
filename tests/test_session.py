from __future__ import annotations

import pytest

from udpfetch.config import ProtocolConfig
from udpfetch.errors import AckTimeout, FetchError
from udpfetch.fetch import StaticFetcher
from udpfetch.packet import Request, decode_fragment
from udpfetch.session import Session, SessionOutcome, within_budget

PEER = ("127.0.0.1", 40000)


class RecordingSink:
    def __init__(self):
        self.sent: list[tuple[bytes, tuple[str, int]]] = []

    def sendto(self, data, addr):
        self.sent.append((data, addr))


class ScriptedTicket:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.waits: list[float] = []

    def clear(self):
        pass

    def wait(self, timeout=None):
        self.waits.append(timeout)
        return self.outcomes.pop(0)


class ScriptedAcks:
    def __init__(self, *outcomes):
        self.ticket = ScriptedTicket(outcomes)
        self.registered: list = []
        self.released: list = []

    def register(self, peer):
        self.registered.append(peer)
        return self.ticket

    def release(self, peer, ticket):
        assert ticket is self.ticket
        self.released.append(peer)


class CountingFetcher:
    def __init__(self, content=None):
        self.content = content
        self.calls = 0

    def fetch(self, resource_name):
        self.calls += 1
        if self.content is None:
            raise FetchError(resource_name, "unreachable")
        return self.content


def make_session(acks, fetcher, *, budget=5, clock_values=(0.0, 1.0)):
    return Session(
        request=Request("example.com", budget),
        peer=PEER,
        data=RecordingSink(),
        acks=acks,
        fetcher=fetcher,
        config=ProtocolConfig(ack_timeout_ms=3000),
        clock=iter(clock_values).__next__,
    )


def test_happy_path_done():
    acks = ScriptedAcks(True)
    session = make_session(acks, StaticFetcher({"example.com": b"z" * 2500}))
    report = session.run()

    assert report.outcome is SessionOutcome.DONE
    assert report.attempts == 1
    assert report.fragments_sent == 3
    assert report.error is None
    frags = [decode_fragment(d) for d, addr in session.data.sent]
    assert [f.payload_length for f in frags] == [1000, 1000, 500]
    assert all(addr == PEER for _, addr in session.data.sent)
    assert acks.ticket.waits == [3.0]
    assert acks.registered == acks.released == [PEER]


def test_ack_after_budget_is_resent():
    session = make_session(ScriptedAcks(True), StaticFetcher({"example.com": b"a"}), budget=1, clock_values=(0.0, 4.0))
    report = session.run()
    assert report.outcome is SessionOutcome.RESENT
    assert report.attempts == 1


def test_lost_ack_retries_once_then_succeeds():
    fetcher = CountingFetcher(b"q" * 1200)
    session = make_session(ScriptedAcks(False, True), fetcher)
    report = session.run()
    assert report.outcome is SessionOutcome.DONE
    assert report.attempts == 2
    assert fetcher.calls == 2
    assert report.fragments_sent == 4


def test_never_acked_stops_after_one_retry():
    fetcher = CountingFetcher(b"q" * 2500)
    acks = ScriptedAcks(False, False)
    session = make_session(acks, fetcher)
    report = session.run()
    assert report.outcome is SessionOutcome.FAILED
    assert isinstance(report.error, AckTimeout)
    assert report.attempts == 2
    assert fetcher.calls == 2
    assert report.fragments_sent == 6
    assert acks.ticket.outcomes == []
    assert acks.released == [PEER]


def test_fetch_failure_sends_nothing():
    session = make_session(ScriptedAcks(), CountingFetcher(None))
    report = session.run()
    assert report.outcome is SessionOutcome.FAILED
    assert isinstance(report.error, FetchError)
    assert report.fragments_sent == 0
    assert session.data.sent == []


def test_empty_resource_sends_one_fragment():
    session = make_session(ScriptedAcks(True), StaticFetcher({"example.com": b""}))
    report = session.run()
    assert report.fragments_sent == 1
    assert session.data.sent[0][0] == b"0,1,0xxx"


@pytest.mark.parametrize(
    "elapsed,budget,expected",
    [(0.0, 1, True), (0.999, 1, True), (1.0, 1, False), (4.0, 1, False)],
)
def test_within_budget(elapsed, budget, expected):
    assert within_budget(elapsed, budget) is expected
