from __future__ import annotations

import queue
import threading

import pytest

from udpfetch.config import ProtocolConfig
from udpfetch.fetch import StaticFetcher
from udpfetch.responder import Responder
from udpfetch.session import SessionReport


class Loopback:
    def __init__(self, resources: dict[str, bytes], **overrides):
        self.reports: "queue.Queue[SessionReport]" = queue.Queue()
        settings = dict(host="127.0.0.1", request_port=0, ack_port=0, poll_interval_ms=50)
        settings.update(overrides)
        self.responder = Responder(
            ProtocolConfig(**settings),
            StaticFetcher(resources),
            on_report=self.reports.put,
        )
        self.config = self.responder.bound_config()
        self.thread = threading.Thread(target=self.responder.serve_forever, daemon=True)
        self.thread.start()

    def next_report(self, timeout: float = 5.0) -> SessionReport:
        return self.reports.get(timeout=timeout)

    def close(self) -> None:
        self.responder.stop()
        self.thread.join(timeout=5.0)
        self.responder.close()


@pytest.fixture
def loopback():
    started: list[Loopback] = []

    def start(resources: dict[str, bytes], **overrides) -> Loopback:
        lb = Loopback(resources, **overrides)
        started.append(lb)
        return lb

    yield start
    for lb in started:
        lb.close()
