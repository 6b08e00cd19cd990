from __future__ import annotations

import random
import socket
import time
from dataclasses import dataclass
from typing import Tuple, Union

from .constants import DEFAULT_BUFSIZE

Address = Tuple[str, int]


@dataclass(frozen=True, slots=True)
class Impairment:
    """Simulated loss and delay, applied to either direction of an endpoint."""

    loss_rate: float = 0.0
    delay_ms: int = 0
    inbound: bool = True
    outbound: bool = True

    def should_drop(self, inbound: bool) -> bool:
        if not (self.inbound if inbound else self.outbound):
            return False
        return random.random() < self.loss_rate

    def sleep_if_needed(self) -> None:
        if self.delay_ms > 0:
            time.sleep(self.delay_ms / 1000.0)


@dataclass(frozen=True, slots=True)
class Datagram:
    data: bytes
    addr: Address


@dataclass(frozen=True, slots=True)
class TimedOut:
    timeout_s: float | None


Received = Union[Datagram, TimedOut]


class UdpEndpoint:
    def __init__(self, sock: socket.socket, impairment: Impairment | None = None):
        self.sock = sock
        self.impairment = impairment or Impairment()

    @classmethod
    def listening(
        cls,
        host: str,
        port: int,
        timeout_ms: int = 0,
        impairment: Impairment | None = None,
    ) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.bind((host, port))
        if timeout_ms > 0:
            sock.settimeout(timeout_ms / 1000.0)
        return cls(sock, impairment)

    @classmethod
    def sending(
        cls,
        timeout_ms: int = 0,
        impairment: Impairment | None = None,
    ) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        if timeout_ms > 0:
            sock.settimeout(timeout_ms / 1000.0)
        return cls(sock, impairment)

    @property
    def address(self) -> Address:
        host, port = self.sock.getsockname()[:2]
        return host, port

    def sendto(self, data: bytes, addr: Address) -> None:
        if self.impairment.should_drop(inbound=False):
            return
        if self.impairment.outbound:
            self.impairment.sleep_if_needed()
        self.sock.sendto(data, addr)

    def receive(self, bufsize: int = DEFAULT_BUFSIZE) -> Received:
        """Bounded receive: the socket timeout elapsing is a value, not an error."""
        while True:
            try:
                data, addr = self.sock.recvfrom(bufsize)
            except TimeoutError:
                return TimedOut(self.sock.gettimeout())
            if self.impairment.should_drop(inbound=True):
                continue
            if self.impairment.inbound:
                self.impairment.sleep_if_needed()
            return Datagram(data, addr)

    def close(self) -> None:
        self.sock.close()
