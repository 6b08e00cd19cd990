from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from .config import ProtocolConfig
from .constants import MAX_ATTEMPTS
from .errors import AckTimeout, FetchError, UdpFetchError
from .fetch import Fetcher
from .fragment import fragment
from .net import Address
from .packet import Request

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    START = "start"
    FETCHING = "fetching"
    TRANSMITTING = "transmitting"
    AWAITING_ACK = "awaiting_ack"
    RETRYING = "retrying"
    DONE = "done"
    FAILED = "failed"


class SessionOutcome(enum.Enum):
    DONE = "DONE"
    RESENT = "RESENT"
    FAILED = "FAILED"


class DatagramSink(Protocol):
    def sendto(self, data: bytes, addr: Address) -> None: ...


class AckTicket(Protocol):
    def clear(self) -> None: ...

    def wait(self, timeout: Optional[float] = None) -> bool: ...


class AckChannel(Protocol):
    def register(self, peer: Address) -> AckTicket: ...

    def release(self, peer: Address, ticket: AckTicket) -> None: ...


@dataclass(frozen=True, slots=True)
class SessionReport:
    peer: Address
    resource_name: str
    outcome: SessionOutcome
    attempts: int
    fragments_sent: int
    elapsed_s: float
    error: Optional[UdpFetchError] = None


def within_budget(elapsed_s: float, budget_s: float) -> bool:
    return elapsed_s < budget_s


@dataclass(slots=True)
class Session:
    """Serves one request: fetch, fragment, transmit, await the ack.

    A missing ack triggers one full retry (fetch included). The outcome of a
    delivered response is DONE when the ack arrived inside the requester's
    time budget and RESENT otherwise.
    """

    request: Request
    peer: Address
    data: DatagramSink
    acks: AckChannel
    fetcher: Fetcher
    config: ProtocolConfig
    clock: Callable[[], float] = time.monotonic

    def run(self) -> SessionReport:
        start = self.clock()
        attempts = 0
        fragments_sent = 0
        content = b""
        error: Optional[UdpFetchError] = None
        state = SessionState.START

        ticket = self.acks.register(self.peer)
        try:
            while state not in (SessionState.DONE, SessionState.FAILED):
                logger.debug("session %s:%d %s", *self.peer, state.value)

                if state in (SessionState.START, SessionState.RETRYING):
                    attempts += 1
                    state = SessionState.FETCHING

                elif state is SessionState.FETCHING:
                    try:
                        content = self.fetcher.fetch(self.request.resource_name)
                    except FetchError as exc:
                        logger.warning("session %s:%d fetch failed: %s", *self.peer, exc)
                        error = exc
                        state = SessionState.FAILED
                    else:
                        state = SessionState.TRANSMITTING

                elif state is SessionState.TRANSMITTING:
                    ticket.clear()
                    fragments_sent += self._transmit(content)
                    state = SessionState.AWAITING_ACK

                elif state is SessionState.AWAITING_ACK:
                    if ticket.wait(self.config.ack_timeout_ms / 1000.0):
                        logger.debug("session %s:%d ack received", *self.peer)
                        state = SessionState.DONE
                    elif attempts < MAX_ATTEMPTS:
                        logger.info("session %s:%d ack not received in time, resending", *self.peer)
                        state = SessionState.RETRYING
                    else:
                        error = AckTimeout(
                            f"no ack from {self.peer[0]}:{self.peer[1]} after {attempts} attempts"
                        )
                        state = SessionState.FAILED
        finally:
            self.acks.release(self.peer, ticket)

        elapsed = self.clock() - start
        if state is SessionState.FAILED:
            outcome = SessionOutcome.FAILED
        elif within_budget(elapsed, self.request.time_budget_s):
            outcome = SessionOutcome.DONE
        else:
            outcome = SessionOutcome.RESENT

        report = SessionReport(
            peer=self.peer,
            resource_name=self.request.resource_name,
            outcome=outcome,
            attempts=attempts,
            fragments_sent=fragments_sent,
            elapsed_s=elapsed,
            error=error,
        )
        logger.info(
            "session %s:%d %s %s in %.3fs (attempts=%d fragments=%d)",
            *self.peer,
            self.request.resource_name,
            outcome.value,
            elapsed,
            attempts,
            fragments_sent,
        )
        return report

    def _transmit(self, content: bytes) -> int:
        sent = 0
        for frag in fragment(content, self.config.max_payload):
            self.data.sendto(frag.to_bytes(), self.peer)
            sent += 1
        return sent
