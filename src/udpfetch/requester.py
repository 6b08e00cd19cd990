from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .config import ProtocolConfig
from .constants import ACK_PAYLOAD
from .errors import MalformedFragment, ReceiveTimeout
from .fragment import ReassemblyBuffer
from .net import Impairment, TimedOut, UdpEndpoint
from .packet import Request, decode_fragment
from .session import within_budget

logger = logging.getLogger(__name__)


class DispatchStatus(enum.Enum):
    OK = "OK"
    FAIL = "FAIL"


@dataclass(frozen=True, slots=True)
class DispatchResult:
    status: DispatchStatus
    elapsed_s: float
    fragments_received: int = 0
    content: Optional[bytes] = None
    error: Optional[ReceiveTimeout] = None

    @property
    def ok(self) -> bool:
        return self.status is DispatchStatus.OK


@dataclass(slots=True)
class RequestDispatcher:
    """Sends one request and collects the fragmented response.

    The ack is only sent when the full response arrived inside the time
    budget; a late response is reported as FAIL and left unacknowledged so
    the responder runs its own retry path.
    """

    udp: UdpEndpoint
    config: ProtocolConfig
    clock: Callable[[], float] = time.monotonic

    @classmethod
    def open(cls, config: ProtocolConfig, impairment: Impairment | None = None) -> "RequestDispatcher":
        udp = UdpEndpoint.sending(timeout_ms=config.receive_timeout_ms, impairment=impairment)
        return cls(udp, config)

    def dispatch(self, request: Request) -> DispatchResult:
        start = self.clock()
        self.udp.sendto(request.to_bytes(), self.config.request_address)
        logger.debug("sent request %s to %s:%d", request, *self.config.request_address)

        buffer = ReassemblyBuffer()
        while not buffer.complete:
            result = self.udp.receive(self.config.bufsize)
            if isinstance(result, TimedOut):
                elapsed = self.clock() - start
                logger.info(
                    "no fragment within %.1fs (%d of %s received)",
                    result.timeout_s or 0.0,
                    buffer.received,
                    buffer.total or "?",
                )
                return DispatchResult(
                    status=DispatchStatus.FAIL,
                    elapsed_s=elapsed,
                    fragments_received=buffer.received,
                    error=ReceiveTimeout(f"receive timed out after {buffer.received} fragments"),
                )
            try:
                buffer.accept(decode_fragment(result.data, self.config.max_payload))
            except MalformedFragment as exc:
                logger.warning("dropping fragment from %s:%d: %s", *result.addr, exc)

        elapsed = self.clock() - start
        if not within_budget(elapsed, request.time_budget_s):
            logger.info(
                "response complete after %.3fs, budget was %ds; not acknowledging",
                elapsed,
                request.time_budget_s,
            )
            return DispatchResult(
                status=DispatchStatus.FAIL,
                elapsed_s=elapsed,
                fragments_received=buffer.received,
            )

        self.udp.sendto(ACK_PAYLOAD, self.config.ack_address)
        logger.debug("ack sent to %s:%d", *self.config.ack_address)
        return DispatchResult(
            status=DispatchStatus.OK,
            elapsed_s=elapsed,
            fragments_received=buffer.received,
            content=buffer.result(),
        )

    def close(self) -> None:
        self.udp.close()
