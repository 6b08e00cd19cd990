from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from .config import ProtocolConfig
from .constants import DEFAULT_MAX_SESSIONS
from .errors import MalformedRequest
from .fetch import Fetcher
from .net import Address, Datagram, Impairment, UdpEndpoint
from .packet import decode_request
from .session import Session, SessionReport

logger = logging.getLogger(__name__)


class AckRouter:
    """Owns the ack port and wakes the session waiting on each sender address.

    The requester acks from the socket it sent the request with, so the ack's
    source address identifies the session. Datagram contents are ignored.
    """

    def __init__(self, udp: UdpEndpoint, bufsize: int):
        self.udp = udp
        self.bufsize = bufsize
        self._waiters: dict[Address, threading.Event] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def register(self, peer: Address) -> threading.Event:
        event = threading.Event()
        with self._lock:
            if peer in self._waiters:
                logger.warning("replacing pending ack wait for %s:%d", *peer)
            self._waiters[peer] = event
        return event

    def release(self, peer: Address, ticket: threading.Event) -> None:
        # a newer session for the same peer may have replaced this ticket
        with self._lock:
            if self._waiters.get(peer) is ticket:
                del self._waiters[peer]

    def dispatch(self, datagram: Datagram) -> bool:
        with self._lock:
            event = self._waiters.get(datagram.addr)
        if event is None:
            logger.debug("ack from %s:%d matches no session; dropped", *datagram.addr)
            return False
        event.set()
        return True

    def run(self) -> None:
        while not self._stop.is_set():
            result = self.udp.receive(self.bufsize)
            if isinstance(result, Datagram):
                self.dispatch(result)

    def start(self) -> None:
        self._thread = threading.Thread(target=self.run, name="ack-router", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None


class Responder:
    def __init__(
        self,
        config: ProtocolConfig,
        fetcher: Fetcher,
        *,
        impairment: Impairment | None = None,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        on_report: Callable[[SessionReport], None] | None = None,
    ):
        self.config = config
        self.fetcher = fetcher
        self.on_report = on_report
        self.requests = UdpEndpoint.listening(
            config.host,
            config.request_port,
            timeout_ms=config.poll_interval_ms,
            impairment=impairment,
        )
        try:
            ack_ep = UdpEndpoint.listening(
                config.host,
                config.resolved_ack_port,
                timeout_ms=config.poll_interval_ms,
                impairment=impairment,
            )
        except OSError:
            self.requests.close()
            raise
        self.acks = AckRouter(ack_ep, config.bufsize)
        self._pool = ThreadPoolExecutor(max_workers=max_sessions, thread_name_prefix="session")
        self._stop = threading.Event()

    @property
    def request_address(self) -> Address:
        return self.requests.address

    @property
    def ack_address(self) -> Address:
        return self.acks.udp.address

    def bound_config(self) -> ProtocolConfig:
        """The config a requester needs to reach this responder."""
        return self.config.with_ports(self.request_address[1], self.ack_address[1])

    def handle_datagram(self, datagram: Datagram) -> Optional[Future]:
        try:
            request = decode_request(datagram.data)
        except MalformedRequest as exc:
            logger.warning("dropping malformed request from %s:%d: %s", *datagram.addr, exc)
            return None

        logger.info(
            "request from %s:%d: %s, timer %d seconds",
            *datagram.addr,
            request.resource_name,
            request.time_budget_s,
        )
        session = Session(
            request=request,
            peer=datagram.addr,
            data=self.requests,
            acks=self.acks,
            fetcher=self.fetcher,
            config=self.config,
        )
        future = self._pool.submit(session.run)
        future.add_done_callback(self._session_finished)
        return future

    def _session_finished(self, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("session crashed", exc_info=exc)
            return
        if self.on_report is not None:
            self.on_report(future.result())

    def serve_forever(self) -> None:
        logger.info(
            "listening for requests on %s:%d, acks on %s:%d",
            *self.request_address,
            *self.ack_address,
        )
        self.acks.start()
        while not self._stop.is_set():
            result = self.requests.receive(self.config.bufsize)
            if isinstance(result, Datagram):
                self.handle_datagram(result)
        logger.info("request loop stopped")

    def stop(self) -> None:
        self._stop.set()

    def close(self) -> None:
        self.stop()
        # in-flight sessions can still be acked until the pool drains
        self._pool.shutdown(wait=True)
        self.acks.stop()
        self.acks.udp.close()
        self.requests.close()

    def __enter__(self) -> "Responder":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
