from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Optional, Tuple

from .constants import (
    DEFAULT_ACK_TIMEOUT_MS,
    DEFAULT_BUFSIZE,
    DEFAULT_HOST,
    DEFAULT_MAX_PAYLOAD,
    DEFAULT_POLL_INTERVAL_MS,
    DEFAULT_RECEIVE_TIMEOUT_MS,
    DEFAULT_REQUEST_PORT,
)

# "<index>,<total>,<length>xxx" with three 10-digit fields
MAX_HEADER_LEN = 3 * 10 + 2 + 3


@dataclass(frozen=True, slots=True)
class ProtocolConfig:
    """Parameters both peers must agree on.

    ``ack_port`` defaults to ``request_port + 1``. A request port of 0 asks
    the OS for an ephemeral port, in which case the ack port is ephemeral too.
    """

    host: str = DEFAULT_HOST
    request_port: int = DEFAULT_REQUEST_PORT
    ack_port: Optional[int] = None
    max_payload: int = DEFAULT_MAX_PAYLOAD
    ack_timeout_ms: int = DEFAULT_ACK_TIMEOUT_MS
    receive_timeout_ms: int = DEFAULT_RECEIVE_TIMEOUT_MS
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    bufsize: int = DEFAULT_BUFSIZE

    def __post_init__(self) -> None:
        if not 0 <= self.request_port <= 65535:
            raise ValueError(f"request port out of range: {self.request_port}")
        if self.ack_port is not None and not 0 <= self.ack_port <= 65535:
            raise ValueError(f"ack port out of range: {self.ack_port}")
        if self.ack_port is None and self.request_port == 65535:
            raise ValueError("ack port must be given when the request port is 65535")
        if self.max_payload <= 0:
            raise ValueError("max_payload must be positive")
        for name in ("ack_timeout_ms", "receive_timeout_ms", "poll_interval_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.bufsize < self.max_payload + MAX_HEADER_LEN:
            raise ValueError(
                f"bufsize {self.bufsize} cannot hold a {self.max_payload}-byte fragment"
            )

    @property
    def resolved_ack_port(self) -> int:
        if self.ack_port is not None:
            return self.ack_port
        return self.request_port + 1 if self.request_port else 0

    @property
    def request_address(self) -> Tuple[str, int]:
        return (self.host, self.request_port)

    @property
    def ack_address(self) -> Tuple[str, int]:
        return (self.host, self.resolved_ack_port)

    def with_ports(self, request_port: int, ack_port: int) -> "ProtocolConfig":
        return dataclasses.replace(self, request_port=request_port, ack_port=ack_port)
