from __future__ import annotations

import threading
from dataclasses import dataclass

from .config import ProtocolConfig
from .constants import DEFAULT_ACK_TIMEOUT_MS, DEFAULT_MAX_PAYLOAD, DEFAULT_RECEIVE_TIMEOUT_MS
from .fetch import StaticFetcher
from .fragment import fragment_count
from .net import Impairment
from .packet import Request
from .requester import RequestDispatcher
from .responder import Responder
from .session import SessionReport

BENCH_RESOURCE = "bench.local"


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    status: str
    session_outcome: str | None
    bytes_transferred: int
    fragments: int
    duration_s: float
    throughput_mbps: float
    session_attempts: int


def run_benchmark(
    *,
    size_bytes: int,
    time_budget_s: int = 5,
    loss_rate: float = 0.0,
    delay_ms: int = 0,
    max_payload: int = DEFAULT_MAX_PAYLOAD,
    ack_timeout_ms: int = DEFAULT_ACK_TIMEOUT_MS,
    receive_timeout_ms: int = DEFAULT_RECEIVE_TIMEOUT_MS,
) -> BenchmarkResult:
    payload = b"A" * size_bytes
    impair = Impairment(loss_rate=loss_rate, delay_ms=delay_ms)
    config = ProtocolConfig(
        host="127.0.0.1",
        request_port=0,
        ack_port=0,
        max_payload=max_payload,
        ack_timeout_ms=ack_timeout_ms,
        receive_timeout_ms=receive_timeout_ms,
        poll_interval_ms=50,
    )

    reports: list[SessionReport] = []
    finished = threading.Event()

    def on_report(report: SessionReport) -> None:
        reports.append(report)
        finished.set()

    responder = Responder(
        config,
        StaticFetcher({BENCH_RESOURCE: payload}),
        impairment=impair,
        max_sessions=1,
        on_report=on_report,
    )
    t = threading.Thread(target=responder.serve_forever, daemon=True)
    t.start()

    dispatcher = RequestDispatcher.open(responder.bound_config(), impairment=impair)
    try:
        result = dispatcher.dispatch(Request(BENCH_RESOURCE, time_budget_s))
        # a lost or withheld ack leaves the session retrying; wait it out
        finished.wait(timeout=2 * (ack_timeout_ms / 1000.0) + time_budget_s + 1.0)
    finally:
        dispatcher.close()
        responder.stop()
        t.join(timeout=10.0)
        responder.close()

    duration_s = max(0.001, result.elapsed_s)
    transferred = len(result.content or b"")
    return BenchmarkResult(
        status=result.status.value,
        session_outcome=reports[0].outcome.value if reports else None,
        bytes_transferred=transferred,
        fragments=fragment_count(size_bytes, max_payload),
        duration_s=duration_s,
        throughput_mbps=(transferred * 8 / 1_000_000) / duration_s,
        session_attempts=reports[0].attempts if reports else 0,
    )
