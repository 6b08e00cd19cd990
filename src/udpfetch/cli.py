from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
import threading
from typing import Optional, TextIO

from .bench import run_benchmark
from .config import ProtocolConfig
from .constants import (
    DEFAULT_ACK_TIMEOUT_MS,
    DEFAULT_FETCH_TIMEOUT_S,
    DEFAULT_HOST,
    DEFAULT_MAX_PAYLOAD,
    DEFAULT_MAX_SESSIONS,
    DEFAULT_RECEIVE_TIMEOUT_MS,
    DEFAULT_REQUEST_PORT,
)
from .fetch import HttpFetcher
from .net import Impairment
from .packet import Request
from .requester import RequestDispatcher
from .responder import Responder
from .session import SessionReport


def impairment_from_args(args: argparse.Namespace) -> Impairment:
    return Impairment(
        args.loss_rate,
        args.delay_ms,
        inbound=args.impair != "outbound",
        outbound=args.impair != "inbound",
    )


def config_from_args(args: argparse.Namespace) -> ProtocolConfig:
    return ProtocolConfig(
        host=args.host,
        request_port=args.port,
        ack_port=args.ack_port,
        max_payload=args.max_payload,
        ack_timeout_ms=args.ack_timeout_ms,
        receive_timeout_ms=args.receive_timeout_ms,
    )


def watch_for_stop(responder: Responder, stream: TextIO) -> None:
    for line in stream:
        if line.strip().lower() == "stop":
            responder.stop()
            return


def cmd_serve(args: argparse.Namespace) -> int:
    def print_report(report: SessionReport) -> None:
        print(report.outcome.value, flush=True)

    responder = Responder(
        config_from_args(args),
        HttpFetcher(scheme=args.scheme, timeout_s=args.fetch_timeout),
        impairment=impairment_from_args(args),
        max_sessions=args.max_sessions,
        on_report=print_report,
    )
    print("Enter 'stop' to shut down the server.", flush=True)
    threading.Thread(target=watch_for_stop, args=(responder, sys.stdin), daemon=True).start()
    try:
        responder.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        responder.close()
    return 0


def prompt_positive_int(prompt: str) -> Optional[int]:
    raw = input(prompt).strip()
    if not raw.isdigit() or int(raw) <= 0:
        return None
    return int(raw)


def cmd_request(args: argparse.Namespace) -> int:
    name = args.name or input("Enter the web server name: ").strip()
    timer = args.timer if args.timer is not None else prompt_positive_int("Enter timer value in seconds: ")
    if not name or timer is None or timer <= 0:
        print("a web server name and a positive timer value are required", file=sys.stderr)
        return 2

    dispatcher = RequestDispatcher.open(
        config_from_args(args), impairment=impairment_from_args(args)
    )
    try:
        result = dispatcher.dispatch(Request(name, timer))
    finally:
        dispatcher.close()

    if result.ok and result.content is not None:
        print(result.content.decode("utf-8", errors="replace"))
        print("OK")
        return 0
    print("FAIL")
    return 1


def cmd_bench(args: argparse.Namespace) -> int:
    r = run_benchmark(
        size_bytes=args.size_bytes,
        time_budget_s=args.timer,
        loss_rate=args.loss_rate,
        delay_ms=args.delay_ms,
        max_payload=args.max_payload,
        ack_timeout_ms=args.ack_timeout_ms,
        receive_timeout_ms=args.receive_timeout_ms,
    )
    payload = {"role": "bench", **dataclasses.asdict(r)}
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="udpfetch", description="Fetch web resources over a fragmenting UDP relay.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("--max-payload", type=int, default=DEFAULT_MAX_PAYLOAD)
        x.add_argument("--ack-timeout-ms", type=int, default=DEFAULT_ACK_TIMEOUT_MS)
        x.add_argument("--receive-timeout-ms", type=int, default=DEFAULT_RECEIVE_TIMEOUT_MS)
        x.add_argument("--loss-rate", type=float, default=0.0)
        x.add_argument("--delay-ms", type=int, default=0)
        x.add_argument("--impair", choices=["both", "inbound", "outbound"], default="both")

    def add_ports(x: argparse.ArgumentParser) -> None:
        x.add_argument("--host", default=DEFAULT_HOST)
        x.add_argument("--port", type=int, default=DEFAULT_REQUEST_PORT)
        x.add_argument("--ack-port", type=int, default=None, help="defaults to --port + 1")

    serve = sub.add_parser("serve", help="answer requests by fetching the named web server")
    add_common(serve)
    add_ports(serve)
    serve.add_argument("--scheme", choices=["https", "http"], default="https")
    serve.add_argument("--fetch-timeout", type=float, default=DEFAULT_FETCH_TIMEOUT_S)
    serve.add_argument("--max-sessions", type=int, default=DEFAULT_MAX_SESSIONS)
    serve.set_defaults(func=cmd_serve)

    request = sub.add_parser("request", help="ask a responder for a web server's content")
    add_common(request)
    add_ports(request)
    request.add_argument("--name", default=None, help="web server name; prompted for if omitted")
    request.add_argument("--timer", type=int, default=None, help="time budget in seconds; prompted for if omitted")
    request.set_defaults(func=cmd_request)

    bench = sub.add_parser("bench", help="loopback run against an in-memory resource")
    add_common(bench)
    bench.add_argument("--size-bytes", type=int, default=2_500)
    bench.add_argument("--timer", type=int, default=5)
    bench.add_argument("--json", action="store_true")
    bench.set_defaults(func=cmd_bench)

    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        return int(args.func(args))
    except ValueError as exc:
        p.error(str(exc))


if __name__ == "__main__":
    raise SystemExit(main())
