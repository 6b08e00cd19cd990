from __future__ import annotations

DELIMITER = b"xxx"  # ends the fragment header; payload follows
FIELD_SEP = ","
ACK_PAYLOAD = b"ACK"  # contents are never inspected

DEFAULT_HOST = "127.0.0.1"
DEFAULT_REQUEST_PORT = 11111
DEFAULT_MAX_PAYLOAD = 1000
DEFAULT_ACK_TIMEOUT_MS = 3000
DEFAULT_RECEIVE_TIMEOUT_MS = 5000
DEFAULT_POLL_INTERVAL_MS = 500
DEFAULT_BUFSIZE = 65535
DEFAULT_MAX_SESSIONS = 16
DEFAULT_FETCH_TIMEOUT_S = 10.0

MAX_ATTEMPTS = 2  # initial transmission + one retry
