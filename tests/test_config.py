from __future__ import annotations

import pytest

from udpfetch.config import ProtocolConfig


def test_defaults():
    c = ProtocolConfig()
    assert c.request_address == ("127.0.0.1", 11111)
    assert c.ack_address == ("127.0.0.1", 11112)
    assert c.max_payload == 1000


def test_explicit_and_ephemeral_ack_port():
    assert ProtocolConfig(request_port=9000, ack_port=9100).resolved_ack_port == 9100
    assert ProtocolConfig(request_port=0).resolved_ack_port == 0
    assert ProtocolConfig().with_ports(5000, 5001).ack_address == ("127.0.0.1", 5001)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_payload": 0},
        {"ack_timeout_ms": 0},
        {"receive_timeout_ms": -1},
        {"bufsize": 1000},
        {"request_port": 70000},
        {"request_port": 65535},
    ],
)
def test_invalid(kwargs):
    with pytest.raises(ValueError):
        ProtocolConfig(**kwargs)
