from __future__ import annotations


class UdpFetchError(Exception):
    pass


class MalformedRequest(UdpFetchError, ValueError):
    pass


class MalformedFragment(UdpFetchError, ValueError):
    pass


class IncompleteReassembly(UdpFetchError):
    pass


class FetchError(UdpFetchError):
    def __init__(self, resource_name: str, reason: str):
        super().__init__(f"could not fetch {resource_name!r}: {reason}")
        self.resource_name = resource_name
        self.reason = reason


class AckTimeout(UdpFetchError):
    """No acknowledgment arrived after the last permitted attempt."""


class ReceiveTimeout(UdpFetchError):
    """The requester waited a full receive window without a fragment."""
