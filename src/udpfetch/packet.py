from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .constants import DELIMITER, FIELD_SEP
from .errors import MalformedFragment, MalformedRequest


@dataclass(frozen=True, slots=True)
class Request:
    resource_name: str
    time_budget_s: int

    def to_bytes(self) -> bytes:
        return encode_request(self.resource_name, self.time_budget_s)


@dataclass(frozen=True, slots=True)
class Fragment:
    index: int
    total: int
    payload: bytes = b""

    def __post_init__(self) -> None:
        if self.total < 1 or not 0 <= self.index < self.total:
            raise ValueError(f"fragment index {self.index} outside [0, {self.total})")

    @property
    def payload_length(self) -> int:
        return len(self.payload)

    @property
    def last(self) -> bool:
        return self.index == self.total - 1

    def to_bytes(self) -> bytes:
        return encode_fragment_header(self.index, self.total, self.payload_length) + self.payload


def encode_request(resource_name: str, time_budget_s: int) -> bytes:
    if not resource_name or FIELD_SEP in resource_name:
        raise ValueError(f"invalid resource name: {resource_name!r}")
    if time_budget_s <= 0:
        raise ValueError(f"time budget must be positive, got {time_budget_s}")
    return f"{resource_name}{FIELD_SEP}{time_budget_s}".encode("utf-8")


def decode_request(raw: bytes) -> Request:
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedRequest("request is not valid UTF-8") from exc

    name, sep, budget = text.partition(FIELD_SEP)
    if not sep:
        raise MalformedRequest(f"expected '<name>,<seconds>', got {text!r}")
    name = name.strip()
    budget = budget.strip()
    if not name:
        raise MalformedRequest("empty resource name")
    if not (budget.isascii() and budget.isdigit()) or int(budget) <= 0:
        raise MalformedRequest(f"time budget is not a positive integer: {budget!r}")
    return Request(resource_name=name, time_budget_s=int(budget))


def encode_fragment_header(index: int, total: int, payload_length: int) -> bytes:
    if index < 0 or total < 1 or payload_length < 0:
        raise ValueError("header fields must be non-negative and total >= 1")
    if index >= total:
        raise ValueError(f"index {index} >= total {total}")
    return f"{index},{total},{payload_length}".encode("ascii") + DELIMITER


def decode_fragment(raw: bytes, max_payload: Optional[int] = None) -> Fragment:
    # Split at the first delimiter only; the payload may contain it.
    header, sep, payload = raw.partition(DELIMITER)
    if not sep:
        raise MalformedFragment("fragment header delimiter missing")

    fields = header.split(FIELD_SEP.encode("ascii"))
    if len(fields) != 3 or not all(f.isdigit() for f in fields):
        raise MalformedFragment(f"unparseable fragment header: {header!r}")
    index, total, length = (int(f) for f in fields)

    if total < 1 or index >= total:
        raise MalformedFragment(f"fragment index {index} outside [0, {total})")
    if len(payload) != length:
        raise MalformedFragment(
            f"payload length mismatch: header says {length}, got {len(payload)}"
        )
    if max_payload is not None and length > max_payload:
        raise MalformedFragment(f"payload of {length} bytes exceeds the {max_payload}-byte limit")
    return Fragment(index=index, total=total, payload=payload)
