from __future__ import annotations

from typing import Iterator, Optional

from .errors import IncompleteReassembly, MalformedFragment
from .packet import Fragment


def fragment_count(length: int, max_payload: int) -> int:
    if max_payload <= 0:
        raise ValueError("max_payload must be positive")
    return max(1, -(-length // max_payload))


def fragment(content: bytes, max_payload: int) -> Iterator[Fragment]:
    """Split ``content`` into fragments of at most ``max_payload`` bytes.

    Fragments are produced lazily in index order. Empty content yields a
    single empty fragment so the receiver still sees a final fragment.
    """
    total = fragment_count(len(content), max_payload)
    return _generate(content, max_payload, total)


def _generate(content: bytes, max_payload: int, total: int) -> Iterator[Fragment]:
    view = memoryview(content)
    for index in range(total):
        start = index * max_payload
        yield Fragment(index=index, total=total, payload=bytes(view[start : start + max_payload]))


class ReassemblyBuffer:
    """Collects fragments of one response, keyed by index.

    Duplicates (e.g. from a retransmission after a lost ack) are ignored and
    arrival order does not matter.
    """

    def __init__(self) -> None:
        self._parts: dict[int, bytes] = {}
        self._total: Optional[int] = None

    @property
    def total(self) -> Optional[int]:
        return self._total

    @property
    def received(self) -> int:
        return len(self._parts)

    @property
    def complete(self) -> bool:
        return self._total is not None and len(self._parts) == self._total

    def missing(self) -> list[int]:
        if self._total is None:
            return []
        return [i for i in range(self._total) if i not in self._parts]

    def accept(self, frag: Fragment) -> bool:
        if self._total is None:
            self._total = frag.total
        elif frag.total != self._total:
            raise MalformedFragment(
                f"fragment claims total {frag.total}, response has {self._total}"
            )
        self._parts.setdefault(frag.index, frag.payload)
        return self.complete

    def result(self) -> bytes:
        if not self.complete:
            raise IncompleteReassembly(
                f"{self.received} of {self._total or '?'} fragments received"
            )
        return b"".join(self._parts[i] for i in range(self._total or 0))
