"""Priority queue of report requests waiting to be dispatched.

Entries are ordered by priority rank, then ``requested_on``, then a
monotonically increasing submission sequence, which makes the dequeue order
total and deterministic.  Removal is lazy: a removed entry stays in the heap
and is skipped when it reaches the top.

The queue is not thread-safe on its own; the scheduler guards it with its
lock.
"""

from __future__ import annotations

import heapq
import itertools
from datetime import UTC, datetime

from reporting_engine.models.request import ReportRequest

_EPOCH = datetime.min.replace(tzinfo=UTC)

_HeapEntry = tuple[int, datetime, int, str]


class PendingQueue:
    """Heap of QUEUED requests keyed by uuid."""

    def __init__(self) -> None:
        self._heap: list[_HeapEntry] = []
        self._entries: dict[str, tuple[int, ReportRequest]] = {}
        self._sequence = itertools.count()

    def push(self, request: ReportRequest) -> None:
        """Add *request*, which must carry a uuid not already queued."""
        if request.uuid is None:
            raise ValueError("Only requests with a uuid can be queued.")
        if request.uuid in self._entries:
            raise ValueError(f"Report request {request.uuid} is already queued.")
        seq = next(self._sequence)
        self._entries[request.uuid] = (seq, request)
        heapq.heappush(
            self._heap,
            (request.priority.rank, request.requested_on or _EPOCH, seq, request.uuid),
        )

    def pop(self) -> ReportRequest | None:
        """Remove and return the head of the queue, or ``None`` if empty."""
        while self._heap:
            _, _, seq, uuid = heapq.heappop(self._heap)
            entry = self._entries.get(uuid)
            if entry is not None and entry[0] == seq:
                del self._entries[uuid]
                return entry[1]
        return None

    def peek(self) -> ReportRequest | None:
        while self._heap:
            _, _, seq, uuid = self._heap[0]
            entry = self._entries.get(uuid)
            if entry is not None and entry[0] == seq:
                return entry[1]
            heapq.heappop(self._heap)
        return None

    def remove(self, uuid: str) -> ReportRequest | None:
        """Drop the request with *uuid*; returns it, or ``None`` if absent."""
        entry = self._entries.pop(uuid, None)
        if entry is None:
            return None
        if not self._entries:
            self._heap.clear()
        return entry[1]

    def snapshot(self) -> list[ReportRequest]:
        """Queued requests in dequeue order."""
        live = sorted(
            self._entries.values(),
            key=lambda entry: (entry[1].priority.rank, entry[1].requested_on or _EPOCH, entry[0]),
        )
        return [request for _, request in live]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, uuid: object) -> bool:
        return uuid in self._entries

    def __bool__(self) -> bool:
        return bool(self._entries)
