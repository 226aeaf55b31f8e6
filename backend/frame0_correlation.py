"""
Frame0 Correlation - Pending Request Bookkeeping

Tracks in-flight commands keyed by request ID. Every entry is removed
exactly once: on a matching response, on timeout, on send failure, or when
the connection is lost. Whichever happens first settles the caller's future;
the other paths become no-ops.

All methods are expected to run on the event loop thread.
"""

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from frame0_errors import DuplicateIdError

logger = logging.getLogger(__name__)


class MonotonicIdGenerator:
    """Produce request IDs from an increasing counter: req_1, req_2, ..."""

    def __init__(self, prefix: str = "req_", start: int = 1) -> None:
        self.prefix = prefix
        self._counter = itertools.count(start)

    def __call__(self) -> str:
        return f"{self.prefix}{next(self._counter)}"


@dataclass
class PendingRequest:
    """A command that was registered and has not settled yet."""

    id: str
    command: str
    future: asyncio.Future
    params: Dict[str, Any] = field(default_factory=dict)
    created_at: float = field(default_factory=time.monotonic)
    timer: Optional[asyncio.TimerHandle] = None

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.created_at

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def resolve(self, payload: Any) -> bool:
        """Settle with a result. Returns False if the future was already done."""
        self.cancel_timer()
        if self.future.done():
            logger.debug(f"⚠️ Future already completed for {self.id}")
            return False
        self.future.set_result(payload)
        return True

    def reject(self, error: BaseException) -> bool:
        """Settle with an exception. Returns False if the future was already done."""
        self.cancel_timer()
        if self.future.done():
            logger.debug(f"⚠️ Future already completed for {self.id}")
            return False
        self.future.set_exception(error)
        return True


class CorrelationTable:
    """Mapping of request ID to PendingRequest."""

    def __init__(self) -> None:
        self._pending: Dict[str, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def ids(self) -> List[str]:
        return list(self._pending.keys())

    def register(self, pending: PendingRequest) -> None:
        if pending.id in self._pending:
            raise DuplicateIdError(
                f"Request ID '{pending.id}' is already pending",
                command=pending.command,
                request_id=pending.id,
            )
        self._pending[pending.id] = pending
        logger.debug(f"📝 Added to pending requests: {pending.id} (total: {len(self._pending)})")

    def get(self, request_id: str) -> Optional[PendingRequest]:
        return self._pending.get(request_id)

    def resolve(self, request_id: str, payload: Any) -> bool:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return False
        return pending.resolve(payload)

    def reject(self, request_id: str, error: BaseException) -> bool:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return False
        return pending.reject(error)

    def evict(self, request_id: str) -> Optional[PendingRequest]:
        """Remove an entry without settling it; the caller decides the outcome."""
        pending = self._pending.pop(request_id, None)
        if pending is not None:
            pending.cancel_timer()
        return pending

    def drain_all(self, make_error: Callable[[PendingRequest], BaseException]) -> int:
        """Reject every pending entry and clear the table.

        Entries whose future is already settled are skipped, so a response
        that won the race keeps its result.
        """
        drained = list(self._pending.values())
        self._pending.clear()
        settled = 0
        for pending in drained:
            if pending.reject(make_error(pending)):
                settled += 1
        return settled
