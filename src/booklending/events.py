"""Lifecycle events emitted by the lending engine.

Events are published after the operation that produced them has committed.
Handlers run synchronously in subscription order. A failing handler is
logged and does not undo the committed operation; consumers that must not
miss updates (the reputation ledger) can rebuild from stored loans.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookListed:
    """A book was listed. Earns nothing on its own."""

    book_id: int
    owner: str


@dataclass(frozen=True)
class BookBorrowed:
    """A loan started."""

    loan_id: int
    book_id: int
    borrower: str


@dataclass(frozen=True)
class LoanSettled:
    """A loan was returned and its deposit released."""

    loan_id: int
    book_id: int
    lender: str
    borrower: str
    lender_reward: int
    borrower_reward: int


LendingEvent = Union[BookListed, BookBorrowed, LoanSettled]
Handler = Callable[[LendingEvent], object]


class EventBus:
    """Synchronous in-process publish/subscribe for lending events."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        """Register a handler for one event type."""
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: Handler) -> None:
        if handler in self._handlers[event_type]:
            self._handlers[event_type].remove(handler)

    def publish(self, event: LendingEvent) -> int:
        """Deliver an event to its handlers.

        Returns:
            Number of handlers that completed without raising
        """
        delivered = 0
        for handler in list(self._handlers[type(event)]):
            try:
                handler(event)
                delivered += 1
            except Exception:
                logger.exception("Handler %r failed for %r", handler, event)
        return delivered
