"""
Change Feed - document change notifications.
Handlers subscribe to a collection and change kind; the store publishes after each commit.
Delivery is at-least-once from a handler's point of view, so handlers must be idempotent.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass
class ChangeEvent:
    """One committed change to a document."""
    collection: str
    doc_id: str
    kind: ChangeKind
    before: Optional[dict] = None
    after: Optional[dict] = None


ChangeHandler = Callable[[ChangeEvent], Awaitable[None]]


class ChangeFeed:
    """Routes change events to subscribed async handlers."""

    def __init__(self):
        self._handlers: dict[tuple[str, ChangeKind], list[ChangeHandler]] = defaultdict(list)

    def subscribe(self, collection: str, kind: ChangeKind, handler: ChangeHandler):
        """Register a handler for changes of one kind in one collection."""
        self._handlers[(collection, kind)].append(handler)

    def handlers_for(self, collection: str, kind: ChangeKind) -> list[ChangeHandler]:
        return list(self._handlers.get((collection, kind), []))

    async def publish(self, event: ChangeEvent):
        """Deliver an event to every handler. A failing handler never fails the writer."""
        for handler in self.handlers_for(event.collection, event.kind):
            try:
                await handler(event)
            except Exception:
                logger.exception(
                    f"Change handler {getattr(handler, '__qualname__', handler)} failed "
                    f"for {event.kind.value} {event.collection}/{event.doc_id}"
                )
