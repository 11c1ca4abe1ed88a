"""In-process domain event channel.

Services publish after their transaction commits; subscribers (the WebSocket
fan-out, tests) register handlers. A failing handler is logged and skipped so
one listener can never undo or block a committed state change.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Callable

from app.models.base import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderStatusChanged:
    order_id: str
    from_status: str | None
    to_status: str
    actor_id: str = ""
    occurred_at: datetime = field(default_factory=utcnow)

    name = "order_status_changed"

    @property
    def channel(self) -> str:
        return f"order:{self.order_id}"


@dataclass(frozen=True)
class BalanceChanged:
    account_id: str
    account_role: str
    balance: int
    transaction_id: str
    transaction_type: str
    amount: int
    related_job_id: str | None = None
    occurred_at: datetime = field(default_factory=utcnow)

    name = "balance_changed"

    @property
    def channel(self) -> str:
        return f"account:{self.account_role}:{self.account_id}"


def event_payload(event: OrderStatusChanged | BalanceChanged) -> dict[str, Any]:
    data = asdict(event)
    data["occurred_at"] = event.occurred_at.isoformat()
    return data


Handler = Callable[[Any], Any]


class EventBus:
    def __init__(self):
        self._handlers: list[Handler] = []

    def subscribe(self, handler: Handler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: Handler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    async def publish(self, event: Any) -> None:
        for handler in list(self._handlers):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Event handler %r failed for %s", handler, type(event).__name__)

    async def publish_all(self, events: list[Any]) -> None:
        for event in events:
            await self.publish(event)


event_bus = EventBus()
