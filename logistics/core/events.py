# logistics/core/events.py
"""
Change notifications published by the services.

Events are immutable facts named in the past tense. Consumers (views,
exporters, the HTTP layer) subscribe explicitly on the EventBus that is
handed to the services; there is no global registry.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class ChangeEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FieldChanged(ChangeEvent):
    """A single field of an entity was mutated through its setter."""

    entity: str
    entity_id: int | None
    field: str
    value: Any = None


class CustomerCreated(ChangeEvent):
    customer_id: int
    email: str


class CustomerUpdated(ChangeEvent):
    customer_id: int


class CustomerDeleted(ChangeEvent):
    customer_id: int


class OrderCreated(ChangeEvent):
    order_id: int
    order_number: str
    customer_id: int


class OrderUpdated(ChangeEvent):
    order_id: int


class OrderDeleted(ChangeEvent):
    order_id: int


class OrderStatusChanged(ChangeEvent):
    order_id: int
    old_status: str
    new_status: str


class ErrorOccurred(ChangeEvent):
    source: str
    message: str
    kind: str = "INTERNAL"


Handler = Callable[[ChangeEvent], None]


class EventBus:
    """
    Minimal synchronous subscriber list.

    - subscribe(EventType, handler): handler receives EventType and subclasses
    - subscribe(None, handler): handler receives every event
    - publish(event): handlers run in subscription order on the caller thread

    A failing handler is logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._subscriptions: list[tuple[type | None, Handler]] = []

    def subscribe(self, event_type: type[ChangeEvent] | None, handler: Handler) -> None:
        self._subscriptions.append((event_type, handler))

    def unsubscribe(self, event_type: type[ChangeEvent] | None, handler: Handler) -> None:
        if (event_type, handler) in self._subscriptions:
            self._subscriptions.remove((event_type, handler))

    def publish(self, event: ChangeEvent) -> None:
        for event_type, handler in list(self._subscriptions):
            if event_type is not None and not isinstance(event, event_type):
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Event handler %r failed for %s",
                    handler,
                    type(event).__name__,
                )
