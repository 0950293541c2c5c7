# logistics/schemas/order.py
from datetime import date

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

from logistics.models.order import OrderPriority, OrderStatus


class OrderCreate(SQLModel):
    """
    Payload for creating an order.

    Backend derives:
      - order_number (generated on insert)
      - status = PENDING
      - ordered_at = today when omitted
    """

    model_config = ConfigDict(extra="forbid")

    customer_id: int
    delivery_address: str
    delivery_city: str
    delivery_postal_code: str
    requested_delivery_at: date | None = None
    ordered_at: date | None = None
    priority: OrderPriority = OrderPriority.NORMAL
    weight_total: float = 0.0
    volume_total: float = 0.0
    price_total: float = 0.0
    comments: str | None = Field(default=None, max_length=1000)

    @field_validator("delivery_address", "delivery_city", "delivery_postal_code")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @field_validator("comments")
    @classmethod
    def normalize_comments(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OrderUpdate(SQLModel):
    """
    Partial update of an open order.

    Status is changed through the transition endpoints; order number and
    order date never change.
    """

    model_config = ConfigDict(extra="forbid")

    customer_id: int | None = None
    requested_delivery_at: date | None = None
    delivery_address: str | None = None
    delivery_city: str | None = None
    delivery_postal_code: str | None = None
    priority: OrderPriority | None = None
    weight_total: float | None = None
    volume_total: float | None = None
    price_total: float | None = None
    comments: str | None = Field(default=None, max_length=1000)


class OrderStatusUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
    reason: str | None = None
    delivered_at: date | None = None


class OrderCancel(SQLModel):
    model_config = ConfigDict(extra="forbid")

    reason: str | None = None


class OrderDeliver(SQLModel):
    model_config = ConfigDict(extra="forbid")

    delivered_at: date | None = None


class OrderRead(SQLModel):
    id: int
    customer_id: int
    order_number: str
    ordered_at: date
    requested_delivery_at: date | None
    delivered_at: date | None
    delivery_address: str
    delivery_city: str
    delivery_postal_code: str
    status: OrderStatus
    priority: OrderPriority
    weight_total: float
    volume_total: float
    price_total: float
    comments: str | None
    is_late: bool = False
    lead_time_days: int = -1
