# logistics/models/order.py
from datetime import date
from enum import Enum
from typing import Any

from sqlalchemy import CheckConstraint, Column, Enum as SAEnum, Index, text
from sqlmodel import SQLModel, Field

from logistics.core import validation


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class OrderPriority(str, Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})
DELETABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CANCELLED})

# Forward fulfillment path; CANCELLED is reachable from any non-terminal state.
STATUS_FLOW = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.IN_TRANSIT,
    OrderStatus.DELIVERED,
)

PRIORITY_RANK = {priority: rank for rank, priority in enumerate(OrderPriority)}

NO_LEAD_TIME = -1


def _coerce(enum_type: type[Enum], value: Any) -> Enum:
    return value if isinstance(value, enum_type) else enum_type(value)


class Order(SQLModel, table=True):
    """
    Shipment / order record.

    Identity:
      - id is None until the first successful save
      - order_number is generated on insert and never changes

    Invariants:
      - requested_delivery_at and delivered_at are never before ordered_at
      - weight / volume / price totals are non-negative
      - status and priority are closed enumerations
    """

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("weight_total >= 0", name="ck_orders_weight_total"),
        CheckConstraint("volume_total >= 0", name="ck_orders_volume_total"),
        CheckConstraint("price_total >= 0", name="ck_orders_price_total"),
        Index("idx_orders_customer", "customer_id"),
        Index("idx_orders_status", "status"),
        Index("idx_orders_ordered_at", "ordered_at"),
        Index("idx_orders_number", "order_number"),
        Index("idx_orders_priority", "priority"),
        Index("idx_orders_delivery_city", "delivery_city"),
    )

    id: int | None = Field(default=None, primary_key=True)

    customer_id: int = Field(
        foreign_key="customers.id",
        ondelete="CASCADE",
        description="FK to customers.id",
    )

    order_number: str | None = Field(
        default=None,
        max_length=50,
        unique=True,
        nullable=False,
        description="Generated on insert (CMD + 6 digits)",
    )

    ordered_at: date = Field(
        default_factory=date.today,
        sa_column_kwargs={"server_default": text("CURRENT_DATE")},
    )
    requested_delivery_at: date | None = Field(default=None)
    delivered_at: date | None = Field(default=None)

    delivery_address: str = Field(max_length=500)
    delivery_city: str = Field(max_length=100)
    delivery_postal_code: str = Field(max_length=10)

    status: OrderStatus = Field(
        default=OrderStatus.PENDING,
        sa_column=Column(
            SAEnum(
                OrderStatus,
                name="order_status",
                native_enum=False,
                create_constraint=True,
                length=30,
            ),
            nullable=False,
            server_default=OrderStatus.PENDING.value,
        ),
    )

    priority: OrderPriority = Field(
        default=OrderPriority.NORMAL,
        sa_column=Column(
            SAEnum(
                OrderPriority,
                name="order_priority",
                native_enum=False,
                create_constraint=True,
                length=20,
            ),
            nullable=False,
            server_default=OrderPriority.NORMAL.value,
        ),
    )

    weight_total: float = Field(default=0.0, sa_column_kwargs={"server_default": "0"})
    volume_total: float = Field(default=0.0, sa_column_kwargs={"server_default": "0"})
    price_total: float = Field(default=0.0, sa_column_kwargs={"server_default": "0"})

    comments: str | None = Field(default=None, max_length=1000)

    # ----- Derived -----

    @property
    def is_saved(self) -> bool:
        return self.id is not None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def can_modify(self) -> bool:
        return not self.is_terminal

    @property
    def can_delete(self) -> bool:
        return self.status in DELETABLE_STATUSES

    @property
    def lead_time_days(self) -> int:
        """Days between order date and requested delivery, or NO_LEAD_TIME."""
        if self.requested_delivery_at is None or self.ordered_at is None:
            return NO_LEAD_TIME
        return (self.requested_delivery_at - self.ordered_at).days

    def is_late(self, today: date | None = None) -> bool:
        if self.requested_delivery_at is None or self.is_terminal:
            return False
        return (today or date.today()) > self.requested_delivery_at

    # ----- Validation -----

    def validation_errors(self) -> list[str]:
        return validation.validate_order(
            self.customer_id,
            self.ordered_at,
            self.requested_delivery_at,
            self.delivery_address,
            self.delivery_city,
            self.delivery_postal_code,
            self.weight_total,
            self.volume_total,
            self.price_total,
            delivered_at=self.delivered_at,
        )

    def is_valid(self) -> bool:
        return not self.validation_errors()

    def normalize(self) -> None:
        self.delivery_address = validation.clean_text(self.delivery_address)
        self.delivery_city = validation.clean_text(self.delivery_city)
        self.delivery_postal_code = validation.clean_text(self.delivery_postal_code)
        self.status = _coerce(OrderStatus, self.status)
        self.priority = _coerce(OrderPriority, self.priority)

    def append_comment(self, line: str) -> None:
        self.comments = f"{self.comments}\n{line}" if self.comments else line

    # ----- Setters -----

    def assign(self, field: str, value: Any) -> bool:
        """
        Validate and set a single field.

        Status changes are not checked against the workflow here; the
        order service owns transition rules. Returns False and leaves the
        order untouched on rejection.
        """
        if field == "customer_id":
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                return False
            self.customer_id = value
            return True

        if field == "order_number":
            return False

        if field == "ordered_at":
            if self.is_saved or not validation.is_valid_date(value):
                return False
            self.ordered_at = value
            return True

        if field == "requested_delivery_at":
            if value is not None and not validation.is_valid_date_range(
                self.ordered_at, value
            ):
                return False
            self.requested_delivery_at = value
            return True

        if field == "delivered_at":
            if value is not None and not validation.is_valid_date_range(
                self.ordered_at, value
            ):
                return False
            self.delivered_at = value
            return True

        if field in ("delivery_address", "delivery_city", "delivery_postal_code"):
            check = {
                "delivery_address": validation.is_valid_address,
                "delivery_city": validation.is_valid_city,
                "delivery_postal_code": validation.is_valid_postal_code,
            }[field]
            if not check(value):
                return False
            setattr(self, field, validation.clean_text(value))
            return True

        if field in ("weight_total", "volume_total", "price_total"):
            check = {
                "weight_total": validation.is_valid_weight,
                "volume_total": validation.is_valid_volume,
                "price_total": validation.is_valid_amount,
            }[field]
            if not check(value):
                return False
            setattr(self, field, float(value))
            return True

        if field == "status":
            try:
                self.status = _coerce(OrderStatus, value)
            except ValueError:
                return False
            return True

        if field == "priority":
            try:
                self.priority = _coerce(OrderPriority, value)
            except ValueError:
                return False
            return True

        if field == "comments":
            if value is not None and len(str(value)) > 1000:
                return False
            self.comments = value
            return True

        return False
