# logistics/services/order_service.py
import logging
from datetime import date
from typing import Any

from logistics.core import validation
from logistics.core.events import (
    CustomerDeleted,
    EventBus,
    OrderCreated,
    OrderDeleted,
    OrderStatusChanged,
    OrderUpdated,
)
from logistics.models.order import (
    PRIORITY_RANK,
    STATUS_FLOW,
    Order,
    OrderPriority,
    OrderStatus,
)
from logistics.repositories.customer_repo import CustomerRepository
from logistics.repositories.order_repo import OrderRepository
from logistics.services.base import (
    BaseService,
    FailureKind,
    service_boundary,
    storage_failure_kind,
)

logger = logging.getLogger(__name__)

URGENT_PRIORITIES = (OrderPriority.URGENT, OrderPriority.HIGH)


class OrderService(BaseService):
    """
    Business logic for orders.

    Responsibilities:
      - Create orders for existing customers only
      - Enforce the status workflow:
          PENDING -> CONFIRMED -> PREPARING -> IN_TRANSIT -> DELIVERED
          any non-terminal status -> CANCELLED
      - Freeze DELIVERED / CANCELLED orders
      - Cache the full order list until the next local write
      - Order statistics
    """

    source = "orders"

    def __init__(
        self,
        order_repo: OrderRepository,
        customer_repo: CustomerRepository,
        events: EventBus | None = None,
    ):
        super().__init__(events)
        self.order_repo = order_repo
        self.customer_repo = customer_repo
        self._cache: list[Order] | None = None
        # Orders disappear with their customer (ON DELETE CASCADE)
        self.events.subscribe(CustomerDeleted, self._on_customer_deleted)

    def invalidate_cache(self) -> None:
        self._cache = None

    def _on_customer_deleted(self, event: CustomerDeleted) -> None:
        self.invalidate_cache()

    def _load(self, order_id: int) -> Order | None:
        order = self.order_repo.load(order_id)
        if order is None:
            self._fail(f"Order {order_id} not found", FailureKind.NOT_FOUND)
        return order

    def _save(self, order: Order) -> bool:
        if self.order_repo.save(order):
            self.invalidate_cache()
            return True
        message = self.order_repo.last_error
        self._fail(message, storage_failure_kind(message))
        return False

    # -------- Commands --------

    @service_boundary()
    def create(
        self,
        customer_id: int,
        delivery_address: str,
        delivery_city: str,
        delivery_postal_code: str,
        requested_delivery_at: date | None = None,
        ordered_at: date | None = None,
        priority: OrderPriority | str = OrderPriority.NORMAL,
        weight_total: float = 0.0,
        volume_total: float = 0.0,
        price_total: float = 0.0,
        comments: str | None = None,
    ) -> Order | None:
        """
        Create a PENDING order for an existing customer.

        The order number is generated on save. Returns the saved order, or
        None with `last_error` / `last_failure` set.
        """
        self._reset()
        ordered_at = ordered_at or date.today()

        errors = validation.validate_order(
            customer_id,
            ordered_at,
            requested_delivery_at,
            delivery_address,
            delivery_city,
            delivery_postal_code,
            weight_total,
            volume_total,
            price_total,
        )
        if errors:
            self._fail("; ".join(errors), FailureKind.VALIDATION)
            return None

        if self.customer_repo.load(customer_id) is None:
            self._fail(f"Customer {customer_id} not found", FailureKind.NOT_FOUND)
            return None

        try:
            priority = OrderPriority(priority)
        except ValueError:
            self._fail(f"Unknown order priority: {priority}", FailureKind.VALIDATION)
            return None

        order = Order(
            customer_id=customer_id,
            ordered_at=ordered_at,
            requested_delivery_at=requested_delivery_at,
            delivery_address=delivery_address,
            delivery_city=delivery_city,
            delivery_postal_code=delivery_postal_code,
            priority=priority,
            weight_total=weight_total,
            volume_total=volume_total,
            price_total=price_total,
            comments=comments,
        )
        if not self._save(order):
            return None

        logger.info("Order %s created for customer %s", order.order_number, customer_id)
        self._publish(
            OrderCreated(
                order_id=order.id,
                order_number=order.order_number,
                customer_id=customer_id,
            )
        )
        return order

    @service_boundary(default=False)
    def update(self, order: Order) -> bool:
        """
        Persist the editable fields of an open order.

        Status changes go through change_status() so the workflow is
        always enforced.
        """
        self._reset()

        if order.id is None:
            self._fail("Order has not been saved", FailureKind.NOT_FOUND)
            return False
        existing = self._load(order.id)
        if existing is None:
            return False

        if not existing.can_modify:
            self._fail(
                f"Order {existing.order_number} is {existing.status.value} and can no longer be modified",
                FailureKind.RULE,
            )
            return False

        if order.status != existing.status:
            self._fail("Use a status transition to change the status", FailureKind.RULE)
            return False

        if order.delivered_at != existing.delivered_at:
            self._fail(
                "The delivery date is set when the order is delivered", FailureKind.RULE
            )
            return False

        if order.customer_id != existing.customer_id and (
            self.customer_repo.load(order.customer_id) is None
        ):
            self._fail(f"Customer {order.customer_id} not found", FailureKind.NOT_FOUND)
            return False

        errors = order.validation_errors()
        if errors:
            self._fail("; ".join(errors), FailureKind.VALIDATION)
            return False

        if not self._save(order):
            return False

        logger.info("Order %s updated", order.order_number)
        self._publish(OrderUpdated(order_id=order.id))
        return True

    @service_boundary()
    def update_fields(self, order_id: int, changes: dict[str, Any]) -> Order | None:
        """Apply several validated field changes, then persist them together."""
        self._reset()

        order = self._load(order_id)
        if order is None:
            return None
        if not order.can_modify:
            self._fail(
                f"Order {order.order_number} is {order.status.value} and can no longer be modified",
                FailureKind.RULE,
            )
            return None

        for field, value in changes.items():
            if field == "status":
                self._fail("Use a status transition to change the status", FailureKind.RULE)
                return None
            if field == "delivered_at":
                self._fail(
                    "The delivery date is set when the order is delivered", FailureKind.RULE
                )
                return None
            if not self.order_repo.set_field(order, field, value):
                message = self.order_repo.last_error
                kind = (
                    FailureKind.NOT_FOUND
                    if "not found" in message.lower()
                    else FailureKind.VALIDATION
                )
                self._fail(message, kind)
                return None

        if not self.update(order):
            return None
        return order

    @service_boundary(default=False)
    def delete(self, order_id: int) -> bool:
        self._reset()

        order = self._load(order_id)
        if order is None:
            return False

        if not order.can_delete:
            self._fail(
                f"Order {order.order_number} is {order.status.value}; "
                "only pending or cancelled orders can be deleted",
                FailureKind.RULE,
            )
            return False

        if not self.order_repo.remove(order):
            message = self.order_repo.last_error
            self._fail(message, storage_failure_kind(message))
            return False

        self.invalidate_cache()
        logger.info("Order %s deleted", order_id)
        self._publish(OrderDeleted(order_id=order_id))
        return True

    # -------- Status workflow --------

    @service_boundary(default=False)
    def change_status(
        self,
        order_id: int,
        new_status: OrderStatus | str,
        reason: str | None = None,
        delivered_at: date | None = None,
    ) -> bool:
        """
        Move an order along the workflow.

        Rules:
          - same status: no-op, succeeds
          - DELIVERED / CANCELLED are final
          - forward moves only (steps may be skipped)
          - CANCELLED from any open status; `reason` is appended to comments
          - DELIVERED stamps delivered_at (today unless given)
        """
        self._reset()

        try:
            new_status = OrderStatus(new_status)
        except ValueError:
            self._fail(f"Unknown order status: {new_status}", FailureKind.VALIDATION)
            return False

        order = self._load(order_id)
        if order is None:
            return False

        old_status = order.status
        if new_status == old_status:
            return True

        if old_status == OrderStatus.DELIVERED and new_status == OrderStatus.CANCELLED:
            self._fail(
                f"Order {order.order_number} has been delivered and cannot be cancelled",
                FailureKind.RULE,
            )
            return False

        if order.is_terminal:
            self._fail(
                f"Order {order.order_number} is {old_status.value}; its status is final",
                FailureKind.RULE,
            )
            return False

        if new_status != OrderStatus.CANCELLED and (
            STATUS_FLOW.index(new_status) < STATUS_FLOW.index(old_status)
        ):
            self._fail(
                f"Cannot move order {order.order_number} from {old_status.value} back to {new_status.value}",
                FailureKind.RULE,
            )
            return False

        order.status = new_status
        if new_status == OrderStatus.DELIVERED:
            if delivered_at is not None:
                order.delivered_at = delivered_at
            elif order.delivered_at is None:
                order.delivered_at = date.today()
        if new_status == OrderStatus.CANCELLED and reason and reason.strip():
            order.append_comment(f"CANCELLED: {reason.strip()}")

        if not self._save(order):
            return False

        logger.info(
            "Order %s: %s -> %s", order.order_number, old_status.value, new_status.value
        )
        self._publish(
            OrderStatusChanged(
                order_id=order.id,
                old_status=old_status.value,
                new_status=new_status.value,
            )
        )
        return True

    def confirm(self, order_id: int) -> bool:
        return self.change_status(order_id, OrderStatus.CONFIRMED)

    def deliver(self, order_id: int, delivered_at: date | None = None) -> bool:
        return self.change_status(order_id, OrderStatus.DELIVERED, delivered_at=delivered_at)

    def cancel(self, order_id: int, reason: str | None = None) -> bool:
        return self.change_status(order_id, OrderStatus.CANCELLED, reason=reason)

    def can_modify(self, order_id: int) -> bool:
        order = self.order_repo.load(order_id)
        return order is not None and order.can_modify

    def can_delete(self, order_id: int) -> bool:
        order = self.order_repo.load(order_id)
        return order is not None and order.can_delete

    # -------- Queries --------

    @service_boundary()
    def get(self, order_id: int) -> Order | None:
        self._reset()
        return self.order_repo.load(order_id)

    @service_boundary()
    def get_by_number(self, order_number: str) -> Order | None:
        self._reset()
        return self.order_repo.find_by_number(order_number)

    @service_boundary(default=list)
    def get_all(self) -> list[Order]:
        """All orders, newest first. Served from cache after the first call."""
        if self._cache is None:
            self._cache = self.order_repo.find_all()
        return self._copies(self._cache)

    @service_boundary(default=list)
    def search(
        self,
        order_number: str | None = None,
        customer_id: int | None = None,
        status: OrderStatus | str | None = None,
        priority: OrderPriority | str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[Order]:
        self._reset()
        try:
            status = OrderStatus(status) if status is not None else None
            priority = OrderPriority(priority) if priority is not None else None
        except ValueError as e:
            self._fail(str(e), FailureKind.VALIDATION)
            return []
        if (
            date_from is not None
            and date_to is not None
            and not validation.is_valid_date_range(date_from, date_to)
        ):
            self._fail("The start date must not be after the end date", FailureKind.VALIDATION)
            return []
        return self.order_repo.search(
            order_number=order_number,
            customer_id=customer_id,
            status=status,
            priority=priority,
            date_from=date_from,
            date_to=date_to,
        )

    def sort(
        self,
        orders: list[Order],
        field: str = "ordered_at",
        ascending: bool = True,
    ) -> list[Order]:
        return self.order_repo.sort(orders, field, ascending)

    def search_and_sort(
        self,
        order_number: str | None = None,
        customer_id: int | None = None,
        status: OrderStatus | str | None = None,
        priority: OrderPriority | str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        sort_field: str = "ordered_at",
        ascending: bool = True,
    ) -> list[Order]:
        found = self.search(
            order_number=order_number,
            customer_id=customer_id,
            status=status,
            priority=priority,
            date_from=date_from,
            date_to=date_to,
        )
        return self.sort(found, sort_field, ascending)

    def orders_for_customer(self, customer_id: int) -> list[Order]:
        return self.order_repo.find_by_customer(customer_id)

    # -------- Statistics --------

    def total_count(self) -> int:
        return self.order_repo.count()

    def count_by_status(self, status: OrderStatus | str) -> int:
        return self.order_repo.count_by_status(status)

    def count_by_priority(self, priority: OrderPriority | str) -> int:
        return self.order_repo.count_by_priority(priority)

    def total_revenue(self) -> float:
        return self.order_repo.total_revenue()

    def average_price(self) -> float:
        return self.order_repo.average_price()

    def late_orders(self, today: date | None = None) -> list[Order]:
        return self.order_repo.late_orders(today)

    def monthly_counts(self, year: int) -> dict[int, int]:
        return self.order_repo.monthly_counts(year)

    def average_delivery_days(self) -> float:
        """Mean days from order date to actual delivery over delivered orders."""
        delivered = self.order_repo.delivered_orders()
        if not delivered:
            return 0.0
        total = sum((o.delivered_at - o.ordered_at).days for o in delivered)
        return total / len(delivered)

    def urgent_orders(self) -> list[Order]:
        """Open HIGH / URGENT orders, most urgent first, then by requested date."""
        orders = [
            o
            for o in self.get_all()
            if o.priority in URGENT_PRIORITIES and not o.is_terminal
        ]
        return sorted(
            orders,
            key=lambda o: (
                -PRIORITY_RANK[o.priority],
                o.requested_delivery_at or date.max,
            ),
        )
