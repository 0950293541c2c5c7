# logistics/repositories/order_repo.py
import logging
from datetime import date
from typing import Any

from sqlalchemy import extract, func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from logistics.core.events import EventBus, FieldChanged
from logistics.database import Database
from logistics.models.customer import Customer
from logistics.models.order import (
    PRIORITY_RANK,
    TERMINAL_STATUSES,
    Order,
    OrderPriority,
    OrderStatus,
)

logger = logging.getLogger(__name__)

SORT_FIELDS = ("number", "ordered_at", "status", "priority", "price", "customer")


class OrderRepository:
    """
    Persistence for Order.

    Responsibilities:
      - validated save (insert with generated order number, or update)
      - load, remove, finders, search
      - read-only aggregates used by the statistics screens

    Failures return False / None / empty results and leave the reason in
    `last_error`. Returned orders are detached copies owned by the caller.
    """

    def __init__(self, db: Database, events: EventBus | None = None):
        self.db = db
        self.events = events
        self.last_error: str = ""

    def _fail(self, message: str) -> bool:
        self.last_error = message
        logger.warning(message)
        return False

    # ----- Basic CRUD -----

    def save(self, order: Order) -> bool:
        """
        Insert or update by key.

        On insert the order number comes from the backend: a sequence on
        the primary engine, a row count on the fallback engine (the latter
        is a read-then-write race if several processes insert at once).
        Order number and order date cannot change after creation.
        """
        try:
            order.normalize()
        except ValueError as e:
            return self._fail(f"Invalid order: {e}")

        errors = order.validation_errors()
        if errors:
            return self._fail("Invalid order: " + "; ".join(errors))

        is_new = order.id is None
        generated_number = False
        try:
            with self.db.unit() as session:
                if is_new:
                    if not order.order_number:
                        order.order_number = self.db.next_order_number(session)
                        generated_number = True
                    session.add(order)
                    session.flush()
                    session.refresh(order)
                else:
                    existing = session.get(Order, order.id)
                    if existing is None:
                        return self._fail(f"Order {order.id} not found")
                    if order.order_number != existing.order_number:
                        return self._fail("The order number cannot be changed")
                    if order.ordered_at != existing.ordered_at:
                        return self._fail("The order date cannot be changed")
                    session.merge(order)
        except SQLAlchemyError as e:
            if is_new:
                order.id = None
                if generated_number:
                    order.order_number = None
            return self._fail(f"Failed to save order: {e}")

        return True

    def load(self, order_id: int) -> Order | None:
        try:
            with self.db.unit() as session:
                return session.get(Order, order_id)
        except SQLAlchemyError as e:
            self._fail(f"Failed to load order {order_id}: {e}")
            return None

    def remove(self, order: Order) -> bool:
        if order.id is None:
            return self._fail("Order has not been saved")

        try:
            with self.db.unit() as session:
                row = session.get(Order, order.id)
                if row is None:
                    return self._fail(f"Order {order.id} not found")
                session.delete(row)
        except SQLAlchemyError as e:
            return self._fail(f"Failed to delete order {order.id}: {e}")

        order.id = None
        return True

    # ----- Setters -----

    def set_field(self, order: Order, field: str, value: Any) -> bool:
        """
        Validate and set one field, then publish FieldChanged.

        Changing the customer also checks that the customer exists.
        """
        if field == "customer_id" and isinstance(value, int) and value > 0:
            if self._customer_missing(value):
                return self._fail(f"Customer {value} not found")

        if not order.assign(field, value):
            return self._fail(f"Invalid value for order field '{field}'")

        if self.events is not None:
            self.events.publish(
                FieldChanged(
                    entity="order",
                    entity_id=order.id,
                    field=field,
                    value=getattr(order, field),
                )
            )
        return True

    def _customer_missing(self, customer_id: int) -> bool:
        try:
            with self.db.unit() as session:
                return session.get(Customer, customer_id) is None
        except SQLAlchemyError as e:
            self._fail(f"Failed to check customer {customer_id}: {e}")
            return True

    # ----- Finders -----

    def find_all(self) -> list[Order]:
        stmt = select(Order).order_by(Order.ordered_at.desc(), Order.id.desc())
        return self._fetch(stmt, "list orders")

    def find_by_id(self, order_id: int) -> Order | None:
        return self.load(order_id)

    def find_by_number(self, order_number: str) -> Order | None:
        stmt = select(Order).where(Order.order_number == order_number.strip())
        rows = self._fetch(stmt, "find order by number")
        return rows[0] if rows else None

    def find_by_customer(self, customer_id: int) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.customer_id == customer_id)
            .order_by(Order.ordered_at.desc(), Order.id.desc())
        )
        return self._fetch(stmt, "list orders for customer")

    def search(
        self,
        order_number: str | None = None,
        customer_id: int | None = None,
        status: OrderStatus | str | None = None,
        priority: OrderPriority | str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[Order]:
        """
        Filter orders; every criterion is optional and they combine with
        AND. The order number is a case-insensitive substring match and
        the date bounds are inclusive.
        """
        stmt = select(Order)
        if order_number:
            stmt = stmt.where(
                Order.order_number.icontains(order_number.strip(), autoescape=True)
            )
        if customer_id:
            stmt = stmt.where(Order.customer_id == customer_id)
        if status is not None:
            stmt = stmt.where(Order.status == OrderStatus(status))
        if priority is not None:
            stmt = stmt.where(Order.priority == OrderPriority(priority))
        if date_from is not None:
            stmt = stmt.where(Order.ordered_at >= date_from)
        if date_to is not None:
            stmt = stmt.where(Order.ordered_at <= date_to)
        stmt = stmt.order_by(Order.ordered_at.desc(), Order.id.desc())
        return self._fetch(stmt, "search orders")

    @staticmethod
    def sort(
        orders: list[Order],
        field: str = "ordered_at",
        ascending: bool = True,
    ) -> list[Order]:
        """
        Return a new sorted list.

        Fields: number, ordered_at, status, priority (by urgency), price,
        customer. Unknown fields sort by order date.
        """
        keys = {
            "number": lambda o: (o.order_number or "").casefold(),
            "ordered_at": lambda o: o.ordered_at,
            "status": lambda o: o.status.value,
            "priority": lambda o: PRIORITY_RANK[o.priority],
            "price": lambda o: o.price_total,
            "customer": lambda o: o.customer_id,
        }
        key = keys.get(field, keys["ordered_at"])
        return sorted(orders, key=key, reverse=not ascending)

    # ----- Aggregates -----

    def count(self) -> int:
        stmt = select(func.count()).select_from(Order)
        return int(self._scalar(stmt, "count orders") or 0)

    def count_by_status(self, status: OrderStatus | str) -> int:
        stmt = (
            select(func.count())
            .select_from(Order)
            .where(Order.status == OrderStatus(status))
        )
        return int(self._scalar(stmt, "count orders by status") or 0)

    def count_by_priority(self, priority: OrderPriority | str) -> int:
        stmt = (
            select(func.count())
            .select_from(Order)
            .where(Order.priority == OrderPriority(priority))
        )
        return int(self._scalar(stmt, "count orders by priority") or 0)

    def count_for_customer(self, customer_id: int) -> int:
        stmt = (
            select(func.count())
            .select_from(Order)
            .where(Order.customer_id == customer_id)
        )
        return int(self._scalar(stmt, "count orders for customer") or 0)

    def count_active_for_customer(self, customer_id: int) -> int:
        """Orders of this customer that are neither delivered nor cancelled."""
        stmt = (
            select(func.count())
            .select_from(Order)
            .where(
                Order.customer_id == customer_id,
                Order.status.not_in(list(TERMINAL_STATUSES)),
            )
        )
        return int(self._scalar(stmt, "count active orders") or 0)

    def total_revenue(self) -> float:
        """Sum of price_total for all non-cancelled orders."""
        stmt = (
            select(func.coalesce(func.sum(Order.price_total), 0.0))
            .where(Order.status != OrderStatus.CANCELLED)
        )
        return float(self._scalar(stmt, "sum revenue") or 0.0)

    def average_price(self) -> float:
        stmt = (
            select(func.avg(Order.price_total))
            .where(Order.status != OrderStatus.CANCELLED)
        )
        return float(self._scalar(stmt, "average order price") or 0.0)

    def late_orders(self, today: date | None = None) -> list[Order]:
        """Open orders whose requested delivery date has passed."""
        stmt = (
            select(Order)
            .where(
                Order.requested_delivery_at < (today or date.today()),
                Order.status.not_in(list(TERMINAL_STATUSES)),
            )
            .order_by(Order.requested_delivery_at.asc())
        )
        return self._fetch(stmt, "list late orders")

    def delivered_orders(self) -> list[Order]:
        stmt = select(Order).where(
            Order.status == OrderStatus.DELIVERED,
            Order.delivered_at.is_not(None),
        )
        return self._fetch(stmt, "list delivered orders")

    def monthly_counts(self, year: int) -> dict[int, int]:
        """Orders per month (1-12) for the given year, zero-filled."""
        month_expr = extract("month", Order.ordered_at)
        stmt = (
            select(month_expr.label("month"), func.count(Order.id).label("total"))
            .where(extract("year", Order.ordered_at) == year)
            .group_by(month_expr)
            .order_by(month_expr)
        )

        counts = {month: 0 for month in range(1, 13)}
        try:
            with self.db.unit() as session:
                for month, total in session.exec(stmt).all():
                    counts[int(month)] = int(total or 0)
        except SQLAlchemyError as e:
            self._fail(f"Failed to count orders per month: {e}")
        return counts

    # ----- Helpers -----

    def _fetch(self, stmt, action: str) -> list[Order]:
        try:
            with self.db.unit() as session:
                return list(session.exec(stmt).all())
        except SQLAlchemyError as e:
            self._fail(f"Failed to {action}: {e}")
            return []

    def _scalar(self, stmt, action: str):
        try:
            with self.db.unit() as session:
                return session.exec(stmt).one()
        except SQLAlchemyError as e:
            self._fail(f"Failed to {action}: {e}")
            return None
