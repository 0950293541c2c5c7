# logistics/repositories/customer_repo.py
import logging
from datetime import date
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from logistics.core.events import EventBus, FieldChanged
from logistics.core.validation import clean_email
from logistics.database import Database
from logistics.models.customer import Customer, CustomerStatus

logger = logging.getLogger(__name__)

SORT_FIELDS = ("name", "surname", "city", "created_at", "email")


class CustomerRepository:
    """
    Persistence for Customer.

    Responsibilities:
      - validated save (insert or update), load, remove
      - finders, search and counts
      - single-field setters that publish FieldChanged

    Failures return False / None and leave the reason in `last_error`.
    Returned customers are detached copies owned by the caller.
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

    def save(self, customer: Customer) -> bool:
        """
        Insert (assigning the key) or update by key.

        The full record is validated first; nothing is written when it is
        invalid or when the backend rejects the statement.
        """
        try:
            customer.normalize()
        except ValueError as e:
            return self._fail(f"Invalid customer: {e}")

        errors = customer.validation_errors()
        if errors:
            return self._fail("Invalid customer: " + "; ".join(errors))

        is_new = customer.id is None
        try:
            with self.db.unit() as session:
                if is_new:
                    session.add(customer)
                    session.flush()
                    session.refresh(customer)
                else:
                    existing = session.get(Customer, customer.id)
                    if existing is None:
                        return self._fail(f"Customer {customer.id} not found")
                    # created_at is immutable once set
                    customer.created_at = existing.created_at
                    session.merge(customer)
        except SQLAlchemyError as e:
            if is_new:
                customer.id = None
            return self._fail(f"Failed to save customer: {e}")

        return True

    def load(self, customer_id: int) -> Customer | None:
        """Return the customer with this key, or None if not found."""
        try:
            with self.db.unit() as session:
                return session.get(Customer, customer_id)
        except SQLAlchemyError as e:
            self._fail(f"Failed to load customer {customer_id}: {e}")
            return None

    def remove(self, customer: Customer) -> bool:
        """
        Delete by key; the in-memory customer becomes unsaved.

        Orders referencing the customer are removed by the backend's
        ON DELETE CASCADE.
        """
        if customer.id is None:
            return self._fail("Customer has not been saved")

        try:
            with self.db.unit() as session:
                row = session.get(Customer, customer.id)
                if row is None:
                    return self._fail(f"Customer {customer.id} not found")
                session.delete(row)
        except SQLAlchemyError as e:
            return self._fail(f"Failed to delete customer {customer.id}: {e}")

        customer.id = None
        return True

    # ----- Setters -----

    def set_field(self, customer: Customer, field: str, value: Any) -> bool:
        """
        Validate and set one field, then publish FieldChanged.

        The customer is not persisted; call save() for that.
        """
        if not customer.assign(field, value):
            return self._fail(f"Invalid value for customer field '{field}'")

        if self.events is not None:
            self.events.publish(
                FieldChanged(
                    entity="customer",
                    entity_id=customer.id,
                    field=field,
                    value=getattr(customer, field),
                )
            )
        return True

    # ----- Finders -----

    def find_all(self) -> list[Customer]:
        stmt = select(Customer).order_by(Customer.surname, Customer.name)
        return self._fetch(stmt, "list customers")

    def find_by_id(self, customer_id: int) -> Customer | None:
        return self.load(customer_id)

    def find_by_email(self, email: str) -> Customer | None:
        """Case-insensitive lookup by email."""
        stmt = select(Customer).where(func.lower(Customer.email) == clean_email(email))
        rows = self._fetch(stmt, "find customer by email")
        return rows[0] if rows else None

    def search(
        self,
        name: str | None = None,
        surname: str | None = None,
        city: str | None = None,
        status: CustomerStatus | str | None = None,
    ) -> list[Customer]:
        """
        Filter customers; every criterion is optional and they combine
        with AND. Text criteria are case-insensitive substring matches.
        """
        stmt = select(Customer)
        if name:
            stmt = stmt.where(Customer.name.icontains(name.strip(), autoescape=True))
        if surname:
            stmt = stmt.where(Customer.surname.icontains(surname.strip(), autoescape=True))
        if city:
            stmt = stmt.where(Customer.city.icontains(city.strip(), autoescape=True))
        if status is not None:
            stmt = stmt.where(Customer.status == CustomerStatus(status))
        stmt = stmt.order_by(Customer.surname, Customer.name)
        return self._fetch(stmt, "search customers")

    @staticmethod
    def sort(
        customers: list[Customer],
        field: str = "name",
        ascending: bool = True,
    ) -> list[Customer]:
        """
        Return a new sorted list.

        Fields: name, surname, city, email (case-insensitive), created_at.
        Unknown fields sort by name.
        """
        if field not in SORT_FIELDS:
            field = "name"

        if field == "created_at":
            def key(c: Customer):
                return c.created_at
        else:
            def key(c: Customer):
                return (getattr(c, field) or "").casefold()

        return sorted(customers, key=key, reverse=not ascending)

    # ----- Counts -----

    def count(self) -> int:
        stmt = select(func.count()).select_from(Customer)
        return int(self._scalar(stmt, "count customers") or 0)

    def count_by_status(self, status: CustomerStatus | str) -> int:
        stmt = (
            select(func.count())
            .select_from(Customer)
            .where(Customer.status == CustomerStatus(status))
        )
        return int(self._scalar(stmt, "count customers by status") or 0)

    def count_by_city(self) -> dict[str, int]:
        """Customers per city, most populated first."""
        stmt = (
            select(Customer.city, func.count(Customer.id).label("total"))
            .group_by(Customer.city)
            .order_by(func.count(Customer.id).desc(), Customer.city)
        )
        try:
            with self.db.unit() as session:
                return {city: int(total) for city, total in session.exec(stmt).all()}
        except SQLAlchemyError as e:
            self._fail(f"Failed to count customers per city: {e}")
            return {}

    def find_created_since(self, since: date) -> list[Customer]:
        stmt = (
            select(Customer)
            .where(Customer.created_at >= since)
            .order_by(Customer.created_at.desc(), Customer.surname, Customer.name)
        )
        return self._fetch(stmt, "list recent customers")

    # ----- Helpers -----

    def _fetch(self, stmt, action: str) -> list[Customer]:
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
