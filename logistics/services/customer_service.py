# logistics/services/customer_service.py
import logging
from datetime import date, timedelta
from typing import Any

from logistics.core import validation
from logistics.core.events import (
    CustomerCreated,
    CustomerDeleted,
    CustomerUpdated,
    EventBus,
)
from logistics.models.customer import Customer, CustomerStatus
from logistics.repositories.customer_repo import CustomerRepository
from logistics.repositories.order_repo import OrderRepository
from logistics.services.base import (
    BaseService,
    FailureKind,
    service_boundary,
    storage_failure_kind,
)

logger = logging.getLogger(__name__)


class CustomerService(BaseService):
    """
    Business logic for customers.

    Responsibilities:
      - Create / update / delete with validation and email uniqueness
      - Refuse deletion while the customer has open orders
      - Cache the full customer list until the next local write
      - Customer statistics
    """

    source = "customers"

    def __init__(
        self,
        customer_repo: CustomerRepository,
        order_repo: OrderRepository,
        events: EventBus | None = None,
    ):
        super().__init__(events)
        self.customer_repo = customer_repo
        self.order_repo = order_repo
        self._cache: list[Customer] | None = None

    def invalidate_cache(self) -> None:
        self._cache = None

    # -------- Commands --------

    @service_boundary()
    def create(
        self,
        name: str,
        surname: str,
        email: str,
        phone: str,
        address: str,
        city: str,
        postal_code: str,
        status: CustomerStatus | str = CustomerStatus.ACTIVE,
    ) -> Customer | None:
        """
        Create and persist a customer.

        Returns the saved customer (with its key), or None with
        `last_error` / `last_failure` describing why.
        """
        self._reset()

        errors = validation.validate_customer(
            name, surname, email, phone, address, city, postal_code
        )
        if errors:
            self._fail("; ".join(errors), FailureKind.VALIDATION)
            return None

        try:
            status = CustomerStatus(status)
        except ValueError:
            self._fail(f"Unknown customer status: {status}", FailureKind.VALIDATION)
            return None

        if self.is_email_already_used(email):
            self._fail(
                f"A customer with email '{validation.clean_email(email)}' already exists",
                FailureKind.CONFLICT,
            )
            return None

        customer = Customer(
            name=name,
            surname=surname,
            email=email,
            phone=phone,
            address=address,
            city=city,
            postal_code=postal_code,
            status=status,
        )
        if not self.customer_repo.save(customer):
            message = self.customer_repo.last_error
            self._fail(message, storage_failure_kind(message))
            return None

        self.invalidate_cache()
        logger.info("Customer %s created (%s)", customer.id, customer.email)
        self._publish(CustomerCreated(customer_id=customer.id, email=customer.email))
        return customer

    @service_boundary(default=False)
    def update(self, customer: Customer) -> bool:
        """Persist every field of an existing customer."""
        self._reset()

        if customer.id is None or self.customer_repo.load(customer.id) is None:
            self._fail(f"Customer {customer.id} not found", FailureKind.NOT_FOUND)
            return False

        errors = customer.validation_errors()
        if errors:
            self._fail("; ".join(errors), FailureKind.VALIDATION)
            return False

        if self.is_email_already_used(customer.email, exclude_id=customer.id):
            self._fail(
                f"A customer with email '{validation.clean_email(customer.email)}' already exists",
                FailureKind.CONFLICT,
            )
            return False

        if not self.customer_repo.save(customer):
            message = self.customer_repo.last_error
            self._fail(message, storage_failure_kind(message))
            return False

        self.invalidate_cache()
        logger.info("Customer %s updated", customer.id)
        self._publish(CustomerUpdated(customer_id=customer.id))
        return True

    @service_boundary()
    def update_fields(self, customer_id: int, changes: dict[str, Any]) -> Customer | None:
        """
        Apply several field changes through the validated setters, then
        persist. Nothing is saved if any single change is rejected.
        """
        self._reset()

        customer = self.customer_repo.load(customer_id)
        if customer is None:
            self._fail(f"Customer {customer_id} not found", FailureKind.NOT_FOUND)
            return None

        for field, value in changes.items():
            if not self.customer_repo.set_field(customer, field, value):
                self._fail(self.customer_repo.last_error, FailureKind.VALIDATION)
                return None

        if not self.update(customer):
            return None
        return customer

    @service_boundary(default=False)
    def delete(self, customer_id: int) -> bool:
        self._reset()

        customer = self.customer_repo.load(customer_id)
        if customer is None:
            self._fail(f"Customer {customer_id} not found", FailureKind.NOT_FOUND)
            return False

        if not self.can_delete_customer(customer_id):
            self._fail(
                f"Customer {customer_id} still has orders in progress",
                FailureKind.RULE,
            )
            return False

        if not self.customer_repo.remove(customer):
            message = self.customer_repo.last_error
            self._fail(message, storage_failure_kind(message))
            return False

        self.invalidate_cache()
        logger.info("Customer %s deleted", customer_id)
        self._publish(CustomerDeleted(customer_id=customer_id))
        return True

    def can_delete_customer(self, customer_id: int) -> bool:
        """A customer can go once none of their orders is still open."""
        return self.order_repo.count_active_for_customer(customer_id) == 0

    def set_active(self, customer_id: int, active: bool = True) -> bool:
        status = CustomerStatus.ACTIVE if active else CustomerStatus.INACTIVE
        return self.update_fields(customer_id, {"status": status}) is not None

    def suspend(self, customer_id: int, reason: str | None = None) -> bool:
        if self.update_fields(customer_id, {"status": CustomerStatus.SUSPENDED}) is None:
            return False
        logger.info("Customer %s suspended: %s", customer_id, reason or "no reason given")
        return True

    # -------- Queries --------

    @service_boundary()
    def get(self, customer_id: int) -> Customer | None:
        self._reset()
        return self.customer_repo.load(customer_id)

    @service_boundary(default=list)
    def get_all(self) -> list[Customer]:
        """All customers by surname, name. Served from cache after the first call."""
        if self._cache is None:
            self._cache = self.customer_repo.find_all()
        return self._copies(self._cache)

    @service_boundary(default=list)
    def search(
        self,
        name: str | None = None,
        surname: str | None = None,
        city: str | None = None,
        status: CustomerStatus | str | None = None,
    ) -> list[Customer]:
        self._reset()
        if status is not None:
            try:
                status = CustomerStatus(status)
            except ValueError:
                self._fail(f"Unknown customer status: {status}", FailureKind.VALIDATION)
                return []
        return self.customer_repo.search(name=name, surname=surname, city=city, status=status)

    def sort(
        self,
        customers: list[Customer],
        field: str = "name",
        ascending: bool = True,
    ) -> list[Customer]:
        return self.customer_repo.sort(customers, field, ascending)

    def search_and_sort(
        self,
        name: str | None = None,
        surname: str | None = None,
        city: str | None = None,
        status: CustomerStatus | str | None = None,
        sort_field: str = "name",
        ascending: bool = True,
    ) -> list[Customer]:
        found = self.search(name=name, surname=surname, city=city, status=status)
        return self.sort(found, sort_field, ascending)

    def is_email_already_used(self, email: str, exclude_id: int | None = None) -> bool:
        existing = self.customer_repo.find_by_email(email)
        if existing is None:
            return False
        return exclude_id is None or existing.id != exclude_id

    # -------- Statistics --------

    def total_count(self) -> int:
        return self.customer_repo.count()

    def count_by_status(self, status: CustomerStatus | str) -> int:
        return self.customer_repo.count_by_status(status)

    def stats_by_city(self) -> dict[str, int]:
        return self.customer_repo.count_by_city()

    def recent_customers(self, days: int = 30, today: date | None = None) -> list[Customer]:
        since = (today or date.today()) - timedelta(days=days)
        return self.customer_repo.find_created_since(since)

    def order_count(self, customer_id: int) -> int:
        return self.order_repo.count_for_customer(customer_id)
