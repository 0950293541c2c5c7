from datetime import date

import pytest

from logistics.core.events import ChangeEvent, EventBus
from logistics.database import Database
from logistics.models.customer import Customer
from logistics.repositories.customer_repo import CustomerRepository
from logistics.repositories.order_repo import OrderRepository
from logistics.services.customer_service import CustomerService
from logistics.services.order_service import OrderService


class EventRecorder:
    def __init__(self, bus: EventBus):
        self.events: list[ChangeEvent] = []
        bus.subscribe(None, self.events.append)

    def of_type(self, event_type):
        return [e for e in self.events if isinstance(e, event_type)]


@pytest.fixture
def db():
    database = Database(fallback_url="sqlite://")
    database.connect()
    assert database.ensure_schema()
    yield database
    database.close()


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def recorder(events):
    return EventRecorder(events)


@pytest.fixture
def customer_repo(db, events):
    return CustomerRepository(db, events)


@pytest.fixture
def order_repo(db, events):
    return OrderRepository(db, events)


@pytest.fixture
def customer_service(customer_repo, order_repo, events):
    return CustomerService(customer_repo, order_repo, events)


@pytest.fixture
def order_service(order_repo, customer_repo, events):
    return OrderService(order_repo, customer_repo, events)


def make_customer(**overrides) -> Customer:
    data = {
        "name": "Dupont",
        "surname": "Jean",
        "email": "jean.dupont@x.com",
        "phone": "0123456789",
        "address": "123 Rue X",
        "city": "Paris",
        "postal_code": "75001",
    }
    data.update(overrides)
    return Customer(**data)


@pytest.fixture
def saved_customer(customer_repo):
    customer = make_customer()
    assert customer_repo.save(customer), customer_repo.last_error
    return customer


def order_kwargs(customer_id: int, **overrides) -> dict:
    data = {
        "customer_id": customer_id,
        "delivery_address": "12 Quai des Docks",
        "delivery_city": "Marseille",
        "delivery_postal_code": "13002",
        "ordered_at": date(2025, 3, 10),
        "requested_delivery_at": date(2025, 3, 14),
        "weight_total": 12.5,
        "volume_total": 0.6,
        "price_total": 80.0,
    }
    data.update(overrides)
    return data
