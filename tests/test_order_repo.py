from datetime import date

import pytest

from conftest import make_customer, order_kwargs
from logistics.core.events import FieldChanged
from logistics.models.order import NO_LEAD_TIME, Order, OrderPriority, OrderStatus


@pytest.fixture
def saved_order(order_repo, saved_customer):
    order = Order(**order_kwargs(saved_customer.id))
    assert order_repo.save(order), order_repo.last_error
    return order


def test_insert_generates_order_number(order_repo, saved_customer):
    first = Order(**order_kwargs(saved_customer.id))
    second = Order(**order_kwargs(saved_customer.id))

    assert order_repo.save(first)
    assert order_repo.save(second)

    assert first.order_number == "CMD000001"
    assert second.order_number == "CMD000002"
    assert first.status == OrderStatus.PENDING
    assert first.priority == OrderPriority.NORMAL


def test_round_trip(order_repo, saved_order):
    loaded = order_repo.load(saved_order.id)

    assert loaded.order_number == saved_order.order_number
    assert loaded.ordered_at == date(2025, 3, 10)
    assert loaded.requested_delivery_at == date(2025, 3, 14)
    assert loaded.delivery_city == "Marseille"
    assert loaded.weight_total == pytest.approx(12.5)


def test_requested_delivery_before_order_date_is_rejected(order_repo, saved_customer):
    order = Order(**order_kwargs(saved_customer.id, requested_delivery_at=date(2025, 3, 1)))

    assert not order_repo.save(order)

    assert order.id is None
    assert order.order_number is None
    assert "earlier than the order date" in order_repo.last_error


def test_negative_totals_are_rejected(order_repo, saved_customer):
    order = Order(**order_kwargs(saved_customer.id, price_total=-1))
    assert not order_repo.save(order)
    assert order_repo.count() == 0


def test_unknown_customer_fails_on_foreign_key(order_repo):
    order = Order(**order_kwargs(9999))
    assert not order_repo.save(order)
    assert order.id is None


def test_order_number_and_date_are_immutable(order_repo, saved_order):
    original = saved_order.order_number

    saved_order.order_number = "CMD999999"
    assert not order_repo.save(saved_order)

    saved_order.order_number = original
    saved_order.ordered_at = date(2025, 3, 1)
    assert not order_repo.save(saved_order)
    assert order_repo.load(saved_order.id).ordered_at == date(2025, 3, 10)


def test_set_field_rules(order_repo, saved_order, recorder):
    assert not order_repo.set_field(saved_order, "order_number", "X")
    assert not order_repo.set_field(saved_order, "ordered_at", date(2025, 1, 1))
    assert not order_repo.set_field(saved_order, "requested_delivery_at", date(2025, 3, 9))
    assert not order_repo.set_field(saved_order, "customer_id", 424242)
    assert not order_repo.set_field(saved_order, "weight_total", 20000)

    assert order_repo.set_field(saved_order, "requested_delivery_at", date(2025, 3, 20))
    assert order_repo.set_field(saved_order, "priority", "URGENT")

    assert [e.field for e in recorder.of_type(FieldChanged)] == [
        "requested_delivery_at",
        "priority",
    ]
    assert saved_order.priority == OrderPriority.URGENT


def test_derived_values():
    order = Order(**order_kwargs(1))
    assert order.lead_time_days == 4
    assert order.is_late(today=date(2025, 3, 15))
    assert not order.is_late(today=date(2025, 3, 14))

    order.status = OrderStatus.DELIVERED
    assert not order.is_late(today=date(2025, 3, 15))
    assert not order.can_modify
    assert not order.can_delete

    order.requested_delivery_at = None
    assert order.lead_time_days == NO_LEAD_TIME


def _orders(order_repo, customer_id):
    specs = [
        dict(ordered_at=date(2025, 1, 5), requested_delivery_at=date(2025, 1, 9),
             priority=OrderPriority.LOW, price_total=100.0),
        dict(ordered_at=date(2025, 1, 20), requested_delivery_at=date(2025, 1, 25),
             priority=OrderPriority.URGENT, price_total=50.0),
        dict(ordered_at=date(2025, 3, 2), requested_delivery_at=date(2025, 3, 4),
             priority=OrderPriority.HIGH, price_total=30.0, status=OrderStatus.CANCELLED),
    ]
    orders = []
    for spec in specs:
        order = Order(**order_kwargs(customer_id, **spec))
        assert order_repo.save(order), order_repo.last_error
        orders.append(order)
    return orders


def test_finders(order_repo, saved_customer):
    orders = _orders(order_repo, saved_customer.id)

    assert [o.id for o in order_repo.find_all()] == [orders[2].id, orders[1].id, orders[0].id]
    assert order_repo.find_by_number(orders[1].order_number).id == orders[1].id
    assert order_repo.find_by_number("CMD123456") is None
    assert len(order_repo.find_by_customer(saved_customer.id)) == 3


def test_search(order_repo, saved_customer, customer_repo):
    orders = _orders(order_repo, saved_customer.id)
    other = make_customer(email="other@x.com")
    assert customer_repo.save(other)

    assert [o.id for o in order_repo.search(priority="URGENT")] == [orders[1].id]
    assert len(order_repo.search(date_from=date(2025, 1, 5), date_to=date(2025, 1, 20))) == 2
    assert order_repo.search(customer_id=other.id) == []
    assert len(order_repo.search(order_number="cmd00000")) == 3
    assert [o.id for o in order_repo.search(status=OrderStatus.CANCELLED)] == [orders[2].id]


def test_sort_by_priority_and_price(order_repo, saved_customer):
    orders = _orders(order_repo, saved_customer.id)

    by_priority = order_repo.sort(orders, "priority", ascending=False)
    assert [o.priority for o in by_priority] == [
        OrderPriority.URGENT,
        OrderPriority.HIGH,
        OrderPriority.LOW,
    ]
    assert [o.price_total for o in order_repo.sort(orders, "price")] == [30.0, 50.0, 100.0]
    assert [o.id for o in order_repo.sort(orders, "bogus")] == [o.id for o in orders]


def test_aggregates(order_repo, saved_customer):
    _orders(order_repo, saved_customer.id)

    assert order_repo.count() == 3
    assert order_repo.count_by_status("PENDING") == 2
    assert order_repo.count_by_priority(OrderPriority.HIGH) == 1
    assert order_repo.total_revenue() == pytest.approx(150.0)
    assert order_repo.average_price() == pytest.approx(75.0)
    assert order_repo.count_active_for_customer(saved_customer.id) == 2
    assert order_repo.count_for_customer(saved_customer.id) == 3


def test_late_orders_skip_terminal(order_repo, saved_customer):
    orders = _orders(order_repo, saved_customer.id)

    late = order_repo.late_orders(today=date(2025, 3, 10))

    assert [o.id for o in late] == [orders[0].id, orders[1].id]


def test_monthly_counts(order_repo, saved_customer):
    _orders(order_repo, saved_customer.id)

    counts = order_repo.monthly_counts(2025)

    assert len(counts) == 12
    assert counts[1] == 2
    assert counts[3] == 1
    assert counts[2] == 0
    assert sum(order_repo.monthly_counts(2024).values()) == 0


def test_cascade_delete_with_customer(order_repo, customer_repo, saved_customer, saved_order):
    assert customer_repo.remove(saved_customer)
    assert order_repo.load(saved_order.id) is None
