from datetime import date

from logistics.models.order import OrderStatus
from logistics.seed import SAMPLE_CUSTOMERS, SAMPLE_ORDERS, seed_sample_data


def test_seed_inserts_sample_rows_once(db, customer_repo, order_repo):
    assert seed_sample_data(db, today=date(2025, 6, 10))

    assert customer_repo.count() == len(SAMPLE_CUSTOMERS)
    assert order_repo.count() == len(SAMPLE_ORDERS)
    delivered = order_repo.delivered_orders()
    assert len(delivered) == 1
    assert delivered[0].delivered_at == date(2025, 6, 10)
    assert order_repo.find_by_number("CMD-2025-001000") is not None

    assert not seed_sample_data(db)
    assert customer_repo.count() == len(SAMPLE_CUSTOMERS)


def test_seeded_rows_are_readable_as_entities(db, customer_repo, order_repo):
    seed_sample_data(db, today=date(2025, 6, 10))

    moreau = customer_repo.find_by_email("paul.moreau@email.com")
    assert moreau.status.value == "INACTIVE"
    assert order_repo.count_by_status(OrderStatus.CANCELLED) == 1
    assert all(o.is_valid() for o in order_repo.find_all())


def test_seed_rolls_back_everything_on_failure(db, customer_repo, monkeypatch):
    monkeypatch.setattr(
        "logistics.seed.SAMPLE_ORDERS",
        [("missing@email.com", *SAMPLE_ORDERS[0][1:])],
    )

    assert not seed_sample_data(db)

    assert customer_repo.count() == 0
