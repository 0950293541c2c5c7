from datetime import date

from conftest import make_customer
from logistics.core.events import FieldChanged
from logistics.models.customer import Customer, CustomerStatus


def test_save_assigns_key_and_canonical_email(customer_repo):
    customer = make_customer(email="JEAN.DUPONT@x.com")
    assert customer.id is None

    assert customer_repo.save(customer)

    assert customer.id is not None
    assert customer.email == "jean.dupont@x.com"


def test_round_trip_preserves_fields(customer_repo, saved_customer):
    loaded = customer_repo.load(saved_customer.id)

    assert loaded is not None
    assert loaded.name == "Dupont"
    assert loaded.surname == "Jean"
    assert loaded.email == "jean.dupont@x.com"
    assert loaded.phone == "0123456789"
    assert loaded.address == "123 Rue X"
    assert loaded.city == "Paris"
    assert loaded.postal_code == "75001"
    assert loaded.status == CustomerStatus.ACTIVE
    assert loaded.created_at == saved_customer.created_at


def test_invalid_customer_is_not_written(customer_repo):
    customer = make_customer(name="X", email="not-an-email")

    assert not customer_repo.save(customer)

    assert customer.id is None
    assert "Invalid customer" in customer_repo.last_error
    assert customer_repo.count() == 0


def test_duplicate_email_is_rejected_by_backend(customer_repo, saved_customer):
    twin = make_customer(email="Jean.Dupont@X.com", name="Autre")

    assert not customer_repo.save(twin)

    assert twin.id is None
    assert customer_repo.count() == 1


def test_update_keeps_created_at(customer_repo, saved_customer):
    saved_customer.city = "Lyon"
    saved_customer.created_at = date(1999, 1, 1)

    assert customer_repo.save(saved_customer)

    loaded = customer_repo.load(saved_customer.id)
    assert loaded.city == "Lyon"
    assert loaded.created_at != date(1999, 1, 1)


def test_update_of_missing_customer_fails(customer_repo):
    ghost = make_customer()
    ghost.id = 9999

    assert not customer_repo.save(ghost)
    assert "not found" in customer_repo.last_error


def test_load_missing_returns_none(customer_repo):
    assert customer_repo.load(12345) is None


def test_remove_resets_key(customer_repo, saved_customer):
    customer_id = saved_customer.id

    assert customer_repo.remove(saved_customer)

    assert saved_customer.id is None
    assert customer_repo.load(customer_id) is None
    assert not customer_repo.remove(saved_customer)


def test_set_field_validates_and_notifies(customer_repo, saved_customer, recorder):
    assert customer_repo.set_field(saved_customer, "email", "  NEW@Mail.com ")
    assert saved_customer.email == "new@mail.com"

    assert not customer_repo.set_field(saved_customer, "phone", "12")
    assert saved_customer.phone == "0123456789"

    assert not customer_repo.set_field(saved_customer, "created_at", date(2000, 1, 1))

    changes = recorder.of_type(FieldChanged)
    assert len(changes) == 1
    assert changes[0].field == "email"
    assert changes[0].entity_id == saved_customer.id


def test_find_by_email_is_case_insensitive(customer_repo, saved_customer):
    found = customer_repo.find_by_email("JEAN.DUPONT@X.COM")
    assert found is not None
    assert found.id == saved_customer.id
    assert customer_repo.find_by_email("nobody@x.com") is None


def _seed(customer_repo):
    rows = [
        ("Dupont", "Jean", "jean@x.com", "Paris", CustomerStatus.ACTIVE),
        ("Martin", "Marie", "marie@x.com", "Lyon", CustomerStatus.ACTIVE),
        ("Moreau", "Paul", "paul@x.com", "Paris", CustomerStatus.INACTIVE),
    ]
    for name, surname, email, city, status in rows:
        assert customer_repo.save(
            make_customer(name=name, surname=surname, email=email, city=city, status=status)
        )


def test_search_combines_criteria(customer_repo):
    _seed(customer_repo)

    assert {c.email for c in customer_repo.search(city="par")} == {"jean@x.com", "paul@x.com"}
    assert [c.email for c in customer_repo.search(city="paris", status="INACTIVE")] == ["paul@x.com"]
    assert [c.email for c in customer_repo.search(name="MART")] == ["marie@x.com"]
    assert len(customer_repo.search()) == 3


def test_search_escapes_wildcards(customer_repo):
    _seed(customer_repo)
    assert customer_repo.search(name="%") == []


def test_find_all_orders_by_surname_then_name(customer_repo):
    _seed(customer_repo)
    assert [c.surname for c in customer_repo.find_all()] == ["Jean", "Marie", "Paul"]


def test_sort_by_field_and_direction(customer_repo):
    customers = [
        Customer(name="b", surname="z", email="b@x.com", phone="", address="", city="Nice", postal_code=""),
        Customer(name="A", surname="y", email="a@x.com", phone="", address="", city="amiens", postal_code=""),
    ]

    assert [c.name for c in customer_repo.sort(customers, "name")] == ["A", "b"]
    assert [c.city for c in customer_repo.sort(customers, "city", ascending=False)] == ["Nice", "amiens"]
    assert [c.name for c in customer_repo.sort(customers, "unknown")] == ["A", "b"]


def test_counts(customer_repo):
    _seed(customer_repo)
    assert customer_repo.count() == 3
    assert customer_repo.count_by_status(CustomerStatus.ACTIVE) == 2
    assert customer_repo.count_by_status("INACTIVE") == 1
    assert customer_repo.count_by_city() == {"Paris": 2, "Lyon": 1}
