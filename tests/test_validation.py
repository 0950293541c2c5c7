from datetime import date

import pytest

from logistics.core import validation


@pytest.mark.parametrize(
    "value, expected",
    [
        ("Dupont", True),
        ("Jean-Pierre", True),
        ("D'Artagnan", True),
        ("Hélène", True),
        ("J", False),
        ("R2D2", False),
        ("", False),
        (None, False),
        ("x" * 101, False),
    ],
)
def test_is_valid_name(value, expected):
    assert validation.is_valid_name(value) is expected


def test_email_rules():
    assert validation.is_valid_email("jean.dupont@x.com")
    assert validation.is_valid_email("JEAN.DUPONT@X.COM")
    assert not validation.is_valid_email("jean.dupont@x")
    assert not validation.is_valid_email("no-at-sign.com")
    assert not validation.is_valid_email("a" * 140 + "@example.com")


def test_clean_email_lowercases_and_strips():
    assert validation.clean_email("  JEAN.Dupont@X.com ") == "jean.dupont@x.com"


def test_phone_and_postal_code():
    assert validation.is_valid_phone("0123456789")
    assert validation.is_valid_phone("+33 (0)1 23 45 67 89")
    assert not validation.is_valid_phone("12345")
    assert not validation.is_valid_phone("01234abc89")

    assert validation.is_valid_postal_code("75001")
    assert validation.is_valid_postal_code("SW1A 1AA")
    assert not validation.is_valid_postal_code("750")
    assert not validation.is_valid_postal_code("75001-12345")


def test_numeric_bounds():
    assert validation.is_valid_amount(0)
    assert validation.is_valid_amount(999999.999)
    assert not validation.is_valid_amount(-0.01)
    assert not validation.is_valid_amount(1_000_000)
    assert validation.is_valid_weight(10000)
    assert not validation.is_valid_weight(10000.5)
    assert validation.is_valid_volume(1000)
    assert not validation.is_valid_volume(-1)


def test_date_rules():
    today = date(2025, 6, 1)
    assert validation.is_valid_date(date(2025, 5, 1), today=today)
    assert not validation.is_valid_date(date(2025, 5, 1), allow_past=False, today=today)
    assert not validation.is_valid_date(date(2025, 7, 1), allow_future=False, today=today)
    assert not validation.is_valid_date(None)

    assert validation.is_valid_date_range(date(2025, 1, 1), date(2025, 1, 1))
    assert not validation.is_valid_date_range(date(2025, 1, 2), date(2025, 1, 1))


def test_format_error_message():
    message = validation.format_error_message("Email", "bad", "invalid email format")
    assert message == "Field 'Email' is invalid (value: 'bad'): invalid email format"


def test_validate_customer_collects_every_violation():
    errors = validation.validate_customer("J", "Jean", "bad", "12", "", "Paris", "75001")
    assert len(errors) == 4
    assert errors[0].startswith("Field 'Name'")


def test_validate_customer_accepts_valid_record():
    assert validation.validate_customer(
        "Dupont", "Jean", "jean.dupont@x.com", "0123456789", "123 Rue X", "Paris", "75001"
    ) == []


def test_validate_order_rejects_delivery_before_order_date():
    errors = validation.validate_order(
        1,
        date(2025, 3, 10),
        date(2025, 3, 9),
        "12 Quai des Docks",
        "Marseille",
        "13002",
        1.0,
        1.0,
        1.0,
    )
    assert errors == ["The requested delivery date cannot be earlier than the order date"]


def test_validate_order_requires_customer():
    errors = validation.validate_order(
        0, date(2025, 3, 10), None, "12 Quai", "Marseille", "13002", 0, 0, 0
    )
    assert "A customer must be selected" in errors
