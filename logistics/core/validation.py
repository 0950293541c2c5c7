# logistics/core/validation.py
"""
Field-level validation rules shared by customers and orders.

Every function here is pure: no state, no I/O, safe to call from any
thread. Single-field checks return a bool; the aggregate validators
return the ordered list of human-readable violations (empty = valid).
"""

import re
from datetime import date

EMAIL_RE = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
PHONE_RE = re.compile(r"^[0-9+\-\s()]{8,20}$")
POSTAL_CODE_RE = re.compile(r"^[0-9A-Za-z\-\s]{4,10}$")
NAME_RE = re.compile(r"^[A-Za-zÀ-ÿ\s\-']+$")

EMAIL_MAX_LENGTH = 150
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
ADDRESS_MIN_LENGTH = 1
ADDRESS_MAX_LENGTH = 500

MAX_AMOUNT = 999999.999
MAX_WEIGHT = 10000.0
MAX_VOLUME = 1000.0


# ----- Cleaning -----


def clean_text(value: str | None) -> str:
    return (value or "").strip()


def clean_email(value: str | None) -> str:
    """Canonical form used for storage and comparisons."""
    return clean_text(value).lower()


def clean_phone(value: str | None) -> str:
    return clean_text(value)


def format_error_message(field: str, value: object, reason: str) -> str:
    shown = "" if value is None else str(value)[:50]
    return f"Field '{field}' is invalid (value: '{shown}'): {reason}"


# ----- Single-field rules -----


def is_valid_name(
    value: str | None,
    min_length: int = NAME_MIN_LENGTH,
    max_length: int = NAME_MAX_LENGTH,
) -> bool:
    """Letters (accents allowed), spaces, hyphens and apostrophes."""
    cleaned = clean_text(value)
    if not min_length <= len(cleaned) <= max_length:
        return False
    return NAME_RE.match(cleaned) is not None


def is_valid_email(value: str | None) -> bool:
    cleaned = clean_email(value)
    if not cleaned or len(cleaned) > EMAIL_MAX_LENGTH:
        return False
    return EMAIL_RE.match(cleaned) is not None


def is_valid_phone(value: str | None) -> bool:
    cleaned = clean_phone(value)
    return PHONE_RE.match(cleaned) is not None


def is_valid_address(
    value: str | None,
    min_length: int = ADDRESS_MIN_LENGTH,
    max_length: int = ADDRESS_MAX_LENGTH,
) -> bool:
    cleaned = clean_text(value)
    return bool(cleaned) and min_length <= len(cleaned) <= max_length


def is_valid_postal_code(value: str | None) -> bool:
    cleaned = clean_text(value)
    return POSTAL_CODE_RE.match(cleaned) is not None


def is_valid_city(
    value: str | None,
    min_length: int = NAME_MIN_LENGTH,
    max_length: int = NAME_MAX_LENGTH,
) -> bool:
    return is_valid_name(value, min_length, max_length)


def _in_range(value: float | None, min_value: float, max_value: float) -> bool:
    if value is None or isinstance(value, bool):
        return False
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return min_value <= number <= max_value


def is_valid_amount(
    value: float | None, min_value: float = 0.0, max_value: float = MAX_AMOUNT
) -> bool:
    return _in_range(value, min_value, max_value)


def is_valid_weight(
    value: float | None, min_value: float = 0.0, max_value: float = MAX_WEIGHT
) -> bool:
    return _in_range(value, min_value, max_value)


def is_valid_volume(
    value: float | None, min_value: float = 0.0, max_value: float = MAX_VOLUME
) -> bool:
    return _in_range(value, min_value, max_value)


def is_valid_date(
    value: date | None,
    allow_past: bool = True,
    allow_future: bool = True,
    today: date | None = None,
) -> bool:
    if not isinstance(value, date):
        return False
    today = today or date.today()
    if not allow_past and value < today:
        return False
    if not allow_future and value > today:
        return False
    return True


def is_valid_date_range(start: date | None, end: date | None) -> bool:
    if not isinstance(start, date) or not isinstance(end, date):
        return False
    return start <= end


# ----- Aggregates -----


def validate_customer(
    name: str | None,
    surname: str | None,
    email: str | None,
    phone: str | None,
    address: str | None,
    city: str | None,
    postal_code: str | None,
) -> list[str]:
    errors: list[str] = []

    if not is_valid_name(name):
        errors.append(format_error_message(
            "Name", name, "must contain between 2 and 100 letters"))
    if not is_valid_name(surname):
        errors.append(format_error_message(
            "Surname", surname, "must contain between 2 and 100 letters"))
    if not is_valid_email(email):
        errors.append(format_error_message("Email", email, "invalid email format"))
    if not is_valid_phone(phone):
        errors.append(format_error_message(
            "Phone", phone, "must contain between 8 and 20 digits"))
    if not is_valid_address(address):
        errors.append(format_error_message(
            "Address", address, "must contain between 1 and 500 characters"))
    if not is_valid_city(city):
        errors.append(format_error_message(
            "City", city, "must contain between 2 and 100 letters"))
    if not is_valid_postal_code(postal_code):
        errors.append(format_error_message(
            "Postal code", postal_code,
            "must contain between 4 and 10 alphanumeric characters"))

    return errors


def validate_order(
    customer_id: int | None,
    ordered_at: date | None,
    requested_delivery_at: date | None,
    delivery_address: str | None,
    delivery_city: str | None,
    delivery_postal_code: str | None,
    weight_total: float | None,
    volume_total: float | None,
    price_total: float | None,
    delivered_at: date | None = None,
) -> list[str]:
    errors: list[str] = []

    if customer_id is None or customer_id <= 0:
        errors.append("A customer must be selected")

    if not is_valid_date(ordered_at):
        errors.append("The order date is invalid")
    else:
        if requested_delivery_at is not None and not is_valid_date_range(
            ordered_at, requested_delivery_at
        ):
            errors.append(
                "The requested delivery date cannot be earlier than the order date"
            )
        if delivered_at is not None and not is_valid_date_range(
            ordered_at, delivered_at
        ):
            errors.append(
                "The actual delivery date cannot be earlier than the order date"
            )

    if not is_valid_address(delivery_address):
        errors.append(format_error_message(
            "Delivery address", delivery_address,
            "must contain between 1 and 500 characters"))
    if not is_valid_city(delivery_city):
        errors.append(format_error_message(
            "Delivery city", delivery_city,
            "must contain between 2 and 100 letters"))
    if not is_valid_postal_code(delivery_postal_code):
        errors.append(format_error_message(
            "Delivery postal code", delivery_postal_code,
            "must contain between 4 and 10 alphanumeric characters"))

    if not is_valid_weight(weight_total):
        errors.append(f"Total weight ({weight_total} kg) must be between 0 and 10000 kg")
    if not is_valid_volume(volume_total):
        errors.append(f"Total volume ({volume_total} m3) must be between 0 and 1000 m3")
    if not is_valid_amount(price_total):
        errors.append(f"Total price ({price_total}) must be between 0 and 999999.999")

    return errors
