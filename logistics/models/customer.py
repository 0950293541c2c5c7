# logistics/models/customer.py
from datetime import date
from enum import Enum
from typing import Any, Callable

from sqlalchemy import Column, Enum as SAEnum, Index, text
from sqlmodel import SQLModel, Field

from logistics.core import validation


class CustomerStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


def _coerce_status(value: Any) -> CustomerStatus:
    return value if isinstance(value, CustomerStatus) else CustomerStatus(value)


# field -> (check, normalizer); used by Customer.assign()
FIELD_RULES: dict[str, tuple[Callable[[Any], bool], Callable[[Any], Any]]] = {
    "name": (validation.is_valid_name, validation.clean_text),
    "surname": (validation.is_valid_name, validation.clean_text),
    "email": (validation.is_valid_email, validation.clean_email),
    "phone": (validation.is_valid_phone, validation.clean_phone),
    "address": (validation.is_valid_address, validation.clean_text),
    "city": (validation.is_valid_city, validation.clean_text),
    "postal_code": (validation.is_valid_postal_code, validation.clean_text),
}


class Customer(SQLModel, table=True):
    """
    Client record.

    Identity:
      - id is None until the first successful save

    Invariants:
      - email is unique and stored lowercase
      - created_at never changes once set
      - every text field passes the rules in core.validation
    """

    __tablename__ = "customers"
    __table_args__ = (
        Index("idx_customers_email", "email"),
        Index("idx_customers_name_surname", "name", "surname"),
        Index("idx_customers_city", "city"),
    )

    id: int | None = Field(default=None, primary_key=True)

    name: str = Field(max_length=100)
    surname: str = Field(max_length=100)

    email: str = Field(
        max_length=150,
        unique=True,
        description="Canonical lowercase email",
    )

    phone: str = Field(max_length=20)
    address: str = Field(max_length=500)
    city: str = Field(max_length=100)
    postal_code: str = Field(max_length=10)

    created_at: date = Field(
        default_factory=date.today,
        sa_column_kwargs={"server_default": text("CURRENT_DATE")},
        description="Creation date (immutable)",
    )

    status: CustomerStatus = Field(
        default=CustomerStatus.ACTIVE,
        sa_column=Column(
            SAEnum(
                CustomerStatus,
                name="customer_status",
                native_enum=False,
                create_constraint=True,
                length=20,
            ),
            nullable=False,
            server_default=CustomerStatus.ACTIVE.value,
        ),
    )

    # ----- Derived -----

    @property
    def is_saved(self) -> bool:
        return self.id is not None

    @property
    def full_name(self) -> str:
        return f"{self.surname} {self.name}".strip()

    # ----- Validation -----

    def validation_errors(self) -> list[str]:
        return validation.validate_customer(
            self.name,
            self.surname,
            self.email,
            self.phone,
            self.address,
            self.city,
            self.postal_code,
        )

    def is_valid(self) -> bool:
        return not self.validation_errors()

    def normalize(self) -> None:
        """Canonicalize text fields in place before a write."""
        for field, (_check, normalizer) in FIELD_RULES.items():
            setattr(self, field, normalizer(getattr(self, field)))
        self.status = _coerce_status(self.status)

    # ----- Setters -----

    def assign(self, field: str, value: Any) -> bool:
        """
        Validate and set a single field.

        Returns False and leaves the customer untouched when the value is
        rejected or the field cannot be changed.
        """
        if field == "status":
            try:
                self.status = _coerce_status(value)
            except ValueError:
                return False
            return True

        if field == "created_at":
            if self.created_at is not None and self.is_saved:
                return False
            if not validation.is_valid_date(value):
                return False
            self.created_at = value
            return True

        rule = FIELD_RULES.get(field)
        if rule is None:
            return False

        check, normalizer = rule
        if not check(value):
            return False
        setattr(self, field, normalizer(value))
        return True
