# logistics/schemas/customer.py
from datetime import date

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel

from logistics.models.customer import CustomerStatus


class CustomerCreate(SQLModel):
    """
    Payload for creating a customer.

    Format rules (name letters, email pattern, phone digits, ...) are
    checked by the service so every consumer gets the same messages.
    """

    model_config = ConfigDict(extra="forbid")

    name: str
    surname: str
    email: str
    phone: str
    address: str
    city: str
    postal_code: str
    status: CustomerStatus = CustomerStatus.ACTIVE

    @field_validator("name", "surname", "email", "phone", "address", "city", "postal_code")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()


class CustomerUpdate(SQLModel):
    """
    Partial update; only provided fields are changed.
    created_at is not editable.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    surname: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    postal_code: str | None = None
    status: CustomerStatus | None = None


class CustomerSuspend(SQLModel):
    model_config = ConfigDict(extra="forbid")

    reason: str | None = None


class CustomerRead(SQLModel):
    id: int
    name: str
    surname: str
    email: str
    phone: str
    address: str
    city: str
    postal_code: str
    created_at: date
    status: CustomerStatus
