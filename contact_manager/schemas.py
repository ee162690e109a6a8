import re
from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError

NAME_REQUIRED_MESSAGE = "First name and last name are required."


class ContactBase(BaseModel):
    """Shared fields for contact schemas."""

    first_name: str
    last_name: str
    title: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    contact_by_mail: bool = False
    contact_by_phone: bool = False
    contact_by_email: bool = False


class ContactIn(ContactBase):
    """Validated contact fields submitted by the add and edit forms."""

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def require_name(cls, value):
        if value is None or not str(value).strip():
            raise ValueError(NAME_REQUIRED_MESSAGE)
        return str(value).strip()

    @field_validator("title", "address", "phone", "email", mode="before")
    @classmethod
    def blank_to_empty(cls, value):
        return "" if value is None else str(value).strip()

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        if not value:
            return value
        try:
            validate_email(value)
        except PydanticCustomError:
            raise ValueError("Please enter a valid email address.") from None
        return value

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value: str) -> str:
        if not value:
            return value
        digits = re.sub(r"\D", "", value)
        if not 10 <= len(digits) <= 11:
            raise ValueError("Please enter a valid phone number.")
        return value


class ContactOut(ContactBase):
    """Schema for returning contact with ID and coordinates."""

    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    id: int
    latitude: float = 0.0
    longitude: float = 0.0


class ContactList(BaseModel):
    """Envelope for contact listings."""

    success: bool = True
    contacts: List[ContactOut]
    count: int


class DeleteResult(BaseModel):
    """Response of the delete endpoint."""

    success: bool = True
    message: str


class GeocodeRequest(BaseModel):
    """Payload of the geocode proxy endpoint."""

    address: str = ""


class GeocodeOut(BaseModel):
    """Best geocoding match for an address."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True
    latitude: float
    longitude: float
    formatted_address: str


class Health(BaseModel):
    """Process status reported by the health check."""

    status: str = "healthy"
    timestamp: datetime
    uptime: float = Field(description="Seconds since the process started")


def first_error_message(exc: ValidationError) -> str:
    """Return the human-readable message of the first validation error."""
    error = exc.errors()[0]
    message = str(error.get("msg", "Invalid input."))
    return message.removeprefix("Value error, ")


def contact_list(contacts) -> ContactList:
    """Wrap ORM contacts in the listing envelope."""
    items = [ContactOut.model_validate(contact) for contact in contacts]
    return ContactList(contacts=items, count=len(items))
