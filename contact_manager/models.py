"""Database models for the Contact Manager.

This module defines SQLAlchemy ORM models used by the application.
"""

from sqlalchemy import Boolean, Column, Float, Integer, String

from .database import Base


class User(Base):
    """
    SQLAlchemy model representing an application user.

    Usernames are case-sensitive and unique. Users are never updated or
    deleted once created.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(150), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)


class Contact(Base):
    """
    SQLAlchemy model representing a contact entry.

    Contacts are shared by all users. ``(0, 0)`` coordinates mean the
    address has not been located.
    """

    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(100), nullable=False, index=True)
    last_name = Column(String(100), nullable=False, index=True)
    title = Column(String(50), nullable=False, default="")
    address = Column(String(500), nullable=False, default="")
    phone = Column(String(50), nullable=False, default="")
    email = Column(String(255), nullable=False, default="")

    #: Communication preferences, stored as 0/1 integers
    contact_by_mail = Column(Boolean, nullable=False, default=False)
    contact_by_phone = Column(Boolean, nullable=False, default=False)
    contact_by_email = Column(Boolean, nullable=False, default=False)

    latitude = Column(Float, nullable=False, default=0.0)
    longitude = Column(Float, nullable=False, default=0.0)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def has_location(self) -> bool:
        """Whether the contact's address was resolved to coordinates."""
        return not (self.latitude == 0 and self.longitude == 0)
