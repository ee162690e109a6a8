"""CRUD operations for users and contacts.

This module contains database interaction logic for user and contact
entities, isolated from FastAPI route handlers. Every SQLAlchemy error is
rolled back, logged and re-raised as :class:`StorageFailure`.
"""

from contextlib import contextmanager

from loguru import logger
from starlette.concurrency import run_in_threadpool
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from . import models, schemas
from .core import get_settings
from .errors import (
    AuthenticationFailed,
    Conflict,
    NotFound,
    StorageFailure,
    UserNotFound,
)
from .geocoding import Geocoder, Location, locate
from .security import get_password_hash, verify_password

USERNAME_TAKEN_MESSAGE = "That username is already taken. Please choose another."


@contextmanager
def storage(db: Session, operation: str):
    """Translate SQLAlchemy errors raised inside the block into StorageFailure."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.opt(exception=exc).error(f"Storage failure during {operation}")
        raise StorageFailure(operation) from exc


def get_user_by_username(db: Session, username: str) -> models.User | None:
    """
    Retrieve a user by username.

    The comparison is exact and case-sensitive.

    Args:
        db (Session): Database session.
        username (str): Username to look up.

    Returns:
        User | None: User if found, otherwise ``None``.
    """
    with storage(db, "user lookup"):
        return db.execute(
            select(models.User).where(models.User.username == username)
        ).scalar_one_or_none()


def get_user_by_id(db: Session, user_id: int) -> models.User | None:
    """
    Retrieve a user by primary key.

    Args:
        db (Session): Database session.
        user_id (int): User identifier.

    Returns:
        User | None: User if found, otherwise ``None``.
    """
    with storage(db, "user lookup"):
        return db.get(models.User, user_id)


def create_user(db: Session, username: str, password: str) -> models.User:
    """
    Create and persist a new user.

    Args:
        db (Session): SQLAlchemy database session.
        username (str): Requested username, trimmed before storage.
        password (str): Plaintext password, hashed before storage.

    Raises:
        Conflict: If a user with the same username already exists.
        StorageFailure: If the database rejected the write.

    Returns:
        User: Newly created user instance.
    """
    username = username.strip()
    if get_user_by_username(db, username) is not None:
        logger.info(f"Username already taken: {username}")
        raise Conflict(USERNAME_TAKEN_MESSAGE)

    user = models.User(username=username, password_hash=get_password_hash(password))
    with storage(db, "user creation"):
        try:
            db.add(user)
            db.commit()
        except IntegrityError:
            # a concurrent signup inserted the same username first
            db.rollback()
            logger.info(f"Username already taken: {username}")
            raise Conflict(USERNAME_TAKEN_MESSAGE) from None
        db.refresh(user)
    logger.info(f"User created: {user.username} (ID: {user.id})")
    return user


def authenticate(db: Session, username: str, password: str) -> models.User:
    """
    Check a username and password pair.

    Raises:
        UserNotFound: If no user has that username.
        AuthenticationFailed: If the password does not match.

    Returns:
        User: The authenticated user.
    """
    user = get_user_by_username(db, username.strip())
    if user is None:
        raise UserNotFound(username)
    if not verify_password(password, user.password_hash):
        raise AuthenticationFailed()
    return user


def ensure_default_user(db: Session) -> models.User | None:
    """
    Create the seeded default account if it does not exist yet.

    Failures are logged and swallowed so that the application still starts.

    Returns:
        User | None: The user created now, or ``None``.
    """
    settings = get_settings()
    try:
        if get_user_by_username(db, settings.DEFAULT_USERNAME) is not None:
            return None
        user = create_user(db, settings.DEFAULT_USERNAME, settings.DEFAULT_PASSWORD)
    except (StorageFailure, Conflict) as exc:
        logger.error(f"Error creating default user: {exc.message}")
        return None
    logger.info(f"Default user created: {settings.DEFAULT_USERNAME}")
    return user


def list_contacts(db: Session) -> list[models.Contact]:
    """
    Retrieve all contacts ordered by name.

    Args:
        db (Session): Database session.

    Returns:
        list[Contact]: Every stored contact.
    """
    stmt = select(models.Contact).order_by(
        models.Contact.last_name, models.Contact.first_name, models.Contact.id
    )
    with storage(db, "contact listing"):
        return list(db.scalars(stmt).all())


def get_contact(db: Session, contact_id: int) -> models.Contact | None:
    """
    Retrieve a single contact.

    Args:
        db (Session): Database session.
        contact_id (int): Contact identifier.

    Returns:
        Contact | None: Contact if found, otherwise ``None``.
    """
    with storage(db, "contact lookup"):
        return db.get(models.Contact, contact_id)


def require_contact(db: Session, contact_id: int) -> models.Contact:
    """Return the contact or raise :class:`NotFound`."""
    contact = get_contact(db, contact_id)
    if contact is None:
        raise NotFound("Contact", contact_id)
    return contact


def address_changed(contact: models.Contact, address: str) -> bool:
    """Whether ``address`` differs from the stored address, ignoring whitespace."""
    return (address or "").strip() != (contact.address or "").strip()


def _apply(contact: models.Contact, contact_in: schemas.ContactIn, location: Location):
    fields = contact_in.model_dump(exclude={"address"})
    for key, value in fields.items():
        setattr(contact, key, value)
    contact.address = location.address
    contact.latitude = location.latitude
    contact.longitude = location.longitude


def save_contact(
    db: Session,
    contact: models.Contact,
    contact_in: schemas.ContactIn,
    location: Location,
    operation: str,
) -> models.Contact:
    """Apply validated fields and a resolved location, then commit."""
    _apply(contact, contact_in, location)
    with storage(db, operation):
        db.add(contact)
        db.commit()
        db.refresh(contact)
    return contact


async def create_contact(
    db: Session, contact_in: schemas.ContactIn, geocoder: Geocoder
) -> models.Contact:
    """
    Create a new contact, locating its address first.

    Geocoding is best-effort: when it fails the contact is stored with
    ``(0, 0)`` and the address as entered.

    Args:
        db (Session): Database session.
        contact_in (ContactIn): Validated contact data.
        geocoder (Geocoder): Geocoding client.

    Returns:
        Contact: Newly created contact.
    """
    location = await locate(geocoder, contact_in.address)
    contact = await run_in_threadpool(
        save_contact, db, models.Contact(), contact_in, location, "contact creation"
    )
    logger.info(f"Contact created: {contact.full_name} (ID: {contact.id})")
    return contact


async def update_contact(
    db: Session, contact_id: int, contact_in: schemas.ContactIn, geocoder: Geocoder
) -> models.Contact:
    """
    Update all fields of an existing contact.

    The address is geocoded again only when its text changed. Clearing the
    address, or a changed address that cannot be located, resets the
    coordinates to ``(0, 0)``.

    Args:
        db (Session): Database session.
        contact_id (int): Contact identifier.
        contact_in (ContactIn): Validated contact data.
        geocoder (Geocoder): Geocoding client.

    Raises:
        NotFound: If the contact does not exist.

    Returns:
        Contact: Updated contact.
    """
    contact = await run_in_threadpool(require_contact, db, contact_id)
    if address_changed(contact, contact_in.address):
        location = await locate(geocoder, contact_in.address)
    else:
        location = Location(
            address=contact.address or "",
            latitude=contact.latitude or 0.0,
            longitude=contact.longitude or 0.0,
        )
    contact = await run_in_threadpool(
        save_contact, db, contact, contact_in, location, "contact update"
    )
    logger.info(f"Contact updated: {contact.full_name} (ID: {contact.id})")
    return contact


def delete_contact(db: Session, contact_id: int) -> schemas.ContactOut:
    """
    Delete a contact from the database.

    Args:
        db (Session): Database session.
        contact_id (int): Contact identifier.

    Raises:
        NotFound: If the contact does not exist.

    Returns:
        ContactOut: Snapshot of the deleted contact.
    """
    contact = require_contact(db, contact_id)
    deleted = schemas.ContactOut.model_validate(contact)
    with storage(db, "contact deletion"):
        db.delete(contact)
        db.commit()
    logger.info(
        f"Contact deleted: {deleted.first_name} {deleted.last_name} (ID: {contact_id})"
    )
    return deleted
