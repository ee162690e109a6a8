"""Contact management routes."""

from fastapi import APIRouter, Depends, Form, Query, Request
from loguru import logger
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from . import crud, schemas
from .database import get_db
from .errors import NotFound, StorageFailure, ValidationFailed
from .geocoding import Geocoder, get_geocoder
from .search import DEFAULT_RADIUS_MILES, filter_contacts
from .session import require_authenticated
from .templating import redirect_with, render

router = APIRouter(prefix="/contacts", tags=["contacts"])

CONTACT_NOT_FOUND = "Contact not found."


def contact_form_fields(
    title: str = Form(""),
    first_name: str = Form(""),
    last_name: str = Form(""),
    address: str = Form(""),
    phone: str = Form(""),
    email: str = Form(""),
    contact_by_mail: bool = Form(False),
    contact_by_phone: bool = Form(False),
    contact_by_email: bool = Form(False),
) -> dict:
    """Collect the fields posted by the add and edit forms."""
    return {
        "title": title,
        "first_name": first_name,
        "last_name": last_name,
        "address": address,
        "phone": phone,
        "email": email,
        "contact_by_mail": contact_by_mail,
        "contact_by_phone": contact_by_phone,
        "contact_by_email": contact_by_email,
    }


def parse_contact(fields: dict) -> schemas.ContactIn:
    """
    Validate posted contact fields.

    Raises:
        ValidationFailed: With the first problem found as its message.
    """
    try:
        return schemas.ContactIn(**fields)
    except ValidationError as exc:
        raise ValidationFailed(schemas.first_error_message(exc)) from None


@router.get("/add", dependencies=[Depends(require_authenticated)])
def add_contact_page(request: Request):
    """Show the add contact form."""
    return render(
        request,
        "contact_form.html",
        title="Add Contact",
        contact=None,
        action="/contacts",
    )


@router.get("/api/search", response_model=schemas.ContactList)
async def search_contacts(
    q: str | None = Query(None),
    first_name: str | None = Query(None),
    last_name: str | None = Query(None),
    lat: float | None = Query(None, ge=-90, le=90),
    lng: float | None = Query(None, ge=-180, le=180),
    address: str | None = Query(None),
    radius: float = Query(DEFAULT_RADIUS_MILES, gt=0),
    db: Session = Depends(get_db),
    geocoder: Geocoder = Depends(get_geocoder),
):
    """
    Search contacts by name and by distance from a point.

    The point is given either as ``lat``/``lng`` or as an ``address`` to
    geocode; ``radius`` is in miles.

    Raises:
        ValidationFailed: If only one of ``lat`` and ``lng`` is given.
        NotFound: If ``address`` could not be located.
        UpstreamUnavailable: If the geocoding provider failed.

    Returns:
        ContactList: Matching contacts.
    """
    if (lat is None) != (lng is None):
        raise ValidationFailed("Both lat and lng are required for a location search.")

    origin = None
    if lat is not None and lng is not None:
        origin = (lat, lng)
    elif address and address.strip():
        results = await geocoder.geocode(address)
        if not results:
            raise NotFound("Address", address)
        origin = (results[0].latitude, results[0].longitude)

    contacts = filter_contacts(
        await run_in_threadpool(crud.list_contacts, db),
        q=q,
        first_name=first_name,
        last_name=last_name,
        origin=origin,
        radius=radius,
    )
    return schemas.contact_list(contacts)


@router.post("", dependencies=[Depends(require_authenticated)])
async def create_contact(
    fields: dict = Depends(contact_form_fields),
    db: Session = Depends(get_db),
    geocoder: Geocoder = Depends(get_geocoder),
):
    """Create a contact from the add form, geocoding its address."""

    logger.info(
        f"Creating new contact: {fields['first_name']} {fields['last_name']}"
    )
    try:
        contact_in = parse_contact(fields)
    except ValidationFailed as exc:
        return redirect_with("/contacts/add", error=exc.message)

    try:
        contact = await crud.create_contact(db, contact_in, geocoder)
    except StorageFailure:
        return redirect_with(
            "/contacts/add", error="Failed to create contact. Please try again."
        )

    message = f'Contact "{contact.full_name}" added successfully!'
    if contact.has_location:
        message += " Address was located on the map."
    elif contact_in.address:
        message += " Address could not be located for mapping."
    return redirect_with("/", success=message)


@router.get("/{contact_id}/edit", dependencies=[Depends(require_authenticated)])
def edit_contact_page(
    contact_id: int, request: Request, db: Session = Depends(get_db)
):
    """Show the edit form of a contact."""
    contact = crud.get_contact(db, contact_id)
    if contact is None:
        return redirect_with("/", error=CONTACT_NOT_FOUND)
    return render(
        request,
        "contact_form.html",
        title=f"Edit {contact.full_name}",
        contact=contact,
        action=f"/contacts/{contact.id}",
    )


@router.post("/{contact_id}", dependencies=[Depends(require_authenticated)])
async def update_contact(
    contact_id: int,
    fields: dict = Depends(contact_form_fields),
    db: Session = Depends(get_db),
    geocoder: Geocoder = Depends(get_geocoder),
):
    """Update a contact from the edit form."""

    logger.info(f"Updating contact ID: {contact_id}")
    existing = await run_in_threadpool(crud.get_contact, db, contact_id)
    if existing is None:
        return redirect_with("/", error=CONTACT_NOT_FOUND)

    edit_url = f"/contacts/{contact_id}/edit"
    try:
        contact_in = parse_contact(fields)
    except ValidationFailed as exc:
        return redirect_with(edit_url, error=exc.message)

    changed = crud.address_changed(existing, contact_in.address)
    try:
        contact = await crud.update_contact(db, contact_id, contact_in, geocoder)
    except NotFound:
        return redirect_with("/", error=CONTACT_NOT_FOUND)
    except StorageFailure:
        return redirect_with(
            edit_url, error="Failed to update contact. Please try again."
        )

    message = f'Contact "{contact.full_name}" updated successfully!'
    if changed and contact.has_location:
        message += " New address was located on the map."
    elif changed and contact_in.address:
        message += " New address could not be located for mapping."
    return redirect_with("/", success=message)


@router.delete(
    "/{contact_id}",
    response_model=schemas.DeleteResult,
    dependencies=[Depends(require_authenticated)],
)
def remove_contact(contact_id: int, db: Session = Depends(get_db)):
    """
    Delete a contact.

    Args:
        contact_id (int): Contact identifier.
        db (Session): Database session.

    Raises:
        NotFound: If contact is not found.

    Returns:
        DeleteResult: Deletion status.
    """
    logger.info(f"Deleting contact ID: {contact_id}")
    deleted = crud.delete_contact(db, contact_id)
    return schemas.DeleteResult(
        message=(
            f'Contact "{deleted.first_name} {deleted.last_name}" '
            "deleted successfully."
        )
    )


@router.get("/{contact_id}")
def view_contact(contact_id: int, request: Request, db: Session = Depends(get_db)):
    """Show a single contact."""
    contact = crud.get_contact(db, contact_id)
    if contact is None:
        return redirect_with("/", error=CONTACT_NOT_FOUND)
    return render(request, "contact.html", title=contact.full_name, contact=contact)
