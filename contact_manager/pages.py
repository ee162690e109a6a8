"""Home page, JSON listing, geocode proxy and health check."""

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from . import crud, schemas
from .database import get_db
from .errors import NotFound, StorageFailure, ValidationFailed
from .geocoding import Geocoder, get_geocoder
from .templating import render

router = APIRouter(tags=["pages"])

STARTED_AT = time.monotonic()


@router.get("/")
def home(request: Request, db: Session = Depends(get_db)):
    """Show every contact."""
    try:
        contacts = crud.list_contacts(db)
    except StorageFailure:
        return render(
            request,
            "index.html",
            title="Contact Manager",
            contacts=[],
            error="Unable to load contacts. Please try refreshing the page.",
        )
    return render(request, "index.html", title="Contact Manager", contacts=contacts)


@router.get("/api/contacts", response_model=schemas.ContactList)
def api_contacts(db: Session = Depends(get_db)):
    """Return every contact as JSON."""
    return schemas.contact_list(crud.list_contacts(db))


@router.post("/api/geocode", response_model=schemas.GeocodeOut)
async def geocode_address(
    payload: schemas.GeocodeRequest, geocoder: Geocoder = Depends(get_geocoder)
):
    """
    Resolve an address to its best match.

    Raises:
        ValidationFailed: If the address is empty.
        NotFound: If the provider returned no match.
        UpstreamUnavailable: If the provider failed.

    Returns:
        GeocodeOut: Coordinates and normalized address.
    """
    address = payload.address.strip()
    if not address:
        raise ValidationFailed("Address is required.")
    results = await geocoder.geocode(address)
    if not results:
        raise NotFound("Address", address)
    best = results[0]
    return schemas.GeocodeOut(
        latitude=best.latitude,
        longitude=best.longitude,
        formatted_address=best.formatted_address,
    )


@router.get("/health", response_model=schemas.Health)
def health():
    """Report process status."""
    return schemas.Health(
        timestamp=datetime.now(timezone.utc),
        uptime=round(time.monotonic() - STARTED_AT, 3),
    )
