"""
Geocoding client

Resolves free-text addresses to coordinates using the Nominatim
(OpenStreetMap) search API.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional

import aiohttp
from loguru import logger

from .core import get_settings
from .errors import UpstreamUnavailable

SENTINEL_COORDINATES = (0.0, 0.0)


@dataclass
class GeocodeResult:
    """A single match returned by the provider."""

    latitude: float
    longitude: float
    formatted_address: str


@dataclass
class Location:
    """Address text and coordinates to store on a contact."""

    address: str
    latitude: float = 0.0
    longitude: float = 0.0

    @property
    def resolved(self) -> bool:
        return (self.latitude, self.longitude) != SENTINEL_COORDINATES


class Geocoder:
    """Client for the Nominatim search API."""

    SEARCH_PATH = "/search"

    def __init__(
        self,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.GEOCODER_URL).rstrip("/")
        self.user_agent = user_agent or settings.GEOCODER_USER_AGENT
        self.timeout = timeout or settings.GEOCODER_TIMEOUT

    async def geocode(self, address: str) -> List[GeocodeResult]:
        """
        Look up an address.

        Args:
            address: Free-text address.

        Returns:
            Matches ranked best-first; empty when nothing matched.

        Raises:
            UpstreamUnavailable: If the provider errored or could not be reached.
        """
        if not address or not address.strip():
            return []

        params = {"q": address.strip(), "format": "jsonv2", "limit": 1}
        headers = {"User-Agent": self.user_agent}
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        try:
            async with aiohttp.ClientSession(headers=headers, timeout=timeout) as session:
                async with session.get(
                    self.base_url + self.SEARCH_PATH, params=params
                ) as resp:
                    if resp.status != 200:
                        error_text = await resp.text()
                        raise UpstreamUnavailable(
                            "Geocoding", f"HTTP {resp.status}: {error_text[:200]}"
                        )
                    data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise UpstreamUnavailable("Geocoding", str(exc) or type(exc).__name__) from exc

        try:
            return [
                GeocodeResult(
                    latitude=float(item["lat"]),
                    longitude=float(item["lon"]),
                    formatted_address=item.get("display_name") or address.strip(),
                )
                for item in data
            ]
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamUnavailable("Geocoding", "Malformed response") from exc


async def locate(geocoder: Geocoder, address: str) -> Location:
    """
    Resolve an address for storage, best-effort.

    No match and provider failure both give the sentinel coordinates with
    the address text as entered.
    """
    address = (address or "").strip()
    if not address:
        return Location(address="")

    try:
        results = await geocoder.geocode(address)
    except UpstreamUnavailable as exc:
        logger.warning(f"Geocoding failed for '{address}': {exc.detail}")
        return Location(address=address)

    if not results:
        logger.info(f"No geocoding results for '{address}', using 0, 0")
        return Location(address=address)

    best = results[0]
    logger.info(
        f"Geocoded '{address}' to {best.latitude}, {best.longitude} - "
        f"{best.formatted_address}"
    )
    return Location(
        address=best.formatted_address or address,
        latitude=best.latitude,
        longitude=best.longitude,
    )


def get_geocoder() -> Geocoder:
    """FastAPI dependency returning the configured geocoder."""
    return Geocoder()
