"""Location data hooks used when a listing location is saved."""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional
import logging

from api.services.listing_store import ListingStore

logger = logging.getLogger(__name__)

GEOLOCATED_KEY = "geolocated"

GeocodeBackend = Callable[[int, str], Awaitable[None]]


class LocationService(ABC):
    """Looks up and generates geolocation data for a listing."""

    @abstractmethod
    async def has_location_data(self, listing_id: int) -> bool:
        """Whether the listing already carries geolocation data."""

    @abstractmethod
    async def generate_location_data(self, listing_id: int, location: str) -> None:
        """Geocode a location string and store the result on the listing."""


class MetaLocationService(LocationService):
    """
    Reads the ``geolocated`` flag from listing metadata and hands generation
    to an optional geocoding backend.
    """

    def __init__(self, store: ListingStore, backend: Optional[GeocodeBackend] = None):
        self.store = store
        self.backend = backend

    async def has_location_data(self, listing_id: int) -> bool:
        return bool(await self.store.get_meta(listing_id, GEOLOCATED_KEY, default=None))

    async def generate_location_data(self, listing_id: int, location: str) -> None:
        if self.backend is None:
            logger.debug(f"No geocoding backend configured, skipping listing {listing_id}")
            return
        logger.info(f"Generating location data for listing {listing_id}")
        await self.backend(listing_id, location)
