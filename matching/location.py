"""Address resolution and great-circle distance between locations."""
from __future__ import annotations

import logging
import math
import os
import threading
import time
from typing import Callable, Dict, Optional, Protocol

from connector.geocoding import Coordinate, GeocodingError
from connector.records import LocationInfo

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
DEFAULT_THROTTLE_SECONDS = float(os.getenv("GEOCODER_THROTTLE_SECONDS", "0.2"))


class Geocoder(Protocol):
    def search(self, address: str) -> Optional[Coordinate]:
        """Return the first coordinate for ``address`` or ``None``."""


class CoordinateCache:
    """Process-lifetime map of address -> coordinate (``None`` = unresolvable)."""

    def __init__(self) -> None:
        self._entries: Dict[str, Optional[Coordinate]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(address: str) -> str:
        return " ".join(address.lower().split())

    def lookup(self, address: str) -> tuple[bool, Optional[Coordinate]]:
        key = self._key(address)
        # Plain dict reads are atomic; only inserts take the lock.
        if key in self._entries:
            return True, self._entries[key]
        return False, None

    def store(self, address: str, coordinate: Optional[Coordinate]) -> None:
        with self._lock:
            self._entries[self._key(address)] = coordinate

    def __len__(self) -> int:
        return len(self._entries)


def haversine_km(origin: Coordinate, destination: Coordinate) -> float:
    lat1 = math.radians(origin.latitude)
    lat2 = math.radians(destination.latitude)
    d_lat = math.radians(destination.latitude - origin.latitude)
    d_lng = math.radians(destination.longitude - origin.longitude)

    a = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


class LocationResolver:
    """Resolves free-text addresses with caching and a cooperative throttle.

    Outbound lookups are spaced at least ``throttle_seconds`` apart. Any
    geocoder failure is cached as ``None`` and reported as an unknown
    location instead of an error.
    """

    def __init__(
        self,
        geocoder: Geocoder,
        *,
        cache: Optional[CoordinateCache] = None,
        throttle_seconds: float = DEFAULT_THROTTLE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._geocoder = geocoder
        self._cache = cache if cache is not None else CoordinateCache()
        self._throttle_seconds = max(0.0, throttle_seconds)
        self._sleep = sleep
        self._clock = clock
        self._throttle_lock = threading.Lock()
        self._last_call: Optional[float] = None

    @property
    def cache(self) -> CoordinateCache:
        return self._cache

    def _throttle(self) -> None:
        with self._throttle_lock:
            now = self._clock()
            if self._last_call is not None:
                wait = self._throttle_seconds - (now - self._last_call)
                if wait > 0:
                    self._sleep(wait)
                    now = self._clock()
            self._last_call = now

    def resolve(self, address: str) -> Optional[Coordinate]:
        if not address or not address.strip():
            return None

        cached, coordinate = self._cache.lookup(address)
        if cached:
            logger.debug("Coordinate cache hit for %r", address)
            return coordinate

        self._throttle()
        try:
            coordinate = self._geocoder.search(address)
        except GeocodingError as exc:
            logger.warning("Could not resolve %r, treating distance as unknown: %s", address, exc)
            coordinate = None
        self._cache.store(address, coordinate)
        return coordinate

    def distance_km(self, patient: LocationInfo, practitioner: LocationInfo) -> Optional[float]:
        """Distance between two location descriptors, ``None`` when either is unknown."""

        patient_address = patient.address_string()
        practitioner_address = practitioner.address_string()
        if not patient_address or not practitioner_address:
            return None

        origin = self.resolve(patient_address)
        destination = self.resolve(practitioner_address)
        if origin is None or destination is None:
            return None
        return haversine_km(origin, destination)


__all__ = [
    "CoordinateCache",
    "EARTH_RADIUS_KM",
    "Geocoder",
    "LocationResolver",
    "haversine_km",
]
