"""Resolve free-text theater addresses to coordinates"""
import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

import requests
from geopy.exc import GeopyError
from geopy.geocoders import Nominatim

from ..config import GSI_ENDPOINT
from ..exceptions import GeocodeFailed
from ..models.records import Coordinates

logger = logging.getLogger(__name__)


def _require_address(address: str) -> str:
    if address is None or not address.strip():
        raise ValueError("Address must be a non-empty string")
    return address.strip()


class Geocoder(ABC):
    """
    Address search returning the best match or None.

    None means the service answered but found nothing. Only transport or
    response-format problems raise GeocodeFailed.
    """

    @abstractmethod
    def geocode(self, address: str) -> Optional[Coordinates]:
        ...


class GSIGeocoder(Geocoder):
    """GSI address search (Japan); responds with a GeoJSON feature array"""

    def __init__(self, endpoint: str = GSI_ENDPOINT, user_agent: Optional[str] = None,
                 timeout: Optional[float] = 10, session: Optional[requests.Session] = None):
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()
        if user_agent:
            self.session.headers.update({'User-Agent': user_agent})

    def geocode(self, address: str) -> Optional[Coordinates]:
        address = _require_address(address)

        try:
            response = self.session.get(self.endpoint, params={'q': address}, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise GeocodeFailed(address, e) from e
        except ValueError as e:
            raise GeocodeFailed(address, f"invalid JSON: {e}") from e

        if not isinstance(data, list):
            raise GeocodeFailed(address, f"expected a list, got {type(data).__name__}")
        if not data:
            return None

        first = data[0]
        try:
            # GeoJSON order is [lon, lat]
            lon, lat = first['geometry']['coordinates'][:2]
            return Coordinates(latitude=float(lat), longitude=float(lon))
        except (KeyError, TypeError, ValueError) as e:
            raise GeocodeFailed(address, f"unexpected feature shape: {e}") from e


class NominatimGeocoder(Geocoder):
    """OpenStreetMap Nominatim through geopy"""

    def __init__(self, user_agent: str, timeout: Optional[float] = 10, geolocator=None):
        self.geolocator = geolocator or Nominatim(user_agent=user_agent, timeout=timeout)

    def geocode(self, address: str) -> Optional[Coordinates]:
        address = _require_address(address)

        try:
            # Try full address first
            location = self.geolocator.geocode(address)

            # If that fails, try without suite/unit number
            if not location and '#' in address:
                simplified = address.split('#')[0].strip()
                logger.debug("Retrying %r as %r", address, simplified)
                if simplified:
                    location = self.geolocator.geocode(simplified)
        except GeopyError as e:
            raise GeocodeFailed(address, e) from e

        if not location:
            return None
        return Coordinates(latitude=location.latitude, longitude=location.longitude)


class PacedGeocoder(Geocoder):
    """Wraps a geocoder so successive calls are at least `delay` seconds apart"""

    def __init__(self, inner: Geocoder, delay: float = 1.0, sleep=time.sleep, clock=time.monotonic):
        self.inner = inner
        self.delay = delay
        self._sleep = sleep
        self._clock = clock
        self._last_call = None

    def geocode(self, address: str) -> Optional[Coordinates]:
        if self._last_call is not None:
            wait = self.delay - (self._clock() - self._last_call)
            if wait > 0:
                self._sleep(wait)
        try:
            return self.inner.geocode(address)
        finally:
            self._last_call = self._clock()


def build_geocoder(provider: str, user_agent: str, delay: float = 1.0,
                   endpoint: str = GSI_ENDPOINT) -> Geocoder:
    """Geocoder for the configured provider ('gsi' or 'nominatim'), paced"""
    provider = (provider or 'gsi').lower()
    if provider == 'gsi':
        inner = GSIGeocoder(endpoint=endpoint, user_agent=user_agent)
    elif provider == 'nominatim':
        inner = NominatimGeocoder(user_agent=user_agent)
    else:
        raise ValueError(f"Unknown geocoder provider: {provider}")
    return PacedGeocoder(inner, delay=delay)
