"""Error types raised by the ingestion and query pipeline"""
from typing import List, Optional


class ShowtimesError(Exception):
    """Base class for all pipeline errors"""


class FetchFailed(ShowtimesError):
    """A theater page could not be fetched or decoded"""

    def __init__(self, url: str, cause):
        self.url = url
        self.cause = cause
        super().__init__(f"Failed to fetch {url}: {cause}")


class GeocodeFailed(ShowtimesError):
    """The address-search service could not be reached or returned garbage.

    A search that simply finds nothing is not a failure; geocoders return
    None for that.
    """

    def __init__(self, address: str, cause):
        self.address = address
        self.cause = cause
        super().__init__(f"Geocoding failed for {address!r}: {cause}")


class StoreConstraintViolation(ShowtimesError):
    """A write broke a foreign-key or required-field rule"""


class InvalidQuery(ShowtimesError):
    """Search parameters were malformed"""

    def __init__(self, message: str, details: Optional[List[str]] = None):
        self.message = message
        self.details = details or []
        super().__init__(message)
