"""Distance-filtered, paginated listing of upcoming schedules"""
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from math import atan2, cos, radians, sin, sqrt
from typing import Callable, Dict, List, Optional

from ..exceptions import InvalidQuery
from ..models.records import ScheduleListing
from ..stores.base import ScheduleStore, TheaterStore

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
DEFAULT_RADIUS_KM = 5.0
DEFAULT_LIMIT = 20
MAX_PAGE_SIZE = 100


def haversine_km(lat1, lon1, lat2, lon2):
    """
    Calculate great-circle distance between two points using Haversine formula
    Returns distance in kilometers
    """
    phi1, phi2 = radians(lat1), radians(lat2)
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)

    a = sin(dlat / 2) ** 2 + cos(phi1) * cos(phi2) * sin(dlon / 2) ** 2
    # Rounding can push a a hair past 1 for antipodal points
    a = min(1.0, max(0.0, a))

    return 2 * EARTH_RADIUS_KM * atan2(sqrt(a), sqrt(1 - a))


@dataclass(frozen=True)
class SearchQuery:
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius_km: float = DEFAULT_RADIUS_KM
    offset: int = 0
    limit: int = DEFAULT_LIMIT

    @property
    def has_center(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def validate(self):
        problems = []
        if (self.latitude is None) != (self.longitude is None):
            problems.append("lat and lon must be given together")
        if self.offset < 0:
            problems.append("offset must be >= 0")
        if not 1 <= self.limit <= MAX_PAGE_SIZE:
            problems.append(f"limit must be between 1 and {MAX_PAGE_SIZE}")
        if problems:
            raise InvalidQuery("Invalid search parameters", problems)


@dataclass
class SearchPage:
    schedules: List[ScheduleListing] = field(default_factory=list)
    has_more: bool = False

    def to_dict(self):
        return {
            'schedules': [s.to_dict() for s in self.schedules],
            'hasMore': self.has_more,
        }


class ProximitySearch:
    """Answers "what's showing near me" from the theater and schedule stores"""

    def __init__(self, theater_store: TheaterStore, schedule_store: ScheduleStore,
                 clock: Callable[[], datetime]):
        self.theater_store = theater_store
        self.schedule_store = schedule_store
        # Naive local "now", same convention as stored start times
        self.clock = clock

    def theaters_within(self, latitude: float, longitude: float, radius_km: float) -> Dict[int, float]:
        """Theater id -> distance for every theater with coordinates inside the radius"""
        distances = {}
        for theater in self.theater_store.list_all():
            if theater.coordinates is None:
                continue
            distance = haversine_km(latitude, longitude, theater.latitude, theater.longitude)
            if distance <= radius_km:
                distances[theater.id] = distance
        return distances

    def search(self, query: SearchQuery) -> SearchPage:
        query.validate()
        now = self.clock()

        distances = None
        if query.has_center:
            distances = self.theaters_within(query.latitude, query.longitude, query.radius_km)
            logger.debug("%d theaters within %.3f km of (%s, %s)",
                         len(distances), query.radius_km, query.latitude, query.longitude)
            if not distances:
                return SearchPage([], False)

        # One extra row tells us whether a next page exists
        rows = self.schedule_store.upcoming(
            now,
            theater_ids=list(distances) if distances is not None else None,
            offset=query.offset,
            limit=query.limit + 1,
        )

        has_more = len(rows) > query.limit
        rows = rows[:query.limit]

        if distances is not None:
            rows = [replace(r, distance_km=distances[r.theater_id]) for r in rows]

        return SearchPage(rows, has_more)
