"""Repository interfaces for theaters and schedules"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, List, Optional

from ..exceptions import StoreConstraintViolation
from ..models.records import Coordinates, ScheduleCandidate, ScheduleListing, TheaterRecord


def validate_theater(name: str, url: str, latitude=None, longitude=None):
    """Reject theaters missing required fields or carrying half a coordinate pair"""
    if not name or not name.strip():
        raise StoreConstraintViolation("Theater name is required")
    if not url or not url.strip():
        raise StoreConstraintViolation("Theater url is required")
    if (latitude is None) != (longitude is None):
        raise StoreConstraintViolation(
            f"Theater {url} must have both latitude and longitude or neither"
        )


def candidate_problem(candidate: ScheduleCandidate) -> Optional[str]:
    """Why a single candidate cannot be stored, or None if it is fine"""
    if not candidate.movie_title or not candidate.movie_title.strip():
        return "movie_title is empty"
    if candidate.start_time is None:
        return "start_time is missing"
    return None


class TheaterStore(ABC):
    """Persistent theaters, keyed by id and unique by url"""

    @abstractmethod
    def get(self, theater_id: int) -> Optional[TheaterRecord]:
        ...

    @abstractmethod
    def get_by_url(self, url: str) -> Optional[TheaterRecord]:
        ...

    @abstractmethod
    def list_all(self) -> List[TheaterRecord]:
        ...

    @abstractmethod
    def add(self, name: str, url: str, address: Optional[str] = None,
            coordinates: Optional[Coordinates] = None) -> TheaterRecord:
        """Insert a new theater; a duplicate url is a constraint violation"""

    @abstractmethod
    def upsert(self, name: str, url: str, address: Optional[str] = None,
               coordinates: Optional[Coordinates] = None) -> TheaterRecord:
        """Insert, or update name/address/coordinates of the theater with this url.

        Coordinates are only overwritten when given, so a failed re-geocode
        never erases the last good one.
        """

    @abstractmethod
    def update_coordinates(self, theater_id: int, coordinates: Coordinates) -> TheaterRecord:
        ...

    def list_missing_coordinates(self) -> List[TheaterRecord]:
        return [t for t in self.list_all() if t.coordinates is None]

    def count(self) -> int:
        return len(self.list_all())


class ScheduleStore(ABC):
    """Persistent schedules; append-only from the extractor's point of view"""

    @abstractmethod
    def add_batch(self, theater_id: int, candidates: Iterable[ScheduleCandidate]) -> int:
        """Store one theater's candidates atomically.

        Candidates whose (theater_id, movie_title, start_time) already exists
        are skipped, as are candidates with missing required fields. An unknown
        theater raises StoreConstraintViolation and nothing is written.

        Returns the number of rows inserted.
        """

    @abstractmethod
    def upcoming(self, now: datetime, theater_ids: Optional[Iterable[int]] = None,
                 offset: int = 0, limit: Optional[int] = None) -> List[ScheduleListing]:
        """Schedules starting strictly after now, earliest first.

        theater_ids=None means every theater; an empty collection means none.
        """

    @abstractmethod
    def count(self) -> int:
        ...

    @abstractmethod
    def count_upcoming(self, now: datetime) -> int:
        ...
