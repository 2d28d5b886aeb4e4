"""Plain records passed between the pipeline stages and the stores"""
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class TheaterRecord:
    id: int
    name: str
    url: str
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def coordinates(self) -> Optional[Coordinates]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(self.latitude, self.longitude)


@dataclass(frozen=True)
class ScheduleCandidate:
    """A showing produced by the extractor, not yet stored.

    parse_failed marks the sentinel emitted when a page yielded nothing.
    """
    theater_id: int
    movie_title: str
    start_time: datetime
    booking_url: str
    duration: Optional[int] = None
    end_time: Optional[datetime] = None
    parse_failed: bool = False

    @property
    def natural_key(self):
        return (self.theater_id, self.movie_title, self.start_time)


@dataclass(frozen=True)
class ScheduleListing:
    """A stored schedule joined with its theater"""
    id: int
    theater_id: int
    movie_title: str
    start_time: datetime
    booking_url: Optional[str]
    theater_name: str
    latitude: Optional[float]
    longitude: Optional[float]
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    distance_km: Optional[float] = None

    def to_dict(self):
        data = asdict(self)
        data['start_time'] = self.start_time.isoformat()
        data['end_time'] = self.end_time.isoformat() if self.end_time else None
        if self.distance_km is None:
            data.pop('distance_km')
        else:
            data['distance_km'] = round(self.distance_km, 3)
        return data
