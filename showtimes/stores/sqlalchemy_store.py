"""SQLAlchemy-backed theater and schedule stores"""
import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError

from ..exceptions import StoreConstraintViolation
from ..models.records import ScheduleCandidate, ScheduleListing, TheaterRecord
from ..models.schedule import Schedule
from ..models.theater import Theater
from .base import ScheduleStore, TheaterStore, candidate_problem, validate_theater

logger = logging.getLogger(__name__)


def _theater_record(theater: Theater) -> TheaterRecord:
    return TheaterRecord(
        id=theater.id,
        name=theater.name,
        url=theater.url,
        address=theater.address,
        latitude=theater.latitude,
        longitude=theater.longitude,
    )


class SqlAlchemyTheaterStore(TheaterStore):
    """Theaters table"""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def get(self, theater_id: int) -> Optional[TheaterRecord]:
        session = self.session_factory()
        try:
            theater = session.get(Theater, theater_id)
            return _theater_record(theater) if theater else None
        finally:
            session.close()

    def get_by_url(self, url: str) -> Optional[TheaterRecord]:
        session = self.session_factory()
        try:
            theater = session.query(Theater).filter_by(url=url).first()
            return _theater_record(theater) if theater else None
        finally:
            session.close()

    def list_all(self) -> List[TheaterRecord]:
        session = self.session_factory()
        try:
            return [_theater_record(t) for t in session.query(Theater).order_by(Theater.id).all()]
        finally:
            session.close()

    def list_missing_coordinates(self) -> List[TheaterRecord]:
        session = self.session_factory()
        try:
            theaters = session.query(Theater)\
                .filter((Theater.latitude.is_(None)) | (Theater.longitude.is_(None)))\
                .order_by(Theater.id)\
                .all()
            return [_theater_record(t) for t in theaters]
        finally:
            session.close()

    def count(self) -> int:
        session = self.session_factory()
        try:
            return session.query(Theater).count()
        finally:
            session.close()

    def add(self, name, url, address=None, coordinates=None) -> TheaterRecord:
        lat, lon = (coordinates.latitude, coordinates.longitude) if coordinates else (None, None)
        validate_theater(name, url, lat, lon)

        session = self.session_factory()
        try:
            theater = Theater(name=name.strip(), url=url.strip(), address=address,
                              latitude=lat, longitude=lon)
            session.add(theater)
            session.commit()
            return _theater_record(theater)
        except IntegrityError as e:
            session.rollback()
            raise StoreConstraintViolation(f"Theater {url} could not be inserted: {e.orig}")
        finally:
            session.close()

    def upsert(self, name, url, address=None, coordinates=None) -> TheaterRecord:
        lat, lon = (coordinates.latitude, coordinates.longitude) if coordinates else (None, None)
        validate_theater(name, url, lat, lon)

        session = self.session_factory()
        try:
            theater = session.query(Theater).filter_by(url=url.strip()).first()
            if theater is None:
                theater = Theater(name=name.strip(), url=url.strip(), address=address,
                                  latitude=lat, longitude=lon)
                session.add(theater)
            else:
                theater.name = name.strip()
                if address:
                    theater.address = address
                if coordinates:
                    theater.latitude = lat
                    theater.longitude = lon
            session.commit()
            return _theater_record(theater)
        except IntegrityError as e:
            session.rollback()
            raise StoreConstraintViolation(f"Theater {url} could not be saved: {e.orig}")
        finally:
            session.close()

    def update_coordinates(self, theater_id, coordinates) -> TheaterRecord:
        if coordinates is None:
            raise StoreConstraintViolation("Coordinates are required for an update")

        session = self.session_factory()
        try:
            theater = session.get(Theater, theater_id)
            if theater is None:
                raise StoreConstraintViolation(f"Theater {theater_id} does not exist")
            theater.latitude = coordinates.latitude
            theater.longitude = coordinates.longitude
            session.commit()
            return _theater_record(theater)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


class SqlAlchemyScheduleStore(ScheduleStore):
    """Schedules table, joined to theaters on read"""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def add_batch(self, theater_id: int, candidates: Iterable[ScheduleCandidate]) -> int:
        session = self.session_factory()
        try:
            if session.get(Theater, theater_id) is None:
                raise StoreConstraintViolation(f"Theater {theater_id} does not exist")

            seen = set()
            inserted = 0
            for candidate in candidates:
                if candidate.theater_id != theater_id:
                    raise StoreConstraintViolation(
                        f"Candidate for theater {candidate.theater_id} in batch for theater {theater_id}"
                    )

                problem = candidate_problem(candidate)
                if problem:
                    logger.warning("Skipping schedule for theater %s: %s", theater_id, problem)
                    continue

                key = candidate.natural_key
                if key in seen:
                    continue
                seen.add(key)

                existing = session.query(Schedule.id).filter_by(
                    theater_id=theater_id,
                    movie_title=candidate.movie_title,
                    start_time=candidate.start_time,
                ).first()
                if existing:
                    continue

                end_time = candidate.end_time
                if end_time is None and candidate.duration:
                    end_time = candidate.start_time + timedelta(minutes=candidate.duration)

                session.add(Schedule(
                    theater_id=theater_id,
                    movie_title=candidate.movie_title,
                    start_time=candidate.start_time,
                    end_time=end_time,
                    duration=candidate.duration,
                    booking_url=candidate.booking_url,
                ))
                inserted += 1

            session.commit()
            return inserted
        except IntegrityError as e:
            session.rollback()
            raise StoreConstraintViolation(f"Schedules for theater {theater_id} rejected: {e.orig}")
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def upcoming(self, now, theater_ids=None, offset=0, limit=None) -> List[ScheduleListing]:
        if theater_ids is not None:
            theater_ids = list(theater_ids)
            if not theater_ids:
                return []

        session = self.session_factory()
        try:
            query = session.query(Schedule, Theater)\
                .join(Theater, Schedule.theater_id == Theater.id)\
                .filter(Schedule.start_time > now)

            if theater_ids is not None:
                query = query.filter(Schedule.theater_id.in_(theater_ids))

            query = query.order_by(Schedule.start_time, Schedule.id).offset(offset)
            if limit is not None:
                query = query.limit(limit)

            return [
                ScheduleListing(
                    id=schedule.id,
                    theater_id=schedule.theater_id,
                    movie_title=schedule.movie_title,
                    start_time=schedule.start_time,
                    end_time=schedule.end_time,
                    duration=schedule.duration,
                    booking_url=schedule.booking_url,
                    theater_name=theater.name,
                    latitude=theater.latitude,
                    longitude=theater.longitude,
                )
                for schedule, theater in query.all()
            ]
        finally:
            session.close()

    def count(self) -> int:
        session = self.session_factory()
        try:
            return session.query(Schedule).count()
        finally:
            session.close()

    def count_upcoming(self, now: datetime) -> int:
        session = self.session_factory()
        try:
            return session.query(Schedule).filter(Schedule.start_time > now).count()
        finally:
            session.close()
