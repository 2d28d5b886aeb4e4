"""In-memory stores, used by tests and dry runs"""
import logging
from dataclasses import replace
from datetime import timedelta
from typing import Dict, List

from ..exceptions import StoreConstraintViolation
from ..models.records import ScheduleListing, TheaterRecord
from .base import ScheduleStore, TheaterStore, candidate_problem, validate_theater

logger = logging.getLogger(__name__)


class MemoryTheaterStore(TheaterStore):

    def __init__(self):
        self._theaters: Dict[int, TheaterRecord] = {}
        self._next_id = 1

    def get(self, theater_id):
        return self._theaters.get(theater_id)

    def get_by_url(self, url):
        for theater in self._theaters.values():
            if theater.url == url:
                return theater
        return None

    def list_all(self) -> List[TheaterRecord]:
        return [self._theaters[k] for k in sorted(self._theaters)]

    def add(self, name, url, address=None, coordinates=None):
        lat, lon = (coordinates.latitude, coordinates.longitude) if coordinates else (None, None)
        validate_theater(name, url, lat, lon)
        if self.get_by_url(url.strip()):
            raise StoreConstraintViolation(f"Theater url {url} already exists")

        theater = TheaterRecord(id=self._next_id, name=name.strip(), url=url.strip(),
                                address=address, latitude=lat, longitude=lon)
        self._theaters[theater.id] = theater
        self._next_id += 1
        return theater

    def upsert(self, name, url, address=None, coordinates=None):
        lat, lon = (coordinates.latitude, coordinates.longitude) if coordinates else (None, None)
        validate_theater(name, url, lat, lon)

        existing = self.get_by_url(url.strip())
        if existing is None:
            return self.add(name, url, address, coordinates)

        changes = {'name': name.strip()}
        if address:
            changes['address'] = address
        if coordinates:
            changes['latitude'] = lat
            changes['longitude'] = lon
        updated = replace(existing, **changes)
        self._theaters[updated.id] = updated
        return updated

    def update_coordinates(self, theater_id, coordinates):
        if coordinates is None:
            raise StoreConstraintViolation("Coordinates are required for an update")
        existing = self._theaters.get(theater_id)
        if existing is None:
            raise StoreConstraintViolation(f"Theater {theater_id} does not exist")
        updated = replace(existing, latitude=coordinates.latitude, longitude=coordinates.longitude)
        self._theaters[theater_id] = updated
        return updated


class MemoryScheduleStore(ScheduleStore):

    def __init__(self, theater_store: TheaterStore):
        self.theater_store = theater_store
        self._rows: List[dict] = []
        self._next_id = 1

    def add_batch(self, theater_id, candidates):
        if self.theater_store.get(theater_id) is None:
            raise StoreConstraintViolation(f"Theater {theater_id} does not exist")

        existing = {(r['theater_id'], r['movie_title'], r['start_time']) for r in self._rows}
        pending = []
        for candidate in candidates:
            if candidate.theater_id != theater_id:
                raise StoreConstraintViolation(
                    f"Candidate for theater {candidate.theater_id} in batch for theater {theater_id}"
                )
            problem = candidate_problem(candidate)
            if problem:
                logger.warning("Skipping schedule for theater %s: %s", theater_id, problem)
                continue
            if candidate.natural_key in existing:
                continue
            existing.add(candidate.natural_key)

            end_time = candidate.end_time
            if end_time is None and candidate.duration:
                end_time = candidate.start_time + timedelta(minutes=candidate.duration)
            pending.append({
                'theater_id': theater_id,
                'movie_title': candidate.movie_title,
                'start_time': candidate.start_time,
                'end_time': end_time,
                'duration': candidate.duration,
                'booking_url': candidate.booking_url,
            })

        # Nothing is visible until the whole batch is accepted
        for row in pending:
            row['id'] = self._next_id
            self._next_id += 1
            self._rows.append(row)
        return len(pending)

    def upcoming(self, now, theater_ids=None, offset=0, limit=None) -> List[ScheduleListing]:
        wanted = set(theater_ids) if theater_ids is not None else None
        rows = [
            r for r in self._rows
            if r['start_time'] > now and (wanted is None or r['theater_id'] in wanted)
        ]
        rows.sort(key=lambda r: (r['start_time'], r['id']))
        rows = rows[offset:] if limit is None else rows[offset:offset + limit]

        listings = []
        for row in rows:
            theater = self.theater_store.get(row['theater_id'])
            listings.append(ScheduleListing(
                theater_name=theater.name,
                latitude=theater.latitude,
                longitude=theater.longitude,
                **row,
            ))
        return listings

    def count(self):
        return len(self._rows)

    def count_upcoming(self, now):
        return sum(1 for r in self._rows if r['start_time'] > now)
