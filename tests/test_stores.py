"""Store contract tests, run against both the in-memory and SQLAlchemy stores"""
import logging
from datetime import datetime, timedelta

import pytest

from showtimes.exceptions import StoreConstraintViolation
from showtimes.models.records import Coordinates, ScheduleCandidate
from showtimes.models.schedule import Schedule


def candidate(theater_id, title, start, **kwargs):
    return ScheduleCandidate(theater_id=theater_id, movie_title=title, start_time=start,
                             booking_url='https://example.com/book', **kwargs)


def test_add_and_get_theater(stores):
    theaters, _ = stores
    theater = theaters.add('Shinjuku Piccadilly', 'https://example.com/th1/',
                           coordinates=Coordinates(35.6905, 139.7005))
    assert theater.id is not None
    assert theaters.get(theater.id) == theater
    assert theaters.get_by_url('https://example.com/th1/') == theater
    assert theaters.get(9999) is None


def test_theater_url_is_unique(stores):
    theaters, _ = stores
    theaters.add('One', 'https://example.com/same/')
    with pytest.raises(StoreConstraintViolation):
        theaters.add('Two', 'https://example.com/same/')


@pytest.mark.parametrize('name, url', [('', 'https://example.com/'), ('Name', ''), ('  ', 'https://x/')])
def test_theater_required_fields(stores, name, url):
    theaters, _ = stores
    with pytest.raises(StoreConstraintViolation):
        theaters.add(name, url)


def test_half_a_coordinate_pair_rejected(stores):
    theaters, _ = stores
    with pytest.raises(StoreConstraintViolation):
        theaters.add('Half', 'https://example.com/half/', coordinates=Coordinates(35.0, None))
    assert theaters.list_all() == []


def test_upsert_updates_by_url_and_keeps_coordinates_on_miss(stores):
    theaters, _ = stores
    first = theaters.upsert('Old Name', 'https://example.com/th2/', address='Tokyo',
                            coordinates=Coordinates(35.0, 139.0))
    renamed = theaters.upsert('New Name', 'https://example.com/th2/', address='Tokyo')
    assert renamed.id == first.id
    assert renamed.name == 'New Name'
    assert renamed.coordinates == Coordinates(35.0, 139.0)

    moved = theaters.upsert('New Name', 'https://example.com/th2/', coordinates=Coordinates(36.0, 140.0))
    assert moved.coordinates == Coordinates(36.0, 140.0)
    assert len(theaters.list_all()) == 1


def test_missing_coordinates_and_update(stores):
    theaters, _ = stores
    located = theaters.add('Located', 'https://example.com/a/', coordinates=Coordinates(1.0, 2.0))
    lost = theaters.add('Lost', 'https://example.com/b/', address='somewhere')
    assert theaters.list_missing_coordinates() == [lost]

    updated = theaters.update_coordinates(lost.id, Coordinates(3.0, 4.0))
    assert updated.coordinates == Coordinates(3.0, 4.0)
    assert theaters.list_missing_coordinates() == []
    assert theaters.count() == 2
    assert located.coordinates == Coordinates(1.0, 2.0)

    with pytest.raises(StoreConstraintViolation):
        theaters.update_coordinates(9999, Coordinates(0.0, 0.0))


def test_add_batch_requires_existing_theater(stores):
    _, schedules = stores
    with pytest.raises(StoreConstraintViolation):
        schedules.add_batch(42, [candidate(42, 'Orphan', datetime(2026, 10, 20, 10, 0))])
    assert schedules.count() == 0


def test_add_batch_skips_duplicates_and_empty_titles(stores, now):
    theaters, schedules = stores
    theater = theaters.add('T', 'https://example.com/t/')
    start = now + timedelta(hours=1)

    inserted = schedules.add_batch(theater.id, [
        candidate(theater.id, 'Movie', start, duration=120),
        candidate(theater.id, 'Movie', start, duration=120),
        candidate(theater.id, '   ', start),
        candidate(theater.id, 'Other', start),
    ])
    assert inserted == 2

    # A second run with the same page adds nothing
    assert schedules.add_batch(theater.id, [candidate(theater.id, 'Movie', start)]) == 0
    assert schedules.count() == 2


def test_add_batch_logs_skipped_candidates(stores, now, caplog):
    theaters, schedules = stores
    theater = theaters.add('T', 'https://example.com/t/')

    with caplog.at_level(logging.WARNING):
        assert schedules.add_batch(theater.id, [candidate(theater.id, '', now + timedelta(hours=1))]) == 0

    assert any(f"theater {theater.id}" in record.getMessage() for record in caplog.records)


def test_add_batch_with_foreign_candidate_writes_nothing(stores, now):
    theaters, schedules = stores
    a = theaters.add('A', 'https://example.com/a/')
    b = theaters.add('B', 'https://example.com/b/')
    with pytest.raises(StoreConstraintViolation):
        schedules.add_batch(a.id, [
            candidate(a.id, 'Fine', now + timedelta(hours=1)),
            candidate(b.id, 'Wrong theater', now + timedelta(hours=2)),
        ])
    assert schedules.count() == 0


def test_upcoming_is_future_only_and_ordered(stores, now):
    theaters, schedules = stores
    a = theaters.add('A', 'https://example.com/a/', coordinates=Coordinates(35.0, 139.0))
    b = theaters.add('B', 'https://example.com/b/')
    schedules.add_batch(a.id, [
        candidate(a.id, 'Past', now - timedelta(hours=1)),
        candidate(a.id, 'Exactly now', now),
        candidate(a.id, 'Later', now + timedelta(hours=3), duration=90),
    ])
    schedules.add_batch(b.id, [candidate(b.id, 'Soon', now + timedelta(minutes=10))])

    rows = schedules.upcoming(now)
    assert [r.movie_title for r in rows] == ['Soon', 'Later']
    assert rows[1].theater_name == 'A'
    assert (rows[1].latitude, rows[1].longitude) == (35.0, 139.0)
    assert rows[1].end_time == now + timedelta(hours=4, minutes=30)

    assert [r.movie_title for r in schedules.upcoming(now, theater_ids=[a.id])] == ['Later']
    assert schedules.upcoming(now, theater_ids=[]) == []
    assert [r.movie_title for r in schedules.upcoming(now, offset=1, limit=5)] == ['Later']
    assert schedules.count_upcoming(now) == 2


def test_sql_unique_constraint_backs_dedup(session_factory, sql_stores, now):
    theaters, _ = sql_stores
    theater = theaters.add('T', 'https://example.com/t/')
    session = session_factory()
    try:
        session.add(Schedule(theater_id=theater.id, movie_title='M', start_time=now))
        session.add(Schedule(theater_id=theater.id, movie_title='M', start_time=now))
        with pytest.raises(Exception):
            session.commit()
    finally:
        session.rollback()
        session.close()


def test_sql_foreign_keys_enforced(session_factory):
    session = session_factory()
    try:
        session.add(Schedule(theater_id=777, movie_title='M', start_time=datetime(2026, 1, 1)))
        with pytest.raises(Exception):
            session.commit()
    finally:
        session.rollback()
        session.close()
