from datetime import timedelta

import pytest

from showtimes.config import Settings
from showtimes.models.records import Coordinates, ScheduleCandidate
from web_app import create_app


@pytest.fixture
def app_stores(sql_stores):
    return sql_stores


@pytest.fixture
def client(app_stores, now):
    theaters, schedules = app_stores
    app = create_app(theaters, schedules, clock=lambda: now, settings=Settings(database_url='sqlite://'))
    app.config['TESTING'] = True
    return app.test_client()


def add_schedule(schedules, theater, title, start):
    schedules.add_batch(theater.id, [ScheduleCandidate(
        theater_id=theater.id, movie_title=title, start_time=start,
        booking_url='https://book.example/1', duration=120,
    )])


@pytest.fixture
def sample(app_stores, now):
    theaters, schedules = app_stores
    near = theaters.add('Sample Theater', 'https://example.com/', coordinates=Coordinates(35.6905, 139.7005))
    other = theaters.add('Test Near Theater', 'http://test999.com', coordinates=Coordinates(35.6895, 139.6917))
    far = theaters.add('Far Away Theater', 'http://test2.com', coordinates=Coordinates(34.6937, 135.5023))
    add_schedule(schedules, near, 'Near Movie', now + timedelta(hours=1))
    add_schedule(schedules, other, 'Second Movie', now + timedelta(hours=2))
    add_schedule(schedules, near, 'Third Movie', now + timedelta(hours=3))
    add_schedule(schedules, far, 'Far Movie', now + timedelta(hours=4))
    return near, other, far


def test_nearby_schedules(client, sample, now):
    response = client.get('/schedules?lat=35.6890&lon=139.6910&radius=5')
    assert response.status_code == 200
    data = response.get_json()
    assert data['hasMore'] is False
    titles = [s['movie_title'] for s in data['schedules']]
    assert titles == ['Near Movie', 'Second Movie', 'Third Movie']

    first = data['schedules'][0]
    assert first['theater_name'] == 'Sample Theater'
    assert first['latitude'] == 35.6905 and first['longitude'] == 139.7005
    assert first['start_time'] == (now + timedelta(hours=1)).isoformat()
    assert first['booking_url'] == 'https://book.example/1'
    assert first['distance_km'] == pytest.approx(0.874, abs=0.02)


def test_tiny_radius(client, sample):
    data = client.get('/schedules?lat=35.6890&lon=139.6910&radius=0.001').get_json()
    assert data == {'schedules': [], 'hasMore': False}


def test_pagination(client, sample):
    pages = [
        client.get(f'/api/schedules?lat=35.6890&lon=139.6910&radius=5&limit=1&offset={offset}').get_json()
        for offset in range(3)
    ]
    assert [[s['movie_title'] for s in p['schedules']] for p in pages] == [
        ['Near Movie'], ['Second Movie'], ['Third Movie'],
    ]
    assert [p['hasMore'] for p in pages] == [True, True, False]


def test_global_listing_without_coordinates(client, sample):
    data = client.get('/schedules').get_json()
    assert [s['movie_title'] for s in data['schedules']] == [
        'Near Movie', 'Second Movie', 'Third Movie', 'Far Movie',
    ]
    assert 'distance_km' not in data['schedules'][0]


def test_empty_params_mean_absent(client, sample):
    data = client.get('/schedules?lat=&lon=&radius=').get_json()
    assert len(data['schedules']) == 4


@pytest.mark.parametrize('query', [
    'lat=abc&lon=139.69',
    'lat=35.68&lon=139.69&radius=far',
    'lat=nan&lon=139.69',
    'lat=35.68&lon=139.69&radius=inf',
    'lat=91&lon=0',
    'lat=0&lon=181',
    'lat=35.68',
    'offset=-1',
    'limit=0',
    'limit=1000',
    'limit=1.5',
])
def test_malformed_parameters_fail_fast(client, sample, query):
    response = client.get(f'/schedules?{query}')
    assert response.status_code == 400
    body = response.get_json()
    assert body['success'] is False
    assert body['details']


def test_page_size_cap(client, sample):
    assert client.get('/schedules?limit=100').status_code == 200

    response = client.get('/schedules?limit=101')
    assert response.status_code == 400
    assert any(d.startswith('limit') for d in response.get_json()['details'])


def test_theaters_sorted_by_distance(client, sample):
    data = client.get('/api/theaters?lat=35.6890&lon=139.6910').get_json()
    assert [t['name'] for t in data['theaters']] == ['Test Near Theater', 'Sample Theater', 'Far Away Theater']

    nearby = client.get('/api/theaters?lat=35.6890&lon=139.6910&max_distance=10').get_json()
    assert [t['name'] for t in nearby['theaters']] == ['Test Near Theater', 'Sample Theater']


def test_stats(client, sample, app_stores, now):
    theaters, _ = app_stores
    theaters.add('Unlocated', 'https://example.com/unlocated/')
    data = client.get('/stats').get_json()
    assert data == {
        'theaters': 4,
        'theaters_missing_coordinates': 1,
        'total_schedules': 4,
        'upcoming_schedules': 4,
    }


def test_create_app_builds_sql_stores_from_settings(tmp_path):
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'nested' / 'app.db'}")
    app = create_app(settings=settings)
    response = app.test_client().get('/schedules')
    assert response.get_json() == {'schedules': [], 'hasMore': False}
    assert (tmp_path / 'nested' / 'app.db').exists()
