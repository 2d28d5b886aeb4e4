"""Query API: what's showing near a point"""
import logging
from typing import List, Optional

from flask import Flask, jsonify, request
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from showtimes.config import Settings, configure_logging, get_settings
from showtimes.exceptions import InvalidQuery
from showtimes.models.base import setup_database
from showtimes.parsers.time_parser import local_now_naive
from showtimes.services.proximity_search import (
    DEFAULT_LIMIT,
    DEFAULT_RADIUS_KM,
    MAX_PAGE_SIZE,
    ProximitySearch,
    SearchQuery,
    haversine_km,
)
from showtimes.stores.sqlalchemy_store import SqlAlchemyScheduleStore, SqlAlchemyTheaterStore

logger = logging.getLogger(__name__)


class ScheduleQueryParams(BaseModel):
    """Query string of GET /schedules

    lat/lon (both or neither), radius in km (default 5), offset >= 0 and
    limit 1..MAX_PAGE_SIZE (100, default 20). Anything else is a 400.
    """
    model_config = ConfigDict(extra='ignore')

    lat: Optional[float] = Field(None, ge=-90, le=90, allow_inf_nan=False)
    lon: Optional[float] = Field(None, ge=-180, le=180, allow_inf_nan=False)
    radius: float = Field(DEFAULT_RADIUS_KM, allow_inf_nan=False)
    offset: int = Field(0, ge=0)
    limit: int = Field(DEFAULT_LIMIT, ge=1, le=MAX_PAGE_SIZE)

    @model_validator(mode='after')
    def lat_lon_together(self):
        if (self.lat is None) != (self.lon is None):
            raise ValueError("lat and lon must be given together")
        return self

    def to_search_query(self) -> SearchQuery:
        return SearchQuery(latitude=self.lat, longitude=self.lon, radius_km=self.radius,
                           offset=self.offset, limit=self.limit)


class TheaterQueryParams(BaseModel):
    """Query string of GET /api/theaters"""
    model_config = ConfigDict(extra='ignore')

    lat: Optional[float] = Field(None, ge=-90, le=90, allow_inf_nan=False)
    lon: Optional[float] = Field(None, ge=-180, le=180, allow_inf_nan=False)
    max_distance: Optional[float] = Field(None, allow_inf_nan=False)


def _query_args():
    # "?lat=" means the same as leaving lat out
    return {k: v for k, v in request.args.items() if v.strip() != ''}


def _validation_details(error: ValidationError) -> List[str]:
    details = []
    for item in error.errors():
        location = '.'.join(str(part) for part in item.get('loc', ())) or 'query'
        details.append(f"{location}: {item.get('msg')}")
    return details


def create_app(theater_store=None, schedule_store=None, clock=None, settings: Optional[Settings] = None) -> Flask:
    """
    Build the Flask app around explicit stores

    Stores default to the SQLAlchemy ones on settings.database_url; tests
    pass in-memory stores and a fixed clock instead.
    """
    settings = settings or get_settings()

    if theater_store is None or schedule_store is None:
        _, session_factory = setup_database(settings.database_url)
        theater_store = theater_store or SqlAlchemyTheaterStore(session_factory)
        schedule_store = schedule_store or SqlAlchemyScheduleStore(session_factory)

    if clock is None:
        tz = settings.tz

        def clock():
            return local_now_naive(tz)

    search = ProximitySearch(theater_store, schedule_store, clock)

    app = Flask(__name__)

    @app.errorhandler(InvalidQuery)
    def handle_invalid_query(e):
        return jsonify({'success': False, 'error': e.message, 'details': e.details}), 400

    @app.route('/schedules')
    @app.route('/api/schedules')
    def api_schedules():
        """Upcoming schedules near a point, paginated"""
        try:
            params = ScheduleQueryParams(**_query_args())
        except ValidationError as e:
            raise InvalidQuery("Invalid search parameters", _validation_details(e))

        page = search.search(params.to_search_query())
        return jsonify(page.to_dict())

    @app.route('/api/theaters')
    def api_theaters():
        """Get all theaters with coordinates and optional distance filtering"""
        try:
            params = TheaterQueryParams(**_query_args())
        except ValidationError as e:
            raise InvalidQuery("Invalid theater parameters", _validation_details(e))

        has_location = params.lat is not None and params.lon is not None

        theater_list = []
        for theater in theater_store.list_all():
            # Calculate distance if user location provided
            distance = None
            if has_location and theater.coordinates:
                distance = haversine_km(params.lat, params.lon, theater.latitude, theater.longitude)

            # Filter by max distance if specified
            if params.max_distance is not None and has_location:
                if distance is None or distance > params.max_distance:
                    continue

            theater_list.append({
                'id': theater.id,
                'name': theater.name,
                'url': theater.url,
                'address': theater.address,
                'latitude': theater.latitude,
                'longitude': theater.longitude,
                'distance': round(distance, 1) if distance is not None else None,
            })

        # Sort by distance if available
        if has_location:
            theater_list.sort(key=lambda x: x['distance'] if x['distance'] is not None else float('inf'))

        return jsonify({
            'success': True,
            'theaters': theater_list
        })

    @app.route('/stats')
    def stats():
        """Get database stats"""
        now = clock()
        return jsonify({
            'theaters': theater_store.count(),
            'theaters_missing_coordinates': len(theater_store.list_missing_coordinates()),
            'total_schedules': schedule_store.count(),
            'upcoming_schedules': schedule_store.count_upcoming(now),
        })

    return app


if __name__ == '__main__':
    settings = get_settings()
    configure_logging(settings.log_level)
    app = create_app(settings=settings)
    app.run(host='0.0.0.0', port=settings.port, debug=settings.debug)
