"""Runtime configuration read from the environment"""
import logging
import os
from dataclasses import dataclass
from typing import Optional

import pytz
from dotenv import load_dotenv

# Load environment variables from .env file (for local development)
load_dotenv()

DEFAULT_DATABASE_URL = 'sqlite:///database/movie_reserve.db'
DEFAULT_USER_AGENT = 'MovieReserveApp/1.0'
GSI_ENDPOINT = 'https://msearch.gsi.go.jp/address-search/AddressSearch'


def _float_env(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def normalize_database_url(url: str) -> str:
    """Railway/Heroku hand out postgres:// but SQLAlchemy requires postgresql://"""
    if url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql://', 1)
    return url


@dataclass(frozen=True)
class Settings:
    """Application settings"""
    database_url: str = DEFAULT_DATABASE_URL
    user_agent: str = DEFAULT_USER_AGENT
    fetch_timeout: Optional[float] = None
    scrape_delay_min: float = 2.0
    scrape_delay_max: float = 3.0
    geocoder: str = 'gsi'
    geocode_delay: float = 1.0
    gsi_endpoint: str = GSI_ENDPOINT
    local_timezone: str = 'Asia/Tokyo'
    log_level: str = 'INFO'
    port: int = 5000
    debug: bool = False

    @property
    def tz(self):
        return pytz.timezone(self.local_timezone)


def get_settings() -> Settings:
    """Build settings from environment variables"""
    settings = Settings(
        database_url=normalize_database_url(os.getenv('DATABASE_URL', DEFAULT_DATABASE_URL)),
        user_agent=os.getenv('USER_AGENT', DEFAULT_USER_AGENT),
        fetch_timeout=_float_env('FETCH_TIMEOUT', None),
        scrape_delay_min=_float_env('SCRAPE_DELAY_MIN', 2.0),
        scrape_delay_max=_float_env('SCRAPE_DELAY_MAX', 3.0),
        geocoder=os.getenv('GEOCODER', 'gsi').lower(),
        geocode_delay=_float_env('GEOCODE_DELAY', 1.0),
        gsi_endpoint=os.getenv('GSI_ENDPOINT', GSI_ENDPOINT),
        local_timezone=os.getenv('LOCAL_TIMEZONE', 'Asia/Tokyo'),
        log_level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        port=int(os.getenv('PORT', 5000)),
        debug=os.getenv('FLASK_DEBUG', 'false').lower() == 'true',
    )

    if settings.scrape_delay_min > settings.scrape_delay_max:
        raise ValueError("SCRAPE_DELAY_MIN must not exceed SCRAPE_DELAY_MAX")

    # Fail early on an unknown zone instead of at the first scrape
    try:
        pytz.timezone(settings.local_timezone)
    except pytz.UnknownTimeZoneError:
        raise ValueError(f"Unknown LOCAL_TIMEZONE: {settings.local_timezone}")

    return settings


def configure_logging(level: str = 'INFO'):
    """Configure root logging once for CLI and web entry points"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s %(levelname)-8s %(name)s: %(message)s',
    )
