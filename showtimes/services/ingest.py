"""Scrape and onboarding pipelines"""
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable, List, Optional

from ..base.markup import MarkupTree
from ..base.page_fetcher import PageFetcher
from ..exceptions import GeocodeFailed
from ..models.records import TheaterRecord
from ..parsers.schedule_extractor import DEFAULT_RULES, ExtractionRules, extract_schedules
from ..stores.base import ScheduleStore, TheaterStore
from .geocoder import Geocoder

logger = logging.getLogger(__name__)


@dataclass
class TheaterScrapeResult:
    theater_id: int
    theater_name: str
    extracted: int = 0
    inserted: int = 0
    parse_failed: bool = False
    error: Optional[str] = None

    @property
    def ok(self):
        return self.error is None


@dataclass
class ScrapeReport:
    results: List[TheaterScrapeResult] = field(default_factory=list)

    @property
    def inserted(self):
        return sum(r.inserted for r in self.results)

    @property
    def failed(self):
        return [r for r in self.results if not r.ok]

    @property
    def degraded(self):
        """Theaters whose page gave no recognisable showtimes"""
        return [r for r in self.results if r.ok and r.parse_failed]


def scrape_theater(theater: TheaterRecord, fetcher: PageFetcher, schedule_store: ScheduleStore,
                   scrape_date: date, rules: ExtractionRules = DEFAULT_RULES) -> TheaterScrapeResult:
    """Fetch, parse, extract and store one theater's page. Errors propagate."""
    html = fetcher.fetch(theater.url)
    tree = MarkupTree.parse(html)
    candidates = extract_schedules(tree, theater.id, theater.url, scrape_date, rules)

    result = TheaterScrapeResult(theater_id=theater.id, theater_name=theater.name)
    result.extracted = len(candidates)
    result.parse_failed = any(c.parse_failed for c in candidates)
    result.inserted = schedule_store.add_batch(theater.id, candidates)
    return result


def run_scrape(theaters: Iterable[TheaterRecord], fetcher: PageFetcher, schedule_store: ScheduleStore,
               today: Callable[[], date], pause: Callable[[], object],
               rules: ExtractionRules = DEFAULT_RULES) -> ScrapeReport:
    """
    Scrape theaters one after another

    A failure for one theater is logged and recorded; the batch carries on.

    Args:
        theaters: theaters to scrape, in order
        fetcher: page fetcher carrying the identity header
        schedule_store: where candidates are stored
        today: returns the theater-local date to anchor showtimes to
        pause: politeness delay, called between theaters
    """
    theaters = list(theaters)
    report = ScrapeReport()

    for i, theater in enumerate(theaters, 1):
        if i > 1:
            pause()

        logger.info("[%d/%d] Scraping %s (%s)", i, len(theaters), theater.name, theater.url)
        try:
            result = scrape_theater(theater, fetcher, schedule_store, today(), rules)
        except Exception as e:
            logger.exception("Scrape failed for theater %s %r (%s)", theater.id, theater.name, theater.url)
            report.results.append(TheaterScrapeResult(
                theater_id=theater.id,
                theater_name=theater.name,
                error=str(e),
            ))
            continue

        if result.parse_failed:
            logger.warning("Theater %s %r: extraction fell back to sentinel", theater.id, theater.name)
        logger.info("Theater %s: %d extracted, %d new", theater.id, result.extracted, result.inserted)
        report.results.append(result)

    logger.info("Scrape finished: %d theaters, %d new schedules, %d failed, %d degraded",
                len(report.results), report.inserted, len(report.failed), len(report.degraded))
    return report


def onboard_theater(name: str, url: str, address: Optional[str], geocoder: Optional[Geocoder],
                    theater_store: TheaterStore) -> TheaterRecord:
    """
    Geocode the address (if any) and upsert the theater

    A geocoding failure or no-match still saves the theater; it just keeps
    whatever coordinates it had (none for a new theater).
    """
    coordinates = None
    if address and geocoder is not None:
        try:
            coordinates = geocoder.geocode(address)
        except GeocodeFailed as e:
            logger.warning("Geocoding failed for %r: %s", name, e)
        else:
            if coordinates is None:
                logger.info("No geocoding match for %r (%s)", name, address)

    theater = theater_store.upsert(name, url, address=address, coordinates=coordinates)
    if coordinates:
        logger.info("Saved %s at (%s, %s)", theater.name, coordinates.latitude, coordinates.longitude)
    else:
        logger.info("Saved %s without coordinates", theater.name)
    return theater


def geocode_missing(theater_store: TheaterStore, geocoder: Geocoder) -> List[TheaterRecord]:
    """Re-geocode theaters lacking coordinates; returns the ones that got fixed"""
    missing = theater_store.list_missing_coordinates()
    logger.info("Geocoding %d theaters", len(missing))

    fixed = []
    for theater in missing:
        if not theater.address:
            logger.info("Skipping %s: no address on record", theater.name)
            continue
        try:
            coordinates = geocoder.geocode(theater.address)
        except GeocodeFailed as e:
            logger.warning("Geocoding failed for %s: %s", theater.name, e)
            continue

        if coordinates is None:
            logger.info("Could not geocode %s (%s)", theater.name, theater.address)
            continue

        fixed.append(theater_store.update_coordinates(theater.id, coordinates))
        logger.info("%s -> (%s, %s)", theater.name, coordinates.latitude, coordinates.longitude)

    return fixed
