"""Main scraper runner"""
import argparse
import logging
import sys
from functools import partial

from showtimes.base.page_fetcher import PageFetcher, polite_pause
from showtimes.config import configure_logging, get_settings
from showtimes.models.base import setup_database
from showtimes.parsers.time_parser import local_now_naive, local_today
from showtimes.services.geocoder import build_geocoder
from showtimes.services.ingest import geocode_missing, onboard_theater, run_scrape
from showtimes.services.theater_directory import TheaterDirectoryCrawler
from showtimes.stores.sqlalchemy_store import SqlAlchemyScheduleStore, SqlAlchemyTheaterStore

logger = logging.getLogger('run_scraper')


def build_stores(settings):
    _, session_factory = setup_database(settings.database_url)
    return SqlAlchemyTheaterStore(session_factory), SqlAlchemyScheduleStore(session_factory)


def cmd_scrape(args, settings):
    """Scrape every theater's page, one at a time"""
    theater_store, schedule_store = build_stores(settings)
    theaters = theater_store.list_all()
    if args.theater:
        wanted = set(args.theater)
        theaters = [t for t in theaters if t.id in wanted]

    if not theaters:
        logger.warning("No theaters to scrape; add one with 'add-theater' or 'populate'")
        return 0

    fetcher = PageFetcher(settings.user_agent, timeout=settings.fetch_timeout)
    tz = settings.tz
    report = run_scrape(
        theaters,
        fetcher,
        schedule_store,
        today=lambda: local_today(tz),
        pause=partial(polite_pause, settings.scrape_delay_min, settings.scrape_delay_max),
    )

    for result in report.failed:
        logger.error("Failed: %s (id %s): %s", result.theater_name, result.theater_id, result.error)
    for result in report.degraded:
        logger.warning("No showtimes recognised: %s (id %s)", result.theater_name, result.theater_id)

    show_summary(theater_store, schedule_store, settings)
    return 1 if report.failed and len(report.failed) == len(report.results) else 0


def cmd_add_theater(args, settings):
    """Onboard a single theater, geocoding its address if given"""
    theater_store, _ = build_stores(settings)
    geocoder = build_geocoder(settings.geocoder, settings.user_agent, settings.geocode_delay,
                              settings.gsi_endpoint)
    theater = onboard_theater(args.name, args.url, args.address, geocoder, theater_store)
    print(f"Saved theater {theater.id}: {theater.name} ({theater.latitude}, {theater.longitude})")
    return 0


def cmd_geocode(args, settings):
    """Fill in coordinates for theaters that don't have them"""
    theater_store, _ = build_stores(settings)
    geocoder = build_geocoder(settings.geocoder, settings.user_agent, settings.geocode_delay,
                              settings.gsi_endpoint)
    fixed = geocode_missing(theater_store, geocoder)
    remaining = len(theater_store.list_missing_coordinates())
    print(f"Geocoded {len(fixed)} theaters, {remaining} still need coordinates")
    return 0


def cmd_populate(args, settings):
    """Crawl the theater directory and upsert every theater found"""
    theater_store, _ = build_stores(settings)
    fetcher = PageFetcher(settings.user_agent, timeout=settings.fetch_timeout)
    geocoder = build_geocoder(settings.geocoder, settings.user_agent, settings.geocode_delay,
                              settings.gsi_endpoint)
    crawler = TheaterDirectoryCrawler(
        fetcher,
        geocoder,
        theater_store,
        region_pause=partial(polite_pause, 1.5),
        detail_pause=partial(polite_pause, 1.0),
    )
    saved = crawler.crawl(region_limit=args.regions)
    print(f"Saved {len(saved)} theaters")
    return 0


def show_summary(theater_store, schedule_store, settings, per_theater=3):
    """Display database summary"""
    now = local_now_naive(settings.tz)

    print("\n" + "=" * 60)
    print("DATABASE SUMMARY")
    print("=" * 60)
    print(f"Theaters: {theater_store.count()}")
    print(f"Schedules: {schedule_store.count()} ({schedule_store.count_upcoming(now)} upcoming)")

    print("\nUpcoming schedules by theater:")
    print("=" * 60)

    for theater in theater_store.list_all():
        upcoming = schedule_store.upcoming(now, theater_ids=[theater.id], limit=per_theater)
        print(f"\n{theater.name}")
        if not upcoming:
            print("   (No upcoming schedules)")
        for schedule in upcoming:
            print(f"   - {schedule.start_time.strftime('%a %b %d, %H:%M')} - {schedule.movie_title}")


def cmd_summary(args, settings):
    theater_store, schedule_store = build_stores(settings)
    show_summary(theater_store, schedule_store, settings, per_theater=args.per_theater)
    return 0


def build_parser():
    parser = argparse.ArgumentParser(description="Showtime ingestion and maintenance")
    sub = parser.add_subparsers(dest='command', required=True)

    scrape = sub.add_parser('scrape', help="scrape all theater pages")
    scrape.add_argument('--theater', type=int, action='append', help="only this theater id (repeatable)")
    scrape.set_defaults(func=cmd_scrape)

    add = sub.add_parser('add-theater', help="onboard one theater")
    add.add_argument('name')
    add.add_argument('url')
    add.add_argument('--address', help="street address to geocode")
    add.set_defaults(func=cmd_add_theater)

    geocode = sub.add_parser('geocode', help="geocode theaters missing coordinates")
    geocode.set_defaults(func=cmd_geocode)

    populate = sub.add_parser('populate', help="crawl the theater directory")
    populate.add_argument('--regions', type=int, help="stop after this many regions")
    populate.set_defaults(func=cmd_populate)

    summary = sub.add_parser('summary', help="print a database summary")
    summary.add_argument('--per-theater', type=int, default=3)
    summary.set_defaults(func=cmd_summary)

    return parser


def main(argv=None):
    """Main scraper execution"""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)
    return args.func(args, settings)


if __name__ == "__main__":
    sys.exit(main())
