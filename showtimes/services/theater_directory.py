"""Onboard theaters by crawling a theater directory site.

The directory is organised as index page -> region pages -> theater detail
pages. Region links show their theater count in fullwidth brackets, e.g.
"東京（87）"; detail pages carry the theater name and street address.
"""
import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple
from urllib.parse import urljoin

from ..base.markup import MarkupTree
from ..base.page_fetcher import PageFetcher
from ..exceptions import FetchFailed
from ..models.records import TheaterRecord
from ..stores.base import TheaterStore
from .geocoder import Geocoder
from .ingest import onboard_theater

logger = logging.getLogger(__name__)

BASE_URL = 'https://moviewalker.jp'

REGION_HREF = re.compile(r'/theater/[a-z]+/$')
REGION_COUNT = re.compile(r'（\d+）')
THEATER_HREF = re.compile(r'/th(\d+)/')


@dataclass(frozen=True)
class DirectorySelectors:
    theater_name: str = 'h1.el_lv1Heading'
    theater_address: str = 'li.un_theaderSchedule_address'


def region_links(tree: MarkupTree, base_url: str = BASE_URL) -> List[Tuple[str, str]]:
    """(name, absolute url) for each region on the index page, first occurrence wins"""
    links = []
    seen = set()
    for a in tree.find_all('a'):
        href = a.get('href') or ''
        text = MarkupTree.text_of(a)
        if not REGION_HREF.search(href) or not REGION_COUNT.search(text):
            continue
        url = urljoin(base_url + '/', href)
        if url in seen:
            continue
        seen.add(url)
        links.append((text, url))
    return links


def theater_ids(tree: MarkupTree) -> List[str]:
    """Unique theater ids linked from a region page, in page order"""
    ids = []
    for a in tree.find_all('a'):
        match = THEATER_HREF.search(a.get('href') or '')
        if match and match.group(1) not in ids:
            ids.append(match.group(1))
    return ids


def schedule_url(theater_id: str, base_url: str = BASE_URL) -> str:
    return f"{base_url}/th{theater_id}/schedule/"


def theater_details(tree: MarkupTree, selectors: DirectorySelectors = DirectorySelectors()) -> Optional[Tuple[str, str]]:
    """(name, address) from a detail page, or None if either is missing"""
    name_el = tree.select_one(selectors.theater_name)
    address_el = tree.select_one(selectors.theater_address)
    name = MarkupTree.text_of(name_el) if name_el else ''
    address = MarkupTree.text_of(address_el) if address_el else ''
    if not name or not address:
        return None
    return name, address


class TheaterDirectoryCrawler:
    """Walks the directory and upserts every theater it finds"""

    def __init__(self, fetcher: PageFetcher, geocoder: Optional[Geocoder], theater_store: TheaterStore,
                 region_pause: Callable[[], object], detail_pause: Callable[[], object],
                 base_url: str = BASE_URL, selectors: DirectorySelectors = DirectorySelectors()):
        self.fetcher = fetcher
        self.geocoder = geocoder
        self.theater_store = theater_store
        self.region_pause = region_pause
        self.detail_pause = detail_pause
        self.base_url = base_url.rstrip('/')
        self.selectors = selectors

    def crawl(self, region_limit: Optional[int] = None) -> List[TheaterRecord]:
        logger.info("Starting theater directory crawl at %s", self.base_url)

        # Without the index there is nothing to crawl; let FetchFailed propagate
        index = MarkupTree.parse(self.fetcher.fetch(f"{self.base_url}/theater/"))
        regions = region_links(index, self.base_url)
        if region_limit is not None:
            regions = regions[:region_limit]
        logger.info("Found %d regions", len(regions))

        saved = []
        for name, url in regions:
            logger.info("Processing region %s", name)
            self.region_pause()
            try:
                region = MarkupTree.parse(self.fetcher.fetch(url))
            except FetchFailed as e:
                logger.warning("Skipping region %s: %s", name, e)
                continue

            ids = theater_ids(region)
            logger.info("  Found %d unique theaters", len(ids))
            for theater_id in ids:
                theater = self.onboard(theater_id)
                if theater:
                    saved.append(theater)

        logger.info("Directory crawl done: %d theaters saved", len(saved))
        return saved

    def onboard(self, theater_id: str) -> Optional[TheaterRecord]:
        url = schedule_url(theater_id, self.base_url)
        self.detail_pause()
        try:
            tree = MarkupTree.parse(self.fetcher.fetch(url))
        except FetchFailed as e:
            logger.warning("Failed to fetch %s: %s", url, e)
            return None

        details = theater_details(tree, self.selectors)
        if details is None:
            logger.info("Skipping th%s: name or address not found", theater_id)
            return None

        name, address = details
        try:
            return onboard_theater(name, url, address, self.geocoder, self.theater_store)
        except Exception:
            logger.exception("Could not save theater th%s (%s)", theater_id, name)
            return None
