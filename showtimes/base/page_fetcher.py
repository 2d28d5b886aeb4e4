"""Plain HTTP page fetching with a fixed identity"""
import logging
import random
import time
from typing import Optional
from urllib.parse import urlparse

import requests

from ..exceptions import FetchFailed

logger = logging.getLogger(__name__)


def polite_pause(min_seconds: float, max_seconds: Optional[float] = None, sleep=time.sleep) -> float:
    """Sleep for a randomized delay between min_seconds and max_seconds.

    Called by the batch loops between requests so source sites don't see
    a burst of traffic. Returns the delay used.
    """
    if max_seconds is None or max_seconds <= min_seconds:
        delay = min_seconds
    else:
        delay = random.uniform(min_seconds, max_seconds)
    if delay > 0:
        sleep(delay)
    return delay


class PageFetcher:
    """Fetch a page body as text, one GET per call, no retries"""

    def __init__(self, user_agent: str, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.user_agent = user_agent
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({'User-Agent': user_agent})

    def fetch(self, url: str) -> str:
        """
        Fetch url and decode the body as UTF-8

        Raises:
            FetchFailed: bad url, network error, non-2xx status or undecodable body
        """
        parsed = urlparse(url or '')
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise FetchFailed(url, "URL must be absolute http(s)")

        logger.debug("Fetching %s", url)
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise FetchFailed(url, e) from e

        try:
            return response.content.decode('utf-8')
        except UnicodeDecodeError as e:
            raise FetchFailed(url, e) from e
