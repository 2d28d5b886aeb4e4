"""Heuristic showtime extraction from arbitrary theater pages.

There is no per-site grammar. The page is scanned once in document order:
headings and elements with "title" in a class name set the current movie
title, and short elements containing a clock time become showings of that
title. The rules live in ExtractionRules so they can be tuned and
tested against synthetic pages without touching the scan itself.
"""
import logging
from dataclasses import dataclass
from datetime import date, time, datetime, timedelta
from typing import List, Optional, Tuple

from ..base.markup import MarkupTree
from ..models.records import ScheduleCandidate
from .time_parser import CLOCK_PATTERN, MAX_HOUR, is_valid_clock, match_clock, showtime_on
from .title_normalizer import normalize_title

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionRules:
    title_tags: Tuple[str, ...] = ('h2', 'h3')
    title_class_fragment: str = 'title'
    min_title_length: int = 3
    max_time_text_length: int = 10
    max_hour: int = MAX_HOUR
    placeholder_duration: int = 120
    unknown_title: str = 'Unknown Movie'
    fallback_title: str = '[Parse Failed] Check Site'
    fallback_time: time = time(12, 0)

    def looks_like_title(self, tag: str, classes: List[str]) -> bool:
        if tag in self.title_tags:
            return True
        fragment = self.title_class_fragment.lower()
        return any(fragment in c.lower() for c in classes)

    def accept_title(self, text: str) -> Optional[str]:
        """The normalized title, or None if the text can't be one"""
        title = normalize_title(text)
        if not title or len(title) < self.min_title_length:
            return None
        # Times and counts ("3 screens") start with a digit
        if title[0].isdigit():
            return None
        return title

    def match_time(self, text: str) -> Optional[Tuple[int, int, str]]:
        """(hour, minute, matched text) if short text holds an in-range clock time"""
        clock = match_clock(text, self.max_time_text_length, CLOCK_PATTERN)
        if clock is None:
            return None
        hour, minute, _ = clock
        if not is_valid_clock(hour, minute, self.max_hour):
            return None
        return clock


DEFAULT_RULES = ExtractionRules()


def fallback_candidate(theater_id: int, booking_url: str, scrape_date: date,
                       rules: ExtractionRules = DEFAULT_RULES) -> ScheduleCandidate:
    """Sentinel showing that makes a failed extraction visible in listings"""
    start = datetime.combine(scrape_date, rules.fallback_time)
    return ScheduleCandidate(
        theater_id=theater_id,
        movie_title=rules.fallback_title,
        start_time=start,
        duration=rules.placeholder_duration,
        end_time=start + timedelta(minutes=rules.placeholder_duration),
        booking_url=booking_url,
        parse_failed=True,
    )


def extract_schedules(tree: MarkupTree, theater_id: int, booking_url: str, scrape_date: date,
                      rules: ExtractionRules = DEFAULT_RULES) -> List[ScheduleCandidate]:
    """
    Reconstruct (title, start time) showings from a parsed page

    Args:
        tree: parsed theater page
        theater_id: owner of the produced candidates
        booking_url: theater page url, used as the booking link
        scrape_date: the day showtimes are anchored to (theater local date)
        rules: title/time predicates and constants

    Returns:
        Candidates in document order; exactly one parse-failed sentinel if
        nothing matched.
    """
    if tree is None:
        raise ValueError("extract_schedules needs a parsed document")

    current_title = rules.unknown_title
    seen = set()
    candidates = []

    for element in tree.elements():
        text = MarkupTree.text_of(element)
        if not text:
            continue

        if rules.looks_like_title(MarkupTree.tag_of(element), MarkupTree.classes_of(element)):
            title = rules.accept_title(text)
            if title:
                current_title = title

        clock = rules.match_time(text)
        if clock is None:
            continue

        hour, minute, raw = clock

        # Nested wrappers repeat their child's time
        key = (current_title, raw)
        if key in seen:
            continue
        seen.add(key)

        start = showtime_on(scrape_date, hour, minute)
        candidates.append(ScheduleCandidate(
            theater_id=theater_id,
            movie_title=current_title,
            start_time=start,
            duration=rules.placeholder_duration,
            end_time=start + timedelta(minutes=rules.placeholder_duration),
            booking_url=booking_url,
        ))

    if not candidates:
        logger.warning("No showtimes recognised for theater %s (%s)", theater_id, booking_url)
        return [fallback_candidate(theater_id, booking_url, scrape_date, rules)]

    logger.debug("Extracted %d showtimes for theater %s", len(candidates), theater_id)
    return candidates
