"""Normalize movie titles pulled out of page text"""
import re


def normalize_title(title):
    """
    Clean up movie title
    - Remove leading/trailing whitespace
    - Collapse runs of whitespace (headings often wrap over several lines)
    """
    if not title:
        return None

    title = re.sub(r'\s+', ' ', title)

    return title.strip() or None
