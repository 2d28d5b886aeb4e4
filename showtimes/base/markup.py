"""Queryable document tree over uncontrolled HTML"""
from typing import Iterator, List, Optional

from bs4 import BeautifulSoup
from bs4.element import Tag


class MarkupTree:
    """Thin wrapper around BeautifulSoup.

    html.parser tolerates unclosed and mismatched tags, so parsing never
    raises on the pages we scrape.
    """

    def __init__(self, soup: BeautifulSoup):
        self.soup = soup

    @classmethod
    def parse(cls, text: str) -> 'MarkupTree':
        return cls(BeautifulSoup(text or '', 'html.parser'))

    def elements(self) -> Iterator[Tag]:
        """Every element in document order (pre-order, parents before children)"""
        return iter(self.soup.find_all(True))

    def find_all(self, tag=None, class_=None) -> List[Tag]:
        kwargs = {}
        if class_ is not None:
            kwargs['class_'] = class_
        return self.soup.find_all(tag if tag is not None else True, **kwargs)

    def select_one(self, css: str) -> Optional[Tag]:
        return self.soup.select_one(css)

    def title(self) -> Optional[str]:
        if self.soup.title is None:
            return None
        return self.text_of(self.soup.title) or None

    @staticmethod
    def text_of(element: Tag) -> str:
        return element.get_text().strip()

    @staticmethod
    def tag_of(element: Tag) -> str:
        return element.name.lower()

    @staticmethod
    def classes_of(element: Tag) -> List[str]:
        classes = element.get('class') or []
        if isinstance(classes, str):
            classes = classes.split()
        return list(classes)

    @staticmethod
    def parent_of(element: Tag) -> Optional[Tag]:
        parent = element.parent
        if parent is None or parent.name == '[document]':
            return None
        return parent

    @staticmethod
    def children_of(element: Tag) -> List[Tag]:
        return [child for child in element.children if isinstance(child, Tag)]
