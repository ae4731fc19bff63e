"""Extraction of service name, review count and contact email from Trustpilot HTML.

Each field is produced by an ordered tuple of strategies. A strategy is a pure
function ``ReviewPage -> value | None``; ``first_match`` returns the first
non-None value and never calls the strategies after it. Strategy order is the
confidence order: structured markers first, free-text patterns last.

The three extractors are independent passes over the same HTML.
"""

from __future__ import annotations

import html as html_lib
import re
from dataclasses import dataclass
from functools import cached_property
from typing import Callable, Iterable, Optional, TypeVar

from bs4 import BeautifulSoup

T = TypeVar("T")

CONTACT_MARKER = "Contact info"
# Large enough to step over the inline SVG icons that precede the address.
CONTACT_WINDOW_CHARS = 3000
SITE_DOMAIN = "trustpilot.com"
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp")
TOOLING_MARKERS = ("sentry", "webpack")


@dataclass(frozen=True)
class ParsedPage:
    service_name: Optional[str]
    review_count: Optional[int]
    email: Optional[str]


class ReviewPage:
    """Raw HTML plus a lazily built soup shared by the markup strategies."""

    def __init__(self, html: str) -> None:
        self.html = html or ""

    @cached_property
    def soup(self) -> BeautifulSoup:
        return BeautifulSoup(self.html, "lxml")


Strategy = Callable[[ReviewPage], Optional[T]]


def first_match(strategies: Iterable[Strategy], page: ReviewPage) -> Optional[T]:
    for strategy in strategies:
        value = strategy(page)
        if value is not None:
            return value
    return None


def _to_int(digits: str) -> Optional[int]:
    try:
        return int(digits, 10)
    except ValueError:
        return None


def _clean_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


# ---------------------------------------------------------------------------
# Review count
# ---------------------------------------------------------------------------

_RATING_COUNT_RE = re.compile(r"data-rating-count[\"\s=]*[\"']?(\d+)", re.IGNORECASE)
_NUMBER_OF_REVIEWS_RE = re.compile(r"\"numberOfReviews\"\s*:\s*\"?(\d+)", re.IGNORECASE)
_REVIEW_COUNT_RE = re.compile(r"\"reviewCount\"\s*:\s*\"?(\d+)", re.IGNORECASE)
_TYPOGRAPHY_RE = re.compile(r"data-reviews-count-typography[^>]*>([0-9,.\s]+)", re.IGNORECASE)
_REVIEWS_TEXT_RE = re.compile(r"(\d{1,3}(?:[,.\s]\d{3})*)\s*reviews", re.IGNORECASE)
_TOTAL_REVIEWS_RE = re.compile(r"total\s*(?:of\s*)?(\d{1,3}(?:,\d{3})*)\s*reviews", re.IGNORECASE)
_GROUPING_RE = re.compile(r"[,.\s]")


def _count_from(pattern: re.Pattern, strip: Optional[re.Pattern] = None) -> Strategy[int]:
    def strategy(page: ReviewPage) -> Optional[int]:
        match = pattern.search(page.html)
        if not match:
            return None
        digits = match.group(1)
        if strip is not None:
            digits = strip.sub("", digits)
        return _to_int(digits)

    return strategy


COUNT_STRATEGIES: tuple[Strategy[int], ...] = (
    _count_from(_RATING_COUNT_RE),
    _count_from(_NUMBER_OF_REVIEWS_RE),
    _count_from(_REVIEW_COUNT_RE),
    _count_from(_TYPOGRAPHY_RE, strip=_GROUPING_RE),
    _count_from(_REVIEWS_TEXT_RE, strip=_GROUPING_RE),
    _count_from(_TOTAL_REVIEWS_RE, strip=re.compile(",")),
)


def parse_review_count(html: str) -> Optional[int]:
    """Review count, or None when no strategy matched (None is not 0)."""
    return first_match(COUNT_STRATEGIES, ReviewPage(html))


# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------

_MAILTO_RE = re.compile(r"href=[\"']mailto:([^\"'?]+)", re.IGNORECASE)
_EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")


def contact_window(html: str) -> Optional[str]:
    """The slice of *html* following the "Contact info" marker, if any."""
    start = html.lower().find(CONTACT_MARKER.lower())
    if start == -1:
        return None
    return html[start:start + CONTACT_WINDOW_CHARS]


def _is_candidate_email(address: str) -> bool:
    lower = address.lower()
    domain = lower.rsplit("@", 1)[-1]
    if domain == SITE_DOMAIN or domain.endswith("." + SITE_DOMAIN):
        return False
    if lower.endswith(IMAGE_EXTENSIONS):
        return False
    return not any(marker in lower for marker in TOOLING_MARKERS)


def _email_from_mailto(page: ReviewPage) -> Optional[str]:
    match = _MAILTO_RE.search(page.html)
    if not match:
        return None
    return _clean_text(match.group(1).lower())


def _email_from_text(page: ReviewPage) -> Optional[str]:
    for address in _EMAIL_RE.findall(page.html):
        if _is_candidate_email(address):
            return address.lower()
    return None


EMAIL_STRATEGIES: tuple[Strategy[str], ...] = (
    _email_from_mailto,
    _email_from_text,
)


def parse_email(html: str) -> Optional[str]:
    """Contact email, trusted only inside the "Contact info" section."""
    window = contact_window(html or "")
    if window is None:
        return None
    return first_match(EMAIL_STRATEGIES, ReviewPage(window))


# ---------------------------------------------------------------------------
# Service name
# ---------------------------------------------------------------------------

_DISPLAY_NAME_RE = re.compile(
    r"class=[\"'][^\"']*displayName[^\"']*[\"'][^>]*>([^<]+)<!--", re.IGNORECASE
)
_JSON_DISPLAY_NAME_RE = re.compile(r"\"displayName\"\s*:\s*\"([^\"]+)\"", re.IGNORECASE)
_TITLE_SUFFIXES = (
    re.compile(r"\s*\|\s*Trustpilot.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"\s*\bReviews?\s*\|.*$", re.IGNORECASE | re.DOTALL),
    re.compile(r"\s*(?:\bReviews?|Отзывы)\s*$", re.IGNORECASE),
)
_RATED_SUFFIX_RE = re.compile(r"\s+is rated\b.*$", re.IGNORECASE | re.DOTALL)


def _decode_entities(text: str) -> str:
    return html_lib.unescape(text).replace("\xa0", " ")


def _name_from_display_marker(page: ReviewPage) -> Optional[str]:
    match = _DISPLAY_NAME_RE.search(page.html)
    if not match:
        return None
    return _clean_text(_decode_entities(match.group(1)))


def _name_from_title(page: ReviewPage) -> Optional[str]:
    title = page.soup.title
    if title is None:
        return None
    text = title.get_text()
    for suffix in _TITLE_SUFFIXES:
        text = suffix.sub("", text)
    return _clean_text(text)


def _name_from_og_title(page: ReviewPage) -> Optional[str]:
    meta = page.soup.find("meta", attrs={"property": "og:title"})
    if meta is None:
        return None
    content = meta.get("content") or ""
    content = _RATED_SUFFIX_RE.sub("", content).replace("&quot;", '"')
    return _clean_text(content)


def _name_from_json_ld(page: ReviewPage) -> Optional[str]:
    match = _JSON_DISPLAY_NAME_RE.search(page.html)
    if not match:
        return None
    return _clean_text(match.group(1))


NAME_STRATEGIES: tuple[Strategy[str], ...] = (
    _name_from_display_marker,
    _name_from_title,
    _name_from_og_title,
    _name_from_json_ld,
)


def parse_service_name(html: str) -> Optional[str]:
    return first_match(NAME_STRATEGIES, ReviewPage(html))


def parse_review_page(html: str) -> ParsedPage:
    """Run all three extractors over one page."""
    page = ReviewPage(html)
    return ParsedPage(
        service_name=first_match(NAME_STRATEGIES, page),
        review_count=first_match(COUNT_STRATEGIES, page),
        email=parse_email(page.html),
    )
