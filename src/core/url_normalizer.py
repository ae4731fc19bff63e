"""Turn raw user input into a canonical Trustpilot review URL."""

import re
from typing import Optional
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

REVIEW_HOST = "trustpilot.com"
REVIEW_PATH_PREFIX = "https://www.trustpilot.com/review/"
LANGUAGES_PARAM = "languages"

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)
_WWW_RE = re.compile(r"^www\.", re.IGNORECASE)
_NETLOC_RE = re.compile(r"^[a-z0-9.-]+(:\d+)?$")
_PATH_SAFE = "/%:@!$&'()*+,;=-._~"


def normalize_review_url(raw: Optional[str]) -> Optional[str]:
    """Return the canonical review URL for *raw*, or None if it cannot be built.

    A bare domain such as ``acme.com`` becomes
    ``https://www.trustpilot.com/review/acme.com?languages=all``. An explicit
    ``languages`` query parameter is kept as given.
    """
    if raw is None:
        return None
    url = raw.strip()
    if not url:
        return None

    if REVIEW_HOST not in url.lower():
        url = _WWW_RE.sub("", _SCHEME_RE.sub("", url))
        url = f"{REVIEW_PATH_PREFIX}{url}"

    if not url.lower().startswith("http"):
        url = f"https://{url}"

    try:
        parts = urlsplit(url)
        # .port raises ValueError on a malformed port
        parts.port
    except ValueError:
        return None

    netloc = parts.netloc.lower()
    if parts.scheme.lower() not in ("http", "https") or not _NETLOC_RE.match(netloc):
        return None

    query = parse_qsl(parts.query, keep_blank_values=True)
    if not any(key == LANGUAGES_PARAM for key, _ in query):
        query.append((LANGUAGES_PARAM, "all"))

    return urlunsplit(
        (
            parts.scheme.lower(),
            netloc,
            quote(parts.path or "/", safe=_PATH_SAFE),
            urlencode(query),
            parts.fragment,
        )
    )
