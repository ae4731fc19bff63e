"""Scrapfly adapter: fetch JS-rendered HTML for a URL, or fail with a reason.

The client never raises. Missing configuration, HTTP errors and transport
errors all come back as ``FetchResult(success=False, error=...)``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import requests

from src.core.config import settings

logger = logging.getLogger(__name__)

MISSING_KEY_ERROR = "SCRAPFLY_API_KEY is not configured"


@dataclass(frozen=True)
class FetchResult:
    success: bool
    html: str = ""
    error: Optional[str] = None


@dataclass(frozen=True)
class BalanceResult:
    success: bool
    balance: Optional[int] = None
    error: Optional[str] = None


class Fetcher(Protocol):
    async def fetch(self, url: str) -> FetchResult: ...


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return f"HTTP {response.status_code}"


def _dict_at(payload: Any, *keys: str) -> dict:
    """Walk nested JSON objects, yielding an empty dict at the first non-object level."""
    node = payload
    for key in keys:
        node = node.get(key) if isinstance(node, dict) else None
    return node if isinstance(node, dict) else {}


class ScrapflyClient:
    """Thin wrapper around the Scrapfly scrape and account endpoints."""

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self.api_key = api_key if api_key is not None else settings.SCRAPFLY_API_KEY
        self.timeout = timeout if timeout is not None else settings.SCRAPE_REQUEST_TIMEOUT

    def scrape_params(self, url: str) -> dict[str, str]:
        return {
            "key": self.api_key,
            "url": url,
            "asp": "false",
            "render_js": "true",
            "proxy_pool": settings.SCRAPFLY_PROXY_POOL,
            "country": settings.SCRAPFLY_COUNTRY,
            "rendering_wait": str(settings.SCRAPFLY_RENDERING_WAIT_MS),
            "format": "raw",
        }

    def fetch_sync(self, url: str) -> FetchResult:
        if not self.api_key:
            return FetchResult(success=False, error=MISSING_KEY_ERROR)

        try:
            response = requests.get(
                settings.SCRAPFLY_API_URL,
                params=self.scrape_params(url),
                timeout=self.timeout,
            )
            if not response.ok:
                error = _error_message(response)
                logger.warning("Scrapfly returned %s for %s: %s", response.status_code, url, error)
                return FetchResult(success=False, error=error)

            data = response.json()
        except requests.RequestException as e:
            logger.warning("Scrapfly request failed for %s: %s", url, e)
            return FetchResult(success=False, error=str(e) or e.__class__.__name__)
        except ValueError as e:
            return FetchResult(success=False, error=f"Invalid Scrapfly response: {e}")

        result = _dict_at(data, "result")
        html = result.get("content")
        if not isinstance(html, str):
            html = ""
        return FetchResult(success=True, html=html)

    async def fetch(self, url: str) -> FetchResult:
        """Non-blocking fetch: the HTTP call runs in a worker thread."""
        return await asyncio.to_thread(self.fetch_sync, url)

    def check_balance(self) -> BalanceResult:
        """Remaining scrape credits on the Scrapfly account."""
        if not self.api_key:
            return BalanceResult(success=False, error=MISSING_KEY_ERROR)

        try:
            response = requests.get(
                settings.SCRAPFLY_ACCOUNT_URL,
                params={"key": self.api_key},
                timeout=self.timeout,
            )
            if not response.ok:
                return BalanceResult(success=False, error=f"HTTP {response.status_code}")
            data = response.json()
        except requests.RequestException as e:
            return BalanceResult(success=False, error=str(e) or e.__class__.__name__)
        except ValueError as e:
            return BalanceResult(success=False, error=f"Invalid Scrapfly response: {e}")

        usage = _dict_at(data, "subscription", "usage")
        balance = _dict_at(usage, "scrape").get("remaining")
        if balance is None:
            balance = usage.get("scrape_api_credit_remaining")
        if isinstance(balance, bool) or not isinstance(balance, int):
            balance = None
        return BalanceResult(success=True, balance=balance)
