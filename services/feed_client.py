"""HTTP client for the member spreadsheet CSV export."""

import logging
from typing import List

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.config import FeedConfig
from models.society import FeedRow
from services.feed_parser import parse_feed

logger = logging.getLogger(__name__)


class FeedUnavailableError(Exception):
    """Raised when the member feed cannot be fetched. The message never contains the feed URL."""
    pass


class FeedClient:
    """
    Fetch the member feed over HTTP.

    Every request has a bounded timeout; a failed fetch (connection error
    or non-2xx status) is retried up to ``attempts`` times in total.
    """

    def __init__(self, url: str, timeout: float = 10.0, attempts: int = 2):
        self.url = url
        self.timeout = timeout
        self.attempts = max(1, attempts)
        self._session = requests.Session()

    @classmethod
    def from_config(cls, config: FeedConfig) -> "FeedClient":
        return cls(
            url=config.csv_url,
            timeout=config.timeout_seconds,
            attempts=config.retry_attempts,
        )

    def _get_once(self) -> str:
        try:
            response = self._session.get(self.url, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Feed request failed: {type(e).__name__}")
            raise FeedUnavailableError("Unable to fetch member data") from e

        if not 200 <= response.status_code < 300:
            logger.warning(f"Feed returned HTTP {response.status_code}")
            raise FeedUnavailableError("Unable to fetch member data")

        return response.text

    def fetch_text(self) -> str:
        """Fetch the raw CSV text."""
        if not self.url:
            raise FeedUnavailableError("Member feed is not configured")

        fetch = retry(
            reraise=True,
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
            retry=retry_if_exception_type(FeedUnavailableError),
        )(self._get_once)

        text = fetch()
        logger.info(f"Fetched member feed ({len(text)} bytes)")
        return text

    def fetch_rows(self) -> List[FeedRow]:
        """Fetch and parse the feed."""
        return parse_feed(self.fetch_text())
