"""Base classes for data ingestion."""

import time
import logging
from datetime import datetime
from typing import Dict, Optional, Any
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from bs4 import BeautifulSoup

from stockwatch.config import config


logger = logging.getLogger(__name__)


class IngestionError(Exception):
    """Base exception for ingestion errors."""
    pass


class RateLimitError(IngestionError):
    """Exception raised when an upstream site rate limits us."""
    pass


class DataQualityError(IngestionError):
    """Exception raised when a payload cannot be interpreted."""
    pass


class SourceTimeoutError(IngestionError):
    """Exception raised when a source exceeds its bounded wait."""
    pass


class InvalidRequestError(IngestionError):
    """Exception raised for a malformed dataset request."""
    pass


class BaseIngester:
    """Base class for all upstream sources."""

    def __init__(self, name: str, base_url: str, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        """Initialize the ingester.

        Args:
            name: Name of the ingester for logging
            base_url: Root URL of the upstream site
            timeout: Per-request timeout in seconds
            session: Pre-built session (tests inject a mock here)
        """
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else config.sources.SOURCE_TIMEOUT
        self.logger = logging.getLogger(f"ingester.{name}")

        if session is None:
            # Request session with retry logic
            session = requests.Session()
            retry_strategy = Retry(
                total=config.sources.MAX_RETRIES,
                status_forcelist=[500, 502, 503, 504],
                backoff_factor=0.5,
                raise_on_status=False
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("http://", adapter)
            session.mount("https://", adapter)
            session.headers.update(config.sources.HEADERS)
        self.session = session

        # Rate limiting
        self.last_request_time = 0.0
        self.min_request_interval = config.sources.MIN_REQUEST_INTERVAL

        # Statistics
        self.stats = {
            "requests_made": 0,
            "errors": 0,
            "last_request": None
        }

    def _rate_limit(self):
        """Implement rate limiting between requests."""
        elapsed = time.time() - self.last_request_time
        if elapsed < self.min_request_interval:
            sleep_time = self.min_request_interval - elapsed
            self.logger.debug(f"Rate limiting: sleeping {sleep_time:.2f} seconds")
            time.sleep(sleep_time)
        self.last_request_time = time.time()

    def _build_url(self, endpoint: str) -> str:
        """Build full URL for an endpoint on this site."""
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def _make_request(self, url: str, headers: Optional[Dict[str, str]] = None,
                      params: Optional[Dict[str, Any]] = None) -> requests.Response:
        """Make an HTTP GET with rate limiting and error handling.

        Args:
            url: Request URL (absolute, or relative to ``base_url``)
            headers: Optional headers
            params: Optional query parameters

        Returns:
            Response object

        Raises:
            IngestionError: If the request fails or returns a non-2xx status
        """
        url = self._build_url(url)
        self._rate_limit()

        try:
            self.stats["requests_made"] += 1
            self.stats["last_request"] = datetime.now()

            response = self.session.get(
                url,
                headers=headers or {},
                params=params or {},
                timeout=self.timeout
            )

            # Check for rate limiting
            if response.status_code == 429:
                raise RateLimitError(f"Rate limit exceeded: {url}")

            response.raise_for_status()
            return response

        except requests.exceptions.Timeout as e:
            self.stats["errors"] += 1
            self.logger.warning(f"Request timed out: {url} - {e}")
            raise SourceTimeoutError(f"Request timed out: {e}")
        except requests.exceptions.RequestException as e:
            self.stats["errors"] += 1
            self.logger.warning(f"Request failed: {url} - {e}")
            raise IngestionError(f"Request failed: {e}")

    def get_status(self) -> Dict[str, Any]:
        """Get the current status of the ingester."""
        return {
            "name": self.name,
            "base_url": self.base_url,
            "stats": self.stats.copy(),
            "timeout": self.timeout,
        }


class APIIngester(BaseIngester):
    """Base class for JSON API sources."""

    def __init__(self, name: str, base_url: str, **kwargs):
        super().__init__(name, base_url, **kwargs)
        # APIs tolerate faster polling than HTML pages
        self.min_request_interval = 0.0

    def _get_json(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET an endpoint and decode its JSON body."""
        response = self._make_request(endpoint, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise DataQualityError(f"{self.name}: invalid JSON from {endpoint}: {e}")


class ScrapingIngester(BaseIngester):
    """Base class for web scraping sources."""

    def _get_soup(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> BeautifulSoup:
        """GET a page and parse it."""
        response = self._make_request(endpoint, params=params)
        return BeautifulSoup(response.content, "html.parser")
