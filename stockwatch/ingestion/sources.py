"""Upstream disclosure sources.

Every source fetches one payload shape (JSON API, bulk download, HTML page),
runs it through the document extractor and the normalizer, and returns
canonical records. Sources never decide fallback order; see
``build_trade_sources`` / ``build_politician_sources`` for the chains.
"""

from typing import Any, Dict, List, Optional

import requests

from stockwatch.config import config
from .base import APIIngester, ScrapingIngester
from .data_normalizer import DataNormalizer
from .document_extractor import DocumentExtractor, POLITICIAN_FIELDS, TRADE_FIELDS
from .fetch_strategy import SourceAttempt
from .models import Chamber


TRADE = "trade"
POLITICIAN = "politician"

# Content types a bulk download may come back with
PAYLOAD_CONTENT_TYPES = ("json", "csv", "text/plain")


class SourceMixin:
    """Shared wiring for sources that end in normalized records."""

    kind = TRADE
    chamber: Optional[Chamber] = None
    extractor: DocumentExtractor
    normalizer: DataNormalizer

    def _normalize(self, raws: List[Dict[str, Any]]) -> list:
        if self.kind == POLITICIAN:
            return self.normalizer.normalize_politicians(raws, data_source=self.name)
        return self.normalizer.normalize_trades(raws, data_source=self.name)

    def as_attempt(self, timeout: Optional[float] = None) -> SourceAttempt:
        return SourceAttempt(
            name=self.name,
            fetch=self.fetch_records,
            timeout=timeout if timeout is not None else self.timeout,
        )


class JSONApiSource(SourceMixin, APIIngester):
    """Structured JSON endpoint returning a list of records."""

    def __init__(self, name: str, base_url: str, endpoint: str, chamber: Optional[Chamber],
                 extractor: DocumentExtractor, normalizer: DataNormalizer,
                 kind: str = TRADE, **kwargs):
        super().__init__(name, base_url, **kwargs)
        self.endpoint = endpoint
        self.chamber = chamber
        self.kind = kind
        self.extractor = extractor
        self.normalizer = normalizer

    def fetch_records(self) -> list:
        payload = self._get_json(self.endpoint)
        raws = self.extractor.extract_payload(payload, self.chamber, "application/json")
        self.logger.info(f"Fetched {len(raws)} raw {self.kind} rows from {self.endpoint}")
        return self._normalize(raws)


class DownloadLinkSource(SourceMixin, ScrapingIngester):
    """Bulk CSV/JSON file linked from a site's landing page."""

    max_links = 3

    def __init__(self, name: str, base_url: str, chamber: Optional[Chamber],
                 extractor: DocumentExtractor, normalizer: DataNormalizer,
                 landing_page: str = "/", **kwargs):
        super().__init__(name, base_url, **kwargs)
        self.landing_page = landing_page
        self.chamber = chamber
        self.extractor = extractor
        self.normalizer = normalizer

    def fetch_records(self) -> list:
        landing_url = self._build_url(self.landing_page)
        soup = self._get_soup(landing_url)
        links = self.extractor.find_download_links(soup, landing_url)

        if not links:
            self.logger.info(f"No download links found on {landing_url}")
            return []

        for link in links[:self.max_links]:
            self.logger.info(f"Found potential download link: {link}")
            response = self._make_request(link)
            content_type = response.headers.get("content-type", "").lower()

            if not any(kind in content_type for kind in PAYLOAD_CONTENT_TYPES):
                self.logger.info(f"Skipping {link} with content type '{content_type}'")
                continue

            raws = self.extractor.extract_payload(response.text, self.chamber, content_type)
            records = self._normalize(raws)
            if records:
                return records

        return []


class HTMLPageSource(SourceMixin, ScrapingIngester):
    """HTML page scraped with the document extractor strategies."""

    def __init__(self, name: str, base_url: str, endpoint: str, chamber: Optional[Chamber],
                 extractor: DocumentExtractor, normalizer: DataNormalizer,
                 kind: str = TRADE, params: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(name, base_url, **kwargs)
        self.endpoint = endpoint
        self.params = params or {}
        self.chamber = chamber
        self.kind = kind
        self.extractor = extractor
        self.normalizer = normalizer

    def fetch_records(self) -> list:
        soup = self._get_soup(self.endpoint, params=self.params)
        fields = POLITICIAN_FIELDS if self.kind == POLITICIAN else TRADE_FIELDS
        raws = self.extractor.extract(soup, self.chamber, fields=fields)
        return self._normalize(raws)


class CombinedSource:
    """Several sources that only succeed together, e.g. House + Senate rosters."""

    def __init__(self, name: str, parts: List[SourceMixin],
                 timeout: Optional[float] = None):
        self.name = name
        self.parts = parts
        self.timeout = timeout if timeout is not None else config.sources.SOURCE_TIMEOUT

    def fetch_records(self) -> list:
        records = []
        for part in self.parts:
            records.extend(part.fetch_records())
        return records

    def as_attempt(self, timeout: Optional[float] = None) -> SourceAttempt:
        return SourceAttempt(
            name=self.name,
            fetch=self.fetch_records,
            timeout=timeout if timeout is not None else self.timeout,
        )


def _watcher_url(chamber: Chamber) -> str:
    if chamber is Chamber.HOUSE:
        return config.sources.HOUSE_WATCHER_URL
    return config.sources.SENATE_WATCHER_URL


def build_trade_sources(chamber: Chamber, extractor: DocumentExtractor,
                        normalizer: DataNormalizer,
                        session: Optional[requests.Session] = None) -> list:
    """Trade sources for one chamber, most trusted first."""
    watcher = _watcher_url(chamber)
    prefix = f"{chamber.value}stockwatcher"
    common = dict(extractor=extractor, normalizer=normalizer, session=session)

    return [
        JSONApiSource(f"{prefix}-api", watcher, "api/trades", chamber, **common),
        DownloadLinkSource(f"{prefix}-download", watcher, chamber, **common),
        HTMLPageSource(f"{prefix}-html", watcher, "trades", chamber, **common),
        HTMLPageSource("capitoltrades-html", config.sources.CAPITOL_TRADES_URL, "trades",
                       chamber, params={"chamber": chamber.value}, **common),
    ]


def build_politician_sources(extractor: DocumentExtractor, normalizer: DataNormalizer,
                             session: Optional[requests.Session] = None) -> list:
    """Politician roster sources covering both chambers, most trusted first."""
    common = dict(extractor=extractor, normalizer=normalizer, session=session, kind=POLITICIAN)

    return [
        CombinedSource("stockwatcher-api", [
            JSONApiSource("housestockwatcher-api", config.sources.HOUSE_WATCHER_URL,
                          "api/representatives", Chamber.HOUSE, **common),
            JSONApiSource("senatestockwatcher-api", config.sources.SENATE_WATCHER_URL,
                          "api/senators", Chamber.SENATE, **common),
        ]),
        CombinedSource("capitoltrades-html", [
            HTMLPageSource("capitoltrades-html", config.sources.CAPITOL_TRADES_URL,
                           "politicians", Chamber.HOUSE, params={"chamber": "house"}, **common),
            HTMLPageSource("capitoltrades-html", config.sources.CAPITOL_TRADES_URL,
                           "politicians", Chamber.SENATE, params={"chamber": "senate"}, **common),
        ]),
    ]
