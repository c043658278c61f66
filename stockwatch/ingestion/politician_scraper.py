"""Coordinator for congressional trade and politician datasets."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import requests

from stockwatch.config import config
from stockwatch.market_data.price_service import PriceService
from .base import BaseIngester, InvalidRequestError
from .cache import DatasetCache
from .data_normalizer import DataNormalizer
from .document_extractor import DocumentExtractor
from .fetch_strategy import FetchStrategy, SourceAttempt
from .models import Chamber, Dataset, Trade
from .sources import build_politician_sources, build_trade_sources
from .ticker_resolver import TickerResolver


HOUSE_TRADES = "houseTrades"
SENATE_TRADES = "senateTrades"
POLITICIANS = "politicians"

# Dataset name -> chamber its records come from (None means both)
DATASETS = {
    HOUSE_TRADES: Chamber.HOUSE,
    SENATE_TRADES: Chamber.SENATE,
    POLITICIANS: None,
}

DERIVED_SOURCE = "derived-from-trades"

# Filter values meaning "no chamber filter"
ALL_CHAMBERS = ("", "all")


def default_windows() -> Dict[str, timedelta]:
    return {
        HOUSE_TRADES: timedelta(minutes=config.cache.HOUSE_TRADES_TTL_MINUTES),
        SENATE_TRADES: timedelta(minutes=config.cache.SENATE_TRADES_TTL_MINUTES),
        POLITICIANS: timedelta(minutes=config.cache.POLITICIANS_TTL_MINUTES),
    }


class PoliticianScraper:
    """Main politician scraper that coordinates multiple sources.

    Each dataset is fetched through its fallback chain at most once per cache
    window. Callers always get a ``Dataset`` back; an empty envelope with
    ``source_used == "none"`` means every source failed.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now,
                 cache: Optional[DatasetCache] = None,
                 strategy: Optional[FetchStrategy] = None,
                 sources: Optional[Dict[str, List[SourceAttempt]]] = None,
                 normalizer: Optional[DataNormalizer] = None,
                 price_service: Optional[PriceService] = None,
                 session: Optional[requests.Session] = None):
        """Initialize the coordinator.

        Args:
            clock: Source of "now" shared by the cache, strategy and normalizer
            cache: Dataset cache, one entry per dataset name
            strategy: Fallback driver
            sources: Attempts per dataset name, replacing the built-in chains.
                The politicians chain always ends with the list derived from
                the trade datasets.
            normalizer: Record normalizer
            price_service: Quote provider used by ``enrich_ticker``
            session: HTTP session shared by the built-in sources
        """
        self.logger = logging.getLogger(__name__)
        self.clock = clock
        self.cache = cache or DatasetCache(
            default_window=timedelta(minutes=config.cache.HOUSE_TRADES_TTL_MINUTES),
            windows=default_windows(),
            clock=clock,
        )
        self.strategy = strategy or FetchStrategy(clock=clock)
        self.normalizer = normalizer or DataNormalizer(resolver=TickerResolver(), clock=clock)
        self.price_service = price_service or PriceService(clock=clock)
        self.executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="chamber")
        self.ingesters: List[BaseIngester] = []

        if sources is None:
            sources = self._build_sources(session)
        self.sources = sources

        self.logger.info(
            "Initialized politician scraper with "
            + ", ".join(f"{name}: {len(chain)} sources" for name, chain in self.sources.items())
        )

    def _build_sources(self, session: Optional[requests.Session]) -> Dict[str, List[SourceAttempt]]:
        extractor = DocumentExtractor(resolver=self.normalizer.resolver)
        chains = {
            HOUSE_TRADES: build_trade_sources(Chamber.HOUSE, extractor, self.normalizer, session),
            SENATE_TRADES: build_trade_sources(Chamber.SENATE, extractor, self.normalizer, session),
            POLITICIANS: build_politician_sources(extractor, self.normalizer, session),
        }

        # Keep the ingesters themselves for their request stats
        for chain in chains.values():
            for source in chain:
                self.ingesters.extend(getattr(source, "parts", [source]))

        return {name: [s.as_attempt() for s in chain] for name, chain in chains.items()}

    def _attempts(self, name: str) -> List[SourceAttempt]:
        attempts = list(self.sources.get(name, []))
        if name == POLITICIANS:
            # Derived list waits on both trade chains
            trade_chain = max(len(self.sources.get(HOUSE_TRADES, [])),
                              len(self.sources.get(SENATE_TRADES, [])), 1)
            attempts.append(SourceAttempt(
                name=DERIVED_SOURCE,
                fetch=self._politicians_from_trades,
                timeout=config.sources.SOURCE_TIMEOUT * (trade_chain + 1),
            ))
        return attempts

    def fetch_dataset(self, name: str, chamber_filter: Optional[Any] = None) -> Dataset:
        """Return a dataset, from cache while its window is open.

        Args:
            name: One of ``houseTrades``, ``senateTrades``, ``politicians``
            chamber_filter: ``house``/``senate`` to restrict the records;
                None, "" or "all" keeps everything

        Raises:
            InvalidRequestError: Unknown dataset name or chamber filter
        """
        if name not in DATASETS:
            raise InvalidRequestError(
                f"Unknown dataset '{name}', expected one of {', '.join(DATASETS)}"
            )
        chamber = self._parse_chamber(chamber_filter)

        dataset = self.cache.get_or_fetch(
            name, lambda: self.strategy.run(name, self._attempts(name))
        )
        return dataset.filtered(chamber)

    def fetch_congressional_trades(self) -> Dict[str, Any]:
        """Fetch House and Senate trades in parallel and combine them."""
        futures = {
            name: self.executor.submit(self.fetch_dataset, name)
            for name in (HOUSE_TRADES, SENATE_TRADES)
        }
        house = futures[HOUSE_TRADES].result()
        senate = futures[SENATE_TRADES].result()

        records = list(house.records) + list(senate.records)
        self.logger.info(
            f"Combined {len(records)} congressional trades "
            f"({house.count} House, {senate.count} Senate)"
        )
        return {
            "records": records,
            "count": len(records),
            "houseCount": house.count,
            "senateCount": senate.count,
            "sourceUsed": {
                HOUSE_TRADES: house.source_used,
                SENATE_TRADES: senate.source_used,
            },
            "fetchedAt": min(house.fetched_at, senate.fetched_at),
        }

    def enrich_ticker(self, ticker: str) -> Dict[str, Any]:
        """Market context for a ticker, see ``PriceService.get_quote``."""
        return self.price_service.get_quote(ticker)

    def enrich_trades(self, trades: Optional[List[Trade]] = None,
                      fill_missing: bool = True) -> List[Dict[str, Any]]:
        """Trades as dicts with a ``stockData`` quote attached.

        Quotes are fetched once per unique ticker. With ``fill_missing``,
        trades that have no ticker get a second pass that searches for one
        by asset description; a hit is marked with ``tickerSource``.

        Args:
            trades: Trades to enrich, all congressional trades when omitted
            fill_missing: Search tickers for trades that lack one
        """
        if trades is None:
            trades = self.fetch_congressional_trades()["records"]

        self.logger.info(f"Starting batch enrichment of {len(trades)} trades")
        quotes = self.price_service.get_quotes(trade.ticker for trade in trades)

        enriched = []
        for trade in trades:
            data = trade.to_dict()
            if trade.ticker:
                quote = quotes.get(trade.ticker.upper())
                if quote:
                    data["stockData"] = quote
            elif fill_missing and trade.asset_description:
                self._fill_ticker(data, trade.asset_description)
            enriched.append(data)

        self.logger.info(f"Completed batch enrichment for {len(enriched)} trades")
        return enriched

    def _fill_ticker(self, data: Dict[str, Any], company_name: str) -> None:
        ticker = self.price_service.lookup_ticker(company_name)
        if not ticker:
            return

        data["ticker"] = ticker
        data["tickerSource"] = "company_name_lookup"
        data["stockData"] = self.price_service.get_quote(ticker)

    def get_status(self) -> Dict[str, Any]:
        status = {
            "datasets": {},
            "cache": self.cache.get_status(),
            "quotes": self.price_service.cache.get_status(),
            "ingesters": [ingester.get_status() for ingester in self.ingesters],
        }
        for name in DATASETS:
            dataset = self.cache.peek(name)
            status["datasets"][name] = {
                "cached": dataset is not None,
                "count": dataset.count if dataset else 0,
                "sourceUsed": dataset.source_used if dataset else None,
                "fetchedAt": dataset.fetched_at.isoformat() if dataset else None,
                "sources": [attempt.name for attempt in self._attempts(name)],
            }
        return status

    def shutdown(self):
        self.executor.shutdown(wait=False)

    def _politicians_from_trades(self) -> list:
        trades = self.fetch_congressional_trades()["records"]
        return self.normalizer.politicians_from_trades(trades, data_source=DERIVED_SOURCE)

    def _parse_chamber(self, value: Optional[Any]) -> Optional[Chamber]:
        if value is None:
            return None
        if isinstance(value, str) and value.strip().lower() in ALL_CHAMBERS:
            return None

        chamber = Chamber.parse(value)
        if chamber is None:
            raise InvalidRequestError(
                f"Unknown chamber '{value}', expected house, senate or all"
            )
        return chamber
