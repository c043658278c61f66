"""
Price Service for market data.

Uses yfinance for free, delayed market data, falling back to Alpha Vantage
and Financial Modeling Prep when Yahoo has nothing.
Provides the market context shown next to a disclosed trade.
"""

import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, Optional

import requests
import yfinance as yf

from stockwatch.config import config
from stockwatch.ingestion.cache import DatasetCache

logger = logging.getLogger(__name__)

LIMITED = "limited"
ERROR = "error"

# Legal suffixes stripped before a company name search
COMPANY_SUFFIXES = re.compile(r"\b(inc|corp|corporation|company|co|ltd)\b", re.IGNORECASE)


class PriceService:
    """Looks up current quotes through a chain of market data providers."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now,
                 cache: Optional[DatasetCache] = None,
                 session: Optional[requests.Session] = None):
        self.clock = clock
        self.cache = cache or DatasetCache(
            default_window=timedelta(hours=config.cache.QUOTE_TTL_HOURS),
            clock=clock,
            name="quotes",
        )
        self.session = session or requests.Session()
        self.timeout = config.api.QUOTE_TIMEOUT

        # Provider chain, first usable quote wins
        self.providers = [
            ("yahoo-finance", self._from_yfinance),
            ("alpha-vantage", self._from_alpha_vantage),
            ("fmp-api", self._from_fmp),
        ]

    def get_quote(self, ticker: str) -> Dict:
        """Get current price and basic info for a ticker.

        Successful quotes are cached per ticker. When every provider fails a
        ``limited`` placeholder is returned and nothing is cached, so the next
        request tries again.
        """
        if not ticker or not ticker.strip():
            return {"error": "No ticker provided"}

        ticker = ticker.upper().strip()

        cached = self.cache.peek(ticker)
        if cached is not None:
            logger.debug(f"Using cached quote for {ticker}")
            return cached["quote"]

        for provider, fetch in self.providers:
            try:
                quote = fetch(ticker)
            except Exception as e:
                logger.warning(f"{provider} error for {ticker}: {e}")
                continue

            if not quote:
                logger.info(f"{provider} had no data for {ticker}")
                continue

            quote.setdefault("ticker", ticker)
            if "sector" not in quote:
                self._add_company_info(quote)
            quote["dataSource"] = provider
            quote["lastUpdated"] = self.clock().isoformat()

            self.cache.put(ticker, {"quote": quote, "fetched_at": self.clock()})
            return quote

        logger.warning(f"All quote providers failed for {ticker}")
        return {
            "ticker": ticker,
            "dataSource": LIMITED,
            "error": "Limited data available",
            "lastUpdated": self.clock().isoformat(),
        }

    def get_quotes(self, tickers: Iterable[str], batch_size: int = 5) -> Dict[str, Dict]:
        """Quotes for many tickers, one lookup per unique ticker.

        Tickers are looked up in parallel batches of ``batch_size`` with a
        pause between batches. A lookup that raises gives an ``error``
        placeholder instead of aborting the batch.
        """
        unique = list(dict.fromkeys(t.upper().strip() for t in tickers if t and t.strip()))
        logger.info(f"Enriching {len(unique)} unique tickers in batches of {batch_size}")

        quotes = {}
        with ThreadPoolExecutor(max_workers=batch_size, thread_name_prefix="quote") as executor:
            for start in range(0, len(unique), batch_size):
                batch = unique[start:start + batch_size]
                futures = {ticker: executor.submit(self.get_quote, ticker) for ticker in batch}
                for ticker, future in futures.items():
                    try:
                        quotes[ticker] = future.result()
                    except Exception as e:
                        logger.error(f"Error enriching {ticker}: {e}")
                        quotes[ticker] = {
                            "ticker": ticker,
                            "dataSource": ERROR,
                            "error": "Failed to fetch data",
                        }

                if start + batch_size < len(unique):
                    time.sleep(config.api.BATCH_DELAY)

        return quotes

    def get_company_info(self, ticker: str) -> Optional[Dict]:
        """Company name, sector and industry from the Yahoo profile."""
        info = yf.Ticker(ticker.upper().strip()).info or {}
        if not info.get("sector") and not info.get("industry"):
            return None

        return {
            "companyName": info.get("longName") or info.get("shortName"),
            "industry": info.get("industry"),
            "sector": info.get("sector"),
            "website": info.get("website"),
        }

    def lookup_ticker(self, company_name: str) -> Optional[str]:
        """Search Yahoo for the equity symbol of a company name."""
        if not company_name:
            return None

        clean_name = re.sub(r"[^\w\s]", "", company_name)
        clean_name = " ".join(COMPANY_SUFFIXES.sub("", clean_name).split())
        if not clean_name:
            return None

        logger.info(f"Looking up ticker for company: {clean_name}")
        try:
            results = yf.Search(clean_name, max_results=5, news_count=0).quotes
        except Exception as e:
            logger.warning(f"Company name lookup error for {company_name}: {e}")
            return None

        for result in results or []:
            if result.get("quoteType") == "EQUITY" and result.get("exchange"):
                return result.get("symbol")
        return None

    def _add_company_info(self, quote: Dict) -> None:
        try:
            info = self.get_company_info(quote["ticker"])
        except Exception as e:
            logger.warning(f"Could not fetch company info for {quote['ticker']}: {e}")
            return

        if info:
            quote["companyName"] = quote.get("companyName") or info["companyName"] or quote["ticker"]
            quote["industry"] = info["industry"]
            quote["sector"] = info["sector"]

    def _from_yfinance(self, ticker: str) -> Optional[Dict]:
        stock = yf.Ticker(ticker)
        hist = stock.history(period="5d")

        if hist.empty:
            return None

        info = stock.info or {}
        current_price = info.get("regularMarketPrice") or float(hist["Close"].iloc[-1])
        prev_close = info.get("regularMarketPreviousClose")
        if prev_close is None:
            prev_close = float(hist["Close"].iloc[-2]) if len(hist) > 1 else current_price

        change = current_price - prev_close
        change_pct = (change / prev_close * 100) if prev_close else 0

        return {
            "ticker": ticker,
            "companyName": info.get("longName") or info.get("shortName") or ticker,
            "currentPrice": current_price,
            "previousClose": prev_close,
            "open": info.get("regularMarketOpen", float(hist["Open"].iloc[-1])),
            "dayHigh": info.get("regularMarketDayHigh", float(hist["High"].iloc[-1])),
            "dayLow": info.get("regularMarketDayLow", float(hist["Low"].iloc[-1])),
            "volume": int(hist["Volume"].iloc[-1]) if "Volume" in hist else 0,
            "marketCap": info.get("marketCap", 0),
            "change": change,
            "changePercent": change_pct,
            "exchange": info.get("exchange", ""),
            "industry": info.get("industry"),
            "sector": info.get("sector"),
        }

    def _from_alpha_vantage(self, ticker: str) -> Optional[Dict]:
        params = {
            "function": "GLOBAL_QUOTE",
            "symbol": ticker,
            "apikey": config.api.ALPHA_VANTAGE_API_KEY,
        }
        response = self.session.get(config.api.ALPHA_VANTAGE_BASE_URL, params=params,
                                    timeout=self.timeout)
        response.raise_for_status()

        quote = response.json().get("Global Quote") or {}
        if not quote.get("05. price"):
            return None

        return {
            "ticker": ticker,
            "currentPrice": float(quote["05. price"]),
            "change": float(quote.get("09. change", 0)),
            "changePercent": float(str(quote.get("10. change percent", "0")).rstrip("%")),
            "volume": int(quote.get("06. volume", 0)),
        }

    def _from_fmp(self, ticker: str) -> Optional[Dict]:
        url = f"{config.api.FMP_BASE_URL}/quote/{ticker}"
        response = self.session.get(url, params={"apikey": config.api.FMP_API_KEY},
                                    timeout=self.timeout)
        response.raise_for_status()

        data = response.json()
        if not isinstance(data, list) or not data:
            return None

        quote = data[0]
        return {
            "ticker": ticker,
            "companyName": quote.get("name"),
            "currentPrice": quote.get("price"),
            "change": quote.get("change"),
            "changePercent": quote.get("changesPercentage"),
            "marketCap": quote.get("marketCap"),
            "volume": quote.get("volume"),
            "exchange": quote.get("exchange"),
        }
