"""Resolve ticker symbols from free text found in disclosures."""

import re
import logging
from typing import Dict, Iterable, Iterator, Optional


logger = logging.getLogger(__name__)


# Short capitalized words that read like tickers but almost never are
STOP_WORDS = frozenset([
    "A", "I", "AM", "PM", "AN", "AS", "AT", "BE", "BY", "GO", "IF",
    "IN", "IS", "IT", "NO", "OF", "ON", "OR", "TO", "UP", "US", "WE",
])

# Company names seen in disclosures that frequently omit the symbol.
# Order matters for the substring pass: the first hit wins.
COMPANY_TO_TICKER: Dict[str, str] = {
    # Tech
    "Apple": "AAPL",
    "Apple Inc": "AAPL",
    "Microsoft": "MSFT",
    "Microsoft Corporation": "MSFT",
    "Amazon": "AMZN",
    "Amazon.com": "AMZN",
    "Amazon.com Inc": "AMZN",
    "Alphabet": "GOOGL",
    "Alphabet Inc": "GOOGL",
    "Google": "GOOGL",
    "Meta": "META",
    "Meta Platforms": "META",
    "Facebook": "META",
    "Tesla": "TSLA",
    "Tesla Inc": "TSLA",
    "Netflix": "NFLX",
    "Netflix Inc": "NFLX",
    "Palantir": "PLTR",
    "Palantir Technologies": "PLTR",
    "Alibaba": "BABA",
    "Alibaba Group": "BABA",

    # Financials
    "JPMorgan": "JPM",
    "JPMorgan Chase": "JPM",
    "JPMorgan Chase & Co": "JPM",
    "Bank of America": "BAC",
    "Bank of America Corporation": "BAC",
    "Goldman Sachs": "GS",
    "Goldman Sachs Group": "GS",
    "Visa": "V",
    "Visa Inc": "V",
    "Mastercard": "MA",
    "Mastercard Inc": "MA",

    # Healthcare / pharma
    "Johnson & Johnson": "JNJ",
    "Pfizer": "PFE",
    "Pfizer Inc": "PFE",
    "UnitedHealth": "UNH",
    "UnitedHealth Group": "UNH",
    "Merck": "MRK",
    "Merck & Co": "MRK",
    "Abbott Laboratories": "ABT",
    "Moderna": "MRNA",
    "GlaxoSmithKline": "GSK",
    "GlaxoSmithKline PLC": "GSK",

    # Consumer
    "Coca-Cola": "KO",
    "Coca-Cola Company": "KO",
    "PepsiCo": "PEP",
    "PepsiCo Inc": "PEP",
    "Walmart": "WMT",
    "Walmart Inc": "WMT",
    "Procter & Gamble": "PG",
    "Nike": "NKE",
    "Nike Inc": "NKE",
    "McDonald's": "MCD",
    "McDonald's Corporation": "MCD",
    "Walt Disney": "DIS",
    "Walt Disney Company": "DIS",
    "Disney": "DIS",
    "Altria Group": "MO",
    "Altria Group Inc": "MO",

    # Energy / utilities
    "Exxon Mobil": "XOM",
    "Exxon Mobil Corporation": "XOM",
    "Chevron": "CVX",
    "Chevron Corporation": "CVX",
    "ConocoPhillips": "COP",
    "Duke Energy": "DUK",
    "Duke Energy Corporation": "DUK",

    # Telecom
    "AT&T": "T",
    "AT&T Inc": "T",
    "Verizon": "VZ",
    "Verizon Communications": "VZ",
    "T-Mobile": "TMUS",
    "T-Mobile US": "TMUS",

    # REITs
    "American Tower": "AMT",
    "American Tower Corporation": "AMT",
    "Crown Castle": "CCI",
    "Crown Castle Inc": "CCI",
    "Prologis": "PLD",
    "Prologis Inc": "PLD",

    # Semiconductors
    "NVIDIA": "NVDA",
    "NVIDIA Corporation": "NVDA",
    "Intel": "INTC",
    "Intel Corporation": "INTC",
    "AMD": "AMD",
    "Advanced Micro Devices": "AMD",

    # Aerospace and defense
    "Boeing": "BA",
    "Boeing Company": "BA",
    "Lockheed Martin": "LMT",
    "Lockheed Martin Corporation": "LMT",
    "Raytheon": "RTX",
    "Raytheon Technologies": "RTX",
}

PARENTHESIZED_RE = re.compile(r"\(([A-Z]{1,5})\)")
STANDALONE_RE = re.compile(r"\b[A-Z]{1,5}\b")
LABELED_RE = re.compile(r"ticker:\s*([A-Z]{1,5})\b", re.IGNORECASE)
WHOLE_RE = re.compile(r"^[A-Z]{1,5}$")

# Inputs shorter than this never match a table name they are contained in
MIN_SUBSTRING_LENGTH = 4


class TickerResolver:
    """Maps raw ticker-ish text and company names to ticker symbols.

    Resolution is a pure function of its inputs: no network lookups and no
    memoization, so the same text always yields the same symbol.
    """

    def __init__(self, company_table: Optional[Dict[str, str]] = None,
                 stop_words: Iterable[str] = STOP_WORDS):
        self.company_table = dict(company_table if company_table is not None else COMPANY_TO_TICKER)
        self.stop_words = frozenset(stop_words)
        self._lowered = [(name.lower(), ticker) for name, ticker in self.company_table.items()]

    def resolve(self, candidate_text: Optional[str],
                asset_description: Optional[str] = None) -> str:
        """Resolve a ticker, returning an empty string when nothing matches.

        Args:
            candidate_text: Raw text from a ticker/symbol column
            asset_description: Free-text description of the instrument

        Returns:
            Ticker symbol or ""
        """
        candidate_text = (candidate_text or "").strip()
        asset_description = (asset_description or "").strip()

        for text in (candidate_text, asset_description):
            ticker = self.extract_symbol(text)
            if ticker:
                return ticker

        ticker = self.lookup_company(candidate_text) or self.lookup_company(asset_description)
        if ticker:
            logger.debug(f"Resolved '{candidate_text or asset_description}' to {ticker} by company name")
        return ticker

    def extract_symbol(self, text: str) -> str:
        """Pattern-based extraction on a single string."""
        if not text:
            return ""

        match = PARENTHESIZED_RE.search(text)
        if match:
            return match.group(1)

        for token in self.scan_tokens(text):
            return token

        match = LABELED_RE.search(text)
        if match:
            return match.group(1).upper()

        if WHOLE_RE.match(text) and text not in self.stop_words:
            return text

        return ""

    def scan_tokens(self, text: str) -> Iterator[str]:
        """Yield standalone uppercase 1-5 letter tokens that are not stop words.

        Stop words are skipped and scanning continues, so "IN OF NVDA" yields
        NVDA rather than giving up after the first token.
        """
        for match in STANDALONE_RE.finditer(text or ""):
            token = match.group(0)
            if token not in self.stop_words:
                yield token

    def lookup_company(self, name: Optional[str]) -> str:
        """Look a company name up in the static table."""
        if not name:
            return ""

        normalized = name.strip()
        if not normalized:
            return ""

        # Exact match
        if normalized in self.company_table:
            return self.company_table[normalized]

        lowered = normalized.lower()
        if len(lowered) < MIN_SUBSTRING_LENGTH:
            return ""

        # Partial match in either direction
        for table_name, ticker in self._lowered:
            if table_name in lowered or lowered in table_name:
                return ticker

        return ""


default_resolver = TickerResolver()


def resolve_ticker(candidate_text: Optional[str], asset_description: Optional[str] = None) -> str:
    """Module-level shortcut using the default table."""
    return default_resolver.resolve(candidate_text, asset_description)
