"""Data normalizer turning raw field dictionaries into canonical records."""

import re
import logging
import warnings
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional

import pandas as pd

from .models import Chamber, Politician, Trade
from .ticker_resolver import TickerResolver, default_resolver


logger = logging.getLogger(__name__)

CANONICAL_DATE_FORMAT = "%m/%d/%Y"
CANONICAL_DATE_RE = re.compile(r"^\d{2}/\d{2}/\d{4}$")

# Explicit fallbacks tried after native parsing, in order
DATE_PATTERNS = [
    (re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})"), ("month", "day", "year")),
    (re.compile(r"(\d{1,2})-(\d{1,2})-(\d{4})"), ("month", "day", "year")),
    (re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})"), ("year", "month", "day")),
]

RELATIVE_DATE_RE = re.compile(r"(\d+)\s+(day|week|month)s?\s+ago", re.IGNORECASE)


class DataNormalizer:
    """Normalizes raw trade and politician dictionaries."""

    def __init__(self, resolver: Optional[TickerResolver] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.logger = logger
        self.resolver = resolver or default_resolver
        self.clock = clock

        # Raw key aliases per canonical field, first non-empty wins
        self.trade_aliases = {
            "id": ["id", "trade_id"],
            "filing": ["ptr_link", "filing_url"],
            "politician": ["politician", "representative", "senator", "name"],
            "date": ["transaction_date", "transactionDate", "date"],
            "ticker": ["ticker", "symbol"],
            "asset": ["asset_description", "assetDescription", "asset"],
            "type": ["transaction_type", "transactionType", "type"],
            "amount": ["amount", "value"],
            "comment": ["comment", "notes"],
        }

        self.politician_aliases = {
            "id": ["id", "bioguide_id", "member_id"],
            "name": ["name", "politician", "representative", "senator", "full_name"],
            "state": ["state", "state_code"],
            "party": ["party"],
            "district": ["district"],
        }

        # Party normalization
        self.party_mapping = {
            "d": "Democrat",
            "dem": "Democrat",
            "democratic": "Democrat",
            "r": "Republican",
            "rep": "Republican",
            "i": "Independent",
            "ind": "Independent",
        }

        # Cell contents that mean "nothing here"
        self.placeholder_values = {"", "-", "--", "n/a", "na", "none", "null", "nan", "unknown"}

    # Dates

    def parse_date(self, value: Any) -> Optional[date]:
        """Parse a date from any of the formats seen upstream."""
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value

        text = str(value).strip()
        if not text:
            return None

        # Relative dates depend on the injected clock, check them first
        relative = self._parse_relative(text)
        if relative:
            return relative

        parsed = self._parse_native(text)
        if parsed:
            return parsed

        for pattern, order in DATE_PATTERNS:
            match = pattern.search(text)
            if not match:
                continue
            parts = dict(zip(order, (int(g) for g in match.groups())))
            try:
                return date(parts["year"], parts["month"], parts["day"])
            except ValueError:
                continue

        return None

    def format_date(self, value: Any) -> str:
        """Format a date as MM/DD/YYYY, or return the input when unparseable."""
        parsed = self.parse_date(value)
        if parsed:
            return parsed.strftime(CANONICAL_DATE_FORMAT)
        if value is None:
            return ""
        return str(value).strip()

    def _parse_native(self, text: str) -> Optional[date]:
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                parsed = pd.to_datetime(text, errors="coerce")
        except (ValueError, TypeError, OverflowError):
            return None

        if parsed is None or pd.isna(parsed):
            return None
        return parsed.date()

    def _parse_relative(self, text: str) -> Optional[date]:
        """Parse dates like 'Today' or '2 days ago'."""
        today = self.clock().date()
        lowered = text.lower()

        if lowered == "today":
            return today
        if lowered == "yesterday":
            return today - timedelta(days=1)

        match = RELATIVE_DATE_RE.search(lowered)
        if not match:
            return None

        count = int(match.group(1))
        unit = match.group(2).lower()
        if unit == "day":
            return today - timedelta(days=count)
        elif unit == "week":
            return today - timedelta(weeks=count)
        else:
            return today - timedelta(days=count * 30)

    # Trades

    def normalize_trade(self, raw: Dict[str, Any], sequence: int = 0,
                        data_source: Optional[str] = None) -> Optional[Trade]:
        """Normalize a single raw trade dictionary.

        Args:
            raw: Raw field dictionary from the extractor
            sequence: Position of the record, used to synthesize an id
            data_source: Source name recorded on the trade

        Returns:
            Trade, or None when the record is invalid
        """
        politician = self._normalize_name(self._first(raw, self.trade_aliases["politician"]))
        if not politician:
            self.logger.debug(f"Dropping trade without politician: {raw}")
            return None

        date_text = self._first(raw, self.trade_aliases["date"])
        parsed = self.parse_date(date_text)
        if not parsed:
            self.logger.debug(f"Dropping trade with unusable date '{date_text}' for {politician}")
            return None

        chamber = Chamber.parse(raw.get("chamber"))
        if chamber is None:
            self.logger.debug(f"Dropping trade without chamber for {politician}")
            return None

        raw_ticker = self._first(raw, self.trade_aliases["ticker"])
        asset = self._first(raw, self.trade_aliases["asset"])
        source = data_source or raw.get("provenance") or "unknown"

        # One filing link covers every transaction in the filing
        trade_id = self._first(raw, self.trade_aliases["id"])
        if not trade_id:
            filing = self._first(raw, self.trade_aliases["filing"])
            trade_id = f"{filing}#{sequence}" if filing else f"{source}-{chamber.value}-{sequence}"

        return Trade(
            id=trade_id,
            chamber=chamber,
            politician=politician,
            transaction_date=parsed.strftime(CANONICAL_DATE_FORMAT),
            ticker=self.resolver.resolve(raw_ticker, asset),
            raw_ticker_text=raw_ticker,
            asset_description=asset,
            transaction_type=self._first(raw, self.trade_aliases["type"]),
            amount=self._first(raw, self.trade_aliases["amount"]),
            comment=self._first(raw, self.trade_aliases["comment"]),
            data_source=source,
            scraped_at=self.clock(),
        )

    def normalize_trades(self, raws: Iterable[Dict[str, Any]],
                         data_source: Optional[str] = None) -> List[Trade]:
        """Normalize a batch, dropping invalid rows and merging duplicates."""
        trades: List[Trade] = []
        positions: Dict[tuple, int] = {}
        processed = dropped = merged = 0

        for sequence, raw in enumerate(raws):
            processed += 1
            trade = self.normalize_trade(raw, sequence=sequence, data_source=data_source)
            if trade is None:
                dropped += 1
                continue

            key = trade.dedup_key()
            if key in positions:
                index = positions[key]
                trades[index] = trades[index].merged_with(trade)
                merged += 1
            else:
                positions[key] = len(trades)
                trades.append(trade)

        self.logger.info(
            f"Normalized {len(trades)}/{processed} trades "
            f"({dropped} dropped, {merged} merged)"
        )
        return trades

    # Politicians

    def normalize_politician(self, raw: Dict[str, Any], sequence: int = 0,
                             data_source: Optional[str] = None) -> Optional[Politician]:
        """Normalize a single raw politician dictionary."""
        name = self._normalize_name(self._first(raw, self.politician_aliases["name"]))
        if not name:
            return None

        chamber = Chamber.parse(raw.get("chamber"))
        if chamber is None:
            self.logger.debug(f"Dropping politician without chamber: {name}")
            return None

        state = self._first(raw, self.politician_aliases["state"]).upper()
        district = self._first(raw, self.politician_aliases["district"]) or None
        if chamber is not Chamber.HOUSE:
            district = None
        elif district and not state:
            # House districts are often written as "CA12"
            match = re.match(r"^([A-Za-z]{2})-?\d+$", district)
            if match:
                state = match.group(1).upper()

        return Politician(
            id=self._first(raw, self.politician_aliases["id"]) or self._slug(chamber, name),
            name=name,
            chamber=chamber,
            state=state,
            party=self._normalize_party(self._first(raw, self.politician_aliases["party"])),
            district=district,
            data_source=data_source or raw.get("provenance") or "unknown",
        )

    def normalize_politicians(self, raws: Iterable[Dict[str, Any]],
                              data_source: Optional[str] = None) -> List[Politician]:
        """Normalize a batch of politicians, merging duplicates by chamber and name."""
        politicians: List[Politician] = []
        positions: Dict[tuple, int] = {}

        for sequence, raw in enumerate(raws):
            politician = self.normalize_politician(raw, sequence=sequence, data_source=data_source)
            if politician is None:
                continue

            key = politician.dedup_key()
            if key in positions:
                index = positions[key]
                politicians[index] = politicians[index].merged_with(politician)
            else:
                positions[key] = len(politicians)
                politicians.append(politician)

        self.logger.info(f"Normalized {len(politicians)} politicians")
        return politicians

    def politicians_from_trades(self, trades: Iterable[Trade],
                                data_source: str = "derived-from-trades") -> List[Politician]:
        """Build the politician list from the filers seen in trades."""
        seen = {}
        for trade in trades:
            key = (trade.chamber.value, trade.politician.lower())
            if key not in seen:
                seen[key] = Politician(
                    id=self._slug(trade.chamber, trade.politician),
                    name=trade.politician,
                    chamber=trade.chamber,
                    data_source=data_source,
                )
        return list(seen.values())

    # Helpers

    def _first(self, raw: Dict[str, Any], keys: List[str]) -> str:
        """First non-empty value among alias keys."""
        for key in keys:
            value = self._clean(raw.get(key))
            if value:
                return value
        return ""

    def _clean(self, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, float) and pd.isna(value):
            return ""
        text = " ".join(str(value).split())
        if text.lower() in self.placeholder_values:
            return ""
        return text

    def _normalize_name(self, name: str) -> str:
        """Normalize politician name."""
        if not name:
            return ""
        name = re.sub(r"^(Hon\.?|Honorable)\s+", "", name, flags=re.IGNORECASE)
        return name.strip()

    def _normalize_party(self, party: str) -> str:
        if not party:
            return ""
        return self.party_mapping.get(party.lower().rstrip("."), party)

    def _slug(self, chamber: Chamber, name: str) -> str:
        return f"{chamber.value}-" + re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def format_date(value: Any) -> str:
    """Module-level shortcut for MM/DD/YYYY formatting."""
    return DataNormalizer().format_date(value)
