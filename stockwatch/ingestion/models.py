"""Canonical record shapes produced by the ingestion pipeline."""

import enum
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, Dict, Optional, Tuple


class Chamber(enum.Enum):
    """Chamber of Congress a disclosure comes from."""
    HOUSE = "house"
    SENATE = "senate"

    @classmethod
    def parse(cls, value: Any) -> Optional["Chamber"]:
        """Lenient lookup accepting 'House', 'senate', 'Rep.' style values."""
        if isinstance(value, cls):
            return value
        if not value:
            return None

        text = str(value).strip().lower()
        if text in ("house", "rep", "rep.", "representative", "representatives"):
            return cls.HOUSE
        if text in ("senate", "sen", "sen.", "senator", "senators"):
            return cls.SENATE
        return None


@dataclass(frozen=True)
class Trade:
    """A normalized trade disclosure."""

    id: str
    chamber: Chamber
    politician: str
    transaction_date: str
    ticker: str = ""
    raw_ticker_text: str = ""
    asset_description: str = ""
    transaction_type: str = ""
    amount: str = ""
    comment: str = ""
    data_source: str = ""
    scraped_at: datetime = field(default_factory=datetime.now)

    def dedup_key(self) -> Tuple[str, ...]:
        """Identity used when the same trade shows up twice."""
        return (
            self.chamber.value,
            self.politician.lower(),
            self.transaction_date,
            (self.ticker or self.asset_description).lower(),
            self.transaction_type.lower(),
            self.amount,
        )

    def merged_with(self, other: "Trade") -> "Trade":
        """Copy of this trade with empty text fields filled from ``other``."""
        updates = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, str) and not value:
                other_value = getattr(other, f.name)
                if other_value:
                    updates[f.name] = other_value
        return replace(self, **updates) if updates else self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "chamber": self.chamber.value,
            "politician": self.politician,
            "transactionDate": self.transaction_date,
            "ticker": self.ticker,
            "rawTickerText": self.raw_ticker_text,
            "assetDescription": self.asset_description,
            "transactionType": self.transaction_type,
            "amount": self.amount,
            "comment": self.comment,
            "dataSource": self.data_source,
            "scrapedAt": self.scraped_at.isoformat(),
        }


@dataclass(frozen=True)
class Politician:
    """A member of Congress who files disclosures."""

    id: str
    name: str
    chamber: Chamber
    state: str = ""
    party: str = ""
    district: Optional[str] = None
    data_source: str = ""

    def dedup_key(self) -> Tuple[str, str]:
        return (self.chamber.value, self.name.lower())

    def merged_with(self, other: "Politician") -> "Politician":
        updates = {}
        for name in ("state", "party", "district"):
            if not getattr(self, name) and getattr(other, name):
                updates[name] = getattr(other, name)
        return replace(self, **updates) if updates else self

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "chamber": self.chamber.value,
            "state": self.state,
            "party": self.party,
            "dataSource": self.data_source,
        }
        if self.chamber is Chamber.HOUSE:
            data["district"] = self.district
        return data


@dataclass(frozen=True)
class Dataset:
    """Cacheable envelope around one fetched dataset.

    Envelopes are never mutated after construction; a refresh builds a new one.
    """

    name: str
    records: Tuple[Any, ...]
    fetched_at: datetime
    source_used: str

    @property
    def count(self) -> int:
        return len(self.records)

    def filtered(self, chamber: Optional[Chamber]) -> "Dataset":
        """New envelope restricted to one chamber (``None`` keeps all)."""
        if chamber is None:
            return self
        records = tuple(r for r in self.records if r.chamber is chamber)
        return replace(self, records=records)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "records": [r.to_dict() for r in self.records],
            "count": self.count,
            "fetchedAt": self.fetched_at.isoformat(),
            "sourceUsed": self.source_used,
        }
