"""Pull raw field dictionaries out of disclosure pages and data files.

Upstream sites change their markup often, so every selector, header keyword
and label this module knows about lives in the ``FieldSpec`` tables below.
Adapting to a redesigned page should only mean editing those tables.

Three strategies are tried in order and the first one that yields a usable
row wins:

* ``TableStrategy``: the largest ``<table>`` with recognizable headers.
* ``CardStrategy``: repeated ``div``-style cards whose classes mention
  trades/cards, with sub-elements located by class name.
* ``GenericStrategy``: labeled ``Key: value`` text anywhere in the page.
"""

import io
import re
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from urllib.parse import urljoin

import pandas as pd
from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from .base import DataQualityError
from .models import Chamber
from .ticker_resolver import TickerResolver, default_resolver


logger = logging.getLogger(__name__)

Document = Union[str, bytes, BeautifulSoup, Tag]
RawRecord = Dict[str, Any]


@dataclass(frozen=True)
class FieldSpec:
    """How one semantic field is recognized in markup."""

    name: str
    header_keywords: Tuple[str, ...]
    class_keywords: Tuple[str, ...]
    labels: Tuple[str, ...]


@dataclass(frozen=True)
class FieldTable:
    """All fields of one record kind, in matching priority order."""

    kind: str
    fields: Tuple[FieldSpec, ...]
    required: Tuple[str, ...]
    container_pattern: str

    def names(self) -> List[str]:
        return [f.name for f in self.fields]


# Asset is matched before date so that "Traded Issuer" is not read as a date
# column, and before politician so that "Asset Name" is not read as a person.
TRADE_FIELDS = FieldTable(
    kind="trade",
    fields=(
        FieldSpec("asset",
                  ("asset", "issuer", "company", "security", "description"),
                  ("asset", "issuer", "company"),
                  ("Asset Description", "Asset", "Company", "Issuer")),
        FieldSpec("date",
                  ("transaction date", "trade date", "traded", "date"),
                  ("date",),
                  ("Transaction Date", "Trade Date", "Date")),
        FieldSpec("ticker",
                  ("ticker", "symbol"),
                  ("ticker", "symbol"),
                  ("Ticker", "Symbol")),
        FieldSpec("politician",
                  ("politician", "representative", "senator", "member", "filer", "name"),
                  ("politician", "representative", "senator", "member", "name"),
                  ("Politician", "Representative", "Senator", "Member", "Name")),
        FieldSpec("amount",
                  ("amount", "value", "range", "size"),
                  ("amount", "value", "size"),
                  ("Amount", "Value")),
        FieldSpec("comment",
                  ("comment", "note"),
                  ("comment", "note"),
                  ("Comments", "Comment", "Notes")),
        FieldSpec("type",
                  ("transaction type", "type", "transaction", "action"),
                  ("type", "transaction", "action"),
                  ("Transaction Type", "Type", "Transaction")),
    ),
    required=("politician", "date"),
    container_pattern=r"trade|card",
)

POLITICIAN_FIELDS = FieldTable(
    kind="politician",
    fields=(
        FieldSpec("district",
                  ("district",),
                  ("district",),
                  ("District",)),
        FieldSpec("state",
                  ("state",),
                  ("state",),
                  ("State",)),
        FieldSpec("party",
                  ("party",),
                  ("party",),
                  ("Party",)),
        FieldSpec("chamber",
                  ("chamber",),
                  ("chamber",),
                  ("Chamber",)),
        FieldSpec("name",
                  ("politician", "representative", "senator", "member", "name"),
                  ("politician", "representative", "senator", "member", "name"),
                  ("Name", "Politician", "Representative", "Senator")),
    ),
    required=("name",),
    container_pattern=r"politician|member|card",
)

# JSON wrappers seen around record lists
PAYLOAD_LIST_KEYS = ("data", "trades", "results", "transactions", "items")

SECTION_SPLIT_RE = re.compile(r"\n[ \t]*\n|\n[ \t]*[-=_*]{3,}[ \t]*\n")
MIN_SECTION_LENGTH = 30

# Elements that start a new line of text; one holding other blocks ends a section
BLOCK_TAGS = frozenset((
    "address", "article", "aside", "blockquote", "body", "dd", "div", "dl", "dt",
    "fieldset", "figure", "footer", "form", "h1", "h2", "h3", "h4", "h5", "h6",
    "header", "hr", "html", "li", "main", "nav", "ol", "p", "pre", "section",
    "table", "tbody", "td", "th", "thead", "tr", "ul",
))
SKIPPED_TAGS = frozenset(("script", "style", "noscript", "template"))
LINE_BREAK = "\x00"
SECTION_BREAK = "\x01"
BREAK_RUN_RE = re.compile(r"\s*[\x00\x01][\x00\x01\s]*")
MIN_TABLE_CELLS = 3


def to_soup(document: Document) -> Union[BeautifulSoup, Tag]:
    """Parse a document unless it is already a parsed tree."""
    if isinstance(document, (BeautifulSoup, Tag)):
        return document
    return BeautifulSoup(document or "", "html.parser")


def block_text(element: Union[BeautifulSoup, Tag]) -> str:
    """Page text with line breaks at block element boundaries.

    Blocks that contain other blocks are separated by a blank line, so each
    record container becomes its own section even in minified markup.
    """
    def breaks(run):
        return "\n\n" if SECTION_BREAK in run.group(0) else "\n"

    return BREAK_RUN_RE.sub(breaks, _marked_text(element)).strip()


def _marked_text(element: Tag) -> str:
    parts = []
    for child in element.children:
        if isinstance(child, NavigableString):
            if not isinstance(child, PreformattedString):
                parts.append(str(child))
        elif child.name in SKIPPED_TAGS:
            continue
        elif child.name == "br":
            parts.append(LINE_BREAK)
        elif child.name in BLOCK_TAGS:
            container = any(isinstance(tag, Tag) and tag.name in BLOCK_TAGS
                            for tag in child.descendants)
            mark = SECTION_BREAK if container else LINE_BREAK
            parts.append(mark + _marked_text(child) + mark)
        else:
            parts.append(_marked_text(child))
    return "".join(parts)


def match_field(text: str, table: FieldTable, attr: str) -> Optional[Tuple[str, int]]:
    """Find the field whose keywords occur in ``text``.

    Returns the field name and the index of the matching keyword (lower is
    more specific), or None.
    """
    lowered = (text or "").lower()
    if not lowered:
        return None
    for spec in table.fields:
        for index, keyword in enumerate(getattr(spec, attr)):
            if keyword in lowered:
                return spec.name, index
    return None


def map_columns(headers: List[str], table: FieldTable) -> Dict[str, int]:
    """Map header cells to field names.

    When two headers claim the same field the one matching a more specific
    keyword wins; ties go to the leftmost column.
    """
    best: Dict[str, Tuple[int, int]] = {}
    for column, header in enumerate(headers):
        match = match_field(header, table, "header_keywords")
        if not match:
            continue
        name, rank = match
        if name not in best or rank < best[name][0]:
            best[name] = (rank, column)
    return {name: column for name, (rank, column) in best.items()}


def extract_labeled(text: str, table: FieldTable,
                    only: Optional[Iterable[str]] = None) -> Dict[str, str]:
    """Extract ``Label: value`` pairs from free text."""
    wanted = set(only) if only is not None else None
    found = {}
    for spec in table.fields:
        if wanted is not None and spec.name not in wanted:
            continue
        for label in spec.labels:
            pattern = re.compile(
                r"(?:^|[|;•])[ \t]*" + re.escape(label) + r"[ \t]*:\s*([^\n|;•]+)",
                re.IGNORECASE | re.MULTILINE,
            )
            match = pattern.search(text or "")
            if match and match.group(1).strip():
                found[spec.name] = match.group(1).strip()
                break
    return found


def is_usable(raw: RawRecord, table: FieldTable) -> bool:
    return any(str(raw.get(name) or "").strip() for name in table.required)


class ExtractionStrategy(ABC):
    """One way of finding records in a parsed page."""

    name = "base"

    @abstractmethod
    def extract(self, soup: Union[BeautifulSoup, Tag], table: FieldTable) -> List[Dict[str, str]]:
        """Return raw field dictionaries (without chamber/provenance)."""
        pass


class TableStrategy(ExtractionStrategy):
    """Largest HTML table with a recognizable header row."""

    name = "table"

    def extract(self, soup, table):
        tables = soup.find_all("table")
        if not tables:
            return []

        # Most rows wins; first table on ties
        best = max(tables, key=lambda t: len(t.find_all("tr")))
        rows = best.find_all("tr")
        if len(rows) < 2:
            return []

        headers = [cell.get_text(" ", strip=True) for cell in rows[0].find_all(["th", "td"])]
        columns = map_columns(headers, table)
        if not columns:
            logger.debug(f"No recognizable headers in table: {headers}")
            return []

        records = []
        for row in rows[1:]:
            cells = row.find_all(["td", "th"])
            if len(cells) < MIN_TABLE_CELLS:
                continue

            raw = {}
            for name, index in columns.items():
                if index < len(cells):
                    raw[name] = cells[index].get_text(" ", strip=True)
            if any(raw.values()):
                records.append(raw)

        return records


class CardStrategy(ExtractionStrategy):
    """Repeated card elements with field sub-elements."""

    name = "card"

    def extract(self, soup, table):
        container_re = re.compile(table.container_pattern, re.IGNORECASE)
        matches = soup.find_all(class_=container_re)

        records = []
        for element in matches:
            has_fields = self._has_field_children(element, table)

            # A field element such as <span class="trade-date"> is not a card
            if not has_fields and self._class_field(element, table):
                continue

            # Only innermost cards; wrappers like "trades-list" hold the cards
            if any(self._has_field_children(inner, table)
                   for inner in element.find_all(class_=container_re)):
                continue

            raw = self._extract_card(element, table) if has_fields else {}

            missing = [name for name in table.required if not raw.get(name)]
            if missing:
                text = element.get_text("\n", strip=True)
                for name, value in extract_labeled(text, table, only=table.names()).items():
                    raw.setdefault(name, value)

            if is_usable(raw, table):
                records.append(raw)

        return records

    def _class_field(self, element: Tag, table: FieldTable) -> Optional[str]:
        classes = element.get("class") or []
        if isinstance(classes, str):
            classes = [classes]
        match = match_field(" ".join(classes), table, "class_keywords")
        return match[0] if match else None

    def _has_field_children(self, element: Tag, table: FieldTable) -> bool:
        return any(self._class_field(child, table)
                   for child in element.find_all(class_=True))

    def _extract_card(self, element: Tag, table: FieldTable) -> Dict[str, str]:
        raw = {}
        for child in element.find_all(class_=True):
            name = self._class_field(child, table)
            if name and name not in raw:
                value = child.get_text(" ", strip=True)
                if value:
                    raw[name] = value
        return raw


class GenericStrategy(ExtractionStrategy):
    """Labeled text in blank-line separated sections of the page."""

    name = "generic"

    def __init__(self, resolver: Optional[TickerResolver] = None):
        self.resolver = resolver or default_resolver

    def extract(self, soup, table):
        text = block_text(soup)
        records = []

        for section in SECTION_SPLIT_RE.split(text):
            section = section.strip()
            if len(section) < MIN_SECTION_LENGTH:
                continue

            raw = extract_labeled(section, table)
            if not is_usable(raw, table):
                continue

            # Last resort for a symbol: any ticker-shaped token in the section
            if "ticker" in table.names() and not raw.get("ticker"):
                token = next(self.resolver.scan_tokens(section), "")
                if token:
                    raw["ticker"] = token

            records.append(raw)

        return records


class DocumentExtractor:
    """Runs the extraction strategies in order over one document."""

    def __init__(self, strategies: Optional[List[ExtractionStrategy]] = None,
                 resolver: Optional[TickerResolver] = None):
        self.resolver = resolver or default_resolver
        self.strategies = strategies or [
            TableStrategy(),
            CardStrategy(),
            GenericStrategy(self.resolver),
        ]

    def extract(self, document: Document, chamber: Union[Chamber, str, None],
                fields: FieldTable = TRADE_FIELDS) -> List[RawRecord]:
        """Extract raw records from an HTML document.

        Args:
            document: HTML text/bytes or an already parsed tree
            chamber: Chamber every record is attributed to
            fields: Field table for the kind of record wanted

        Returns:
            Raw field dictionaries, empty when nothing is recognized
        """
        soup = to_soup(document)
        chamber_value = _chamber_value(chamber)

        for strategy in self.strategies:
            try:
                rows = strategy.extract(soup, fields)
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(f"{strategy.name} strategy failed: {e}")
                continue

            if not any(is_usable(row, fields) for row in rows):
                logger.debug(f"{strategy.name} strategy found no usable {fields.kind} rows")
                continue

            logger.info(f"Extracted {len(rows)} {fields.kind} rows with {strategy.name} strategy")
            for row in rows:
                if chamber_value:
                    row["chamber"] = chamber_value
                else:
                    row.setdefault("chamber", None)
                row["provenance"] = strategy.name
            return rows

        logger.info(f"No {fields.kind} records recognized in document")
        return []

    def extract_payload(self, payload: Any, chamber: Union[Chamber, str, None],
                        content_type: Optional[str] = None) -> List[RawRecord]:
        """Extract raw records from a JSON or CSV payload.

        Args:
            payload: Decoded JSON, or JSON/CSV text/bytes
            chamber: Chamber every record is attributed to
            content_type: Response content type, used to pick the parser

        Returns:
            Raw dictionaries keyed by the upstream column names

        Raises:
            DataQualityError: If the payload cannot be parsed
        """
        content_type = (content_type or "").lower()
        chamber_value = _chamber_value(chamber)

        if isinstance(payload, bytes):
            payload = payload.decode("utf-8", errors="replace")

        if isinstance(payload, str):
            stripped = payload.lstrip()
            if "json" in content_type or stripped.startswith(("[", "{")):
                try:
                    payload = json.loads(payload)
                except ValueError as e:
                    raise DataQualityError(f"Invalid JSON payload: {e}")
                kind = "json"
            else:
                items = self._parse_csv(payload)
                kind = "csv"
        else:
            kind = "json"

        if kind == "json":
            items = self._unwrap_json(payload)

        records = []
        for item in items:
            if not isinstance(item, dict):
                continue
            raw = dict(item)
            if chamber_value:
                raw["chamber"] = chamber_value
            raw["provenance"] = f"payload:{kind}"
            records.append(raw)

        logger.info(f"Extracted {len(records)} rows from {kind} payload")
        return records

    def find_download_links(self, document: Document, base_url: str) -> List[str]:
        """Find links to bulk CSV/JSON downloads on a landing page."""
        soup = to_soup(document)
        links = []
        for anchor in soup.find_all("a"):
            href = anchor.get("href") or ""
            text = anchor.get_text(" ", strip=True).lower()
            if (".csv" in href or ".json" in href or "download" in href
                    or "download data" in text):
                if href:
                    url = urljoin(base_url, href)
                    if url not in links:
                        links.append(url)
        return links

    def _unwrap_json(self, payload: Any) -> List[Any]:
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict):
            for key in PAYLOAD_LIST_KEYS:
                if isinstance(payload.get(key), list):
                    return payload[key]
            return [payload]
        return []

    def _parse_csv(self, text: str) -> List[Dict[str, str]]:
        if not text.strip():
            return []
        try:
            frame = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError:
            return []
        except pd.errors.ParserError as e:
            raise DataQualityError(f"Invalid CSV payload: {e}")

        frame.columns = [str(c).strip() for c in frame.columns]
        return frame.to_dict(orient="records")


def _chamber_value(chamber: Union[Chamber, str, None]) -> Optional[str]:
    if isinstance(chamber, Chamber):
        return chamber.value
    parsed = Chamber.parse(chamber)
    return parsed.value if parsed else chamber
