"""Data ingestion package for collecting congressional trading disclosures.

Import ``PoliticianScraper`` from ``stockwatch.ingestion.politician_scraper``.
"""

from .base import BaseIngester, IngestionError, InvalidRequestError
from .cache import DatasetCache
from .data_normalizer import DataNormalizer
from .document_extractor import DocumentExtractor
from .models import Chamber, Dataset, Politician, Trade
from .ticker_resolver import TickerResolver

__all__ = [
    "BaseIngester",
    "IngestionError",
    "InvalidRequestError",
    "DatasetCache",
    "DataNormalizer",
    "DocumentExtractor",
    "Chamber",
    "Dataset",
    "Politician",
    "Trade",
    "TickerResolver",
]
