"""Configuration settings for stockwatch."""

import os
from pathlib import Path
from typing import Dict, Any
from dataclasses import dataclass
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


@dataclass
class SourceConfig:
    """Upstream disclosure sites and request behaviour."""

    HOUSE_WATCHER_URL = os.getenv("HOUSE_WATCHER_URL", "https://housestockwatcher.com")
    SENATE_WATCHER_URL = os.getenv("SENATE_WATCHER_URL", "https://senatestockwatcher.com")
    CAPITOL_TRADES_URL = os.getenv("CAPITOL_TRADES_URL", "https://www.capitoltrades.com")

    # Per-source bounded wait (seconds)
    SOURCE_TIMEOUT = float(os.getenv("SOURCE_TIMEOUT", "10"))

    # Politeness between requests to the same site (seconds)
    MIN_REQUEST_INTERVAL = float(os.getenv("MIN_REQUEST_INTERVAL", "0.5"))
    MAX_RETRIES = int(os.getenv("MAX_RETRIES", "2"))

    # Browser-like headers, several of the sites block default clients
    HEADERS = {
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
        ),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Connection": "keep-alive",
        "Cache-Control": "max-age=0",
    }


@dataclass
class CacheConfig:
    """Cache windows per dataset."""

    HOUSE_TRADES_TTL_MINUTES = int(os.getenv("HOUSE_TRADES_TTL_MINUTES", "60"))
    SENATE_TRADES_TTL_MINUTES = int(os.getenv("SENATE_TRADES_TTL_MINUTES", "60"))
    POLITICIANS_TTL_MINUTES = int(os.getenv("POLITICIANS_TTL_MINUTES", "30"))

    # Market quotes are keyed per ticker and live much longer
    QUOTE_TTL_HOURS = int(os.getenv("QUOTE_TTL_HOURS", "12"))


@dataclass
class APIConfig:
    """Market data API keys and endpoints."""

    ALPHA_VANTAGE_API_KEY = os.getenv("ALPHA_VANTAGE_API_KEY", "demo")
    ALPHA_VANTAGE_BASE_URL = "https://www.alphavantage.co/query"

    FMP_API_KEY = os.getenv("FMP_API_KEY", "demo")
    FMP_BASE_URL = "https://financialmodelingprep.com/api/v3"

    QUOTE_TIMEOUT = 10

    # Pause between quote batches when enriching many trades (seconds)
    BATCH_DELAY = float(os.getenv("QUOTE_BATCH_DELAY", "1"))


@dataclass
class WebConfig:
    """Web interface configuration."""

    DEBUG = os.getenv("FLASK_DEBUG", "False").lower() == "true"

    # Server settings
    HOST = os.getenv("FLASK_HOST", "127.0.0.1")
    PORT = int(os.getenv("FLASK_PORT", "3000"))

    # CORS settings
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")


@dataclass
class LoggingConfig:
    """Logging configuration."""

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR = PROJECT_ROOT / "logs"
    LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# Main configuration class
class Config:
    """Main configuration class combining all settings."""

    def __init__(self):
        self.sources = SourceConfig()
        self.cache = CacheConfig()
        self.api = APIConfig()
        self.web = WebConfig()
        self.logging = LoggingConfig()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "sources": _settings(self.sources),
            "cache": _settings(self.cache),
            "api": {k: v for k, v in _settings(self.api).items() if not k.endswith("_KEY")},
            "web": _settings(self.web),
            "logging": {k: str(v) for k, v in _settings(self.logging).items()},
        }


def _settings(section) -> Dict[str, Any]:
    """Collect the upper-case class attributes of a config section."""
    return {
        name: getattr(section, name)
        for name in dir(section)
        if name.isupper()
    }


# Global configuration instance
config = Config()
