#!/usr/bin/env python3
"""Script to fetch congressional trade datasets and print them as JSON."""

import sys
import json
import logging
import argparse
from pathlib import Path
from datetime import datetime

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from stockwatch.config import config
from stockwatch.ingestion.base import InvalidRequestError
from stockwatch.ingestion.politician_scraper import DATASETS, PoliticianScraper

CONGRESSIONAL = "congressional"


def setup_logging():
    """Setup logging for ingestion."""
    config.logging.LOG_DIR.mkdir(parents=True, exist_ok=True)
    log_file = config.logging.LOG_DIR / f"ingestion_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

    logging.basicConfig(
        level=getattr(logging, config.logging.LOG_LEVEL.upper(), logging.INFO),
        format=config.logging.LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(sys.stderr)
        ]
    )

    return logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fetch congressional trading disclosures")
    parser.add_argument("--dataset", choices=list(DATASETS) + [CONGRESSIONAL],
                        default=CONGRESSIONAL, help="Dataset to fetch")
    parser.add_argument("--chamber", default=None,
                        help="Restrict records to house, senate or all")
    parser.add_argument("--ticker", default=None,
                        help="Look up a market quote instead of fetching a dataset")
    parser.add_argument("--output", type=Path, default=None,
                        help="Write the JSON result to this file")
    return parser


def run(args, scraper: PoliticianScraper) -> dict:
    """Fetch what the arguments ask for and return it as a JSON-ready dict."""
    if args.ticker:
        return scraper.enrich_ticker(args.ticker)

    if args.dataset == CONGRESSIONAL:
        combined = scraper.fetch_congressional_trades()
        records = combined["records"]
        if args.chamber and args.chamber.lower() != "all":
            records = [
                trade for trade in records
                if trade.chamber.value == args.chamber.lower()
            ]
        return {
            "name": CONGRESSIONAL,
            "records": [trade.to_dict() for trade in records],
            "count": len(records),
            "houseCount": combined["houseCount"],
            "senateCount": combined["senateCount"],
            "fetchedAt": combined["fetchedAt"].isoformat(),
            "sourceUsed": combined["sourceUsed"],
        }

    return scraper.fetch_dataset(args.dataset, chamber_filter=args.chamber).to_dict()


def main(argv=None, scraper=None):
    """Main ingestion function."""
    args = build_parser().parse_args(argv)

    logger = setup_logging()
    logger.info("=== Congressional Trade Ingestion ===")
    logger.info(f"Dataset: {'quote' if args.ticker else args.dataset}")

    scraper = scraper or PoliticianScraper()

    try:
        result = run(args, scraper)
    except InvalidRequestError as e:
        logger.error(f"Invalid request: {e}")
        return 2
    except KeyboardInterrupt:
        logger.warning("Ingestion interrupted by user")
        return 130
    finally:
        scraper.shutdown()

    output = json.dumps(result, indent=2, default=str)
    if args.output:
        args.output.write_text(output)
        logger.info(f"Wrote result to {args.output}")
    else:
        print(output)

    if "count" in result:
        logger.info(f"{result['count']} records, source: {result.get('sourceUsed')}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
