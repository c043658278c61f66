#!/usr/bin/env python3
"""Main Flask application for the congressional trades API."""

import logging
from datetime import datetime

from flask import Flask, jsonify, request
from flask_cors import CORS

from stockwatch.config import config
from stockwatch.ingestion.base import InvalidRequestError
from stockwatch.ingestion.models import Dataset
from stockwatch.ingestion.politician_scraper import (
    HOUSE_TRADES,
    POLITICIANS,
    SENATE_TRADES,
    PoliticianScraper,
)

logging.basicConfig(
    level=getattr(logging, config.logging.LOG_LEVEL.upper(), logging.INFO),
    format=config.logging.LOG_FORMAT,
)
logger = logging.getLogger(__name__)


def dataset_response(dataset: Dataset, **extra):
    """JSON body shared by every dataset endpoint."""
    body = {
        'success': True,
        'data': [record.to_dict() for record in dataset.records],
        'count': dataset.count,
        'sourceUsed': dataset.source_used,
        'fetchedAt': dataset.fetched_at.isoformat(),
        'timestamp': datetime.now().isoformat(),
    }
    body.update(extra)
    return jsonify(body)


def error_response(message: str, status: int, detail: str = None):
    body = {'success': False, 'error': message}
    if detail:
        body['message'] = detail
    return jsonify(body), status


def create_app(scraper=None):
    """Create Flask application.

    Args:
        scraper: Coordinator serving the datasets, built from config when omitted
    """
    app = Flask(__name__)

    # Configuration
    app.config['DEBUG'] = config.web.DEBUG

    # Enable CORS
    CORS(app, origins=config.web.CORS_ORIGINS)

    scraper = scraper or PoliticianScraper()
    app.extensions['politician_scraper'] = scraper

    @app.route('/api/house-trades')
    def get_house_trades():
        """House trades, cached for the House window."""
        logger.info("Received request for House trades")
        try:
            return dataset_response(scraper.fetch_dataset(HOUSE_TRADES))
        except Exception as e:
            logger.error(f"Error fetching House trades: {e}")
            return error_response('Failed to fetch House trades', 500, str(e))

    @app.route('/api/senate-trades')
    def get_senate_trades():
        """Senate trades, cached for the Senate window."""
        logger.info("Received request for Senate trades")
        try:
            return dataset_response(scraper.fetch_dataset(SENATE_TRADES))
        except Exception as e:
            logger.error(f"Error fetching Senate trades: {e}")
            return error_response('Failed to fetch Senate trades', 500, str(e))

    @app.route('/api/congressional-trades')
    def get_congressional_trades():
        """House and Senate trades combined."""
        logger.info("Received request for all congressional trades")
        try:
            combined = scraper.fetch_congressional_trades()
        except Exception as e:
            logger.error(f"Error fetching congressional trades: {e}")
            return error_response('Failed to fetch congressional trades', 500, str(e))

        return jsonify({
            'success': True,
            'data': [trade.to_dict() for trade in combined['records']],
            'count': combined['count'],
            'houseCount': combined['houseCount'],
            'senateCount': combined['senateCount'],
            'sourceUsed': combined['sourceUsed'],
            'fetchedAt': combined['fetchedAt'].isoformat(),
            'timestamp': datetime.now().isoformat(),
        })

    @app.route('/api/politicians')
    def get_politicians():
        """Politicians, optionally restricted with ?chamber=house|senate|all."""
        chamber = request.args.get('chamber', 'all')
        logger.info(f"Received request for politicians, chamber: {chamber}")
        try:
            dataset = scraper.fetch_dataset(POLITICIANS, chamber_filter=chamber)
        except InvalidRequestError as e:
            return error_response('Invalid request', 400, str(e))
        except Exception as e:
            logger.error(f"Error fetching politicians: {e}")
            return error_response('Failed to fetch politicians', 500, str(e))

        return dataset_response(dataset, chamber=chamber)

    @app.route('/api/stock/<ticker>')
    def get_stock(ticker):
        """Market quote for one ticker."""
        try:
            quote = scraper.enrich_ticker(ticker)
        except Exception as e:
            logger.error(f"Error enriching {ticker}: {e}")
            return error_response(f'Failed to fetch stock data for {ticker}', 500, str(e))

        if quote.get('error') and not quote.get('ticker'):
            return error_response(quote['error'], 400)

        return jsonify({
            'success': True,
            'data': quote,
            'timestamp': datetime.now().isoformat(),
        })

    @app.route('/api/health')
    def health():
        """Health check with cache status."""
        return jsonify({
            'status': 'ok',
            'timestamp': datetime.now().isoformat(),
            'service': 'stockwatch',
            'scraper': scraper.get_status(),
            'config': config.to_dict(),
        })

    @app.errorhandler(InvalidRequestError)
    def invalid_request(error):
        return error_response('Invalid request', 400, str(error))

    @app.errorhandler(404)
    def not_found(error):
        return error_response('Not found', 404)

    @app.errorhandler(500)
    def internal_error(error):
        return error_response('Internal server error', 500)

    return app


if __name__ == '__main__':
    app = create_app()
    logger.info(f"Starting server on {config.web.HOST}:{config.web.PORT}")
    app.run(
        host=config.web.HOST,
        port=config.web.PORT,
        debug=config.web.DEBUG
    )
