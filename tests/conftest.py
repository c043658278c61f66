"""Shared test configuration and fixtures."""

import json
from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest
import requests


class FakeClock:
    """Settable stand-in for ``datetime.now``."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_response(status_code=200, json_data=None, text=None, content_type="text/html"):
    """Build a mock ``requests.Response``."""
    response = Mock()
    response.status_code = status_code
    if json_data is not None:
        text = json.dumps(json_data)
        response.json.return_value = json_data
    else:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    response.text = text or ""
    response.content = response.text.encode("utf-8")
    response.headers = {"content-type": content_type}

    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"{status_code} Error"
        )
    return response


@pytest.fixture
def clock():
    """Fake clock starting at a fixed instant."""
    return FakeClock(datetime(2024, 6, 15, 12, 0, 0))


@pytest.fixture
def mock_session():
    """Session whose ``get`` is configured per test."""
    session = Mock(spec=requests.Session)
    session.headers = {}
    return session


@pytest.fixture
def trades_table_html():
    """Five data rows, one of them without a politician."""
    return """
    <html><body>
      <table class="nav"><tr><td>Home</td></tr></table>
      <table>
        <tr><th>Name</th><th>Transaction Date</th><th>Ticker</th><th>Asset</th><th>Type</th></tr>
        <tr><td>Nancy Pelosi</td><td>01/15/2024</td><td>NVDA</td><td>NVIDIA Corporation</td><td>Purchase</td></tr>
        <tr><td>Dan Crenshaw</td><td>2024-02-03</td><td>--</td><td>Apple Inc</td><td>Sale</td></tr>
        <tr><td>Tommy Tuberville</td><td>03/10/2024</td><td>MSFT</td><td>Microsoft Corporation</td><td>Purchase</td></tr>
        <tr><td></td><td>03/11/2024</td><td>TSLA</td><td>Tesla Inc</td><td>Sale</td></tr>
        <tr><td>Josh Gottheimer</td><td>04/01/2024</td><td>(AMZN)</td><td>Amazon.com Inc</td><td>Purchase</td></tr>
      </table>
    </body></html>
    """


@pytest.fixture
def trade_cards_html():
    return """
    <html><body>
      <div class="trades-list">
        <div class="trade-card">
          <span class="politician-name">Nancy Pelosi</span>
          <span class="trade-date">01/15/2024</span>
          <span class="ticker">NVDA</span>
          <span class="amount">$1,001 - $15,000</span>
        </div>
        <div class="trade-card">
          <span class="politician-name">Ro Khanna</span>
          <span class="trade-date">02/20/2024</span>
          <span class="ticker">GOOGL</span>
          <span class="amount">$15,001 - $50,000</span>
        </div>
      </div>
    </body></html>
    """


@pytest.fixture
def labeled_text_html():
    return (
        "<html><body><div>"
        "Politician: Jane Doe\n"
        "Transaction Date: 05/01/2024\n"
        "Asset: Palantir Technologies (PLTR)\n"
        "Amount: $15,001 - $50,000\n"
        "\n"
        "Politician: John Roe\n"
        "Transaction Date: 05/02/2024\n"
        "Asset: Unlisted Partnership Interest\n"
        "Amount: $1,001 - $15,000\n"
        "</div></body></html>"
    )


@pytest.fixture
def raw_trade():
    return {
        "representative": "Nancy Pelosi",
        "transaction_date": "2024-01-15",
        "ticker": "NVDA",
        "asset_description": "NVIDIA Corporation",
        "type": "purchase",
        "amount": "$1,001 - $15,000",
        "chamber": "house",
    }
