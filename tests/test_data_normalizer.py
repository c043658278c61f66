"""Tests for trade and politician normalization."""

from datetime import date

import pytest

from stockwatch.ingestion.data_normalizer import DataNormalizer, format_date
from stockwatch.ingestion.models import Chamber, Trade


@pytest.fixture
def normalizer(clock):
    return DataNormalizer(clock=clock)


class TestDates:
    """Date parsing and MM/DD/YYYY formatting."""

    @pytest.mark.parametrize("text,expected", [
        ("01/15/2024", date(2024, 1, 15)),
        ("1/5/2024", date(2024, 1, 5)),
        ("01-15-2024", date(2024, 1, 15)),
        ("2024-01-15", date(2024, 1, 15)),
        ("Jan 15, 2024", date(2024, 1, 15)),
    ])
    def test_parse_known_formats(self, normalizer, text, expected):
        assert normalizer.parse_date(text) == expected

    def test_relative_dates_use_injected_clock(self, normalizer):
        assert normalizer.parse_date("Today") == date(2024, 6, 15)
        assert normalizer.parse_date("yesterday") == date(2024, 6, 14)
        assert normalizer.parse_date("2 days ago") == date(2024, 6, 13)
        assert normalizer.parse_date("1 week ago") == date(2024, 6, 8)

    def test_unparseable(self, normalizer):
        assert normalizer.parse_date("pending") is None
        assert normalizer.parse_date("") is None
        assert normalizer.parse_date(None) is None

    def test_format_is_idempotent(self, normalizer):
        assert normalizer.format_date("01/15/2024") == "01/15/2024"
        once = normalizer.format_date("2024-01-15")
        assert once == "01/15/2024"
        assert normalizer.format_date(once) == once

    def test_format_keeps_unparseable_text(self, normalizer):
        assert normalizer.format_date("  pending  ") == "pending"

    def test_module_level_format_date(self):
        assert format_date("2024-03-09") == "03/09/2024"


class TestNormalizeTrade:
    """Single trade normalization."""

    def test_valid_trade(self, normalizer, raw_trade, clock):
        trade = normalizer.normalize_trade(raw_trade, sequence=3, data_source="housestockwatcher-api")

        assert isinstance(trade, Trade)
        assert trade.politician == "Nancy Pelosi"
        assert trade.chamber is Chamber.HOUSE
        assert trade.transaction_date == "01/15/2024"
        assert trade.ticker == "NVDA"
        assert trade.raw_ticker_text == "NVDA"
        assert trade.asset_description == "NVIDIA Corporation"
        assert trade.transaction_type == "purchase"
        assert trade.amount == "$1,001 - $15,000"
        assert trade.data_source == "housestockwatcher-api"
        assert trade.scraped_at == clock.now
        assert trade.id == "housestockwatcher-api-house-3"

    def test_missing_politician_is_dropped(self, normalizer, raw_trade):
        raw_trade["representative"] = "  "
        assert normalizer.normalize_trade(raw_trade) is None

    def test_unparseable_date_is_dropped(self, normalizer, raw_trade):
        raw_trade["transaction_date"] = "pending"
        assert normalizer.normalize_trade(raw_trade) is None

    def test_missing_chamber_is_dropped(self, normalizer, raw_trade):
        del raw_trade["chamber"]
        assert normalizer.normalize_trade(raw_trade) is None

    def test_placeholders_are_blanked(self, normalizer, raw_trade):
        raw_trade["ticker"] = "N/A"
        raw_trade["asset_description"] = "--"
        trade = normalizer.normalize_trade(raw_trade)
        assert trade.ticker == ""
        assert trade.raw_ticker_text == ""
        assert trade.asset_description == ""

    def test_honorific_is_stripped(self, normalizer, raw_trade):
        raw_trade["representative"] = "Hon. Nancy   Pelosi"
        assert normalizer.normalize_trade(raw_trade).politician == "Nancy Pelosi"

    def test_upstream_id_is_kept(self, normalizer, raw_trade):
        raw_trade["id"] = "ct-20024542-1"
        raw_trade["ptr_link"] = "https://disclosures.example.gov/ptr/123.pdf"
        trade = normalizer.normalize_trade(raw_trade)
        assert trade.id == "ct-20024542-1"

    def test_transactions_from_one_filing_get_distinct_ids(self, normalizer, raw_trade):
        link = "https://disclosures.example.gov/ptr/20024542.pdf"
        second = dict(raw_trade, ticker="AAPL", asset_description="Apple Inc.",
                      type="sale_full", amount="$15,001 - $50,000")
        raw_trade["ptr_link"] = link
        second["ptr_link"] = link

        trades = normalizer.normalize_trades([raw_trade, second], data_source="housestockwatcher-api")

        assert len(trades) == 2
        assert trades[0].id == f"{link}#0"
        assert trades[1].id == f"{link}#1"

    def test_ticker_resolved_from_asset(self, normalizer, raw_trade):
        raw_trade["ticker"] = ""
        raw_trade["asset_description"] = "Microsoft Corporation - Common Stock"
        assert normalizer.normalize_trade(raw_trade).ticker == "MSFT"


class TestNormalizeTrades:
    """Batches, drops and duplicate merging."""

    def test_invalid_rows_are_dropped(self, normalizer, raw_trade):
        bad = dict(raw_trade, transaction_date="soon-ish")
        trades = normalizer.normalize_trades([raw_trade, bad, {"chamber": "house"}])
        assert len(trades) == 1

    def test_duplicates_are_merged(self, normalizer, raw_trade):
        duplicate = dict(raw_trade, comment="Spouse purchase")
        trades = normalizer.normalize_trades([raw_trade, duplicate])

        assert len(trades) == 1
        assert trades[0].comment == "Spouse purchase"

    def test_distinct_trades_keep_order(self, normalizer, raw_trade):
        second = dict(raw_trade, ticker="AAPL", asset_description="Apple Inc")
        trades = normalizer.normalize_trades([raw_trade, second])
        assert [t.ticker for t in trades] == ["NVDA", "AAPL"]


class TestNormalizePolitician:

    def test_house_district_implies_state(self, normalizer):
        politician = normalizer.normalize_politician(
            {"name": "Ro Khanna", "party": "D", "district": "CA17", "chamber": "house"}
        )
        assert politician.state == "CA"
        assert politician.district == "CA17"
        assert politician.party == "Democrat"
        assert politician.id == "house-ro-khanna"

    def test_senators_have_no_district(self, normalizer):
        politician = normalizer.normalize_politician(
            {"senator": "Tommy Tuberville", "state": "al", "party": "Rep.",
             "district": "1", "chamber": "senate"}
        )
        assert politician.district is None
        assert politician.state == "AL"
        assert politician.party == "Republican"
        assert "district" not in politician.to_dict()

    def test_unknown_party_is_kept(self, normalizer):
        politician = normalizer.normalize_politician(
            {"name": "Jane Doe", "party": "Libertarian", "chamber": "house"}
        )
        assert politician.party == "Libertarian"

    def test_missing_name_or_chamber(self, normalizer):
        assert normalizer.normalize_politician({"chamber": "house"}) is None
        assert normalizer.normalize_politician({"name": "Jane Doe"}) is None

    def test_batch_merges_by_chamber_and_name(self, normalizer):
        politicians = normalizer.normalize_politicians([
            {"name": "Jane Doe", "chamber": "house"},
            {"name": "jane doe", "state": "TX", "chamber": "house"},
            {"name": "Jane Doe", "chamber": "senate"},
        ])
        assert len(politicians) == 2
        assert politicians[0].state == "TX"

    def test_politicians_from_trades(self, normalizer, raw_trade):
        senate = dict(raw_trade, chamber="senate", representative="Tommy Tuberville")
        other_day = dict(raw_trade, transaction_date="2024-02-01")
        trades = normalizer.normalize_trades([raw_trade, other_day, senate])

        politicians = normalizer.politicians_from_trades(trades)

        assert [(p.chamber, p.name) for p in politicians] == [
            (Chamber.HOUSE, "Nancy Pelosi"),
            (Chamber.SENATE, "Tommy Tuberville"),
        ]
        assert all(p.data_source == "derived-from-trades" for p in politicians)
