"""Tests for the dataset coordinator."""

from unittest.mock import Mock

import pytest

from conftest import make_response

from stockwatch.ingestion.base import IngestionError, InvalidRequestError
from stockwatch.ingestion.fetch_strategy import NO_SOURCE, SourceAttempt
from stockwatch.ingestion.models import Chamber, Politician, Trade
from stockwatch.ingestion.politician_scraper import (
    DERIVED_SOURCE,
    HOUSE_TRADES,
    POLITICIANS,
    SENATE_TRADES,
    PoliticianScraper,
)


def make_trade(chamber, politician, ticker="NVDA"):
    return Trade(
        id=f"{chamber.value}-{politician}-{ticker}",
        chamber=chamber,
        politician=politician,
        transaction_date="01/15/2024",
        ticker=ticker,
    )


HOUSE = [make_trade(Chamber.HOUSE, "Nancy Pelosi"), make_trade(Chamber.HOUSE, "Ro Khanna", "GOOGL")]
SENATE = [make_trade(Chamber.SENATE, "Tommy Tuberville", "MSFT")]
ROSTER = [
    Politician(id="house-nancy-pelosi", name="Nancy Pelosi", chamber=Chamber.HOUSE),
    Politician(id="senate-tommy-tuberville", name="Tommy Tuberville", chamber=Chamber.SENATE),
]


@pytest.fixture
def fetchers():
    return {
        HOUSE_TRADES: Mock(return_value=HOUSE),
        SENATE_TRADES: Mock(return_value=SENATE),
        POLITICIANS: Mock(return_value=ROSTER),
    }


@pytest.fixture
def price_service():
    service = Mock()
    service.get_quote.return_value = {"ticker": "NVDA", "dataSource": "yahoo-finance"}
    return service


@pytest.fixture
def scraper(clock, fetchers, price_service):
    sources = {
        name: [SourceAttempt(f"{name}-primary", fetch, timeout=2)]
        for name, fetch in fetchers.items()
    }
    scraper = PoliticianScraper(clock=clock, sources=sources, price_service=price_service)
    yield scraper
    scraper.shutdown()


class TestFetchDataset:

    def test_house_trades(self, scraper, clock):
        dataset = scraper.fetch_dataset(HOUSE_TRADES)

        assert dataset.name == HOUSE_TRADES
        assert dataset.records == tuple(HOUSE)
        assert dataset.source_used == "houseTrades-primary"
        assert dataset.fetched_at == clock.now

    def test_cached_within_window(self, scraper, fetchers, clock):
        first = scraper.fetch_dataset(HOUSE_TRADES)
        clock.advance(minutes=59)
        second = scraper.fetch_dataset(HOUSE_TRADES)

        assert second is first
        assert fetchers[HOUSE_TRADES].call_count == 1

    def test_refetched_after_window(self, scraper, fetchers, clock):
        scraper.fetch_dataset(HOUSE_TRADES)
        clock.advance(minutes=61)
        scraper.fetch_dataset(HOUSE_TRADES)

        assert fetchers[HOUSE_TRADES].call_count == 2

    def test_politicians_window_is_shorter(self, scraper, fetchers, clock):
        scraper.fetch_dataset(POLITICIANS)
        clock.advance(minutes=31)
        scraper.fetch_dataset(POLITICIANS)

        assert fetchers[POLITICIANS].call_count == 2

    @pytest.mark.parametrize("chamber_filter", [None, "", "all", "ALL"])
    def test_no_chamber_filter(self, scraper, chamber_filter):
        dataset = scraper.fetch_dataset(POLITICIANS, chamber_filter=chamber_filter)
        assert dataset.count == 2

    def test_chamber_filter(self, scraper, fetchers):
        senate = scraper.fetch_dataset(POLITICIANS, chamber_filter="senate")
        house = scraper.fetch_dataset(POLITICIANS, chamber_filter=Chamber.HOUSE)

        assert [p.name for p in senate.records] == ["Tommy Tuberville"]
        assert [p.name for p in house.records] == ["Nancy Pelosi"]
        assert fetchers[POLITICIANS].call_count == 1

    def test_unknown_dataset(self, scraper):
        with pytest.raises(InvalidRequestError):
            scraper.fetch_dataset("governorTrades")

    def test_unknown_chamber(self, scraper):
        with pytest.raises(InvalidRequestError):
            scraper.fetch_dataset(POLITICIANS, chamber_filter="parliament")

    def test_all_sources_failing_gives_empty_dataset(self, clock, price_service):
        sources = {
            HOUSE_TRADES: [
                SourceAttempt("a", Mock(side_effect=IngestionError("down")), timeout=2),
                SourceAttempt("b", Mock(return_value=[]), timeout=2),
            ],
        }
        scraper = PoliticianScraper(clock=clock, sources=sources, price_service=price_service)
        try:
            dataset = scraper.fetch_dataset(HOUSE_TRADES)
        finally:
            scraper.shutdown()

        assert dataset.count == 0
        assert dataset.source_used == NO_SOURCE


class TestDerivedPoliticians:

    def test_roster_falls_back_to_trade_filers(self, scraper, fetchers):
        fetchers[POLITICIANS].return_value = []

        dataset = scraper.fetch_dataset(POLITICIANS)

        assert dataset.source_used == DERIVED_SOURCE
        assert sorted(p.name for p in dataset.records) == [
            "Nancy Pelosi", "Ro Khanna", "Tommy Tuberville",
        ]

    def test_derived_list_reuses_cached_trades(self, scraper, fetchers):
        fetchers[POLITICIANS].side_effect = IngestionError("roster down")
        scraper.fetch_dataset(HOUSE_TRADES)

        scraper.fetch_dataset(POLITICIANS)

        assert fetchers[HOUSE_TRADES].call_count == 1
        assert fetchers[SENATE_TRADES].call_count == 1

    def test_politicians_chain_ends_with_derived_source(self, scraper):
        status = scraper.get_status()
        assert status["datasets"][POLITICIANS]["sources"] == [
            "politicians-primary", DERIVED_SOURCE,
        ]


class TestCongressionalTrades:

    def test_combines_both_chambers(self, scraper):
        combined = scraper.fetch_congressional_trades()

        assert combined["count"] == 3
        assert combined["houseCount"] == 2
        assert combined["senateCount"] == 1
        assert combined["records"] == HOUSE + SENATE
        assert combined["sourceUsed"] == {
            HOUSE_TRADES: "houseTrades-primary",
            SENATE_TRADES: "senateTrades-primary",
        }


class TestEnrichAndStatus:

    def test_enrich_ticker_delegates(self, scraper, price_service):
        assert scraper.enrich_ticker("NVDA")["dataSource"] == "yahoo-finance"
        price_service.get_quote.assert_called_once_with("NVDA")

    def test_status_reports_cached_datasets(self, scraper):
        scraper.fetch_dataset(SENATE_TRADES)

        status = scraper.get_status()

        assert status["datasets"][SENATE_TRADES]["cached"] is True
        assert status["datasets"][SENATE_TRADES]["count"] == 1
        assert status["datasets"][HOUSE_TRADES]["cached"] is False

    def test_status_reports_request_stats_of_built_sources(self, clock, mock_session, price_service):
        mock_session.get.return_value = make_response(
            json_data=[{
                "representative": "Nancy Pelosi",
                "transaction_date": "2024-01-15",
                "ticker": "NVDA",
                "amount": "$1,001 - $15,000",
            }],
            content_type="application/json",
        )
        scraper = PoliticianScraper(clock=clock, session=mock_session, price_service=price_service)
        try:
            dataset = scraper.fetch_dataset(HOUSE_TRADES)
            ingesters = scraper.get_status()["ingesters"]
        finally:
            scraper.shutdown()

        assert dataset.source_used == "housestockwatcher-api"
        assert len(ingesters) == 12
        assert ingesters[0]["name"] == "housestockwatcher-api"
        assert ingesters[0]["stats"]["requests_made"] == 1
        assert sum(i["stats"]["requests_made"] for i in ingesters) == 1

    def test_injected_sources_have_no_ingester_stats(self, scraper):
        assert scraper.get_status()["ingesters"] == []


class TestEnrichTrades:

    def test_quotes_attached_once_per_ticker(self, scraper, price_service):
        nvda = {"ticker": "NVDA", "dataSource": "yahoo-finance"}
        price_service.get_quotes.return_value = {"NVDA": nvda}
        trades = [
            make_trade(Chamber.HOUSE, "Nancy Pelosi", "NVDA"),
            make_trade(Chamber.SENATE, "Tommy Tuberville", "NVDA"),
        ]

        enriched = scraper.enrich_trades(trades)

        assert [t["stockData"] for t in enriched] == [nvda, nvda]
        assert enriched[0]["politician"] == "Nancy Pelosi"
        price_service.get_quotes.assert_called_once()
        price_service.lookup_ticker.assert_not_called()

    def test_missing_ticker_found_by_company_name(self, scraper, price_service):
        price_service.get_quotes.return_value = {}
        price_service.lookup_ticker.return_value = "PLTR"
        price_service.get_quote.return_value = {"ticker": "PLTR", "dataSource": "yahoo-finance"}
        trade = Trade(
            id="house-1",
            chamber=Chamber.HOUSE,
            politician="Ro Khanna",
            transaction_date="01/15/2024",
            asset_description="Palantir Technologies Inc.",
        )

        enriched = scraper.enrich_trades([trade])

        assert enriched[0]["ticker"] == "PLTR"
        assert enriched[0]["tickerSource"] == "company_name_lookup"
        assert enriched[0]["stockData"]["ticker"] == "PLTR"
        price_service.lookup_ticker.assert_called_once_with("Palantir Technologies Inc.")
        price_service.get_quote.assert_called_once_with("PLTR")

    def test_unresolved_name_is_left_alone(self, scraper, price_service):
        price_service.get_quotes.return_value = {}
        price_service.lookup_ticker.return_value = None
        trade = Trade(id="h", chamber=Chamber.HOUSE, politician="Ro Khanna",
                      transaction_date="01/15/2024", asset_description="Private Fund LP")

        enriched = scraper.enrich_trades([trade])

        assert enriched[0]["ticker"] == ""
        assert "stockData" not in enriched[0]
        assert "tickerSource" not in enriched[0]

    def test_fill_missing_can_be_disabled(self, scraper, price_service):
        price_service.get_quotes.return_value = {}
        trade = Trade(id="h", chamber=Chamber.HOUSE, politician="Ro Khanna",
                      transaction_date="01/15/2024", asset_description="Palantir Technologies")

        scraper.enrich_trades([trade], fill_missing=False)

        price_service.lookup_ticker.assert_not_called()

    def test_defaults_to_all_congressional_trades(self, scraper, price_service):
        price_service.get_quotes.return_value = {}

        enriched = scraper.enrich_trades()

        assert [t["politician"] for t in enriched] == [
            "Nancy Pelosi", "Ro Khanna", "Tommy Tuberville",
        ]
