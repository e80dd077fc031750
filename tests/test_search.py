"""Tests for ledger_query.search -- end-to-end search over fake pages."""

from __future__ import annotations

from conftest import FakeLedger, make_record
from ledger_query.conditions import Composite, KindPredicate, StringPredicate
from ledger_query.inputs import SearchRequest, parse_search_request
from ledger_query.models import DateWindow, OutputControl, Record
from ledger_query.search import search

JANUARY = DateWindow("2024-01-01", "2024-01-31")


class TestSearch:
    def test_id_only_sorted_newest_first(self, sleep):
        ledger = FakeLedger(
            [
                Record(id=2, date="2024-01-15", amount=1000),
                Record(id=1, date="2024-01-16", amount=2000),
            ]
        )
        request = parse_search_request(
            {
                "dateRange": {"start": "2024-01-01", "end": "2024-01-31"},
                "output": {"mode": "id_only"},
            }
        )
        result = search(request, ledger, sleep=sleep)

        assert result.success
        assert result.records == [1, 2]
        assert result.count == 2

    def test_no_criteria_returns_whole_window(self, ledger, sleep):
        result = search(SearchRequest(date_range=JANUARY), ledger, sleep=sleep)

        assert result.count == 5
        assert result.meta.total_fetched == 5
        assert result.meta.matched_count == 5
        assert result.meta.pages_retrieved == 1

    def test_criteria_and_ordering(self, ledger, sleep):
        request = SearchRequest(
            date_range=DateWindow("2024-01-01", "2024-02-29"),
            criteria=Composite(
                "AND",
                (KindPredicate("outflow"), StringPredicate("category", "equals", "food")),
            ),
            output=OutputControl(mode="specified", fields=("id", "date", "place")),
        )
        result = search(request, ledger, sleep=sleep)

        assert result.records == [
            {"id": 2, "date": "2024-01-12", "place": "Super Mart"},
            {"id": 1, "date": "2024-01-10", "place": "Cafe Mocha"},
        ]
        assert result.meta.total_fetched == 6
        assert result.meta.matched_count == 2
        assert result.meta.output_count == 2

    def test_same_date_sorted_by_place(self, ledger, sleep):
        request = SearchRequest(
            date_range=DateWindow("2024-01-12", "2024-01-12"),
            output=OutputControl(mode="id_only"),
        )
        result = search(request, ledger, sleep=sleep)
        # "Book Shop" before "Super Mart".
        assert result.records == [5, 2]

    def test_output_truncation_reported(self, ledger, sleep):
        request = SearchRequest(
            date_range=JANUARY,
            output=OutputControl(mode="id_only", max_total_chars=3),
        )
        result = search(request, ledger, sleep=sleep)

        assert result.success
        assert result.truncated
        assert result.count == 3
        assert result.truncated_count == 2
        assert "dropped by the output size limit" in result.message

    def test_limit_caps_fetch(self, sleep):
        ledger = FakeLedger([make_record(i, date="2024-01-15") for i in range(1, 11)])
        request = SearchRequest(date_range=JANUARY, limit=4)
        result = search(request, ledger, sleep=sleep)

        assert result.meta.total_fetched == 4
        assert "fetch limit reached" in result.message

    def test_fetch_error_returns_partial_records(self, sleep):
        records = [make_record(1, date="2024-01-05"), make_record(2, date="2024-02-10")]
        ledger = FakeLedger(records, fail_on_call=2)
        request = SearchRequest(
            date_range=DateWindow("2024-01-01", "2024-02-29"),
            output=OutputControl(mode="id_only"),
        )
        result = search(request, ledger, sleep=sleep)

        assert not result.success
        assert result.message.startswith("Fetch error: remote unavailable")
        assert result.records == [1]
        assert result.meta.pages_retrieved == 1

    def test_start_after_end_is_empty_success(self, ledger, sleep):
        request = SearchRequest(date_range=DateWindow("2024-02-01", "2024-01-01"))
        result = search(request, ledger, sleep=sleep)

        assert result.success
        assert result.records == []
        assert ledger.calls == []

    def test_unexpected_error_becomes_failure(self, sleep):
        def broken_fetcher(window, page, page_size):
            return [object()]

        result = search(SearchRequest(date_range=JANUARY), broken_fetcher, sleep=sleep)

        assert not result.success
        assert result.message.startswith("Search error:")

    def test_wire_shape(self, ledger, sleep):
        data = search(SearchRequest(date_range=JANUARY), ledger, sleep=sleep).to_dict()
        assert set(data) == {
            "records",
            "count",
            "truncated",
            "truncatedCount",
            "success",
            "message",
            "meta",
        }
