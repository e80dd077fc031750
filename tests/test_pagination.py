"""Tests for ledger_query.pagination -- window splitting, page walking, and merging."""

from __future__ import annotations

import pytest

from conftest import FakeLedger, make_record
from ledger_query.errors import ValidationError
from ledger_query.models import DateWindow, FetchOptions
from ledger_query.pagination import (
    fetch_pages,
    fetch_window,
    remove_duplicates,
    split_window,
)

JANUARY = DateWindow("2024-01-01", "2024-01-31")


def _january_records(count: int, start_id: int = 1) -> list:
    return [make_record(start_id + i, date="2024-01-15") for i in range(count)]


# ---------------------------------------------------------------------------
# split_window
# ---------------------------------------------------------------------------


class TestSplitWindow:
    def test_single_chunk(self):
        assert split_window("2024-01-01", "2024-01-31") == [JANUARY]

    def test_multiple_chunks_cover_range_without_overlap(self):
        windows = split_window("2024-01-01", "2024-03-15", 31)
        assert windows == [
            DateWindow("2024-01-01", "2024-01-31"),
            DateWindow("2024-02-01", "2024-03-02"),
            DateWindow("2024-03-03", "2024-03-15"),
        ]

    def test_single_day(self):
        assert split_window("2024-05-05", "2024-05-05") == [DateWindow("2024-05-05", "2024-05-05")]

    def test_start_after_end_is_empty(self):
        assert split_window("2024-02-01", "2024-01-01") == []

    def test_invalid_date(self):
        with pytest.raises(ValidationError):
            split_window("2024-02-30", "2024-03-01")

    def test_chunk_must_be_positive(self):
        with pytest.raises(ValueError):
            split_window("2024-01-01", "2024-01-02", 0)


# ---------------------------------------------------------------------------
# fetch_pages
# ---------------------------------------------------------------------------


class TestFetchPages:
    def test_short_page_stops(self, sleep):
        ledger = FakeLedger(_january_records(150))
        result = fetch_pages(JANUARY, ledger, sleep=sleep)

        assert len(result.records) == 150
        assert result.pages_retrieved == 2
        assert not result.has_more
        assert [call[1] for call in ledger.calls] == [1, 2]
        assert all(call[2] == 100 for call in ledger.calls)

    def test_full_last_page_needs_one_more_request(self, sleep):
        ledger = FakeLedger(_january_records(200))
        result = fetch_pages(JANUARY, ledger, sleep=sleep)

        assert len(result.records) == 200
        assert len(ledger.calls) == 3
        assert not result.has_more

    def test_max_pages_sets_has_more(self, sleep):
        ledger = FakeLedger(_january_records(250))
        result = fetch_pages(JANUARY, ledger, FetchOptions(max_pages=2), sleep=sleep)

        assert len(result.records) == 200
        assert result.has_more
        assert len(ledger.calls) == 2

    def test_max_records_stops_walk(self, sleep):
        ledger = FakeLedger(_january_records(250))
        result = fetch_pages(JANUARY, ledger, FetchOptions(max_records=50), sleep=sleep)

        assert len(ledger.calls) == 1
        assert result.has_more

    def test_error_keeps_earlier_records(self, sleep):
        ledger = FakeLedger(_january_records(150), fail_on_call=2)
        result = fetch_pages(JANUARY, ledger, sleep=sleep)

        assert result.has_error
        assert result.error_message == "remote unavailable"
        assert len(result.records) == 100
        assert result.pages_retrieved == 1

    def test_delay_between_requests(self, sleep):
        ledger = FakeLedger(_january_records(250))
        fetch_pages(JANUARY, ledger, FetchOptions(delay_seconds=0.5), sleep=sleep)

        assert len(ledger.calls) == 3
        assert sleep.delays == [0.5, 0.5]

    def test_page_size_is_capped(self, sleep):
        ledger = FakeLedger(_january_records(5))
        fetch_pages(JANUARY, ledger, FetchOptions(page_size=500), sleep=sleep)
        assert ledger.calls[0][2] == 100

    def test_custom_start_page(self, sleep):
        ledger = FakeLedger(_january_records(30))
        fetch_pages(JANUARY, ledger, FetchOptions(page_size=10, start_page=2), sleep=sleep)
        assert [call[1] for call in ledger.calls] == [2, 3, 4]


# ---------------------------------------------------------------------------
# fetch_window
# ---------------------------------------------------------------------------


class TestFetchWindow:
    def test_each_sub_window_is_fetched(self, sleep):
        records = [
            make_record(1, date="2024-01-05"),
            make_record(2, date="2024-02-10"),
            make_record(3, date="2024-03-10"),
        ]
        ledger = FakeLedger(records)
        result = fetch_window(DateWindow("2024-01-01", "2024-03-15"), ledger, sleep=sleep)

        assert [r.id for r in result.records] == [1, 2, 3]
        assert [call[0] for call in ledger.calls] == split_window("2024-01-01", "2024-03-15")
        assert result.pages_retrieved == 3
        # One pause before every request except the first.
        assert len(sleep.delays) == 2

    def test_duplicates_removed_across_pages(self, sleep):
        first_page = _january_records(3)
        ledger = FakeLedger(
            extra_pages={
                ("2024-01-01", 1): first_page,
                ("2024-01-01", 2): [first_page[-1], make_record(4, date="2024-01-20")],
            }
        )
        result = fetch_window(JANUARY, ledger, FetchOptions(page_size=3), sleep=sleep)

        assert [r.id for r in result.records] == [1, 2, 3, 4]
        assert len({r.id for r in result.records}) == len(result.records)

    def test_max_records_across_sub_windows(self, sleep):
        records = _january_records(3) + [
            make_record(10 + i, date="2024-02-10") for i in range(5)
        ]
        ledger = FakeLedger(records)
        result = fetch_window(
            DateWindow("2024-01-01", "2024-03-15"),
            ledger,
            FetchOptions(page_size=2, max_records=4),
            sleep=sleep,
        )

        assert len(result.records) == 4
        assert result.has_more
        # The March sub-window is never requested.
        assert all(call[0].start != "2024-03-03" for call in ledger.calls)

    def test_error_aborts_remaining_sub_windows(self, sleep):
        records = [make_record(1, date="2024-01-05"), make_record(2, date="2024-03-10")]
        ledger = FakeLedger(records, fail_on_call=2)
        result = fetch_window(DateWindow("2024-01-01", "2024-03-15"), ledger, sleep=sleep)

        assert result.has_error
        assert [r.id for r in result.records] == [1]
        assert len(ledger.calls) == 2

    def test_start_after_end_makes_no_requests(self, sleep):
        ledger = FakeLedger(_january_records(3))
        result = fetch_window(DateWindow("2024-02-01", "2024-01-01"), ledger, sleep=sleep)

        assert result.records == []
        assert not result.has_error
        assert ledger.calls == []

    def test_max_pages_propagates_has_more(self, sleep):
        ledger = FakeLedger(_january_records(5))
        result = fetch_window(
            JANUARY, ledger, FetchOptions(page_size=2, max_pages=1), sleep=sleep
        )
        assert result.has_more
        assert len(result.records) == 2

    @pytest.mark.parametrize("days_per_chunk", [1, 10, 1000])
    def test_chunk_size_does_not_change_result(self, days_per_chunk, sleep):
        records = [
            make_record(1, date="2024-01-01"),
            make_record(2, date="2024-01-31"),
            make_record(3, date="2024-02-01"),
            make_record(4, date="2024-02-29"),
            make_record(5, date="2024-03-15"),
        ]
        ledger = FakeLedger(records + [make_record(9, date="2024-03-16")])
        result = fetch_window(
            DateWindow("2024-01-01", "2024-03-15"),
            ledger,
            FetchOptions(page_size=2, days_per_chunk=days_per_chunk),
            sleep=sleep,
        )

        assert {r.id for r in result.records} == {1, 2, 3, 4, 5}
        assert not result.has_error


class TestRemoveDuplicates:
    def test_keeps_first_occurrence(self):
        a = make_record(1, name="first")
        b = make_record(1, name="second")
        c = make_record(2)
        assert remove_duplicates([a, c, b]) == [a, c]
