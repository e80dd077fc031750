"""Shared pytest fixtures for ledger-query tests.

Provides reusable fakes for the two remote capabilities:
- FakeLedger: an in-memory page fetcher that filters by date window and
  paginates, recording every call and optionally failing on one.
- RecordingMutator: a mutator that records writes and fails for chosen ids.
- sample_records: a small ledger with every kind and some absent fields.
"""

from __future__ import annotations

import pytest

from ledger_query.models import DateWindow, Record


def make_record(record_id: int, **fields) -> Record:
    """Build a Record with sensible defaults for tests."""
    fields.setdefault("kind", "outflow")
    fields.setdefault("date", "2024-01-15")
    fields.setdefault("amount", 1000)
    return Record(id=record_id, **fields)


class FakeLedger:
    """In-memory page fetcher.

    Pages are cut from the records whose date falls in the requested window,
    in insertion order. ``fail_on_call`` makes the n-th call (1-based) raise.
    ``extra_pages`` maps ``(window.start, page)`` to a batch returned instead.
    """

    def __init__(self, records=(), fail_on_call=None, error=None, extra_pages=None):
        self.records = list(records)
        self.calls: list[tuple[DateWindow, int, int]] = []
        self.fail_on_call = fail_on_call
        self.error = error or RuntimeError("remote unavailable")
        self.extra_pages = extra_pages or {}

    def __call__(self, window: DateWindow, page: int, page_size: int) -> list[Record]:
        self.calls.append((window, page, page_size))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise self.error
        if (window.start, page) in self.extra_pages:
            return list(self.extra_pages[(window.start, page)])
        in_window = [
            r for r in self.records if r.date and window.start <= r.date[:10] <= window.end
        ]
        start = (page - 1) * page_size
        return in_window[start : start + page_size]


class RecordingMutator:
    """Mutator that records ``(kind, id, payload)`` and fails for ``fail_ids``."""

    def __init__(self, fail_ids=()):
        self.calls: list[tuple[str, int, dict | None]] = []
        self.fail_ids = set(fail_ids)

    def __call__(self, kind: str, record_id: int, payload: dict | None) -> dict:
        self.calls.append((kind, record_id, payload))
        if record_id in self.fail_ids:
            raise RuntimeError(f"write rejected for {record_id}")
        return {}


class SleepRecorder:
    """Stand-in for ``time.sleep`` that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def mutator() -> RecordingMutator:
    return RecordingMutator()


@pytest.fixture
def sample_records() -> list[Record]:
    """Six records across kinds, with some absent fields."""
    return [
        make_record(1, date="2024-01-10", amount=500, place="Cafe Mocha", name="Latte",
                    category_id=101, genre_id=10101, from_account_id=1, category="Food"),
        make_record(2, date="2024-01-12", amount=1500, place="Super Mart", name="Groceries",
                    category_id=101, genre_id=10102, from_account_id=1, category="Food"),
        make_record(3, kind="inflow", date="2024-01-25", amount=300000, place="Employer",
                    category_id=11, to_account_id=2),
        make_record(4, kind="transfer", date="2024-01-20", amount=20000,
                    from_account_id=2, to_account_id=1),
        make_record(5, date="2024-01-12", amount=2500, place="Book Shop", name="Novel",
                    category_id=107, comment="gift"),
        make_record(6, date="2024-02-03", amount=800, place="Cafe Mocha", name="Cake",
                    category_id=101, from_account_id=1),
    ]


@pytest.fixture
def ledger(sample_records) -> FakeLedger:
    return FakeLedger(sample_records)
