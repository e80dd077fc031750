"""Error types and shared error messages."""

from __future__ import annotations


class LedgerQueryError(Exception):
    """Base class for every error raised by ledger-query."""


class ValidationError(LedgerQueryError, ValueError):
    """Malformed or unsafe request, detected before any remote call."""


class ConsistencyError(LedgerQueryError):
    """The request's premise about the remote data does not hold."""


class CriteriaCoverageError(ConsistencyError):
    """A bulk update changes a field the search criteria never looked at."""

    def __init__(self, fields: list[str]) -> None:
        self.fields = list(fields)
        super().__init__(criteria_coverage(self.fields))


class CountMismatchError(ConsistencyError):
    """The live target set does not have the size the caller confirmed."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(count_mismatch(expected, actual))


class TransportError(LedgerQueryError):
    """A remote page fetch or write failed."""


def criteria_coverage(fields: list[str]) -> str:
    """Return message for update fields missing from the criteria."""
    names = ", ".join(fields)
    return (
        f"Consistency error: updated field(s) not covered by the search criteria: {names}. "
        "Add a condition on each updated field to the criteria."
    )


def count_mismatch(expected: int, actual: int) -> str:
    """Return message when the target count differs from the expected count."""
    return (
        f"Count mismatch: expected {expected} record(s), found {actual}. "
        "Re-run the search to confirm the target set."
    )


def empty_delete_criteria() -> str:
    """Return message for a delete request with no effective criteria."""
    return (
        "Safety error: delete criteria are empty. "
        "Deleting every record in a date range is not permitted."
    )


def fetch_failed(message: str | None) -> str:
    """Return message for an aborted fetch."""
    return f"Fetch error: {message or 'unknown error'}"
