"""Paginated fetching of ledger records over a date window.

The remote API returns at most 100 records per page and also caps how many
records one date-range query can reach, so a window is fetched in three
nested steps:

1. **Split** -- :func:`split_window` cuts the window into consecutive,
   non-overlapping sub-windows of ``days_per_chunk`` days.
2. **Walk** -- :func:`fetch_pages` requests page 1, 2, ... of one sub-window
   until a short page comes back or a safety limit is reached.
3. **Merge** -- :func:`fetch_window` concatenates the sub-windows, removes
   records seen twice (paging can repeat boundary records), and applies
   ``max_records``.

All requests are issued one at a time with ``delay_seconds`` between them.
A failing page request stops the whole fetch; the records gathered so far
are returned with ``has_error`` set. Retrying is left to the page fetcher.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import date, timedelta

from ledger_query.errors import ValidationError
from ledger_query.models import DateWindow, FetchOptions, FetchResult, Record

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

PageFetcher = Callable[[DateWindow, int, int], Iterable[Record]]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def split_window(start: str, end: str, days_per_chunk: int = 31) -> list[DateWindow]:
    """Split the inclusive range *start*..*end* into sub-windows.

    Each sub-window spans at most *days_per_chunk* days; the last one ends
    exactly on *end*.

    Args:
        start: First date, ``YYYY-MM-DD``.
        end: Last date, ``YYYY-MM-DD``.
        days_per_chunk: Maximum span of a sub-window in days.

    Returns:
        The sub-windows in chronological order, or an empty list when
        *start* is after *end*.

    Raises:
        ValidationError: If either date is not a valid ``YYYY-MM-DD`` date.
        ValueError: If *days_per_chunk* is less than 1.
    """
    if days_per_chunk < 1:
        raise ValueError(f"days_per_chunk must be at least 1, got {days_per_chunk}")

    first = _parse_iso_date(start)
    last = _parse_iso_date(end)

    windows: list[DateWindow] = []
    current = first
    while current <= last:
        chunk_end = min(current + timedelta(days=days_per_chunk - 1), last)
        windows.append(DateWindow(current.isoformat(), chunk_end.isoformat()))
        current = chunk_end + timedelta(days=1)
    return windows


def fetch_pages(
    window: DateWindow,
    page_fetcher: PageFetcher,
    options: FetchOptions | None = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
    delay_first: bool = False,
) -> FetchResult:
    """Walk the pages of a single sub-window.

    Stops when a page holds fewer than ``page_size`` records, when
    ``max_pages`` pages have been read (``has_more`` is set), when
    ``max_records`` records have been gathered (``has_more`` is set), or
    when a request fails (``has_error`` is set). Records are returned as
    received, without deduplication.

    Args:
        window: The sub-window to fetch.
        page_fetcher: ``(window, page, page_size) -> records``.
        options: Pagination settings. Defaults to :class:`FetchOptions`.
        sleep: Called with ``delay_seconds`` between requests.
        delay_first: Also pause before the first request, for callers
            that have just issued a request of their own.
    """
    options = options or FetchOptions()
    page_size = _effective_page_size(options.page_size)

    records: list[Record] = []
    page = options.start_page
    pages_read = 0

    while True:
        if pages_read >= options.max_pages:
            logger.warning(
                "Stopped %s..%s after %d page(s): max_pages reached",
                window.start,
                window.end,
                pages_read,
            )
            return FetchResult(records=records, pages_retrieved=pages_read, has_more=True)

        if options.max_records is not None and len(records) >= options.max_records:
            return FetchResult(records=records, pages_retrieved=pages_read, has_more=True)

        if (pages_read > 0 or delay_first) and options.delay_seconds > 0:
            sleep(options.delay_seconds)

        logger.debug("Fetching %s..%s page %d (size %d)", window.start, window.end, page, page_size)
        try:
            batch = list(page_fetcher(window, page, page_size))
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.error(
                "Page %d of %s..%s failed: %s", page, window.start, window.end, message
            )
            return FetchResult(
                records=records,
                pages_retrieved=pages_read,
                has_more=True,
                has_error=True,
                error_message=message,
            )

        pages_read += 1
        records.extend(batch)

        if len(batch) < page_size:
            return FetchResult(records=records, pages_retrieved=pages_read)
        page += 1


def fetch_window(
    window: DateWindow,
    page_fetcher: PageFetcher,
    options: FetchOptions | None = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> FetchResult:
    """Fetch every record in *window*, chunked, paginated and deduplicated.

    Args:
        window: Inclusive date range to fetch. A window whose start is after
            its end yields an empty, successful result.
        page_fetcher: ``(window, page, page_size) -> records``. The only
            I/O dependency; transport, auth and retries live there.
        options: Pagination settings. Defaults to :class:`FetchOptions`.
        sleep: Called with ``delay_seconds`` between requests.

    Returns:
        A :class:`FetchResult`. On a failed request it holds the
        deduplicated records gathered before the failure.
    """
    options = options or FetchOptions()
    sub_windows = split_window(window.start, window.end, options.days_per_chunk)
    if not sub_windows:
        return FetchResult()

    collected: list[Record] = []
    pages = 0
    has_more = False

    for sub_window in sub_windows:
        budget = None
        if options.max_records is not None:
            budget = options.max_records - len(collected)
            if budget <= 0:
                # Remaining sub-windows were never read.
                has_more = True
                break

        chunk = fetch_pages(
            sub_window,
            page_fetcher,
            replace(options, max_records=budget),
            sleep=sleep,
            delay_first=pages > 0,
        )
        collected.extend(chunk.records)
        pages += chunk.pages_retrieved

        if chunk.has_error:
            return FetchResult(
                records=remove_duplicates(collected),
                pages_retrieved=pages,
                has_more=True,
                has_error=True,
                error_message=chunk.error_message,
            )
        if chunk.has_more:
            has_more = True

    records = remove_duplicates(collected)
    if options.max_records is not None and len(records) > options.max_records:
        records = records[: options.max_records]
        has_more = True

    logger.info(
        "Fetched %d record(s) from %s..%s in %d page(s) over %d sub-window(s)",
        len(records),
        window.start,
        window.end,
        pages,
        len(sub_windows),
    )
    return FetchResult(records=records, pages_retrieved=pages, has_more=has_more)


def remove_duplicates(records: Iterable[Record]) -> list[Record]:
    """Remove records with a repeated ``id``, keeping the first occurrence."""
    seen: set[int] = set()
    unique: list[Record] = []
    dup_count = 0

    for record in records:
        if record.id in seen:
            dup_count += 1
            continue
        seen.add(record.id)
        unique.append(record)

    if dup_count > 0:
        logger.debug("Removed %d duplicate record(s)", dup_count)
    return unique


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _parse_iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid date {value!r}: expected YYYY-MM-DD") from exc


def _effective_page_size(page_size: int) -> int:
    if page_size < 1:
        raise ValueError(f"page_size must be at least 1, got {page_size}")
    if page_size > MAX_PAGE_SIZE:
        logger.warning("page_size %d exceeds the remote limit; using %d", page_size, MAX_PAGE_SIZE)
        return MAX_PAGE_SIZE
    return page_size
