"""Read-only search over a date window.

Composes the fetch orchestrator, the condition evaluator, the fixed
newest-first ordering, and the output formatter. Failures are reported in
the returned :class:`~ledger_query.models.SearchResult`; this function does
not raise. When a page request fails, the records gathered before the
failure are still filtered and returned alongside the error.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import replace

from ledger_query.errors import fetch_failed
from ledger_query.evaluator import filter_records, sort_records
from ledger_query.formatter import format_output
from ledger_query.inputs import SearchRequest
from ledger_query.models import FetchOptions, SearchMeta, SearchResult
from ledger_query.pagination import PageFetcher, fetch_window

logger = logging.getLogger(__name__)


def search(
    request: SearchRequest,
    page_fetcher: PageFetcher,
    options: FetchOptions | None = None,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> SearchResult:
    """Run a search request.

    Args:
        request: Parsed search request. ``limit`` caps how many records are
            fetched; ``output.max_records`` caps how many are returned.
        page_fetcher: ``(window, page, page_size) -> records``.
        options: Pagination settings; ``max_records`` is taken from
            ``request.limit``.
        sleep: Called between page requests.

    Returns:
        A :class:`SearchResult`. ``meta.matched_count`` is the number of
        fetched records satisfying the criteria, before output limits.
    """
    options = replace(options or FetchOptions(), max_records=request.limit)

    try:
        fetched = fetch_window(request.date_range, page_fetcher, options, sleep=sleep)
        if request.criteria is not None:
            matched = filter_records(fetched.records, request.criteria)
        else:
            matched = list(fetched.records)
        ordered = sort_records(matched)
        output = format_output(ordered, request.output)
    except Exception as exc:
        logger.exception("Search failed")
        return SearchResult(success=False, message=f"Search error: {exc}")

    if fetched.has_error:
        message = (
            f"{fetch_failed(fetched.error_message)} "
            f"({len(fetched.records)} record(s) fetched before the failure)"
        )
    else:
        message = f"Returned {output.count} of {len(matched)} matching record(s)"
        if output.truncated:
            message += f"; {output.truncated_count} dropped by the output size limit"
        if fetched.has_more:
            message += "; fetch limit reached, more records may exist"
        message += "."

    return SearchResult(
        success=not fetched.has_error,
        message=message,
        records=output.records,
        count=output.count,
        truncated=output.truncated,
        truncated_count=output.truncated_count,
        meta=SearchMeta(
            pages_retrieved=fetched.pages_retrieved,
            total_fetched=fetched.total_records,
            matched_count=len(matched),
            output_count=output.count,
        ),
    )
