"""Bulk update and bulk delete with safety checks.

Both operations run the same sequence of steps and stop at the first
failing one:

1. **Validate** -- updates may only change fields the criteria test;
   deletes must have non-empty criteria.
2. **Fetch** -- read the request's date window through the fetch
   orchestrator. A fetch error aborts the operation.
3. **Filter** -- evaluate the criteria against the live records to get the
   target set. Counts held by the caller are never trusted.
4. **Count check** -- the target set must have exactly ``expected_count``
   records.
5. **Preview or apply** -- a dry run returns what would change without
   writing. Otherwise each target is written in turn, one at a time, with
   ``write_delay`` seconds between writes. A failed write is recorded and
   the loop continues.

The result is always a :class:`~ledger_query.models.BulkResult`; nothing
raises past these functions.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from ledger_query.conditions import Condition
from ledger_query.errors import (
    CountMismatchError,
    CriteriaCoverageError,
    LedgerQueryError,
    ValidationError,
    empty_delete_criteria,
    fetch_failed,
)
from ledger_query.evaluator import criteria_fields, filter_records, is_empty_criteria
from ledger_query.inputs import BulkDeleteRequest, BulkUpdateRequest
from ledger_query.models import (
    BulkResult,
    BulkStats,
    DateWindow,
    FetchOptions,
    MutationDetail,
    Record,
    StringUpdate,
    UpdateSpec,
)
from ledger_query.pagination import PageFetcher, fetch_window

logger = logging.getLogger(__name__)

DEFAULT_WRITE_DELAY = 0.2

# ``(kind, record_id, payload)``; payload is None for a delete. Raising
# marks that record as failed.
Mutator = Callable[[str, int, "dict | None"], object]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def bulk_update(
    request: BulkUpdateRequest,
    page_fetcher: PageFetcher,
    mutator: Mutator,
    options: FetchOptions | None = None,
    *,
    write_delay: float = DEFAULT_WRITE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> BulkResult:
    """Apply ``request.updates`` to every record matching ``request.criteria``.

    Args:
        request: Parsed bulk update request.
        page_fetcher: ``(window, page, page_size) -> records``.
        mutator: ``(kind, record_id, payload) -> any``; raises on failure.
        options: Pagination settings for the fetch step.
        write_delay: Seconds to pause between successive writes.
        sleep: Called for fetch and write delays.

    Returns:
        A :class:`BulkResult`. For a dry run each detail carries the
        ``before`` and ``after`` values of the updated fields.
    """
    dry_run = request.dry_run
    try:
        uncovered = uncovered_update_fields(request.criteria, request.updates)
        if uncovered:
            raise CriteriaCoverageError(uncovered)

        targets = _resolve_targets(
            request.criteria,
            request.date_range,
            request.expected_count,
            page_fetcher,
            options,
            sleep,
        )
        if not targets:
            return _no_targets(dry_run)

        if dry_run:
            previews = []
            for record in targets:
                _, before, after = compute_update(record, request.updates)
                previews.append(
                    MutationDetail(id=record.id, success=True, before=before, after=after)
                )
            return BulkResult(
                success=True,
                message=f"[dry run] {len(targets)} record(s) would be updated; nothing written.",
                results=previews,
                stats=BulkStats(
                    target_count=len(targets),
                    success_count=len(targets),
                    dry_run=True,
                ),
            )

        def write(record: Record) -> MutationDetail:
            payload, before, after = compute_update(record, request.updates)
            mutator(record.kind, record.id, payload)
            return MutationDetail(id=record.id, success=True, before=before, after=after)

        return _apply(targets, write, "update", "updated", write_delay, sleep)

    except CountMismatchError as exc:
        return _failure(str(exc), dry_run, target_count=exc.actual)
    except LedgerQueryError as exc:
        return _failure(str(exc), dry_run)
    except Exception as exc:
        logger.exception("Bulk update failed")
        return _failure(f"Bulk update error: {exc}", dry_run)


def bulk_delete(
    request: BulkDeleteRequest,
    page_fetcher: PageFetcher,
    mutator: Mutator,
    options: FetchOptions | None = None,
    *,
    write_delay: float = DEFAULT_WRITE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> BulkResult:
    """Delete every record matching ``request.criteria``.

    Empty criteria are refused before anything is fetched. Arguments are as
    for :func:`bulk_update`; each detail carries the record's kind and a
    date/amount/place/name summary.
    """
    dry_run = request.dry_run
    try:
        if is_empty_criteria(request.criteria):
            raise ValidationError(empty_delete_criteria())

        targets = _resolve_targets(
            request.criteria,
            request.date_range,
            request.expected_count,
            page_fetcher,
            options,
            sleep,
        )
        if not targets:
            return _no_targets(dry_run)

        if dry_run:
            return BulkResult(
                success=True,
                message=f"[dry run] {len(targets)} record(s) would be deleted; nothing written.",
                results=[
                    MutationDetail(
                        id=record.id,
                        kind=record.kind,
                        success=True,
                        summary=summarize(record),
                    )
                    for record in targets
                ],
                stats=BulkStats(
                    target_count=len(targets),
                    success_count=len(targets),
                    dry_run=True,
                ),
            )

        def write(record: Record) -> MutationDetail:
            mutator(record.kind, record.id, None)
            return MutationDetail(
                id=record.id, kind=record.kind, success=True, summary=summarize(record)
            )

        return _apply(targets, write, "delete", "deleted", write_delay, sleep)

    except CountMismatchError as exc:
        return _failure(str(exc), dry_run, target_count=exc.actual)
    except LedgerQueryError as exc:
        return _failure(str(exc), dry_run)
    except Exception as exc:
        logger.exception("Bulk delete failed")
        return _failure(f"Bulk delete error: {exc}", dry_run)


def uncovered_update_fields(criteria: Condition, updates: UpdateSpec) -> list[str]:
    """Return the updated fields that no predicate in *criteria* tests."""
    tested = criteria_fields(criteria)
    return [name for name in updates.fields() if name not in tested]


def apply_string_update(current: str | None, update: StringUpdate) -> str:
    """Return the new text for a free-text field."""
    if update.mode == "replace":
        return update.new_value if update.new_value is not None else ""
    if update.mode == "partial" and update.search_pattern:
        return (current or "").replace(update.search_pattern, update.replace_with or "")
    return current or ""


def compute_update(record: Record, updates: UpdateSpec) -> tuple[dict, dict, dict]:
    """Work out the write payload and before/after values for one record.

    ``account_id`` is written as ``from_account_id`` on outflows and
    ``to_account_id`` on inflows, which is how the remote stores it.
    On transfers the change is reported but not written.

    Returns:
        ``(payload, before, after)`` dicts keyed by field name.
    """
    payload: dict = {}
    before: dict = {}
    after: dict = {}

    for name in updates.fields():
        new = getattr(updates, name)
        if isinstance(new, StringUpdate):
            current = getattr(record, name)
            value = apply_string_update(current, new)
            before[name] = current
            after[name] = value
            payload[name] = value
            continue

        if name == "account_id":
            before[name] = _current_account(record)
            after[name] = new
            key = _account_payload_key(record)
            if key is not None:
                payload[key] = new
            continue

        before[name] = getattr(record, name)
        after[name] = new
        payload[name] = new

    return payload, before, after


def summarize(record: Record) -> dict:
    """Short description of a record for delete reports."""
    summary = {
        "date": record.date,
        "amount": record.amount,
        "place": record.place,
        "name": record.name,
    }
    return {key: value for key, value in summary.items() if value is not None}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _resolve_targets(
    criteria: Condition,
    window: DateWindow,
    expected_count: int,
    page_fetcher: PageFetcher,
    options: FetchOptions | None,
    sleep: Callable[[float], None],
) -> list[Record]:
    """Fetch, filter and count-check. Raises on fetch error or mismatch."""
    fetched = fetch_window(window, page_fetcher, options, sleep=sleep)
    if fetched.has_error:
        raise LedgerQueryError(fetch_failed(fetched.error_message))
    if fetched.has_more:
        logger.warning(
            "Fetch for %s..%s stopped at a safety limit; the target set may be incomplete",
            window.start,
            window.end,
        )

    targets = filter_records(fetched.records, criteria)
    logger.info(
        "%d of %d fetched record(s) match the criteria", len(targets), fetched.total_records
    )

    if len(targets) != expected_count:
        raise CountMismatchError(expected_count, len(targets))
    return targets


def _apply(
    targets: list[Record],
    write: Callable[[Record], MutationDetail],
    verb: str,
    past: str,
    write_delay: float,
    sleep: Callable[[float], None],
) -> BulkResult:
    results: list[MutationDetail] = []
    success_count = 0
    failure_count = 0

    for index, record in enumerate(targets):
        if index > 0 and write_delay > 0:
            sleep(write_delay)
        try:
            detail = write(record)
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.warning("Failed to %s record %s: %s", verb, record.id, message)
            kind = record.kind if verb == "delete" else None
            results.append(MutationDetail(id=record.id, kind=kind, success=False, error=message))
            failure_count += 1
            continue
        results.append(detail)
        success_count += 1

    if failure_count == 0:
        message = f"{success_count} record(s) {past}."
    else:
        message = f"{success_count} record(s) {past}, {failure_count} failed."

    return BulkResult(
        success=failure_count == 0,
        message=message,
        results=results,
        stats=BulkStats(
            target_count=len(targets),
            success_count=success_count,
            failure_count=failure_count,
            dry_run=False,
        ),
    )


def _no_targets(dry_run: bool) -> BulkResult:
    return BulkResult(
        success=True,
        message="No matching records.",
        stats=BulkStats(dry_run=dry_run),
    )


def _failure(message: str, dry_run: bool, target_count: int = 0) -> BulkResult:
    return BulkResult(
        success=False,
        message=message,
        stats=BulkStats(target_count=target_count, dry_run=dry_run),
    )


def _current_account(record: Record) -> int | None:
    if record.account_id is not None:
        return record.account_id
    if record.from_account_id is not None:
        return record.from_account_id
    return record.to_account_id


def _account_payload_key(record: Record) -> str | None:
    if record.kind == "outflow":
        return "from_account_id"
    if record.kind == "inflow":
        return "to_account_id"
    return None
