"""Request objects and their parsing from caller JSON.

Each public ``parse_*`` function accepts the decoded JSON body of a request
(camelCase keys, as callers send them) and returns a typed request, or
raises :class:`~ledger_query.errors.ValidationError` before any remote call
is made. Unknown keys are rejected everywhere.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from ledger_query.conditions import Condition, parse_condition
from ledger_query.errors import ValidationError
from ledger_query.models import (
    OUTPUT_MODES,
    RECORD_FIELDS,
    STRING_UPDATE_FIELDS,
    DateWindow,
    OutputControl,
    StringUpdate,
    UpdateSpec,
)

_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")

_NUMERIC_UPDATE_FIELDS = (
    "category_id",
    "genre_id",
    "amount",
    "account_id",
    "from_account_id",
    "to_account_id",
)

_ID_UPDATE_FIELDS = ("category_id", "genre_id", "account_id", "from_account_id", "to_account_id")


@dataclass(frozen=True)
class SearchRequest:
    date_range: DateWindow
    criteria: Condition | None = None
    output: OutputControl | None = None
    limit: int | None = None


@dataclass(frozen=True)
class BulkUpdateRequest:
    criteria: Condition
    date_range: DateWindow
    updates: UpdateSpec
    expected_count: int
    dry_run: bool = False


@dataclass(frozen=True)
class BulkDeleteRequest:
    criteria: Condition
    date_range: DateWindow
    expected_count: int
    dry_run: bool = False


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_search_request(data: object) -> SearchRequest:
    """Parse a search request body.

    Expected keys: ``dateRange`` (required), ``criteria``, ``output`` and
    ``limit`` (all optional).
    """
    data = _require_object(data, "request")
    _reject_unknown_keys(data, {"criteria", "dateRange", "output", "limit"}, "request")

    criteria = None
    if data.get("criteria") is not None:
        criteria = parse_condition(data["criteria"])

    output = None
    if data.get("output") is not None:
        output = parse_output_control(data["output"])

    return SearchRequest(
        date_range=parse_date_window(_required(data, "dateRange", "request")),
        criteria=criteria,
        output=output,
        limit=_optional_positive_int(data, "limit", "request"),
    )


def parse_bulk_update_request(data: object) -> BulkUpdateRequest:
    """Parse a bulk update request body.

    Expected keys: ``criteria``, ``dateRange``, ``updates`` and
    ``expectedCount`` (required), ``dryRun`` (optional, default false).
    """
    data = _require_object(data, "request")
    _reject_unknown_keys(
        data, {"criteria", "dateRange", "updates", "expectedCount", "dryRun"}, "request"
    )
    return BulkUpdateRequest(
        criteria=parse_condition(_required(data, "criteria", "request")),
        date_range=parse_date_window(_required(data, "dateRange", "request")),
        updates=parse_update_spec(_required(data, "updates", "request")),
        expected_count=_expected_count(data),
        dry_run=_optional_bool(data, "dryRun", "request"),
    )


def parse_bulk_delete_request(data: object) -> BulkDeleteRequest:
    """Parse a bulk delete request body.

    Expected keys: ``criteria``, ``dateRange`` and ``expectedCount``
    (required), ``dryRun`` (optional, default false). Emptiness of the
    criteria is checked by the delete operation itself.
    """
    data = _require_object(data, "request")
    _reject_unknown_keys(data, {"criteria", "dateRange", "expectedCount", "dryRun"}, "request")
    return BulkDeleteRequest(
        criteria=parse_condition(_required(data, "criteria", "request")),
        date_range=parse_date_window(_required(data, "dateRange", "request")),
        expected_count=_expected_count(data),
        dry_run=_optional_bool(data, "dryRun", "request"),
    )


def parse_date_window(data: object) -> DateWindow:
    """Parse ``{"start": ..., "end": ...}``.

    Both dates must be real ``YYYY-MM-DD`` calendar dates. A start after the
    end is accepted; fetching such a window simply returns nothing.
    """
    data = _require_object(data, "dateRange")
    _reject_unknown_keys(data, {"start", "end"}, "dateRange")
    return DateWindow(
        start=_calendar_date(_required(data, "start", "dateRange"), "dateRange.start"),
        end=_calendar_date(_required(data, "end", "dateRange"), "dateRange.end"),
    )


def parse_output_control(data: object) -> OutputControl:
    """Parse the ``output`` block of a search request."""
    data = _require_object(data, "output")
    _reject_unknown_keys(
        data,
        {"mode", "fields", "maxCharsPerRecord", "maxTotalChars", "maxRecords"},
        "output",
    )

    mode = data.get("mode", "full")
    if mode not in OUTPUT_MODES:
        raise ValidationError(
            f"output.mode: expected one of {', '.join(OUTPUT_MODES)}, got {mode!r}"
        )

    fields = data.get("fields")
    if fields is not None:
        if not isinstance(fields, list):
            raise ValidationError("output.fields: expected a list of field names")
        unknown = [name for name in fields if name not in RECORD_FIELDS]
        if unknown:
            raise ValidationError(f"output.fields: unknown field(s) {', '.join(map(str, unknown))}")
        fields = tuple(fields)

    return OutputControl(
        mode=mode,
        fields=fields,
        max_chars_per_record=_optional_positive_int(data, "maxCharsPerRecord", "output"),
        max_total_chars=_optional_positive_int(data, "maxTotalChars", "output"),
        max_records=_optional_positive_int(data, "maxRecords", "output"),
    )


def parse_update_spec(data: object) -> UpdateSpec:
    """Parse the ``updates`` block of a bulk update request.

    Numeric fields take a number, ``date`` takes a ``YYYY-MM-DD`` string,
    and ``place``/``name``/``comment`` take a string update directive.
    At least one field must be present.
    """
    data = _require_object(data, "updates")
    _reject_unknown_keys(
        data, set(_NUMERIC_UPDATE_FIELDS) | {"date"} | set(STRING_UPDATE_FIELDS), "updates"
    )

    values: dict = {}
    for name in _NUMERIC_UPDATE_FIELDS:
        if data.get(name) is None:
            continue
        value = data[name]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"updates.{name}: expected a number, got {value!r}")
        if name in _ID_UPDATE_FIELDS and not float(value).is_integer():
            raise ValidationError(f"updates.{name}: expected an integer id, got {value!r}")
        values[name] = int(value) if name in _ID_UPDATE_FIELDS else value

    if data.get("date") is not None:
        values["date"] = _calendar_date(data["date"], "updates.date")

    for name in STRING_UPDATE_FIELDS:
        if data.get(name) is not None:
            values[name] = parse_string_update(data[name], f"updates.{name}")

    if not values:
        raise ValidationError("updates: at least one field to update is required")
    return UpdateSpec(**values)


def parse_string_update(data: object, path: str) -> StringUpdate:
    """Parse a ``replace`` or ``partial`` string update directive."""
    data = _require_object(data, path)
    _reject_unknown_keys(data, {"mode", "newValue", "searchPattern", "replaceWith"}, path)

    for key in ("newValue", "searchPattern", "replaceWith"):
        if data.get(key) is not None and not isinstance(data[key], str):
            raise ValidationError(f"{path}.{key}: expected a string")

    mode = data.get("mode")
    if mode == "replace":
        if data.get("newValue") is None:
            raise ValidationError(f"{path}.newValue: required when mode is 'replace'")
        return StringUpdate(mode="replace", new_value=data["newValue"])
    if mode == "partial":
        if not data.get("searchPattern"):
            raise ValidationError(f"{path}.searchPattern: required when mode is 'partial'")
        return StringUpdate(
            mode="partial",
            search_pattern=data["searchPattern"],
            replace_with=data.get("replaceWith", ""),
        )
    raise ValidationError(f"{path}.mode: expected 'replace' or 'partial', got {mode!r}")


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _require_object(data: object, path: str) -> dict:
    if not isinstance(data, dict):
        raise ValidationError(f"{path}: expected an object")
    return data


def _required(data: dict, key: str, path: str) -> object:
    if data.get(key) is None:
        raise ValidationError(f"{path}: missing required key {key!r}")
    return data[key]


def _reject_unknown_keys(data: dict, allowed: set[str], path: str) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValidationError(f"{path}: unexpected key(s) {', '.join(unknown)}")


def _calendar_date(value: object, path: str) -> str:
    if not isinstance(value, str) or not _DATE_RE.fullmatch(value):
        raise ValidationError(f"{path}: expected a YYYY-MM-DD date, got {value!r}")
    try:
        date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"{path}: {value!r} is not a valid date") from exc
    return value


def _optional_positive_int(data: dict, key: str, path: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"{path}.{key}: expected a positive integer, got {value!r}")
    return value


def _optional_bool(data: dict, key: str, path: str) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise ValidationError(f"{path}.{key}: expected a boolean, got {value!r}")
    return value


def _expected_count(data: dict) -> int:
    value = _required(data, "expectedCount", "request")
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(
            f"request.expectedCount: expected a positive integer, got {value!r}"
        )
    return value
