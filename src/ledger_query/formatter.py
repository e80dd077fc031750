"""Shape and size-limit search output.

Records are first shaped according to the output mode, then measured as
compact JSON. A record longer than ``max_chars_per_record`` is replaced by
its truncated JSON text ending in ``...``. Records are emitted in order
until the next one would push the running length past ``max_total_chars``;
that record and everything after it are dropped and counted as truncated.
"""

from __future__ import annotations

import json
from collections.abc import Sequence

from ledger_query.models import FormatResult, OutputControl, Record

ELLIPSIS = "..."


def shape_record(record: Record, control: OutputControl) -> int | dict:
    """Apply the output mode to a single record."""
    if control.mode == "id_only":
        return record.id
    data = record.to_dict()
    if control.mode == "specified" and control.fields:
        return {name: data[name] for name in control.fields if name in data}
    return data


def serialize(value: object) -> str:
    """Compact JSON text used to measure output size."""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def truncate_text(text: str, max_chars: int | None) -> str:
    """Cut *text* to *max_chars* characters, ending with an ellipsis."""
    if max_chars is None or len(text) <= max_chars:
        return text
    if max_chars < len(ELLIPSIS):
        return ELLIPSIS[:max_chars]
    return text[: max_chars - len(ELLIPSIS)] + ELLIPSIS


def format_output(
    records: Sequence[Record],
    control: OutputControl | None = None,
) -> FormatResult:
    """Format *records* under the limits in *control*.

    Args:
        records: Records in output order.
        control: Output mode and limits. Defaults to full records with no
            limits.

    Returns:
        A :class:`FormatResult`. ``truncated_count`` counts the records
        dropped by the total character limit; records beyond
        ``max_records`` are never considered and are not counted.
    """
    control = control or OutputControl()

    candidates = list(records)
    if control.max_records is not None:
        candidates = candidates[: control.max_records]

    emitted: list = []
    total_chars = 0
    truncated = False
    truncated_count = 0

    for record in candidates:
        shaped = shape_record(record, control)
        text = serialize(shaped)
        if control.max_chars_per_record is not None and len(text) > control.max_chars_per_record:
            text = truncate_text(text, control.max_chars_per_record)
            shaped = text

        limit = control.max_total_chars
        if limit is not None and total_chars + len(text) > limit:
            truncated = True
            truncated_count = len(candidates) - len(emitted)
            break

        emitted.append(shaped)
        total_chars += len(text)

    return FormatResult(
        records=emitted,
        count=len(emitted),
        truncated=truncated,
        truncated_count=truncated_count,
    )
