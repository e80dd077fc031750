"""Condition evaluation, filtering, and the fixed result ordering.

:func:`evaluate` is total: a predicate on a field the record does not carry,
a numeric predicate on a value that is not a number, or a predicate whose
operands are missing all evaluate to ``False`` rather than raising. Nothing
here performs I/O or mutates its inputs.
"""

from __future__ import annotations

import operator as op
from collections.abc import Callable, Iterable

from ledger_query.conditions import (
    Composite,
    Condition,
    DatePredicate,
    KindPredicate,
    NumberPredicate,
    Predicate,
    StringPredicate,
)
from ledger_query.models import Record

_STRING_OPS: dict[str, Callable[[str, str], bool]] = {
    "equals": op.eq,
    "contains": lambda actual, expected: expected in actual,
    "startsWith": lambda actual, expected: actual.startswith(expected),
    "endsWith": lambda actual, expected: actual.endswith(expected),
}

# Single-operand comparisons shared by numbers and ISO dates.
_COMPARE_OPS: dict[str, Callable] = {
    "equals": op.eq,
    "notEquals": op.ne,
    "greaterThan": op.gt,
    "lessThan": op.lt,
    "greaterOrEqual": op.ge,
    "lessOrEqual": op.le,
    "before": op.lt,
    "after": op.gt,
    "onOrBefore": op.le,
    "onOrAfter": op.ge,
}


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def evaluate(record: Record, condition: Condition) -> bool:
    """Return True if *record* satisfies *condition*.

    Composites evaluate their children in order. ``AND`` stops at the first
    false child and ``OR`` at the first true one; a composite with no
    children is true under either operator.
    """
    if isinstance(condition, Composite):
        if not condition.conditions:
            return True
        if condition.operator == "AND":
            return all(evaluate(record, child) for child in condition.conditions)
        if condition.operator == "OR":
            return any(evaluate(record, child) for child in condition.conditions)
        return False
    if isinstance(condition, StringPredicate):
        return _evaluate_string(record, condition)
    if isinstance(condition, NumberPredicate):
        return _evaluate_number(record, condition)
    if isinstance(condition, DatePredicate):
        return _evaluate_date(record, condition)
    if isinstance(condition, KindPredicate):
        return record.kind is not None and record.kind == condition.value
    return False


def _evaluate_string(record: Record, condition: StringPredicate) -> bool:
    raw = getattr(record, condition.field, None)
    if raw is None:
        return False
    actual = str(raw)
    expected = condition.value
    if not condition.case_sensitive:
        actual = actual.lower()
        expected = expected.lower()
    compare = _STRING_OPS.get(condition.operator)
    return compare is not None and compare(actual, expected)


def _evaluate_number(record: Record, condition: NumberPredicate) -> bool:
    actual = _as_number(getattr(record, condition.field, None))
    if actual is None:
        return False
    if condition.operator == "between":
        if condition.min is None or condition.max is None:
            return False
        return condition.min <= actual <= condition.max
    compare = _COMPARE_OPS.get(condition.operator)
    if compare is None or condition.value is None:
        return False
    return compare(actual, condition.value)


def _evaluate_date(record: Record, condition: DatePredicate) -> bool:
    if not record.date:
        return False
    # ISO dates order lexicographically; a trailing time part is ignored.
    actual = record.date[:10]
    if condition.operator == "between":
        if condition.start_date is None or condition.end_date is None:
            return False
        return condition.start_date <= actual <= condition.end_date
    compare = _COMPARE_OPS.get(condition.operator)
    if compare is None or condition.value is None:
        return False
    return compare(actual, condition.value)


def _as_number(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(str(value))
    except ValueError:
        return None


def _sort_text(value: object) -> str:
    return "" if value is None else str(value)


def filter_records(records: Iterable[Record], criteria: Condition) -> list[Record]:
    """Return the records that satisfy *criteria*, preserving order."""
    return [record for record in records if evaluate(record, criteria)]


def sort_records(records: Iterable[Record]) -> list[Record]:
    """Order records newest first, then by place, then by name.

    Missing places and names sort as empty strings. Values are compared as
    text, whatever type the remote sent.
    """
    ordered = sorted(records, key=lambda r: (_sort_text(r.place), _sort_text(r.name)))
    # Stable sort: ties on date keep the place/name order from above.
    ordered.sort(key=lambda r: _sort_text(r.date), reverse=True)
    return ordered


# ---------------------------------------------------------------------------
# Criteria introspection
# ---------------------------------------------------------------------------


def iter_predicates(criteria: Condition) -> Iterable[Predicate]:
    """Yield every predicate in *criteria*, depth first."""
    if isinstance(criteria, Composite):
        for child in criteria.conditions:
            yield from iter_predicates(child)
    else:
        yield criteria


def find_field_condition(criteria: Condition, field: str) -> Predicate | None:
    """Return the first predicate on *field* anywhere in *criteria*."""
    for predicate in iter_predicates(criteria):
        if predicate.field == field:
            return predicate
    return None


def criteria_fields(criteria: Condition) -> set[str]:
    """Return the names of all fields referenced by *criteria*."""
    return {predicate.field for predicate in iter_predicates(criteria)}


def is_empty_criteria(criteria: Condition | None) -> bool:
    """Return True if *criteria* places no constraint on any field.

    A composite is empty when it has no children or when every child is
    empty. A predicate is empty when it lacks a field or an operator.
    """
    if criteria is None:
        return True
    if isinstance(criteria, Composite):
        return all(is_empty_criteria(child) for child in criteria.conditions)
    return not getattr(criteria, "field", None) or not getattr(criteria, "operator", None)
