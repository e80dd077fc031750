"""Search condition model.

A condition is either a typed predicate on one record field or a composite
that combines sub-conditions with ``AND``/``OR``. The predicate class is
chosen by the field's type, so every predicate only ever carries an operator
that is valid for its field:

- :class:`StringPredicate` -- ``place``, ``name``, ``comment``, ``category``,
  ``genre``, ``account``.
- :class:`NumberPredicate` -- ``id``, ``category_id``, ``genre_id``,
  ``account_id``, ``from_account_id``, ``to_account_id``, ``amount``.
- :class:`DatePredicate` -- ``date``.
- :class:`KindPredicate` -- ``kind`` (``mode`` is accepted as an alias).

:func:`parse_condition` turns caller JSON into this model and rejects
anything that does not fit it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from ledger_query.errors import ValidationError
from ledger_query.models import KIND_ALIASES

STRING_FIELDS = ("place", "name", "comment", "category", "genre", "account")
NUMBER_FIELDS = (
    "id",
    "category_id",
    "genre_id",
    "account_id",
    "from_account_id",
    "to_account_id",
    "amount",
)
DATE_FIELD = "date"
KIND_FIELD = "kind"

STRING_OPERATORS = ("equals", "contains", "startsWith", "endsWith")
NUMBER_OPERATORS = (
    "equals",
    "notEquals",
    "greaterThan",
    "lessThan",
    "greaterOrEqual",
    "lessOrEqual",
    "between",
)
DATE_OPERATORS = ("equals", "before", "after", "onOrBefore", "onOrAfter", "between")
LOGICAL_OPERATORS = ("AND", "OR")

_FIELD_ALIASES = {"mode": KIND_FIELD}

_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


@dataclass(frozen=True)
class StringPredicate:
    field: str
    operator: str
    value: str
    case_sensitive: bool = False


@dataclass(frozen=True)
class NumberPredicate:
    field: str
    operator: str
    value: float | None = None
    min: float | None = None
    max: float | None = None


@dataclass(frozen=True)
class DatePredicate:
    operator: str
    value: str | None = None
    start_date: str | None = None
    end_date: str | None = None

    field = DATE_FIELD


@dataclass(frozen=True)
class KindPredicate:
    value: str

    field = KIND_FIELD
    operator = "equals"


@dataclass(frozen=True)
class Composite:
    """Logical combination of sub-conditions, evaluated in order."""

    operator: str
    conditions: tuple = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "conditions", tuple(self.conditions))


Predicate = Union[StringPredicate, NumberPredicate, DatePredicate, KindPredicate]
Condition = Union[Predicate, Composite]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_condition(data: object, path: str = "criteria") -> Condition:
    """Parse a JSON-style condition tree.

    A dict with a ``conditions`` key (or an ``AND``/``OR`` operator and no
    ``field``) is a composite; anything else must be a predicate.

    Args:
        data: Decoded JSON value.
        path: Location of *data* in the request, used in error messages.

    Returns:
        The parsed :class:`Condition`.

    Raises:
        ValidationError: On unknown fields or keys, operators that do not
            apply to the field, or operands of the wrong type.
    """
    if not isinstance(data, dict):
        raise ValidationError(f"{path}: expected an object, got {type(data).__name__}")

    if "conditions" in data or (
        "field" not in data and data.get("operator") in LOGICAL_OPERATORS
    ):
        return _parse_composite(data, path)
    return _parse_predicate(data, path)


def _parse_composite(data: dict, path: str) -> Composite:
    _reject_unknown_keys(data, {"operator", "conditions"}, path)
    operator = data.get("operator")
    if operator not in LOGICAL_OPERATORS:
        raise ValidationError(
            f"{path}.operator: expected one of {', '.join(LOGICAL_OPERATORS)}, got {operator!r}"
        )
    children = data.get("conditions", [])
    if not isinstance(children, list):
        raise ValidationError(f"{path}.conditions: expected a list")
    return Composite(
        operator=operator,
        conditions=tuple(
            parse_condition(child, f"{path}.conditions[{i}]")
            for i, child in enumerate(children)
        ),
    )


def _parse_predicate(data: dict, path: str) -> Predicate:
    if "field" not in data:
        raise ValidationError(f"{path}: missing 'field'")
    if "operator" not in data:
        raise ValidationError(f"{path}: missing 'operator'")

    field = _FIELD_ALIASES.get(data["field"], data["field"])
    operator = data["operator"]

    if field in STRING_FIELDS:
        _reject_unknown_keys(data, {"field", "operator", "value", "caseSensitive"}, path)
        _check_operator(operator, STRING_OPERATORS, field, path)
        value = data.get("value")
        if not isinstance(value, str):
            raise ValidationError(f"{path}.value: expected a string for field {field!r}")
        case_sensitive = data.get("caseSensitive", False)
        if not isinstance(case_sensitive, bool):
            raise ValidationError(f"{path}.caseSensitive: expected a boolean")
        return StringPredicate(field, operator, value, case_sensitive)

    if field in NUMBER_FIELDS:
        _reject_unknown_keys(data, {"field", "operator", "value", "min", "max"}, path)
        _check_operator(operator, NUMBER_OPERATORS, field, path)
        return NumberPredicate(
            field,
            operator,
            value=_optional_number(data, "value", path),
            min=_optional_number(data, "min", path),
            max=_optional_number(data, "max", path),
        )

    if field == DATE_FIELD:
        _reject_unknown_keys(
            data, {"field", "operator", "value", "startDate", "endDate"}, path
        )
        _check_operator(operator, DATE_OPERATORS, field, path)
        return DatePredicate(
            operator,
            value=_optional_date(data, "value", path),
            start_date=_optional_date(data, "startDate", path),
            end_date=_optional_date(data, "endDate", path),
        )

    if field == KIND_FIELD:
        _reject_unknown_keys(data, {"field", "operator", "value"}, path)
        _check_operator(operator, ("equals",), field, path)
        value = data.get("value")
        kind = KIND_ALIASES.get(value) if isinstance(value, str) else None
        if kind is None:
            raise ValidationError(
                f"{path}.value: expected one of outflow, inflow, transfer, got {value!r}"
            )
        return KindPredicate(kind)

    raise ValidationError(f"{path}.field: unknown field {data['field']!r}")


def _reject_unknown_keys(data: dict, allowed: set[str], path: str) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValidationError(f"{path}: unexpected key(s) {', '.join(unknown)}")


def _check_operator(operator: object, allowed: tuple[str, ...], field: str, path: str) -> None:
    if operator not in allowed:
        raise ValidationError(
            f"{path}.operator: {operator!r} is not valid for field {field!r} "
            f"(expected one of {', '.join(allowed)})"
        )


def _optional_number(data: dict, key: str, path: str) -> float | None:
    value = data.get(key)
    if value is None:
        return None
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{path}.{key}: expected a number, got {value!r}")
    return value


def _optional_date(data: dict, key: str, path: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not _DATE_RE.fullmatch(value):
        raise ValidationError(f"{path}.{key}: expected a YYYY-MM-DD date, got {value!r}")
    return value
