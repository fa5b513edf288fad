"""
Condition evaluation for approval entry criteria and rules.

A condition is {"field": "status", "operator": "equals", "value": "review"}.
Fields may be dotted paths across relations ("primary_corporation.name").
The string value is coerced to the type of the record's value before
comparing; a value that cannot be coerced does not match, and neither does
an unknown operator.
"""
import datetime
import logging
from decimal import Decimal, InvalidOperation

from django.db import models
from django.utils.dateparse import parse_date, parse_datetime

logger = logging.getLogger(__name__)

OPERATORS = (
    "equals",
    "not_equals",
    "contains",
    "greater_than",
    "less_than",
    "is_empty",
    "is_not_empty",
)

TRUE_STRINGS = {"true", "1", "yes", "on"}
FALSE_STRINGS = {"false", "0", "no", "off"}

_MISSING = object()


class CoercionError(ValueError):
    pass


def resolve_field(record, path: str):
    """Follow a dotted attribute path. Missing links resolve to None."""
    value = record
    for part in (path or "").split("."):
        if value is None:
            return None
        value = getattr(value, part, _MISSING)
        if value is _MISSING:
            return None
    if isinstance(value, models.Manager):
        return list(value.all())
    return value


def _is_empty(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def _coerce(expected, actual):
    """Convert the condition's value to something comparable with actual."""
    if isinstance(actual, bool):
        text = str(expected).strip().lower()
        if text in TRUE_STRINGS:
            return True
        if text in FALSE_STRINGS:
            return False
        raise CoercionError(expected)
    if isinstance(actual, (int, float, Decimal)):
        try:
            return Decimal(str(expected).strip())
        except InvalidOperation:
            raise CoercionError(expected)
    if isinstance(actual, datetime.datetime):
        parsed = parse_datetime(str(expected))
        if parsed is None:
            day = parse_date(str(expected))
            if day is None:
                raise CoercionError(expected)
            parsed = datetime.datetime.combine(day, datetime.time.min, tzinfo=actual.tzinfo)
        elif parsed.tzinfo is None and actual.tzinfo is not None:
            parsed = parsed.replace(tzinfo=actual.tzinfo)
        return parsed
    if isinstance(actual, datetime.date):
        parsed = parse_date(str(expected))
        if parsed is None:
            raise CoercionError(expected)
        return parsed
    return str(expected)


def _normalize(actual):
    if isinstance(actual, models.Model):
        return str(actual.pk)
    if isinstance(actual, (int, float)) and not isinstance(actual, bool):
        return Decimal(str(actual))
    return actual


def _equals(actual, expected) -> bool:
    if isinstance(actual, models.Model):
        return str(expected) in (str(actual.pk), str(actual))
    if isinstance(actual, list):
        return any(_equals(item, expected) for item in actual)
    if actual is None:
        return _is_empty(expected)
    coerced = _coerce(expected, actual)
    if isinstance(coerced, str):
        return str(actual).strip().lower() == coerced.strip().lower()
    return _normalize(actual) == coerced


def evaluate_condition(record, condition: dict) -> bool:
    field = condition.get("field")
    operator = condition.get("operator")
    expected = condition.get("value")
    if not field or operator not in OPERATORS:
        logger.warning("Ignoring malformed approval condition", extra={"condition": condition})
        return False

    actual = resolve_field(record, field)

    if operator == "is_empty":
        return _is_empty(actual)
    if operator == "is_not_empty":
        return not _is_empty(actual)

    try:
        if operator == "equals":
            return _equals(actual, expected)
        if operator == "not_equals":
            return not _equals(actual, expected)
        if operator == "contains":
            if actual is None or expected is None:
                return False
            if isinstance(actual, list):
                return any(_equals(item, expected) for item in actual)
            return str(expected).lower() in str(actual).lower()
        if actual is None or isinstance(actual, (bool, models.Model, list)):
            return False
        coerced = _coerce(expected, actual)
        if isinstance(coerced, str):
            return False
        if operator == "greater_than":
            return _normalize(actual) > coerced
        return _normalize(actual) < coerced
    except (CoercionError, TypeError):
        return False


def all_match(record, conditions) -> bool:
    return all(evaluate_condition(record, c) for c in conditions or [])


def matches_entry_criteria(approval, record) -> bool:
    """Every 'all' condition holds, and at least one 'any' condition holds when there are any."""
    if not all_match(record, approval.entry_criteria_all):
        return False
    any_conditions = approval.entry_criteria_any or []
    if not any_conditions:
        return True
    return any(evaluate_condition(record, c) for c in any_conditions)


def validate_conditions(conditions) -> list:
    """Return a list of error messages for a condition list (empty when valid)."""
    errors = []
    if not isinstance(conditions, list):
        return ["Conditions must be a list."]
    for index, condition in enumerate(conditions, start=1):
        if not isinstance(condition, dict):
            errors.append(f"Condition {index} must be an object.")
            continue
        if not condition.get("field"):
            errors.append(f"Condition {index} has no field.")
        if condition.get("operator") not in OPERATORS:
            errors.append(f"Condition {index} has an unknown operator '{condition.get('operator')}'.")
        elif condition["operator"] not in ("is_empty", "is_not_empty") and condition.get("value") in (None, ""):
            errors.append(f"Condition {index} needs a value.")
    return errors
