from typing import Any

from src.csv_agent.core.values import is_missing, parse_number, to_text


def _comparable(value: Any) -> Any:
    number = parse_number(value)
    if number is not None:
        return number
    if isinstance(value, bool):
        return to_text(value)
    return value


def check_condition(value: Any, condition: Any, operand: Any) -> bool:
    """
    Evaluate `value <condition> operand` for a single cell.

    Numeric coercion happens per side: each side becomes a number only if it
    parses as one. A missing cell satisfies nothing, not even not_equals.
    Unknown conditions and incomparable types evaluate to False.
    """
    if is_missing(value):
        return False

    tag = getattr(condition, "value", condition)

    if tag in ("contains", "not_contains"):
        found = to_text(operand).lower() in to_text(value).lower()
        return found if tag == "contains" else not found

    left = _comparable(value)
    right = _comparable(operand)

    try:
        if tag == "equals":
            return left == right
        if tag == "not_equals":
            return left != right
        if tag == "gt":
            return left > right
        if tag == "lt":
            return left < right
        if tag == "gte":
            return left >= right
        if tag == "lte":
            return left <= right
    except TypeError:
        return False
    return False
