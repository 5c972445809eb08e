import locale
import unicodedata
from functools import cmp_to_key
from typing import Any, List, Optional

from src.csv_agent.core.values import as_bool, is_missing, parse_number, parse_timestamp, to_text
from src.csv_agent.models import ColumnSchema, ColumnType, Row, SortConfig, SortDirection
from src.csv_agent.utils.logger import get_logger

logger = get_logger(__name__)


def _sign(number: float) -> int:
    if number > 0:
        return 1
    if number < 0:
        return -1
    return 0


def _compare_numbers(a: Any, b: Any) -> int:
    left, right = parse_number(a), parse_number(b)
    if left is None or right is None:
        return 0
    return _sign(left - right)


def _compare_dates(a: Any, b: Any) -> int:
    left, right = parse_timestamp(a), parse_timestamp(b)
    if left is None or right is None:
        return 0
    return _sign(left.value - right.value)


def _compare_booleans(a: Any, b: Any) -> int:
    left, right = as_bool(a), as_bool(b)
    if left == right:
        return 0
    # true first
    return -1 if left else 1


def use_system_collation() -> bool:
    """Switch LC_COLLATE to the environment's locale. False when it is not installed."""
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        logger.warning(f"System collation unavailable, keeping '{locale.setlocale(locale.LC_COLLATE)}': {e}")
        return False
    logger.info(f"Text collation locale: {locale.setlocale(locale.LC_COLLATE)}")
    return True


def _base_letters(text: str) -> str:
    # "Éclair" -> "eclair"
    decomposed = unicodedata.normalize("NFKD", text.casefold())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _compare_text(a: Any, b: Any) -> int:
    left, right = to_text(a), to_text(b)
    for l_key, r_key in (
        (_base_letters(left), _base_letters(right)),
        (left.casefold(), right.casefold()),
        (left, right),
    ):
        result = locale.strcoll(l_key, r_key)
        if result != 0:
            return _sign(result)
    return 0


_COMPARATORS = {
    ColumnType.NUMBER: _compare_numbers,
    ColumnType.DATE: _compare_dates,
    ColumnType.BOOLEAN: _compare_booleans,
    ColumnType.TEXT: _compare_text,
}


def compare_rows(
    row_a: Row,
    row_b: Row,
    key: str,
    direction: SortDirection,
    column_type: Optional[ColumnType],
) -> int:
    """
    Type-aware comparison used for the on-screen ordering.

    Rows missing a value for `key` always go to the end, whatever the direction.
    """
    a, b = row_a.get(key), row_b.get(key)
    if is_missing(a) and is_missing(b):
        return 0
    if is_missing(a):
        return 1
    if is_missing(b):
        return -1

    comparator = _COMPARATORS.get(column_type, _compare_text)
    order = -1 if direction == SortDirection.DESC else 1
    return comparator(a, b) * order


def sort_rows(rows: List[Row], config: Optional[SortConfig], schema: ColumnSchema) -> List[Row]:
    """Return the rows in display order. The input list is left as it was."""
    if config is None or not rows:
        return list(rows)
    info = schema.get(config.key)
    column_type = info.type if info else ColumnType.TEXT
    return sorted(
        rows,
        key=cmp_to_key(lambda a, b: compare_rows(a, b, config.key, config.direction, column_type)),
    )


def next_sort_config(current: Optional[SortConfig], key: str) -> Optional[SortConfig]:
    """Header click cycle: ascending, then descending, then unsorted."""
    if current is None or current.key != key:
        return SortConfig(key=key, direction=SortDirection.ASC)
    if current.direction == SortDirection.ASC:
        return SortConfig(key=key, direction=SortDirection.DESC)
    return None
