"""
step_applier.py
─────────────────────────────────────────────────────────────────────────────
Pure transformations: Dataset + Step -> new Dataset.

Invalid targets (unknown columns, empty key lists, clashing names) are
no-ops rather than errors, so a preview of such a step simply shows no
change. The input dataset is never mutated.
─────────────────────────────────────────────────────────────────────────────
"""

from functools import cmp_to_key
from typing import Any, Callable, Dict, List

from src.csv_agent.core.conditions import check_condition
from src.csv_agent.core.values import is_missing, parse_number, to_text
from src.csv_agent.models import (
    ConditionalFormatStep,
    Dataset,
    DedupeStep,
    ErrorStep,
    FillNAStep,
    FilterStep,
    RemoveColumnStep,
    RenameColumnStep,
    Row,
    SortDirection,
    SortStep,
)
from src.csv_agent.utils.logger import get_logger

logger = get_logger(__name__)

# ASCII unit separator; does not occur in ordinary CSV text.
DEDUPE_KEY_SEPARATOR = "\x1f"


def _copy_rows(dataset: Dataset) -> List[Row]:
    return [dict(row) for row in dataset.rows]


def _unchanged(dataset: Dataset) -> Dataset:
    return Dataset(headers=list(dataset.headers), rows=_copy_rows(dataset))


# ── filter ────────────────────────────────────────────────────────────────────
def _apply_filter(dataset: Dataset, step: FilterStep) -> Dataset:
    if step.column not in dataset.headers:
        logger.info(f"Filter skipped: column '{step.column}' not found")
        return _unchanged(dataset)
    rows = [
        dict(row) for row in dataset.rows
        if check_condition(row.get(step.column), step.condition, step.value)
    ]
    return Dataset(headers=list(dataset.headers), rows=rows)


# ── sort ──────────────────────────────────────────────────────────────────────
def _primitive_compare(a: Any, b: Any) -> int:
    """Plain < / > ordering; pairs Python cannot order count as equal."""
    try:
        if a < b:
            return -1
        if a > b:
            return 1
    except TypeError:
        pass
    return 0


def _apply_sort(dataset: Dataset, step: SortStep) -> Dataset:
    keys = list(zip(step.columns, step.directions))

    def compare(row_a: Row, row_b: Row) -> int:
        for column, direction in keys:
            order = -1 if direction == SortDirection.DESC else 1
            result = _primitive_compare(row_a.get(column), row_b.get(column))
            if result:
                return result * order
        return 0

    # sorted() is stable, so ties keep their original relative order.
    rows = sorted(_copy_rows(dataset), key=cmp_to_key(compare))
    return Dataset(headers=list(dataset.headers), rows=rows)


# ── dedupe ────────────────────────────────────────────────────────────────────
def _apply_dedupe(dataset: Dataset, step: DedupeStep) -> Dataset:
    missing = [key for key in step.keys if key not in dataset.headers]
    if not step.keys or missing:
        logger.info(f"Dedupe skipped: keys={step.keys}, missing={missing}")
        return _unchanged(dataset)

    seen = set()
    rows = []
    for row in dataset.rows:
        key = DEDUPE_KEY_SEPARATOR.join(to_text(row.get(k)) for k in step.keys)
        if key in seen:
            continue
        seen.add(key)
        rows.append(dict(row))
    return Dataset(headers=list(dataset.headers), rows=rows)


# ── columns ───────────────────────────────────────────────────────────────────
def _apply_remove_column(dataset: Dataset, step: RemoveColumnStep) -> Dataset:
    if step.column not in dataset.headers:
        return _unchanged(dataset)
    headers = [h for h in dataset.headers if h != step.column]
    rows = [{k: v for k, v in row.items() if k != step.column} for row in dataset.rows]
    return Dataset(headers=headers, rows=rows)


def _apply_rename_column(dataset: Dataset, step: RenameColumnStep) -> Dataset:
    old, new = step.old_name, step.new_name
    if old not in dataset.headers or old == new or new in dataset.headers:
        logger.info(f"Rename skipped: '{old}' -> '{new}'")
        return _unchanged(dataset)

    headers = [new if h == old else h for h in dataset.headers]
    rows = []
    for row in dataset.rows:
        renamed = {}
        for key, value in row.items():
            renamed[new if key == old else key] = value
        rows.append(renamed)
    return Dataset(headers=headers, rows=rows)


# ── fill_na ───────────────────────────────────────────────────────────────────
def _apply_fill_na(dataset: Dataset, step: FillNAStep) -> Dataset:
    if step.column not in dataset.headers:
        return _unchanged(dataset)

    number = parse_number(step.value)
    fill_value = number if number is not None else step.value

    rows = []
    for row in dataset.rows:
        copied = dict(row)
        current = copied.get(step.column)
        if is_missing(current) or current == "":
            copied[step.column] = fill_value
        rows.append(copied)
    return Dataset(headers=list(dataset.headers), rows=rows)


# ── display-only / no-op steps ────────────────────────────────────────────────
def _apply_conditional_format(dataset: Dataset, step: ConditionalFormatStep) -> Dataset:
    logger.debug("Conditional format step reached the applier; formatting never changes data")
    return _unchanged(dataset)


def _apply_error(dataset: Dataset, step: ErrorStep) -> Dataset:
    return _unchanged(dataset)


_HANDLERS: Dict[str, Callable[[Dataset, Any], Dataset]] = {
    "filter": _apply_filter,
    "sort": _apply_sort,
    "dedupe": _apply_dedupe,
    "remove_column": _apply_remove_column,
    "rename_column": _apply_rename_column,
    "fill_na": _apply_fill_na,
    "conditional_format": _apply_conditional_format,
    "error": _apply_error,
}


def apply_step(dataset: Dataset, step: Any) -> Dataset:
    """
    Apply a single step and return a new, structurally independent Dataset.

    Args:
        dataset: The committed dataset. Left untouched.
        step: Any Step model.

    Returns:
        The transformed dataset, or an equal copy when the step does not apply.
    """
    op = getattr(step, "op", None)
    handler = _HANDLERS.get(op)
    if handler is None:
        logger.warning(f"Unknown operation: {op!r}. Leaving dataset unchanged.")
        return _unchanged(dataset)
    return handler(dataset, step)


def replay_steps(dataset: Dataset, steps) -> Dataset:
    """Apply a step log in order, starting from `dataset`."""
    for step in steps:
        dataset = apply_step(dataset, step)
    return dataset
