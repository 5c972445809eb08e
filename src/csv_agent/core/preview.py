"""
preview.py
─────────────────────────────────────────────────────────────────────────────
Dry-run a step and describe its effect without committing anything.

 - Row count changed  -> multiset difference on whole rows: removed / added
 - Row count the same -> rows aligned by position; a pure reorder (sort)
                         modifies nothing, anything else is counted as
                         modified row by row
 - Nothing to show    -> first rows of the result, tagged unmodified
─────────────────────────────────────────────────────────────────────────────
"""

from collections import Counter
from typing import Any, List, Tuple

from src.csv_agent.core.step_applier import apply_step
from src.csv_agent.models import (
    Dataset,
    PreviewDiff,
    PreviewResult,
    Row,
    RowStatus,
    SampleRow,
)
from src.csv_agent.utils.logger import get_logger

logger = get_logger(__name__)

SAMPLE_LIMIT = 3


def _row_key(row: Row) -> Tuple:
    """Hashable whole-row identity. Keys are unique, so values are never compared."""
    return tuple(sorted(row.items(), key=lambda item: item[0]))


def _multiset_difference(left: List[Row], right: List[Row]) -> List[Row]:
    """Rows of `left` (in order) that have no remaining counterpart in `right`."""
    remaining = Counter(_row_key(row) for row in right)
    missing = []
    for row in left:
        key = _row_key(row)
        if remaining[key] > 0:
            remaining[key] -= 1
        else:
            missing.append(row)
    return missing


def _aligned_values(
    original: Dataset, processed: Dataset
) -> Tuple[List[Tuple[Any, ...]], List[Tuple[Any, ...]]]:
    """
    Project both row lists onto comparable value tuples.

    With the same number of headers, columns are paired by position so a rename
    is not a modification. Otherwise only the column names both sides share are
    compared, so a removed column is not one either.
    """
    if len(original.headers) == len(processed.headers):
        before_cols, after_cols = list(original.headers), list(processed.headers)
    else:
        shared = [h for h in original.headers if h in processed.headers]
        before_cols, after_cols = shared, shared

    before = [tuple(_value_key(row.get(c)) for c in before_cols) for row in original.rows]
    after = [tuple(_value_key(row.get(c)) for c in after_cols) for row in processed.rows]
    return before, after


def _value_key(value: Any) -> Tuple[str, Any]:
    # Type name keeps 1 and True (and 1 and "1") apart.
    return (type(value).__name__, value)


def _tag(rows: List[Row], status: RowStatus) -> List[SampleRow]:
    return [SampleRow(status=status, row=dict(row)) for row in rows[:SAMPLE_LIMIT]]


def preview_step(dataset: Dataset, step: Any) -> PreviewResult:
    """
    Compute what `step` would do to `dataset` without committing it.

    Returns:
        PreviewResult with row-count diff and a bounded sample of affected rows.
    """
    processed = apply_step(dataset, step)
    old_count, new_count = len(dataset.rows), len(processed.rows)

    rows_added = max(0, new_count - old_count)
    rows_removed = max(0, old_count - new_count)
    rows_modified = 0
    sample: List[SampleRow] = []

    if old_count != new_count:
        sample += _tag(_multiset_difference(dataset.rows, processed.rows), RowStatus.REMOVED)
        sample += _tag(_multiset_difference(processed.rows, dataset.rows), RowStatus.ADDED)
    else:
        before, after = _aligned_values(dataset, processed)
        reordered = Counter(before) == Counter(after)
        if not reordered:
            changed = [i for i, (b, a) in enumerate(zip(before, after)) if b != a]
            rows_modified = len(changed)
            sample += _tag([processed.rows[i] for i in changed], RowStatus.MODIFIED)

    if not sample and processed.rows:
        sample = _tag(processed.rows, RowStatus.UNMODIFIED)

    diff = PreviewDiff(
        rows_added=rows_added,
        rows_removed=rows_removed,
        rows_modified=rows_modified,
    )
    logger.info(
        f"Preview for '{getattr(step, 'op', '?')}': +{rows_added} / -{rows_removed} / ~{rows_modified}"
    )
    return PreviewResult(step=step, diff=diff, sample=sample)
