"""
Linear undo history.

Entry i holds the dataset after the first i committed steps, so
len(entries) == len(steps) + 1 at all times. There is no redo: committing
after an undo simply grows the history again from the truncated point.
"""

from typing import Sequence

from src.csv_agent.models import Dataset, History, HistoryEntry
from src.csv_agent.utils.exceptions import HistoryError
from src.csv_agent.utils.logger import get_logger

logger = get_logger(__name__)


def start_history(dataset: Dataset) -> History:
    return History(entries=(HistoryEntry(dataset=dataset, steps=()),))


def current_entry(history: History) -> HistoryEntry:
    if not history.entries:
        raise HistoryError("History is empty; load a dataset first.")
    return history.entries[-1]


def can_undo(history: History) -> bool:
    return len(history.entries) > 1


def commit(history: History, dataset: Dataset, steps: Sequence) -> History:
    """Append the state reached after `steps`; `steps` is the full step log so far."""
    if len(steps) != len(history.entries):
        raise HistoryError(
            f"Cannot commit {len(steps)} steps on top of {len(history.entries)} history entries."
        )
    entry = HistoryEntry(dataset=dataset, steps=tuple(steps))
    logger.info(f"Committed step {len(steps)}: {getattr(steps[-1], 'op', '?')}")
    return History(entries=history.entries + (entry,))


def undo(history: History) -> History:
    """Drop the newest entry. With only the load state left this is a no-op."""
    if not can_undo(history):
        logger.info("Undo ignored: nothing to undo")
        return history
    return History(entries=history.entries[:-1])
