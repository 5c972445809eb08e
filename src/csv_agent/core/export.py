"""
Export the committed state: the dataset as CSV and the step log as JSON.

The step log together with the originally loaded file is enough to rebuild
the session deterministically via `replay_steps`.
"""

import json
from typing import List, Sequence

import pandas as pd

from src.csv_agent.core.step_applier import replay_steps
from src.csv_agent.core.values import is_missing
from src.csv_agent.models import STEP_LIST_ADAPTER, Dataset, Step

__all__ = ["dataset_to_csv", "steps_to_json", "steps_from_json", "replay_steps"]


def _export_cell(value):
    if is_missing(value):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def dataset_to_csv(dataset: Dataset) -> str:
    records = [
        {header: _export_cell(row.get(header)) for header in dataset.headers}
        for row in dataset.rows
    ]
    df = pd.DataFrame(records, columns=dataset.headers, dtype=object)
    return df.to_csv(index=False, lineterminator="\n")


def steps_to_json(steps: Sequence[Step]) -> str:
    payload = {"steps": [step.model_dump(mode="json") for step in steps]}
    return json.dumps(payload, indent=2)


def steps_from_json(document: str) -> List[Step]:
    """Inverse of steps_to_json. Raises pydantic.ValidationError on bad entries."""
    payload = json.loads(document)
    return STEP_LIST_ADAPTER.validate_python(payload.get("steps", []))
