from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

# A single cell: text, number, boolean, date-like text, or missing.
Scalar = Optional[Union[bool, int, float, str]]
Row = Dict[str, Any]


class ColumnType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    BOOLEAN = "boolean"


class Condition(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class FormattingColor(str, Enum):
    RED = "red"
    GREEN = "green"
    BLUE = "blue"
    YELLOW = "yellow"
    PURPLE = "purple"


class AgentStatus(str, Enum):
    IDLE = "idle"
    INTERPRETING = "interpreting"
    PREVIEWING = "previewing"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    APPLYING = "applying"


class RowStatus(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"
    UNMODIFIED = "unmodified"


class ColumnInfo(BaseModel):
    """Metadata for a single column. The type is fixed at load time."""
    model_config = ConfigDict(frozen=True)

    type: ColumnType = ColumnType.TEXT
    description: Optional[str] = None


ColumnSchema = Dict[str, ColumnInfo]


class Dataset(BaseModel):
    """
    An ordered set of headers plus rows keyed by header.
    Rows may omit columns but never carry a key outside `headers`.
    """
    model_config = ConfigDict(frozen=True)

    headers: List[str] = Field(default_factory=list)
    rows: List[Row] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_shape(self) -> "Dataset":
        if len(set(self.headers)) != len(self.headers):
            raise ValueError("Dataset headers must be unique.")
        known = set(self.headers)
        for index, row in enumerate(self.rows):
            extra = set(row) - known
            if extra:
                raise ValueError(f"Row {index} references unknown columns: {sorted(extra)}")
        return self


class DatasetContext(BaseModel):
    """
    Represents a freshly loaded dataset.
    Contains the rows and the schema inferred at load time.
    """
    dataset: Dataset
    columns: ColumnSchema = Field(default_factory=dict)
    filename: str


# ---------------------------------------------------------------------------
# STEPS
# One model per operation; the `op` field discriminates the union.
# ---------------------------------------------------------------------------

class _StepBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    explanation: str = ""


class FilterStep(_StepBase):
    op: Literal["filter"] = "filter"
    column: str
    condition: Condition
    value: Scalar = None


class SortStep(_StepBase):
    op: Literal["sort"] = "sort"
    columns: List[str]
    directions: List[SortDirection] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _align_directions(cls, data):
        if not isinstance(data, dict):
            return data
        columns = data.get("columns") or []
        directions = list(data.get("directions") or [])
        if len(directions) > len(columns):
            raise ValueError("Sort step has more directions than columns.")
        directions += [SortDirection.ASC] * (len(columns) - len(directions))
        return {**data, "directions": directions}


class DedupeStep(_StepBase):
    op: Literal["dedupe"] = "dedupe"
    keys: List[str]


class RemoveColumnStep(_StepBase):
    op: Literal["remove_column"] = "remove_column"
    column: str


class RenameColumnStep(_StepBase):
    op: Literal["rename_column"] = "rename_column"
    old_name: str
    new_name: str


class FillNAStep(_StepBase):
    op: Literal["fill_na"] = "fill_na"
    column: str
    value: Scalar = None


class ConditionalFormatStep(_StepBase):
    op: Literal["conditional_format"] = "conditional_format"
    column: str
    condition: Condition
    value: Scalar = None
    color: FormattingColor


class ErrorStep(_StepBase):
    op: Literal["error"] = "error"
    message: str
    suggestions: List[str] = Field(default_factory=list)

    @field_validator("suggestions", mode="before")
    @classmethod
    def _drop_blank_suggestions(cls, v):
        if v is None:
            return []
        return [s for s in v if isinstance(s, str) and s.strip()]


Step = Annotated[
    Union[
        FilterStep,
        SortStep,
        DedupeStep,
        RemoveColumnStep,
        RenameColumnStep,
        FillNAStep,
        ConditionalFormatStep,
        ErrorStep,
    ],
    Field(discriminator="op"),
]

STEP_ADAPTER = TypeAdapter(Step)
STEP_LIST_ADAPTER = TypeAdapter(List[Step])
KNOWN_OPERATIONS = (
    "filter", "sort", "dedupe", "remove_column",
    "rename_column", "fill_na", "conditional_format", "error",
)


def parse_step(payload: Dict[str, Any]) -> Step:
    """Validate a raw mapping into one of the Step models.

    Raises pydantic.ValidationError for unknown ops or malformed fields.
    """
    return STEP_ADAPTER.validate_python(payload)


# ---------------------------------------------------------------------------
# PREVIEW / HISTORY / DISPLAY
# ---------------------------------------------------------------------------

class PreviewDiff(BaseModel):
    model_config = ConfigDict(frozen=True)

    rows_added: int = 0
    rows_removed: int = 0
    rows_modified: int = 0


class SampleRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: RowStatus
    row: Row


class PreviewResult(BaseModel):
    """Disposable description of what a step would do. Never persisted."""
    model_config = ConfigDict(frozen=True)

    step: Step
    diff: PreviewDiff
    sample: List[SampleRow] = Field(default_factory=list)


class HistoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    dataset: Dataset
    steps: Tuple[Step, ...] = ()


class History(BaseModel):
    model_config = ConfigDict(frozen=True)

    entries: Tuple[HistoryEntry, ...] = ()


class ConditionalFormatRule(BaseModel):
    """Display-only predicate-to-color mapping. Never touches the data."""
    model_config = ConfigDict(frozen=True)

    id: str
    column: str
    condition: Condition
    value: Scalar = None
    color: FormattingColor


class SortConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    direction: SortDirection = SortDirection.ASC


class Message(BaseModel):
    """One entry of the chat-style conversation log kept by the session."""
    model_config = ConfigDict(frozen=True)

    id: str
    sender: Literal["user", "agent"]
    content: str
    suggestions: List[str] = Field(default_factory=list)
