import copy

import pytest

from src.csv_agent.core.step_applier import apply_step, replay_steps
from src.csv_agent.models import (
    ConditionalFormatStep,
    Dataset,
    DedupeStep,
    ErrorStep,
    FillNAStep,
    FilterStep,
    RemoveColumnStep,
    RenameColumnStep,
    SortStep,
)


def _people():
    return Dataset(
        headers=["id", "name", "age"],
        rows=[
            {"id": 1, "name": "Al", "age": "30"},
            {"id": 1, "name": "Al", "age": "30"},
            {"id": 2, "name": "Bo", "age": "25"},
        ],
    )


ALL_STEPS = [
    FilterStep(column="age", condition="gt", value="26"),
    SortStep(columns=["age", "name"], directions=["desc"]),
    DedupeStep(keys=["id"]),
    RemoveColumnStep(column="name"),
    RenameColumnStep(old_name="name", new_name="full_name"),
    FillNAStep(column="age", value="0"),
    ConditionalFormatStep(column="age", condition="gt", value="1", color="red"),
    ErrorStep(message="nope"),
]


@pytest.mark.parametrize("step", ALL_STEPS, ids=lambda s: s.op)
def test_apply_never_mutates_input(step):
    """The input dataset is structurally identical before and after."""
    dataset = _people()
    before = copy.deepcopy(dataset.model_dump())
    result = apply_step(dataset, step)
    assert dataset.model_dump() == before
    assert result is not dataset
    for new_row, old_row in zip(result.rows, dataset.rows):
        assert new_row is not old_row


@pytest.mark.parametrize("step", [
    FilterStep(column="nonexistent", condition="equals", value="x"),
    DedupeStep(keys=["nonexistent"]),
    RemoveColumnStep(column="nonexistent"),
    RenameColumnStep(old_name="nonexistent", new_name="other"),
    FillNAStep(column="nonexistent", value="0"),
], ids=lambda s: s.op)
def test_missing_column_is_a_noop(step):
    """Steps aimed at an unknown column return an equal dataset."""
    dataset = _people()
    assert apply_step(dataset, step) == dataset


# ---------- filter ----------
def test_filter_numeric_gt():
    """age > 26 keeps the two id=1 rows."""
    result = apply_step(_people(), FilterStep(column="age", condition="gt", value="26"))
    assert [row["id"] for row in result.rows] == [1, 1]
    assert result.headers == ["id", "name", "age"]


def test_filter_is_idempotent():
    """Applying the same equals filter twice changes nothing the second time."""
    step = FilterStep(column="name", condition="equals", value="Bo")
    once = apply_step(_people(), step)
    assert apply_step(once, step) == once
    assert len(once.rows) == 1


def test_filter_drops_missing_values_even_for_not_equals():
    """Rows without a value never pass a filter."""
    dataset = Dataset(headers=["a"], rows=[{"a": None}, {}, {"a": "x"}])
    result = apply_step(dataset, FilterStep(column="a", condition="not_equals", value="y"))
    assert result.rows == [{"a": "x"}]


# ---------- sort ----------
def test_sort_is_stable_on_ties():
    """Equal keys keep their original relative order."""
    dataset = Dataset(headers=["k", "tag"], rows=[
        {"k": 2, "tag": "a"}, {"k": 1, "tag": "b"}, {"k": 2, "tag": "c"}, {"k": 1, "tag": "d"},
    ])
    result = apply_step(dataset, SortStep(columns=["k"], directions=["asc"]))
    assert [row["tag"] for row in result.rows] == ["b", "d", "a", "c"]


def test_sort_multi_key_with_directions():
    """First key descending, second ascending."""
    dataset = Dataset(headers=["g", "n"], rows=[
        {"g": "x", "n": 2}, {"g": "y", "n": 9}, {"g": "x", "n": 1}, {"g": "y", "n": 3},
    ])
    result = apply_step(dataset, SortStep(columns=["g", "n"], directions=["desc", "asc"]))
    assert [(row["g"], row["n"]) for row in result.rows] == [("y", 3), ("y", 9), ("x", 1), ("x", 2)]


def test_sort_directions_default_to_ascending():
    """Missing directions are padded with asc."""
    step = SortStep(columns=["a", "b"], directions=["desc"])
    assert [d.value for d in step.directions] == ["desc", "asc"]


def test_sort_tolerates_incomparable_values():
    """None next to numbers counts as equal instead of raising."""
    dataset = Dataset(headers=["a"], rows=[{"a": 3}, {"a": None}, {"a": 1}])
    result = apply_step(dataset, SortStep(columns=["a"]))
    assert len(result.rows) == 3


# ---------- dedupe ----------
def test_dedupe_keeps_first_occurrence_in_order():
    """Result has unique keys and is a subsequence of the input."""
    dataset = Dataset(headers=["a", "b"], rows=[
        {"a": 1, "b": "x"}, {"a": 2, "b": "y"}, {"a": 1, "b": "z"}, {"a": 3, "b": "y"}, {"a": 2, "b": "y"},
    ])
    result = apply_step(dataset, DedupeStep(keys=["a", "b"]))
    keys = [(row["a"], row["b"]) for row in result.rows]
    assert len(keys) == len(set(keys))
    assert result.rows == [dataset.rows[0], dataset.rows[1], dataset.rows[2], dataset.rows[3]]


def test_dedupe_separator_avoids_joined_collisions():
    """("a||", "b") and ("a", "||b") are different keys."""
    dataset = Dataset(headers=["x", "y"], rows=[{"x": "a||", "y": "b"}, {"x": "a", "y": "||b"}])
    assert len(apply_step(dataset, DedupeStep(keys=["x", "y"])).rows) == 2


def test_dedupe_treats_equal_numbers_as_one_key():
    """1 and 1.0 parsed from the same file are the same id."""
    dataset = Dataset(headers=["id", "v"], rows=[{"id": 1, "v": "a"}, {"id": 1.0, "v": "b"}, {"id": 1.5, "v": "c"}])
    result = apply_step(dataset, DedupeStep(keys=["id"]))
    assert [row["v"] for row in result.rows] == ["a", "c"]


def test_dedupe_with_no_keys_is_noop():
    """An empty key list would collapse everything; it is ignored instead."""
    dataset = _people()
    assert apply_step(dataset, DedupeStep(keys=[])) == dataset


# ---------- columns ----------
def test_remove_column_drops_header_and_fields():
    """The column disappears from headers and from every row."""
    result = apply_step(_people(), RemoveColumnStep(column="name"))
    assert result.headers == ["id", "age"]
    assert all("name" not in row for row in result.rows)


def test_rename_preserves_position_count_and_values():
    """Renamed column keeps its slot and every value."""
    dataset = _people()
    result = apply_step(dataset, RenameColumnStep(old_name="name", new_name="full_name"))
    assert result.headers == ["id", "full_name", "age"]
    assert len(result.rows) == len(dataset.rows)
    for new_row, old_row in zip(result.rows, dataset.rows):
        assert new_row["full_name"] == old_row["name"]
        assert "name" not in new_row


def test_rename_onto_existing_column_is_noop():
    """Headers must stay unique."""
    dataset = _people()
    assert apply_step(dataset, RenameColumnStep(old_name="name", new_name="age")) == dataset


# ---------- fill_na ----------
def test_fill_na_coerces_numeric_fill_value():
    """None, empty text and absent keys are filled; numbers become numbers."""
    dataset = Dataset(headers=["a", "b"], rows=[{"a": None, "b": 1}, {"a": "", "b": 2}, {"b": 3}, {"a": 0, "b": 4}])
    result = apply_step(dataset, FillNAStep(column="a", value="7"))
    assert [row["a"] for row in result.rows] == [7, 7, 7, 0]


def test_fill_na_text_value():
    """Non-numeric fill values are used as given."""
    dataset = Dataset(headers=["a"], rows=[{"a": None}, {"a": "x"}])
    result = apply_step(dataset, FillNAStep(column="a", value="unknown"))
    assert [row["a"] for row in result.rows] == ["unknown", "x"]


# ---------- identity steps ----------
def test_error_and_format_steps_leave_data_alone():
    """Neither step transforms the dataset."""
    dataset = _people()
    assert apply_step(dataset, ErrorStep(message="no")) == dataset
    assert apply_step(dataset, ConditionalFormatStep(column="age", condition="gt", value="1", color="red")) == dataset


def test_unknown_operation_is_identity():
    """Objects with an unsupported op are logged and ignored."""
    class Pivot:
        op = "pivot"

    dataset = _people()
    assert apply_step(dataset, Pivot()) == dataset


def test_replay_applies_in_order():
    """Replaying a log equals applying each step in turn."""
    steps = [DedupeStep(keys=["id"]), RenameColumnStep(old_name="age", new_name="years")]
    result = replay_steps(_people(), steps)
    assert result.headers == ["id", "name", "years"]
    assert len(result.rows) == 2
