from src.csv_agent.core.preview import SAMPLE_LIMIT, preview_step
from src.csv_agent.models import (
    Dataset,
    DedupeStep,
    ErrorStep,
    FillNAStep,
    FilterStep,
    RemoveColumnStep,
    RenameColumnStep,
    RowStatus,
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


def test_dedupe_preview_counts_and_samples_the_duplicate():
    """One duplicate removed; it shows up as the removed sample row."""
    result = preview_step(_people(), DedupeStep(keys=["id"]))
    assert result.diff.rows_removed == 1
    assert result.diff.rows_added == 0
    assert result.diff.rows_modified == 0
    assert [(s.status, s.row) for s in result.sample] == [
        (RowStatus.REMOVED, {"id": 1, "name": "Al", "age": "30"}),
    ]


def test_filter_preview_samples_removed_rows():
    """age > 26 removes Bo."""
    result = preview_step(_people(), FilterStep(column="age", condition="gt", value="26"))
    assert result.diff.rows_removed == 1
    assert result.sample[0].status == RowStatus.REMOVED
    assert result.sample[0].row["name"] == "Bo"


def test_removed_sample_is_capped():
    """No more than three removed rows are sampled."""
    dataset = Dataset(headers=["n"], rows=[{"n": i} for i in range(10)])
    result = preview_step(dataset, FilterStep(column="n", condition="lt", value="2"))
    assert result.diff.rows_removed == 8
    assert len(result.sample) == SAMPLE_LIMIT
    assert all(s.status == RowStatus.REMOVED for s in result.sample)


def test_sort_preview_falls_back_to_unmodified_sample():
    """A pure reorder modifies nothing and shows the first processed rows."""
    result = preview_step(_people(), SortStep(columns=["age"]))
    assert result.diff.rows_modified == 0
    assert [s.status for s in result.sample] == [RowStatus.UNMODIFIED] * 3
    assert result.sample[0].row["age"] == "25"


def test_rename_and_remove_are_not_modifications():
    """Structural changes that keep row values are reported as unmodified."""
    for step in (RenameColumnStep(old_name="name", new_name="who"), RemoveColumnStep(column="age")):
        result = preview_step(_people(), step)
        assert result.diff.rows_modified == 0
        assert all(s.status == RowStatus.UNMODIFIED for s in result.sample)


def test_fill_na_preview_reports_modified_rows():
    """In-place edits are found by positional comparison."""
    dataset = Dataset(headers=["a"], rows=[{"a": None}, {"a": 1}, {"a": ""}])
    result = preview_step(dataset, FillNAStep(column="a", value="0"))
    assert result.diff.rows_modified == 2
    assert result.diff.rows_added == result.diff.rows_removed == 0
    assert [(s.status, s.row["a"]) for s in result.sample] == [
        (RowStatus.MODIFIED, 0),
        (RowStatus.MODIFIED, 0),
    ]


def test_noop_step_previews_zero_effect():
    """Invalid targets show up as an empty diff."""
    result = preview_step(_people(), FilterStep(column="missing", condition="equals", value="1"))
    assert result.diff.model_dump() == {"rows_added": 0, "rows_removed": 0, "rows_modified": 0}


def test_filtering_everything_samples_removed_rows():
    """Filtering everything out samples the removed rows only."""
    result = preview_step(_people(), FilterStep(column="name", condition="equals", value="Zed"))
    assert result.diff.rows_removed == 3
    assert len(result.sample) == 3


def test_preview_does_not_touch_input_and_keeps_step():
    """Preview is a dry run that carries the step along."""
    dataset = _people()
    step = ErrorStep(message="nothing to do")
    result = preview_step(dataset, step)
    assert result.step == step
    assert dataset == _people()
