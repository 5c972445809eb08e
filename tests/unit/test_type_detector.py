from src.csv_agent.core.type_detector import SAMPLE_SIZE, build_schema, infer_column_types
from src.csv_agent.models import ColumnType


def test_empty_value_does_not_disqualify_number():
    """Blank cells are skipped while scanning."""
    rows = [{"a": "1"}, {"a": "2"}, {"a": ""}]
    assert infer_column_types(rows, ["a"]) == {"a": ColumnType.NUMBER}


def test_column_without_values_is_text():
    """No sampled values at all falls back to text."""
    rows = [{"a": None}, {"a": "  "}, {}]
    assert infer_column_types(rows, ["a"]) == {"a": ColumnType.TEXT}


def test_no_rows_is_text():
    """An empty file still yields a type for every header."""
    assert infer_column_types([], ["a", "b"]) == {"a": ColumnType.TEXT, "b": ColumnType.TEXT}


def test_booleans_win_over_numbers():
    """true/false text is boolean, never misread as 1/0."""
    rows = [{"flag": "TRUE"}, {"flag": "false"}, {"flag": True}]
    assert infer_column_types(rows, ["flag"])["flag"] == ColumnType.BOOLEAN


def test_mixed_boolean_and_number_is_text():
    """A boolean next to a number disqualifies both."""
    rows = [{"x": "true"}, {"x": "3"}]
    assert infer_column_types(rows, ["x"])["x"] == ColumnType.TEXT


def test_numbers_accept_native_and_text_values():
    """Ints, floats and numeric text all count as numbers."""
    rows = [{"n": 1}, {"n": 2.5}, {"n": "-3e2"}, {"n": " 4 "}]
    assert infer_column_types(rows, ["n"])["n"] == ColumnType.NUMBER


def test_non_finite_is_not_a_number():
    """inf / nan text is not a finite numeral."""
    rows = [{"n": "1"}, {"n": "inf"}]
    assert infer_column_types(rows, ["n"])["n"] == ColumnType.TEXT


def test_dates_with_dash_and_slash():
    """YYYY-M-D and YYYY/MM/DD both count as dates."""
    rows = [{"d": "2024-1-5"}, {"d": "2023/12/31"}, {"d": "2024-02-29 10:00"}]
    assert infer_column_types(rows, ["d"])["d"] == ColumnType.DATE


def test_impossible_calendar_date_is_text():
    """Pattern matches but the date does not exist."""
    rows = [{"d": "2023-02-30"}]
    assert infer_column_types(rows, ["d"])["d"] == ColumnType.TEXT


def test_day_first_dates_are_text():
    """Only year-first layouts are recognised."""
    rows = [{"d": "05/01/2024"}]
    assert infer_column_types(rows, ["d"])["d"] == ColumnType.TEXT


def test_only_the_sample_is_scanned():
    """Values past the sample window do not affect the result."""
    rows = [{"a": str(i)} for i in range(SAMPLE_SIZE)] + [{"a": "not a number"}]
    assert infer_column_types(rows, ["a"])["a"] == ColumnType.NUMBER


def test_build_schema_has_no_descriptions():
    """Schema entries start without a description and keep header order."""
    schema = build_schema([{"a": "x", "b": "1"}], ["a", "b"])
    assert list(schema) == ["a", "b"]
    assert schema["b"].type == ColumnType.NUMBER
    assert schema["a"].description is None
