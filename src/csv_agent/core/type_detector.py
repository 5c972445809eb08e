from typing import Any, Dict, List, Sequence

from src.csv_agent.core.values import is_blank, is_boolean_text, parse_calendar_date, parse_number
from src.csv_agent.models import ColumnInfo, ColumnSchema, ColumnType
from src.csv_agent.utils.logger import get_logger

logger = get_logger(__name__)

# Only the head of the file is scanned; large uploads would otherwise stall the load.
SAMPLE_SIZE = 100


def infer_column_types(rows: Sequence[Dict[str, Any]], headers: List[str]) -> Dict[str, ColumnType]:
    """
    Classify each column as boolean, number, date or text from a sample of rows.

    Empty cells are skipped and never disqualify a type. Every candidate type is
    tracked independently during the scan; the first one still standing in the
    order boolean -> number -> date wins, otherwise the column is text.
    """
    sample = rows[:SAMPLE_SIZE]
    column_types: Dict[str, ColumnType] = {}

    for header in headers:
        all_boolean = all_number = all_date = True
        has_values = False

        for row in sample:
            value = row.get(header)
            if is_blank(value):
                continue
            has_values = True
            if all_boolean and not is_boolean_text(value):
                all_boolean = False
            if all_number and (is_boolean_text(value) or parse_number(value) is None):
                all_number = False
            if all_date and parse_calendar_date(value) is None:
                all_date = False

        if not has_values:
            column_types[header] = ColumnType.TEXT
        elif all_boolean:
            column_types[header] = ColumnType.BOOLEAN
        elif all_number:
            column_types[header] = ColumnType.NUMBER
        elif all_date:
            column_types[header] = ColumnType.DATE
        else:
            column_types[header] = ColumnType.TEXT

    logger.debug(f"Inferred column types from {len(sample)} sampled rows: {column_types}")
    return column_types


def build_schema(rows: Sequence[Dict[str, Any]], headers: List[str]) -> ColumnSchema:
    """Wrap inferred types into a ColumnSchema with no descriptions yet."""
    types = infer_column_types(rows, headers)
    return {header: ColumnInfo(type=types.get(header, ColumnType.TEXT)) for header in headers}
