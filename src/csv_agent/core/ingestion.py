import pandas as pd
import io
import csv
from collections import Counter
from typing import Any, List

from pydantic import ValidationError

from src.csv_agent.utils.logger import get_logger
from src.csv_agent.utils.exceptions import FileProcessingError
from src.csv_agent.core.type_detector import build_schema
from src.csv_agent.core.values import as_bool, is_missing, parse_number
from src.csv_agent.models import Dataset, DatasetContext
from src.csv_agent.config import settings

logger = get_logger(__name__)


def _coerce_cell(text: Any) -> Any:
    """Dynamic typing per cell: numerals -> int/float, true/false -> bool, '' -> None."""
    if not isinstance(text, str):
        # short rows come back as NaN
        return None if is_missing(text) else text
    if text == "":
        return None
    boolean = as_bool(text)
    if boolean is not None:
        return boolean
    number = parse_number(text)
    if number is not None:
        return number
    return text


def ingest_file(file_content: bytes, filename: str) -> DatasetContext:
    """
    Parse an uploaded delimited file into a Dataset and infer its column types.

    Raises:
        FileProcessingError: If the file is too large, empty or unparseable.
    """
    logger.info(f"Starting ingestion for file: {filename}")

    # 1. Validate File Size
    size_mb = len(file_content) / (1024 * 1024)
    if size_mb > settings.MAX_UPLOAD_SIZE_MB:
        raise FileProcessingError(f"File exceeds {settings.MAX_UPLOAD_SIZE_MB}MB limit.")

    if not file_content.strip():
        raise FileProcessingError("The uploaded file contains no data.")

    try:
        # 2. Detect Separator
        try:
            decoded_chunk = file_content[:1024].decode('utf-8')
            delimiter = csv.Sniffer().sniff(decoded_chunk, delimiters=",;\t|").delimiter
        except (csv.Error, UnicodeDecodeError):
            delimiter = ','
        logger.info(f"Detected delimiter: '{delimiter}'")

        # 3. Read everything as text; typing happens per cell below
        df = pd.read_csv(
            io.BytesIO(file_content),
            sep=delimiter,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            on_bad_lines='warn',
            encoding='utf-8',
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError, ValueError) as e:
        logger.error(f"Error during ingestion: {str(e)}")
        raise FileProcessingError(f"Failed to parse CSV: {str(e)}")

    # 4. Basic Validation
    headers = _clean_headers(df.columns)
    df.columns = headers

    rows = [
        {header: _coerce_cell(value) for header, value in record.items()}
        for record in df.to_dict(orient="records")
    ]
    try:
        dataset = Dataset(headers=headers, rows=rows)
    except ValidationError as e:
        logger.error(f"Rejected parsed file: {e.error_count()} validation error(s)")
        raise FileProcessingError("The uploaded file could not be turned into a table.")

    # 5. Extract Schema
    schema = build_schema(rows, headers)

    logger.info(f"Ingestion successful. {len(rows)} rows x {len(headers)} columns")

    return DatasetContext(dataset=dataset, columns=schema, filename=filename)


def _clean_headers(columns) -> List[str]:
    """Strip header whitespace; blank or colliding names are rejected."""
    headers = [str(c).strip() for c in columns]
    if not headers:
        raise FileProcessingError("The uploaded file has no header row.")
    if any(not header for header in headers):
        raise FileProcessingError("The uploaded file has a blank column name.")
    counts = Counter(headers)
    duplicates = [name for name, count in counts.items() if count > 1]
    if duplicates:
        raise FileProcessingError(f"Duplicate column names: {', '.join(duplicates)}")
    return headers
