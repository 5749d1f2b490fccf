import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from fastapi import HTTPException, UploadFile
from openpyxl import load_workbook

from chartsmith.core.config import get_settings
from chartsmith.core.errors import ErrorCodes, get_error_response
from chartsmith.core.performance import track_performance
from chartsmith.core.sanitization import sanitize_filename, validate_column_name

logger = logging.getLogger(__name__)

# Extension -> format tag; legacy .xls is handled as Excel
ALLOWED_EXTENSIONS = {
    '.csv': 'csv',
    '.xlsx': 'xlsx',
    '.xls': 'xlsx',
    '.json': 'json',
}

# Share of non-empty cells a candidate header row needs
MIN_HEADER_FILL = 0.5


@dataclass(frozen=True)
class ParsedFile:
    rows: List[Dict[str, Any]]
    file_name: str
    file_type: str


def _bad_request(code: str, detail: Optional[str] = None, status_code: int = 400) -> HTTPException:
    return HTTPException(status_code=status_code, detail=get_error_response(code, detail))


def validate_file_extension(filename: str) -> str:
    """
    Check the extension against the allowlist.

    Returns the lower-cased extension, raises HTTPException(400) otherwise.
    """
    if not filename:
        raise _bad_request(ErrorCodes.INVALID_FILE_TYPE, "Filename is required.")

    file_ext = Path(filename).suffix.lower()
    if file_ext not in ALLOWED_EXTENSIONS:
        raise _bad_request(
            ErrorCodes.INVALID_FILE_TYPE,
            f"Unsupported file format: {file_ext or 'none'}. Allowed formats: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )
    return file_ext


def find_header_row(df: pd.DataFrame, max_scan_rows: int = 10) -> int:
    """
    Locate the header row of a sheet read without headers.

    Report exports often start with a title or notes. The header is the row
    whose cells are mostly unique, non-numeric text; the first row wins ties.
    """
    if len(df) < 2:
        return 0

    best_row, best_score = 0, 0.0
    for row_idx in range(min(max_scan_rows, len(df))):
        row = df.iloc[row_idx]
        non_null = int(row.notna().sum())
        # Titles and notes fill only a cell or two of a wide row
        if non_null == 0 or non_null < MIN_HEADER_FILL * len(row):
            continue

        strings = sum(1 for v in row if isinstance(v, str) and v.strip())
        unique = len({str(v).strip().lower() for v in row if pd.notna(v)})
        numeric = sum(1 for v in row if isinstance(v, (int, float)) and not pd.isna(v))

        score = 0.4 * strings / non_null + 0.4 * unique / non_null + 0.2 * (1 - numeric / non_null)
        if row_idx == 0:
            score += 0.1
        if score > best_score:
            best_row, best_score = row_idx, score

    return best_row


def read_csv(contents: bytes) -> pd.DataFrame:
    """
    Read a CSV with every cell as text.

    Type inference runs on the raw strings, so a 0/1 column stays a flag
    instead of becoming integers. Blank and NA-like cells still read as missing.
    """
    encoding = 'utf-8'
    try:
        raw = pd.read_csv(BytesIO(contents), header=None, encoding=encoding)
    except UnicodeDecodeError:
        encoding = 'latin1'
        raw = pd.read_csv(BytesIO(contents), header=None, encoding=encoding)

    header_row = find_header_row(raw)
    if header_row > 0:
        logger.info(f"Header detected at row {header_row}, skipping {header_row} leading rows")
    return pd.read_csv(
        BytesIO(contents),
        skiprows=range(header_row),
        header=0,
        encoding=encoding,
        dtype=str,
        keep_default_na=True,
    )


def read_excel(contents: bytes) -> pd.DataFrame:
    """
    Read the first worksheet.

    Merged ranges are filled with their top-left value so grouped labels
    repeat on every row they span.
    """
    wb = load_workbook(BytesIO(contents), data_only=True, read_only=False)
    ws = wb.worksheets[0]

    merged_ranges = list(ws.merged_cells.ranges)
    for merged in merged_ranges:
        value = ws.cell(merged.min_row, merged.min_col).value
        ws.unmerge_cells(str(merged))
        for row in range(merged.min_row, merged.max_row + 1):
            for col in range(merged.min_col, merged.max_col + 1):
                ws.cell(row, col, value)
    if merged_ranges:
        logger.info(f"Unmerged {len(merged_ranges)} cell ranges in sheet '{ws.title}'")

    df = pd.DataFrame(ws.values)
    if df.empty:
        return df
    df.columns = [
        value if value is not None else f"Column {i + 1}"
        for i, value in enumerate(df.iloc[0])
    ]
    return df.iloc[1:].reset_index(drop=True)


def read_json(contents: bytes) -> pd.DataFrame:
    """Accept an array of objects, an object with a "data" array, or one object."""
    payload = json.loads(contents.decode('utf-8-sig'))

    if isinstance(payload, dict):
        records = payload['data'] if isinstance(payload.get('data'), list) else [payload]
    elif isinstance(payload, list):
        records = payload
    else:
        raise ValueError("JSON must be an object or an array of objects")

    if not all(isinstance(r, dict) for r in records):
        raise ValueError("JSON array items must be objects")
    return pd.DataFrame.from_records(records)


READERS = {
    'csv': read_csv,
    'xlsx': read_excel,
    'json': read_json,
}


def clean_dataframe(df: pd.DataFrame) -> pd.DataFrame:
    df = df.dropna(how='all', axis=0)
    df = df.dropna(how='all', axis=1)

    # Newlines inside header cells break chart field names
    df.columns = [' '.join(str(col).split()) for col in df.columns]
    return df


def validate_file_content(df: pd.DataFrame) -> None:
    """Enforce row/column limits, safe column names and cell size. Raises HTTPException(400)."""
    settings = get_settings()

    if len(df) > settings.max_file_rows:
        raise _bad_request(
            ErrorCodes.INVALID_CONTENT,
            f"File contains {len(df):,} rows. Maximum allowed: {settings.max_file_rows:,}."
        )
    if len(df.columns) > settings.max_file_columns:
        raise _bad_request(
            ErrorCodes.INVALID_CONTENT,
            f"File contains {len(df.columns)} columns. Maximum allowed: {settings.max_file_columns}."
        )

    for col in df.columns:
        if not validate_column_name(str(col)):
            raise _bad_request(ErrorCodes.INVALID_CONTENT, f"Invalid column name: '{col}'.")

    for col in df.columns:
        if df[col].dtype == 'object':
            max_length = df[col].astype(str).str.len().max()
            if pd.notna(max_length) and max_length > settings.max_cell_size_bytes:
                raise _bad_request(
                    ErrorCodes.INVALID_CONTENT,
                    f"Column '{col}' holds values over {settings.max_cell_size_bytes} bytes."
                )


def _to_native(value: Any) -> Any:
    if isinstance(value, (pd.Timestamp, datetime, date)):
        return value.isoformat()
    if isinstance(value, np.generic):
        return value.item()
    return value


def dataframe_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Rows as plain dicts: missing values become None, timestamps ISO strings."""
    records = df.astype(object).where(pd.notna(df), None).to_dict(orient='records')
    return [{str(k): _to_native(v) for k, v in record.items()} for record in records]


@track_performance("parse_file")
async def parse_file(file: UploadFile) -> ParsedFile:
    """
    Decode an uploaded CSV, Excel or JSON file into rows.

    Raises:
        HTTPException: 400 for unsupported, empty, unreadable or out-of-limit
            files, 413 when the file exceeds the size limit
    """
    file_ext = validate_file_extension(file.filename)
    file_type = ALLOWED_EXTENSIONS[file_ext]
    safe_filename = sanitize_filename(file.filename)

    contents = await file.read()
    if len(contents) == 0:
        raise _bad_request(ErrorCodes.FILE_EMPTY)
    max_bytes = get_settings().max_file_size_bytes
    if len(contents) > max_bytes:
        raise _bad_request(
            ErrorCodes.FILE_TOO_LARGE,
            f"Maximum size: {max_bytes // (1024 * 1024)} MB.",
            status_code=413,
        )

    try:
        df = READERS[file_type](contents)
    except Exception as e:
        logger.error(f"Error parsing {file_type} file {safe_filename}: {e}")
        raise _bad_request(ErrorCodes.PARSE_ERROR) from e

    df = clean_dataframe(df)
    if df.empty:
        raise _bad_request(ErrorCodes.FILE_EMPTY, "File contains no data rows.")

    validate_file_content(df)

    rows = dataframe_to_rows(df)
    logger.info(f"Successfully parsed file: {safe_filename}, shape: {df.shape}")
    return ParsedFile(rows=rows, file_name=safe_filename, file_type=file_type)
