#!/usr/bin/env python3

import datetime
import json
import os
import re
import sys
from typing import Dict, Any, List, NamedTuple, Optional, Tuple

from excel_converter import (
    DEFAULT_ENCODING,
    ExcelJSONEncoder,
    Row,
    Sheet,
    print_status,
    read_workbook
)

# Constants
OUTPUT_EXTENSION = '.json'
JSON_INDENT = 2
INTEGER_PATTERN = re.compile(r'[+-]?\d+')
UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|]')

Record = Dict[Any, Any]

class InvalidRangeError(ValueError):
    """Raised when the requested start/end rows are not a usable range."""

class InsufficientRowsError(Exception):
    """Raised when a sheet has no rows inside the requested range."""

class RowRange(NamedTuple):
    """1-based, inclusive row interval. ``end=None`` runs to the last row."""
    start: int
    end: Optional[int] = None

    def describe(self) -> str:
        return f"rows {self.start} to {self.end if self.end is not None else 'end'}"

def _parse_row_number(text: str, label: str) -> int:
    text = text.strip()
    if not INTEGER_PATTERN.fullmatch(text):
        raise InvalidRangeError(f"{label} row must be a whole number, got '{text}'")
    return int(text)

def parse_row_range(start_text: Optional[str], end_text: Optional[str] = None) -> RowRange:
    """
    Validate user supplied start/end rows.

    Args:
        start_text: Start row, 1-based
        end_text: End row, inclusive; blank or None means through the last row

    Returns:
        RowRange

    Raises:
        InvalidRangeError: If start is missing or below 1, or end is not a
            number or comes before start
    """
    if start_text is None or not str(start_text).strip():
        raise InvalidRangeError("Start row is required")
    start = _parse_row_number(str(start_text), "Start")
    if start < 1:
        raise InvalidRangeError(f"Start row must be 1 or greater, got {start}")

    if end_text is None or not str(end_text).strip():
        return RowRange(start)

    end = _parse_row_number(str(end_text), "End")
    if end < start:
        raise InvalidRangeError(f"End row ({end}) must not be before start row ({start})")
    return RowRange(start, end)

def record_key(cell: Any) -> Any:
    """JSON-safe key for a header cell: dates become ISO strings, other non-scalars ``str``."""
    if isinstance(cell, (str, int, float, bool)):
        return cell
    if isinstance(cell, (datetime.datetime, datetime.date, datetime.time)):
        return cell.isoformat()
    return str(cell)

def build_record(header: Row, row: Row) -> Record:
    """
    Pair each cell with the header cell in the same column.

    Empty cells are left out rather than written as null. A cell whose header
    cell is empty has no key and is dropped as well.
    """
    record = {}
    for key, value in zip(header, row):
        if key is None or value is None:
            continue
        record[record_key(key)] = value
    return record

def slice_sheet(rows: Sheet, row_range: RowRange) -> List[Record]:
    """
    Turn a range of sheet rows into records.

    The first row of the range is the header; every following row becomes a
    record keyed by the header cells. Blank rows are dropped.

    Raises:
        InsufficientRowsError: If the sheet has no rows inside the range
    """
    selected = rows[row_range.start - 1:row_range.end]
    if not selected:
        raise InsufficientRowsError(
            f"Sheet has {len(rows)} rows, not enough to slice {row_range.describe()}"
        )

    header, data_rows = selected[0], selected[1:]
    records = [build_record(header, row) for row in data_rows]
    return [record for record in records if record]

def sanitize_sheet_name(name: str) -> str:
    name = UNSAFE_FILENAME_CHARS.sub('_', name.strip())
    name = re.sub(r'\s+', '_', name)
    return name or 'sheet'

def get_output_filepath(file_path: str, output_index: int = 0, sheet_name: str = '') -> str:
    """
    Sibling JSON path for a sheet of ``file_path``.

    The first sheet written maps to ``<base>.json``; later sheets get their
    name appended so they never overwrite each other.
    """
    base = os.path.splitext(file_path)[0]
    if output_index == 0:
        return base + OUTPUT_EXTENSION
    return f"{base}_{sanitize_sheet_name(sheet_name)}{OUTPUT_EXTENSION}"

def save_json_output(records: List[Record], output_path: str) -> str:
    """Write records as a pretty-printed JSON array, replacing any existing file."""
    # Serialize first so an encoding error leaves the existing file intact
    text = json.dumps(records, indent=JSON_INDENT, ensure_ascii=False, cls=ExcelJSONEncoder)
    with open(output_path, 'w', encoding=DEFAULT_ENCODING) as f:
        f.write(text)
    return output_path

def display_path(path: str, base_dir: Optional[str] = None) -> str:
    """Path relative to ``base_dir``, or to the working directory by default."""
    try:
        return os.path.relpath(path, base_dir or os.getcwd())
    except ValueError:
        # Different drive on Windows
        return path

def convert_spreadsheet_to_json(file_path: str, row_range: RowRange) -> Tuple[List[str], List[str]]:
    """
    Convert every sheet of a workbook to a sibling JSON file.

    Paths are reported relative to the working directory.

    Args:
        file_path: Path to the spreadsheet
        row_range: Validated header/data row range

    Returns:
        Tuple of (written output paths, warning messages)

    Raises:
        Exception: Whatever decoding or writing raised; the caller decides
            whether it is fatal
    """
    document = read_workbook(file_path)
    name = display_path(file_path)
    output_paths = []
    warnings = []

    for sheet_name, rows in document.items():
        try:
            records = slice_sheet(rows, row_range)
        except InsufficientRowsError as e:
            message = f"{name} [{sheet_name}]: {e}"
            print_status(message, 'warning')
            warnings.append(message)
            continue

        if not records:
            message = f"{name} [{sheet_name}]: no data rows in {row_range.describe()}, skipped"
            print_status(message, 'warning')
            warnings.append(message)
            continue

        output_path = save_json_output(records, get_output_filepath(file_path, len(output_paths), sheet_name))
        output_paths.append(output_path)
        print_status(
            f"Converted {name} [{sheet_name}] → {display_path(output_path)} ({len(records)} records)",
            'success'
        )

    return output_paths, warnings

def main():
    if len(sys.argv) < 3:
        print_status("Usage: python spreadsheet_converter.py <path_to_spreadsheet> <start_row> [end_row]", 'error')
        sys.exit(1)

    file_path = sys.argv[1]
    try:
        row_range = parse_row_range(sys.argv[2], sys.argv[3] if len(sys.argv) > 3 else None)
    except InvalidRangeError as e:
        print_status(str(e), 'error')
        sys.exit(1)

    if not os.path.exists(file_path):
        print_status(f"File not found: {file_path}", 'error')
        sys.exit(1)

    try:
        convert_spreadsheet_to_json(file_path, row_range)
    except Exception as e:
        print_status(f"Error: {str(e)}", 'error')
        sys.exit(1)

if __name__ == "__main__":
    main()
