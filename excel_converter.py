#!/usr/bin/env python3

from openpyxl import load_workbook
from typing import Dict, Any, List
from termcolor import colored
import os
import sys
import json
import datetime
import xlrd

# Constants
SUPPORTED_EXTENSIONS = ('.xlsx', '.xls')
DEFAULT_ENCODING = 'utf-8'

Row = List[Any]
Sheet = List[Row]

class ExcelJSONEncoder(json.JSONEncoder):
    """Custom JSON encoder to handle Excel-specific types."""
    def default(self, obj):
        if isinstance(obj, (datetime.datetime, datetime.date, datetime.time)):
            # Convert date and time cells to ISO format strings
            return obj.isoformat()
        elif isinstance(obj, datetime.timedelta):
            return obj.total_seconds()
        return super().default(obj)

def print_status(message: str, status: str = 'info') -> None:
    """Print colored status messages."""
    color_map = {
        'info': 'cyan',
        'success': 'green',
        'error': 'red',
        'warning': 'yellow'
    }
    print(colored(message, color_map.get(status, 'white')))

def read_xlsx_workbook(file_path: str) -> Dict[str, Sheet]:
    """Read every worksheet of an .xlsx file as lists of cell values."""
    wb = load_workbook(filename=file_path, read_only=True, data_only=True)
    try:
        document = {}
        for sheet in wb.worksheets:
            document[sheet.title] = [list(row) for row in sheet.iter_rows(values_only=True)]
        return document
    finally:
        wb.close()

def xls_cell_value(cell: Any, datemode: int) -> Any:
    """Convert an xlrd cell into the plain value openpyxl would give us."""
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return None
    if cell.ctype == xlrd.XL_CELL_NUMBER:
        # xlrd stores every number as a float
        if isinstance(cell.value, float) and cell.value.is_integer():
            return int(cell.value)
        return cell.value
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate_as_datetime(cell.value, datemode)
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    if cell.ctype == xlrd.XL_CELL_ERROR:
        return xlrd.error_text_from_code.get(cell.value, '#ERR')
    return cell.value

def read_xls_workbook(file_path: str) -> Dict[str, Sheet]:
    """Read every sheet of a legacy .xls file as lists of cell values."""
    book = xlrd.open_workbook(file_path, on_demand=True)
    try:
        document = {}
        for index in range(book.nsheets):
            sheet = book.sheet_by_index(index)
            document[sheet.name] = [
                [xls_cell_value(cell, book.datemode) for cell in sheet.row(row_index)]
                for row_index in range(sheet.nrows)
            ]
        return document
    finally:
        book.release_resources()

def read_workbook(file_path: str) -> Dict[str, Sheet]:
    """
    Decode a spreadsheet into an ordered mapping of sheet name to rows.

    Args:
        file_path: Path to an .xlsx or .xls file

    Returns:
        Dict of sheet name -> list of rows, each row a list of cell values
        (None for empty cells), in workbook order.

    Raises:
        ValueError: If the extension is not supported
    """
    extension = os.path.splitext(file_path)[1]
    if extension == '.xlsx':
        return read_xlsx_workbook(file_path)
    if extension == '.xls':
        return read_xls_workbook(file_path)
    raise ValueError(f"Unsupported file format '{extension}'. Supported formats: {', '.join(SUPPORTED_EXTENSIONS)}")

if __name__ == "__main__":
    # Example usage: dump the raw rows of a workbook
    if len(sys.argv) > 1:
        try:
            document = read_workbook(sys.argv[1])
            print(json.dumps(document, indent=2, ensure_ascii=False, cls=ExcelJSONEncoder))
            sys.exit(0)
        except Exception as e:
            print_status(f"Error: {str(e)}", 'error')
            sys.exit(1)
    else:
        print_status("Usage: python excel_converter.py <excel_file>", 'info')
        sys.exit(1)
