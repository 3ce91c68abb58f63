#!/usr/bin/env python3

import os
import stat
import platform
import concurrent.futures
from typing import List, Dict, Any, Optional
import time

from excel_converter import SUPPORTED_EXTENSIONS, print_status
from spreadsheet_converter import (
    RowRange,
    convert_spreadsheet_to_json,
    display_path
)

# Lock files Excel leaves next to an open workbook, e.g. "~$report.xlsx"
TEMP_FILE_PREFIX = '~$'
HIDDEN_FILE_PREFIX = '.'

def is_hidden_posix(file_path: str) -> bool:
    """Dot files are hidden. Stats the file so missing paths raise OSError."""
    os.stat(file_path)
    return os.path.basename(file_path).startswith(HIDDEN_FILE_PREFIX)

def is_hidden_windows(file_path: str) -> bool:
    """Hidden when the hidden attribute is set, or the name is a dot file."""
    attributes = getattr(os.stat(file_path), 'st_file_attributes', 0)
    if attributes & stat.FILE_ATTRIBUTE_HIDDEN:
        return True
    return os.path.basename(file_path).startswith(HIDDEN_FILE_PREFIX)

is_hidden_file = is_hidden_windows if platform.system() == 'Windows' else is_hidden_posix

def is_temp_file(file_path: str) -> bool:
    return os.path.basename(file_path).startswith(TEMP_FILE_PREFIX)

def has_supported_extension(file_path: str) -> bool:
    return os.path.splitext(file_path)[1] in SUPPORTED_EXTENSIONS

def is_eligible_file(file_path: str) -> bool:
    """
    Whether a file should be picked up by a directory scan.

    Raises:
        OSError: If the file cannot be stat'ed
    """
    if not has_supported_extension(file_path) or is_temp_file(file_path):
        return False
    return not is_hidden_file(file_path)

def walk_directory(root: str) -> List[str]:
    """Absolute paths of every file below ``root``, in sorted walk order."""
    all_files = []
    try:
        entries = sorted(os.scandir(root), key=lambda entry: entry.name)
    except OSError as e:
        print_status(f"Skipping unreadable directory {root}: {str(e)}", 'warning')
        return all_files

    for entry in entries:
        full_path = os.path.abspath(entry.path)
        if entry.is_dir(follow_symlinks=False):
            all_files.extend(walk_directory(full_path))
        else:
            all_files.append(full_path)
    return all_files

def find_excel_files(root: str, max_workers: Optional[int] = None) -> List[str]:
    """Find every eligible spreadsheet below ``root``, checking files in parallel."""
    all_files = walk_directory(root)
    excel_files = []

    with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_file = {
            executor.submit(is_eligible_file, file): file
            for file in all_files
        }
        concurrent.futures.wait(future_to_file)

    # Keep walk order so the batch is processed deterministically
    for future, file in future_to_file.items():
        try:
            if future.result():
                excel_files.append(file)
        except OSError as e:
            print_status(f"✗ {display_path(file)} - Skipped: {str(e)}", 'warning')

    return excel_files

def resolve_named_file(file_name: str, base_dir: str) -> str:
    """
    Find ``file_name`` with one of the supported extensions, .xlsx first.

    Raises:
        FileNotFoundError: If no candidate exists
    """
    candidates = [os.path.join(base_dir, f"{file_name}{ext}") for ext in SUPPORTED_EXTENSIONS]
    for candidate in candidates:
        if os.path.isfile(candidate):
            return candidate
    tried = ' or '.join(f"{file_name}{ext}" for ext in SUPPORTED_EXTENSIONS)
    raise FileNotFoundError(f"File not found: no {tried} in {base_dir}")

def process_workbook(file_path: str, row_range: RowRange) -> Dict[str, Any]:
    """Convert a single workbook, catching its failures so the batch can carry on."""
    try:
        print_status(f"Processing: {display_path(file_path)}", 'info')
        start_time = time.time()

        output_paths, warnings = convert_spreadsheet_to_json(file_path, row_range)

        return {
            'file_path': file_path,
            'output_paths': output_paths,
            'warnings': warnings,
            'success': True,
            'processing_time': time.time() - start_time,
            'error': None
        }
    except Exception as e:
        print_status(f"✗ {display_path(file_path)} - Error: {str(e)}", 'error')
        return {
            'file_path': file_path,
            'output_paths': [],
            'warnings': [],
            'success': False,
            'processing_time': 0,
            'error': str(e)
        }

def run_conversion(file_name: Optional[str], row_range: RowRange,
                   base_dir: Optional[str] = None, max_workers: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Convert one named workbook, or every eligible workbook below ``base_dir``.

    Args:
        file_name: Name without extension, may include a relative directory;
            blank scans ``base_dir`` recursively
        row_range: Validated header/data row range
        base_dir: Root for name resolution and scanning, defaults to the cwd
        max_workers: Thread count for the eligibility checks

    Returns:
        One result dict per processed file

    Raises:
        FileNotFoundError: If a named file does not exist
    """
    base_dir = os.path.abspath(base_dir or os.getcwd())

    if file_name and file_name.strip():
        excel_files = [resolve_named_file(file_name.strip(), base_dir)]
    else:
        print_status(f"Scanning {base_dir} for spreadsheets...", 'info')
        excel_files = find_excel_files(base_dir, max_workers)
        print_status(f"Found {len(excel_files)} spreadsheet files to process", 'info')

    return [process_workbook(file, row_range) for file in excel_files]

def print_summary(results: List[Dict[str, Any]]) -> None:
    successful = sum(1 for r in results if r['success'])
    failed = len(results) - successful
    written = sum(len(r['output_paths']) for r in results)
    warnings = sum(len(r['warnings']) for r in results)

    print_status("\nConversion Summary:", 'info')
    print_status(f"  Total files processed: {len(results)}", 'info')
    print_status(f"  Successful conversions: {successful}", 'success')
    if failed > 0:
        print_status(f"  Failed conversions: {failed}", 'error')
    if warnings > 0:
        print_status(f"  Skipped sheets: {warnings}", 'warning')
    print_status(f"  JSON files written: {written}", 'info')
