#!/usr/bin/env python3

import argparse
import os
import sys
from typing import List, Optional

from excel_converter import print_status
from spreadsheet_converter import InvalidRangeError, parse_row_range
from batch_converter import print_summary, run_conversion

BANNER = """
    [-------------------o-------------------]
    Spreadsheet slicer: rows to JSON records
    [================<Usage>================]
    The start row holds the keys, the rows after it become records.
    Blank rows are ignored.
    The file name may be a relative path, e.g. ../data/report
    Leave it blank to convert every spreadsheet in this directory and below.
    [================<Notes>================]
    Hidden files and Excel lock files (~$...) are never touched.
    Existing .json files next to a spreadsheet are overwritten.
    [-------------------o-------------------]
"""

def wait_for_key_press(enabled: bool = True) -> None:
    """Block until a key is pressed, when attached to a terminal."""
    if not enabled or not sys.stdin or not sys.stdin.isatty():
        return
    print("\nPress any key to exit...")
    sys.stdout.flush()
    if os.name == 'nt':
        import msvcrt
        msvcrt.getch()
        return

    import termios
    import tty
    fd = sys.stdin.fileno()
    old_settings = termios.tcgetattr(fd)
    try:
        tty.setraw(fd)
        sys.stdin.read(1)
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)

def prompt(question: str) -> str:
    return input(f"{question}: ").strip()

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments. Anything left out is asked for interactively."""
    parser = argparse.ArgumentParser(
        description="Slice spreadsheet rows into JSON records: one row is the header, the rows after it become objects."
    )
    parser.add_argument("--name", type=str, default=None,
                        help="Input file name without extension. Pass an empty string to scan the directory.")
    parser.add_argument("--start", type=str, default=None, help="Start (header) row, 1-based.")
    parser.add_argument("--end", type=str, default=None, help="End row, inclusive (optional).")
    parser.add_argument("--dir", type=str, default=None,
                        help="Base directory for file names and scanning (default: current directory).")
    parser.add_argument("-j", "--jobs", type=int, default=None,
                        help="Number of parallel file checks while scanning.")
    parser.add_argument("--no-pause", action="store_true", help="Exit without waiting for a key press.")
    return parser.parse_args(argv)

def main(argv: Optional[List[str]] = None) -> int:
    """Main function. Returns exit code (0 for success, 1 for invalid input)."""
    args = parse_args(argv)
    print(BANNER)

    exit_code = 0
    try:
        file_name = args.name if args.name is not None else prompt("Input file name (no extension, may be left blank)")
        start_text = args.start if args.start is not None else prompt("Start row (1-based)")
        if args.end is not None:
            end_text = args.end
        elif args.start is not None:
            end_text = ""
        else:
            end_text = prompt("End row (inclusive, may be left blank)")

        row_range = parse_row_range(start_text, end_text)

        print_status("Processing files...", 'info')
        results = run_conversion(file_name, row_range, args.dir, args.jobs)
        print_summary(results)
    except InvalidRangeError as e:
        print_status(f"Please provide valid start and end rows: {str(e)}", 'error')
        exit_code = 1
    except FileNotFoundError as e:
        print_status(str(e), 'error')
        exit_code = 1
    except Exception as e:
        print_status(f"An error occurred: {str(e)}", 'error')

    wait_for_key_press(not args.no_pause)
    return exit_code

if __name__ == "__main__":
    sys.exit(main())
