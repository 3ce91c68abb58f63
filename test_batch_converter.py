import datetime
import json
import os
import stat
import sys
from types import SimpleNamespace

import pytest
from openpyxl import Workbook

import batch_converter
import main
from batch_converter import (
    find_excel_files,
    is_eligible_file,
    is_hidden_posix,
    is_hidden_windows,
    process_workbook,
    resolve_named_file,
    run_conversion,
    walk_directory
)
from spreadsheet_converter import RowRange

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="dot files are only hidden by name on POSIX")

def make_workbook(path, rows):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    wb.save(path)
    return str(path)

@pytest.fixture
def workspace(tmp_path):
    """Directory tree with eligible and ineligible files."""
    rows = [["Name", "Age"], ["A", 1], ["B", 2]]
    make_workbook(tmp_path / "top.xlsx", rows)
    make_workbook(tmp_path / "nested" / "deeper" / "inner.xlsx", rows)
    make_workbook(tmp_path / ".hidden.xlsx", rows)
    (tmp_path / "~$top.xlsx").write_bytes(b"lock")
    (tmp_path / "notes.txt").write_text("not a spreadsheet", encoding="utf-8")
    (tmp_path / "UPPER.XLSX").write_bytes(b"wrong case")
    return tmp_path

def test_temp_files_rejected_without_touching_disk(tmp_path):
    # Nonexistent paths would raise on stat, so these must short-circuit
    assert not is_eligible_file(str(tmp_path / "~$report.xlsx"))
    assert not is_eligible_file(str(tmp_path / "~$report.xls"))
    assert not is_eligible_file(str(tmp_path / "~$.hidden.xlsx"))

def test_tilde_elsewhere_in_path_is_fine(tmp_path):
    path = make_workbook(tmp_path / "~$dir" / "data.xlsx", [["a"]])
    assert is_eligible_file(path)

def test_extension_match_is_case_sensitive(tmp_path):
    assert not is_eligible_file(str(tmp_path / "REPORT.XLSX"))
    assert not is_eligible_file(str(tmp_path / "report.csv"))
    assert not is_eligible_file(str(tmp_path / "report.xlsm"))

def test_missing_file_raises(tmp_path):
    with pytest.raises(OSError):
        is_eligible_file(str(tmp_path / "missing.xlsx"))

def test_is_hidden_posix(tmp_path):
    visible = tmp_path / "data.xlsx"
    hidden = tmp_path / ".data.xlsx"
    visible.write_bytes(b"")
    hidden.write_bytes(b"")
    assert not is_hidden_posix(str(visible))
    assert is_hidden_posix(str(hidden))
    with pytest.raises(OSError):
        is_hidden_posix(str(tmp_path / "gone.xlsx"))

def test_is_hidden_windows_uses_attribute(monkeypatch):
    attributes = {
        "plain.xlsx": 0,
        "flagged.xlsx": stat.FILE_ATTRIBUTE_HIDDEN | stat.FILE_ATTRIBUTE_ARCHIVE,
        ".dotted.xlsx": 0,
    }
    monkeypatch.setattr(
        batch_converter.os, "stat",
        lambda path: SimpleNamespace(st_file_attributes=attributes[path])
    )

    assert not is_hidden_windows("plain.xlsx")
    assert is_hidden_windows("flagged.xlsx")
    assert is_hidden_windows(".dotted.xlsx")

def test_walk_directory_lists_files_recursively(workspace):
    files = walk_directory(str(workspace))

    assert all(os.path.isabs(f) for f in files)
    assert all(os.path.isfile(f) for f in files)
    assert str(workspace / "nested" / "deeper" / "inner.xlsx") in files
    assert str(workspace / "notes.txt") in files
    assert str(workspace / "nested") not in files
    assert len(files) == 6

def test_walk_directory_is_deterministic(workspace):
    assert walk_directory(str(workspace)) == walk_directory(str(workspace))

@posix_only
def test_find_excel_files_filters(workspace):
    files = find_excel_files(str(workspace), max_workers=4)

    assert sorted(files) == sorted([
        str(workspace / "top.xlsx"),
        str(workspace / "nested" / "deeper" / "inner.xlsx"),
    ])

def test_find_excel_files_excludes_files_that_fail_to_stat(workspace, monkeypatch):
    broken = str(workspace / "top.xlsx")

    def flaky_hidden_check(path):
        if path == broken:
            raise PermissionError("denied")
        return os.path.basename(path).startswith(".")

    monkeypatch.setattr(batch_converter, "is_hidden_file", flaky_hidden_check)
    files = find_excel_files(str(workspace))

    assert files == [str(workspace / "nested" / "deeper" / "inner.xlsx")]

def test_resolve_named_file_prefers_xlsx(tmp_path):
    (tmp_path / "data.xls").write_bytes(b"")
    assert resolve_named_file("data", str(tmp_path)) == str(tmp_path / "data.xls")

    (tmp_path / "data.xlsx").write_bytes(b"")
    assert resolve_named_file("data", str(tmp_path)) == str(tmp_path / "data.xlsx")

def test_resolve_named_file_relative_path(tmp_path):
    (tmp_path / "other").mkdir()
    (tmp_path / "other" / "data.xlsx").write_bytes(b"")
    (tmp_path / "here").mkdir()

    resolved = resolve_named_file(os.path.join("..", "other", "data"), str(tmp_path / "here"))
    assert os.path.samefile(resolved, tmp_path / "other" / "data.xlsx")

def test_resolve_named_file_missing(tmp_path):
    (tmp_path / "data.xlsm").write_bytes(b"")
    with pytest.raises(FileNotFoundError):
        resolve_named_file("data", str(tmp_path))

def test_process_workbook_reports_decode_failure(tmp_path):
    path = tmp_path / "broken.xlsx"
    path.write_bytes(b"garbage")

    result = process_workbook(str(path), RowRange(1))

    assert result["success"] is False
    assert result["error"]
    assert result["output_paths"] == []

def test_run_conversion_named_file(workspace):
    results = run_conversion("top", RowRange(1, 3), str(workspace))

    assert len(results) == 1
    assert results[0]["success"]
    with open(workspace / "top.json", encoding="utf-8") as f:
        assert json.load(f) == [{"Name": "A", "Age": 1}, {"Name": "B", "Age": 2}]
    assert not (workspace / "nested" / "deeper" / "inner.json").exists()

def test_run_conversion_named_file_missing(workspace):
    with pytest.raises(FileNotFoundError):
        run_conversion("nope", RowRange(1), str(workspace))

@posix_only
def test_run_conversion_scan_continues_after_failures(workspace):
    make_workbook(workspace / "short.xlsx", [["only header"]])
    (workspace / "corrupt.xlsx").write_bytes(b"garbage")

    results = run_conversion("", RowRange(2), str(workspace))
    by_name = {os.path.basename(r["file_path"]): r for r in results}

    assert set(by_name) == {"top.xlsx", "inner.xlsx", "short.xlsx", "corrupt.xlsx"}
    assert by_name["corrupt.xlsx"]["success"] is False
    assert by_name["short.xlsx"]["success"] is True
    assert by_name["short.xlsx"]["warnings"]
    assert (workspace / "top.json").exists()
    assert (workspace / "nested" / "deeper" / "inner.json").exists()
    assert not (workspace / ".hidden.json").exists()

    # Row 2 is the header, row 3 the only record
    with open(workspace / "top.json", encoding="utf-8") as f:
        assert json.load(f) == [{"A": "B", "1": 2}]

def test_main_with_flags(workspace, monkeypatch):
    monkeypatch.chdir(workspace)
    exit_code = main.main(["--name", "top", "--start", "1", "--end", "3", "--no-pause"])

    assert exit_code == 0
    with open(workspace / "top.json", encoding="utf-8") as f:
        assert json.load(f) == [{"Name": "A", "Age": 1}, {"Name": "B", "Age": 2}]

def test_main_interactive_prompts(workspace, monkeypatch):
    monkeypatch.chdir(workspace)
    answers = iter(["top", "1", ""])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))

    assert main.main(["--no-pause"]) == 0
    assert (workspace / "top.json").exists()

@pytest.mark.parametrize("start, end", [("0", ""), ("3", "1"), ("x", "")])
def test_main_invalid_range_touches_nothing(workspace, monkeypatch, start, end):
    monkeypatch.chdir(workspace)
    opened = []
    monkeypatch.setattr(batch_converter, "convert_spreadsheet_to_json",
                        lambda *args: opened.append(args))

    exit_code = main.main(["--name", "", "--start", start, "--end", end, "--no-pause"])

    assert exit_code == 1
    assert opened == []
    assert not (workspace / "top.json").exists()

def test_main_missing_named_file(workspace, monkeypatch):
    monkeypatch.chdir(workspace)
    assert main.main(["--name", "absent", "--start", "1", "--no-pause"]) == 1

def test_main_unexpected_error_exits_cleanly(workspace, monkeypatch):
    monkeypatch.chdir(workspace)

    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(main, "run_conversion", explode)
    assert main.main(["--name", "top", "--start", "1", "--no-pause"]) == 0

def test_process_workbook_with_date_header(tmp_path):
    path = make_workbook(tmp_path / "d.xlsx", [["Name", datetime.datetime(2024, 1, 1)], ["A", 5]])
    (tmp_path / "d.json").write_text('[{"old": 1}]', encoding="utf-8")

    result = process_workbook(path, RowRange(1))

    assert result["success"] is True
    with open(tmp_path / "d.json", encoding="utf-8") as f:
        assert json.load(f) == [{"Name": "A", "2024-01-01T00:00:00": 5}]

def test_main_with_dir_reports_paths_from_working_directory(workspace, monkeypatch, capsys):
    monkeypatch.chdir(workspace / "nested")
    exit_code = main.main(["--dir", str(workspace), "--name", "top", "--start", "1", "--no-pause"])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert os.path.join("..", "top.json") in out

if __name__ == "__main__":
    pytest.main(["-v", __file__])
