"""Keyed merge store tests.

All files live under pytest's tmp_path; nothing touches the real data folder.
"""

import os

import pytest

from reading_plan.core.errors import MergeError
from reading_plan.services import storage
from reading_plan.services.storage import (
    build_output_header,
    merge_rows_by_key,
    merge_table,
    read_table,
    sort_keys,
)


def write(path, text):
    path.write_text(text, encoding="utf-8")
    return path


def test_missing_file_creates_store(tmp_path):
    path = tmp_path / "nested" / "plan.csv"
    table = merge_table(path, [{"Day": "2", "Readings": "Exodus 1"}, {"Day": "1", "Readings": "Genesis 1"}], sort_numeric=True)

    assert table.header == ["Day", "Readings"]
    assert path.read_text(encoding="utf-8") == "Day,Readings\n1,Genesis 1\n2,Exodus 1\n"


def test_merge_preserves_untouched_columns(tmp_path):
    path = write(tmp_path / "plan.csv", "Day,Notes\n3,x\n")
    merge_table(path, [{"Day": "3", "Readings": "y"}])

    table = read_table(path)
    assert table.header == ["Day", "Notes", "Readings"]
    assert table.rows == [{"Day": "3", "Notes": "x", "Readings": "y"}]


def test_merge_is_idempotent(tmp_path):
    path = write(tmp_path / "plan.csv", "Day,Readings,Notes\n2,old,keep\n1,Genesis 1,\n")
    updates = [
        {"Day": "2", "Readings": "Exodus 1; Exodus 2", "Video_URLs": "a | b"},
        {"Day": "10", "Readings": "Numbers 1"},
        {"Day": "9", "Readings": "Leviticus 27"},
    ]
    merge_table(path, updates, sort_numeric=True)
    once = path.read_bytes()
    merge_table(path, updates, sort_numeric=True)
    assert path.read_bytes() == once


def test_existing_order_kept_and_new_keys_appended_sorted(tmp_path):
    path = write(tmp_path / "plan.csv", "Day,Readings\n5,e\n2,b\n")
    table = merge_table(
        path, [{"Day": "10", "Readings": "j"}, {"Day": "1", "Readings": "a"}, {"Day": "2", "Readings": "B"}],
        sort_numeric=True,
    )
    assert [r["Day"] for r in table.rows] == ["5", "2", "1", "10"]
    assert table.rows[1]["Readings"] == "B"


def test_lexical_vs_numeric_key_order():
    assert sort_keys(["10", "9", "x", "1"]) == ["1", "10", "9", "x"]
    assert sort_keys(["10", "9", "x", "1"], numeric=True) == ["1", "9", "10", "x"]


def test_header_key_first_and_unique():
    header = build_output_header(
        ["Notes", "Day", "Readings"], [{"Extra": "1", "Day": "1"}, {"Readings": "", "Other": ""}], "Day"
    )
    assert header == ["Day", "Notes", "Readings", "Extra", "Other"]
    assert build_output_header(None, [], "Day") == ["Day"]


def test_rows_without_key_are_skipped():
    rows = merge_rows_by_key(
        [{"Day": "", "Readings": "orphan"}, {"Day": "1", "Readings": "a"}],
        [{"Readings": "no key"}, {"Day": "  ", "Readings": "blank"}, {"Day": 2, "Readings": None}],
        "Day",
    )
    assert rows == [{"Day": "1", "Readings": "a"}, {"Day": "2", "Readings": ""}]


def test_every_row_has_every_column(tmp_path):
    path = tmp_path / "plan.csv"
    merge_table(path, [{"Day": "1", "A": "x"}, {"Day": "2", "B": "y"}])
    assert path.read_text(encoding="utf-8") == "Day,A,B\n1,x,\n2,,y\n"


def test_bom_and_duplicate_headers_are_normalized(tmp_path):
    path = tmp_path / "plan.csv"
    path.write_bytes("\ufeffDay, Readings ,Readings\n1,,Genesis 1\n2,Exodus 1,\n".encode("utf-8"))

    table = read_table(path)
    assert table.header == ["Day", "Readings"]
    assert table.rows == [
        {"Day": "1", "Readings": "Genesis 1"},
        {"Day": "2", "Readings": "Exodus 1"},
    ]


def test_values_with_separators_round_trip(tmp_path):
    path = tmp_path / "plan.csv"
    value = 'Genesis 1, "intro"; Genesis 2'
    merge_table(path, [{"Day": "1", "Readings": value}])
    assert read_table(path).rows == [{"Day": "1", "Readings": value}]


def test_empty_file_is_empty_store(tmp_path):
    path = write(tmp_path / "plan.csv", "  \n")
    assert read_table(path).header is None
    assert read_table(tmp_path / "absent.csv").rows == []


def test_crash_before_rename_leaves_original_untouched(tmp_path, monkeypatch):
    path = write(tmp_path / "plan.csv", "Day,Readings\n1,Genesis 1\n")
    before = path.read_bytes()

    def crash(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(storage.os, "replace", crash)
    with pytest.raises(MergeError):
        merge_table(path, [{"Day": "1", "Readings": "changed"}, {"Day": "2", "Readings": "new"}])

    assert path.read_bytes() == before
    # no temp file left behind
    assert os.listdir(tmp_path) == ["plan.csv"]


def test_interrupt_during_write_cleans_up_and_propagates(tmp_path, monkeypatch):
    path = write(tmp_path / "plan.csv", "Day,Readings\n1,Genesis 1\n")
    before = path.read_bytes()

    def interrupted(fd):
        raise KeyboardInterrupt()

    monkeypatch.setattr(storage.os, "fsync", interrupted)
    with pytest.raises(KeyboardInterrupt):
        merge_table(path, [{"Day": "1", "Readings": "changed"}])

    assert path.read_bytes() == before
    assert os.listdir(tmp_path) == ["plan.csv"]


def test_existing_file_mode_is_kept(tmp_path):
    path = write(tmp_path / "plan.csv", "Day\n1\n")
    os.chmod(path, 0o640)
    merge_table(path, [{"Day": "2"}])
    assert (os.stat(path).st_mode & 0o777) == 0o640
