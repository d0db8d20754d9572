"""Keyed CSV merge store.

Reads an existing CSV (if any), merges a batch of keyed rows into it and
writes it back atomically:

- update fields overwrite same-named fields, other columns are preserved;
- unknown keys become new rows, appended after the existing ones;
- the result is written to a temp file next to the destination, flushed to
  disk and renamed over it, so readers never see a half-written file and a
  failure leaves the old file exactly as it was.

The store knows nothing about reading plans: rows are plain str -> str dicts.
"""

from __future__ import annotations

import io
import logging
import os
import stat
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd

from reading_plan.core.errors import MergeError

logger = logging.getLogger(__name__)

Row = Dict[str, str]
PathLike = Union[str, os.PathLike]

DEFAULT_KEY_COLUMN = "Day"
DEFAULT_FILE_MODE = 0o644


@dataclass
class Table:
    header: Optional[List[str]] = None
    rows: List[Row] = field(default_factory=list)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value)


def read_table(path: PathLike) -> Table:
    """Load a CSV as strings. Missing or blank file -> empty Table (header None).

    Header names and cells are trimmed, a UTF-8 BOM is dropped, and repeated
    header names are folded into one column keeping the first non-empty value.
    """
    p = Path(path)
    try:
        content = p.read_text(encoding="utf-8-sig")
    except FileNotFoundError:
        return Table()
    except (OSError, UnicodeDecodeError) as exc:
        raise MergeError(f"Could not read {p}: {exc}", cause=exc) from exc

    if not content.strip():
        return Table()

    try:
        frame = pd.read_csv(
            io.StringIO(content),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise MergeError(f"Could not parse {p}: {exc}", cause=exc) from exc

    grid = [[_cell(v).strip() for v in row] for row in frame.itertuples(index=False)]
    if not grid:
        return Table()
    raw_header = [h.lstrip("\ufeff") for h in grid[0]]
    header = list(dict.fromkeys(raw_header))

    rows: List[Row] = []
    for values in grid[1:]:
        if not any(values):
            continue
        row: Row = {}
        for name, value in zip(raw_header, values):
            if not row.get(name):
                row[name] = value
        rows.append(row)
    return Table(header=header, rows=rows)


def build_output_header(
    existing_header: Optional[List[str]],
    updates: Iterable[Mapping[str, Any]],
    key_column: str = DEFAULT_KEY_COLUMN,
) -> List[str]:
    """Key column first, then existing columns in order, then update-only columns."""
    header = [key_column]
    for h in existing_header or []:
        if h not in header:
            header.append(h)
    for u in updates:
        for k in u:
            if k not in header:
                header.append(k)
    return header


def _key(value: Any) -> str:
    return _cell(value).strip()


def _numeric(value: str) -> Optional[float]:
    try:
        return float(value)
    except ValueError:
        return None


def sort_keys(keys: Iterable[str], numeric: bool = False) -> List[str]:
    """Lexical sort, or numeric-first ascending then lexical when `numeric`."""

    def numeric_key(k: str) -> Tuple[int, float, str]:
        n = _numeric(k)
        if n is None:
            return (1, 0.0, k)
        return (0, n, k)

    if numeric:
        return sorted(keys, key=numeric_key)
    return sorted(keys)


def merge_rows_by_key(
    existing_rows: Iterable[Mapping[str, Any]],
    updates: Iterable[Mapping[str, Any]],
    key_column: str = DEFAULT_KEY_COLUMN,
    sort_numeric: bool = False,
) -> List[Row]:
    """Insert-or-overwrite `updates` into `existing_rows` by `key_column`.

    Existing rows keep their relative order; new keys are appended in
    `sort_keys` order. Existing rows without a key are dropped; updates
    without a key are skipped with a warning.
    """
    by_key: Dict[str, Row] = {}
    for r in existing_rows:
        k = _key(r.get(key_column))
        if not k:
            continue
        merged = by_key.setdefault(k, {})
        merged.update({name: _cell(v) for name, v in r.items()})
        merged[key_column] = k
    original_keys = list(by_key)

    new_keys: List[str] = []
    for u in updates:
        k = _key(u.get(key_column))
        if not k:
            logger.warning("Skipping update without %r: %s", key_column, dict(u))
            continue
        if k not in by_key:
            by_key[k] = {}
            new_keys.append(k)
        by_key[k].update({name: _cell(v) for name, v in u.items()})
        by_key[k][key_column] = k

    ordered = original_keys + sort_keys(new_keys, numeric=sort_numeric)
    return [by_key[k] for k in ordered]


def _file_mode(path: Path) -> int:
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        return DEFAULT_FILE_MODE


def atomic_write_table(path: PathLike, rows: Iterable[Mapping[str, Any]], header: List[str]) -> None:
    """Write `rows` under `header` to `path` via temp file + rename.

    Every row gets every header column ("" when missing). On any failure the
    temp file is removed and the destination is left untouched; OS errors are
    raised as MergeError.
    """
    p = Path(path)
    frame = pd.DataFrame(
        [[_cell(r.get(col)) for col in header] for r in rows], columns=header, dtype=str
    )

    tmp_name: Optional[str] = None
    try:
        p.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{p.name}.", suffix=".tmp", dir=str(p.parent)
        )
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            frame.to_csv(fh, index=False, lineterminator="\n")
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp_name, _file_mode(p))
        os.replace(tmp_name, p)
        tmp_name = None
    except BaseException as exc:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
        if isinstance(exc, OSError):
            raise MergeError(f"Could not write {p}: {exc}", cause=exc) from exc
        raise


def merge_table(
    path: PathLike,
    updates: Iterable[Mapping[str, Any]],
    key_column: str = DEFAULT_KEY_COLUMN,
    sort_numeric: bool = False,
) -> Table:
    """Read `path`, merge `updates` by `key_column` and atomically write it back.

    Returns the Table that was written.
    """
    updates = list(updates)
    existing = read_table(path)
    header = build_output_header(existing.header, updates, key_column)
    rows = merge_rows_by_key(existing.rows, updates, key_column, sort_numeric)
    atomic_write_table(path, rows, header)
    logger.info(
        "Merged %d updates into %s (%d rows, %d columns)",
        len(updates),
        path,
        len(rows),
        len(header),
    )
    return Table(header=header, rows=[{c: r.get(c, "") for c in header} for r in rows])
