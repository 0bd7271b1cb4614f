"""Offline extraction: workbook -> typed records -> JSON artifact.

Two report shapes are supported. The KTLO tracker is a header-labelled table
on the first sheet. The Aurora inventory has one sheet per environment whose
rows carry a pipe-delimited text table in the first cell.
"""

from __future__ import annotations

import argparse
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from ktlo.config import (
    ENVIRONMENT_SHEET_PREFIX,
    EOL_HEADER,
    INVENTORY_HEADER_MARKER,
    OWNER_HEADER,
    databases_artifact_path,
    log_level,
    tasks_artifact_path,
)
from ktlo.data import save_records
from ktlo.exceptions import MalformedRow, SourceUnreadable
from ktlo.models import DbInstanceRecord, TaskRecord
from ktlo.normalize import is_blank, normalize_db_row, normalize_task_row
from ktlo.rules import major_version

logger = logging.getLogger(__name__)

SEPARATOR_RE = re.compile(r"^[\s|\-]+$")
TABLE_RULE_RE = re.compile(r"^\|[\s-]+\|")


@dataclass(frozen=True)
class RowShape:
    header_marker: str = INVENTORY_HEADER_MARKER
    owner_header: str = OWNER_HEADER
    eol_header: str = EOL_HEADER
    min_tokens: int = 3


@dataclass
class ExtractionReport:
    parsed: int = 0
    dropped: int = 0
    per_sheet: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def add(self, sheet: str, parsed: int, dropped: int) -> None:
        self.parsed += parsed
        self.dropped += dropped
        self.per_sheet[sheet] = {"parsed": parsed, "dropped": dropped}


def read_workbook(
    path: str | Path, *, header: Optional[int] = None, limit: Optional[int] = None
) -> Dict[str, pd.DataFrame]:
    """Sheets in workbook order, only the first ``limit`` when given.

    Raises SourceUnreadable on any open/parse failure of a sheet that is read.
    """
    path = Path(path)
    if not path.exists():
        raise SourceUnreadable(str(path), "file not found")
    try:
        with pd.ExcelFile(path, engine="openpyxl") as book:
            names = book.sheet_names if limit is None else book.sheet_names[:limit]
            return {name: book.parse(name, header=header) for name in names}
    except Exception as exc:
        raise SourceUnreadable(str(path), str(exc)) from exc


def environment_for_sheet(sheet_name: str, prefix: str = ENVIRONMENT_SHEET_PREFIX) -> str:
    match = re.search(rf"{re.escape(prefix)}-(\w+)", sheet_name)
    return match.group(1) if match else sheet_name


def is_separator(text: str) -> bool:
    return bool(SEPARATOR_RE.match(text) or TABLE_RULE_RE.match(text))


def _cells(row: Sequence[Any]) -> List[Any]:
    return [None if is_blank(v) else v for v in row]


def locate_columns(header_cells: Sequence[Any], shape: RowShape) -> Tuple[Optional[int], Optional[int]]:
    owner_col: Optional[int] = None
    eol_col: Optional[int] = None
    for idx, value in enumerate(header_cells):
        if idx == 0 or not isinstance(value, str):
            continue
        text = value.strip().lower()
        if owner_col is None and shape.owner_header.lower() in text:
            owner_col = idx
        elif eol_col is None and (shape.eol_header.lower() in text or text == "eol"):
            eol_col = idx
    return owner_col, eol_col


def parse_inventory_sheet(
    sheet_name: str, df: pd.DataFrame, shape: RowShape = RowShape()
) -> Tuple[List[DbInstanceRecord], int]:
    environment = environment_for_sheet(sheet_name)
    owner_col: Optional[int] = None
    eol_col: Optional[int] = None
    records: List[DbInstanceRecord] = []
    dropped = 0
    for row_idx, raw in enumerate(df.itertuples(index=False, name=None)):
        cells = _cells(raw)
        first = cells[0] if cells else None
        if not isinstance(first, str):
            continue
        if shape.header_marker in first:
            owner_col, eol_col = locate_columns(cells, shape)
            continue
        if is_separator(first):
            continue
        try:
            records.append(
                normalize_db_row(
                    cells,
                    environment,
                    owner_col=owner_col,
                    eol_col=eol_col,
                    min_tokens=shape.min_tokens,
                )
            )
        except MalformedRow as exc:
            dropped += 1
            logger.debug("dropped row %s in %s: %s", row_idx, sheet_name, exc.reason)
    return records, dropped


def extract_databases(path: str | Path, shape: RowShape = RowShape()) -> Tuple[List[DbInstanceRecord], ExtractionReport]:
    sheets = read_workbook(path)
    report = ExtractionReport()
    records: List[DbInstanceRecord] = []
    for sheet_name, df in sheets.items():
        parsed, dropped = parse_inventory_sheet(sheet_name, df, shape)
        logger.info("sheet %s: parsed %d DB instances, dropped %d rows", sheet_name, len(parsed), dropped)
        report.add(sheet_name, len(parsed), dropped)
        records.extend(parsed)
    return records, report


def extract_tasks(path: str | Path) -> Tuple[List[TaskRecord], ExtractionReport]:
    sheets = read_workbook(path, header=0, limit=1)
    report = ExtractionReport()
    if not sheets:
        return [], report
    sheet_name, df = next(iter(sheets.items()))
    df = df.dropna(how="all")
    records: List[TaskRecord] = []
    dropped = 0
    for row_idx, row in enumerate(df.to_dict(orient="records")):
        try:
            records.append(normalize_task_row(row))
        except MalformedRow as exc:
            dropped += 1
            logger.debug("dropped row %s in %s: %s", row_idx, sheet_name, exc.reason)
    logger.info("sheet %s: parsed %d tasks, dropped %d rows", sheet_name, len(records), dropped)
    report.add(sheet_name, len(records), dropped)
    return records, report


def summarize_databases(records: Sequence[DbInstanceRecord]) -> Dict[str, Any]:
    versions = Counter(major_version(r.engine_version) for r in records)
    enabled = sum(1 for r in records if r.auto_minor_version_upgrade)
    return {"total": len(records), "versions": dict(versions), "auto_upgrade_enabled": enabled}


# ---------------- CLI ----------------
def _run(kind: str, argv: Optional[Sequence[str]]) -> int:
    parser = argparse.ArgumentParser(
        prog=f"ktlo-extract-{kind}",
        description=f"Extract the {kind} workbook into the dashboard JSON artifact",
    )
    parser.add_argument("source", type=Path, help="Path to the .xlsx export")
    args = parser.parse_args(argv)
    logging.basicConfig(level=log_level(), format="%(levelname)s %(name)s: %(message)s")

    try:
        if kind == "tasks":
            records, report = extract_tasks(args.source)
            out_path = tasks_artifact_path()
        else:
            records, report = extract_databases(args.source)
            out_path = databases_artifact_path()
            summary = summarize_databases(records)
            logger.info("version distribution: %s", summary["versions"])
            logger.info("auto minor upgrade: %d/%d enabled", summary["auto_upgrade_enabled"], summary["total"])
    except SourceUnreadable as exc:
        logger.error("%s", exc)
        return 1

    save_records(records, out_path)
    logger.info("wrote %d records to %s (%d rows dropped)", report.parsed, out_path, report.dropped)
    return 0


def main_tasks(argv: Optional[Sequence[str]] = None) -> int:
    return _run("tasks", argv)


def main_databases(argv: Optional[Sequence[str]] = None) -> int:
    return _run("databases", argv)
