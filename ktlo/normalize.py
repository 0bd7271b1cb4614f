from __future__ import annotations

import math
import numbers
from datetime import date, datetime, timedelta
from typing import Any, List, Mapping, Optional, Sequence

import pandas as pd

from ktlo.config import TASK_COLUMNS, UNASSIGNED, UNKNOWN, VERSION_COMPLIANCE
from ktlo.exceptions import MalformedRow
from ktlo.models import DbInstanceRecord, TaskRecord, TaskStatus

# Spreadsheet day 0; serial 25569 is 1970-01-01.
SERIAL_EPOCH = datetime(1899, 12, 30)
SECONDS_PER_DAY = 86400


def is_serial(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return math.isfinite(float(value))


def is_blank(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def datetime_to_serial(value: datetime | date) -> float:
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    delta = value.replace(tzinfo=None) - SERIAL_EPOCH
    serial = delta.total_seconds() / SECONDS_PER_DAY
    return int(serial) if serial.is_integer() else serial


def coerce_serial(value: object) -> Optional[float]:
    """Numeric serial or calendar cell -> serial; anything else -> None."""
    if is_blank(value):
        return None
    if isinstance(value, (datetime, date)):
        return datetime_to_serial(value)
    if is_serial(value):
        number = float(value)
        return int(number) if number.is_integer() else number
    return None


def serial_to_datetime(value: object) -> Optional[datetime]:
    """Spreadsheet date serial -> datetime. Anything non-numeric maps to None."""
    if not is_serial(value):
        return None
    try:
        return SERIAL_EPOCH + timedelta(days=float(value))
    except OverflowError:
        return None


def format_serial(value: object) -> str:
    if isinstance(value, str):
        return value
    dt = serial_to_datetime(value)
    if dt is None:
        return ""
    return f"{dt:%b} {dt.day}, {dt.year}"


def clean_text(value: object) -> Optional[str]:
    if is_blank(value):
        return None
    return str(value).strip()


def as_yes(value: object) -> bool:
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() == "yes"


def split_pipe_cell(text: str) -> List[str]:
    return [part.strip() for part in text.split("|") if part.strip()]


def resolve_owner(explicit: object, instance_id: str) -> str:
    owner = clean_text(explicit)
    if owner:
        return owner
    lead = instance_id.split("-", 1)[0].strip() if instance_id else ""
    return lead or UNKNOWN


def resolve_eol(explicit: object, engine_version: str) -> str:
    """End of standard support as an ISO date, falling back to the version table."""
    serial = coerce_serial(explicit)
    if serial is not None:
        dt = serial_to_datetime(serial)
        if dt is not None:
            return dt.date().isoformat()
    entry = VERSION_COMPLIANCE.get(str(engine_version).split(".")[0])
    if entry is None:
        return UNKNOWN
    eol: date = entry[1]
    return eol.isoformat()


def _task_due(value: object):
    serial = coerce_serial(value)
    if serial is not None:
        return serial
    return clean_text(value)


def normalize_task_row(row: Mapping[str, Any]) -> TaskRecord:
    """Map one header-keyed tracker row to a TaskRecord."""
    fields = {TASK_COLUMNS[str(k).strip()]: v for k, v in row.items() if str(k).strip() in TASK_COLUMNS}
    item = clean_text(fields.get("item"))
    if not item:
        raise MalformedRow("missing task title")
    return TaskRecord(
        item=item,
        received_on=coerce_serial(fields.get("received_on")),
        triaged=as_yes(fields.get("triaged")),
        ccs_action_needed=as_yes(fields.get("ccs_action_needed")),
        status=TaskStatus.parse(clean_text(fields.get("status"))),
        comments=clean_text(fields.get("comments")),
        due_date=_task_due(fields.get("due_date")),
        assignee=clean_text(fields.get("assignee")) or UNASSIGNED,
    )


def normalize_db_row(
    cells: Sequence[Any],
    environment: str,
    *,
    owner_col: Optional[int] = None,
    eol_col: Optional[int] = None,
    min_tokens: int = 3,
) -> DbInstanceRecord:
    """Map one raw inventory row (pipe-delimited first cell) to a DbInstanceRecord."""
    first = cells[0] if len(cells) else None
    if not isinstance(first, str):
        raise MalformedRow("first cell is not text")
    parts = split_pipe_cell(first)
    if len(parts) < min_tokens:
        raise MalformedRow(f"expected {min_tokens} pipe-delimited values, got {len(parts)}")

    def cell(idx: Optional[int]) -> object:
        if idx is None or idx >= len(cells):
            return None
        return cells[idx]

    instance_id = parts[1]
    engine_version = parts[2]
    return DbInstanceRecord(
        environment=environment,
        auto_minor_version_upgrade=parts[0] == "True",
        instance_id=instance_id,
        engine_version=engine_version,
        owner=resolve_owner(cell(owner_col), instance_id),
        end_of_standard_support=resolve_eol(cell(eol_col), engine_version),
    )
