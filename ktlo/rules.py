"""Classification rules.

Every function here is a pure mapping from its arguments to a label or a
number. Callers pass ``now`` explicitly so that a view computed twice from the
same inputs is identical.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from functools import lru_cache
from typing import Iterable, Optional, Pattern, Tuple

from ktlo.config import (
    DEFAULT_ENVIRONMENT_COLOR,
    ENVIRONMENT_COLORS,
    UNKNOWN,
    VERSION_COMPLIANCE,
    ticket_base_url,
    ticket_prefixes,
)
from ktlo.models import TaskRecord, TaskStatus
from ktlo.normalize import is_serial, serial_to_datetime

UNKNOWN_DAYS = -1
SECONDS_PER_DAY = 86400

EOL_CRITICAL = "critical"
EOL_WARNING = "warning"
EOL_SAFE = "safe"
EOL_BUCKETS = (EOL_CRITICAL, EOL_WARNING, EOL_SAFE)

OVERDUE = "overdue"
URGENT = "urgent"
SOON = "soon"
NORMAL = "normal"
TASK_URGENCY_BUCKETS = (OVERDUE, URGENT, SOON, NORMAL)


def _as_datetime(value: object) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value and value != UNKNOWN:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def _days_between(target: datetime, now: datetime) -> int:
    return math.ceil((target - now).total_seconds() / SECONDS_PER_DAY)


def major_version(version: str) -> str:
    return str(version or "").split(".")[0]


def is_compliant(version: str) -> bool:
    entry = VERSION_COMPLIANCE.get(major_version(version))
    return bool(entry and entry[0])


def version_label(version: str) -> str:
    major = major_version(version)
    entry = VERSION_COMPLIANCE.get(major)
    return entry[2] if entry else f"v{major}"


def days_until_eol(eol: object, now: datetime | date) -> int:
    """Whole days (rounded up) until end of support; -1 when the date is unknown."""
    eol_dt = _as_datetime(eol)
    if eol_dt is None:
        return UNKNOWN_DAYS
    return _days_between(eol_dt, _as_datetime(now))


def eol_urgency(days: int) -> str:
    # The unknown sentinel (-1) lands in critical on purpose.
    if days < 365:
        return EOL_CRITICAL
    if days < 730:
        return EOL_WARNING
    return EOL_SAFE


def days_until_due(due_date: object, now: datetime | date) -> Optional[int]:
    due = serial_to_datetime(due_date)
    if due is None:
        return None
    return _days_between(due, _as_datetime(now))


def urgency_for(status: TaskStatus, due_date: object, now: datetime | date) -> str:
    if TaskStatus.parse(status) is TaskStatus.COMPLETED:
        return NORMAL
    days = days_until_due(due_date, now)
    if days is None:
        return NORMAL
    if days < 0:
        return OVERDUE
    if days <= 7:
        return URGENT
    if days <= 30:
        return SOON
    return NORMAL


def task_urgency(task: TaskRecord, now: datetime | date) -> str:
    return urgency_for(task.status, task.due_date, now)


def fiscal_year(value: datetime | date) -> str:
    """Fiscal years start on August 1 and carry the ending calendar year."""
    year = value.year + 1 if value.month >= 8 else value.year
    return f"FY{year % 100:02d}"


def fiscal_year_of_serial(serial: object) -> Optional[str]:
    if not is_serial(serial):
        return None
    dt = serial_to_datetime(serial)
    return fiscal_year(dt) if dt is not None else None


@lru_cache(maxsize=8)
def _ticket_pattern(prefixes: Tuple[str, ...]) -> Pattern[str]:
    alternatives = "|".join(re.escape(p) for p in prefixes)
    return re.compile(rf"(?:{alternatives})-\d+", re.IGNORECASE)


def extract_ticket_id(comments: Optional[str], prefixes: Optional[Iterable[str]] = None) -> Optional[str]:
    if not comments or not isinstance(comments, str):
        return None
    prefixes = tuple(prefixes) if prefixes is not None else ticket_prefixes()
    if not prefixes:
        return None
    match = _ticket_pattern(prefixes).search(comments)
    return match.group(0) if match else None


def environment_color(environment: str) -> str:
    return ENVIRONMENT_COLORS.get(str(environment or "").lower(), DEFAULT_ENVIRONMENT_COLOR)


def ticket_url(ticket_id: Optional[str], base: Optional[str] = None) -> Optional[str]:
    if not ticket_id:
        return None
    return f"{base or ticket_base_url()}{ticket_id}"
