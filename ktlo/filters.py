from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterable, Optional, Sequence, Tuple, Type

from ktlo.models import TaskStatus

ALL = "All"
ALL_STATUSES: Tuple[str, ...] = tuple(s.value for s in TaskStatus)


class TaskFilterCategory(str, Enum):
    STATUS = "status"
    ASSIGNEE = "assignee"
    URGENCY = "urgency"
    DUE_WINDOW = "due-window"
    CCS_ACTION = "ccs-action"
    TRIAGED = "triaged"


class DbFilterCategory(str, Enum):
    VERSION = "version"
    ENVIRONMENT = "environment"
    OWNER = "owner"
    COMPLIANCE = "compliance"
    AUTO_UPGRADE = "auto-upgrade"
    EOL = "eol"


def _parse_category(value: object, enum: Type[Enum]) -> Optional[Enum]:
    if isinstance(value, enum):
        return value
    try:
        return enum(str(value).strip().lower())
    except ValueError:
        return None


@dataclass(frozen=True)
class ActiveFilter:
    """Table-only narrowing: one category plus an optional value (e.g. version=15)."""

    category: str
    value: Optional[str] = None


@dataclass(frozen=True)
class TaskFilters:
    search: str = ""
    statuses: Tuple[str, ...] = ALL_STATUSES
    fiscal_year: str = ALL
    active: Optional[ActiveFilter] = None


@dataclass(frozen=True)
class DatabaseFilters:
    environment: str = ALL
    active: Optional[ActiveFilter] = None


def toggle_active(current: Optional[ActiveFilter], candidate: Optional[ActiveFilter]) -> Optional[ActiveFilter]:
    """Selecting the active filter again clears it; anything else replaces it."""
    if candidate is None or candidate == current:
        return None
    return candidate


# ---------------- state transitions ----------------
def with_search(filters: TaskFilters, search: str) -> TaskFilters:
    return replace(filters, search=(search or "").strip())


def toggle_status(filters: TaskFilters, status: str) -> TaskFilters:
    status = TaskStatus.parse(status).value
    if status in filters.statuses:
        statuses = tuple(s for s in filters.statuses if s != status)
    else:
        statuses = tuple(s for s in ALL_STATUSES if s in filters.statuses or s == status)
    return replace(filters, statuses=statuses)


def with_fiscal_year(filters: TaskFilters, fiscal_year: str) -> TaskFilters:
    return replace(filters, fiscal_year=fiscal_year or ALL)


def with_environment(filters: DatabaseFilters, environment: str) -> DatabaseFilters:
    return replace(filters, environment=environment or ALL)


def with_active(filters, category: str, value: Optional[str] = None):
    enum = TaskFilterCategory if isinstance(filters, TaskFilters) else DbFilterCategory
    parsed = _parse_category(category, enum)
    candidate = ActiveFilter(parsed.value, _clean_value(value)) if parsed is not None else None
    return replace(filters, active=toggle_active(filters.active, candidate))


def clear_active(filters):
    return replace(filters, active=None)


# ---------------- raw (request/UI) -> state ----------------
def _clean_value(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _active_from_raw(raw: object, enum: Type[Enum]) -> Optional[ActiveFilter]:
    if not raw:
        return None
    if isinstance(raw, ActiveFilter):
        category, value = raw.category, raw.value
    elif isinstance(raw, dict):
        category, value = raw.get("category"), raw.get("value")
    else:
        return None
    parsed = _parse_category(category, enum)
    if parsed is None:
        return None
    return ActiveFilter(parsed.value, _clean_value(value))


def _statuses(values: Optional[Iterable[object]]) -> Tuple[str, ...]:
    if values is None:
        return ALL_STATUSES
    wanted = {TaskStatus.parse(v).value for v in values if v is not None}
    return tuple(s for s in ALL_STATUSES if s in wanted)


def normalize_task_filters(raw: dict, *, available_fiscal_years: Optional[Sequence[str]] = None) -> TaskFilters:
    available = list(available_fiscal_years or [])
    fiscal_year = str(raw.get("fiscal_year") or "").strip()
    if not fiscal_year:
        # Default to the most recent fiscal year present in the data.
        fiscal_year = available[0] if available else ALL
    elif fiscal_year != ALL and available and fiscal_year not in available:
        fiscal_year = ALL
    return TaskFilters(
        search=(raw.get("search") or "").strip(),
        statuses=_statuses(raw.get("statuses")),
        fiscal_year=fiscal_year,
        active=_active_from_raw(raw.get("active"), TaskFilterCategory),
    )


def normalize_database_filters(raw: dict, *, available_environments: Optional[Sequence[str]] = None) -> DatabaseFilters:
    environment = str(raw.get("environment") or ALL).strip() or ALL
    if available_environments is not None and environment != ALL and environment not in available_environments:
        environment = ALL
    return DatabaseFilters(
        environment=environment,
        active=_active_from_raw(raw.get("active"), DbFilterCategory),
    )
