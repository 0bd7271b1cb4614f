from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import pandas as pd

from ktlo.config import STATUS_COLORS, TASK_URGENCY_COLORS
from ktlo.data import distribution, fixed_series, percent, records_frame, select_rows
from ktlo.filters import ALL, ActiveFilter, TaskFilterCategory, TaskFilters
from ktlo.models import TaskRecord, TaskStatus
from ktlo.normalize import format_serial
from ktlo.rules import (
    TASK_URGENCY_BUCKETS,
    days_until_due,
    extract_ticket_id,
    fiscal_year_of_serial,
    ticket_url,
    urgency_for,
)

DUE_OVERDUE = "overdue"
DUE_7 = "due-7"
DUE_30 = "due-30"
DUE_90 = "due-90"

STATUS_ORDER = [TaskStatus.COMPLETED.value, TaskStatus.IN_PROGRESS.value, TaskStatus.NOT_STARTED.value]

ROW_COLUMNS = [
    "item",
    "received_on",
    "triaged",
    "ccs_action_needed",
    "status",
    "comments",
    "due_date",
    "assignee",
    "fiscal_year",
    "urgency",
    "days_until_due",
    "due_window",
    "ticket_id",
    "ticket_url",
    "received_on_display",
    "due_date_display",
]


def _due_window(status: TaskStatus, days: Optional[int]) -> Optional[str]:
    if status is TaskStatus.COMPLETED or days is None:
        return None
    if days < 0:
        return DUE_OVERDUE
    if days <= 7:
        return DUE_7
    if days <= 30:
        return DUE_30
    if days <= 90:
        return DUE_90
    return None


def annotate(records: Sequence[TaskRecord], now: datetime) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for record in records:
        row = record.to_dict()
        days = days_until_due(record.due_date, now)
        ticket_id = extract_ticket_id(record.comments)
        row.update(
            fiscal_year=fiscal_year_of_serial(record.received_on),
            urgency=urgency_for(record.status, record.due_date, now),
            days_until_due=days,
            due_window=_due_window(record.status, days),
            ticket_id=ticket_id,
            ticket_url=ticket_url(ticket_id),
            received_on_display=format_serial(record.received_on),
            due_date_display=format_serial(record.due_date),
        )
        out.append(row)
    return out


def fiscal_years(records: Sequence[TaskRecord]) -> List[str]:
    years = {fiscal_year_of_serial(r.received_on) for r in records}
    return sorted((y for y in years if y), reverse=True)


def metric_scope(df: pd.DataFrame, filters: TaskFilters) -> pd.DataFrame:
    if df.empty:
        return df
    mask = pd.Series(True, index=df.index)
    if filters.fiscal_year != ALL:
        # Items without a received date are never excluded by the fiscal year.
        mask &= df["fiscal_year"].isna() | (df["fiscal_year"] == filters.fiscal_year)
    if filters.statuses:
        mask &= df["status"].isin(filters.statuses)
    query = (filters.search or "").strip().lower()
    if query:
        text_match = pd.Series(False, index=df.index)
        for col in ["item", "comments", "assignee"]:
            text_match |= df[col].fillna("").astype(str).str.lower().str.contains(query, regex=False)
        mask &= text_match
    return df[mask]


def _flag(value: Optional[str]) -> bool:
    return (value or "yes").strip().lower() not in {"no", "false", "0"}


def apply_active(df: pd.DataFrame, active: Optional[ActiveFilter]) -> pd.DataFrame:
    if active is None or df.empty:
        return df
    try:
        category = TaskFilterCategory(active.category)
    except ValueError:
        return df
    value = active.value
    if category is TaskFilterCategory.STATUS:
        return df[df["status"] == TaskStatus.parse(value).value]
    if category is TaskFilterCategory.ASSIGNEE:
        return df[df["assignee"] == value]
    if category is TaskFilterCategory.URGENCY:
        return df[df["urgency"] == value]
    if category is TaskFilterCategory.DUE_WINDOW:
        return df[df["due_window"] == value]
    if category is TaskFilterCategory.CCS_ACTION:
        return df[df["ccs_action_needed"] == _flag(value)]
    return df[df["triaged"] == _flag(value)]


def _count(mask: pd.Series) -> int:
    return int(mask.sum()) if len(mask) else 0


def compute_tasks_view(
    records: Sequence[TaskRecord],
    filters: TaskFilters,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """View-model for the task dashboard.

    Metrics, charts and lists reflect the metric scope (fiscal year, statuses,
    search). The table is the metric scope narrowed by ``filters.active``.
    """
    now = now or datetime.now()
    annotated = annotate(records, now)
    df = records_frame(annotated, ROW_COLUMNS)
    scope = metric_scope(df, filters)
    table = apply_active(scope, filters.active)

    total = len(scope)
    status = scope["status"]
    triaged = _count(scope["triaged"].astype(bool))
    ccs_action = scope[scope["ccs_action_needed"].astype(bool)]
    completed = scope[status == TaskStatus.COMPLETED.value]
    window = scope["due_window"]

    lists = {
        "overdue": select_rows(annotated, scope[window == DUE_OVERDUE]),
        "due_7_days": select_rows(annotated, scope[window == DUE_7]),
        "due_30_days": select_rows(annotated, scope[window == DUE_30]),
        "due_90_days": select_rows(annotated, scope[window == DUE_90]),
        "ccs_action": select_rows(annotated, ccs_action),
        "completed": select_rows(annotated, completed),
    }

    metrics = {
        "total": total,
        "triaged": triaged,
        "triaged_percent": percent(triaged, total),
        "ccs_action": len(ccs_action),
        "completed": len(completed),
        "completed_percent": percent(len(completed), total),
        "in_progress": _count(status == TaskStatus.IN_PROGRESS.value),
        "not_started": _count(status == TaskStatus.NOT_STARTED.value),
        "overdue": len(lists["overdue"]),
        "due_7_days": len(lists["due_7_days"]),
        "due_30_days": len(lists["due_30_days"]),
        "due_90_days": len(lists["due_90_days"]),
    }

    charts = {
        "status": fixed_series(scope, "status", STATUS_ORDER, STATUS_COLORS),
        "assignee": distribution(scope, "assignee"),
        "urgency": fixed_series(scope, "urgency", TASK_URGENCY_BUCKETS, TASK_URGENCY_COLORS),
    }

    return {
        "filters": asdict(filters),
        "fiscal_years": fiscal_years(records),
        "empty": not records,
        "metrics": metrics,
        "charts": charts,
        "table": select_rows(annotated, table),
        "lists": lists,
    }


def drill_down(
    records: Sequence[TaskRecord],
    filters: TaskFilters,
    *,
    key: Optional[ActiveFilter] = None,
    predicate: Optional[Callable[[Dict[str, Any]], bool]] = None,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Metric-scope rows matching a clicked aggregate key or an explicit predicate."""
    now = now or datetime.now()
    annotated = annotate(records, now)
    scope = metric_scope(records_frame(annotated, ROW_COLUMNS), filters)
    if key is not None:
        scope = apply_active(scope, key)
    picked = select_rows(annotated, scope)
    if predicate is not None:
        picked = [row for row in picked if predicate(row)]
    return picked
