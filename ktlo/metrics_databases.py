from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import pandas as pd

from ktlo.config import EOL_URGENCY_COLORS, UNKNOWN
from ktlo.data import distribution, fixed_series, percent, records_frame, select_rows
from ktlo.filters import ALL, ActiveFilter, DatabaseFilters, DbFilterCategory
from ktlo.models import DbInstanceRecord
from ktlo.rules import (
    EOL_BUCKETS,
    EOL_CRITICAL,
    EOL_SAFE,
    EOL_WARNING,
    days_until_eol,
    environment_color,
    eol_urgency,
    is_compliant,
    major_version,
    version_label,
)

ROW_COLUMNS = [
    "environment",
    "auto_minor_version_upgrade",
    "instance_id",
    "engine_version",
    "owner",
    "end_of_standard_support",
    "compliant",
    "major_version",
    "version_label",
    "days_until_eol",
    "eol_urgency",
    "environment_color",
]


def annotate(records: Sequence[DbInstanceRecord], now: datetime) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for record in records:
        row = record.to_dict()
        days = days_until_eol(record.end_of_standard_support, now)
        row.update(
            compliant=is_compliant(record.engine_version),
            major_version=major_version(record.engine_version),
            version_label=version_label(record.engine_version),
            days_until_eol=days,
            eol_urgency=eol_urgency(days),
            environment_color=environment_color(record.environment),
        )
        out.append(row)
    return out


def environments(records: Sequence[DbInstanceRecord]) -> List[str]:
    return [ALL] + sorted({r.environment for r in records})


def instance_label(row: Dict[str, Any]) -> str:
    """Display name for a table row; instance ids repeat across environments."""
    return f"{row['instance_id']} ({row['environment']})"


def metric_scope(df: pd.DataFrame, filters: DatabaseFilters) -> pd.DataFrame:
    if df.empty or filters.environment == ALL:
        return df
    return df[df["environment"] == filters.environment]


def _enabled(value: Optional[str], truthy: str) -> bool:
    return (value or truthy).strip().lower() == truthy


def apply_active(df: pd.DataFrame, active: Optional[ActiveFilter]) -> pd.DataFrame:
    if active is None or df.empty:
        return df
    try:
        category = DbFilterCategory(active.category)
    except ValueError:
        return df
    value = active.value
    if category is DbFilterCategory.VERSION:
        # Accepts a major version ("15") or a chart label ("v15 (Supported)").
        return df[(df["major_version"] == value) | (df["version_label"] == value)]
    if category is DbFilterCategory.ENVIRONMENT:
        return df[df["environment"].str.lower() == (value or "").lower()]
    if category is DbFilterCategory.OWNER:
        return df[df["owner"] == value]
    if category is DbFilterCategory.COMPLIANCE:
        return df[df["compliant"].astype(bool) == _enabled(value, "compliant")]
    if category is DbFilterCategory.AUTO_UPGRADE:
        return df[df["auto_minor_version_upgrade"].astype(bool) == _enabled(value, "enabled")]
    return df[df["eol_urgency"] == (value or EOL_CRITICAL)]


def compute_databases_view(
    records: Sequence[DbInstanceRecord],
    filters: DatabaseFilters,
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """View-model for the database version dashboard.

    Metrics and charts cover the selected environment; the table is further
    narrowed by ``filters.active`` without touching the metrics.
    """
    now = now or datetime.now()
    annotated = annotate(records, now)
    df = records_frame(annotated, ROW_COLUMNS)
    scope = metric_scope(df, filters)
    table = apply_active(scope, filters.active)

    total = len(scope)
    compliant_mask = scope["compliant"].astype(bool)
    upgrade_mask = scope["auto_minor_version_upgrade"].astype(bool)
    urgency = scope["eol_urgency"]
    compliant = int(compliant_mask.sum()) if total else 0
    auto_enabled = int(upgrade_mask.sum()) if total else 0

    lists = {
        "non_compliant": select_rows(annotated, scope[~compliant_mask]),
        "auto_upgrade_disabled": select_rows(annotated, scope[~upgrade_mask]),
        "eol_critical": select_rows(annotated, scope[urgency == EOL_CRITICAL]),
        "eol_warning": select_rows(annotated, scope[urgency == EOL_WARNING]),
    }

    metrics = {
        "total": total,
        "compliant": compliant,
        "non_compliant": total - compliant,
        "compliant_percent": percent(compliant, total),
        "auto_upgrade_enabled": auto_enabled,
        "auto_upgrade_disabled": total - auto_enabled,
        "auto_upgrade_percent": percent(auto_enabled, total),
        "eol_critical": len(lists["eol_critical"]),
        "eol_warning": len(lists["eol_warning"]),
        "eol_safe": int((urgency == EOL_SAFE).sum()) if total else 0,
        "eol_unknown": int((scope["end_of_standard_support"] == UNKNOWN).sum()) if total else 0,
    }

    charts = {
        "version": distribution(scope, "version_label", label="version"),
        "environment": distribution(scope, "environment", color_for=environment_color),
        "owner": distribution(scope, "owner"),
        "eol": fixed_series(scope, "eol_urgency", EOL_BUCKETS, EOL_URGENCY_COLORS),
    }

    return {
        "filters": asdict(filters),
        "environments": environments(records),
        "empty": not records,
        "metrics": metrics,
        "charts": charts,
        "table": select_rows(annotated, table),
        "lists": lists,
    }


def drill_down(
    records: Sequence[DbInstanceRecord],
    filters: DatabaseFilters,
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
