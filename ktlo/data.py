from __future__ import annotations

import json
import logging
from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type, Union

import pandas as pd

from ktlo.config import databases_artifact_path, tasks_artifact_path
from ktlo.exceptions import MalformedRow, MissingArtifact
from ktlo.models import DbInstanceRecord, TaskRecord

logger = logging.getLogger(__name__)

Record = Union[TaskRecord, DbInstanceRecord]

RECORD_TYPES: Dict[str, Type[Record]] = {"tasks": TaskRecord, "databases": DbInstanceRecord}

REMEDIATION = {
    "tasks": (
        "The KTLO dashboard data file could not be loaded. "
        "Run `ktlo-extract-tasks <KTLO Tracker.xlsx>` to create {path}."
    ),
    "databases": (
        "The database inventory data file could not be loaded. "
        "Run `ktlo-extract-databases <Aurora Deprecations.xlsx>` to create {path}."
    ),
}


# ---------------- Artifact IO ----------------
def save_records(records: Iterable[Record], path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [r.to_dict() for r in records]
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def load_records(path: Path, kind: str) -> List[Record]:
    path = Path(path)
    if not path.exists():
        raise MissingArtifact(str(path))
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise MissingArtifact(str(path), f"unreadable ({exc})") from exc
    if not isinstance(raw, list):
        raise MissingArtifact(str(path), "expected a JSON array")
    record_type = RECORD_TYPES[kind]
    records: List[Record] = []
    dropped = 0
    for item in raw:
        try:
            if not isinstance(item, dict):
                raise MalformedRow("not an object")
            records.append(record_type.from_dict(item))
        except MalformedRow:
            dropped += 1
    if dropped:
        logger.warning("%s: skipped %d malformed %s records", path, dropped, kind)
    return records


def file_signature(path: Path) -> Tuple[str, float]:
    path = Path(path)
    return (str(path), path.stat().st_mtime if path.exists() else -1.0)


@lru_cache(maxsize=8)
def _load_records_cached(kind: str, sig: Tuple[str, float]) -> Tuple[Record, ...]:
    return tuple(load_records(Path(sig[0]), kind))


def load_dashboard_data() -> Dict[str, Any]:
    """Records for both dashboards; a missing artifact yields an empty list plus a message."""
    paths = {"tasks": tasks_artifact_path(), "databases": databases_artifact_path()}
    out: Dict[str, Any] = {"missing": {}, "messages": {}}
    for kind, path in paths.items():
        try:
            records = list(_load_records_cached(kind, file_signature(path)))
            missing = False
        except MissingArtifact as exc:
            logger.warning("%s", exc)
            records, missing = [], True
        out[kind] = records
        out["missing"][kind] = missing
        out["messages"][kind] = REMEDIATION[kind].format(path=path) if missing or not records else None
    return out


# ---------------- Aggregation helpers ----------------
def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def percent(part: int, total: int) -> int:
    if not total:
        return 0
    return int(round_half_up(part / total * 100))


def records_frame(rows: Sequence[Mapping[str, Any]], columns: Sequence[str]) -> pd.DataFrame:
    """Annotated rows as a frame whose index is each row's position in ``rows``."""
    if not rows:
        return pd.DataFrame(columns=list(columns))
    return pd.DataFrame(list(rows), columns=list(columns))


def distribution(
    df: pd.DataFrame,
    key: str,
    *,
    label: str = "name",
    color_for: Optional[Callable[[str], str]] = None,
) -> List[Dict[str, Any]]:
    """Count per group, descending; equal counts keep first-seen order."""
    if df.empty or key not in df.columns:
        return []
    counts = df.groupby(key, sort=False).size().reset_index(name="count")
    counts = counts.sort_values("count", ascending=False, kind="mergesort")
    out: List[Dict[str, Any]] = []
    for name, count in counts.itertuples(index=False, name=None):
        entry: Dict[str, Any] = {label: str(name), "count": int(count)}
        if color_for is not None:
            entry["color"] = color_for(str(name))
        out.append(entry)
    return out


def fixed_series(
    df: pd.DataFrame, key: str, order: Sequence[str], colors: Mapping[str, str]
) -> List[Dict[str, Any]]:
    """Counts in a fixed category order, zero entries removed."""
    counts = df[key].value_counts() if not df.empty and key in df.columns else pd.Series(dtype=int)
    series = [{"name": name, "count": int(counts.get(name, 0)), "color": colors[name]} for name in order]
    return [s for s in series if s["count"] > 0]


def select_rows(source: Sequence[Dict[str, Any]], df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Rows of ``source`` picked by the frame's index, in source order."""
    return [source[i] for i in sorted(df.index)]
