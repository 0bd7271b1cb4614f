from __future__ import annotations

import os
from datetime import date
from pathlib import Path
from typing import Dict, Tuple


def _env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value not in (None, "") else default


ROOT_DIR = Path(__file__).resolve().parents[1]


def data_dir() -> Path:
    return Path(_env("KTLO_DATA_DIR", str(ROOT_DIR / "data")))


TASKS_ARTIFACT = "ktlo-data.json"
DATABASES_ARTIFACT = "aurora-data.json"


def tasks_artifact_path() -> Path:
    return data_dir() / TASKS_ARTIFACT


def databases_artifact_path() -> Path:
    return data_dir() / DATABASES_ARTIFACT


def ticket_prefixes() -> Tuple[str, ...]:
    raw = _env("KTLO_TICKET_PREFIXES", "GWCP,RE,BITS")
    return tuple(p.strip() for p in raw.split(",") if p.strip())


def ticket_base_url() -> str:
    base = _env("KTLO_TICKET_BASE_URL", "https://jira.yourcompany.com/browse/")
    return base if base.endswith("/") else base + "/"


def log_level() -> str:
    return _env("KTLO_LOG_LEVEL", "INFO").upper()


# Sheet names look like "gwre-ccs-dev Nov 11".
ENVIRONMENT_SHEET_PREFIX = "gwre-ccs"

INVENTORY_HEADER_MARKER = "AutoMinorVersionUpgrade"
OWNER_HEADER = "Owner"
EOL_HEADER = "End of Standard Support"

TASK_COLUMNS = {
    "KTLO Item": "item",
    "Received On": "received_on",
    "Triaged": "triaged",
    "Action Needed from CCS": "ccs_action_needed",
    "Status": "status",
    "Comments": "comments",
    "Due Date": "due_date",
    "PgM Assigned": "assignee",
}

UNASSIGNED = "Unassigned"
UNKNOWN = "Unknown"

# PostgreSQL major version -> (supported, end of standard support, label)
VERSION_COMPLIANCE: Dict[str, Tuple[bool, date, str]] = {
    "17": (True, date(2029, 11, 9), "v17 (Current)"),
    "16": (True, date(2028, 11, 9), "v16 (Supported)"),
    "15": (True, date(2027, 11, 11), "v15 (Supported)"),
    "14": (True, date(2026, 11, 12), "v14 (Older)"),
    "13": (False, date(2025, 11, 13), "v13 (EOL Soon)"),
    "12": (False, date(2024, 11, 14), "v12 (EOL)"),
    "11": (False, date(2023, 11, 9), "v11 (EOL)"),
}

ENVIRONMENT_COLORS = {
    "dev": "#3b82f6",
    "test": "#10b981",
    "staging": "#f59e0b",
    "prod": "#ef4444",
    "production": "#ef4444",
}
DEFAULT_ENVIRONMENT_COLOR = "#64748b"

STATUS_COLORS = {
    "Completed": "#10b981",
    "In Progress": "#3b82f6",
    "Not Started": "#f59e0b",
}

TASK_URGENCY_COLORS = {
    "overdue": "#ef4444",
    "urgent": "#f97316",
    "soon": "#f59e0b",
    "normal": "#64748b",
}

EOL_URGENCY_COLORS = {
    "critical": "#ef4444",
    "warning": "#f59e0b",
    "safe": "#10b981",
}
