from __future__ import annotations

from datetime import datetime

import pytest
from openpyxl import Workbook

from ktlo.models import TaskRecord, TaskStatus
from ktlo.normalize import normalize_db_row

# Serial 45658 is 2025-01-01.
NOW = datetime(2025, 1, 1)
TODAY_SERIAL = 45658


def db(environment: str, flag: str, instance_id: str, version: str):
    return normalize_db_row([f"| {flag} | {instance_id} | {version} |"], environment)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def db_records():
    return [
        db("dev", "True", "dev-app-1", "15.4"),
        db("dev", "True", "dev-app-2", "16.1"),
        db("dev", "False", "dev-app-3", "13.7"),
        db("dev", "True", "dev-app-4", "15.2"),
        db("dev", "False", "dev-app-5", "12.9"),
        db("dev", "True", "dev-app-6", "14.10"),
        db("prod", "True", "prod-app-1", "15.4"),
        db("prod", "True", "prod-app-2", "15.6"),
        db("prod", "False", "prod-app-3", "17.1"),
        db("prod", "True", "prod-app-4", "9.6"),
    ]


@pytest.fixture
def task_records():
    return [
        TaskRecord("Rotate certs", 45505, True, True, TaskStatus.IN_PROGRESS, "see GWCP-12345", TODAY_SERIAL - 1, "Alice"),
        TaskRecord("Patch RDS", 45600, True, False, TaskStatus.NOT_STARTED, None, TODAY_SERIAL + 5, "Bob"),
        TaskRecord("Upgrade EKS", 45504, False, True, TaskStatus.COMPLETED, "done", 45600, "Alice"),
        TaskRecord("Clean S3", None, False, False, TaskStatus.NOT_STARTED, "re-9 follow up", "TBD", "Unassigned"),
        TaskRecord("Audit IAM", 45620, True, False, TaskStatus.IN_PROGRESS, None, TODAY_SERIAL + 20, "Carol"),
        TaskRecord("Renew license", 45630, False, False, TaskStatus.NOT_STARTED, None, TODAY_SERIAL + 60, "Bob"),
    ]


@pytest.fixture
def inventory_workbook(tmp_path):
    wb = Workbook()
    dev = wb.active
    dev.title = "gwre-ccs-dev Nov 11"
    dev.append(["| AutoMinorVersionUpgrade | DBInstanceIdentifier | EngineVersion |", "Owner", "End of Standard Support"])
    dev.append(["|---|---|---|"])
    dev.append(["| True | dev-db-1 | 15.4 |", "platform", None])
    dev.append(["| False | finance-db-2 | 13.7 |", "  ", TODAY_SERIAL])
    dev.append(["stray note"])
    dev.append(["| x | y |"])

    prod = wb.create_sheet("gwre-ccs-prod Nov 11")
    prod.append(["| AutoMinorVersionUpgrade | DBInstanceIdentifier | EngineVersion |"])
    prod.append(["| --- | --- | --- |"])
    prod.append(["| True | prod-db-1 | 16.2 |"])
    prod.append(["| True | prod-db-2 | 9.6 |"])

    wb.create_sheet("Notes")

    path = tmp_path / "aurora.xlsx"
    wb.save(path)
    return path


@pytest.fixture
def tracker_workbook(tmp_path):
    wb = Workbook()
    ws = wb.active
    ws.title = "KTLO"
    ws.append(["KTLO Item", "Received On", "Triaged", "Action Needed from CCS", "Status", "Comments", "Due Date", "PgM Assigned"])
    ws.append(["Rotate certs", 45505, "Yes", "No", "In Progress", "GWCP-1 open", 45657, "Alice"])
    ws.append([None, 45505, "Yes", "No", "Completed", None, None, "Bob"])
    ws.append(["Clean S3", None, "No", "Yes", None, None, "TBD", None])
    path = tmp_path / "tracker.xlsx"
    wb.save(path)
    return path
