import pytest

from ktlo import filters as flt
from ktlo.filters import ActiveFilter, TaskFilters
from ktlo.metrics_tasks import compute_tasks_view, drill_down, fiscal_years


def items(rows):
    return [row["item"] for row in rows]


@pytest.fixture
def view(task_records, now):
    return compute_tasks_view(task_records, TaskFilters(), now=now)


def test_headline_metrics(view):
    m = view["metrics"]
    assert m["total"] == 6
    assert m["triaged"] == 3
    assert m["triaged_percent"] == 50
    assert m["ccs_action"] == 2
    assert m["completed"] == 1
    assert m["completed_percent"] == 17
    assert m["in_progress"] == 2
    assert m["not_started"] == 3


def test_due_windows(view):
    m = view["metrics"]
    assert (m["overdue"], m["due_7_days"], m["due_30_days"], m["due_90_days"]) == (1, 1, 1, 1)
    assert items(view["lists"]["overdue"]) == ["Rotate certs"]
    assert items(view["lists"]["due_7_days"]) == ["Patch RDS"]
    assert items(view["lists"]["due_30_days"]) == ["Audit IAM"]
    assert items(view["lists"]["due_90_days"]) == ["Renew license"]
    assert items(view["lists"]["ccs_action"]) == ["Rotate certs", "Upgrade EKS"]
    assert items(view["lists"]["completed"]) == ["Upgrade EKS"]


def test_charts(view):
    assert view["charts"]["assignee"] == [
        {"name": "Alice", "count": 2},
        {"name": "Bob", "count": 2},
        {"name": "Unassigned", "count": 1},
        {"name": "Carol", "count": 1},
    ]
    assert [(s["name"], s["count"]) for s in view["charts"]["status"]] == [
        ("Completed", 1),
        ("In Progress", 2),
        ("Not Started", 3),
    ]
    assert [(s["name"], s["count"]) for s in view["charts"]["urgency"]] == [
        ("overdue", 1),
        ("urgent", 1),
        ("soon", 1),
        ("normal", 3),
    ]
    assert view["charts"]["status"][0]["color"] == "#10b981"


def test_rows_are_annotated(view):
    rows = {row["item"]: row for row in view["table"]}
    assert rows["Rotate certs"]["ticket_id"] == "GWCP-12345"
    assert rows["Rotate certs"]["fiscal_year"] == "FY25"
    assert rows["Rotate certs"]["received_on_display"] == "Aug 1, 2024"
    assert rows["Upgrade EKS"]["fiscal_year"] == "FY24"
    assert rows["Upgrade EKS"]["urgency"] == "normal"
    assert rows["Clean S3"]["ticket_id"] == "re-9"
    assert rows["Clean S3"]["fiscal_year"] is None
    assert rows["Clean S3"]["due_date_display"] == "TBD"
    assert rows["Clean S3"]["days_until_due"] is None
    assert rows["Patch RDS"]["days_until_due"] == 5


def test_fiscal_years_latest_first(task_records):
    assert fiscal_years(task_records) == ["FY25", "FY24"]


def test_fiscal_year_filter_keeps_undated_items(task_records, now):
    view = compute_tasks_view(task_records, TaskFilters(fiscal_year="FY25"), now=now)
    assert view["metrics"]["total"] == 5
    assert "Upgrade EKS" not in items(view["table"])
    assert "Clean S3" in items(view["table"])


def test_status_filter(task_records, now):
    view = compute_tasks_view(task_records, TaskFilters(statuses=("Completed",)), now=now)
    assert items(view["table"]) == ["Upgrade EKS"]
    assert view["metrics"]["completed_percent"] == 100


def test_empty_status_selection_shows_everything(task_records, now):
    view = compute_tasks_view(task_records, TaskFilters(statuses=()), now=now)
    assert view["metrics"]["total"] == 6


@pytest.mark.parametrize(
    "query, expected",
    [("alice", ["Rotate certs", "Upgrade EKS"]), ("GWCP", ["Rotate certs"]), ("s3", ["Clean S3"]), ("zzz", [])],
)
def test_search(task_records, now, query, expected):
    view = compute_tasks_view(task_records, TaskFilters(search=query), now=now)
    assert items(view["table"]) == expected
    assert view["metrics"]["total"] == len(expected)


def test_active_filter_narrows_table_only(task_records, now):
    state = flt.with_active(TaskFilters(), "due-window", "overdue")
    view = compute_tasks_view(task_records, state, now=now)
    assert items(view["table"]) == ["Rotate certs"]
    assert view["metrics"]["total"] == 6
    assert view["filters"]["active"] == {"category": "due-window", "value": "overdue"}

    cleared = compute_tasks_view(task_records, flt.with_active(state, "due-window", "overdue"), now=now)
    assert len(cleared["table"]) == 6


@pytest.mark.parametrize(
    "active, expected",
    [
        (ActiveFilter("status", "Completed"), ["Upgrade EKS"]),
        (ActiveFilter("assignee", "Bob"), ["Patch RDS", "Renew license"]),
        (ActiveFilter("urgency", "soon"), ["Audit IAM"]),
        (ActiveFilter("ccs-action"), ["Rotate certs", "Upgrade EKS"]),
        (ActiveFilter("triaged", "no"), ["Upgrade EKS", "Clean S3", "Renew license"]),
        (ActiveFilter("nonsense", "x"), ["Rotate certs", "Patch RDS", "Upgrade EKS", "Clean S3", "Audit IAM", "Renew license"]),
    ],
)
def test_active_filter_categories(task_records, now, active, expected):
    view = compute_tasks_view(task_records, TaskFilters(active=active), now=now)
    assert items(view["table"]) == expected


def test_same_inputs_same_view(task_records, now):
    state = TaskFilters(search="a", fiscal_year="FY25")
    assert compute_tasks_view(task_records, state, now=now) == compute_tasks_view(task_records, state, now=now)


def test_empty_dataset(now):
    view = compute_tasks_view([], TaskFilters(), now=now)
    assert view["empty"] is True
    assert view["metrics"]["total"] == 0
    assert view["metrics"]["triaged_percent"] == 0
    assert view["metrics"]["completed_percent"] == 0
    assert view["charts"] == {"status": [], "assignee": [], "urgency": []}
    assert view["table"] == []
    assert view["fiscal_years"] == []


def test_drill_down(task_records, now):
    assert items(drill_down(task_records, TaskFilters(), key=ActiveFilter("assignee", "Alice"), now=now)) == [
        "Rotate certs",
        "Upgrade EKS",
    ]
    picked = drill_down(task_records, TaskFilters(search="bob"), predicate=lambda r: r["days_until_due"] == 5, now=now)
    assert items(picked) == ["Patch RDS"]


def test_rows_link_to_their_ticket(task_records, now, monkeypatch):
    monkeypatch.setenv("KTLO_TICKET_BASE_URL", "https://tickets.example.org/browse/")
    rows = {row["item"]: row for row in compute_tasks_view(task_records, TaskFilters(), now=now)["table"]}
    assert rows["Rotate certs"]["ticket_url"] == "https://tickets.example.org/browse/GWCP-12345"
    assert rows["Clean S3"]["ticket_url"] == "https://tickets.example.org/browse/re-9"
    assert rows["Audit IAM"]["ticket_url"] is None


@pytest.mark.parametrize(
    "key, expected",
    [
        (ActiveFilter("status", "Not Started"), ["Patch RDS", "Clean S3", "Renew license"]),
        (ActiveFilter("assignee", "Bob"), ["Patch RDS", "Renew license"]),
        (ActiveFilter("urgency", "normal"), ["Upgrade EKS", "Clean S3", "Renew license"]),
    ],
)
def test_chart_drill_down_matches_chart_counts(task_records, now, key, expected):
    view = compute_tasks_view(task_records, TaskFilters(), now=now)
    chart = {"status": "status", "assignee": "assignee", "urgency": "urgency"}[key.category]
    counts = {entry["name"]: entry["count"] for entry in view["charts"][chart]}
    picked = drill_down(task_records, TaskFilters(), key=key, now=now)
    assert items(picked) == expected
    assert counts[key.value] == len(picked)
