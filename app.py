from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional

import altair as alt
import pandas as pd
import streamlit as st

from ktlo import filters as flt
from ktlo.charts import bar_chart, pie_chart
from ktlo.data import load_dashboard_data
from ktlo.metrics_databases import compute_databases_view, instance_label
from ktlo.metrics_databases import drill_down as drill_down_databases
from ktlo.metrics_tasks import compute_tasks_view, fiscal_years
from ktlo.metrics_tasks import drill_down as drill_down_tasks

alt.data_transformers.disable_max_rows()


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def render_no_data(message: Optional[str]):
    st.error("No Data Available")
    st.markdown(message or "The data file could not be loaded.")
    st.markdown(
        "To fix this:\n"
        "1. Run `ktlo-extract-tasks <workbook>` or `ktlo-extract-databases <workbook>`\n"
        "2. Reload this page"
    )
    if st.button("Reload Page"):
        st.rerun()


def active_chip(active: Optional[Dict[str, Any]]) -> str:
    if not active:
        return ""
    value = f" = {active['value']}" if active.get("value") else ""
    return f"<div class='chip-row'><span class='chip'>Table filter: {active['category']}{value}</span></div>"


def metric_button(col, label: str, value: Any, *, state_key: str, category: str, filter_value: Optional[str] = None, help: Optional[str] = None):
    col.metric(label, value, help=help)
    if col.button("Filter table", key=f"{state_key}-{category}-{filter_value}"):
        st.session_state[state_key] = flt.with_active(st.session_state[state_key], category, filter_value)
        st.rerun()


def detail_table(rows: List[Dict[str, Any]], columns: List[str], empty_text: str):
    if not rows:
        st.info(empty_text)
        return
    st.dataframe(pd.DataFrame(rows)[columns], use_container_width=True, hide_index=True)


def chart_drill_down(
    records,
    state,
    series: List[Dict[str, Any]],
    *,
    category: str,
    drill: Callable[..., List[Dict[str, Any]]],
    state_key: str,
    columns: List[str],
    label: str = "name",
):
    names = [entry[label] for entry in series]
    if not names:
        return
    picked = st.selectbox(f"Drill into {category}", ["Any"] + names, key=f"{state_key}-{category}-drill")
    if picked == "Any":
        return
    key = flt.ActiveFilter(category, picked)
    rows = drill(records, state, key=key)
    with st.expander(f"{category}: {picked} ({len(rows)})", expanded=True):
        detail_table(rows, columns, "Nothing to show.")
        if st.button("Filter table", key=f"{state_key}-{category}-{picked}-apply"):
            st.session_state[state_key] = flt.with_active(state, category, picked)
            st.rerun()


TASK_COLUMNS = ["item", "status", "assignee", "received_on_display", "due_date_display", "urgency", "ticket_id", "comments"]
DB_COLUMNS = [
    "environment",
    "instance_id",
    "engine_version",
    "owner",
    "compliant",
    "auto_minor_version_upgrade",
    "end_of_standard_support",
    "eol_urgency",
]


def task_detail(rows: List[Dict[str, Any]]):
    if not rows:
        return
    idx = st.selectbox("Item details", range(len(rows)), format_func=lambda i: rows[i]["item"], key="task-detail")
    row = rows[idx]
    with st.expander(row["item"], expanded=False):
        c1, c2 = st.columns(2)
        c1.markdown(f"**Status:** {row['status']}")
        c1.markdown(f"**PgM:** {row['assignee']}")
        c1.markdown(f"**Fiscal year:** {row['fiscal_year'] or 'n/a'}")
        c2.markdown(f"**Received:** {row['received_on_display'] or 'n/a'}")
        c2.markdown(f"**Due:** {row['due_date_display'] or 'n/a'} ({row['urgency']})")
        c2.markdown(f"**Triaged:** {'Yes' if row['triaged'] else 'No'}, **CCS action:** {'Yes' if row['ccs_action_needed'] else 'No'}")
        if row["ticket_url"]:
            st.markdown(f"**Ticket:** [{row['ticket_id']}]({row['ticket_url']})")
        if row["comments"]:
            st.markdown(f"**Comments:** {row['comments']}")


# ---------- pages ----------
def render_tasks_page(records):
    years = fiscal_years(records)
    if "task_filters" not in st.session_state:
        st.session_state["task_filters"] = flt.normalize_task_filters({}, available_fiscal_years=years)
    state: flt.TaskFilters = st.session_state["task_filters"]

    c1, c2, c3 = st.columns([4, 2, 4])
    search = c1.text_input("Search items, comments, PgM", value=state.search)
    fy_options = [flt.ALL] + years
    fy = c2.selectbox("Fiscal Year", fy_options, index=fy_options.index(state.fiscal_year) if state.fiscal_year in fy_options else 0)
    state = flt.with_fiscal_year(flt.with_search(state, search), fy)
    c3.markdown("Status")
    for status in flt.ALL_STATUSES:
        selected = status in state.statuses
        if c3.checkbox(status, value=selected, key=f"status-{status}") != selected:
            state = flt.toggle_status(state, status)
    st.session_state["task_filters"] = state

    view = compute_tasks_view(records, state)
    m = view["metrics"]

    cols = st.columns(4)
    cols[0].metric("Total Items", m["total"], help=f"{m['in_progress']} in progress, {m['not_started']} not started")
    metric_button(cols[1], "Triaged", f"{m['triaged']} ({m['triaged_percent']}%)", state_key="task_filters", category="triaged")
    metric_button(cols[2], "CCS Action Needed", m["ccs_action"], state_key="task_filters", category="ccs-action")
    metric_button(cols[3], "Completed", f"{m['completed']} ({m['completed_percent']}%)", state_key="task_filters", category="status", filter_value="Completed")

    cols = st.columns(4)
    metric_button(cols[0], "Overdue", m["overdue"], state_key="task_filters", category="due-window", filter_value="overdue")
    metric_button(cols[1], "Due in 7 days", m["due_7_days"], state_key="task_filters", category="due-window", filter_value="due-7")
    metric_button(cols[2], "Due in 30 days", m["due_30_days"], state_key="task_filters", category="due-window", filter_value="due-30")
    metric_button(cols[3], "Due in 90 days", m["due_90_days"], state_key="task_filters", category="due-window", filter_value="due-90")

    drill = dict(drill=drill_down_tasks, state_key="task_filters", columns=TASK_COLUMNS)
    chart_cols = st.columns(3)
    with chart_cols[0]:
        with card("Status Distribution"):
            st.altair_chart(pie_chart(view["charts"]["status"]), use_container_width=True)
            chart_drill_down(records, state, view["charts"]["status"], category="status", **drill)
    with chart_cols[1]:
        with card("Items by PgM"):
            st.altair_chart(bar_chart(view["charts"]["assignee"], title="PgM"), use_container_width=True)
            chart_drill_down(records, state, view["charts"]["assignee"], category="assignee", **drill)
    with chart_cols[2]:
        with card("Urgency"):
            st.altair_chart(bar_chart(view["charts"]["urgency"], title="Urgency"), use_container_width=True)
            chart_drill_down(records, state, view["charts"]["urgency"], category="urgency", **drill)

    with card(f"KTLO Items ({len(view['table'])})"):
        st.markdown(active_chip(view["filters"]["active"]), unsafe_allow_html=True)
        if view["filters"]["active"] and st.button("Clear table filter", key="task-clear"):
            st.session_state["task_filters"] = flt.clear_active(state)
            st.rerun()
        detail_table(view["table"], TASK_COLUMNS, "No items match the current filters.")
        task_detail(view["table"])


def render_databases_page(records):
    if "db_filters" not in st.session_state:
        st.session_state["db_filters"] = flt.DatabaseFilters()
    state: flt.DatabaseFilters = st.session_state["db_filters"]

    view = compute_databases_view(records, state)
    env_options = view["environments"]
    env = st.selectbox("Environment", env_options, index=env_options.index(state.environment) if state.environment in env_options else 0)
    if env != state.environment:
        st.session_state["db_filters"] = flt.with_environment(state, env)
        st.rerun()
    m = view["metrics"]

    cols = st.columns(4)
    metric_button(cols[0], "Compliant", f"{m['compliant']} of {m['total']}", state_key="db_filters", category="compliance", filter_value="compliant")
    metric_button(cols[1], "Non-Compliant", m["non_compliant"], state_key="db_filters", category="compliance", filter_value="non-compliant", help=f"{m['compliant_percent']}% compliant")
    metric_button(cols[2], "Auto Upgrade Disabled", m["auto_upgrade_disabled"], state_key="db_filters", category="auto-upgrade", filter_value="disabled", help=f"{m['auto_upgrade_percent']}% enabled")
    metric_button(cols[3], "EOL Critical", m["eol_critical"], state_key="db_filters", category="eol", filter_value="critical", help="Less than a year of standard support left, or unknown")

    drill = dict(drill=drill_down_databases, state_key="db_filters", columns=DB_COLUMNS)
    chart_cols = st.columns(3)
    with chart_cols[0]:
        with card("Version Distribution"):
            st.altair_chart(bar_chart(view["charts"]["version"], label="version", title="Engine Version"), use_container_width=True)
            chart_drill_down(records, state, view["charts"]["version"], category="version", label="version", **drill)
    with chart_cols[1]:
        with card("Environment Distribution"):
            st.altair_chart(pie_chart(view["charts"]["environment"]), use_container_width=True)
            chart_drill_down(records, state, view["charts"]["environment"], category="environment", **drill)
    with chart_cols[2]:
        with card("Instances by Owner"):
            st.altair_chart(bar_chart(view["charts"]["owner"], title="Owner"), use_container_width=True)
            chart_drill_down(records, state, view["charts"]["owner"], category="owner", **drill)

    with card(f"Database Instances ({len(view['table'])})"):
        st.markdown(active_chip(view["filters"]["active"]), unsafe_allow_html=True)
        if view["filters"]["active"] and st.button("Clear table filter", key="db-clear"):
            st.session_state["db_filters"] = flt.clear_active(state)
            st.rerun()
        rows = view["table"]
        detail_table(rows, DB_COLUMNS, "No instances match the current filters.")
        if rows:
            idx = st.selectbox("Instance details", range(len(rows)), format_func=lambda i: instance_label(rows[i]), key="db-detail")
            row = rows[idx]
            with st.expander(instance_label(row), expanded=False):
                st.write(row)
                if not row["compliant"]:
                    st.warning("This database version is approaching or past end-of-life. Consider upgrading to a supported version (v15, v16, or v17).")
                if not row["auto_minor_version_upgrade"]:
                    st.warning("Auto Minor Version Upgrade is disabled. Enable it to receive automatic security patches and bug fixes.")


# ---------- UI setup ----------
st.set_page_config(page_title="KTLO Dashboard", layout="wide")
inject_base_styles()
st.title("KTLO Dashboard")
st.caption("AWS Operations Tracker")

data_ctx = load_dashboard_data()
tab_tasks, tab_dbs = st.tabs(["KTLO Tasks", "Database Versions"])
with tab_tasks:
    if not data_ctx["tasks"]:
        render_no_data(data_ctx["messages"]["tasks"])
    else:
        render_tasks_page(data_ctx["tasks"])
with tab_dbs:
    st.subheader("Aurora PostgreSQL Versions")
    st.caption("Track database version compliance and auto-upgrade settings across environments")
    if not data_ctx["databases"]:
        render_no_data(data_ctx["messages"]["databases"])
    else:
        render_databases_page(data_ctx["databases"])
