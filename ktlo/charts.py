from __future__ import annotations

from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _series_frame(series: List[Dict[str, Any]], label: str) -> pd.DataFrame:
    columns = [label, "count"] + (["color"] if series and "color" in series[0] else [])
    df = pd.DataFrame(series, columns=columns)
    return df.astype({"count": "int64"})


def bar_chart(series: List[Dict[str, Any]], *, label: str = "name", title: Optional[str] = None) -> alt.Chart:
    df = _series_frame(series, label)
    color = (
        alt.Color("color:N", scale=None, legend=None)
        if "color" in df.columns
        else alt.value("#3b82f6")
    )
    return (
        alt.Chart(df)
        .mark_bar(cornerRadiusTopLeft=4, cornerRadiusTopRight=4)
        .encode(
            x=alt.X(f"{label}:N", sort=None, title=title),
            y=alt.Y("count:Q", title="Count", axis=alt.Axis(format="d")),
            color=color,
            tooltip=[alt.Tooltip(f"{label}:N"), alt.Tooltip("count:Q", format=",")],
        )
        .properties(height=260)
    )


def pie_chart(series: List[Dict[str, Any]], *, label: str = "name") -> alt.Chart:
    df = _series_frame(series, label)
    color = (
        alt.Color("color:N", scale=None, legend=None)
        if "color" in df.columns
        else alt.Color(f"{label}:N")
    )
    return (
        alt.Chart(df)
        .mark_arc(outerRadius=100)
        .encode(
            theta=alt.Theta("count:Q", stack=True),
            color=color,
            tooltip=[alt.Tooltip(f"{label}:N"), alt.Tooltip("count:Q", format=",")],
        )
        .properties(height=260)
    )


def task_chart_specs(charts: Dict[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
    return {
        "status": to_vega_spec(pie_chart(charts.get("status", []))),
        "assignee": to_vega_spec(bar_chart(charts.get("assignee", []), title="PgM")),
        "urgency": to_vega_spec(bar_chart(charts.get("urgency", []), title="Urgency")),
    }


def database_chart_specs(charts: Dict[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
    return {
        "version": to_vega_spec(bar_chart(charts.get("version", []), label="version", title="Engine Version")),
        "environment": to_vega_spec(pie_chart(charts.get("environment", []))),
        "owner": to_vega_spec(bar_chart(charts.get("owner", []), title="Owner")),
        "eol": to_vega_spec(bar_chart(charts.get("eol", []), title="End of Support")),
    }
