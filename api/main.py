from __future__ import annotations

import logging
import math
from typing import Any, Dict

import numpy as np
import pandas as pd
from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import DatabaseFiltersModel, MetaListResponse, TaskFiltersModel
from ktlo.charts import database_chart_specs, task_chart_specs
from ktlo.data import load_dashboard_data
from ktlo.filters import DatabaseFilters, TaskFilters, normalize_database_filters, normalize_task_filters
from ktlo.metrics_databases import compute_databases_view, environments
from ktlo.metrics_tasks import compute_tasks_view, fiscal_years


app = FastAPI(title="KTLO Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _task_filters(model: TaskFiltersModel, records) -> TaskFilters:
    return normalize_task_filters(model.model_dump(), available_fiscal_years=fiscal_years(records))


def _database_filters(model: DatabaseFiltersModel, records) -> DatabaseFilters:
    return normalize_database_filters(model.model_dump(), available_environments=environments(records))


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(name: str, exc: Exception) -> JSONResponse:
    logger.exception("%s failed", name)
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


def _with_status(payload: Dict[str, Any], data_ctx: Dict[str, Any], kind: str) -> Dict[str, Any]:
    payload["missing"] = bool(data_ctx["missing"].get(kind))
    payload["message"] = data_ctx["messages"].get(kind)
    return payload


@app.get("/meta/fiscal-years", response_model=MetaListResponse)
def meta_fiscal_years():
    try:
        data_ctx = load_dashboard_data()
        return _json({"values": ["All"] + fiscal_years(data_ctx["tasks"])})
    except Exception as exc:
        return _error("meta_fiscal_years", exc)


@app.get("/meta/environments", response_model=MetaListResponse)
def meta_environments():
    try:
        data_ctx = load_dashboard_data()
        return _json({"values": environments(data_ctx["databases"])})
    except Exception as exc:
        return _error("meta_environments", exc)


@app.post("/tasks")
def tasks(filters: TaskFiltersModel):
    try:
        data_ctx = load_dashboard_data()
        records = data_ctx["tasks"]
        view = compute_tasks_view(records, _task_filters(filters, records))
        view["specs"] = task_chart_specs(view["charts"])
        return _json(_with_status(view, data_ctx, "tasks"))
    except Exception as exc:
        return _error("tasks", exc)


@app.post("/databases")
def databases(filters: DatabaseFiltersModel):
    try:
        data_ctx = load_dashboard_data()
        records = data_ctx["databases"]
        view = compute_databases_view(records, _database_filters(filters, records))
        view["specs"] = database_chart_specs(view["charts"])
        return _json(_with_status(view, data_ctx, "databases"))
    except Exception as exc:
        return _error("databases", exc)


@app.post("/export/tasks")
def export_tasks(filters: TaskFiltersModel):
    data_ctx = load_dashboard_data()
    records = data_ctx["tasks"]
    view = compute_tasks_view(records, _task_filters(filters, records))
    export_df = pd.DataFrame(view["table"])
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": "attachment; filename=ktlo-tasks.csv"})


@app.post("/export/databases")
def export_databases(filters: DatabaseFiltersModel):
    data_ctx = load_dashboard_data()
    records = data_ctx["databases"]
    view = compute_databases_view(records, _database_filters(filters, records))
    export_df = pd.DataFrame(view["table"])
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(
        content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": "attachment; filename=aurora-instances.csv"}
    )
