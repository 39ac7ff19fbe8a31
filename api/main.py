from __future__ import annotations

import logging
import math
import os

import numpy as np
import pandas as pd
from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import FacetsResponse, FilterStateModel, StatusResponse
from core.data import RECORD_COLUMNS, load_dashboard_data, prepare_context
from core.filters import FilterState, normalize_filters
from core.metrics_dashboard import compute_dashboard, compute_status


CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("DASHBOARD_CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

app = FastAPI(title="Survey Insights Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _filters_from_model(model: FilterStateModel) -> FilterState:
    return normalize_filters(model.model_dump())


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects; NaN becomes null."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
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
        ),
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/status", response_model=StatusResponse)
def meta_status():
    try:
        data_ctx = load_dashboard_data()
        return _json(compute_status(data_ctx))
    except Exception as exc:
        logger.exception("meta_status failed")
        return _error(exc)


@app.post("/meta/facets", response_model=FacetsResponse)
def meta_facets(filters: FilterStateModel):
    try:
        data_ctx = load_dashboard_data()
        ctx = prepare_context(_filters_from_model(filters), data_ctx)
        return _json({"facets": ctx["facets"]})
    except Exception as exc:
        logger.exception("meta_facets failed")
        return _error(exc)


@app.post("/refresh", response_model=StatusResponse)
def refresh():
    try:
        data_ctx = load_dashboard_data(refresh=True)
        status = compute_status(data_ctx)
        # Previous records stay in place; only the response code reports the failure.
        return _json(status, status_code=502 if status["error"] else 200)
    except Exception as exc:
        logger.exception("refresh failed")
        return _error(exc)


@app.post("/dashboard")
def dashboard(filters: FilterStateModel):
    try:
        data_ctx = load_dashboard_data()
        f = _filters_from_model(filters)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_dashboard(f, ctx))
    except Exception as exc:
        logger.exception("dashboard failed")
        return _error(exc)


@app.post("/export/records")
def export_records(filters: FilterStateModel):
    data_ctx = load_dashboard_data()
    ctx = prepare_context(_filters_from_model(filters), data_ctx)
    export_df = ctx.get("filtered_records")
    if export_df is None or not hasattr(export_df, "to_csv"):
        export_df = pd.DataFrame(columns=RECORD_COLUMNS)
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": "attachment; filename=records.csv"})
