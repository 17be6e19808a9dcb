from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from spend_api.schemas import DeepDiveSelectionModel, MetaListResponse, OverviewSelectionModel, ProfilingSelectionModel
from spend_core.data import load_data_store
from spend_core.filters import (
    lifecycle_status_options,
    normalize_deep_dive_selection,
    normalize_overview_selection,
    normalize_profiling_selection,
)
from spend_core.metrics_debug import compute_debug
from spend_core.metrics_deep_dive import breakdown_view, compute_bu_deep_dive
from spend_core.metrics_overview import compute_overview
from spend_core.metrics_profiling import compute_hco_profiling, filter_hcos
from spend_core.pipeline import filter_records

app = FastAPI(title="Third-Party Spend Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _raw(model: BaseModel) -> dict:
    return model.model_dump(exclude_none=True)


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
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
            },
        )
    )


def _error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


@app.get("/meta/periods", response_model=MetaListResponse)
def meta_periods():
    try:
        return _json({"values": load_data_store().periods})
    except Exception as exc:
        logger.exception("meta_periods failed")
        return _error(exc)


@app.get("/meta/business-units", response_model=MetaListResponse)
def meta_business_units(level: str = Query(default="activity")):
    try:
        store = load_data_store()
        values = store.parent_business_units if level == "parent" else store.business_units
        return _json({"values": values})
    except Exception as exc:
        logger.exception("meta_business_units failed")
        return _error(exc)


@app.get("/meta/categories", response_model=MetaListResponse)
def meta_categories():
    try:
        return _json({"values": load_data_store().hco_categories})
    except Exception as exc:
        logger.exception("meta_categories failed")
        return _error(exc)


@app.get("/meta/lifecycle-statuses", response_model=MetaListResponse)
def meta_lifecycle_statuses():
    try:
        return _json({"values": lifecycle_status_options(load_data_store())})
    except Exception as exc:
        logger.exception("meta_lifecycle_statuses failed")
        return _error(exc)


@app.post("/overview")
def overview(selection: OverviewSelectionModel):
    try:
        store = load_data_store()
        s = normalize_overview_selection(_raw(selection), store)
        return _json(compute_overview(s, store))
    except Exception as exc:
        logger.exception("overview failed")
        return _error(exc)


@app.post("/hco-profiling")
def hco_profiling(selection: ProfilingSelectionModel, hco: Optional[str] = Query(default=None)):
    try:
        store = load_data_store()
        raw = _raw(selection)
        if hco and not raw.get("focus_hco"):
            raw["focus_hco"] = hco
        s = normalize_profiling_selection(raw, store)
        return _json(compute_hco_profiling(s, store))
    except Exception as exc:
        logger.exception("hco_profiling failed")
        return _error(exc)


@app.post("/bu-deep-dive")
def bu_deep_dive(selection: DeepDiveSelectionModel, hcoId: Optional[str] = Query(default=None)):
    try:
        store = load_data_store()
        raw = _raw(selection)
        if hcoId and not raw.get("focus_hco_id"):
            raw["focus_hco_id"] = hcoId
        s = normalize_deep_dive_selection(raw, store)
        return _json(compute_bu_deep_dive(s, store))
    except Exception as exc:
        logger.exception("bu_deep_dive failed")
        return _error(exc)


@app.get("/debug")
def debug():
    try:
        return _json(compute_debug(load_data_store()))
    except Exception as exc:
        logger.exception("debug failed")
        return _error(exc)


@app.post("/export/overview")
def export_overview(selection: OverviewSelectionModel):
    store = load_data_store()
    s = normalize_overview_selection(_raw(selection), store)
    return _csv(filter_records(store.activity, s.record_filter()), "overview.csv")


@app.post("/export/hco-profiling")
def export_hco_profiling(selection: ProfilingSelectionModel):
    store = load_data_store()
    s = normalize_profiling_selection(_raw(selection), store)
    return _csv(filter_hcos(store, s), "hco_profiling.csv")


@app.post("/export/bu-deep-dive")
def export_bu_deep_dive(selection: DeepDiveSelectionModel):
    store = load_data_store()
    s = normalize_deep_dive_selection(_raw(selection), store)
    return _csv(breakdown_view(store, s, "HCO"), "bu_deep_dive.csv")


def _csv(df: pd.DataFrame, filename: str) -> Response:
    if df is None or not hasattr(df, "to_csv"):
        df = pd.DataFrame()
    csv_bytes = df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
