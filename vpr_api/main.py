from __future__ import annotations

import logging
import math
from typing import List, Optional

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vpr_api.schemas import FilterChangeModel, FilterStateModel, MarkRecordModel, ScoreRecordModel
from vpr_core.aggregation import aggregate_marks, aggregate_scores
from vpr_core.data import load_dashboard_data
from vpr_core.filters import DEFAULT_FILTERS, FilterState, apply_filter_change, filter_options, normalize_filters
from vpr_core.metrics_debug import compute_debug
from vpr_core.metrics_distribution import compute_bias, compute_distribution


app = FastAPI(title="VPR Results API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _filters_from_model(model: FilterStateModel) -> FilterState:
    return normalize_filters(model.model_dump())


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


@app.get("/meta/options")
def meta_options(
    year: Optional[str] = Query(default=None),
    grade: Optional[str] = Query(default=None),
    subject: Optional[str] = Query(default=None),
    municipality: Optional[str] = Query(default=None),
):
    try:
        data_ctx = load_dashboard_data()
        f = normalize_filters({"year": year, "grade": grade, "subject": subject, "municipality": municipality})
        return _json({"options": filter_options(data_ctx.marks, f), "defaults": DEFAULT_FILTERS})
    except Exception as exc:
        logger.exception("meta_options failed")
        return _error(exc)


@app.post("/filters/change")
def filters_change(body: FilterChangeModel):
    try:
        current = _filters_from_model(body.current)
        updated = apply_filter_change(current, body.changes)
        return _json({"filters": updated.as_display()})
    except Exception as exc:
        logger.exception("filters_change failed")
        return _error(exc)


@app.post("/distribution")
def distribution(filters: FilterStateModel):
    try:
        data_ctx = load_dashboard_data()
        return _json(compute_distribution(_filters_from_model(filters), data_ctx))
    except Exception as exc:
        logger.exception("distribution failed")
        return _error(exc)


@app.post("/bias")
def bias(filters: FilterStateModel):
    try:
        data_ctx = load_dashboard_data()
        return _json(compute_bias(_filters_from_model(filters), data_ctx))
    except Exception as exc:
        logger.exception("bias failed")
        return _error(exc)


@app.post("/debug")
def debug(filters: FilterStateModel):
    try:
        data_ctx = load_dashboard_data()
        return _json(compute_debug(_filters_from_model(filters), data_ctx))
    except Exception as exc:
        logger.exception("debug failed")
        return _error(exc)


@app.post("/aggregate/marks")
def aggregate_marks_endpoint(records: List[MarkRecordModel]):
    try:
        return _json({"marks": aggregate_marks([r.model_dump() for r in records])})
    except Exception as exc:
        logger.exception("aggregate_marks failed")
        return _error(exc)


@app.post("/aggregate/scores")
def aggregate_scores_endpoint(records: List[ScoreRecordModel]):
    try:
        return _json({"scores": aggregate_scores([r.model_dump() for r in records])})
    except Exception as exc:
        logger.exception("aggregate_scores failed")
        return _error(exc)
