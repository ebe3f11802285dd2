from __future__ import annotations

import copy
from functools import lru_cache
from typing import Any, Dict

import pandas as pd

from vpr_core.aggregation import aggregate_marks, aggregate_scores
from vpr_core.charts import marks_bar_chart, scores_bar_chart, to_vega_spec
from vpr_core.data import DataContext, prepare_context
from vpr_core.filters import FilterState, normalize_filters


def _participants_total(df: pd.DataFrame) -> int:
    if df.empty or "participants" not in df.columns:
        return 0
    return int(pd.to_numeric(df["participants"], errors="coerce").fillna(0).sum())


def _as_filter_state(filters: dict | FilterState) -> FilterState:
    return filters if isinstance(filters, FilterState) else normalize_filters(filters)


@lru_cache(maxsize=64)
def _distribution_cached(filters: FilterState, data_ctx: DataContext) -> Dict[str, Any]:
    ctx = prepare_context(filters, data_ctx)
    marks_df: pd.DataFrame = ctx["filtered_marks"]
    scores_df: pd.DataFrame = ctx["filtered_scores"]

    marks = aggregate_marks(marks_df)
    scores = aggregate_scores(scores_df)

    charts: Dict[str, Any] = {}
    if marks:
        charts["marks"] = to_vega_spec(marks_bar_chart(marks))
    if scores:
        charts["scores"] = to_vega_spec(scores_bar_chart(scores))

    return {
        "filters": filters.as_display(),
        "counts": {"marks_rows": int(len(marks_df)), "scores_rows": int(len(scores_df))},
        "totals": {"marks_participants": _participants_total(marks_df), "scores_participants": _participants_total(scores_df)},
        "marks": marks,
        "scores": scores,
        "charts": charts,
    }


def compute_distribution(filters: dict | FilterState, data_ctx: DataContext) -> Dict[str, Any]:
    """Mark and primary-score distributions for the active filter.

    Results are memoized per (filter tuple, data context). The data context
    hashes by identity, so a reloaded store never reuses stale payloads.
    """
    return copy.deepcopy(_distribution_cached(_as_filter_state(filters), data_ctx))


def compute_bias(filters: dict | FilterState, data_ctx: DataContext) -> Dict[str, Any]:
    filt = _as_filter_state(filters)
    ctx = prepare_context(filt, data_ctx)
    bias: pd.DataFrame = ctx["filtered_bias"]
    return {
        "filters": filt.as_display(),
        "count": int(len(bias)),
        "records": bias.to_dict(orient="records"),
    }


def clear_distribution_cache() -> None:
    _distribution_cached.cache_clear()
