from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping

import pandas as pd

from vpr_core.aggregation import MARK_COLUMNS
from vpr_core.data import KEY_COLUMNS, DataContext, prepare_context
from vpr_core.filters import FilterState, normalize_filters


MARK_SUM_TOLERANCE = 0.5
# a key further than this above the row's next-highest key (or 0) is treated as a typo
MAX_SCORE_GAP = 50
SAMPLE_SIZE = 20


def _sample(df: pd.DataFrame, cols: List[str]) -> List[Dict[str, Any]]:
    cols = [c for c in cols if c in df.columns]
    return df[cols].head(SAMPLE_SIZE).to_dict(orient="records")


def _bad_score_keys(scores: object) -> int:
    if not isinstance(scores, Mapping):
        return 0
    bad = 0
    for key in scores:
        try:
            value = float(key)
        except (TypeError, ValueError):
            bad += 1
            continue
        if not math.isfinite(value) or value < 0 or value != int(value):
            bad += 1
    return bad


def _outlier_score_keys(scores: object) -> int:
    if not isinstance(scores, Mapping):
        return 0
    keys = []
    for key in scores:
        try:
            value = float(key)
        except (TypeError, ValueError):
            continue
        if math.isfinite(value) and value >= 0:
            keys.append(value)
    keys.sort()
    outliers = 0
    previous = 0.0
    for value in keys:
        if value - previous > MAX_SCORE_GAP:
            outliers += 1
        previous = value
    return outliers


def _score_sum(scores: object) -> float:
    if not isinstance(scores, Mapping):
        return 0.0
    return float(pd.to_numeric(pd.Series(list(scores.values()), dtype=object), errors="coerce").fillna(0).sum())


def check_marks(df: pd.DataFrame) -> Dict[str, Any]:
    if df.empty:
        return {"rows_checked": 0, "sum_not_100": 0, "zero_participants_with_marks": 0, "negative_values": 0, "sum_not_100_sample": []}
    d = df.copy()
    for col in ["participants"] + MARK_COLUMNS:
        d[col] = pd.to_numeric(d[col], errors="coerce").fillna(0) if col in d.columns else 0.0
    mark_sum = d[MARK_COLUMNS].sum(axis=1)
    off = d[(mark_sum - 100).abs() > MARK_SUM_TOLERANCE]
    zero_p = d[(d["participants"] == 0) & (mark_sum > 0)]
    negative = d[(d[["participants"] + MARK_COLUMNS] < 0).any(axis=1)]
    return {
        "rows_checked": int(len(d)),
        "sum_not_100": int(len(off)),
        "zero_participants_with_marks": int(len(zero_p)),
        "negative_values": int(len(negative)),
        "sum_not_100_sample": _sample(off, KEY_COLUMNS + MARK_COLUMNS),
    }


def check_scores(df: pd.DataFrame) -> Dict[str, Any]:
    if df.empty or "scores" not in df.columns:
        return {"rows_checked": int(len(df)), "sum_not_100": 0, "zero_participants_with_scores": 0, "bad_score_keys": 0, "outlier_score_keys": 0}
    d = df.copy()
    participants = pd.to_numeric(d.get("participants", pd.Series(0, index=d.index)), errors="coerce").fillna(0)
    score_sum = d["scores"].apply(_score_sum)
    return {
        "rows_checked": int(len(d)),
        "sum_not_100": int(((score_sum - 100).abs() > MARK_SUM_TOLERANCE).sum()),
        "zero_participants_with_scores": int(((participants == 0) & (score_sum > 0)).sum()),
        "bad_score_keys": int(d["scores"].apply(_bad_score_keys).sum()),
        "outlier_score_keys": int(d["scores"].apply(_outlier_score_keys).sum()),
    }


def compute_debug(filters: dict | FilterState, data_ctx: DataContext) -> Dict[str, Any]:
    """Row counts and data-quality checks for the filtered slice.

    The aggregation engine renders whatever it is given; this is where
    malformed upstream rows become visible.
    """
    filt = filters if isinstance(filters, FilterState) else normalize_filters(filters)
    ctx = prepare_context(filt, data_ctx)
    return {
        "filters": filt.as_display(),
        "source": data_ctx.source,
        "files": list(data_ctx.files),
        "row_counts": {
            "marks_rows": int(len(data_ctx.marks)),
            "scores_rows": int(len(data_ctx.scores)),
            "bias_rows": int(len(data_ctx.bias)),
            "filtered_marks_rows": int(len(ctx["filtered_marks"])),
            "filtered_scores_rows": int(len(ctx["filtered_scores"])),
            "filtered_bias_rows": int(len(ctx["filtered_bias"])),
        },
        "marks_checks": check_marks(ctx["filtered_marks"]),
        "scores_checks": check_scores(ctx["filtered_scores"]),
    }
