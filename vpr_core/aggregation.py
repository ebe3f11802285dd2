"""Participant-weighted aggregation of per-school distribution records.

Every record stores percentages relative to its own participant count. Before
pooling, each percentage is turned back into an absolute number of
participants, so a school with 2,000 test-takers weighs a hundred times more
than one with 20. The functions here are pure: no filtering, no I/O, no
validation. Degenerate input (no rows, zero participants, malformed
percentages) yields empty or zero-valued output rather than an exception.
"""

from __future__ import annotations

import math
from dataclasses import asdict, is_dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd


MARK_BARS = [
    ("2", "mark2", "#ef4444"),
    ("3", "mark3", "#f59e0b"),
    ("4", "mark4", "#10b981"),
    ("5", "mark5", "#3b82f6"),
]
MARK_COLUMNS = [col for _, col, _ in MARK_BARS]
PERCENT_DIGITS = 2

Records = Union[pd.DataFrame, Iterable[Any]]


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    """Round half away from zero on the decimal repr (2.675 -> 2.68)."""
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def share_percent(count: float, total: float) -> float:
    if not total or total <= 0:
        return 0.0
    pct = count / total * 100
    if math.isnan(pct) or math.isinf(pct):
        return 0.0
    return round_half_up(pct, PERCENT_DIGITS)


def _as_row(record: Any, columns: List[str]) -> Mapping[str, Any]:
    if isinstance(record, Mapping):
        return record
    if is_dataclass(record):
        return asdict(record)
    if hasattr(record, "_asdict"):
        return record._asdict()
    if hasattr(record, "__dict__"):
        return vars(record)
    # slotted records: only the fields the aggregation reads
    return {col: getattr(record, col, None) for col in columns}


def _as_frame(records: Records, columns: List[str]) -> pd.DataFrame:
    if isinstance(records, pd.DataFrame):
        df = records
    else:
        df = pd.DataFrame([_as_row(r, columns) for r in records])
    df = df.copy()
    for col in columns:
        if col not in df.columns:
            df[col] = 0
    return df


def _numeric(series: pd.Series) -> pd.Series:
    return pd.to_numeric(series, errors="coerce").fillna(0.0).astype(float)


def _as_float(value: object) -> float:
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(out) else out


def _score_key(value: object) -> Optional[int]:
    try:
        return int(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return None


def aggregate_marks(records: Records) -> List[Dict[str, Any]]:
    df = _as_frame(records, ["participants"] + MARK_COLUMNS)
    if df.empty:
        return []

    participants = _numeric(df["participants"])
    total = float(participants.sum())
    out: List[Dict[str, Any]] = []
    for name, col, color in MARK_BARS:
        count = float((_numeric(df[col]) * participants / 100).sum())
        out.append({"name": name, "value": share_percent(count, total), "color": color})
    return out


def aggregate_scores(records: Records) -> List[Dict[str, Any]]:
    df = _as_frame(records, ["participants", "scores"])
    if df.empty:
        return []

    participants = _numeric(df["participants"])
    total = float(participants.sum())

    weighted: List[Dict[str, float]] = []
    for scores, p in zip(df["scores"], participants):
        if not isinstance(scores, Mapping):
            continue
        for key, pct in scores.items():
            score = _score_key(key)
            if score is None:
                continue
            weighted.append({"score": score, "count": _as_float(pct) * p / 100})

    counts = pd.Series(dtype=float)
    if weighted:
        counts = pd.DataFrame(weighted).groupby("score")["count"].sum()
    max_score = max(int(counts.index.max()), 0) if not counts.empty else 0

    # the chart axis has to be contiguous, unobserved scores show as 0%
    dense = counts.reindex(range(0, max_score + 1), fill_value=0.0)
    return [{"score": int(score), "percentage": share_percent(float(count), total)} for score, count in dense.items()]
