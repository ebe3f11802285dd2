from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd


ALL = "Все"
ALL_TOKENS = {"", "все", "all", "none", "nan"}

FILTER_DIMENSIONS = ("year", "grade", "subject", "municipality", "school")

DEFAULT_FILTERS = {
    "year": "2023",
    "grade": "4",
    "subject": "Русский язык",
    "municipality": ALL,
    "school": ALL,
}


@dataclass(frozen=True)
class FilterState:
    """Active selection. ``None`` on a dimension means no restriction."""

    year: Optional[str] = None
    grade: Optional[str] = None
    subject: Optional[str] = None
    municipality: Optional[str] = None
    school: Optional[str] = None

    def restrictions(self) -> Dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def as_display(self) -> Dict[str, str]:
        return {k: (ALL if v is None else v) for k, v in asdict(self).items()}


def _as_dimension(value: object) -> Optional[str]:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    s = str(value).strip()
    if s.lower() in ALL_TOKENS:
        return None
    return s


def normalize_filters(raw: Optional[Mapping[str, Any]], *, use_defaults: bool = False) -> FilterState:
    raw = dict(raw or {})
    if use_defaults:
        raw = {**DEFAULT_FILTERS, **{k: v for k, v in raw.items() if v is not None}}
    return FilterState(**{dim: _as_dimension(raw.get(dim)) for dim in FILTER_DIMENSIONS})


def default_filters() -> FilterState:
    return normalize_filters(DEFAULT_FILTERS)


def apply_filter_change(current: FilterState, changes: Mapping[str, Any]) -> FilterState:
    """Merge a partial update into ``current``.

    A school only identifies an entity within one municipality, so moving to a
    different municipality always clears the school selection.
    """
    updates = {dim: _as_dimension(changes[dim]) for dim in FILTER_DIMENSIONS if dim in changes}
    updated = replace(current, **updates)
    if "municipality" in updates and updates["municipality"] != current.municipality:
        updated = replace(updated, school=None)
    return updated


def filter_records(df: pd.DataFrame, filters: FilterState) -> pd.DataFrame:
    if df is None or df.empty:
        return pd.DataFrame() if df is None else df.copy()
    mask = pd.Series(True, index=df.index)
    for dim, value in filters.restrictions().items():
        if dim not in df.columns:
            continue
        mask &= df[dim].astype(str).str.strip() == value
    return df[mask].copy()


def _sorted_values(series: pd.Series) -> List[str]:
    values = {str(v).strip() for v in series.dropna().tolist()}
    values.discard("")

    def sort_key(v: str):
        # numeric dimensions (year, grade) sort numerically
        return (0, float(v), v) if v.replace(".", "", 1).isdigit() else (1, 0.0, v)

    return sorted(values, key=sort_key)


def filter_options(df: pd.DataFrame, filters: Optional[FilterState] = None) -> Dict[str, List[str]]:
    filters = filters or FilterState()
    out: Dict[str, List[str]] = {dim: [] for dim in FILTER_DIMENSIONS}
    if df is None or df.empty:
        return out
    for dim in ("year", "grade", "subject", "municipality"):
        if dim in df.columns:
            out[dim] = _sorted_values(df[dim])
    if "school" in df.columns:
        schools = df
        if filters.municipality is not None and "municipality" in df.columns:
            schools = df[df["municipality"].astype(str).str.strip() == filters.municipality]
        out["school"] = _sorted_values(schools["school"])
    return out
