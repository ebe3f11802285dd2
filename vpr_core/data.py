from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from vpr_core.aggregation import MARK_COLUMNS
from vpr_core.filters import FILTER_DIMENSIONS, FilterState, filter_records, normalize_filters


logger = logging.getLogger(__name__)

DATA_DIR = Path(os.environ.get("VPR_DATA_DIR", Path(__file__).resolve().parents[1] / "data"))
TABLE_SUFFIXES = (".csv", ".xlsx")
MARKS_STEM = "marks"
SCORES_STEM = "scores"
BIAS_STEM = "bias"

KEY_COLUMNS = list(FILTER_DIMENSIONS)
SCORE_LONG_COLUMNS = ["score", "percentage"]

MOCK_SEED = 42
MOCK_YEARS = ["2022", "2023", "2024"]
MOCK_GRADES = ["4", "5", "6", "7", "8"]
MOCK_MAX_SCORES = {
    "Русский язык": 38,
    "Математика": 20,
    "Окружающий мир": 32,
    "История": 15,
    "Биология": 29,
}
MOCK_MUNICIPALITIES = {
    "Центральный район": 5,
    "Северный район": 4,
    "Заречный район": 3,
    "Октябрьский район": 4,
    "Приморский район": 3,
}


@dataclass(frozen=True, eq=False)
class DataContext:
    """Immutable session data. Hashes by identity so it can key caches."""

    marks: pd.DataFrame
    scores: pd.DataFrame
    bias: pd.DataFrame
    source: str = "mock"
    files: Tuple[str, ...] = ()


# ---------------- Helpers ----------------
def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            series = df[col].astype("string").str.strip()
            # numeric key cells read from xlsx come back as "2023.0"
            series = series.str.replace(r"^(\d+)\.0$", r"\1", regex=True)
            df[col] = series.replace({"nan": pd.NA, "None": pd.NA, "": pd.NA}).astype(object)
    return df


def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def find_table(data_dir: Path, stem: str) -> Optional[Path]:
    for suffix in TABLE_SUFFIXES:
        path = data_dir / f"{stem}{suffix}"
        if path.exists():
            return path
    return None


def get_source_files(data_dir: Optional[Path] = None) -> List[Path]:
    data_dir = Path(data_dir or DATA_DIR)
    found = [find_table(data_dir, stem) for stem in (MARKS_STEM, SCORES_STEM, BIAS_STEM)]
    return [p for p in found if p is not None]


def file_signature(files: List[Path]) -> Tuple[Tuple[str, float], ...]:
    return tuple((f.name, f.stat().st_mtime) for f in files)


def read_table(path: Path) -> pd.DataFrame:
    if path.suffix == ".xlsx":
        return pd.read_excel(path, dtype={c: str for c in KEY_COLUMNS})
    return pd.read_csv(path, dtype={c: str for c in KEY_COLUMNS})


def ensure_key_columns(df: pd.DataFrame) -> pd.DataFrame:
    for col in KEY_COLUMNS:
        if col not in df.columns:
            df[col] = pd.NA
    return coerce_str_safe(df, KEY_COLUMNS)


def pivot_score_rows(long: pd.DataFrame) -> pd.DataFrame:
    """Collapse long-format score rows (one per key and score) into one row per key."""
    if long.empty:
        return pd.DataFrame(columns=KEY_COLUMNS + ["participants", "scores"])
    long = ensure_key_columns(long.copy())
    for col in ["participants"] + SCORE_LONG_COLUMNS:
        if col not in long.columns:
            long[col] = np.nan
    long = numericize(long, ["participants"] + SCORE_LONG_COLUMNS)
    long = long.dropna(subset=["score"])
    rows: List[Dict[str, object]] = []
    for key, group in long.groupby(KEY_COLUMNS, sort=False, dropna=False):
        participants = group["participants"].dropna()
        rows.append(
            {
                **dict(zip(KEY_COLUMNS, key)),
                "participants": int(participants.iloc[0]) if not participants.empty else 0,
                "scores": {
                    int(s): float(p) if pd.notna(p) else 0.0
                    for s, p in zip(group["score"], group["percentage"])
                },
            }
        )
    return pd.DataFrame(rows, columns=KEY_COLUMNS + ["participants", "scores"])


# ---------------- Loaders ----------------
def load_marks(path: Path) -> pd.DataFrame:
    df = ensure_key_columns(read_table(path))
    df = numericize(df, ["participants"] + MARK_COLUMNS)
    logger.info("loaded %d mark rows from %s", len(df), path.name)
    return df


def load_scores(path: Path) -> pd.DataFrame:
    df = pivot_score_rows(read_table(path))
    logger.info("loaded %d score rows from %s", len(df), path.name)
    return df


def load_bias(path: Optional[Path]) -> pd.DataFrame:
    if path is None:
        return pd.DataFrame(columns=KEY_COLUMNS)
    df = ensure_key_columns(read_table(path))
    logger.info("loaded %d bias rows from %s", len(df), path.name)
    return df


def load_records_from_dir(data_dir: Path) -> DataContext:
    data_dir = Path(data_dir)
    marks_path = find_table(data_dir, MARKS_STEM)
    if marks_path is None:
        raise FileNotFoundError(f"No {MARKS_STEM}.csv or {MARKS_STEM}.xlsx in {data_dir}")
    scores_path = find_table(data_dir, SCORES_STEM)
    bias_path = find_table(data_dir, BIAS_STEM)
    marks = load_marks(marks_path)
    scores = load_scores(scores_path) if scores_path is not None else pivot_score_rows(pd.DataFrame())
    bias = load_bias(bias_path)
    files = tuple(p.name for p in (marks_path, scores_path, bias_path) if p is not None)
    return DataContext(marks=marks, scores=scores, bias=bias, source=str(data_dir), files=files)


# ---------------- Synthetic data ----------------
def _mock_schools() -> List[Tuple[str, str]]:
    out: List[Tuple[str, str]] = []
    number = 1
    for municipality, count in MOCK_MUNICIPALITIES.items():
        for _ in range(count):
            out.append((municipality, f"МБОУ СОШ №{number}"))
            number += 1
    return out


def _mock_mark_split(rng: np.random.Generator) -> List[float]:
    shares = rng.dirichlet([1.5, 6.0, 7.0, 3.0]) * 100
    split = [round(float(s), 2) for s in shares[:3]]
    split.append(max(round(100.0 - sum(split), 2), 0.0))
    return split


def _mock_score_split(rng: np.random.Generator, max_score: int) -> Dict[int, float]:
    center = rng.uniform(0.4, 0.75) * max_score
    spread = max(max_score * rng.uniform(0.12, 0.25), 1.0)
    k = np.arange(max_score + 1)
    weights = np.exp(-(((k - center) / spread) ** 2))
    shares = weights / weights.sum() * 100
    # sparse on purpose, tails below 0.05% are not reported
    return {int(score): round(float(share), 2) for score, share in zip(k, shares) if share >= 0.05}


def generate_mock_data(seed: int = MOCK_SEED) -> DataContext:
    rng = np.random.default_rng(seed)
    mark_rows: List[Dict[str, object]] = []
    score_rows: List[Dict[str, object]] = []
    bias_rows: List[Dict[str, object]] = []
    for year in MOCK_YEARS:
        for grade in MOCK_GRADES:
            for subject, max_score in MOCK_MAX_SCORES.items():
                for municipality, school in _mock_schools():
                    key = {"year": year, "grade": grade, "subject": subject, "municipality": municipality, "school": school}
                    participants = int(rng.integers(15, 160))
                    mark_rows.append({**key, "participants": participants, **dict(zip(MARK_COLUMNS, _mock_mark_split(rng)))})
                    score_rows.append({**key, "participants": participants, "scores": _mock_score_split(rng, max_score)})
                    bias_marks = round(float(rng.uniform(0, 15)), 2)
                    bias_scores = round(float(rng.uniform(0, 15)), 2)
                    bias_rows.append(
                        {
                            **key,
                            "bias_marks_pct": bias_marks,
                            "bias_scores_pct": bias_scores,
                            "flagged": bool(bias_marks > 10 or bias_scores > 10),
                        }
                    )
    logger.debug("generated %d synthetic rows per collection (seed=%s)", len(mark_rows), seed)
    return DataContext(
        marks=pd.DataFrame(mark_rows),
        scores=pd.DataFrame(score_rows),
        bias=pd.DataFrame(bias_rows),
        source="mock",
    )


# ---------------- Public API (Streamlit parity + FastAPI use) ----------------
@lru_cache(maxsize=4)
def _load_dashboard_data_cached(data_dir: str, files_sig: Tuple[Tuple[str, float], ...]) -> DataContext:
    return load_records_from_dir(Path(data_dir))


@lru_cache(maxsize=2)
def _mock_data_cached(seed: int) -> DataContext:
    return generate_mock_data(seed)


def load_dashboard_data(data_dir: Optional[Path] = None) -> DataContext:
    data_dir = Path(data_dir or DATA_DIR)
    files = get_source_files(data_dir)
    if find_table(data_dir, MARKS_STEM) is None:
        logger.info("no %s table in %s, using synthetic data", MARKS_STEM, data_dir)
        return _mock_data_cached(MOCK_SEED)
    return _load_dashboard_data_cached(str(data_dir), file_signature(files))


def prepare_context(filters: dict | FilterState, data_ctx: DataContext) -> Dict[str, object]:
    filt = filters if isinstance(filters, FilterState) else normalize_filters(filters)
    return {
        "filters": filt,
        "filtered_marks": filter_records(data_ctx.marks, filt),
        "filtered_scores": filter_records(data_ctx.scores, filt),
        "filtered_bias": filter_records(data_ctx.bias, filt),
    }
