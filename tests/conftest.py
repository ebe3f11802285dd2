import sys
from pathlib import Path

import pandas as pd
import pytest

# Make the repo root importable without an install
ROOT = Path(__file__).resolve().parent.parent
if ROOT.as_posix() not in sys.path:
    sys.path.insert(0, ROOT.as_posix())

from vpr_core.data import DataContext  # noqa: E402
from vpr_core.metrics_distribution import clear_distribution_cache  # noqa: E402


def _key(year, grade, subject, municipality, school):
    return {"year": year, "grade": grade, "subject": subject, "municipality": municipality, "school": school}


@pytest.fixture
def small_ctx():
    """Two municipalities, three schools, one subject/grade/year plus one other year."""
    keys = [
        _key("2023", "4", "Математика", "Северный", "Школа 1"),
        _key("2023", "4", "Математика", "Северный", "Школа 2"),
        _key("2023", "4", "Математика", "Южный", "Школа 3"),
        _key("2024", "4", "Математика", "Южный", "Школа 3"),
    ]
    marks = pd.DataFrame(
        [
            {**keys[0], "participants": 200, "mark2": 10, "mark3": 20, "mark4": 40, "mark5": 30},
            {**keys[1], "participants": 50, "mark2": 0, "mark3": 0, "mark4": 0, "mark5": 100},
            {**keys[2], "participants": 100, "mark2": 25, "mark3": 25, "mark4": 25, "mark5": 25},
            {**keys[3], "participants": 10, "mark2": 100, "mark3": 0, "mark4": 0, "mark5": 0},
        ]
    )
    scores = pd.DataFrame(
        [
            {**keys[0], "participants": 200, "scores": {0: 50, 2: 50}},
            {**keys[1], "participants": 50, "scores": {3: 100}},
            {**keys[2], "participants": 100, "scores": {1: 100}},
            {**keys[3], "participants": 10, "scores": {5: 100}},
        ]
    )
    bias = pd.DataFrame(
        [
            {**keys[0], "bias_marks_pct": 1.5, "flagged": False},
            {**keys[2], "bias_marks_pct": 12.0, "flagged": True},
        ]
    )
    return DataContext(marks=marks, scores=scores, bias=bias, source="test")


@pytest.fixture(autouse=True)
def _fresh_distribution_cache():
    clear_distribution_cache()
    yield
    clear_distribution_cache()
