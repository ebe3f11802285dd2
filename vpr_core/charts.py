from __future__ import annotations

from typing import Any, Dict, List

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()

SCORE_BAR_COLOR = "#3b82f6"


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def marks_bar_chart(marks: List[Dict[str, Any]]) -> alt.Chart:
    data = pd.DataFrame(marks, columns=["name", "value", "color"])
    bars = (
        alt.Chart(data)
        .mark_bar(cornerRadiusTopLeft=8, cornerRadiusTopRight=8, size=60)
        .encode(
            x=alt.X("name:N", title=None, sort=None, axis=alt.Axis(labelAngle=0, domain=False, ticks=False)),
            y=alt.Y("value:Q", axis=None),
            color=alt.Color("color:N", scale=None, legend=None),
            tooltip=[alt.Tooltip("name:N", title="Отметка"), alt.Tooltip("value:Q", title="Доля, %", format=".2f")],
        )
    )
    labels = bars.mark_text(dy=-8, fontSize=11, fontWeight="bold", color="#64748b").encode(
        text=alt.Text("value:Q", format=".2f"),
    )
    return (bars + labels).properties(height=340, title="Распределение отметок (%)")


def scores_bar_chart(scores: List[Dict[str, Any]]) -> alt.Chart:
    data = pd.DataFrame(scores, columns=["score", "percentage"])
    return (
        alt.Chart(data)
        .mark_bar(color=SCORE_BAR_COLOR, cornerRadiusTopLeft=4, cornerRadiusTopRight=4)
        .encode(
            x=alt.X("score:O", title=None, axis=alt.Axis(labelAngle=0, domain=False, ticks=False)),
            y=alt.Y("percentage:Q", axis=None),
            tooltip=[alt.Tooltip("score:O", title="Балл"), alt.Tooltip("percentage:Q", title="Доля, %", format=".2f")],
        )
        .properties(height=340, title="Распределение первичных баллов (%)")
    )
