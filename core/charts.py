from __future__ import annotations

import math
from typing import Any, Dict, List, Sequence

import altair as alt
import pandas as pd

from core.aggregates import INTENSITY_LINE_COLOR, sector_colors

alt.data_transformers.disable_max_rows()

SECTOR_CHART_TITLE = "Average Intensity, Likelihood, Relevance, and Impact by Sector"
TIME_CHART_TITLE = "Average Intensity Over Time"
TOPIC_CHART_TITLE = "Average Intensity, Likelihood, Relevance, and Impact by Topic"
IMPACT_CHART_TITLE = "Impact Distribution by Sector"


def to_vega_spec(chart: alt.TopLevelMixin) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def _finite(value: object) -> bool:
    try:
        return math.isfinite(float(value))  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return False


def category_long_frame(data: Dict[str, Any], *, fill_missing: bool = False) -> pd.DataFrame:
    """Flatten ``labels`` + ``datasets`` into one row per (category, metric).

    Missing averages are dropped (a gap) unless ``fill_missing`` plots them as 0.
    """
    rows: List[Dict[str, Any]] = []
    labels = data.get("labels", [])
    for dataset in data.get("datasets", []):
        for category, value in zip(labels, dataset.get("data", [])):
            if not _finite(value):
                if not fill_missing:
                    continue
                value = 0.0
            rows.append({"category": category, "metric": dataset["label"], "value": float(value)})
    return pd.DataFrame(rows, columns=["category", "metric", "value"])


def _metric_scale(data: Dict[str, Any]) -> alt.Scale:
    datasets = data.get("datasets", [])
    return alt.Scale(domain=[d["label"] for d in datasets], range=[d["backgroundColor"] for d in datasets])


def sector_bar_chart(data: Dict[str, Any]) -> alt.Chart:
    long_df = category_long_frame(data)
    metric_order = [d["label"] for d in data.get("datasets", [])]
    return (
        alt.Chart(long_df, title=SECTOR_CHART_TITLE)
        .mark_bar()
        .encode(
            x=alt.X("category:N", title="Sector", sort=list(data.get("labels", []))),
            xOffset=alt.XOffset("metric:N", sort=metric_order),
            y=alt.Y("value:Q", title=None, axis=alt.Axis(gridDash=[4, 4], domain=False, ticks=False)),
            color=alt.Color("metric:N", title=None, scale=_metric_scale(data), sort=metric_order),
            tooltip=[
                alt.Tooltip("category:N", title="Sector"),
                alt.Tooltip("metric:N", title="Metric"),
                alt.Tooltip("value:Q", title="Value", format=",.2f"),
            ],
        )
        .properties(height=300)
    )


def intensity_line_chart(series: pd.DataFrame) -> alt.Chart:
    years = series["year"].tolist() if "year" in series.columns else []
    return (
        alt.Chart(series, title=TIME_CHART_TITLE)
        .mark_line(point={"filled": True, "size": 60}, color=INTENSITY_LINE_COLOR)
        .encode(
            x=alt.X("year:O", title="End Year", sort=years, axis=alt.Axis(grid=False)),
            y=alt.Y(
                "average_intensity:Q",
                title="Intensity",
                scale=alt.Scale(zero=True),
                axis=alt.Axis(gridDash=[4, 4], domain=False, ticks=False),
            ),
            tooltip=[alt.Tooltip("year:O", title="Year"), alt.Tooltip("average_intensity:Q", title="Intensity", format=",.2f")],
        )
        .properties(height=300)
    )


def radar_frame(data: Dict[str, Any]) -> pd.DataFrame:
    """Project each (category, metric) value onto polar coordinates.

    Categories are spokes spaced evenly clockwise from 12 o'clock. Each metric
    polygon repeats its first vertex at the end so the line closes.
    """
    labels = list(data.get("labels", []))
    n = len(labels)
    if n == 0:
        return pd.DataFrame(columns=["category", "metric", "value", "x", "y", "order"])
    long_df = category_long_frame(data, fill_missing=True)
    angles = {label: math.pi / 2 - 2 * math.pi * i / n for i, label in enumerate(labels)}
    long_df["order"] = long_df["category"].map({label: i for i, label in enumerate(labels)})
    long_df["x"] = [v * math.cos(angles[c]) for c, v in zip(long_df["category"], long_df["value"])]
    long_df["y"] = [v * math.sin(angles[c]) for c, v in zip(long_df["category"], long_df["value"])]
    closing = long_df[long_df["order"] == 0].assign(order=n)
    return pd.concat([long_df, closing], ignore_index=True).sort_values(["metric", "order"], kind="stable")


def topic_radar_chart(data: Dict[str, Any]) -> alt.LayerChart:
    frame = radar_frame(data)
    labels = list(data.get("labels", []))
    n = len(labels)
    reach = float(frame["value"].max()) if not frame.empty else 1.0
    reach = reach if reach > 0 else 1.0
    spokes = pd.DataFrame(
        [
            {
                "category": label,
                "x": reach * 1.1 * math.cos(math.pi / 2 - 2 * math.pi * i / n),
                "y": reach * 1.1 * math.sin(math.pi / 2 - 2 * math.pi * i / n),
                "x0": 0.0,
                "y0": 0.0,
            }
            for i, label in enumerate(labels)
        ],
        columns=["category", "x", "y", "x0", "y0"],
    )
    axis_none = dict(axis=None)
    grid = (
        alt.Chart(spokes)
        .mark_rule(color="#e5e7eb", strokeDash=[4, 4])
        .encode(x=alt.X("x0:Q", **axis_none), y=alt.Y("y0:Q", **axis_none), x2="x", y2="y")
    )
    spoke_labels = (
        alt.Chart(spokes)
        .mark_text(fontSize=10, color="#374151")
        .encode(x=alt.X("x:Q", **axis_none), y=alt.Y("y:Q", **axis_none), text="category:N")
    )
    polygons = (
        alt.Chart(frame)
        .mark_line(point=True, strokeWidth=2)
        .encode(
            x=alt.X("x:Q", **axis_none),
            y=alt.Y("y:Q", **axis_none),
            color=alt.Color("metric:N", title=None, scale=_metric_scale(data)),
            order="order:Q",
            detail="metric:N",
            tooltip=[
                alt.Tooltip("category:N", title="Topic"),
                alt.Tooltip("metric:N", title="Metric"),
                alt.Tooltip("value:Q", title="Value", format=",.2f"),
            ],
        )
    )
    return alt.layer(grid, polygons, spoke_labels, title=TOPIC_CHART_TITLE).properties(width=360, height=360)


def impact_doughnut_chart(sectors: Sequence[str], totals: Sequence[float]) -> alt.Chart:
    labels = list(sectors)
    df = pd.DataFrame({"sector": labels, "impact": [float(v) for v in totals]}, columns=["sector", "impact"])
    return (
        alt.Chart(df, title=IMPACT_CHART_TITLE)
        .mark_arc(innerRadius=60)
        .encode(
            theta=alt.Theta("impact:Q", stack=True),
            color=alt.Color("sector:N", title="Sector", sort=labels, scale=alt.Scale(domain=labels, range=sector_colors(labels))),
            tooltip=[alt.Tooltip("sector:N", title="Sector"), alt.Tooltip("impact:Q", title="Impact", format=",.0f")],
        )
        .properties(height=300)
    )
