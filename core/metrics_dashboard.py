from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Callable, Dict

import pandas as pd

from core.aggregates import (
    category_chart_data,
    intensity_over_time,
    sector_colors,
    sector_impact_totals,
)
from core.charts import (
    impact_doughnut_chart,
    intensity_line_chart,
    sector_bar_chart,
    to_vega_spec,
    topic_radar_chart,
)
from core.facets import distinct_values
from core.filters import FilterState

logger = logging.getLogger(__name__)


def _chart_spec(name: str, build: Callable[[], Any]) -> Dict[str, Any]:
    try:
        return to_vega_spec(build())
    except Exception:
        logger.exception("chart %s failed to build", name)
        return {}


def compute_status(ctx: Dict[str, Any]) -> Dict[str, Any]:
    fetched_at = ctx.get("fetched_at")
    records: pd.DataFrame = ctx.get("records", pd.DataFrame())
    filtered: pd.DataFrame = ctx.get("filtered_records", records)
    return {
        "state": ctx.get("status", "idle"),
        "fetched_at": fetched_at.isoformat() if fetched_at is not None else None,
        "error": ctx.get("error"),
        "raw_records": int(ctx.get("raw_count", 0) or 0),
        "valid_records": int(len(records)),
        "filtered_records": int(len(filtered)),
    }


def compute_dashboard(filters: FilterState, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("filtered_records", pd.DataFrame())

    sectors = distinct_values(df, "sector")
    topics = distinct_values(df, "topic")

    time_series = intensity_over_time(df)
    sector_data = category_chart_data(df, sectors, "sector")
    topic_data = category_chart_data(df, topics, "topic")
    impact_totals = sector_impact_totals(df, sectors)
    impact_colors = sector_colors(sectors)

    charts = {
        "sector_bar": _chart_spec("sector_bar", lambda: sector_bar_chart(sector_data)),
        "intensity_line": _chart_spec("intensity_line", lambda: intensity_line_chart(time_series)),
        "topic_radar": _chart_spec("topic_radar", lambda: topic_radar_chart(topic_data)),
        "impact_doughnut": _chart_spec("impact_doughnut", lambda: impact_doughnut_chart(sectors, impact_totals)),
    }

    return {
        "filters": asdict(filters),
        "status": compute_status(ctx),
        "facets": ctx.get("facets", {}),
        "series": {
            "intensity_over_time": time_series.to_dict(orient="records"),
            "sector": sector_data,
            "topic": topic_data,
            "sector_impact": {
                "labels": sectors,
                "data": impact_totals,
                "backgroundColor": impact_colors,
            },
        },
        "charts": charts,
    }
