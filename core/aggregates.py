from __future__ import annotations

import functools
import logging
import math
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

import pandas as pd

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (dataset label, metric column, background colour)
CATEGORY_METRICS: List[Tuple[str, str, str]] = [
    ("Average Intensity", "intensity", "rgba(75, 192, 192, 0.6)"),
    ("Average Likelihood", "likelihood", "rgba(153, 102, 255, 0.6)"),
    ("Average Relevance", "relevance", "rgba(255, 159, 64, 0.6)"),
    ("Average Impact", "impact", "rgba(255, 99, 132, 0.6)"),
]

INTENSITY_LINE_COLOR = "rgba(75, 192, 192, 1)"


def degrade_to(default: Callable[..., T]) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Log unexpected aggregation errors and return ``default(*args)`` instead."""

    def decorator(fn: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return fn(*args, **kwargs)
            except Exception:
                logger.exception("%s failed; rendering empty series", fn.__name__)
                return default(*args, **kwargs)

        return wrapper

    return decorator


def _empty_time_series(*_: Any, **__: Any) -> pd.DataFrame:
    return pd.DataFrame({"year": pd.Series(dtype=object), "average_intensity": pd.Series(dtype=float)})


def _empty_category_data(records: Optional[pd.DataFrame] = None, categories: Sequence[str] = (), *_: Any, **__: Any) -> Dict[str, Any]:
    labels = list(categories or [])
    return {
        "labels": labels,
        "datasets": [
            {"label": label, "metric": metric, "data": [0.0] * len(labels), "backgroundColor": color}
            for label, metric, color in CATEGORY_METRICS
        ],
    }


def _empty_totals(records: Optional[pd.DataFrame] = None, sectors: Sequence[str] = (), *_: Any, **__: Any) -> List[float]:
    return [0.0] * len(list(sectors or []))


@degrade_to(_empty_time_series)
def intensity_over_time(records: pd.DataFrame) -> pd.DataFrame:
    """Average intensity per ``end_year``, ordered by the year text (not numerically)."""
    if records.empty:
        return _empty_time_series()
    buckets = (
        records.assign(end_year=records["end_year"].fillna("").astype(str))
        .groupby("end_year", sort=False)
        .agg(intensity_sum=("intensity", "sum"), count=("intensity", "size"))
    )
    years = sorted(buckets.index.tolist())
    buckets = buckets.loc[years]
    return pd.DataFrame(
        {
            "year": years,
            "average_intensity": (buckets["intensity_sum"] / buckets["count"]).astype(float).tolist(),
        }
    )


def category_means(records: pd.DataFrame, categories: Sequence[str], field: str, metric: str) -> List[float]:
    """Mean of ``metric`` per category; NaN for a category without rows."""
    if records.empty or field not in records.columns or metric not in records.columns:
        return [math.nan] * len(categories)
    means = records.groupby(field, sort=False)[metric].mean()
    return [float(v) for v in means.reindex(list(categories)).tolist()]


@degrade_to(_empty_category_data)
def category_chart_data(records: pd.DataFrame, categories: Sequence[str], field: str) -> Dict[str, Any]:
    labels = list(categories)
    return {
        "labels": labels,
        "datasets": [
            {
                "label": label,
                "metric": metric,
                "data": category_means(records, labels, field, metric),
                "backgroundColor": color,
            }
            for label, metric, color in CATEGORY_METRICS
        ],
    }


@degrade_to(_empty_totals)
def sector_impact_totals(records: pd.DataFrame, sectors: Sequence[str]) -> List[float]:
    """Summed impact per sector; 0 for a sector without rows."""
    labels = list(sectors)
    if records.empty or "sector" not in records.columns:
        return [0.0] * len(labels)
    totals = records.groupby("sector", sort=False)["impact"].sum()
    return [float(v) for v in totals.reindex(labels, fill_value=0.0).tolist()]


def sector_color(index: int, alpha: float = 0.6) -> str:
    return f"rgba({index * 50 % 255}, {index * 80 % 255}, {index * 120 % 255}, {alpha})"


def sector_colors(sectors: Sequence[str]) -> List[str]:
    return [sector_color(i) for i, _ in enumerate(sectors)]
